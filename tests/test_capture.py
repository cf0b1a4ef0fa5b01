import threading

import pytest

from conftest import StubCaptureController, wait_for
from remote_camera.capture.frame_queue import FrameQueue
from remote_camera.capture.opencv_capture import OpenCVCaptureController
from remote_camera.capture.synthetic import SyntheticCaptureController, _render_test_card
from remote_camera.config import CaptureConfig
from remote_camera.errors import CaptureError


JPEG_MAGIC = b"\xff\xd8"


@pytest.fixture
def synthetic():
    controller = SyntheticCaptureController(
        CaptureConfig(backend="synthetic", width=160, height=120, target_fps=30))
    yield controller
    controller.close()


def test_listener_failure_does_not_escape():
    capture = StubCaptureController()

    def broken(frame):
        raise RuntimeError("queue gone")

    capture.set_frame_listener(broken)
    capture.emit(b"frame")
    assert capture.get_stats()['frames_captured'] == 1


def test_emit_without_listener_is_dropped():
    capture = StubCaptureController()
    capture.emit(b"frame")
    assert capture.get_stats()['frames_captured'] == 0


def test_test_card_is_jpeg():
    frame = _render_test_card("Back", 3, width=160, height=120)
    assert frame.startswith(JPEG_MAGIC)


def test_synthetic_cameras_follow_labels(synthetic):
    cameras = synthetic.list_cameras()
    assert [(c.index, c.facing_label) for c in cameras] == [(0, "Back"), (1, "Front")]


def test_synthetic_streams_into_queue(synthetic):
    queue = FrameQueue(capacity=6)
    synthetic.set_frame_listener(queue.push)
    synthetic.open(0)

    frame = queue.pop_blocking(2000)
    assert frame is not None and frame.startswith(JPEG_MAGIC)
    assert synthetic.status == "Streaming"
    assert synthetic.active_index == 0


def test_synthetic_close_stops_frames(synthetic):
    frames = []
    synthetic.set_frame_listener(frames.append)
    synthetic.open(0)
    assert wait_for(lambda: frames)

    synthetic.close()
    count = len(frames)
    assert not synthetic.is_running
    assert synthetic.status == "Stopped"
    threading.Event().wait(0.2)
    assert len(frames) == count


def test_switch_is_asynchronous(synthetic):
    synthetic.set_frame_listener(lambda frame: None)
    synthetic.open(0)
    synthetic.switch_to(1)

    assert wait_for(lambda: synthetic.active_index == 1 and synthetic.is_running)
    assert synthetic.get_stats()['backend'] == 'synthetic'


def test_close_supersedes_pending_switch(synthetic):
    synthetic.set_frame_listener(lambda frame: None)
    with synthetic._control_lock:
        synthetic._requested = 1
        threading.Thread(target=synthetic._switch, args=(1,), daemon=True).start()
        synthetic._requested = None

    threading.Event().wait(0.2)
    assert not synthetic.is_running


@pytest.mark.hardware
def test_opencv_device_streams():
    capture = OpenCVCaptureController(CaptureConfig(target_fps=10))
    cameras = capture.list_cameras()
    if not cameras:
        pytest.skip("No camera device attached")

    queue = FrameQueue()
    capture.set_frame_listener(queue.push)
    try:
        capture.open(cameras[0].index)
        frame = queue.pop_blocking(5000)
        assert frame is not None and frame.startswith(JPEG_MAGIC)
    finally:
        capture.close()


class FailingCapture(OpenCVCaptureController):
    """Device that errors as soon as a session runs."""

    def _run_capture_session(self, index, stop_event):
        raise CaptureError("device unplugged")


def test_failed_session_reports_error():
    capture = FailingCapture(CaptureConfig())
    capture._capture_loop(0, threading.Event())

    assert capture.status == "Failed"
    assert capture.error == "device unplugged"


def test_stale_session_leaves_current_state_alone():
    capture = FailingCapture(CaptureConfig())
    capture._status = "Streaming"
    stopped = threading.Event()
    stopped.set()

    # A thread that outlived its join finishes after a newer session started
    capture._capture_loop(0, stopped)

    assert capture.status == "Streaming"
    assert capture.error is None
