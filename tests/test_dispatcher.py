import pytest

from conftest import StubCaptureController, RecordingNotifier
from remote_camera.capture.controller import CameraDescriptor
from remote_camera.errors import DispatchError
from remote_camera.protocol.dispatcher import CommandDispatcher
from remote_camera.protocol.framing import Command
from remote_camera.session import Session


@pytest.fixture
def session():
    s = Session(default_camera=0)
    s.begin_start([CameraDescriptor(0, "Back"), CameraDescriptor(1, "Front")])
    s.mark_running()
    return s


@pytest.fixture
def capture():
    return StubCaptureController()


@pytest.fixture
def dispatcher(session, capture):
    return CommandDispatcher(session, capture, RecordingNotifier())


def test_get_cameras_returns_labels_in_order(dispatcher):
    response = dispatcher.dispatch(Command("get_cameras"))
    assert response.to_dict() == {"success": True, "cameras": ["Back", "Front"]}


def test_get_cameras_when_none_enumerated(capture):
    session = Session()
    session.begin_start([])
    dispatcher = CommandDispatcher(session, capture)

    assert dispatcher.dispatch(Command("get_cameras")).to_dict() == {"success": True, "cameras": []}


def test_switch_camera_requests_capture_switch(dispatcher, session, capture):
    response = dispatcher.dispatch(Command("switch_camera", {"camera_id": 1}))

    assert response.to_dict() == {"success": True}
    assert session.active_camera_index == 1
    assert capture.switch_calls == [1]
    assert "Switching to camera 1" in dispatcher.notifier.statuses


def test_switch_to_active_camera_does_not_restart(dispatcher, capture):
    first = dispatcher.dispatch(Command("switch_camera", {"camera_id": 0}))
    second = dispatcher.dispatch(Command("switch_camera", {"camera_id": 0}))

    assert first.success and second.success
    assert capture.switch_calls == []


@pytest.mark.parametrize("camera_id", [-1, 2, 99])
def test_switch_out_of_range(dispatcher, session, capture, camera_id):
    response = dispatcher.dispatch(Command("switch_camera", {"camera_id": camera_id}))

    assert response.to_dict() == {"success": False, "error": "Invalid camera ID"}
    assert session.active_camera_index == 0
    assert capture.switch_calls == []


@pytest.mark.parametrize("arguments", [None, {}, {"camera": 1}])
def test_switch_without_camera_id(dispatcher, arguments):
    response = dispatcher.dispatch(Command("switch_camera", arguments))
    assert response.to_dict() == {"success": False, "error": "Missing camera_id"}


@pytest.mark.parametrize("camera_id", ["1", 1.0, True, None])
def test_switch_with_non_integer_id(dispatcher, capture, camera_id):
    response = dispatcher.dispatch(Command("switch_camera", {"camera_id": camera_id}))

    assert response.to_dict() == {"success": False, "error": "Invalid camera ID"}
    assert capture.switch_calls == []


def test_unknown_command(dispatcher):
    response = dispatcher.dispatch(Command("zoom", {"level": 2}))
    assert response.to_dict() == {"success": False, "error": "Unknown command"}


def test_disconnect_acknowledged(dispatcher):
    assert dispatcher.dispatch(Command("disconnect")).to_dict() == {"success": True}


def test_handler_crash_becomes_error_response(dispatcher, capture, monkeypatch):
    def broken(index):
        raise RuntimeError("device vanished")

    monkeypatch.setattr(capture, "switch_to", broken)
    response = dispatcher.dispatch(Command("switch_camera", {"camera_id": 1}))

    assert not response.success
    assert response.error == "Internal error: device vanished"


def test_direct_switch_raises_for_invalid_index(dispatcher):
    with pytest.raises(DispatchError):
        dispatcher.switch_camera(5)
