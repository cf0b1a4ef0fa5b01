"""
OpenCV camera capture backend.

Handles:
- Camera enumeration by probing device indices
- Frame capture from the active device
- Frame encoding to JPEG
- Asynchronous camera switching (close then open)
"""

import cv2
import logging
import threading
import time
from typing import Optional, List, Dict, Any

from .controller import CaptureController, CameraDescriptor
from ..config import CaptureConfig
from ..errors import CaptureError


logger = logging.getLogger(__name__)


class OpenCVCaptureController(CaptureController):
    """
    Captures video from local camera devices through OpenCV.

    Single capture thread handles:
    1. Frame capture from the device
    2. Frame rate control
    3. JPEG encoding
    4. Delivery to the frame listener

    A failed open or read is a CaptureError: it is logged, the thread exits
    and the controller reports a failed status until the next open/switch.

    Usage:
        config = CaptureConfig(default_camera=0, target_fps=15)
        capture = OpenCVCaptureController(config)
        capture.set_frame_listener(queue.push)
        capture.open(0)

        # Later...
        capture.close()
    """

    def __init__(self, config: CaptureConfig):
        """
        Initialize capture controller.

        Args:
            config: Capture configuration
        """
        super().__init__()
        self.config = config

        self._cameras: Optional[List[CameraDescriptor]] = None
        self._device_ids: List[int] = []
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._control_lock = threading.Lock()
        self._requested: Optional[int] = None
        self._error: Optional[str] = None

    def list_cameras(self) -> List[CameraDescriptor]:
        """
        Enumerate cameras by probing indices 0..max_probe-1.

        The result is cached; descriptors do not change after discovery.
        """
        if self._cameras is not None:
            return list(self._cameras)

        cameras = []
        self._device_ids = []
        for device in range(self.config.max_probe):
            cap = cv2.VideoCapture(device)
            try:
                if cap.isOpened():
                    cameras.append(CameraDescriptor(index=len(cameras), facing_label=f"Camera {device}"))
                    self._device_ids.append(device)
            finally:
                cap.release()

        logger.info("Found %d cameras", len(cameras))
        self._cameras = cameras
        return list(cameras)

    def open(self, index: int) -> None:
        """Start capturing from camera `index`."""
        with self._control_lock:
            self._requested = index
            self._stop_locked()
            self._start_locked(index)

    def close(self) -> None:
        """Stop the capture thread and release the device."""
        with self._control_lock:
            self._requested = None
            self._stop_locked()

    def switch_to(self, index: int) -> None:
        """
        Close the current camera and open `index` on a background thread.

        A later switch or close() supersedes a switch that has not run yet.
        """
        logger.info("Switching to camera %d", index)
        with self._control_lock:
            self._requested = index
        threading.Thread(
            target=self._switch, args=(index,), name="camera-switch", daemon=True
        ).start()

    def _switch(self, index: int) -> None:
        with self._control_lock:
            if self._requested != index:
                logger.debug("Switch to camera %d superseded", index)
                return
            self._stop_locked()
            self._start_locked(index)

    @property
    def is_running(self) -> bool:
        """Check if capture is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def error(self) -> Optional[str]:
        """Get last error message."""
        return self._error

    def get_stats(self) -> Dict[str, Any]:
        """Get capture statistics."""
        stats = super().get_stats()
        stats.update({
            'backend': 'opencv',
            'error': self._error,
            'target_fps': self.config.target_fps,
            'jpeg_quality': self.config.jpeg_quality,
        })
        return stats

    def _device_for(self, index: int) -> int:
        """Map an enumerated camera index to its OpenCV device id."""
        if 0 <= index < len(self._device_ids):
            return self._device_ids[index]
        return index

    def _start_locked(self, index: int) -> None:
        self._stop_event = threading.Event()
        self._error = None
        self._active_index = index
        self._status = "Opening..."
        self._thread = threading.Thread(
            target=self._capture_loop,
            args=(index, self._stop_event),
            name=f"capture-{index}",
            daemon=True,
        )
        self._thread.start()

    def _stop_locked(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=3.0)
        self._thread = None
        self._active_index = None
        self._status = "Stopped"

    def _capture_loop(self, index: int, stop_event: threading.Event) -> None:
        """Main capture loop (runs in separate thread)."""
        try:
            self._run_capture_session(index, stop_event)
        except CaptureError as e:
            logger.error("Capture error on camera %d: %s", index, e)
            self._mark_failed(e, stop_event)
        except Exception as e:
            logger.exception("Unexpected capture error on camera %d", index)
            self._mark_failed(e, stop_event)

    def _mark_failed(self, error: Exception, stop_event: threading.Event) -> None:
        # A session that was already stopped (or outlived its join) no longer
        # owns the controller state
        if stop_event.is_set():
            return
        self._error = str(error)
        self._status = "Failed"

    def _run_capture_session(self, index: int, stop_event: threading.Event) -> None:
        """Run a single capture session until stopped or the device fails."""
        device = self._device_for(index)
        cap = cv2.VideoCapture(device)

        if self.config.width > 0:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        if self.config.height > 0:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)

        # Minimum driver buffering for lower latency
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Cannot open camera device {device}")

        if not stop_event.is_set():
            self._status = "Streaming"
        logger.info("Camera %d opened (device %d)", index, device)
        frame_interval = 1.0 / max(1, self.config.target_fps)
        encode_params = [cv2.IMWRITE_JPEG_QUALITY, self.config.jpeg_quality]
        last_frame_time = 0.0

        try:
            while not stop_event.is_set():
                elapsed = time.time() - last_frame_time
                if elapsed < frame_interval:
                    stop_event.wait(frame_interval - elapsed)
                    continue

                ret, frame = cap.read()
                if not ret:
                    raise CaptureError(f"Frame capture failed on device {device}")

                success, jpeg = cv2.imencode('.jpg', frame, encode_params)
                last_frame_time = time.time()
                if success and not stop_event.is_set():
                    self._emit(jpeg.tobytes())
        finally:
            cap.release()
            logger.info("Camera %d released", index)
