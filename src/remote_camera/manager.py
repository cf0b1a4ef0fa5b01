"""
Session lifecycle: starts and stops both channels and capture as one unit.

State machine: Stopped -> Starting -> Running -> Stopped.
"""

import logging
import threading
import time
from typing import Optional, List, Dict, Any

from .capture.controller import CaptureController
from .capture.frame_queue import FrameQueue
from .config import ServerConfig
from .errors import DispatchError
from .notifier import StatusNotifier, LogNotifier, safe_notify, get_local_ip
from .protocol.dispatcher import CommandDispatcher
from .server.command_server import CommandChannelServer
from .server.video_server import VideoChannelServer
from .session import Session, SessionState


logger = logging.getLogger(__name__)


class SessionManager:
    """
    Owns the session, the frame queue, both channel servers and capture.

    Usage:
        manager = SessionManager(config, OpenCVCaptureController(config.capture))
        manager.start()

        # Later...
        manager.stop()
    """

    def __init__(
        self,
        config: ServerConfig,
        capture: CaptureController,
        notifier: Optional[StatusNotifier] = None
    ):
        """
        Initialize session manager.

        Args:
            config: Server configuration
            capture: Camera backend delivering encoded frames
            notifier: Receives status and endpoint updates (optional)
        """
        self.config = config
        self.capture = capture
        self.notifier = notifier or LogNotifier()

        self.session = Session(default_camera=config.capture.default_camera)
        self.frame_queue = FrameQueue(capacity=config.stream.queue_capacity)
        self.dispatcher = CommandDispatcher(self.session, capture, self.notifier)

        self.command_server = CommandChannelServer(
            config.host, config.command_port, self.session,
            self.dispatcher, config.stream, self.notifier,
        )
        self.video_server = VideoChannelServer(
            config.host, config.video_port, self.session,
            self.frame_queue, config.stream, self.notifier,
        )

        self._lifecycle_lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._start_time: Optional[float] = None

    def start(self) -> bool:
        """
        Start both channel servers and open the active camera.

        Ignored while already Starting or Running.

        Returns:
            bool: True if this call started the session
        """
        with self._lifecycle_lock:
            if self.session.state is not SessionState.STOPPED:
                logger.warning("Start ignored: session is %s", self.session.state.value)
                return False

            try:
                cameras = self.capture.list_cameras()
            except Exception:
                logger.exception("Error accessing cameras")
                cameras = []

            if not self.session.begin_start(cameras):
                return False

            safe_notify(self.notifier.report_status, "Starting server...")

            self.frame_queue.reset()
            try:
                self.command_server.bind()
                self.video_server.bind()
            except OSError as e:
                logger.error("Failed to bind channel ports: %s", e)
                self._teardown()
                safe_notify(self.notifier.report_status, f"Failed to start: {e}")
                return False

            self.capture.set_frame_listener(self.frame_queue.push)
            self._threads = [
                threading.Thread(target=self.command_server.run, name="command-channel", daemon=True),
                threading.Thread(target=self.video_server.run, name="video-channel", daemon=True),
            ]
            for thread in self._threads:
                thread.start()

            if cameras:
                self._open_camera(self.session.active_camera_index)
            else:
                logger.warning("No cameras available; video channel will stay idle")

            self.session.mark_running()
            self._start_time = time.time()

        safe_notify(self.notifier.report_status, "Server running")
        safe_notify(
            self.notifier.report_endpoint,
            get_local_ip(), self.command_port, self.video_port,
        )
        return True

    def stop(self) -> None:
        """
        Stop capture, close every socket and join the channel workers.

        Valid from any state; stopping a stopped session is a no-op.
        """
        with self._lifecycle_lock:
            was_active = self.session.state is not SessionState.STOPPED
            self._teardown()
            self._start_time = None

        if was_active:
            safe_notify(self.notifier.report_status, "Server stopped")

    def switch_camera(self, index: int) -> bool:
        """
        Switch the active camera while Running.

        Returns:
            bool: True if a capture switch was requested, False if `index`
            was already active

        Raises:
            DispatchError: Session not running or index out of range
        """
        if self.session.state is not SessionState.RUNNING:
            raise DispatchError("Server is not running")
        return self.dispatcher.switch_camera(index)

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_running(self) -> bool:
        """Check if the session is Running."""
        return self.session.state is SessionState.RUNNING

    @property
    def command_port(self) -> int:
        """Bound command port (the configured one when not listening)."""
        return self.command_server.address[1]

    @property
    def video_port(self) -> int:
        """Bound video port (the configured one when not listening)."""
        return self.video_server.address[1]

    def get_stats(self) -> Dict[str, Any]:
        """Aggregate session, pipeline, capture and channel statistics."""
        return {
            'session': self.session.snapshot(),
            'uptime_seconds': int(time.time() - self._start_time) if self._start_time else 0,
            'queue': self.frame_queue.get_stats(),
            'capture': self.capture.get_stats(),
            'command': self.command_server.get_stats(),
            'video': self.video_server.get_stats(),
        }

    def _open_camera(self, index: int) -> None:
        try:
            self.capture.open(index)
        except Exception:
            # Capture failures leave the session usable; the client can switch
            logger.exception("Failed to open camera %d", index)

    def _teardown(self) -> None:
        """Release everything start() acquired. Idempotent."""
        self.session.mark_stopped()
        self.frame_queue.close()

        try:
            self.capture.close()
        except Exception:
            logger.exception("Error closing camera")
        self.capture.set_frame_listener(None)

        self.command_server.shutdown()
        self.video_server.shutdown()

        join_timeout = self.config.stream.accept_timeout + self.config.stream.read_timeout + 1.0
        for thread in self._threads:
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=join_timeout)
                if thread.is_alive():
                    logger.warning("%s worker did not exit within %.1fs", thread.name, join_timeout)
        self._threads = []
