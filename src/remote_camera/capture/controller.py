"""
Capture controller contract consumed by the session and dispatcher.

A capture controller hides camera hardware behind four requests
(list, open, close, switch) and delivers encoded frames through a
listener callback that may be invoked from any thread.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Dict, Any


logger = logging.getLogger(__name__)

FrameListener = Callable[[bytes], None]


@dataclass(frozen=True)
class CameraDescriptor:
    """One enumerated camera. Immutable after discovery."""
    index: int
    facing_label: str


class CaptureController(ABC):
    """
    Base class for camera capture backends.

    Subclasses implement list_cameras(), open(), close() and switch_to().
    open() and switch_to() are requests: failures are logged and leave the
    controller stopped instead of raising into the caller.
    """

    def __init__(self):
        self._listener: Optional[FrameListener] = None
        self._listener_lock = threading.Lock()
        self._status = "Stopped"
        self._active_index: Optional[int] = None
        self._frames_captured = 0

    def set_frame_listener(self, listener: Optional[FrameListener]) -> None:
        """Register the callback that receives each encoded frame."""
        with self._listener_lock:
            self._listener = listener

    def _emit(self, frame: bytes) -> None:
        """Hand a frame to the listener (called from the capture thread)."""
        with self._listener_lock:
            listener = self._listener
        if listener is None:
            return

        self._frames_captured += 1
        try:
            listener(frame)
        except Exception:
            logger.exception("Frame listener failed")

    @abstractmethod
    def list_cameras(self) -> List[CameraDescriptor]:
        """Enumerate available cameras in a stable order."""

    @abstractmethod
    def open(self, index: int) -> None:
        """Start capturing from the camera at `index`."""

    @abstractmethod
    def close(self) -> None:
        """Stop capturing. Closing a closed controller is a no-op."""

    @abstractmethod
    def switch_to(self, index: int) -> None:
        """Asynchronously close the current camera and open `index`."""

    @property
    def status(self) -> str:
        """Get current status string."""
        return self._status

    @property
    def active_index(self) -> Optional[int]:
        """Index of the camera currently capturing, if any."""
        return self._active_index

    def get_stats(self) -> Dict[str, Any]:
        """Get capture statistics."""
        return {
            'status': self._status,
            'active_index': self._active_index,
            'frames_captured': self._frames_captured,
        }
