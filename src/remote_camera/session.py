"""
Session state shared by the lifecycle manager, dispatcher and channel workers.

One Session exists per process. All fields are guarded by a single lock;
the running flag is a threading.Event so channel workers can poll it
without taking the lock.
"""

import threading
from enum import Enum
from typing import Sequence, Tuple, Dict, Any

from .capture.controller import CameraDescriptor
from .errors import DispatchError


class SessionState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


class Session:
    """
    Running flag, active camera and enumerated cameras.

    Usage:
        session = Session(default_camera=0)
        if session.begin_start(capture.list_cameras()):
            ...
            session.mark_running()
    """

    def __init__(self, default_camera: int = 0):
        self._lock = threading.RLock()
        self._running = threading.Event()
        self._state = SessionState.STOPPED
        self._active_camera_index = default_camera
        self._available_cameras: Tuple[CameraDescriptor, ...] = ()

    # =========================================================================
    # Lifecycle transitions
    # =========================================================================

    def begin_start(self, cameras: Sequence[CameraDescriptor]) -> bool:
        """
        Move Stopped -> Starting with a fresh camera list.

        Returns:
            bool: False if the session is already Starting or Running
        """
        with self._lock:
            if self._state is not SessionState.STOPPED:
                return False
            self._state = SessionState.STARTING
            self._available_cameras = tuple(cameras)
            if not 0 <= self._active_camera_index < len(self._available_cameras):
                self._active_camera_index = 0
            self._running.set()
            return True

    def mark_running(self) -> None:
        with self._lock:
            if self._state is SessionState.STARTING:
                self._state = SessionState.RUNNING

    def mark_stopped(self) -> None:
        """Reset to Stopped from any state. The active index is kept."""
        with self._lock:
            self._running.clear()
            self._state = SessionState.STOPPED
            self._available_cameras = ()

    # =========================================================================
    # Camera selection
    # =========================================================================

    def select_camera(self, index: int) -> bool:
        """
        Make `index` the active camera.

        Returns:
            bool: True if the active camera changed, False if it already was
            the active one

        Raises:
            DispatchError: Index outside the enumerated cameras
        """
        with self._lock:
            if not 0 <= index < len(self._available_cameras):
                raise DispatchError("Invalid camera ID")
            if index == self._active_camera_index:
                return False
            self._active_camera_index = index
            return True

    # =========================================================================
    # Readers
    # =========================================================================

    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def active_camera_index(self) -> int:
        with self._lock:
            return self._active_camera_index

    @property
    def available_cameras(self) -> Tuple[CameraDescriptor, ...]:
        with self._lock:
            return self._available_cameras

    def snapshot(self) -> Dict[str, Any]:
        """Consistent copy of all session fields."""
        with self._lock:
            return {
                'state': self._state.value,
                'running': self._running.is_set(),
                'active_camera': self._active_camera_index,
                'cameras': [c.facing_label for c in self._available_cameras],
            }
