"""Shared pytest configuration and fixtures for the remote camera test suite."""

import socket
import threading
import time
from typing import List

import pytest

from remote_camera.capture.controller import CaptureController, CameraDescriptor
from remote_camera.config import ServerConfig, CaptureConfig, StreamConfig
from remote_camera.manager import SessionManager
from remote_camera.notifier import StatusNotifier


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a physical camera",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Test doubles
# =============================================================================

class StubCaptureController(CaptureController):
    """Capture backend that records requests and emits frames on demand."""

    def __init__(self, labels=("Back", "Front")):
        super().__init__()
        self.labels = list(labels)
        self.list_calls = 0
        self.open_calls: List[int] = []
        self.switch_calls: List[int] = []
        self.close_calls = 0

    def list_cameras(self):
        self.list_calls += 1
        return [CameraDescriptor(i, label) for i, label in enumerate(self.labels)]

    def open(self, index):
        self.open_calls.append(index)
        self._active_index = index
        self._status = "Running"

    def close(self):
        self.close_calls += 1
        self._active_index = None
        self._status = "Stopped"

    def switch_to(self, index):
        self.switch_calls.append(index)
        self._active_index = index

    def emit(self, frame: bytes) -> None:
        self._emit(frame)


class RecordingNotifier(StatusNotifier):
    """Notifier that keeps every update for assertions."""

    def __init__(self):
        self.statuses: List[str] = []
        self.endpoints = []
        self._lock = threading.Lock()

    def report_status(self, status):
        with self._lock:
            self.statuses.append(status)

    def report_endpoint(self, ip, command_port, video_port):
        with self._lock:
            self.endpoints.append((ip, command_port, video_port))


# =============================================================================
# Helpers
# =============================================================================

def free_port() -> int:
    """Ask the OS for a currently unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_config(command_port: int = 0, video_port: int = 0, capacity: int = 6) -> ServerConfig:
    """Loopback config with short timeouts so teardown is quick."""
    return ServerConfig(
        host="127.0.0.1",
        command_port=command_port,
        video_port=video_port,
        capture=CaptureConfig(backend="synthetic"),
        stream=StreamConfig(
            queue_capacity=capacity,
            pop_wait_ms=50,
            accept_timeout=0.1,
            read_timeout=0.1,
        ),
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def stub_capture() -> StubCaptureController:
    return StubCaptureController()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def server_config() -> ServerConfig:
    return make_config()


@pytest.fixture
def manager(server_config, stub_capture, notifier):
    """A started SessionManager on ephemeral loopback ports."""
    mgr = SessionManager(server_config, stub_capture, notifier=notifier)
    assert mgr.start()
    yield mgr
    mgr.stop()
