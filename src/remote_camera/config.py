"""
Configuration module for the Remote Camera Server.

Handles loading and validating configuration from:
1. JSON config file
2. Environment variables
3. CLI arguments (applied by main.py)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List


logger = logging.getLogger(__name__)

DEFAULT_COMMAND_PORT = 9999
DEFAULT_VIDEO_PORT = 9998


@dataclass
class CaptureConfig:
    """Configuration for the camera capture backend."""
    # Backend: "opencv" (real devices) or "synthetic" (generated test card)
    backend: str = "opencv"
    default_camera: int = 0
    width: int = 640
    height: int = 480
    target_fps: int = 15
    jpeg_quality: int = 70

    # OpenCV: number of device indices probed during enumeration
    max_probe: int = 4

    # Synthetic: one camera per label
    synthetic_cameras: List[str] = field(default_factory=lambda: ["Back", "Front"])


@dataclass
class StreamConfig:
    """Configuration for the frame pipeline and channel sockets."""
    queue_capacity: int = 6
    pop_wait_ms: int = 100
    max_message_size: int = 1024 * 1024
    accept_timeout: float = 0.5
    read_timeout: float = 0.5


@dataclass
class ServerConfig:
    """Main server configuration."""
    host: str = "0.0.0.0"
    command_port: int = DEFAULT_COMMAND_PORT
    video_port: int = DEFAULT_VIDEO_PORT
    enable_tui: bool = False
    debug: bool = False

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)

    def validate(self) -> None:
        """Raise ValueError on settings the server cannot run with."""
        if self.command_port and self.command_port == self.video_port:
            raise ValueError(
                f"Command and video ports must differ (both {self.command_port})"
            )
        if self.stream.queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")
        if self.capture.backend not in ("opencv", "synthetic"):
            raise ValueError(f"Unknown capture backend: {self.capture.backend}")


def load_config(config_path: Optional[str] = None) -> ServerConfig:
    """
    Load configuration from file and environment.

    Priority:
    1. Environment variables (highest)
    2. Config file
    3. Defaults (lowest)

    Args:
        config_path: Path to JSON config file

    Returns:
        ServerConfig: Validated configuration
    """
    config = ServerConfig()

    if config_path:
        file_config = _load_json_config(config_path)
        config = _merge_config(config, file_config)
    else:
        default_paths = [
            Path("remote_camera.json"),
            Path("config.json"),
        ]
        for path in default_paths:
            if path.exists():
                file_config = _load_json_config(str(path))
                config = _merge_config(config, file_config)
                break

    config = _apply_env_overrides(config)
    config.validate()

    return config


def _load_json_config(path: str) -> Dict[str, Any]:
    """Load configuration from JSON file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in config file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s does not contain an object", path)
        return {}
    return data


def _merge_config(config: ServerConfig, file_data: Dict[str, Any]) -> ServerConfig:
    """Merge file configuration into ServerConfig."""
    # Server settings
    config.host = file_data.get('host', config.host)
    config.command_port = int(file_data.get('command_port', config.command_port))
    config.video_port = int(file_data.get('video_port', config.video_port))
    config.enable_tui = file_data.get('enable_tui', config.enable_tui)
    config.debug = file_data.get('debug', config.debug)

    # Capture settings
    capture_data = file_data.get('capture', {})
    config.capture.backend = capture_data.get('backend', config.capture.backend)
    config.capture.default_camera = int(capture_data.get(
        'default_camera', file_data.get('camera', config.capture.default_camera)))
    config.capture.width = capture_data.get('width', config.capture.width)
    config.capture.height = capture_data.get('height', config.capture.height)
    config.capture.target_fps = capture_data.get('target_fps', config.capture.target_fps)
    config.capture.jpeg_quality = capture_data.get('jpeg_quality', config.capture.jpeg_quality)
    config.capture.max_probe = capture_data.get('max_probe', config.capture.max_probe)
    config.capture.synthetic_cameras = list(
        capture_data.get('synthetic_cameras', config.capture.synthetic_cameras))

    # Stream settings
    stream_data = file_data.get('stream', {})
    config.stream.queue_capacity = stream_data.get('queue_capacity', config.stream.queue_capacity)
    config.stream.pop_wait_ms = stream_data.get('pop_wait_ms', config.stream.pop_wait_ms)
    config.stream.max_message_size = stream_data.get('max_message_size', config.stream.max_message_size)
    config.stream.accept_timeout = stream_data.get('accept_timeout', config.stream.accept_timeout)
    config.stream.read_timeout = stream_data.get('read_timeout', config.stream.read_timeout)

    return config


def _apply_env_overrides(config: ServerConfig) -> ServerConfig:
    """Apply environment variable overrides."""
    # Server
    config.host = os.getenv('REMOTE_CAMERA_HOST', config.host)
    config.command_port = int(os.getenv('COMMAND_PORT', config.command_port))
    config.video_port = int(os.getenv('VIDEO_PORT', config.video_port))
    debug = os.getenv('REMOTE_CAMERA_DEBUG', '').lower()
    if debug:
        config.debug = debug in ('true', '1', 'yes')

    # Capture
    backend = os.getenv('CAPTURE_BACKEND', '').lower()
    if backend in ('opencv', 'synthetic'):
        config.capture.backend = backend
    config.capture.default_camera = int(os.getenv('CAMERA_INDEX', config.capture.default_camera))
    config.capture.target_fps = int(os.getenv('TARGET_FPS', config.capture.target_fps))
    config.capture.jpeg_quality = int(os.getenv('JPEG_QUALITY', config.capture.jpeg_quality))

    # Stream
    config.stream.queue_capacity = int(os.getenv('QUEUE_CAPACITY', config.stream.queue_capacity))

    return config


def save_config(config: ServerConfig, path: str) -> bool:
    """Save configuration to JSON file."""
    try:
        data = {
            'host': config.host,
            'command_port': config.command_port,
            'video_port': config.video_port,
            'enable_tui': config.enable_tui,
            'debug': config.debug,
            'capture': {
                'backend': config.capture.backend,
                'default_camera': config.capture.default_camera,
                'width': config.capture.width,
                'height': config.capture.height,
                'target_fps': config.capture.target_fps,
                'jpeg_quality': config.capture.jpeg_quality,
                'max_probe': config.capture.max_probe,
                'synthetic_cameras': list(config.capture.synthetic_cameras),
            },
            'stream': {
                'queue_capacity': config.stream.queue_capacity,
                'pop_wait_ms': config.stream.pop_wait_ms,
                'max_message_size': config.stream.max_message_size,
                'accept_timeout': config.stream.accept_timeout,
                'read_timeout': config.stream.read_timeout,
            },
        }

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        return True
    except OSError as e:
        logger.error("Failed to save config: %s", e)
        return False
