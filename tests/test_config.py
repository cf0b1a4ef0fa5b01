import json

import pytest

from remote_camera.config import (
    ServerConfig,
    DEFAULT_COMMAND_PORT,
    DEFAULT_VIDEO_PORT,
    load_config,
    save_config,
)


ENV_VARS = (
    'REMOTE_CAMERA_HOST', 'COMMAND_PORT', 'VIDEO_PORT', 'REMOTE_CAMERA_DEBUG',
    'CAPTURE_BACKEND', 'CAMERA_INDEX', 'TARGET_FPS', 'JPEG_QUALITY', 'QUEUE_CAPACITY',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep default config file discovery away from the repo checkout
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config()
    assert config.host == "0.0.0.0"
    assert config.command_port == DEFAULT_COMMAND_PORT == 9999
    assert config.video_port == DEFAULT_VIDEO_PORT == 9998
    assert config.stream.queue_capacity == 6
    assert config.capture.backend == "opencv"


def test_file_values_are_merged(tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({
        "command_port": 7000,
        "video_port": 7001,
        "capture": {"backend": "synthetic", "synthetic_cameras": ["Left", "Right", "Top"]},
        "stream": {"queue_capacity": 3},
    }), encoding='utf-8')

    config = load_config(str(path))
    assert (config.command_port, config.video_port) == (7000, 7001)
    assert config.capture.backend == "synthetic"
    assert config.capture.synthetic_cameras == ["Left", "Right", "Top"]
    assert config.stream.queue_capacity == 3
    assert config.stream.pop_wait_ms == 100


def test_default_file_discovered_in_working_directory(tmp_path):
    (tmp_path / "remote_camera.json").write_text('{"camera": 1}', encoding='utf-8')
    assert load_config().capture.default_camera == 1


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    path.write_text('{"command_port": 7000, "video_port": 7001}', encoding='utf-8')
    monkeypatch.setenv('COMMAND_PORT', '8000')
    monkeypatch.setenv('CAPTURE_BACKEND', 'synthetic')
    monkeypatch.setenv('REMOTE_CAMERA_DEBUG', 'yes')

    config = load_config(str(path))
    assert config.command_port == 8000
    assert config.video_port == 7001
    assert config.capture.backend == "synthetic"
    assert config.debug is True


def test_invalid_json_falls_back_to_defaults(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding='utf-8')
    assert load_config(str(path)).command_port == DEFAULT_COMMAND_PORT


def test_missing_file_falls_back_to_defaults(tmp_path):
    assert load_config(str(tmp_path / "absent.json")).video_port == DEFAULT_VIDEO_PORT


def test_equal_ports_rejected(monkeypatch):
    monkeypatch.setenv('COMMAND_PORT', '9000')
    monkeypatch.setenv('VIDEO_PORT', '9000')
    with pytest.raises(ValueError, match="must differ"):
        load_config()


def test_ephemeral_ports_allowed():
    config = ServerConfig(command_port=0, video_port=0)
    config.validate()


@pytest.mark.parametrize("mutate", [
    lambda c: setattr(c.stream, 'queue_capacity', 0),
    lambda c: setattr(c.capture, 'backend', 'v4l2'),
])
def test_validate_rejects(mutate):
    config = ServerConfig()
    mutate(config)
    with pytest.raises(ValueError):
        config.validate()


def test_save_then_load(tmp_path):
    config = ServerConfig(command_port=7100, video_port=7101)
    config.capture.jpeg_quality = 85
    config.stream.queue_capacity = 4
    path = tmp_path / "saved.json"

    assert save_config(config, str(path))
    loaded = load_config(str(path))
    assert loaded == config


def test_save_reports_failure(tmp_path):
    assert not save_config(ServerConfig(), str(tmp_path / "missing" / "dir" / "x.json"))
