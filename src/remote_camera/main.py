"""
Remote Camera Server - camera as a network peripheral

Entry point for the server that combines:
- Camera capture (OpenCV devices or a synthetic test card)
- Command channel (length-prefixed JSON over TCP)
- Video channel (length-prefixed JPEG frames over TCP)
- Optional terminal UI dashboard

Usage:
    python -m remote_camera [options]

Options:
    --config PATH         Path to config file (default: remote_camera.json)
    --host HOST           Bind address (default: 0.0.0.0)
    --command-port PORT   Command channel port (default: 9999)
    --video-port PORT     Video channel port (default: 9998)
    --camera INDEX        Camera opened at start (default: 0)
    --synthetic           Use the generated test card instead of a device
    --tui                 Enable terminal UI dashboard
    --debug               Enable debug logging
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from .capture.controller import CaptureController
from .capture.opencv_capture import OpenCVCaptureController
from .capture.synthetic import SyntheticCaptureController
from .config import load_config, ServerConfig
from .manager import SessionManager
from .notifier import LogNotifier, get_local_ip
from .utils.tui import ServerTUI, LOG_FORMAT


logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure root logging with the server's log format."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )


def create_capture(config: ServerConfig) -> CaptureController:
    """Build the capture backend selected by config.capture.backend."""
    if config.capture.backend == "synthetic":
        return SyntheticCaptureController(config.capture)
    return OpenCVCaptureController(config.capture)


# ==============================================================================
# Server Runner
# ==============================================================================

def run_server(config: ServerConfig) -> int:
    """
    Run the remote camera server until SIGINT/SIGTERM.

    Args:
        config: Server configuration

    Returns:
        int: Process exit code
    """
    capture = create_capture(config)

    tui: Optional[ServerTUI] = None
    if config.enable_tui:
        tui = ServerTUI(title=f"Remote Camera Server ({config.capture.backend})")

    manager = SessionManager(config, capture, notifier=tui or LogNotifier())
    if tui:
        tui.get_stats = manager.get_stats
        tui.start()

    # Setup shutdown handler
    shutdown_requested = threading.Event()

    def shutdown_handler(signum, frame):
        print("\n[Server] Shutting down...")
        shutdown_requested.set()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    if not tui:
        print("=" * 60)
        print("Remote Camera Server - Dual Channel")
        print("=" * 60)
        print()
        print(f"[Capture] Backend: {config.capture.backend.upper()}")
        print(f"[Capture] Default camera: {config.capture.default_camera}")
        print(f"[Capture] Target FPS: {config.capture.target_fps}")
        print(f"[Capture] JPEG Quality: {config.capture.jpeg_quality}")
        print(f"[Stream] Queue capacity: {config.stream.queue_capacity}")

    if not manager.start():
        print("[Server] Failed to start")
        if tui:
            tui.stop()
        return 1

    if not tui:
        ip = get_local_ip()
        print()
        print("Server Information:")
        print(f"  - IP: {ip}")
        print(f"  - Command Port: {manager.command_port}")
        print(f"  - Video Port: {manager.video_port}")
        print()
        print("Press Ctrl+C to stop")
        print("=" * 60)

    try:
        while not shutdown_requested.wait(0.5):
            pass
    finally:
        manager.stop()
        if tui:
            tui.stop()

    return 0


# ==============================================================================
# CLI Entry Point
# ==============================================================================

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Remote Camera Server - camera control and streaming over TCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m remote_camera
  python -m remote_camera --synthetic --tui
  python -m remote_camera --command-port 7000 --video-port 7001
  python -m remote_camera --config my_config.json --camera 1
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to configuration file (JSON)'
    )

    parser.add_argument(
        '--host', '-H',
        type=str,
        default=None,
        help='Bind address (default: 0.0.0.0)'
    )

    parser.add_argument(
        '--command-port',
        type=int,
        default=None,
        help='Command channel port (default: 9999)'
    )

    parser.add_argument(
        '--video-port',
        type=int,
        default=None,
        help='Video channel port (default: 9998)'
    )

    parser.add_argument(
        '--camera',
        type=int,
        default=None,
        help='Camera index opened at start (default: 0)'
    )

    parser.add_argument(
        '--synthetic',
        action='store_true',
        help='Stream a generated test card instead of a camera device'
    )

    parser.add_argument(
        '--fps',
        type=int,
        default=None,
        help='Target FPS (default: 15)'
    )

    parser.add_argument(
        '--quality', '-q',
        type=int,
        default=None,
        help='JPEG quality (30-95, default: 70)'
    )

    parser.add_argument(
        '--queue-size',
        type=int,
        default=None,
        help='Frame queue capacity (default: 6)'
    )

    parser.add_argument(
        '--tui',
        action='store_true',
        help='Enable terminal UI dashboard'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def apply_args(config: ServerConfig, args) -> ServerConfig:
    """Apply CLI overrides to a loaded configuration."""
    if args.host is not None:
        config.host = args.host
    if args.command_port is not None:
        config.command_port = args.command_port
    if args.video_port is not None:
        config.video_port = args.video_port
    if args.camera is not None:
        config.capture.default_camera = args.camera
    if args.synthetic:
        config.capture.backend = "synthetic"
    if args.fps is not None:
        config.capture.target_fps = max(1, min(60, args.fps))
    if args.quality is not None:
        config.capture.jpeg_quality = max(30, min(95, args.quality))
    if args.queue_size is not None:
        config.stream.queue_capacity = args.queue_size
    if args.tui:
        config.enable_tui = True
    if args.debug:
        config.debug = True

    config.validate()
    return config


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = apply_args(load_config(args.config), args)
    except ValueError as e:
        print(f"[Config] {e}", file=sys.stderr)
        return 2

    setup_logging(config.debug)
    return run_server(config)


if __name__ == '__main__':
    sys.exit(main())
