"""
Remote Camera Server - dual-channel camera control over TCP

This package exposes a local camera as a network peripheral:
- Command channel: length-prefixed JSON request/response
- Video channel: length-prefixed JPEG frame stream
- Bounded drop-oldest frame queue between capture and streaming
- Session lifecycle that starts/stops both channels and capture together

Usage:
    python -m remote_camera [options]
"""

__version__ = "1.0.0"
__author__ = "Remote Camera Team"
