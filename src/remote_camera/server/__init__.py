"""
Server module for the two TCP channels.

Components:
- ChannelServer: Single-client listener base
- CommandChannelServer: JSON request/response loop
- VideoChannelServer: Frame streaming loop
"""

from .base import ChannelServer
from .command_server import CommandChannelServer
from .video_server import VideoChannelServer

__all__ = ['ChannelServer', 'CommandChannelServer', 'VideoChannelServer']
