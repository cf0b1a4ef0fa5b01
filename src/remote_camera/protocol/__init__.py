"""
Protocol module for the command and video channels.

Components:
- framing: Length-prefixed messages, Command/Response encoding
- dispatcher: Command dispatch table
"""

from .framing import (
    Command,
    Response,
    pack_frame,
    read_frame,
    write_frame,
    encode_command,
    decode_command,
    encode_response,
    decode_response,
)
from .dispatcher import CommandDispatcher

__all__ = [
    'Command',
    'Response',
    'pack_frame',
    'read_frame',
    'write_frame',
    'encode_command',
    'decode_command',
    'encode_response',
    'decode_response',
    'CommandDispatcher',
]
