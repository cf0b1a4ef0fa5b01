"""
Length-prefixed wire framing shared by both channels.

Every message is a 4-byte big-endian unsigned length N followed by
exactly N payload bytes. Command and response payloads are UTF-8 JSON;
video payloads are raw encoded images.
"""

import json
import socket
import struct
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Callable

from ..errors import ProtocolError, DecodeError


HEADER = struct.Struct('!I')
MAX_MESSAGE_SIZE = 1024 * 1024
_RECV_CHUNK = 64 * 1024


@dataclass
class Command:
    """One parsed request from the command channel."""
    name: str
    arguments: Optional[Dict[str, Any]] = None


@dataclass
class Response:
    """Result of one command, serialized back immediately."""
    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def ok(cls, **payload) -> 'Response':
        return cls(success=True, payload=payload)

    @classmethod
    def failure(cls, message: str) -> 'Response':
        return cls(success=False, error=message)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape: success, command-specific fields, error on failure."""
        data: Dict[str, Any] = {'success': self.success}
        data.update(self.payload)
        if not self.success:
            data['error'] = self.error or "Unknown error"
        return data


def pack_frame(payload: bytes) -> bytes:
    """Prefix payload with its 4-byte big-endian length."""
    if len(payload) > 0xFFFFFFFF:
        raise ProtocolError(f"Payload too large to frame: {len(payload)} bytes")
    return HEADER.pack(len(payload)) + payload


def recv_exact(
    sock: socket.socket,
    size: int,
    is_running: Optional[Callable[[], bool]] = None
) -> bytes:
    """
    Read up to `size` bytes, stopping early on EOF or stop.

    With `is_running`, socket timeouts are a chance to re-check it and
    partial data is kept across them; without it, timeouts propagate.

    Returns:
        bytes: Fewer than `size` bytes only if the peer closed or the
        caller stopped running
    """
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = sock.recv(min(size - len(buf), _RECV_CHUNK))
        except socket.timeout:
            if is_running is None:
                raise
            if not is_running():
                break
            continue
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


def read_frame(
    sock: socket.socket,
    max_size: int = MAX_MESSAGE_SIZE,
    is_running: Optional[Callable[[], bool]] = None
) -> Optional[bytes]:
    """
    Read one length-prefixed message.

    Returns:
        bytes: The payload, or None if the peer closed (or the caller
        stopped) cleanly between messages

    Raises:
        ProtocolError: Truncated prefix or payload, or length above max_size
    """
    header = recv_exact(sock, HEADER.size, is_running)
    if not header:
        return None
    if len(header) < HEADER.size:
        raise ProtocolError(f"Truncated length prefix ({len(header)} bytes)")

    (length,) = HEADER.unpack(header)
    if length > max_size:
        raise ProtocolError(f"Message length {length} exceeds limit {max_size}")

    payload = recv_exact(sock, length, is_running)
    if len(payload) < length:
        raise ProtocolError(f"Connection closed after {len(payload)} of {length} bytes")
    return payload


def write_frame(sock: socket.socket, payload: bytes) -> None:
    """Send one length-prefixed message in a single write."""
    sock.sendall(pack_frame(payload))


def encode_command(name: str, data: Optional[Dict[str, Any]] = None) -> bytes:
    return json.dumps({'command': name, 'data': data}, ensure_ascii=False).encode('utf-8')


def decode_command(payload: bytes) -> Command:
    """
    Parse a command payload.

    Raises:
        DecodeError: Body is not UTF-8 JSON (fatal to the connection), or
        the object lacks a usable command name or data (recoverable)
    """
    try:
        message = json.loads(payload.decode('utf-8'))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid UTF-8: {e}", fatal=True) from e
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}", fatal=True) from e
    except RecursionError as e:
        raise DecodeError("Invalid JSON: nested too deeply", fatal=True) from e

    if not isinstance(message, dict):
        raise DecodeError("Command must be a JSON object")

    name = message.get('command')
    if not isinstance(name, str) or not name:
        raise DecodeError("Missing command field")

    data = message.get('data')
    if data is not None and not isinstance(data, dict):
        raise DecodeError("Command data must be an object")

    return Command(name=name, arguments=data)


def encode_response(response: Response) -> bytes:
    # Lone surrogates cannot be UTF-8 encoded; they go out as "?"
    return json.dumps(response.to_dict(), ensure_ascii=False).encode('utf-8', 'replace')


def decode_response(payload: bytes) -> Dict[str, Any]:
    """Parse a response payload on the client side."""
    try:
        message = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Invalid response: {e}") from e
    if not isinstance(message, dict):
        raise DecodeError("Response must be a JSON object")
    return message
