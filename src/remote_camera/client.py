"""
Client for the remote camera server.

Connects to both channels and wraps the JSON commands:
    with RemoteCameraClient("192.168.1.20") as client:
        print(client.get_cameras())
        client.switch_camera(1)
        for jpeg in client.frames():
            ...
"""

import logging
import socket
from typing import Optional, Dict, Any, List, Iterator

from .config import DEFAULT_COMMAND_PORT, DEFAULT_VIDEO_PORT
from .errors import DispatchError, ProtocolError
from .protocol.framing import (
    MAX_MESSAGE_SIZE,
    read_frame,
    write_frame,
    encode_command,
    decode_response,
)


logger = logging.getLogger(__name__)

# Encoded frames can be much larger than command payloads
MAX_FRAME_SIZE = 32 * 1024 * 1024


class RemoteCameraClient:
    """
    Command and video channel client.

    Either channel can be used alone: send_command() connects the command
    socket on demand and read_frame() connects the video socket on demand.
    """

    def __init__(
        self,
        host: str,
        command_port: int = DEFAULT_COMMAND_PORT,
        video_port: int = DEFAULT_VIDEO_PORT,
        timeout: Optional[float] = 5.0
    ):
        self.host = host
        self.command_port = command_port
        self.video_port = video_port
        self.timeout = timeout

        self._command_sock: Optional[socket.socket] = None
        self._video_sock: Optional[socket.socket] = None

    def connect(self, video: bool = True) -> 'RemoteCameraClient':
        """Open the command channel, and the video channel unless video=False."""
        self._connect_command()
        if video:
            self._connect_video()
        return self

    # =========================================================================
    # Command channel
    # =========================================================================

    def send_command(self, name: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one command and wait for its response.

        Returns:
            dict: Decoded response object
        """
        sock = self._connect_command()
        write_frame(sock, encode_command(name, data))
        payload = read_frame(sock, MAX_MESSAGE_SIZE)
        if payload is None:
            raise ProtocolError("Server closed the command channel")
        return decode_response(payload)

    def get_cameras(self) -> List[str]:
        """Camera labels in server enumeration order."""
        response = self.send_command('get_cameras')
        if not response.get('success'):
            raise DispatchError(response.get('error', 'get_cameras failed'))
        return list(response.get('cameras', []))

    def switch_camera(self, camera_id: int) -> Dict[str, Any]:
        """Request a camera switch. Success means requested, not completed."""
        return self.send_command('switch_camera', {'camera_id': camera_id})

    def disconnect(self) -> None:
        """Announce the disconnect, then close both channels."""
        if self._command_sock is not None:
            try:
                self.send_command('disconnect')
            except (OSError, ProtocolError) as e:
                logger.debug("Disconnect command failed: %s", e)
        self.close()

    # =========================================================================
    # Video channel
    # =========================================================================

    def read_frame(self) -> Optional[bytes]:
        """
        Block for the next encoded frame.

        Returns:
            bytes: Frame payload, or None if the server closed the channel
        """
        sock = self._connect_video()
        return read_frame(sock, MAX_FRAME_SIZE)

    def frames(self) -> Iterator[bytes]:
        """Yield frames until the server closes the video channel."""
        while True:
            frame = self.read_frame()
            if frame is None:
                return
            yield frame

    # =========================================================================
    # Connection handling
    # =========================================================================

    def close(self) -> None:
        for sock in (self._command_sock, self._video_sock):
            if sock is not None:
                try:
                    sock.close()
                except OSError:
                    pass
        self._command_sock = None
        self._video_sock = None

    def __enter__(self) -> 'RemoteCameraClient':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def _connect_command(self) -> socket.socket:
        if self._command_sock is None:
            self._command_sock = socket.create_connection(
                (self.host, self.command_port), timeout=self.timeout)
            logger.info("Connected to command channel %s:%d", self.host, self.command_port)
        return self._command_sock

    def _connect_video(self) -> socket.socket:
        if self._video_sock is None:
            self._video_sock = socket.create_connection(
                (self.host, self.video_port), timeout=self.timeout)
            logger.info("Connected to video channel %s:%d", self.host, self.video_port)
        return self._video_sock
