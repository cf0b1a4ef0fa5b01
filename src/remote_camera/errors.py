"""
Error taxonomy for the remote camera server.

Every failure is contained to the channel or request that produced it:
- ProtocolError: framing is broken, the connection is dropped
- DecodeError: payload is not a valid command, an error response is sent
- DispatchError: command arguments are invalid, an error response is sent
- CaptureError: camera hardware failed, capture is considered stopped
"""


class RemoteCameraError(Exception):
    """Base class for all server errors."""


class ProtocolError(RemoteCameraError):
    """Malformed length prefix or truncated read on a channel."""


class DecodeError(RemoteCameraError):
    """Command payload is not valid UTF-8 JSON or lacks a command name.

    `fatal` is set when the body could not be parsed at all; the channel
    answers with an error response and then drops the connection.
    """

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal


class DispatchError(RemoteCameraError):
    """Command was understood but cannot be carried out.

    The message is sent back to the client verbatim.
    """


class CaptureError(RemoteCameraError):
    """Camera could not be opened or stopped delivering frames."""
