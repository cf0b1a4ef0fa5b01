"""
Command channel: length-prefixed JSON request/response over TCP.

Requests are answered strictly in order, one response per request.
"""

import logging
import socket
from typing import Optional, Tuple, Dict, Any

from .base import ChannelServer
from ..config import StreamConfig
from ..errors import ProtocolError, DecodeError
from ..notifier import StatusNotifier
from ..protocol.dispatcher import CommandDispatcher
from ..protocol.framing import (
    Response,
    read_frame,
    write_frame,
    decode_command,
    encode_response,
)
from ..session import Session


logger = logging.getLogger(__name__)


class CommandChannelServer(ChannelServer):
    """
    Serves the request -> response loop for one command client at a time.

    The loop ends when the session stops, the peer closes, framing breaks
    (ProtocolError) or the body is not JSON at all. Well-framed requests
    that are merely invalid get an error response and the loop continues.
    """

    name = "Command"

    def __init__(
        self,
        host: str,
        port: int,
        session: Session,
        dispatcher: CommandDispatcher,
        config: StreamConfig,
        notifier: Optional[StatusNotifier] = None
    ):
        super().__init__(host, port, session, config, notifier)
        self.dispatcher = dispatcher
        self._commands_handled = 0

    def handle_client(self, conn: socket.socket, address: Tuple[str, int]) -> None:
        conn.settimeout(self.config.read_timeout)

        while self.session.is_running():
            try:
                payload = read_frame(conn, self.config.max_message_size, self.session.is_running)
            except ProtocolError as e:
                logger.warning("Command protocol error from %s: %s", address[0], e)
                return

            if payload is None:
                logger.info("Command client %s closed the connection", address[0])
                return

            fatal = False
            try:
                command = decode_command(payload)
            except DecodeError as e:
                logger.warning("Bad command from %s: %s", address[0], e)
                response = Response.failure(str(e))
                fatal = e.fatal
            else:
                logger.debug("Command from %s: %s %s", address[0], command.name, command.arguments)
                response = self.dispatcher.dispatch(command)

            write_frame(conn, encode_response(response))
            self._commands_handled += 1

            if fatal:
                return

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats['commands_handled'] = self._commands_handled
        return stats
