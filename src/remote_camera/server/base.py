"""
Shared listener plumbing for the command and video channels.

Each channel serves exactly one client at a time. After a client leaves
(or fails), the worker goes back to accept() for the next one until the
session stops. Accepts and reads use bounded timeouts so a stopped
session always releases the worker.
"""

import logging
import socket
import threading
import time
from typing import Optional, Tuple, Dict, Any

from ..config import StreamConfig
from ..notifier import StatusNotifier, safe_notify
from ..session import Session


logger = logging.getLogger(__name__)


class ChannelServer:
    """
    Single-client TCP listener bound to one port.

    Subclasses implement handle_client(); the base class owns the
    listening socket, the live client socket and their cleanup.

    Usage:
        server = CommandChannelServer(host, port, session, dispatcher, config)
        server.bind()
        threading.Thread(target=server.run, daemon=True).start()

        # Later...
        server.shutdown()
    """

    name = "Channel"

    def __init__(
        self,
        host: str,
        port: int,
        session: Session,
        config: StreamConfig,
        notifier: Optional[StatusNotifier] = None
    ):
        self.host = host
        self.port = port
        self.session = session
        self.config = config
        self.notifier = notifier or StatusNotifier()

        self._lock = threading.Lock()
        self._listener: Optional[socket.socket] = None
        self._client: Optional[socket.socket] = None
        self._client_address: Optional[Tuple[str, int]] = None
        self._clients_served = 0

    def bind(self) -> None:
        """
        Create, bind and listen on the channel port.

        Binding an already bound server is a no-op.

        Raises:
            OSError: Port unavailable
        """
        with self._lock:
            if self._listener is not None:
                return

            listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                listener.bind((self.host, self.port))
                listener.listen(1)
            except OSError:
                listener.close()
                raise
            listener.settimeout(self.config.accept_timeout)
            self._listener = listener

        logger.info("%s server listening on %s:%d", self.name, *self.address)

    def run(self) -> None:
        """Accept and serve clients one at a time until the session stops."""
        self.bind()
        try:
            while self.session.is_running():
                with self._lock:
                    listener = self._listener
                if listener is None:
                    break

                try:
                    conn, address = listener.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    # Listener closed by shutdown() unless still running
                    if self.session.is_running() and self._listener is not None:
                        logger.warning("%s accept failed: %s", self.name, e)
                        time.sleep(self.config.accept_timeout)
                    continue

                self._serve(conn, address)
        finally:
            self._close_listener()
            logger.info("%s server stopped", self.name)

    def shutdown(self) -> None:
        """
        Close the listener and the live client, if any.

        Safe to call from any thread, repeatedly, or before bind().
        """
        self._close_listener()
        with self._lock:
            client = self._client
        if client is not None:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def handle_client(self, conn: socket.socket, address: Tuple[str, int]) -> None:
        """Serve one connected client. Returning ends the connection."""
        raise NotImplementedError

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured pair before bind()."""
        with self._lock:
            if self._listener is not None:
                try:
                    return self._listener.getsockname()[:2]
                except OSError:
                    pass
        return self.host, self.port

    @property
    def client_address(self) -> Optional[Tuple[str, int]]:
        with self._lock:
            return self._client_address

    def get_stats(self) -> Dict[str, Any]:
        """Get channel statistics."""
        client = self.client_address
        return {
            'port': self.address[1],
            'client': f"{client[0]}:{client[1]}" if client else None,
            'clients_served': self._clients_served,
        }

    def _serve(self, conn: socket.socket, address: Tuple[str, int]) -> None:
        with self._lock:
            self._client = conn
            self._client_address = address
            self._clients_served += 1

        logger.info("%s client connected: %s:%d", self.name, address[0], address[1])
        safe_notify(self.notifier.report_status, f"{self.name} client connected: {address[0]}")

        try:
            conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.handle_client(conn, address)
        except OSError as e:
            logger.info("%s client %s:%d disconnected: %s", self.name, address[0], address[1], e)
        except Exception:
            logger.exception("%s client %s:%d failed", self.name, address[0], address[1])
        finally:
            with self._lock:
                self._client = None
                self._client_address = None
            try:
                conn.close()
            except OSError:
                pass
            logger.info("%s client %s:%d closed", self.name, address[0], address[1])
            safe_notify(self.notifier.report_status, f"{self.name} client disconnected")

    def _close_listener(self) -> None:
        with self._lock:
            listener = self._listener
            self._listener = None
        if listener is not None:
            try:
                listener.close()
            except OSError:
                pass
