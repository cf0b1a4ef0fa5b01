"""
Video channel: length-prefixed encoded frames pushed to one client.

Frames are drained from the FrameQueue in FIFO order. At most one frame
is in flight at the network layer; backpressure is absorbed by the
queue's drop-oldest policy, never by the capture thread.
"""

import logging
import selectors
import socket
from typing import Optional, Tuple, Dict, Any

from .base import ChannelServer
from ..capture.frame_queue import FrameQueue
from ..config import StreamConfig
from ..notifier import StatusNotifier
from ..protocol.framing import write_frame
from ..session import Session


logger = logging.getLogger(__name__)


class VideoChannelServer(ChannelServer):
    """Streams queued frames to one video client at a time."""

    name = "Video"

    def __init__(
        self,
        host: str,
        port: int,
        session: Session,
        frame_queue: FrameQueue,
        config: StreamConfig,
        notifier: Optional[StatusNotifier] = None
    ):
        super().__init__(host, port, session, config, notifier)
        self.frame_queue = frame_queue
        self._frames_sent = 0
        self._bytes_sent = 0

    def handle_client(self, conn: socket.socket, address: Tuple[str, int]) -> None:
        # Writes block until sent; shutdown() unblocks them on stop
        conn.settimeout(None)

        with selectors.DefaultSelector() as selector:
            selector.register(conn, selectors.EVENT_READ)

            while self.session.is_running():
                frame = self.frame_queue.pop_blocking(self.config.pop_wait_ms)
                if frame is None:
                    if self._peer_closed(conn, selector):
                        logger.info("Video client %s closed the connection", address[0])
                        return
                    continue

                write_frame(conn, frame)
                self._frames_sent += 1
                self._bytes_sent += len(frame)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats.update({
            'frames_sent': self._frames_sent,
            'bytes_sent': self._bytes_sent,
        })
        return stats

    @staticmethod
    def _peer_closed(conn: socket.socket, selector: selectors.BaseSelector) -> bool:
        """Check for EOF while idle. Anything the client sends is discarded."""
        if not selector.select(timeout=0):
            return False
        return not conn.recv(4096)
