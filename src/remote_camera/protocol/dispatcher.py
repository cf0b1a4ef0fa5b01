"""
Command dispatch table for the command channel.

Maps a parsed Command to a Response. Every failure is turned into a
`success: false` response here; nothing raised by a handler reaches the
channel server.
"""

import logging
from typing import Callable, Dict, Optional, Any

from .framing import Command, Response
from ..capture.controller import CaptureController
from ..errors import DispatchError
from ..notifier import StatusNotifier, safe_notify
from ..session import Session


logger = logging.getLogger(__name__)

Handler = Callable[[Optional[Dict[str, Any]]], Response]


class CommandDispatcher:
    """
    Dispatch table keyed by command name.

    Commands:
    - get_cameras: camera labels in enumeration order
    - switch_camera {camera_id}: asynchronous camera switch request
    - disconnect: acknowledges that the client is about to close
    """

    def __init__(
        self,
        session: Session,
        capture: CaptureController,
        notifier: Optional[StatusNotifier] = None
    ):
        self.session = session
        self.capture = capture
        self.notifier = notifier or StatusNotifier()

        self._handlers: Dict[str, Handler] = {
            'get_cameras': self._handle_get_cameras,
            'switch_camera': self._handle_switch_camera,
            'disconnect': self._handle_disconnect,
        }

    def dispatch(self, command: Command) -> Response:
        handler = self._handlers.get(command.name)
        if handler is None:
            logger.info("Unknown command: %s", command.name)
            return Response.failure("Unknown command")

        try:
            return handler(command.arguments)
        except DispatchError as e:
            logger.info("Command %s rejected: %s", command.name, e)
            return Response.failure(str(e))
        except Exception as e:
            logger.exception("Command %s failed", command.name)
            return Response.failure(f"Internal error: {e}")

    def switch_camera(self, index: int) -> bool:
        """
        Request a switch to camera `index`.

        Selecting the active camera again is a no-op: capture is not
        restarted. The hardware switch completes asynchronously and its
        outcome is not reported back.

        Returns:
            bool: True if a capture switch was requested

        Raises:
            DispatchError: Index outside the enumerated cameras
        """
        if not self.session.select_camera(index):
            return False

        safe_notify(self.notifier.report_status, f"Switching to camera {index}")
        self.capture.switch_to(index)
        return True

    # =========================================================================
    # Handlers
    # =========================================================================

    def _handle_get_cameras(self, arguments) -> Response:
        cameras = [c.facing_label for c in self.session.available_cameras]
        return Response.ok(cameras=cameras)

    def _handle_switch_camera(self, arguments) -> Response:
        if not arguments or 'camera_id' not in arguments:
            raise DispatchError("Missing camera_id")

        camera_id = arguments['camera_id']
        # bool is an int subclass; true/false are not camera ids
        if isinstance(camera_id, bool) or not isinstance(camera_id, int):
            raise DispatchError("Invalid camera ID")

        self.switch_camera(camera_id)
        return Response.ok()

    def _handle_disconnect(self, arguments) -> Response:
        logger.info("Client requested disconnect")
        return Response.ok()
