"""
One-way status notifications from the server core to a user interface.

The core calls these methods but never depends on them succeeding;
notifier failures are logged and swallowed at the call site.
"""

import logging
import socket

import psutil


logger = logging.getLogger(__name__)


class StatusNotifier:
    """Default notifier: does nothing. Subclasses override what they show."""

    def report_status(self, status: str) -> None:
        pass

    def report_endpoint(self, ip: str, command_port: int, video_port: int) -> None:
        pass


class LogNotifier(StatusNotifier):
    """Notifier that writes status changes to the log."""

    def report_status(self, status: str) -> None:
        logger.info("Status: %s", status)

    def report_endpoint(self, ip: str, command_port: int, video_port: int) -> None:
        logger.info("IP: %s  Command Port: %d  Video Port: %d", ip, command_port, video_port)


def safe_notify(method, *args) -> None:
    """Invoke a notifier method, logging instead of propagating failures."""
    try:
        method(*args)
    except Exception:
        logger.exception("Status notifier failed")


def get_local_ip() -> str:
    """
    First non-loopback IPv4 address of this host.

    Returns:
        str: Dotted address, or "Unknown" if none is configured
    """
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, RuntimeError) as e:
        logger.error("Error getting IP: %s", e)
        return "Unknown"

    for name, addresses in interfaces.items():
        for addr in addresses:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                return addr.address
    return "Unknown"
