"""
Utility modules for the Remote Camera Server.

Includes:
- tui: Rich-based Terminal User Interface for server monitoring
"""

from .tui import (
    ServerTUI,
    QueueWriter,
    QueueLogHandler,
    LOG_FORMAT,
    get_process_memory_mb,
    get_process_cpu_percent,
)

__all__ = [
    'ServerTUI',
    'QueueWriter',
    'QueueLogHandler',
    'LOG_FORMAT',
    'get_process_memory_mb',
    'get_process_cpu_percent',
]
