"""
Rich-based Terminal User Interface (TUI) for server monitoring.

Full-screen rich Live dashboard: status header with process CPU/memory,
session and channel panels, frame queue fill, endpoints and a log area.

The dashboard is also a StatusNotifier: the session manager reports status
and endpoint changes to it directly.

Usage:
    from remote_camera.utils.tui import ServerTUI

    tui = ServerTUI(title="Remote Camera Server")
    manager = SessionManager(config, capture, notifier=tui)
    tui.get_stats = manager.get_stats
    tui.start()
"""

import atexit
import io
import logging
import os
import queue
import sys
import threading
import time
from collections import deque
from typing import Callable, Dict, Any, Optional, Tuple

import psutil
from rich import box
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..notifier import StatusNotifier


LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


# ==============================================================================
# Resource Monitoring
# ==============================================================================

_process = psutil.Process(os.getpid())


def get_process_memory_mb() -> float:
    """Get current process memory usage in MB."""
    try:
        return _process.memory_info().rss / (1024 * 1024)
    except psutil.Error:
        return 0.0


def get_process_cpu_percent() -> float:
    """Get current process CPU usage percentage."""
    try:
        return _process.cpu_percent(interval=None)
    except psutil.Error:
        return 0.0


# ==============================================================================
# Log capture while the dashboard owns the terminal
# ==============================================================================

class QueueWriter(io.TextIOBase):
    """
    Line-buffered text stream that feeds the dashboard's log queue.

    Stands in for sys.stdout/sys.stderr while the dashboard runs. Lines
    that do not fit in the queue go to the original stream instead.
    """

    def __init__(self, message_queue: queue.Queue, fallback_stream):
        super().__init__()
        self._queue = message_queue
        self._fallback = fallback_stream
        self._pending = ""

    def write(self, s) -> int:
        text = str(s)
        if not text:
            return 0
        *lines, self._pending = (self._pending + text).split("\n")
        for line in lines:
            self._put(line.rstrip("\r"))
        return len(text)

    def flush(self) -> None:
        if self._pending:
            self._put(self._pending.rstrip("\r"))
            self._pending = ""
        try:
            self._fallback.flush()
        except (OSError, ValueError):
            pass

    def _put(self, line: str) -> None:
        if not line:
            return
        try:
            self._queue.put_nowait(line)
        except queue.Full:
            try:
                print(line, file=self._fallback, flush=True)
            except (OSError, ValueError):
                pass

    @property
    def encoding(self):
        return getattr(self._fallback, "encoding", "utf-8")

    def isatty(self) -> bool:
        return False


class QueueLogHandler(logging.Handler):
    """Sends formatted log records to the dashboard's log queue."""

    def __init__(self, message_queue: queue.Queue):
        super().__init__()
        self._queue = message_queue

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._queue.put_nowait(self.format(record))
        except queue.Full:
            # Dashboard is behind; losing a log line beats blocking a worker
            pass
        except Exception:
            self.handleError(record)


# ==============================================================================
# Server TUI
# ==============================================================================

class ServerTUI(StatusNotifier):
    """
    Terminal dashboard for the remote camera server.

    Renders SessionManager.get_stats() a few times per second and keeps
    the last status and endpoint it was notified about.
    """

    def __init__(
        self,
        title: str = "Remote Camera Server",
        get_stats: Optional[Callable[[], Dict[str, Any]]] = None,
        refresh_rate: int = 4,
        max_logs: int = 200
    ):
        """
        Initialize TUI.

        Args:
            title: Application title
            get_stats: Callback that returns SessionManager.get_stats()
            refresh_rate: Refresh rate in Hz
            max_logs: Maximum log lines to keep
        """
        self.title = title
        self.get_stats = get_stats or (lambda: {})
        self.refresh_rate = refresh_rate

        self._original_stdout = None
        self._original_stderr = None
        self._queue = queue.Queue(maxsize=2000)
        self._logs = deque(maxlen=max_logs)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._console = None
        self._log_handler = None
        self._last_cpu_check = 0
        self._cached_cpu = 0.0

        self._status = "Stopped"
        self._endpoint: Optional[Tuple[str, int, int]] = None

    # =========================================================================
    # StatusNotifier
    # =========================================================================

    def report_status(self, status: str) -> None:
        self._status = status
        self.log(f"[Status] {status}")

    def report_endpoint(self, ip: str, command_port: int, video_port: int) -> None:
        self._endpoint = (ip, command_port, video_port)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def log(self, message: str) -> None:
        """Add a line to the log panel."""
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            pass

    def start(self) -> bool:
        """
        Take over the terminal: redirect stdout/stderr and root logging into
        the log panel and start the render thread.

        Returns:
            bool: True once the dashboard is running
        """
        if self._thread is not None:
            return True

        self._original_stdout = sys.stdout
        self._original_stderr = sys.stderr
        self._console = Console(file=self._original_stdout, force_terminal=True)

        sys.stdout = QueueWriter(self._queue, self._original_stdout)
        sys.stderr = QueueWriter(self._queue, self._original_stderr)

        # Console handlers would draw over the Live screen
        self._log_handler = QueueLogHandler(self._queue)
        self._log_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if type(handler) is logging.StreamHandler:
                root_logger.removeHandler(handler)
        root_logger.addHandler(self._log_handler)

        self._thread = threading.Thread(target=self._run_loop, name="tui", daemon=True)
        self._thread.start()
        atexit.register(self._cleanup)
        return True

    def stop(self) -> None:
        """Stop rendering and give the terminal back."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._cleanup()

    def _cleanup(self) -> None:
        """Restore stdout/stderr and logging."""
        try:
            if self._log_handler:
                logging.getLogger().removeHandler(self._log_handler)
                self._log_handler = None
        finally:
            if self._original_stdout:
                sys.stdout = self._original_stdout
            if self._original_stderr:
                sys.stderr = self._original_stderr

    def _run_loop(self) -> None:
        interval = 1.0 / self.refresh_rate
        with Live(self._render(), console=self._console, screen=True, auto_refresh=False) as live:
            while not self._stop.is_set():
                self._collect_logs()
                live.update(self._render(), refresh=True)
                self._stop.wait(interval)

    def _collect_logs(self, limit: int = 200) -> None:
        """Move up to `limit` queued lines into the log panel, stamped."""
        for _ in range(limit):
            try:
                line = self._queue.get_nowait()
            except queue.Empty:
                return
            self._logs.append(f"{time.strftime('%H:%M:%S')} {line}")

    # =========================================================================
    # Rendering
    # =========================================================================

    @staticmethod
    def _indicator(status: str) -> Tuple[str, str]:
        """Symbol and style for a session or capture status string."""
        s = status.lower()
        if s in ('running', 'streaming', 'server running'):
            return ("●", "bold green")
        if s.startswith(('starting', 'opening', 'switching')):
            return ("◐", "yellow")
        if s.startswith('failed'):
            return ("✖", "bold red")
        if s in ('stopped', 'server stopped'):
            return ("○", "dim")
        return ("◌", "white")

    @staticmethod
    def _uptime(seconds: int) -> str:
        hours, rest = divmod(int(seconds), 3600)
        minutes, secs = divmod(rest, 60)
        if hours:
            return f"{hours}h {minutes:02d}m"
        return f"{minutes}m {secs:02d}s" if minutes else f"{secs}s"

    @staticmethod
    def _bar(value: float, limit: float, width: int = 16) -> str:
        if limit <= 0:
            return "·" * width
        cells = int(width * min(value / limit, 1.0))
        return "▮" * cells + "·" * (width - cells)

    @staticmethod
    def _grid(*ratios: int) -> Table:
        table = Table.grid(expand=True, padding=(0, 1))
        for ratio in ratios:
            table.add_column(ratio=ratio)
        return table

    def _resource_usage(self) -> Tuple[float, float]:
        # cpu_percent(interval=None) is only meaningful every couple of seconds
        now = time.time()
        if now - self._last_cpu_check > 2:
            self._cached_cpu = get_process_cpu_percent()
            self._last_cpu_check = now
        return self._cached_cpu, get_process_memory_mb()

    def _render_header(self, session: Dict[str, Any], uptime_seconds: int) -> Panel:
        symbol, style = self._indicator(self._status)
        cameras = session.get('cameras', [])
        active = session.get('active_camera', 0)
        label = cameras[active] if 0 <= active < len(cameras) else "no camera"

        title = Text()
        title.append(f" {self.title}", style="bold white")
        title.append("   ")
        title.append(f"{symbol} {self._status}", style=style)

        cpu, mem = self._resource_usage()
        metrics = Text()
        metrics.append(" camera ", style="dim")
        metrics.append(f"#{active} {label}", style="cyan")
        metrics.append("   up ", style="dim")
        metrics.append(self._uptime(uptime_seconds), style="green")
        metrics.append("   cpu ", style="dim")
        metrics.append(f"{cpu:.0f}%", style="yellow" if cpu > 50 else "green")
        metrics.append("   mem ", style="dim")
        metrics.append(f"{mem:.0f}MB", style="yellow" if mem > 300 else "green")
        metrics.append(f"   {time.strftime('%H:%M:%S')}", style="dim")

        grid = Table.grid(expand=True)
        grid.add_column()
        grid.add_row(title)
        grid.add_row(metrics)
        return Panel(grid, box=box.HEAVY, border_style="cyan")

    def _render_session(self, session: Dict[str, Any], capture: Dict[str, Any]) -> Panel:
        table = self._grid(1, 2)
        state = session.get('state', 'stopped')
        symbol, style = self._indicator(state)
        table.add_row(Text("state", style="dim"), Text(f"{symbol} {state}", style=style))

        cameras = session.get('cameras', [])
        active = session.get('active_camera', 0)
        for i, label in enumerate(cameras):
            marker = "▸" if i == active else " "
            table.add_row(
                Text(f"{marker} cam {i}", style="cyan" if i == active else "dim"),
                Text(label, style="white"),
            )
        if not cameras:
            table.add_row(Text("cameras", style="dim"), Text("none found", style="dim"))

        capture_status = str(capture.get('status', '-'))
        symbol, style = self._indicator(capture_status)
        table.add_row(Text("capture", style="dim"), Text(f"{symbol} {capture_status}", style=style))
        if capture.get('error'):
            table.add_row(Text("error", style="dim"), Text(str(capture['error']), style="red"))

        return Panel(table, title="Session", border_style="green", box=box.ROUNDED)

    def _render_channels(self, command: Dict[str, Any], video: Dict[str, Any]) -> Panel:
        table = self._grid(1, 2, 1)
        for name, stats, counter in (
            ("command", command, f"{command.get('commands_handled', 0):,} cmds"),
            ("video", video, f"{video.get('frames_sent', 0):,} frames"),
        ):
            client = stats.get('client')
            table.add_row(
                Text(f"{name} :{stats.get('port', '-')}", style="dim"),
                Text(client or "waiting", style="cyan" if client else "dim"),
                Text(counter, style="white"),
            )
        sent_mb = video.get('bytes_sent', 0) / (1024 * 1024)
        table.add_row(
            Text("clients", style="dim"),
            Text(f"{command.get('clients_served', 0)} cmd / {video.get('clients_served', 0)} video", style="white"),
            Text(f"{sent_mb:.1f}MB", style="white"),
        )
        return Panel(table, title="Channels", border_style="blue", box=box.ROUNDED)

    def _render_pipeline(self, queue_stats: Dict[str, Any], capture: Dict[str, Any]) -> Panel:
        table = self._grid(1, 3, 1)

        size, capacity = queue_stats.get('size', 0), queue_stats.get('capacity', 0)
        table.add_row(
            Text("queue", style="dim"),
            Text(self._bar(size, capacity), style="cyan"),
            Text(f"{size}/{capacity}", style="white"),
        )

        fps = queue_stats.get('fps', 0.0)
        target = capture.get('target_fps') or 30
        style = "green" if fps >= target * 0.5 else "yellow" if fps >= target * 0.25 else "red"
        table.add_row(
            Text("fps", style="dim"),
            Text(self._bar(fps, target), style=style),
            Text(f"{fps:.1f}/{target}", style="white"),
        )

        pushed, dropped = queue_stats.get('pushed', 0), queue_stats.get('dropped', 0)
        table.add_row(
            Text("dropped", style="dim"),
            Text(f"{dropped:,} of {pushed:,} captured", style="yellow" if dropped else "dim"),
            Text(""),
        )
        return Panel(table, title="Frame queue", border_style="yellow", box=box.ROUNDED)

    def _render_endpoints(self) -> Panel:
        table = self._grid(1, 4)
        if self._endpoint is None:
            table.add_row(Text("listening", style="dim"), Text("no", style="dim"))
        else:
            ip, command_port, video_port = self._endpoint
            table.add_row(Text("host", style="dim"), Text(ip, style="cyan"))
            table.add_row(Text("command", style="dim"), Text(f"{ip}:{command_port}", style="cyan"))
            table.add_row(Text("video", style="dim"), Text(f"{ip}:{video_port}", style="cyan"))
        return Panel(table, title="Endpoints", border_style="magenta", box=box.ROUNDED)

    def _render_logs(self, rows: int = 30) -> Panel:
        lines = list(self._logs)[-rows:]
        return Panel(
            Text("\n".join(lines) if lines else "No log output yet", style="white"),
            title=f"Log ({len(lines)})",
            border_style="bright_black",
            box=box.ROUNDED,
        )

    def _render(self) -> Layout:
        """Build the full dashboard from SessionManager.get_stats()."""
        stats = self.get_stats()
        session = stats.get('session', {})
        capture = stats.get('capture', {})

        layout = Layout()
        layout.split_column(
            Layout(self._render_header(session, stats.get('uptime_seconds', 0)), name="header", size=4),
            Layout(name="status", size=8),
            Layout(name="stream", size=6),
            Layout(self._render_logs(), name="logs", ratio=1),
            Layout(Text(" Ctrl+C to stop the server", style="dim"), name="footer", size=1),
        )
        layout["status"].split_row(
            Layout(self._render_session(session, capture)),
            Layout(self._render_channels(stats.get('command', {}), stats.get('video', {}))),
        )
        layout["stream"].split_row(
            Layout(self._render_pipeline(stats.get('queue', {}), capture)),
            Layout(self._render_endpoints()),
        )
        return layout


__all__ = [
    'ServerTUI',
    'QueueWriter',
    'QueueLogHandler',
    'LOG_FORMAT',
    'get_process_memory_mb',
    'get_process_cpu_percent',
]
