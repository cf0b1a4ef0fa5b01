"""
Bounded drop-oldest frame queue between capture and streaming.

Provides the single hand-off point of the frame pipeline with:
- Single producer (capture callback, any thread) using push()
- Single consumer (video channel worker) using pop_blocking()
- Eviction of the oldest frame when full, so the producer never blocks
- Bounded waits, so a stopped session always releases the consumer
- Automatic FPS calculation
"""

import threading
import time
from collections import deque
from typing import Optional, Dict, Any


class FrameQueue:
    """
    Thread-safe fixed-capacity FIFO of encoded frames.

    Design:
    - push() appends to the tail; when the queue already holds `capacity`
      frames the head is evicted first
    - pop_blocking() removes the head, waiting up to max_wait_ms for a push
    - close() wakes every waiter; pop_blocking() then returns None
    - reset() empties the queue and reopens it for a new session

    Usage:
        queue = FrameQueue(capacity=6)

        # Producer (capture callback)
        queue.push(jpeg_bytes)

        # Consumer (video channel)
        frame = queue.pop_blocking(100)
        if frame is not None:
            send_to_client(frame)
    """

    def __init__(self, capacity: int = 6, fps_window: float = 2.0):
        """
        Initialize frame queue.

        Args:
            capacity: Maximum frames held at once (K)
            fps_window: Time window for FPS calculation (seconds)
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._capacity = capacity
        self._frames: deque = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._closed = False

        # Statistics
        self._pushed = 0
        self._popped = 0
        self._dropped = 0
        self._fps_timestamps: deque = deque(maxlen=100)
        self._fps_window = fps_window

    def push(self, frame: bytes) -> bool:
        """
        Append a frame, evicting the oldest one if the queue is full.

        Never blocks on a full queue. Frames pushed after close() are
        discarded.

        Args:
            frame: Encoded image bytes

        Returns:
            bool: True if the frame was queued
        """
        with self._not_empty:
            if self._closed:
                return False

            if len(self._frames) > self._capacity - 1:
                self._frames.popleft()
                self._dropped += 1

            self._frames.append(frame)
            self._pushed += 1
            self._fps_timestamps.append(time.time())
            self._not_empty.notify()
        return True

    def pop_blocking(self, max_wait_ms: float) -> Optional[bytes]:
        """
        Remove and return the oldest frame.

        Waits up to max_wait_ms for a push or close() when empty.

        Args:
            max_wait_ms: Upper bound on the wait, in milliseconds

        Returns:
            bytes: The head frame, or None if still empty or closed
        """
        with self._not_empty:
            if not self._frames and not self._closed:
                self._not_empty.wait(timeout=max(0.0, max_wait_ms) / 1000.0)

            if self._closed or not self._frames:
                return None

            self._popped += 1
            return self._frames.popleft()

    def close(self) -> None:
        """Reject further frames, drop queued ones and release all waiters."""
        with self._not_empty:
            self._closed = True
            self._frames.clear()
            self._not_empty.notify_all()

    def reset(self) -> None:
        """Empty the queue and accept frames again."""
        with self._not_empty:
            self._frames.clear()
            self._closed = False
            self._fps_timestamps.clear()

    def snapshot(self) -> list:
        """Copy of the queued frames, oldest first."""
        with self._lock:
            return list(self._frames)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get queue statistics.

        Returns:
            dict: size, capacity, pushed, popped, dropped and fps
        """
        with self._lock:
            return {
                'size': len(self._frames),
                'capacity': self._capacity,
                'pushed': self._pushed,
                'popped': self._popped,
                'dropped': self._dropped,
                'fps': round(self._calculate_fps(time.time()), 1),
                'closed': self._closed,
            }

    def _calculate_fps(self, now: float) -> float:
        """Calculate push FPS over sliding window."""
        cutoff = now - self._fps_window
        while self._fps_timestamps and self._fps_timestamps[0] < cutoff:
            self._fps_timestamps.popleft()

        if len(self._fps_timestamps) < 2:
            return 0.0

        elapsed = self._fps_timestamps[-1] - self._fps_timestamps[0]
        if elapsed <= 0:
            return 0.0

        return (len(self._fps_timestamps) - 1) / elapsed

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        """Check if the queue has been closed."""
        return self._closed
