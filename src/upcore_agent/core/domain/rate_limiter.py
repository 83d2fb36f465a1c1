"""
Fixed-window rate limiting.

State lives in memory only and resets on restart. Two independent limiters
exist at runtime: login attempts (keyed by client host) and per-session
messages (window stored on the SessionState).
"""

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class RateWindow:
    """Counter for one key: attempts seen since ``window_start``."""

    count: int = 0
    window_start: float = 0.0


class FixedWindowRateLimiter:
    """
    Fixed-window counter.

    On each attempt: if the window has elapsed, reset count and start; then
    increment; reject when the count exceeds ``limit``.

    Args:
        limit: Attempts allowed per window
        window_seconds: Window length
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, RateWindow] = {}

    def new_window(self) -> RateWindow:
        return RateWindow(count=0, window_start=self.clock())

    def allow(self, window: RateWindow) -> bool:
        """Record one attempt against ``window`` and report whether it passes."""
        now = self.clock()
        if now - window.window_start > self.window_seconds:
            window.count = 0
            window.window_start = now
        window.count += 1
        return window.count <= self.limit

    def hit(self, key: str) -> bool:
        """Keyed variant of ``allow`` for callers without their own state."""
        window = self._windows.get(key)
        if window is None:
            self._prune()
            window = self._windows[key] = self.new_window()
        return self.allow(window)

    def _prune(self) -> None:
        """Drop windows that have elapsed; they would reset on the next hit."""
        now = self.clock()
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.window_start > self.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)

    def forget(self, key: str) -> None:
        self._windows.pop(key, None)
