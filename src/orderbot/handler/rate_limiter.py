"""Fixed-window message counter.

Counts messages per window and rejects once the window's budget is spent.
Windows are keyed per sender by default; with ``per_sender=False`` a single
process-wide counter is shared by everyone. The window rolls over lazily on
the next check after ``window`` seconds, which is equivalent to a recurring
reset timer without needing one running on the event loop.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from orderbot.constants import RATE_LIMIT_MAX_MESSAGES, RATE_LIMIT_WINDOW

_GLOBAL_KEY = "*"


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    def __init__(
        self,
        window: float = RATE_LIMIT_WINDOW,
        max_messages: int = RATE_LIMIT_MAX_MESSAGES,
        per_sender: bool = True,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window = window
        self.max_messages = max_messages
        self.per_sender = per_sender
        self.enabled = enabled
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(self, sender_id: str) -> bool:
        """Count one message for ``sender_id``; False once the budget is exceeded."""
        if not self.enabled:
            return True

        key = sender_id if self.per_sender else _GLOBAL_KEY
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window:
            window = _Window(started_at=now)
            self._windows[key] = window
            self._sweep(now)

        window.count += 1
        allowed = window.count <= self.max_messages
        if not allowed:
            logger.warning(
                "Rate limit exceeded for {} ({} msgs in {}s window)",
                key,
                window.count,
                self.window,
            )
        return allowed

    def reset(self, sender_id: str | None = None) -> None:
        """Forget one sender's window, or all windows."""
        if sender_id is None:
            self._windows.clear()
        else:
            self._windows.pop(sender_id if self.per_sender else _GLOBAL_KEY, None)

    def _sweep(self, now: float) -> None:
        expired = [
            k for k, w in self._windows.items() if now - w.started_at >= self.window
        ]
        for k in expired:
            del self._windows[k]
