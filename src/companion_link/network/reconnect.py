"""
Reconnection Scheduler - exponential backoff with an optional attempt cap.

The attempt counter is incremented before each delay is computed and is
reset only when the link reaches the connected state. At most one
reconnection timer is pending at any time.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_ms: float, decay: float, max_ms: float) -> float:
    """Delay before retry number ``attempt`` (1-based).

    ``min(base * decay^(attempt-1), max)``
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return min(base_ms * decay ** (attempt - 1), max_ms)


class ReconnectionScheduler:
    """Owns the single pending reconnect timer and the attempt counter."""

    def __init__(
        self,
        scheduler: Scheduler,
        base_interval_ms: float,
        max_interval_ms: float,
        decay: float,
        max_attempts: int = 0,
    ):
        self._scheduler = scheduler
        self.base_interval_ms = base_interval_ms
        self.max_interval_ms = max_interval_ms
        self.decay = decay
        self.max_attempts = max_attempts
        self.attempts = 0
        self.last_delay_ms: Optional[float] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and self._timer.active

    @property
    def exhausted(self) -> bool:
        return self.max_attempts > 0 and self.attempts >= self.max_attempts

    def configure(
        self,
        base_interval_ms: float,
        max_interval_ms: float,
        decay: float,
        max_attempts: int,
    ) -> None:
        """Apply a new policy; the counter and any pending timer are kept."""
        self.base_interval_ms = base_interval_ms
        self.max_interval_ms = max_interval_ms
        self.decay = decay
        self.max_attempts = max_attempts

    def schedule(self, callback: Callable[[], Any]) -> Optional[float]:
        """Arm the reconnect timer.

        Returns:
            The delay in ms, or None if a timer was already pending or the
            attempt cap has been reached (nothing armed)
        """
        if self.pending or self.exhausted:
            return None

        self.attempts += 1
        delay = backoff_delay(self.attempts, self.base_interval_ms, self.decay, self.max_interval_ms)
        self.last_delay_ms = delay

        def fire() -> None:
            self._timer = None
            callback()

        self._timer = self._scheduler.call_later(delay, fire)
        logger.info(f"Reconnecting in {delay / 1000:.1f}s (attempt {self.attempts})")
        return delay

    def cancel(self) -> bool:
        """Cancel the pending timer. Returns True if one was pending."""
        if self._timer is None:
            return False
        was_pending = self._timer.active
        self._timer.cancel()
        self._timer = None
        return was_pending

    def reset(self) -> None:
        self.attempts = 0
        self.last_delay_ms = None
