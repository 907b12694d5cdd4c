"""
Keepalive Monitor - ping/pong liveness probing.

Active only while the link is connected. Every ping interval a ping is
sent through the manager's send path and a pong timer is armed. A pong
cancels that timer and yields one latency sample; a timer that fires first
reports a liveness failure exactly once for that ping.

Pings and pongs correlate by timing, not by message id. While a ping is
still unanswered the next cycle sends nothing, so one outstanding ping
never has its timeout silently replaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


@dataclass
class KeepaliveConfig:
    """Configuration for KeepaliveMonitor."""

    ping_interval_ms: float = 30000.0
    pong_timeout_ms: float = 5000.0


class KeepaliveMonitor:
    """Issues periodic pings and detects stalled connections."""

    def __init__(
        self,
        scheduler: Scheduler,
        send_ping: Callable[[int], Any],
        on_pong_timeout: Callable[[], None],
        on_latency: Optional[Callable[[float], None]] = None,
        config: Optional[KeepaliveConfig] = None,
    ):
        """
        Initialize the KeepaliveMonitor.

        Args:
            scheduler: Clock and timer source
            send_ping: Sends a ping carrying the given epoch-ms timestamp
            on_pong_timeout: Called when a ping goes unanswered
            on_latency: Called with each measured round-trip latency (ms)
            config: Ping cadence and pong timeout
        """
        self._scheduler = scheduler
        self._send_ping = send_ping
        self._on_pong_timeout = on_pong_timeout
        self._on_latency = on_latency
        self.config = config or KeepaliveConfig()

        self._ping_timer: Optional[TimerHandle] = None
        self._pong_timer: Optional[TimerHandle] = None
        self._running = False

        self.last_ping_time: Optional[float] = None
        self.last_latency: Optional[float] = None

        self._stats = {
            "pings_sent": 0,
            "pongs_received": 0,
            "pong_timeouts": 0,
            "pings_skipped": 0,
        }

    @property
    def running(self) -> bool:
        return self._running

    @property
    def awaiting_pong(self) -> bool:
        return self._pong_timer is not None and self._pong_timer.active

    def get_stats(self) -> dict:
        return dict(self._stats)

    def start(self) -> None:
        """Begin the ping cadence. Restarting resets any outstanding probe."""
        self.stop()
        self._running = True
        self._arm_ping_timer()
        logger.debug(f"Keepalive started (interval={self.config.ping_interval_ms}ms)")

    def stop(self) -> None:
        """Tear down every keepalive timer immediately."""
        self._running = False
        if self._ping_timer is not None:
            self._ping_timer.cancel()
            self._ping_timer = None
        self._clear_pong_timer()
        self.last_ping_time = None

    def ping(self) -> bool:
        """Send one probe now.

        Returns:
            False if not running or a ping is already unanswered
        """
        if not self._running:
            return False
        if self.awaiting_pong:
            self._stats["pings_skipped"] += 1
            logger.debug("Previous ping still unanswered, skipping probe")
            return False

        self.last_ping_time = self._scheduler.now()
        self._stats["pings_sent"] += 1
        self._pong_timer = self._scheduler.call_later(
            self.config.pong_timeout_ms, self._handle_pong_timeout
        )
        self._send_ping(self._scheduler.time_ms())
        return True

    def handle_pong(self) -> Optional[float]:
        """Record a pong.

        Returns:
            Measured latency in ms, or None when no ping was outstanding
        """
        if not self.awaiting_pong or self.last_ping_time is None:
            logger.debug("Pong received with no ping outstanding, ignoring")
            return None

        self._clear_pong_timer()
        latency = self._scheduler.now() - self.last_ping_time
        self.last_latency = latency
        self._stats["pongs_received"] += 1
        logger.debug(f"Pong received, latency: {latency:.0f}ms")

        if self._on_latency:
            self._on_latency(latency)
        return latency

    def _arm_ping_timer(self) -> None:
        self._ping_timer = self._scheduler.call_later(
            self.config.ping_interval_ms, self._handle_ping_timer
        )

    def _handle_ping_timer(self) -> None:
        self._ping_timer = None
        if not self._running:
            return
        # Re-arm first: the ping may synchronously tear us down
        self._arm_ping_timer()
        self.ping()

    def _handle_pong_timeout(self) -> None:
        self._pong_timer = None
        if not self._running:
            return
        self._stats["pong_timeouts"] += 1
        logger.error("Pong timeout - server not responding")
        self._on_pong_timeout()

    def _clear_pong_timer(self) -> None:
        if self._pong_timer is not None:
            self._pong_timer.cancel()
            self._pong_timer = None
