"""
Stats Collector - counters and smoothed latency for the link.

Counters only ever grow. Uptime is derived from the most recent
connection instant and reads zero while disconnected.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

# EWMA weights: previous average, new sample
LATENCY_SMOOTHING = 0.8
SAMPLE_WEIGHT = 0.2


@dataclass(frozen=True)
class LinkStats:
    """Point-in-time copy of the link statistics."""

    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    messages_dropped: int = 0
    reconnect_count: int = 0
    average_latency: float = 0.0
    latency_samples: int = 0
    uptime: int = 0  # seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StatsCollector:
    """Mutable statistics owned by one ConnectionManager."""

    def __init__(self) -> None:
        self.messages_sent = 0
        self.messages_received = 0
        self.bytes_sent = 0
        self.bytes_received = 0
        self.messages_dropped = 0
        self.reconnect_count = 0
        self.average_latency = 0.0
        self.latency_samples = 0
        self._connected_since: Optional[float] = None

    def record_sent(self, nbytes: int) -> None:
        self.messages_sent += 1
        self.bytes_sent += nbytes

    def record_received(self, nbytes: int) -> None:
        self.messages_received += 1
        self.bytes_received += nbytes

    def record_dropped(self, count: int = 1) -> None:
        self.messages_dropped += count

    def record_reconnect(self) -> None:
        self.reconnect_count += 1

    def record_latency(self, latency_ms: float) -> float:
        """Fold one pong latency into the EWMA and return the new average.

        The first sample seeds the average directly.
        """
        if self.latency_samples == 0:
            self.average_latency = float(latency_ms)
        else:
            self.average_latency = (
                self.average_latency * LATENCY_SMOOTHING
                + latency_ms * SAMPLE_WEIGHT
            )
        self.latency_samples += 1
        return self.average_latency

    def mark_connected(self, now_ms: float) -> None:
        self._connected_since = now_ms

    def mark_disconnected(self) -> None:
        self._connected_since = None

    def uptime(self, now_ms: float) -> int:
        """Whole seconds since the link last came up, zero when down."""
        if self._connected_since is None:
            return 0
        return max(0, int((now_ms - self._connected_since) // 1000))

    def snapshot(self, now_ms: float) -> LinkStats:
        return LinkStats(
            messages_sent=self.messages_sent,
            messages_received=self.messages_received,
            bytes_sent=self.bytes_sent,
            bytes_received=self.bytes_received,
            messages_dropped=self.messages_dropped,
            reconnect_count=self.reconnect_count,
            average_latency=self.average_latency,
            latency_samples=self.latency_samples,
            uptime=self.uptime(now_ms),
        )
