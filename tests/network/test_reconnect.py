"""Tests for ReconnectionScheduler and the backoff formula."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from companion_link.network.reconnect import ReconnectionScheduler, backoff_delay
from companion_link.network.scheduler import ManualScheduler


@pytest.fixture
def reconnect(scheduler):
    return ReconnectionScheduler(
        scheduler, base_interval_ms=1000, max_interval_ms=30000, decay=1.5
    )


class TestBackoffDelay:
    """min(base * decay^(n-1), max)."""

    def test_default_sequence(self):
        delays = [backoff_delay(n, 1000, 1.5, 30000) for n in range(1, 6)]
        assert delays == [1000, 1500, 2250, 3375, 5062.5]

    def test_capped(self):
        assert backoff_delay(20, 1000, 1.5, 30000) == 30000

    def test_decay_of_one_is_constant(self):
        assert backoff_delay(7, 500, 1.0, 30000) == 500

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError):
            backoff_delay(0, 1000, 1.5, 30000)


class TestReconnectionScheduler:
    """Single pending timer and attempt counting."""

    def test_schedule_fires_after_delay(self, reconnect, scheduler):
        callback = MagicMock()

        assert reconnect.schedule(callback) == 1000
        assert reconnect.pending
        assert reconnect.attempts == 1

        scheduler.advance(999)
        callback.assert_not_called()
        scheduler.advance(1)
        callback.assert_called_once()
        assert not reconnect.pending

    def test_only_one_pending_timer(self, reconnect, scheduler):
        assert reconnect.schedule(MagicMock()) == 1000
        assert reconnect.schedule(MagicMock()) is None
        assert reconnect.attempts == 1
        assert scheduler.pending_count == 1

    def test_delays_grow(self, reconnect, scheduler):
        delays = []
        for _ in range(3):
            delays.append(reconnect.schedule(MagicMock()))
            scheduler.advance(delays[-1])
        assert delays == [1000, 1500, 2250]
        assert reconnect.last_delay_ms == 2250

    def test_attempt_cap(self, scheduler):
        reconnect = ReconnectionScheduler(
            scheduler, base_interval_ms=10, max_interval_ms=100, decay=2, max_attempts=2
        )
        for _ in range(2):
            assert reconnect.schedule(MagicMock()) is not None
            scheduler.advance(100)

        assert reconnect.exhausted
        assert reconnect.schedule(MagicMock()) is None

    def test_unlimited_by_default(self, reconnect, scheduler):
        for _ in range(50):
            reconnect.schedule(MagicMock())
            scheduler.advance(30000)
        assert not reconnect.exhausted
        assert reconnect.attempts == 50

    def test_cancel(self, reconnect, scheduler):
        callback = MagicMock()
        reconnect.schedule(callback)

        assert reconnect.cancel() is True
        assert reconnect.cancel() is False
        scheduler.advance(10000)
        callback.assert_not_called()

    def test_reset(self, reconnect, scheduler):
        reconnect.schedule(MagicMock())
        scheduler.advance(1000)

        reconnect.reset()

        assert reconnect.attempts == 0
        assert reconnect.last_delay_ms is None
        assert reconnect.schedule(MagicMock()) == 1000

    def test_callback_may_reschedule(self, reconnect, scheduler):
        fired = []

        def again():
            fired.append(scheduler.now())
            if len(fired) < 3:
                reconnect.schedule(again)

        reconnect.schedule(again)
        scheduler.advance(10000)

        assert fired == [1000, 2500, 4750]

    def test_configure_keeps_counter(self, reconnect, scheduler):
        reconnect.schedule(MagicMock())
        scheduler.advance(1000)

        reconnect.configure(base_interval_ms=100, max_interval_ms=1000, decay=2, max_attempts=5)

        assert reconnect.attempts == 1
        assert reconnect.schedule(MagicMock()) == 200


def test_manual_scheduler_fixture_is_fresh(scheduler):
    assert isinstance(scheduler, ManualScheduler)
    assert scheduler.now() == 0
