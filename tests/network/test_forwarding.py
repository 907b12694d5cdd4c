"""Tests for EventForwarder."""

from __future__ import annotations

from unittest.mock import MagicMock

from companion_link.network.events import EventBus, EventTopic
from companion_link.network.forwarding import CHANNELS, EventForwarder


class TestEventForwarder:
    """Relays bus events to a sink under channel names."""

    def test_channel_names(self):
        assert CHANNELS[EventTopic.MESSAGE] == "ws-message-received"
        assert CHANNELS[EventTopic.PROGRESS_UPDATE] == "ws-progress-update"
        assert set(CHANNELS) == set(EventTopic)

    def test_relays_unchanged(self):
        bus = EventBus()
        sink = MagicMock()
        forwarder = EventForwarder(bus, sink)
        forwarder.attach()
        event = object()

        bus.publish(EventTopic.NOTIFICATION, event)

        sink.assert_called_once_with("ws-notification", event)
        assert forwarder.forwarded == 1

    def test_every_topic_forwarded(self):
        bus = EventBus()
        sink = MagicMock()
        EventForwarder(bus, sink).attach()

        for topic in EventTopic:
            bus.publish(topic, topic.value)

        channels = [call.args[0] for call in sink.call_args_list]
        assert channels == [CHANNELS[topic] for topic in EventTopic]

    def test_attach_is_idempotent(self):
        bus = EventBus()
        forwarder = EventForwarder(bus, MagicMock())
        forwarder.attach()
        forwarder.attach()
        assert bus.subscriber_count() == len(EventTopic)

    def test_detach(self):
        bus = EventBus()
        sink = MagicMock()
        forwarder = EventForwarder(bus, sink)
        forwarder.attach()

        forwarder.detach()
        bus.publish(EventTopic.CONNECTED, "x")

        sink.assert_not_called()
        assert not forwarder.attached

    def test_failing_sink_does_not_break_bus(self):
        bus = EventBus()
        EventForwarder(bus, MagicMock(side_effect=RuntimeError("window gone"))).attach()
        got = []
        bus.subscribe(EventTopic.ERROR, got.append)

        bus.publish(EventTopic.ERROR, "e")

        assert got == ["e"]
