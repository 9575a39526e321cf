"""
tests/unit/utils/test_event_channel.py

Unit tests for the typed event channel.
"""

import pytest

from deepsearch.utils.event_channel import EventChannel


class TestSubscribe:
    """Tests for named subscriptions."""

    def test_subscribers_listed_in_order(self) -> None:
        """Subscriber names should be listed in subscription order."""
        channel: EventChannel[int] = EventChannel("numbers")
        channel.subscribe("first", lambda _: None)
        channel.subscribe("second", lambda _: None)
        assert channel.subscribers == ["first", "second"]

    def test_duplicate_name_rejected(self) -> None:
        """Registering the same name twice should raise ValueError."""
        channel: EventChannel[int] = EventChannel("numbers")
        channel.subscribe("first", lambda _: None)
        with pytest.raises(ValueError):
            channel.subscribe("first", lambda _: None)

    def test_unsubscribe_removes_handler(self) -> None:
        """The returned callable should remove the subscription."""
        received: list[int] = []
        channel: EventChannel[int] = EventChannel("numbers")
        unsubscribe = channel.subscribe("collector", received.append)

        channel.publish(1)
        unsubscribe()
        channel.publish(2)

        assert received == [1]
        assert channel.subscribers == []


class TestPublish:
    """Tests for event delivery."""

    def test_delivery_in_subscription_order(self) -> None:
        """Every subscriber should receive the event, in subscription order."""
        calls: list[str] = []
        channel: EventChannel[str] = EventChannel("words")
        channel.subscribe("a", lambda event: calls.append(f"a:{event}"))
        channel.subscribe("b", lambda event: calls.append(f"b:{event}"))

        channel.publish("x")

        assert calls == ["a:x", "b:x"]

    def test_failing_subscriber_does_not_stop_others(self) -> None:
        """A subscriber that raises should not prevent delivery to later subscribers."""
        received: list[str] = []

        def broken(_: str) -> None:
            raise RuntimeError("boom")

        channel: EventChannel[str] = EventChannel("words")
        channel.subscribe("broken", broken)
        channel.subscribe("collector", received.append)

        channel.publish("x")

        assert received == ["x"]

    def test_publish_without_subscribers(self) -> None:
        """Publishing on an empty channel should be a no-op."""
        channel: EventChannel[str] = EventChannel("empty")
        channel.publish("x")
