"""
事件总线单元测试
"""
import pytest
from datetime import datetime

from frontdesk.services.event_bus import EventBus, Event


@pytest.fixture
def bus():
    return EventBus(history_size=10)


@pytest.fixture
def sample_event():
    return Event(
        event_type="booking.created",
        timestamp=datetime(2026, 3, 1, 12, 0),
        data={"booking_id": 1},
        source="test"
    )


def test_subscribe_and_publish(bus, sample_event):
    received = []
    bus.subscribe("booking.created", received.append)

    assert bus.publish(sample_event) == 1
    assert received[0].data["booking_id"] == 1


def test_events_get_distinct_ids(sample_event):
    other = Event(event_type="booking.created", timestamp=sample_event.timestamp, data={}, source="test")
    assert other.event_id != sample_event.event_id


def test_duplicate_subscription_ignored(bus, sample_event):
    calls = []

    def handler(event):
        calls.append(event)

    bus.subscribe("booking.created", handler)
    bus.subscribe("booking.created", handler)
    bus.publish(sample_event)

    assert len(calls) == 1


def test_unsubscribe(bus, sample_event):
    calls = []

    def handler(event):
        calls.append(event)

    bus.subscribe("booking.created", handler)
    bus.unsubscribe("booking.created", handler)

    assert bus.publish(sample_event) == 0
    assert calls == []


def test_failing_handler_does_not_block_others(bus, sample_event):
    calls = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe("booking.created", broken)
    bus.subscribe("booking.created", calls.append)

    assert bus.publish(sample_event) == 1
    assert len(calls) == 1


def test_history_newest_first_and_bounded(bus):
    for i in range(12):
        bus.publish(Event(
            event_type="booking.cancelled" if i == 10 else "booking.created",
            timestamp=datetime(2026, 3, 1, 12, i),
            data={"booking_id": i},
            source="test"
        ))

    history = bus.get_history()
    assert len(history) == 10
    assert [e.data["booking_id"] for e in history[:3]] == [11, 10, 9]

    created = bus.get_history("booking.created", limit=2)
    assert [e.data["booking_id"] for e in created] == [11, 9]


def test_clear(bus, sample_event):
    calls = []
    bus.subscribe("booking.created", calls.append)
    bus.publish(sample_event)

    bus.clear()

    assert bus.get_history() == []
    assert bus.publish(sample_event) == 0
