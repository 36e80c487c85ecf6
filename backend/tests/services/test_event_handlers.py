"""
Tests for frontdesk/services/event_handlers.py
Covers: booking events written as activities, checkout/room-change descriptions, events without a booking
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from frontdesk.models.events import EventType
from frontdesk.models.ontology import BookingActivity
from frontdesk.models.schemas import CheckInRequest, CheckoutRequest
from frontdesk.services.booking_service import BookingService
from frontdesk.services.checkin_service import CheckInService
from frontdesk.services.checkout_service import CheckOutService
from frontdesk.services.event_bus import EventBus, Event
from frontdesk.services.event_handlers import EventHandlers
from frontdesk.services.result import ErrorKind


@pytest.fixture
def bus(db_engine):
    """注册了预订动态记录器的独立总线"""
    bus = EventBus()
    EventHandlers(session_factory=sessionmaker(bind=db_engine)).register_handlers(bus)
    return bus


def _activities(db_session, clock, booking_id):
    result = BookingService(db_session, clock=clock).get_activities(booking_id)
    assert result.success
    return result.data


class TestBookingActivities:

    def test_lifecycle_recorded_in_order(self, db_session, clock, rooms, booking_request, bus):
        service = BookingService(db_session, clock=clock, event_publisher=bus.publish)
        detail = service.create_booking(booking_request([rooms[0].id])).data
        service.confirm_booking(detail.id)
        clock.advance(hours=1)
        service.cancel_booking(detail.id)

        activities = _activities(db_session, clock, detail.id)

        assert [a.event_type for a in activities] == [
            EventType.BOOKING_CREATED.value, EventType.BOOKING_CONFIRMED.value, EventType.BOOKING_CANCELLED.value
        ]
        assert activities[0].description == "预订已创建"
        assert activities[-1].occurred_at == datetime(2025, 1, 1, 13, 0)

    def test_check_in_and_out_use_room_numbers(self, db_session, clock, rooms, booking_request, bus):
        detail = BookingService(db_session, clock=clock, event_publisher=bus.publish).create_booking(
            booking_request([rooms[0].id], deposit_amount=Decimal("500000"))
        ).data
        br_id = detail.room_types[0].booking_rooms[0].booking_room_id
        CheckInService(db_session, clock=clock, event_publisher=bus.publish).check_in(br_id, CheckInRequest())
        CheckOutService(db_session, clock=clock, event_publisher=bus.publish).check_out(
            detail.id, CheckoutRequest(checkout_time=datetime(2025, 1, 12, 11, 0))
        )

        descriptions = [a.description for a in _activities(db_session, clock, detail.id)]

        assert descriptions[1] == "房间 101 入住"
        assert descriptions[2] == "房间 101 退房，待付余额 1500000.00"

    def test_room_change_recorded(self, db_session, clock, rooms, booking_request, bus):
        detail = BookingService(db_session, clock=clock, event_publisher=bus.publish).create_booking(
            booking_request([rooms[0].id])
        ).data
        br_id = detail.room_types[0].booking_rooms[0].booking_room_id

        result = CheckInService(db_session, clock=clock, event_publisher=bus.publish).change_room(
            br_id, rooms[1].id
        )

        assert result.success
        latest = _activities(db_session, clock, detail.id)[-1]
        assert latest.event_type == EventType.ROOM_CHANGED.value
        assert latest.description == "换房：101 -> 102"

    def test_event_without_booking_ignored(self, db_session, clock, bus):
        delivered = bus.publish(Event(
            event_type=EventType.INVOICE_CREATED,
            timestamp=clock.now(),
            data={"invoice_id": 1, "invoice_number": "INV-1", "booking_id": None},
            source="test"
        ))

        assert delivered == 1
        assert db_session.query(BookingActivity).count() == 0

    def test_register_twice_subscribes_once(self, db_engine):
        bus = EventBus()
        handlers = EventHandlers(session_factory=sessionmaker(bind=db_engine))
        handlers.register_handlers(bus)
        handlers.register_handlers(bus)

        event = Event(event_type=EventType.BOOKING_CREATED, timestamp=datetime(2025, 1, 1), data={}, source="test")
        assert bus.publish(event) == 1

        handlers.unregister_handlers(bus)
        assert bus.publish(event) == 0

    def test_unknown_booking(self, db_session, clock):
        result = BookingService(db_session, clock=clock).get_activities(404)
        assert result.error_kind == ErrorKind.NOT_FOUND
