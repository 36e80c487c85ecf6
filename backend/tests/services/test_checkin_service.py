"""
Tests for frontdesk/services/checkin_service.py
Covers: check_in (guest upsert by phone), guest edits, move/swap, room dates, actual times,
        change room, extend stay
"""
from datetime import datetime
from decimal import Decimal

from frontdesk.models.events import EventType
from frontdesk.models.ontology import (
    Booking, BookingStatus, BookingRoomStatus, Guest, Room, RoomStatus, RoomStatusLog
)
from frontdesk.models.schemas import (
    CheckInRequest, GuestPayload, GuestUpdate, MoveGuestRequest, SwapGuestsRequest,
    RoomDatesUpdate, ActualTimesUpdate, ExtendStayRequest
)
from frontdesk.services.booking_service import BookingService
from frontdesk.services.checkin_service import CheckInService
from frontdesk.services.result import ErrorKind


def _service(db, clock, events=None):
    return CheckInService(db, clock=clock, event_publisher=(events.append if events is not None else lambda e: None))


def _room_ids(detail):
    return [br.booking_room_id for brt in detail.room_types for br in brt.booking_rooms]


class TestCheckIn:

    def test_first_check_in_sets_time_and_occupies_room(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id])
        br_id = _room_ids(detail)[0]

        result = _service(db_session, clock, events).check_in(
            br_id, CheckInRequest(guests=[GuestPayload(full_name="李四", phone="0911111111")])
        )

        assert result.success
        room = result.data.room_types[0].booking_rooms[0]
        assert room.status == BookingRoomStatus.CHECKED_IN
        assert room.actual_check_in_at == clock.now()
        assert "李四" in [g.full_name for g in room.guests]
        db_session.expire_all()
        assert db_session.get(Room, rooms[0].id).status == RoomStatus.OCCUPIED
        assert db_session.query(RoomStatusLog).filter(RoomStatusLog.room_id == rooms[0].id).count() == 1
        assert [e.event_type for e in events] == [EventType.GUEST_CHECKED_IN]

    def test_repeat_check_in_only_adds_guests(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id])
        br_id = _room_ids(detail)[0]
        service = _service(db_session, clock, events)
        service.check_in(br_id, CheckInRequest())
        clock.advance(hours=2)

        result = service.check_in(br_id, CheckInRequest(guests=[GuestPayload(full_name="王五")]))

        room = result.data.room_types[0].booking_rooms[0]
        assert room.actual_check_in_at == datetime(2025, 1, 1, 12, 0)
        assert len(room.guests) == 2
        assert len(events) == 1

    def test_guest_upsert_by_phone_within_hotel(self, db_session, clock, rooms, make_booking, hotel):
        existing = Guest(hotel_id=hotel.id, full_name="旧名字", phone="0922222222")
        db_session.add(existing)
        db_session.commit()
        detail = make_booking([rooms[0].id])

        _service(db_session, clock).check_in(
            _room_ids(detail)[0],
            CheckInRequest(guests=[GuestPayload(full_name="新名字", phone="0922222222", id_card_number="A123")])
        )

        db_session.expire_all()
        assert db_session.query(Guest).filter(Guest.phone == "0922222222").count() == 1
        guest = db_session.get(Guest, existing.id)
        assert guest.full_name == "新名字"
        assert guest.id_card_number == "A123"

    def test_check_in_cancelled_booking(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        BookingService(db_session, clock=clock, event_publisher=lambda e: None).cancel_booking(detail.id)

        result = _service(db_session, clock).check_in(_room_ids(detail)[0], CheckInRequest())

        assert result.error_kind == ErrorKind.CONFLICT

    def test_check_in_unknown_room(self, db_session, clock):
        assert _service(db_session, clock).check_in(99, CheckInRequest()).error_kind == ErrorKind.NOT_FOUND


class TestGuestAdjustments:

    def test_update_and_remove_guest(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        br_id = _room_ids(detail)[0]
        service = _service(db_session, clock)

        updated = service.update_guest_in_room(br_id, detail.primary_guest_id, GuestUpdate(email="a@b.c"))
        assert updated.data.room_types[0].booking_rooms[0].guests[0].email == "a@b.c"

        removed = service.remove_guest_from_room(br_id, detail.primary_guest_id)
        assert removed.data.room_types[0].booking_rooms[0].guests == []
        assert db_session.get(Guest, detail.primary_guest_id) is not None

    def test_remove_guest_not_in_room(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).remove_guest_from_room(_room_ids(detail)[0], 999)

        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_move_guest_between_rooms(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id, rooms[1].id])
        first, second = _room_ids(detail)
        service = _service(db_session, clock)
        service.remove_guest_from_room(second, detail.primary_guest_id)

        result = service.move_guest(MoveGuestRequest(
            booking_room_id=first, guest_id=detail.primary_guest_id, target_booking_room_id=second
        ))

        assert result.success
        by_id = {br.booking_room_id: br for br in result.data.room_types[0].booking_rooms}
        assert by_id[first].guests == []
        assert [g.guest_id for g in by_id[second].guests] == [detail.primary_guest_id]

    def test_move_guest_across_bookings_rejected(self, db_session, clock, rooms, make_booking):
        a = make_booking([rooms[0].id])
        b = make_booking([rooms[1].id])

        result = _service(db_session, clock).move_guest(MoveGuestRequest(
            booking_room_id=_room_ids(a)[0], guest_id=a.primary_guest_id,
            target_booking_room_id=_room_ids(b)[0],
        ))

        assert result.error_kind == ErrorKind.VALIDATION

    def test_swap_guests(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id, rooms[1].id])
        first, second = _room_ids(detail)
        service = _service(db_session, clock)
        service.check_in(second, CheckInRequest(guests=[GuestPayload(full_name="李四", phone="0933333333")]))
        service.remove_guest_from_room(second, detail.primary_guest_id)
        other_id = db_session.query(Guest).filter(Guest.phone == "0933333333").one().id

        result = service.swap_guests(SwapGuestsRequest(
            booking_room_id=first, guest_id=detail.primary_guest_id,
            target_booking_room_id=second, target_guest_id=other_id,
        ))

        assert result.success
        by_id = {br.booking_room_id: br for br in result.data.room_types[0].booking_rooms}
        assert [g.guest_id for g in by_id[first].guests] == [other_id]
        assert [g.guest_id for g in by_id[second].guests] == [detail.primary_guest_id]


class TestRoomDatesAndTimes:

    def test_update_room_dates_within_interval(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id], start=datetime(2025, 1, 10, 14), end=datetime(2025, 1, 14, 12))

        result = _service(db_session, clock).update_room_dates(
            _room_ids(detail)[0], RoomDatesUpdate(start_date=datetime(2025, 1, 11, 14), end_date=datetime(2025, 1, 13, 12))
        )

        room = result.data.room_types[0].booking_rooms[0]
        assert room.start_date == datetime(2025, 1, 11, 14)
        assert room.end_date == datetime(2025, 1, 13, 12)

    def test_update_room_dates_outside_interval(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).update_room_dates(
            _room_ids(detail)[0], RoomDatesUpdate(start_date=datetime(2025, 1, 9, 14), end_date=datetime(2025, 1, 12, 12))
        )

        assert result.error_kind == ErrorKind.VALIDATION

    def test_actual_check_in_must_be_in_planned_window(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).update_room_actual_times(
            _room_ids(detail)[0], ActualTimesUpdate(actual_check_in_at=datetime(2025, 1, 13, 9))
        )

        assert result.error_kind == ErrorKind.VALIDATION

    def test_actual_times_mark_checked_in_and_out(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id])
        service = _service(db_session, clock, events)
        br_id = _room_ids(detail)[0]

        service.update_room_actual_times(br_id, ActualTimesUpdate(actual_check_in_at=datetime(2025, 1, 10, 15)))
        result = service.update_room_actual_times(
            br_id, ActualTimesUpdate(actual_check_out_at=datetime(2025, 1, 12, 10))
        )

        room = result.data.room_types[0].booking_rooms[0]
        assert room.status == BookingRoomStatus.CHECKED_OUT
        assert room.actual_check_out_at == datetime(2025, 1, 12, 10)
        db_session.expire_all()
        assert db_session.get(Room, rooms[0].id).status == RoomStatus.DIRTY
        assert [e.event_type for e in events] == [EventType.GUEST_CHECKED_OUT]

    def test_check_out_before_check_in_rejected(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).update_room_actual_times(
            _room_ids(detail)[0],
            ActualTimesUpdate(actual_check_in_at=datetime(2025, 1, 11, 15), actual_check_out_at=datetime(2025, 1, 11, 10)),
        )

        assert result.error_kind == ErrorKind.VALIDATION


class TestChangeRoomAndExtend:

    def test_change_room_moves_occupancy(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id])
        br_id = _room_ids(detail)[0]
        service = _service(db_session, clock, events)
        service.check_in(br_id, CheckInRequest())

        result = service.change_room(br_id, rooms[1].id)

        assert result.success
        assert result.data.room_types[0].booking_rooms[0].room_name == "102"
        db_session.expire_all()
        assert db_session.get(Room, rooms[0].id).status == RoomStatus.AVAILABLE
        assert db_session.get(Room, rooms[1].id).status == RoomStatus.OCCUPIED
        assert events[-1].event_type == EventType.ROOM_CHANGED

    def test_change_room_to_booked_room(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        make_booking([rooms[1].id])

        result = _service(db_session, clock).change_room(_room_ids(detail)[0], rooms[1].id)

        assert result.error_kind == ErrorKind.VALIDATION

    def test_extend_stay_adds_nightly_price(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id], price=Decimal("800000"), total_amount=Decimal("1600000"),
                              left_amount=Decimal("1600000"))

        result = _service(db_session, clock, events).extend_stay(
            _room_ids(detail)[0], ExtendStayRequest(new_end_date=datetime(2025, 1, 14, 12))
        )

        assert result.success
        assert result.data.total_amount == Decimal("3200000")
        assert result.data.left_amount == Decimal("3200000")
        room = result.data.room_types[0].booking_rooms[0]
        assert room.extended_date == datetime(2025, 1, 14, 12)
        assert room.end_date == datetime(2025, 1, 12, 12)
        assert events[-1].event_type == EventType.STAY_EXTENDED
        assert events[-1].data["extra_nights"] == 2

    def test_second_extension_counts_from_extended_date(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id], price=Decimal("800000"))
        service = _service(db_session, clock)
        br_id = _room_ids(detail)[0]
        service.extend_stay(br_id, ExtendStayRequest(new_end_date=datetime(2025, 1, 13, 12)))

        result = service.extend_stay(br_id, ExtendStayRequest(new_end_date=datetime(2025, 1, 14, 12)))

        assert result.data.total_amount == Decimal("1600000")

    def test_extend_must_move_forward(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).extend_stay(
            _room_ids(detail)[0], ExtendStayRequest(new_end_date=datetime(2025, 1, 12, 18))
        )

        assert result.error_kind == ErrorKind.VALIDATION

    def test_extend_into_next_booking_conflicts(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        make_booking([rooms[0].id], start=datetime(2025, 1, 13, 14), end=datetime(2025, 1, 15, 12))

        result = _service(db_session, clock).extend_stay(
            _room_ids(detail)[0], ExtendStayRequest(new_end_date=datetime(2025, 1, 14, 12))
        )

        assert result.error_kind == ErrorKind.VALIDATION
        db_session.expire_all()
        assert db_session.get(Booking, detail.id).total_amount == Decimal("0")
        assert db_session.get(Booking, detail.id).status == BookingStatus.PENDING
