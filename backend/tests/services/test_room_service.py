"""
Tests for frontdesk/services/room_service.py
"""
from datetime import date, datetime
from decimal import Decimal

from frontdesk.models.events import EventType
from frontdesk.models.ontology import Room, RoomStatus, RoomStatusLog, RoomTypePrice
from frontdesk.models.schemas import (
    RoomCreate, RoomOutOfService, RoomQuery, RoomTypeCreate, RoomTypePriceItem, RoomTypePricesUpdate, RoomUpdate
)
from frontdesk.services.room_service import RoomService
from frontdesk.services.result import ErrorKind


def _service(db, clock, events=None):
    return RoomService(db, clock=clock, event_publisher=(events.append if events is not None else lambda e: None))


class TestRoomTypes:

    def test_create_and_list(self, db_session, clock, hotel, room_type):
        service = _service(db_session, clock)

        created = service.create_room_type(RoomTypeCreate(
            hotel_id=hotel.id, name="豪华间", capacity=3, base_price=Decimal("1800000")
        ))

        assert created.success
        assert [rt.name for rt in service.list_room_types(hotel.id).data] == ["标准间", "豪华间"]

    def test_unknown_hotel(self, db_session, clock):
        result = _service(db_session, clock).create_room_type(
            RoomTypeCreate(hotel_id=5, name="套房", base_price=Decimal("1"))
        )

        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_set_prices_upserts_and_clears(self, db_session, clock, room_type):
        service = _service(db_session, clock)
        service.set_room_type_prices(room_type.id, RoomTypePricesUpdate(prices=[
            RoomTypePriceItem(price_date=date(2025, 1, 10), price=Decimal("1200000")),
            RoomTypePriceItem(price_date=date(2025, 1, 11), price=Decimal("1300000")),
        ]))

        result = service.set_room_type_prices(room_type.id, RoomTypePricesUpdate(prices=[
            RoomTypePriceItem(price_date=date(2025, 1, 10), price=Decimal("900000")),
            RoomTypePriceItem(price_date=date(2025, 1, 11), price=None),
        ]))

        assert result.data == 2
        rows = db_session.query(RoomTypePrice).all()
        assert [(r.date, r.price) for r in rows] == [(date(2025, 1, 10), Decimal("900000"))]


class TestRooms:

    def test_create_room(self, db_session, clock, hotel, room_type):
        result = _service(db_session, clock).create_room(
            RoomCreate(hotel_id=hotel.id, room_type_id=room_type.id, number="201", floor=2)
        )

        assert result.success
        assert result.data.status == RoomStatus.AVAILABLE
        assert result.data.room_type_name == "标准间"

    def test_duplicate_number(self, db_session, clock, hotel, room_type, rooms):
        result = _service(db_session, clock).create_room(
            RoomCreate(hotel_id=hotel.id, room_type_id=room_type.id, number="101")
        )

        assert result.error_kind == ErrorKind.CONFLICT

    def test_list_filters_and_paging(self, db_session, clock, hotel, rooms):
        rooms[1].status = RoomStatus.DIRTY
        db_session.commit()
        service = _service(db_session, clock)

        dirty = service.list_rooms(RoomQuery(hotel_id=hotel.id, status=RoomStatus.DIRTY))
        page = service.list_rooms(RoomQuery(hotel_id=hotel.id, page=2, page_size=2))

        assert [r.number for r in dirty.data] == ["102"]
        assert [r.number for r in page.data] == ["103"]
        assert page.meta == {"total": 3, "page": 2, "pageSize": 2}

    def test_manual_status_change_logs_and_publishes(self, db_session, clock, rooms, events):
        result = _service(db_session, clock, events).update_room(rooms[0].id, RoomUpdate(status=RoomStatus.DIRTY))

        assert result.data.status == RoomStatus.DIRTY
        log = db_session.query(RoomStatusLog).one()
        assert log.changed_at == clock.now()
        assert events[0].event_type == EventType.ROOM_STATUS_CHANGED
        assert events[0].data["new_status"] == RoomStatus.DIRTY.value

    def test_update_without_status_change_publishes_nothing(self, db_session, clock, rooms, events):
        result = _service(db_session, clock, events).update_room(rooms[0].id, RoomUpdate(floor=3))

        assert result.data.floor == 3
        assert events == []

    def test_out_of_service(self, db_session, clock, rooms):
        until = datetime(2025, 1, 5)

        result = _service(db_session, clock).set_out_of_service(rooms[0].id, RoomOutOfService(reason="维修", until=until))

        assert result.data.status == RoomStatus.OUT_OF_SERVICE
        assert result.data.out_of_service_reason == "维修"
        assert result.data.out_of_service_until == until

    def test_occupied_room_cannot_go_out_of_service(self, db_session, clock, rooms):
        rooms[0].status = RoomStatus.OCCUPIED
        db_session.commit()

        result = _service(db_session, clock).set_out_of_service(rooms[0].id, RoomOutOfService())

        assert result.error_kind == ErrorKind.CONFLICT

    def test_delete_room_with_history(self, db_session, clock, rooms, make_booking):
        make_booking([rooms[0].id])
        service = _service(db_session, clock)

        assert service.delete_room(rooms[0].id).error_kind == ErrorKind.CONFLICT
        assert service.delete_room(rooms[1].id).success
        assert db_session.query(Room).count() == 2

    def test_get_unknown_room(self, db_session, clock):
        assert _service(db_session, clock).get_room(77).error_kind == ErrorKind.NOT_FOUND
