"""
报表服务 - 只读查询
房态图、可售房数、房间排期与历史、高峰日、当前预订与按日占用
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.config import settings
from frontdesk.models.ontology import (
    Booking, BookingStatus, BookingRoom, BookingRoomStatus, BookingRoomType, Room, RoomStatus
)
from frontdesk.models.schemas import (
    BookingGuestResponse, BookingInterval, PeakDay, RoomAvailabilityResult, RoomMapItem,
    RoomStayHistory, TimelineSegment
)
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.result import ServiceResult, ValidationError, NotFoundError, run_query

logger = logging.getLogger(__name__)


def day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class ReportService:
    """报表服务"""

    def __init__(self, db: Session, clock: Clock = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock

    def _occupied_room_ids(self, room_ids: List[int], day: date) -> set:
        """
        某日被占用的房间：未取消的预订房间满足 start.date() <= day < end.date()
        """
        if not room_ids:
            return set()
        _, next_day = day_bounds(day)
        rows = self.uow.booking_rooms.query(
            BookingRoom.room_id.in_(room_ids),
            BookingRoom.status != BookingRoomStatus.CANCELLED,
            BookingRoom.start_date < next_day,
            BookingRoom.end_date >= next_day,
        ).with_entities(BookingRoom.room_id).distinct().all()
        return {row.room_id for row in rows}

    def room_map(self, hotel_id: Optional[int], from_date: Optional[date] = None, days: int = 1) -> ServiceResult:
        """房态图：每个房间在 [from, from + days) 内逐日的占用情况"""
        def run():
            if days < 1:
                raise ValidationError("天数必须大于 0")
            start_day = from_date or self.clock.now().date()
            q = self.uow.rooms.query()
            if hotel_id is not None:
                q = q.filter(Room.hotel_id == hotel_id)
            rooms = q.order_by(Room.floor, Room.number).all()
            room_ids = [r.id for r in rooms]

            occupied_by_day = {}
            for offset in range(days):
                day = start_day + timedelta(days=offset)
                occupied_by_day[day] = self._occupied_room_ids(room_ids, day)

            items = []
            for room in rooms:
                timeline = []
                for day, occupied in occupied_by_day.items():
                    start, end = day_bounds(day)
                    timeline.append(TimelineSegment(
                        start=start,
                        end=end,
                        status=RoomStatus.OCCUPIED if room.id in occupied else RoomStatus.AVAILABLE,
                    ))
                items.append(RoomMapItem(
                    room_id=room.id,
                    room_number=room.number,
                    room_type_id=room.room_type_id,
                    room_type_name=room.room_type.name if room.room_type else "",
                    floor=room.floor,
                    status=room.status,
                    timeline=timeline,
                ))
            return items
        return run_query("查询房态图", run)

    def room_availability(self, hotel_id: Optional[int], room_type_id: Optional[int] = None,
                          from_date: Optional[date] = None,
                          to_date: Optional[date] = None) -> ServiceResult:
        """
        可售房数 = 非停用房间 - 区间内已分配房间 - 已确认预订中尚未分配的房间数

        from 缺省为今天，to 缺省为 from + 1 天
        """
        def run():
            start = datetime.combine(from_date or self.clock.now().date(), time.min)
            end = datetime.combine(to_date, time.min) if to_date else start + timedelta(days=1)
            if end <= start:
                raise ValidationError("结束日期必须晚于开始日期")

            q = self.uow.rooms.query(Room.status != RoomStatus.OUT_OF_SERVICE)
            if hotel_id is not None:
                q = q.filter(Room.hotel_id == hotel_id)
            if room_type_id is not None:
                q = q.filter(Room.room_type_id == room_type_id)
            room_ids = [r.id for r in q.all()]

            assigned = 0
            if room_ids:
                assigned = self.uow.booking_rooms.query(
                    BookingRoom.room_id.in_(room_ids),
                    BookingRoom.status != BookingRoomStatus.CANCELLED,
                    BookingRoom.start_date < end,
                    BookingRoom.end_date > start,
                ).with_entities(BookingRoom.room_id).distinct().count()

            brt_query = self.uow.booking_room_types.query(
                BookingRoomType.start_date < end,
                BookingRoomType.end_date > start,
            ).join(Booking, BookingRoomType.booking_id == Booking.id) \
                .filter(Booking.status == BookingStatus.CONFIRMED)
            if hotel_id is not None:
                brt_query = brt_query.filter(Booking.hotel_id == hotel_id)
            if room_type_id is not None:
                brt_query = brt_query.filter(BookingRoomType.room_type_id == room_type_id)

            unassigned = 0
            for brt in brt_query.all():
                assigned_for_type = self.uow.booking_rooms.query(
                    BookingRoom.booking_room_type_id == brt.id,
                    BookingRoom.status != BookingRoomStatus.CANCELLED,
                    BookingRoom.start_date < end,
                    BookingRoom.end_date > start,
                ).count()
                unassigned += max((brt.total_room or 0) - assigned_for_type, 0)

            available = max(len(room_ids) - assigned - unassigned, 0)
            return RoomAvailabilityResult(available_rooms=available)
        return run_query("查询可售房数", run)

    def _booking_of(self, booking_room: BookingRoom) -> Booking:
        return booking_room.booking_room_type.booking

    def room_schedule(self, room_id: int, from_date: datetime, to_date: datetime) -> ServiceResult:
        """房间在 [from, to) 内的排期"""
        def run():
            if not self.uow.rooms.find(room_id):
                raise NotFoundError("房间不存在")
            rows = self.uow.booking_rooms.query(
                BookingRoom.room_id == room_id,
                BookingRoom.status != BookingRoomStatus.CANCELLED,
                BookingRoom.start_date < to_date,
                BookingRoom.end_date > from_date,
            ).order_by(BookingRoom.start_date).all()

            intervals = []
            for br in rows:
                booking = self._booking_of(br)
                intervals.append(BookingInterval(
                    booking_id=booking.id,
                    booking_room_id=br.id,
                    start=br.start_date,
                    end=br.end_date,
                    status=booking.status,
                    guest_name=booking.primary_guest.full_name if booking.primary_guest else None,
                ))
            return intervals
        return run_query("查询房间排期", run)

    def room_history(self, room_id: int, from_date: Optional[datetime] = None,
                     to_date: Optional[datetime] = None) -> ServiceResult:
        """房间入住历史，from/to 可单独或同时指定"""
        def run():
            if not self.uow.rooms.find(room_id):
                raise NotFoundError("房间不存在")
            q = self.uow.booking_rooms.query(
                BookingRoom.room_id == room_id,
                BookingRoom.status != BookingRoomStatus.CANCELLED,
            )
            if from_date is not None:
                q = q.filter(BookingRoom.end_date > from_date)
            if to_date is not None:
                q = q.filter(BookingRoom.start_date < to_date)

            history = []
            for br in q.order_by(BookingRoom.start_date).all():
                booking = self._booking_of(br)
                primary = booking.primary_guest
                history.append(RoomStayHistory(
                    booking_id=booking.id,
                    booking_room_id=br.id,
                    start=br.start_date,
                    end=br.end_date,
                    status=booking.status,
                    primary_guest_name=primary.full_name if primary else None,
                    primary_guest_phone=primary.phone if primary else None,
                    guests=[
                        BookingGuestResponse(
                            guest_id=bg.guest_id,
                            full_name=bg.guest.full_name,
                            phone=bg.guest.phone,
                            email=bg.guest.email,
                            id_card_type=bg.guest.id_card_type,
                            id_card_number=bg.guest.id_card_number,
                        )
                        for bg in br.guests
                    ],
                ))
            return history
        return run_query("查询房间历史", run)

    def peak_days(self, hotel_id: Optional[int], from_date: date, to_date: date) -> ServiceResult:
        """[from, to] 内入住率达到阈值的日期"""
        def run():
            if hotel_id is None:
                raise ValidationError("必须指定酒店")
            if to_date < from_date:
                raise ValidationError("日期区间无效")
            room_ids = [r.id for r in self.uow.rooms.query(Room.hotel_id == hotel_id).all()]
            if not room_ids:
                return []

            result = []
            day = from_date
            while day <= to_date:
                booked = len(self._occupied_room_ids(room_ids, day))
                percentage = booked / len(room_ids) * 100.0
                if percentage >= settings.PEAK_OCCUPANCY_THRESHOLD:
                    result.append(PeakDay(day=day, total_rooms=len(room_ids), booked_rooms=booked,
                                          percentage=round(percentage, 2)))
                day += timedelta(days=1)
            return result
        return run_query("查询高峰日", run)

    def current_booking_for_room(self, room_id: int) -> ServiceResult:
        """当前时刻占用该房间的预订 id（start <= now < end，取最晚开始的一条）"""
        def run():
            now = self.clock.now()
            booking_room = self.uow.booking_rooms.query(
                BookingRoom.room_id == room_id,
                BookingRoom.status != BookingRoomStatus.CANCELLED,
                BookingRoom.start_date <= now,
                BookingRoom.end_date > now,
            ).order_by(BookingRoom.start_date.desc()).first()
            if not booking_room:
                raise NotFoundError("该房间当前没有预订")
            return self._booking_of(booking_room).id
        return run_query("查询当前预订", run)

    def booked_rooms_by_date(self, hotel_id: int, day: date) -> ServiceResult:
        """某日被有效预订占用的房间 id"""
        def run():
            _, next_day = day_bounds(day)
            rows = self.uow.booking_rooms.query(
                BookingRoom.status != BookingRoomStatus.CANCELLED,
                BookingRoom.start_date < next_day,
                BookingRoom.end_date >= next_day,
            ).join(BookingRoomType, BookingRoom.booking_room_type_id == BookingRoomType.id) \
                .join(Booking, BookingRoomType.booking_id == Booking.id) \
                .filter(
                    Booking.hotel_id == hotel_id,
                    Booking.status.notin_((BookingStatus.CANCELLED, BookingStatus.MISSING)),
                ).with_entities(BookingRoom.room_id).distinct().all()
            return sorted(row.room_id for row in rows)
        return run_query("查询已订房间", run)

    def total_rooms(self, hotel_id: int) -> ServiceResult:
        """酒店房间总数"""
        return run_query("查询房间总数", lambda: self.uow.rooms.query(Room.hotel_id == hotel_id).count())
