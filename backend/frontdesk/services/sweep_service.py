"""
清理服务 - 批量状态维护
no-show 清理与自动标记未到店，整批在一个事务内完成
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Set
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import (
    Booking, BookingStatus, BookingRoom, BookingRoomStatus, BookingRoomType, RoomStatus
)
from frontdesk.models.schemas import NoShowSweepResult
from frontdesk.models.events import EventType, NoShowsCancelledData
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.booking_service import TERMINAL_STATUSES
from frontdesk.services.room_service import change_room_status
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import ServiceResult, NotFoundError, run_in_transaction

logger = logging.getLogger(__name__)


class SweepService:
    """定时清理服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def cancel_no_shows(self, target_date: Optional[date] = None,
                        hotel_id: Optional[int] = None) -> ServiceResult:
        """
        取消目标日期未到店的预订房间

        条件：状态 Pending、无实际入住时间、计划入住日为目标日期；
        房间释放为空闲，预订下房间全部取消时预订随之取消（已结束的预订保持原状态）
        """
        day = target_date or self.clock.now().date()

        def operation():
            day_start = datetime.combine(day, time.min)
            q = self.uow.booking_rooms.query(
                BookingRoom.status == BookingRoomStatus.PENDING,
                BookingRoom.actual_check_in_at.is_(None),
                BookingRoom.start_date >= day_start,
                BookingRoom.start_date < day_start + timedelta(days=1),
            ).join(BookingRoomType, BookingRoom.booking_room_type_id == BookingRoomType.id) \
                .join(Booking, BookingRoomType.booking_id == Booking.id)
            if hotel_id is not None:
                q = q.filter(Booking.hotel_id == hotel_id)

            now = self.clock.now()
            affected: Set[int] = set()
            cancelled = 0
            for booking_room in q.all():
                booking_room.status = BookingRoomStatus.CANCELLED
                cancelled += 1
                room = self.uow.rooms.find(booking_room.room_id)
                if room and room.status != RoomStatus.OUT_OF_SERVICE:
                    change_room_status(self.uow, room, RoomStatus.AVAILABLE, now, note="未到店取消")
                affected.add(booking_room.booking_room_type.booking_id)
            self.uow.booking_rooms.save_changes()

            for booking_id in affected:
                booking = self.uow.bookings.find(booking_id)
                if booking.status in TERMINAL_STATUSES:
                    continue
                rooms = booking.booking_rooms
                if rooms and all(r.status == BookingRoomStatus.CANCELLED for r in rooms):
                    booking.status = BookingStatus.CANCELLED
                    logger.info(f"Booking {booking.id} cancelled by no-show sweep")
            self.uow.bookings.save_changes()

            logger.info(f"No-show sweep for {day}: cancelled {cancelled} room(s) "
                        f"across {len(affected)} booking(s)")
            return NoShowSweepResult(cancelled_rooms=cancelled, affected_bookings=len(affected))

        result = run_in_transaction(self.uow, "清理未到店", operation, message="未到店清理完成")
        if result.success and result.data.cancelled_rooms:
            self._publish_event(Event(
                event_type=EventType.NO_SHOWS_CANCELLED,
                timestamp=self.clock.now(),
                data=NoShowsCancelledData(
                    target_date=day.isoformat(),
                    hotel_id=hotel_id,
                    cancelled_rooms=result.data.cancelled_rooms,
                    affected_bookings=result.data.affected_bookings,
                ).to_dict(),
                source="sweep_service"
            ))
        return result

    def auto_cancel_bookings(self, hotel_id: int) -> ServiceResult:
        """
        入住日已完全过去且无任何实际入住的未结束预订标记为 Missing

        没有分配房间的预订同样符合条件；已是 Missing 的预订跳过
        """
        def operation():
            if not self.uow.hotels.find(hotel_id):
                raise NotFoundError("酒店不存在")

            now = self.clock.now()
            bookings = self.uow.bookings.query(
                Booking.hotel_id == hotel_id,
                Booking.status.notin_(TERMINAL_STATUSES + (BookingStatus.MISSING,)),
            ).all()

            marked = []
            for booking in bookings:
                day_after_start = datetime.combine(booking.start_date.date(), time.min) + timedelta(days=1)
                if day_after_start > now:
                    continue
                if any(br.actual_check_in_at is not None for br in booking.booking_rooms):
                    continue
                booking.status = BookingStatus.MISSING
                marked.append(booking.id)
            self.uow.bookings.save_changes()

            if marked:
                logger.info(f"Auto-cancel for hotel {hotel_id}: {len(marked)} booking(s) marked Missing")
            return marked

        return run_in_transaction(self.uow, "自动标记未到店", operation, message="自动取消检查完成")
