"""
退房服务 - 本体操作层
整单退房：结算房费与附加费，房间转为待清洁
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import Booking, BookingStatus, BookingRoomStatus, RoomStatus
from frontdesk.models.schemas import CheckoutRequest, CheckoutResult
from frontdesk.models.events import EventType, GuestCheckedOutData
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.booking_service import load_booking_detail
from frontdesk.services.price_service import PricingEngine
from frontdesk.services.room_service import change_room_status
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import ServiceResult, NotFoundError, ConflictError, run_in_transaction

logger = logging.getLogger(__name__)


class CheckOutService:
    """退房服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def check_out(self, booking_id: int, data: CheckoutRequest) -> ServiceResult:
        """
        整单退房

        total = 计价引擎房费 + additional_amount
        left = max(0, total - (押金 + 尾款))
        """
        summary = {}

        def operation():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            total_paid, checkout_time, room_ids = self.apply_checkout(booking, data)
            summary.update(total_paid=total_paid, checkout_time=checkout_time, room_ids=room_ids)
            return booking.id

        result = run_in_transaction(self.uow, "退房", operation, message="退房成功")
        if not result.success:
            return result

        detail = load_booking_detail(self.uow, result.data)
        result.data = CheckoutResult(
            total_paid=summary["total_paid"],
            booking=detail,
            checkout_time=summary["checkout_time"],
        )
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_OUT,
            timestamp=self.clock.now(),
            data=GuestCheckedOutData(
                booking_id=detail.id,
                room_ids=summary["room_ids"],
                check_out_time=summary["checkout_time"],
                total_amount=float(detail.total_amount),
                left_amount=float(detail.left_amount),
            ).to_dict(),
            source="checkout_service"
        ))
        return result

    def apply_checkout(self, booking: Booking, data: CheckoutRequest):
        """
        在当前事务中执行退房结算，供发票生成复用

        已退房的房间保留原退房时间；返回 (total_paid, checkout_time, 本次退房的房间 id)
        """
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.MISSING):
            raise ConflictError(f"预订状态为 {booking.status.value}，不能退房")

        checkout_time: datetime = data.checkout_time or self.clock.now()
        room_ids = []
        for booking_room in booking.booking_rooms:
            if booking_room.status == BookingRoomStatus.CANCELLED:
                continue
            if booking_room.status == BookingRoomStatus.CHECKED_OUT and data.checkout_time is None:
                continue
            first_checkout = booking_room.status != BookingRoomStatus.CHECKED_OUT
            booking_room.status = BookingRoomStatus.CHECKED_OUT
            booking_room.actual_check_out_at = checkout_time
            if first_checkout:
                room = self.uow.rooms.find(booking_room.room_id)
                change_room_status(self.uow, room, RoomStatus.DIRTY, checkout_time, note="退房")
                room_ids.append(room.id)
        self.uow.booking_rooms.save_changes()

        if data.additional_amount is not None:
            booking.additional_amount = data.additional_amount
        if data.additional_notes is not None:
            booking.additional_notes = data.additional_notes
        if data.additional_booking_amount is not None:
            booking.additional_booking_amount = data.additional_booking_amount
        if data.additional_booking_notes is not None:
            booking.additional_booking_notes = data.additional_booking_notes
        if data.notes is not None:
            booking.notes = data.notes

        final_payment = data.final_payment.amount if data.final_payment else Decimal("0")
        total_paid = (booking.deposit_amount or Decimal("0")) + final_payment
        total = PricingEngine(self.uow).price_booking(booking) + (booking.additional_amount or Decimal("0"))
        booking.total_amount = total
        booking.left_amount = max(Decimal("0"), total - total_paid)
        self.uow.bookings.save_changes()

        logger.info(f"Booking {booking.id} checked out: total={total}, paid={total_paid}, "
                    f"left={booking.left_amount}")
        return total_paid, checkout_time, room_ids
