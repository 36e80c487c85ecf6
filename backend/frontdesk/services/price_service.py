"""
价格服务 - 按日计价
每晚价格优先取房型日期价格表，其次房型基础价，最后取预订房型行的快照价
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Optional
from frontdesk.models.ontology import (
    Booking, BookingRoom, BookingRoomStatus, BookingRoomType, RoomType, RoomTypePrice
)
from frontdesk.repositories.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class PricingEngine:
    """住宿计价引擎"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    @staticmethod
    def stay_window(booking_room: BookingRoom):
        """计费区间 [start, end)：实际入住/退房优先，结束不晚于开始时按 1 晚计"""
        start = (booking_room.actual_check_in_at or booking_room.start_date).date()
        end = (booking_room.actual_check_out_at or booking_room.end_date).date()
        if end <= start:
            end = start + timedelta(days=1)
        return start, end

    def load_overrides(self, room_type_id: Optional[int], start: date, end: date) -> Dict[date, Decimal]:
        """区间内的日期价格，price 为空的行视为未设置"""
        if room_type_id is None:
            return {}
        rows = self.uow.room_type_prices.query(
            RoomTypePrice.room_type_id == room_type_id,
            RoomTypePrice.date >= start,
            RoomTypePrice.date < end,
        ).all()
        return {row.date: row.price for row in rows if row.price is not None}

    def daily_rate(self, day: date, overrides: Dict[date, Decimal],
                   room_type: Optional[RoomType], fallback_price: Decimal) -> Decimal:
        """单日价格"""
        if day in overrides:
            return Decimal(overrides[day])
        if room_type is not None and room_type.base_price is not None:
            return Decimal(room_type.base_price)
        return Decimal(fallback_price or 0)

    def price_stay(self, room_type: Optional[RoomType], booking_room: BookingRoom,
                   fallback_price: Decimal) -> Decimal:
        """单个预订房间的住宿费用"""
        start, end = self.stay_window(booking_room)
        overrides = self.load_overrides(room_type.id if room_type else None, start, end)

        total = Decimal("0")
        day = start
        while day < end:
            total += self.daily_rate(day, overrides, room_type, fallback_price)
            day += timedelta(days=1)
        return total

    def price_booking_room_type(self, booking_room_type: BookingRoomType) -> Decimal:
        """预订房型行下所有未取消房间的费用"""
        room_type = self.uow.room_types.find(booking_room_type.room_type_id)
        rooms = self.uow.booking_rooms.query(
            BookingRoom.booking_room_type_id == booking_room_type.id,
            BookingRoom.status != BookingRoomStatus.CANCELLED,
        ).all()
        return sum(
            (self.price_stay(room_type, br, booking_room_type.price) for br in rooms),
            Decimal("0"),
        )

    def price_booking(self, booking: Booking) -> Decimal:
        """整张预订的住宿费用"""
        room_types = self.uow.booking_room_types.query(
            BookingRoomType.booking_id == booking.id
        ).all()
        total = sum((self.price_booking_room_type(brt) for brt in room_types), Decimal("0"))
        logger.debug(f"Priced booking {booking.id}: {total}")
        return total
