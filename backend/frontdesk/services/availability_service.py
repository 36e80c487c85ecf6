"""
房间可用性检查
区间按左闭右开 [start, end) 处理：s1 < e2 且 e1 > s2 视为重叠；已取消的预订房间不占用
"""
from datetime import datetime
from typing import Optional
from frontdesk.models.ontology import BookingRoom, BookingRoomStatus, Room
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.result import ValidationError


class AvailabilityChecker:
    """房间占用冲突检查"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def find_conflict(self, room_id: int, start: datetime, end: datetime,
                      exclude_booking_room_id: Optional[int] = None) -> Optional[BookingRoom]:
        """返回与 [start, end) 冲突的第一条预订房间"""
        query = self.uow.booking_rooms.query(
            BookingRoom.room_id == room_id,
            BookingRoom.status != BookingRoomStatus.CANCELLED,
            BookingRoom.start_date < end,
            BookingRoom.end_date > start,
        )
        if exclude_booking_room_id is not None:
            query = query.filter(BookingRoom.id != exclude_booking_room_id)
        return query.order_by(BookingRoom.start_date).first()

    def is_room_available(self, room_id: int, start: datetime, end: datetime,
                          exclude_booking_room_id: Optional[int] = None) -> bool:
        return self.find_conflict(room_id, start, end, exclude_booking_room_id) is None

    def ensure_available(self, room: Room, start: datetime, end: datetime,
                         exclude_booking_room_id: Optional[int] = None) -> None:
        """不可用时抛出 ValidationError，消息包含房间号"""
        if not self.is_room_available(room.id, start, end, exclude_booking_room_id):
            raise ValidationError(f"房间 {room.number} 在所选日期不可用")

    def find_extension_conflict(self, booking_room: BookingRoom, current_end: datetime,
                                new_end: datetime) -> Optional[BookingRoom]:
        """
        续住冲突：同一房间上其他未取消的预订满足 current_end < other.end 且 new_end > other.start
        """
        return self.uow.booking_rooms.query(
            BookingRoom.room_id == booking_room.room_id,
            BookingRoom.id != booking_room.id,
            BookingRoom.status != BookingRoomStatus.CANCELLED,
            BookingRoom.end_date > current_end,
            BookingRoom.start_date < new_end,
        ).first()
