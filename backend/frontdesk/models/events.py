"""
领域事件定义 (Domain Events)
预订、入住、退房与发票相关的业务事件
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    """事件类型枚举"""
    # 房间相关
    ROOM_STATUS_CHANGED = "room.status_changed"
    ROOM_CHANGED = "booking_room.room_changed"

    # 预订相关
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_COMPLETED = "booking.completed"
    NO_SHOWS_CANCELLED = "booking.no_shows_cancelled"

    # 入住/退房
    GUEST_CHECKED_IN = "guest.checked_in"
    GUEST_CHECKED_OUT = "guest.checked_out"
    STAY_EXTENDED = "stay.extended"

    # 账单相关
    INVOICE_CREATED = "invoice.created"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（datetime 转 ISO 字符串，Decimal 转 float）"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = float(value)
        return result


@dataclass
class BookingEventData(BaseEventData):
    """预订状态事件数据"""
    booking_id: int = 0
    hotel_id: int = 0
    status: str = ""
    total_amount: float = 0.0
    left_amount: float = 0.0


@dataclass
class GuestCheckedInData(BaseEventData):
    """客人入住事件数据"""
    booking_id: int = 0
    booking_room_id: int = 0
    room_id: int = 0
    room_number: str = ""
    guest_ids: List[int] = field(default_factory=list)
    check_in_time: Optional[datetime] = None


@dataclass
class GuestCheckedOutData(BaseEventData):
    """退房事件数据"""
    booking_id: int = 0
    room_ids: List[int] = field(default_factory=list)
    check_out_time: Optional[datetime] = None
    total_amount: float = 0.0
    left_amount: float = 0.0


@dataclass
class StayExtendedData(BaseEventData):
    """续住事件数据"""
    booking_id: int = 0
    booking_room_id: int = 0
    old_end: str = ""
    new_end: str = ""
    extra_nights: int = 0
    extra_amount: float = 0.0


@dataclass
class RoomChangedData(BaseEventData):
    """换房事件数据"""
    booking_id: int = 0
    booking_room_id: int = 0
    old_room_id: int = 0
    new_room_id: int = 0


@dataclass
class RoomStatusChangedData(BaseEventData):
    """房间状态变更事件数据"""
    room_id: int = 0
    room_number: str = ""
    old_status: str = ""
    new_status: str = ""
    reason: str = ""


@dataclass
class NoShowsCancelledData(BaseEventData):
    """no-show 清理事件数据"""
    target_date: str = ""
    hotel_id: Optional[int] = None
    cancelled_rooms: int = 0
    affected_bookings: int = 0


@dataclass
class InvoiceCreatedData(BaseEventData):
    """发票生成事件数据"""
    invoice_id: int = 0
    invoice_number: str = ""
    hotel_id: int = 0
    booking_id: Optional[int] = None
    order_id: Optional[int] = None
    total_amount: float = 0.0
