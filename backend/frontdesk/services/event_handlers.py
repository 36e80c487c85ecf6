"""
事件处理器 - 订阅预订相关的领域事件
把事件写成预订动态（booking_activities），前台据此查看一张预订的操作轨迹
"""
import logging
from typing import Callable, Dict
from sqlalchemy.orm import Session
from frontdesk.database import SessionLocal
from frontdesk.models.events import EventType
from frontdesk.models.ontology import BookingActivity, Room
from frontdesk.services.event_bus import event_bus, Event, EventBus

logger = logging.getLogger(__name__)


def _room_number(db: Session, room_id) -> str:
    room = db.get(Room, room_id) if room_id else None
    return room.number if room else str(room_id)


def _describe_checked_in(db: Session, data: dict) -> str:
    return f"房间 {data.get('room_number') or _room_number(db, data.get('room_id'))} 入住"


def _describe_checked_out(db: Session, data: dict) -> str:
    numbers = ", ".join(_room_number(db, rid) for rid in data.get("room_ids", []))
    return f"房间 {numbers} 退房，待付余额 {data.get('left_amount', 0):.2f}"


def _describe_room_changed(db: Session, data: dict) -> str:
    return (f"换房：{_room_number(db, data.get('old_room_id'))} -> "
            f"{_room_number(db, data.get('new_room_id'))}")


def _describe_extended(db: Session, data: dict) -> str:
    return f"续住 {data.get('extra_nights', 0)} 晚，离店改为 {data.get('new_end', '')}"


DESCRIBERS: Dict[EventType, Callable[[Session, dict], str]] = {
    EventType.BOOKING_CREATED: lambda db, data: "预订已创建",
    EventType.BOOKING_CONFIRMED: lambda db, data: "预订已确认",
    EventType.BOOKING_CANCELLED: lambda db, data: "预订已取消",
    EventType.BOOKING_COMPLETED: lambda db, data: f"预订已完成，总额 {data.get('total_amount', 0):.2f}",
    EventType.GUEST_CHECKED_IN: _describe_checked_in,
    EventType.GUEST_CHECKED_OUT: _describe_checked_out,
    EventType.ROOM_CHANGED: _describe_room_changed,
    EventType.STAY_EXTENDED: _describe_extended,
    EventType.INVOICE_CREATED: lambda db, data: f"开具发票 {data.get('invoice_number', '')}",
}


class EventHandlers:
    """
    预订动态记录器

    使用独立会话写入，事件在业务事务提交后才发布，写入失败不影响已完成的操作
    """

    def __init__(self, session_factory: Callable[[], Session] = None):
        self._session_factory = session_factory or SessionLocal
        self._registered = False

    def record_activity(self, event: Event) -> None:
        """事件 -> 预订动态；不带 booking_id 的事件（如散客发票）忽略"""
        booking_id = event.data.get("booking_id")
        if not booking_id:
            return
        event_type = EventType(event.event_type)

        db = self._session_factory()
        try:
            db.add(BookingActivity(
                booking_id=booking_id,
                event_type=event_type.value,
                description=DESCRIBERS[event_type](db, event.data),
                occurred_at=event.timestamp,
            ))
            db.commit()
            logger.info(f"Recorded {event_type.value} activity for booking {booking_id}")
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to record activity for booking {booking_id}: {e}", exc_info=True)
        finally:
            db.close()

    def register_handlers(self, bus: EventBus = None) -> None:
        """注册到事件总线（重复调用无效果）"""
        if self._registered:
            return
        bus = bus or event_bus
        for event_type in DESCRIBERS:
            bus.subscribe(event_type, self.record_activity)
        self._registered = True
        logger.info("Booking activity handlers registered")

    def unregister_handlers(self, bus: EventBus = None) -> None:
        bus = bus or event_bus
        for event_type in DESCRIBERS:
            bus.unsubscribe(event_type, self.record_activity)
        self._registered = False


event_handlers = EventHandlers()


def register_event_handlers() -> None:
    """应用启动时调用"""
    event_handlers.register_handlers()
