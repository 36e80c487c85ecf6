"""
房间服务 - 本体操作层
管理 Room、RoomType 与房型日期价格；房间状态变更统一写入状态日志
"""
from typing import Callable, Optional
from datetime import datetime
import logging
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import (
    Room, RoomType, RoomTypePrice, RoomStatus, RoomStatusLog, BookingRoom
)
from frontdesk.models.schemas import (
    RoomCreate, RoomUpdate, RoomOutOfService, RoomQuery, RoomResponse,
    RoomTypeCreate, RoomTypeResponse, RoomTypePricesUpdate
)
from frontdesk.models.events import EventType, RoomStatusChangedData
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import (
    ServiceResult, NotFoundError, ValidationError, ConflictError,
    run_in_transaction, run_query
)

logger = logging.getLogger(__name__)


def change_room_status(uow: UnitOfWork, room: Room, status: RoomStatus,
                       at: datetime, note: Optional[str] = None) -> RoomStatusLog:
    """修改房间状态并追加状态日志"""
    old_status = room.status
    room.status = status
    log = uow.room_status_logs.add(RoomStatusLog(
        room_id=room.id,
        hotel_id=room.hotel_id,
        status=status,
        changed_at=at,
        note=note,
    ))
    logger.info(f"Room {room.number} status {getattr(old_status, 'value', old_status)} -> {status.value}")
    return log


def to_room_response(room: Room) -> RoomResponse:
    response = RoomResponse.model_validate(room)
    response.room_type_name = room.room_type.name if room.room_type else None
    return response


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 房型操作 ==============

    def list_room_types(self, hotel_id: Optional[int] = None) -> ServiceResult:
        """获取房型列表"""
        def query():
            q = self.uow.room_types.query()
            if hotel_id is not None:
                q = q.filter(RoomType.hotel_id == hotel_id)
            return [RoomTypeResponse.model_validate(rt) for rt in q.order_by(RoomType.id).all()]
        return run_query("查询房型", query)

    def create_room_type(self, data: RoomTypeCreate) -> ServiceResult:
        """创建房型"""
        def operation():
            if not self.uow.hotels.find(data.hotel_id):
                raise NotFoundError("酒店不存在")
            room_type = self.uow.room_types.add(RoomType(**data.model_dump()))
            return RoomTypeResponse.model_validate(room_type)
        return run_in_transaction(self.uow, "创建房型", operation, message="房型创建成功")

    def set_room_type_prices(self, room_type_id: int, data: RoomTypePricesUpdate) -> ServiceResult:
        """设置房型日期价格；price 为空的条目删除当日覆盖"""
        def operation():
            room_type = self.uow.room_types.find(room_type_id)
            if not room_type:
                raise NotFoundError("房型不存在")

            for item in data.prices:
                existing = self.uow.room_type_prices.query(
                    RoomTypePrice.room_type_id == room_type_id,
                    RoomTypePrice.date == item.price_date,
                ).first()
                if item.price is None:
                    if existing:
                        self.uow.room_type_prices.remove(existing)
                elif existing:
                    self.uow.room_type_prices.update(existing, price=item.price)
                else:
                    self.uow.room_type_prices.add(RoomTypePrice(
                        room_type_id=room_type_id, date=item.price_date, price=item.price
                    ))
            return len(data.prices)
        return run_in_transaction(self.uow, "设置房型价格", operation, message="房型价格已更新")

    # ============== 房间操作 ==============

    def list_rooms(self, query: RoomQuery) -> ServiceResult:
        """按状态、楼层、房型筛选房间（分页）"""
        def run():
            q = self.uow.rooms.query()
            if query.hotel_id is not None:
                q = q.filter(Room.hotel_id == query.hotel_id)
            if query.status is not None:
                q = q.filter(Room.status == query.status)
            if query.floor is not None:
                q = q.filter(Room.floor == query.floor)
            if query.room_type_id is not None:
                q = q.filter(Room.room_type_id == query.room_type_id)

            total = q.count()
            rooms = q.order_by(Room.floor, Room.number) \
                .offset((query.page - 1) * query.page_size).limit(query.page_size).all()
            return ServiceResult.ok(
                [to_room_response(r) for r in rooms],
                meta={"total": total, "page": query.page, "pageSize": query.page_size},
            )
        return run_query("查询房间", run)

    def get_room(self, room_id: int) -> ServiceResult:
        """获取单个房间"""
        def run():
            room = self.uow.rooms.find(room_id)
            if not room:
                raise NotFoundError("房间不存在")
            return to_room_response(room)
        return run_query("查询房间", run)

    def create_room(self, data: RoomCreate) -> ServiceResult:
        """创建房间"""
        def operation():
            if not self.uow.hotels.find(data.hotel_id):
                raise NotFoundError("酒店不存在")
            room_type = self.uow.room_types.find(data.room_type_id)
            if not room_type or room_type.hotel_id != data.hotel_id:
                raise ValidationError("房型不属于该酒店")
            self._ensure_number_unique(data.hotel_id, data.number)

            room = self.uow.rooms.add(Room(
                hotel_id=data.hotel_id,
                room_type_id=data.room_type_id,
                number=data.number,
                floor=data.floor,
                status=RoomStatus.AVAILABLE,
            ))
            return to_room_response(room)
        return run_in_transaction(self.uow, "创建房间", operation, message="房间创建成功")

    def update_room(self, room_id: int, data: RoomUpdate) -> ServiceResult:
        """更新房间信息与运营状态"""
        status_events = []

        def operation():
            room = self.uow.rooms.find(room_id)
            if not room:
                raise NotFoundError("房间不存在")

            changes = data.model_dump(exclude_unset=True)
            if "room_type_id" in changes:
                room_type = self.uow.room_types.find(changes["room_type_id"])
                if not room_type or room_type.hotel_id != room.hotel_id:
                    raise ValidationError("房型不属于该酒店")
            if "number" in changes and changes["number"] != room.number:
                self._ensure_number_unique(room.hotel_id, changes["number"])

            new_status = changes.pop("status", None)
            if changes:
                self.uow.rooms.update(room, **changes)
            if new_status is not None and new_status != room.status:
                status_events.append((room.id, room.number, room.status.value, new_status.value))
                change_room_status(self.uow, room, new_status, self.clock.now(), note="手动修改")
            return to_room_response(room)

        result = run_in_transaction(self.uow, "更新房间", operation, message="房间已更新")
        if result.success:
            for room_id_, number, old, new in status_events:
                self._publish_status_changed(room_id_, number, old, new, "手动修改")
        return result

    def delete_room(self, room_id: int) -> ServiceResult:
        """删除房间（仅限无预订历史）"""
        def operation():
            room = self.uow.rooms.find(room_id)
            if not room:
                raise NotFoundError("房间不存在")
            has_history = self.uow.booking_rooms.query(BookingRoom.room_id == room_id).first() is not None
            if has_history:
                raise ConflictError("房间存在预订历史，不能删除")
            self.uow.rooms.remove(room)
            return room_id
        return run_in_transaction(self.uow, "删除房间", operation, message="房间已删除")

    def set_out_of_service(self, room_id: int, data: RoomOutOfService) -> ServiceResult:
        """标记房间暂停服务"""
        events = []

        def operation():
            room = self.uow.rooms.find(room_id)
            if not room:
                raise NotFoundError("房间不存在")
            if room.status == RoomStatus.OCCUPIED:
                raise ConflictError("房间入住中，不能设为停用")

            events.append((room.id, room.number, room.status.value))
            room.out_of_service_reason = data.reason
            room.out_of_service_until = data.until
            change_room_status(self.uow, room, RoomStatus.OUT_OF_SERVICE, self.clock.now(), note=data.reason)
            return to_room_response(room)

        result = run_in_transaction(self.uow, "设置停用", operation, message="房间已停用")
        if result.success:
            for room_id_, number, old in events:
                self._publish_status_changed(room_id_, number, old, RoomStatus.OUT_OF_SERVICE.value,
                                             data.reason or "")
        return result

    def _ensure_number_unique(self, hotel_id: int, number: str) -> None:
        exists = self.uow.rooms.query(Room.hotel_id == hotel_id, Room.number == number).first()
        if exists:
            raise ConflictError(f"房间号 {number} 已存在")

    def _publish_status_changed(self, room_id: int, number: str, old: str, new: str, reason: str) -> None:
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=self.clock.now(),
            data=RoomStatusChangedData(
                room_id=room_id,
                room_number=number,
                old_status=old,
                new_status=new,
                reason=reason,
            ).to_dict(),
            source="room_service"
        ))
