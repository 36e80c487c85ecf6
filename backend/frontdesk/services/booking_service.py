"""
预订服务 - 本体操作层
管理预订聚合：Booking -> BookingRoomType -> BookingRoom -> BookingGuest
创建/修改在同一事务内完成，任一校验失败整体回滚
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import (
    Booking, BookingStatus, BookingRoomType, BookingRoom, BookingRoomStatus,
    BookingGuest, Guest, CallLog, BookingActivity, RoomStatus
)
from frontdesk.models.schemas import (
    BookingCreate, BookingUpdate, BookingQuery, BookingRoomCreate, BookingRoomTypeUpdate,
    BookingDetail, BookingRoomTypeResponse, BookingRoomResponse, BookingGuestResponse,
    CallLogCreate, CallLogResponse, BookingActivityResponse, GuestPayload
)
from frontdesk.models.events import EventType, BookingEventData
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.availability_service import AvailabilityChecker
from frontdesk.services.price_service import PricingEngine
from frontdesk.services.room_service import change_room_status
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import (
    ServiceResult, ValidationError, NotFoundError, ConflictError,
    run_in_transaction, run_query
)

logger = logging.getLogger(__name__)


# 预订状态流转：Completed 与 Cancelled 为终态
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.MISSING,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.MISSING,
    },
    BookingStatus.MISSING: {BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


def ensure_transition(booking: Booking, target: BookingStatus) -> None:
    """校验预订状态流转"""
    if target not in BOOKING_TRANSITIONS.get(booking.status, set()):
        raise ConflictError(f"预订当前状态为 {booking.status.value}，不能变更为 {target.value}")


def build_booking_detail(booking: Booking) -> BookingDetail:
    """预订聚合 -> 详情视图"""
    guest = booking.primary_guest
    room_types = []
    for brt in sorted(booking.room_types, key=lambda x: x.id):
        rooms = [
            BookingRoomResponse(
                booking_room_id=br.id,
                room_id=br.room_id,
                room_name=br.room_name,
                start_date=br.start_date,
                end_date=br.end_date,
                actual_check_in_at=br.actual_check_in_at,
                actual_check_out_at=br.actual_check_out_at,
                extended_date=br.extended_date,
                status=br.status,
                guests=[
                    BookingGuestResponse(
                        guest_id=bg.guest_id,
                        full_name=bg.guest.full_name if bg.guest else None,
                        phone=bg.guest.phone if bg.guest else None,
                        email=bg.guest.email if bg.guest else None,
                        id_card_type=bg.guest.id_card_type if bg.guest else None,
                        id_card_number=bg.guest.id_card_number if bg.guest else None,
                    )
                    for bg in br.guests
                ],
            )
            for br in sorted(brt.rooms, key=lambda x: x.id)
        ]
        room_types.append(BookingRoomTypeResponse(
            booking_room_type_id=brt.id,
            room_type_id=brt.room_type_id,
            room_type_name=brt.room_type_name,
            capacity=brt.capacity or 0,
            price=brt.price,
            start_date=brt.start_date,
            end_date=brt.end_date,
            total_room=brt.total_room or 0,
            booking_rooms=rooms,
        ))

    return BookingDetail(
        id=booking.id,
        hotel_id=booking.hotel_id,
        primary_guest_id=booking.primary_guest_id,
        primary_guest_name=guest.full_name if guest else None,
        phone=guest.phone if guest else None,
        email=guest.email if guest else None,
        status=booking.status,
        start_date=booking.start_date,
        end_date=booking.end_date,
        deposit_amount=booking.deposit_amount or Decimal("0"),
        discount_amount=booking.discount_amount or Decimal("0"),
        total_amount=booking.total_amount or Decimal("0"),
        default_amount=booking.default_amount or Decimal("0"),
        left_amount=booking.left_amount or Decimal("0"),
        promotion_code=booking.promotion_code,
        promotion_value=booking.promotion_value or Decimal("0"),
        additional_amount=booking.additional_amount or Decimal("0"),
        additional_notes=booking.additional_notes,
        additional_booking_amount=booking.additional_booking_amount or Decimal("0"),
        additional_booking_notes=booking.additional_booking_notes,
        notes=booking.notes,
        created_at=booking.created_at,
        room_types=room_types,
        call_logs=[
            CallLogResponse.model_validate(c)
            for c in sorted(booking.call_logs, key=lambda c: c.call_time, reverse=True)
        ],
    )


def load_booking_detail(uow: UnitOfWork, booking_id: int) -> BookingDetail:
    """重新加载预订聚合并生成详情（丢弃会话中过期的关联集合）"""
    uow.flush()
    uow.db.expire_all()
    booking = uow.bookings.find(booking_id)
    if not booking:
        raise NotFoundError("预订不存在")
    return build_booking_detail(booking)


class BookingService:
    """预订服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 查询 ==============

    def get_booking(self, booking_id: int) -> ServiceResult:
        """获取预订详情"""
        def run():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            return build_booking_detail(booking)
        return run_query("查询预订", run)

    def list_bookings(self, query: BookingQuery) -> ServiceResult:
        """预订列表（分页）"""
        def run():
            q = self.uow.bookings.query()
            if query.hotel_id is not None:
                q = q.filter(Booking.hotel_id == query.hotel_id)
            if query.status is not None:
                q = q.filter(Booking.status == query.status)
            if query.start_from is not None:
                q = q.filter(Booking.start_date >= query.start_from)
            if query.start_to is not None:
                q = q.filter(Booking.start_date <= query.start_to)
            if query.guest and query.guest.strip():
                keyword = query.guest.strip()
                q = q.filter(Booking.primary_guest.has(or_(
                    Guest.full_name.contains(keyword), Guest.phone.contains(keyword)
                )))
            if query.room_number and query.room_number.strip():
                number = query.room_number.strip()
                q = q.filter(Booking.room_types.any(
                    BookingRoomType.rooms.any(BookingRoom.room_name.contains(number))
                ))

            order = Booking.created_at.asc() if query.sort_dir.lower() == "asc" else Booking.created_at.desc()
            total = q.count()
            items = q.order_by(order, Booking.id.desc()) \
                .offset((query.page - 1) * query.page_size).limit(query.page_size).all()
            return ServiceResult.ok(
                [build_booking_detail(b) for b in items],
                meta={"total": total, "page": query.page, "pageSize": query.page_size},
            )
        return run_query("查询预订列表", run)

    def list_active_bookings(self, hotel_id: Optional[int] = None) -> ServiceResult:
        """未结束的预订"""
        def run():
            q = self.uow.bookings.query(Booking.status.notin_(TERMINAL_STATUSES))
            if hotel_id is not None:
                q = q.filter(Booking.hotel_id == hotel_id)
            return [build_booking_detail(b) for b in q.order_by(Booking.created_at.desc()).all()]
        return run_query("查询在店预订", run)

    # ============== 创建 ==============

    def create_booking(self, data: BookingCreate) -> ServiceResult:
        """
        创建预订

        1. 校验酒店与房型
        2. 创建主客人与预订（Pending）
        3. 逐个房型、房间做归属与可用性校验后写入
        4. 房间未指定客人时默认关联主客人
        """
        def operation():
            hotel = self.uow.hotels.find(data.hotel_id)
            if not hotel:
                raise NotFoundError("酒店不存在")
            if not data.room_types:
                raise ValidationError("至少需要选择一种房型")
            if data.end_date <= data.start_date:
                raise ValidationError("离店时间必须晚于入住时间")

            primary = self.uow.guests.add(Guest(hotel_id=hotel.id, **data.primary_guest.model_dump()))
            booking = self.uow.bookings.add(Booking(
                hotel_id=hotel.id,
                primary_guest_id=primary.id,
                status=BookingStatus.PENDING,
                start_date=data.start_date,
                end_date=data.end_date,
                deposit_amount=data.deposit_amount,
                discount_amount=data.discount_amount,
                total_amount=data.total_amount,
                default_amount=data.total_amount,
                left_amount=data.left_amount,
                notes=data.notes,
                created_at=self.clock.now(),
            ))

            checker = AvailabilityChecker(self.uow)
            for rt_data in data.room_types:
                room_type = self.uow.room_types.find(rt_data.room_type_id)
                if not room_type or room_type.hotel_id != hotel.id:
                    raise ValidationError("房型不属于该酒店")
                if rt_data.end_date <= rt_data.start_date:
                    raise ValidationError(f"房型 {room_type.name} 的日期区间无效")

                brt = self.uow.booking_room_types.add(BookingRoomType(
                    booking_id=booking.id,
                    room_type_id=room_type.id,
                    room_type_name=room_type.name,
                    capacity=room_type.capacity,
                    price=rt_data.price if rt_data.price is not None else room_type.base_price,
                    start_date=rt_data.start_date,
                    end_date=rt_data.end_date,
                    total_room=rt_data.total_room or 0,
                ))
                for room_data in rt_data.rooms:
                    self._assign_room(brt, hotel.id, room_data, primary, checker)

            logger.info(f"Booking {booking.id} created for hotel {hotel.id}")
            return booking.id

        result = run_in_transaction(self.uow, "创建预订", operation, message="预订创建成功")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            self._publish_booking_event(EventType.BOOKING_CREATED, result.data)
        return result

    def _assign_room(self, brt: BookingRoomType, hotel_id: int, room_data: BookingRoomCreate,
                     primary: Guest, checker: AvailabilityChecker) -> BookingRoom:
        """校验并写入一个预订房间及其客人"""
        if room_data.start_date.date() >= room_data.end_date.date():
            raise ValidationError("入住日期必须早于离店日期")
        if room_data.start_date < brt.start_date or room_data.end_date > brt.end_date:
            raise ValidationError("房间日期超出房型预订区间")

        room = self.uow.rooms.find(room_data.room_id)
        if not room or room.hotel_id != hotel_id or room.room_type_id != brt.room_type_id:
            raise ValidationError("房间不属于该酒店或房型不匹配")
        checker.ensure_available(room, room_data.start_date, room_data.end_date)

        booking_room = self.uow.booking_rooms.add(BookingRoom(
            booking_room_type_id=brt.id,
            room_id=room.id,
            room_name=room.number,
            start_date=room_data.start_date,
            end_date=room_data.end_date,
            status=BookingRoomStatus.PENDING,
        ))

        if not room_data.guests:
            self.uow.booking_guests.add(BookingGuest(booking_room_id=booking_room.id, guest_id=primary.id))
        else:
            for payload in room_data.guests:
                guest = self._resolve_guest(hotel_id, payload)
                self.uow.booking_guests.add(BookingGuest(booking_room_id=booking_room.id, guest_id=guest.id))
        return booking_room

    def _resolve_guest(self, hotel_id: int, payload: GuestPayload) -> Guest:
        """引用已有客人，或按载荷新建"""
        if payload.guest_id is not None:
            guest = self.uow.guests.find(payload.guest_id)
            if not guest:
                raise NotFoundError(f"客人 {payload.guest_id} 不存在")
            return guest
        if not payload.full_name:
            raise ValidationError("客人姓名不能为空")
        return self.uow.guests.add(Guest(
            hotel_id=hotel_id,
            full_name=payload.full_name,
            phone=payload.phone,
            email=payload.email,
            id_card_type=payload.id_card_type,
            id_card_number=payload.id_card_number,
        ))

    # ============== 修改 ==============

    def update_booking(self, booking_id: int, data: BookingUpdate) -> ServiceResult:
        """
        修改预订

        - 未出现在请求中的房型行被移除，其余新增或更新
        - 预订日期变化时覆盖各房型与房间日期，并清除续住日期
        - 房间数减少时取消多余房间：优先无客人的房间
        """
        def operation():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            if booking.status in TERMINAL_STATUSES:
                raise ConflictError("预订已结束，不能修改")

            new_start = data.start_date or booking.start_date
            new_end = data.end_date or booking.end_date
            if new_end <= new_start:
                raise ValidationError("离店时间必须晚于入住时间")
            dates_changed = new_start != booking.start_date or new_end != booking.end_date

            if data.room_types is not None:
                self._reconcile_room_types(booking, data.room_types, dates_changed, new_start, new_end)

            booking.start_date = new_start
            booking.end_date = new_end
            changes = data.model_dump(exclude_unset=True,
                                      include={"deposit_amount", "discount_amount", "total_amount",
                                               "left_amount", "notes"})
            for key, value in changes.items():
                setattr(booking, key, value)
            if data.total_amount is not None:
                booking.default_amount = data.total_amount

            if data.primary_guest is not None and booking.primary_guest_id:
                guest = self.uow.guests.find(booking.primary_guest_id)
                if guest:
                    self.uow.guests.update(guest, **data.primary_guest.model_dump(exclude_unset=True))

            self._reset_room_dates(booking, dates_changed)
            self.uow.bookings.save_changes()
            logger.info(f"Booking {booking.id} updated (dates_changed={dates_changed})")
            return booking.id

        result = run_in_transaction(self.uow, "修改预订", operation, message="预订已更新")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def _reconcile_room_types(self, booking: Booking, requested: List[BookingRoomTypeUpdate],
                              dates_changed: bool, new_start: datetime, new_end: datetime) -> None:
        existing = self.uow.booking_room_types.query(BookingRoomType.booking_id == booking.id).all()
        requested_by_type: Dict[int, BookingRoomTypeUpdate] = {rt.room_type_id: rt for rt in requested}

        for brt in existing:
            if brt.room_type_id in requested_by_type:
                continue
            in_house = self.uow.booking_rooms.query(
                BookingRoom.booking_room_type_id == brt.id,
                BookingRoom.status == BookingRoomStatus.CHECKED_IN,
            ).first()
            if in_house:
                raise ConflictError(f"房型 {brt.room_type_name} 有已入住房间，不能移除")
            self.uow.booking_room_types.remove(brt)

        existing_by_type = {brt.room_type_id: brt for brt in existing}
        for room_type_id, rt_data in requested_by_type.items():
            start = new_start if dates_changed else (rt_data.start_date or new_start)
            end = new_end if dates_changed else (rt_data.end_date or new_end)
            brt = existing_by_type.get(room_type_id)
            if brt is None:
                room_type = self.uow.room_types.find(room_type_id)
                if not room_type or room_type.hotel_id != booking.hotel_id:
                    raise ValidationError("房型不属于该酒店")
                self.uow.booking_room_types.add(BookingRoomType(
                    booking_id=booking.id,
                    room_type_id=room_type.id,
                    room_type_name=room_type.name,
                    capacity=room_type.capacity,
                    price=rt_data.price if rt_data.price is not None else room_type.base_price,
                    start_date=start,
                    end_date=end,
                    total_room=rt_data.total_room or 0,
                ))
                continue

            brt.start_date = start
            brt.end_date = end
            if rt_data.price is not None:
                brt.price = rt_data.price
            if rt_data.total_room is not None:
                self._rebalance_rooms(brt, rt_data.total_room)

    def _rebalance_rooms(self, brt: BookingRoomType, target: int) -> None:
        """调整房间数：增加只改计数，减少时取消多余的待入住房间"""
        current = brt.total_room or 0
        if target < current:
            diff = current - target
            rooms = self.uow.booking_rooms.query(
                BookingRoom.booking_room_type_id == brt.id,
                BookingRoom.status == BookingRoomStatus.PENDING,
            ).order_by(BookingRoom.id).all()
            guest_counts = dict(
                self.uow.booking_guests.query(
                    BookingGuest.booking_room_id.in_([r.id for r in rooms])
                ).with_entities(BookingGuest.booking_room_id, func.count(BookingGuest.id))
                .group_by(BookingGuest.booking_room_id).all()
            ) if rooms else {}

            # 无客人的房间优先取消，其次才是有客人的房间
            candidates = sorted(rooms, key=lambda r: (guest_counts.get(r.id, 0) > 0, r.id))
            now = self.clock.now()
            for booking_room in candidates[:diff]:
                booking_room.status = BookingRoomStatus.CANCELLED
                room = self.uow.rooms.find(booking_room.room_id)
                if room and room.status != RoomStatus.OUT_OF_SERVICE:
                    change_room_status(self.uow, room, RoomStatus.AVAILABLE, now, note="减少预订房间数")
                logger.info(f"BookingRoom {booking_room.id} cancelled by room-count reduction")
        brt.total_room = target

    def _reset_room_dates(self, booking: Booking, dates_changed: bool) -> None:
        """房间日期跟随预订日期；区间被放宽的房间重新做冲突检查"""
        self.uow.flush()
        brt_ids = [
            row.id for row in self.uow.booking_room_types.query(BookingRoomType.booking_id == booking.id).all()
        ]
        if not brt_ids:
            return
        checker = AvailabilityChecker(self.uow)
        rooms = self.uow.booking_rooms.query(BookingRoom.booking_room_type_id.in_(brt_ids)).all()
        for booking_room in rooms:
            moved = (booking_room.start_date != booking.start_date
                     or booking_room.end_date != booking.end_date)
            if moved and booking_room.status != BookingRoomStatus.CANCELLED:
                room = self.uow.rooms.find(booking_room.room_id)
                checker.ensure_available(room, booking.start_date, booking.end_date,
                                         exclude_booking_room_id=booking_room.id)
            booking_room.start_date = booking.start_date
            booking_room.end_date = booking.end_date
            if dates_changed:
                booking_room.extended_date = None
        self.uow.booking_rooms.save_changes()

    # ============== 状态流转 ==============

    def cancel_booking(self, booking_id: int) -> ServiceResult:
        """取消预订：所有预订房间取消，房间释放为空闲"""
        def operation():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            ensure_transition(booking, BookingStatus.CANCELLED)

            booking.status = BookingStatus.CANCELLED
            now = self.clock.now()
            for booking_room in booking.booking_rooms:
                booking_room.status = BookingRoomStatus.CANCELLED
                room = self.uow.rooms.find(booking_room.room_id)
                if room and room.status != RoomStatus.OUT_OF_SERVICE:
                    change_room_status(self.uow, room, RoomStatus.AVAILABLE, now, note="预订取消")
            self.uow.bookings.save_changes()
            logger.info(f"Booking {booking.id} cancelled")
            return booking.id

        return self._transition_result(operation, "取消预订", "预订已取消", EventType.BOOKING_CANCELLED)

    def confirm_booking(self, booking_id: int) -> ServiceResult:
        """确认预订"""
        def operation():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            ensure_transition(booking, BookingStatus.CONFIRMED)
            booking.status = BookingStatus.CONFIRMED
            self.uow.bookings.save_changes()
            return booking.id

        return self._transition_result(operation, "确认预订", "预订已确认", EventType.BOOKING_CONFIRMED)

    def complete_booking(self, booking_id: int) -> ServiceResult:
        """完成预订：按计价引擎重算总价，待收 = max(0, 总价 - 押金)"""
        def operation():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            ensure_transition(booking, BookingStatus.COMPLETED)

            total = PricingEngine(self.uow).price_booking(booking)
            booking.total_amount = total
            booking.left_amount = max(Decimal("0"), total - (booking.deposit_amount or Decimal("0")))
            booking.status = BookingStatus.COMPLETED
            self.uow.bookings.save_changes()
            logger.info(f"Booking {booking.id} completed, total={total}")
            return booking.id

        return self._transition_result(operation, "完成预订", "预订已完成", EventType.BOOKING_COMPLETED)

    def _transition_result(self, operation, action: str, message: str, event_type: EventType) -> ServiceResult:
        result = run_in_transaction(self.uow, action, operation, message=message)
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            self._publish_booking_event(event_type, result.data)
        return result

    # ============== 附加操作 ==============

    def add_room_to_booking(self, booking_room_type_id: int, room_id: int,
                            booking_id: Optional[int] = None) -> ServiceResult:
        """向预订房型行追加房间，日期取房型行区间"""
        def operation():
            brt = self.uow.booking_room_types.find(booking_room_type_id)
            if not brt or (booking_id is not None and brt.booking_id != booking_id):
                raise NotFoundError("预订房型不存在")
            booking = self.uow.bookings.find(brt.booking_id)
            if booking.status in TERMINAL_STATUSES:
                raise ConflictError("预订已结束，不能添加房间")

            room = self.uow.rooms.find(room_id)
            if not room or room.hotel_id != booking.hotel_id or room.room_type_id != brt.room_type_id:
                raise ValidationError("房间不属于该酒店或房型不匹配")
            AvailabilityChecker(self.uow).ensure_available(room, brt.start_date, brt.end_date)

            self.uow.booking_rooms.add(BookingRoom(
                booking_room_type_id=brt.id,
                room_id=room.id,
                room_name=room.number,
                start_date=brt.start_date,
                end_date=brt.end_date,
                status=BookingRoomStatus.PENDING,
            ))
            assigned = self.uow.booking_rooms.query(
                BookingRoom.booking_room_type_id == brt.id,
                BookingRoom.status != BookingRoomStatus.CANCELLED,
            ).count()
            if assigned > (brt.total_room or 0):
                brt.total_room = assigned
            return booking.id

        result = run_in_transaction(self.uow, "添加房间", operation, message="添加房间成功")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def add_call_log(self, booking_id: int, data: CallLogCreate,
                     staff_user_id: Optional[int] = None) -> ServiceResult:
        """记录电话沟通"""
        def operation():
            if not self.uow.bookings.find(booking_id):
                raise NotFoundError("预订不存在")
            log = self.uow.call_logs.add(CallLog(
                booking_id=booking_id,
                call_time=data.call_time or self.clock.now(),
                staff_user_id=staff_user_id,
                purpose=data.purpose,
                result_notes=data.result_notes,
            ))
            return CallLogResponse.model_validate(log)
        return run_in_transaction(self.uow, "记录通话", operation, message="通话记录已保存")

    def get_call_logs(self, booking_id: int) -> ServiceResult:
        """通话记录（最新在前）"""
        def run():
            if not self.uow.bookings.find(booking_id):
                raise NotFoundError("预订不存在")
            logs = self.uow.call_logs.query(CallLog.booking_id == booking_id) \
                .order_by(CallLog.call_time.desc()).all()
            return [CallLogResponse.model_validate(c) for c in logs]
        return run_query("查询通话记录", run)

    def get_activities(self, booking_id: int) -> ServiceResult:
        """预订动态（按发生时间先后）"""
        def run():
            if not self.uow.bookings.find(booking_id):
                raise NotFoundError("预订不存在")
            rows = self.uow.booking_activities.query(BookingActivity.booking_id == booking_id) \
                .order_by(BookingActivity.occurred_at, BookingActivity.id).all()
            return [BookingActivityResponse.model_validate(a) for a in rows]
        return run_query("查询预订动态", run)

    def _publish_booking_event(self, event_type: EventType, detail: BookingDetail) -> None:
        self._publish_event(Event(
            event_type=event_type,
            timestamp=self.clock.now(),
            data=BookingEventData(
                booking_id=detail.id,
                hotel_id=detail.hotel_id,
                status=detail.status.value,
                total_amount=float(detail.total_amount),
                left_amount=float(detail.left_amount),
            ).to_dict(),
            source="booking_service"
        ))
