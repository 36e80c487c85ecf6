"""
入住服务 - 本体操作层
处理入住、客人登记与调整、房间日期、换房与续住
"""
import logging
from decimal import Decimal
from typing import Callable, Optional, Tuple
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import (
    Booking, BookingRoom, BookingRoomStatus, BookingRoomType, BookingGuest, Guest, RoomStatus
)
from frontdesk.models.schemas import (
    CheckInRequest, GuestPayload, GuestUpdate, RoomDatesUpdate, ActualTimesUpdate,
    MoveGuestRequest, SwapGuestsRequest, ExtendStayRequest
)
from frontdesk.models.events import (
    EventType, GuestCheckedInData, GuestCheckedOutData, RoomChangedData, StayExtendedData
)
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.availability_service import AvailabilityChecker
from frontdesk.services.booking_service import TERMINAL_STATUSES, load_booking_detail
from frontdesk.services.room_service import change_room_status
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import (
    ServiceResult, ValidationError, NotFoundError, ConflictError, run_in_transaction
)

logger = logging.getLogger(__name__)


class CheckInService:
    """入住服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def _load(self, booking_room_id: int) -> Tuple[BookingRoom, BookingRoomType, Booking]:
        """加载预订房间及其所属房型行与预订"""
        booking_room = self.uow.booking_rooms.find(booking_room_id)
        if not booking_room:
            raise NotFoundError("预订房间不存在")
        brt = self.uow.booking_room_types.find(booking_room.booking_room_type_id)
        booking = self.uow.bookings.find(brt.booking_id)
        return booking_room, brt, booking

    def _load_active(self, booking_room_id: int) -> Tuple[BookingRoom, BookingRoomType, Booking]:
        booking_room, brt, booking = self._load(booking_room_id)
        if booking.status in TERMINAL_STATUSES:
            raise ConflictError("预订已结束，不能操作")
        if booking_room.status == BookingRoomStatus.CANCELLED:
            raise ConflictError("预订房间已取消")
        return booking_room, brt, booking

    def _find_link(self, booking_room_id: int, guest_id: int) -> Optional[BookingGuest]:
        return self.uow.booking_guests.query(
            BookingGuest.booking_room_id == booking_room_id,
            BookingGuest.guest_id == guest_id,
        ).first()

    # ============== 入住 ==============

    def check_in(self, booking_room_id: int, data: CheckInRequest) -> ServiceResult:
        """
        办理入住

        1. 按电话在本酒店内查找或创建客人并关联到预订房间
        2. 首次入住时写入实际入住时间，房间转为入住中
        3. 重复调用只补充客人，不改变状态
        """
        events = []

        def operation():
            booking_room, _, booking = self._load_active(booking_room_id)
            if booking_room.status == BookingRoomStatus.CHECKED_OUT:
                raise ConflictError("房间已退房，不能再次入住")

            guest_ids = []
            for payload in data.guests:
                guest = self._upsert_guest(booking.hotel_id, payload)
                if not self._find_link(booking_room.id, guest.id):
                    self.uow.booking_guests.add(BookingGuest(booking_room_id=booking_room.id, guest_id=guest.id))
                guest_ids.append(guest.id)

            if booking_room.status != BookingRoomStatus.CHECKED_IN:
                check_in_at = data.actual_check_in_at or self.clock.now()
                booking_room.status = BookingRoomStatus.CHECKED_IN
                booking_room.actual_check_in_at = check_in_at
                room = self.uow.rooms.find(booking_room.room_id)
                change_room_status(self.uow, room, RoomStatus.OCCUPIED, check_in_at, note="入住")
                events.append(GuestCheckedInData(
                    booking_id=booking.id,
                    booking_room_id=booking_room.id,
                    room_id=room.id,
                    room_number=room.number,
                    guest_ids=guest_ids,
                    check_in_time=check_in_at,
                ))
                logger.info(f"BookingRoom {booking_room.id} checked in to room {room.number}")
            self.uow.booking_rooms.save_changes()
            return booking.id

        result = run_in_transaction(self.uow, "办理入住", operation, message="入住成功")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            for data_ in events:
                self._publish(EventType.GUEST_CHECKED_IN, data_.to_dict())
        return result

    def _upsert_guest(self, hotel_id: int, payload: GuestPayload) -> Guest:
        """按 guest_id 或电话（酒店内）复用客人，否则新建"""
        if payload.guest_id is not None:
            guest = self.uow.guests.find(payload.guest_id)
            if not guest:
                raise NotFoundError(f"客人 {payload.guest_id} 不存在")
            return guest

        changes = payload.model_dump(exclude={"guest_id"}, exclude_none=True)
        if payload.phone:
            guest = self.uow.guests.query(Guest.hotel_id == hotel_id, Guest.phone == payload.phone).first()
            if guest:
                return self.uow.guests.update(guest, **changes)
        if not payload.full_name:
            raise ValidationError("客人姓名不能为空")
        return self.uow.guests.add(Guest(hotel_id=hotel_id, **changes))

    # ============== 客人调整 ==============

    def update_guest_in_room(self, booking_room_id: int, guest_id: int, data: GuestUpdate) -> ServiceResult:
        """修改房间内客人信息"""
        def operation():
            booking_room, _, booking = self._load(booking_room_id)
            if not self._find_link(booking_room.id, guest_id):
                raise NotFoundError("该客人不在此房间")
            guest = self.uow.guests.find(guest_id)
            self.uow.guests.update(guest, **data.model_dump(exclude_unset=True))
            return booking.id

        result = run_in_transaction(self.uow, "修改客人", operation, message="客人信息已更新")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def remove_guest_from_room(self, booking_room_id: int, guest_id: int) -> ServiceResult:
        """将客人移出房间（客人档案保留）"""
        def operation():
            booking_room, _, booking = self._load(booking_room_id)
            link = self._find_link(booking_room.id, guest_id)
            if not link:
                raise NotFoundError("该客人不在此房间")
            self.uow.booking_guests.remove(link)
            return booking.id

        result = run_in_transaction(self.uow, "移除客人", operation, message="客人已移出")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def move_guest(self, data: MoveGuestRequest) -> ServiceResult:
        """同一预订内将客人移到另一房间（可跨房型）"""
        def operation():
            source, _, booking = self._load_active(data.booking_room_id)
            target, _, target_booking = self._load_active(data.target_booking_room_id)
            if booking.id != target_booking.id:
                raise ValidationError("只能在同一预订的房间之间移动客人")
            link = self._find_link(source.id, data.guest_id)
            if not link:
                raise NotFoundError("该客人不在原房间")
            if self._find_link(target.id, data.guest_id):
                raise ConflictError("客人已在目标房间")
            self.uow.booking_guests.update(link, booking_room_id=target.id)
            return booking.id

        result = run_in_transaction(self.uow, "移动客人", operation, message="客人已移动")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def swap_guests(self, data: SwapGuestsRequest) -> ServiceResult:
        """同一预订、同一房型行内两位客人互换房间"""
        def operation():
            source, source_brt, booking = self._load_active(data.booking_room_id)
            target, target_brt, target_booking = self._load_active(data.target_booking_room_id)
            if booking.id != target_booking.id:
                raise ValidationError("只能在同一预订的房间之间交换客人")
            if source_brt.id != target_brt.id:
                raise ValidationError("只能在同一房型的房间之间交换客人")

            first = self._find_link(source.id, data.guest_id)
            second = self._find_link(target.id, data.target_guest_id)
            if not first or not second:
                raise NotFoundError("客人与房间的关联不存在")
            first.booking_room_id = target.id
            second.booking_room_id = source.id
            self.uow.booking_guests.save_changes()
            return booking.id

        result = run_in_transaction(self.uow, "交换客人", operation, message="客人已交换")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    # ============== 日期与时间 ==============

    def update_room_dates(self, booking_room_id: int, data: RoomDatesUpdate) -> ServiceResult:
        """修改房间计划日期：须在房型行区间内且不与同房间其他预订重叠"""
        def operation():
            booking_room, brt, booking = self._load_active(booking_room_id)
            if data.start_date < brt.start_date or data.end_date > brt.end_date:
                raise ValidationError("房间日期超出房型预订区间")
            room = self.uow.rooms.find(booking_room.room_id)
            AvailabilityChecker(self.uow).ensure_available(
                room, data.start_date, data.end_date, exclude_booking_room_id=booking_room.id
            )
            self.uow.booking_rooms.update(booking_room, start_date=data.start_date, end_date=data.end_date)
            return booking.id

        result = run_in_transaction(self.uow, "修改房间日期", operation, message="房间日期已更新")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
        return result

    def update_room_actual_times(self, booking_room_id: int, data: ActualTimesUpdate) -> ServiceResult:
        """
        修改实际入住/退房时间

        入住时间须在计划区间 [start, end] 内，退房时间须晚于入住时间且不早于 start；
        写入入住时间视为入住，写入退房时间视为退房
        """
        events = []

        def operation():
            booking_room, _, booking = self._load_active(booking_room_id)
            check_in_at = data.actual_check_in_at
            check_out_at = data.actual_check_out_at
            if check_in_at is None and check_out_at is None:
                raise ValidationError("请至少提供一个时间")

            effective_in = check_in_at or booking_room.actual_check_in_at
            if check_in_at is not None and not (booking_room.start_date <= check_in_at <= booking_room.end_date):
                raise ValidationError("实际入住时间必须在预订区间内")
            if check_out_at is not None:
                if check_out_at < booking_room.start_date:
                    raise ValidationError("实际退房时间不能早于入住日期")
                if effective_in is not None and check_out_at <= effective_in:
                    raise ValidationError("实际退房时间必须晚于入住时间")

            room = self.uow.rooms.find(booking_room.room_id)
            if check_in_at is not None:
                booking_room.actual_check_in_at = check_in_at
                if booking_room.status == BookingRoomStatus.PENDING:
                    booking_room.status = BookingRoomStatus.CHECKED_IN
                change_room_status(self.uow, room, RoomStatus.OCCUPIED, check_in_at, note="修改入住时间")
            if check_out_at is not None:
                booking_room.actual_check_out_at = check_out_at
                booking_room.status = BookingRoomStatus.CHECKED_OUT
                change_room_status(self.uow, room, RoomStatus.DIRTY, check_out_at, note="修改退房时间")
                events.append(GuestCheckedOutData(
                    booking_id=booking.id,
                    room_ids=[room.id],
                    check_out_time=check_out_at,
                    total_amount=float(booking.total_amount or 0),
                    left_amount=float(booking.left_amount or 0),
                ))
            self.uow.booking_rooms.save_changes()
            return booking.id

        result = run_in_transaction(self.uow, "修改实际时间", operation, message="实际时间已更新")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            for data_ in events:
                self._publish(EventType.GUEST_CHECKED_OUT, data_.to_dict())
        return result

    # ============== 换房与续住 ==============

    def change_room(self, booking_room_id: int, new_room_id: int) -> ServiceResult:
        """换房：原房间释放，新房间在已入住时转为入住中"""
        events = []

        def operation():
            booking_room, _, booking = self._load_active(booking_room_id)
            if booking_room.status == BookingRoomStatus.CHECKED_OUT:
                raise ConflictError("房间已退房，不能换房")
            new_room = self.uow.rooms.find(new_room_id)
            if not new_room or new_room.hotel_id != booking.hotel_id:
                raise ValidationError("目标房间不属于该酒店")
            if new_room.id == booking_room.room_id:
                raise ValidationError("目标房间与当前房间相同")

            end = booking_room.extended_date or booking_room.end_date
            AvailabilityChecker(self.uow).ensure_available(
                new_room, booking_room.start_date, end, exclude_booking_room_id=booking_room.id
            )

            now = self.clock.now()
            old_room = self.uow.rooms.find(booking_room.room_id)
            change_room_status(self.uow, old_room, RoomStatus.AVAILABLE, now, note=f"换房至 {new_room.number}")
            if booking_room.status == BookingRoomStatus.CHECKED_IN:
                change_room_status(self.uow, new_room, RoomStatus.OCCUPIED, now, note=f"由 {old_room.number} 换入")

            booking_room.room_id = new_room.id
            booking_room.room_name = new_room.number
            self.uow.booking_rooms.save_changes()
            events.append(RoomChangedData(
                booking_id=booking.id,
                booking_room_id=booking_room.id,
                old_room_id=old_room.id,
                new_room_id=new_room.id,
            ))
            logger.info(f"BookingRoom {booking_room.id} moved {old_room.number} -> {new_room.number}")
            return booking.id

        result = run_in_transaction(self.uow, "换房", operation, message="换房成功")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            for data_ in events:
                self._publish(EventType.ROOM_CHANGED, data_.to_dict())
        return result

    def extend_stay(self, booking_room_id: int, data: ExtendStayRequest) -> ServiceResult:
        """
        续住

        新退房日期须晚于当前退房日期（已续住时以续住日期为准），续住区间不能与同房间其他预订重叠；
        预订总价与待收各增加 价格 × 晚数，end_date 不变
        """
        events = []

        def operation():
            booking_room, brt, booking = self._load_active(booking_room_id)
            if booking_room.status == BookingRoomStatus.CHECKED_OUT:
                raise ConflictError("房间已退房，不能续住")

            current_end = booking_room.extended_date or booking_room.end_date
            if data.new_end_date.date() <= current_end.date():
                raise ValidationError("续住日期必须晚于当前退房日期")

            conflict = AvailabilityChecker(self.uow).find_extension_conflict(
                booking_room, current_end, data.new_end_date
            )
            if conflict:
                raise ValidationError(f"房间 {booking_room.room_name} 在续住期间已被预订")

            nights = (data.new_end_date.date() - current_end.date()).days
            extra = Decimal(brt.price) * nights
            booking.total_amount = (booking.total_amount or Decimal("0")) + extra
            booking.left_amount = (booking.left_amount or Decimal("0")) + extra
            booking_room.extended_date = data.new_end_date
            self.uow.bookings.save_changes()

            events.append(StayExtendedData(
                booking_id=booking.id,
                booking_room_id=booking_room.id,
                old_end=current_end.isoformat(),
                new_end=data.new_end_date.isoformat(),
                extra_nights=nights,
                extra_amount=float(extra),
            ))
            logger.info(f"BookingRoom {booking_room.id} extended by {nights} night(s), +{extra}")
            return booking.id

        result = run_in_transaction(self.uow, "续住", operation, message="续住成功")
        if result.success:
            result.data = load_booking_detail(self.uow, result.data)
            for data_ in events:
                self._publish(EventType.STAY_EXTENDED, data_.to_dict())
        return result

    def _publish(self, event_type: EventType, data: dict) -> None:
        self._publish_event(Event(
            event_type=event_type,
            timestamp=self.clock.now(),
            data=data,
            source="checkin_service"
        ))
