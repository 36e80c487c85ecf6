"""
预订管理路由
预订生命周期、入住/退房、客人调整、清理任务与房态报表
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User
from frontdesk.models.schemas import (
    BookingCreate, BookingUpdate, BookingQuery, AddRoomRequest, CallLogCreate,
    CheckInRequest, GuestUpdate, RoomDatesUpdate, ActualTimesUpdate, MoveGuestRequest,
    SwapGuestsRequest, ChangeRoomRequest, ExtendStayRequest, CheckoutRequest,
    NoShowSweepRequest, AutoCancelRequest
)
from frontdesk.routers.common import respond, get_clock
from frontdesk.security.auth import require_manager, require_staff
from frontdesk.services.booking_service import BookingService
from frontdesk.services.checkin_service import CheckInService
from frontdesk.services.checkout_service import CheckOutService
from frontdesk.services.invoice_service import InvoiceService
from frontdesk.services.report_service import ReportService
from frontdesk.services.sweep_service import SweepService

router = APIRouter(prefix="/api/bookings", tags=["预订管理"])


# ============== 房态报表 ==============

@router.get("/room-map")
def get_room_map(
    hotel_id: Optional[int] = None,
    from_date: Optional[date] = None,
    days: int = 1,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """房态图"""
    return respond(ReportService(db, clock=clock).room_map(hotel_id, from_date, days))


@router.get("/room-availability")
def get_room_availability(
    hotel_id: Optional[int] = None,
    room_type_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """可用房间数量"""
    return respond(ReportService(db, clock=clock).room_availability(hotel_id, room_type_id, from_date, to_date))


@router.get("/peak-days")
def get_peak_days(
    hotel_id: int,
    from_date: date,
    to_date: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """高峰日（入住率超过阈值的日期）"""
    return respond(ReportService(db).peak_days(hotel_id, from_date, to_date))


@router.get("/booked-rooms")
def get_booked_rooms(
    hotel_id: int,
    day: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """某日已被预订的房间 id"""
    return respond(ReportService(db).booked_rooms_by_date(hotel_id, day))


@router.get("/active")
def list_active_bookings(
    hotel_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """进行中的预订"""
    return respond(BookingService(db).list_active_bookings(hotel_id))


# ============== 清理任务 ==============

@router.post("/sweeps/no-show")
def run_no_show_sweep(
    data: NoShowSweepRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_manager)
):
    """手动执行 no-show 清理"""
    return respond(SweepService(db, clock=clock).cancel_no_shows(data.target_date, data.hotel_id))


@router.post("/sweeps/auto-cancel")
def run_auto_cancel_sweep(
    data: AutoCancelRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_manager)
):
    """手动执行自动标记未到店"""
    return respond(SweepService(db, clock=clock).auto_cancel_bookings(data.hotel_id))


# ============== 预订房间操作 ==============

@router.post("/rooms/{booking_room_id}/check-in")
def check_in(
    booking_room_id: int,
    data: CheckInRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """办理入住"""
    return respond(CheckInService(db, clock=clock).check_in(booking_room_id, data))


@router.put("/rooms/{booking_room_id}/guests/{guest_id}")
def update_guest(
    booking_room_id: int,
    guest_id: int,
    data: GuestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """更新房间内客人信息"""
    return respond(CheckInService(db).update_guest_in_room(booking_room_id, guest_id, data))


@router.delete("/rooms/{booking_room_id}/guests/{guest_id}")
def remove_guest(
    booking_room_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """从房间移除客人"""
    return respond(CheckInService(db).remove_guest_from_room(booking_room_id, guest_id))


@router.put("/rooms/{booking_room_id}/dates")
def update_room_dates(
    booking_room_id: int,
    data: RoomDatesUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """修改房间入住区间"""
    return respond(CheckInService(db, clock=clock).update_room_dates(booking_room_id, data))


@router.put("/rooms/{booking_room_id}/actual-times")
def update_room_actual_times(
    booking_room_id: int,
    data: ActualTimesUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """修改实际入住/退房时间"""
    return respond(CheckInService(db, clock=clock).update_room_actual_times(booking_room_id, data))


@router.post("/rooms/{booking_room_id}/change-room")
def change_room(
    booking_room_id: int,
    data: ChangeRoomRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """换房"""
    return respond(CheckInService(db, clock=clock).change_room(booking_room_id, data.new_room_id))


@router.post("/rooms/{booking_room_id}/extend")
def extend_stay(
    booking_room_id: int,
    data: ExtendStayRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """续住"""
    return respond(CheckInService(db, clock=clock).extend_stay(booking_room_id, data))


@router.post("/move-guest")
def move_guest(
    data: MoveGuestRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """将客人移到另一房间"""
    return respond(CheckInService(db).move_guest(data))


@router.post("/swap-guests")
def swap_guests(
    data: SwapGuestsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """交换两个房间的客人"""
    return respond(CheckInService(db).swap_guests(data))


# ============== 预订管理 ==============

@router.get("")
def list_bookings(
    query: BookingQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取预订列表"""
    return respond(BookingService(db).list_bookings(query))


@router.post("")
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """创建预订"""
    return respond(BookingService(db, clock=clock).create_booking(data))


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取预订详情"""
    return respond(BookingService(db).get_booking(booking_id))


@router.put("/{booking_id}")
def update_booking(
    booking_id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """修改预订"""
    return respond(BookingService(db, clock=clock).update_booking(booking_id, data))


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """取消预订"""
    return respond(BookingService(db, clock=clock).cancel_booking(booking_id))


@router.post("/{booking_id}/confirm")
def confirm_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """确认预订"""
    return respond(BookingService(db, clock=clock).confirm_booking(booking_id))


@router.post("/{booking_id}/complete")
def complete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """完成预订"""
    return respond(BookingService(db, clock=clock).complete_booking(booking_id))


@router.post("/{booking_id}/check-out")
def check_out(
    booking_id: int,
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """办理退房"""
    return respond(CheckOutService(db, clock=clock).check_out(booking_id, data))


@router.post("/{booking_id}/rooms")
def add_room(
    booking_id: int,
    data: AddRoomRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """向预订追加房间"""
    return respond(
        BookingService(db, clock=clock).add_room_to_booking(data.booking_room_type_id, data.room_id, booking_id)
    )


@router.get("/{booking_id}/additional-charges")
def preview_additional_charges(
    booking_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """预览附加费用（延住、早到、多人）"""
    return respond(InvoiceService(db, clock=clock).preview_additional_charges(booking_id))


@router.get("/{booking_id}/early-checkout-fee")
def get_early_checkout_fee(
    booking_id: int,
    checkout_date: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """提前退房费用"""
    return respond(InvoiceService(db).calculate_early_checkout_fee(booking_id, checkout_date))


# ============== 通话记录 ==============

@router.get("/{booking_id}/call-logs")
def get_call_logs(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取通话记录"""
    return respond(BookingService(db).get_call_logs(booking_id))


@router.post("/{booking_id}/call-logs")
def add_call_log(
    booking_id: int,
    data: CallLogCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """添加通话记录"""
    return respond(BookingService(db, clock=clock).add_call_log(booking_id, data, staff_user_id=current_user.id))


@router.get("/{booking_id}/activities")
def get_activities(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取预订动态"""
    return respond(BookingService(db).get_activities(booking_id))
