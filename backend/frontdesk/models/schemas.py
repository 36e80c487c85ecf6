"""
Pydantic 模型 - API 请求/响应数据结构
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field, model_validator
from frontdesk.models.ontology import (
    RoomStatus, BookingStatus, BookingRoomStatus, InvoiceStatus,
    InvoiceLineSourceType, OrderStatus, UserRole
)

T = TypeVar("T")


# ============== 通用响应 ==============

class PageMeta(BaseModel):
    """分页信息"""
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    page_size: int = Field(serialization_alias="pageSize")


class ApiResponse(BaseModel, Generic[T]):
    """统一响应信封 {isSuccess, data, message, meta}"""
    model_config = ConfigDict(populate_by_name=True)

    is_success: bool = Field(serialization_alias="isSuccess")
    data: Optional[T] = None
    message: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class PageQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=500)


# ============== Auth Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: "UserResponse"


# ============== Room Schemas ==============

class RoomTypeCreate(BaseModel):
    hotel_id: int
    name: str = Field(..., max_length=50)
    description: Optional[str] = None
    capacity: int = Field(default=2, gt=0)
    base_price: Decimal = Field(..., ge=0)


class RoomTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    name: str
    description: Optional[str] = None
    capacity: int
    base_price: Decimal
    is_active: bool


class RoomTypePriceItem(BaseModel):
    """日期价格覆盖；price 为空表示删除该日覆盖"""
    price_date: date
    price: Optional[Decimal] = Field(default=None, ge=0)


class RoomTypePricesUpdate(BaseModel):
    prices: List[RoomTypePriceItem]


class RoomCreate(BaseModel):
    hotel_id: int
    room_type_id: int
    number: str = Field(..., max_length=10)
    floor: int = 1


class RoomUpdate(BaseModel):
    room_type_id: Optional[int] = None
    number: Optional[str] = Field(default=None, max_length=10)
    floor: Optional[int] = None
    status: Optional[RoomStatus] = None


class RoomOutOfService(BaseModel):
    reason: Optional[str] = None
    until: Optional[datetime] = None


class RoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    room_type_id: int
    number: str
    floor: int
    status: RoomStatus
    out_of_service_reason: Optional[str] = None
    out_of_service_until: Optional[datetime] = None
    room_type_name: Optional[str] = None


class RoomQuery(PageQuery):
    hotel_id: Optional[int] = None
    status: Optional[RoomStatus] = None
    floor: Optional[int] = None
    room_type_id: Optional[int] = None


# ============== Booking Schemas ==============

class GuestPayload(BaseModel):
    """客人信息；带 guest_id 时引用已有客人"""
    guest_id: Optional[int] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    id_card_type: Optional[str] = None
    id_card_number: Optional[str] = None


class PrimaryGuestPayload(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    id_card_type: Optional[str] = None
    id_card_number: Optional[str] = None


class BookingRoomCreate(BaseModel):
    room_id: int
    start_date: datetime
    end_date: datetime
    guests: List[GuestPayload] = []


class BookingRoomTypeCreate(BaseModel):
    room_type_id: int
    price: Optional[Decimal] = Field(default=None, ge=0)
    start_date: datetime
    end_date: datetime
    total_room: Optional[int] = Field(default=None, ge=0)
    rooms: List[BookingRoomCreate] = []


class BookingCreate(BaseModel):
    hotel_id: int
    primary_guest: PrimaryGuestPayload
    start_date: datetime
    end_date: datetime
    deposit_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    left_amount: Decimal = Decimal("0")
    notes: Optional[str] = None
    room_types: List[BookingRoomTypeCreate] = []


class BookingRoomTypeUpdate(BaseModel):
    room_type_id: int
    price: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_room: Optional[int] = Field(default=None, ge=0)


class BookingUpdate(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    deposit_amount: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    left_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    primary_guest: Optional[PrimaryGuestPayload] = None
    room_types: Optional[List[BookingRoomTypeUpdate]] = None


class BookingQuery(PageQuery):
    hotel_id: Optional[int] = None
    status: Optional[BookingStatus] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None
    guest: Optional[str] = None          # 主客姓名或电话
    room_number: Optional[str] = None
    sort_dir: str = "desc"


class BookingGuestResponse(BaseModel):
    guest_id: int
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    id_card_type: Optional[str] = None
    id_card_number: Optional[str] = None


class BookingRoomResponse(BaseModel):
    booking_room_id: int
    room_id: int
    room_name: Optional[str] = None
    start_date: datetime
    end_date: datetime
    actual_check_in_at: Optional[datetime] = None
    actual_check_out_at: Optional[datetime] = None
    extended_date: Optional[datetime] = None
    status: BookingRoomStatus
    guests: List[BookingGuestResponse] = []


class BookingRoomTypeResponse(BaseModel):
    booking_room_type_id: int
    room_type_id: int
    room_type_name: Optional[str] = None
    capacity: int
    price: Decimal
    start_date: datetime
    end_date: datetime
    total_room: int
    booking_rooms: List[BookingRoomResponse] = []


class CallLogCreate(BaseModel):
    call_time: Optional[datetime] = None
    purpose: Optional[str] = None
    result_notes: Optional[str] = None


class CallLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    call_time: datetime
    staff_user_id: Optional[int] = None
    purpose: Optional[str] = None
    result_notes: Optional[str] = None


class BookingActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    event_type: str
    description: str
    occurred_at: datetime


class BookingDetail(BaseModel):
    id: int
    hotel_id: int
    primary_guest_id: Optional[int] = None
    primary_guest_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    status: BookingStatus
    start_date: datetime
    end_date: datetime
    deposit_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    default_amount: Decimal
    left_amount: Decimal
    promotion_code: Optional[str] = None
    promotion_value: Decimal = Decimal("0")
    additional_amount: Decimal = Decimal("0")
    additional_notes: Optional[str] = None
    additional_booking_amount: Decimal = Decimal("0")
    additional_booking_notes: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    room_types: List[BookingRoomTypeResponse] = []
    call_logs: List[CallLogResponse] = []


# ============== Stay Operation Schemas ==============

class CheckInRequest(BaseModel):
    guests: List[GuestPayload] = []
    actual_check_in_at: Optional[datetime] = None


class GuestUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    id_card_type: Optional[str] = None
    id_card_number: Optional[str] = None


class RoomDatesUpdate(BaseModel):
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_order(self):
        if self.end_date <= self.start_date:
            raise ValueError("结束时间必须晚于开始时间")
        return self


class ActualTimesUpdate(BaseModel):
    actual_check_in_at: Optional[datetime] = None
    actual_check_out_at: Optional[datetime] = None


class MoveGuestRequest(BaseModel):
    booking_room_id: int
    guest_id: int
    target_booking_room_id: int


class SwapGuestsRequest(BaseModel):
    booking_room_id: int
    guest_id: int
    target_booking_room_id: int
    target_guest_id: int


class ChangeRoomRequest(BaseModel):
    new_room_id: int


class ExtendStayRequest(BaseModel):
    new_end_date: datetime


class AddRoomRequest(BaseModel):
    booking_room_type_id: int
    room_id: int


class PaymentPayload(BaseModel):
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_type: Optional[str] = None


class CheckoutRequest(BaseModel):
    final_payment: Optional[PaymentPayload] = None
    checkout_time: Optional[datetime] = None
    additional_amount: Optional[Decimal] = None
    additional_notes: Optional[str] = None
    additional_booking_amount: Optional[Decimal] = None
    additional_booking_notes: Optional[str] = None
    notes: Optional[str] = None


class CheckoutResult(BaseModel):
    total_paid: Decimal
    booking: BookingDetail
    checkout_time: datetime


class NoShowSweepRequest(BaseModel):
    target_date: Optional[date] = None
    hotel_id: Optional[int] = None


class NoShowSweepResult(BaseModel):
    cancelled_rooms: int
    affected_bookings: int


class AutoCancelRequest(BaseModel):
    hotel_id: int


# ============== Charges Schemas ==============

class AdditionalChargeLine(BaseModel):
    description: str
    amount: Decimal
    source_type: InvoiceLineSourceType = InvoiceLineSourceType.SURCHARGE


class AdditionalChargesPreview(BaseModel):
    lines: List[AdditionalChargeLine]
    total: Decimal


class EarlyCheckoutFee(BaseModel):
    availability_percent: float
    tier: str
    fee_percentage: float
    fee_amount: Decimal


# ============== Report Schemas ==============

class TimelineSegment(BaseModel):
    start: datetime
    end: datetime
    status: RoomStatus


class RoomMapItem(BaseModel):
    room_id: int
    room_number: str
    room_type_id: int
    room_type_name: str
    floor: int
    status: RoomStatus
    timeline: List[TimelineSegment]


class RoomAvailabilityResult(BaseModel):
    available_rooms: int


class BookingInterval(BaseModel):
    booking_id: int
    booking_room_id: int
    start: datetime
    end: datetime
    status: BookingStatus
    guest_name: Optional[str] = None


class RoomStayHistory(BaseModel):
    booking_id: int
    booking_room_id: int
    start: datetime
    end: datetime
    status: BookingStatus
    primary_guest_name: Optional[str] = None
    primary_guest_phone: Optional[str] = None
    guests: List[BookingGuestResponse] = []


class PeakDay(BaseModel):
    day: date
    total_rooms: int
    booked_rooms: int
    percentage: float


# ============== Order Schemas ==============

class OrderItemCreate(BaseModel):
    name: str
    quantity: int = Field(default=1, gt=0)
    unit_price: Decimal = Field(..., ge=0)


class WalkInOrderCreate(BaseModel):
    hotel_id: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    quantity: int
    unit_price: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    is_walk_in: bool
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    status: OrderStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


# ============== Invoice Schemas ==============

class BookingInvoiceRequest(CheckoutRequest):
    booking_id: int
    discount_code: Optional[str] = None


class WalkInInvoiceRequest(BaseModel):
    order_id: int
    discount_code: Optional[str] = None
    additional_value: Optional[Decimal] = None
    additional_notes: Optional[str] = None


class InvoiceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: Optional[str] = None
    amount: Decimal
    source_type: InvoiceLineSourceType
    source_id: Optional[int] = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    booking_id: Optional[int] = None
    order_id: Optional[int] = None
    guest_id: Optional[int] = None
    invoice_number: str
    status: InvoiceStatus
    is_walk_in: bool
    sub_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    vat_included: bool
    notes: Optional[str] = None
    additional_notes: Optional[str] = None
    additional_value: Optional[Decimal] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    lines: List[InvoiceLineResponse] = []


class InvoiceQuery(PageQuery):
    hotel_id: Optional[int] = None
    status: Optional[InvoiceStatus] = None
    booking_id: Optional[int] = None
    order_id: Optional[int] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


class RevenueQuery(BaseModel):
    hotel_id: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None


class RevenuePoint(BaseModel):
    day: date
    revenue: Decimal


class RevenueStats(BaseModel):
    total_revenue: Decimal
    invoice_count: int
    points: List[RevenuePoint]


class RevenueBreakdown(BaseModel):
    room_revenue: Decimal
    fnb_revenue: Decimal
    surcharge_revenue: Decimal
    discount_total: Decimal


class RevenueDetailItem(BaseModel):
    invoice_id: int
    invoice_number: str
    created_at: Optional[datetime] = None
    description: Optional[str] = None
    source_type: InvoiceLineSourceType
    amount: Decimal


# ============== User Schemas ==============

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserPropertyRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    role: UserRole


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    locked_until: Optional[datetime] = None
    created_at: Optional[datetime] = None
    property_roles: List[UserPropertyRoleResponse] = []


class UserQuery(PageQuery):
    search: Optional[str] = None
    role: Optional[UserRole] = None
    hotel_id: Optional[int] = None
    is_active: Optional[bool] = None


class LockUserRequest(BaseModel):
    """locked_until 为空表示长期锁定"""
    locked_until: Optional[datetime] = None


class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=6)


class PropertyRoleAssign(BaseModel):
    hotel_id: int
    role: UserRole


LoginResponse.model_rebuild()
