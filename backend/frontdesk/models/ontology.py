"""
本体对象定义 (Ontology Objects)
酒店前台的核心业务实体：酒店、房型、房间、客人、预订聚合、发票、促销与用户
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, ForeignKey, Text,
    Enum as SQLEnum, Boolean, Numeric, UniqueConstraint
)
from sqlalchemy.orm import relationship
from frontdesk.database import Base


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举"""
    AVAILABLE = "Available"          # 空闲可售
    OCCUPIED = "Occupied"            # 入住中
    DIRTY = "Dirty"                  # 待清洁
    OUT_OF_SERVICE = "OutOfService"  # 停用/维修


class BookingStatus(str, Enum):
    """预订状态枚举"""
    PENDING = "Pending"        # 待确认
    CONFIRMED = "Confirmed"    # 已确认
    COMPLETED = "Completed"    # 已完成
    CANCELLED = "Cancelled"    # 已取消
    MISSING = "Missing"        # 未到店


class BookingRoomStatus(str, Enum):
    """预订房间状态"""
    PENDING = "Pending"          # 待入住
    CHECKED_IN = "CheckedIn"     # 已入住
    CHECKED_OUT = "CheckedOut"   # 已退房
    CANCELLED = "Cancelled"      # 已取消


class InvoiceStatus(str, Enum):
    """发票状态"""
    DRAFT = "Draft"
    ISSUED = "Issued"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class InvoiceLineSourceType(str, Enum):
    """发票行来源"""
    ROOM_CHARGE = "RoomCharge"  # 房费
    SURCHARGE = "Surcharge"     # 附加费
    DISCOUNT = "Discount"       # 折扣（负数）
    FNB = "Fnb"                 # 餐饮


class SurchargeType(str, Enum):
    """附加费规则类型"""
    EARLY_CHECK_IN = "EarlyCheckIn"
    LATE_CHECK_OUT = "LateCheckOut"
    EXTRA_GUEST = "ExtraGuest"


class OrderStatus(str, Enum):
    """餐饮订单状态"""
    PENDING = "Pending"
    SERVING = "Serving"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class UserRole(str, Enum):
    """用户角色"""
    ADMIN = "admin"              # 系统管理员
    MANAGER = "manager"          # 经理
    FRONT_DESK = "frontdesk"     # 前台
    HOUSEKEEPER = "housekeeper"  # 客房
    WAITER = "waiter"            # 餐饮服务员


# ============== 酒店与房间 ==============

class Hotel(Base):
    """酒店对象"""
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)   # 酒店编码
    name = Column(String(100), nullable=False)
    address = Column(String(255))
    phone = Column(String(20))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    rooms = relationship("Room", back_populates="hotel")
    room_types = relationship("RoomType", back_populates="hotel")


class RoomType(Base):
    """房型对象"""
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    description = Column(Text)
    capacity = Column(Integer, default=2)                      # 标准入住人数
    base_price = Column(Numeric(14, 2), nullable=False)        # 基础房价/晚
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="room_types")
    rooms = relationship("Room", back_populates="room_type")
    prices = relationship("RoomTypePrice", back_populates="room_type", cascade="all, delete-orphan")


class RoomTypePrice(Base):
    """房型日期价格（覆盖基础房价）"""
    __tablename__ = "room_type_prices"
    __table_args__ = (UniqueConstraint("room_type_id", "date", name="uq_room_type_price_date"),)

    id = Column(Integer, primary_key=True, index=True)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    price = Column(Numeric(14, 2))

    room_type = relationship("RoomType", back_populates="prices")


class Room(Base):
    """房间对象"""
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("hotel_id", "number", name="uq_room_hotel_number"),)

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    number = Column(String(10), nullable=False)           # 房间号
    floor = Column(Integer, default=1)
    status = Column(SQLEnum(RoomStatus), default=RoomStatus.AVAILABLE, nullable=False)
    out_of_service_reason = Column(String(255))
    out_of_service_until = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="rooms")
    room_type = relationship("RoomType", back_populates="rooms")
    status_logs = relationship("RoomStatusLog", back_populates="room", cascade="all, delete-orphan")


class RoomStatusLog(Base):
    """房间状态变更日志（只追加）"""
    __tablename__ = "room_status_logs"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False)
    status = Column(SQLEnum(RoomStatus), nullable=False)
    changed_at = Column(DateTime, nullable=False)
    note = Column(String(255))

    room = relationship("Room", back_populates="status_logs")


# ============== 客人 ==============

class Guest(Base):
    """客人对象，可通过电话在多个预订间复用"""
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), index=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), index=True)
    email = Column(String(100))
    id_card_type = Column(String(20))        # 证件类型
    id_card_number = Column(String(50))      # 证件号码
    created_at = Column(DateTime, default=datetime.utcnow)


# ============== 预订聚合 ==============

class Booking(Base):
    """预订对象（聚合根）"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    primary_guest_id = Column(Integer, ForeignKey("guests.id"))
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    deposit_amount = Column(Numeric(14, 2), default=Decimal("0"))
    discount_amount = Column(Numeric(14, 2), default=Decimal("0"))
    total_amount = Column(Numeric(14, 2), default=Decimal("0"))
    default_amount = Column(Numeric(14, 2), default=Decimal("0"))   # 下单时的原始总价
    left_amount = Column(Numeric(14, 2), default=Decimal("0"))      # 待收金额

    promotion_code = Column(String(50))
    promotion_value = Column(Numeric(5, 2), default=Decimal("0"))

    additional_amount = Column(Numeric(14, 2), default=Decimal("0"))
    additional_notes = Column(Text)
    additional_booking_amount = Column(Numeric(14, 2), default=Decimal("0"))
    additional_booking_notes = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    primary_guest = relationship("Guest")
    room_types = relationship("BookingRoomType", back_populates="booking", cascade="all, delete-orphan")
    call_logs = relationship("CallLog", back_populates="booking", cascade="all, delete-orphan")
    activities = relationship("BookingActivity", back_populates="booking", cascade="all, delete-orphan")

    @property
    def booking_rooms(self):
        """所有分配的房间（跨房型）"""
        return [br for brt in self.room_types for br in brt.rooms]


class BookingRoomType(Base):
    """预订的房型行：数量、价格与日期区间"""
    __tablename__ = "booking_room_types"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    room_type_name = Column(String(50))                 # 房型名称快照
    capacity = Column(Integer, default=0)               # 容量快照
    price = Column(Numeric(14, 2), nullable=False)      # 每晚价格
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    total_room = Column(Integer, default=0)             # 预订间数

    booking = relationship("Booking", back_populates="room_types")
    room_type = relationship("RoomType")
    rooms = relationship("BookingRoom", back_populates="booking_room_type", cascade="all, delete-orphan")


class BookingRoom(Base):
    """分配到预订房型下的具体房间"""
    __tablename__ = "booking_rooms"

    id = Column(Integer, primary_key=True, index=True)
    booking_room_type_id = Column(Integer, ForeignKey("booking_room_types.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    room_name = Column(String(20))                  # 房间号快照
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    actual_check_in_at = Column(DateTime)
    actual_check_out_at = Column(DateTime)
    extended_date = Column(DateTime)                # 续住后的退房日期，不修改 end_date
    status = Column(SQLEnum(BookingRoomStatus), default=BookingRoomStatus.PENDING, nullable=False)

    booking_room_type = relationship("BookingRoomType", back_populates="rooms")
    room = relationship("Room")
    guests = relationship("BookingGuest", back_populates="booking_room", cascade="all, delete-orphan")


class BookingGuest(Base):
    """预订房间与客人的关联"""
    __tablename__ = "booking_guests"

    id = Column(Integer, primary_key=True, index=True)
    booking_room_id = Column(Integer, ForeignKey("booking_rooms.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)

    booking_room = relationship("BookingRoom", back_populates="guests")
    guest = relationship("Guest")


class CallLog(Base):
    """预订相关的电话沟通记录"""
    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    call_time = Column(DateTime, nullable=False)
    staff_user_id = Column(Integer, ForeignKey("users.id"))
    purpose = Column(String(255))
    result_notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="call_logs")


class BookingActivity(Base):
    """预订动态：由领域事件订阅方写入的操作轨迹"""
    __tablename__ = "booking_activities"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    description = Column(String(255), nullable=False)
    occurred_at = Column(DateTime, nullable=False)

    booking = relationship("Booking", back_populates="activities")


# ============== 计费规则 ==============

class SurchargeRule(Base):
    """附加费规则"""
    __tablename__ = "surcharge_rules"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    type = Column(SQLEnum(SurchargeType), nullable=False)
    amount = Column(Numeric(14, 2), default=Decimal("0"))
    is_percentage = Column(Boolean, default=False)
    description = Column(String(255))


class Promotion(Base):
    """促销码"""
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    description = Column(String(255))
    scope = Column(String(20), default="booking")   # booking / food
    value = Column(Numeric(5, 2), nullable=False)   # 折扣百分比
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)


# ============== 餐饮订单 ==============

class Order(Base):
    """餐饮订单（散客）"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"))
    is_walk_in = Column(Boolean, default=True)
    customer_name = Column(String(100))
    customer_phone = Column(String(20))
    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """订单明细"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    quantity = Column(Integer, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False)

    order = relationship("Order", back_populates="items")


# ============== 发票 ==============

class Invoice(Base):
    """发票快照"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"))
    invoice_number = Column(String(30), unique=True, nullable=False)
    status = Column(SQLEnum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False)
    is_walk_in = Column(Boolean, default=False)

    sub_total = Column(Numeric(14, 2), default=Decimal("0"))
    discount_amount = Column(Numeric(14, 2), default=Decimal("0"))
    tax_amount = Column(Numeric(14, 2), default=Decimal("0"))
    total_amount = Column(Numeric(14, 2), default=Decimal("0"))
    vat_included = Column(Boolean, default=True)

    notes = Column(Text)
    additional_notes = Column(Text)
    additional_value = Column(Numeric(14, 2))
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    lines = relationship("InvoiceLine", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceLine(Base):
    """发票行"""
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(255))
    amount = Column(Numeric(14, 2), nullable=False)
    source_type = Column(SQLEnum(InvoiceLineSourceType), nullable=False)
    source_id = Column(Integer)

    invoice = relationship("Invoice", back_populates="lines")


# ============== 用户 ==============

class User(Base):
    """
    系统用户
    属性安全等级：full_name(PUBLIC), password_hash(RESTRICTED), role(INTERNAL)
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    email = Column(String(100))
    phone = Column(String(20))
    role = Column(SQLEnum(UserRole), nullable=False)
    is_active = Column(Boolean, default=True)
    locked_until = Column(DateTime)                  # 锁定截止时间，为空表示未锁定
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property_roles = relationship("UserPropertyRole", back_populates="user", cascade="all, delete-orphan")

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


class UserPropertyRole(Base):
    """用户在某酒店下的角色"""
    __tablename__ = "user_property_roles"
    __table_args__ = (UniqueConstraint("user_id", "hotel_id", "role", name="uq_user_hotel_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)

    user = relationship("User", back_populates="property_roles")
