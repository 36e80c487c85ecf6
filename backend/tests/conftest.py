"""
Pytest 配置和共享 fixtures
"""
import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from frontdesk.clock import FixedClock
from frontdesk.database import Base, get_db
from frontdesk.models import ontology  # noqa
from frontdesk.models.ontology import Hotel, RoomType, Room, RoomStatus, User, UserRole
from frontdesk.models.schemas import (
    BookingCreate, BookingRoomTypeCreate, BookingRoomCreate, PrimaryGuestPayload
)
from frontdesk.routers.common import get_clock
from frontdesk.security.auth import get_password_hash, create_access_token
from frontdesk.services.booking_service import BookingService
from frontdesk.services.event_bus import event_bus
from frontdesk.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    """固定在 2025-01-01 12:00 的时钟"""
    return FixedClock(datetime(2025, 1, 1, 12, 0))


@pytest.fixture
def events():
    """收集服务发布的事件"""
    return []


@pytest.fixture(autouse=True)
def clean_event_bus():
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture(scope="function")
def client(db_session, clock):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============== 认证相关 Fixtures ==============

def _make_user(db, username, role, password="123456", **fields):
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        full_name=fields.pop("full_name", username),
        role=role,
        is_active=fields.pop("is_active", True),
        **fields
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin", UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.id, admin_user.role)}"}


@pytest.fixture
def manager_headers(db_session):
    manager = _make_user(db_session, "manager", UserRole.MANAGER)
    return {"Authorization": f"Bearer {create_access_token(manager.id, manager.role)}"}


@pytest.fixture
def frontdesk_user(db_session):
    return _make_user(db_session, "front1", UserRole.FRONT_DESK, full_name="前台小王")


@pytest.fixture
def frontdesk_headers(frontdesk_user):
    return {"Authorization": f"Bearer {create_access_token(frontdesk_user.id, frontdesk_user.role)}"}


@pytest.fixture
def waiter_headers(db_session):
    waiter = _make_user(db_session, "waiter1", UserRole.WAITER)
    return {"Authorization": f"Bearer {create_access_token(waiter.id, waiter.role)}"}


@pytest.fixture
def housekeeper_headers(db_session):
    housekeeper = _make_user(db_session, "hk1", UserRole.HOUSEKEEPER)
    return {"Authorization": f"Bearer {create_access_token(housekeeper.id, housekeeper.role)}"}


# ============== 实体相关 Fixtures ==============

@pytest.fixture
def hotel(db_session):
    h = Hotel(code="H001", name="测试酒店", is_active=True)
    db_session.add(h)
    db_session.commit()
    db_session.refresh(h)
    return h


@pytest.fixture
def room_type(db_session, hotel):
    """标准间：容量 2，基础价 1,000,000"""
    rt = RoomType(hotel_id=hotel.id, name="标准间", capacity=2, base_price=Decimal("1000000"))
    db_session.add(rt)
    db_session.commit()
    db_session.refresh(rt)
    return rt


@pytest.fixture
def rooms(db_session, hotel, room_type):
    """101、102、103 三个空闲房间"""
    result = []
    for number in ("101", "102", "103"):
        room = Room(hotel_id=hotel.id, room_type_id=room_type.id, number=number,
                    floor=1, status=RoomStatus.AVAILABLE)
        db_session.add(room)
        result.append(room)
    db_session.commit()
    for room in result:
        db_session.refresh(room)
    return result


def booking_payload(hotel_id, room_type_id, room_ids, start, end, price=None,
                    total_room=None, **fields) -> BookingCreate:
    """一个房型行、若干房间的预订请求"""
    return BookingCreate(
        hotel_id=hotel_id,
        primary_guest=fields.pop("primary_guest", PrimaryGuestPayload(full_name="张三", phone="0900000001")),
        start_date=start,
        end_date=end,
        room_types=[BookingRoomTypeCreate(
            room_type_id=room_type_id,
            price=price,
            start_date=start,
            end_date=end,
            total_room=len(room_ids) if total_room is None else total_room,
            rooms=[BookingRoomCreate(room_id=rid, start_date=start, end_date=end) for rid in room_ids],
        )],
        **fields
    )


@pytest.fixture
def make_booking(db_session, hotel, room_type, clock):
    """按房间创建预订，默认 2025-01-10 14:00 至 2025-01-12 12:00"""
    def _make(room_ids, start=datetime(2025, 1, 10, 14, 0), end=datetime(2025, 1, 12, 12, 0), **fields):
        result = BookingService(db_session, clock=clock, event_publisher=lambda e: None).create_booking(
            booking_payload(hotel.id, room_type.id, room_ids, start, end, **fields)
        )
        assert result.success, result.message
        return result.data
    return _make


@pytest.fixture
def booking_request(hotel, room_type):
    """构造预订请求（不落库）"""
    def _build(room_ids, start=datetime(2025, 1, 10, 14, 0), end=datetime(2025, 1, 12, 12, 0), **fields):
        return booking_payload(hotel.id, room_type.id, room_ids, start, end, **fields)
    return _build
