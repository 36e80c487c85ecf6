"""
房间管理路由
房型、房间、日期价格，以及单个房间的排期、历史与当前预订
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User
from frontdesk.models.schemas import (
    RoomCreate, RoomUpdate, RoomOutOfService, RoomQuery, RoomTypeCreate, RoomTypePricesUpdate
)
from frontdesk.routers.common import respond, get_clock
from frontdesk.security.auth import require_manager, require_staff
from frontdesk.services.report_service import ReportService
from frontdesk.services.room_service import RoomService

router = APIRouter(prefix="/api/rooms", tags=["房间管理"])


# ============== 房型管理 ==============

@router.get("/types")
def list_room_types(
    hotel_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取房型列表"""
    return respond(RoomService(db).list_room_types(hotel_id))


@router.post("/types")
def create_room_type(
    data: RoomTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """创建房型"""
    return respond(RoomService(db).create_room_type(data))


@router.put("/types/{room_type_id}/prices")
def set_room_type_prices(
    room_type_id: int,
    data: RoomTypePricesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """设置房型日期价格"""
    return respond(RoomService(db).set_room_type_prices(room_type_id, data))


# ============== 房间管理 ==============

@router.get("")
def list_rooms(
    query: RoomQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取房间列表"""
    return respond(RoomService(db).list_rooms(query))


@router.get("/{room_id}")
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取房间详情"""
    return respond(RoomService(db).get_room(room_id))


@router.post("")
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """创建房间"""
    return respond(RoomService(db).create_room(data))


@router.put("/{room_id}")
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_manager)
):
    """更新房间"""
    return respond(RoomService(db, clock=clock).update_room(room_id, data))


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """删除房间（无预订历史时）"""
    return respond(RoomService(db).delete_room(room_id))


@router.post("/{room_id}/out-of-service")
def set_out_of_service(
    room_id: int,
    data: RoomOutOfService,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_manager)
):
    """设置房间停用"""
    return respond(RoomService(db, clock=clock).set_out_of_service(room_id, data))


# ============== 房间排期 ==============

@router.get("/{room_id}/schedule")
def get_room_schedule(
    room_id: int,
    from_date: datetime,
    to_date: datetime,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """房间排期"""
    return respond(ReportService(db).room_schedule(room_id, from_date, to_date))


@router.get("/{room_id}/history")
def get_room_history(
    room_id: int,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """房间入住历史"""
    return respond(ReportService(db).room_history(room_id, from_date, to_date))


@router.get("/{room_id}/current-booking")
def get_current_booking(
    room_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """房间当前预订 id"""
    return respond(ReportService(db, clock=clock).current_booking_for_room(room_id))
