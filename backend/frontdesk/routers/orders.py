"""
散客餐饮订单路由
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User, UserRole
from frontdesk.models.schemas import WalkInOrderCreate
from frontdesk.routers.common import respond, get_clock
from frontdesk.security.auth import require_role
from frontdesk.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["餐饮订单"])

require_order_staff = require_role([UserRole.ADMIN, UserRole.MANAGER, UserRole.FRONT_DESK, UserRole.WAITER])


@router.post("/walk-in")
def create_walk_in_order(
    data: WalkInOrderCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_order_staff)
):
    """创建散客订单"""
    return respond(OrderService(db, clock=clock).create_walk_in_order(data))


@router.get("/{order_id}")
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_order_staff)
):
    """获取订单详情"""
    return respond(OrderService(db).get_order(order_id))
