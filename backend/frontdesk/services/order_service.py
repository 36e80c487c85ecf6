"""
餐饮订单服务 - 散客订单，为散客发票提供明细
"""
import logging
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import Order, OrderItem, OrderStatus
from frontdesk.models.schemas import WalkInOrderCreate, OrderResponse
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.result import ServiceResult, NotFoundError, run_in_transaction, run_query

logger = logging.getLogger(__name__)


class OrderService:
    """餐饮订单服务"""

    def __init__(self, db: Session, clock: Clock = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock

    def create_walk_in_order(self, data: WalkInOrderCreate) -> ServiceResult:
        """创建散客订单"""
        def operation():
            if not self.uow.hotels.find(data.hotel_id):
                raise NotFoundError("酒店不存在")
            order = self.uow.orders.add(Order(
                hotel_id=data.hotel_id,
                is_walk_in=True,
                customer_name=data.customer_name,
                customer_phone=data.customer_phone,
                status=OrderStatus.PENDING,
                notes=data.notes,
                created_at=self.clock.now(),
            ))
            for item in data.items:
                self.uow.order_items.add(OrderItem(order_id=order.id, **item.model_dump()))
            self.db.refresh(order)
            logger.info(f"Walk-in order {order.id} created with {len(data.items)} item(s)")
            return OrderResponse.model_validate(order)
        return run_in_transaction(self.uow, "创建订单", operation, message="订单创建成功")

    def get_order(self, order_id: int) -> ServiceResult:
        """获取订单"""
        def run():
            order = self.uow.orders.find(order_id)
            if not order:
                raise NotFoundError("订单不存在")
            return OrderResponse.model_validate(order)
        return run_query("查询订单", run)
