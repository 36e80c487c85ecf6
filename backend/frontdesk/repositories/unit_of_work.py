"""
工作单元 - 显式的事务作用域
同一个 UnitOfWork 在服务调用链中按引用传递，所有仓储共享同一会话与事务
"""
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Type
from sqlalchemy.orm import Session
from frontdesk.database import Base
from frontdesk.models.ontology import (
    Hotel, RoomType, RoomTypePrice, Room, RoomStatusLog, Guest,
    Booking, BookingRoomType, BookingRoom, BookingGuest, CallLog, BookingActivity,
    SurchargeRule, Promotion, Order, OrderItem, Invoice, InvoiceLine,
    User, UserPropertyRole
)
from frontdesk.repositories.base import Repository

logger = logging.getLogger(__name__)


class UnitOfWork:
    """工作单元"""

    def __init__(self, db: Session):
        self.db = db
        self._repositories: Dict[type, Repository] = {}
        self._depth = 0

        self.hotels = self.repository(Hotel)
        self.room_types = self.repository(RoomType)
        self.room_type_prices = self.repository(RoomTypePrice)
        self.rooms = self.repository(Room)
        self.room_status_logs = self.repository(RoomStatusLog)
        self.guests = self.repository(Guest)
        self.bookings = self.repository(Booking)
        self.booking_room_types = self.repository(BookingRoomType)
        self.booking_rooms = self.repository(BookingRoom)
        self.booking_guests = self.repository(BookingGuest)
        self.call_logs = self.repository(CallLog)
        self.booking_activities = self.repository(BookingActivity)
        self.surcharge_rules = self.repository(SurchargeRule)
        self.promotions = self.repository(Promotion)
        self.orders = self.repository(Order)
        self.order_items = self.repository(OrderItem)
        self.invoices = self.repository(Invoice)
        self.invoice_lines = self.repository(InvoiceLine)
        self.users = self.repository(User)
        self.user_property_roles = self.repository(UserPropertyRole)

    def repository(self, model: Type[Base]) -> Repository:
        """获取（或创建）某实体的仓储"""
        if model not in self._repositories:
            self._repositories[model] = Repository(self.db, model)
        return self._repositories[model]

    @contextmanager
    def transaction(self) -> Iterator["UnitOfWork"]:
        """
        事务作用域：正常结束提交，异常回滚后继续抛出

        嵌套调用只在最外层提交或回滚
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.rollback()
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.commit()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
        logger.info("Transaction rolled back")

    def flush(self) -> None:
        self.db.flush()
