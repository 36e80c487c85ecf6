"""
用户服务 - 账号管理与登录
"""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.models.ontology import User, UserPropertyRole
from frontdesk.models.schemas import (
    LoginResponse, UserCreate, UserUpdate, UserQuery, UserResponse, PropertyRoleAssign
)
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.security.auth import get_password_hash, verify_password, create_access_token
from frontdesk.services.result import (
    ServiceResult, ValidationError, NotFoundError, ConflictError, run_in_transaction, run_query
)

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def __init__(self, db: Session, clock: Clock = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock

    def _get(self, user_id: int) -> User:
        user = self.uow.users.find(user_id)
        if not user:
            raise NotFoundError("用户不存在")
        return user

    def _response(self, user: User) -> UserResponse:
        self.db.refresh(user)
        return UserResponse.model_validate(user)

    def authenticate(self, username: str, password: str) -> ServiceResult:
        """认证登录；停用或锁定中的账号不能登录"""
        def run():
            user = self.uow.users.query(User.username == username).first()
            if not user or not verify_password(password, user.password_hash):
                raise ValidationError("用户名或密码错误")
            if not user.is_active:
                raise ConflictError("账号已停用")
            if user.is_locked(self.clock.now()):
                raise ConflictError(f"账号已锁定至 {user.locked_until:%Y-%m-%d %H:%M}")

            logger.info(f"User {user.username} logged in")
            return LoginResponse(
                access_token=create_access_token(user.id, user.role),
                user=UserResponse.model_validate(user),
            )
        return run_query("登录", run)

    def list_users(self, query: UserQuery) -> ServiceResult:
        """用户列表（分页）"""
        def run():
            q = self.uow.users.query()
            if query.search and query.search.strip():
                keyword = query.search.strip()
                q = q.filter(or_(
                    User.username.contains(keyword),
                    User.full_name.contains(keyword),
                    User.email.contains(keyword),
                    User.phone.contains(keyword),
                ))
            if query.role is not None:
                q = q.filter(User.role == query.role)
            if query.is_active is not None:
                q = q.filter(User.is_active == query.is_active)
            if query.hotel_id is not None:
                q = q.filter(User.property_roles.any(UserPropertyRole.hotel_id == query.hotel_id))

            total = q.count()
            users = q.order_by(User.id).offset((query.page - 1) * query.page_size).limit(query.page_size).all()
            return ServiceResult.ok(
                [UserResponse.model_validate(u) for u in users],
                meta={"total": total, "page": query.page, "pageSize": query.page_size},
            )
        return run_query("查询用户", run)

    def get_user(self, user_id: int) -> ServiceResult:
        """获取用户"""
        return run_query("查询用户", lambda: UserResponse.model_validate(self._get(user_id)))

    def create_user(self, data: UserCreate) -> ServiceResult:
        """创建用户"""
        def operation():
            if self.uow.users.query(User.username == data.username).first():
                raise ConflictError("用户名已存在")
            user = self.uow.users.add(User(
                username=data.username,
                password_hash=get_password_hash(data.password),
                full_name=data.full_name,
                email=data.email,
                phone=data.phone,
                role=data.role,
                is_active=True,
                created_at=self.clock.now(),
            ))
            logger.info(f"User {user.username} created with role {user.role.value}")
            return self._response(user)
        return run_in_transaction(self.uow, "创建用户", operation, message="用户创建成功")

    def update_user(self, user_id: int, data: UserUpdate) -> ServiceResult:
        """更新用户信息"""
        def operation():
            user = self._get(user_id)
            self.uow.users.update(user, **data.model_dump(exclude_unset=True))
            return self._response(user)
        return run_in_transaction(self.uow, "更新用户", operation, message="用户已更新")

    def lock_user(self, user_id: int, locked_until: Optional[datetime]) -> ServiceResult:
        """锁定到指定时间；未指定时长期锁定"""
        def operation():
            user = self._get(user_id)
            until = locked_until or datetime(9999, 12, 31)
            if until <= self.clock.now():
                raise ValidationError("锁定截止时间必须晚于当前时间")
            self.uow.users.update(user, locked_until=until)
            logger.info(f"User {user.username} locked until {until}")
            return self._response(user)
        return run_in_transaction(self.uow, "锁定用户", operation, message="用户已锁定")

    def unlock_user(self, user_id: int) -> ServiceResult:
        """解锁"""
        def operation():
            user = self._get(user_id)
            self.uow.users.update(user, locked_until=None)
            logger.info(f"User {user.username} unlocked")
            return self._response(user)
        return run_in_transaction(self.uow, "解锁用户", operation, message="用户已解锁")

    def reset_password(self, user_id: int, new_password: str) -> ServiceResult:
        """重置密码"""
        def operation():
            user = self._get(user_id)
            self.uow.users.update(user, password_hash=get_password_hash(new_password))
            logger.info(f"Password reset for user {user.username}")
            return user.id
        return run_in_transaction(self.uow, "重置密码", operation, message="密码已重置")

    def assign_property_role(self, user_id: int, data: PropertyRoleAssign) -> ServiceResult:
        """为用户分配酒店角色"""
        def operation():
            user = self._get(user_id)
            if not self.uow.hotels.find(data.hotel_id):
                raise NotFoundError("酒店不存在")
            exists = self.uow.user_property_roles.query(
                UserPropertyRole.user_id == user.id,
                UserPropertyRole.hotel_id == data.hotel_id,
                UserPropertyRole.role == data.role,
            ).first()
            if exists:
                raise ConflictError("该角色已分配")
            self.uow.user_property_roles.add(UserPropertyRole(
                user_id=user.id, hotel_id=data.hotel_id, role=data.role
            ))
            return self._response(user)
        return run_in_transaction(self.uow, "分配酒店角色", operation, message="角色已分配")

    def remove_property_role(self, user_id: int, role_id: int) -> ServiceResult:
        """移除酒店角色"""
        def operation():
            user = self._get(user_id)
            assignment = self.uow.user_property_roles.find(role_id)
            if not assignment or assignment.user_id != user.id:
                raise NotFoundError("角色分配不存在")
            self.uow.user_property_roles.remove(assignment)
            return self._response(user)
        return run_in_transaction(self.uow, "移除酒店角色", operation, message="角色已移除")
