"""
用户管理路由（仅管理员）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User
from frontdesk.models.schemas import (
    UserCreate, UserUpdate, UserQuery, LockUserRequest, PasswordReset, PropertyRoleAssign
)
from frontdesk.routers.common import respond, get_clock
from frontdesk.security.auth import require_admin
from frontdesk.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["用户管理"])


@router.get("")
def list_users(
    query: UserQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """获取用户列表"""
    return respond(UserService(db).list_users(query))


@router.get("/{user_id}")
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """获取用户详情"""
    return respond(UserService(db).get_user(user_id))


@router.post("")
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_admin)
):
    """创建用户"""
    return respond(UserService(db, clock=clock).create_user(data))


@router.put("/{user_id}")
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """更新用户"""
    return respond(UserService(db).update_user(user_id, data))


@router.post("/{user_id}/lock")
def lock_user(
    user_id: int,
    data: LockUserRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_admin)
):
    """锁定用户（不指定时间则长期锁定）"""
    return respond(UserService(db, clock=clock).lock_user(user_id, data.locked_until))


@router.post("/{user_id}/unlock")
def unlock_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """解锁用户"""
    return respond(UserService(db).unlock_user(user_id))


@router.post("/{user_id}/reset-password")
def reset_password(
    user_id: int,
    data: PasswordReset,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """重置密码"""
    return respond(UserService(db).reset_password(user_id, data.new_password))


@router.post("/{user_id}/property-roles")
def assign_property_role(
    user_id: int,
    data: PropertyRoleAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """分配酒店角色"""
    return respond(UserService(db).assign_property_role(user_id, data))


@router.delete("/{user_id}/property-roles/{role_id}")
def remove_property_role(
    user_id: int,
    role_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """移除酒店角色"""
    return respond(UserService(db).remove_property_role(user_id, role_id))
