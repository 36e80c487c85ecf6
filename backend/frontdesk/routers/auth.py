"""
认证路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User
from frontdesk.models.schemas import LoginRequest, UserResponse
from frontdesk.routers.common import envelope, get_clock
from frontdesk.security.auth import get_current_user
from frontdesk.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["认证"])


@router.post("/login")
def login(data: LoginRequest, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """用户登录"""
    result = UserService(db, clock=clock).authenticate(data.username, data.password)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.message)
    return envelope(True, result.data, "登录成功")


@router.get("/me")
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return envelope(True, UserResponse.model_validate(current_user))
