"""
统一的操作结果类型

所有对外服务方法返回 ServiceResult；服务内部通过 ServiceError 子类中断流程，
由 run_in_transaction 统一回滚并转换为失败结果
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
from frontdesk.repositories.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """错误类别"""
    VALIDATION = "validation"          # 输入非法、跨实体不匹配、时间区间冲突
    NOT_FOUND = "not_found"            # 预订/房间/订单等不存在
    CONFLICT = "conflict"              # 状态不允许、唯一性冲突
    INFRASTRUCTURE = "infrastructure"  # 数据库或未预期异常


class ServiceError(Exception):
    """业务异常基类"""
    kind = ErrorKind.INFRASTRUCTURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    kind = ErrorKind.VALIDATION


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT


class InfrastructureError(ServiceError):
    kind = ErrorKind.INFRASTRUCTURE


@dataclass
class ServiceResult:
    """
    统一的操作结果

    success 为 False 时 error_kind 必有值；meta 用于分页信息
    """
    success: bool
    message: str = ""
    data: Any = None
    error_kind: Optional[ErrorKind] = None
    meta: Optional[Dict[str, Any]] = None

    @staticmethod
    def ok(data: Any = None, message: str = "", meta: Optional[Dict[str, Any]] = None) -> "ServiceResult":
        """快速创建成功结果"""
        return ServiceResult(success=True, message=message, data=data, meta=meta)

    @staticmethod
    def fail(error_kind: ErrorKind, message: str) -> "ServiceResult":
        """快速创建失败结果"""
        return ServiceResult(success=False, message=message, error_kind=error_kind)


def run_in_transaction(uow: UnitOfWork, action: str, operation: Callable[[], Any],
                       message: str = "") -> ServiceResult:
    """
    在工作单元事务中执行操作

    ServiceError 转为对应类别的失败结果；其他异常记录堆栈后归类为 infrastructure，
    对调用方只返回通用消息
    """
    try:
        with uow.transaction():
            data = operation()
    except ServiceError as e:
        logger.info(f"{action} failed ({e.kind.value}): {e.message}")
        return ServiceResult.fail(e.kind, e.message)
    except Exception:
        logger.exception(f"{action} failed with unexpected error")
        return ServiceResult.fail(ErrorKind.INFRASTRUCTURE, f"{action}失败，请稍后重试")
    return ServiceResult.ok(data, message=message)


def run_query(action: str, operation: Callable[[], Any]) -> ServiceResult:
    """只读操作：与 run_in_transaction 相同的错误归类，但不提交"""
    try:
        data = operation()
    except ServiceError as e:
        return ServiceResult.fail(e.kind, e.message)
    except Exception:
        logger.exception(f"{action} failed with unexpected error")
        return ServiceResult.fail(ErrorKind.INFRASTRUCTURE, f"{action}失败，请稍后重试")
    if isinstance(data, ServiceResult):
        return data
    return ServiceResult.ok(data)
