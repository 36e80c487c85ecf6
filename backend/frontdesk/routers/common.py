"""
路由公共部分：统一响应信封与错误类别到 HTTP 状态码的映射
"""
from fastapi import HTTPException, status
from frontdesk.clock import Clock, system_clock
from frontdesk.models.schemas import ApiResponse
from frontdesk.services.result import ErrorKind, ServiceResult

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INFRASTRUCTURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_clock() -> Clock:
    """依赖注入：当前时钟（测试中可覆盖）"""
    return system_clock


def envelope(is_success: bool, data=None, message=None, meta=None) -> dict:
    return ApiResponse(
        is_success=is_success, data=data, message=message or None, meta=meta
    ).model_dump(by_alias=True, mode="json")


def respond(result: ServiceResult) -> dict:
    """成功结果包装为信封；失败结果按错误类别抛出 HTTPException"""
    if not result.success:
        raise HTTPException(
            status_code=STATUS_BY_KIND.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=result.message,
        )
    return envelope(True, result.data, result.message, result.meta)
