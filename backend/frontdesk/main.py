"""
Frontdesk 主应用入口
酒店前台：预订、入住、退房结算与发票
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from frontdesk import __version__
from frontdesk.config import settings
from frontdesk.database import init_db
from frontdesk.routers import auth, rooms, bookings, invoices, orders, users
from frontdesk.routers.common import envelope
from frontdesk.services.event_handlers import register_event_handlers
from frontdesk.services.sweep_scheduler import SweepScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    register_event_handlers()

    scheduler = None
    if settings.SWEEP_SCHEDULER_ENABLED:
        scheduler = SweepScheduler()
        scheduler.start()

    logger.info(f"{settings.APP_NAME} {__version__} started")
    yield

    if scheduler is not None:
        scheduler.shutdown()


# 创建应用
app = FastAPI(
    title="Frontdesk - 酒店前台管理系统",
    description="预订、房间分配、入住退房与发票结算",
    version=__version__,
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """所有 HTTP 错误统一为信封格式"""
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, message=str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求体校验失败返回 400"""
    errors = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', []))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=envelope(False, message=errors or "请求参数错误"))


# 注册路由
app.include_router(auth.router)
app.include_router(rooms.router)
app.include_router(bookings.router)
app.include_router(invoices.router)
app.include_router(orders.router)
app.include_router(users.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": "Frontdesk - 酒店前台管理系统",
        "version": __version__,
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
