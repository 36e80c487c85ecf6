"""
发票与营收路由
"""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from frontdesk.clock import Clock
from frontdesk.database import get_db
from frontdesk.models.ontology import User, InvoiceLineSourceType
from frontdesk.models.schemas import (
    BookingInvoiceRequest, WalkInInvoiceRequest, InvoiceQuery, RevenueQuery
)
from frontdesk.routers.common import respond, get_clock
from frontdesk.security.auth import require_manager, require_staff
from frontdesk.services.invoice_service import InvoiceService

router = APIRouter(prefix="/api/invoices", tags=["发票管理"])


@router.post("/booking")
def create_booking_invoice(
    data: BookingInvoiceRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """预订结账开票（同时办理退房）"""
    return respond(InvoiceService(db, clock=clock).create_booking_invoice(data, created_by=current_user.id))


@router.post("/walk-in")
def create_walk_in_invoice(
    data: WalkInInvoiceRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_staff)
):
    """散客订单开票"""
    return respond(InvoiceService(db, clock=clock).create_walk_in_invoice(data, created_by=current_user.id))


@router.get("")
def list_invoices(
    query: InvoiceQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取发票列表"""
    return respond(InvoiceService(db).list_invoices(query))


# ============== 营收统计 ==============

@router.get("/revenue")
def get_revenue(
    query: RevenueQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """营收汇总"""
    return respond(InvoiceService(db).get_revenue(query))


@router.get("/revenue/breakdown")
def get_revenue_breakdown(
    query: RevenueQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """营收构成"""
    return respond(InvoiceService(db).get_revenue_breakdown(query))


@router.get("/revenue/details")
def get_revenue_details(
    query: RevenueQuery = Depends(),
    source_type: Optional[InvoiceLineSourceType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """营收明细"""
    return respond(InvoiceService(db).get_revenue_details(query, source_type))


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取发票详情"""
    return respond(InvoiceService(db).get_invoice(invoice_id))
