"""
发票服务 - 本体操作层
预订发票、散客餐饮发票、附加费预览、提前退房费与营收统计
"""
import logging
import random
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from frontdesk.clock import Clock, system_clock
from frontdesk.config import settings
from frontdesk.models.ontology import (
    Booking, BookingRoom, BookingRoomStatus, BookingRoomType, BookingGuest, Invoice, InvoiceLine,
    InvoiceLineSourceType, InvoiceStatus, Promotion, Room, SurchargeRule, SurchargeType
)
from frontdesk.models.schemas import (
    AdditionalChargeLine, AdditionalChargesPreview, BookingInvoiceRequest, EarlyCheckoutFee,
    InvoiceQuery, InvoiceResponse, RevenueBreakdown, RevenueDetailItem, RevenuePoint, RevenueQuery,
    RevenueStats, WalkInInvoiceRequest
)
from frontdesk.models.events import EventType, InvoiceCreatedData
from frontdesk.repositories.unit_of_work import UnitOfWork
from frontdesk.services.checkout_service import CheckOutService
from frontdesk.services.event_bus import event_bus, Event
from frontdesk.services.result import (
    ServiceResult, ValidationError, NotFoundError, run_in_transaction, run_query
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# 提前退房费档位：(可用率上限, 档位, 费率)
EARLY_CHECKOUT_TIERS = [
    (40.0, "0-40", Decimal("0.5")),
    (80.0, "41-80", Decimal("0.25")),
]
EARLY_CHECKOUT_DEFAULT_TIER = ("81-100", Decimal("0.1"))


def money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceService:
    """发票服务"""

    def __init__(self, db: Session, clock: Clock = None,
                 event_publisher: Callable[[Event], None] = None, uow: UnitOfWork = None):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.clock = clock or system_clock
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 发票生成 ==============

    def create_booking_invoice(self, data: BookingInvoiceRequest,
                               created_by: Optional[int] = None) -> ServiceResult:
        """
        预订发票

        与退房在同一事务内：先退房结算，再删除该预订的旧发票并生成新发票。
        发票行：每个房型行一条房费，可选折扣行（负数），以及附加费行
        """
        def operation():
            booking = self.uow.bookings.find(data.booking_id)
            if not booking:
                raise NotFoundError("预订不存在")

            CheckOutService(self.db, clock=self.clock, uow=self.uow).apply_checkout(booking, data)

            lines = self._room_charge_lines(booking)
            if data.discount_code and data.discount_code.strip():
                promotion = self._resolve_promotion(booking.hotel_id, data.discount_code.strip())
                if promotion.scope is None or promotion.scope.strip().lower() != "booking":
                    raise ValidationError("该优惠码仅适用于餐饮，不能用于预订")
                base = sum((line.amount for line in lines if line.amount > 0), Decimal("0"))
                discount = money(base * Decimal(promotion.value) / Decimal("100"))
                if discount > 0:
                    lines.append(InvoiceLine(
                        description=f"优惠码 {promotion.code}",
                        amount=-discount,
                        source_type=InvoiceLineSourceType.DISCOUNT,
                        source_id=promotion.id,
                    ))
                booking.promotion_code = promotion.code
                booking.promotion_value = promotion.value
                booking.discount_amount = discount
            else:
                booking.promotion_code = None
                booking.promotion_value = Decimal("0")

            for amount, note in ((booking.additional_amount, booking.additional_notes),
                                 (booking.additional_booking_amount, booking.additional_booking_notes)):
                if amount:
                    lines.append(InvoiceLine(
                        description=note or "附加费",
                        amount=Decimal(amount),
                        source_type=InvoiceLineSourceType.SURCHARGE,
                    ))

            self._remove_previous(Invoice.booking_id == booking.id)
            invoice = self._create_invoice(
                lines,
                hotel_id=booking.hotel_id,
                booking_id=booking.id,
                guest_id=booking.primary_guest_id,
                is_walk_in=False,
                total_amount=booking.total_amount,
                notes=data.notes,
                additional_notes=data.additional_notes,
                additional_value=data.additional_amount,
                created_by=created_by,
            )
            return invoice.id

        return self._invoice_result(run_in_transaction(self.uow, "生成预订发票", operation, message="发票已生成"))

    def create_walk_in_invoice(self, data: WalkInInvoiceRequest,
                               created_by: Optional[int] = None) -> ServiceResult:
        """散客餐饮发票：一条餐饮行 = Σ(数量 × 单价) + additional_value"""
        def operation():
            order = self.uow.orders.find(data.order_id)
            if not order:
                raise NotFoundError("订单不存在")

            if data.discount_code and data.discount_code.strip():
                promotion = self._find_promotion(order.hotel_id, data.discount_code.strip())
                if promotion and (promotion.scope or "").strip().lower() == "booking":
                    raise ValidationError("预订优惠码不能用于散客订单")

            amount = sum((Decimal(i.unit_price) * i.quantity for i in order.items), Decimal("0"))
            amount += data.additional_value or Decimal("0")
            lines = [InvoiceLine(
                description=f"餐饮订单 {order.id}",
                amount=amount,
                source_type=InvoiceLineSourceType.FNB,
                source_id=order.id,
            )]

            self._remove_previous(Invoice.order_id == order.id)
            invoice = self._create_invoice(
                lines,
                hotel_id=order.hotel_id,
                order_id=order.id,
                is_walk_in=True,
                total_amount=amount,
                notes=f"Walk-in invoice for {order.customer_name or ''}".rstrip(),
                additional_notes=data.additional_notes,
                additional_value=data.additional_value,
                created_by=created_by,
            )
            return invoice.id

        return self._invoice_result(run_in_transaction(self.uow, "生成散客发票", operation, message="发票已生成"))

    def _room_charge_lines(self, booking: Booking) -> List[InvoiceLine]:
        """每个房型行：价格 × 晚数 × max(未取消房间数, 1)"""
        lines = []
        room_types = self.uow.booking_room_types.query(BookingRoomType.booking_id == booking.id) \
            .order_by(BookingRoomType.id).all()
        for brt in room_types:
            nights = (brt.end_date.date() - brt.start_date.date()).days
            rooms = self.uow.booking_rooms.query(
                BookingRoom.booking_room_type_id == brt.id,
                BookingRoom.status != BookingRoomStatus.CANCELLED,
            ).count()
            lines.append(InvoiceLine(
                description=brt.room_type_name or "房费",
                amount=Decimal(brt.price) * nights * max(rooms, 1),
                source_type=InvoiceLineSourceType.ROOM_CHARGE,
                source_id=brt.id,
            ))
        return lines

    def _find_promotion(self, hotel_id: int, code: str) -> Optional[Promotion]:
        now = self.clock.now()
        return self.uow.promotions.query(
            Promotion.hotel_id == hotel_id,
            Promotion.code == code,
            Promotion.is_active.is_(True),
            Promotion.start_date <= now,
            Promotion.end_date >= now,
        ).first()

    def _resolve_promotion(self, hotel_id: int, code: str) -> Promotion:
        promotion = self._find_promotion(hotel_id, code)
        if not promotion:
            raise ValidationError("优惠码无效或已过期")
        return promotion

    def _remove_previous(self, criterion) -> None:
        for previous in self.uow.invoices.query(criterion).all():
            logger.info(f"Removing previous invoice {previous.invoice_number}")
            self.uow.invoices.remove(previous)

    def _next_invoice_number(self) -> str:
        prefix = f"INV-{self.clock.now():%y%m}-"
        while True:
            number = f"{prefix}{random.randint(100000, 999999)}"
            if not self.uow.invoices.query(Invoice.invoice_number == number).first():
                return number

    def _create_invoice(self, lines: List[InvoiceLine], **fields) -> Invoice:
        """汇总发票行并写入：小计取正数行，折扣取负数行绝对值"""
        sub_total = sum((line.amount for line in lines if line.amount > 0), Decimal("0"))
        discount = abs(sum((line.amount for line in lines if line.amount < 0), Decimal("0")))
        invoice = self.uow.invoices.add(Invoice(
            invoice_number=self._next_invoice_number(),
            status=InvoiceStatus.DRAFT,
            sub_total=sub_total,
            discount_amount=discount,
            tax_amount=money(sub_total * Decimal(str(settings.TAX_RATE))),
            vat_included=True,
            created_at=self.clock.now(),
            **fields,
        ))
        for line in lines:
            line.invoice_id = invoice.id
            self.uow.invoice_lines.add(line)
        logger.info(f"Invoice {invoice.invoice_number} created with {len(lines)} line(s), total={invoice.total_amount}")
        return invoice

    def _invoice_result(self, result: ServiceResult) -> ServiceResult:
        if not result.success:
            return result
        self.db.expire_all()
        invoice = self.uow.invoices.find(result.data)
        result.data = InvoiceResponse.model_validate(invoice)
        self._publish_event(Event(
            event_type=EventType.INVOICE_CREATED,
            timestamp=self.clock.now(),
            data=InvoiceCreatedData(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                hotel_id=invoice.hotel_id,
                booking_id=invoice.booking_id,
                order_id=invoice.order_id,
                total_amount=float(invoice.total_amount or 0),
            ).to_dict(),
            source="invoice_service"
        ))
        return result

    # ============== 附加费 ==============

    def preview_additional_charges(self, booking_id: int) -> ServiceResult:
        """附加费预览（不落库）：提前入住、延迟退房固定费与超员费"""
        def run():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")
            rules = {}
            for rule in self.uow.surcharge_rules.query(SurchargeRule.hotel_id == booking.hotel_id) \
                    .order_by(SurchargeRule.id).all():
                rules.setdefault(rule.type, rule)

            lines = []
            for rule_type, label in ((SurchargeType.EARLY_CHECK_IN, "提前入住"),
                                     (SurchargeType.LATE_CHECK_OUT, "延迟退房")):
                rule = rules.get(rule_type)
                if rule:
                    amount = Decimal("0") if rule.is_percentage else Decimal(rule.amount or 0)
                    lines.append(AdditionalChargeLine(description=label, amount=amount))

            capacity = 0
            room_ids = []
            for brt in booking.room_types:
                rooms = [br for br in brt.rooms if br.status != BookingRoomStatus.CANCELLED]
                room_ids.extend(br.id for br in rooms)
                capacity += (brt.capacity or 0) * max(len(rooms), 1)
            guest_count = self.uow.booking_guests.query(
                BookingGuest.booking_room_id.in_(room_ids)
            ).count() if room_ids else 0
            extra_guests = max(guest_count - capacity, 0)

            rule = rules.get(SurchargeType.EXTRA_GUEST)
            if rule and extra_guests > 0:
                amount = Decimal("0") if rule.is_percentage else Decimal(rule.amount or 0) * extra_guests
                lines.append(AdditionalChargeLine(description=f"超员 {extra_guests} 人", amount=amount))

            return AdditionalChargesPreview(lines=lines, total=sum((l.amount for l in lines), Decimal("0")))
        return run_query("附加费预览", run)

    def calculate_early_checkout_fee(self, booking_id: int, checkout_date: date) -> ServiceResult:
        """
        提前退房费

        按退房日酒店可用率分档：<=40% 收 50%，<=80% 收 25%，其余 10%；
        费用 = Σ 房型价格 × 剩余晚数 × 费率（已退房的房间不计）
        """
        def run():
            booking = self.uow.bookings.find(booking_id)
            if not booking:
                raise NotFoundError("预订不存在")

            room_ids = [r.id for r in self.uow.rooms.query(Room.hotel_id == booking.hotel_id).all()]
            if not room_ids:
                return EarlyCheckoutFee(availability_percent=100.0, tier="81-100",
                                        fee_percentage=0.0, fee_amount=Decimal("0"))

            day_start = datetime.combine(checkout_date, time.min)
            # d < end.date() 且 d >= start.date()
            occupied = {
                br.room_id for br in self.uow.booking_rooms.query(
                    BookingRoom.room_id.in_(room_ids),
                    BookingRoom.status != BookingRoomStatus.CANCELLED,
                    BookingRoom.start_date < day_start + timedelta(days=1),
                    BookingRoom.end_date >= day_start + timedelta(days=1),
                ).all()
            }
            availability = (len(room_ids) - len(occupied)) / len(room_ids) * 100.0

            tier, rate = EARLY_CHECKOUT_DEFAULT_TIER
            for upper, label, pct in EARLY_CHECKOUT_TIERS:
                if availability <= upper:
                    tier, rate = label, pct
                    break

            fee = Decimal("0")
            for brt in booking.room_types:
                for br in brt.rooms:
                    if br.actual_check_out_at is not None:
                        continue
                    remaining = (br.end_date.date() - checkout_date).days
                    if remaining <= 0:
                        continue
                    fee += Decimal(brt.price) * remaining * rate

            return EarlyCheckoutFee(
                availability_percent=round(availability, 2),
                tier=tier,
                fee_percentage=float(rate * 100),
                fee_amount=money(fee),
            )
        return run_query("计算提前退房费", run)

    # ============== 查询与统计 ==============

    def list_invoices(self, query: InvoiceQuery) -> ServiceResult:
        """发票列表（分页）"""
        def run():
            q = self.uow.invoices.query()
            if query.hotel_id is not None:
                q = q.filter(Invoice.hotel_id == query.hotel_id)
            if query.status is not None:
                q = q.filter(Invoice.status == query.status)
            if query.booking_id is not None:
                q = q.filter(Invoice.booking_id == query.booking_id)
            if query.order_id is not None:
                q = q.filter(Invoice.order_id == query.order_id)
            if query.from_date is not None:
                q = q.filter(Invoice.created_at >= query.from_date)
            if query.to_date is not None:
                q = q.filter(Invoice.created_at <= query.to_date)

            total = q.count()
            items = q.order_by(Invoice.created_at.desc(), Invoice.id.desc()) \
                .offset((query.page - 1) * query.page_size).limit(query.page_size).all()
            return ServiceResult.ok(
                [InvoiceResponse.model_validate(i) for i in items],
                meta={"total": total, "page": query.page, "pageSize": query.page_size},
            )
        return run_query("查询发票", run)

    def get_invoice(self, invoice_id: int) -> ServiceResult:
        """发票详情（含发票行）"""
        def run():
            invoice = self.uow.invoices.find(invoice_id)
            if not invoice:
                raise NotFoundError("发票不存在")
            return InvoiceResponse.model_validate(invoice)
        return run_query("查询发票", run)

    def _revenue_invoices(self, query: RevenueQuery):
        """统计范围内的有效发票（不含已作废）"""
        q = self.uow.invoices.query(Invoice.status != InvoiceStatus.CANCELLED)
        if query.hotel_id is not None:
            q = q.filter(Invoice.hotel_id == query.hotel_id)
        if query.from_date is not None:
            q = q.filter(Invoice.created_at >= datetime.combine(query.from_date, time.min))
        if query.to_date is not None:
            q = q.filter(Invoice.created_at < datetime.combine(query.to_date + timedelta(days=1), time.min))
        return q

    def get_revenue(self, query: RevenueQuery) -> ServiceResult:
        """营收汇总与按日曲线"""
        def run():
            invoices = self._revenue_invoices(query).all()
            by_day = defaultdict(lambda: Decimal("0"))
            for invoice in invoices:
                by_day[invoice.created_at.date()] += Decimal(invoice.total_amount or 0)
            return RevenueStats(
                total_revenue=sum(by_day.values(), Decimal("0")),
                invoice_count=len(invoices),
                points=[RevenuePoint(day=d, revenue=by_day[d]) for d in sorted(by_day)],
            )
        return run_query("营收统计", run)

    def get_revenue_breakdown(self, query: RevenueQuery) -> ServiceResult:
        """按发票行来源拆分营收"""
        def run():
            invoice_ids = [i.id for i in self._revenue_invoices(query).all()]
            totals = defaultdict(lambda: Decimal("0"))
            if invoice_ids:
                for line in self.uow.invoice_lines.query(InvoiceLine.invoice_id.in_(invoice_ids)).all():
                    totals[line.source_type] += Decimal(line.amount)
            return RevenueBreakdown(
                room_revenue=totals[InvoiceLineSourceType.ROOM_CHARGE],
                fnb_revenue=totals[InvoiceLineSourceType.FNB],
                surcharge_revenue=totals[InvoiceLineSourceType.SURCHARGE],
                discount_total=abs(totals[InvoiceLineSourceType.DISCOUNT]),
            )
        return run_query("营收构成", run)

    def get_revenue_details(self, query: RevenueQuery,
                            source_type: Optional[InvoiceLineSourceType] = None) -> ServiceResult:
        """营收明细（发票行级别）"""
        def run():
            q = self.uow.invoice_lines.query() \
                .join(Invoice, InvoiceLine.invoice_id == Invoice.id) \
                .filter(Invoice.id.in_(self._revenue_invoices(query).with_entities(Invoice.id)))
            if source_type is not None:
                q = q.filter(InvoiceLine.source_type == source_type)
            rows = q.order_by(Invoice.created_at.desc(), InvoiceLine.id).all()
            return [
                RevenueDetailItem(
                    invoice_id=line.invoice.id,
                    invoice_number=line.invoice.invoice_number,
                    created_at=line.invoice.created_at,
                    description=line.description,
                    source_type=line.source_type,
                    amount=line.amount,
                )
                for line in rows
            ]
        return run_query("营收明细", run)
