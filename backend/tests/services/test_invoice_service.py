"""
Tests for frontdesk/services/invoice_service.py
Covers: booking and walk-in invoices, promotions, surcharge preview, early checkout fee, revenue stats
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from frontdesk.models.events import EventType
from frontdesk.models.ontology import (
    Booking, Invoice, InvoiceLineSourceType, InvoiceStatus, Promotion, Room, RoomStatus,
    SurchargeRule, SurchargeType
)
from frontdesk.models.schemas import (
    BookingInvoiceRequest, CheckInRequest, GuestPayload, OrderItemCreate, RevenueQuery,
    WalkInInvoiceRequest, WalkInOrderCreate
)
from frontdesk.services.checkin_service import CheckInService
from frontdesk.services.invoice_service import InvoiceService
from frontdesk.services.order_service import OrderService
from frontdesk.services.result import ErrorKind

CHECKOUT_AT = datetime(2025, 1, 12, 11, 0)


def _service(db, clock, events=None):
    return InvoiceService(db, clock=clock, event_publisher=(events.append if events is not None else lambda e: None))


@pytest.fixture
def promotions(db_session, hotel):
    """booking 范围 10%，food 范围 20%"""
    window = dict(start_date=datetime(2024, 12, 1), end_date=datetime(2025, 3, 1), is_active=True)
    booking_promo = Promotion(hotel_id=hotel.id, code="ROOM10", scope="booking", value=Decimal("10"), **window)
    food_promo = Promotion(hotel_id=hotel.id, code="FOOD20", scope="food", value=Decimal("20"), **window)
    db_session.add_all([booking_promo, food_promo])
    db_session.commit()
    return booking_promo, food_promo


@pytest.fixture
def walk_in_order(db_session, hotel, clock):
    result = OrderService(db_session, clock=clock).create_walk_in_order(WalkInOrderCreate(
        hotel_id=hotel.id,
        customer_name="李四",
        items=[
            OrderItemCreate(name="炒饭", quantity=2, unit_price=Decimal("50000")),
            OrderItemCreate(name="柠檬茶", quantity=1, unit_price=Decimal("30000")),
        ],
    ))
    assert result.success, result.message
    return result.data


class TestBookingInvoice:

    def test_room_charge_lines_and_totals(self, db_session, clock, rooms, make_booking, events):
        detail = make_booking([rooms[0].id, rooms[1].id])

        result = _service(db_session, clock, events).create_booking_invoice(
            BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT), created_by=None
        )

        assert result.success, result.message
        invoice = result.data
        assert invoice.invoice_number.startswith("INV-2501-")
        assert invoice.status == InvoiceStatus.DRAFT
        assert not invoice.is_walk_in
        assert len(invoice.lines) == 1
        assert invoice.lines[0].source_type == InvoiceLineSourceType.ROOM_CHARGE
        assert invoice.lines[0].amount == Decimal("4000000")
        assert invoice.sub_total == Decimal("4000000")
        assert invoice.tax_amount == Decimal("400000.00")
        assert invoice.total_amount == Decimal("4000000")
        assert events[-1].event_type == EventType.INVOICE_CREATED

    def test_invoice_checks_out_rooms(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        _service(db_session, clock).create_booking_invoice(
            BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT)
        )

        db_session.expire_all()
        assert db_session.get(Room, rooms[0].id).status == RoomStatus.DIRTY

    def test_booking_promotion_adds_single_discount_line(self, db_session, clock, rooms, make_booking, promotions):
        detail = make_booking([rooms[0].id, rooms[1].id])

        result = _service(db_session, clock).create_booking_invoice(
            BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT, discount_code=" ROOM10 ")
        )

        discounts = [l for l in result.data.lines if l.source_type == InvoiceLineSourceType.DISCOUNT]
        assert len(discounts) == 1
        assert discounts[0].amount == Decimal("-400000")
        assert result.data.discount_amount == Decimal("400000")
        db_session.expire_all()
        booking = db_session.get(Booking, detail.id)
        assert booking.promotion_code == "ROOM10"
        assert booking.discount_amount == Decimal("400000")

    def test_food_promotion_rejected(self, db_session, clock, rooms, make_booking, promotions):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).create_booking_invoice(
            BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT, discount_code="FOOD20")
        )

        assert result.error_kind == ErrorKind.VALIDATION
        assert db_session.query(Invoice).count() == 0

    def test_unknown_code_rolls_back_checkout(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).create_booking_invoice(
            BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT, discount_code="NOPE")
        )

        assert result.error_kind == ErrorKind.VALIDATION
        db_session.expire_all()
        assert db_session.get(Room, rooms[0].id).status == RoomStatus.AVAILABLE

    def test_additional_amount_becomes_surcharge_line(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).create_booking_invoice(BookingInvoiceRequest(
            booking_id=detail.id, checkout_time=CHECKOUT_AT,
            additional_amount=Decimal("150000"), additional_notes="洗衣",
        ))

        surcharges = [l for l in result.data.lines if l.source_type == InvoiceLineSourceType.SURCHARGE]
        assert [(l.description, l.amount) for l in surcharges] == [("洗衣", Decimal("150000"))]
        assert result.data.total_amount == Decimal("2150000")

    def test_reinvoicing_replaces_previous(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        service = _service(db_session, clock)
        request = BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT)

        first = service.create_booking_invoice(request).data
        second = service.create_booking_invoice(request).data

        assert first.id != second.id
        assert db_session.query(Invoice).filter(Invoice.booking_id == detail.id).count() == 1

    def test_unknown_booking(self, db_session, clock):
        result = _service(db_session, clock).create_booking_invoice(BookingInvoiceRequest(booking_id=404))

        assert result.error_kind == ErrorKind.NOT_FOUND


class TestWalkInInvoice:

    def test_single_fnb_line(self, db_session, clock, walk_in_order):
        result = _service(db_session, clock).create_walk_in_invoice(WalkInInvoiceRequest(
            order_id=walk_in_order.id, additional_value=Decimal("20000"), additional_notes="服务费"
        ))

        assert result.success, result.message
        invoice = result.data
        assert invoice.is_walk_in
        assert invoice.order_id == walk_in_order.id
        assert [(l.source_type, l.amount) for l in invoice.lines] == [(InvoiceLineSourceType.FNB, Decimal("150000"))]
        assert invoice.total_amount == Decimal("150000")
        assert invoice.notes == "Walk-in invoice for 李四"

    def test_booking_promotion_rejected(self, db_session, clock, walk_in_order, promotions):
        result = _service(db_session, clock).create_walk_in_invoice(
            WalkInInvoiceRequest(order_id=walk_in_order.id, discount_code="ROOM10")
        )

        assert result.error_kind == ErrorKind.VALIDATION

    def test_food_or_unknown_code_does_not_discount(self, db_session, clock, walk_in_order, promotions):
        service = _service(db_session, clock)

        food = service.create_walk_in_invoice(WalkInInvoiceRequest(order_id=walk_in_order.id, discount_code="FOOD20"))
        unknown = service.create_walk_in_invoice(WalkInInvoiceRequest(order_id=walk_in_order.id, discount_code="XYZ"))

        assert food.data.discount_amount == Decimal("0")
        assert unknown.data.total_amount == Decimal("130000")

    def test_unknown_order(self, db_session, clock):
        result = _service(db_session, clock).create_walk_in_invoice(WalkInInvoiceRequest(order_id=9))

        assert result.error_kind == ErrorKind.NOT_FOUND


class TestAdditionalCharges:

    def test_preview_fixed_and_extra_guest_fees(self, db_session, clock, hotel, rooms, make_booking):
        db_session.add_all([
            SurchargeRule(hotel_id=hotel.id, type=SurchargeType.EARLY_CHECK_IN, amount=Decimal("200000")),
            SurchargeRule(hotel_id=hotel.id, type=SurchargeType.LATE_CHECK_OUT, amount=Decimal("30"),
                          is_percentage=True),
            SurchargeRule(hotel_id=hotel.id, type=SurchargeType.EXTRA_GUEST, amount=Decimal("100000")),
        ])
        db_session.commit()
        detail = make_booking([rooms[0].id])
        br_id = detail.room_types[0].booking_rooms[0].booking_room_id
        CheckInService(db_session, clock=clock, event_publisher=lambda e: None).check_in(br_id, CheckInRequest(
            guests=[GuestPayload(full_name="王五", phone="0900000002"),
                    GuestPayload(full_name="赵六", phone="0900000003")]
        ))

        result = _service(db_session, clock).preview_additional_charges(detail.id)

        assert result.success
        amounts = [line.amount for line in result.data.lines]
        assert amounts == [Decimal("200000"), Decimal("0"), Decimal("100000")]
        assert result.data.total == Decimal("300000")

    def test_no_rules_no_lines(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).preview_additional_charges(detail.id)

        assert result.data.lines == []
        assert result.data.total == Decimal("0")


class TestEarlyCheckoutFee:

    def test_low_availability_tier(self, db_session, clock, hotel, room_type, rooms, make_booking):
        extra = [Room(hotel_id=hotel.id, room_type_id=room_type.id, number=str(104 + i), floor=1)
                 for i in range(7)]
        db_session.add_all(extra)
        db_session.commit()
        room_ids = [r.id for r in rooms + extra][:8]
        detail = make_booking(room_ids, end=datetime(2025, 1, 15, 12, 0))

        result = _service(db_session, clock).calculate_early_checkout_fee(detail.id, date(2025, 1, 12))

        fee = result.data
        assert fee.availability_percent == 20.0
        assert fee.tier == "0-40"
        assert fee.fee_percentage == 50.0
        # 8 间 × 剩余 3 晚 × 1,000,000 × 50%
        assert fee.fee_amount == Decimal("12000000.00")

    def test_middle_tier(self, db_session, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])

        result = _service(db_session, clock).calculate_early_checkout_fee(detail.id, date(2025, 1, 11))

        assert result.data.tier == "41-80"
        assert result.data.fee_amount == Decimal("250000.00")

    def test_unknown_booking(self, db_session, clock):
        result = _service(db_session, clock).calculate_early_checkout_fee(1, date(2025, 1, 11))

        assert result.error_kind == ErrorKind.NOT_FOUND


class TestRevenue:

    def test_revenue_excludes_cancelled_invoices(self, db_session, clock, hotel, rooms, make_booking, walk_in_order):
        service = _service(db_session, clock)
        detail = make_booking([rooms[0].id])
        service.create_booking_invoice(BookingInvoiceRequest(booking_id=detail.id, checkout_time=CHECKOUT_AT))
        walk_in = service.create_walk_in_invoice(WalkInInvoiceRequest(order_id=walk_in_order.id)).data
        db_session.get(Invoice, walk_in.id).status = InvoiceStatus.CANCELLED
        db_session.commit()

        stats = service.get_revenue(RevenueQuery(hotel_id=hotel.id)).data

        assert stats.total_revenue == Decimal("2000000")
        assert stats.invoice_count == 1
        assert [p.day for p in stats.points] == [date(2025, 1, 1)]

    def test_breakdown_and_details(self, db_session, clock, hotel, rooms, make_booking, walk_in_order, promotions):
        service = _service(db_session, clock)
        detail = make_booking([rooms[0].id])
        service.create_booking_invoice(BookingInvoiceRequest(
            booking_id=detail.id, checkout_time=CHECKOUT_AT, discount_code="ROOM10"
        ))
        service.create_walk_in_invoice(WalkInInvoiceRequest(order_id=walk_in_order.id))

        breakdown = service.get_revenue_breakdown(RevenueQuery(hotel_id=hotel.id)).data
        assert breakdown.room_revenue == Decimal("2000000")
        assert breakdown.fnb_revenue == Decimal("130000")
        assert breakdown.discount_total == Decimal("200000")

        fnb = service.get_revenue_details(RevenueQuery(hotel_id=hotel.id), InvoiceLineSourceType.FNB).data
        assert [item.amount for item in fnb] == [Decimal("130000")]

    def test_date_range_filter(self, db_session, clock, hotel, walk_in_order):
        service = _service(db_session, clock)
        service.create_walk_in_invoice(WalkInInvoiceRequest(order_id=walk_in_order.id))

        stats = service.get_revenue(RevenueQuery(from_date=date(2025, 1, 2))).data

        assert stats.total_revenue == Decimal("0")
        assert stats.points == []
