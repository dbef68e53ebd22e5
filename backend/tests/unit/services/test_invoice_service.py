"""
Unit Tests for invoice pricing, workflow, payments and notifications
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from sqlalchemy import select

from carworld.core.exceptions import InvalidStateTransitionError, PaymentError, ValidationError, CouponError
from carworld.models.coupon import CouponApplicability, CouponDiscountType, CouponUsage
from carworld.models.invoice import (
    DiscountType, InvoiceStatus, InvoicePaymentStatus, PaymentMode,
)
from carworld.models.warranty import Warranty
from carworld.schemas.coupon import CouponCreate
from carworld.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceItemInput, PaymentCreate
from carworld.services.coupon_service import coupon_service
from carworld.services.invoice_service import (
    invoice_service,
    calculate_totals,
    coupon_base_amount,
    payment_status_for,
    service_summary,
)
from carworld.services.whatsapp_service import WhatsAppResult

SEAT_COVER = {"type": "product", "name": "Seat Cover", "quantity": 2, "unit_price": 2500, "has_gst": True}
LABOUR = {"type": "service", "name": "Fitting", "quantity": 1, "unit_price": 800, "has_gst": False}


def invoice_payload(customer, **overrides) -> InvoiceCreate:
    values = dict(
        customer_id=customer.id,
        items=[
            InvoiceItemInput(name="Seat Cover", quantity=2, unit_price=2500),
            InvoiceItemInput(type="service", name="Fitting", quantity=1, unit_price=800, has_gst=False),
        ],
    )
    values.update(overrides)
    return InvoiceCreate(**values)


class TestCalculateTotals:
    """Test invoice pricing"""

    def test_no_discount(self):
        totals = calculate_totals([SEAT_COVER, LABOUR], DiscountType.NONE, 0, 18)

        assert totals.subtotal == 5800
        assert totals.items[0]["total"] == 5000
        assert totals.items[0]["gst_amount"] == 900
        assert totals.items[1]["gst_amount"] == 0
        assert totals.tax_amount == 900
        assert totals.total_amount == 6700

    def test_percentage_discount_scales_tax(self):
        totals = calculate_totals([SEAT_COVER, LABOUR], DiscountType.PERCENTAGE, 10, 18)

        assert totals.discount_amount == 580
        assert totals.tax_amount == 810
        assert totals.total_amount == 6030

    def test_fixed_discount_clamped_to_subtotal(self):
        totals = calculate_totals([LABOUR], DiscountType.FIXED, 5000, 18)

        assert totals.discount_amount == 800
        assert totals.total_amount == 0

    def test_coupon_base_by_applicability(self):
        items = calculate_totals([SEAT_COVER, LABOUR]).items

        assert coupon_base_amount(items, CouponApplicability.ALL) == 5800
        assert coupon_base_amount(items, CouponApplicability.PRODUCTS) == 5000
        assert coupon_base_amount(items, CouponApplicability.SERVICES) == 800


class TestHelpers:

    @pytest.mark.parametrize("paid,total,expected", [
        (0, 100, InvoicePaymentStatus.UNPAID),
        (40, 100, InvoicePaymentStatus.PARTIAL),
        (100, 100, InvoicePaymentStatus.PAID),
        (99.996, 100, InvoicePaymentStatus.PAID),
    ])
    def test_payment_status(self, paid, total, expected):
        assert payment_status_for(paid, total) == expected

    def test_service_summary(self):
        assert service_summary([]) == "Service"
        assert service_summary([{"name": "Seat Cover"}]) == "Seat Cover"
        assert service_summary([{"name": "Seat Cover", "description": "Leather"}, {"name": "Fitting"}]) == "Leather +1 more"


class TestInvoiceWorkflow:
    """draft -> pending_approval -> approved | rejected"""

    @pytest.mark.asyncio
    async def test_create_snapshots_customer_and_numbers(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)

        year = datetime.utcnow().year
        assert invoice.invoice_number == f"INV/{year}/0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.customer_details["full_name"] == customer.full_name
        assert invoice.total_amount == 6700
        assert invoice.due_amount == 6700
        assert invoice.payment_status == InvoicePaymentStatus.UNPAID

        second = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)
        assert second.invoice_number == f"INV/{year}/0002"

    @pytest.mark.asyncio
    async def test_only_drafts_editable(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)
        await invoice_service.submit(db_session, invoice.id)

        with pytest.raises(ValidationError):
            await invoice_service.update_invoice(db_session, invoice.id, InvoiceUpdate(notes="late edit"))

    @pytest.mark.asyncio
    async def test_cannot_approve_draft(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)

        with pytest.raises(InvalidStateTransitionError):
            await invoice_service.approve(db_session, invoice.id, admin_user, notify=False)

    @pytest.mark.asyncio
    async def test_rejected_is_terminal(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)
        await invoice_service.submit(db_session, invoice.id)
        rejected = await invoice_service.reject(db_session, invoice.id, "Wrong price", admin_user)

        assert rejected.status == InvoiceStatus.REJECTED
        assert rejected.rejection_reason == "Wrong price"
        with pytest.raises(InvalidStateTransitionError):
            await invoice_service.submit(db_session, invoice.id)

    @pytest.mark.asyncio
    async def test_approve_issues_warranties_and_pdf_token(self, db_session, customer, admin_user):
        payload = invoice_payload(customer, items=[
            InvoiceItemInput(name="Music System", quantity=1, unit_price=12000, has_warranty=True, warranty_months=12),
        ])
        invoice = await invoice_service.create_invoice(db_session, payload, admin_user)
        await invoice_service.submit(db_session, invoice.id)

        approved = await invoice_service.approve(db_session, invoice.id, admin_user, notify=False)

        assert approved.status == InvoiceStatus.APPROVED
        assert approved.approved_by == admin_user.id
        assert approved.pdf_access_token
        warranties = (await db_session.execute(select(Warranty))).scalars().all()
        assert len(warranties) == 1
        assert warranties[0].customer_id == customer.id
        assert approved.items[0]["warranty_id"] == warranties[0].id


class TestCouponOnInvoice:

    @pytest.mark.asyncio
    async def test_coupon_replaces_manual_discount(self, db_session, customer, admin_user):
        now = datetime.utcnow()
        await coupon_service.create_coupon(db_session, CouponCreate(
            code="FIT500",
            discount_type=CouponDiscountType.FIXED,
            discount_value=500,
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=30),
        ), admin_user.id)

        invoice = await invoice_service.create_invoice(
            db_session,
            invoice_payload(customer, coupon_code="fit500", discount_type=DiscountType.PERCENTAGE, discount_value=50),
            admin_user,
        )

        assert invoice.coupon_code == "FIT500"
        assert invoice.discount_amount == 500
        usage = (await db_session.execute(select(CouponUsage))).scalar_one()
        assert usage.invoice_id == invoice.id

    @pytest.mark.asyncio
    async def test_invalid_coupon_blocks_invoice(self, db_session, customer, admin_user):
        with pytest.raises(CouponError):
            await invoice_service.create_invoice(
                db_session, invoice_payload(customer, coupon_code="GHOST"), admin_user,
            )


class TestPayments:
    """Test record_payment"""

    @pytest.mark.asyncio
    async def test_partial_then_full(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)

        invoice = await invoice_service.record_payment(
            db_session, invoice.id, PaymentCreate(amount=2000, payment_mode=PaymentMode.UPI), admin_user,
        )
        assert invoice.payment_status == InvoicePaymentStatus.PARTIAL
        assert invoice.due_amount == 4700

        invoice = await invoice_service.record_payment(
            db_session, invoice.id, PaymentCreate(amount=4700, payment_mode=PaymentMode.CASH), admin_user,
        )
        assert invoice.payment_status == InvoicePaymentStatus.PAID
        assert invoice.due_amount == 0
        assert len(invoice.payments) == 2

    @pytest.mark.asyncio
    async def test_overpayment_rejected(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)

        with pytest.raises(PaymentError):
            await invoice_service.record_payment(
                db_session, invoice.id, PaymentCreate(amount=7000, payment_mode=PaymentMode.CARD), admin_user,
            )

    @pytest.mark.asyncio
    async def test_no_payments_on_cancelled(self, db_session, customer, admin_user):
        invoice = await invoice_service.create_invoice(db_session, invoice_payload(customer), admin_user)
        await invoice_service.cancel(db_session, invoice.id)

        with pytest.raises(PaymentError):
            await invoice_service.record_payment(
                db_session, invoice.id, PaymentCreate(amount=100, payment_mode=PaymentMode.CASH), admin_user,
            )


class TestNotifications:
    """WhatsApp goes out at most once per invoice"""

    async def _approved(self, db, customer, user):
        invoice = await invoice_service.create_invoice(db, invoice_payload(customer), user)
        await invoice_service.submit(db, invoice.id)
        return await invoice_service.approve(db, invoice.id, user, notify=False)

    @pytest.mark.asyncio
    async def test_sends_email_and_whatsapp(self, db_session, customer, admin_user):
        invoice = await self._approved(db_session, customer, admin_user)

        with patch("carworld.services.invoice_service.whatsapp_client") as whatsapp, \
                patch("carworld.services.invoice_service.email_service") as email:
            whatsapp.send_invoice = AsyncMock(return_value=WhatsAppResult(success=True))
            email.send_invoice_email = AsyncMock(return_value=True)

            result = await invoice_service.send_invoice_notifications(db_session, invoice)

        assert result.whatsapp_sent is True
        assert result.email_sent is True
        assert invoice.whatsapp_sent is True
        assert invoice.email_sent is True
        pdf_url = whatsapp.send_invoice.await_args.args[2]
        assert pdf_url.startswith("http")
        assert invoice.pdf_access_token in pdf_url

    @pytest.mark.asyncio
    async def test_second_send_skipped(self, db_session, customer, admin_user):
        invoice = await self._approved(db_session, customer, admin_user)

        with patch("carworld.services.invoice_service.whatsapp_client") as whatsapp, \
                patch("carworld.services.invoice_service.email_service") as email:
            whatsapp.send_invoice = AsyncMock(return_value=WhatsAppResult(success=True))
            email.send_invoice_email = AsyncMock(return_value=True)

            await invoice_service.send_invoice_notifications(db_session, invoice)
            again = await invoice_service.send_invoice_notifications(db_session, invoice)

        assert again.skipped is True
        assert whatsapp.send_invoice.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_whatsapp_keeps_flag(self, db_session, customer, admin_user):
        invoice = await self._approved(db_session, customer, admin_user)

        with patch("carworld.services.invoice_service.whatsapp_client") as whatsapp, \
                patch("carworld.services.invoice_service.email_service") as email:
            whatsapp.send_invoice = AsyncMock(return_value=WhatsAppResult(success=False, error="HTTP 500"))
            email.send_invoice_email = AsyncMock(return_value=False)

            result = await invoice_service.send_invoice_notifications(db_session, invoice)

        assert result.whatsapp_sent is False
        assert "HTTP 500" in result.errors
        assert invoice.whatsapp_sent is True
        assert invoice.email_sent is False

    @pytest.mark.asyncio
    async def test_never_raises(self, db_session, customer, admin_user):
        invoice = await self._approved(db_session, customer, admin_user)

        with patch("carworld.services.invoice_service.whatsapp_client") as whatsapp, \
                patch("carworld.services.invoice_service.email_service") as email:
            whatsapp.send_invoice = AsyncMock(side_effect=RuntimeError("socket closed"))
            email.send_invoice_email = AsyncMock(return_value=True)

            result = await invoice_service.send_invoice_notifications(db_session, invoice)

        assert "socket closed" in result.errors
