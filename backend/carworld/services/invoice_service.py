"""
Invoice Service
===============

Billing for service visits and counter sales.

Lifecycle:
    draft -> pending_approval -> approved | rejected
    draft | pending_approval -> cancelled

Approval issues the public PDF token, renders the PDF, creates warranties
for warranty-bearing items and notifies the customer. Notification failures
are logged and never undo the approval.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.exceptions import (
    InvoiceNotFoundError, CustomerNotFoundError, ValidationError,
    InvalidStateTransitionError, PaymentError, AuthorizationError, CouponError,
)
from carworld.core.logging_config import logger
from carworld.core.security import generate_access_token_secret
from carworld.core.types import generate_uuid
from carworld.models.customer import Customer, Vehicle
from carworld.models.coupon import CouponApplicability
from carworld.models.invoice import (
    Invoice, InvoiceStatus, InvoicePaymentStatus, DiscountType, ItemType,
)
from carworld.models.product import Product
from carworld.models.service_visit import ServiceVisit
from carworld.models.user import User
from carworld.models.warranty import WarrantyType
from carworld.schemas.invoice import (
    InvoiceCreate, InvoiceUpdate, InvoiceFromServiceVisit, InvoiceItemInput,
    PaymentCreate, InvoiceNotificationResult,
)
from carworld.services.coupon_service import coupon_service
from carworld.services.email_service import email_service
from carworld.services.invoice_pdf import render_invoice_pdf, build_public_pdf_url, pdf_file_name
from carworld.services.sequence_service import next_invoice_number
from carworld.services.warranty_service import warranty_service
from carworld.services.whatsapp_service import whatsapp_client


TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.CANCELLED},
    InvoiceStatus.PENDING_APPROVAL: {InvoiceStatus.APPROVED, InvoiceStatus.REJECTED, InvoiceStatus.CANCELLED},
    InvoiceStatus.APPROVED: set(),
    InvoiceStatus.REJECTED: set(),
    InvoiceStatus.CANCELLED: set(),
}


@dataclass
class InvoiceTotals:
    items: List[Dict[str, Any]]
    subtotal: float
    discount_amount: float
    tax_amount: float
    total_amount: float
    gst_total: float = 0


def _item_dict(item) -> Dict[str, Any]:
    if isinstance(item, dict):
        return dict(item)
    return item.model_dump()


def calculate_totals(
    items: Iterable,
    discount_type: DiscountType = DiscountType.NONE,
    discount_value: float = 0,
    tax_rate: float = 18,
) -> InvoiceTotals:
    """
    Price the invoice.

    - item total = quantity x unit price
    - item GST = item total x rate / 100 when has_gst
    - discount comes off the subtotal and never exceeds it
    - tax = item GST scaled by (subtotal - discount) / subtotal
    - total = subtotal - discount + tax
    """
    priced = []
    for raw in items:
        item = _item_dict(raw)
        item_type = item.get("type") or ItemType.PRODUCT
        item["type"] = item_type.value if isinstance(item_type, ItemType) else item_type
        total = round(item["quantity"] * item["unit_price"], 2)
        item["total"] = total
        item["gst_amount"] = round(total * tax_rate / 100, 2) if item.get("has_gst") else 0
        priced.append(item)

    subtotal = round(sum(item["total"] for item in priced), 2)
    gst_total = sum(item["gst_amount"] for item in priced)

    if discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * (discount_value or 0) / 100
    elif discount_type == DiscountType.FIXED:
        discount = discount_value or 0
    else:
        discount = 0
    discount = round(min(max(discount, 0), subtotal), 2)

    taxable_ratio = (subtotal - discount) / subtotal if subtotal > 0 else 0
    tax = round(gst_total * taxable_ratio, 2)
    total = round(subtotal - discount + tax, 2)

    return InvoiceTotals(
        items=priced,
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total_amount=total,
        gst_total=round(gst_total, 2),
    )


def coupon_base_amount(items: List[Dict[str, Any]], applicable_on: CouponApplicability) -> float:
    """Part of the subtotal a coupon applies to"""
    if applicable_on == CouponApplicability.PRODUCTS:
        wanted = ItemType.PRODUCT.value
    elif applicable_on == CouponApplicability.SERVICES:
        wanted = ItemType.SERVICE.value
    else:
        return round(sum(item["total"] for item in items), 2)
    return round(sum(item["total"] for item in items if item["type"] == wanted), 2)


def payment_status_for(paid: float, total: float) -> InvoicePaymentStatus:
    if paid <= 0:
        return InvoicePaymentStatus.UNPAID
    if paid + 0.005 >= total:
        return InvoicePaymentStatus.PAID
    return InvoicePaymentStatus.PARTIAL


def customer_snapshot(customer: Customer) -> Dict[str, Any]:
    return {
        "reference_code": customer.reference_code,
        "full_name": customer.full_name,
        "mobile_number": customer.mobile_number,
        "alternative_number": customer.alternative_number,
        "email": customer.email,
        "address": customer.address,
        "city": customer.city,
        "taluka": customer.taluka,
        "district": customer.district,
        "state": customer.state,
        "pin_code": customer.pin_code,
        "referral_source": customer.referral_source,
        "is_verified": customer.is_verified,
        "registration_date": customer.created_at.isoformat() if customer.created_at else None,
    }


def vehicle_snapshot(vehicle: Vehicle) -> Dict[str, Any]:
    return {
        "vehicle_id": vehicle.id,
        "vehicle_code": vehicle.vehicle_code,
        "vehicle_number": vehicle.vehicle_number,
        "brand": vehicle.brand,
        "model": vehicle.model,
        "custom_model": vehicle.custom_model,
        "variant": vehicle.variant.value if vehicle.variant else None,
        "color": vehicle.color,
        "year_of_purchase": vehicle.year_of_purchase,
        "is_new_vehicle": vehicle.is_new_vehicle,
        "chassis_number": vehicle.chassis_number,
        "selected_parts": list(vehicle.selected_parts or []),
    }


def service_summary(items: List[Dict[str, Any]]) -> str:
    """First item's description (or name) plus how many more"""
    if not items:
        return "Service"
    first = items[0]
    summary = first.get("description") or first.get("name") or "Service"
    if len(items) > 1:
        summary += f" +{len(items) - 1} more"
    return summary


class InvoiceService:

    # ==================== READ ====================

    async def get_invoice(self, db: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await db.get(Invoice, invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def list_query(
        self,
        status: Optional[InvoiceStatus] = None,
        payment_status: Optional[InvoicePaymentStatus] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        query = select(Invoice)
        if search:
            term = f"%{search}%"
            query = query.join(Customer, Customer.id == Invoice.customer_id).where(or_(
                Invoice.invoice_number.ilike(term),
                Customer.full_name.ilike(term),
                Customer.mobile_number.ilike(term),
            ))
        if status:
            query = query.where(Invoice.status == status)
        if payment_status:
            query = query.where(Invoice.payment_status == payment_status)
        if customer_id:
            query = query.where(Invoice.customer_id == customer_id)
        if start_date:
            query = query.where(Invoice.created_at >= start_date)
        if end_date:
            query = query.where(Invoice.created_at <= end_date)
        return query.order_by(Invoice.created_at.desc())

    # ==================== CREATE ====================

    async def _load_vehicles(self, db: AsyncSession, customer_id: str, vehicle_ids: List[str]) -> List[Vehicle]:
        if not vehicle_ids:
            return []
        result = await db.execute(select(Vehicle).where(Vehicle.id.in_(vehicle_ids)))
        vehicles = list(result.scalars().all())
        if len(vehicles) != len(set(vehicle_ids)) or any(v.customer_id != customer_id for v in vehicles):
            raise ValidationError("Vehicles must belong to the invoiced customer", field="vehicle_ids")
        return vehicles

    async def _build(
        self,
        db: AsyncSession,
        customer: Customer,
        vehicles: List[Vehicle],
        items: List[InvoiceItemInput],
        discount_type: DiscountType,
        discount_value: float,
        tax_rate: float,
        coupon_code: Optional[str],
        user: Optional[User],
        **extra,
    ) -> Invoice:
        invoice_id = generate_uuid()
        totals = calculate_totals(items, discount_type, discount_value, tax_rate)

        coupon_id = None
        coupon_base = 0.0
        if coupon_code:
            # A coupon replaces any manual discount
            coupon = await coupon_service.get_coupon_by_code(db, coupon_code)
            coupon_base = coupon_base_amount(totals.items, coupon.applicable_on) if coupon else totals.subtotal
            preview = await coupon_service.validate_coupon(db, coupon_code, coupon_base, customer.id)
            if not preview.valid:
                raise CouponError(preview.message, preview.code)
            coupon_id = preview.coupon_id
            coupon_code = preview.code
            discount_type = DiscountType.FIXED
            discount_value = preview.discount_amount
            totals = calculate_totals(items, discount_type, discount_value, tax_rate)

        invoice = Invoice(
            id=invoice_id,
            invoice_number=await next_invoice_number(db),
            customer_id=customer.id,
            customer_details=customer_snapshot(customer),
            vehicle_details=[vehicle_snapshot(v) for v in vehicles],
            items=totals.items,
            subtotal=totals.subtotal,
            discount_type=discount_type,
            discount_value=discount_value or 0,
            discount_amount=totals.discount_amount,
            coupon_code=coupon_code,
            coupon_id=coupon_id,
            tax_rate=tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            payment_status=InvoicePaymentStatus.UNPAID,
            paid_amount=0,
            due_amount=totals.total_amount,
            payments=[],
            status=InvoiceStatus.DRAFT,
            created_by=user.id if user else None,
            **extra,
        )
        db.add(invoice)
        if coupon_id:
            # Usage rows reference the invoice, so it must exist first
            await db.flush()
            await coupon_service.apply_coupon(db, coupon_code, coupon_base, customer.id, invoice.id)
        return invoice

    async def create_invoice(self, db: AsyncSession, data: InvoiceCreate, user: Optional[User]) -> Invoice:
        customer = await db.get(Customer, data.customer_id)
        if not customer:
            raise CustomerNotFoundError(data.customer_id)
        vehicles = await self._load_vehicles(db, customer.id, data.vehicle_ids)

        invoice = await self._build(
            db, customer, vehicles, data.items,
            data.discount_type, data.discount_value,
            data.tax_rate if data.tax_rate is not None else settings.DEFAULT_GST_RATE,
            data.coupon_code, user,
            service_visit_id=data.service_visit_id,
            order_id=data.order_id,
            sales_executive_id=data.sales_executive_id,
            notes=data.notes,
            terms=data.terms or settings.INVOICE_TERMS,
            due_date=data.due_date,
        )
        await db.commit()
        await db.refresh(invoice)
        logger.info(f"Created invoice {invoice.invoice_number} for {customer.full_name}: {invoice.total_amount}")
        return invoice

    async def create_from_service_visit(
        self,
        db: AsyncSession,
        visit_id: str,
        data: InvoiceFromServiceVisit,
        user: Optional[User],
    ) -> Invoice:
        """Bill the parts used on a visit plus an optional labour line"""
        visit = await db.get(ServiceVisit, visit_id)
        if not visit:
            raise ValidationError(f"Service visit '{visit_id}' not found", field="service_visit_id")
        if visit.invoice_number:
            raise ValidationError(f"Service visit already billed on {visit.invoice_number}")

        customer = await db.get(Customer, visit.customer_id)
        if not customer:
            raise CustomerNotFoundError(visit.customer_id)

        items: List[InvoiceItemInput] = []
        for part in visit.parts_used or []:
            product = await db.get(Product, part["product_id"])
            items.append(InvoiceItemInput(
                type=ItemType.PRODUCT,
                product_id=part["product_id"],
                name=product.name if product else "Part",
                description=f"{product.brand} {product.category}" if product else None,
                quantity=part["quantity"],
                unit_price=part["price"],
                has_gst=True,
            ))
        if data.labour_charge > 0:
            items.append(InvoiceItemInput(
                type=ItemType.SERVICE,
                name=data.labour_description,
                quantity=1,
                unit_price=data.labour_charge,
                has_gst=True,
            ))
        if not items and visit.total_amount:
            items.append(InvoiceItemInput(
                type=ItemType.SERVICE,
                name="Vehicle service",
                description=visit.notes,
                quantity=1,
                unit_price=visit.total_amount,
                has_gst=True,
            ))
        if not items:
            raise ValidationError("Service visit has nothing to bill")

        result = await db.execute(
            select(Vehicle).where(
                Vehicle.customer_id == customer.id,
                Vehicle.vehicle_number == visit.vehicle_reg,
            )
        )
        vehicles = list(result.scalars().all())

        invoice = await self._build(
            db, customer, vehicles, items,
            data.discount_type, data.discount_value, settings.DEFAULT_GST_RATE,
            data.coupon_code, user,
            service_visit_id=visit.id,
            notes=data.notes,
            terms=settings.INVOICE_TERMS,
            due_date=data.due_date,
        )
        visit.invoice_number = invoice.invoice_number
        visit.invoice_date = datetime.utcnow()
        await db.commit()
        await db.refresh(invoice)
        logger.info(f"Created invoice {invoice.invoice_number} from service visit {visit.id}")
        return invoice

    async def update_invoice(self, db: AsyncSession, invoice_id: str, data: InvoiceUpdate) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise ValidationError("Only draft invoices can be edited")

        update_dict = data.model_dump(exclude_unset=True)
        for key in ("sales_executive_id", "notes", "terms", "due_date"):
            if key in update_dict:
                setattr(invoice, key, update_dict[key])

        if {"items", "discount_type", "discount_value", "tax_rate"} & update_dict.keys():
            items = data.items if data.items is not None else invoice.items
            tax_rate = data.tax_rate if data.tax_rate is not None else invoice.tax_rate
            if invoice.coupon_code:
                discount_type, discount_value = invoice.discount_type, invoice.discount_value
            else:
                discount_type = data.discount_type or invoice.discount_type
                discount_value = data.discount_value if data.discount_value is not None else invoice.discount_value
            totals = calculate_totals(items, discount_type, discount_value, tax_rate)
            invoice.items = totals.items
            invoice.discount_type = discount_type
            invoice.discount_value = discount_value
            invoice.tax_rate = tax_rate
            invoice.subtotal = totals.subtotal
            invoice.discount_amount = totals.discount_amount
            invoice.tax_amount = totals.tax_amount
            invoice.total_amount = totals.total_amount
            invoice.due_amount = round(max(totals.total_amount - invoice.paid_amount, 0), 2)
            invoice.payment_status = payment_status_for(invoice.paid_amount, invoice.total_amount)

        invoice.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(invoice)
        return invoice

    # ==================== WORKFLOW ====================

    def _transition(self, invoice: Invoice, target: InvoiceStatus) -> None:
        if target not in TRANSITIONS[invoice.status]:
            raise InvalidStateTransitionError("Invoice", invoice.status.value, target.value)
        invoice.status = target
        invoice.updated_at = datetime.utcnow()

    async def submit(self, db: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        self._transition(invoice, InvoiceStatus.PENDING_APPROVAL)
        await db.commit()
        await db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} submitted for approval")
        return invoice

    async def reject(self, db: AsyncSession, invoice_id: str, reason: str, user: User) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        self._transition(invoice, InvoiceStatus.REJECTED)
        invoice.rejected_by = user.id
        invoice.rejected_at = datetime.utcnow()
        invoice.rejection_reason = reason
        await db.commit()
        await db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} rejected by {user.email}: {reason}")
        return invoice

    async def cancel(self, db: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        self._transition(invoice, InvoiceStatus.CANCELLED)
        await db.commit()
        await db.refresh(invoice)
        return invoice

    async def approve(self, db: AsyncSession, invoice_id: str, user: User, notify: bool = True) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        self._transition(invoice, InvoiceStatus.APPROVED)
        now = datetime.utcnow()
        invoice.approved_by = user.id
        invoice.approved_at = now
        invoice.pdf_access_token = generate_access_token_secret()
        invoice.pdf_token_expiry = now + timedelta(days=settings.INVOICE_PDF_TOKEN_DAYS)

        items = [dict(item) for item in invoice.items or []]
        for item in items:
            if item.get("has_warranty") and item.get("warranty_months") and not item.get("warranty_id"):
                warranty = await warranty_service.issue(
                    db, invoice,
                    product_name=item["name"],
                    duration_months=item["warranty_months"],
                    product_id=item.get("product_id"),
                    warranty_type=WarrantyType.MANUFACTURER if item.get("type") == ItemType.PRODUCT.value
                    else WarrantyType.SERVICE,
                    start_date=now,
                    terms=invoice.terms,
                )
                item["warranty_id"] = warranty.id
        invoice.items = items
        await db.commit()
        await db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} approved by {user.email}")

        try:
            invoice.pdf_path = str(render_invoice_pdf(invoice))
            await db.commit()
        except Exception as e:
            logger.log_error_with_context(e, context=f"render PDF {invoice.invoice_number}")
            await db.rollback()
            await db.refresh(invoice)

        if notify:
            await self.send_invoice_notifications(db, invoice)
        await db.refresh(invoice)
        return invoice

    # ==================== NOTIFICATIONS ====================

    async def send_invoice_notifications(self, db: AsyncSession, invoice: Invoice) -> InvoiceNotificationResult:
        """
        Email and WhatsApp the approved invoice. The WhatsApp flag is
        persisted before sending and is never cleared, so a customer gets
        at most one WhatsApp per invoice even when a send fails. Never raises.
        """
        result = InvoiceNotificationResult()
        try:
            if invoice.whatsapp_sent and invoice.whatsapp_sent_at:
                logger.info(f"WhatsApp already sent for {invoice.invoice_number} on {invoice.whatsapp_sent_at}, skipping")
                result.skipped = True
                return result

            pdf_url = build_public_pdf_url(invoice)
            customer = invoice.customer_details or {}
            summary = service_summary(invoice.items or [])

            email_ok = False
            if customer.get("email") and not invoice.email_sent:
                email_ok = await email_service.send_invoice_email(
                    customer["email"], customer.get("full_name", ""), invoice.invoice_number,
                    invoice.total_amount, summary, pdf_url,
                )
                if not email_ok:
                    result.errors.append("email delivery failed")

            if customer.get("mobile_number") and not invoice.whatsapp_sent:
                invoice.whatsapp_sent = True
                invoice.whatsapp_sent_at = datetime.utcnow()
                await db.commit()

                sent = await whatsapp_client.send_invoice(customer["mobile_number"], invoice.invoice_number, pdf_url)
                logger.log_notification_event(
                    "whatsapp", "invoice", sent.success,
                    recipient=customer["mobile_number"],
                    invoice_number=invoice.invoice_number,
                    error=sent.error,
                )
                result.whatsapp_sent = sent.success
                if not sent.success:
                    logger.error(
                        f"WhatsApp invoice {invoice.invoice_number} failed, flag kept to avoid duplicates: {sent.error}"
                    )
                    result.errors.append(sent.error or "whatsapp delivery failed")

            if email_ok:
                invoice.email_sent = True
                invoice.email_sent_at = datetime.utcnow()
                await db.commit()
            result.email_sent = email_ok
        except Exception as e:
            logger.log_error_with_context(e, context=f"invoice notifications {invoice.invoice_number}")
            result.errors.append(str(e))
        return result

    async def resend_notifications(self, db: AsyncSession, invoice_id: str) -> InvoiceNotificationResult:
        invoice = await self.get_invoice(db, invoice_id)
        if invoice.status != InvoiceStatus.APPROVED:
            raise ValidationError("Only approved invoices can be sent to the customer")
        return await self.send_invoice_notifications(db, invoice)

    # ==================== PAYMENTS ====================

    async def record_payment(
        self,
        db: AsyncSession,
        invoice_id: str,
        data: PaymentCreate,
        user: Optional[User],
    ) -> Invoice:
        invoice = await self.get_invoice(db, invoice_id)
        if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.REJECTED):
            raise PaymentError(f"Cannot record a payment on a {invoice.status.value} invoice")
        if data.amount <= 0:
            raise PaymentError("Payment amount must be greater than zero")
        if round(data.amount, 2) > round(invoice.due_amount, 2):
            raise PaymentError(f"Payment amount exceeds the amount due ({invoice.due_amount:.2f})")

        entry = {
            "id": generate_uuid(),
            "amount": round(data.amount, 2),
            "payment_mode": data.payment_mode.value,
            "transaction_id": data.transaction_id,
            "transaction_date": (data.transaction_date or datetime.utcnow()).isoformat(),
            "notes": data.notes,
            "recorded_by": user.id if user else None,
        }
        invoice.payments = [*(invoice.payments or []), entry]
        invoice.paid_amount = round(invoice.paid_amount + data.amount, 2)
        invoice.due_amount = round(max(invoice.total_amount - invoice.paid_amount, 0), 2)
        invoice.payment_status = payment_status_for(invoice.paid_amount, invoice.total_amount)
        invoice.payment_method = data.payment_mode
        invoice.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(invoice)
        logger.info(
            f"Payment {data.amount} ({data.payment_mode.value}) on {invoice.invoice_number}, due {invoice.due_amount}"
        )
        return invoice

    # ==================== PUBLIC PDF ====================

    async def public_pdf_path(self, db: AsyncSession, invoice_id: str, token: Optional[str]) -> Path:
        """
        PDF for the public link. The token must match and be unexpired;
        otherwise AuthorizationError. Missing files are re-rendered.
        """
        invoice = await self.get_invoice(db, invoice_id)
        if (
            not token
            or not invoice.pdf_access_token
            or not secrets.compare_digest(invoice.pdf_access_token, token)
        ):
            raise AuthorizationError("Invalid invoice link")
        if not invoice.pdf_token_expiry or invoice.pdf_token_expiry < datetime.utcnow():
            raise AuthorizationError("Invoice link has expired")

        path = Path(invoice.pdf_path) if invoice.pdf_path else settings.INVOICE_PDF_PATH / pdf_file_name(invoice.invoice_number)
        if not path.exists():
            path = render_invoice_pdf(invoice)
            invoice.pdf_path = str(path)
            await db.commit()
        return path


invoice_service = InvoiceService()
