"""
Invoice model

Customer and vehicle details are snapshotted into the invoice at creation so a
later edit of the customer never changes an issued invoice. Items and payments
are stored as JSON lists:

    items:    [{type, product_id, name, description, quantity, unit_price,
                total, has_gst, gst_amount, has_warranty, warranty_months,
                warranty_id}]
    payments: [{id, amount, payment_mode, transaction_id, transaction_date,
                notes, recorded_by}]
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Float, ForeignKey, Enum as SQLEnum,
    Text, JSON, Index,
)
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class InvoicePaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    NONE = "none"


class PaymentMode(str, enum.Enum):
    UPI = "UPI"
    CASH = "Cash"
    CARD = "Card"
    NET_BANKING = "Net Banking"
    CHEQUE = "Cheque"


class ItemType(str, enum.Enum):
    PRODUCT = "product"
    SERVICE = "service"


class Invoice(Base):
    __tablename__ = "invoices"

    __table_args__ = (
        Index('ix_invoices_customer', 'customer_id'),
        Index('ix_invoices_status', 'status'),
        Index('ix_invoices_created_at', 'created_at'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(30), unique=True, nullable=False)  # INV/2025/0001

    service_visit_id = Column(GUID, ForeignKey("service_visits.id", ondelete="SET NULL"), nullable=True)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)

    customer_details = Column(JSON, nullable=False)
    vehicle_details = Column(JSON, default=list, nullable=False)
    items = Column(JSON, default=list, nullable=False)

    # Pricing
    subtotal = Column(Float, nullable=False)
    discount_type = Column(SQLEnum(DiscountType), default=DiscountType.NONE, nullable=False)
    discount_value = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    coupon_code = Column(String(50), nullable=True)
    coupon_id = Column(GUID, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)

    tax_rate = Column(Float, default=18, nullable=False)
    tax_amount = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)

    # Payment
    payment_status = Column(SQLEnum(InvoicePaymentStatus), default=InvoicePaymentStatus.UNPAID, nullable=False)
    payment_method = Column(SQLEnum(PaymentMode), nullable=True)
    paid_amount = Column(Float, default=0, nullable=False)
    due_amount = Column(Float, nullable=False)
    payments = Column(JSON, default=list, nullable=False)

    # Approval workflow
    status = Column(SQLEnum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False)
    approved_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Staff
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sales_executive_id = Column(GUID, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    # Notification flags
    email_sent = Column(Boolean, default=False, nullable=False)
    email_sent_at = Column(DateTime, nullable=True)
    whatsapp_sent = Column(Boolean, default=False, nullable=False)
    whatsapp_sent_at = Column(DateTime, nullable=True)

    # PDF
    pdf_path = Column(String(500), nullable=True)
    pdf_access_token = Column(String(100), nullable=True)
    pdf_token_expiry = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Invoice {self.invoice_number} {self.status.value if self.status else ''}>"
