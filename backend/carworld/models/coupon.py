"""
Coupon Models - discount codes applied to invoices
"""

from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Enum as SQLEnum, Text, Index, Float
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class CouponDiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponApplicability(str, enum.Enum):
    ALL = "all"
    PRODUCTS = "products"
    SERVICES = "services"


class Coupon(Base):
    """
    Discount code.

    max_uses of 0 means unlimited. max_discount_amount caps percentage
    discounts only.
    """
    __tablename__ = "coupons"

    __table_args__ = (
        Index('ix_coupons_active', 'is_active'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Always stored upper-cased
    code = Column(String(50), unique=True, nullable=False)
    description = Column(Text, nullable=True)

    discount_type = Column(SQLEnum(CouponDiscountType), nullable=False)
    discount_value = Column(Float, nullable=False)

    max_uses = Column(Integer, default=0, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    max_uses_per_customer = Column(Integer, default=1, nullable=False)

    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)

    min_purchase_amount = Column(Float, default=0, nullable=False)
    max_discount_amount = Column(Float, nullable=True)
    applicable_on = Column(SQLEnum(CouponApplicability), default=CouponApplicability.ALL, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Coupon {self.code}>"


class CouponUsage(Base):
    """One application of a coupon to an invoice"""
    __tablename__ = "coupon_usages"

    __table_args__ = (
        Index('ix_coupon_usages_coupon', 'coupon_id'),
        Index('ix_coupon_usages_customer', 'customer_id'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    coupon_id = Column(GUID, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    invoice_id = Column(GUID, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    discount_applied = Column(Float, nullable=False)
    used_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CouponUsage {self.coupon_id} by {self.customer_id}>"
