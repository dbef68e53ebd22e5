"""
Coupon Service - Business logic for invoice discount coupons

Handles:
- Coupon CRUD
- Validity checks (active, window, global and per-customer limits, minimum purchase)
- Discount calculation and usage recording
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional, List, Tuple

from carworld.core.exceptions import CouponError, CouponNotFoundError, DuplicateResourceError, ValidationError
from carworld.core.logging_config import logger
from carworld.models.coupon import Coupon, CouponUsage, CouponDiscountType
from carworld.schemas.coupon import CouponCreate, CouponUpdate, CouponValidateResponse, coupon_terms_problem


def rejection_reason(
    coupon: Coupon,
    customer_uses: int = 0,
    amount: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    First failing rule for this coupon, or None when it can be applied.

    Rules are checked in order: inactive, not yet valid, expired, global
    usage limit, per-customer limit, minimum purchase amount.
    """
    now = now or datetime.utcnow()

    if not coupon.is_active:
        return "Coupon is inactive"
    if now < coupon.valid_from:
        return "Coupon not yet valid"
    if now > coupon.valid_until:
        return "Coupon has expired"
    if coupon.max_uses > 0 and coupon.used_count >= coupon.max_uses:
        return "Coupon usage limit reached"
    if coupon.max_uses_per_customer > 0 and customer_uses >= coupon.max_uses_per_customer:
        return "Coupon usage limit reached for this customer"
    if amount is not None and amount < (coupon.min_purchase_amount or 0):
        return f"Minimum purchase amount of ₹{coupon.min_purchase_amount:g} required"
    return None


def calculate_discount(coupon: Coupon, amount: float) -> float:
    """Percentage discounts respect max_discount_amount, fixed ones never exceed the amount"""
    if coupon.discount_type == CouponDiscountType.PERCENTAGE:
        discount = amount * coupon.discount_value / 100
        if coupon.max_discount_amount and discount > coupon.max_discount_amount:
            discount = coupon.max_discount_amount
    else:
        discount = min(coupon.discount_value, amount)
    return round(discount, 2)


class CouponService:
    """Service for managing coupons"""

    # ==================== COUPON CRUD ====================

    async def create_coupon(self, db: AsyncSession, data: CouponCreate, created_by_id: Optional[str]) -> Coupon:
        if await self.get_coupon_by_code(db, data.code):
            raise DuplicateResourceError("Coupon", "code", data.code)

        coupon = Coupon(**data.model_dump(), used_count=0, created_by=created_by_id)
        db.add(coupon)
        await db.commit()
        await db.refresh(coupon)

        logger.info(f"Created coupon {coupon.code}")
        return coupon

    async def get_coupon(self, db: AsyncSession, coupon_id: str) -> Coupon:
        coupon = await db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponNotFoundError(coupon_id)
        return coupon

    async def get_coupon_by_code(self, db: AsyncSession, code: str) -> Optional[Coupon]:
        result = await db.execute(select(Coupon).where(Coupon.code == code.strip().upper()))
        return result.scalar_one_or_none()

    async def list_coupons(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Coupon], int]:
        """
        List coupons with pagination and filters

        Returns:
            Tuple of (coupons list, total count)
        """
        conditions = []
        if active is not None:
            conditions.append(Coupon.is_active == active)
        if search:
            term = f"%{search}%"
            conditions.append(or_(Coupon.code.ilike(term), Coupon.description.ilike(term)))

        total = (await db.execute(select(func.count(Coupon.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(Coupon)
            .where(*conditions)
            .order_by(Coupon.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_coupon(self, db: AsyncSession, coupon_id: str, data: CouponUpdate) -> Coupon:
        coupon = await self.get_coupon(db, coupon_id)
        changes = data.model_dump(exclude_unset=True)
        problem = coupon_terms_problem(
            coupon.discount_type,
            changes.get("discount_value", coupon.discount_value),
            changes.get("valid_from", coupon.valid_from),
            changes.get("valid_until", coupon.valid_until),
        )
        if problem:
            raise ValidationError(problem)

        for field, value in changes.items():
            setattr(coupon, field, value)
        coupon.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(coupon)

        logger.info(f"Updated coupon {coupon.code}")
        return coupon

    async def delete_coupon(self, db: AsyncSession, coupon_id: str) -> None:
        coupon = await self.get_coupon(db, coupon_id)
        await db.delete(coupon)
        await db.commit()
        logger.info(f"Deleted coupon {coupon.code}")

    # ==================== VALIDATION ====================

    async def customer_usage_count(self, db: AsyncSession, coupon_id: str, customer_id: Optional[str]) -> int:
        if not customer_id:
            return 0
        count = await db.scalar(
            select(func.count(CouponUsage.id)).where(
                CouponUsage.coupon_id == coupon_id,
                CouponUsage.customer_id == customer_id,
            )
        )
        return count or 0

    async def check_validity(
        self,
        db: AsyncSession,
        coupon: Coupon,
        customer_id: Optional[str] = None,
        amount: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        customer_uses = await self.customer_usage_count(db, coupon.id, customer_id)
        return rejection_reason(coupon, customer_uses, amount, now)

    async def validate_coupon(
        self,
        db: AsyncSession,
        code: str,
        amount: float,
        customer_id: Optional[str] = None,
    ) -> CouponValidateResponse:
        """Preview a coupon against an amount without recording usage"""
        code = code.strip().upper()
        coupon = await self.get_coupon_by_code(db, code)
        if not coupon:
            return CouponValidateResponse(valid=False, code=code, message="Invalid coupon code")

        reason = await self.check_validity(db, coupon, customer_id, amount)
        if reason:
            return CouponValidateResponse(valid=False, code=code, message=reason, coupon_id=coupon.id)

        discount = calculate_discount(coupon, amount)
        return CouponValidateResponse(
            valid=True,
            code=code,
            message="Coupon applied",
            discount_amount=discount,
            final_amount=round(amount - discount, 2),
            coupon_id=coupon.id,
        )

    async def apply_coupon(
        self,
        db: AsyncSession,
        code: str,
        amount: float,
        customer_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ) -> Tuple[Coupon, float]:
        """
        Validate, compute the discount and stage a CouponUsage row.
        The caller commits together with the invoice.

        Raises:
            CouponError: coupon missing or not applicable
        """
        coupon = await self.get_coupon_by_code(db, code)
        if not coupon:
            raise CouponError("Invalid coupon code", code)

        reason = await self.check_validity(db, coupon, customer_id, amount)
        if reason:
            raise CouponError(reason, coupon.code)

        discount = calculate_discount(coupon, amount)
        coupon.used_count = (coupon.used_count or 0) + 1
        db.add(CouponUsage(
            coupon_id=coupon.id,
            invoice_id=invoice_id,
            customer_id=customer_id,
            discount_applied=discount,
        ))
        logger.info(f"Coupon {coupon.code} applied: -{discount}")
        return coupon, discount


coupon_service = CouponService()
