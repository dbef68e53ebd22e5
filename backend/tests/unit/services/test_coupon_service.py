"""
Unit Tests for coupon rules and usage tracking
"""
import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select

from carworld.core.exceptions import CouponError, DuplicateResourceError, ValidationError
from carworld.models.coupon import Coupon, CouponUsage, CouponDiscountType
from carworld.schemas.coupon import CouponCreate, CouponUpdate
from carworld.services.coupon_service import coupon_service, rejection_reason, calculate_discount

NOW = datetime(2025, 6, 15, 12, 0)


def make_coupon(**overrides) -> Coupon:
    values = dict(
        code="MONSOON10",
        discount_type=CouponDiscountType.PERCENTAGE,
        discount_value=10,
        max_uses=0,
        used_count=0,
        max_uses_per_customer=1,
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=30),
        min_purchase_amount=0,
        max_discount_amount=None,
        is_active=True,
    )
    values.update(overrides)
    return Coupon(**values)


def coupon_payload(**overrides) -> CouponCreate:
    now = datetime.utcnow()
    values = dict(
        code="festive20",
        discount_type=CouponDiscountType.PERCENTAGE,
        discount_value=20,
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=10),
    )
    values.update(overrides)
    return CouponCreate(**values)


class TestRejectionReason:
    """Rules are checked in a fixed order"""

    def test_valid_coupon(self):
        assert rejection_reason(make_coupon(), 0, 1000, NOW) is None

    def test_inactive(self):
        assert rejection_reason(make_coupon(is_active=False), 0, 1000, NOW) == "Coupon is inactive"

    def test_not_yet_valid(self):
        coupon = make_coupon(valid_from=NOW + timedelta(days=1))
        assert rejection_reason(coupon, 0, 1000, NOW) == "Coupon not yet valid"

    def test_expired(self):
        coupon = make_coupon(valid_until=NOW - timedelta(minutes=1))
        assert rejection_reason(coupon, 0, 1000, NOW) == "Coupon has expired"

    def test_global_limit(self):
        coupon = make_coupon(max_uses=5, used_count=5)
        assert rejection_reason(coupon, 0, 1000, NOW) == "Coupon usage limit reached"

    def test_zero_max_uses_is_unlimited(self):
        coupon = make_coupon(max_uses=0, used_count=500)
        assert rejection_reason(coupon, 0, 1000, NOW) is None

    def test_per_customer_limit(self):
        coupon = make_coupon(max_uses_per_customer=2)
        assert rejection_reason(coupon, 2, 1000, NOW) == "Coupon usage limit reached for this customer"

    def test_minimum_purchase(self):
        coupon = make_coupon(min_purchase_amount=1500)
        assert rejection_reason(coupon, 0, 999, NOW) == "Minimum purchase amount of ₹1500 required"

    def test_inactive_reported_before_expiry(self):
        coupon = make_coupon(is_active=False, valid_until=NOW - timedelta(days=1))
        assert rejection_reason(coupon, 0, 1000, NOW) == "Coupon is inactive"


class TestCalculateDiscount:

    def test_percentage(self):
        assert calculate_discount(make_coupon(discount_value=10), 2500) == 250

    def test_percentage_capped(self):
        coupon = make_coupon(discount_value=50, max_discount_amount=500)
        assert calculate_discount(coupon, 4000) == 500

    def test_fixed_never_exceeds_amount(self):
        coupon = make_coupon(discount_type=CouponDiscountType.FIXED, discount_value=1000)
        assert calculate_discount(coupon, 600) == 600


class TestCouponSchema:

    def test_code_upper_cased(self):
        assert coupon_payload(code="  festive-20 ").code == "FESTIVE-20"

    def test_rejects_symbols_in_code(self):
        with pytest.raises(SchemaValidationError):
            coupon_payload(code="50%OFF")

    def test_percentage_over_100(self):
        with pytest.raises(SchemaValidationError):
            coupon_payload(discount_value=120)

    def test_window_must_be_ordered(self):
        now = datetime.utcnow()
        with pytest.raises(SchemaValidationError):
            coupon_payload(valid_from=now, valid_until=now - timedelta(days=1))


class TestCouponService:
    """Test coupon persistence and usage"""

    @pytest.mark.asyncio
    async def test_duplicate_code(self, db_session):
        await coupon_service.create_coupon(db_session, coupon_payload(), None)

        with pytest.raises(DuplicateResourceError):
            await coupon_service.create_coupon(db_session, coupon_payload(code="FESTIVE20"), None)

    @pytest.mark.asyncio
    async def test_validate_unknown_code(self, db_session):
        result = await coupon_service.validate_coupon(db_session, "nope", 1000)

        assert result.valid is False
        assert result.message == "Invalid coupon code"

    @pytest.mark.asyncio
    async def test_validate_is_case_insensitive(self, db_session):
        await coupon_service.create_coupon(db_session, coupon_payload(), None)

        result = await coupon_service.validate_coupon(db_session, "Festive20", 1000)

        assert result.valid is True
        assert result.discount_amount == 200
        assert result.final_amount == 800

    @pytest.mark.asyncio
    async def test_apply_records_usage_and_enforces_customer_limit(self, db_session, customer):
        await coupon_service.create_coupon(db_session, coupon_payload(), None)

        coupon, discount = await coupon_service.apply_coupon(db_session, "FESTIVE20", 1000, customer.id)
        await db_session.commit()

        assert discount == 200
        assert coupon.used_count == 1
        usages = (await db_session.execute(select(CouponUsage))).scalars().all()
        assert len(usages) == 1

        with pytest.raises(CouponError) as exc_info:
            await coupon_service.apply_coupon(db_session, "FESTIVE20", 1000, customer.id)
        assert exc_info.value.message == "Coupon usage limit reached for this customer"

    @pytest.mark.asyncio
    async def test_update_cannot_push_percentage_over_100(self, db_session):
        coupon = await coupon_service.create_coupon(db_session, coupon_payload(), None)

        with pytest.raises(ValidationError) as exc_info:
            await coupon_service.update_coupon(db_session, coupon.id, CouponUpdate(discount_value=150))
        assert exc_info.value.message == "Percentage discount cannot exceed 100"

        result = await coupon_service.validate_coupon(db_session, "FESTIVE20", 1000)
        assert result.discount_amount == 200

    @pytest.mark.asyncio
    async def test_update_keeps_window_ordered(self, db_session):
        coupon = await coupon_service.create_coupon(db_session, coupon_payload(), None)

        with pytest.raises(ValidationError):
            await coupon_service.update_coupon(
                db_session, coupon.id, CouponUpdate(valid_until=coupon.valid_from - timedelta(days=1)),
            )

    @pytest.mark.asyncio
    async def test_update_within_rules(self, db_session):
        coupon = await coupon_service.create_coupon(db_session, coupon_payload(), None)

        updated = await coupon_service.update_coupon(db_session, coupon.id, CouponUpdate(discount_value=25))

        assert updated.discount_value == 25
