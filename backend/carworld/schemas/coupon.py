"""
Coupon Schemas - Request/Response models for coupon operations
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime

from carworld.models.coupon import CouponDiscountType, CouponApplicability


def coupon_terms_problem(discount_type, discount_value: float, valid_from: datetime,
                         valid_until: datetime) -> Optional[str]:
    """Rules every stored coupon must satisfy, on create and after updates"""
    if valid_until <= valid_from:
        return "valid_until must be after valid_from"
    if discount_type == CouponDiscountType.PERCENTAGE and discount_value > 100:
        return "Percentage discount cannot exceed 100"
    return None


class CouponCreate(BaseModel):
    """Schema for creating a new coupon"""
    code: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = None
    discount_type: CouponDiscountType
    discount_value: float = Field(..., gt=0)
    max_uses: int = Field(0, ge=0)
    max_uses_per_customer: int = Field(1, ge=1)
    valid_from: datetime
    valid_until: datetime
    min_purchase_amount: float = Field(0, ge=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    applicable_on: CouponApplicability = CouponApplicability.ALL
    is_active: bool = True

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        """Upper-case and strip; only letters, digits, dash and underscore"""
        v = v.strip().upper()
        if not v.replace("-", "").replace("_", "").isalnum():
            raise ValueError("Coupon code can only contain letters, numbers, dashes and underscores")
        return v

    @model_validator(mode='after')
    def check_dates_and_value(self):
        problem = coupon_terms_problem(
            self.discount_type, self.discount_value, self.valid_from, self.valid_until
        )
        if problem:
            raise ValueError(problem)
        return self


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    discount_value: Optional[float] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, ge=0)
    max_uses_per_customer: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    min_purchase_amount: Optional[float] = Field(None, ge=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    applicable_on: Optional[CouponApplicability] = None
    is_active: Optional[bool] = None


class CouponResponse(BaseModel):
    id: str
    code: str
    description: Optional[str] = None
    discount_type: CouponDiscountType
    discount_value: float
    max_uses: int
    used_count: int
    max_uses_per_customer: int
    valid_from: datetime
    valid_until: datetime
    min_purchase_amount: float
    max_discount_amount: Optional[float] = None
    applicable_on: CouponApplicability
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., ge=0)
    customer_id: Optional[str] = None

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper()


class CouponValidateResponse(BaseModel):
    valid: bool
    code: str
    message: str
    discount_amount: float = 0
    final_amount: Optional[float] = None
    coupon_id: Optional[str] = None
