"""
Coupon API Endpoints

Endpoints:
- POST /coupons/validate - check a code against an amount before invoicing
- GET/POST/PUT/DELETE /coupons - management (coupons permission)
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.models.user import User
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.common import MessageResponse
from carworld.schemas.coupon import (
    CouponCreate,
    CouponUpdate,
    CouponResponse,
    CouponValidateRequest,
    CouponValidateResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.coupon_service import coupon_service

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    data: CouponValidateRequest,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    """
    Validate a coupon code before billing.

    Returns:
        - valid: Whether the coupon can be used
        - discount_amount / final_amount for the given amount
        - message: reason when invalid
    """
    return await coupon_service.validate_coupon(db, data.code, data.amount, data.customer_id)


@router.get("")
async def list_coupons(
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("coupons", "read")),
    db: AsyncSession = Depends(get_db)
):
    coupons, total = await coupon_service.list_coupons(db, page, page_size, is_active, search)
    return {
        "items": [CouponResponse.model_validate(c) for c in coupons],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    request: Request,
    data: CouponCreate,
    current_user: User = Depends(require_permission("coupons", "create")),
    db: AsyncSession = Depends(get_db)
):
    coupon = await coupon_service.create_coupon(db, data, current_user.id)
    await log_activity(db, current_user, "create", "coupon", f"Created coupon {coupon.code}", coupon.id, request=request)
    return coupon


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon(
    coupon_id: str,
    current_user: User = Depends(require_permission("coupons", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await coupon_service.get_coupon(db, coupon_id)


@router.put("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: str,
    request: Request,
    data: CouponUpdate,
    current_user: User = Depends(require_permission("coupons", "update")),
    db: AsyncSession = Depends(get_db)
):
    coupon = await coupon_service.update_coupon(db, coupon_id, data)
    await log_activity(
        db, current_user, "update", "coupon", f"Updated coupon {coupon.code}", coupon.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return coupon


@router.delete("/{coupon_id}", response_model=MessageResponse)
async def delete_coupon(
    coupon_id: str,
    request: Request,
    current_user: User = Depends(require_permission("coupons", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await coupon_service.delete_coupon(db, coupon_id)
    await log_activity(db, current_user, "delete", "coupon", f"Deleted coupon {coupon_id}", coupon_id, request=request)
    return MessageResponse(message="Coupon deleted")
