from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from carworld.core.database import get_db
from carworld.models.user import User
from carworld.models.warranty import WarrantyStatus
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.warranty import (
    WarrantyCreate,
    WarrantyUpdate,
    WarrantyResponse,
    WarrantyDetailResponse,
    ClaimCreate,
    ClaimUpdate,
    ClaimResponse,
    ExpireSweepResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.warranty_service import warranty_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/warranties", tags=["Warranties"])


@router.get("")
async def list_warranties(
    status: Optional[WarrantyStatus] = None,
    customer_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("warranties", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = warranty_service.list_query(status, customer_id, invoice_id, search)
    data = await paginate(db, query, page, page_size)
    return paginated(data, WarrantyResponse)


@router.get("/expiring", response_model=List[WarrantyResponse])
async def expiring_warranties(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(require_permission("warranties", "read")),
    db: AsyncSession = Depends(get_db)
):
    """Active warranties ending within `days`"""
    return await warranty_service.expiring(db, days)


@router.post("/expire", response_model=ExpireSweepResponse)
async def expire_warranties(
    request: Request,
    current_user: User = Depends(require_permission("warranties", "update")),
    db: AsyncSession = Depends(get_db)
):
    """Mark active warranties past their end date as expired"""
    expired = await warranty_service.expire_warranties(db)
    if expired:
        await log_activity(db, current_user, "expire", "warranty", f"Expired {expired} warranties", request=request)
    return ExpireSweepResponse(expired=expired)


@router.post("", response_model=WarrantyResponse, status_code=status.HTTP_201_CREATED)
async def create_warranty(
    request: Request,
    data: WarrantyCreate,
    current_user: User = Depends(require_permission("warranties", "create")),
    db: AsyncSession = Depends(get_db)
):
    warranty = await warranty_service.create_warranty(db, data)
    await log_activity(
        db, current_user, "create", "warranty",
        f"Registered warranty {warranty.warranty_number} for {warranty.product_name}", warranty.id, request=request,
    )
    return warranty


@router.get("/{warranty_id}", response_model=WarrantyDetailResponse)
async def get_warranty(
    warranty_id: str,
    current_user: User = Depends(require_permission("warranties", "read")),
    db: AsyncSession = Depends(get_db)
):
    warranty = await warranty_service.get_warranty(db, warranty_id)
    claims = await warranty_service.list_claims(db, warranty_id)
    return WarrantyDetailResponse(
        **WarrantyResponse.model_validate(warranty).model_dump(),
        claims=[ClaimResponse.model_validate(c) for c in claims],
    )


@router.put("/{warranty_id}", response_model=WarrantyResponse)
async def update_warranty(
    warranty_id: str,
    data: WarrantyUpdate,
    current_user: User = Depends(require_permission("warranties", "update")),
    db: AsyncSession = Depends(get_db)
):
    return await warranty_service.update_warranty(db, warranty_id, data)


@router.get("/{warranty_id}/claims", response_model=List[ClaimResponse])
async def list_claims(
    warranty_id: str,
    current_user: User = Depends(require_permission("warranties", "read")),
    db: AsyncSession = Depends(get_db)
):
    await warranty_service.get_warranty(db, warranty_id)
    return await warranty_service.list_claims(db, warranty_id)


@router.post("/{warranty_id}/claims", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def file_claim(
    warranty_id: str,
    request: Request,
    data: ClaimCreate,
    current_user: User = Depends(require_permission("warranties", "create")),
    db: AsyncSession = Depends(get_db)
):
    claim = await warranty_service.file_claim(db, warranty_id, data)
    await log_activity(db, current_user, "claim", "warranty", "Filed warranty claim", warranty_id, request=request)
    return claim


@router.put("/{warranty_id}/claims/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    warranty_id: str,
    claim_id: str,
    request: Request,
    data: ClaimUpdate,
    current_user: User = Depends(require_permission("warranties", "update")),
    db: AsyncSession = Depends(get_db)
):
    claim = await warranty_service.update_claim(db, warranty_id, claim_id, data)
    await log_activity(
        db, current_user, "update", "warranty_claim", f"Claim {claim.id} is {claim.status.value}",
        claim.id, request=request,
    )
    return claim
