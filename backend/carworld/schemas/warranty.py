from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from carworld.models.warranty import WarrantyType, WarrantyStatus, ClaimStatus


class WarrantyCreate(BaseModel):
    invoice_id: str
    product_id: Optional[str] = None
    product_name: str = Field(..., min_length=1)
    serial_number: Optional[str] = None
    warranty_type: WarrantyType = WarrantyType.MANUFACTURER
    duration_months: int = Field(..., gt=0, le=240)
    start_date: Optional[datetime] = None
    coverage: Optional[str] = None
    terms: Optional[str] = None


class WarrantyUpdate(BaseModel):
    serial_number: Optional[str] = None
    coverage: Optional[str] = None
    terms: Optional[str] = None
    status: Optional[WarrantyStatus] = None


class WarrantyResponse(BaseModel):
    id: str
    warranty_number: str
    invoice_id: str
    customer_id: str
    product_id: Optional[str] = None
    product_name: str
    serial_number: Optional[str] = None
    warranty_type: WarrantyType
    duration_months: int
    start_date: datetime
    end_date: datetime
    coverage: Optional[str] = None
    terms: Optional[str] = None
    status: WarrantyStatus
    created_at: datetime

    class Config:
        from_attributes = True


class ClaimCreate(BaseModel):
    description: str = Field(..., min_length=1)


class ClaimUpdate(BaseModel):
    status: ClaimStatus
    resolution_notes: Optional[str] = None


class ClaimResponse(BaseModel):
    id: str
    warranty_id: str
    claim_date: datetime
    description: str
    status: ClaimStatus
    resolution_date: Optional[datetime] = None
    resolution_notes: Optional[str] = None

    class Config:
        from_attributes = True


class WarrantyDetailResponse(WarrantyResponse):
    claims: List[ClaimResponse] = []


class ExpireSweepResponse(BaseModel):
    expired: int
