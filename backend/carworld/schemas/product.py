from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime

from carworld.models.product import ProductStatus, TransactionType, ReturnReason, ReturnStatus


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    model_compatibility: List[str] = []
    warranty: Optional[str] = None
    mrp: float = Field(..., ge=0)
    selling_price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    stock_qty: int = Field(0, ge=0)
    min_stock_level: int = Field(10, ge=0)
    variants: List[Any] = []
    images: List[str] = []
    warehouse_location: Optional[str] = None
    barcode: Optional[str] = None


class ProductCreate(ProductBase):
    status: Optional[ProductStatus] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = None
    brand: Optional[str] = None
    model_compatibility: Optional[List[str]] = None
    warranty: Optional[str] = None
    mrp: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0)
    stock_qty: Optional[int] = Field(None, ge=0)
    min_stock_level: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    variants: Optional[List[Any]] = None
    images: Optional[List[str]] = None
    warehouse_location: Optional[str] = None
    barcode: Optional[str] = None


class ProductResponse(ProductBase):
    id: str
    status: ProductStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ResolveByIdsRequest(BaseModel):
    ids: List[str] = Field(..., max_length=500)


class ProductImportRequest(BaseModel):
    products: List[Dict[str, Any]] = Field(..., min_length=1)


class ImportRowError(BaseModel):
    row: int
    error: str


class ProductImportResponse(BaseModel):
    created: int
    failed: int
    errors: List[ImportRowError] = []


class DeleteDuplicatesResponse(BaseModel):
    deleted: int
    groups: int


# ============================================
# Inventory transactions
# ============================================

class InventoryTransactionCreate(BaseModel):
    product_id: str
    type: TransactionType
    quantity: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    batch_number: Optional[str] = None
    unit_cost: Optional[float] = Field(None, ge=0)
    warehouse_location: Optional[str] = None
    notes: Optional[str] = None


class InventoryTransactionResponse(BaseModel):
    id: str
    product_id: str
    type: TransactionType
    quantity: int
    reason: str
    user_id: Optional[str] = None
    previous_stock: int
    new_stock: int
    batch_number: Optional[str] = None
    unit_cost: Optional[float] = None
    warehouse_location: Optional[str] = None
    return_id: Optional[str] = None
    notes: Optional[str] = None
    date: datetime

    class Config:
        from_attributes = True


# ============================================
# Returns
# ============================================

class ProductReturnCreate(BaseModel):
    product_id: str
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    condition: ReturnReason = ReturnReason.OTHER
    refund_amount: Optional[float] = Field(None, ge=0)
    restockable: bool = False
    notes: Optional[str] = None


class ProductReturnUpdate(BaseModel):
    status: Optional[ReturnStatus] = None
    refund_amount: Optional[float] = Field(None, ge=0)
    restockable: Optional[bool] = None
    notes: Optional[str] = None


class ProductReturnResponse(BaseModel):
    id: str
    product_id: str
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    quantity: int
    reason: str
    condition: ReturnReason
    status: ReturnStatus
    refund_amount: Optional[float] = None
    restockable: bool
    notes: Optional[str] = None
    return_date: datetime
    processed_by: Optional[str] = None
    processed_date: Optional[datetime] = None

    class Config:
        from_attributes = True
