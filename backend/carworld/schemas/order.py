from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from carworld.models.order import OrderPaymentStatus, DeliveryStatus
from carworld.models.service_visit import ServiceStatus


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)


class OrderCreate(BaseModel):
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    discount: float = Field(0, ge=0)
    paid_amount: float = Field(0, ge=0)
    salesperson_id: Optional[str] = None
    shipping_address: Optional[str] = None


class OrderUpdate(BaseModel):
    paid_amount: Optional[float] = Field(None, ge=0)
    delivery_status: Optional[DeliveryStatus] = None
    shipping_address: Optional[str] = None
    tracking_number: Optional[str] = None
    delivery_date: Optional[datetime] = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    items: List[OrderItem] = []
    total: float
    discount: float
    net_amount: float
    payment_status: OrderPaymentStatus
    paid_amount: float
    salesperson_id: Optional[str] = None
    delivery_status: DeliveryStatus
    shipping_address: Optional[str] = None
    tracking_number: Optional[str] = None
    delivery_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# Service visits
# ============================================

class PartUsed(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)


class ServiceVisitCreate(BaseModel):
    customer_id: str
    vehicle_reg: str = Field(..., min_length=1)
    status: ServiceStatus = ServiceStatus.INQUIRED
    handler_ids: List[str] = []
    notes: Optional[str] = None
    parts_used: List[PartUsed] = []
    total_amount: float = Field(0, ge=0)
    before_images: List[str] = []


class ServiceVisitUpdate(BaseModel):
    vehicle_reg: Optional[str] = None
    handler_ids: Optional[List[str]] = None
    notes: Optional[str] = None
    parts_used: Optional[List[PartUsed]] = None
    total_amount: Optional[float] = Field(None, ge=0)
    before_images: Optional[List[str]] = None
    after_images: Optional[List[str]] = None


class ServiceStatusUpdate(BaseModel):
    status: ServiceStatus


class ServiceVisitResponse(BaseModel):
    id: str
    customer_id: str
    vehicle_reg: str
    status: ServiceStatus
    handler_ids: List[str] = []
    notes: Optional[str] = None
    parts_used: List[PartUsed] = []
    stage_timestamps: Dict[str, str] = {}
    total_amount: float
    before_images: List[str] = []
    after_images: List[str] = []
    invoice_number: Optional[str] = None
    invoice_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
