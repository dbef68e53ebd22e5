"""
Invoice Schemas - request/response models for invoicing
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from carworld.models.invoice import (
    InvoiceStatus, InvoicePaymentStatus, DiscountType, PaymentMode, ItemType,
)


class InvoiceItemInput(BaseModel):
    type: ItemType = ItemType.PRODUCT
    product_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    has_gst: bool = True
    has_warranty: bool = False
    warranty_months: Optional[int] = Field(None, gt=0)

    @model_validator(mode='after')
    def warranty_needs_months(self):
        if self.has_warranty and not self.warranty_months:
            raise ValueError("warranty_months is required when has_warranty is set")
        return self


class InvoiceItemResponse(BaseModel):
    type: ItemType
    product_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    quantity: int
    unit_price: float
    total: float
    has_gst: bool
    gst_amount: float
    has_warranty: bool = False
    warranty_months: Optional[int] = None
    warranty_id: Optional[str] = None


class InvoiceCreate(BaseModel):
    customer_id: str
    vehicle_ids: List[str] = []
    service_visit_id: Optional[str] = None
    order_id: Optional[str] = None
    items: List[InvoiceItemInput] = Field(..., min_length=1)
    discount_type: DiscountType = DiscountType.NONE
    discount_value: float = Field(0, ge=0)
    coupon_code: Optional[str] = None
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    sales_executive_id: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    due_date: Optional[datetime] = None


class InvoiceFromServiceVisit(BaseModel):
    """Optional overrides when billing a service visit"""
    labour_charge: float = Field(0, ge=0)
    labour_description: str = "Service labour"
    discount_type: DiscountType = DiscountType.NONE
    discount_value: float = Field(0, ge=0)
    coupon_code: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None


class InvoiceUpdate(BaseModel):
    """Only drafts can be edited"""
    items: Optional[List[InvoiceItemInput]] = Field(None, min_length=1)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, ge=0)
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    sales_executive_id: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    due_date: Optional[datetime] = None


class InvoiceRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    payment_mode: PaymentMode
    transaction_id: Optional[str] = None
    transaction_date: Optional[datetime] = None
    notes: Optional[str] = None


class PaymentRecord(BaseModel):
    id: str
    amount: float
    payment_mode: PaymentMode
    transaction_id: Optional[str] = None
    transaction_date: datetime
    notes: Optional[str] = None
    recorded_by: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    service_visit_id: Optional[str] = None
    order_id: Optional[str] = None
    customer_id: str
    customer_details: Dict[str, Any]
    vehicle_details: List[Dict[str, Any]] = []
    items: List[InvoiceItemResponse]

    subtotal: float
    discount_type: DiscountType
    discount_value: float
    discount_amount: float
    coupon_code: Optional[str] = None
    tax_rate: float
    tax_amount: float
    total_amount: float

    payment_status: InvoicePaymentStatus
    payment_method: Optional[PaymentMode] = None
    paid_amount: float
    due_amount: float
    payments: List[PaymentRecord] = []

    status: InvoiceStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    created_by: Optional[str] = None
    sales_executive_id: Optional[str] = None

    email_sent: bool
    email_sent_at: Optional[datetime] = None
    whatsapp_sent: bool
    whatsapp_sent_at: Optional[datetime] = None

    notes: Optional[str] = None
    terms: Optional[str] = None
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceNotificationResult(BaseModel):
    email_sent: bool = False
    whatsapp_sent: bool = False
    skipped: bool = False
    errors: List[str] = []
