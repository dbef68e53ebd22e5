from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from carworld.models.customer import VehicleVariant


class CustomerBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    mobile_number: str = Field(..., min_length=10, max_length=15)
    alternative_number: Optional[str] = None
    email: EmailStr
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    taluka: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pin_code: str = Field(..., min_length=6, max_length=6)
    referral_source: Optional[str] = None

    @field_validator('pin_code')
    @classmethod
    def pin_code_digits(cls, v):
        if not v.isdigit():
            raise ValueError("Pin code must be 6 digits")
        return v


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    mobile_number: Optional[str] = Field(None, min_length=10, max_length=15)
    alternative_number: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    city: Optional[str] = None
    taluka: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = Field(None, min_length=6, max_length=6)
    referral_source: Optional[str] = None


class CustomerResponse(BaseModel):
    id: str
    reference_code: str
    full_name: str
    mobile_number: str
    alternative_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    taluka: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    referral_source: Optional[str] = None
    is_verified: bool
    registered_by: Optional[str] = None
    registered_by_role: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RegistrationResponse(BaseModel):
    customer_id: str
    reference_code: str
    whatsapp_sent: bool
    whatsapp_error: Optional[str] = None
    otp: Optional[str] = None  # DEBUG only


class RegistrationVerifyRequest(BaseModel):
    customer_id: str
    otp: str


class RegistrationResendRequest(BaseModel):
    customer_id: str


# ============================================
# Vehicles
# ============================================

class WarrantyCard(BaseModel):
    part_id: str
    part_name: str
    file_data: str


class VehicleBase(BaseModel):
    vehicle_number: Optional[str] = None
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    custom_model: Optional[str] = None
    variant: Optional[VehicleVariant] = None
    color: Optional[str] = None
    year_of_purchase: Optional[int] = Field(None, ge=1950, le=2100)
    vehicle_photo: str = Field(..., min_length=1)
    is_new_vehicle: bool = False
    chassis_number: Optional[str] = None
    selected_parts: List[str] = []
    warranty_cards: List[WarrantyCard] = []


class VehicleCreate(VehicleBase):
    pass


class VehicleCreateForCustomer(VehicleBase):
    """Body for POST /registration/vehicles"""
    customer_id: str


class VehicleUpdate(BaseModel):
    vehicle_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    custom_model: Optional[str] = None
    variant: Optional[VehicleVariant] = None
    color: Optional[str] = None
    year_of_purchase: Optional[int] = Field(None, ge=1950, le=2100)
    vehicle_photo: Optional[str] = None
    is_new_vehicle: Optional[bool] = None
    chassis_number: Optional[str] = None
    selected_parts: Optional[List[str]] = None
    warranty_cards: Optional[List[WarrantyCard]] = None


class VehicleResponse(BaseModel):
    id: str
    vehicle_code: str
    customer_id: str
    vehicle_number: Optional[str] = None
    brand: str
    model: str
    custom_model: Optional[str] = None
    variant: Optional[VehicleVariant] = None
    color: Optional[str] = None
    year_of_purchase: Optional[int] = None
    vehicle_photo: Optional[str] = None
    is_new_vehicle: bool
    chassis_number: Optional[str] = None
    selected_parts: List[str] = []
    warranty_cards: List[WarrantyCard] = []
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerDetailResponse(CustomerResponse):
    vehicles: List[VehicleResponse] = []
