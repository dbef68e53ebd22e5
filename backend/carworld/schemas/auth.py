from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, List
from datetime import datetime

from carworld.models.user import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    selected_role: Optional[UserRole] = None


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    employee_code: Optional[str] = None
    name: str
    email: str
    mobile_number: str
    role: UserRole
    is_active: bool
    department: Optional[str] = None
    salary: Optional[float] = None
    joining_date: Optional[datetime] = None
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """
    Either tokens (Admin, or after OTP) or an OTP challenge.
    """
    require_otp: bool = False
    mobile_number: Optional[str] = None
    otp_token: Optional[str] = None
    otp: Optional[str] = None  # DEBUG only
    whatsapp_error: Optional[str] = None

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[UserResponse] = None
    permissions: Optional[Dict[str, List[str]]] = None


class VerifyLoginOTPRequest(BaseModel):
    otp_token: str
    otp: str = Field(..., min_length=4, max_length=10)


class SendOTPRequest(BaseModel):
    mobile_number: str = Field(..., min_length=10, max_length=15)


class OTPSentResponse(BaseModel):
    success: bool
    message: str
    otp: Optional[str] = None  # DEBUG only


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ForgotPasswordRequest(BaseModel):
    mobile_number: str = Field(..., min_length=10, max_length=15)


class VerifyResetOTPRequest(BaseModel):
    mobile_number: str = Field(..., min_length=10, max_length=15)
    otp: str


class ResetTokenResponse(BaseModel):
    reset_token: str


class ResetPasswordRequest(BaseModel):
    reset_token: str
    new_password: str = Field(..., min_length=6)


# ============================================
# User management
# ============================================

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    mobile_number: str = Field(..., min_length=10, max_length=15)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.SERVICE_STAFF
    employee_code: Optional[str] = None
    department: Optional[str] = None
    salary: Optional[float] = Field(None, ge=0)
    joining_date: Optional[datetime] = None
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    mobile_number: Optional[str] = Field(None, min_length=10, max_length=15)
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    employee_code: Optional[str] = None
    department: Optional[str] = None
    salary: Optional[float] = Field(None, ge=0)
    joining_date: Optional[datetime] = None
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None


# ============================================
# Profile
# ============================================

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None


class PhoneUpdateRequest(BaseModel):
    new_mobile_number: str = Field(..., min_length=10, max_length=15)


class PhoneUpdateVerify(BaseModel):
    new_mobile_number: str = Field(..., min_length=10, max_length=15)
    otp: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
