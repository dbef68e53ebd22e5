from sqlalchemy import Column, String, Boolean, DateTime, Integer, Enum as SQLEnum, Index
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class OTPPurpose(str, enum.Enum):
    LOGIN = "login"
    ROLE_SELECTION = "role_selection"
    EMPLOYEE_VERIFICATION = "employee_verification"
    PHONE_UPDATE = "phone_update"
    PASSWORD_RESET = "password_reset"
    CUSTOMER_REGISTRATION = "customer_registration"


class OTPRecord(Base):
    """One-time password issued to a mobile number"""
    __tablename__ = "otp_records"

    __table_args__ = (
        Index('ix_otp_records_lookup', 'mobile_number', 'purpose', 'verified'),
        Index('ix_otp_records_expires_at', 'expires_at'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    mobile_number = Column(String(20), nullable=False)
    otp = Column(String(10), nullable=False)
    purpose = Column(SQLEnum(OTPPurpose), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
