from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Float, Text
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """Staff roles; values are the display names used by clients"""
    ADMIN = "Admin"
    MANAGER = "Manager"
    INVENTORY_MANAGER = "Inventory Manager"
    SALES_EXECUTIVE = "Sales Executive"
    HR_MANAGER = "HR Manager"
    SERVICE_STAFF = "Service Staff"


class User(Base):
    """Staff account that can log in"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_code = Column(String(20), unique=True, nullable=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    mobile_number = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    role = Column(SQLEnum(UserRole), default=UserRole.SERVICE_STAFF, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # HR profile
    department = Column(String(100), nullable=True)
    salary = Column(Float, nullable=True)
    joining_date = Column(DateTime, default=datetime.utcnow)
    pan_number = Column(String(20), nullable=True)
    aadhar_number = Column(String(20), nullable=True)
    photo = Column(Text, nullable=True)

    # Session tracking
    last_login = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User {self.email} ({self.role.value if self.role else '-'})>"
