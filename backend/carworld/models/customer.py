"""
Registration customers and their vehicles.

A customer is created unverified and becomes verified once the
registration OTP sent to their mobile is confirmed.
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, ForeignKey, Enum as SQLEnum,
    Text, JSON, Index,
)
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class VehicleVariant(str, enum.Enum):
    TOP = "Top"
    BASE = "Base"


class Customer(Base):
    __tablename__ = "customers"

    __table_args__ = (
        Index('ix_customers_city', 'city'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    reference_code = Column(String(20), unique=True, nullable=False)  # CUST00001

    full_name = Column(String(255), nullable=False)
    mobile_number = Column(String(20), unique=True, index=True, nullable=False)
    alternative_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)

    # Address
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    taluka = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pin_code = Column(String(6), nullable=True)

    referral_source = Column(String(100), nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Staff member who registered the customer
    registered_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    registered_by_role = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Customer {self.reference_code} {self.full_name}>"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    vehicle_code = Column(String(20), unique=True, nullable=False)  # VEH00001
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True, nullable=False)

    vehicle_number = Column(String(30), index=True, nullable=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    custom_model = Column(String(100), nullable=True)
    variant = Column(SQLEnum(VehicleVariant), nullable=True)
    color = Column(String(50), nullable=True)
    year_of_purchase = Column(Integer, nullable=True)
    vehicle_photo = Column(Text, nullable=True)
    is_new_vehicle = Column(Boolean, default=False, nullable=False)
    chassis_number = Column(String(50), nullable=True)

    # Part names the customer is interested in
    selected_parts = Column(JSON, default=list, nullable=False)
    # [{part_id, part_name, file_data}]
    warranty_cards = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Vehicle {self.vehicle_code} {self.vehicle_number or ''}>"
