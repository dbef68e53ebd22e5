from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Enum as SQLEnum, Text, Index
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class WarrantyType(str, enum.Enum):
    MANUFACTURER = "manufacturer"
    EXTENDED = "extended"
    SERVICE = "service"


class WarrantyStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CLAIMED = "claimed"
    VOID = "void"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Warranty(Base):
    __tablename__ = "warranties"

    __table_args__ = (
        Index('ix_warranties_status_end', 'status', 'end_date'),
        Index('ix_warranties_customer', 'customer_id'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    warranty_number = Column(String(30), unique=True, nullable=False)  # WRT/2025/0001

    invoice_id = Column(GUID, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    product_name = Column(String(255), nullable=False)
    serial_number = Column(String(100), nullable=True)

    warranty_type = Column(SQLEnum(WarrantyType), nullable=False)
    duration_months = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    coverage = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    status = Column(SQLEnum(WarrantyStatus), default=WarrantyStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Warranty {self.warranty_number} {self.product_name}>"


class WarrantyClaim(Base):
    __tablename__ = "warranty_claims"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    warranty_id = Column(GUID, ForeignKey("warranties.id", ondelete="CASCADE"), index=True, nullable=False)
    claim_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(SQLEnum(ClaimStatus), default=ClaimStatus.PENDING, nullable=False)
    resolution_date = Column(DateTime, nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
