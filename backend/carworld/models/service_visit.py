from sqlalchemy import Column, String, DateTime, Float, ForeignKey, Enum as SQLEnum, Text, JSON
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class ServiceStatus(str, enum.Enum):
    INQUIRED = "inquired"
    WORKING = "working"
    WAITING = "waiting"
    COMPLETED = "completed"


class ServiceVisit(Base):
    """A vehicle's trip through the workshop"""
    __tablename__ = "service_visits"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True, nullable=False)
    vehicle_reg = Column(String(30), index=True, nullable=False)
    status = Column(SQLEnum(ServiceStatus), default=ServiceStatus.INQUIRED, nullable=False)

    handler_ids = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)
    # [{product_id, quantity, price}]
    parts_used = Column(JSON, default=list, nullable=False)
    # {status value: ISO timestamp}
    stage_timestamps = Column(JSON, default=dict, nullable=False)

    total_amount = Column(Float, default=0, nullable=False)
    before_images = Column(JSON, default=list, nullable=False)
    after_images = Column(JSON, default=list, nullable=False)

    invoice_number = Column(String(30), nullable=True)
    invoice_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ServiceVisit {self.vehicle_reg} {self.status.value if self.status else ''}>"
