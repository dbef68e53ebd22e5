from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Text, Index
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class NotificationType(str, enum.Enum):
    LOW_STOCK = "low_stock"
    NEW_ORDER = "new_order"
    PAYMENT_DUE = "payment_due"
    INFO = "info"


class Notification(Base):
    """In-app notification; target_role of NULL means everyone"""
    __tablename__ = "notifications"

    __table_args__ = (
        Index('ix_notifications_target_read', 'target_role', 'read'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), default=NotificationType.INFO, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    target_role = Column(String(50), nullable=True)
    related_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
