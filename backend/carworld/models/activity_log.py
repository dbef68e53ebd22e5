from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, Index
from datetime import datetime

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class ActivityLog(Base):
    """Who did what to which record"""
    __tablename__ = "activity_logs"

    __table_args__ = (
        Index('ix_activity_logs_user', 'user_id'),
        Index('ix_activity_logs_resource', 'resource', 'resource_id'),
        Index('ix_activity_logs_created_at', 'created_at'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_name = Column(String(255), nullable=False)
    user_role = Column(String(50), nullable=False)

    action = Column(String(50), nullable=False)       # login, create, update, delete, approve ...
    resource = Column(String(50), nullable=False)     # invoice, customer, product ...
    resource_id = Column(String(36), nullable=True)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
