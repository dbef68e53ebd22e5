"""
Customer care - support tickets, feedback and the communication log
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, ForeignKey, Enum as SQLEnum,
    Text, JSON, Index,
)
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class TicketCategory(str, enum.Enum):
    SERVICE_QUALITY = "service_quality"
    PRODUCT_ISSUE = "product_issue"
    BILLING = "billing"
    PARTS_WARRANTY = "parts_warranty"
    GENERAL = "general"


class TicketPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class FeedbackType(str, enum.Enum):
    FEEDBACK = "feedback"
    COMPLAINT = "complaint"
    SUGGESTION = "suggestion"


class FeedbackStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class FeedbackPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CommunicationType(str, enum.Enum):
    CALL = "call"
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    VISIT = "visit"


class CommunicationDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    __table_args__ = (
        Index('ix_support_tickets_customer_created', 'customer_id', 'created_at'),
        Index('ix_support_tickets_vehicle_reg', 'vehicle_reg'),
        Index('ix_support_tickets_status', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_number = Column(String(20), unique=True, nullable=False)  # TKT00001

    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(GUID, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    vehicle_reg = Column(String(30), nullable=True)

    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(SQLEnum(TicketCategory), default=TicketCategory.GENERAL, nullable=False)
    priority = Column(SQLEnum(TicketPriority), default=TicketPriority.MEDIUM, nullable=False)
    status = Column(SQLEnum(TicketStatus), default=TicketStatus.PENDING, nullable=False)

    assigned_to = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)

    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    whatsapp_follow_up_sent = Column(Boolean, default=False, nullable=False)
    whatsapp_follow_up_at = Column(DateTime, nullable=True)
    whatsapp_follow_up_message = Column(Text, nullable=True)

    feedback_sent = Column(Boolean, default=False, nullable=False)
    feedback_sent_at = Column(DateTime, nullable=True)
    feedback_id = Column(GUID, ForeignKey("feedbacks.id", ondelete="SET NULL"), nullable=True)

    # [{note, added_by, added_at}]
    notes = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SupportTicket {self.ticket_number}>"


class Feedback(Base):
    __tablename__ = "feedbacks"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(SQLEnum(FeedbackType), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)  # 1-5
    status = Column(SQLEnum(FeedbackStatus), default=FeedbackStatus.OPEN, nullable=False)
    assigned_to = Column(GUID, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    resolution = Column(Text, nullable=True)
    resolved_date = Column(DateTime, nullable=True)
    priority = Column(SQLEnum(FeedbackPriority), default=FeedbackPriority.MEDIUM, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CommunicationLog(Base):
    __tablename__ = "communication_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(SQLEnum(CommunicationType), nullable=False)
    subject = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    direction = Column(SQLEnum(CommunicationDirection), nullable=False)
    handled_by = Column(GUID, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)
    follow_up_required = Column(Boolean, default=False, nullable=False)
    follow_up_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
