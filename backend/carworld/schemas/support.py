from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from carworld.models.support import (
    TicketCategory, TicketPriority, TicketStatus,
    FeedbackType, FeedbackStatus, FeedbackPriority,
    CommunicationType, CommunicationDirection,
)


# ============== Support tickets ==============

class TicketCreate(BaseModel):
    customer_id: str
    vehicle_id: Optional[str] = None
    vehicle_reg: Optional[str] = None
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: TicketCategory = TicketCategory.GENERAL
    priority: TicketPriority = TicketPriority.MEDIUM
    assigned_to: Optional[str] = None


class TicketUpdate(BaseModel):
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[TicketCategory] = None
    priority: Optional[TicketPriority] = None
    status: Optional[TicketStatus] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None


class TicketNote(BaseModel):
    note: str
    added_by: Optional[str] = None
    added_at: str


class TicketNoteCreate(BaseModel):
    note: str = Field(..., min_length=1)


class TicketWhatsAppRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)


class TicketFeedbackRequest(BaseModel):
    feedback_link: Optional[str] = None


class TicketResponse(BaseModel):
    id: str
    ticket_number: str
    customer_id: str
    vehicle_id: Optional[str] = None
    vehicle_reg: Optional[str] = None
    subject: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    whatsapp_follow_up_sent: bool
    whatsapp_follow_up_at: Optional[datetime] = None
    whatsapp_follow_up_message: Optional[str] = None
    feedback_sent: bool
    feedback_sent_at: Optional[datetime] = None
    feedback_id: Optional[str] = None
    notes: List[TicketNote] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageSendResponse(BaseModel):
    success: bool
    error: Optional[str] = None


# ============== Feedback ==============

class FeedbackCreate(BaseModel):
    customer_id: str
    type: FeedbackType
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)
    priority: FeedbackPriority = FeedbackPriority.MEDIUM
    assigned_to: Optional[str] = None


class FeedbackUpdate(BaseModel):
    status: Optional[FeedbackStatus] = None
    priority: Optional[FeedbackPriority] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)


class FeedbackResponse(BaseModel):
    id: str
    customer_id: str
    type: FeedbackType
    subject: str
    message: str
    rating: Optional[int] = None
    status: FeedbackStatus
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    resolved_date: Optional[datetime] = None
    priority: FeedbackPriority
    created_at: datetime

    class Config:
        from_attributes = True


class FeedbackAnalytics(BaseModel):
    count: int
    rated_count: int
    average_rating: float
    distribution: Dict[str, int]
    by_type: Dict[str, int]
    open_complaints: int


# ============== Communication log ==============

class CommunicationCreate(BaseModel):
    customer_id: str
    type: CommunicationType
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)
    direction: CommunicationDirection
    handled_by: Optional[str] = None
    date: Optional[datetime] = None
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None


class CommunicationResponse(BaseModel):
    id: str
    customer_id: str
    type: CommunicationType
    subject: Optional[str] = None
    message: str
    direction: CommunicationDirection
    handled_by: Optional[str] = None
    date: datetime
    follow_up_required: bool
    follow_up_date: Optional[datetime] = None

    class Config:
        from_attributes = True
