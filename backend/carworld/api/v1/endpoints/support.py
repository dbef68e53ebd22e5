"""
Customer support: tickets, feedback and the communication log.

Service Staff only see tickets assigned to them or raised by them; the
service layer applies that filter.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.models.support import TicketStatus, FeedbackType, FeedbackStatus, CommunicationType
from carworld.models.user import User
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.common import MessageResponse
from carworld.schemas.support import (
    TicketCreate,
    TicketUpdate,
    TicketNoteCreate,
    TicketWhatsAppRequest,
    TicketFeedbackRequest,
    TicketResponse,
    MessageSendResponse,
    FeedbackCreate,
    FeedbackUpdate,
    FeedbackResponse,
    FeedbackAnalytics,
    CommunicationCreate,
    CommunicationResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.support_service import support_service
from carworld.utils.pagination import paginate, paginated

tickets_router = APIRouter(prefix="/support-tickets", tags=["Support"])
feedbacks_router = APIRouter(prefix="/feedbacks", tags=["Feedback"])
communications_router = APIRouter(prefix="/communications", tags=["Communications"])


# ============================================
# Tickets
# ============================================

@tickets_router.get("")
async def list_tickets(
    status: Optional[TicketStatus] = None,
    customer_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("supportTickets", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = support_service.list_query(current_user, status, customer_id, search)
    data = await paginate(db, query, page, page_size)
    return paginated(data, TicketResponse)


@tickets_router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: Request,
    data: TicketCreate,
    current_user: User = Depends(require_permission("supportTickets", "create")),
    db: AsyncSession = Depends(get_db)
):
    ticket = await support_service.create_ticket(db, data, current_user)
    await log_activity(
        db, current_user, "create", "support_ticket", f"Opened ticket {ticket.ticket_number}",
        ticket.id, request=request,
    )
    return ticket


@tickets_router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    current_user: User = Depends(require_permission("supportTickets", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.get_ticket(db, ticket_id, current_user)


@tickets_router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    request: Request,
    data: TicketUpdate,
    current_user: User = Depends(require_permission("supportTickets", "update")),
    db: AsyncSession = Depends(get_db)
):
    ticket = await support_service.update_ticket(db, ticket_id, data, current_user)
    await log_activity(
        db, current_user, "update", "support_ticket",
        f"Ticket {ticket.ticket_number} is {ticket.status.value}", ticket.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return ticket


@tickets_router.delete("/{ticket_id}", response_model=MessageResponse)
async def delete_ticket(
    ticket_id: str,
    request: Request,
    current_user: User = Depends(require_permission("supportTickets", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await support_service.delete_ticket(db, ticket_id, current_user)
    await log_activity(
        db, current_user, "delete", "support_ticket", f"Deleted ticket {ticket_id}", ticket_id, request=request,
    )
    return MessageResponse(message="Ticket deleted")


@tickets_router.post("/{ticket_id}/notes", response_model=TicketResponse)
async def add_ticket_note(
    ticket_id: str,
    data: TicketNoteCreate,
    current_user: User = Depends(require_permission("supportTickets", "update")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.add_note(db, ticket_id, data.note, current_user)


@tickets_router.post("/{ticket_id}/send-whatsapp", response_model=MessageSendResponse)
async def send_ticket_whatsapp(
    ticket_id: str,
    data: TicketWhatsAppRequest,
    current_user: User = Depends(require_permission("supportTickets", "update")),
    db: AsyncSession = Depends(get_db)
):
    """Send a follow-up message to the ticket's customer"""
    result = await support_service.send_whatsapp_follow_up(db, ticket_id, data.message, current_user)
    return MessageSendResponse(success=result.success, error=result.error)


@tickets_router.post("/{ticket_id}/send-feedback", response_model=MessageSendResponse)
async def send_ticket_feedback_request(
    ticket_id: str,
    data: TicketFeedbackRequest,
    current_user: User = Depends(require_permission("supportTickets", "update")),
    db: AsyncSession = Depends(get_db)
):
    """Ask the customer to rate a resolved or closed ticket"""
    result = await support_service.send_feedback_request(db, ticket_id, current_user, data.feedback_link)
    return MessageSendResponse(success=result.success, error=result.error)


# ============================================
# Feedback
# ============================================

@feedbacks_router.get("")
async def list_feedbacks(
    type: Optional[FeedbackType] = None,
    status: Optional[FeedbackStatus] = None,
    customer_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("feedbacks", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = support_service.feedback_query(type, status, customer_id)
    data = await paginate(db, query, page, page_size)
    return paginated(data, FeedbackResponse)


@feedbacks_router.get("/analytics", response_model=FeedbackAnalytics)
async def feedback_analytics(
    current_user: User = Depends(require_permission("feedbacks", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.feedback_analytics(db)


@feedbacks_router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    data: FeedbackCreate,
    ticket_id: Optional[str] = None,
    current_user: User = Depends(require_permission("feedbacks", "create")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.create_feedback(db, data, ticket_id)


@feedbacks_router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: str,
    current_user: User = Depends(require_permission("feedbacks", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.get_feedback(db, feedback_id)


@feedbacks_router.put("/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_id: str,
    request: Request,
    data: FeedbackUpdate,
    current_user: User = Depends(require_permission("feedbacks", "update")),
    db: AsyncSession = Depends(get_db)
):
    feedback = await support_service.update_feedback(db, feedback_id, data)
    await log_activity(
        db, current_user, "update", "feedback", f"Feedback {feedback.id} is {feedback.status.value}",
        feedback.id, request=request,
    )
    return feedback


@feedbacks_router.delete("/{feedback_id}", response_model=MessageResponse)
async def delete_feedback(
    feedback_id: str,
    current_user: User = Depends(require_permission("feedbacks", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await support_service.delete_feedback(db, feedback_id)
    return MessageResponse(message="Feedback deleted")


# ============================================
# Communication log
# ============================================

@communications_router.get("")
async def list_communications(
    customer_id: Optional[str] = None,
    type: Optional[CommunicationType] = None,
    follow_up_only: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("communications", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = support_service.communications_query(customer_id, type, follow_up_only)
    data = await paginate(db, query, page, page_size)
    return paginated(data, CommunicationResponse)


@communications_router.post("", response_model=CommunicationResponse, status_code=status.HTTP_201_CREATED)
async def log_communication(
    data: CommunicationCreate,
    current_user: User = Depends(require_permission("communications", "create")),
    db: AsyncSession = Depends(get_db)
):
    return await support_service.log_communication(db, data)


@communications_router.delete("/{communication_id}", response_model=MessageResponse)
async def delete_communication(
    communication_id: str,
    current_user: User = Depends(require_permission("communications", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await support_service.delete_communication(db, communication_id)
    return MessageResponse(message="Communication deleted")
