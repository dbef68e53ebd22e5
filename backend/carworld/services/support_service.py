"""
Customer care - support tickets, feedback and the communication log
"""

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.exceptions import (
    TicketNotFoundError, CustomerNotFoundError, ResourceNotFoundError, ValidationError,
)
from carworld.core.logging_config import logger
from carworld.models.customer import Customer, Vehicle
from carworld.models.support import (
    SupportTicket, TicketStatus, Feedback, FeedbackType, FeedbackStatus,
    CommunicationLog, CommunicationType, CommunicationDirection,
)
from carworld.models.user import User, UserRole
from carworld.schemas.support import (
    TicketCreate, TicketUpdate, FeedbackCreate, FeedbackUpdate, CommunicationCreate,
)
from carworld.services.sequence_service import next_ticket_number
from carworld.services.whatsapp_service import whatsapp_client, WhatsAppResult


def restricted_to_own(user: User) -> bool:
    """Service Staff only see tickets assigned to or raised by them"""
    return user.role == UserRole.SERVICE_STAFF


class SupportService:

    # ==================== TICKETS ====================

    def _visibility(self, query, user: User):
        if restricted_to_own(user):
            query = query.where(or_(SupportTicket.assigned_to == user.id, SupportTicket.created_by == user.id))
        return query

    async def get_ticket(self, db: AsyncSession, ticket_id: str, user: User) -> SupportTicket:
        query = self._visibility(select(SupportTicket).where(SupportTicket.id == ticket_id), user)
        ticket = (await db.execute(query)).scalar_one_or_none()
        if not ticket:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def list_query(
        self,
        user: User,
        status: Optional[TicketStatus] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
    ):
        query = select(SupportTicket)
        if search:
            term = f"%{search}%"
            query = query.join(Customer, Customer.id == SupportTicket.customer_id).where(or_(
                SupportTicket.ticket_number.ilike(term),
                SupportTicket.vehicle_reg.ilike(term),
                Customer.mobile_number.ilike(term),
                Customer.full_name.ilike(term),
            ))
        if status:
            query = query.where(SupportTicket.status == status)
        if customer_id:
            query = query.where(SupportTicket.customer_id == customer_id)
        return self._visibility(query, user).order_by(SupportTicket.created_at.desc())

    async def create_ticket(self, db: AsyncSession, data: TicketCreate, user: User) -> SupportTicket:
        customer = await db.get(Customer, data.customer_id)
        if not customer:
            raise CustomerNotFoundError(data.customer_id)

        vehicle_reg = data.vehicle_reg
        if data.vehicle_id:
            vehicle = await db.get(Vehicle, data.vehicle_id)
            if not vehicle or vehicle.customer_id != customer.id:
                raise ValidationError("Vehicle does not belong to this customer", field="vehicle_id")
            vehicle_reg = vehicle_reg or vehicle.vehicle_number

        assigned_to = data.assigned_to
        if restricted_to_own(user) and not assigned_to:
            assigned_to = user.id

        ticket = SupportTicket(
            ticket_number=await next_ticket_number(db),
            customer_id=customer.id,
            vehicle_id=data.vehicle_id,
            vehicle_reg=vehicle_reg.upper() if vehicle_reg else None,
            subject=data.subject,
            description=data.description,
            category=data.category,
            priority=data.priority,
            status=TicketStatus.PENDING,
            assigned_to=assigned_to,
            created_by=user.id,
            notes=[],
        )
        db.add(ticket)
        await db.commit()
        await db.refresh(ticket)
        logger.info(f"Ticket {ticket.ticket_number} opened for {customer.full_name}")
        return ticket

    async def update_ticket(self, db: AsyncSession, ticket_id: str, data: TicketUpdate, user: User) -> SupportTicket:
        ticket = await self.get_ticket(db, ticket_id, user)
        update_dict = data.model_dump(exclude_unset=True)
        status = update_dict.pop("status", None)
        for field, value in update_dict.items():
            setattr(ticket, field, value)

        if status is not None and status != ticket.status:
            now = datetime.utcnow()
            ticket.status = status
            if status == TicketStatus.RESOLVED:
                ticket.resolved_at = now
            elif status == TicketStatus.CLOSED:
                ticket.closed_at = now
                ticket.resolved_at = ticket.resolved_at or now

        ticket.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(ticket)
        return ticket

    async def delete_ticket(self, db: AsyncSession, ticket_id: str, user: User) -> None:
        ticket = await self.get_ticket(db, ticket_id, user)
        await db.delete(ticket)
        await db.commit()

    async def add_note(self, db: AsyncSession, ticket_id: str, note: str, user: User) -> SupportTicket:
        ticket = await self.get_ticket(db, ticket_id, user)
        entry = {"note": note, "added_by": user.name, "added_at": datetime.utcnow().isoformat()}
        ticket.notes = [*(ticket.notes or []), entry]
        ticket.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(ticket)
        return ticket

    async def _log_whatsapp(self, db: AsyncSession, ticket: SupportTicket, subject: str, message: str) -> None:
        db.add(CommunicationLog(
            customer_id=ticket.customer_id,
            type=CommunicationType.WHATSAPP,
            subject=subject,
            message=message,
            direction=CommunicationDirection.OUTBOUND,
        ))

    async def send_whatsapp_follow_up(
        self,
        db: AsyncSession,
        ticket_id: str,
        message: str,
        user: User,
    ) -> WhatsAppResult:
        ticket = await self.get_ticket(db, ticket_id, user)
        customer = await db.get(Customer, ticket.customer_id)
        if not customer:
            raise CustomerNotFoundError(ticket.customer_id)

        result = await whatsapp_client.send_ticket_follow_up(
            customer.mobile_number, customer.full_name, ticket.ticket_number, message
        )
        logger.log_notification_event(
            "whatsapp", "ticket_follow_up", result.success,
            recipient=customer.mobile_number, ticket=ticket.ticket_number, error=result.error,
        )
        if result.success:
            ticket.whatsapp_follow_up_sent = True
            ticket.whatsapp_follow_up_at = datetime.utcnow()
            ticket.whatsapp_follow_up_message = message
            await self._log_whatsapp(db, ticket, f"Follow-up {ticket.ticket_number}", message)
            await db.commit()
        return result

    async def send_feedback_request(
        self,
        db: AsyncSession,
        ticket_id: str,
        user: User,
        feedback_link: Optional[str] = None,
    ) -> WhatsAppResult:
        ticket = await self.get_ticket(db, ticket_id, user)
        if ticket.status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            raise ValidationError("Feedback can only be requested on resolved or closed tickets")
        customer = await db.get(Customer, ticket.customer_id)
        if not customer:
            raise CustomerNotFoundError(ticket.customer_id)

        link = feedback_link or f"{settings.APP_URL.rstrip('/')}/feedback/{ticket.id}"
        result = await whatsapp_client.send_feedback_request(
            customer.mobile_number, customer.full_name, ticket.ticket_number, link
        )
        logger.log_notification_event(
            "whatsapp", "feedback_request", result.success,
            recipient=customer.mobile_number, ticket=ticket.ticket_number, error=result.error,
        )
        if result.success:
            ticket.feedback_sent = True
            ticket.feedback_sent_at = datetime.utcnow()
            await self._log_whatsapp(db, ticket, f"Feedback request {ticket.ticket_number}", link)
            await db.commit()
        return result

    # ==================== FEEDBACK ====================

    async def get_feedback(self, db: AsyncSession, feedback_id: str) -> Feedback:
        feedback = await db.get(Feedback, feedback_id)
        if not feedback:
            raise ResourceNotFoundError("Feedback", feedback_id)
        return feedback

    def feedback_query(
        self,
        type: Optional[FeedbackType] = None,
        status: Optional[FeedbackStatus] = None,
        customer_id: Optional[str] = None,
    ):
        query = select(Feedback)
        if type:
            query = query.where(Feedback.type == type)
        if status:
            query = query.where(Feedback.status == status)
        if customer_id:
            query = query.where(Feedback.customer_id == customer_id)
        return query.order_by(Feedback.created_at.desc())

    async def create_feedback(self, db: AsyncSession, data: FeedbackCreate, ticket_id: Optional[str] = None) -> Feedback:
        if not await db.get(Customer, data.customer_id):
            raise CustomerNotFoundError(data.customer_id)
        feedback = Feedback(**data.model_dump(), status=FeedbackStatus.OPEN)
        db.add(feedback)
        await db.flush()
        if ticket_id:
            ticket = await db.get(SupportTicket, ticket_id)
            if ticket:
                ticket.feedback_id = feedback.id
        await db.commit()
        await db.refresh(feedback)
        return feedback

    async def update_feedback(self, db: AsyncSession, feedback_id: str, data: FeedbackUpdate) -> Feedback:
        feedback = await self.get_feedback(db, feedback_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(feedback, field, value)
        if feedback.status in (FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED) and not feedback.resolved_date:
            feedback.resolved_date = datetime.utcnow()
        feedback.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(feedback)
        return feedback

    async def delete_feedback(self, db: AsyncSession, feedback_id: str) -> None:
        feedback = await self.get_feedback(db, feedback_id)
        await db.delete(feedback)
        await db.commit()

    async def feedback_analytics(self, db: AsyncSession) -> Dict[str, Any]:
        """Average rating, 1-5 distribution, counts by type and open complaints"""
        total = await db.scalar(select(func.count(Feedback.id))) or 0

        rating_rows = await db.execute(
            select(Feedback.rating, func.count(Feedback.id))
            .where(Feedback.rating.is_not(None))
            .group_by(Feedback.rating)
        )
        distribution = {str(star): 0 for star in range(1, 6)}
        rated = 0
        weighted = 0
        for rating, count in rating_rows.all():
            distribution[str(rating)] = count
            rated += count
            weighted += rating * count

        type_rows = await db.execute(select(Feedback.type, func.count(Feedback.id)).group_by(Feedback.type))
        by_type = {t.value: 0 for t in FeedbackType}
        for feedback_type, count in type_rows.all():
            by_type[feedback_type.value] = count

        open_complaints = await db.scalar(
            select(func.count(Feedback.id)).where(
                Feedback.type == FeedbackType.COMPLAINT,
                Feedback.status.in_([FeedbackStatus.OPEN, FeedbackStatus.IN_PROGRESS]),
            )
        ) or 0

        return {
            "count": total,
            "rated_count": rated,
            "average_rating": round(weighted / rated, 2) if rated else 0.0,
            "distribution": distribution,
            "by_type": by_type,
            "open_complaints": open_complaints,
        }

    # ==================== COMMUNICATIONS ====================

    def communications_query(
        self,
        customer_id: Optional[str] = None,
        type: Optional[CommunicationType] = None,
        follow_up_only: bool = False,
    ):
        query = select(CommunicationLog)
        if customer_id:
            query = query.where(CommunicationLog.customer_id == customer_id)
        if type:
            query = query.where(CommunicationLog.type == type)
        if follow_up_only:
            query = query.where(CommunicationLog.follow_up_required == True)  # noqa: E712
        return query.order_by(CommunicationLog.date.desc())

    async def log_communication(self, db: AsyncSession, data: CommunicationCreate) -> CommunicationLog:
        if not await db.get(Customer, data.customer_id):
            raise CustomerNotFoundError(data.customer_id)
        values = data.model_dump()
        values["date"] = values["date"] or datetime.utcnow()
        entry = CommunicationLog(**values)
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
        return entry

    async def delete_communication(self, db: AsyncSession, communication_id: str) -> None:
        entry = await db.get(CommunicationLog, communication_id)
        if not entry:
            raise ResourceNotFoundError("Communication", communication_id)
        await db.delete(entry)
        await db.commit()


support_service = SupportService()
