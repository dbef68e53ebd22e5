"""
Unit Tests for support tickets and service visits
"""
import pytest
from sqlalchemy import select

from carworld.core.exceptions import TicketNotFoundError
from carworld.models.notification import Notification
from carworld.models.service_visit import ServiceStatus
from carworld.models.support import TicketStatus
from carworld.models.user import UserRole
from carworld.schemas.order import ServiceVisitCreate
from carworld.schemas.support import TicketCreate, TicketUpdate
from carworld.services.service_visit_service import service_visit_service
from carworld.services.support_service import support_service


def ticket_payload(customer, **overrides):
    payload = {
        "customer_id": customer.id,
        "vehicle_reg": "mh12ab1234",
        "subject": "AC not cooling",
        "description": "AC stopped cooling two days after the service",
    }
    payload.update(overrides)
    return TicketCreate(**payload)


async def visible_ticket_numbers(db_session, user, **filters):
    result = await db_session.execute(support_service.list_query(user, **filters))
    return {ticket.ticket_number for ticket in result.scalars().all()}


class TestTicketVisibility:

    @pytest.mark.asyncio
    async def test_service_staff_see_only_their_tickets(self, db_session, customer, admin_user, staff_user, user_factory):
        other_staff = await user_factory(UserRole.SERVICE_STAFF)
        mine = await support_service.create_ticket(db_session, ticket_payload(customer), staff_user)
        assigned = await support_service.create_ticket(
            db_session, ticket_payload(customer, assigned_to=staff_user.id), admin_user,
        )
        elsewhere = await support_service.create_ticket(
            db_session, ticket_payload(customer, assigned_to=other_staff.id), admin_user,
        )

        assert mine.assigned_to == staff_user.id
        assert await visible_ticket_numbers(db_session, staff_user) == {mine.ticket_number, assigned.ticket_number}
        assert len(await visible_ticket_numbers(db_session, admin_user)) == 3
        with pytest.raises(TicketNotFoundError):
            await support_service.get_ticket(db_session, elsewhere.id, staff_user)

    @pytest.mark.asyncio
    async def test_search_by_number_vehicle_and_customer(self, db_session, customer, admin_user):
        ac = await support_service.create_ticket(db_session, ticket_payload(customer), admin_user)
        billing = await support_service.create_ticket(
            db_session, ticket_payload(customer, vehicle_reg="MH14XY9999", subject="Wrong bill"), admin_user,
        )

        assert ac.vehicle_reg == "MH12AB1234"
        assert await visible_ticket_numbers(db_session, admin_user, search="ab1234") == {ac.ticket_number}
        assert await visible_ticket_numbers(db_session, admin_user, search=billing.ticket_number) == {billing.ticket_number}
        assert len(await visible_ticket_numbers(db_session, admin_user, search=customer.mobile_number)) == 2
        assert await visible_ticket_numbers(db_session, admin_user, search="zzqx") == set()


class TestTicketLifecycle:

    @pytest.mark.asyncio
    async def test_resolved_then_closed_stamps(self, db_session, customer, admin_user):
        ticket = await support_service.create_ticket(db_session, ticket_payload(customer), admin_user)
        assert ticket.resolved_at is None

        resolved = await support_service.update_ticket(
            db_session, ticket.id, TicketUpdate(status=TicketStatus.RESOLVED, resolution="Gas refilled"), admin_user,
        )
        resolved_at = resolved.resolved_at
        assert resolved_at is not None
        assert resolved.closed_at is None

        closed = await support_service.update_ticket(
            db_session, ticket.id, TicketUpdate(status=TicketStatus.CLOSED), admin_user,
        )
        assert closed.closed_at is not None
        assert closed.resolved_at == resolved_at

    @pytest.mark.asyncio
    async def test_closing_directly_also_resolves(self, db_session, customer, admin_user):
        ticket = await support_service.create_ticket(db_session, ticket_payload(customer), admin_user)

        closed = await support_service.update_ticket(
            db_session, ticket.id, TicketUpdate(status=TicketStatus.CLOSED), admin_user,
        )

        assert closed.closed_at is not None
        assert closed.resolved_at == closed.closed_at


class TestServiceVisits:

    @pytest.mark.asyncio
    async def test_status_change_stamps_stage_and_notifies(self, db_session, customer):
        visit = await service_visit_service.create_visit(
            db_session, ServiceVisitCreate(customer_id=customer.id, vehicle_reg="mh12ab1234"),
        )
        assert visit.vehicle_reg == "MH12AB1234"
        assert set(visit.stage_timestamps) == {"inquired"}

        visit = await service_visit_service.change_status(db_session, visit.id, ServiceStatus.WORKING)

        assert visit.status == ServiceStatus.WORKING
        assert set(visit.stage_timestamps) == {"inquired", "working"}
        notifications = (await db_session.execute(
            select(Notification).where(Notification.related_id == visit.id)
        )).scalars().all()
        assert [n.target_role for n in notifications] == [UserRole.SERVICE_STAFF.value] * 2
        assert f"Service work started for {customer.full_name}" in {n.message for n in notifications}

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, db_session, customer):
        visit = await service_visit_service.create_visit(
            db_session, ServiceVisitCreate(customer_id=customer.id, vehicle_reg="MH12AB1234"),
        )
        first_stamp = visit.stage_timestamps["inquired"]

        visit = await service_visit_service.change_status(db_session, visit.id, ServiceStatus.INQUIRED)

        assert visit.stage_timestamps == {"inquired": first_stamp}
        count = len((await db_session.execute(select(Notification))).scalars().all())
        assert count == 1
