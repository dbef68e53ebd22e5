"""
Unit Tests for warranties and claims
"""
import pytest
from datetime import datetime, timedelta

from carworld.core.exceptions import ValidationError, InvalidStateTransitionError
from carworld.models.warranty import WarrantyStatus, ClaimStatus
from carworld.schemas.invoice import InvoiceCreate, InvoiceItemInput
from carworld.schemas.warranty import ClaimCreate, ClaimUpdate
from carworld.services.invoice_service import invoice_service
from carworld.services.warranty_service import warranty_service, add_months


class TestAddMonths:

    def test_simple(self):
        assert add_months(datetime(2025, 3, 10), 12) == datetime(2026, 3, 10)

    def test_crosses_year(self):
        assert add_months(datetime(2025, 11, 5), 3) == datetime(2026, 2, 5)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2025, 1, 31), 1) == datetime(2025, 2, 28)
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)


@pytest.fixture
async def invoice(db_session, customer, admin_user):
    return await invoice_service.create_invoice(db_session, InvoiceCreate(
        customer_id=customer.id,
        items=[InvoiceItemInput(name="Alloy Wheels", quantity=4, unit_price=6000)],
    ), admin_user)


class TestWarrantyLifecycle:
    """Test issue / expire / claims"""

    @pytest.mark.asyncio
    async def test_issue_numbers_and_end_date(self, db_session, invoice):
        start = datetime(2025, 1, 31, 10, 0)
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 1, start_date=start)
        await db_session.commit()

        assert warranty.warranty_number == "WRT/2025/0001"
        assert warranty.end_date == datetime(2025, 2, 28, 10, 0)
        assert warranty.status == WarrantyStatus.ACTIVE
        assert warranty.customer_id == invoice.customer_id

    @pytest.mark.asyncio
    async def test_expire_sweep(self, db_session, invoice):
        now = datetime.utcnow()
        old = await warranty_service.issue(db_session, invoice, "Old part", 6, start_date=now - timedelta(days=400))
        fresh = await warranty_service.issue(db_session, invoice, "New part", 12, start_date=now)
        await db_session.commit()

        expired = await warranty_service.expire_warranties(db_session, now)

        assert expired == 1
        await db_session.refresh(old)
        await db_session.refresh(fresh)
        assert old.status == WarrantyStatus.EXPIRED
        assert fresh.status == WarrantyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_expiring_window(self, db_session, invoice):
        now = datetime.utcnow()
        soon = await warranty_service.issue(db_session, invoice, "Battery", 1, start_date=now - timedelta(days=20))
        await warranty_service.issue(db_session, invoice, "Stereo", 24, start_date=now)
        await db_session.commit()

        expiring = await warranty_service.expiring(db_session, days=30, now=now)

        assert [w.id for w in expiring] == [soon.id]

    @pytest.mark.asyncio
    async def test_approved_claim_marks_warranty_claimed(self, db_session, invoice):
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 12)
        await db_session.commit()

        claim = await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Cracked rim"))
        assert claim.status == ClaimStatus.PENDING

        claim = await warranty_service.update_claim(
            db_session, warranty.id, claim.id, ClaimUpdate(status=ClaimStatus.APPROVED, resolution_notes="Replaced"),
        )

        await db_session.refresh(warranty)
        assert claim.resolution_date is not None
        assert warranty.status == WarrantyStatus.CLAIMED

    @pytest.mark.asyncio
    async def test_settled_claims_cannot_reopen(self, db_session, invoice):
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 12)
        await db_session.commit()
        done = await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Cracked rim"))
        refused = await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Paint fade"))
        for status in (ClaimStatus.APPROVED, ClaimStatus.COMPLETED):
            await warranty_service.update_claim(db_session, warranty.id, done.id, ClaimUpdate(status=status))
        await warranty_service.update_claim(
            db_session, warranty.id, refused.id, ClaimUpdate(status=ClaimStatus.REJECTED),
        )

        with pytest.raises(InvalidStateTransitionError):
            await warranty_service.update_claim(
                db_session, warranty.id, done.id, ClaimUpdate(status=ClaimStatus.PENDING),
            )
        with pytest.raises(InvalidStateTransitionError):
            await warranty_service.update_claim(
                db_session, warranty.id, refused.id, ClaimUpdate(status=ClaimStatus.APPROVED),
            )

    @pytest.mark.asyncio
    async def test_rejected_claim_leaves_warranty_active(self, db_session, invoice):
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 12)
        await db_session.commit()
        claim = await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Wear and tear"))

        claim = await warranty_service.update_claim(
            db_session, warranty.id, claim.id,
            ClaimUpdate(status=ClaimStatus.REJECTED, resolution_notes="Not covered"),
        )

        await db_session.refresh(warranty)
        assert claim.resolution_notes == "Not covered"
        assert warranty.status == WarrantyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_pending_claim_cannot_skip_to_completed(self, db_session, invoice):
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 12)
        await db_session.commit()
        claim = await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Cracked rim"))

        with pytest.raises(InvalidStateTransitionError):
            await warranty_service.update_claim(
                db_session, warranty.id, claim.id, ClaimUpdate(status=ClaimStatus.COMPLETED),
            )

    @pytest.mark.asyncio
    async def test_claim_needs_active_warranty(self, db_session, invoice):
        warranty = await warranty_service.issue(db_session, invoice, "Alloy Wheels", 12)
        warranty.status = WarrantyStatus.VOID
        await db_session.commit()

        with pytest.raises(ValidationError):
            await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Scratch"))

    @pytest.mark.asyncio
    async def test_claim_on_lapsed_warranty(self, db_session, invoice):
        warranty = await warranty_service.issue(
            db_session, invoice, "Alloy Wheels", 1, start_date=datetime.utcnow() - timedelta(days=90),
        )
        await db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            await warranty_service.file_claim(db_session, warranty.id, ClaimCreate(description="Late claim"))

        assert exc_info.value.message == "Warranty has expired"
