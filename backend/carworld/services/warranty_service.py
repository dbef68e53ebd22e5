"""
Warranty Service - warranties issued on approved invoices and their claims
"""

from datetime import datetime, timedelta
from typing import Optional, List

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.exceptions import (
    WarrantyNotFoundError, InvoiceNotFoundError, ResourceNotFoundError, ValidationError,
    InvalidStateTransitionError,
)
from carworld.core.logging_config import logger
from carworld.models.invoice import Invoice
from carworld.models.warranty import (
    Warranty, WarrantyType, WarrantyStatus, WarrantyClaim, ClaimStatus,
)
from carworld.schemas.warranty import WarrantyCreate, WarrantyUpdate, ClaimCreate, ClaimUpdate
from carworld.services.sequence_service import next_warranty_number


def add_months(start: datetime, months: int) -> datetime:
    """Same day N months later, clamped to the last day of a shorter month"""
    return start + relativedelta(months=months)


CLAIM_TRANSITIONS = {
    ClaimStatus.PENDING: {ClaimStatus.APPROVED, ClaimStatus.REJECTED},
    ClaimStatus.APPROVED: {ClaimStatus.COMPLETED},
    ClaimStatus.REJECTED: set(),
    ClaimStatus.COMPLETED: set(),
}


class WarrantyService:

    async def get_warranty(self, db: AsyncSession, warranty_id: str) -> Warranty:
        warranty = await db.get(Warranty, warranty_id)
        if not warranty:
            raise WarrantyNotFoundError(warranty_id)
        return warranty

    def list_query(
        self,
        status: Optional[WarrantyStatus] = None,
        customer_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
        search: Optional[str] = None,
    ):
        query = select(Warranty)
        if status:
            query = query.where(Warranty.status == status)
        if customer_id:
            query = query.where(Warranty.customer_id == customer_id)
        if invoice_id:
            query = query.where(Warranty.invoice_id == invoice_id)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                Warranty.warranty_number.ilike(term),
                Warranty.product_name.ilike(term),
                Warranty.serial_number.ilike(term),
            ))
        return query.order_by(Warranty.created_at.desc())

    async def issue(
        self,
        db: AsyncSession,
        invoice: Invoice,
        product_name: str,
        duration_months: int,
        product_id: Optional[str] = None,
        warranty_type: WarrantyType = WarrantyType.MANUFACTURER,
        start_date: Optional[datetime] = None,
        serial_number: Optional[str] = None,
        coverage: Optional[str] = None,
        terms: Optional[str] = None,
    ) -> Warranty:
        """Stage a warranty on the session; the caller commits"""
        start = start_date or datetime.utcnow()
        warranty = Warranty(
            warranty_number=await next_warranty_number(db, start),
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            product_id=product_id,
            product_name=product_name,
            serial_number=serial_number,
            warranty_type=warranty_type,
            duration_months=duration_months,
            start_date=start,
            end_date=add_months(start, duration_months),
            coverage=coverage,
            terms=terms,
            status=WarrantyStatus.ACTIVE,
        )
        db.add(warranty)
        await db.flush()
        return warranty

    async def create_warranty(self, db: AsyncSession, data: WarrantyCreate) -> Warranty:
        invoice = await db.get(Invoice, data.invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(data.invoice_id)
        warranty = await self.issue(
            db, invoice, data.product_name, data.duration_months,
            product_id=data.product_id,
            warranty_type=data.warranty_type,
            start_date=data.start_date,
            serial_number=data.serial_number,
            coverage=data.coverage,
            terms=data.terms,
        )
        await db.commit()
        await db.refresh(warranty)
        logger.info(f"Issued warranty {warranty.warranty_number} for {warranty.product_name}")
        return warranty

    async def update_warranty(self, db: AsyncSession, warranty_id: str, data: WarrantyUpdate) -> Warranty:
        warranty = await self.get_warranty(db, warranty_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(warranty, field, value)
        warranty.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(warranty)
        return warranty

    async def expire_warranties(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Flip active warranties past their end date to expired"""
        now = now or datetime.utcnow()
        result = await db.execute(
            update(Warranty)
            .where(Warranty.status == WarrantyStatus.ACTIVE, Warranty.end_date < now)
            .values(status=WarrantyStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        expired = result.rowcount or 0
        if expired:
            logger.info(f"Expired {expired} warranties")
        return expired

    async def expiring(
        self,
        db: AsyncSession,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Warranty]:
        now = now or datetime.utcnow()
        horizon = now + timedelta(days=days if days is not None else settings.WARRANTY_EXPIRY_WINDOW_DAYS)
        result = await db.execute(
            select(Warranty)
            .where(
                Warranty.status == WarrantyStatus.ACTIVE,
                Warranty.end_date >= now,
                Warranty.end_date <= horizon,
            )
            .order_by(Warranty.end_date.asc())
        )
        return list(result.scalars().all())

    # ==================== CLAIMS ====================

    async def list_claims(self, db: AsyncSession, warranty_id: str) -> List[WarrantyClaim]:
        result = await db.execute(
            select(WarrantyClaim)
            .where(WarrantyClaim.warranty_id == warranty_id)
            .order_by(WarrantyClaim.claim_date.desc())
        )
        return list(result.scalars().all())

    async def file_claim(
        self,
        db: AsyncSession,
        warranty_id: str,
        data: ClaimCreate,
        now: Optional[datetime] = None,
    ) -> WarrantyClaim:
        now = now or datetime.utcnow()
        warranty = await self.get_warranty(db, warranty_id)
        if warranty.status != WarrantyStatus.ACTIVE:
            raise ValidationError(f"Warranty is {warranty.status.value}, claims need an active warranty")
        if warranty.end_date < now:
            raise ValidationError("Warranty has expired")

        claim = WarrantyClaim(
            warranty_id=warranty.id,
            claim_date=now,
            description=data.description,
            status=ClaimStatus.PENDING,
        )
        db.add(claim)
        await db.commit()
        await db.refresh(claim)
        logger.info(f"Claim filed on warranty {warranty.warranty_number}")
        return claim

    async def update_claim(
        self,
        db: AsyncSession,
        warranty_id: str,
        claim_id: str,
        data: ClaimUpdate,
    ) -> WarrantyClaim:
        warranty = await self.get_warranty(db, warranty_id)
        claim = await db.get(WarrantyClaim, claim_id)
        if not claim or claim.warranty_id != warranty.id:
            raise ResourceNotFoundError("Warranty Claim", claim_id)

        if data.status != claim.status:
            if data.status not in CLAIM_TRANSITIONS[claim.status]:
                raise InvalidStateTransitionError("Warranty Claim", claim.status.value, data.status.value)
            claim.status = data.status
            claim.resolution_date = datetime.utcnow()
            if data.status == ClaimStatus.APPROVED:
                warranty.status = WarrantyStatus.CLAIMED
                warranty.updated_at = datetime.utcnow()

        if data.resolution_notes is not None:
            claim.resolution_notes = data.resolution_notes

        await db.commit()
        await db.refresh(claim)
        return claim


warranty_service = WarrantyService()
