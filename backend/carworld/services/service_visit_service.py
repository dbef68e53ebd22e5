"""
Service visits - a vehicle's trip through the workshop
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.exceptions import ResourceNotFoundError, CustomerNotFoundError
from carworld.core.logging_config import logger
from carworld.models.customer import Customer
from carworld.models.service_visit import ServiceVisit, ServiceStatus
from carworld.schemas.order import ServiceVisitCreate, ServiceVisitUpdate
from carworld.services.notification_service import notification_service


class ServiceVisitService:

    async def get_visit(self, db: AsyncSession, visit_id: str) -> ServiceVisit:
        visit = await db.get(ServiceVisit, visit_id)
        if not visit:
            raise ResourceNotFoundError("Service Visit", visit_id)
        return visit

    def list_query(
        self,
        status: Optional[ServiceStatus] = None,
        customer_id: Optional[str] = None,
        vehicle_reg: Optional[str] = None,
    ):
        query = select(ServiceVisit)
        if status:
            query = query.where(ServiceVisit.status == status)
        if customer_id:
            query = query.where(ServiceVisit.customer_id == customer_id)
        if vehicle_reg:
            query = query.where(ServiceVisit.vehicle_reg.ilike(f"%{vehicle_reg}%"))
        return query.order_by(ServiceVisit.created_at.desc())

    async def _customer_name(self, db: AsyncSession, customer_id: str) -> str:
        customer = await db.get(Customer, customer_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer.full_name

    async def create_visit(self, db: AsyncSession, data: ServiceVisitCreate) -> ServiceVisit:
        name = await self._customer_name(db, data.customer_id)
        visit = ServiceVisit(
            customer_id=data.customer_id,
            vehicle_reg=data.vehicle_reg.upper(),
            status=data.status,
            handler_ids=data.handler_ids,
            notes=data.notes,
            parts_used=[part.model_dump() for part in data.parts_used],
            stage_timestamps={data.status.value: datetime.utcnow().isoformat()},
            total_amount=data.total_amount,
            before_images=data.before_images,
            after_images=[],
        )
        db.add(visit)
        await db.flush()
        notification_service.notify_service_status(db, visit, name, data.status.value)
        await db.commit()
        await db.refresh(visit)
        logger.info(f"Service visit opened for {visit.vehicle_reg} ({name})")
        return visit

    async def update_visit(self, db: AsyncSession, visit_id: str, data: ServiceVisitUpdate) -> ServiceVisit:
        visit = await self.get_visit(db, visit_id)
        update_dict = data.model_dump(exclude_unset=True)
        if "vehicle_reg" in update_dict and update_dict["vehicle_reg"]:
            update_dict["vehicle_reg"] = update_dict["vehicle_reg"].upper()
        for field, value in update_dict.items():
            setattr(visit, field, value)
        visit.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(visit)
        return visit

    async def change_status(self, db: AsyncSession, visit_id: str, status: ServiceStatus) -> ServiceVisit:
        """Stamp the stage time and tell Service Staff"""
        visit = await self.get_visit(db, visit_id)
        if visit.status == status:
            return visit

        visit.status = status
        visit.stage_timestamps = {**(visit.stage_timestamps or {}), status.value: datetime.utcnow().isoformat()}
        visit.updated_at = datetime.utcnow()

        name = await self._customer_name(db, visit.customer_id)
        notification_service.notify_service_status(db, visit, name, status.value)
        await db.commit()
        await db.refresh(visit)
        logger.info(f"Service visit {visit.id} for {visit.vehicle_reg} is now {status.value}")
        return visit

    async def delete_visit(self, db: AsyncSession, visit_id: str) -> None:
        visit = await self.get_visit(db, visit_id)
        await db.delete(visit)
        await db.commit()

    async def status_counts(self, db: AsyncSession) -> dict:
        result = await db.execute(
            select(ServiceVisit.status, func.count(ServiceVisit.id)).group_by(ServiceVisit.status)
        )
        counts = {status.value: 0 for status in ServiceStatus}
        for status, count in result.all():
            counts[status.value] = count
        return counts


service_visit_service = ServiceVisitService()
