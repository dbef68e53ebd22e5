"""
Customer Service - registration, verification and vehicle records
"""

from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy import select, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.exceptions import (
    CustomerNotFoundError, VehicleNotFoundError, DuplicateResourceError,
)
from carworld.core.logging_config import logger
from carworld.models.customer import Customer, Vehicle
from carworld.models.otp import OTPPurpose
from carworld.models.user import User
from carworld.schemas.customer import (
    CustomerCreate, CustomerUpdate, VehicleCreate, VehicleUpdate,
)
from carworld.services.otp_service import otp_service, OTPResult
from carworld.services.sequence_service import next_customer_code, next_vehicle_code
from carworld.services.whatsapp_service import whatsapp_client, WhatsAppResult


class CustomerService:

    # ==================== CUSTOMERS ====================

    async def get_customer(self, db: AsyncSession, customer_id: str) -> Customer:
        customer = await db.get(Customer, customer_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    async def get_by_mobile(self, db: AsyncSession, mobile_number: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.mobile_number == mobile_number))
        return result.scalar_one_or_none()

    def list_query(self, search: Optional[str] = None, city: Optional[str] = None, verified: Optional[bool] = None):
        query = select(Customer)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                Customer.full_name.ilike(term),
                Customer.mobile_number.ilike(term),
                Customer.reference_code.ilike(term),
                Customer.city.ilike(term),
            ))
        if city:
            query = query.where(Customer.city.ilike(city))
        if verified is not None:
            query = query.where(Customer.is_verified == verified)
        return query.order_by(Customer.created_at.desc())

    async def register(
        self,
        db: AsyncSession,
        data: CustomerCreate,
        registered_by: Optional[User] = None,
    ) -> Tuple[Customer, OTPResult]:
        """
        Create an unverified customer and send the registration OTP.
        A delivery failure is reported in the OTPResult, not raised.
        """
        if await self.get_by_mobile(db, data.mobile_number):
            raise DuplicateResourceError("Customer", "mobile_number", data.mobile_number)

        customer = Customer(
            reference_code=await next_customer_code(db),
            is_verified=False,
            registered_by=registered_by.id if registered_by else None,
            registered_by_role=registered_by.role.value if registered_by else None,
            **data.model_dump(),
        )
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        logger.info(f"Registered customer {customer.reference_code} ({customer.full_name})")

        otp_result = await otp_service.issue_otp(db, customer.mobile_number, OTPPurpose.CUSTOMER_REGISTRATION)
        return customer, otp_result

    async def resend_registration_otp(self, db: AsyncSession, customer_id: str) -> OTPResult:
        customer = await self.get_customer(db, customer_id)
        return await otp_service.issue_otp(db, customer.mobile_number, OTPPurpose.CUSTOMER_REGISTRATION)

    async def verify_registration(
        self,
        db: AsyncSession,
        customer_id: str,
        otp: str,
    ) -> Tuple[Customer, WhatsAppResult]:
        """Mark the customer verified and send the welcome message"""
        customer = await self.get_customer(db, customer_id)
        await otp_service.verify_otp(db, customer.mobile_number, otp, OTPPurpose.CUSTOMER_REGISTRATION)

        customer.is_verified = True
        customer.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(customer)

        welcome = await whatsapp_client.send_welcome(
            customer.mobile_number,
            customer.reference_code,
            settings.WHATSAPP_WELCOME_TEMPLATE,
        )
        logger.log_notification_event(
            "whatsapp", "welcome", welcome.success,
            recipient=customer.mobile_number, error=welcome.error,
        )
        return customer, welcome

    async def update_customer(self, db: AsyncSession, customer_id: str, data: CustomerUpdate) -> Customer:
        customer = await self.get_customer(db, customer_id)
        update_dict = data.model_dump(exclude_unset=True)

        new_mobile = update_dict.get("mobile_number")
        if new_mobile and new_mobile != customer.mobile_number:
            if await self.get_by_mobile(db, new_mobile):
                raise DuplicateResourceError("Customer", "mobile_number", new_mobile)

        for field, value in update_dict.items():
            setattr(customer, field, value)
        customer.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(customer)
        return customer

    async def delete_customer(self, db: AsyncSession, customer_id: str) -> None:
        customer = await self.get_customer(db, customer_id)
        await db.execute(delete(Vehicle).where(Vehicle.customer_id == customer.id))
        await db.delete(customer)
        await db.commit()
        logger.info(f"Deleted customer {customer.reference_code} and their vehicles")

    # ==================== VEHICLES ====================

    async def get_vehicle(self, db: AsyncSession, vehicle_id: str) -> Vehicle:
        vehicle = await db.get(Vehicle, vehicle_id)
        if not vehicle:
            raise VehicleNotFoundError(vehicle_id)
        return vehicle

    async def list_vehicles(self, db: AsyncSession, customer_id: str) -> List[Vehicle]:
        result = await db.execute(
            select(Vehicle)
            .where(Vehicle.customer_id == customer_id)
            .order_by(Vehicle.created_at.asc())
        )
        return list(result.scalars().all())

    async def add_vehicle(self, db: AsyncSession, customer_id: str, data: VehicleCreate) -> Vehicle:
        customer = await self.get_customer(db, customer_id)
        values = data.model_dump(exclude={"customer_id"})
        vehicle = Vehicle(
            customer_id=customer.id,
            vehicle_code=await next_vehicle_code(db),
            **values,
        )
        db.add(vehicle)
        await db.commit()
        await db.refresh(vehicle)
        logger.info(f"Added vehicle {vehicle.vehicle_code} for customer {customer.reference_code}")
        return vehicle

    async def update_vehicle(self, db: AsyncSession, vehicle_id: str, data: VehicleUpdate) -> Vehicle:
        vehicle = await self.get_vehicle(db, vehicle_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(vehicle, field, value)
        vehicle.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(vehicle)
        return vehicle

    async def delete_vehicle(self, db: AsyncSession, vehicle_id: str) -> None:
        vehicle = await self.get_vehicle(db, vehicle_id)
        await db.delete(vehicle)
        await db.commit()


customer_service = CustomerService()
