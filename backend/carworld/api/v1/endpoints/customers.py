"""
Customer registration (OTP verified), customer records and vehicles.

Endpoints:
- POST /registration/customers - register and send the verification OTP
- POST /registration/verify-otp - verify and send the welcome message
- POST /registration/resend-otp
- POST /registration/customers/{id}/vehicles, POST /registration/vehicles
- /customers CRUD, /vehicles get/update/delete
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from carworld.core.database import get_db
from carworld.core.rate_limiter import limiter
from carworld.models.user import User
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.auth import OTPSentResponse
from carworld.schemas.common import MessageResponse
from carworld.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerDetailResponse,
    RegistrationResponse,
    RegistrationVerifyRequest,
    RegistrationResendRequest,
    VehicleCreate,
    VehicleCreateForCustomer,
    VehicleUpdate,
    VehicleResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.customer_service import customer_service
from carworld.utils.pagination import paginate, paginated

registration_router = APIRouter(prefix="/registration", tags=["Customer Registration"])
router = APIRouter(prefix="/customers", tags=["Customers"])
vehicles_router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


# ============================================
# Registration
# ============================================

@registration_router.post("/customers", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_customer(
    request: Request,
    data: CustomerCreate,
    current_user: User = Depends(require_permission("customers", "create")),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an unverified customer and send the registration OTP on WhatsApp.

    A failed WhatsApp delivery does not undo the registration; it is reported
    in `whatsapp_error` so the OTP can be resent.
    """
    customer, otp_result = await customer_service.register(db, data, current_user)
    await log_activity(
        db, current_user, "create", "customer",
        f"Registered customer {customer.full_name} ({customer.reference_code})",
        customer.id, request=request,
    )
    return RegistrationResponse(
        customer_id=customer.id,
        reference_code=customer.reference_code,
        whatsapp_sent=otp_result.success,
        whatsapp_error=otp_result.error,
        otp=otp_result.otp,
    )


@registration_router.post("/verify-otp", response_model=CustomerResponse)
@limiter.limit("5/minute")
async def verify_customer_otp(
    request: Request,
    data: RegistrationVerifyRequest,
    current_user: User = Depends(require_permission("customers", "create")),
    db: AsyncSession = Depends(get_db)
):
    customer, welcome = await customer_service.verify_registration(db, data.customer_id, data.otp)
    await log_activity(
        db, current_user, "verify", "customer",
        f"Verified customer {customer.full_name} ({customer.reference_code})",
        customer.id, details={"welcome_sent": welcome.success}, request=request,
    )
    return customer


@registration_router.post("/resend-otp", response_model=OTPSentResponse)
@limiter.limit("3/minute")
async def resend_customer_otp(
    request: Request,
    data: RegistrationResendRequest,
    current_user: User = Depends(require_permission("customers", "create")),
    db: AsyncSession = Depends(get_db)
):
    result = await customer_service.resend_registration_otp(db, data.customer_id)
    return OTPSentResponse(
        success=result.success,
        message="OTP sent successfully" if result.success else result.error,
        otp=result.otp,
    )


@registration_router.post(
    "/customers/{customer_id}/vehicles",
    response_model=VehicleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_customer_vehicle(
    customer_id: str,
    request: Request,
    data: VehicleCreate,
    current_user: User = Depends(require_permission("customers", "create")),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await customer_service.add_vehicle(db, customer_id, data)
    await log_activity(
        db, current_user, "create", "vehicle",
        f"Added vehicle {vehicle.vehicle_code} ({vehicle.brand} {vehicle.model})",
        vehicle.id, request=request,
    )
    return vehicle


@registration_router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def add_vehicle(
    request: Request,
    data: VehicleCreateForCustomer,
    current_user: User = Depends(require_permission("customers", "create")),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await customer_service.add_vehicle(db, data.customer_id, data)
    await log_activity(
        db, current_user, "create", "vehicle",
        f"Added vehicle {vehicle.vehicle_code} ({vehicle.brand} {vehicle.model})",
        vehicle.id, request=request,
    )
    return vehicle


# ============================================
# Customers
# ============================================

@router.get("")
async def list_customers(
    search: Optional[str] = None,
    city: Optional[str] = None,
    is_verified: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("customers", "read")),
    db: AsyncSession = Depends(get_db)
):
    data = await paginate(db, customer_service.list_query(search, city, is_verified), page, page_size)
    return paginated(data, CustomerResponse)


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: str,
    current_user: User = Depends(require_permission("customers", "read")),
    db: AsyncSession = Depends(get_db)
):
    customer = await customer_service.get_customer(db, customer_id)
    vehicles = await customer_service.list_vehicles(db, customer_id)
    return CustomerDetailResponse(
        **CustomerResponse.model_validate(customer).model_dump(),
        vehicles=[VehicleResponse.model_validate(v) for v in vehicles],
    )


@router.get("/{customer_id}/vehicles", response_model=List[VehicleResponse])
async def list_customer_vehicles(
    customer_id: str,
    current_user: User = Depends(require_permission("customers", "read")),
    db: AsyncSession = Depends(get_db)
):
    await customer_service.get_customer(db, customer_id)
    return await customer_service.list_vehicles(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    request: Request,
    data: CustomerUpdate,
    current_user: User = Depends(require_permission("customers", "update")),
    db: AsyncSession = Depends(get_db)
):
    customer = await customer_service.update_customer(db, customer_id, data)
    await log_activity(
        db, current_user, "update", "customer", f"Updated customer {customer.full_name}",
        customer.id, details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return customer


@router.delete("/{customer_id}", response_model=MessageResponse)
async def delete_customer(
    customer_id: str,
    request: Request,
    current_user: User = Depends(require_permission("customers", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await customer_service.delete_customer(db, customer_id)
    await log_activity(db, current_user, "delete", "customer", f"Deleted customer {customer_id}", customer_id, request=request)
    return MessageResponse(message="Customer and vehicles deleted")


# ============================================
# Vehicles
# ============================================

@vehicles_router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: str,
    current_user: User = Depends(require_permission("customers", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await customer_service.get_vehicle(db, vehicle_id)


@vehicles_router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: str,
    request: Request,
    data: VehicleUpdate,
    current_user: User = Depends(require_permission("customers", "update")),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await customer_service.update_vehicle(db, vehicle_id, data)
    await log_activity(db, current_user, "update", "vehicle", f"Updated vehicle {vehicle.vehicle_code}", vehicle.id, request=request)
    return vehicle


@vehicles_router.delete("/{vehicle_id}", response_model=MessageResponse)
async def delete_vehicle(
    vehicle_id: str,
    request: Request,
    current_user: User = Depends(require_permission("customers", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await customer_service.delete_vehicle(db, vehicle_id)
    await log_activity(db, current_user, "delete", "vehicle", f"Deleted vehicle {vehicle_id}", vehicle_id, request=request)
    return MessageResponse(message="Vehicle deleted")
