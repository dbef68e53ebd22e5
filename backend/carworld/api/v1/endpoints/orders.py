"""
Counter-sale orders and workshop service visits.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.models.order import OrderPaymentStatus, DeliveryStatus
from carworld.models.service_visit import ServiceStatus
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import require_permission, require_role
from carworld.schemas.common import MessageResponse
from carworld.schemas.order import (
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    ServiceVisitCreate,
    ServiceVisitUpdate,
    ServiceStatusUpdate,
    ServiceVisitResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.order_service import order_service
from carworld.services.service_visit_service import service_visit_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/orders", tags=["Orders"])
visits_router = APIRouter(prefix="/service-visits", tags=["Service Visits"])

# Workshop floor roles
service_desk = require_role(
    UserRole.ADMIN, UserRole.MANAGER, UserRole.SERVICE_STAFF, UserRole.SALES_EXECUTIVE
)


# ============================================
# Orders
# ============================================

@router.get("")
async def list_orders(
    search: Optional[str] = None,
    payment_status: Optional[OrderPaymentStatus] = None,
    delivery_status: Optional[DeliveryStatus] = None,
    salesperson_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("orders", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = order_service.list_query(search, payment_status, delivery_status, salesperson_id)
    data = await paginate(db, query, page, page_size)
    return paginated(data, OrderResponse)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: Request,
    data: OrderCreate,
    current_user: User = Depends(require_permission("orders", "create")),
    db: AsyncSession = Depends(get_db)
):
    """Creates the order and takes every item out of stock; 409 if any item is short"""
    order = await order_service.create_order(db, data, current_user.id)
    await log_activity(
        db, current_user, "create", "order",
        f"Created order {order.order_number} for {order.customer_name}", order.id,
        details={"total": order.total, "items": len(order.items)}, request=request,
    )
    return order


@router.post("/flag-overdue", response_model=MessageResponse)
async def flag_overdue_orders(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(require_permission("orders", "update")),
    db: AsyncSession = Depends(get_db)
):
    """Raise overdue-payment notifications for unpaid orders older than `days`"""
    flagged = await order_service.flag_overdue_orders(db, days)
    return MessageResponse(message=f"{flagged} overdue orders flagged")


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(require_permission("orders", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await order_service.get_order(db, order_id)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    request: Request,
    data: OrderUpdate,
    current_user: User = Depends(require_permission("orders", "update")),
    db: AsyncSession = Depends(get_db)
):
    order = await order_service.update_order(db, order_id, data)
    await log_activity(
        db, current_user, "update", "order", f"Updated order {order.order_number}", order.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return order


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    order_id: str,
    request: Request,
    current_user: User = Depends(require_permission("orders", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await order_service.delete_order(db, order_id)
    await log_activity(db, current_user, "delete", "order", f"Deleted order {order_id}", order_id, request=request)
    return MessageResponse(message="Order deleted")


# ============================================
# Service visits
# ============================================

@visits_router.get("")
async def list_service_visits(
    status: Optional[ServiceStatus] = None,
    customer_id: Optional[str] = None,
    vehicle_reg: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(service_desk),
    db: AsyncSession = Depends(get_db)
):
    query = service_visit_service.list_query(status, customer_id, vehicle_reg)
    data = await paginate(db, query, page, page_size)
    return paginated(data, ServiceVisitResponse)


@visits_router.post("", response_model=ServiceVisitResponse, status_code=status.HTTP_201_CREATED)
async def create_service_visit(
    request: Request,
    data: ServiceVisitCreate,
    current_user: User = Depends(service_desk),
    db: AsyncSession = Depends(get_db)
):
    visit = await service_visit_service.create_visit(db, data)
    await log_activity(
        db, current_user, "create", "service_visit", f"Opened service visit for {visit.vehicle_reg}",
        visit.id, request=request,
    )
    return visit


@visits_router.get("/{visit_id}", response_model=ServiceVisitResponse)
async def get_service_visit(
    visit_id: str,
    current_user: User = Depends(service_desk),
    db: AsyncSession = Depends(get_db)
):
    return await service_visit_service.get_visit(db, visit_id)


@visits_router.put("/{visit_id}", response_model=ServiceVisitResponse)
async def update_service_visit(
    visit_id: str,
    data: ServiceVisitUpdate,
    current_user: User = Depends(service_desk),
    db: AsyncSession = Depends(get_db)
):
    return await service_visit_service.update_visit(db, visit_id, data)


@visits_router.patch("/{visit_id}/status", response_model=ServiceVisitResponse)
async def change_service_status(
    visit_id: str,
    request: Request,
    data: ServiceStatusUpdate,
    current_user: User = Depends(service_desk),
    db: AsyncSession = Depends(get_db)
):
    visit = await service_visit_service.change_status(db, visit_id, data.status)
    await log_activity(
        db, current_user, "status_change", "service_visit",
        f"Service visit {visit.vehicle_reg} -> {visit.status.value}", visit.id, request=request,
    )
    return visit


@visits_router.delete("/{visit_id}", response_model=MessageResponse)
async def delete_service_visit(
    visit_id: str,
    current_user: User = Depends(require_role(UserRole.ADMIN, UserRole.MANAGER)),
    db: AsyncSession = Depends(get_db)
):
    await service_visit_service.delete_visit(db, visit_id)
    return MessageResponse(message="Service visit deleted")
