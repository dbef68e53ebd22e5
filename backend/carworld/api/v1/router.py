from fastapi import APIRouter
from carworld.api.v1.endpoints import (
    activity_logs,
    auth,
    coupons,
    customers,
    employees,
    health,
    invoices,
    notifications,
    orders,
    products,
    reports,
    support,
    users,
    warranties,
)
from carworld.core.config import settings

api_router = APIRouter()

# Deep health checks (/health/live, /health/ready)
api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check for load balancers"""
    return {"status": "healthy", "service": settings.APP_NAME}


# Auth and accounts
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(users.profile_router)

# Customers
api_router.include_router(customers.registration_router)
api_router.include_router(customers.router)
api_router.include_router(customers.vehicles_router)

# Catalogue and stock
api_router.include_router(products.router)
api_router.include_router(products.inventory_router)
api_router.include_router(products.returns_router)

# Sales and workshop
api_router.include_router(orders.router)
api_router.include_router(orders.visits_router)
api_router.include_router(invoices.router)
api_router.include_router(invoices.public_router)
api_router.include_router(coupons.router)
api_router.include_router(warranties.router)

# HR
api_router.include_router(employees.router)
api_router.include_router(employees.attendance_router)
api_router.include_router(employees.leaves_router)
api_router.include_router(employees.tasks_router)
api_router.include_router(employees.performance_router)

# Support
api_router.include_router(support.tickets_router)
api_router.include_router(support.feedbacks_router)
api_router.include_router(support.communications_router)

# Back office
api_router.include_router(notifications.router)
api_router.include_router(activity_logs.router)
api_router.include_router(reports.router)
api_router.include_router(reports.dashboard_router)
