"""
Reports and dashboard widgets.

Reports need `reports:read`; dashboard widgets are open to any signed-in
user since every role lands on the dashboard.
"""

from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from carworld.core.database import get_db
from carworld.core.rate_limiter import limiter
from carworld.models.user import User
from carworld.modules.auth.dependencies import get_current_user, require_permission
from carworld.schemas.employee import PerformanceLogResponse
from carworld.schemas.support import FeedbackAnalytics
from carworld.services.activity_logger import log_activity
from carworld.services.report_service import report_service

router = APIRouter(prefix="/reports", tags=["Reports"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/dashboard")
async def dashboard_summary(
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.dashboard(db)


@router.get("/sales")
async def sales_report(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    """Daily revenue between `start` and `end` (defaults to the last 30 days)"""
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=30)
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "days": await report_service.sales_by_day(db, start, end),
    }


@router.get("/top-products")
async def top_products(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.top_products(db, limit)


@router.get("/inventory")
async def inventory_report(
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.inventory_report(db)


@router.get("/warranties")
async def warranty_report(
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.warranty_report(db)


@router.get("/feedback", response_model=FeedbackAnalytics)
async def feedback_report(
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.feedback_report(db)


@router.get("/customers")
async def customer_growth(
    months: int = Query(12, ge=1, le=36),
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.customer_growth(db, months)


@router.get("/employee-performance", response_model=List[PerformanceLogResponse])
async def employee_performance(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.employee_performance(db, month, year)


@router.get("/daily")
async def daily_report_preview(
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    """The figures that go into the daily email, without sending it"""
    return await report_service.daily_report_data(db)


@router.post("/daily/send")
@limiter.limit("5/hour")
async def send_daily_report(
    request: Request,
    recipient: Optional[str] = None,
    current_user: User = Depends(require_permission("reports", "read")),
    db: AsyncSession = Depends(get_db)
):
    result = await report_service.send_daily_report(db, recipient)
    await log_activity(
        db, current_user, "send", "report", "Sent daily report",
        details={"success": result["success"], "error": result.get("error")}, request=request,
    )
    return {"success": result["success"], "error": result.get("error")}


# ============================================
# Dashboard widgets
# ============================================

@dashboard_router.get("/service-status")
async def service_status(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.service_status(db)


@dashboard_router.get("/sales-trends")
async def sales_trends(
    months: int = Query(6, ge=1, le=24),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.sales_trends(db, months)


@dashboard_router.get("/product-categories")
async def product_categories(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await report_service.product_categories(db)
