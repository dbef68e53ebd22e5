"""
Audit trail of user actions. Admin and Manager only.
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import require_role
from carworld.schemas.common import ActivityLogListResponse, ActivityLogResponse
from carworld.services.activity_logger import list_activity

router = APIRouter(prefix="/activity-logs", tags=["Activity Logs"])


@router.get("", response_model=ActivityLogListResponse)
async def get_activity_logs(
    user_id: Optional[str] = None,
    user_role: Optional[str] = None,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_role(UserRole.ADMIN, UserRole.MANAGER)),
    db: AsyncSession = Depends(get_db)
):
    logs, total = await list_activity(
        db,
        user_id=user_id,
        user_role=user_role,
        resource=resource,
        action=action,
        start_date=start_date,
        end_date=end_date,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return ActivityLogListResponse(
        items=[ActivityLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
    )
