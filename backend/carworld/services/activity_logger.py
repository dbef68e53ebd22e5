"""
Activity log writer. Failures are logged and swallowed: losing an audit
row must never undo the change being audited.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.logging_config import logger
from carworld.models.activity_log import ActivityLog
from carworld.models.user import User


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def log_activity(
    db: AsyncSession,
    user: Optional[User],
    action: str,
    resource: str,
    description: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> Optional[ActivityLog]:
    """Persist one activity row. Never raises."""
    try:
        entry = ActivityLog(
            user_id=user.id if user else None,
            user_name=user.name if user else "System",
            user_role=user.role.value if user else "System",
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id else None,
            description=description,
            details=details,
            ip_address=client_ip(request),
        )
        db.add(entry)
        await db.commit()
        return entry
    except Exception as e:
        logger.log_error_with_context(e, context=f"log_activity {action}:{resource}")
        await db.rollback()
        return None


async def list_activity(
    db: AsyncSession,
    user_id: Optional[str] = None,
    user_role: Optional[str] = None,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[ActivityLog], int]:
    filters = []
    if user_id:
        filters.append(ActivityLog.user_id == user_id)
    if user_role:
        filters.append(ActivityLog.user_role == user_role)
    if resource:
        filters.append(ActivityLog.resource == resource)
    if action:
        filters.append(ActivityLog.action == action)
    if start_date:
        filters.append(ActivityLog.created_at >= start_date)
    if end_date:
        filters.append(ActivityLog.created_at <= end_date)

    total = await db.scalar(select(func.count(ActivityLog.id)).where(*filters))
    result = await db.execute(
        select(ActivityLog)
        .where(*filters)
        .order_by(ActivityLog.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0
