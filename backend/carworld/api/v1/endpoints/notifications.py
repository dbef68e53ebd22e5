from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.database import get_db
from carworld.core.exceptions import ResourceNotFoundError
from carworld.models.user import User
from carworld.modules.auth.dependencies import get_current_user
from carworld.schemas.common import MessageResponse, NotificationListResponse, NotificationResponse
from carworld.services.notification_service import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Notifications addressed to the caller's role (Admin sees all)"""
    items, unread = await notification_service.list_for_user(db, current_user, unread_only, limit)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread_count=unread,
    )


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    updated = await notification_service.mark_all_read(db, current_user)
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await notification_service.mark_read(db, current_user, notification_id)
    if notification is None:
        raise ResourceNotFoundError("Notification", notification_id)
    return notification
