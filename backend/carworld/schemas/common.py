from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime

from carworld.models.notification import NotificationType


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class NotificationResponse(BaseModel):
    id: str
    message: str
    type: NotificationType
    read: bool
    target_role: Optional[str] = None
    related_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int


class ActivityLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    user_name: str
    user_role: str
    action: str
    resource: str
    resource_id: Optional[str] = None
    description: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityLogListResponse(BaseModel):
    items: List[ActivityLogResponse]
    total: int
    page: int
    page_size: int
