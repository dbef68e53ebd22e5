from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timedelta
from typing import Optional
import uuid

from carworld.core.config import settings
from carworld.core.database import get_db
from carworld.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InactivityTimeoutError,
)
from carworld.core.logging_config import logger, set_user_id, set_shop_role
from carworld.core.security import decode_token, ACCESS_TOKEN
from carworld.models.user import User, UserRole
from carworld.modules.auth.permissions import has_permission

security = HTTPBearer(auto_error=False)


def is_inactive(user: User, now: Optional[datetime] = None) -> bool:
    """Non-admin sessions lapse after INACTIVITY_TIMEOUT_MINUTES without a request"""
    if user.role == UserRole.ADMIN or user.last_activity_at is None:
        return False
    now = now or datetime.utcnow()
    return now - user.last_activity_at > timedelta(minutes=settings.INACTIVITY_TIMEOUT_MINUTES)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user and refresh their activity timestamp"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials, expected_type=ACCESS_TOKEN)

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid user ID format")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    now = datetime.utcnow()
    if is_inactive(user, now):
        logger.log_auth_event("session", False, user.email, reason="inactivity timeout")
        raise InactivityTimeoutError()

    user.last_activity_at = now
    await db.commit()

    request.state.user_id = str(user.id)
    set_user_id(str(user.id))
    set_shop_role(user.role.value)

    return user


def require_permission(resource: str, action: str):
    """
    Dependency factory enforcing the role permission matrix.

    Usage:
        @router.post("/", dependencies=[Depends(require_permission("products", "create"))])
    or
        current_user: User = Depends(require_permission("products", "read"))
    """

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user.role, resource, action):
            logger.warning(
                f"Permission denied: {current_user.role.value} -> {resource}:{action}",
                extra={"event_type": "permission_denied", "resource": resource, "action": action}
            )
            raise AuthorizationError(f"You do not have permission to {action} {resource}")
        return current_user

    return checker


def require_role(*roles: UserRole):
    """Dependency factory allowing only the listed roles"""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError(
                f"This action requires one of: {', '.join(r.value for r in roles)}"
            )
        return current_user

    return checker


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Get current admin user"""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return current_user
