"""
Staff user management (users permission) and the current user's profile.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.core.rate_limiter import limiter
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import get_current_user, require_permission
from carworld.schemas.auth import (
    UserCreate,
    UserUpdate,
    UserResponse,
    ProfileUpdate,
    PhoneUpdateRequest,
    PhoneUpdateVerify,
    ChangePasswordRequest,
    OTPSentResponse,
)
from carworld.schemas.common import MessageResponse
from carworld.services.activity_logger import log_activity
from carworld.services.user_service import user_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/users", tags=["Users"])
profile_router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("")
async def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("users", "read")),
    db: AsyncSession = Depends(get_db)
):
    data = await paginate(db, user_service.list_query(search, role, is_active), page, page_size)
    return paginated(data, UserResponse)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: Request,
    data: UserCreate,
    current_user: User = Depends(require_permission("users", "create")),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.create_user(db, data)
    await log_activity(
        db, current_user, "create", "user", f"Created user {user.name} ({user.role.value})",
        user.id, request=request
    )
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(require_permission("users", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: Request,
    data: UserUpdate,
    current_user: User = Depends(require_permission("users", "update")),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.update_user(db, user_id, data)
    await log_activity(
        db, current_user, "update", "user", f"Updated user {user.name}", user.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True, exclude={"password"}))},
        request=request,
    )
    return user


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_permission("users", "update")),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.deactivate_user(db, user_id)
    await log_activity(db, current_user, "deactivate", "user", f"Deactivated user {user.name}", user.id, request=request)
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_permission("users", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await user_service.delete_user(db, user_id, current_user)
    await log_activity(db, current_user, "delete", "user", f"Deleted user {user_id}", user_id, request=request)
    return MessageResponse(message="User deleted")


# ============================================
# Profile
# ============================================

@profile_router.get("", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@profile_router.put("", response_model=UserResponse)
async def update_profile(
    request: Request,
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.update_profile(db, current_user, data)
    await log_activity(db, user, "update", "profile", f"{user.name} updated their profile", user.id, request=request)
    return user


@profile_router.post("/phone/send-otp", response_model=OTPSentResponse)
@limiter.limit("3/minute")
async def send_phone_update_otp(
    request: Request,
    data: PhoneUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Send a phone_update OTP to the new number"""
    result = await user_service.request_phone_update(db, current_user, data.new_mobile_number)
    return OTPSentResponse(
        success=result.success,
        message="OTP sent successfully" if result.success else result.error,
        otp=result.otp,
    )


@profile_router.post("/phone/verify", response_model=UserResponse)
@limiter.limit("3/minute")
async def verify_phone_update(
    request: Request,
    data: PhoneUpdateVerify,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.confirm_phone_update(db, current_user, data.new_mobile_number, data.otp)
    await log_activity(db, user, "update", "profile", f"{user.name} changed their mobile number", user.id, request=request)
    return user


@profile_router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await user_service.change_password(db, current_user, data.current_password, data.new_password)
    await log_activity(db, current_user, "update", "profile", f"{current_user.name} changed their password", current_user.id, request=request)
    return MessageResponse(message="Password changed successfully")
