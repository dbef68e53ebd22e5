from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime

from carworld.core.database import get_db
from carworld.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidCredentialsError,
    OTPError,
)
from carworld.core.logging_config import logger, set_user_id
from carworld.core.rate_limiter import limiter
from carworld.core.security import (
    create_access_token,
    create_refresh_token,
    create_otp_pending_token,
    create_password_reset_token,
    decode_token,
    OTP_PENDING_TOKEN,
    REFRESH_TOKEN,
    PASSWORD_RESET_TOKEN,
)
from carworld.models.otp import OTPPurpose
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import get_current_user
from carworld.modules.auth.permissions import permissions_for
from carworld.schemas.auth import (
    LoginRequest,
    LoginResponse,
    UserResponse,
    VerifyLoginOTPRequest,
    SendOTPRequest,
    OTPSentResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
    ForgotPasswordRequest,
    VerifyResetOTPRequest,
    ResetTokenResponse,
    ResetPasswordRequest,
)
from carworld.schemas.common import MessageResponse
from carworld.services.activity_logger import log_activity, client_ip
from carworld.services.otp_service import otp_service
from carworld.services.user_service import user_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


async def _issue_tokens(db: AsyncSession, user: User, request: Request) -> LoginResponse:
    """Stamp the login and hand out access + refresh tokens"""
    now = datetime.utcnow()
    user.last_login = now
    user.last_activity_at = now
    await db.commit()

    token_data = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    set_user_id(str(user.id))
    logger.log_auth_event("login", True, user.email, client_ip=client_ip(request), user_role=user.role.value)
    await log_activity(db, user, "login", "auth", f"{user.name} logged in", user.id, request=request)

    return LoginResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(token_data),
        user=UserResponse.model_validate(user),
        permissions=permissions_for(user.role),
    )


async def _user_from_token(db: AsyncSession, token: str, token_type: str) -> User:
    payload = decode_token(token, expected_type=token_type)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    user = await user_service.get_user(db, user_id)
    if not user.is_active:
        raise AuthorizationError("User account is inactive")
    return user


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Password login.

    Admin receives tokens immediately. Every other role gets a login OTP on
    WhatsApp and must finish with POST /auth/verify-otp using `otp_token`.
    """
    user = await user_service.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        logger.log_auth_event(
            "login", False, credentials.email,
            reason="Invalid credentials", client_ip=client_ip(request)
        )
        raise InvalidCredentialsError()

    if credentials.selected_role and credentials.selected_role != user.role:
        logger.log_auth_event(
            "login", False, user.email,
            reason=f"role mismatch ({credentials.selected_role.value})", client_ip=client_ip(request)
        )
        raise AuthorizationError(f"You are not registered as {credentials.selected_role.value}")

    if user.role == UserRole.ADMIN:
        return await _issue_tokens(db, user, request)

    result = await otp_service.issue_otp(db, user.mobile_number, OTPPurpose.LOGIN)
    return LoginResponse(
        require_otp=True,
        mobile_number=user.mobile_number,
        otp_token=create_otp_pending_token(str(user.id)),
        otp=result.otp,
        whatsapp_error=result.error,
    )


@router.post("/verify-otp", response_model=LoginResponse)
@limiter.limit("3/minute")
async def verify_login_otp(
    request: Request,
    data: VerifyLoginOTPRequest,
    db: AsyncSession = Depends(get_db)
):
    """Second login step for non-admin roles"""
    user = await _user_from_token(db, data.otp_token, OTP_PENDING_TOKEN)
    try:
        await otp_service.verify_otp(db, user.mobile_number, data.otp, OTPPurpose.LOGIN)
    except OTPError as e:
        logger.log_auth_event("login_otp", False, user.email, reason=e.message, client_ip=client_ip(request))
        raise
    return await _issue_tokens(db, user, request)


@router.post("/send-otp", response_model=OTPSentResponse)
@limiter.limit("3/minute")
async def send_login_otp(
    request: Request,
    data: SendOTPRequest,
    db: AsyncSession = Depends(get_db)
):
    """Resend the login OTP"""
    user = await user_service.get_by_mobile(db, data.mobile_number)
    if not user or not user.is_active:
        raise AuthenticationError("No active account for this mobile number")

    result = await otp_service.issue_otp(db, user.mobile_number, OTPPurpose.LOGIN)
    return OTPSentResponse(
        success=result.success,
        message="OTP sent successfully" if result.success else result.error,
        otp=result.otp,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new access token"""
    user = await _user_from_token(db, data.refresh_token, REFRESH_TOKEN)
    token_data = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    return AccessTokenResponse(access_token=create_access_token(token_data))


@router.post("/forgot-password", response_model=OTPSentResponse)
@limiter.limit("3/minute")
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.get_by_mobile(db, data.mobile_number)
    if not user or not user.is_active:
        logger.log_auth_event(
            "forgot_password", False, reason="unknown mobile",
            mobile_number=data.mobile_number, client_ip=client_ip(request)
        )
        raise AuthenticationError("No active account for this mobile number")

    result = await otp_service.issue_otp(db, user.mobile_number, OTPPurpose.PASSWORD_RESET)
    return OTPSentResponse(
        success=result.success,
        message="OTP sent successfully" if result.success else result.error,
        otp=result.otp,
    )


@router.post("/verify-reset-otp", response_model=ResetTokenResponse)
@limiter.limit("3/minute")
async def verify_reset_otp(
    request: Request,
    data: VerifyResetOTPRequest,
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.get_by_mobile(db, data.mobile_number)
    if not user or not user.is_active:
        raise AuthenticationError("No active account for this mobile number")

    await otp_service.verify_otp(db, user.mobile_number, data.otp, OTPPurpose.PASSWORD_RESET)
    return ResetTokenResponse(reset_token=create_password_reset_token(str(user.id)))


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("3/minute")
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    user = await _user_from_token(db, data.reset_token, PASSWORD_RESET_TOKEN)
    await user_service.reset_password(db, user.id, data.new_password)
    logger.log_auth_event("reset_password", True, user.email, client_ip=client_ip(request))
    await log_activity(db, user, "reset_password", "auth", f"{user.name} reset their password", user.id, request=request)
    return MessageResponse(message="Password reset successfully")


@router.get("/me", response_model=LoginResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Current user with the permission map for their role"""
    return LoginResponse(
        user=UserResponse.model_validate(current_user),
        permissions=permissions_for(current_user.role),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    logger.log_auth_event("logout", True, current_user.email, client_ip=client_ip(request))
    await log_activity(db, current_user, "logout", "auth", f"{current_user.name} logged out", current_user.id, request=request)
    return MessageResponse(message="Logged out successfully")
