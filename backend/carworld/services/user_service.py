"""
User Service - staff accounts, credentials and profile changes
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.exceptions import (
    AuthenticationError,
    DuplicateResourceError,
    UserNotFoundError,
    ValidationError,
)
from carworld.core.logging_config import logger
from carworld.core.security import verify_password, get_password_hash
from carworld.models.otp import OTPPurpose
from carworld.models.user import User, UserRole
from carworld.schemas.auth import UserCreate, UserUpdate, ProfileUpdate
from carworld.services.otp_service import otp_service, OTPResult


class UserService:

    async def get_user(self, db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_mobile(self, db: AsyncSession, mobile_number: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.mobile_number == mobile_number))
        return result.scalar_one_or_none()

    async def authenticate_user(self, db: AsyncSession, email: str, password: str) -> Optional[User]:
        """Return the active user for these credentials, else None"""
        user = await self.get_by_email(db, email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def list_query(
        self,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        active: Optional[bool] = None,
    ):
        query = select(User)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                User.name.ilike(term),
                User.email.ilike(term),
                User.mobile_number.ilike(term),
                User.employee_code.ilike(term),
            ))
        if role:
            query = query.where(User.role == role)
        if active is not None:
            query = query.where(User.is_active == active)
        return query.order_by(User.created_at.desc())

    async def _ensure_unique(
        self,
        db: AsyncSession,
        email: Optional[str] = None,
        mobile_number: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> None:
        if email:
            existing = await self.get_by_email(db, email)
            if existing and str(existing.id) != str(exclude_id):
                raise DuplicateResourceError("User", "email", email)
        if mobile_number:
            existing = await self.get_by_mobile(db, mobile_number)
            if existing and str(existing.id) != str(exclude_id):
                raise DuplicateResourceError("User", "mobile_number", mobile_number)

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        await self._ensure_unique(db, data.email, data.mobile_number)

        values = data.model_dump(exclude={"password"}, exclude_none=True)
        values["email"] = data.email.lower()
        user = User(**values, hashed_password=get_password_hash(data.password))
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"Created user {user.email} ({user.role.value})")
        return user

    async def update_user(self, db: AsyncSession, user_id: str, data: UserUpdate) -> User:
        user = await self.get_user(db, user_id)
        values = data.model_dump(exclude_unset=True)
        await self._ensure_unique(db, values.get("email"), values.get("mobile_number"), exclude_id=user.id)

        password = values.pop("password", None)
        if password:
            user.hashed_password = get_password_hash(password)
        if values.get("email"):
            values["email"] = values["email"].lower()
        for field, value in values.items():
            setattr(user, field, value)

        user.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(user)
        return user

    async def deactivate_user(self, db: AsyncSession, user_id: str) -> User:
        user = await self.get_user(db, user_id)
        user.is_active = False
        await db.commit()
        return user

    async def delete_user(self, db: AsyncSession, user_id: str, acting_user: User) -> None:
        user = await self.get_user(db, user_id)
        if str(user.id) == str(acting_user.id):
            raise ValidationError("You cannot delete your own account")
        await db.delete(user)
        await db.commit()

    async def reset_password(self, db: AsyncSession, user_id: str, new_password: str) -> User:
        user = await self.get_user(db, user_id)
        user.hashed_password = get_password_hash(new_password)
        await db.commit()
        return user

    # ==================== PROFILE ====================

    async def update_profile(self, db: AsyncSession, user: User, data: ProfileUpdate) -> User:
        values = data.model_dump(exclude_unset=True)
        await self._ensure_unique(db, email=values.get("email"), exclude_id=user.id)
        if values.get("email"):
            values["email"] = values["email"].lower()
        for field, value in values.items():
            setattr(user, field, value)
        await db.commit()
        await db.refresh(user)
        return user

    async def change_password(self, db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise AuthenticationError("Current password is incorrect")
        user.hashed_password = get_password_hash(new_password)
        await db.commit()
        logger.log_auth_event("change_password", True, user.email)

    async def request_phone_update(self, db: AsyncSession, user: User, new_mobile_number: str) -> OTPResult:
        await self._ensure_unique(db, mobile_number=new_mobile_number, exclude_id=user.id)
        return await otp_service.issue_otp(db, new_mobile_number, OTPPurpose.PHONE_UPDATE)

    async def confirm_phone_update(self, db: AsyncSession, user: User, new_mobile_number: str, otp: str) -> User:
        await otp_service.verify_otp(db, new_mobile_number, otp, OTPPurpose.PHONE_UPDATE)
        await self._ensure_unique(db, mobile_number=new_mobile_number, exclude_id=user.id)
        user.mobile_number = new_mobile_number
        await db.commit()
        await db.refresh(user)
        logger.log_auth_event("phone_update", True, user.email)
        return user


user_service = UserService()
