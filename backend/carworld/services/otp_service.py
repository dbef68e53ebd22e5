"""
OTP Service - issue and verify one-time passwords sent over WhatsApp
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.exceptions import OTPError
from carworld.core.logging_config import logger
from carworld.models.otp import OTPRecord, OTPPurpose
from carworld.services.whatsapp_service import whatsapp_client, WhatsAppResult


@dataclass
class OTPResult:
    success: bool
    error: Optional[str] = None
    otp: Optional[str] = None  # only populated in DEBUG


def generate_otp() -> str:
    """Six random digits, never starting with 0"""
    low = 10 ** (settings.OTP_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


class OTPService:
    """Generate / store / compare / expire"""

    def __init__(self, client=None):
        self.client = client or whatsapp_client

    async def _deliver(self, mobile_number: str, otp: str, purpose: OTPPurpose) -> WhatsAppResult:
        # Customers get the public OTP template, staff flows the role template
        if purpose == OTPPurpose.CUSTOMER_REGISTRATION:
            return await self.client.send_otp(mobile_number, otp)
        return await self.client.send_role_otp(mobile_number, otp)

    async def issue_otp(
        self,
        db: AsyncSession,
        mobile_number: str,
        purpose: OTPPurpose,
    ) -> OTPResult:
        """
        Replace any pending OTP for this mobile + purpose with a fresh one
        and send it. The record is kept even if delivery fails.
        """
        await db.execute(
            delete(OTPRecord).where(
                OTPRecord.mobile_number == mobile_number,
                OTPRecord.purpose == purpose,
                OTPRecord.verified == False,  # noqa: E712
            )
        )

        otp = generate_otp()
        record = OTPRecord(
            mobile_number=mobile_number,
            otp=otp,
            purpose=purpose,
            expires_at=datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
            verified=False,
            attempts=0,
        )
        db.add(record)
        await db.commit()

        result = await self._deliver(mobile_number, otp, purpose)
        logger.log_auth_event(
            f"otp_issue:{purpose.value}",
            result.success,
            reason=result.error,
            mobile_number=mobile_number,
        )

        return OTPResult(
            success=result.success,
            error=None if result.success else (result.error or "Failed to send OTP"),
            otp=otp if settings.DEBUG else None,
        )

    async def verify_otp(
        self,
        db: AsyncSession,
        mobile_number: str,
        otp: str,
        purpose: OTPPurpose,
    ) -> OTPRecord:
        """
        Check `otp` against the newest pending record.

        Raises OTPError with one of:
        - "Invalid or expired OTP"
        - "Maximum verification attempts exceeded"
        - "Invalid OTP"
        """
        now = datetime.utcnow()
        result = await db.execute(
            select(OTPRecord)
            .where(
                OTPRecord.mobile_number == mobile_number,
                OTPRecord.purpose == purpose,
                OTPRecord.verified == False,  # noqa: E712
                OTPRecord.expires_at > now,
            )
            .order_by(OTPRecord.created_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()

        if not record:
            raise OTPError("Invalid or expired OTP")

        if record.attempts >= settings.OTP_MAX_ATTEMPTS:
            raise OTPError("Maximum verification attempts exceeded")

        if not secrets.compare_digest(record.otp, str(otp).strip()):
            record.attempts += 1
            await db.commit()
            logger.log_auth_event(
                f"otp_verify:{purpose.value}", False,
                reason=f"mismatch (attempt {record.attempts})",
                mobile_number=mobile_number,
            )
            raise OTPError("Invalid OTP")

        record.verified = True
        await db.commit()
        logger.log_auth_event(f"otp_verify:{purpose.value}", True, mobile_number=mobile_number)
        return record

    async def purge_expired(self, db: AsyncSession) -> int:
        """Delete expired OTP records, returns how many were removed"""
        result = await db.execute(
            delete(OTPRecord).where(OTPRecord.expires_at <= datetime.utcnow())
        )
        await db.commit()
        return result.rowcount or 0


otp_service = OTPService()
