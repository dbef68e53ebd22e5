"""
Unit Tests for OTP issue / verify
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select

from carworld.core.exceptions import OTPError
from carworld.models.otp import OTPRecord, OTPPurpose
from carworld.services.otp_service import OTPService, generate_otp
from carworld.services.whatsapp_service import WhatsAppResult

MOBILE = "9876543210"


@pytest.fixture
def whatsapp():
    client = MagicMock()
    client.send_otp = AsyncMock(return_value=WhatsAppResult(success=True))
    client.send_role_otp = AsyncMock(return_value=WhatsAppResult(success=True))
    return client


@pytest.fixture
def service(whatsapp):
    return OTPService(client=whatsapp)


async def _pending(db, purpose=OTPPurpose.LOGIN):
    result = await db.execute(
        select(OTPRecord).where(OTPRecord.mobile_number == MOBILE, OTPRecord.purpose == purpose)
    )
    return list(result.scalars().all())


class TestGenerateOTP:

    def test_six_digits_without_leading_zero(self):
        for _ in range(200):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()
            assert otp[0] != "0"


class TestIssueOTP:
    """Test issue_otp"""

    @pytest.mark.asyncio
    async def test_customer_registration_uses_customer_template(self, db_session, service, whatsapp):
        result = await service.issue_otp(db_session, MOBILE, OTPPurpose.CUSTOMER_REGISTRATION)

        assert result.success is True
        whatsapp.send_otp.assert_awaited_once()
        whatsapp.send_role_otp.assert_not_called()

    @pytest.mark.asyncio
    async def test_staff_flows_use_role_template(self, db_session, service, whatsapp):
        await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        whatsapp.send_role_otp.assert_awaited_once()
        whatsapp.send_otp.assert_not_called()

    @pytest.mark.asyncio
    async def test_reissue_replaces_pending_record(self, db_session, service):
        await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)
        await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        records = await _pending(db_session)
        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_debug_echoes_code(self, db_session, service):
        """Tests run with DEBUG on, so the code comes back for manual testing"""
        result = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        records = await _pending(db_session)
        assert result.otp == records[0].otp

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_record(self, db_session, service, whatsapp):
        whatsapp.send_role_otp.return_value = WhatsAppResult(success=False, error="HTTP 500")

        result = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        assert result.success is False
        assert result.error == "HTTP 500"
        assert len(await _pending(db_session)) == 1


class TestVerifyOTP:
    """Test verify_otp"""

    @pytest.mark.asyncio
    async def test_correct_code(self, db_session, service):
        issued = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        record = await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.LOGIN)

        assert record.verified is True

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, db_session, service):
        issued = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)
        await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.LOGIN)

        with pytest.raises(OTPError) as exc_info:
            await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.LOGIN)

        assert exc_info.value.message == "Invalid or expired OTP"

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempt(self, db_session, service):
        await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        with pytest.raises(OTPError) as exc_info:
            await service.verify_otp(db_session, MOBILE, "000000", OTPPurpose.LOGIN)

        assert exc_info.value.message == "Invalid OTP"
        records = await _pending(db_session)
        assert records[0].attempts == 1

    @pytest.mark.asyncio
    async def test_attempts_exhausted(self, db_session, service):
        issued = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)
        for _ in range(3):
            with pytest.raises(OTPError):
                await service.verify_otp(db_session, MOBILE, "000000", OTPPurpose.LOGIN)

        with pytest.raises(OTPError) as exc_info:
            await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.LOGIN)

        assert exc_info.value.message == "Maximum verification attempts exceeded"

    @pytest.mark.asyncio
    async def test_expired_code(self, db_session, service):
        issued = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)
        records = await _pending(db_session)
        records[0].expires_at = datetime.utcnow() - timedelta(seconds=1)
        await db_session.commit()

        with pytest.raises(OTPError) as exc_info:
            await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.LOGIN)

        assert exc_info.value.message == "Invalid or expired OTP"

    @pytest.mark.asyncio
    async def test_purpose_must_match(self, db_session, service):
        issued = await service.issue_otp(db_session, MOBILE, OTPPurpose.LOGIN)

        with pytest.raises(OTPError):
            await service.verify_otp(db_session, MOBILE, issued.otp, OTPPurpose.PASSWORD_RESET)
