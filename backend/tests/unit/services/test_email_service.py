"""
Unit Tests for the SMTP email service
"""
import pytest
from unittest.mock import AsyncMock, patch

from carworld.services.email_service import EmailService, format_rupees


@pytest.fixture
def configured_service():
    service = EmailService()
    service.smtp_user = "shop@maulicarworld.com"
    service.smtp_password = "app-password"
    return service


class TestEmailService:

    def test_rupee_formatting(self):
        assert format_rupees(125000.5) == "₹125,000.50"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        service = EmailService()
        service.smtp_user = ""

        with patch("carworld.services.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            assert await service.send_email("a@b.com", "Hi", "<p>Hi</p>") is False

        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invoice_email(self, configured_service):
        with patch("carworld.services.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            sent = await configured_service.send_invoice_email(
                "sachin@gmail.com", "Sachin", "INV/2025/0007", 6700, "Seat Cover", "http://test/pdf",
            )

        assert sent is True
        message = send.await_args.args[0]
        assert message["To"] == "sachin@gmail.com"
        assert message["Subject"].startswith("Invoice INV/2025/0007")
        assert send.await_args.kwargs["start_tls"] is True
        assert len(message.get_payload()) == 2

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self, configured_service):
        failing = AsyncMock(side_effect=ConnectionRefusedError("smtp down"))
        with patch("carworld.services.email_service.aiosmtplib.send", new=failing):
            assert await configured_service.send_email("a@b.com", "Hi", "<p>Hi</p>") is False
