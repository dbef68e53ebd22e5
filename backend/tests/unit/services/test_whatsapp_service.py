"""
Unit Tests for the WhatsApp template client
Tests for: phone normalization, retries, response parsing
"""
import json
import pytest
import httpx

from carworld.services.whatsapp_service import (
    WhatsAppClient,
    format_phone_number,
    invoice_file_name,
)


def make_client(handler, **kwargs) -> WhatsAppClient:
    return WhatsAppClient(
        api_key=kwargs.pop("api_key", "test-key"),
        channel_number="919970127778",
        base_url="https://wa.test/api/v1.0/messages",
        max_retries=kwargs.pop("max_retries", 3),
        retry_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestFormatPhoneNumber:
    """Indian mobile numbers are normalized to 91XXXXXXXXXX"""

    @pytest.mark.parametrize("raw,expected", [
        ("9876543210", "919876543210"),
        ("+91 98765 43210", "919876543210"),
        ("919876543210", "919876543210"),
        ("09876543210", "919876543210"),
        ("98765-43210", "919876543210"),
    ])
    def test_valid_numbers(self, raw, expected):
        assert format_phone_number(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "12345", "+1 415 555 0100", "abc"])
    def test_invalid_numbers(self, raw):
        assert format_phone_number(raw) is None


class TestSendTemplate:
    """Test send_template behaviour against a mocked API"""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = make_client(lambda request: httpx.Response(200), api_key="")

        result = await client.send_otp("9876543210", "123456")

        assert result.success is False
        assert result.error == "WhatsApp credentials not configured"

    @pytest.mark.asyncio
    async def test_invalid_phone_not_sent(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"success": True})

        result = await make_client(handler).send_otp("12345", "123456")

        assert result.success is False
        assert result.error.startswith("Invalid phone number format")
        assert calls == []

    @pytest.mark.asyncio
    async def test_success_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "statusDesc": "Queued"})

        result = await make_client(handler).send_otp("9876543210", "654321")

        assert result.success is True
        assert result.status_desc == "Queued"
        assert seen["url"] == "https://wa.test/api/v1.0/messages/send-template/919970127778"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["to"] == "919876543210"
        body_params = seen["body"]["template"]["components"][0]["parameters"]
        assert body_params == [{"type": "text", "text": "654321"}]

    @pytest.mark.asyncio
    async def test_api_failure_uses_status_desc(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "statusDesc": "Template not approved"})

        result = await make_client(handler).send_role_otp("9876543210", "654321")

        assert result.success is False
        assert result.error == "Template not approved"

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"success": True})

        result = await make_client(handler).send_otp("9876543210", "111111")

        assert result.success is True
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(500, text="boom")

        result = await make_client(handler, max_retries=2).send_otp("9876543210", "111111")

        assert result.success is False
        assert result.error == "WhatsApp API error (HTTP 500)"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(401, json={"message": "Invalid API key"})

        result = await make_client(handler).send_otp("9876543210", "111111")

        assert result.success is False
        assert result.error == "Invalid API key"
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_transport_error_reported(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        result = await make_client(handler, max_retries=2).send_otp("9876543210", "111111")

        assert result.success is False
        assert "connection refused" in result.error


class TestSendInvoice:
    """Invoice messages link the public PDF"""

    def test_invoice_file_name(self):
        assert invoice_file_name("INV/2025/0001") == "Invoice_INV_2025_0001.pdf"

    @pytest.mark.asyncio
    async def test_rejects_non_http_pdf_url(self):
        client = make_client(lambda request: httpx.Response(200, json={"success": True}))

        result = await client.send_invoice("9876543210", "INV/2025/0001", "/local/file.pdf")

        assert result.success is False
        assert "Invalid PDF URL" in result.error

    @pytest.mark.asyncio
    async def test_document_header(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)
        result = await client.send_invoice(
            "9876543210", "INV/2025/0007", "https://crm.test/api/v1/public/invoices/abc/pdf?token=t"
        )

        assert result.success is True
        header = seen["body"]["template"]["components"][0]
        document = header["parameters"][0]["document"]
        assert header["type"] == "header"
        assert document["filename"] == "Invoice_INV_2025_0007.pdf"
        assert document["link"].startswith("https://crm.test/")
