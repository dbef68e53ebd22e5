"""
WhatsApp Service
================
Thin client for the template-messaging API used to reach customers and staff.

Every call returns a WhatsAppResult instead of raising so that a failed
message never breaks the business operation that triggered it. Transport
errors and 5xx responses are retried with exponential backoff.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from carworld.core.config import settings
from carworld.core.logging_config import logger


@dataclass
class WhatsAppResult:
    success: bool
    status_desc: Optional[str] = None
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status_desc": self.status_desc,
            "status_code": self.status_code,
            "error": self.error,
        }


class _RetryableError(Exception):
    """Raised internally for responses worth another attempt"""

    def __init__(self, status_code: int, body: Any):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalize an Indian mobile number to 91XXXXXXXXXX.

    - strips every non-digit
    - 0XXXXXXXXXX (11 digits) drops the trunk 0
    - 91XXXXXXXXXX (12 digits) is kept
    - XXXXXXXXXX (10 digits) gets the 91 prefix
    Anything else is rejected with None.
    """
    if not phone or not isinstance(phone, str):
        return None

    digits = re.sub(r"\D", "", phone.strip())
    if not digits:
        return None

    if digits.startswith("0") and len(digits) == 11:
        digits = digits[1:]

    if digits.startswith("91") and len(digits) == 12:
        return digits

    if len(digits) == 10:
        digits = "91" + digits

    if len(digits) != 12 or not digits.startswith("91"):
        return None

    return digits


def invoice_file_name(invoice_number: str) -> str:
    return f"Invoice_{invoice_number.replace('/', '_')}.pdf"


def _text_params(*values: str) -> List[Dict[str, str]]:
    return [{"type": "text", "text": str(v)} for v in values]


class WhatsAppClient:
    """Async client for the WhatsApp template API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        channel_number: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.WHATSAPP_API_KEY if api_key is None else api_key
        self.channel_number = channel_number or settings.WHATSAPP_PHONE_NUMBER_ID
        self.base_url = (base_url or settings.WHATSAPP_BASE_URL).rstrip("/")
        self.max_retries = max_retries if max_retries is not None else settings.WHATSAPP_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.WHATSAPP_RETRY_DELAY
        self.timeout = timeout or settings.WHATSAPP_TIMEOUT
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/send-template/{self.channel_number}"

    def build_payload(self, to: str, template_name: str, components: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": "en"},
                "components": components,
            },
        }

    async def _post_once(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> httpx.Response:
        response = await client.post(
            self.send_url,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        if response.status_code >= 500:
            raise _RetryableError(response.status_code, response.text)
        return response

    async def _post_with_retry(self, payload: Dict[str, Any]) -> httpx.Response:
        delay = self.retry_delay
        attempt = 1
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while True:
                try:
                    return await self._post_once(client, payload)
                except (httpx.TransportError, _RetryableError) as e:
                    if attempt >= self.max_retries:
                        raise
                    logger.warning(
                        f"[WhatsApp] Attempt {attempt} failed ({e}), retrying in {delay:.1f}s "
                        f"({self.max_retries - attempt} retries left)"
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                    attempt += 1

    async def send_template(
        self,
        to: str,
        template_name: str,
        components: List[Dict[str, Any]],
    ) -> WhatsAppResult:
        """Send a template message. Never raises."""
        if not self.is_configured:
            logger.warning("[WhatsApp] API key not configured")
            return WhatsAppResult(success=False, error="WhatsApp credentials not configured")

        formatted = format_phone_number(to)
        if not formatted:
            return WhatsAppResult(
                success=False,
                error=(
                    f'Invalid phone number format: "{to}". Expected Indian mobile number '
                    "(10 digits or with +91/91 prefix)"
                ),
            )

        payload = self.build_payload(formatted, template_name, components)
        start = time.perf_counter()

        try:
            response = await self._post_with_retry(payload)
        except _RetryableError as e:
            logger.log_notification_event("whatsapp", template_name, False, formatted, status_code=e.status_code)
            return WhatsAppResult(success=False, status_code=e.status_code, error=f"WhatsApp API error (HTTP {e.status_code})")
        except httpx.HTTPError as e:
            logger.log_notification_event("whatsapp", template_name, False, formatted, error=str(e))
            return WhatsAppResult(success=False, error=str(e) or "Failed to reach WhatsApp API")

        duration_ms = (time.perf_counter() - start) * 1000
        try:
            data = response.json()
        except ValueError:
            data = {}

        if isinstance(data, dict) and data.get("success") is True:
            logger.log_notification_event(
                "whatsapp", template_name, True, formatted, duration_ms=duration_ms
            )
            return WhatsAppResult(
                success=True,
                status_desc=data.get("statusDesc") or "Message sent successfully",
                status_code=response.status_code,
                data=data.get("data"),
            )

        error = None
        if isinstance(data, dict):
            error = data.get("statusDesc") or data.get("message")
            if not error and isinstance(data.get("error"), dict):
                error = data["error"].get("message")
        error = error or f"Failed to send WhatsApp template {template_name}"

        logger.log_notification_event(
            "whatsapp", template_name, False, formatted,
            status_code=response.status_code, error=error, duration_ms=duration_ms
        )
        return WhatsAppResult(
            success=False,
            status_code=(data.get("statusCode") if isinstance(data, dict) else None) or response.status_code,
            error=error,
        )

    # ==================== TEMPLATE HELPERS ====================

    async def send_otp(self, to: str, otp: str) -> WhatsAppResult:
        """OTP template: code in the body and in the copy-code button"""
        components = [
            {"type": "body", "parameters": _text_params(otp)},
            {"type": "button", "sub_type": "url", "index": "0", "parameters": _text_params(otp)},
        ]
        return await self.send_template(to, settings.WHATSAPP_OTP_TEMPLATE, components)

    async def send_role_otp(self, to: str, otp: str) -> WhatsAppResult:
        components = [
            {"type": "body", "parameters": _text_params(otp)},
            {"type": "button", "sub_type": "url", "index": "0", "parameters": _text_params(otp)},
        ]
        return await self.send_template(to, settings.WHATSAPP_ROLE_OTP_TEMPLATE, components)

    async def send_welcome(self, to: str, customer_code: str, template_name: Optional[str] = None) -> WhatsAppResult:
        components = [{"type": "body", "parameters": _text_params(customer_code)}]
        return await self.send_template(to, template_name or settings.WHATSAPP_WELCOME_TEMPLATE, components)

    async def send_invoice(self, to: str, invoice_number: str, pdf_url: str) -> WhatsAppResult:
        """Invoice template carries only a document header linking the PDF"""
        if not pdf_url or not pdf_url.startswith("http"):
            logger.error(f"[WhatsApp] Invalid PDF URL for invoice {invoice_number}: {pdf_url!r}")
            return WhatsAppResult(success=False, error="Invalid PDF URL - must be a valid HTTP/HTTPS URL")

        components = [
            {
                "type": "header",
                "parameters": [
                    {
                        "type": "document",
                        "document": {
                            "link": pdf_url,
                            "caption": "",
                            "filename": invoice_file_name(invoice_number),
                        },
                    }
                ],
            }
        ]
        return await self.send_template(to, settings.WHATSAPP_INVOICE_TEMPLATE, components)

    async def send_ticket_follow_up(self, to: str, customer_name: str, ticket_number: str, message: str) -> WhatsAppResult:
        components = [{"type": "body", "parameters": _text_params(customer_name, ticket_number, message)}]
        return await self.send_template(to, settings.WHATSAPP_TICKET_TEMPLATE, components)

    async def send_feedback_request(self, to: str, customer_name: str, ticket_number: str, feedback_link: str) -> WhatsAppResult:
        components = [{"type": "body", "parameters": _text_params(customer_name, ticket_number, feedback_link)}]
        return await self.send_template(to, settings.WHATSAPP_FEEDBACK_TEMPLATE, components)


# Singleton instance
whatsapp_client = WhatsAppClient()
