"""
Email for Car World CRM.

Invoice links go to customers who gave an email address; the daily business
report goes to the owner. Delivery is best effort: every send returns a bool
and failures are only logged.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from datetime import datetime

from carworld.core.config import settings
from carworld.core.logging_config import logger


INVOICE_EMAIL_HTML = """
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #1f2937; line-height: 1.6;">
  <div style="max-width: 600px; margin: 0 auto;">
    <div style="background: #f97316; color: #fff; padding: 20px; text-align: center;">
      <h2 style="margin: 0;">{shop}</h2>
    </div>
    <div style="background: #f9fafb; padding: 24px;">
      <p>Dear {name},</p>
      <p>Thank you for visiting {shop}. Your invoice is ready.</p>
      <table style="width: 100%; background: #fff; border: 1px solid #e5e7eb; padding: 12px;">
        <tr><td>Invoice</td><td><strong>{number}</strong></td></tr>
        <tr><td>For</td><td>{service}</td></tr>
        <tr><td>Amount</td><td><strong>{amount}</strong></td></tr>
      </table>
      <p style="text-align: center; margin-top: 24px;">
        <a href="{pdf_url}" style="background: #f97316; color: #fff; padding: 12px 24px; text-decoration: none;">
          Download Invoice
        </a>
      </p>
    </div>
    <p style="text-align: center; font-size: 12px; color: #6b7280;">&copy; {year} {shop}</p>
  </div>
</body>
</html>
"""

INVOICE_EMAIL_TEXT = """Dear {name},

Your invoice {number} for {service} ({amount}) is ready.
Download: {pdf_url}

{shop}
"""


def format_rupees(amount: float) -> str:
    return f"₹{amount:,.2f}"


class EmailService:
    """SMTP sender (STARTTLS) configured from settings"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.sender = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def build_message(self, to_email: str, subject: str, html_content: str,
                      text_content: Optional[str] = None) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = to_email
        message["Subject"] = subject
        # Mail clients prefer the last alternative
        if text_content:
            message.attach(MIMEText(text_content, "plain", "utf-8"))
        message.attach(MIMEText(html_content, "html", "utf-8"))
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send one message; False when SMTP is not configured or delivery fails"""
        if not self.is_configured:
            logger.log_notification_event("email", subject, False, to_email, reason="SMTP not configured")
            return False

        message = self.build_message(to_email, subject, html_content, text_content)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
            )
        except Exception as e:
            logger.log_notification_event("email", subject, False, to_email, error=str(e))
            return False

        logger.log_notification_event("email", subject, True, to_email)
        return True

    async def send_invoice_email(
        self,
        to_email: str,
        customer_name: str,
        invoice_number: str,
        total_amount: float,
        service: str,
        pdf_url: str
    ) -> bool:
        fields = {
            "shop": settings.SHOP_NAME,
            "name": customer_name or "Customer",
            "number": invoice_number,
            "service": service,
            "amount": format_rupees(total_amount),
            "pdf_url": pdf_url,
            "year": datetime.utcnow().year,
        }
        return await self.send_email(
            to_email,
            f"Invoice {invoice_number} - {settings.SHOP_NAME}",
            INVOICE_EMAIL_HTML.format(**fields),
            INVOICE_EMAIL_TEXT.format(**fields),
        )

    async def send_daily_report_email(self, to_email: str, report_date: str, html_content: str) -> bool:
        subject = f"Daily Business Report - {report_date} - {settings.SHOP_NAME}"
        return await self.send_email(to_email, subject, html_content)


email_service = EmailService()
