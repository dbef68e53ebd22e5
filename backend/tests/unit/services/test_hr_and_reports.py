"""
Unit Tests for HR scoring and the daily business report
"""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from carworld.core.config import settings
from carworld.models.employee import AttendanceStatus
from carworld.models.invoice import InvoiceStatus
from carworld.schemas.invoice import InvoiceCreate, InvoiceItemInput
from carworld.services.hr_service import performance_score, attendance_rate, month_bounds
from carworld.services.invoice_service import invoice_service
from carworld.services.report_service import report_service, format_daily_report_html


def report_data(**overrides):
    data = {
        "date": "2025-06-15",
        "sales": {"total_revenue": 125000.5, "total_invoices": 8, "avg_invoice_value": 15625.06},
        "customers": {"total": 320, "new": 14},
        "inventory": {"low_stock": 0, "out_of_stock": 0},
        "warranties": {"active": 57, "expiring": 0},
        "feedback": {"total_complaints": 3, "open_complaints": 0, "avg_rating": 4.4},
    }
    for key, value in overrides.items():
        data[key] = {**data[key], **value}
    return data


class TestPerformanceScore:

    def test_weighted_score(self):
        # 0.4 * 90 + 0.3 * 50 + 0.3 * 40
        assert performance_score(90, 5, 8) == 63.0

    def test_points_are_capped(self):
        assert performance_score(100, 40, 100) == 100.0

    def test_nothing_recorded(self):
        assert performance_score(0, 0, 0) == 0.0


class TestAttendanceRate:

    def test_half_days_count_half(self):
        statuses = [
            AttendanceStatus.PRESENT,
            AttendanceStatus.LATE,
            AttendanceStatus.HALF_DAY,
            AttendanceStatus.ABSENT,
        ]
        assert attendance_rate(statuses) == 62.5

    def test_no_records(self):
        assert attendance_rate([]) == 0.0

    def test_month_bounds(self):
        start, end = month_bounds(2, 2024)
        assert start == datetime(2024, 2, 1)
        assert end.day == 29
        assert end.hour == 23


class TestDailyReportHtml:
    """Test format_daily_report_html"""

    def test_quiet_day_has_no_action_block(self):
        html = format_daily_report_html(report_data())

        assert "Action Required" not in html
        assert "₹125,000.50" in html
        assert "4.4 / 5.0" in html
        assert f"automated daily report from {settings.SHOP_NAME} Management System" in html

    def test_action_items(self):
        html = format_daily_report_html(report_data(
            inventory={"out_of_stock": 2, "low_stock": 5},
            feedback={"open_complaints": 1},
            warranties={"expiring": 4},
        ))

        assert "Action Required" in html
        assert "2 products are out of stock" in html
        assert "5 products have low stock" in html
        assert "1 customer complaints need attention" in html
        assert "4 warranties expiring in the next 30 days" in html


class TestDailyReportData:

    @pytest.mark.asyncio
    async def test_revenue_excludes_cancelled_invoices(self, db_session, customer, admin_user, product):
        kept = await invoice_service.create_invoice(db_session, InvoiceCreate(
            customer_id=customer.id,
            items=[InvoiceItemInput(name="Seat Cover", quantity=1, unit_price=1000, has_gst=False)],
        ), admin_user)
        dropped = await invoice_service.create_invoice(db_session, InvoiceCreate(
            customer_id=customer.id,
            items=[InvoiceItemInput(name="Mats", quantity=1, unit_price=500, has_gst=False)],
        ), admin_user)
        await invoice_service.cancel(db_session, dropped.id)

        data = await report_service.daily_report_data(db_session)

        assert kept.status == InvoiceStatus.DRAFT
        assert data["sales"]["total_revenue"] == 1000
        assert data["sales"]["total_invoices"] == 1
        assert data["customers"]["total"] == 1
        assert data["inventory"]["out_of_stock"] == 0

    @pytest.mark.asyncio
    async def test_send_without_recipient(self, db_session):
        result = await report_service.send_daily_report(db_session)

        assert result == {"success": False, "error": "No report recipient configured"}

    @pytest.mark.asyncio
    async def test_send_to_recipient(self, db_session):
        with patch("carworld.services.report_service.email_service") as email:
            email.send_daily_report_email = AsyncMock(return_value=True)

            result = await report_service.send_daily_report(db_session, "owner@maulicarworld.com")

        assert result["success"] is True
        recipient, date, html = email.send_daily_report_email.await_args.args
        assert recipient == "owner@maulicarworld.com"
        assert "Daily Business Report" in html
