"""
Reports & dashboard aggregates, plus the daily business report email.
"""

from collections import defaultdict, OrderedDict
from datetime import datetime, timedelta, date
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.config import settings
from carworld.core.logging_config import logger
from carworld.models.customer import Customer
from carworld.models.employee import Employee, PerformanceLog
from carworld.models.invoice import Invoice, InvoiceStatus
from carworld.models.order import Order
from carworld.models.product import Product, ProductStatus
from carworld.models.service_visit import ServiceVisit
from carworld.models.support import Feedback, FeedbackType, FeedbackStatus, SupportTicket, TicketStatus
from carworld.models.warranty import Warranty, WarrantyStatus
from carworld.services.email_service import email_service
from carworld.services.inventory_service import inventory_service
from carworld.services.service_visit_service import service_visit_service
from carworld.services.support_service import support_service

# Invoices that count as billed revenue
EXCLUDED_INVOICE_STATUSES = (InvoiceStatus.CANCELLED, InvoiceStatus.REJECTED)


def _inr(value: float, decimals: int = 2) -> str:
    return f"₹{value:,.{decimals}f}"


def _color(value: int, warn: str = "#f97316") -> str:
    return warn if value > 0 else "#10b981"


def format_daily_report_html(data: Dict[str, Any]) -> str:
    sales, customers = data["sales"], data["customers"]
    inventory, warranties, feedback = data["inventory"], data["warranties"], data["feedback"]

    actions = []
    if inventory["out_of_stock"] > 0:
        actions.append(f"{inventory['out_of_stock']} products are out of stock")
    if inventory["low_stock"] > 0:
        actions.append(f"{inventory['low_stock']} products have low stock")
    if feedback["open_complaints"] > 0:
        actions.append(f"{feedback['open_complaints']} customer complaints need attention")
    if warranties["expiring"] > 0:
        actions.append(f"{warranties['expiring']} warranties expiring in the next 30 days")

    action_block = ""
    if actions:
        items = "".join(f"<li>{a}</li>" for a in actions)
        action_block = f"""
    <div class="alert">
      <h3>Action Required</h3>
      <ul style="margin: 0; padding-left: 20px;">{items}</ul>
    </div>"""

    def metric(label: str, value: Any, color: Optional[str] = None) -> str:
        style = f' style="color: {color};"' if color else ""
        return f'<div class="metric"><div class="metric-label">{label}</div><div class="metric-value"{style}>{value}</div></div>'

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Daily Business Report - {data['date']}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; background-color: #f5f5f5; }}
    .container {{ background-color: white; border-radius: 8px; padding: 30px; }}
    h1 {{ color: #1a1a1a; border-bottom: 3px solid #f97316; padding-bottom: 10px; }}
    .section h2 {{ color: #f97316; font-size: 18px; }}
    .metrics {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; }}
    .metric {{ background-color: #f9fafb; border-left: 4px solid #f97316; padding: 15px; border-radius: 4px; }}
    .metric-label {{ font-size: 12px; color: #6b7280; text-transform: uppercase; }}
    .metric-value {{ font-size: 24px; font-weight: bold; color: #1a1a1a; }}
    .alert {{ background-color: #fef2f2; border-left: 4px solid #ef4444; padding: 15px; border-radius: 4px; margin-top: 20px; }}
    .alert h3 {{ color: #ef4444; margin: 0 0 10px 0; font-size: 16px; }}
    .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; font-size: 12px; color: #6b7280; text-align: center; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Daily Business Report</h1>
    <p style="color: #6b7280;">Report Date: <strong>{data['date']}</strong></p>
    <div class="section"><h2>Sales Performance</h2><div class="metrics">
      {metric("Total Revenue", _inr(sales['total_revenue']))}
      {metric("Total Invoices", sales['total_invoices'])}
      {metric("Avg Invoice Value", _inr(sales['avg_invoice_value'], 0))}
    </div></div>
    <div class="section"><h2>Customer Metrics</h2><div class="metrics">
      {metric("Total Customers", customers['total'])}
      {metric("New Customers (30d)", customers['new'])}
    </div></div>
    <div class="section"><h2>Inventory Status</h2><div class="metrics">
      {metric("Low Stock Items", inventory['low_stock'], _color(inventory['low_stock']))}
      {metric("Out of Stock", inventory['out_of_stock'], _color(inventory['out_of_stock'], "#ef4444"))}
    </div></div>
    <div class="section"><h2>Warranty Information</h2><div class="metrics">
      {metric("Active Warranties", warranties['active'])}
      {metric("Expiring Soon (30d)", warranties['expiring'], _color(warranties['expiring']))}
    </div></div>
    <div class="section"><h2>Customer Feedback</h2><div class="metrics">
      {metric("Average Rating", f"{feedback['avg_rating']:.1f} / 5.0")}
      {metric("Total Complaints", feedback['total_complaints'])}
      {metric("Open Complaints", feedback['open_complaints'], _color(feedback['open_complaints'], "#ef4444"))}
    </div></div>{action_block}
    <div class="footer">
      <p>This is an automated daily report from {settings.SHOP_NAME} Management System</p>
      <p>Generated on {datetime.utcnow():%d/%m/%Y %H:%M} UTC</p>
    </div>
  </div>
</body>
</html>"""


class ReportService:

    # ==================== DAILY REPORT ====================

    async def daily_report_data(self, db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        start_of_day = datetime(now.year, now.month, now.day)
        thirty_days_ago = now - timedelta(days=30)
        in_thirty_days = now + timedelta(days=30)

        revenue, invoices, average = (await db.execute(
            select(
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.count(Invoice.id),
                func.coalesce(func.avg(Invoice.total_amount), 0),
            ).where(Invoice.created_at >= start_of_day, Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES))
        )).one()

        total_customers = await db.scalar(select(func.count(Customer.id))) or 0
        new_customers = await db.scalar(
            select(func.count(Customer.id)).where(Customer.created_at >= thirty_days_ago)
        ) or 0

        low_stock = await db.scalar(
            select(func.count(Product.id)).where(
                Product.stock_qty <= Product.min_stock_level, Product.stock_qty > 0
            )
        ) or 0
        out_of_stock = await db.scalar(select(func.count(Product.id)).where(Product.stock_qty <= 0)) or 0

        active_warranties = await db.scalar(
            select(func.count(Warranty.id)).where(
                Warranty.status == WarrantyStatus.ACTIVE, Warranty.end_date > now
            )
        ) or 0
        expiring = await db.scalar(
            select(func.count(Warranty.id)).where(
                Warranty.status == WarrantyStatus.ACTIVE,
                Warranty.end_date > now,
                Warranty.end_date <= in_thirty_days,
            )
        ) or 0

        total_complaints = await db.scalar(
            select(func.count(Feedback.id)).where(Feedback.type == FeedbackType.COMPLAINT)
        ) or 0
        open_complaints = await db.scalar(
            select(func.count(Feedback.id)).where(
                Feedback.type == FeedbackType.COMPLAINT,
                Feedback.status.in_([FeedbackStatus.OPEN, FeedbackStatus.IN_PROGRESS]),
            )
        ) or 0
        avg_rating = await db.scalar(
            select(func.avg(Feedback.rating)).where(Feedback.rating.is_not(None))
        )

        return {
            "date": now.date().isoformat(),
            "sales": {
                "total_revenue": round(float(revenue), 2),
                "total_invoices": invoices,
                "avg_invoice_value": round(float(average), 2),
            },
            "customers": {"total": total_customers, "new": new_customers},
            "inventory": {"low_stock": low_stock, "out_of_stock": out_of_stock},
            "warranties": {"active": active_warranties, "expiring": expiring},
            "feedback": {
                "total_complaints": total_complaints,
                "open_complaints": open_complaints,
                "avg_rating": round(float(avg_rating or 0), 2),
            },
        }

    async def send_daily_report(self, db: AsyncSession, recipient: Optional[str] = None) -> Dict[str, Any]:
        """Build and email the daily report. Never raises."""
        recipient = recipient or settings.DAILY_REPORT_RECIPIENT
        if not recipient:
            return {"success": False, "error": "No report recipient configured"}
        try:
            data = await self.daily_report_data(db)
            html = format_daily_report_html(data)
            sent = await email_service.send_daily_report_email(recipient, data["date"], html)
            return {"success": sent, "error": None if sent else "Email delivery failed", "data": data}
        except Exception as e:
            logger.log_error_with_context(e, context="send_daily_report")
            return {"success": False, "error": str(e)}

    # ==================== REPORTS ====================

    async def dashboard(self, db: AsyncSession) -> Dict[str, Any]:
        billed = Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES)
        revenue, outstanding, invoice_count = (await db.execute(
            select(
                func.coalesce(func.sum(Invoice.paid_amount), 0),
                func.coalesce(func.sum(Invoice.due_amount), 0),
                func.count(Invoice.id),
            ).where(billed)
        )).one()

        today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            "customers": await db.scalar(select(func.count(Customer.id))) or 0,
            "products": await db.scalar(select(func.count(Product.id))) or 0,
            "low_stock_products": await db.scalar(
                select(func.count(Product.id)).where(
                    Product.status.in_([ProductStatus.LOW_STOCK, ProductStatus.OUT_OF_STOCK])
                )
            ) or 0,
            "invoices": invoice_count,
            "pending_approvals": await db.scalar(
                select(func.count(Invoice.id)).where(Invoice.status == InvoiceStatus.PENDING_APPROVAL)
            ) or 0,
            "revenue_collected": round(float(revenue), 2),
            "outstanding_dues": round(float(outstanding), 2),
            "orders": await db.scalar(select(func.count(Order.id))) or 0,
            "open_tickets": await db.scalar(
                select(func.count(SupportTicket.id)).where(
                    SupportTicket.status.in_([TicketStatus.PENDING, TicketStatus.IN_PROGRESS])
                )
            ) or 0,
            "active_employees": await db.scalar(
                select(func.count(Employee.id)).where(Employee.is_active == True)  # noqa: E712
            ) or 0,
            "service_visits_today": await db.scalar(
                select(func.count(ServiceVisit.id)).where(ServiceVisit.created_at >= today)
            ) or 0,
        }

    async def sales_by_day(self, db: AsyncSession, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(Invoice.created_at, Invoice.total_amount, Invoice.paid_amount).where(
                Invoice.created_at >= start,
                Invoice.created_at <= end,
                Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES),
            )
        )
        days: Dict[date, Dict[str, Any]] = defaultdict(lambda: {"revenue": 0.0, "collected": 0.0, "invoices": 0})
        for created_at, total, paid in result.all():
            bucket = days[created_at.date()]
            bucket["revenue"] += total or 0
            bucket["collected"] += paid or 0
            bucket["invoices"] += 1
        return [
            {"date": day.isoformat(), "revenue": round(v["revenue"], 2),
             "collected": round(v["collected"], 2), "invoices": v["invoices"]}
            for day, v in sorted(days.items())
        ]

    async def top_products(self, db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        """Best sellers by revenue across billed invoice items"""
        result = await db.execute(
            select(Invoice.items).where(Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES))
        )
        totals: Dict[str, Dict[str, Any]] = {}
        for items in result.scalars().all():
            for item in items or []:
                if item.get("type") != "product":
                    continue
                key = item.get("product_id") or item.get("name")
                entry = totals.setdefault(key, {
                    "product_id": item.get("product_id"), "name": item.get("name"),
                    "quantity": 0, "revenue": 0.0,
                })
                entry["quantity"] += item.get("quantity", 0)
                entry["revenue"] = round(entry["revenue"] + (item.get("total") or 0), 2)
        return sorted(totals.values(), key=lambda e: e["revenue"], reverse=True)[:limit]

    async def inventory_report(self, db: AsyncSession) -> Dict[str, Any]:
        status_rows = await db.execute(select(Product.status, func.count(Product.id)).group_by(Product.status))
        by_status = {s.value: 0 for s in ProductStatus}
        for status, count in status_rows.all():
            by_status[status.value] = count

        stock_value = await db.scalar(
            select(func.coalesce(func.sum(Product.stock_qty * Product.selling_price), 0))
        )
        return {
            "by_status": by_status,
            "stock_value": round(float(stock_value or 0), 2),
            "categories": await inventory_service.categories(db),
            "low_stock": [
                {"id": p.id, "name": p.name, "stock_qty": p.stock_qty, "min_stock_level": p.min_stock_level}
                for p in await inventory_service.low_stock(db)
            ],
        }

    async def warranty_report(self, db: AsyncSession) -> Dict[str, Any]:
        rows = await db.execute(select(Warranty.status, func.count(Warranty.id)).group_by(Warranty.status))
        by_status = {s.value: 0 for s in WarrantyStatus}
        for status, count in rows.all():
            by_status[status.value] = count

        now = datetime.utcnow()
        expiring = await db.scalar(
            select(func.count(Warranty.id)).where(
                Warranty.status == WarrantyStatus.ACTIVE,
                Warranty.end_date > now,
                Warranty.end_date <= now + timedelta(days=settings.WARRANTY_EXPIRY_WINDOW_DAYS),
            )
        ) or 0
        return {"by_status": by_status, "expiring_soon": expiring}

    async def feedback_report(self, db: AsyncSession) -> Dict[str, Any]:
        return await support_service.feedback_analytics(db)

    async def customer_growth(self, db: AsyncSession, months: int = 12) -> List[Dict[str, Any]]:
        since = datetime.utcnow() - timedelta(days=months * 31)
        result = await db.execute(select(Customer.created_at).where(Customer.created_at >= since))
        counts: Dict[str, int] = defaultdict(int)
        for (created_at,) in result.all():
            counts[created_at.strftime("%Y-%m")] += 1

        running = await db.scalar(select(func.count(Customer.id)).where(Customer.created_at < since)) or 0
        growth = []
        for month in sorted(counts):
            running += counts[month]
            growth.append({"month": month, "new": counts[month], "total": running})
        return growth

    async def employee_performance(
        self,
        db: AsyncSession,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> List[PerformanceLog]:
        query = select(PerformanceLog)
        if month:
            query = query.where(PerformanceLog.month == month)
        if year:
            query = query.where(PerformanceLog.year == year)
        result = await db.execute(query.order_by(PerformanceLog.performance_score.desc()))
        return list(result.scalars().all())

    # ==================== DASHBOARD WIDGETS ====================

    async def service_status(self, db: AsyncSession) -> Dict[str, int]:
        return await service_visit_service.status_counts(db)

    async def sales_trends(self, db: AsyncSession, months: int = 6) -> List[Dict[str, Any]]:
        """Monthly invoice revenue and order totals for the last N months"""
        now = datetime.utcnow()
        buckets: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        year, month = now.year, now.month
        for _ in range(months):
            buckets[f"{year:04d}-{month:02d}"] = {"invoice_revenue": 0.0, "order_revenue": 0.0, "invoices": 0, "orders": 0}
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        buckets = OrderedDict(reversed(list(buckets.items())))
        since = datetime.strptime(next(iter(buckets)), "%Y-%m")

        invoices = await db.execute(
            select(Invoice.created_at, Invoice.total_amount).where(
                Invoice.created_at >= since, Invoice.status.not_in(EXCLUDED_INVOICE_STATUSES)
            )
        )
        for created_at, total in invoices.all():
            bucket = buckets.get(created_at.strftime("%Y-%m"))
            if bucket is not None:
                bucket["invoice_revenue"] = round(bucket["invoice_revenue"] + (total or 0), 2)
                bucket["invoices"] += 1

        orders = await db.execute(select(Order.created_at, Order.total, Order.discount).where(Order.created_at >= since))
        for created_at, total, discount in orders.all():
            bucket = buckets.get(created_at.strftime("%Y-%m"))
            if bucket is not None:
                bucket["order_revenue"] = round(bucket["order_revenue"] + (total or 0) - (discount or 0), 2)
                bucket["orders"] += 1

        return [{"month": key, **values} for key, values in buckets.items()]

    async def product_categories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await inventory_service.categories(db)


report_service = ReportService()
