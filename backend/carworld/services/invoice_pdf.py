"""
Invoice PDF rendering with reportlab.

Works from the customer / vehicle snapshot stored on the invoice, so the
document always matches what was billed.
"""

import io
from pathlib import Path
from typing import Any, Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.lib.enums import TA_RIGHT
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

from carworld.core.config import settings
from carworld.core.logging_config import logger
from carworld.models.invoice import Invoice, DiscountType


def pdf_file_name(invoice_number: str) -> str:
    return f"invoice_{invoice_number.replace('/', '_')}.pdf"


def build_public_pdf_url(invoice: Invoice) -> str:
    base = settings.APP_URL.rstrip("/")
    return f"{base}/api/v1/public/invoices/{invoice.id}/pdf?token={invoice.pdf_access_token or ''}"


def _money(value: float) -> str:
    return f"Rs. {value or 0:,.2f}"


def _customer_lines(customer: Dict[str, Any]) -> List[str]:
    lines = [f"<b>{escape(customer.get('full_name') or '')}</b>"]
    if customer.get("reference_code"):
        lines.append(f"Ref: {escape(customer['reference_code'])}")
    lines.append(f"Mobile: {escape(customer.get('mobile_number') or '')}")
    if customer.get("alternative_number"):
        lines.append(f"Alt Mobile: {escape(customer['alternative_number'])}")
    if customer.get("email"):
        lines.append(escape(customer["email"]))
    if customer.get("address"):
        lines.append(escape(customer["address"]))
    location = ", ".join(
        customer[key] for key in ("city", "taluka", "district", "state") if customer.get(key)
    )
    if location:
        lines.append(escape(location))
    if customer.get("pin_code"):
        lines.append(f"PIN: {escape(customer['pin_code'])}")
    if customer.get("is_verified"):
        lines.append("<font color='#0a8754'>Verified Customer</font>")
    return lines


def _vehicle_lines(vehicle: Dict[str, Any]) -> List[str]:
    lines = []
    if vehicle.get("vehicle_number"):
        lines.append(f"Number: {escape(vehicle['vehicle_number'])}")
    model = " - ".join(v for v in (vehicle.get("brand"), vehicle.get("model"), vehicle.get("custom_model")) if v)
    if model:
        lines.append(f"Model: {escape(model)}")
    for key, label in (("variant", "Variant"), ("color", "Color"), ("year_of_purchase", "Year"),
                       ("chassis_number", "Chassis")):
        if vehicle.get(key):
            lines.append(f"{label}: {escape(str(vehicle[key]))}")
    if vehicle.get("is_new_vehicle") is not None:
        lines.append(f"Condition: {'New' if vehicle['is_new_vehicle'] else 'Used'}")
    if vehicle.get("selected_parts"):
        lines.append(f"Parts: {escape(', '.join(vehicle['selected_parts']))}")
    return lines


def build_invoice_pdf(invoice: Invoice) -> bytes:
    """Render the invoice and return the PDF bytes"""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=1.5*cm,
        leftMargin=1.5*cm,
        topMargin=1.5*cm,
        bottomMargin=1.5*cm,
        title=f"Invoice {invoice.invoice_number}",
    )

    styles = getSampleStyleSheet()
    shop_style = ParagraphStyle('Shop', parent=styles['Heading1'], fontSize=20, spaceAfter=2)
    right_title = ParagraphStyle('InvoiceTitle', parent=styles['Heading2'], alignment=TA_RIGHT, spaceAfter=2)
    right_small = ParagraphStyle('RightSmall', parent=styles['Normal'], alignment=TA_RIGHT, fontSize=9)
    section = ParagraphStyle('Section', parent=styles['Heading3'], fontSize=11, spaceBefore=8, spaceAfter=4)
    body = ParagraphStyle('Body', parent=styles['Normal'], fontSize=9, leading=12)
    muted = ParagraphStyle('Muted', parent=body, fontSize=8, textColor=colors.HexColor('#666666'))

    content = []

    # Header: shop name left, invoice number and dates right
    dates = [f"<b>Invoice Date:</b> {invoice.created_at:%d/%m/%Y}" if invoice.created_at else ""]
    if invoice.due_date:
        dates.append(f"<b>Due Date:</b> {invoice.due_date:%d/%m/%Y}")
    header = Table(
        [[
            [Paragraph(escape(settings.SHOP_NAME), shop_style), Paragraph("Invoice", body)],
            [Paragraph("INVOICE", right_title), Paragraph(escape(invoice.invoice_number), right_small)]
            + [Paragraph(d, right_small) for d in dates if d],
        ]],
        colWidths=[10*cm, 8*cm],
    )
    header.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    content.append(header)
    content.append(Spacer(1, 12))

    content.append(Paragraph("Bill To:", section))
    for line in _customer_lines(invoice.customer_details or {}):
        content.append(Paragraph(line, body))

    vehicles = invoice.vehicle_details or []
    if vehicles:
        content.append(Paragraph("Vehicle Details:", section))
        for index, vehicle in enumerate(vehicles, start=1):
            if len(vehicles) > 1:
                content.append(Paragraph(f"<b>Vehicle {index}:</b>", body))
            for line in _vehicle_lines(vehicle):
                content.append(Paragraph(line, body))
    content.append(Spacer(1, 12))

    # Items, GST items first
    items = sorted(invoice.items or [], key=lambda item: not item.get("has_gst"))
    rows = [["Item", "Qty", "Unit Price", f"GST ({invoice.tax_rate:g}%)", "Total"]]
    for item in items:
        name = [Paragraph(escape(item.get("name") or ""), body)]
        if item.get("description"):
            name.append(Paragraph(escape(item["description"]), muted))
        gst = item.get("gst_amount") or 0
        rows.append([
            name,
            str(item.get("quantity", 0)),
            _money(item.get("unit_price")),
            _money(gst) if item.get("has_gst") and gst else "-",
            _money(item.get("total")),
        ])
    items_table = Table(rows, colWidths=[7*cm, 1.5*cm, 3*cm, 3*cm, 3.5*cm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#e2e8f0')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor('#2d3748')),
        ('LINEBELOW', (0, -1), (-1, -1), 1, colors.HexColor('#2d3748')),
        ('TOPPADDING', (0, 1), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 1), (-1, -1), 6),
    ]))
    content.append(items_table)
    content.append(Spacer(1, 10))

    # Totals
    totals = [["Subtotal:", _money(invoice.subtotal)]]
    if invoice.discount_amount:
        label = "Discount:"
        if invoice.discount_type == DiscountType.PERCENTAGE and invoice.discount_value:
            label = f"Discount ({invoice.discount_value:g}%):"
        if invoice.coupon_code:
            label = f"Discount ({invoice.coupon_code}):"
        totals.append([label, f"-{_money(invoice.discount_amount)}"])
    totals.append([f"GST ({invoice.tax_rate:g}%):", _money(invoice.tax_amount)])
    totals.append(["Total Amount:", _money(invoice.total_amount)])
    if invoice.paid_amount:
        totals.append(["Paid Amount:", _money(invoice.paid_amount)])
        totals.append(["Amount Due:", _money(invoice.due_amount)])
    totals_table = Table(totals, colWidths=[4*cm, 4*cm], hAlign='RIGHT')
    totals_table.setStyle(TableStyle([
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, 3 if invoice.discount_amount else 2), (-1, 3 if invoice.discount_amount else 2), 'Helvetica-Bold'),
    ]))
    content.append(totals_table)

    payments = invoice.payments or []
    if payments:
        content.append(Paragraph("Payments:", section))
        payment_rows = [["Date", "Mode", "Reference", "Amount"]]
        for payment in payments:
            payment_rows.append([
                str(payment.get("transaction_date", ""))[:10],
                payment.get("payment_mode", ""),
                payment.get("transaction_id") or "-",
                _money(payment.get("amount")),
            ])
        payments_table = Table(payment_rows, colWidths=[3.5*cm, 3.5*cm, 6*cm, 5*cm])
        payments_table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (3, 0), (3, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#cbd5e0')),
        ]))
        content.append(payments_table)

    if invoice.notes:
        content.append(Paragraph("Notes:", section))
        content.append(Paragraph(escape(invoice.notes), body))
    if invoice.terms:
        content.append(Paragraph("Terms &amp; Conditions:", section))
        content.append(Paragraph(escape(invoice.terms), body))

    doc.build(content)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


def render_invoice_pdf(invoice: Invoice) -> Path:
    """Write the invoice PDF under INVOICE_PDF_DIR and return its path"""
    directory = settings.INVOICE_PDF_PATH
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / pdf_file_name(invoice.invoice_number)
    path.write_bytes(build_invoice_pdf(invoice))
    logger.info(f"Rendered invoice PDF {path}")
    return path
