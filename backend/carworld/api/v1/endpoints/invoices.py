"""
Invoice API Endpoints

Workflow: draft -> pending_approval -> approved | rejected; draft and
pending invoices can be cancelled. Approval issues warranties, renders the
PDF and sends it to the customer by email and WhatsApp.

The public PDF route is unauthenticated and guarded by the per-invoice
access token embedded in the link sent to the customer.
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carworld.core.database import get_db
from carworld.models.invoice import InvoiceStatus, InvoicePaymentStatus
from carworld.models.user import User
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.invoice import (
    InvoiceCreate,
    InvoiceFromServiceVisit,
    InvoiceUpdate,
    InvoiceRejectRequest,
    InvoiceResponse,
    InvoiceNotificationResult,
    PaymentCreate,
)
from carworld.services.activity_logger import log_activity
from carworld.services.invoice_pdf import pdf_file_name, render_invoice_pdf
from carworld.services.invoice_service import invoice_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/invoices", tags=["Invoices"])
public_router = APIRouter(prefix="/public/invoices", tags=["Public"])


@router.get("")
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    payment_status: Optional[InvoicePaymentStatus] = None,
    customer_id: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("invoices", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = invoice_service.list_query(status, payment_status, customer_id, search, start_date, end_date)
    data = await paginate(db, query, page, page_size)
    return paginated(data, InvoiceResponse)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    request: Request,
    data: InvoiceCreate,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.create_invoice(db, data, current_user)
    await log_activity(
        db, current_user, "create", "invoice",
        f"Created invoice {invoice.invoice_number} ({invoice.total_amount:.2f})", invoice.id,
        details={"coupon": invoice.coupon_code} if invoice.coupon_code else None, request=request,
    )
    return invoice


@router.post(
    "/from-service-visit/{visit_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice_from_service_visit(
    visit_id: str,
    request: Request,
    data: InvoiceFromServiceVisit,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    """Bill the parts used on a service visit plus an optional labour charge"""
    invoice = await invoice_service.create_from_service_visit(db, visit_id, data, current_user)
    await log_activity(
        db, current_user, "create", "invoice",
        f"Created invoice {invoice.invoice_number} from service visit", invoice.id,
        details={"service_visit_id": visit_id}, request=request,
    )
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(require_permission("invoices", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await invoice_service.get_invoice(db, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    request: Request,
    data: InvoiceUpdate,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    """Only drafts can be edited"""
    invoice = await invoice_service.update_invoice(db, invoice_id, data)
    await log_activity(
        db, current_user, "update", "invoice", f"Updated draft {invoice.invoice_number}", invoice.id,
        request=request,
    )
    return invoice


@router.post("/{invoice_id}/submit", response_model=InvoiceResponse)
async def submit_invoice(
    invoice_id: str,
    request: Request,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.submit(db, invoice_id)
    await log_activity(
        db, current_user, "submit", "invoice", f"Submitted {invoice.invoice_number} for approval",
        invoice.id, request=request,
    )
    return invoice


@router.post("/{invoice_id}/approve", response_model=InvoiceResponse)
async def approve_invoice(
    invoice_id: str,
    request: Request,
    current_user: User = Depends(require_permission("invoices", "approve")),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve a pending invoice.

    Notification failures never undo the approval; check `email_sent` /
    `whatsapp_sent` on the response and use /send-notifications to retry email.
    """
    invoice = await invoice_service.approve(db, invoice_id, current_user)
    await log_activity(
        db, current_user, "approve", "invoice", f"Approved invoice {invoice.invoice_number}",
        invoice.id,
        details={"email_sent": invoice.email_sent, "whatsapp_sent": invoice.whatsapp_sent},
        request=request,
    )
    return invoice


@router.post("/{invoice_id}/reject", response_model=InvoiceResponse)
async def reject_invoice(
    invoice_id: str,
    request: Request,
    data: InvoiceRejectRequest,
    current_user: User = Depends(require_permission("invoices", "reject")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.reject(db, invoice_id, data.reason, current_user)
    await log_activity(
        db, current_user, "reject", "invoice", f"Rejected invoice {invoice.invoice_number}",
        invoice.id, details={"reason": data.reason}, request=request,
    )
    return invoice


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: str,
    request: Request,
    current_user: User = Depends(require_permission("invoices", "update")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.cancel(db, invoice_id)
    await log_activity(
        db, current_user, "cancel", "invoice", f"Cancelled invoice {invoice.invoice_number}",
        invoice.id, request=request,
    )
    return invoice


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_payment(
    invoice_id: str,
    request: Request,
    data: PaymentCreate,
    current_user: User = Depends(require_permission("invoices", "create")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.record_payment(db, invoice_id, data, current_user)
    await log_activity(
        db, current_user, "payment", "invoice",
        f"Recorded {data.amount:.2f} ({data.payment_mode.value}) on {invoice.invoice_number}",
        invoice.id, details={"due_amount": invoice.due_amount}, request=request,
    )
    return invoice


@router.post("/{invoice_id}/send-notifications", response_model=InvoiceNotificationResult)
async def send_invoice_notifications(
    invoice_id: str,
    current_user: User = Depends(require_permission("invoices", "approve")),
    db: AsyncSession = Depends(get_db)
):
    """Retry delivery of an approved invoice; WhatsApp is never sent twice"""
    return await invoice_service.resend_notifications(db, invoice_id)


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: str,
    current_user: User = Depends(require_permission("invoices", "read")),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.get_invoice(db, invoice_id)
    path = render_invoice_pdf(invoice)
    if invoice.status == InvoiceStatus.APPROVED and invoice.pdf_path != str(path):
        invoice.pdf_path = str(path)
        await db.commit()
    return FileResponse(path, media_type="application/pdf", filename=pdf_file_name(invoice.invoice_number))


@public_router.get("/{invoice_id}/pdf")
async def public_invoice_pdf(
    invoice_id: str,
    token: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """Customer-facing PDF link; 403 for a wrong or expired token"""
    path = await invoice_service.public_pdf_path(db, invoice_id, token)
    invoice = await invoice_service.get_invoice(db, invoice_id)
    return FileResponse(path, media_type="application/pdf", filename=pdf_file_name(invoice.invoice_number))
