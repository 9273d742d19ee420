"""Invoice API endpoints."""
from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import HTMLResponse

from app.api.deps import DB, Config, MANAGERS, SUPERADMIN_ONLY, require_roles
from app.models.invoice import InvoiceType
from app.schemas.base import MessageResponse
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    PaymentUpdate,
    InvoiceBrief,
    InvoiceResponse,
    InvoiceListResponse,
    InvoiceStats,
    NextInvoiceNumber,
)
from app.services.invoice_document_service import (
    build_snapshot,
    load_seller,
    render_invoice_document,
    render_invoice_html,
)
from app.services.invoice_service import InvoiceService


router = APIRouter()

read_access = [Depends(require_roles(*MANAGERS))]
write_access = [Depends(require_roles(*SUPERADMIN_ONLY))]


# ==================== READ ====================

@router.get("", response_model=InvoiceListResponse, dependencies=read_access)
async def list_invoices(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    type: Optional[InvoiceType] = Query(None),
    status: Optional[str] = Query(None, description="Comma separated: pending,partial,paid"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    company_id: Optional[uuid.UUID] = Query(None),
    transporter_id: Optional[uuid.UUID] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """
    Get paginated invoices.
    total_value is the grand total over every invoice matching the filters.
    """
    invoices, total, total_value = await InvoiceService(db).list_invoices(
        page=page,
        size=size,
        search=search,
        type=type.value if type else None,
        status=status,
        start_date=start_date,
        end_date=end_date,
        company_id=company_id,
        transporter_id=transporter_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    return InvoiceListResponse(
        items=[InvoiceBrief.model_validate(i) for i in invoices],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 0,
        total_value=total_value,
    )


@router.get("/stats", response_model=InvoiceStats, dependencies=read_access)
async def get_invoice_stats(db: DB, type: Optional[InvoiceType] = Query(None)):
    stats = await InvoiceService(db).get_stats(type.value if type else None)
    return InvoiceStats(**stats)


@router.get("/next-number", response_model=NextInvoiceNumber, dependencies=read_access)
async def get_next_invoice_number(
    db: DB,
    config: Config,
    invoice_date: Optional[date] = Query(None, alias="date"),
):
    """Preview the number the next invoice dated `date` would get. Nothing is reserved."""
    invoice_date = invoice_date or date.today()
    number = await InvoiceService(db, config).preview_next_number(invoice_date)
    return NextInvoiceNumber(invoice_number=number, date=invoice_date)


@router.get("/{invoice_id}", response_model=InvoiceResponse, dependencies=read_access)
async def get_invoice(invoice_id: uuid.UUID, db: DB):
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.get("/{invoice_id}/print", response_class=HTMLResponse, dependencies=read_access)
async def print_invoice(invoice_id: uuid.UUID, db: DB):
    """Printable HTML tax invoice."""
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    snapshot = build_snapshot(invoice, await load_seller(db))
    return HTMLResponse(content=render_invoice_html(snapshot))


# ==================== WRITE ====================

@router.post("", response_model=InvoiceResponse, status_code=201, dependencies=write_access)
async def create_invoice(
    data: InvoiceCreate,
    db: DB,
    config: Config,
    background_tasks: BackgroundTasks,
):
    """
    Create an invoice.

    Lines can be given directly and/or imported from unbilled entries through
    inward_entry_ids / outward_entry_ids. The invoice number is allocated from
    the invoice date unless one is given.
    """
    invoice = await InvoiceService(db, config).create_invoice(data)
    background_tasks.add_task(render_invoice_document, invoice.id)
    return InvoiceResponse.model_validate(invoice)


@router.put("/{invoice_id}", response_model=InvoiceResponse, dependencies=write_access)
async def update_invoice(invoice_id: uuid.UUID, data: InvoiceUpdate, db: DB, config: Config):
    invoice = await InvoiceService(db, config).update_invoice(invoice_id, data)
    return InvoiceResponse.model_validate(invoice)


@router.put("/{invoice_id}/payment", response_model=InvoiceResponse, dependencies=write_access)
async def update_payment(invoice_id: uuid.UUID, data: PaymentUpdate, db: DB):
    """Record the total received so far; status follows from it."""
    invoice = await InvoiceService(db).update_payment(
        invoice_id, data.payment_received, data.payment_received_on
    )
    return InvoiceResponse.model_validate(invoice)


@router.delete("/{invoice_id}", response_model=MessageResponse, dependencies=write_access)
async def delete_invoice(invoice_id: uuid.UUID, db: DB):
    """Delete an invoice. Its entries become unbilled."""
    unlinked = await InvoiceService(db).delete_invoice(invoice_id)
    return MessageResponse(message=f"Invoice deleted successfully, {unlinked} entries unlinked")
