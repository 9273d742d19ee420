"""Billing totals across all companies and transporters."""
from datetime import date
from decimal import Decimal

from app.models.invoice import InvoiceType, MaterialUnit
from app.schemas.invoice import InvoiceCreate
from app.schemas.outward import OutwardEntryCreate
from app.services.company_service import CompanyService
from app.services.invoice_service import InvoiceService
from app.services.outward_service import OutwardService
from app.services.transporter_service import TransporterService


def _dispatch(transporter, manifest_number, **extra) -> OutwardEntryCreate:
    return OutwardEntryCreate(
        date=date(2024, 6, 12),
        cement_company="UltraCem Works",
        manifest_number=manifest_number,
        transporter_id=transporter.id if transporter else None,
        quantity=Decimal("20"),
        unit=MaterialUnit.MT,
        rate=Decimal("500"),
        **extra,
    )


async def _bill(db, company, entries, payment="0"):
    return await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[e.id for e in entries],
        payment_received=Decimal(payment),
    ))


async def test_company_global_stats_cover_inward_billing_only(
    db, company, other_company, transporter, make_inward
):
    billed = await make_inward(quantity="10")
    await make_inward(quantity="5")
    await _bill(db, company, [billed], payment="500")
    # Outward invoices belong to transporters
    await OutwardService(db).create_entry(_dispatch(transporter, "OUT-1", invoice_number="OUT-INV-1"))

    stats = await CompanyService(db).get_global_stats()

    assert stats["company_count"] == 2
    assert stats["invoice_count"] == 1
    assert stats["total_invoiced"] == Decimal("1180.00")
    assert stats["total_paid"] == Decimal("500.00")
    assert stats["total_pending"] == Decimal("680.00")
    assert stats["unbilled_count"] == 1


async def test_company_global_pending_never_negative(db, company, make_inward):
    await _bill(db, company, [await make_inward(quantity="10")], payment="2000")

    stats = await CompanyService(db).get_global_stats()

    assert stats["total_paid"] == Decimal("2000.00")
    assert stats["total_pending"] == Decimal("0")


async def test_company_global_stats_empty(db):
    stats = await CompanyService(db).get_global_stats()

    assert stats["company_count"] == 0
    assert stats["invoice_count"] == 0
    assert stats["total_invoiced"] == Decimal("0")
    assert stats["unbilled_count"] == 0


async def test_transporter_global_stats(db, company, transporter, other_transporter, make_inward):
    service = OutwardService(db)
    await service.create_entry(_dispatch(transporter, "OUT-1", invoice_number="OUT-INV-1"))
    await service.create_entry(_dispatch(other_transporter, "OUT-2"))
    # Dispatches without a transporter are not counted
    await service.create_entry(_dispatch(None, "OUT-3"))
    await _bill(db, company, [await make_inward(quantity="10")])

    stats = await TransporterService(db).get_global_stats()

    assert stats["transporter_count"] == 2
    assert stats["invoice_count"] == 1
    assert stats["total_invoiced"] == Decimal("11800.00")
    assert stats["total_paid"] == Decimal("0")
    assert stats["total_pending"] == Decimal("11800.00")
    assert stats["unbilled_outward_count"] == 1
