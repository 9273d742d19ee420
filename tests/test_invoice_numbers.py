"""Invoice number allocation and retry behaviour."""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError
from app.models.invoice import Invoice, InvoiceType
from app.schemas.invoice import InvoiceCreate, InvoiceMaterialInput
from app.services.invoice_calculations import InvoiceConfig
from app.services.invoice_number_service import (
    InvoiceNumberService,
    format_prefix,
    parse_sequence,
)
from app.services.invoice_service import InvoiceService


def _payload(company, invoice_date=date(2024, 6, 15), **extra) -> InvoiceCreate:
    return InvoiceCreate(
        type=InvoiceType.INWARD,
        date=invoice_date,
        company_id=company.id,
        materials=[InvoiceMaterialInput(material_name="Spent Solvent", quantity=Decimal("1"), rate=Decimal("100"))],
        **extra,
    )


def test_format_prefix_uses_invoice_month():
    assert format_prefix("INV-YYYYMM", date(2024, 1, 31)) == "INV-202401"
    assert format_prefix("HW/YYYYMM", date(2023, 12, 1)) == "HW/202312"


def test_template_without_token_is_a_literal_prefix():
    assert format_prefix("BILL", date(2024, 6, 1)) == "BILL"


def test_parse_sequence_ignores_other_series():
    assert parse_sequence("INV-202406-0012", "INV-202406") == 12
    assert parse_sequence("INV-202407-0012", "INV-202406") == 0
    assert parse_sequence("INV-202406-MANUAL", "INV-202406") == 0


async def test_numbers_are_sequential_within_a_month(db, company):
    service = InvoiceService(db)

    first = await service.create_invoice(_payload(company))
    second = await service.create_invoice(_payload(company))

    assert first.invoice_number == "INV-202406-0001"
    assert second.invoice_number == "INV-202406-0002"


async def test_back_dated_invoice_joins_its_own_month(db, company):
    service = InvoiceService(db)
    await service.create_invoice(_payload(company, date(2024, 6, 15)))
    await service.create_invoice(_payload(company, date(2024, 6, 20)))

    back_dated = await service.create_invoice(_payload(company, date(2024, 5, 28)))

    assert back_dated.invoice_number == "INV-202405-0001"


async def test_configured_format_is_used(db, company):
    service = InvoiceService(db, InvoiceConfig(number_format="WM-YYYYMM"))
    invoice = await service.create_invoice(_payload(company))
    assert invoice.invoice_number == "WM-202406-0001"


async def test_preview_does_not_reserve(db, company):
    service = InvoiceService(db)
    assert await service.preview_next_number(date(2024, 6, 1)) == "INV-202406-0001"
    assert await service.preview_next_number(date(2024, 6, 1)) == "INV-202406-0001"

    await service.create_invoice(_payload(company))
    assert await service.preview_next_number(date(2024, 6, 1)) == "INV-202406-0002"


async def test_explicit_duplicate_number_is_a_conflict(db, company):
    service = InvoiceService(db)
    await service.create_invoice(_payload(company, invoice_number="MANUAL-1"))

    with pytest.raises(ConflictError):
        await service.create_invoice(_payload(company, invoice_number="MANUAL-1"))


async def test_number_taken_concurrently_is_retried(db, company, monkeypatch):
    service = InvoiceService(db)
    existing = await service.create_invoice(_payload(company))

    calls = []
    original = InvoiceNumberService.next_number

    async def racing_next_number(self, invoice_date, template):
        calls.append(invoice_date)
        if len(calls) == 1:
            # Another writer already committed this number
            return existing.invoice_number
        return await original(self, invoice_date, template)

    monkeypatch.setattr(InvoiceNumberService, "next_number", racing_next_number)

    invoice = await service.create_invoice(_payload(company))

    assert len(calls) == 2
    assert invoice.invoice_number == "INV-202406-0002"
    count = (await db.execute(select(func.count(Invoice.id)))).scalar()
    assert count == 2


async def test_gives_up_after_max_attempts(db, company, monkeypatch):
    service = InvoiceService(db, max_attempts=3)
    existing = await service.create_invoice(_payload(company))

    calls = []

    async def always_taken(self, invoice_date, template):
        calls.append(invoice_date)
        return existing.invoice_number

    monkeypatch.setattr(InvoiceNumberService, "next_number", always_taken)

    with pytest.raises(ConflictError) as exc:
        await service.create_invoice(_payload(company))

    assert len(calls) == 3
    assert exc.value.details == {"attempts": 3}
    count = (await db.execute(select(func.count(Invoice.id)))).scalar()
    assert count == 1
