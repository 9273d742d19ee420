"""Invoice aggregate: create, import entries, payments, update and delete."""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.inward import InwardEntry
from app.models.invoice import Invoice, InvoiceManifest, InvoiceMaterial, InvoiceType
from app.models.outward import OutwardEntry
from app.schemas.invoice import (
    AdditionalChargeInput,
    InvoiceCreate,
    InvoiceMaterialInput,
    InvoiceUpdate,
)
from app.services.invoice_service import InvoiceService


async def _count(db, model) -> int:
    return (await db.execute(select(func.count(model.id)))).scalar()


async def _invoice_id_of(db, model, entry_id):
    return (await db.execute(select(model.invoice_id).where(model.id == entry_id))).scalar()


async def test_import_inward_entry_uses_company_rate(db, company, make_inward):
    entry = await make_inward(quantity="10")

    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
    ))

    assert invoice.subtotal == Decimal("1000")
    assert invoice.cgst == Decimal("90")
    assert invoice.sgst == Decimal("90")
    assert invoice.grand_total == Decimal("1180")
    assert invoice.status == "pending"
    assert invoice.customer_name == "Acme Chemicals"
    assert invoice.gst_number == company.gst_number
    assert [m.manifest_number for m in invoice.manifests] == [entry.manifest_number]
    assert invoice.inward_entry_ids == [entry.id]

    line = invoice.material_lines[0]
    assert line.material_name == "Spent Solvent"
    assert line.rate == Decimal("100")
    assert line.line_number == 1


async def test_entry_rate_used_when_company_has_no_rate(db, company, make_inward):
    entry = await make_inward(waste_name="Used Oil", quantity="2", rate="450")

    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
    ))
    assert invoice.subtotal == Decimal("900")


async def test_entry_without_any_rate_is_rejected(db, company, make_inward):
    entry = await make_inward(waste_name="Unknown Sludge")

    with pytest.raises(ValidationError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            company_id=company.id,
            inward_entry_ids=[entry.id],
        ))
    assert await _invoice_id_of(db, InwardEntry, entry.id) is None


async def test_payment_moves_status_both_ways(db, company, make_inward):
    entry = await make_inward(quantity="10")
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
    ))

    paid = await service.update_payment(invoice.id, Decimal("1180"), date(2024, 7, 1))
    assert paid.status == "paid"
    assert paid.balance_due == Decimal("0")

    partial = await service.update_payment(invoice.id, Decimal("500"), date(2024, 7, 2))
    assert partial.status == "partial"
    assert partial.balance_due == Decimal("680")

    pending = await service.update_payment(invoice.id, Decimal("0"))
    assert pending.status == "pending"


async def test_initial_payment_sets_status(db, company):
    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        materials=[InvoiceMaterialInput(material_name="Spent Solvent", quantity=Decimal("10"), rate=Decimal("100"))],
        payment_received=Decimal("1180"),
    ))
    assert invoice.status == "paid"


async def test_already_billed_entry_conflicts_without_partial_writes(db, company, make_inward):
    first_entry = await make_inward()
    second_entry = await make_inward()
    service = InvoiceService(db)

    first = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[first_entry.id],
    ))
    materials_before = await _count(db, InvoiceMaterial)
    manifests_before = await _count(db, InvoiceManifest)

    with pytest.raises(ConflictError):
        await service.create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 16),
            company_id=company.id,
            inward_entry_ids=[second_entry.id, first_entry.id],
        ))

    assert await _count(db, Invoice) == 1
    assert await _count(db, InvoiceMaterial) == materials_before
    assert await _count(db, InvoiceManifest) == manifests_before
    assert await _invoice_id_of(db, InwardEntry, first_entry.id) == first.id
    assert await _invoice_id_of(db, InwardEntry, second_entry.id) is None


async def test_inward_invoice_requires_company(db, transporter):
    with pytest.raises(ValidationError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            transporter_id=transporter.id,
        ))


async def test_outward_invoice_rejects_inward_entries(db, transporter, make_inward):
    entry = await make_inward()
    with pytest.raises(ValidationError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.OUTWARD,
            date=date(2024, 6, 15),
            transporter_id=transporter.id,
            inward_entry_ids=[entry.id],
        ))


async def test_outward_invoice_imports_dispatches(db, transporter, make_outward):
    priced = await make_outward(quantity="20", rate="500")
    freight_only = await make_outward(rate=None, amount="3000", with_transporter=False)

    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.OUTWARD,
        date=date(2024, 6, 15),
        transporter_id=transporter.id,
        outward_entry_ids=[priced.id, freight_only.id],
    ))

    assert invoice.subtotal == Decimal("13000")
    assert invoice.customer_name == "Speedy Logistics"
    assert sorted(invoice.outward_entry_ids) == sorted([priced.id, freight_only.id])


async def test_missing_entry_is_not_found(db, company, make_inward):
    entry = await make_inward()
    await db.delete(entry)
    await db.commit()

    with pytest.raises(NotFoundError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            company_id=company.id,
            inward_entry_ids=[entry.id],
        ))


async def test_additional_charges_become_lines(db, company):
    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        materials=[InvoiceMaterialInput(material_name="ETP Sludge", quantity=Decimal("1"), rate=Decimal("1000"))],
        additional_charges_list=[
            AdditionalChargeInput(description="Loading", amount=Decimal("100")),
            AdditionalChargeInput(description="Weighbridge", quantity=Decimal("2"), rate=Decimal("25")),
        ],
    ))

    assert invoice.additional_charges == Decimal("150")
    assert invoice.grand_total == Decimal("1330")
    assert [m.line_number for m in invoice.materials] == [1, 2, 3]
    assert [m.material_name for m in invoice.additional_charge_lines] == ["Loading", "Weighbridge"]


async def test_update_recomputes_totals(db, company):
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        materials=[InvoiceMaterialInput(material_name="ETP Sludge", quantity=Decimal("1"), rate=Decimal("1000"))],
        payment_received=Decimal("1180"),
    ))
    assert invoice.status == "paid"

    updated = await service.update_invoice(invoice.id, InvoiceUpdate(
        materials=[InvoiceMaterialInput(material_name="ETP Sludge", quantity=Decimal("2"), rate=Decimal("1000"))],
        po_number="PO-77",
    ))

    assert updated.subtotal == Decimal("2000")
    assert updated.grand_total == Decimal("2360")
    assert updated.status == "partial"
    assert updated.po_number == "PO-77"
    assert updated.invoice_number == invoice.invoice_number


async def test_update_relinks_entries(db, company, make_inward):
    first_entry = await make_inward(quantity="10")
    second_entry = await make_inward(quantity="5")
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[first_entry.id],
    ))

    updated = await service.update_invoice(invoice.id, InvoiceUpdate(inward_entry_ids=[second_entry.id]))

    assert updated.inward_entry_ids == [second_entry.id]
    assert updated.subtotal == Decimal("500")
    assert [m.manifest_number for m in updated.manifests] == [second_entry.manifest_number]
    assert await _invoice_id_of(db, InwardEntry, first_entry.id) is None


async def test_invoice_number_cannot_change(db, company):
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD, date=date(2024, 6, 15), company_id=company.id,
    ))
    with pytest.raises(ValidationError):
        await service.update_invoice(invoice.id, InvoiceUpdate(invoice_number="OTHER-1"))


async def test_delete_unlinks_entries_and_removes_lines(db, company, make_inward):
    entries = [await make_inward(), await make_inward()]
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[e.id for e in entries],
    ))

    unlinked = await service.delete_invoice(invoice.id)

    assert unlinked == 2
    assert await _count(db, Invoice) == 0
    assert await _count(db, InvoiceMaterial) == 0
    assert await _count(db, InvoiceManifest) == 0
    for entry in entries:
        assert await _invoice_id_of(db, InwardEntry, entry.id) is None
    with pytest.raises(NotFoundError):
        await service.get_invoice(invoice.id)


async def test_ensure_outward_invoice_links_to_existing(db, transporter, make_outward):
    first = await make_outward()
    second = await make_outward()
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.OUTWARD,
        date=date(2024, 6, 15),
        transporter_id=transporter.id,
        invoice_number="OUT-INV-1",
        outward_entry_ids=[first.id],
    ))

    await service.ensure_outward_invoice("OUT-INV-1", second)
    await db.commit()

    reloaded = await service.get_invoice(invoice.id)
    assert sorted(reloaded.outward_entry_ids) == sorted([first.id, second.id])
    assert {m.manifest_number for m in reloaded.manifests} == {first.manifest_number, second.manifest_number}
    assert await _invoice_id_of(db, OutwardEntry, second.id) == invoice.id

    # The new dispatch is billed as its own line and the totals follow
    assert [m.manifest_number for m in reloaded.material_lines] == [first.manifest_number, second.manifest_number]
    assert [m.line_number for m in reloaded.material_lines] == [1, 2]
    assert reloaded.subtotal == Decimal("20000")
    assert reloaded.cgst == Decimal("1800")
    assert reloaded.grand_total == Decimal("23600")
    assert reloaded.status == "pending"


async def test_ensure_outward_invoice_keeps_invoice_tax_rates(db, transporter, make_outward):
    first = await make_outward(quantity="10", rate="100")
    second = await make_outward(quantity="5", rate="100")
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.OUTWARD,
        date=date(2024, 6, 15),
        transporter_id=transporter.id,
        invoice_number="OUT-INV-2",
        outward_entry_ids=[first.id],
        cgst_rate=Decimal("6"),
        sgst_rate=Decimal("6"),
        additional_charges=Decimal("50"),
        payment_received=Decimal("1170"),
    ))
    assert invoice.status == "paid"

    await service.ensure_outward_invoice("OUT-INV-2", second)
    await db.commit()

    reloaded = await service.get_invoice(invoice.id)
    assert reloaded.subtotal == Decimal("1500")
    assert reloaded.cgst == Decimal("90")
    assert reloaded.additional_charges == Decimal("50")
    assert reloaded.grand_total == Decimal("1730")
    assert reloaded.status == "partial"
    assert [m.line_number for m in reloaded.materials] == [1, 2, 3]
    assert reloaded.materials[-1].is_additional_charge


async def test_list_and_stats(db, company):
    service = InvoiceService(db)
    for quantity in ("1", "2"):
        await service.create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            company_id=company.id,
            materials=[InvoiceMaterialInput(material_name="ETP Sludge", quantity=Decimal(quantity), rate=Decimal("1000"))],
        ))

    items, total, total_value = await service.list_invoices(size=1)
    assert len(items) == 1
    assert total == 2
    assert total_value == Decimal("3540.00")

    stats = await service.get_stats()
    assert stats["total_invoices"] == 2
    assert stats["total_pending"] == Decimal("3540.00")
    assert [b["key"] for b in stats["by_status"]] == ["pending"]


# ==================== PARTY RULES ====================

async def test_inward_invoice_rejects_transporter(db, company, transporter):
    with pytest.raises(ValidationError) as exc:
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            company_id=company.id,
            transporter_id=transporter.id,
        ))
    assert exc.value.details["field"] == "transporter_id"
    assert await _count(db, Invoice) == 0


async def test_outward_invoice_rejects_company(db, company, transporter):
    with pytest.raises(ValidationError) as exc:
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.OUTWARD,
            date=date(2024, 6, 15),
            company_id=company.id,
            transporter_id=transporter.id,
        ))
    assert exc.value.details["field"] == "company_id"
    assert await _count(db, Invoice) == 0


async def test_entry_of_another_company_is_rejected(db, other_company, make_inward):
    entry = await make_inward()

    with pytest.raises(ValidationError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.INWARD,
            date=date(2024, 6, 15),
            company_id=other_company.id,
            inward_entry_ids=[entry.id],
        ))
    assert await _invoice_id_of(db, InwardEntry, entry.id) is None


async def test_dispatch_of_another_transporter_is_rejected(db, other_transporter, make_outward):
    entry = await make_outward()

    with pytest.raises(ValidationError):
        await InvoiceService(db).create_invoice(InvoiceCreate(
            type=InvoiceType.OUTWARD,
            date=date(2024, 6, 15),
            transporter_id=other_transporter.id,
            outward_entry_ids=[entry.id],
        ))
    assert await _invoice_id_of(db, OutwardEntry, entry.id) is None


async def test_invoice_type_cannot_change(db, company):
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD, date=date(2024, 6, 15), company_id=company.id,
    ))

    with pytest.raises(ValidationError) as exc:
        await service.update_invoice(invoice.id, InvoiceUpdate(type=InvoiceType.OUTWARD))
    assert exc.value.details["field"] == "type"

    # Echoing the current type back is allowed
    same = await service.update_invoice(invoice.id, InvoiceUpdate(type=InvoiceType.INWARD, po_number="PO-1"))
    assert same.type == InvoiceType.INWARD.value


async def test_party_change_refuses_entries_of_old_party(db, company, other_company, make_inward):
    entry = await make_inward()
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
    ))

    with pytest.raises(ValidationError):
        await service.update_invoice(invoice.id, InvoiceUpdate(company_id=other_company.id))

    unchanged = await service.get_invoice(invoice.id)
    assert unchanged.company_id == company.id
    assert unchanged.customer_name == "Acme Chemicals"
    assert await _invoice_id_of(db, InwardEntry, entry.id) == invoice.id


async def test_party_change_with_relink_releases_old_entries(db, company, other_company, make_inward):
    entry = await make_inward()
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
    ))

    updated = await service.update_invoice(invoice.id, InvoiceUpdate(
        company_id=other_company.id,
        inward_entry_ids=[],
        materials=[InvoiceMaterialInput(material_name="Spent Solvent", quantity=Decimal("1"), rate=Decimal("100"))],
    ))

    assert updated.company_id == other_company.id
    assert updated.inward_entry_ids == []
    assert updated.manifests == []
    assert updated.customer_name == "Bharat Pharma"
    assert updated.gst_number == other_company.gst_number
    assert updated.grand_total == Decimal("118")
    assert await _invoice_id_of(db, InwardEntry, entry.id) is None


async def test_party_change_takes_new_party_details(db, transporter, other_transporter):
    service = InvoiceService(db)
    invoice = await service.create_invoice(InvoiceCreate(
        type=InvoiceType.TRANSPORTER,
        date=date(2024, 6, 15),
        transporter_id=transporter.id,
        materials=[InvoiceMaterialInput(material_name="Freight", quantity=Decimal("1"), rate=Decimal("500"))],
    ))
    assert invoice.customer_name == "Speedy Logistics"

    moved = await service.update_invoice(invoice.id, InvoiceUpdate(transporter_id=other_transporter.id))
    assert moved.customer_name == "Western Haulers"
    assert moved.gst_number == other_transporter.gst_number

    # Names sent with the change win over the party's
    renamed = await service.update_invoice(invoice.id, InvoiceUpdate(
        transporter_id=transporter.id, customer_name="Speedy Logistics (Pune)",
    ))
    assert renamed.customer_name == "Speedy Logistics (Pune)"
    assert renamed.gst_number == transporter.gst_number
