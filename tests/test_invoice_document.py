"""Printable invoice documents."""
from datetime import date
from decimal import Decimal

from app.models.invoice import InvoiceType
from app.schemas.invoice import InvoiceCreate
from app.services.invoice_document_service import (
    amount_to_words,
    build_snapshot,
    load_seller,
    render_invoice_html,
)
from app.services.invoice_service import InvoiceService
from app.services.settings_service import SettingsService


def test_amount_to_words():
    assert amount_to_words(Decimal("1180")) == "Rupees One Thousand One Hundred And Eighty Only"
    assert amount_to_words(Decimal("0.50")).endswith("Fifty Paise Only")


async def test_snapshot_and_html(db, company, make_inward):
    entry = await make_inward(quantity="10")
    await SettingsService(db).upsert_setting("company_name", "GreenCycle <Waste> Pvt Ltd")
    invoice = await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD,
        date=date(2024, 6, 15),
        company_id=company.id,
        inward_entry_ids=[entry.id],
        vehicle_number="MH04 AB 1234",
    ))

    snapshot = build_snapshot(invoice, await load_seller(db))

    assert snapshot["invoice_number"] == invoice.invoice_number
    assert snapshot["party_name"] == "Acme Chemicals"
    assert snapshot["manifest_numbers"] == [entry.manifest_number]
    assert snapshot["materials"][0]["amount"] == Decimal("1000")
    assert snapshot["seller"]["company_name"] == "GreenCycle <Waste> Pvt Ltd"

    html = render_invoice_html(snapshot)
    assert "TAX INVOICE" in html
    assert "GreenCycle &lt;Waste&gt; Pvt Ltd" in html
    assert "1,180.00" in html
    assert "15.06.2024" in html
    assert "MH04 AB 1234" in html
