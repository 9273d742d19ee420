"""
Printable invoice documents.

A snapshot is a flat dict of everything the printed invoice shows, taken from
an invoice loaded by InvoiceService.get_invoice(). Rendering works on the
snapshot only and never touches the session, so printing cannot change an
invoice.
"""
from datetime import date
from decimal import Decimal
from html import escape
from typing import Any, Dict, Optional
import logging
import uuid

from num2words import num2words

from app.database import get_db_session
from app.models.invoice import Invoice
from app.services.invoice_calculations import round2
from app.services.invoice_service import InvoiceService
from app.services.settings_service import SettingsService


logger = logging.getLogger(__name__)

SELLER_KEYS = (
    "company_name",
    "company_address",
    "company_gst_number",
    "company_contact",
    "company_email",
)


def amount_to_words(amount: Decimal) -> str:
    """Amount in Indian English, e.g. 'Rupees One Thousand One Hundred Eighty Only'."""
    amount = round2(Decimal(str(amount)))
    rupees = int(amount)
    paise = int((amount - rupees) * 100)

    words = num2words(rupees, lang="en_IN").replace(",", "").replace("-", " ")
    result = f"Rupees {words.title()} Only"

    if paise > 0:
        paise_words = num2words(paise, lang="en_IN").replace(",", "").replace("-", " ")
        result = f"Rupees {words.title()} and {paise_words.title()} Paise Only"

    return result


def _fmt_date(value: Optional[date]) -> str:
    return value.strftime("%d.%m.%Y") if value else ""


def _fmt_money(value: Any) -> str:
    return f"{Decimal(str(value or 0)):,.2f}"


def build_snapshot(invoice: Invoice, seller: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Flatten an invoice for printing.

    Args:
        invoice: invoice with materials, manifests and party loaded
        seller: business settings (company_name, company_address, ...)
    """
    seller = seller or {}
    party = invoice.company or invoice.transporter

    return {
        "invoice_number": invoice.invoice_number,
        "type": invoice.type,
        "date": invoice.date,
        "status": invoice.status,
        "customer_name": invoice.customer_name,
        "party_name": party.name if party else invoice.customer_name,
        "party_address": party.address if party else None,
        "party_gst_number": invoice.gst_number or (party.gst_number if party else None),
        "billed_to": invoice.billed_to,
        "shipped_to": invoice.shipped_to,
        "description": invoice.description,
        "po_number": invoice.po_number,
        "po_date": invoice.po_date,
        "vehicle_number": invoice.vehicle_number,
        "custom_key": invoice.custom_key,
        "custom_value": invoice.custom_value,
        "materials": [
            {
                "line_number": m.line_number,
                "material_name": m.material_name,
                "description": m.description,
                "manifest_number": m.manifest_number,
                "quantity": m.quantity,
                "unit": m.unit,
                "rate": m.rate,
                "amount": m.amount,
            }
            for m in invoice.material_lines
        ],
        "additional_charges_list": [
            {"description": m.description or m.material_name, "amount": m.amount}
            for m in invoice.additional_charge_lines
        ],
        "manifest_numbers": [m.manifest_number for m in invoice.manifests],
        "subtotal": invoice.subtotal,
        "cgst_rate": invoice.cgst_rate,
        "sgst_rate": invoice.sgst_rate,
        "cgst": invoice.cgst,
        "sgst": invoice.sgst,
        "additional_charges": invoice.additional_charges,
        "grand_total": invoice.grand_total,
        "payment_received": invoice.payment_received,
        "balance_due": invoice.balance_due,
        "amount_in_words": amount_to_words(invoice.grand_total),
        "seller": {key: seller.get(key) or "" for key in SELLER_KEYS},
    }


def render_invoice_html(snapshot: Dict[str, Any]) -> str:
    """Print-ready HTML for a snapshot."""
    e = lambda v: escape(str(v)) if v not in (None, "") else ""
    seller = snapshot["seller"]

    rows = "".join(
        f"""
        <tr>
            <td>{m['line_number'] or ''}</td>
            <td>{e(m['material_name'])}<br><small>{e(m['description'])}</small></td>
            <td>{e(m['manifest_number'])}</td>
            <td class="num">{e(m['quantity'])} {e(m['unit'])}</td>
            <td class="num">{_fmt_money(m['rate'])}</td>
            <td class="num">{_fmt_money(m['amount'])}</td>
        </tr>"""
        for m in snapshot["materials"]
    )
    charges = "".join(
        f"""
        <tr><td colspan="5">{e(c['description'])}</td><td class="num">{_fmt_money(c['amount'])}</td></tr>"""
        for c in snapshot["additional_charges_list"]
    )
    extra = ""
    if snapshot.get("custom_key"):
        extra = f"<p><strong>{e(snapshot['custom_key'])}:</strong> {e(snapshot['custom_value'])}</p>"

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Tax Invoice {e(snapshot['invoice_number'])}</title>
    <style>
        body {{ font-family: Arial, sans-serif; font-size: 12px; margin: 20px; }}
        table {{ width: 100%; border-collapse: collapse; }}
        th, td {{ border: 1px solid #333; padding: 6px; vertical-align: top; }}
        .num {{ text-align: right; }}
        .header {{ text-align: center; margin-bottom: 10px; }}
        .totals td {{ border: none; }}
        @media print {{ body {{ margin: 0; }} }}
    </style>
</head>
<body>
    <div class="header">
        <h2>{e(seller['company_name'])}</h2>
        <div>{e(seller['company_address'])}</div>
        <div>GSTIN: {e(seller['company_gst_number'])} | {e(seller['company_contact'])} | {e(seller['company_email'])}</div>
        <h3>TAX INVOICE ({e(snapshot['type'])})</h3>
    </div>
    <table>
        <tr>
            <td>
                <strong>Invoice No:</strong> {e(snapshot['invoice_number'])}<br>
                <strong>Date:</strong> {_fmt_date(snapshot['date'])}<br>
                <strong>PO No:</strong> {e(snapshot['po_number'])} {_fmt_date(snapshot['po_date'])}<br>
                <strong>Vehicle No:</strong> {e(snapshot['vehicle_number'])}
            </td>
            <td>
                <strong>Billed To:</strong> {e(snapshot['billed_to'] or snapshot['party_name'])}<br>
                {e(snapshot['party_address'])}<br>
                <strong>GSTIN:</strong> {e(snapshot['party_gst_number'])}<br>
                <strong>Shipped To:</strong> {e(snapshot['shipped_to'])}
            </td>
        </tr>
    </table>
    {extra}
    <table>
        <thead>
            <tr><th>#</th><th>Material</th><th>Manifest</th><th>Qty</th><th>Rate</th><th>Amount</th></tr>
        </thead>
        <tbody>{rows}
        </tbody>
    </table>
    <table class="totals">
        <tr><td class="num">Subtotal</td><td class="num">{_fmt_money(snapshot['subtotal'])}</td></tr>
        <tr><td class="num">CGST @ {e(snapshot['cgst_rate'])}%</td><td class="num">{_fmt_money(snapshot['cgst'])}</td></tr>
        <tr><td class="num">SGST @ {e(snapshot['sgst_rate'])}%</td><td class="num">{_fmt_money(snapshot['sgst'])}</td></tr>
    </table>
    <table>{charges}
    </table>
    <h3 class="num">Grand Total: {_fmt_money(snapshot['grand_total'])}</h3>
    <p><strong>Amount in words:</strong> {e(snapshot['amount_in_words'])}</p>
    <p><strong>Manifests:</strong> {e(', '.join(snapshot['manifest_numbers']))}</p>
    <p>{e(snapshot['description'])}</p>
</body>
</html>"""


async def load_seller(db) -> Dict[str, Any]:
    """Seller block from business settings."""
    settings = SettingsService(db)
    return {key: await settings.get_setting_value(key, "") for key in SELLER_KEYS}


async def render_invoice_document(invoice_id: uuid.UUID) -> None:
    """
    Background task run after an invoice is committed.

    Renders the printable document in its own session. Failures are logged
    and never reach the request that created the invoice.
    """
    try:
        async with get_db_session() as db:
            invoice = await InvoiceService(db).get_invoice(invoice_id)
            html = render_invoice_html(build_snapshot(invoice, await load_seller(db)))
        logger.info("Rendered invoice %s document (%d bytes)", invoice.invoice_number, len(html))
    except Exception:
        logger.exception("Failed to render invoice document for %s", invoice_id)
