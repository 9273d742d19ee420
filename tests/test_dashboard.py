"""Dashboard aggregates."""
from datetime import date
from decimal import Decimal

from app.models.invoice import InvoiceType
from app.schemas.invoice import InvoiceCreate, InvoiceMaterialInput
from app.services.dashboard_service import DashboardService
from app.services.invoice_service import InvoiceService


async def _invoice(db, company=None, transporter=None, invoice_date=date(2024, 6, 15), rate="1000", paid="0"):
    return await InvoiceService(db).create_invoice(InvoiceCreate(
        type=InvoiceType.INWARD if company else InvoiceType.TRANSPORTER,
        date=invoice_date,
        company_id=company.id if company else None,
        transporter_id=transporter.id if transporter else None,
        materials=[InvoiceMaterialInput(material_name="Disposal", quantity=Decimal("1"), rate=Decimal(rate))],
        payment_received=Decimal(paid),
    ))


async def test_waste_flow_has_twelve_months_in_tons(db, make_inward, make_outward):
    await make_inward(quantity="2500", unit="Kg", entry_date=date(2024, 3, 5))
    await make_inward(quantity="3", unit="MT", entry_date=date(2024, 3, 20))
    await make_outward(quantity="4", unit="KL", entry_date=date(2024, 11, 2))
    await make_inward(quantity="9", unit="MT", entry_date=date(2023, 3, 1))

    points = await DashboardService(db).get_waste_flow(2024)

    assert len(points) == 12
    assert [p["month"] for p in points][:3] == ["Jan", "Feb", "Mar"]
    assert points[2]["inward"] == Decimal("5.5")
    assert points[10]["outward"] == Decimal("4")
    assert sum(p["inward"] for p in points) == Decimal("5.5")


async def test_revenue_counts_inward_invoices_only(db, company, transporter):
    await _invoice(db, company, invoice_date=date(2024, 2, 10), paid="500")
    await _invoice(db, company, invoice_date=date(2024, 2, 20))
    await _invoice(db, transporter=transporter, invoice_date=date(2024, 2, 25))

    points = await DashboardService(db).get_revenue_series(2024)

    assert len(points) == 12
    assert points[1]["revenue"] == Decimal("2360.00")
    assert points[1]["paid"] == Decimal("500.00")
    assert points[1]["pending"] == Decimal("1860.00")
    assert all(p["revenue"] == 0 for i, p in enumerate(points) if i != 1)


async def test_payment_status_for_month(db, company):
    await _invoice(db, company, invoice_date=date(2024, 6, 3), paid="1180")
    await _invoice(db, company, invoice_date=date(2024, 7, 3))

    breakdown = await DashboardService(db).get_payment_status(2024, 6)

    assert breakdown == {
        "year": 2024,
        "month": 6,
        "total": Decimal("1180.00"),
        "received": Decimal("1180.00"),
        "pending": Decimal("0.00"),
    }


async def test_summary_this_month(db, company, make_inward):
    today = date.today()
    await make_inward(quantity="4", entry_date=today)
    await make_inward(quantity="6", entry_date=date(today.year - 1, 1, 1))
    await _invoice(db, company, invoice_date=today, paid="180")

    summary = await DashboardService(db).get_summary(today)

    assert summary["inward"]["entries"] == 1
    assert summary["inward"]["all_time_entries"] == 2
    assert summary["inward"]["all_time_quantity"] == Decimal("10")
    assert summary["invoices_this_month"] == 1
    assert summary["revenue"]["this_month"] == Decimal("1180.00")
    assert summary["revenue"]["this_month_pending"] == Decimal("1000.00")


async def test_recent_activity(db, company, make_inward):
    await make_inward()
    paid = await _invoice(db, company)
    await _invoice(db, company)
    await InvoiceService(db).update_payment(paid.id, Decimal("100"), date(2024, 6, 20))

    activity = await DashboardService(db).get_recent_activity(limit=5)

    assert len(activity["inward"]) == 1
    assert len(activity["invoices"]) == 2
    assert [p.invoice_number for p in activity["payments"]] == [paid.invoice_number]
