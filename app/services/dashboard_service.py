"""
Dashboard statistics.

Read-only aggregates over entries and invoices. Revenue figures only count
Inward invoices (money owed by client companies); Outward and Transporter
invoices are billing to haulage partners and are reported on their own pages.

Monthly series always have 12 points, Jan..Dec, with zeroes for empty months.
"""
from calendar import monthrange
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.inward import InwardEntry
from app.models.invoice import Invoice, InvoiceType
from app.models.outward import OutwardEntry
from app.services.invoice_calculations import ZERO, as_money, to_metric_tons


logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

INWARD = InvoiceType.INWARD.value


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def year_bounds(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


class DashboardService:
    """Aggregates for the dashboard. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _entry_totals(self, model, start: date, end: date) -> Dict[str, Any]:
        month_count, month_qty = (await self.db.execute(
            select(func.count(model.id), func.coalesce(func.sum(model.quantity), 0))
            .where(model.date >= start, model.date <= end)
        )).one()
        all_count, all_qty = (await self.db.execute(
            select(func.count(model.id), func.coalesce(func.sum(model.quantity), 0))
        )).one()
        return {
            "entries": month_count or 0,
            "quantity": Decimal(str(month_qty or 0)),
            "all_time_entries": all_count or 0,
            "all_time_quantity": Decimal(str(all_qty or 0)),
        }

    async def _revenue(self, *filters) -> Tuple[int, Decimal, Decimal]:
        stmt = select(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.sum(Invoice.payment_received), 0),
        ).where(Invoice.type == INWARD, *filters)
        count, total, paid = (await self.db.execute(stmt)).one()
        return count or 0, as_money(total), as_money(paid)

    async def get_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """This month's and all-time volumes and Inward revenue."""
        today = today or date.today()
        start, end = month_bounds(today.year, today.month)

        invoices, month_total, month_paid = await self._revenue(
            Invoice.date >= start, Invoice.date <= end
        )
        _, all_total, all_paid = await self._revenue()

        return {
            "inward": await self._entry_totals(InwardEntry, start, end),
            "outward": await self._entry_totals(OutwardEntry, start, end),
            "invoices_this_month": invoices,
            "revenue": {
                "this_month": month_total,
                "this_month_paid": month_paid,
                "this_month_pending": month_total - month_paid,
                "all_time": all_total,
                "all_time_paid": all_paid,
                "all_time_pending": all_total - all_paid,
            },
        }

    async def get_revenue_series(self, year: Optional[int] = None) -> List[Dict[str, Any]]:
        """Monthly Inward revenue for one year."""
        year = year or date.today().year
        start, end = year_bounds(year)

        rows = (await self.db.execute(
            select(Invoice.date, Invoice.grand_total, Invoice.payment_received)
            .where(Invoice.type == INWARD, Invoice.date >= start, Invoice.date <= end)
        )).all()

        points = [
            {"month": name, "revenue": ZERO, "paid": ZERO, "pending": ZERO}
            for name in MONTH_NAMES
        ]
        for invoice_date, total, paid in rows:
            point = points[invoice_date.month - 1]
            total = as_money(total)
            paid = as_money(paid)
            point["revenue"] += total
            point["paid"] += paid
            point["pending"] += total - paid
        return points

    async def get_payment_status(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Billed, received and pending over one month's Inward invoices."""
        today = date.today()
        year = year or today.year
        month = month or today.month
        start, end = month_bounds(year, month)

        _, total, received = await self._revenue(Invoice.date >= start, Invoice.date <= end)
        return {
            "year": year,
            "month": month,
            "total": total,
            "received": received,
            "pending": total - received,
        }

    async def get_waste_flow(self, year: Optional[int] = None) -> List[Dict[str, Any]]:
        """Monthly inward vs outward volume in metric tons."""
        year = year or date.today().year
        start, end = year_bounds(year)

        points = [{"month": name, "inward": ZERO, "outward": ZERO} for name in MONTH_NAMES]
        for key, model in (("inward", InwardEntry), ("outward", OutwardEntry)):
            rows = (await self.db.execute(
                select(model.date, model.quantity, model.unit)
                .where(and_(model.date >= start, model.date <= end))
            )).all()
            for entry_date, quantity, unit in rows:
                points[entry_date.month - 1][key] += to_metric_tons(quantity, unit)
        return points

    async def get_recent_activity(self, limit: int = 10) -> Dict[str, List[Any]]:
        """Latest entries, Inward invoices and Inward payments, newest first."""
        inward = await self.db.execute(
            select(InwardEntry)
            .options(selectinload(InwardEntry.company))
            .order_by(InwardEntry.created_at.desc())
            .limit(limit)
        )
        outward = await self.db.execute(
            select(OutwardEntry)
            .options(selectinload(OutwardEntry.transporter))
            .order_by(OutwardEntry.created_at.desc())
            .limit(limit)
        )
        invoices = await self.db.execute(
            select(Invoice)
            .where(Invoice.type == INWARD)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )
        payments = await self.db.execute(
            select(Invoice)
            .where(
                Invoice.type == INWARD,
                Invoice.payment_received > 0,
                Invoice.payment_received_on.is_not(None),
            )
            .order_by(Invoice.payment_received_on.desc())
            .limit(limit)
        )
        return {
            "inward": list(inward.scalars().all()),
            "outward": list(outward.scalars().all()),
            "invoices": list(invoices.scalars().all()),
            "payments": list(payments.scalars().all()),
        }
