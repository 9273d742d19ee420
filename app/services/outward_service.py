"""
Outward entry service.

An outward entry records one dispatch of processed waste to a cement company
through a transporter. Dispatches are billed on Outward invoices, either by
importing them into an invoice or by giving an invoice number when the
dispatch is recorded.

Derived amounts (when not supplied):
    amount       = rate x quantity
    gross_amount = amount + det_charges + gst
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError, NotFoundError
from app.models.invoice import Invoice
from app.models.outward import OutwardEntry
from app.models.transporter import Transporter
from app.schemas.outward import OutwardEntryCreate, OutwardEntryUpdate
from app.services.invoice_calculations import InvoiceConfig, ZERO, as_money, round2
from app.services.invoice_service import InvoiceService
from app.services.inward_service import value_changed


logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "date": OutwardEntry.date,
    "sr_no": OutwardEntry.sr_no,
    "created_at": OutwardEntry.created_at,
    "manifest_number": OutwardEntry.manifest_number,
    "cement_company": OutwardEntry.cement_company,
    "quantity": OutwardEntry.quantity,
    "gross_amount": OutwardEntry.gross_amount,
}

BILLED_FIELDS = ("quantity", "unit")
REQUIRED_FIELDS = ("date", "cement_company", "manifest_number", "quantity", "unit")
AMOUNT_INPUTS = ("rate", "quantity")
GROSS_INPUTS = ("amount", "rate", "quantity", "det_charges", "gst")


def _strip(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def derive_amount(rate: Optional[Decimal], quantity: Optional[Decimal]) -> Optional[Decimal]:
    if rate is None or quantity is None:
        return None
    return round2(Decimal(str(rate)) * Decimal(str(quantity)))


def derive_gross(
    amount: Optional[Decimal],
    det_charges: Optional[Decimal],
    gst: Optional[Decimal],
) -> Decimal:
    parts = [Decimal(str(v)) for v in (amount, det_charges, gst) if v is not None]
    return round2(sum(parts, ZERO))


class OutwardService:
    """Outward dispatches: CRUD, invoice linking and stats."""

    def __init__(self, db: AsyncSession, config: Optional[InvoiceConfig] = None):
        self.db = db
        self.config = config

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(OutwardEntry.transporter),
            selectinload(OutwardEntry.invoice),
        ]

    async def get_entry(self, entry_id: uuid.UUID) -> OutwardEntry:
        result = await self.db.execute(
            select(OutwardEntry)
            .options(*self._load_options())
            .where(OutwardEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Outward entry", entry_id)
        return entry

    async def list_entries(
        self,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
        transporter_id: Optional[uuid.UUID] = None,
        cement_company: Optional[str] = None,
        waste_name: Optional[str] = None,
        month: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        invoiced: Optional[bool] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> Tuple[List[OutwardEntry], int]:
        """Paginated outward entries with filters."""
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                OutwardEntry.manifest_number.ilike(pattern),
                OutwardEntry.cement_company.ilike(pattern),
                OutwardEntry.location.ilike(pattern),
                OutwardEntry.waste_name.ilike(pattern),
                OutwardEntry.vehicle_number.ilike(pattern),
                OutwardEntry.month.ilike(pattern),
                OutwardEntry.transporter.has(Transporter.name.ilike(pattern)),
            ))
        if transporter_id:
            filters.append(OutwardEntry.transporter_id == transporter_id)
        if cement_company:
            filters.append(OutwardEntry.cement_company.ilike(f"%{cement_company.strip()}%"))
        if waste_name:
            filters.append(OutwardEntry.waste_name.ilike(f"%{waste_name.strip()}%"))
        if month:
            filters.append(OutwardEntry.month.ilike(f"%{month.strip()}%"))
        if start_date:
            filters.append(OutwardEntry.date >= start_date)
        if end_date:
            filters.append(OutwardEntry.date <= end_date)
        if invoiced is True:
            filters.append(OutwardEntry.invoice_id.is_not(None))
        elif invoiced is False:
            filters.append(OutwardEntry.invoice_id.is_(None))

        count_stmt = select(func.count(OutwardEntry.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        column = SORTABLE_FIELDS.get(sort_by, OutwardEntry.date)
        order = column.asc() if sort_order == "asc" else column.desc()
        stmt = (
            select(OutwardEntry)
            .options(*self._load_options())
            .order_by(order, OutwardEntry.sr_no.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        if filters:
            stmt = stmt.where(and_(*filters))

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    # ==================== VALIDATION HELPERS ====================

    async def _check_transporter(self, transporter_id: Optional[uuid.UUID]) -> None:
        if transporter_id and await self.db.get(Transporter, transporter_id) is None:
            raise NotFoundError("Transporter", transporter_id)

    async def _check_manifest(
        self,
        manifest_number: str,
        transporter_id: Optional[uuid.UUID],
        cement_company: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        """A manifest is unique per transporter, or per cement company when there is none."""
        stmt = select(OutwardEntry.id).where(OutwardEntry.manifest_number == manifest_number)
        if transporter_id:
            stmt = stmt.where(OutwardEntry.transporter_id == transporter_id)
        else:
            stmt = stmt.where(
                OutwardEntry.transporter_id.is_(None),
                func.lower(OutwardEntry.cement_company) == cement_company.strip().lower(),
            )
        if exclude_id:
            stmt = stmt.where(OutwardEntry.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise ConflictError(
                f"Manifest {manifest_number} is already recorded for this dispatch route",
                {"manifest_number": manifest_number},
            )

    async def next_sr_no(self) -> int:
        last = (await self.db.execute(select(func.max(OutwardEntry.sr_no)))).scalar()
        return (last or 0) + 1

    # ==================== WRITE ====================

    async def create_entry(self, data: OutwardEntryCreate) -> OutwardEntry:
        """
        Record a dispatch, optionally billing it on an Outward invoice.

        With `invoice_number` the entry and the invoice link (or the new
        invoice) are written in one savepoint; a failure leaves neither.
        """
        await self._check_transporter(data.transporter_id)
        manifest_number = data.manifest_number.strip()
        cement_company = data.cement_company.strip()
        await self._check_manifest(manifest_number, data.transporter_id, cement_company)

        amount = data.amount if data.amount is not None else derive_amount(data.rate, data.quantity)
        gross_amount = data.gross_amount
        if gross_amount is None:
            gross_amount = derive_gross(amount, data.det_charges, data.gst)

        entry = OutwardEntry(
            sr_no=data.sr_no or await self.next_sr_no(),
            date=data.date,
            month=_strip(data.month),
            cement_company=cement_company,
            location=_strip(data.location),
            manifest_number=manifest_number,
            transporter_id=data.transporter_id,
            vehicle_number=_strip(data.vehicle_number),
            vehicle_capacity=_strip(data.vehicle_capacity),
            waste_name=_strip(data.waste_name),
            quantity=data.quantity,
            unit=data.unit.value,
            packing=_strip(data.packing),
            rate=data.rate,
            amount=amount,
            gst=data.gst,
            det_charges=data.det_charges,
            gross_amount=gross_amount,
            paid_on=data.paid_on,
            due_on=data.due_on,
        )

        invoice_number = _strip(data.invoice_number)
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
                await self.db.flush()
                if invoice_number:
                    invoices = InvoiceService(self.db, self.config)
                    await invoices.ensure_outward_invoice(invoice_number, entry)
        except IntegrityError:
            raise ConflictError(
                "Outward entry conflicts with an existing manifest or invoice number",
                {"manifest_number": manifest_number, "invoice_number": invoice_number},
            )
        await self.db.commit()

        logger.info(
            "Outward entry created: %s (%s) invoice=%s",
            entry.manifest_number, entry.id, invoice_number,
        )
        return await self.get_entry(entry.id)

    async def update_entry(self, entry_id: uuid.UUID, data: OutwardEntryUpdate) -> OutwardEntry:
        """
        Partial update. Amount and gross amount are re-derived from changed inputs
        unless the request supplies them.
        """
        entry = await self.get_entry(entry_id)
        changes = data.model_dump(exclude_unset=True)

        if entry.is_invoiced:
            for name in BILLED_FIELDS:
                if changes.get(name) is not None and value_changed(changes[name], getattr(entry, name)):
                    raise ConflictError(
                        f"Outward entry {entry.manifest_number} is billed on invoice "
                        f"{entry.invoice_number}; its {name} cannot be changed",
                        {"field": name, "invoice_id": str(entry.invoice_id)},
                    )
            if "transporter_id" in changes and changes["transporter_id"] != entry.transporter_id:
                raise ConflictError(
                    f"Outward entry {entry.manifest_number} is billed; its transporter cannot be changed",
                    {"field": "transporter_id", "invoice_id": str(entry.invoice_id)},
                )

        if changes.get("transporter_id"):
            await self._check_transporter(changes["transporter_id"])

        transporter_id = changes.get("transporter_id", entry.transporter_id)
        manifest_number = (changes.get("manifest_number") or entry.manifest_number).strip()
        cement_company = (changes.get("cement_company") or entry.cement_company).strip()
        if (
            manifest_number != entry.manifest_number
            or transporter_id != entry.transporter_id
            or cement_company != entry.cement_company
        ):
            await self._check_manifest(manifest_number, transporter_id, cement_company, exclude_id=entry.id)

        for key, value in changes.items():
            if value is None and key in REQUIRED_FIELDS:
                continue
            if key == "unit":
                value = value.value
            elif key in REQUIRED_FIELDS and isinstance(value, str):
                value = value.strip()
            elif isinstance(value, str):
                value = _strip(value)
            setattr(entry, key, value)

        if "amount" not in changes and any(k in changes for k in AMOUNT_INPUTS):
            derived = derive_amount(entry.rate, entry.quantity)
            if derived is not None:
                entry.amount = derived
        if "gross_amount" not in changes and any(k in changes for k in GROSS_INPUTS):
            entry.gross_amount = derive_gross(entry.amount, entry.det_charges, entry.gst)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Outward entry conflicts with an existing manifest")

        logger.info("Outward entry updated: %s (%s)", entry.manifest_number, entry.id)
        return await self.get_entry(entry.id)

    async def delete_entry(self, entry_id: uuid.UUID) -> None:
        """Delete an unbilled dispatch."""
        entry = await self.get_entry(entry_id)
        if entry.is_invoiced:
            raise ConflictError(
                f"Outward entry {entry.manifest_number} is billed on invoice "
                f"{entry.invoice_number} and cannot be deleted",
                {"invoice_id": str(entry.invoice_id)},
            )
        await self.db.delete(entry)
        await self.db.commit()
        logger.info("Outward entry deleted: %s (%s)", entry.manifest_number, entry_id)

    # ==================== STATS ====================

    async def get_stats(
        self,
        transporter_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        filters = []
        if transporter_id:
            filters.append(OutwardEntry.transporter_id == transporter_id)
        if start_date:
            filters.append(OutwardEntry.date >= start_date)
        if end_date:
            filters.append(OutwardEntry.date <= end_date)

        stmt = select(
            func.count(OutwardEntry.id),
            func.coalesce(func.sum(OutwardEntry.quantity), 0),
            func.count(OutwardEntry.invoice_id),
            func.coalesce(func.sum(OutwardEntry.gross_amount), 0),
        )
        if filters:
            stmt = stmt.where(and_(*filters))
        total, quantity, invoiced, gross = (await self.db.execute(stmt)).one()

        linked = select(OutwardEntry.invoice_id).where(OutwardEntry.invoice_id.is_not(None))
        if filters:
            linked = linked.where(and_(*filters))
        billed, received = (await self.db.execute(
            select(
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.id.in_(linked.distinct()))
        )).one()

        return {
            "total_dispatches": total or 0,
            "total_quantity": Decimal(str(quantity or 0)),
            "invoiced_dispatches": invoiced or 0,
            "unbilled_dispatches": (total or 0) - (invoiced or 0),
            "total_gross_amount": as_money(gross),
            "total_invoiced": as_money(billed),
            "total_received": as_money(received),
        }

    async def get_summary(
        self,
        month: Optional[str] = None,
        cement_company: Optional[str] = None,
        transporter_id: Optional[uuid.UUID] = None,
    ) -> List[Dict[str, Any]]:
        """Dispatch totals grouped by month, cement company and transporter."""
        filters = []
        month = _strip(month)
        if month:
            filters.append(OutwardEntry.month == month)
        cement_company = _strip(cement_company)
        if cement_company:
            filters.append(OutwardEntry.cement_company.ilike(f"%{cement_company}%"))
        if transporter_id:
            filters.append(OutwardEntry.transporter_id == transporter_id)

        stmt = (
            select(
                OutwardEntry.month,
                OutwardEntry.cement_company,
                OutwardEntry.transporter_id,
                Transporter.name,
                func.coalesce(func.sum(OutwardEntry.quantity), 0),
                func.coalesce(func.sum(OutwardEntry.amount), 0),
                func.coalesce(func.sum(OutwardEntry.gross_amount), 0),
                func.count(OutwardEntry.id),
            )
            .outerjoin(Transporter, Transporter.id == OutwardEntry.transporter_id)
            .group_by(
                OutwardEntry.month,
                OutwardEntry.cement_company,
                OutwardEntry.transporter_id,
                Transporter.name,
            )
        )
        if filters:
            stmt = stmt.where(and_(*filters))

        rows = [
            {
                "month": row_month,
                "cement_company": company,
                "transporter_id": row_transporter,
                "transporter_name": transporter_name,
                "total_quantity": Decimal(str(quantity or 0)),
                "total_amount": as_money(amount),
                "total_gross_amount": as_money(gross),
                "count": count or 0,
            }
            for (
                row_month, company, row_transporter, transporter_name,
                quantity, amount, gross, count,
            ) in (await self.db.execute(stmt)).all()
        ]
        rows.sort(key=lambda r: (r["month"] or "", r["cement_company"], r["transporter_name"] or ""))
        return rows
