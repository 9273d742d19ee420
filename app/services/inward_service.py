"""
Inward entry service.

An inward entry records one consignment of waste received from a company.
Entries are billed by importing them into an Inward invoice; once linked,
the billed quantity and unit are frozen until the invoice is deleted.

Generated identifiers:
    sr_no       highest existing serial + 1
    lot_number  LOT-YYYYMM-NNNN, series taken from the entry date
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
from app.models.company import Company
from app.models.inward import InwardEntry
from app.models.invoice import Invoice
from app.models.transporter import Transporter
from app.schemas.inward import InwardEntryCreate, InwardEntryUpdate
from app.services.invoice_calculations import as_money
from app.services.invoice_number_service import format_number, highest_sequence


logger = logging.getLogger(__name__)

LOT_PREFIX = "LOT"

SORTABLE_FIELDS = {
    "date": InwardEntry.date,
    "sr_no": InwardEntry.sr_no,
    "created_at": InwardEntry.created_at,
    "manifest_number": InwardEntry.manifest_number,
    "waste_name": InwardEntry.waste_name,
    "quantity": InwardEntry.quantity,
}

# Fields that decide what was billed; frozen while the entry is on an invoice
BILLED_FIELDS = ("quantity", "unit")

# Not nullable; a null in an update leaves them unchanged
REQUIRED_FIELDS = ("date", "company_id", "manifest_number", "waste_name", "quantity", "unit", "lot_number")


def _strip(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def value_changed(new: Any, current: Any) -> bool:
    """True when an update value differs from the stored one (enums and Decimals compared by value)."""
    if hasattr(new, "value"):
        new = new.value
    if isinstance(new, Decimal) or isinstance(current, Decimal):
        return Decimal(str(new)) != Decimal(str(current))
    return new != current


def lot_prefix(entry_date: date) -> str:
    return f"{LOT_PREFIX}-{entry_date.year}{entry_date.month:02d}"


class InwardService:
    """Inward entries: CRUD, filters and stats."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(InwardEntry.company),
            selectinload(InwardEntry.transporter),
            selectinload(InwardEntry.invoice),
        ]

    async def get_entry(self, entry_id: uuid.UUID) -> InwardEntry:
        result = await self.db.execute(
            select(InwardEntry)
            .options(*self._load_options())
            .where(InwardEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Inward entry", entry_id)
        return entry

    async def list_entries(
        self,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
        company_id: Optional[uuid.UUID] = None,
        waste_name: Optional[str] = None,
        month: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        invoiced: Optional[bool] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> Tuple[List[InwardEntry], int]:
        """Paginated inward entries with filters."""
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                InwardEntry.manifest_number.ilike(pattern),
                InwardEntry.lot_number.ilike(pattern),
                InwardEntry.waste_name.ilike(pattern),
                InwardEntry.month.ilike(pattern),
                InwardEntry.vehicle_number.ilike(pattern),
                InwardEntry.category.ilike(pattern),
                InwardEntry.company.has(Company.name.ilike(pattern)),
            ))
        if company_id:
            filters.append(InwardEntry.company_id == company_id)
        if waste_name:
            filters.append(InwardEntry.waste_name.ilike(f"%{waste_name.strip()}%"))
        if month:
            filters.append(InwardEntry.month.ilike(f"%{month.strip()}%"))
        if start_date:
            filters.append(InwardEntry.date >= start_date)
        if end_date:
            filters.append(InwardEntry.date <= end_date)
        if invoiced is True:
            filters.append(InwardEntry.invoice_id.is_not(None))
        elif invoiced is False:
            filters.append(InwardEntry.invoice_id.is_(None))

        count_stmt = select(func.count(InwardEntry.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        column = SORTABLE_FIELDS.get(sort_by, InwardEntry.date)
        order = column.asc() if sort_order == "asc" else column.desc()
        stmt = (
            select(InwardEntry)
            .options(*self._load_options())
            .order_by(order, InwardEntry.sr_no.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        if filters:
            stmt = stmt.where(and_(*filters))

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    # ==================== VALIDATION HELPERS ====================

    async def _get_company(self, company_id: uuid.UUID) -> Company:
        result = await self.db.execute(
            select(Company)
            .options(selectinload(Company.materials))
            .where(Company.id == company_id)
        )
        company = result.scalar_one_or_none()
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    async def _check_transporter(self, transporter_id: Optional[uuid.UUID]) -> None:
        if transporter_id and await self.db.get(Transporter, transporter_id) is None:
            raise NotFoundError("Transporter", transporter_id)

    async def _check_manifest(
        self,
        company_id: uuid.UUID,
        manifest_number: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        stmt = select(InwardEntry.id).where(
            InwardEntry.company_id == company_id,
            InwardEntry.manifest_number == manifest_number,
        )
        if exclude_id:
            stmt = stmt.where(InwardEntry.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise ConflictError(
                f"Manifest {manifest_number} is already recorded for this company",
                {"manifest_number": manifest_number},
            )

    async def _check_lot_number(self, lot_number: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        stmt = select(InwardEntry.id).where(InwardEntry.lot_number == lot_number)
        if exclude_id:
            stmt = stmt.where(InwardEntry.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise ConflictError(
                f"Lot number {lot_number} already exists",
                {"lot_number": lot_number},
            )

    async def next_sr_no(self) -> int:
        last = (await self.db.execute(select(func.max(InwardEntry.sr_no)))).scalar()
        return (last or 0) + 1

    async def next_lot_number(self, entry_date: date) -> str:
        prefix = lot_prefix(entry_date)
        last = await highest_sequence(self.db, InwardEntry.lot_number, prefix)
        return format_number(prefix, last + 1)

    # ==================== WRITE ====================

    async def create_entry(self, data: InwardEntryCreate) -> InwardEntry:
        """
        Record a receipt.

        The rate falls back to the company's rate list for the waste name.

        Raises:
            NotFoundError: company or transporter missing
            ConflictError: manifest already recorded for the company, lot number taken
        """
        company = await self._get_company(data.company_id)
        await self._check_transporter(data.transporter_id)

        manifest_number = data.manifest_number.strip()
        await self._check_manifest(company.id, manifest_number)

        rate = data.rate
        if rate is None:
            rate = company.rate_for(data.waste_name)

        lot_number = _strip(data.lot_number)
        if lot_number:
            await self._check_lot_number(lot_number)
        else:
            lot_number = await self.next_lot_number(data.date)

        entry = InwardEntry(
            sr_no=data.sr_no or await self.next_sr_no(),
            date=data.date,
            month=_strip(data.month),
            lot_number=lot_number,
            company_id=company.id,
            transporter_id=data.transporter_id,
            manifest_number=manifest_number,
            vehicle_number=_strip(data.vehicle_number),
            waste_name=data.waste_name.strip(),
            category=_strip(data.category),
            quantity=data.quantity,
            unit=data.unit.value,
            rate=rate,
            remarks=_strip(data.remarks),
        )
        self.db.add(entry)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                "Inward entry conflicts with an existing manifest or lot number",
                {"manifest_number": manifest_number, "lot_number": lot_number},
            )

        logger.info("Inward entry created: %s (%s)", entry.lot_number, entry.id)
        return await self.get_entry(entry.id)

    async def update_entry(self, entry_id: uuid.UUID, data: InwardEntryUpdate) -> InwardEntry:
        """
        Partial update.

        Raises:
            ConflictError: billed quantity or unit changed on an invoiced entry,
                or the new manifest/lot number is taken
        """
        entry = await self.get_entry(entry_id)
        changes = data.model_dump(exclude_unset=True)

        if entry.is_invoiced:
            for name in BILLED_FIELDS:
                if changes.get(name) is not None and value_changed(changes[name], getattr(entry, name)):
                    raise ConflictError(
                        f"Inward entry {entry.manifest_number} is billed on invoice "
                        f"{entry.invoice_number}; its {name} cannot be changed",
                        {"field": name, "invoice_id": str(entry.invoice_id)},
                    )
            if changes.get("company_id") not in (None, entry.company_id):
                raise ConflictError(
                    f"Inward entry {entry.manifest_number} is billed; its company cannot be changed",
                    {"field": "company_id", "invoice_id": str(entry.invoice_id)},
                )

        company_id = changes.get("company_id") or entry.company_id
        if changes.get("company_id"):
            await self._get_company(company_id)
        if changes.get("transporter_id"):
            await self._check_transporter(changes["transporter_id"])

        manifest_number = (changes.get("manifest_number") or entry.manifest_number).strip()
        if manifest_number != entry.manifest_number or company_id != entry.company_id:
            await self._check_manifest(company_id, manifest_number, exclude_id=entry.id)
        if changes.get("lot_number"):
            changes["lot_number"] = changes["lot_number"].strip()
            await self._check_lot_number(changes["lot_number"], exclude_id=entry.id)

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

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Inward entry conflicts with an existing manifest or lot number")

        logger.info("Inward entry updated: %s (%s)", entry.lot_number, entry.id)
        return await self.get_entry(entry.id)

    async def delete_entry(self, entry_id: uuid.UUID) -> None:
        """Delete an unbilled entry. Invoiced entries must be released first."""
        entry = await self.get_entry(entry_id)
        if entry.is_invoiced:
            raise ConflictError(
                f"Inward entry {entry.manifest_number} is billed on invoice "
                f"{entry.invoice_number} and cannot be deleted",
                {"invoice_id": str(entry.invoice_id)},
            )
        await self.db.delete(entry)
        await self.db.commit()
        logger.info("Inward entry deleted: %s (%s)", entry.lot_number, entry_id)

    # ==================== STATS ====================

    async def get_stats(
        self,
        company_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Entry counts and quantity, plus totals of the distinct invoices they are billed on."""
        filters = []
        if company_id:
            filters.append(InwardEntry.company_id == company_id)
        if start_date:
            filters.append(InwardEntry.date >= start_date)
        if end_date:
            filters.append(InwardEntry.date <= end_date)

        stmt = select(
            func.count(InwardEntry.id),
            func.coalesce(func.sum(InwardEntry.quantity), 0),
            func.count(InwardEntry.invoice_id),
        )
        if filters:
            stmt = stmt.where(and_(*filters))
        total, quantity, invoiced = (await self.db.execute(stmt)).one()

        linked = select(InwardEntry.invoice_id).where(InwardEntry.invoice_id.is_not(None))
        if filters:
            linked = linked.where(and_(*filters))
        billed, received = (await self.db.execute(
            select(
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.id.in_(linked.distinct()))
        )).one()

        return {
            "total_entries": total or 0,
            "total_quantity": Decimal(str(quantity or 0)),
            "invoiced_entries": invoiced or 0,
            "unbilled_entries": (total or 0) - (invoiced or 0),
            "total_invoiced": as_money(billed),
            "total_received": as_money(received),
        }
