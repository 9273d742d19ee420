"""Service for managing transporters and their billing history."""
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.models.inward import InwardEntry
from app.models.invoice import Invoice
from app.models.outward import OutwardEntry
from app.models.transporter import Transporter
from app.schemas.transporter import TransporterCreate, TransporterUpdate
from app.services.invoice_calculations import ZERO, as_money


logger = logging.getLogger(__name__)

RECENT_ENTRIES = 10


class TransporterService:
    """Service for transporter management and per-transporter statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== TRANSPORTER CRUD ====================

    async def get_transporter(self, transporter_id: uuid.UUID) -> Transporter:
        """Get transporter by ID. Raises NotFoundError."""
        transporter = await self.db.get(Transporter, transporter_id, populate_existing=True)
        if transporter is None:
            raise NotFoundError("Transporter", transporter_id)
        return transporter

    async def get_transporter_by_code(self, code: str) -> Optional[Transporter]:
        """Get transporter by code."""
        stmt = select(Transporter).where(Transporter.transporter_code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_transporters(
        self,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Transporter], int]:
        """Get paginated transporters with filters."""
        stmt = select(Transporter).order_by(Transporter.name)

        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Transporter.name.ilike(pattern),
                Transporter.transporter_code.ilike(pattern),
                Transporter.contact.ilike(pattern),
            ))

        if filters:
            stmt = stmt.where(and_(*filters))

        # Count
        count_stmt = select(func.count(Transporter.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        # Paginate
        stmt = stmt.offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        items = list(result.scalars().all())

        return items, total

    async def create_transporter(self, data: TransporterCreate) -> Transporter:
        """Create new transporter."""
        # Check if code exists
        existing = await self.get_transporter_by_code(data.transporter_code)
        if existing:
            raise ConflictError(
                f"Transporter with code {data.transporter_code} already exists",
                {"transporter_code": data.transporter_code},
            )

        transporter = Transporter(**data.model_dump())
        self.db.add(transporter)
        await self.db.commit()
        await self.db.refresh(transporter)
        logger.info("Transporter created: %s", transporter.transporter_code)
        return transporter

    async def update_transporter(
        self,
        transporter_id: uuid.UUID,
        data: TransporterUpdate
    ) -> Transporter:
        """Update transporter."""
        transporter = await self.get_transporter(transporter_id)

        update_data = data.model_dump(exclude_unset=True)
        new_code = update_data.get("transporter_code")
        if new_code and new_code != transporter.transporter_code:
            if await self.get_transporter_by_code(new_code):
                raise ConflictError(
                    f"Transporter with code {new_code} already exists",
                    {"transporter_code": new_code},
                )

        for key, value in update_data.items():
            setattr(transporter, key, value)

        await self.db.commit()
        await self.db.refresh(transporter)
        return transporter

    async def delete_transporter(self, transporter_id: uuid.UUID) -> None:
        """Delete transporter. Refused while invoices or entries reference it."""
        transporter = await self.get_transporter(transporter_id)

        references = {}
        for label, model in (
            ("invoices", Invoice),
            ("inward_entries", InwardEntry),
            ("outward_entries", OutwardEntry),
        ):
            references[label] = (await self.db.execute(
                select(func.count(model.id)).where(model.transporter_id == transporter_id)
            )).scalar() or 0

        if any(references.values()):
            raise ConflictError(
                f"Transporter {transporter.transporter_code} is referenced and cannot be deleted",
                references,
            )

        await self.db.delete(transporter)
        await self.db.commit()
        logger.info("Transporter deleted: %s", transporter.transporter_code)

    # ==================== STATS ====================

    async def get_stats(self, transporter_id: uuid.UUID) -> Dict[str, Any]:
        """Invoice totals and entry counts for one transporter."""
        await self.get_transporter(transporter_id)

        count, invoiced, paid = (await self.db.execute(
            select(
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.transporter_id == transporter_id)
        )).one()
        invoiced = as_money(invoiced)
        paid = as_money(paid)

        inward_count = (await self.db.execute(
            select(func.count(InwardEntry.id)).where(InwardEntry.transporter_id == transporter_id)
        )).scalar() or 0
        outward_count, unbilled = (await self.db.execute(
            select(
                func.count(OutwardEntry.id),
                func.count(OutwardEntry.id).filter(OutwardEntry.invoice_id.is_(None)),
            ).where(OutwardEntry.transporter_id == transporter_id)
        )).one()

        return {
            "invoice_count": count or 0,
            "total_invoiced": invoiced,
            "total_paid": paid,
            "total_pending": invoiced - paid,
            "inward_count": inward_count,
            "outward_count": outward_count or 0,
            "unbilled_outward_count": unbilled or 0,
        }

    async def get_global_stats(self) -> Dict[str, Any]:
        """Totals over every transporter's Outward invoices."""
        transporter_count = (await self.db.execute(
            select(func.count(Transporter.id))
        )).scalar() or 0

        count, invoiced, paid = (await self.db.execute(
            select(
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.transporter_id.is_not(None))
        )).one()
        invoiced = as_money(invoiced)
        paid = as_money(paid)

        unbilled = (await self.db.execute(
            select(func.count(OutwardEntry.id)).where(
                OutwardEntry.transporter_id.is_not(None),
                OutwardEntry.invoice_id.is_(None),
            )
        )).scalar() or 0

        return {
            "transporter_count": transporter_count,
            "invoice_count": count or 0,
            "total_invoiced": invoiced,
            "total_paid": paid,
            "total_pending": max(invoiced - paid, ZERO),
            "unbilled_outward_count": unbilled,
        }

    async def get_recent_entries(
        self,
        transporter_id: uuid.UUID,
        limit: int = RECENT_ENTRIES,
    ) -> Tuple[List[InwardEntry], List[OutwardEntry]]:
        """Latest inward and outward entries hauled by this transporter."""
        inward = await self.db.execute(
            select(InwardEntry)
            .where(InwardEntry.transporter_id == transporter_id)
            .order_by(InwardEntry.date.desc(), InwardEntry.sr_no.desc())
            .limit(limit)
        )
        outward = await self.db.execute(
            select(OutwardEntry)
            .where(OutwardEntry.transporter_id == transporter_id)
            .order_by(OutwardEntry.date.desc(), OutwardEntry.sr_no.desc())
            .limit(limit)
        )
        return list(inward.scalars().all()), list(outward.scalars().all())
