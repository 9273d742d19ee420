"""Service for client companies and their material rate lists."""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError, NotFoundError
from app.models.company import Company, CompanyMaterial
from app.models.inward import InwardEntry
from app.models.invoice import Invoice
from app.schemas.company import (
    CompanyCreate,
    CompanyUpdate,
    CompanyMaterialCreate,
    CompanyMaterialUpdate,
)
from app.services.invoice_calculations import ZERO, as_money, to_metric_tons


logger = logging.getLogger(__name__)


def _totals_row(count: Any, invoiced: Any, paid: Any) -> Dict[str, Any]:
    invoiced = as_money(invoiced)
    paid = as_money(paid)
    return {
        "invoice_count": count or 0,
        "total_invoiced": invoiced,
        "total_paid": paid,
        "total_pending": invoiced - paid,
    }


class CompanyService:
    """Company master data, rate lists and billing totals."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== COMPANY CRUD ====================

    async def get_company(self, company_id: uuid.UUID) -> Company:
        """Company with its materials. Raises NotFoundError."""
        result = await self.db.execute(
            select(Company)
            .options(selectinload(Company.materials))
            .where(Company.id == company_id)
            .execution_options(populate_existing=True)
        )
        company = result.scalar_one_or_none()
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    async def get_company_by_gst(self, gst_number: str) -> Optional[Company]:
        result = await self.db.execute(select(Company).where(Company.gst_number == gst_number))
        return result.scalar_one_or_none()

    async def list_companies(
        self,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
        city: Optional[str] = None,
    ) -> Tuple[List[Tuple[Company, Dict[str, Any]]], int]:
        """
        Paginated companies, each paired with its invoice totals.

        Returns:
            ([(company, totals), ...], total count)
        """
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Company.name.ilike(pattern),
                Company.gst_number.ilike(pattern),
                Company.contact.ilike(pattern),
            ))
        if city:
            filters.append(Company.city.ilike(city.strip()))

        count_stmt = select(func.count(Company.id))
        if filters:
            count_stmt = count_stmt.where(*filters)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Company)
            .options(selectinload(Company.materials))
            .order_by(Company.name)
            .offset((page - 1) * size)
            .limit(size)
        )
        if filters:
            stmt = stmt.where(*filters)
        companies = list((await self.db.execute(stmt)).scalars().all())

        totals: Dict[uuid.UUID, Dict[str, Any]] = {}
        if companies:
            rows = await self.db.execute(
                select(
                    Invoice.company_id,
                    func.count(Invoice.id),
                    func.coalesce(func.sum(Invoice.grand_total), 0),
                    func.coalesce(func.sum(Invoice.payment_received), 0),
                )
                .where(Invoice.company_id.in_([c.id for c in companies]))
                .group_by(Invoice.company_id)
            )
            totals = {row[0]: _totals_row(*row[1:]) for row in rows.all()}

        empty = _totals_row(0, 0, 0)
        return [(c, totals.get(c.id, empty)) for c in companies], total

    async def create_company(self, data: CompanyCreate) -> Company:
        """Create a company with its initial rate list."""
        if data.gst_number and await self.get_company_by_gst(data.gst_number):
            raise ConflictError(
                f"Company with GST number {data.gst_number} already exists",
                {"gst_number": data.gst_number},
            )

        company = Company(**data.model_dump(exclude={"materials"}))
        company.gst_number = (data.gst_number or "").strip() or None
        company.materials = [
            CompanyMaterial(
                material_name=m.material_name.strip(),
                rate=m.rate,
                unit=m.unit.value,
            )
            for m in data.materials
        ]
        self.db.add(company)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Company GST number or material names are not unique")

        logger.info("Company created: %s", company.name)
        return await self.get_company(company.id)

    async def update_company(self, company_id: uuid.UUID, data: CompanyUpdate) -> Company:
        company = await self.get_company(company_id)
        update_data = data.model_dump(exclude_unset=True)

        new_gst = update_data.get("gst_number")
        if new_gst and new_gst != company.gst_number:
            if await self.get_company_by_gst(new_gst):
                raise ConflictError(
                    f"Company with GST number {new_gst} already exists",
                    {"gst_number": new_gst},
                )

        for key, value in update_data.items():
            setattr(company, key, value)

        await self.db.commit()
        return await self.get_company(company.id)

    async def delete_company(self, company_id: uuid.UUID) -> None:
        """Delete a company. Refused while invoices or entries reference it."""
        company = await self.get_company(company_id)

        invoice_count = (await self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.company_id == company_id)
        )).scalar() or 0
        entry_count = (await self.db.execute(
            select(func.count(InwardEntry.id)).where(InwardEntry.company_id == company_id)
        )).scalar() or 0
        if invoice_count or entry_count:
            raise ConflictError(
                f"Company {company.name} has {invoice_count} invoices and "
                f"{entry_count} inward entries and cannot be deleted",
                {"invoice_count": invoice_count, "inward_count": entry_count},
            )

        await self.db.delete(company)
        await self.db.commit()
        logger.info("Company deleted: %s", company.name)

    # ==================== MATERIALS ====================

    async def _get_material(self, company_id: uuid.UUID, material_id: uuid.UUID) -> CompanyMaterial:
        result = await self.db.execute(
            select(CompanyMaterial).where(
                CompanyMaterial.id == material_id,
                CompanyMaterial.company_id == company_id,
            )
        )
        material = result.scalar_one_or_none()
        if material is None:
            raise NotFoundError("Material", material_id)
        return material

    async def _check_material_name(
        self,
        company_id: uuid.UUID,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        stmt = select(CompanyMaterial.id).where(
            CompanyMaterial.company_id == company_id,
            func.lower(CompanyMaterial.material_name) == name.strip().lower(),
        )
        if exclude_id:
            stmt = stmt.where(CompanyMaterial.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise ConflictError(
                f"Material '{name}' already exists for this company",
                {"material_name": name},
            )

    async def get_materials(self, company_id: uuid.UUID) -> List[CompanyMaterial]:
        company = await self.get_company(company_id)
        return list(company.materials)

    async def add_material(self, company_id: uuid.UUID, data: CompanyMaterialCreate) -> CompanyMaterial:
        await self.get_company(company_id)
        await self._check_material_name(company_id, data.material_name)

        material = CompanyMaterial(
            company_id=company_id,
            material_name=data.material_name.strip(),
            rate=data.rate,
            unit=data.unit.value,
        )
        self.db.add(material)
        await self.db.commit()
        await self.db.refresh(material)
        return material

    async def update_material(
        self,
        company_id: uuid.UUID,
        material_id: uuid.UUID,
        data: CompanyMaterialUpdate,
    ) -> CompanyMaterial:
        material = await self._get_material(company_id, material_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("material_name"):
            await self._check_material_name(company_id, update_data["material_name"], material.id)
            update_data["material_name"] = update_data["material_name"].strip()
        if update_data.get("unit") is not None:
            update_data["unit"] = update_data["unit"].value

        for key, value in update_data.items():
            if value is not None:
                setattr(material, key, value)

        await self.db.commit()
        await self.db.refresh(material)
        return material

    async def remove_material(self, company_id: uuid.UUID, material_id: uuid.UUID) -> None:
        material = await self._get_material(company_id, material_id)
        await self.db.delete(material)
        await self.db.commit()

    # ==================== STATS ====================

    async def get_stats(self, company_id: uuid.UUID) -> Dict[str, Any]:
        """Invoice totals and inward volumes for one company."""
        await self.get_company(company_id)

        count, invoiced, paid = (await self.db.execute(
            select(
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.company_id == company_id)
        )).one()
        stats = _totals_row(count, invoiced, paid)

        rows = (await self.db.execute(
            select(InwardEntry.quantity, InwardEntry.unit, InwardEntry.invoice_id)
            .where(InwardEntry.company_id == company_id)
        )).all()
        quantity = sum((to_metric_tons(q, u) for q, u, _ in rows), ZERO)

        stats.update(
            inward_count=len(rows),
            unbilled_count=sum(1 for _, _, invoice_id in rows if invoice_id is None),
            total_quantity_mt=quantity.quantize(Decimal("0.001")),
        )
        return stats

    async def get_global_stats(self) -> Dict[str, Any]:
        """Totals over every company: Inward billing and unbilled receipts."""
        company_count = (await self.db.execute(select(func.count(Company.id)))).scalar() or 0

        count, invoiced, paid = (await self.db.execute(
            select(
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).where(Invoice.company_id.is_not(None))
        )).one()
        stats = _totals_row(count, invoiced, paid)
        # Overpaid invoices do not offset other companies' dues
        stats["total_pending"] = max(stats["total_pending"], ZERO)

        unbilled = (await self.db.execute(
            select(func.count(InwardEntry.id)).where(InwardEntry.invoice_id.is_(None))
        )).scalar() or 0

        stats.update(company_count=company_count, unbilled_count=unbilled)
        return stats

    async def get_unbilled_entries(self, company_id: uuid.UUID) -> List[InwardEntry]:
        """Inward entries of this company not yet on any invoice, oldest first."""
        await self.get_company(company_id)
        result = await self.db.execute(
            select(InwardEntry)
            .options(
                selectinload(InwardEntry.company),
                selectinload(InwardEntry.transporter),
                selectinload(InwardEntry.invoice),
            )
            .where(InwardEntry.company_id == company_id, InwardEntry.invoice_id.is_(None))
            .order_by(InwardEntry.date, InwardEntry.sr_no)
        )
        return list(result.scalars().all())
