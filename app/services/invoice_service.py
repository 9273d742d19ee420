"""Invoice Service: builds, updates and deletes invoices as one unit.

Creation flow (one savepoint per attempt):
    validate party -> import entries -> calculate totals
    -> allocate number -> resolve status -> persist invoice, lines,
    manifests and entry links in a single flush

A failure at any step rolls the savepoint back, so no half-built invoice,
orphan line or linked entry is ever visible. Unique-constraint failures on
the invoice number are retried with a fresh number; every other store error
is translated to the typed errors in app.core.exceptions here and nowhere else.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import uuid

from sqlalchemy import select, func, update, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.company import Company
from app.models.inward import InwardEntry
from app.models.invoice import Invoice, InvoiceManifest, InvoiceMaterial, InvoiceType
from app.models.outward import OutwardEntry
from app.models.transporter import Transporter
from app.schemas.invoice import (
    AdditionalChargeInput,
    InvoiceCreate,
    InvoiceMaterialInput,
    InvoiceUpdate,
)
from app.services.invoice_calculations import (
    InvoiceConfig,
    InvoiceTotals,
    LineItem,
    ZERO,
    as_money,
    calculate_totals,
    line_amount,
    resolve_status,
    to_decimal,
)
from app.services.invoice_number_service import InvoiceNumberService


logger = logging.getLogger(__name__)


DOCUMENT_FIELDS = (
    "customer_name",
    "gst_number",
    "billed_to",
    "shipped_to",
    "description",
    "po_number",
    "po_date",
    "vehicle_number",
    "custom_key",
    "custom_value",
)

SORTABLE_FIELDS = {
    "created_at": Invoice.created_at,
    "date": Invoice.date,
    "invoice_number": Invoice.invoice_number,
    "grand_total": Invoice.grand_total,
    "customer_name": Invoice.customer_name,
    "status": Invoice.status,
}

TRANSPORTER_BILLED = (InvoiceType.OUTWARD.value, InvoiceType.TRANSPORTER.value)


@dataclass
class _Line:
    """A line before it becomes an InvoiceMaterial row."""
    material_name: str
    quantity: Decimal
    rate: Decimal
    unit: Optional[str] = None
    description: Optional[str] = None
    manifest_number: Optional[str] = None
    amount: Optional[Decimal] = None

    def as_item(self) -> LineItem:
        return LineItem(quantity=self.quantity, rate=self.rate, amount=self.amount)


def _is_invoice_number_conflict(exc: IntegrityError) -> bool:
    return "invoice_number" in str(exc.orig)


def _unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class InvoiceService:
    """
    Invoice aggregate operations.

    `config` is the settings snapshot (tax rates, numbering format) for this
    request; callers load it with SettingsService.load_invoice_config().
    """

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[InvoiceConfig] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.config = config or InvoiceConfig()
        self.max_attempts = max_attempts or settings.INVOICE_NUMBER_MAX_ATTEMPTS
        self.numbers = InvoiceNumberService(db)

    # ==================== READ ====================

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(Invoice.materials),
            selectinload(Invoice.manifests),
            selectinload(Invoice.inward_entries),
            selectinload(Invoice.outward_entries),
            selectinload(Invoice.company),
            selectinload(Invoice.transporter),
        ]

    async def get_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        """Invoice with lines, manifests, entries and party loaded."""
        result = await self.db.execute(
            select(Invoice)
            .options(*self._load_options())
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def get_invoice_by_number(self, invoice_number: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .options(*self._load_options())
            .where(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one_or_none()

    async def list_invoices(
        self,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        company_id: Optional[uuid.UUID] = None,
        transporter_id: Optional[uuid.UUID] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Invoice], int, Decimal]:
        """
        Paginated invoices.

        `status` accepts a comma separated list (e.g. "pending,partial").

        Returns:
            (invoices, total count, sum of grand_total over the filter)
        """
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Invoice.invoice_number.ilike(pattern),
                Invoice.customer_name.ilike(pattern),
            ))
        if type:
            filters.append(Invoice.type == type)
        if status:
            statuses = [s.strip() for s in status.split(",") if s.strip()]
            filters.append(Invoice.status.in_(statuses))
        if start_date:
            filters.append(Invoice.date >= start_date)
        if end_date:
            filters.append(Invoice.date <= end_date)
        if company_id:
            filters.append(Invoice.company_id == company_id)
        if transporter_id:
            filters.append(Invoice.transporter_id == transporter_id)

        where = and_(*filters) if filters else None

        count_stmt = select(func.count(Invoice.id), func.coalesce(func.sum(Invoice.grand_total), 0))
        if where is not None:
            count_stmt = count_stmt.where(where)
        total, total_value = (await self.db.execute(count_stmt)).one()

        column = SORTABLE_FIELDS.get(sort_by, Invoice.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        stmt = select(Invoice).order_by(order, Invoice.invoice_number.desc())
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.offset((page - 1) * size).limit(size)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total or 0, as_money(total_value)

    async def get_stats(self, type: Optional[str] = None) -> Dict[str, Any]:
        """Counts and sums overall, by type and by status."""
        base = select(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.sum(Invoice.payment_received), 0),
        )
        if type:
            base = base.where(Invoice.type == type)
        count, invoiced, received = (await self.db.execute(base)).one()
        invoiced = as_money(invoiced)
        received = as_money(received)

        async def grouped(column) -> List[Dict[str, Any]]:
            stmt = select(
                column,
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.payment_received), 0),
            ).group_by(column).order_by(column)
            if type:
                stmt = stmt.where(Invoice.type == type)
            rows = (await self.db.execute(stmt)).all()
            return [
                {
                    "key": key,
                    "count": n,
                    "total_invoiced": as_money(total),
                    "total_received": as_money(paid),
                }
                for key, n, total, paid in rows
            ]

        return {
            "total_invoices": count or 0,
            "total_invoiced": invoiced,
            "total_received": received,
            "total_pending": invoiced - received,
            "by_type": await grouped(Invoice.type),
            "by_status": await grouped(Invoice.status),
        }

    async def preview_next_number(self, invoice_date: date) -> str:
        return await self.numbers.preview_next_number(invoice_date, self.config.number_format)

    # ==================== BUILD HELPERS ====================

    async def _resolve_party(
        self,
        invoice_type: str,
        company_id: Optional[uuid.UUID],
        transporter_id: Optional[uuid.UUID],
    ) -> Tuple[Optional[Company], Optional[Transporter]]:
        """Check the party fits the invoice type and load it."""
        if invoice_type == InvoiceType.INWARD.value:
            if transporter_id:
                raise ValidationError(
                    "Inward invoices are billed to a company; transporter_id is not allowed",
                    {"field": "transporter_id"},
                )
            if not company_id:
                raise ValidationError("Company ID is required for Inward invoices", {"field": "company_id"})
            result = await self.db.execute(
                select(Company)
                .options(selectinload(Company.materials))
                .where(Company.id == company_id)
                .execution_options(populate_existing=True)
            )
            company = result.scalar_one_or_none()
            if company is None:
                raise NotFoundError("Company", company_id)
            return company, None

        if invoice_type in TRANSPORTER_BILLED:
            if company_id:
                raise ValidationError(
                    f"{invoice_type} invoices are billed to a transporter; company_id is not allowed",
                    {"field": "company_id"},
                )
            if not transporter_id:
                raise ValidationError(
                    "Transporter ID is required for Outward/Transporter invoices",
                    {"field": "transporter_id"},
                )
            transporter = await self.db.get(Transporter, transporter_id, populate_existing=True)
            if transporter is None:
                raise NotFoundError("Transporter", transporter_id)
            return None, transporter

        raise ValidationError(
            "Invalid invoice type. Must be Inward, Outward, or Transporter",
            {"field": "type"},
        )

    async def _load_entries(
        self,
        invoice_type: str,
        inward_ids: Sequence[uuid.UUID],
        outward_ids: Sequence[uuid.UUID],
        company: Optional[Company],
        transporter: Optional[Transporter],
        invoice_id: Optional[uuid.UUID] = None,
    ) -> List[Any]:
        """
        Load entries to bill and check they may be linked.

        Entries already on `invoice_id` are accepted (updates); entries on any
        other invoice raise ConflictError.
        """
        if invoice_type == InvoiceType.INWARD.value:
            if outward_ids:
                raise ValidationError(
                    "Outward entries cannot be billed on an Inward invoice",
                    {"field": "outward_entry_ids"},
                )
            model, ids, label = InwardEntry, _unique(inward_ids), "Inward entry"
        else:
            if inward_ids:
                raise ValidationError(
                    f"Inward entries cannot be billed on an {invoice_type} invoice",
                    {"field": "inward_entry_ids"},
                )
            model, ids, label = OutwardEntry, _unique(outward_ids), "Outward entry"

        if not ids:
            return []

        result = await self.db.execute(
            select(model)
            .options(selectinload(model.invoice))
            .where(model.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        found = {entry.id: entry for entry in result.scalars().all()}

        entries = []
        for entry_id in ids:
            entry = found.get(entry_id)
            if entry is None:
                raise NotFoundError(label, entry_id)

            if entry.invoice_id is not None and entry.invoice_id != invoice_id:
                raise ConflictError(
                    f"Manifest {entry.manifest_number} is already linked to invoice "
                    f"{entry.invoice.invoice_number}",
                    {"entry_id": str(entry.id), "invoice_id": str(entry.invoice_id)},
                )

            if company is not None and entry.company_id != company.id:
                raise ValidationError(
                    f"Manifest {entry.manifest_number} belongs to a different company",
                    {"entry_id": str(entry.id)},
                )
            # Outward entries without a transporter can be billed to any transporter
            if (
                transporter is not None
                and entry.transporter_id is not None
                and entry.transporter_id != transporter.id
            ):
                raise ValidationError(
                    f"Manifest {entry.manifest_number} belongs to a different transporter",
                    {"entry_id": str(entry.id)},
                )
            entries.append(entry)
        return entries

    @staticmethod
    def _entry_line(entry: Any, company: Optional[Company]) -> _Line:
        """One material line for an imported entry."""
        rate = company.rate_for(entry.waste_name) if company is not None else None
        if rate is None:
            rate = entry.rate

        amount = None
        if rate is None:
            # Outward dispatches may carry only a freight amount
            amount = getattr(entry, "amount", None)
            if amount is None:
                raise ValidationError(
                    f"No rate found for '{entry.waste_name}' (manifest {entry.manifest_number}); "
                    "add it to the rate list or set a rate on the entry",
                    {"entry_id": str(entry.id)},
                )

        return _Line(
            material_name=entry.waste_name or "Waste disposal",
            quantity=Decimal(str(entry.quantity)),
            rate=Decimal(str(rate)) if rate is not None else ZERO,
            unit=entry.unit,
            manifest_number=entry.manifest_number,
            amount=Decimal(str(amount)) if amount is not None else None,
        )

    @staticmethod
    def _input_line(material: InvoiceMaterialInput) -> _Line:
        return _Line(
            material_name=material.material_name,
            quantity=material.quantity,
            rate=material.rate,
            unit=_enum_value(material.unit),
            description=material.description,
            manifest_number=material.manifest_number,
            amount=material.amount,
        )

    @staticmethod
    def _row_line(row: InvoiceMaterial) -> _Line:
        return _Line(
            material_name=row.material_name,
            quantity=row.quantity,
            rate=row.rate,
            unit=row.unit,
            description=row.description,
            manifest_number=row.manifest_number,
            amount=row.amount,
        )

    @staticmethod
    def _charge_rows(
        charges: Sequence[AdditionalChargeInput],
        flat_amount: Optional[Decimal],
    ) -> Tuple[List[InvoiceMaterial], Decimal]:
        """Rows and total for additional charges. A flat amount becomes one row."""
        rows = []
        total = ZERO
        if charges:
            for i, charge in enumerate(charges):
                amount = line_amount(
                    LineItem(quantity=charge.quantity, rate=charge.rate, amount=charge.amount), i
                )
                rows.append(InvoiceMaterial(
                    material_name=charge.description or "Additional Charge",
                    description=charge.description,
                    quantity=charge.quantity,
                    unit=charge.unit,
                    rate=charge.rate if charge.amount is None else amount,
                    amount=amount,
                    is_additional_charge=True,
                ))
                total += amount
        elif flat_amount:
            amount = to_decimal(flat_amount, "additional_charges")
            if amount > 0:
                rows.append(InvoiceMaterial(
                    material_name="Additional Charges",
                    quantity=Decimal("1"),
                    rate=amount,
                    amount=amount,
                    is_additional_charge=True,
                ))
                total = amount
        return rows, total

    @staticmethod
    def _material_rows(lines: Sequence[_Line], totals: InvoiceTotals) -> List[InvoiceMaterial]:
        return [
            InvoiceMaterial(
                material_name=line.material_name,
                description=line.description,
                manifest_number=line.manifest_number,
                quantity=line.quantity,
                unit=line.unit,
                rate=line.rate,
                amount=amount,
                is_additional_charge=False,
            )
            for line, amount in zip(lines, totals.line_amounts)
        ]

    @staticmethod
    def _number_lines(rows: Sequence[InvoiceMaterial]) -> None:
        for i, row in enumerate(rows, start=1):
            row.line_number = i

    @staticmethod
    def _sync_manifests(invoice: Invoice, numbers: Sequence[str]) -> None:
        """Make invoice.manifests match `numbers`, reusing rows that stay."""
        wanted = _unique(n.strip() for n in numbers if n and n.strip())
        existing = {m.manifest_number: m for m in invoice.manifests}
        invoice.manifests = [
            existing.get(number) or InvoiceManifest(manifest_number=number)
            for number in wanted
        ]

    @staticmethod
    def _apply_totals(invoice: Invoice, totals: InvoiceTotals, payment_received: Decimal) -> None:
        invoice.subtotal = totals.subtotal
        invoice.cgst_rate = totals.cgst_rate
        invoice.sgst_rate = totals.sgst_rate
        invoice.cgst = totals.cgst
        invoice.sgst = totals.sgst
        invoice.additional_charges = totals.additional_charges
        invoice.grand_total = totals.grand_total
        invoice.payment_received = payment_received
        invoice.status = resolve_status(totals.grand_total, payment_received)

    def _add_entry_line(self, invoice: Invoice, entry: Any) -> None:
        """Append a billed entry as a material line and recompute totals at the invoice's rates."""
        material_rows = list(invoice.material_lines)
        lines = [self._row_line(row) for row in material_rows]
        lines.append(self._entry_line(entry, invoice.company))

        totals = calculate_totals(
            [line.as_item() for line in lines],
            self.config,
            additional_charges=invoice.additional_charges,
            cgst_rate=invoice.cgst_rate,
            sgst_rate=invoice.sgst_rate,
        )
        line = lines[-1]
        new_row = InvoiceMaterial(
            material_name=line.material_name,
            manifest_number=line.manifest_number,
            quantity=line.quantity,
            unit=line.unit,
            rate=line.rate,
            amount=totals.line_amounts[-1],
            is_additional_charge=False,
        )

        rows = material_rows + [new_row] + list(invoice.additional_charge_lines)
        self._number_lines(rows)
        invoice.materials = rows
        self._apply_totals(invoice, totals, invoice.payment_received)

    async def _build_invoice(self, data: InvoiceCreate) -> Invoice:
        """Steps 1-6 of creation. Flushes but never commits."""
        invoice_type = _enum_value(data.type)

        # 1. Party
        company, transporter = await self._resolve_party(
            invoice_type, data.company_id, data.transporter_id
        )

        # 2. Entries to import
        entries = await self._load_entries(
            invoice_type, data.inward_entry_ids, data.outward_entry_ids, company, transporter
        )
        lines = [self._input_line(m) for m in data.materials]
        lines += [self._entry_line(entry, company) for entry in entries]

        # 3. Totals
        charge_rows, charge_total = self._charge_rows(
            data.additional_charges_list, data.additional_charges
        )
        totals = calculate_totals(
            [line.as_item() for line in lines],
            self.config,
            subtotal=data.subtotal,
            additional_charges=charge_total,
            cgst_rate=data.cgst_rate,
            sgst_rate=data.sgst_rate,
        )

        # 4. Number
        if data.invoice_number:
            invoice_number = data.invoice_number.strip()
            if await self.numbers.exists(invoice_number):
                raise ConflictError(
                    f"Invoice number {invoice_number} already exists",
                    {"invoice_number": invoice_number},
                )
        else:
            invoice_number = await self.numbers.next_number(data.date, self.config.number_format)

        party = company or transporter
        invoice = Invoice(
            invoice_number=invoice_number,
            type=invoice_type,
            date=data.date,
            company_id=company.id if company else None,
            transporter_id=transporter.id if transporter else None,
            payment_received_on=data.payment_received_on,
        )
        for name in DOCUMENT_FIELDS:
            setattr(invoice, name, getattr(data, name))
        invoice.customer_name = (data.customer_name or "").strip() or party.name
        if not invoice.gst_number:
            invoice.gst_number = party.gst_number

        # 5. Status
        payment = to_decimal(data.payment_received, "payment_received")
        self._apply_totals(invoice, totals, payment)

        # 6. Persist in one flush
        rows = self._material_rows(lines, totals) + charge_rows
        self._number_lines(rows)
        invoice.materials = rows
        invoice.manifests = [
            InvoiceManifest(manifest_number=number)
            for number in _unique(
                [n.strip() for n in data.manifest_numbers if n and n.strip()]
                + [line.manifest_number for line in lines]
            )
        ]
        if invoice_type == InvoiceType.INWARD.value:
            invoice.inward_entries = entries
        else:
            invoice.outward_entries = entries

        self.db.add(invoice)
        await self.db.flush()
        return invoice

    # ==================== WRITE ====================

    async def create_invoice(self, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice with its lines, manifests and entry links.

        Raises:
            ValidationError: bad party, entry kind or amounts
            NotFoundError: party or entry missing
            ConflictError: entry already billed, explicit number taken, or
                no free number after INVOICE_NUMBER_MAX_ATTEMPTS tries
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self.db.begin_nested():
                    invoice = await self._build_invoice(data)
            except IntegrityError as exc:
                if not _is_invoice_number_conflict(exc):
                    logger.warning("Invoice insert rejected by the store: %s", exc.orig)
                    raise ConflictError("Invoice conflicts with existing data")
                if data.invoice_number:
                    raise ConflictError(
                        f"Invoice number {data.invoice_number} already exists",
                        {"invoice_number": data.invoice_number},
                    )
                logger.warning(
                    "Invoice number taken concurrently (attempt %d/%d), retrying",
                    attempt, self.max_attempts,
                )
                continue

            await self.db.commit()
            logger.info(
                "Invoice %s created: type=%s grand_total=%s status=%s",
                invoice.invoice_number, invoice.type, invoice.grand_total, invoice.status,
            )
            return await self.get_invoice(invoice.id)

        raise ConflictError(
            "Could not allocate a unique invoice number, please retry",
            {"attempts": self.max_attempts},
        )

    async def update_invoice(self, invoice_id: uuid.UUID, data: InvoiceUpdate) -> Invoice:
        """
        Apply a partial update and recompute totals and status.

        Lines, charges, manifests and entry links are replaced only when the
        request carries them.
        """
        invoice = await self.get_invoice(invoice_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("invoice_number") not in (None, invoice.invoice_number):
            raise ValidationError("Invoice number cannot be changed", {"field": "invoice_number"})
        if changes.get("type") is not None and _enum_value(changes["type"]) != invoice.type:
            raise ValidationError("Invoice type cannot be changed", {"field": "type"})

        async with self.db.begin_nested():
            relink = data.inward_entry_ids is not None or data.outward_entry_ids is not None
            company, transporter = invoice.company, invoice.transporter
            party_changed = False
            if "company_id" in changes or "transporter_id" in changes or relink:
                previous_party = (invoice.company_id, invoice.transporter_id)
                company, transporter = await self._resolve_party(
                    invoice.type,
                    changes.get("company_id", invoice.company_id),
                    changes.get("transporter_id", invoice.transporter_id),
                )
                invoice.company_id = company.id if company else None
                invoice.transporter_id = transporter.id if transporter else None
                party_changed = (invoice.company_id, invoice.transporter_id) != previous_party

            if party_changed and not relink:
                # Entries that stay linked must belong to the new party
                await self._load_entries(
                    invoice.type,
                    [e.id for e in invoice.inward_entries],
                    [e.id for e in invoice.outward_entries],
                    company,
                    transporter,
                    invoice_id=invoice.id,
                )

            if changes.get("date"):
                invoice.date = changes["date"]
            if "payment_received_on" in changes:
                invoice.payment_received_on = changes["payment_received_on"]
            for name in DOCUMENT_FIELDS:
                if name in changes:
                    setattr(invoice, name, changes[name])

            party = company or transporter
            if party_changed:
                if not changes.get("customer_name"):
                    invoice.customer_name = party.name
                if not changes.get("gst_number"):
                    invoice.gst_number = party.gst_number
            elif not invoice.customer_name:
                invoice.customer_name = party.name if party else ""

            # Entry links
            previous_manifests = {
                e.manifest_number
                for e in list(invoice.inward_entries) + list(invoice.outward_entries)
            }
            entry_lines: Optional[List[_Line]] = None
            if relink:
                entries = await self._load_entries(
                    invoice.type,
                    data.inward_entry_ids or [],
                    data.outward_entry_ids or [],
                    company,
                    transporter,
                    invoice_id=invoice.id,
                )
                if invoice.type == InvoiceType.INWARD.value:
                    invoice.inward_entries = entries
                else:
                    invoice.outward_entries = entries
                entry_lines = [self._entry_line(entry, company) for entry in entries]

            # Material lines
            material_rows = invoice.material_lines
            lines_replaced = data.materials is not None or relink
            if data.materials is not None:
                lines = [self._input_line(m) for m in data.materials]
            elif relink:
                # Keep manual lines, replace the ones billed from entries
                lines = [
                    self._row_line(row) for row in material_rows
                    if row.manifest_number not in previous_manifests
                ]
            else:
                lines = [self._row_line(row) for row in material_rows]
            lines += entry_lines or []

            # Additional charges
            charge_rows = invoice.additional_charge_lines
            charge_total = invoice.additional_charges
            if data.additional_charges_list is not None or "additional_charges" in changes:
                charge_rows, charge_total = self._charge_rows(
                    data.additional_charges_list or [],
                    data.additional_charges,
                )

            if "subtotal" in changes:
                subtotal = data.subtotal
            elif lines_replaced:
                subtotal = None
            else:
                subtotal = invoice.subtotal

            totals = calculate_totals(
                [line.as_item() for line in lines],
                self.config,
                subtotal=subtotal,
                additional_charges=charge_total,
                cgst_rate=data.cgst_rate if data.cgst_rate is not None else invoice.cgst_rate,
                sgst_rate=data.sgst_rate if data.sgst_rate is not None else invoice.sgst_rate,
            )

            payment = invoice.payment_received
            if data.payment_received is not None:
                payment = to_decimal(data.payment_received, "payment_received")
            self._apply_totals(invoice, totals, payment)

            if lines_replaced:
                material_rows = self._material_rows(lines, totals)
            rows = list(material_rows) + list(charge_rows)
            self._number_lines(rows)
            invoice.materials = rows

            if data.manifest_numbers is not None or entry_lines is not None:
                if data.manifest_numbers is not None:
                    explicit = data.manifest_numbers
                else:
                    # Manifests of released entries leave with them
                    explicit = [
                        m.manifest_number for m in invoice.manifests
                        if m.manifest_number not in previous_manifests
                    ]
                self._sync_manifests(
                    invoice,
                    list(explicit) + [line.manifest_number for line in entry_lines or []],
                )

            await self.db.flush()

        await self.db.commit()
        logger.info(
            "Invoice %s updated: grand_total=%s status=%s",
            invoice.invoice_number, invoice.grand_total, invoice.status,
        )
        return await self.get_invoice(invoice.id)

    async def update_payment(
        self,
        invoice_id: uuid.UUID,
        payment_received: Any,
        payment_received_on: Optional[date] = None,
    ) -> Invoice:
        """Replace the recorded payment and recompute status."""
        invoice = await self.get_invoice(invoice_id)
        payment = to_decimal(payment_received, "payment_received")

        invoice.payment_received = payment
        invoice.payment_received_on = payment_received_on
        invoice.status = resolve_status(invoice.grand_total, payment)

        await self.db.commit()
        logger.info(
            "Payment updated on invoice %s: received=%s status=%s",
            invoice.invoice_number, payment, invoice.status,
        )
        return await self.get_invoice(invoice.id)

    async def delete_invoice(self, invoice_id: uuid.UUID) -> int:
        """
        Delete an invoice. Linked entries become unbilled; lines and manifests go with it.

        Returns:
            Number of entries unlinked
        """
        invoice = await self.get_invoice(invoice_id)
        number = invoice.invoice_number

        inward = await self.db.execute(
            update(InwardEntry)
            .where(InwardEntry.invoice_id == invoice_id)
            .values(invoice_id=None)
            .execution_options(synchronize_session="fetch")
        )
        outward = await self.db.execute(
            update(OutwardEntry)
            .where(OutwardEntry.invoice_id == invoice_id)
            .values(invoice_id=None)
            .execution_options(synchronize_session="fetch")
        )
        unlinked = (inward.rowcount or 0) + (outward.rowcount or 0)

        await self.db.delete(invoice)
        await self.db.commit()
        logger.info("Invoice %s deleted, %d entries unlinked", number, unlinked)
        return unlinked

    async def ensure_outward_invoice(self, invoice_number: str, entry: OutwardEntry) -> Invoice:
        """
        Bill an outward entry on the Outward invoice numbered `invoice_number`.

        An existing invoice gets the entry linked as a new line, its manifest
        recorded and its totals recomputed; otherwise a new invoice is built
        from the entry. Flushes only; the
        caller owns the transaction.
        """
        invoice_number = invoice_number.strip()
        existing = await self.get_invoice_by_number(invoice_number)

        if existing is not None:
            if existing.type != InvoiceType.OUTWARD.value:
                raise ConflictError(
                    f"Invoice {invoice_number} exists and is not an Outward invoice",
                    {"invoice_number": invoice_number},
                )
            if entry.transporter_id and existing.transporter_id not in (None, entry.transporter_id):
                raise ValidationError(
                    f"Invoice {invoice_number} is billed to a different transporter",
                    {"invoice_number": invoice_number},
                )
            self._add_entry_line(existing, entry)
            entry.invoice_id = existing.id
            if entry.manifest_number not in {m.manifest_number for m in existing.manifests}:
                existing.manifests.append(InvoiceManifest(manifest_number=entry.manifest_number))
            await self.db.flush()
            logger.info(
                "Outward entry %s added to invoice %s: grand_total=%s",
                entry.manifest_number, existing.invoice_number, existing.grand_total,
            )
            return existing

        if entry.transporter_id is None:
            raise ValidationError(
                "A transporter is required to raise an Outward invoice for this entry",
                {"field": "transporter_id"},
            )

        return await self._build_invoice(InvoiceCreate(
            type=InvoiceType.OUTWARD,
            date=entry.date,
            transporter_id=entry.transporter_id,
            invoice_number=invoice_number,
            customer_name=entry.cement_company,
            outward_entry_ids=[entry.id],
        ))
