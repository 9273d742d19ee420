"""Invoice models.

Supports:
- Inward invoices billed to a generator company
- Outward and Transporter invoices billed to a transporter
- CGST/SGST computed on the material subtotal, flat additional charges
- Payment tracking with a derived payment status
"""
import uuid
from datetime import datetime, timezone
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, MoneyType, QuantityType, RateType

if TYPE_CHECKING:
    from app.models.company import Company
    from app.models.transporter import Transporter
    from app.models.inward import InwardEntry
    from app.models.outward import OutwardEntry


class InvoiceType(str, Enum):
    """Invoice type enumeration. Fixed at creation."""
    INWARD = "Inward"            # Billed to a generator company
    OUTWARD = "Outward"          # Dispatch billed against a transporter
    TRANSPORTER = "Transporter"  # Freight billed by a transporter


class PaymentStatus(str, Enum):
    """Derived from grand_total and payment_received, never set directly."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class MaterialUnit(str, Enum):
    """Quantity units accepted on entries and invoice lines."""
    MT = "MT"
    KG = "Kg"
    KL = "KL"


class Invoice(Base):
    """
    Invoice header.

    grand_total and status are maintained by InvoiceService; every write that
    touches totals or payment recomputes both in the same flush.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("ix_invoices_type_date", "type", "date"),
        Index("ix_invoices_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    invoice_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="e.g. INV-202406-0001"
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Inward, Outward, Transporter"
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False)

    # Party (exactly one, depending on type)
    company_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    transporter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("transporters.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Document details
    gst_number: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    billed_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shipped_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    po_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    po_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    custom_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    custom_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    cgst_rate: Mapped[Decimal] = mapped_column(RateType, default=Decimal("0"), nullable=False)
    sgst_rate: Mapped[Decimal] = mapped_column(RateType, default=Decimal("0"), nullable=False)
    cgst: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    sgst: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    additional_charges: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False,
        comment="Untaxed flat charges"
    )
    grand_total: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)

    # Payment
    payment_received: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False
    )
    payment_received_on: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, paid"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    company: Mapped[Optional["Company"]] = relationship("Company", back_populates="invoices")
    transporter: Mapped[Optional["Transporter"]] = relationship(
        "Transporter", back_populates="invoices"
    )
    materials: Mapped[List["InvoiceMaterial"]] = relationship(
        "InvoiceMaterial",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceMaterial.line_number",
    )
    manifests: Mapped[List["InvoiceManifest"]] = relationship(
        "InvoiceManifest",
        back_populates="invoice",
        cascade="all, delete-orphan",
    )
    inward_entries: Mapped[List["InwardEntry"]] = relationship(
        "InwardEntry",
        back_populates="invoice",
    )
    outward_entries: Mapped[List["OutwardEntry"]] = relationship(
        "OutwardEntry",
        back_populates="invoice",
    )

    @property
    def material_lines(self) -> List["InvoiceMaterial"]:
        return [m for m in self.materials if not m.is_additional_charge]

    @property
    def additional_charge_lines(self) -> List["InvoiceMaterial"]:
        return [m for m in self.materials if m.is_additional_charge]

    @property
    def balance_due(self) -> Decimal:
        return self.grand_total - self.payment_received

    @property
    def inward_entry_ids(self) -> List[uuid.UUID]:
        return [entry.id for entry in self.inward_entries]

    @property
    def outward_entry_ids(self) -> List[uuid.UUID]:
        return [entry.id for entry in self.outward_entries]

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', type='{self.type}', total={self.grand_total})>"


class InvoiceMaterial(Base):
    """Invoice line. Additional charges are stored as flagged lines."""
    __tablename__ = "invoice_materials"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    material_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    manifest_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    rate: Mapped[Decimal] = mapped_column(RateType, default=Decimal("0"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    is_additional_charge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="materials")

    def __repr__(self) -> str:
        return f"<InvoiceMaterial(material='{self.material_name}', amount={self.amount})>"


class InvoiceManifest(Base):
    """Manifest number covered by an invoice."""
    __tablename__ = "invoice_manifests"
    __table_args__ = (
        UniqueConstraint("invoice_id", "manifest_number", name="uq_invoice_manifest_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    manifest_number: Mapped[str] = mapped_column(String(50), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="manifests")
