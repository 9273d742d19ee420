"""Inward entry model: waste received from a generator company."""
import uuid
from datetime import datetime, timezone
from datetime import date as date_type
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Date, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, QuantityType, RateType

if TYPE_CHECKING:
    from app.models.company import Company
    from app.models.transporter import Transporter
    from app.models.invoice import Invoice


class InwardEntry(Base):
    """
    A single physical receipt of waste.

    Created by data-entry staff, linked to an Inward invoice at billing time.
    Manifest numbers are unique per generator company.
    """
    __tablename__ = "inward_entries"
    __table_args__ = (
        UniqueConstraint("company_id", "manifest_number", name="uq_inward_company_manifest"),
        Index("ix_inward_entries_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    sr_no: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    month: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    lot_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        comment="LOT-YYYYMM-NNNN"
    )

    company_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    transporter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("transporters.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    manifest_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    waste_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False, comment="MT, Kg, KL")
    rate: Mapped[Optional[Decimal]] = mapped_column(RateType, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

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

    company: Mapped["Company"] = relationship("Company", back_populates="inward_entries")
    transporter: Mapped[Optional["Transporter"]] = relationship(
        "Transporter", back_populates="inward_entries"
    )
    invoice: Mapped[Optional["Invoice"]] = relationship("Invoice", back_populates="inward_entries")

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None

    # Display fields; callers load company, transporter and invoice eagerly.
    @property
    def company_name(self) -> Optional[str]:
        return self.company.name if self.company else None

    @property
    def transporter_name(self) -> Optional[str]:
        return self.transporter.name if self.transporter else None

    @property
    def invoice_number(self) -> Optional[str]:
        return self.invoice.invoice_number if self.invoice else None

    def __repr__(self) -> str:
        return f"<InwardEntry(lot='{self.lot_number}', manifest='{self.manifest_number}')>"
