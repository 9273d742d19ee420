"""Outward entry model: waste dispatched to a cement company."""
import uuid
from datetime import datetime, timezone
from datetime import date as date_type
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Date, ForeignKey, Integer
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, QuantityType, RateType, MoneyType

if TYPE_CHECKING:
    from app.models.transporter import Transporter
    from app.models.invoice import Invoice


class OutwardEntry(Base):
    """
    A single physical dispatch of waste.

    The receiving cement company is free text (display only). The hauling
    transporter is a real foreign key; manifest numbers are unique per
    transporter. Dispatches without a transporter are checked per cement
    company in OutwardService.
    """
    __tablename__ = "outward_entries"
    __table_args__ = (
        UniqueConstraint("transporter_id", "manifest_number", name="uq_outward_transporter_manifest"),
        Index("ix_outward_entries_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    sr_no: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    month: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    cement_company: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    manifest_number: Mapped[str] = mapped_column(String(50), nullable=False)

    transporter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("transporters.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vehicle_capacity: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    waste_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False, comment="MT, Kg, KL")
    packing: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Freight charges
    rate: Mapped[Optional[Decimal]] = mapped_column(RateType, nullable=True)
    amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    gst: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    det_charges: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True,
        comment="Detention charges"
    )
    gross_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    paid_on: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    due_on: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)

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

    transporter: Mapped[Optional["Transporter"]] = relationship(
        "Transporter", back_populates="outward_entries"
    )
    invoice: Mapped[Optional["Invoice"]] = relationship("Invoice", back_populates="outward_entries")

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None

    @property
    def transporter_name(self) -> Optional[str]:
        return self.transporter.name if self.transporter else None

    @property
    def invoice_number(self) -> Optional[str]:
        return self.invoice.invoice_number if self.invoice else None

    def __repr__(self) -> str:
        return f"<OutwardEntry(sr_no={self.sr_no}, manifest='{self.manifest_number}')>"
