"""Transporter models for waste logistics."""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType

if TYPE_CHECKING:
    from app.models.inward import InwardEntry
    from app.models.outward import OutwardEntry
    from app.models.invoice import Invoice


class Transporter(Base):
    """
    Transporter model for haulage partners.
    Billed through Outward and Transporter invoices; linked to entries by FK.
    """
    __tablename__ = "transporters"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    transporter_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Business-assigned transporter ID e.g., TR-001"
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Contact
    contact: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # GST Details
    gst_number: Mapped[Optional[str]] = mapped_column(
        String(15),
        nullable=True,
        comment="Transporter GSTIN"
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
    inward_entries: Mapped[List["InwardEntry"]] = relationship(
        "InwardEntry",
        back_populates="transporter",
    )
    outward_entries: Mapped[List["OutwardEntry"]] = relationship(
        "OutwardEntry",
        back_populates="transporter",
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="transporter",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Transporter(code='{self.transporter_code}', name='{self.name}')>"
