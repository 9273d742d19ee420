"""Client company (waste generator) models.

A company is billed through Inward invoices. Each company carries its own
material rate list, which is the first source of rates when unbilled inward
entries are imported into an invoice.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, RateType

if TYPE_CHECKING:
    from app.models.inward import InwardEntry
    from app.models.invoice import Invoice


class Company(Base):
    """
    Company Master - a waste generator that sends material for disposal.
    Identified by its GST number when one is recorded.
    """
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    gst_number: Mapped[Optional[str]] = mapped_column(
        String(15),
        unique=True,
        nullable=True,
        comment="GSTIN, unique business identifier"
    )

    # Contact
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    contact: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

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
    materials: Mapped[List["CompanyMaterial"]] = relationship(
        "CompanyMaterial",
        back_populates="company",
        cascade="all, delete-orphan",
        order_by="CompanyMaterial.created_at",
    )
    inward_entries: Mapped[List["InwardEntry"]] = relationship(
        "InwardEntry",
        back_populates="company",
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="company",
        passive_deletes=True,
    )

    def rate_for(self, material_name: str) -> Optional[Decimal]:
        """Configured rate for a material, matched case-insensitively on name."""
        wanted = material_name.strip().lower()
        for material in self.materials:
            if material.material_name.strip().lower() == wanted and material.rate is not None:
                return material.rate
        return None

    def __repr__(self) -> str:
        return f"<Company(name='{self.name}', gst_number='{self.gst_number}')>"


class CompanyMaterial(Base):
    """Per-company material rate card entry."""
    __tablename__ = "company_materials"
    __table_args__ = (
        UniqueConstraint("company_id", "material_name", name="uq_company_material_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    material_name: Mapped[str] = mapped_column(String(200), nullable=False)
    rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False, default="MT")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    company: Mapped["Company"] = relationship("Company", back_populates="materials")
