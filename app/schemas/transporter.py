"""Pydantic schemas for Transporter models."""
from pydantic import Field

from app.schemas.base import (
    BaseCreateSchema,
    BaseUpdateSchema,
    BaseResponseSchema,
    DecimalNumber,
    ListResponse,
)
from typing import Optional, List
from datetime import datetime
from datetime import date as date_type
import uuid


# ==================== TRANSPORTER SCHEMAS ====================

class TransporterCreate(BaseCreateSchema):
    """Transporter creation schema."""
    transporter_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)

    # Contact
    contact: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None

    gst_number: Optional[str] = Field(None, max_length=15)


class TransporterUpdate(BaseUpdateSchema):
    """Transporter update schema."""
    transporter_code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=15)


class TransporterResponse(BaseResponseSchema):
    """Transporter response schema."""
    id: uuid.UUID
    transporter_code: str
    name: str
    contact: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TransporterListResponse(ListResponse):
    """Response for listing transporters."""
    items: List[TransporterResponse]


class TransporterStats(BaseResponseSchema):
    """Invoice totals and entry counts for one transporter."""
    invoice_count: int = 0
    total_invoiced: DecimalNumber = 0
    total_paid: DecimalNumber = 0
    total_pending: DecimalNumber = 0
    inward_count: int = 0
    outward_count: int = 0
    unbilled_outward_count: int = 0


class TransporterGlobalStats(BaseResponseSchema):
    """Outward billing totals across all transporters."""
    transporter_count: int = 0
    invoice_count: int = 0
    total_invoiced: DecimalNumber = 0
    total_paid: DecimalNumber = 0
    total_pending: DecimalNumber = 0
    unbilled_outward_count: int = 0


class EntryBrief(BaseResponseSchema):
    id: uuid.UUID
    sr_no: int
    date: date_type
    manifest_number: str
    waste_name: Optional[str] = None
    quantity: DecimalNumber
    unit: str
    invoice_id: Optional[uuid.UUID] = None


class TransporterDetail(TransporterResponse):
    """Transporter with stats and its most recent entries."""
    stats: TransporterStats
    recent_inward: List[EntryBrief] = []
    recent_outward: List[EntryBrief] = []
