"""Pydantic schemas for inward entries."""
from datetime import datetime
from datetime import date as date_type
from typing import Optional, List
import uuid

from pydantic import Field

from app.models.invoice import MaterialUnit
from app.schemas.base import (
    BaseCreateSchema,
    BaseUpdateSchema,
    BaseResponseSchema,
    DecimalNumber,
    NonNegativeDecimal,
    ListResponse,
)


class InwardEntryCreate(BaseCreateSchema):
    """Inward entry creation. sr_no and lot_number are generated when omitted."""
    date: date_type
    company_id: uuid.UUID
    transporter_id: Optional[uuid.UUID] = None
    manifest_number: str = Field(..., min_length=1, max_length=50)
    vehicle_number: Optional[str] = Field(None, max_length=20)
    waste_name: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    quantity: NonNegativeDecimal
    unit: MaterialUnit = MaterialUnit.MT
    rate: Optional[NonNegativeDecimal] = None
    month: Optional[str] = Field(None, max_length=20)
    lot_number: Optional[str] = Field(None, max_length=30)
    sr_no: Optional[int] = Field(None, ge=1)
    remarks: Optional[str] = None


class InwardEntryUpdate(BaseUpdateSchema):
    date: Optional[date_type] = None
    company_id: Optional[uuid.UUID] = None
    transporter_id: Optional[uuid.UUID] = None
    manifest_number: Optional[str] = Field(None, min_length=1, max_length=50)
    vehicle_number: Optional[str] = Field(None, max_length=20)
    waste_name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    quantity: Optional[NonNegativeDecimal] = None
    unit: Optional[MaterialUnit] = None
    rate: Optional[NonNegativeDecimal] = None
    month: Optional[str] = Field(None, max_length=20)
    lot_number: Optional[str] = Field(None, max_length=30)
    remarks: Optional[str] = None


class InwardEntryResponse(BaseResponseSchema):
    """Inward entry response schema."""
    id: uuid.UUID
    sr_no: int
    date: date_type
    month: Optional[str] = None
    lot_number: str
    company_id: uuid.UUID
    company_name: Optional[str] = None
    transporter_id: Optional[uuid.UUID] = None
    transporter_name: Optional[str] = None
    manifest_number: str
    vehicle_number: Optional[str] = None
    waste_name: str
    category: Optional[str] = None
    quantity: DecimalNumber
    unit: str
    rate: Optional[DecimalNumber] = None
    remarks: Optional[str] = None
    invoice_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InwardEntryListResponse(ListResponse):
    items: List[InwardEntryResponse]


class InwardStats(BaseResponseSchema):
    """Totals over inward entries; money sums come from distinct linked invoices."""
    total_entries: int = 0
    total_quantity: DecimalNumber = 0
    invoiced_entries: int = 0
    unbilled_entries: int = 0
    total_invoiced: DecimalNumber = 0
    total_received: DecimalNumber = 0
