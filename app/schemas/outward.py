"""Pydantic schemas for outward entries."""
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


class OutwardEntryCreate(BaseCreateSchema):
    """
    Outward entry creation.

    amount defaults to rate x quantity, gross_amount to amount + det_charges + gst.
    When invoice_number is given the entry is billed on that Outward invoice,
    which is created if it does not exist yet.
    """
    date: date_type
    cement_company: str = Field(..., min_length=1, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    manifest_number: str = Field(..., min_length=1, max_length=50)
    transporter_id: Optional[uuid.UUID] = None
    vehicle_number: Optional[str] = Field(None, max_length=20)
    vehicle_capacity: Optional[str] = Field(None, max_length=20)
    waste_name: Optional[str] = Field(None, max_length=200)
    quantity: NonNegativeDecimal
    unit: MaterialUnit = MaterialUnit.MT
    packing: Optional[str] = Field(None, max_length=100)
    month: Optional[str] = Field(None, max_length=20)
    sr_no: Optional[int] = Field(None, ge=1)

    rate: Optional[NonNegativeDecimal] = None
    amount: Optional[NonNegativeDecimal] = None
    gst: Optional[NonNegativeDecimal] = None
    det_charges: Optional[NonNegativeDecimal] = None
    gross_amount: Optional[NonNegativeDecimal] = None
    paid_on: Optional[date_type] = None
    due_on: Optional[date_type] = None

    invoice_number: Optional[str] = Field(None, max_length=50)


class OutwardEntryUpdate(BaseUpdateSchema):
    date: Optional[date_type] = None
    cement_company: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    manifest_number: Optional[str] = Field(None, min_length=1, max_length=50)
    transporter_id: Optional[uuid.UUID] = None
    vehicle_number: Optional[str] = Field(None, max_length=20)
    vehicle_capacity: Optional[str] = Field(None, max_length=20)
    waste_name: Optional[str] = Field(None, max_length=200)
    quantity: Optional[NonNegativeDecimal] = None
    unit: Optional[MaterialUnit] = None
    packing: Optional[str] = Field(None, max_length=100)
    month: Optional[str] = Field(None, max_length=20)

    rate: Optional[NonNegativeDecimal] = None
    amount: Optional[NonNegativeDecimal] = None
    gst: Optional[NonNegativeDecimal] = None
    det_charges: Optional[NonNegativeDecimal] = None
    gross_amount: Optional[NonNegativeDecimal] = None
    paid_on: Optional[date_type] = None
    due_on: Optional[date_type] = None


class OutwardEntryResponse(BaseResponseSchema):
    """Outward entry response schema."""
    id: uuid.UUID
    sr_no: int
    date: date_type
    month: Optional[str] = None
    cement_company: str
    location: Optional[str] = None
    manifest_number: str
    transporter_id: Optional[uuid.UUID] = None
    transporter_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    vehicle_capacity: Optional[str] = None
    waste_name: Optional[str] = None
    quantity: DecimalNumber
    unit: str
    packing: Optional[str] = None
    rate: Optional[DecimalNumber] = None
    amount: Optional[DecimalNumber] = None
    gst: Optional[DecimalNumber] = None
    det_charges: Optional[DecimalNumber] = None
    gross_amount: Optional[DecimalNumber] = None
    paid_on: Optional[date_type] = None
    due_on: Optional[date_type] = None
    invoice_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OutwardEntryListResponse(ListResponse):
    items: List[OutwardEntryResponse]


class OutwardStats(BaseResponseSchema):
    total_dispatches: int = 0
    total_quantity: DecimalNumber = 0
    invoiced_dispatches: int = 0
    unbilled_dispatches: int = 0
    total_gross_amount: DecimalNumber = 0
    total_invoiced: DecimalNumber = 0
    total_received: DecimalNumber = 0


class OutwardSummaryRow(BaseResponseSchema):
    """Dispatch totals for one month, cement company and transporter."""
    month: Optional[str] = None
    cement_company: str
    transporter_id: Optional[uuid.UUID] = None
    transporter_name: Optional[str] = None
    total_quantity: DecimalNumber = 0
    total_amount: DecimalNumber = 0
    total_gross_amount: DecimalNumber = 0
    count: int = 0
