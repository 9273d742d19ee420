"""Pydantic schemas for invoices.

Numeric inputs accept JSON strings or numbers and are held as Decimal;
totals are never supplied by clients, they are computed by InvoiceService.
"""
from datetime import datetime
from datetime import date as date_type
from typing import Optional, List
import uuid

from pydantic import BaseModel, Field

from app.models.invoice import InvoiceType, MaterialUnit
from app.schemas.base import (
    BaseCreateSchema,
    BaseUpdateSchema,
    BaseResponseSchema,
    DecimalNumber,
    NonNegativeDecimal,
    ListResponse,
)


# ==================== LINE ITEMS ====================

class InvoiceMaterialInput(BaseModel):
    """Material line. amount defaults to quantity x rate."""
    material_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    manifest_number: Optional[str] = Field(None, max_length=50)
    quantity: NonNegativeDecimal = 0
    unit: Optional[MaterialUnit] = None
    rate: NonNegativeDecimal = 0
    amount: Optional[NonNegativeDecimal] = None


class AdditionalChargeInput(BaseModel):
    """Untaxed charge line, e.g. transport or loading."""
    description: str = Field("Additional Charge", max_length=200)
    quantity: NonNegativeDecimal = 1
    unit: Optional[str] = Field(None, max_length=10)
    rate: NonNegativeDecimal = 0
    amount: Optional[NonNegativeDecimal] = None


class InvoiceMaterialResponse(BaseResponseSchema):
    id: uuid.UUID
    line_number: int
    material_name: str
    description: Optional[str] = None
    manifest_number: Optional[str] = None
    quantity: DecimalNumber
    unit: Optional[str] = None
    rate: DecimalNumber
    amount: DecimalNumber
    is_additional_charge: bool


class InvoiceManifestResponse(BaseResponseSchema):
    id: uuid.UUID
    manifest_number: str


# ==================== INVOICE ====================

class InvoiceDocumentFields(BaseModel):
    """Printable header fields shared by create and update."""
    customer_name: Optional[str] = Field(None, max_length=200)
    gst_number: Optional[str] = Field(None, max_length=15)
    billed_to: Optional[str] = None
    shipped_to: Optional[str] = None
    description: Optional[str] = None
    po_number: Optional[str] = Field(None, max_length=50)
    po_date: Optional[date_type] = None
    vehicle_number: Optional[str] = Field(None, max_length=20)
    custom_key: Optional[str] = Field(None, max_length=100)
    custom_value: Optional[str] = Field(None, max_length=255)


class InvoiceCreate(InvoiceDocumentFields, BaseCreateSchema):
    """
    Invoice creation request.

    Inward invoices need company_id, Outward and Transporter invoices need
    transporter_id. Lines come from `materials`, from imported entries, or both.
    """
    type: InvoiceType
    date: date_type
    company_id: Optional[uuid.UUID] = None
    transporter_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)

    materials: List[InvoiceMaterialInput] = []
    manifest_numbers: List[str] = []
    inward_entry_ids: List[uuid.UUID] = []
    outward_entry_ids: List[uuid.UUID] = []

    subtotal: Optional[NonNegativeDecimal] = None
    cgst_rate: Optional[NonNegativeDecimal] = None
    sgst_rate: Optional[NonNegativeDecimal] = None
    additional_charges: Optional[NonNegativeDecimal] = None
    additional_charges_list: List[AdditionalChargeInput] = []

    payment_received: NonNegativeDecimal = 0
    payment_received_on: Optional[date_type] = None


class InvoiceUpdate(InvoiceDocumentFields, BaseUpdateSchema):
    """
    Invoice update request. Only fields present are applied.

    invoice_number and type may be echoed back unchanged; any other value is
    rejected because both are fixed at creation.
    """
    invoice_number: Optional[str] = None
    type: Optional[InvoiceType] = None
    date: Optional[date_type] = None
    company_id: Optional[uuid.UUID] = None
    transporter_id: Optional[uuid.UUID] = None

    materials: Optional[List[InvoiceMaterialInput]] = None
    manifest_numbers: Optional[List[str]] = None
    inward_entry_ids: Optional[List[uuid.UUID]] = None
    outward_entry_ids: Optional[List[uuid.UUID]] = None

    subtotal: Optional[NonNegativeDecimal] = None
    cgst_rate: Optional[NonNegativeDecimal] = None
    sgst_rate: Optional[NonNegativeDecimal] = None
    additional_charges: Optional[NonNegativeDecimal] = None
    additional_charges_list: Optional[List[AdditionalChargeInput]] = None

    payment_received: Optional[NonNegativeDecimal] = None
    payment_received_on: Optional[date_type] = None


class PaymentUpdate(BaseModel):
    """Payment correction; the amount replaces the recorded total received."""
    payment_received: NonNegativeDecimal
    payment_received_on: Optional[date_type] = None


class InvoiceBrief(BaseResponseSchema):
    """Row used in invoice lists."""
    id: uuid.UUID
    invoice_number: str
    type: str
    date: date_type
    company_id: Optional[uuid.UUID] = None
    transporter_id: Optional[uuid.UUID] = None
    customer_name: str
    subtotal: DecimalNumber
    cgst: DecimalNumber
    sgst: DecimalNumber
    additional_charges: DecimalNumber
    grand_total: DecimalNumber
    payment_received: DecimalNumber
    payment_received_on: Optional[date_type] = None
    status: str
    created_at: datetime


class InvoiceResponse(InvoiceBrief):
    """Full invoice with lines and manifests."""
    gst_number: Optional[str] = None
    billed_to: Optional[str] = None
    shipped_to: Optional[str] = None
    description: Optional[str] = None
    po_number: Optional[str] = None
    po_date: Optional[date_type] = None
    vehicle_number: Optional[str] = None
    custom_key: Optional[str] = None
    custom_value: Optional[str] = None
    cgst_rate: DecimalNumber
    sgst_rate: DecimalNumber
    materials: List[InvoiceMaterialResponse] = []
    manifests: List[InvoiceManifestResponse] = []
    inward_entry_ids: List[uuid.UUID] = []
    outward_entry_ids: List[uuid.UUID] = []
    updated_at: datetime


class InvoiceListResponse(ListResponse):
    """Response for listing invoices."""
    items: List[InvoiceBrief]
    total_value: DecimalNumber = 0


class InvoiceStatsBucket(BaseModel):
    key: str
    count: int = 0
    total_invoiced: DecimalNumber = 0
    total_received: DecimalNumber = 0


class InvoiceStats(BaseModel):
    total_invoices: int = 0
    total_invoiced: DecimalNumber = 0
    total_received: DecimalNumber = 0
    total_pending: DecimalNumber = 0
    by_type: List[InvoiceStatsBucket] = []
    by_status: List[InvoiceStatsBucket] = []


class NextInvoiceNumber(BaseModel):
    invoice_number: str
    date: date_type
