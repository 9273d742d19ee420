"""Dashboard response schemas."""
from datetime import datetime
from datetime import date as date_type
from typing import Optional, List
import uuid

from pydantic import BaseModel

from app.schemas.base import DecimalNumber


class EntryTotals(BaseModel):
    entries: int = 0
    quantity: DecimalNumber = 0
    all_time_entries: int = 0
    all_time_quantity: DecimalNumber = 0


class RevenueTotals(BaseModel):
    this_month: DecimalNumber = 0
    this_month_paid: DecimalNumber = 0
    this_month_pending: DecimalNumber = 0
    all_time: DecimalNumber = 0
    all_time_paid: DecimalNumber = 0
    all_time_pending: DecimalNumber = 0


class DashboardSummary(BaseModel):
    inward: EntryTotals
    outward: EntryTotals
    invoices_this_month: int = 0
    revenue: RevenueTotals


class RevenuePoint(BaseModel):
    month: str
    revenue: DecimalNumber = 0
    paid: DecimalNumber = 0
    pending: DecimalNumber = 0


class PaymentStatusBreakdown(BaseModel):
    year: int
    month: int
    total: DecimalNumber = 0
    received: DecimalNumber = 0
    pending: DecimalNumber = 0


class WasteFlowPoint(BaseModel):
    """Monthly volumes in metric tons."""
    month: str
    inward: DecimalNumber = 0
    outward: DecimalNumber = 0


class ActivityInward(BaseModel):
    id: uuid.UUID
    date: date_type
    manifest_number: str
    waste_name: str
    quantity: DecimalNumber
    unit: str
    company_name: Optional[str] = None
    created_at: datetime


class ActivityOutward(BaseModel):
    id: uuid.UUID
    date: date_type
    manifest_number: str
    cement_company: str
    quantity: DecimalNumber
    unit: str
    transporter_name: Optional[str] = None
    created_at: datetime


class ActivityInvoice(BaseModel):
    id: uuid.UUID
    invoice_number: str
    date: date_type
    customer_name: str
    grand_total: DecimalNumber
    status: str
    created_at: datetime


class ActivityPayment(BaseModel):
    id: uuid.UUID
    invoice_number: str
    customer_name: str
    payment_received: DecimalNumber
    payment_received_on: date_type


class RecentActivity(BaseModel):
    inward: List[ActivityInward] = []
    outward: List[ActivityOutward] = []
    invoices: List[ActivityInvoice] = []
    payments: List[ActivityPayment] = []
