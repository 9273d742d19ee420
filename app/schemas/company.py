"""Pydantic schemas for Company and its material rate list."""
from datetime import datetime
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


# ==================== MATERIAL SCHEMAS ====================

class CompanyMaterialCreate(BaseCreateSchema):
    material_name: str = Field(..., min_length=1, max_length=200)
    rate: NonNegativeDecimal
    unit: MaterialUnit = MaterialUnit.MT


class CompanyMaterialUpdate(BaseUpdateSchema):
    material_name: Optional[str] = Field(None, min_length=1, max_length=200)
    rate: Optional[NonNegativeDecimal] = None
    unit: Optional[MaterialUnit] = None


class CompanyMaterialResponse(BaseResponseSchema):
    """Rate is omitted for employees."""
    id: uuid.UUID
    company_id: uuid.UUID
    material_name: str
    rate: Optional[DecimalNumber] = None
    unit: str
    created_at: datetime


# ==================== COMPANY SCHEMAS ====================

class CompanyCreate(BaseCreateSchema):
    """Company creation schema."""
    name: str = Field(..., min_length=1, max_length=200)
    gst_number: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    contact: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    materials: List[CompanyMaterialCreate] = []


class CompanyUpdate(BaseUpdateSchema):
    """Company update schema. Materials are managed through their own routes."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    gst_number: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    contact: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)


class CompanyResponse(BaseResponseSchema):
    """Company response schema."""
    id: uuid.UUID
    name: str
    gst_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    materials: List[CompanyMaterialResponse] = []
    created_at: datetime
    updated_at: datetime


class CompanyListItem(CompanyResponse):
    """Company row with its billing totals."""
    invoice_count: int = 0
    total_invoiced: DecimalNumber = 0
    total_paid: DecimalNumber = 0
    total_pending: DecimalNumber = 0


class CompanyListResponse(ListResponse):
    items: List[CompanyListItem]


class CompanyStats(BaseResponseSchema):
    invoice_count: int = 0
    total_invoiced: DecimalNumber = 0
    total_paid: DecimalNumber = 0
    total_pending: DecimalNumber = 0
    inward_count: int = 0
    unbilled_count: int = 0
    total_quantity_mt: DecimalNumber = 0


class CompanyGlobalStats(BaseResponseSchema):
    company_count: int = 0
    invoice_count: int = 0
    total_invoiced: DecimalNumber = 0
    total_paid: DecimalNumber = 0
    total_pending: DecimalNumber = 0
    unbilled_count: int = 0
