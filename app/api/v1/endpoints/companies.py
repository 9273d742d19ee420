"""Company (waste generator) API endpoints."""
from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, CurrentUser, ALL_ROLES, require_roles
from app.models.company import Company
from app.models.user import User, UserRole
from app.schemas.base import MessageResponse
from app.schemas.company import (
    CompanyCreate,
    CompanyUpdate,
    CompanyResponse,
    CompanyListItem,
    CompanyListResponse,
    CompanyStats,
    CompanyGlobalStats,
    CompanyMaterialCreate,
    CompanyMaterialUpdate,
    CompanyMaterialResponse,
)
from app.schemas.inward import InwardEntryResponse
from app.services.company_service import CompanyService


router = APIRouter()


def _hide_rates(user: User) -> bool:
    return user.role == UserRole.EMPLOYEE.value


def _material_out(material, user: User) -> CompanyMaterialResponse:
    item = CompanyMaterialResponse.model_validate(material)
    if _hide_rates(user):
        item.rate = None
    return item


def _company_out(company: Company, user: User, schema=CompanyResponse, **extra):
    item = schema.model_validate(company).model_copy(update=extra)
    if _hide_rates(user):
        for material in item.materials:
            material.rate = None
    return item


# ==================== COMPANY CRUD ====================

@router.get("", response_model=CompanyListResponse)
async def list_companies(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
):
    """Get paginated companies with their billing totals."""
    rows, total = await CompanyService(db).list_companies(page, size, search, city)

    return CompanyListResponse(
        items=[_company_out(c, current_user, CompanyListItem, **totals) for c, totals in rows],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 0,
    )


@router.get("/stats", response_model=CompanyGlobalStats)
async def get_all_companies_stats(db: DB, current_user: CurrentUser):
    """Billing totals across every company."""
    stats = await CompanyService(db).get_global_stats()
    return CompanyGlobalStats(**stats)


@router.get("/{company_id}", response_model=CompanyResponse)
async def get_company(company_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Get company with its rate list."""
    company = await CompanyService(db).get_company(company_id)
    return _company_out(company, current_user)


@router.post(
    "",
    response_model=CompanyResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def create_company(data: CompanyCreate, db: DB, current_user: CurrentUser):
    """Create a company with its initial rate list."""
    company = await CompanyService(db).create_company(data)
    return _company_out(company, current_user)


@router.put(
    "/{company_id}",
    response_model=CompanyResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def update_company(company_id: uuid.UUID, data: CompanyUpdate, db: DB, current_user: CurrentUser):
    company = await CompanyService(db).update_company(company_id, data)
    return _company_out(company, current_user)


@router.delete(
    "/{company_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def delete_company(company_id: uuid.UUID, db: DB):
    """Delete a company that has no invoices or entries."""
    await CompanyService(db).delete_company(company_id)
    return MessageResponse(message="Company deleted successfully")


@router.get("/{company_id}/stats", response_model=CompanyStats)
async def get_company_stats(company_id: uuid.UUID, db: DB, current_user: CurrentUser):
    stats = await CompanyService(db).get_stats(company_id)
    return CompanyStats(**stats)


@router.get("/{company_id}/unbilled-entries", response_model=List[InwardEntryResponse])
async def get_unbilled_entries(company_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Inward entries of this company not yet billed, for invoice import."""
    entries = await CompanyService(db).get_unbilled_entries(company_id)
    return [InwardEntryResponse.model_validate(e) for e in entries]


# ==================== MATERIALS ====================

@router.get("/{company_id}/materials", response_model=List[CompanyMaterialResponse])
async def list_materials(company_id: uuid.UUID, db: DB, current_user: CurrentUser):
    materials = await CompanyService(db).get_materials(company_id)
    return [_material_out(m, current_user) for m in materials]


@router.post(
    "/{company_id}/materials",
    response_model=CompanyMaterialResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def add_material(
    company_id: uuid.UUID,
    data: CompanyMaterialCreate,
    db: DB,
    current_user: CurrentUser,
):
    material = await CompanyService(db).add_material(company_id, data)
    return _material_out(material, current_user)


@router.put(
    "/{company_id}/materials/{material_id}",
    response_model=CompanyMaterialResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def update_material(
    company_id: uuid.UUID,
    material_id: uuid.UUID,
    data: CompanyMaterialUpdate,
    db: DB,
    current_user: CurrentUser,
):
    material = await CompanyService(db).update_material(company_id, material_id, data)
    return _material_out(material, current_user)


@router.delete(
    "/{company_id}/materials/{material_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def remove_material(company_id: uuid.UUID, material_id: uuid.UUID, db: DB):
    await CompanyService(db).remove_material(company_id, material_id)
    return MessageResponse(message="Material removed successfully")
