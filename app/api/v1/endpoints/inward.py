"""Inward entry (waste receipt) API endpoints."""
from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, CurrentUser, ALL_ROLES, require_roles
from app.schemas.base import MessageResponse
from app.schemas.inward import (
    InwardEntryCreate,
    InwardEntryUpdate,
    InwardEntryResponse,
    InwardEntryListResponse,
    InwardStats,
)
from app.services.inward_service import InwardService


router = APIRouter()


@router.get("", response_model=InwardEntryListResponse)
async def list_inward_entries(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    company_id: Optional[uuid.UUID] = Query(None),
    waste_name: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    invoiced: Optional[bool] = Query(None, description="true: billed only, false: unbilled only"),
    sort_by: str = Query("date"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """Get paginated inward entries."""
    entries, total = await InwardService(db).list_entries(
        page=page,
        size=size,
        search=search,
        company_id=company_id,
        waste_name=waste_name,
        month=month,
        start_date=start_date,
        end_date=end_date,
        invoiced=invoiced,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    return InwardEntryListResponse(
        items=[InwardEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 0,
    )


@router.get("/stats", response_model=InwardStats)
async def get_inward_stats(
    db: DB,
    current_user: CurrentUser,
    company_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    stats = await InwardService(db).get_stats(company_id, start_date, end_date)
    return InwardStats(**stats)


@router.get("/{entry_id}", response_model=InwardEntryResponse)
async def get_inward_entry(entry_id: uuid.UUID, db: DB, current_user: CurrentUser):
    entry = await InwardService(db).get_entry(entry_id)
    return InwardEntryResponse.model_validate(entry)


@router.post(
    "",
    response_model=InwardEntryResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def create_inward_entry(data: InwardEntryCreate, db: DB):
    """Record a waste receipt. sr_no, lot number and rate are filled in when omitted."""
    entry = await InwardService(db).create_entry(data)
    return InwardEntryResponse.model_validate(entry)


@router.put(
    "/{entry_id}",
    response_model=InwardEntryResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def update_inward_entry(entry_id: uuid.UUID, data: InwardEntryUpdate, db: DB):
    entry = await InwardService(db).update_entry(entry_id, data)
    return InwardEntryResponse.model_validate(entry)


@router.delete(
    "/{entry_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def delete_inward_entry(entry_id: uuid.UUID, db: DB):
    await InwardService(db).delete_entry(entry_id)
    return MessageResponse(message="Inward entry deleted successfully")
