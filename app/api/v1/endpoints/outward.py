"""Outward entry (waste dispatch) API endpoints."""
from datetime import date
from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, Config, CurrentUser, ALL_ROLES, require_roles
from app.schemas.base import MessageResponse
from app.schemas.outward import (
    OutwardEntryCreate,
    OutwardEntryUpdate,
    OutwardEntryResponse,
    OutwardEntryListResponse,
    OutwardStats,
    OutwardSummaryRow,
)
from app.services.outward_service import OutwardService


router = APIRouter()


@router.get("", response_model=OutwardEntryListResponse)
async def list_outward_entries(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    transporter_id: Optional[uuid.UUID] = Query(None),
    cement_company: Optional[str] = Query(None),
    waste_name: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    invoiced: Optional[bool] = Query(None),
    sort_by: str = Query("date"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """Get paginated outward entries."""
    entries, total = await OutwardService(db).list_entries(
        page=page,
        size=size,
        search=search,
        transporter_id=transporter_id,
        cement_company=cement_company,
        waste_name=waste_name,
        month=month,
        start_date=start_date,
        end_date=end_date,
        invoiced=invoiced,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    return OutwardEntryListResponse(
        items=[OutwardEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 0,
    )


@router.get("/stats", response_model=OutwardStats)
async def get_outward_stats(
    db: DB,
    current_user: CurrentUser,
    transporter_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    stats = await OutwardService(db).get_stats(transporter_id, start_date, end_date)
    return OutwardStats(**stats)


@router.get("/summary", response_model=List[OutwardSummaryRow])
async def get_outward_summary(
    db: DB,
    current_user: CurrentUser,
    month: Optional[str] = Query(None),
    cement_company: Optional[str] = Query(None),
    transporter_id: Optional[uuid.UUID] = Query(None),
):
    """Dispatch totals grouped by month, cement company and transporter."""
    rows = await OutwardService(db).get_summary(month, cement_company, transporter_id)
    return [OutwardSummaryRow(**row) for row in rows]


@router.get("/{entry_id}", response_model=OutwardEntryResponse)
async def get_outward_entry(entry_id: uuid.UUID, db: DB, current_user: CurrentUser):
    entry = await OutwardService(db).get_entry(entry_id)
    return OutwardEntryResponse.model_validate(entry)


@router.post(
    "",
    response_model=OutwardEntryResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def create_outward_entry(data: OutwardEntryCreate, db: DB, config: Config):
    """
    Record a dispatch.

    With invoice_number the dispatch is billed on that Outward invoice,
    which is created from the dispatch when it does not exist.
    """
    entry = await OutwardService(db, config).create_entry(data)
    return OutwardEntryResponse.model_validate(entry)


@router.put(
    "/{entry_id}",
    response_model=OutwardEntryResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def update_outward_entry(entry_id: uuid.UUID, data: OutwardEntryUpdate, db: DB):
    entry = await OutwardService(db).update_entry(entry_id, data)
    return OutwardEntryResponse.model_validate(entry)


@router.delete(
    "/{entry_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def delete_outward_entry(entry_id: uuid.UUID, db: DB):
    await OutwardService(db).delete_entry(entry_id)
    return MessageResponse(message="Outward entry deleted successfully")
