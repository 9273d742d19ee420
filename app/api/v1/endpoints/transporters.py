"""Transporter API endpoints."""
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, Query, Depends

from app.api.deps import DB, CurrentUser, ALL_ROLES, require_roles
from app.schemas.base import MessageResponse
from app.schemas.transporter import (
    TransporterCreate,
    TransporterUpdate,
    TransporterResponse,
    TransporterListResponse,
    TransporterStats,
    TransporterGlobalStats,
    TransporterDetail,
    EntryBrief,
)
from app.services.transporter_service import TransporterService


router = APIRouter()


# ==================== TRANSPORTER CRUD ====================

@router.get("", response_model=TransporterListResponse)
async def list_transporters(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
):
    """
    Get paginated list of transporters.
    """
    transporters, total = await TransporterService(db).get_transporters(
        search=search,
        skip=(page - 1) * size,
        limit=size,
    )

    return TransporterListResponse(
        items=[TransporterResponse.model_validate(t) for t in transporters],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 0,
    )


@router.get("/stats", response_model=TransporterGlobalStats)
async def get_all_transporters_stats(db: DB, current_user: CurrentUser):
    """Outward billing totals across every transporter."""
    stats = await TransporterService(db).get_global_stats()
    return TransporterGlobalStats(**stats)


@router.get("/{transporter_id}", response_model=TransporterDetail)
async def get_transporter(transporter_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Get transporter with invoice stats and its latest entries."""
    service = TransporterService(db)
    transporter = await service.get_transporter(transporter_id)
    stats = await service.get_stats(transporter_id)
    inward, outward = await service.get_recent_entries(transporter_id)

    return TransporterDetail(
        **TransporterResponse.model_validate(transporter).model_dump(),
        stats=TransporterStats(**stats),
        recent_inward=[EntryBrief.model_validate(e) for e in inward],
        recent_outward=[EntryBrief.model_validate(e) for e in outward],
    )


@router.post(
    "",
    response_model=TransporterResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def create_transporter(data: TransporterCreate, db: DB):
    """Create a new transporter."""
    transporter = await TransporterService(db).create_transporter(data)
    return TransporterResponse.model_validate(transporter)


@router.put(
    "/{transporter_id}",
    response_model=TransporterResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def update_transporter(transporter_id: uuid.UUID, data: TransporterUpdate, db: DB):
    """Update transporter details."""
    transporter = await TransporterService(db).update_transporter(transporter_id, data)
    return TransporterResponse.model_validate(transporter)


@router.delete(
    "/{transporter_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
async def delete_transporter(transporter_id: uuid.UUID, db: DB):
    """Delete a transporter that has no invoices or entries."""
    await TransporterService(db).delete_transporter(transporter_id)
    return MessageResponse(message="Transporter deleted successfully")


@router.get("/{transporter_id}/stats", response_model=TransporterStats)
async def get_transporter_stats(transporter_id: uuid.UUID, db: DB, current_user: CurrentUser):
    stats = await TransporterService(db).get_stats(transporter_id)
    return TransporterStats(**stats)
