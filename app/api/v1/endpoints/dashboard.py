"""Dashboard API endpoints."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, MANAGERS, require_roles
from app.schemas.dashboard import (
    ActivityInvoice,
    ActivityInward,
    ActivityOutward,
    ActivityPayment,
    DashboardSummary,
    PaymentStatusBreakdown,
    RecentActivity,
    RevenuePoint,
    WasteFlowPoint,
)
from app.services.dashboard_service import DashboardService


router = APIRouter(dependencies=[Depends(require_roles(*MANAGERS))])


@router.get("/stats", response_model=DashboardSummary)
async def get_dashboard_stats(db: DB):
    """This month's and all-time volumes and Inward revenue."""
    summary = await DashboardService(db).get_summary(date.today())
    return DashboardSummary(**summary)


@router.get("/revenue", response_model=List[RevenuePoint])
async def get_revenue_chart(db: DB, year: Optional[int] = Query(None, ge=2000, le=2100)):
    points = await DashboardService(db).get_revenue_series(year)
    return [RevenuePoint(**p) for p in points]


@router.get("/payment-status", response_model=PaymentStatusBreakdown)
async def get_payment_status(
    db: DB,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    breakdown = await DashboardService(db).get_payment_status(year, month)
    return PaymentStatusBreakdown(**breakdown)


@router.get("/waste-flow", response_model=List[WasteFlowPoint])
async def get_waste_flow(db: DB, year: Optional[int] = Query(None, ge=2000, le=2100)):
    """Monthly inward vs outward tonnage."""
    points = await DashboardService(db).get_waste_flow(year)
    return [WasteFlowPoint(**p) for p in points]


@router.get("/recent-activity", response_model=RecentActivity)
async def get_recent_activity(db: DB, limit: int = Query(10, ge=1, le=50)):
    activity = await DashboardService(db).get_recent_activity(limit)
    return RecentActivity(
        inward=[ActivityInward.model_validate(e, from_attributes=True) for e in activity["inward"]],
        outward=[ActivityOutward.model_validate(e, from_attributes=True) for e in activity["outward"]],
        invoices=[ActivityInvoice.model_validate(i, from_attributes=True) for i in activity["invoices"]],
        payments=[ActivityPayment.model_validate(i, from_attributes=True) for i in activity["payments"]],
    )
