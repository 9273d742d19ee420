from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access Control
    auth,
    # Master Data
    companies,
    transporters,
    # Waste Movement
    inward,
    outward,
    # Billing
    invoices,
    settings,
    # Reports
    dashboard,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# ==================== Master Data ====================
api_router.include_router(
    companies.router,
    prefix="/companies",
    tags=["Companies"]
)
api_router.include_router(
    transporters.router,
    prefix="/transporters",
    tags=["Transporters"]
)

# ==================== Waste Movement ====================
api_router.include_router(
    inward.router,
    prefix="/inward",
    tags=["Inward Entries"]
)
api_router.include_router(
    outward.router,
    prefix="/outward",
    tags=["Outward Entries"]
)

# ==================== Billing ====================
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["Invoices"]
)
api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["Settings"]
)

# ==================== Reports ====================
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
