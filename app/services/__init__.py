# Services module
from app.services.auth_service import AuthService
from app.services.company_service import CompanyService
from app.services.transporter_service import TransporterService
from app.services.settings_service import SettingsService

# Entries and billing
from app.services.inward_service import InwardService
from app.services.outward_service import OutwardService
from app.services.invoice_service import InvoiceService
from app.services.dashboard_service import DashboardService

__all__ = [
    "AuthService",
    "CompanyService",
    "TransporterService",
    "SettingsService",
    # Entries and billing
    "InwardService",
    "OutwardService",
    "InvoiceService",
    "DashboardService",
]
