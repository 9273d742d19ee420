from app.models.user import User, UserRole
from app.models.company import Company, CompanyMaterial
from app.models.transporter import Transporter
from app.models.inward import InwardEntry
from app.models.outward import OutwardEntry
from app.models.invoice import (
    Invoice,
    InvoiceMaterial,
    InvoiceManifest,
    InvoiceType,
    PaymentStatus,
    MaterialUnit,
)
from app.models.setting import Setting, SettingType

__all__ = [
    "User",
    "UserRole",
    "Company",
    "CompanyMaterial",
    "Transporter",
    "InwardEntry",
    "OutwardEntry",
    "Invoice",
    "InvoiceMaterial",
    "InvoiceManifest",
    "InvoiceType",
    "PaymentStatus",
    "MaterialUnit",
    "Setting",
    "SettingType",
]
