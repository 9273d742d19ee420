"""
Business settings stored in the `settings` table.

Invoice writes read tax rates and the numbering format from here on every
request, through `load_invoice_config()`, and hand the snapshot to
InvoiceService explicitly.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings as app_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.setting import Setting, SettingType
from app.services.invoice_calculations import InvoiceConfig


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS: List[Dict[str, str]] = [
    {
        "key": "invoice_number_format",
        "value": app_settings.DEFAULT_INVOICE_NUMBER_FORMAT,
        "type": SettingType.STRING.value,
        "description": "Invoice number prefix format (YYYYMM is replaced with the invoice year and month)",
    },
    {
        "key": "cgst_rate",
        "value": app_settings.DEFAULT_CGST_RATE,
        "type": SettingType.NUMBER.value,
        "description": "CGST rate percentage",
    },
    {
        "key": "sgst_rate",
        "value": app_settings.DEFAULT_SGST_RATE,
        "type": SettingType.NUMBER.value,
        "description": "SGST rate percentage",
    },
    {
        "key": "payment_terms",
        "value": "30",
        "type": SettingType.NUMBER.value,
        "description": "Default payment terms in days",
    },
    {"key": "company_name", "value": "", "type": SettingType.STRING.value, "description": "Company name for invoices"},
    {"key": "company_address", "value": "", "type": SettingType.STRING.value, "description": "Company address"},
    {"key": "company_gst_number", "value": "", "type": SettingType.STRING.value, "description": "Company GST number"},
    {"key": "company_contact", "value": "", "type": SettingType.STRING.value, "description": "Company contact number"},
    {"key": "company_email", "value": "", "type": SettingType.STRING.value, "description": "Company email address"},
]

_TRUE_VALUES = ("true", "1")
_BOOLEAN_VALUES = ("true", "false", "1", "0")


def serialize_value(value: Any, type_: str) -> str:
    """Turn an incoming value into its stored text form, validating it against `type_`."""
    if type_ not in {t.value for t in SettingType}:
        valid = ", ".join(t.value for t in SettingType)
        raise ValidationError(f"Invalid type. Must be one of: {valid}")

    if type_ == SettingType.JSON.value:
        if isinstance(value, str):
            try:
                json.loads(value)
            except json.JSONDecodeError:
                raise ValidationError("Value must be valid JSON")
            return value
        return json.dumps(value)

    if value is None:
        raise ValidationError("Value is required")

    if type_ == SettingType.BOOLEAN.value:
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text not in _BOOLEAN_VALUES:
            raise ValidationError("Value must be a valid boolean (true/false/1/0)")
        return text

    if type_ == SettingType.NUMBER.value:
        if isinstance(value, bool):
            raise ValidationError("Value must be a valid number")
        text = str(value).strip()
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise ValidationError("Value must be a valid number")
        if not number.is_finite():
            raise ValidationError("Value must be a valid number")
        return text

    return str(value)


def parse_value(value: Optional[str], type_: str) -> Any:
    """Parse a stored value by its declared type. Numbers come back as Decimal."""
    if value is None:
        return None

    if type_ == SettingType.NUMBER.value:
        try:
            return Decimal(value)
        except InvalidOperation:
            logger.warning("Stored number setting %r is not a number", value)
            return None
    if type_ == SettingType.BOOLEAN.value:
        return value.strip().lower() in _TRUE_VALUES
    if type_ == SettingType.JSON.value:
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


class SettingsService:
    """Key/value business settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> List[Setting]:
        result = await self.db.execute(select(Setting).order_by(Setting.key))
        return list(result.scalars().all())

    async def find(self, key: str) -> Optional[Setting]:
        result = await self.db.execute(select(Setting).where(Setting.key == key))
        return result.scalar_one_or_none()

    async def get_by_key(self, key: str) -> Setting:
        setting = await self.find(key)
        if setting is None:
            raise NotFoundError("Setting", key)
        return setting

    async def get_setting_value(self, key: str, default: Any = None) -> Any:
        """Parsed value of `key`, or `default` when the key is absent."""
        setting = await self.find(key)
        if setting is None:
            return default
        return parse_value(setting.value, setting.type)

    async def upsert_setting(
        self,
        key: str,
        value: Any,
        type_: Optional[str] = None,
        description: Optional[str] = None,
        commit: bool = True,
    ) -> Setting:
        """Create or replace a setting. An existing setting keeps its type unless one is given."""
        setting = await self.find(key)
        final_type = type_ or (setting.type if setting else SettingType.STRING.value)
        stored = serialize_value(value, final_type)

        if setting is None:
            setting = Setting(key=key, value=stored, type=final_type, description=description)
            self.db.add(setting)
        else:
            setting.value = stored
            setting.type = final_type
            if description is not None:
                setting.description = description

        if commit:
            await self.db.commit()
            await self.db.refresh(setting)
        return setting

    async def update_setting(
        self,
        key: str,
        value: Any,
        type_: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Setting:
        """Update an existing setting; unknown keys are a NotFoundError."""
        await self.get_by_key(key)
        return await self.upsert_setting(key, value, type_, description)

    async def bulk_upsert(self, items: List[Dict[str, Any]]) -> List[Setting]:
        """
        Upsert several settings atomically.

        Every value is validated before anything is written; one bad item
        leaves all settings untouched.
        """
        saved: List[Setting] = []
        async with self.db.begin_nested():
            for item in items:
                saved.append(
                    await self.upsert_setting(
                        item["key"],
                        item.get("value"),
                        item.get("type"),
                        item.get("description"),
                        commit=False,
                    )
                )
            await self.db.flush()
        await self.db.commit()
        logger.info("Bulk updated %d settings", len(saved))
        return saved

    async def delete_setting(self, key: str) -> None:
        setting = await self.get_by_key(key)
        await self.db.delete(setting)
        await self.db.commit()
        logger.info("Deleted setting %s", key)

    async def load_invoice_config(self) -> InvoiceConfig:
        """Fresh snapshot of the settings invoice writes depend on."""
        cgst = await self.get_setting_value("cgst_rate", None)
        sgst = await self.get_setting_value("sgst_rate", None)
        number_format = await self.get_setting_value("invoice_number_format", None)

        return InvoiceConfig(
            cgst_rate=_rate_or_default(cgst, app_settings.DEFAULT_CGST_RATE),
            sgst_rate=_rate_or_default(sgst, app_settings.DEFAULT_SGST_RATE),
            number_format=(str(number_format).strip() if number_format else "")
            or app_settings.DEFAULT_INVOICE_NUMBER_FORMAT,
        )

    async def seed_defaults(self) -> int:
        """Create any missing default settings. Returns how many were added."""
        created = 0
        for item in DEFAULT_SETTINGS:
            if await self.find(item["key"]) is None:
                self.db.add(Setting(**item))
                created += 1
                logger.info("Created setting: %s", item["key"])
        if created:
            await self.db.commit()
        return created


def _rate_or_default(value: Any, default: str) -> Decimal:
    if isinstance(value, Decimal) and value.is_finite() and value >= 0:
        return value
    if value is not None:
        logger.warning("Invalid tax rate setting %r, using default %s", value, default)
    return Decimal(default)
