"""Business settings storage and the invoice config snapshot."""
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.settings_service import SettingsService, parse_value, serialize_value


def test_serialize_validates_by_type():
    assert serialize_value(True, "boolean") == "true"
    assert serialize_value("0", "boolean") == "0"
    assert serialize_value(" 12.5 ", "number") == "12.5"
    assert serialize_value({"a": 1}, "json") == '{"a": 1}'

    with pytest.raises(ValidationError):
        serialize_value("yes", "boolean")
    with pytest.raises(ValidationError):
        serialize_value("twelve", "number")
    with pytest.raises(ValidationError):
        serialize_value("{broken", "json")
    with pytest.raises(ValidationError):
        serialize_value("x", "date")


def test_parse_value_by_type():
    assert parse_value("9", "number") == Decimal("9")
    assert parse_value("1", "boolean") is True
    assert parse_value('{"a": [1]}', "json") == {"a": [1]}
    assert parse_value("plain", "string") == "plain"
    assert parse_value(None, "string") is None


async def test_defaults_are_seeded_once(db):
    service = SettingsService(db)
    keys = {s.key for s in await service.get_all()}

    assert {"invoice_number_format", "cgst_rate", "sgst_rate", "company_name"} <= keys
    assert await service.seed_defaults() == 0


async def test_invoice_config_reads_current_settings(db):
    service = SettingsService(db)
    await service.upsert_setting("cgst_rate", "6")
    await service.upsert_setting("invoice_number_format", "HW-YYYYMM")

    config = await service.load_invoice_config()

    assert config.cgst_rate == Decimal("6")
    assert config.sgst_rate == Decimal("9")
    assert config.number_format == "HW-YYYYMM"


async def test_invalid_rate_falls_back_to_default(db):
    service = SettingsService(db)
    await service.upsert_setting("sgst_rate", "-3")
    await service.upsert_setting("invoice_number_format", "  ")

    config = await service.load_invoice_config()

    assert config.sgst_rate == Decimal("9")
    assert config.number_format == "INV-YYYYMM"


async def test_upsert_keeps_existing_type(db):
    service = SettingsService(db)
    setting = await service.upsert_setting("payment_terms", 45)
    assert setting.type == "number"
    assert await service.get_setting_value("payment_terms") == Decimal("45")

    with pytest.raises(ValidationError):
        await service.upsert_setting("payment_terms", "soon")


async def test_bulk_upsert_is_all_or_nothing(db):
    service = SettingsService(db)

    with pytest.raises(ValidationError):
        await service.bulk_upsert([
            {"key": "company_name", "value": "GreenCycle Pvt Ltd"},
            {"key": "cgst_rate", "value": "abc"},
        ])
    await db.rollback()

    assert await service.get_setting_value("company_name") == ""
    assert await service.get_setting_value("cgst_rate") == Decimal("9")

    saved = await service.bulk_upsert([
        {"key": "company_name", "value": "GreenCycle Pvt Ltd"},
        {"key": "cgst_rate", "value": "2.5"},
    ])
    assert [s.key for s in saved] == ["company_name", "cgst_rate"]
    assert await service.get_setting_value("cgst_rate") == Decimal("2.5")


async def test_delete_setting(db):
    service = SettingsService(db)
    await service.delete_setting("payment_terms")

    with pytest.raises(NotFoundError):
        await service.get_by_key("payment_terms")
    assert await service.get_setting_value("payment_terms", "30") == "30"


async def test_update_setting_requires_existing_key(db):
    service = SettingsService(db)

    with pytest.raises(NotFoundError):
        await service.update_setting("not_a_setting", "x")

    updated = await service.update_setting("company_email", "accounts@greencycle.in")
    assert updated.value == "accounts@greencycle.in"
