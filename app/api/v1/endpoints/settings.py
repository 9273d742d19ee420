"""Business settings API endpoints."""
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import DB, MANAGERS, SUPERADMIN_ONLY, require_roles
from app.models.setting import Setting
from app.schemas.base import MessageResponse
from app.schemas.setting import SettingBulkRequest, SettingResponse, SettingUpsert
from app.services.settings_service import SettingsService, parse_value


router = APIRouter()


def _setting_out(setting: Setting) -> SettingResponse:
    parsed = parse_value(setting.value, setting.type)
    if isinstance(parsed, Decimal):
        parsed = float(parsed)
    return SettingResponse.model_validate(setting).model_copy(update={"parsed_value": parsed})


@router.get(
    "",
    response_model=List[SettingResponse],
    dependencies=[Depends(require_roles(*MANAGERS))],
)
async def list_settings(db: DB):
    settings = await SettingsService(db).get_all()
    return [_setting_out(s) for s in settings]


@router.post(
    "/bulk",
    response_model=List[SettingResponse],
    dependencies=[Depends(require_roles(*SUPERADMIN_ONLY))],
)
async def bulk_update_settings(data: SettingBulkRequest, db: DB):
    """Upsert several settings at once; nothing is saved if any value is invalid."""
    items = [
        {
            "key": item.key,
            "value": item.value,
            "type": item.type.value if item.type else None,
            "description": item.description,
        }
        for item in data.settings
    ]
    settings = await SettingsService(db).bulk_upsert(items)
    return [_setting_out(s) for s in settings]


@router.get(
    "/{key}",
    response_model=SettingResponse,
    dependencies=[Depends(require_roles(*MANAGERS))],
)
async def get_setting(key: str, db: DB):
    setting = await SettingsService(db).get_by_key(key)
    return _setting_out(setting)


@router.put(
    "/{key}",
    response_model=SettingResponse,
    dependencies=[Depends(require_roles(*SUPERADMIN_ONLY))],
)
async def upsert_setting(key: str, data: SettingUpsert, db: DB):
    """Create or replace a setting."""
    setting = await SettingsService(db).upsert_setting(
        key,
        data.value,
        data.type.value if data.type else None,
        data.description,
    )
    return _setting_out(setting)


@router.delete(
    "/{key}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(*SUPERADMIN_ONLY))],
)
async def delete_setting(key: str, db: DB):
    await SettingsService(db).delete_setting(key)
    return MessageResponse(message=f"Setting {key} deleted successfully")
