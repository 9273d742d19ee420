from datetime import datetime
from typing import Any, Optional, List
import uuid

from pydantic import BaseModel, Field

from app.models.setting import SettingType
from app.schemas.base import BaseResponseSchema


class SettingUpsert(BaseModel):
    """Value may be sent as a string or as its natural JSON type."""
    value: Any
    type: Optional[SettingType] = None
    description: Optional[str] = None


class SettingBulkItem(SettingUpsert):
    key: str = Field(..., min_length=1, max_length=100)


class SettingBulkRequest(BaseModel):
    settings: List[SettingBulkItem] = Field(..., min_length=1)


class SettingResponse(BaseResponseSchema):
    id: uuid.UUID
    key: str
    value: str
    type: str
    description: Optional[str] = None
    parsed_value: Any = None
    updated_at: datetime
