"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like decimal
serialization, ensuring consistency across all request and response schemas.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


# Money and quantities travel as JSON numbers but are held as Decimal.
# Input accepts strings or numbers; non-finite values are rejected by pydantic.
DecimalNumber = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]
NonNegativeDecimal = Annotated[DecimalNumber, Field(ge=0)]


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class CompanyResponse(BaseResponseSchema):
            id: UUID
            name: str
            gst_number: Optional[str] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored so older clients keep working.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only fields present in the request are applied
    (read them with `model_dump(exclude_unset=True)`).
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class ListResponse(BaseModel):
    """Pagination envelope shared by list endpoints."""
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class MessageResponse(BaseModel):
    success: bool = True
    message: str
