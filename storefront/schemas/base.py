"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class CollectionResponse(BaseResponseSchema):
            id: UUID
            handle: str
            parent_id: Optional[UUID] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown keys are ignored so storefront exports with extra columns/fields
    can be posted back as-is.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


# Type aliases for common UUID patterns
OptionalUUID = Optional[UUID]
