from pydantic import BaseModel, Field, field_validator, model_validator

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.models.discount import DiscountType


def _upper_type(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


class DiscountCreate(BaseCreateSchema):
    """Discount creation. Range checks that depend on the type happen in the service."""
    code: str = Field(..., min_length=2, max_length=64)
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=600)
    type: DiscountType
    value: Decimal = Field(..., gt=0)
    min_subtotal: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        return _upper_type(v)


class DiscountUpdate(BaseUpdateSchema):
    code: Optional[str] = Field(None, min_length=2, max_length=64)
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=600)
    type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, gt=0)
    min_subtotal: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        return _upper_type(v)

    @model_validator(mode="after")
    def require_changes(self):
        if not self.model_fields_set:
            raise ValueError("No updates provided.")
        return self


class DiscountResponse(BaseResponseSchema):
    id: uuid.UUID
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    type: str
    value: Decimal
    min_subtotal: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DiscountVerifyRequest(BaseModel):
    code: str = Field(..., min_length=2, max_length=64)
    subtotal: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, max_length=8)


class DiscountQuote(BaseModel):
    """Result of applying a live discount to a cart subtotal."""
    discount: DiscountResponse
    amount: Decimal
    subtotal: Decimal
    discounted_subtotal: Decimal
    currency: str
