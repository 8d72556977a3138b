from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, Field

from storefront.schemas.base import BaseResponseSchema


class LocationResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str


class InventoryLevelResponse(BaseResponseSchema):
    """Counters for one variant at one location."""
    id: uuid.UUID
    variant_id: uuid.UUID
    location_id: uuid.UUID
    location_name: Optional[str] = None
    available: int
    on_hand: int
    committed: int
    unavailable: int
    updated_at: Optional[datetime] = None


class InventoryLevelSet(BaseModel):
    """Upsert the sellable quantity of a variant at a location."""
    available: int = Field(..., ge=0)
    location: Optional[str] = Field(None, max_length=255, description="Location name, defaults to the default location")


class InventoryMovement(BaseModel):
    """
    Quantity moved between counters.

    `adjust` accepts negative quantities; every other movement requires a
    positive quantity.
    """
    quantity: int
    location: Optional[str] = Field(None, max_length=255)
    reason: Optional[str] = Field(None, max_length=255)
