from pydantic import BaseModel, Field, field_validator, model_validator

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, OptionalUUID
from typing import Optional, List, Any
from datetime import datetime
import uuid

from storefront.core.text_utils import slugify
from storefront.models.collection import CollectionType


# ==================== COLLECTION SCHEMAS ====================

class CollectionBase(BaseModel):
    """Fields shared by create and update."""
    description_html: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    type: Optional[CollectionType] = None
    rules: Optional[Any] = None
    template_suffix: Optional[str] = Field(None, max_length=100)
    published_at: Optional[datetime] = None
    parent_id: OptionalUUID = None
    parent_handle: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "description_html" not in data and "description" in data:
            data["description_html"] = data.pop("description")
        if isinstance(data.get("type"), str):
            data["type"] = data["type"].strip().upper() or None
        if "parent_id" in data and not data["parent_id"]:
            data["parent_id"] = None
        return data


class CollectionCreate(CollectionBase, BaseCreateSchema):
    """Collection creation. Handle defaults to the title slug."""
    title: str = Field(..., min_length=1, max_length=255)
    handle: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def derive_handle(self):
        self.handle = slugify(self.handle) or slugify(self.title)
        if not self.handle:
            raise ValueError("handle could not be derived from title")
        return self


class CollectionUpdate(CollectionBase, BaseUpdateSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    handle: Optional[str] = Field(None, max_length=255)

    @field_validator("handle")
    @classmethod
    def slug_handle(cls, v: Optional[str]) -> Optional[str]:
        return slugify(v) if v is not None else v


class CollectionResponse(BaseResponseSchema):
    id: uuid.UUID
    handle: str
    title: str
    description_html: Optional[str] = None
    image_url: Optional[str] = None
    type: str
    rules: Optional[Any] = None
    template_suffix: Optional[str] = None
    published_at: Optional[datetime] = None
    parent_id: OptionalUUID = None
    created_at: datetime
    updated_at: datetime


class CollectionDetailResponse(CollectionResponse):
    """Collection with its direct children and product count."""
    children: List[CollectionResponse] = []
    product_count: int = 0


class CollectionListResponse(BaseModel):
    items: List[CollectionResponse]
    total: int
    page: int
    size: int
    pages: int
