from pydantic import BaseModel, Field, field_validator, model_validator

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema
from storefront.schemas.inventory import InventoryLevelResponse
from typing import Optional, List, Any, Dict, Iterable
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.core.text_utils import slugify, split_list, clean_str
from storefront.models.product import (
    ProductStatus, ApparelType, MediaType, InventoryPolicy, WeightUnit, MetafieldSet,
)


def _upper_or_none(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper() or None
    return value


def check_variant_options(options: Iterable[Any], variants: Iterable[Any]) -> None:
    """
    Raise ValueError unless every variant picks exactly one declared value
    for every option. Works on input schemas and on persisted ProductOption rows.
    """
    allowed = {option.name: set(option.values or []) for option in options}
    for index, variant in enumerate(variants, start=1):
        for name in variant.option_values:
            if name not in allowed:
                raise ValueError(f"Variant {index} uses undeclared option '{name}'")
        for name, values in allowed.items():
            value = variant.option_values.get(name)
            if not value:
                raise ValueError(f"Variant {index} is missing a value for option '{name}'")
            if value not in values:
                raise ValueError(f"Variant {index} has {name} '{value}' which is not one of the option values")


# ==================== INPUT SCHEMAS ====================

class MediaInput(BaseCreateSchema):
    """Product media. Bare URL strings are accepted in place of the object."""
    url: str = Field(..., min_length=1)
    alt: Optional[str] = Field(None, max_length=500)
    type: MediaType = MediaType.IMAGE
    position: Optional[int] = Field(None, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        return _upper_or_none(v) or MediaType.IMAGE

    @field_validator("url")
    @classmethod
    def normalize_protocol(cls, v: str) -> str:
        # Protocol-relative URLs are stored as https
        return f"https:{v}" if v.startswith("//") else v


class OptionInput(BaseCreateSchema):
    """Option axis. Values may be a list or a comma-separated string."""
    name: str = Field(..., min_length=1, max_length=100)
    values: List[str] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def split_values(cls, v):
        return split_list(v)

    @model_validator(mode="after")
    def require_values(self):
        values = list(dict.fromkeys(self.values))
        if not values:
            raise ValueError(f"Option '{self.name}' must have at least one value")
        self.values = values
        return self


class InventoryInput(BaseCreateSchema):
    available: int = Field(..., ge=0)
    location: Optional[str] = Field(None, max_length=255)


class MetafieldInput(BaseCreateSchema):
    namespace: str = Field(..., min_length=1, max_length=100)
    key: str = Field(..., min_length=1, max_length=100)
    type: str = Field("single_line_text_field", min_length=1, max_length=100)
    value: Any = None
    description: Optional[str] = None
    set: MetafieldSet = MetafieldSet.PRODUCT

    @field_validator("set", mode="before")
    @classmethod
    def upper_set(cls, v):
        return _upper_or_none(v) or MetafieldSet.PRODUCT


class VariantInput(BaseCreateSchema):
    """
    Desired state of one variant. Also the skeleton type produced by the
    option combinator.
    """
    title: Optional[str] = Field(None, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)

    # Pricing
    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    cost_per_item: Optional[Decimal] = Field(None, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    unit_price_measurement: Optional[dict] = None
    taxable: bool = True

    # Inventory & shipping
    track_inventory: bool = True
    inventory_policy: InventoryPolicy = InventoryPolicy.DENY
    requires_shipping: bool = True
    weight: Optional[Decimal] = Field(None, ge=0)
    weight_unit: Optional[WeightUnit] = None
    origin_country_code: Optional[str] = Field(None, max_length=10)
    hs_code: Optional[str] = Field(None, max_length=20)

    option_values: Dict[str, str] = Field(default_factory=dict)
    image_url: Optional[str] = None
    inventory: Optional[InventoryInput] = None
    metafields: List[MetafieldInput] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "image_url" not in data and "image" in data:
            data["image_url"] = data.pop("image")
        # [{"name": "Size", "value": "M"}] -> {"Size": "M"}
        values = data.get("option_values")
        if isinstance(values, list):
            data["option_values"] = {
                str(entry.get("name")).strip(): entry.get("value")
                for entry in values
                if isinstance(entry, dict) and clean_str(entry.get("name"))
            }
        inventory = data.get("inventory")
        if isinstance(inventory, (int, str)) and not isinstance(inventory, bool):
            data["inventory"] = {"available": inventory}
        for key in ("sku", "barcode", "image_url"):
            if key in data:
                data[key] = clean_str(data[key])
        for key in ("inventory_policy", "weight_unit"):
            if key in data:
                data[key] = _upper_or_none(data[key])
        return data

    @field_validator("option_values", mode="before")
    @classmethod
    def clean_option_values(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {
            str(name).strip(): "" if value is None else str(value).strip()
            for name, value in v.items()
            if str(name).strip()
        }

    @field_validator("image_url")
    @classmethod
    def normalize_image_protocol(cls, v: Optional[str]) -> Optional[str]:
        if v and v.startswith("//"):
            return f"https:{v}"
        return v


class VariantDefaults(BaseCreateSchema):
    """Attributes applied uniformly to every generated variant."""
    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    inventory: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=255)
    sku_prefix: Optional[str] = Field(None, max_length=50)


class GenerateVariantsRequest(BaseCreateSchema):
    options: List[Dict[str, Any]] = Field(default_factory=list)
    defaults: Optional[VariantDefaults] = None


# ==================== PRODUCT PAYLOADS ====================

SCALAR_FIELDS = (
    "title",
    "handle",
    "description_html",
    "status",
    "vendor",
    "product_type",
    "category",
    "apparel_type",
    "template_suffix",
    "tags",
    "subscriptions_enabled",
    "published_at",
)

# Product columns that cannot be cleared by an update
REQUIRED_FIELDS = {"title", "handle", "status", "tags", "subscriptions_enabled"}


class ProductPayload(BaseCreateSchema):
    """
    Desired product state. Only fields present in the request are applied;
    child lists that are present replace the stored rows wholesale.
    """
    title: Optional[str] = Field(None, max_length=255)
    handle: Optional[str] = Field(None, max_length=255)
    description_html: Optional[str] = None
    status: Optional[ProductStatus] = None
    vendor: Optional[str] = Field(None, max_length=255)
    product_type: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=255)
    apparel_type: Optional[ApparelType] = None
    template_suffix: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = None
    subscriptions_enabled: Optional[bool] = None
    published_at: Optional[datetime] = None

    collections: Optional[List[uuid.UUID]] = None
    collection_handles: Optional[List[str]] = None
    media: Optional[List[MediaInput]] = None
    options: Optional[List[OptionInput]] = None
    variants: Optional[List[VariantInput]] = None
    metafields: Optional[List[MetafieldInput]] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_aliases(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "description_html" not in data and "description" in data:
            data["description_html"] = data.pop("description")
        if "media" not in data and "images" in data:
            data["media"] = data.pop("images")
        if isinstance(data.get("media"), list):
            data["media"] = [{"url": item} if isinstance(item, str) else item for item in data["media"]]
        for key in ("tags", "collection_handles"):
            if isinstance(data.get(key), str):
                data[key] = split_list(data[key])
        for key in ("status", "apparel_type"):
            if key in data:
                data[key] = _upper_or_none(data[key])
        if "handle" in data:
            data["handle"] = slugify(data["handle"])
        return data

    @field_validator("tags")
    @classmethod
    def drop_blank_tags(cls, v):
        if v is None:
            return v
        return [tag for tag in v if tag]

    @model_validator(mode="after")
    def check_children(self):
        if self.options:
            seen = set()
            for option in self.options:
                if option.name in seen:
                    raise ValueError(f"Duplicate option name '{option.name}'")
                seen.add(option.name)
        if self.variants:
            skus = set()
            for variant in self.variants:
                if variant.sku is None:
                    continue
                if variant.sku in skus:
                    raise ValueError(f"Duplicate SKU '{variant.sku}' in variants")
                skus.add(variant.sku)
            if self.options is not None:
                check_variant_options(self.options, self.variants)
        return self


class ProductCreate(ProductPayload):
    """Create payload: title is required and the handle defaults to its slug."""

    @model_validator(mode="after")
    def require_title(self):
        if not self.title:
            raise ValueError("title is required")
        if not self.handle:
            self.handle = slugify(self.title)
            if not self.handle:
                raise ValueError("handle could not be derived from title")
        return self


class ProductUpdate(ProductPayload):

    @model_validator(mode="after")
    def reject_blank_title(self):
        if "title" in self.model_fields_set and not self.title:
            raise ValueError("title cannot be blank")
        return self


# ==================== RESPONSE SCHEMAS ====================

class OptionResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    values: List[str]
    position: int


class MediaResponse(BaseResponseSchema):
    id: uuid.UUID
    url: str
    alt: Optional[str] = None
    type: str
    position: int


class MetafieldResponse(BaseResponseSchema):
    id: uuid.UUID
    namespace: str
    key: str
    type: str
    value: Any = None
    description: Optional[str] = None
    set: Optional[str] = None


class VariantResponse(BaseResponseSchema):
    id: uuid.UUID
    title: str
    position: int
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: Optional[Decimal] = None
    compare_at_price: Optional[Decimal] = None
    cost_per_item: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    unit_price_measurement: Optional[dict] = None
    taxable: bool
    track_inventory: bool
    inventory_policy: str
    requires_shipping: bool
    weight: Optional[Decimal] = None
    weight_unit: Optional[str] = None
    origin_country_code: Optional[str] = None
    hs_code: Optional[str] = None
    option_values: Dict[str, str] = {}
    image_id: Optional[uuid.UUID] = None
    image_url: Optional[str] = None
    inventory_levels: List[InventoryLevelResponse] = []
    metafields: List[MetafieldResponse] = []


class CollectionBrief(BaseResponseSchema):
    id: uuid.UUID
    handle: str
    title: str


class ProductResponse(BaseResponseSchema):
    """Fully populated product."""
    id: uuid.UUID
    handle: str
    title: str
    description_html: Optional[str] = None
    status: str
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    category: Optional[str] = None
    apparel_type: Optional[str] = None
    template_suffix: Optional[str] = None
    tags: List[str] = []
    subscriptions_enabled: bool = False
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    options: List[OptionResponse] = []
    media: List[MediaResponse] = []
    variants: List[VariantResponse] = []
    metafields: List[MetafieldResponse] = []
    collections: List[CollectionBrief] = []


class ProductListResponse(BaseModel):
    """Paginated product list."""
    items: List[ProductResponse]
    total: int
    page: int
    size: int
    pages: int
