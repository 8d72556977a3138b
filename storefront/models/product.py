import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import JSONType, UUIDType

if TYPE_CHECKING:
    from storefront.models.collection import Collection, ProductCollection
    from storefront.models.inventory import InventoryLevel


class ProductStatus(str, Enum):
    """Product status enumeration."""
    ACTIVE = "ACTIVE"
    DRAFT = "DRAFT"
    ARCHIVED = "ARCHIVED"


class ApparelType(str, Enum):
    TOP = "TOP"
    BOTTOM = "BOTTOM"
    SHOES = "SHOES"
    ACCESSORY = "ACCESSORY"
    OTHER = "OTHER"


class MediaType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    MODEL_3D = "MODEL_3D"
    EXTERNAL_VIDEO = "EXTERNAL_VIDEO"


class InventoryPolicy(str, Enum):
    """What happens when a tracked variant runs out."""
    DENY = "DENY"          # Stop selling
    CONTINUE = "CONTINUE"  # Allow backorders


class WeightUnit(str, Enum):
    GRAMS = "GRAMS"
    KILOGRAMS = "KILOGRAMS"
    OUNCES = "OUNCES"
    POUNDS = "POUNDS"


class MetafieldSet(str, Enum):
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """
    Apparel product. Owns options, media, variants and metafields by
    composition; child rows are replaced wholesale by the catalog
    synchronizer, never patched row by row.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index('ix_product_status_created', 'status', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic Info
    handle: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductStatus.DRAFT.value,
        nullable=False,
        comment="ACTIVE, DRAFT, ARCHIVED"
    )

    # Classification
    vendor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    product_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    apparel_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="TOP, BOTTOM, SHOES, ACCESSORY, OTHER"
    )
    template_suffix: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    subscriptions_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    # Relationships
    options: Mapped[List["ProductOption"]] = relationship(
        "ProductOption",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductOption.position"
    )
    media: Mapped[List["ProductMedia"]] = relationship(
        "ProductMedia",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductMedia.position"
    )
    variants: Mapped[List["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.position"
    )
    metafields: Mapped[List["ProductMetafield"]] = relationship(
        "ProductMetafield",
        back_populates="product",
        cascade="all, delete-orphan"
    )
    collection_links: Mapped[List["ProductCollection"]] = relationship(
        "ProductCollection",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductCollection.position"
    )

    @property
    def collections(self) -> List["Collection"]:
        """Collections this product belongs to, in membership order."""
        return [link.collection for link in self.collection_links if link.collection is not None]

    @property
    def option_names(self) -> List[str]:
        return [option.name for option in self.options]

    def __repr__(self) -> str:
        return f"<Product(handle='{self.handle}', status='{self.status}')>"


class ProductOption(Base):
    """Named axis of variation (Size, Color) with its ordered values."""
    __tablename__ = "product_options"
    __table_args__ = (
        UniqueConstraint("product_id", "name", name="uq_product_option_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    values: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="options")


class ProductMedia(Base):
    """Product image/video. Variants point at one of these as their image."""
    __tablename__ = "product_media"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20),
        default=MediaType.IMAGE.value,
        nullable=False,
        comment="IMAGE, VIDEO, MODEL_3D, EXTERNAL_VIDEO"
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="media")


class ProductVariant(Base):
    """
    One purchasable combination of option values.
    Title is derived from the product's option order unless set explicitly.
    """
    __tablename__ = "product_variants"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="Default")
    position: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True, index=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Pricing
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    compare_at_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    cost_per_item: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Cost price (internal)"
    )
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    unit_price_measurement: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Inventory & shipping
    track_inventory: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    inventory_policy: Mapped[str] = mapped_column(
        String(20),
        default=InventoryPolicy.DENY.value,
        nullable=False,
        comment="DENY, CONTINUE"
    )
    requires_shipping: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)
    weight_unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    origin_country_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    hs_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Option name -> value, e.g. {"Size": "M", "Color": "Black"}
    option_values: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    image_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("product_media.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    product: Mapped["Product"] = relationship("Product", back_populates="variants")
    image: Mapped[Optional["ProductMedia"]] = relationship("ProductMedia")
    inventory_levels: Mapped[List["InventoryLevel"]] = relationship(
        "InventoryLevel",
        back_populates="variant",
        cascade="all, delete-orphan"
    )
    metafields: Mapped[List["VariantMetafield"]] = relationship(
        "VariantMetafield",
        back_populates="variant",
        cascade="all, delete-orphan"
    )

    @property
    def image_url(self) -> Optional[str]:
        return self.image.url if self.image else None

    def __repr__(self) -> str:
        return f"<ProductVariant(title='{self.title}', sku='{self.sku}')>"


class ProductMetafield(Base):
    """Typed (namespace, key) value attached to a product."""
    __tablename__ = "product_metafields"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    namespace: Mapped[str] = mapped_column(String(100), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    set: Mapped[str] = mapped_column(
        String(20),
        default=MetafieldSet.PRODUCT.value,
        nullable=False,
        comment="PRODUCT, CATEGORY"
    )

    product: Mapped["Product"] = relationship("Product", back_populates="metafields")


class VariantMetafield(Base):
    __tablename__ = "variant_metafields"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    variant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    namespace: Mapped[str] = mapped_column(String(100), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    variant: Mapped["ProductVariant"] = relationship("ProductVariant", back_populates="metafields")
