import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import JSONType, UUIDType

if TYPE_CHECKING:
    from storefront.models.product import Product


class CollectionType(str, Enum):
    MANUAL = "MANUAL"
    AUTOMATED = "AUTOMATED"


class Collection(Base):
    """
    Merchandising collection ("Men", "Summer Tees").
    Collections form a tree through parent_id; cycles are not checked.
    """
    __tablename__ = "collections"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    handle: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20),
        default=CollectionType.MANUAL.value,
        nullable=False,
        comment="MANUAL, AUTOMATED"
    )
    rules: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    template_suffix: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("collections.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Self-referential relationship for hierarchy
    parent: Mapped[Optional["Collection"]] = relationship(
        "Collection",
        remote_side="Collection.id",
        back_populates="children"
    )
    children: Mapped[List["Collection"]] = relationship(
        "Collection",
        back_populates="parent",
        order_by="Collection.title"
    )
    product_links: Mapped[List["ProductCollection"]] = relationship(
        "ProductCollection",
        back_populates="collection",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Collection(handle='{self.handle}')>"


class ProductCollection(Base):
    """Product membership in a collection; position orders products inside it."""
    __tablename__ = "product_collections"
    __table_args__ = (
        UniqueConstraint("product_id", "collection_id", name="uq_product_collection"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    collection_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="collection_links")
    collection: Mapped["Collection"] = relationship("Collection", back_populates="product_links")
