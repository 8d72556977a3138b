"""Inventory models: stock locations and per (variant, location) levels."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, ForeignKey, Integer, DateTime
from sqlalchemy import UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
import uuid

from storefront.database import Base
from storefront.db_types import UUIDType


class Location(Base):
    """Named stock location. Created lazily the first time a name is used."""

    __tablename__ = "locations"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), unique=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    inventory_levels = relationship("InventoryLevel", back_populates="location")

    def __repr__(self):
        return f"<Location {self.name}>"


class InventoryLevel(Base):
    """
    Stock counters for one variant at one location.

    on_hand = available + committed + unavailable
    """

    __tablename__ = "inventory_levels"
    __table_args__ = (
        UniqueConstraint("variant_id", "location_id", name="uq_inventory_level_variant_location"),
        CheckConstraint(
            "on_hand = available + committed + unavailable",
            name="ck_inventory_level_balance"
        ),
        CheckConstraint(
            "available >= 0 AND committed >= 0 AND unavailable >= 0",
            name="ck_inventory_level_non_negative"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)

    variant_id = Column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    location_id = Column(
        UUIDType,
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    available = Column(Integer, default=0, nullable=False)  # Sellable now
    on_hand = Column(Integer, default=0, nullable=False)  # Physically present
    committed = Column(Integer, default=0, nullable=False)  # Reserved by orders
    unavailable = Column(Integer, default=0, nullable=False)  # Damaged, quality hold

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    variant = relationship("ProductVariant", back_populates="inventory_levels")
    location = relationship("Location", back_populates="inventory_levels")

    @property
    def location_name(self):
        return self.location.name if self.location else None

    @property
    def is_balanced(self) -> bool:
        return self.on_hand == self.available + self.committed + self.unavailable

    def __repr__(self):
        return f"<InventoryLevel variant={self.variant_id} available={self.available}>"
