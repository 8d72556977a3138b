"""
Discount code model for the storefront checkout.

Pricing behaviour lives in storefront.services.discount_engine; this model
only stores the rule.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType


class DiscountType(str, Enum):
    """Discount type enumeration."""
    FLAT = "FLAT"  # e.g., 200 off
    PERCENTAGE = "PERCENTAGE"  # e.g., 10% off


class Discount(Base):
    """
    Discount/Promo code.
    """
    __tablename__ = "discounts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    code: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="Normalized code: trimmed and upper-cased"
    )

    # Display Info
    name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Discount Type & Value
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DiscountType.PERCENTAGE.value,
        comment="FLAT, PERCENTAGE"
    )
    value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Money amount for FLAT, 0-100 for PERCENTAGE"
    )
    min_subtotal: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Minimum order subtotal to apply the code"
    )
    max_discount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Cap on discount for PERCENTAGE type; always null for FLAT"
    )

    # Validity Period
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Timestamps
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

    def __repr__(self) -> str:
        return f"<Discount(code='{self.code}', type='{self.type}', value={self.value})>"
