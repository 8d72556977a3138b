"""Storefront order: an immutable snapshot of what was bought and what it cost."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import JSONType, UUIDType


class OrderStatus(str, Enum):
    PENDING = "PENDING"      # Placed, awaiting payment
    PAID = "PAID"            # Payment captured
    FULFILLED = "FULFILLED"  # Shipped/delivered
    CANCELLED = "CANCELLED"


# Allowed status moves; terminal states map to an empty set
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    OrderStatus.FULFILLED: set(),
    OrderStatus.CANCELLED: set(),
}


class Order(Base):
    """
    Line items and totals are copied at creation time and never re-read from
    the catalog, so later price edits do not change past orders.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, PAID, FULFILLED, CANCELLED"
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # [{"sku", "name", "price", "quantity"}, ...]
    items: Mapped[list] = mapped_column(JSONType, nullable=False)
    # {"subtotal", "shipping_fee", "total", "currency"}
    totals: Mapped[dict] = mapped_column(JSONType, nullable=False)
    shipping: Mapped[dict] = mapped_column(JSONType, nullable=False)

    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

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
        return f"<Order(number='{self.number}', status='{self.status}')>"
