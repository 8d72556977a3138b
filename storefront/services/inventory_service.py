"""
Inventory Ledger.

Stock counters per (variant, location). Every movement keeps

    on_hand = available + committed + unavailable

and no counter may go below zero.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging
import uuid

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import (
    StorefrontError, ValidationError, NotFoundError, ConflictError, DomainRuleError,
)
from storefront.core.text_utils import clean_str
from storefront.models.inventory import Location, InventoryLevel
from storefront.models.product import ProductVariant

logger = logging.getLogger(__name__)

# Counter deltas per unit moved
MOVEMENTS: Dict[str, Dict[str, int]] = {
    "commit": {"available": -1, "committed": 1},
    "release": {"committed": -1, "available": 1},
    "fulfill": {"committed": -1, "on_hand": -1},
    "mark_unavailable": {"available": -1, "unavailable": 1},
    "restore": {"unavailable": -1, "available": 1},
}


class InventoryService:
    """Service for stock locations and inventory levels."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== LOCATION METHODS ====================

    async def get_locations(self) -> List[Location]:
        result = await self.db.execute(select(Location).order_by(Location.name))
        return list(result.scalars().all())

    async def get_location_by_name(self, name: str) -> Optional[Location]:
        result = await self.db.execute(select(Location).where(Location.name == name))
        return result.scalar_one_or_none()

    async def get_or_create_location(self, name: Optional[str] = None) -> Location:
        """
        Resolve a location by name, creating it on first use.
        Flushes but does not commit; callers own the transaction.
        """
        name = clean_str(name) or settings.DEFAULT_LOCATION_NAME
        location = await self.get_location_by_name(name)
        if location is None:
            location = Location(id=uuid.uuid4(), name=name)
            self.db.add(location)
            await self.db.flush()
            logger.info(f"Created stock location '{name}'")
        return location

    # ==================== LEVEL METHODS ====================

    async def get_levels(self, variant_id: uuid.UUID) -> List[InventoryLevel]:
        """All levels of a variant, location loaded."""
        await self._require_variant(variant_id)
        result = await self.db.execute(
            select(InventoryLevel)
            .options(selectinload(InventoryLevel.location))
            .where(InventoryLevel.variant_id == variant_id)
            .execution_options(populate_existing=True)
        )
        levels = list(result.scalars().all())
        return sorted(levels, key=lambda level: level.location.name)

    async def get_level(self, variant_id: uuid.UUID, location: Optional[str] = None) -> Optional[InventoryLevel]:
        name = clean_str(location) or settings.DEFAULT_LOCATION_NAME
        result = await self.db.execute(
            select(InventoryLevel)
            .join(Location, InventoryLevel.location_id == Location.id)
            .options(selectinload(InventoryLevel.location))
            .where(and_(InventoryLevel.variant_id == variant_id, Location.name == name))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def set_level(
        self,
        variant_id: uuid.UUID,
        available: int,
        location: Optional[str] = None,
    ) -> InventoryLevel:
        """
        Upsert the sellable quantity at a location. Committed and unavailable
        stock is kept; on_hand is recomputed from the three counters.
        """
        if available < 0:
            raise ValidationError("available cannot be negative", field="available")

        try:
            await self._require_variant(variant_id)
            level = await self.get_level(variant_id, location)
            if level is None:
                stock_location = await self.get_or_create_location(location)
                level = InventoryLevel(
                    variant_id=variant_id,
                    location_id=stock_location.id,
                    available=available,
                    on_hand=available,
                    committed=0,
                    unavailable=0,
                )
                self.db.add(level)
            else:
                level.available = available
                level.on_hand = available + level.committed + level.unavailable
                level.updated_at = datetime.now(timezone.utc)
            await self.db.commit()
        except StorefrontError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent inventory upsert for variant {variant_id}: {e.orig}")
            raise ConflictError("Inventory level was modified concurrently, retry the request")

        logger.info(f"Inventory set: variant={variant_id} location={location or settings.DEFAULT_LOCATION_NAME} available={available}")
        return await self.get_level(variant_id, location)

    async def adjust(
        self,
        variant_id: uuid.UUID,
        delta: int,
        location: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> InventoryLevel:
        """Receive (positive) or write off (negative) sellable stock."""
        if delta == 0:
            raise ValidationError("quantity must not be zero", field="quantity")
        return await self._move(
            variant_id, location, "adjust", {"available": delta, "on_hand": delta}, reason
        )

    async def commit(self, variant_id: uuid.UUID, quantity: int, location: Optional[str] = None,
                     reason: Optional[str] = None) -> InventoryLevel:
        """Reserve sellable stock for an order."""
        return await self._movement(variant_id, quantity, location, "commit", reason)

    async def release(self, variant_id: uuid.UUID, quantity: int, location: Optional[str] = None,
                      reason: Optional[str] = None) -> InventoryLevel:
        """Return reserved stock to sale (order cancelled)."""
        return await self._movement(variant_id, quantity, location, "release", reason)

    async def fulfill(self, variant_id: uuid.UUID, quantity: int, location: Optional[str] = None,
                      reason: Optional[str] = None) -> InventoryLevel:
        """Ship reserved stock; it leaves the building."""
        return await self._movement(variant_id, quantity, location, "fulfill", reason)

    async def mark_unavailable(self, variant_id: uuid.UUID, quantity: int, location: Optional[str] = None,
                               reason: Optional[str] = None) -> InventoryLevel:
        """Put sellable stock on hold (damaged, quality check)."""
        return await self._movement(variant_id, quantity, location, "mark_unavailable", reason)

    async def restore(self, variant_id: uuid.UUID, quantity: int, location: Optional[str] = None,
                      reason: Optional[str] = None) -> InventoryLevel:
        """Return held stock to sale."""
        return await self._movement(variant_id, quantity, location, "restore", reason)

    # ==================== INTERNALS ====================

    async def _movement(self, variant_id, quantity, location, action, reason):
        if quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity")
        deltas = {field: sign * quantity for field, sign in MOVEMENTS[action].items()}
        return await self._move(variant_id, location, action, deltas, reason)

    async def _move(
        self,
        variant_id: uuid.UUID,
        location: Optional[str],
        action: str,
        deltas: Dict[str, int],
        reason: Optional[str],
    ) -> InventoryLevel:
        try:
            level = await self.get_level(variant_id, location)
            if level is None:
                await self._require_variant(variant_id)
                raise NotFoundError(
                    f"No inventory level for variant {variant_id} at "
                    f"'{clean_str(location) or settings.DEFAULT_LOCATION_NAME}'"
                )

            for field, delta in deltas.items():
                current = getattr(level, field)
                if current + delta < 0:
                    raise DomainRuleError(
                        f"Cannot {action.replace('_', ' ')} {abs(delta)}: only {current} {field.replace('_', ' ')}",
                        field="quantity",
                    )
            for field, delta in deltas.items():
                setattr(level, field, getattr(level, field) + delta)

            if not level.is_balanced:
                raise DomainRuleError(f"Inventory level for variant {variant_id} is out of balance")

            level.updated_at = datetime.now(timezone.utc)
            await self.db.commit()
        except StorefrontError:
            await self.db.rollback()
            raise

        logger.info(
            f"Inventory {action}: variant={variant_id} location={level.location_name} "
            f"deltas={deltas} reason={reason or '-'}"
        )
        return await self.get_level(variant_id, location)

    async def _require_variant(self, variant_id: uuid.UUID) -> None:
        result = await self.db.execute(select(ProductVariant.id).where(ProductVariant.id == variant_id))
        if result.first() is None:
            raise NotFoundError(f"Variant {variant_id} not found")
