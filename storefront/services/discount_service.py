from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import (
    StorefrontError, ConflictError, NotFoundError,
    DiscountNotFoundError, DiscountInactiveError, DiscountNotApplicableError,
)
from storefront.models.discount import Discount, DiscountType
from storefront.schemas.discount import (
    DiscountCreate, DiscountUpdate, DiscountResponse, DiscountQuote,
)
from storefront.services.discount_engine import (
    normalize_code, to_money, round_money, is_discount_live,
    calculate_discount_amount, validate_discount_rules,
)

logger = logging.getLogger(__name__)


class DiscountService:
    """Discount code CRUD and checkout verification."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    async def get_discounts(self) -> List[Discount]:
        result = await self.db.execute(
            select(Discount).order_by(Discount.updated_at.desc(), Discount.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_discount_by_id(self, discount_id: uuid.UUID) -> Discount:
        discount = await self.db.get(Discount, discount_id)
        if discount is None:
            raise NotFoundError("Discount not found.")
        return discount

    async def get_discount_by_code(self, code: str) -> Optional[Discount]:
        result = await self.db.execute(select(Discount).where(Discount.code == normalize_code(code)))
        return result.scalar_one_or_none()

    # ==================== MUTATIONS ====================

    async def create_discount(self, data: DiscountCreate) -> Discount:
        discount_type = data.type.value
        validate_discount_rules(discount_type, data.value, data.starts_at, data.ends_at)

        discount = Discount(
            code=normalize_code(data.code),
            name=data.name or None,
            description=data.description or None,
            type=discount_type,
            value=to_money(data.value),
            min_subtotal=to_money(data.min_subtotal, None),
            # A cap only makes sense for percentages
            max_discount=None if discount_type == DiscountType.FLAT.value else to_money(data.max_discount, None),
            starts_at=data.starts_at,
            ends_at=data.ends_at,
            is_active=data.is_active,
        )
        return await self._save(discount, "created")

    async def update_discount(self, discount_id: uuid.UUID, data: DiscountUpdate) -> Discount:
        discount = await self.get_discount_by_id(discount_id)
        fields = data.model_fields_set

        discount_type = data.type.value if data.type else discount.type
        value = data.value if "value" in fields and data.value is not None else discount.value
        starts_at = data.starts_at if "starts_at" in fields else discount.starts_at
        ends_at = data.ends_at if "ends_at" in fields else discount.ends_at
        validate_discount_rules(discount_type, value, starts_at, ends_at)

        discount.type = discount_type
        discount.value = to_money(value)
        discount.starts_at = starts_at
        discount.ends_at = ends_at
        if "code" in fields and data.code:
            discount.code = normalize_code(data.code)
        if "name" in fields:
            discount.name = data.name or None
        if "description" in fields:
            discount.description = data.description or None
        if "min_subtotal" in fields:
            discount.min_subtotal = to_money(data.min_subtotal, None)
        if "max_discount" in fields:
            discount.max_discount = to_money(data.max_discount, None)
        if "is_active" in fields and data.is_active is not None:
            discount.is_active = data.is_active
        if discount_type == DiscountType.FLAT.value:
            discount.max_discount = None

        return await self._save(discount, "updated")

    async def delete_discount(self, discount_id: uuid.UUID) -> None:
        discount = await self.get_discount_by_id(discount_id)
        await self.db.delete(discount)
        await self.db.commit()
        logger.info(f"Discount {discount.code} deleted")

    async def _save(self, discount: Discount, action: str) -> Discount:
        code = discount.code
        try:
            self.db.add(discount)
            await self.db.commit()
            await self.db.refresh(discount)
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Duplicate discount code {code}: {e.orig}")
            raise ConflictError("A discount with that code already exists.", field="code")
        except StorefrontError:
            await self.db.rollback()
            raise
        logger.info(f"Discount {code} {action}")
        return discount

    # ==================== VERIFICATION ====================

    async def verify(
        self,
        code: str,
        subtotal: Decimal,
        currency: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DiscountQuote:
        """
        Look a code up, check it is live and work out what it takes off
        ``subtotal``. Each way of failing raises its own error.
        """
        discount = await self.get_discount_by_code(code)
        if discount is None:
            raise DiscountNotFoundError("Discount code not found.", field="code")
        if not is_discount_live(discount, now):
            raise DiscountInactiveError("Discount code is inactive or expired.", field="code")

        amount_subtotal = to_money(subtotal)
        amount = calculate_discount_amount(discount, amount_subtotal)
        if amount <= 0:
            if discount.min_subtotal:
                raise DiscountNotApplicableError(
                    f"Order subtotal must be at least {to_money(discount.min_subtotal)} to use this code.",
                    field="subtotal",
                )
            raise DiscountNotApplicableError("Discount is not applicable for this cart.", field="subtotal")

        logger.debug(f"Discount {discount.code} applied: {amount} off {amount_subtotal}")
        return DiscountQuote(
            discount=DiscountResponse.model_validate(discount),
            amount=amount,
            subtotal=amount_subtotal,
            discounted_subtotal=round_money(max(amount_subtotal - amount, Decimal("0"))),
            currency=currency or settings.DEFAULT_CURRENCY,
        )
