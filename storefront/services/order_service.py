from typing import List, Optional, Tuple, Union
from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import DomainRuleError, NotFoundError
from storefront.core.text_utils import parse_identifier
from storefront.models.order import Order, OrderStatus, ORDER_TRANSITIONS
from storefront.schemas.order import OrderCreate

logger = logging.getLogger(__name__)

BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.PAID}


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


class OrderService:
    """Order snapshots and their status lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== ORDER NUMBER GENERATION ====================

    async def generate_order_number(self, now: Optional[datetime] = None) -> str:
        """Generate order number: ORD-<base36 epoch milliseconds>"""
        now = now or datetime.now(timezone.utc)
        millis = int(now.timestamp() * 1000)
        while True:
            number = f"ORD-{to_base36(millis)}"
            stmt = select(func.count(Order.id)).where(Order.number == number)
            if not (await self.db.execute(stmt)).scalar():
                return number
            # Two orders in the same millisecond take the next free value
            millis += 1

    # ==================== ORDER METHODS ====================

    async def create_order(self, data: OrderCreate) -> Order:
        """Store the cart exactly as submitted. Catalog prices are not re-read."""
        totals = data.totals.model_dump(mode="json")
        totals["currency"] = totals.get("currency") or settings.DEFAULT_CURRENCY

        order = Order(
            number=await self.generate_order_number(),
            status=OrderStatus.PENDING.value,
            payment_method=data.payment_method,
            user_id=data.user_id,
            items=[item.model_dump(mode="json") for item in data.items],
            totals=totals,
            shipping=data.shipping.model_dump(mode="json"),
        )
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(f"Order {order.number} placed: {len(order.items)} items, total {totals['total']}")
        return order

    async def get_orders(
        self,
        status: Optional[OrderStatus] = None,
        user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Order], int]:
        """Get paginated orders, newest first."""
        filters = []
        if status:
            filters.append(Order.status == OrderStatus(status).value)
        if user_id:
            filters.append(Order.user_id == user_id)

        stmt = select(Order)
        count_stmt = select(func.count(Order.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar()
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_order(self, identifier: Union[str, uuid.UUID]) -> Order:
        """Get order by id or by order number."""
        order_id = parse_identifier(identifier)
        if order_id is not None:
            order = await self.db.get(Order, order_id)
        else:
            result = await self.db.execute(
                select(Order).where(Order.number == str(identifier).strip().upper())
            )
            order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def update_status(self, identifier: Union[str, uuid.UUID], new_status: OrderStatus) -> Order:
        order = await self.get_order(identifier)
        current = OrderStatus(order.status)
        new_status = OrderStatus(new_status)

        if new_status not in ORDER_TRANSITIONS[current]:
            raise DomainRuleError(
                f"Cannot change order status from {current.value} to {new_status.value}",
                field="status",
            )

        order.status = new_status.value
        order.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(f"Order {order.number}: {current.value} -> {new_status.value}")
        return order

    async def cancel_order(self, identifier: Union[str, uuid.UUID]) -> Order:
        order = await self.get_order(identifier)
        if OrderStatus(order.status) not in CANCELLABLE_STATUSES:
            raise DomainRuleError(f"Order in status {order.status} cannot be cancelled", field="status")
        return await self.update_status(order.id, OrderStatus.CANCELLED)
