"""
Discount Engine.

Pure money arithmetic for discount codes. Everything is Decimal and rounded
half-up to two places, so results are exact and reproducible. Nothing here
touches the database.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

from storefront.core.exceptions import DomainRuleError
from storefront.models.discount import DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def round_money(value: Any) -> Decimal:
    """Round half-up to two decimal places. Non-numeric input gives 0.00."""
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not number.is_finite():
        return ZERO
    return number.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any, fallback: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """Blank input gives ``fallback``; anything else is rounded with round_money."""
    if value is None or value == "":
        return fallback
    return round_money(value)


def normalize_code(code: Any) -> str:
    return str(code or "").strip().upper()


def _field(discount: Any, name: str) -> Any:
    if isinstance(discount, dict):
        return discount.get(name)
    return getattr(discount, name, None)


def _type_name(value: Any) -> str:
    return str(getattr(value, "value", value) or "").upper()


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_discount_live(discount: Any, now: Optional[datetime] = None) -> bool:
    """Active and inside its [starts_at, ends_at] window (either bound optional)."""
    if not discount or not _field(discount, "is_active"):
        return False
    now = _as_aware(now) or datetime.now(timezone.utc)
    starts_at = _as_aware(_field(discount, "starts_at"))
    ends_at = _as_aware(_field(discount, "ends_at"))
    if starts_at and now < starts_at:
        return False
    if ends_at and now > ends_at:
        return False
    return True


def calculate_discount_amount(discount: Any, subtotal: Any) -> Decimal:
    """
    Money taken off ``subtotal`` by ``discount``.

    FLAT takes its value off, uncapped. PERCENTAGE takes value% off, capped by
    max_discount when that is positive. The result is rounded half-up and
    clamped to [0, subtotal]. Below min_subtotal the amount is 0.
    """
    amount_subtotal = to_money(subtotal)
    if not discount or amount_subtotal <= 0:
        return ZERO

    min_subtotal = to_money(_field(discount, "min_subtotal"))
    if min_subtotal > 0 and amount_subtotal < min_subtotal:
        return ZERO

    value = to_money(_field(discount, "value"))
    if value <= 0:
        return ZERO

    discount_type = _type_name(_field(discount, "type"))
    if discount_type == DiscountType.FLAT.value:
        amount = value
    elif discount_type == DiscountType.PERCENTAGE.value:
        amount = amount_subtotal * value / HUNDRED
        max_discount = to_money(_field(discount, "max_discount"))
        if max_discount > 0:
            amount = min(amount, max_discount)
    else:
        return ZERO

    return max(ZERO, min(round_money(amount), amount_subtotal))


def validate_discount_rules(
    discount_type: Any,
    value: Any,
    starts_at: Optional[datetime],
    ends_at: Optional[datetime],
) -> None:
    """Business rules checked on create and on the merged state of an update."""
    if _type_name(discount_type) == DiscountType.PERCENTAGE.value and to_money(value) > HUNDRED:
        raise DomainRuleError("Percentage discounts cannot be greater than 100.", field="value")
    starts_at = _as_aware(starts_at)
    ends_at = _as_aware(ends_at)
    if starts_at and ends_at and starts_at > ends_at:
        raise DomainRuleError("ends_at must be after starts_at.", field="ends_at")
