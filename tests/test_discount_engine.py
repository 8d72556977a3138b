from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.core.exceptions import DomainRuleError
from storefront.models.discount import DiscountType
from storefront.services.discount_engine import (
    calculate_discount_amount,
    is_discount_live,
    normalize_code,
    round_money,
    validate_discount_rules,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def discount(**fields):
    data = {
        "code": "SAVE10",
        "type": "PERCENTAGE",
        "value": Decimal("10"),
        "min_subtotal": None,
        "max_discount": None,
        "starts_at": None,
        "ends_at": None,
        "is_active": True,
    }
    data.update(fields)
    return data


def test_normalize_code():
    assert normalize_code("  save10 ") == "SAVE10"
    assert normalize_code(None) == ""


def test_round_money_is_half_up():
    assert round_money("2.345") == Decimal("2.35")
    assert round_money(Decimal("2.344")) == Decimal("2.34")
    assert round_money("0.005") == Decimal("0.01")
    assert round_money("not a number") == Decimal("0.00")


class TestCalculateAmount:

    def test_percentage_capped_by_max_discount(self):
        d = discount(value=Decimal("10"), max_discount=Decimal("50"))
        assert calculate_discount_amount(d, Decimal("1000")) == Decimal("50.00")

    def test_percentage_without_cap(self):
        assert calculate_discount_amount(discount(), Decimal("1000")) == Decimal("100.00")

    def test_flat_below_min_subtotal_is_zero(self):
        d = discount(type="FLAT", value=Decimal("200"), min_subtotal=Decimal("500"))
        assert calculate_discount_amount(d, Decimal("400")) == Decimal("0.00")

    def test_flat_at_min_subtotal_applies(self):
        d = discount(type="FLAT", value=Decimal("200"), min_subtotal=Decimal("500"))
        assert calculate_discount_amount(d, Decimal("500")) == Decimal("200.00")

    def test_flat_ignores_max_discount(self):
        d = discount(type="FLAT", value=Decimal("300"), max_discount=Decimal("50"))
        assert calculate_discount_amount(d, Decimal("1000")) == Decimal("300.00")

    def test_flat_is_clamped_to_subtotal(self):
        d = discount(type=DiscountType.FLAT, value=Decimal("300"))
        assert calculate_discount_amount(d, Decimal("120.50")) == Decimal("120.50")

    def test_percentage_rounds_half_up(self):
        d = discount(value=Decimal("15"))
        # 15% of 33.30 = 4.995
        assert calculate_discount_amount(d, Decimal("33.30")) == Decimal("5.00")

    @pytest.mark.parametrize("subtotal", [Decimal("0"), Decimal("-10"), None])
    def test_non_positive_subtotal_is_zero(self, subtotal):
        assert calculate_discount_amount(discount(), subtotal) == Decimal("0.00")

    def test_non_positive_value_is_zero(self):
        assert calculate_discount_amount(discount(value=Decimal("0")), Decimal("100")) == Decimal("0.00")

    def test_zero_max_discount_means_uncapped(self):
        d = discount(value=Decimal("20"), max_discount=Decimal("0"))
        assert calculate_discount_amount(d, Decimal("100")) == Decimal("20.00")

    def test_accepts_plain_numbers(self):
        assert calculate_discount_amount(discount(value=10), 99.99) == Decimal("10.00")


class TestIsLive:

    def test_active_without_window(self):
        assert is_discount_live(discount(), NOW)

    def test_inactive_is_never_live(self):
        assert not is_discount_live(discount(is_active=False), NOW)

    def test_future_start_is_not_live_even_when_active(self):
        d = discount(is_active=True, starts_at=NOW + timedelta(minutes=1))
        assert not is_discount_live(d, NOW)

    def test_past_end_is_not_live(self):
        assert not is_discount_live(discount(ends_at=NOW - timedelta(seconds=1)), NOW)

    def test_window_bounds_are_inclusive(self):
        assert is_discount_live(discount(starts_at=NOW, ends_at=NOW), NOW)

    def test_naive_datetimes_are_read_as_utc(self):
        d = discount(starts_at=datetime(2026, 5, 1), ends_at=datetime(2026, 7, 1))
        assert is_discount_live(d, NOW)

    def test_missing_discount(self):
        assert not is_discount_live(None, NOW)


class TestValidateRules:

    def test_percentage_above_hundred(self):
        with pytest.raises(DomainRuleError, match="cannot be greater than 100"):
            validate_discount_rules("PERCENTAGE", Decimal("100.01"), None, None)

    def test_percentage_of_hundred_is_allowed(self):
        validate_discount_rules("PERCENTAGE", Decimal("100"), None, None)

    def test_flat_may_exceed_hundred(self):
        validate_discount_rules("FLAT", Decimal("500"), None, None)

    def test_end_before_start(self):
        with pytest.raises(DomainRuleError, match="ends_at must be after starts_at"):
            validate_discount_rules("FLAT", Decimal("5"), NOW, NOW - timedelta(days=1))

    def test_equal_bounds_are_allowed(self):
        validate_discount_rules(DiscountType.PERCENTAGE, Decimal("5"), NOW, NOW)
