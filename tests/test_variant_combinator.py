from decimal import Decimal
from math import prod

import pytest

from storefront.core.exceptions import ValidationError
from storefront.schemas.product import VariantDefaults
from storefront.services.variant_combinator import (
    build_sku,
    build_variant_title,
    combine_options,
    infer_options,
)


@pytest.mark.parametrize("value_counts", [[1], [3], [2, 2], [3, 2, 4], [1, 5, 1]])
def test_combination_count_and_completeness(value_counts):
    options = [
        {"name": f"Option{i}", "values": [f"v{i}-{j}" for j in range(count)]}
        for i, count in enumerate(value_counts)
    ]

    skeletons = combine_options(options)

    assert len(skeletons) == prod(value_counts)
    names = {option["name"] for option in options}
    for skeleton in skeletons:
        assert set(skeleton.option_values) == names
    signatures = {tuple(sorted(s.option_values.items())) for s in skeletons}
    assert len(signatures) == len(skeletons)


def test_first_option_varies_slowest():
    skeletons = combine_options([
        {"name": "Size", "values": ["S", "M"]},
        {"name": "Color", "values": "Black, White"},
    ])

    assert [(s.option_values["Size"], s.option_values["Color"]) for s in skeletons] == [
        ("S", "Black"),
        ("S", "White"),
        ("M", "Black"),
        ("M", "White"),
    ]


def test_zero_options_gives_single_default_skeleton():
    skeletons = combine_options([])

    assert len(skeletons) == 1
    assert skeletons[0].option_values == {}
    assert build_variant_title(skeletons[0].title, skeletons[0].option_values, []) == "Default"


def test_defaults_applied_to_every_skeleton():
    defaults = VariantDefaults(
        price=Decimal("799"),
        compare_at_price=Decimal("999"),
        inventory=10,
        location="Store",
        sku_prefix="TEE",
    )

    skeletons = combine_options(
        [{"name": "Size", "values": ["S", "XL"]}, {"name": "Color", "values": ["navy blue"]}],
        defaults,
    )

    assert [s.sku for s in skeletons] == ["TEE-S-NAVYBLUE", "TEE-XL-NAVYBLUE"]
    for skeleton in skeletons:
        assert skeleton.price == Decimal("799")
        assert skeleton.compare_at_price == Decimal("999")
        assert skeleton.inventory.available == 10
        assert skeleton.inventory.location == "Store"
    assert skeletons[0].inventory is not skeletons[1].inventory


def test_no_inventory_default_leaves_inventory_unset():
    skeletons = combine_options([{"name": "Size", "values": ["S"]}], VariantDefaults(price=Decimal("1")))
    assert skeletons[0].inventory is None
    assert skeletons[0].sku is None


def test_option_without_values_is_rejected():
    with pytest.raises(ValidationError) as exc:
        combine_options([{"name": "Size", "values": []}])
    assert "Option 'Size' must have at least one value" in exc.value.message


def test_duplicate_option_names_are_rejected():
    with pytest.raises(ValidationError) as exc:
        combine_options([{"name": "Size", "values": ["S"]}, {"name": "Size", "values": ["M"]}])
    assert exc.value.message == "Duplicate option name 'Size'"


def test_repeated_values_are_collapsed():
    skeletons = combine_options([{"name": "Size", "values": ["S", "S", " M "]}])
    assert [s.option_values["Size"] for s in skeletons] == ["S", "M"]


class TestBuildSku:

    def test_joins_prefix_with_upper_cased_values(self):
        assert build_sku("TEE", ["s", "Off White"]) == "TEE-S-OFFWHITE"

    def test_prefix_alone_without_values(self):
        assert build_sku("TEE", []) == "TEE"

    def test_no_prefix_no_sku(self):
        assert build_sku(None, ["S"]) is None
        assert build_sku("", ["S"]) is None


class TestVariantTitle:

    def test_explicit_title_is_used_verbatim(self):
        assert build_variant_title("Limited Edition", {"Size": "M"}, ["Size"]) == "Limited Edition"

    def test_values_follow_declared_option_order(self):
        values = {"Color": "Black", "Size": "M"}
        assert build_variant_title(None, values, ["Size", "Color"]) == "M / Black"
        assert build_variant_title(None, values, ["Color", "Size"]) == "Black / M"

    def test_blank_values_leave_no_empty_segment(self):
        title = build_variant_title(None, {"Size": "M", "Fit": "  ", "Color": "Black"}, ["Size", "Fit", "Color"])
        assert title == "M / Black"

    def test_missing_values_fall_back_to_default(self):
        assert build_variant_title(None, {}, ["Size"]) == "Default"
        assert build_variant_title("  ", {"Size": ""}, ["Size"]) == "Default"

    def test_derivation_is_idempotent(self):
        values = {"Size": "L", "Color": "Red"}
        first = build_variant_title(None, values, ["Size", "Color"])
        assert build_variant_title(None, values, ["Size", "Color"]) == first


class TestInferOptions:

    def test_first_seen_order_of_names_and_values(self):
        variants = [
            {"option_values": {"Size": "S", "Color": "Red"}},
            {"option_values": {"Color": "Blue", "Size": "S"}},
            {"option_values": {"Size": "M", "Color": "Red"}},
        ]

        assert infer_options(variants) == [
            {"name": "Size", "values": ["S", "M"]},
            {"name": "Color", "values": ["Red", "Blue"]},
        ]

    def test_blank_values_are_not_collected(self):
        variants = [{"option_values": {"Fit": ""}}, {"option_values": {"Fit": None}}]
        assert infer_options(variants) == [{"name": "Fit", "values": []}]

    def test_variants_without_option_values(self):
        assert infer_options([{"sku": "A"}, {}]) == []

    def test_round_trip_with_combinator(self):
        options = [{"name": "Size", "values": ["S", "M"]}, {"name": "Color", "values": ["Black"]}]
        assert infer_options(combine_options(options)) == options
