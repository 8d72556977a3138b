"""
Variant Option Combinator.

Pure helpers that turn option axes into variant skeletons, derive variant
titles, and infer option axes back from a set of variants.
"""
import itertools
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pydantic

from storefront.core.exceptions import ValidationError, from_pydantic
from storefront.schemas.product import OptionInput, VariantDefaults, VariantInput, InventoryInput

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_TITLE = "Default"
TITLE_SEPARATOR = " / "

_WHITESPACE = re.compile(r"\s+")


def _option_values_of(variant: Any) -> Mapping[str, Any]:
    if isinstance(variant, Mapping):
        return variant.get("option_values") or {}
    return getattr(variant, "option_values", None) or {}


def build_variant_title(
    title: Optional[str],
    option_values: Optional[Mapping[str, Any]],
    option_order: Sequence[str],
) -> str:
    """
    Explicit title wins. Otherwise join the variant's non-blank values in the
    product's option order with " / ", falling back to "Default".
    """
    if title is not None and str(title).strip():
        return title
    option_values = option_values or {}
    parts = []
    for name in option_order:
        value = option_values.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            parts.append(value)
    return TITLE_SEPARATOR.join(parts) if parts else DEFAULT_VARIANT_TITLE


def build_sku(prefix: Optional[str], values: Sequence[str]) -> Optional[str]:
    """prefix-VALUE1-VALUE2 with whitespace removed and values upper-cased."""
    if not prefix:
        return None
    segments = [_WHITESPACE.sub("", value).upper() for value in values]
    segments = [segment for segment in segments if segment]
    if not segments:
        return prefix
    return f"{prefix}-" + "-".join(segments)


def _coerce_options(options: Sequence[Union[OptionInput, Mapping[str, Any]]]) -> List[OptionInput]:
    coerced = []
    try:
        for option in options:
            if isinstance(option, OptionInput):
                coerced.append(option)
            else:
                coerced.append(OptionInput.model_validate(option))
    except pydantic.ValidationError as e:
        raise from_pydantic(e)

    names = [option.name for option in coerced]
    duplicates = {name for name in names if names.count(name) > 1}
    if duplicates:
        raise ValidationError(f"Duplicate option name '{sorted(duplicates)[0]}'", field="options")
    return coerced


def combine_options(
    options: Sequence[Union[OptionInput, Mapping[str, Any]]],
    base: Optional[VariantDefaults] = None,
) -> List[VariantInput]:
    """
    Expand option axes into one skeleton per combination.

    The first option varies slowest. Zero options yield a single skeleton
    with empty option values (the Default variant).
    """
    coerced = _coerce_options(options)
    base = base or VariantDefaults()
    names = [option.name for option in coerced]

    inventory = None
    if base.inventory is not None:
        inventory = InventoryInput(available=base.inventory, location=base.location)

    skeletons = []
    for combination in itertools.product(*(option.values for option in coerced)):
        skeletons.append(VariantInput(
            option_values=dict(zip(names, combination)),
            sku=build_sku(base.sku_prefix, combination),
            price=base.price,
            compare_at_price=base.compare_at_price,
            inventory=inventory.model_copy() if inventory else None,
        ))

    logger.debug(f"Generated {len(skeletons)} variants from options {names}")
    return skeletons


def infer_options(variants: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Option axes implied by a set of variants: option names in first-seen
    order, each with its distinct non-blank values in first-seen order.

    Returns plain dicts; an axis whose values are all blank comes back with
    an empty value list and is rejected when validated as an OptionInput.
    """
    inferred: Dict[str, List[str]] = {}
    for variant in variants:
        for name, value in _option_values_of(variant).items():
            name = str(name).strip()
            if not name:
                continue
            values = inferred.setdefault(name, [])
            value = "" if value is None else str(value).strip()
            if value and value not in values:
                values.append(value)
    return [{"name": name, "values": values} for name, values in inferred.items()]
