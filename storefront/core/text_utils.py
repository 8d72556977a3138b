"""Small parsing helpers shared by payload normalization and the CSV importer."""
import re
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

_NON_SLUG = re.compile(r"[^a-z0-9]+")

TRUE_TOKENS = {"true", "yes", "1", "y"}
FALSE_TOKENS = {"false", "no", "0", "n"}


def slugify(value: Any) -> Optional[str]:
    """Lower-case, collapse every run of non [a-z0-9] into one hyphen, trim edge hyphens."""
    if value is None:
        return None
    slug = _NON_SLUG.sub("-", str(value).strip().lower()).strip("-")
    return slug or None


def parse_identifier(value: Any) -> Optional[uuid.UUID]:
    """Return the UUID when ``value`` looks like a surrogate id, else None (treat as handle)."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


def split_list(value: Any, separators: str = ",") -> List[str]:
    """Split a delimited string (or pass a list through), trimming and dropping blanks."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    text = str(value)
    for sep in separators[1:]:
        text = text.replace(sep, separators[0])
    return [part.strip() for part in text.split(separators[0]) if part.strip()]


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a money/quantity cell; blank or malformed input gives None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def to_int(value: Any) -> Optional[int]:
    number = to_decimal(value)
    if number is None:
        return None
    return int(number)


def to_bool(value: Any) -> Optional[bool]:
    """Loose boolean parsing for CSV cells and form posts; unknown tokens give None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value > 0
    normalized = str(value).strip().lower()
    if normalized in TRUE_TOKENS:
        return True
    if normalized in FALSE_TOKENS:
        return False
    return None


def clean_str(value: Any) -> Optional[str]:
    """Trimmed string, or None when blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
