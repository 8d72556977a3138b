"""Error taxonomy shared by the catalog, pricing and order services.

Every error here is user-facing: the API layer maps ``status_code`` straight
onto the HTTP response. Anything that is not a ``StorefrontError`` is treated
as a server fault.
"""
from typing import Optional

import pydantic


class StorefrontError(Exception):
    """Base class for recoverable, user-facing errors."""
    status_code: int = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class ValidationError(StorefrontError):
    """Malformed payload; carries the first failing field's message."""
    status_code = 400


class NotFoundError(StorefrontError):
    """Unknown product, collection, discount, variant or order."""
    status_code = 404


class ConflictError(StorefrontError):
    """Duplicate handle, SKU or discount code."""
    status_code = 409


class DomainRuleError(StorefrontError):
    """Well-formed request that breaks a business rule."""
    status_code = 422


class DiscountNotFoundError(NotFoundError):
    pass


class DiscountInactiveError(DomainRuleError):
    pass


class DiscountNotApplicableError(DomainRuleError):
    pass


def first_error_message(exc: pydantic.ValidationError) -> str:
    """Human readable message for the first failing field of a pydantic error."""
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    # ValueErrors raised inside validators are prefixed by pydantic
    message = message.removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def from_pydantic(exc: pydantic.ValidationError) -> ValidationError:
    errors = exc.errors()
    field = None
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ())) or None
    return ValidationError(first_error_message(exc), field=field)
