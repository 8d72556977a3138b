from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db


# Type alias for dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]


def is_public_request(request: Request) -> bool:
    """
    Storefront shoppers call without credentials; admin tooling sends a
    bearer token. Token verification is handled upstream of this service.
    """
    return not request.headers.get("authorization", "").strip()


PublicRequest = Annotated[bool, Depends(is_public_request)]
