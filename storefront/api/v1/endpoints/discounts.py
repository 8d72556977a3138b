from typing import List
import uuid

from fastapi import APIRouter, status

from storefront.api.deps import DB
from storefront.schemas.discount import (
    DiscountCreate,
    DiscountUpdate,
    DiscountResponse,
    DiscountVerifyRequest,
    DiscountQuote,
)
from storefront.services.discount_service import DiscountService

router = APIRouter(tags=["Discounts"])


@router.get("", response_model=List[DiscountResponse])
async def list_discounts(db: DB):
    """All discounts, most recently changed first."""
    return await DiscountService(db).get_discounts()


@router.post("/verify", response_model=DiscountQuote)
async def verify_discount(data: DiscountVerifyRequest, db: DB):
    """
    Check a code against a cart subtotal.

    Returns 404 for an unknown code and 422 when the code is inactive,
    expired or not applicable to the subtotal.
    """
    return await DiscountService(db).verify(data.code, data.subtotal, data.currency)


@router.post("", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
async def create_discount(data: DiscountCreate, db: DB):
    return await DiscountService(db).create_discount(data)


@router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(discount_id: uuid.UUID, db: DB):
    return await DiscountService(db).get_discount_by_id(discount_id)


@router.put("/{discount_id}", response_model=DiscountResponse)
@router.patch("/{discount_id}", response_model=DiscountResponse)
async def update_discount(discount_id: uuid.UUID, data: DiscountUpdate, db: DB):
    return await DiscountService(db).update_discount(discount_id, data)


@router.delete("/{discount_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_discount(discount_id: uuid.UUID, db: DB):
    await DiscountService(db).delete_discount(discount_id)
