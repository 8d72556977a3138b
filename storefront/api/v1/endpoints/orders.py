from typing import Optional
from math import ceil

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB
from storefront.models.order import OrderStatus
from storefront.schemas.order import (
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from storefront.services.order_service import OrderService

router = APIRouter(tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(data: OrderCreate, db: DB):
    """
    Place an order. Items, totals and shipping details are stored as sent
    and are not affected by later catalog changes.
    """
    return await OrderService(db).create_order(data)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    user_id: Optional[str] = None,
):
    service = OrderService(db)
    orders, total = await service.get_orders(
        status=status,
        user_id=user_id,
        skip=(page - 1) * size,
        limit=size,
    )

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{identifier}", response_model=OrderResponse)
async def get_order(identifier: str, db: DB):
    """Get an order by id or order number."""
    return await OrderService(db).get_order(identifier)


@router.put("/{identifier}/status", response_model=OrderResponse)
async def update_order_status(identifier: str, data: OrderStatusUpdate, db: DB):
    return await OrderService(db).update_status(identifier, data.status)


@router.post("/{identifier}/cancel", response_model=OrderResponse)
async def cancel_order(identifier: str, db: DB):
    return await OrderService(db).cancel_order(identifier)
