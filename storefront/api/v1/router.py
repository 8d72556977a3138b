from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    # Catalog
    products,
    collections,
    inventory,
    # Pricing & Orders
    discounts,
    orders,
)

api_router = APIRouter(prefix="/api/v1")


# ==================== Catalog ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)
api_router.include_router(
    collections.router,
    prefix="/collections",
    tags=["Collections"]
)
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)

# ==================== Pricing & Orders ====================
api_router.include_router(
    discounts.router,
    prefix="/discounts",
    tags=["Discounts"]
)
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)
