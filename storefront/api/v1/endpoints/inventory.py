from typing import List
import uuid

from fastapi import APIRouter

from storefront.api.deps import DB
from storefront.schemas.inventory import (
    InventoryLevelResponse,
    InventoryLevelSet,
    InventoryMovement,
    LocationResponse,
)
from storefront.services.inventory_service import InventoryService

router = APIRouter(tags=["Inventory"])


@router.get("/locations", response_model=List[LocationResponse])
async def list_locations(db: DB):
    return await InventoryService(db).get_locations()


@router.get("/variants/{variant_id}", response_model=List[InventoryLevelResponse])
async def get_variant_levels(variant_id: uuid.UUID, db: DB):
    """Stock counters of a variant at every location."""
    return await InventoryService(db).get_levels(variant_id)


@router.put("/variants/{variant_id}", response_model=InventoryLevelResponse)
async def set_variant_level(variant_id: uuid.UUID, data: InventoryLevelSet, db: DB):
    """Set the sellable quantity at a location, creating the level (and location) if needed."""
    return await InventoryService(db).set_level(variant_id, data.available, data.location)


# ==================== LEDGER MOVEMENTS ====================

@router.post("/variants/{variant_id}/adjust", response_model=InventoryLevelResponse)
async def adjust_stock(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    """Receive (positive quantity) or write off (negative quantity) stock."""
    return await InventoryService(db).adjust(variant_id, data.quantity, data.location, data.reason)


@router.post("/variants/{variant_id}/commit", response_model=InventoryLevelResponse)
async def commit_stock(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    return await InventoryService(db).commit(variant_id, data.quantity, data.location, data.reason)


@router.post("/variants/{variant_id}/release", response_model=InventoryLevelResponse)
async def release_stock(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    return await InventoryService(db).release(variant_id, data.quantity, data.location, data.reason)


@router.post("/variants/{variant_id}/fulfill", response_model=InventoryLevelResponse)
async def fulfill_stock(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    return await InventoryService(db).fulfill(variant_id, data.quantity, data.location, data.reason)


@router.post("/variants/{variant_id}/unavailable", response_model=InventoryLevelResponse)
async def mark_stock_unavailable(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    return await InventoryService(db).mark_unavailable(variant_id, data.quantity, data.location, data.reason)


@router.post("/variants/{variant_id}/restore", response_model=InventoryLevelResponse)
async def restore_stock(variant_id: uuid.UUID, data: InventoryMovement, db: DB):
    return await InventoryService(db).restore(variant_id, data.quantity, data.location, data.reason)
