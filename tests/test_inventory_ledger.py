import uuid

import pytest

from storefront.core.exceptions import DomainRuleError, NotFoundError, ValidationError
from storefront.services.catalog_sync_service import CatalogSynchronizer
from storefront.services.inventory_service import InventoryService
from tests.factories import hoodie_payload


@pytest.fixture
async def variant_id(db):
    """HOOD-M with 4 available at the default location."""
    product = await CatalogSynchronizer(db).synchronize(None, hoodie_payload())
    return product.variants[0].id


def counters(level):
    return level.available, level.committed, level.unavailable, level.on_hand


async def test_set_level_updates_existing_level(db, variant_id):
    level = await InventoryService(db).set_level(variant_id, 10)

    assert counters(level) == (10, 0, 0, 10)
    assert level.location_name == "Default"


async def test_set_level_creates_location_on_first_use(db, variant_id):
    service = InventoryService(db)

    level = await service.set_level(variant_id, 6, location="Store")

    assert level.location_name == "Store"
    assert [l.location_name for l in await service.get_levels(variant_id)] == ["Default", "Store"]
    assert [loc.name for loc in await service.get_locations()] == ["Default", "Store"]


async def test_set_level_keeps_committed_stock(db, variant_id):
    service = InventoryService(db)
    await service.commit(variant_id, 3)

    level = await service.set_level(variant_id, 8)

    assert counters(level) == (8, 3, 0, 11)
    assert level.is_balanced


async def test_set_level_rejects_negative(db, variant_id):
    with pytest.raises(ValidationError):
        await InventoryService(db).set_level(variant_id, -1)


async def test_set_level_for_unknown_variant(db):
    with pytest.raises(NotFoundError):
        await InventoryService(db).set_level(uuid.uuid4(), 1)


async def test_order_lifecycle_movements_keep_balance(db, variant_id):
    service = InventoryService(db)

    level = await service.commit(variant_id, 3, reason="order ORD-1")
    assert counters(level) == (1, 3, 0, 4)

    level = await service.release(variant_id, 1)
    assert counters(level) == (2, 2, 0, 4)

    level = await service.fulfill(variant_id, 2)
    assert counters(level) == (2, 0, 0, 2)
    assert level.is_balanced


async def test_hold_and_restore(db, variant_id):
    service = InventoryService(db)

    level = await service.mark_unavailable(variant_id, 1, reason="damaged")
    assert counters(level) == (3, 0, 1, 4)

    level = await service.restore(variant_id, 1)
    assert counters(level) == (4, 0, 0, 4)


async def test_adjust_moves_available_and_on_hand(db, variant_id):
    service = InventoryService(db)

    assert counters(await service.adjust(variant_id, 5)) == (9, 0, 0, 9)
    assert counters(await service.adjust(variant_id, -2)) == (7, 0, 0, 7)

    with pytest.raises(ValidationError):
        await service.adjust(variant_id, 0)


async def test_counters_cannot_go_negative(db, variant_id):
    service = InventoryService(db)

    with pytest.raises(DomainRuleError, match="only 4 available"):
        await service.commit(variant_id, 5)
    with pytest.raises(DomainRuleError):
        await service.release(variant_id, 1)
    with pytest.raises(DomainRuleError):
        await service.adjust(variant_id, -5)

    level = await service.get_level(variant_id)
    assert counters(level) == (4, 0, 0, 4)


@pytest.mark.parametrize("quantity", [0, -2])
async def test_movements_require_positive_quantity(db, variant_id, quantity):
    with pytest.raises(ValidationError, match="quantity must be positive"):
        await InventoryService(db).commit(variant_id, quantity)


async def test_movement_without_level_is_not_found(db, variant_id):
    with pytest.raises(NotFoundError, match="Nowhere"):
        await InventoryService(db).commit(variant_id, 1, location="Nowhere")
    with pytest.raises(NotFoundError, match="not found"):
        await InventoryService(db).commit(uuid.uuid4(), 1)


# ==================== API ====================

async def test_inventory_endpoints(client, admin_headers):
    created = await client.post("/api/v1/products", json=hoodie_payload(), headers=admin_headers)
    variant_id = created.json()["variants"][0]["id"]
    base = f"/api/v1/inventory/variants/{variant_id}"

    response = await client.post(f"{base}/commit", json={"quantity": 3, "reason": "order"})
    assert response.status_code == 200
    assert (response.json()["available"], response.json()["committed"]) == (1, 3)

    response = await client.post(f"{base}/commit", json={"quantity": 2})
    assert response.status_code == 422
    assert response.json()["type"] == "DomainRuleError"

    response = await client.put(base, json={"available": 5, "location": "Store"})
    assert response.status_code == 200
    assert response.json()["location_name"] == "Store"

    levels = (await client.get(base)).json()
    assert [(l["location_name"], l["on_hand"]) for l in levels] == [("Default", 4), ("Store", 5)]

    locations = (await client.get("/api/v1/inventory/locations")).json()
    assert [loc["name"] for loc in locations] == ["Default", "Store"]

    missing = await client.get(f"/api/v1/inventory/variants/{uuid.uuid4()}")
    assert missing.status_code == 404
