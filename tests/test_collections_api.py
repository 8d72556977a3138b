import uuid

from tests.factories import tee_payload

BASE = "/api/v1/collections"


async def _create(client, **body):
    response = await client.post(BASE, json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_derives_handle_and_defaults(client):
    data = await _create(client, title="Summer Sale", description="<p>Hot</p>")

    assert data["handle"] == "summer-sale"
    assert data["type"] == "MANUAL"
    assert data["description_html"] == "<p>Hot</p>"
    assert data["parent_id"] is None
    assert data["children"] == []
    assert data["product_count"] == 0


async def test_parent_by_handle_and_children_listing(client):
    men = await _create(client, title="Men")
    tops = await _create(client, title="Tops", parent_handle="men")
    await _create(client, title="Orphan", parent_handle="does-not-exist")

    assert tops["parent_id"] == men["id"]

    response = await client.get(f"{BASE}/handle/men")
    assert response.status_code == 200
    assert [c["handle"] for c in response.json()["children"]] == ["tops"]

    roots = (await client.get(BASE, params={"roots_only": True})).json()
    assert [c["handle"] for c in roots["items"]] == ["men", "orphan"]
    assert roots["total"] == 2

    children = (await client.get(BASE, params={"parent_id": men["id"]})).json()
    assert [c["handle"] for c in children["items"]] == ["tops"]


async def test_unknown_parent_id_is_not_found(client):
    response = await client.post(BASE, json={"title": "Tops", "parent_id": str(uuid.uuid4())})

    assert response.status_code == 404
    assert response.json()["error"] == "Parent collection not found"


async def test_duplicate_handle_is_a_conflict(client):
    await _create(client, title="Men")

    response = await client.post(BASE, json={"title": "Menswear", "handle": "Men"})

    assert response.status_code == 409
    assert response.json()["type"] == "ConflictError"


async def test_list_is_ordered_by_title_and_paginated(client):
    for title in ["Tops", "Accessories", "Men"]:
        await _create(client, title=title)

    page = (await client.get(BASE, params={"page": 2, "size": 2})).json()

    assert [c["title"] for c in page["items"]] == ["Tops"]
    assert (page["total"], page["pages"], page["page"]) == (3, 2, 2)


async def test_update(client):
    men = await _create(client, title="Men")
    women = await _create(client, title="Women")

    response = await client.put(f"{BASE}/{women['id']}", json={"title": "Womenswear", "type": "automated", "parent_id": men["id"]})

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Womenswear"
    assert data["handle"] == "women"
    assert data["type"] == "AUTOMATED"
    assert data["parent_id"] == men["id"]


async def test_update_rejects_self_parent_and_blank_title(client):
    men = await _create(client, title="Men")

    response = await client.put(f"{BASE}/{men['id']}", json={"parent_id": men["id"]})
    assert response.status_code == 400
    assert response.json()["error"] == "A collection cannot be its own parent"

    response = await client.put(f"{BASE}/{men['id']}", json={"handle": "!!!"})
    assert response.status_code == 400
    assert response.json()["error"] == "Handle cannot be blank"


async def test_product_count_follows_memberships(client, admin_headers):
    men = await _create(client, title="Men")
    response = await client.post("/api/v1/products", json=tee_payload(collection_handles=["men"]), headers=admin_headers)
    assert response.status_code == 201

    detail = (await client.get(f"{BASE}/{men['id']}")).json()

    assert detail["product_count"] == 1


async def test_delete_keeps_children_as_roots(client):
    men = await _create(client, title="Men")
    tops = await _create(client, title="Tops", parent_id=men["id"])

    response = await client.delete(f"{BASE}/{men['id']}")
    assert response.status_code == 204

    assert (await client.get(f"{BASE}/{men['id']}")).status_code == 404
    orphan = (await client.get(f"{BASE}/{tops['id']}")).json()
    assert orphan["parent_id"] is None
