from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB
from storefront.models.collection import Collection
from storefront.schemas.collection import (
    CollectionCreate,
    CollectionUpdate,
    CollectionResponse,
    CollectionDetailResponse,
    CollectionListResponse,
)
from storefront.services.collection_service import CollectionService

router = APIRouter(tags=["Collections"])


async def _detail(service: CollectionService, collection: Collection) -> CollectionDetailResponse:
    response = CollectionDetailResponse.model_validate(collection)
    response.product_count = await service.count_products(collection.id)
    return response


@router.get("", response_model=CollectionListResponse)
async def list_collections(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    parent_id: Optional[uuid.UUID] = Query(None, description="Filter by parent collection"),
    roots_only: bool = Query(False),
):
    """Get paginated list of collections, ordered by title."""
    service = CollectionService(db)
    collections, total = await service.get_collections(
        parent_id=parent_id,
        roots_only=roots_only,
        skip=(page - 1) * size,
        limit=size,
    )

    return CollectionListResponse(
        items=[CollectionResponse.model_validate(c) for c in collections],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/handle/{handle}", response_model=CollectionDetailResponse)
async def get_collection_by_handle(handle: str, db: DB):
    service = CollectionService(db)
    return await _detail(service, await service.get_collection_by_handle(handle))


@router.get("/{collection_id}", response_model=CollectionDetailResponse)
async def get_collection(collection_id: uuid.UUID, db: DB):
    """Get a collection with its direct children and product count."""
    service = CollectionService(db)
    return await _detail(service, await service.get_collection_by_id(collection_id))


@router.post("", response_model=CollectionDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(data: CollectionCreate, db: DB):
    """
    Create a collection. The handle defaults to the title slug; the parent
    may be given by id or by handle.
    """
    service = CollectionService(db)
    return await _detail(service, await service.create_collection(data))


@router.put("/{collection_id}", response_model=CollectionDetailResponse)
async def update_collection(collection_id: uuid.UUID, data: CollectionUpdate, db: DB):
    service = CollectionService(db)
    return await _detail(service, await service.update_collection(collection_id, data))


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(collection_id: uuid.UUID, db: DB):
    """Delete a collection. Child collections become top-level."""
    await CollectionService(db).delete_collection(collection_id)
