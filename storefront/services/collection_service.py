from typing import List, Optional, Tuple
from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.core.text_utils import slugify
from storefront.models.collection import Collection, CollectionType, ProductCollection
from storefront.schemas.collection import CollectionCreate, CollectionUpdate

logger = logging.getLogger(__name__)


class CollectionService:
    """Collection tree CRUD."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    async def get_collections(
        self,
        parent_id: Optional[uuid.UUID] = None,
        roots_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Collection], int]:
        """Get collections ordered by title."""
        stmt = select(Collection)
        count_stmt = select(func.count(Collection.id))

        if roots_only:
            stmt = stmt.where(Collection.parent_id.is_(None))
            count_stmt = count_stmt.where(Collection.parent_id.is_(None))
        elif parent_id:
            stmt = stmt.where(Collection.parent_id == parent_id)
            count_stmt = count_stmt.where(Collection.parent_id == parent_id)

        total = (await self.db.execute(count_stmt)).scalar()

        stmt = stmt.order_by(Collection.title).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_collection_by_id(self, collection_id: uuid.UUID) -> Collection:
        stmt = (
            select(Collection)
            .options(selectinload(Collection.children))
            .where(Collection.id == collection_id)
            .execution_options(populate_existing=True)
        )
        collection = (await self.db.execute(stmt)).scalar_one_or_none()
        if collection is None:
            raise NotFoundError("Collection not found")
        return collection

    async def get_collection_by_handle(self, handle: str) -> Collection:
        stmt = (
            select(Collection)
            .options(selectinload(Collection.children))
            .where(Collection.handle == slugify(handle))
            .execution_options(populate_existing=True)
        )
        collection = (await self.db.execute(stmt)).scalar_one_or_none()
        if collection is None:
            raise NotFoundError("Collection not found")
        return collection

    async def count_products(self, collection_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(ProductCollection.id)).where(ProductCollection.collection_id == collection_id)
        )
        return result.scalar() or 0

    async def _resolve_parent(
        self,
        parent_id: Optional[uuid.UUID],
        parent_handle: Optional[str],
    ) -> Optional[uuid.UUID]:
        """Parent by id (must exist) or by handle (unknown handles mean no parent)."""
        if parent_id:
            if await self.db.get(Collection, parent_id) is None:
                raise NotFoundError("Parent collection not found", field="parent_id")
            return parent_id
        if parent_handle:
            result = await self.db.execute(
                select(Collection.id).where(Collection.handle == slugify(parent_handle))
            )
            return result.scalar_one_or_none()
        return None

    # ==================== MUTATIONS ====================

    async def create_collection(self, data: CollectionCreate) -> Collection:
        parent_id = await self._resolve_parent(data.parent_id, data.parent_handle)
        collection = Collection(
            handle=data.handle,
            title=data.title,
            description_html=data.description_html,
            image_url=data.image_url,
            type=(data.type or CollectionType.MANUAL).value,
            rules=data.rules,
            template_suffix=data.template_suffix,
            published_at=data.published_at,
            parent_id=parent_id,
        )
        self.db.add(collection)
        await self._commit(collection.handle)
        logger.info(f"Collection '{collection.handle}' created")
        return await self.get_collection_by_id(collection.id)

    async def update_collection(self, collection_id: uuid.UUID, data: CollectionUpdate) -> Collection:
        collection = await self.get_collection_by_id(collection_id)
        update_data = data.model_dump(exclude_unset=True)

        if "parent_id" in update_data or "parent_handle" in update_data:
            parent_id = await self._resolve_parent(update_data.pop("parent_id", None), update_data.pop("parent_handle", None))
            if parent_id == collection.id:
                raise ValidationError("A collection cannot be its own parent", field="parent_id")
            collection.parent_id = parent_id
        if "handle" in update_data and not update_data["handle"]:
            raise ValidationError("Handle cannot be blank", field="handle")
        if "title" in update_data and not update_data["title"]:
            raise ValidationError("Title cannot be blank", field="title")
        if update_data.get("type") is not None:
            update_data["type"] = CollectionType(update_data["type"]).value
        elif "type" in update_data:
            update_data.pop("type")

        for field, value in update_data.items():
            setattr(collection, field, value)
        collection.updated_at = datetime.now(timezone.utc)

        await self._commit(collection.handle)
        logger.info(f"Collection '{collection.handle}' updated")
        return await self.get_collection_by_id(collection.id)

    async def delete_collection(self, collection_id: uuid.UUID) -> None:
        """Children are kept and become roots; product memberships are removed."""
        collection = await self.get_collection_by_id(collection_id)
        handle = collection.handle
        await self.db.delete(collection)
        await self.db.commit()
        logger.info(f"Collection '{handle}' deleted")

    async def _commit(self, handle: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Collection '{handle}' rejected: {e.orig}")
            raise ConflictError("Collection handle already exists", field="handle")
