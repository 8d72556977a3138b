from typing import List, Optional, Sequence, Tuple, Union
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select, func, or_, and_, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import NotFoundError
from storefront.core.text_utils import parse_identifier
from storefront.models.collection import Collection, ProductCollection
from storefront.models.inventory import InventoryLevel
from storefront.models.product import Product, ProductStatus, ProductVariant

logger = logging.getLogger(__name__)


def product_load_options():
    """Eager-load chain for a fully populated product."""
    return (
        selectinload(Product.options),
        selectinload(Product.media),
        selectinload(Product.metafields),
        selectinload(Product.variants).selectinload(ProductVariant.image),
        selectinload(Product.variants).selectinload(ProductVariant.metafields),
        selectinload(Product.variants)
        .selectinload(ProductVariant.inventory_levels)
        .selectinload(InventoryLevel.location),
        selectinload(Product.collection_links).selectinload(ProductCollection.collection),
    )


class ProductService:
    """Read side of the catalog plus product deletion. Writes go through CatalogSynchronizer."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== PRODUCT METHODS ====================

    async def get_products(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[ProductStatus] = None,
        handles: Optional[Sequence[str]] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        skip: int = 0,
        limit: int = 24,
    ) -> Tuple[List[Product], int]:
        """Get products with filters, newest first."""
        filters = []

        if handles:
            filters.append(Product.handle.in_(list(handles)))

        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Product.title.ilike(search_filter),
                    Product.handle.ilike(search_filter),
                    Product.description_html.ilike(search_filter),
                    Product.vendor.ilike(search_filter),
                    Product.product_type.ilike(search_filter),
                )
            )

        if category:
            category_filter = f"%{category}%"
            in_collection = (
                select(ProductCollection.product_id)
                .join(Collection, ProductCollection.collection_id == Collection.id)
                .where(func.lower(Collection.handle) == category.lower())
            )
            filters.append(
                or_(
                    Product.product_type.ilike(category_filter),
                    Product.category.ilike(category_filter),
                    Product.id.in_(in_collection),
                )
            )

        # A product matches when any variant is in the price range
        if min_price is not None or max_price is not None:
            price_filters = [ProductVariant.product_id == Product.id]
            if min_price is not None:
                price_filters.append(ProductVariant.price >= min_price)
            if max_price is not None:
                price_filters.append(ProductVariant.price <= max_price)
            filters.append(select(ProductVariant.id).where(and_(*price_filters)).exists())

        if status:
            filters.append(Product.status == ProductStatus(status).value)

        stmt = select(Product).options(*product_load_options())
        count_stmt = select(func.count(Product.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar()

        stmt = stmt.order_by(Product.created_at.desc(), Product.handle).offset(skip).limit(limit)
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        products = result.scalars().unique().all()

        return list(products), total

    async def get_product_by_id(self, product_id: uuid.UUID) -> Product:
        """Fully populated product; raises NotFoundError."""
        stmt = (
            select(Product)
            .options(*product_load_options())
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        product = (await self.db.execute(stmt)).scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def get_product_by_handle(self, handle: str) -> Optional[Product]:
        stmt = (
            select(Product)
            .options(*product_load_options())
            .where(Product.handle == handle)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_product(self, identifier: Union[str, uuid.UUID]) -> Product:
        """
        Look a product up by id or handle. Values shaped like an id are tried
        as an id first and fall back to a handle lookup.
        """
        product_id = parse_identifier(identifier)
        if product_id is not None:
            try:
                return await self.get_product_by_id(product_id)
            except NotFoundError:
                pass
        product = await self.get_product_by_handle(str(identifier).strip())
        if product is None:
            raise NotFoundError(f"Product {identifier} not found")
        return product

    async def get_products_for_export(self) -> List[Product]:
        stmt = (
            select(Product)
            .options(*product_load_options())
            .order_by(Product.created_at, Product.handle)
            .execution_options(populate_existing=True)
        )
        return list((await self.db.execute(stmt)).scalars().unique().all())

    async def handle_exists(self, handle: str) -> bool:
        result = await self.db.execute(select(Product.id).where(Product.handle == handle))
        return result.first() is not None

    async def delete_product(self, identifier: Union[str, uuid.UUID]) -> None:
        """Delete a product and every child row (database cascades)."""
        product = await self.get_product(identifier)
        product_id, handle = product.id, product.handle
        try:
            await self.db.execute(delete(Product).where(Product.id == product_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"Deleted product '{handle}'")
