"""
Catalog Synchronizer.

Reconciles a desired product state (scalars, collections, media, options,
variants, metafields) against the database. Child sets are replaced
wholesale: stored rows are deleted and the submitted rows re-inserted in
order, so a shape change never leaves stale rows behind.

One call is one transaction. Any failure rolls back everything written for
that product.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union
import logging
import uuid

import pydantic
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    StorefrontError, ValidationError, NotFoundError, ConflictError, from_pydantic,
)
from storefront.core.text_utils import parse_identifier, slugify
from storefront.models.collection import Collection, ProductCollection
from storefront.models.inventory import InventoryLevel
from storefront.models.product import (
    Product, ProductStatus, ProductOption, ProductMedia, ProductVariant,
    ProductMetafield, VariantMetafield,
)
from storefront.schemas.product import (
    ProductPayload, ProductCreate, ProductUpdate, OptionInput, VariantInput,
    SCALAR_FIELDS, REQUIRED_FIELDS, check_variant_options,
)
from storefront.services.inventory_service import InventoryService
from storefront.services.product_service import ProductService
from storefront.services.variant_combinator import build_variant_title, infer_options

logger = logging.getLogger(__name__)


class CatalogSynchronizer:
    """Transactional create/update of a product and all of its child rows."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    # ==================== ENTRY POINT ====================

    async def synchronize(
        self,
        product_ref: Optional[Union[str, uuid.UUID]],
        payload: Union[ProductPayload, Dict[str, Any]],
        replace_all: bool = False,
    ) -> Product:
        """
        Create (``product_ref`` is None) or update a product and return it
        fully populated.

        With ``replace_all`` every child list is treated as present, so
        absent lists clear the stored rows (used by bulk import).
        """
        data = self._coerce_payload(payload, creating=product_ref is None)

        try:
            product = await self._apply(product_ref, data, replace_all)
            product_id = product.id
            handle = product.handle
            await self.db.commit()
        except StorefrontError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Integrity error synchronizing product {product_ref or data.handle}: {e.orig}")
            raise ConflictError("A product with that handle or SKU already exists")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Unexpected error synchronizing product {product_ref or data.handle}: {e}")
            raise

        logger.info(f"Synchronized product '{handle}' ({'created' if product_ref is None else 'updated'})")
        return await ProductService(self.db).get_product_by_id(product_id)

    def _coerce_payload(self, payload, creating: bool) -> ProductPayload:
        if isinstance(payload, ProductPayload):
            if creating and (not payload.title or not payload.handle):
                raise ValidationError("title is required", field="title")
            return payload
        schema = ProductCreate if creating else ProductUpdate
        try:
            return schema.model_validate(payload or {})
        except pydantic.ValidationError as e:
            raise from_pydantic(e)

    # ==================== PHASES ====================

    async def _apply(self, product_ref, data: ProductPayload, replace_all: bool) -> Product:
        fields = data.model_fields_set

        def present(name: str) -> bool:
            return replace_all or name in fields

        product = None
        if product_ref is not None:
            product = await self._get_product(product_ref)

        variants = (data.variants or []) if present("variants") else None
        option_specs, option_order = await self._resolve_options(product, data, variants, replace_all)

        if "handle" in fields and data.handle:
            await self._check_handle(product, data.handle)
        if variants:
            await self._check_skus(product, [v.sku for v in variants if v.sku])

        # 1. Scalars
        if product is None:
            product = Product(id=uuid.uuid4(), status=ProductStatus.DRAFT.value, tags=[])
            self._apply_scalars(product, data, fields)
            self.db.add(product)
        else:
            self._apply_scalars(product, data, fields)
            product.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.debug(f"Product '{product.handle}': scalars applied")

        # 2. Collections
        if present("collections") or present("collection_handles"):
            collection_ids = await self._resolve_collections(
                data.collections or [], data.collection_handles or []
            )
            await self.db.execute(
                delete(ProductCollection).where(ProductCollection.product_id == product.id)
            )
            for position, collection_id in enumerate(collection_ids, start=1):
                self.db.add(ProductCollection(
                    product_id=product.id,
                    collection_id=collection_id,
                    position=position,
                ))
            await self.db.flush()
            logger.debug(f"Product '{product.handle}': {len(collection_ids)} collections linked")

        # 3. Media
        media_by_url = None
        if present("media"):
            media_by_url = await self._replace_media(product.id, data.media or [])

        # 4. Options
        if option_specs is not None:
            await self.db.execute(delete(ProductOption).where(ProductOption.product_id == product.id))
            for position, option in enumerate(option_specs, start=1):
                self.db.add(ProductOption(
                    product_id=product.id,
                    name=option.name,
                    values=list(option.values),
                    position=position,
                ))
            await self.db.flush()
            logger.debug(f"Product '{product.handle}': options {option_order}")

        # 5. Variants (and their inventory levels)
        if variants is not None:
            if media_by_url is None:
                media_by_url = await self._media_urls(product.id)
            await self._replace_variants(product.id, variants, option_order, media_by_url)

        # 6. Metafields
        if present("metafields"):
            await self.db.execute(delete(ProductMetafield).where(ProductMetafield.product_id == product.id))
            for metafield in data.metafields or []:
                self.db.add(ProductMetafield(
                    product_id=product.id,
                    namespace=metafield.namespace,
                    key=metafield.key,
                    type=metafield.type,
                    value=metafield.value,
                    description=metafield.description,
                    set=metafield.set.value,
                ))
            await self.db.flush()

        return product

    async def _resolve_options(self, product, data, variants, replace_all):
        """
        Work out which option rows to write (None keeps the stored ones) and
        the option order used for variant titles.
        """
        if "options" in data.model_fields_set:
            option_specs = data.options or []
        elif variants is not None:
            persisted = []
            if product is not None and not replace_all:
                persisted = await self._persisted_options(product.id)
            if persisted:
                self._check_variants(persisted, variants)
                return None, [option.name for option in persisted]
            option_specs = self._validate_inferred(infer_options(variants))
        elif replace_all:
            option_specs = []
        else:
            if product is None:
                return [], []
            return None, [option.name for option in await self._persisted_options(product.id)]

        if variants is not None:
            self._check_variants(option_specs, variants)
        return option_specs, [option.name for option in option_specs]

    def _validate_inferred(self, inferred: List[Dict[str, Any]]) -> List[OptionInput]:
        try:
            return [OptionInput.model_validate(option) for option in inferred]
        except pydantic.ValidationError as e:
            raise from_pydantic(e)

    def _check_variants(self, options: Sequence[Any], variants: Sequence[VariantInput]) -> None:
        try:
            check_variant_options(options, variants)
        except ValueError as e:
            raise ValidationError(str(e), field="variants")

    def _apply_scalars(self, product: Product, data: ProductPayload, fields) -> None:
        for name in SCALAR_FIELDS:
            if name not in fields:
                continue
            value = getattr(data, name)
            if value is None and name in REQUIRED_FIELDS:
                continue
            if isinstance(value, Enum):
                value = value.value
            setattr(product, name, value)

    async def _replace_media(self, product_id: uuid.UUID, items) -> Dict[str, uuid.UUID]:
        await self.db.execute(delete(ProductMedia).where(ProductMedia.product_id == product_id))
        media_by_url = {}
        for index, item in enumerate(items):
            media = ProductMedia(
                id=uuid.uuid4(),
                product_id=product_id,
                url=item.url,
                alt=item.alt,
                type=item.type.value,
                position=item.position if item.position is not None else index,
            )
            self.db.add(media)
            media_by_url.setdefault(item.url, media.id)
        await self.db.flush()
        logger.debug(f"Product {product_id}: {len(items)} media items")
        return media_by_url

    async def _replace_variants(
        self,
        product_id: uuid.UUID,
        variants: Sequence[VariantInput],
        option_order: List[str],
        media_by_url: Dict[str, uuid.UUID],
    ) -> None:
        variant_ids = (await self.db.execute(
            select(ProductVariant.id).where(ProductVariant.product_id == product_id)
        )).scalars().all()
        if variant_ids:
            await self.db.execute(delete(InventoryLevel).where(InventoryLevel.variant_id.in_(variant_ids)))
            await self.db.execute(delete(VariantMetafield).where(VariantMetafield.variant_id.in_(variant_ids)))
        await self.db.execute(delete(ProductVariant).where(ProductVariant.product_id == product_id))
        logger.debug(f"Product {product_id}: removed {len(variant_ids)} variants")

        created = []
        for position, item in enumerate(variants, start=1):
            image_id = None
            if item.image_url:
                image_id = media_by_url.get(item.image_url)
                if image_id is None:
                    logger.debug(f"Variant image {item.image_url} is not in the product media")
            variant = ProductVariant(
                id=uuid.uuid4(),
                product_id=product_id,
                position=position,
                title=build_variant_title(item.title, item.option_values, option_order),
                sku=item.sku,
                barcode=item.barcode,
                price=item.price,
                compare_at_price=item.compare_at_price,
                cost_per_item=item.cost_per_item,
                unit_price=item.unit_price,
                unit_price_measurement=item.unit_price_measurement,
                taxable=item.taxable,
                track_inventory=item.track_inventory,
                inventory_policy=item.inventory_policy.value,
                requires_shipping=item.requires_shipping,
                weight=item.weight,
                weight_unit=item.weight_unit.value if item.weight_unit else None,
                origin_country_code=item.origin_country_code,
                hs_code=item.hs_code,
                option_values=dict(item.option_values),
                image_id=image_id,
            )
            self.db.add(variant)
            created.append((variant, item))
        await self.db.flush()

        levels = 0
        for variant, item in created:
            if item.inventory is not None and item.track_inventory is not False:
                location = await self.inventory.get_or_create_location(item.inventory.location)
                available = item.inventory.available
                self.db.add(InventoryLevel(
                    variant_id=variant.id,
                    location_id=location.id,
                    available=available,
                    on_hand=available,
                    committed=0,
                    unavailable=0,
                ))
                levels += 1
            for metafield in item.metafields:
                self.db.add(VariantMetafield(
                    variant_id=variant.id,
                    namespace=metafield.namespace,
                    key=metafield.key,
                    type=metafield.type,
                    value=metafield.value,
                    description=metafield.description,
                ))
        await self.db.flush()
        logger.debug(f"Product {product_id}: created {len(created)} variants, {levels} inventory levels")

    # ==================== LOOKUPS & CHECKS ====================

    async def _get_product(self, product_ref) -> Product:
        """By id when the value looks like one, falling back to the handle."""
        product = None
        product_id = parse_identifier(product_ref)
        if product_id is not None:
            product = await self.db.get(Product, product_id)
        if product is None:
            product = (await self.db.execute(
                select(Product).where(Product.handle == str(product_ref).strip())
            )).scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_ref} not found")
        return product

    async def _persisted_options(self, product_id: uuid.UUID) -> List[ProductOption]:
        result = await self.db.execute(
            select(ProductOption)
            .where(ProductOption.product_id == product_id)
            .order_by(ProductOption.position)
        )
        return list(result.scalars().all())

    async def _media_urls(self, product_id: uuid.UUID) -> Dict[str, uuid.UUID]:
        result = await self.db.execute(
            select(ProductMedia.url, ProductMedia.id)
            .where(ProductMedia.product_id == product_id)
            .order_by(ProductMedia.position)
        )
        media_by_url = {}
        for url, media_id in result.all():
            media_by_url.setdefault(url, media_id)
        return media_by_url

    async def _check_handle(self, product: Optional[Product], handle: str) -> None:
        stmt = select(Product.id).where(Product.handle == handle)
        if product is not None:
            stmt = stmt.where(Product.id != product.id)
        if (await self.db.execute(stmt)).first():
            raise ConflictError(f"A product with handle '{handle}' already exists", field="handle")

    async def _check_skus(self, product: Optional[Product], skus: List[str]) -> None:
        if not skus:
            return
        stmt = select(ProductVariant.sku).where(ProductVariant.sku.in_(skus))
        if product is not None:
            stmt = stmt.where(ProductVariant.product_id != product.id)
        taken = set((await self.db.execute(stmt)).scalars().all())
        # Report the first clash in submitted order
        first = next((sku for sku in skus if sku in taken), None)
        if first:
            raise ConflictError(f"SKU '{first}' is already used by another product", field="sku")

    async def _resolve_collections(self, ids: List[uuid.UUID], handles: List[str]) -> List[uuid.UUID]:
        """Ids must exist; unknown handles are skipped. Order is ids first, then handles."""
        resolved = []
        if ids:
            found = set((await self.db.execute(
                select(Collection.id).where(Collection.id.in_(ids))
            )).scalars().all())
            for collection_id in ids:
                if collection_id not in found:
                    raise NotFoundError(f"Collection {collection_id} not found", field="collections")
            resolved.extend(ids)

        slugs = [slug for slug in (slugify(handle) for handle in handles) if slug]
        if slugs:
            rows = (await self.db.execute(
                select(Collection.handle, Collection.id).where(Collection.handle.in_(slugs))
            )).all()
            by_handle = {handle: collection_id for handle, collection_id in rows}
            for slug in slugs:
                if slug in by_handle:
                    resolved.append(by_handle[slug])
                else:
                    logger.debug(f"Skipping unknown collection handle '{slug}'")

        return list(dict.fromkeys(resolved))
