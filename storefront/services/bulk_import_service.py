"""
Bulk Import Orchestrator.

Drives the catalog synchronizer once per product from a JSON batch or a CSV
upload. Every product runs in its own transaction: a failure is recorded in
the summary and the batch moves on to the next product.
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import StorefrontError, ValidationError
from storefront.core.text_utils import slugify
from storefront.schemas.bulk import BulkImportResult, BulkImportSummary
from storefront.services.catalog_sync_service import CatalogSynchronizer
from storefront.services.product_csv_service import parse_csv_products
from storefront.services.product_service import ProductService

logger = logging.getLogger(__name__)


class BulkImportService:
    """Sequential, per-product import of many products."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.synchronizer = CatalogSynchronizer(db)
        self.products = ProductService(db)

    async def import_csv(self, text: str) -> BulkImportSummary:
        items = parse_csv_products(text or "")
        if not items:
            raise ValidationError("CSV contained no valid rows.", field="csv")
        return await self.import_items(items)

    async def import_items(self, items: List[Dict[str, Any]]) -> BulkImportSummary:
        """
        Create products whose handle is new and fully replace the child rows
        of products that already exist.
        """
        if not items:
            raise ValidationError('Provide an array of products under "items".', field="items")
        if len(items) > settings.IMPORT_MAX_ITEMS:
            raise ValidationError(
                f"A batch may contain at most {settings.IMPORT_MAX_ITEMS} products", field="items"
            )

        summary = BulkImportSummary()
        for index, item in enumerate(items, start=1):
            handle = self._item_handle(item)
            try:
                if not isinstance(item, dict):
                    raise ValidationError("Each item must be an object")
                exists = bool(handle) and await self.products.handle_exists(handle)
                product = await self.synchronizer.synchronize(
                    handle if exists else None,
                    item,
                    replace_all=True,
                )
            except StorefrontError as e:
                self._record_failure(summary, index, handle, e.message)
                continue
            except Exception as e:
                logger.exception(f"Bulk import item {index} ({handle}) crashed")
                self._record_failure(summary, index, handle, f"Unexpected error: {e}")
                continue

            status = "updated" if exists else "created"
            if exists:
                summary.updated += 1
            else:
                summary.created += 1
            summary.results.append(BulkImportResult(handle=product.handle, status=status))

        logger.info(
            f"Bulk import finished: {summary.created} created, "
            f"{summary.updated} updated, {summary.failed} failed"
        )
        return summary

    def _record_failure(self, summary: BulkImportSummary, index: int, handle: Optional[str], message: str) -> None:
        summary.failed += 1
        summary.results.append(BulkImportResult(handle=handle, status="failed", message=message))
        logger.warning(f"Bulk import item {index} ({handle or 'no handle'}) failed: {message}")

    @staticmethod
    def _item_handle(item: Any) -> Optional[str]:
        if not isinstance(item, dict):
            return None
        return slugify(item.get("handle")) or slugify(item.get("title"))
