# Services module
from storefront.services.product_service import ProductService
from storefront.services.catalog_sync_service import CatalogSynchronizer
from storefront.services.bulk_import_service import BulkImportService
from storefront.services.collection_service import CollectionService
from storefront.services.inventory_service import InventoryService
from storefront.services.discount_service import DiscountService
from storefront.services.order_service import OrderService

__all__ = [
    "ProductService",
    "CatalogSynchronizer",
    "BulkImportService",
    "CollectionService",
    "InventoryService",
    "DiscountService",
    "OrderService",
]
