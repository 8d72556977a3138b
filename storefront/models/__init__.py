# Import every model so relationship strings resolve on first mapper use
from storefront.models.product import (
    Product, ProductOption, ProductMedia, ProductVariant,
    ProductMetafield, VariantMetafield,
)
from storefront.models.collection import Collection, ProductCollection
from storefront.models.inventory import Location, InventoryLevel
from storefront.models.discount import Discount
from storefront.models.order import Order

__all__ = [
    "Product",
    "ProductOption",
    "ProductMedia",
    "ProductVariant",
    "ProductMetafield",
    "VariantMetafield",
    "Collection",
    "ProductCollection",
    "Location",
    "InventoryLevel",
    "Discount",
    "Order",
]
