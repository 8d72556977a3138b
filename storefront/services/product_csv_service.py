"""
Product CSV import/export.

The import side reads the column names of this service's own export plus the
alternates used by common storefront exports ("Body (HTML)", "Image Src",
"Variant Inventory Qty", ...). Header lookup is case-insensitive.
"""
import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from storefront.core.text_utils import slugify, split_list, to_bool, to_decimal, to_int, clean_str
from storefront.models.product import Product, ProductStatus
from storefront.services.variant_combinator import infer_options

logger = logging.getLogger(__name__)


# ==================== COLUMN NAMES ====================

EXPORT_HEADERS = [
    "Handle",
    "Title",
    "Status",
    "Vendor",
    "ProductType",
    "ApparelType",
    "Category",
    "Tags",
    "DescriptionHtml",
    "Collections",
    "Option1 Name",
    "Option1 Value",
    "Option2 Name",
    "Option2 Value",
    "Option3 Name",
    "Option3 Value",
    "Variant SKU",
    "Variant Barcode",
    "Variant Price",
    "Variant CompareAtPrice",
    "Variant Cost",
    "Variant Taxable",
    "Variant TrackInventory",
    "Variant InventoryPolicy",
    "Variant RequiresShipping",
    "Variant Weight",
    "Variant WeightUnit",
    "Variant OriginCountry",
    "Variant HSCode",
    "Variant Image",
    "Variant Inventory Available",
    "Variant Inventory Location",
    "Image Srcs",
]

MAX_CSV_OPTIONS = 3

# Product scalars read from the first row of a handle group (back-filled from later rows)
PRODUCT_COLUMNS = {
    "vendor": ["Vendor"],
    "product_type": ["ProductType", "Type"],
    "apparel_type": ["ApparelType"],
    "category": ["Category", "Product Category"],
    "description_html": ["DescriptionHtml", "Body (HTML)", "Body HTML"],
}

VARIANT_TEXT_COLUMNS = {
    "sku": ["Variant SKU", "SKU"],
    "barcode": ["Variant Barcode", "Barcode"],
    "inventory_policy": ["Variant InventoryPolicy", "Variant Inventory Policy"],
    "weight_unit": ["Variant WeightUnit", "Variant Weight Unit"],
    "origin_country_code": ["Variant OriginCountry", "Variant Origin Country"],
    "hs_code": ["Variant HSCode", "Variant HS Code"],
}

VARIANT_NUMBER_COLUMNS = {
    "price": ["Variant Price"],
    "compare_at_price": ["Variant CompareAtPrice", "Variant Compare At Price"],
    "cost_per_item": ["Variant Cost", "Cost per item"],
    "weight": ["Variant Weight"],
}

VARIANT_BOOL_COLUMNS = {
    "taxable": ["Variant Taxable", "Taxable"],
    "track_inventory": ["Variant TrackInventory"],
    "requires_shipping": ["Variant RequiresShipping", "Variant Requires Shipping"],
}

IMAGE_COLUMNS = ["Image Srcs", "Image Src", "Image URL", "Image Url"]
VARIANT_IMAGE_COLUMNS = ["Variant Image", "Variant Image URL", "Variant Image Url"]
INVENTORY_AVAILABLE_COLUMNS = ["Variant Inventory Available", "Variant Inventory Qty"]
INVENTORY_LOCATION_COLUMNS = ["Variant Inventory Location"]


# ==================== PARSING ====================

def parse_csv(text: str) -> List[List[str]]:
    """
    Split CSV text into rows of cells.

    Quoted cells may contain commas, doubled quotes and line breaks. Rows whose
    cells are all blank are dropped.
    """
    if not text:
        return []
    text = text.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text, newline=""))
    return [row for row in reader if any(cell.strip() for cell in row)]


def normalize_image_url(value: Any) -> str:
    raw = str(value or "").strip().strip('"')
    if raw.startswith("//"):
        return f"https:{raw}"
    return raw


def split_image_cell(value: Any) -> List[str]:
    """Image cells hold several URLs separated by | or line breaks."""
    urls = (normalize_image_url(part) for part in split_list(value, separators="|\n"))
    return [url for url in urls if url]


class _Row:
    """Case-insensitive cell lookup over one data row."""

    def __init__(self, header_index: Dict[str, int], cells: Sequence[str]):
        self._index = header_index
        self._cells = cells

    def get(self, *names: str) -> str:
        """First non-blank cell among ``names``; else the first existing cell."""
        fallback = ""
        for name in names:
            index = self._index.get(name.strip().lower())
            if index is None or index >= len(self._cells):
                continue
            value = self._cells[index] or ""
            if not fallback:
                fallback = value
            if value.strip():
                return value
        return fallback

    def text(self, *names: str) -> Optional[str]:
        return clean_str(self.get(*names))


def _header_index(header: Sequence[str]) -> Dict[str, int]:
    index = {}
    for position, name in enumerate(header):
        key = name.strip().lower()
        if key and key not in index:
            index[key] = position
    return index


def _row_status(row: _Row) -> str:
    status = (row.text("Status") or "").upper()
    if status in ProductStatus.__members__:
        return status
    if to_bool(row.get("Published")) is True:
        return ProductStatus.ACTIVE.value
    return ProductStatus.DRAFT.value


def _row_variant(row: _Row) -> Dict[str, Any]:
    variant: Dict[str, Any] = {}
    for field, names in VARIANT_TEXT_COLUMNS.items():
        value = row.text(*names)
        if value is not None:
            variant[field] = value
    for field, names in VARIANT_NUMBER_COLUMNS.items():
        value = to_decimal(row.get(*names))
        if value is not None:
            variant[field] = value
    for field, names in VARIANT_BOOL_COLUMNS.items():
        value = to_bool(row.get(*names))
        if value is not None:
            variant[field] = value

    image_url = normalize_image_url(row.get(*VARIANT_IMAGE_COLUMNS))
    if image_url:
        variant["image_url"] = image_url

    available = to_int(row.get(*INVENTORY_AVAILABLE_COLUMNS))
    location = row.text(*INVENTORY_LOCATION_COLUMNS)
    if available is not None:
        variant["inventory"] = {"available": available, "location": location}
    elif location:
        # A location without a quantity marks a variant row but creates no level
        variant["inventory"] = None

    option_values = {}
    for number in range(1, MAX_CSV_OPTIONS + 1):
        name = row.text(f"Option{number} Name")
        value = row.text(f"Option{number} Value")
        if name and value:
            option_values[name] = value
    if option_values:
        variant["option_values"] = option_values
    return variant


def has_variant_data(variant: Dict[str, Any]) -> bool:
    """A row is a variant row when any variant-specific cell is filled in."""
    return bool(variant)


def parse_csv_products(text: str) -> List[Dict[str, Any]]:
    """
    Group CSV rows by Handle (or the slug of Title) into product payloads.

    The first row of a group supplies the product fields; later rows only add
    images and variants, and fill product fields the first row left blank.
    Options are inferred from the variant rows.
    """
    rows = parse_csv(text)
    if not rows:
        return []
    header_index = _header_index(rows[0])

    products: Dict[str, Dict[str, Any]] = {}
    for cells in rows[1:]:
        row = _Row(header_index, cells)
        handle = row.text("Handle")
        title = row.text("Title")
        if not handle and not title:
            continue

        key = slugify(handle) or slugify(title) or title
        product = products.get(key)
        if product is None:
            product = {
                "handle": key,
                "title": title or handle,
                "status": _row_status(row),
                "tags": [],
                "collection_handles": [],
                "media": [],
                "variants": [],
            }
            products[key] = product

        if not product.get("title") and title:
            product["title"] = title
        for field, names in PRODUCT_COLUMNS.items():
            if not product.get(field):
                value = row.text(*names)
                if value is not None:
                    product[field] = value
        if not product["tags"]:
            product["tags"] = split_list(row.get("Tags"))
        if not product["collection_handles"]:
            product["collection_handles"] = split_list(row.get("Collections", "Collection"), separators="|,")

        for url in split_image_cell(row.get(*IMAGE_COLUMNS)):
            product["media"].append({"url": url})

        variant = _row_variant(row)
        if "image_url" in variant:
            product["media"].append({"url": variant["image_url"]})
        if has_variant_data(variant):
            product["variants"].append(variant)

    for product in products.values():
        seen = set()
        media = []
        for item in product["media"]:
            if item["url"] not in seen:
                seen.add(item["url"])
                media.append(item)
        product["media"] = media
        product["options"] = infer_options(product["variants"])

    logger.info(f"Parsed {len(products)} products from {len(rows) - 1} CSV rows")
    return list(products.values())


# ==================== EXPORT ====================

def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _variant_inventory(variant) -> List[str]:
    """Total available across locations and the first location's name; blank when untracked."""
    levels = sorted(variant.inventory_levels, key=lambda level: level.location_name or "")
    if not levels:
        return ["", ""]
    return [str(sum(level.available for level in levels)), levels[0].location_name or ""]


def product_csv_rows(product: Product) -> List[List[str]]:
    """One row per variant, or a single Default row for a product without variants."""
    option_names = [option.name for option in product.options][:MAX_CSV_OPTIONS]
    collections = "|".join(c.handle for c in product.collections if c.handle)
    tags = ", ".join(product.tags or [])
    images = "|".join(media.url for media in product.media if media.url)

    product_cells = [
        product.handle,
        product.title,
        product.status,
        product.vendor,
        product.product_type,
        product.apparel_type,
        product.category,
        tags,
        product.description_html,
        collections,
    ]

    if not product.variants:
        option_cells = []
        for number in range(MAX_CSV_OPTIONS):
            option_cells += [option_names[number] if number < len(option_names) else "", ""]
        blank_variant = [""] * 16
        return [[_cell(v) for v in product_cells + option_cells + blank_variant + [images]]]

    rows = []
    for variant in product.variants:
        values = variant.option_values or {}
        option_cells = []
        for number in range(MAX_CSV_OPTIONS):
            name = option_names[number] if number < len(option_names) else ""
            option_cells += [name, values.get(name, "") if name else ""]
        variant_cells = [
            variant.sku,
            variant.barcode,
            variant.price,
            variant.compare_at_price,
            variant.cost_per_item,
            variant.taxable,
            variant.track_inventory,
            variant.inventory_policy,
            variant.requires_shipping,
            variant.weight,
            variant.weight_unit,
            variant.origin_country_code,
            variant.hs_code,
            variant.image_url,
        ] + _variant_inventory(variant)
        rows.append([_cell(v) for v in product_cells + option_cells + variant_cells + [images]])
    return rows


def export_products_csv(products: Iterable[Product]) -> str:
    """Render fully populated products as CSV text with EXPORT_HEADERS."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    count = 0
    for product in products:
        writer.writerows(product_csv_rows(product))
        count += 1
    logger.info(f"Exported {count} products to CSV")
    return buffer.getvalue()
