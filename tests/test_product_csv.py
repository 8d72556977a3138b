import csv
import io
from decimal import Decimal

from storefront.services.bulk_import_service import BulkImportService
from storefront.services.catalog_sync_service import CatalogSynchronizer
from storefront.services.product_csv_service import (
    EXPORT_HEADERS,
    export_products_csv,
    normalize_image_url,
    parse_csv,
    parse_csv_products,
    split_image_cell,
)
from storefront.services.product_service import ProductService
from tests.factories import tee_payload


# ==================== TABULAR PARSER ====================

class TestParseCsv:

    def test_quoted_commas_and_doubled_quotes(self):
        rows = parse_csv('Handle,Title\n"tee","Tee, ""Classic"" cut"\n')
        assert rows == [["Handle", "Title"], ["tee", 'Tee, "Classic" cut']]

    def test_quoted_cells_may_span_lines(self):
        rows = parse_csv('Handle,Body\r\ntee,"line one\r\nline two"\r\nshirt,plain\r\n')
        assert rows[1] == ["tee", "line one\r\nline two"]
        assert rows[2] == ["shirt", "plain"]

    def test_blank_rows_are_skipped(self):
        rows = parse_csv("Handle,Title\n\n , \ntee,Tee\n,\n")
        assert rows == [["Handle", "Title"], ["tee", "Tee"]]

    def test_byte_order_mark_is_dropped(self):
        rows = parse_csv("\ufeffHandle,Title\ntee,Tee\n")
        assert rows[0] == ["Handle", "Title"]

    def test_empty_input(self):
        assert parse_csv("") == []


def test_image_helpers():
    assert normalize_image_url("//cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"
    assert normalize_image_url(' "https://x/a.jpg" ') == "https://x/a.jpg"
    assert split_image_cell("//x/a.jpg | https://x/b.jpg\nhttps://x/c.jpg") == [
        "https://x/a.jpg",
        "https://x/b.jpg",
        "https://x/c.jpg",
    ]


# ==================== PRODUCT EXTRACTION ====================

STOREFRONT_CSV = """Handle,Title,Body (HTML),Vendor,Tags,Published,Option1 Name,Option1 Value,Option2 Name,Option2 Value,Variant SKU,Variant Price,Variant Compare At Price,Variant Inventory Qty,Image Src
classic-tee,Classic Tee,"<p>Soft, combed cotton</p>",Acme,"cotton, summer",TRUE,Size,S,Color,Black,TEE-S-BLK,499,599,5,//cdn.example.com/tee.jpg
classic-tee,,,,,,Size,M,Color,Black,TEE-M-BLK,549,,3,https://cdn.example.com/tee.jpg
classic-tee,,,,,,,,,,,,,,https://cdn.example.com/tee-back.jpg
,Summer Dress,,Sunny,,,Size,M,,,DRESS-M,1999,,,
"""


def test_rows_are_grouped_by_handle():
    products = parse_csv_products(STOREFRONT_CSV)

    assert [p["handle"] for p in products] == ["classic-tee", "summer-dress"]
    tee = products[0]
    assert tee["title"] == "Classic Tee"
    assert tee["vendor"] == "Acme"
    assert tee["description_html"] == "<p>Soft, combed cotton</p>"
    assert tee["tags"] == ["cotton", "summer"]
    assert tee["status"] == "ACTIVE"


def test_image_only_rows_add_media_but_no_variant():
    tee = parse_csv_products(STOREFRONT_CSV)[0]

    assert len(tee["variants"]) == 2
    assert [m["url"] for m in tee["media"]] == [
        "https://cdn.example.com/tee.jpg",
        "https://cdn.example.com/tee-back.jpg",
    ]


def test_variant_cells_are_parsed():
    first, second = parse_csv_products(STOREFRONT_CSV)[0]["variants"]

    assert first["sku"] == "TEE-S-BLK"
    assert first["price"] == Decimal("499")
    assert first["compare_at_price"] == Decimal("599")
    assert first["option_values"] == {"Size": "S", "Color": "Black"}
    assert first["inventory"] == {"available": 5, "location": None}
    assert "compare_at_price" not in second


def test_options_are_inferred_from_variant_rows():
    tee, dress = parse_csv_products(STOREFRONT_CSV)

    assert tee["options"] == [
        {"name": "Size", "values": ["S", "M"]},
        {"name": "Color", "values": ["Black"]},
    ]
    assert dress["options"] == [{"name": "Size", "values": ["M"]}]


def test_handle_falls_back_to_title_slug_and_status_to_draft():
    dress = parse_csv_products(STOREFRONT_CSV)[1]

    assert dress["handle"] == "summer-dress"
    assert dress["title"] == "Summer Dress"
    assert dress["status"] == "DRAFT"


def test_status_column_wins_over_published():
    text = "Handle,Title,Status,Published\ntee,Tee,archived,TRUE\n"
    assert parse_csv_products(text)[0]["status"] == "ARCHIVED"


def test_header_lookup_ignores_case():
    text = "HANDLE,title,variant sku,VARIANT PRICE\ntee,Tee,SKU-1,10\n"
    product = parse_csv_products(text)[0]
    assert product["variants"] == [{"sku": "SKU-1", "price": Decimal("10")}]


def test_rows_without_handle_or_title_are_ignored():
    assert parse_csv_products("Handle,Title,Variant SKU\n,,ORPHAN-1\n") == []


def test_scalars_are_back_filled_from_later_rows():
    text = "Handle,Title,Vendor,Collections\ntee,Tee,,\ntee,,Acme,men|tops\n"
    product = parse_csv_products(text)[0]
    assert product["vendor"] == "Acme"
    assert product["collection_handles"] == ["men", "tops"]


# ==================== EXPORT ====================

def _export_rows(text):
    return list(csv.DictReader(io.StringIO(text)))


async def test_export_writes_one_row_per_variant(db):
    await CatalogSynchronizer(db).synchronize(None, tee_payload())
    products = await ProductService(db).get_products_for_export()

    text = export_products_csv(products)
    rows = _export_rows(text)

    assert text.splitlines()[0].split(",") == EXPORT_HEADERS
    assert [r["Variant SKU"] for r in rows] == ["TEE-S-BLACK", "TEE-S-WHITE", "TEE-M-BLACK", "TEE-M-WHITE"]
    first = rows[0]
    assert first["Handle"] == "classic-tee"
    assert first["Option1 Name"] == "Size"
    assert first["Option1 Value"] == "S"
    assert first["Option2 Name"] == "Color"
    assert first["Option2 Value"] == "Black"
    assert first["Option3 Name"] == ""
    assert first["Variant Inventory Available"] == "5"
    assert first["Variant Inventory Location"] == "Default"
    assert first["Variant Image"] == "https://cdn.example.com/tee-black.jpg"
    assert first["Image Srcs"] == "https://cdn.example.com/tee-black.jpg|https://cdn.example.com/tee-white.jpg"
    assert first["Tags"] == "cotton, summer"
    assert rows[1]["Variant Inventory Location"] == "Warehouse"
    assert rows[3]["Variant Inventory Available"] == ""


async def test_product_without_variants_exports_a_default_row(db):
    await CatalogSynchronizer(db).synchronize(None, {"title": "Gift Card", "description": 'Say "thanks", twice'})
    products = await ProductService(db).get_products_for_export()

    rows = _export_rows(export_products_csv(products))

    assert len(rows) == 1
    assert rows[0]["Handle"] == "gift-card"
    assert rows[0]["DescriptionHtml"] == 'Say "thanks", twice'
    assert rows[0]["Variant SKU"] == ""
    assert rows[0]["Variant Price"] == ""


async def test_export_then_import_reproduces_variants_and_options(db):
    await CatalogSynchronizer(db).synchronize(None, tee_payload())
    await CatalogSynchronizer(db).synchronize(None, {"title": "Gift Card"})
    exported = export_products_csv(await ProductService(db).get_products_for_export())

    parsed = {p["handle"]: p for p in parse_csv_products(exported)}
    assert parsed["classic-tee"]["options"] == [
        {"name": "Size", "values": ["S", "M"]},
        {"name": "Color", "values": ["Black", "White"]},
    ]
    assert parsed["gift-card"]["variants"] == []

    summary = await BulkImportService(db).import_csv(exported)
    assert summary.updated == 2
    assert summary.failed == 0

    tee = await ProductService(db).get_product("classic-tee")
    assert [(o.name, o.values) for o in tee.options] == [("Size", ["S", "M"]), ("Color", ["Black", "White"])]
    assert sorted(tuple(sorted(v.option_values.items())) for v in tee.variants) == sorted([
        (("Color", "Black"), ("Size", "S")),
        (("Color", "White"), ("Size", "S")),
        (("Color", "Black"), ("Size", "M")),
        (("Color", "White"), ("Size", "M")),
    ])
    assert [v.title for v in tee.variants] == ["S / Black", "S / White", "M / Black", "M / White"]
    by_sku = {v.sku: v for v in tee.variants}
    assert by_sku["TEE-S-BLACK"].inventory_levels[0].available == 5
    assert by_sku["TEE-S-WHITE"].inventory_levels[0].location_name == "Warehouse"
    assert by_sku["TEE-M-WHITE"].inventory_levels == []
    assert by_sku["TEE-S-BLACK"].image_url == "https://cdn.example.com/tee-black.jpg"
