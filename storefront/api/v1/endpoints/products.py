from typing import Any, Dict, List, Optional
from decimal import Decimal
from math import ceil

from fastapi import APIRouter, Body, Query, Response, status

from storefront.api.deps import DB, PublicRequest
from storefront.config import settings
from storefront.core.text_utils import split_list
from storefront.models.product import ProductStatus
from storefront.schemas.bulk import BulkImportRequest, BulkImportSummary, CsvImportRequest
from storefront.schemas.product import (
    GenerateVariantsRequest,
    ProductResponse,
    ProductListResponse,
    VariantInput,
)
from storefront.services.bulk_import_service import BulkImportService
from storefront.services.cache_service import get_cache
from storefront.services.catalog_sync_service import CatalogSynchronizer
from storefront.services.product_csv_service import export_products_csv
from storefront.services.product_service import ProductService
from storefront.services.variant_combinator import combine_options

router = APIRouter(tags=["Products"])


# ==================== LISTING ====================

@router.get("", response_model=ProductListResponse)
async def list_products(
    db: DB,
    is_public: PublicRequest,
    page: int = Query(1, ge=1),
    size: int = Query(settings.PRODUCT_PAGE_SIZE, ge=1, le=settings.PRODUCT_PAGE_SIZE_MAX),
    search: Optional[str] = Query(None, alias="q"),
    category: Optional[str] = None,
    status: Optional[ProductStatus] = None,
    handles: Optional[str] = Query(None, description="Comma-separated handles"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
):
    """
    Get paginated list of products.

    Shoppers only ever see ACTIVE products and are served from the listing
    cache; admin requests see every status and always hit the database.
    """
    if is_public:
        status = ProductStatus.ACTIVE

    params = {
        "page": page,
        "size": size,
        "search": search,
        "category": category,
        "status": status.value if status else None,
        "handles": handles,
        "min_price": min_price,
        "max_price": max_price,
    }

    use_cache = is_public and settings.PRODUCT_CACHE_ENABLED
    cache = get_cache()
    if use_cache:
        cached = await cache.get_product_list(params)
        if cached is not None:
            return cached

    service = ProductService(db)
    products, total = await service.get_products(
        search=search,
        category=category,
        status=status,
        handles=split_list(handles) or None,
        min_price=min_price,
        max_price=max_price,
        skip=(page - 1) * size,
        limit=size,
    )

    response = ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )

    if use_cache:
        await cache.set_product_list(params, response.model_dump(mode="json"))

    return response


# ==================== IMPORT / EXPORT ====================

@router.get("/export")
async def export_products(db: DB):
    """Download every product as CSV, one row per variant."""
    products = await ProductService(db).get_products_for_export()
    return Response(
        content=export_products_csv(products),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=products.csv"},
    )


@router.post("/bulk", response_model=BulkImportSummary)
async def bulk_import_products(data: BulkImportRequest, db: DB):
    """
    Create or fully replace many products. Each product is imported on its
    own; failures are reported in the summary.
    """
    return await BulkImportService(db).import_items(data.items)


@router.post("/import", response_model=BulkImportSummary)
async def import_products_csv(data: CsvImportRequest, db: DB):
    """Import products from CSV text (this service's export format or a storefront export)."""
    return await BulkImportService(db).import_csv(data.csv)


@router.post("/variants/generate", response_model=List[VariantInput])
async def generate_variants(data: GenerateVariantsRequest):
    """Preview the variants for a set of options. Nothing is stored."""
    return combine_options(data.options, data.defaults)


# ==================== PRODUCT CRUD ====================

@router.get("/{identifier}", response_model=ProductResponse)
async def get_product(identifier: str, db: DB):
    """Get a product by id or handle."""
    return await ProductService(db).get_product(identifier)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(db: DB, payload: Dict[str, Any] = Body(...)):
    """Create a product together with its options, media, variants and inventory."""
    return await CatalogSynchronizer(db).synchronize(None, payload)


@router.put("/{identifier}", response_model=ProductResponse)
@router.patch("/{identifier}", response_model=ProductResponse)
async def update_product(identifier: str, db: DB, payload: Dict[str, Any] = Body(...)):
    """
    Update a product. Scalars absent from the payload are kept; child lists
    present in the payload replace the stored rows.
    """
    return await CatalogSynchronizer(db).synchronize(identifier, payload)


@router.delete("/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(identifier: str, db: DB):
    """Delete a product with its variants, media, options and inventory."""
    await ProductService(db).delete_product(identifier)
