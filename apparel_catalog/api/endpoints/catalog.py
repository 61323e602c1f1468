import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from apparel_catalog.api.deps import get_catalog_context
from apparel_catalog.schemas.product import SupplierProductBundle
from apparel_catalog.schemas.search import CanonicalSearchResult, SearchOptions, SearchPage
from apparel_catalog.services.catalog_context import CatalogContext
from apparel_catalog.services.inventory_matrix import InventoryMatrixBuilder
from apparel_catalog.suppliers import Supplier, parse_supplier

router = APIRouter()
logger = logging.getLogger(__name__)

matrix_builder = InventoryMatrixBuilder()


def _parse_suppliers(raw: List[str] | None) -> List[Supplier] | None:
    if not raw:
        return None
    values = [part for item in raw for part in item.split(",") if part.strip()]
    try:
        return [parse_supplier(value) for value in values] or None
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown supplier in {values}")


@router.get("/catalog/search", response_model=SearchPage)
async def search_catalog(
    q: str = Query(default=""),
    suppliers: List[str] | None = Query(default=None),
    sort: str = Query(default="relevance", pattern="^(relevance|supplier|price|stock)$"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    in_stock_only: bool = Query(default=False, alias="inStockOnly"),
    context: CatalogContext = Depends(get_catalog_context),
):
    options = SearchOptions(
        query=q,
        suppliers=_parse_suppliers(suppliers),
        sort=sort,
        limit=limit,
        offset=offset,
        in_stock_only=in_stock_only,
    )
    return await context.search.search(options)


@router.get("/catalog/exact", response_model=CanonicalSearchResult)
async def exact_match(
    q: str = Query(..., min_length=1),
    suppliers: List[str] | None = Query(default=None),
    context: CatalogContext = Depends(get_catalog_context),
):
    result = await context.search.find_exact_match(q, _parse_suppliers(suppliers))
    if result is None:
        raise HTTPException(status_code=404, detail=f"No exact match for {q}")
    return result


@router.get("/products/{identifier}", response_model=SupplierProductBundle)
async def get_product_bundle(identifier: str, context: CatalogContext = Depends(get_catalog_context)):
    bundle = await context.loader.load(identifier)
    if bundle.is_empty:
        raise HTTPException(status_code=404, detail=f"Product not found: {identifier}")
    return bundle


@router.get("/products/{identifier}/inventory/{supplier}")
async def get_inventory_matrix(
    identifier: str,
    supplier: str,
    color: str | None = Query(default=None),
    context: CatalogContext = Depends(get_catalog_context),
):
    try:
        supplier_enum = parse_supplier(supplier)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown supplier: {supplier}")

    bundle = await context.loader.load(identifier)
    matrix = matrix_builder.build_for_bundle(bundle, supplier_enum, color)
    if matrix is None:
        raise HTTPException(status_code=404, detail=f"No {supplier_enum.value} inventory for {identifier}")
    return asdict(matrix)
