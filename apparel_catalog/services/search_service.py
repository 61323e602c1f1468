"""
Canonical style search.

Candidates come from a substring match over style number, display name, brand and
linked supplier part ids. Each candidate on the requested page is enriched through
the SupplierProductLoader for price and stock, then scored and sorted. Results are
cached briefly under the full query/filter/sort/page tuple.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from apparel_catalog.models import CanonicalStyle, SupplierProductLink
from apparel_catalog.schemas.product import SupplierProductBundle
from apparel_catalog.schemas.search import (
    Availability,
    CanonicalSearchResult,
    ColorPreview,
    PriceRange,
    SearchOptions,
    SearchPage,
    SupplierSearchSummary,
)
from apparel_catalog.services.cache import CacheClient, cache_get, cache_set
from apparel_catalog.services.supplier_product_loader import SupplierProductLoader
from apparel_catalog.suppliers import SUPPLIER_PRIORITY, Supplier

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "search:v1"
MIN_QUERY_LENGTH = 2
COLOR_PREVIEW_LIMIT = 12
PRICE_ATTRIBUTE_KEYS = ("customerPrice", "salePrice", "piecePrice", "price")

STYLE_PREFIX_SCORE = 50
STYLE_CONTAINS_SCORE = 25
DISPLAY_NAME_SCORE = 20
PART_PREFIX_SCORE = 15
PER_SUPPLIER_SCORE = 5


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def extract_price(attributes: Optional[Dict[str, Any]]) -> Optional[float]:
    """First numeric value among the known price attributes."""
    if not attributes:
        return None
    for key in PRICE_ATTRIBUTE_KEYS:
        value = attributes.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.replace("$", "").replace(",", "").strip())
            except ValueError:
                continue
    return None


def compute_score(
    query: str,
    style_number: str,
    display_name: str,
    part_ids: List[str],
    supplier_count: Optional[int] = None,
) -> int:
    """Relevance score. supplier_count defaults to one per part id."""
    score = 0
    if style_number.startswith(query):
        score += STYLE_PREFIX_SCORE
    elif query in style_number:
        score += STYLE_CONTAINS_SCORE
    if query in (display_name or "").upper():
        score += DISPLAY_NAME_SCORE
    if any(part.startswith(query) for part in part_ids):
        score += PART_PREFIX_SCORE
    if supplier_count is None:
        supplier_count = len(part_ids)
    score += supplier_count * PER_SUPPLIER_SCORE
    return score


def sort_results(items: List[CanonicalSearchResult], sort: str) -> List[CanonicalSearchResult]:
    if sort == "supplier":
        return sorted(items, key=lambda item: (-len(item.suppliers), -item.score))
    if sort == "price":
        return sorted(
            items,
            key=lambda item: (item.price.min is None, item.price.min or 0.0, -item.score),
        )
    if sort == "stock":
        return sorted(items, key=lambda item: (-item.availability.suppliers_in_stock, -item.score))
    return sorted(items, key=lambda item: -item.score)


class SearchService:
    def __init__(
        self,
        session: Session,
        loader: SupplierProductLoader,
        cache: Optional[CacheClient] = None,
        cache_ttl_seconds: int = 60,
        candidate_timeout: Optional[float] = None,
    ):
        self.session = session
        self.loader = loader
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.candidate_timeout = candidate_timeout

    @staticmethod
    def cache_key(options: SearchOptions) -> str:
        supplier_key = ",".join(sorted(s.value for s in options.suppliers)) if options.suppliers else "ALL"
        return (
            f"{CACHE_NAMESPACE}:{options.query}:{options.limit}:{options.offset}:"
            f"{supplier_key}:{options.sort}:{str(options.in_stock_only).lower()}"
        )

    def _candidate_filter(self, query: str, suppliers: Optional[Iterable[Supplier]]):
        pattern = _like_pattern(query)
        conditions = [
            or_(
                CanonicalStyle.style_number.ilike(pattern, escape="\\"),
                CanonicalStyle.display_name.ilike(pattern, escape="\\"),
                CanonicalStyle.brand.ilike(pattern, escape="\\"),
                CanonicalStyle.supplier_links.any(SupplierProductLink.supplier_part_id.ilike(pattern, escape="\\")),
            )
        ]
        if suppliers:
            conditions.append(
                CanonicalStyle.supplier_links.any(SupplierProductLink.supplier.in_([s.value for s in suppliers]))
            )
        return conditions

    async def _load_bundle(self, style: CanonicalStyle) -> Optional[SupplierProductBundle]:
        try:
            if self.candidate_timeout:
                return await asyncio.wait_for(self.loader.load_canonical(style), self.candidate_timeout)
            return await self.loader.load_canonical(style)
        except asyncio.TimeoutError:
            logger.warning(f"[SEARCH] Enrichment for {style.style_number} exceeded {self.candidate_timeout}s")
        except Exception as e:
            logger.warning(f"[SEARCH] Enrichment for {style.style_number} failed: {e}")
        return None

    async def _build_result(self, style: CanonicalStyle, query: str) -> Optional[CanonicalSearchResult]:
        links = list(style.supplier_links)
        if not links:
            return None

        bundle = await self._load_bundle(style)
        suppliers: List[SupplierSearchSummary] = []
        for link in links:
            try:
                supplier = Supplier(link.supplier)
            except ValueError:
                continue
            product = bundle.products.get(supplier) if bundle else None
            inventory = bundle.inventory.get(supplier) if bundle else None
            quantity = sum(row.total_qty for row in inventory.rows) if inventory else 0
            suppliers.append(
                SupplierSearchSummary(
                    supplier=supplier,
                    supplier_part_id=link.supplier_part_id,
                    price=extract_price(product.attributes) if product else None,
                    in_stock=quantity > 0,
                    total_quantity=quantity,
                )
            )
        if not suppliers:
            return None

        primary = next(
            (entry for s in SUPPLIER_PRIORITY for entry in suppliers if entry.supplier == s),
            suppliers[0],
        )
        prices = [entry.price for entry in suppliers if entry.price is not None]
        primary_product = bundle.products.get(primary.supplier) if bundle else None
        colors = [
            ColorPreview(color_code=c.color_code, color_name=c.color_name, swatch_url=c.swatch_url)
            for c in (primary_product.colors if primary_product else [])[:COLOR_PREVIEW_LIMIT]
        ]

        return CanonicalSearchResult(
            canonical_style_id=style.id,
            style_number=style.style_number,
            display_name=style.display_name,
            brand=style.brand,
            primary_supplier=primary.supplier,
            primary_supplier_part_id=primary.supplier_part_id,
            primary_supplier_in_stock=primary.in_stock,
            suppliers=suppliers,
            colors=colors,
            price=PriceRange(min=min(prices) if prices else None, max=max(prices) if prices else None),
            availability=Availability(
                suppliers_in_stock=sum(1 for entry in suppliers if entry.in_stock),
                total_suppliers=len(suppliers),
                total_quantity=sum(entry.total_quantity for entry in suppliers),
            ),
            score=compute_score(
                query,
                style.style_number,
                style.display_name,
                [s.supplier_part_id for s in suppliers],
                supplier_count=len({s.supplier for s in suppliers}),
            ),
        )

    async def search(self, options: SearchOptions) -> SearchPage:
        query = options.query
        if len(query) < MIN_QUERY_LENGTH:
            return SearchPage()

        key = self.cache_key(options)
        cached = await cache_get(self.cache, key, tag="SEARCH")
        if cached:
            try:
                return SearchPage.model_validate(cached)
            except ValueError as e:
                logger.warning(f"[SEARCH] Ignoring unreadable cache entry {key}: {e}")

        conditions = self._candidate_filter(query, options.suppliers)
        total = self.session.scalar(select(func.count()).select_from(CanonicalStyle).where(*conditions)) or 0
        styles = list(
            self.session.scalars(
                select(CanonicalStyle)
                .options(selectinload(CanonicalStyle.supplier_links))
                .where(*conditions)
                .order_by(CanonicalStyle.style_number)
                .offset(options.offset)
                .limit(options.limit)
            )
        )

        results = await asyncio.gather(*(self._build_result(style, query) for style in styles))
        items = [item for item in results if item is not None]
        if options.in_stock_only:
            items = [item for item in items if item.availability.suppliers_in_stock > 0]

        page = SearchPage(items=sort_results(items, options.sort), total=total)
        logger.info(f"[SEARCH] {query!r}: {len(page.items)} items (total {total}, sort={options.sort})")
        await cache_set(self.cache, key, page.model_dump(mode="json"), self.cache_ttl_seconds, tag="SEARCH")
        return page

    async def find_exact_match(
        self, query: str, suppliers: Optional[List[Supplier]] = None
    ) -> Optional[CanonicalSearchResult]:
        """The single style whose style number or a linked part equals the query, else None."""
        normalized = (query or "").strip().upper()
        if not normalized:
            return None

        stmt = (
            select(CanonicalStyle)
            .options(selectinload(CanonicalStyle.supplier_links))
            .where(
                or_(
                    CanonicalStyle.style_number == normalized,
                    CanonicalStyle.supplier_links.any(SupplierProductLink.supplier_part_id == normalized),
                )
            )
            .limit(2)
        )
        if suppliers:
            stmt = stmt.where(CanonicalStyle.supplier_links.any(SupplierProductLink.supplier.in_([s.value for s in suppliers])))

        matches = list(self.session.scalars(stmt))
        if len(matches) != 1:
            return None
        return await self._build_result(matches[0], normalized)
