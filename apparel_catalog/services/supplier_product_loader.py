"""
Cross-supplier product bundle loading.

Given any identifier (canonical style number or a supplier part id) the loader resolves
the canonical style, fetches each linked supplier's product with that supplier's
strategy, fills media gaps from sibling suppliers and picks a primary supplier.
A failing supplier only means "no data from that supplier".
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from apparel_catalog.models import CanonicalStyle, SupplierProductLink
from apparel_catalog.schemas.product import (
    CanonicalStyleSummary,
    ProductMediaGroup,
    ProductRecord,
    SupplierFetchMetadata,
    SupplierProductBundle,
)
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry, normalize_code
from apparel_catalog.services.catalog_repository import CatalogRepository, summarize_inventory
from apparel_catalog.services.color_keys import sanitize_code
from apparel_catalog.services.ssactivewear_parser import is_ssactivewear_part
from apparel_catalog.services.ssactivewear_service import SsActivewearProductService
from apparel_catalog.suppliers import SUPPLIER_PRIORITY, Supplier

logger = logging.getLogger(__name__)

GLOBAL_MEDIA_KEY = "GLOBAL"


@dataclass
class FetchOutcome:
    product: ProductRecord
    metadata: Optional[SupplierFetchMetadata] = None


class SupplierFetchStrategy(Protocol):
    supplier: Supplier

    async def fetch(self, part_id: str) -> Optional[FetchOutcome]: ...

    def accepts_direct(self, identifier: str) -> bool: ...


class StoreFetchStrategy:
    """SanMar data comes from the store populated by the file imports."""

    def __init__(self, repository: CatalogRepository, supplier: Supplier = Supplier.SANMAR):
        self.repository = repository
        self.supplier = supplier

    async def fetch(self, part_id: str) -> Optional[FetchOutcome]:
        product = self.repository.get_product(self.supplier, part_id)
        return FetchOutcome(product=product) if product else None

    def accepts_direct(self, identifier: str) -> bool:
        return bool(identifier)


class LiveFetchStrategy:
    """S&S data comes from the REST API through the stale-while-revalidate cache."""

    def __init__(self, service: SsActivewearProductService, supplier: Supplier = Supplier.SSACTIVEWEAR):
        self.service = service
        self.supplier = supplier

    async def fetch(self, part_id: str) -> Optional[FetchOutcome]:
        result = await self.service.fetch_product(part_id)
        return FetchOutcome(product=result.product, metadata=result.metadata)

    def accepts_direct(self, identifier: str) -> bool:
        return is_ssactivewear_part(identifier)


def media_key(color_code: Optional[str]) -> str:
    return sanitize_code(color_code or "", GLOBAL_MEDIA_KEY)


def merge_media(products: Dict[Supplier, ProductRecord]) -> Dict[Supplier, ProductRecord]:
    """
    Each product keeps its own images per color. Colors it offers but has no images for
    borrow the first sibling supplier's images for the same normalized color.
    """
    by_color: Dict[str, Dict[Supplier, List[str]]] = {}
    for supplier, product in products.items():
        for group in product.media:
            urls = by_color.setdefault(media_key(group.color_code), {}).setdefault(supplier, [])
            urls.extend(url for url in group.urls if url not in urls)

    merged: Dict[Supplier, ProductRecord] = {}
    for supplier, product in products.items():
        own_codes: Dict[str, str] = {}
        for group in product.media:
            own_codes.setdefault(media_key(group.color_code), group.color_code)
        for color in product.colors:
            own_codes.setdefault(media_key(color.color_code), color.color_code)

        groups: List[ProductMediaGroup] = []
        for key, color_code in own_codes.items():
            sources = by_color.get(key, {})
            urls = sources.get(supplier)
            if not urls:
                urls = next(
                    (sources[sibling] for sibling in SUPPLIER_PRIORITY if sibling != supplier and sources.get(sibling)),
                    None,
                )
                if urls:
                    logger.debug(f"[LOADER] {supplier.value} {product.supplier_part_id} borrowed media for {key}")
            if urls:
                groups.append(ProductMediaGroup(color_code=color_code, urls=list(urls)))

        merged[supplier] = product.model_copy(update={"media": groups})
    return merged


class SupplierProductLoader:
    def __init__(self, registry: CanonicalStyleRegistry, strategies: List[SupplierFetchStrategy]):
        self.registry = registry
        self.strategies: Dict[Supplier, SupplierFetchStrategy] = {s.supplier: s for s in strategies}

    async def _fetch(self, supplier: Supplier, part_id: str) -> Optional[FetchOutcome]:
        strategy = self.strategies.get(supplier)
        if strategy is None:
            return None
        try:
            return await strategy.fetch(part_id)
        except Exception as e:
            logger.warning(f"[LOADER] {supplier.value} fetch for {part_id} failed, treating as no data: {e}")
            return None

    @staticmethod
    def _pick_links(links: List[SupplierProductLink], identifier: str) -> Dict[Supplier, str]:
        """One part per supplier; a link matching the identifier beats the others."""
        chosen: Dict[Supplier, str] = {}
        for link in sorted(links, key=lambda l: (l.supplier_part_id != identifier, l.supplier_part_id)):
            try:
                supplier = Supplier(link.supplier)
            except ValueError:
                logger.warning(f"[LOADER] Ignoring link with unknown supplier {link.supplier}")
                continue
            chosen.setdefault(supplier, link.supplier_part_id)
        return chosen

    async def load(self, identifier: str) -> SupplierProductBundle:
        normalized = normalize_code(identifier)
        if not normalized:
            return SupplierProductBundle(identifier=normalized)
        canonical = self.registry.resolve(normalized)
        return await self._load(normalized, canonical)

    async def load_canonical(self, style: CanonicalStyle) -> SupplierProductBundle:
        """Bundle for an already-resolved canonical style (search enrichment)."""
        return await self._load(style.style_number, style)

    async def _load(self, identifier: str, canonical: Optional[CanonicalStyle]) -> SupplierProductBundle:
        targets: Dict[Supplier, str] = {}
        if canonical is not None:
            targets = self._pick_links(self.registry.list_links_for_style(canonical.id), identifier)

        outcomes: Dict[Supplier, FetchOutcome] = {}
        linked = list(targets.items())
        results = await asyncio.gather(*(self._fetch(supplier, part) for supplier, part in linked))
        for (supplier, _), outcome in zip(linked, results):
            if outcome is not None:
                outcomes[supplier] = outcome

        # cold start or unlinked supplier: try the identifier as that supplier's own part id
        direct = [
            supplier
            for supplier, strategy in self.strategies.items()
            if supplier not in outcomes and supplier not in targets and strategy.accepts_direct(identifier)
        ]
        results = await asyncio.gather(*(self._fetch(supplier, identifier) for supplier in direct))
        for supplier, outcome in zip(direct, results):
            if outcome is not None:
                outcomes[supplier] = outcome

        ordered = {s: outcomes[s] for s in SUPPLIER_PRIORITY if s in outcomes}
        ordered.update({s: o for s, o in outcomes.items() if s not in ordered})
        products = merge_media({supplier: outcome.product for supplier, outcome in ordered.items()})

        primary_supplier = next((s for s in SUPPLIER_PRIORITY if s in products), None)
        primary_product = products.get(primary_supplier) if primary_supplier else None

        if canonical is not None:
            summary = CanonicalStyleSummary.model_validate(canonical)
        elif primary_product is not None:
            summary = CanonicalStyleSummary(
                id=None,
                style_number=identifier,
                display_name=primary_product.name,
                brand=primary_product.brand,
            )
        else:
            summary = None

        if summary is None:
            logger.info(f"[LOADER] Identifier {identifier} did not resolve to any supplier")

        return SupplierProductBundle(
            identifier=identifier,
            canonical_style=summary,
            products=products,
            inventory={supplier: summarize_inventory(product.inventory or []) for supplier, product in products.items()},
            metadata={s: o.metadata for s, o in ordered.items() if o.metadata is not None},
            primary_supplier=primary_supplier,
            primary_product=primary_product,
        )
