"""
Wiring for the read side: registry, loader and search over one session, sharing the
process-wide cache, refresher and S&S client.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from apparel_catalog.services.background import BackgroundRefresher
from apparel_catalog.services.cache import CacheClient, InMemoryTTLCache
from apparel_catalog.services.canonical_mapping import CanonicalMappingTable, load_canonical_mapping
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.search_service import SearchService
from apparel_catalog.services.ssactivewear_service import SsActivewearProductService
from apparel_catalog.services.supplier_product_loader import (
    LiveFetchStrategy,
    StoreFetchStrategy,
    SupplierProductLoader,
)
from apparel_catalog.settings import settings
from apparel_catalog.ssactivewear_client import SsActivewearClient

logger = logging.getLogger(__name__)


@dataclass
class SharedResources:
    cache: CacheClient
    refresher: BackgroundRefresher
    client: Optional[SsActivewearClient]
    mapping: Optional[CanonicalMappingTable]

    async def aclose(self) -> None:
        await self.refresher.shutdown()
        if self.client is not None:
            await self.client.aclose()


def build_shared_resources() -> SharedResources:
    client = None
    if settings.ssactivewear_account_number and settings.ssactivewear_api_key:
        client = SsActivewearClient.from_settings(settings)
    else:
        logger.warning("[CATALOG] S&S credentials not configured; live S&S lookups disabled")
    return SharedResources(
        cache=InMemoryTTLCache(max_entries=settings.cache_max_entries),
        refresher=BackgroundRefresher("ssactivewear-product"),
        client=client,
        mapping=load_canonical_mapping(settings.canonical_mapping_path),
    )


@dataclass
class CatalogContext:
    registry: CanonicalStyleRegistry
    repository: CatalogRepository
    loader: SupplierProductLoader
    search: SearchService


def build_catalog_context(session: Session, shared: SharedResources) -> CatalogContext:
    registry = CanonicalStyleRegistry(session, shared.mapping)
    repository = CatalogRepository(session)
    strategies = [StoreFetchStrategy(repository)]
    if shared.client is not None:
        service = SsActivewearProductService(
            shared.client,
            cache=shared.cache,
            refresher=shared.refresher,
            ttl_seconds=settings.live_product_cache_ttl_seconds,
        )
        strategies.append(LiveFetchStrategy(service))
    loader = SupplierProductLoader(registry, strategies)
    search = SearchService(
        session,
        loader,
        cache=shared.cache,
        cache_ttl_seconds=settings.search_cache_ttl_seconds,
        candidate_timeout=settings.search_candidate_timeout_seconds,
    )
    return CatalogContext(registry=registry, repository=repository, loader=loader, search=search)
