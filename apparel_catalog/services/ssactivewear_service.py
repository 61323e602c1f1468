"""
Live S&S Activewear product lookups with stale-while-revalidate caching.

A cache hit is returned immediately and a refresh against the REST API is handed to
the supervised BackgroundRefresher. A miss goes to the network and fills the cache.
Cache trouble never fails a lookup; it only adds a warning to the fetch metadata.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from apparel_catalog.exceptions import SupplierApiError
from apparel_catalog.schemas.product import ProductRecord, SupplierFetchMetadata
from apparel_catalog.services.background import BackgroundRefresher
from apparel_catalog.services.cache import CacheClient
from apparel_catalog.services.ssactivewear_parser import build_product_from_rest, to_ssa_product_id, to_style_number
from apparel_catalog.settings import settings
from apparel_catalog.ssactivewear_client import SsActivewearClient

logger = logging.getLogger(__name__)


def is_transient_failure(exc: BaseException) -> bool:
    return isinstance(exc, SupplierApiError) and exc.is_transient


@dataclass
class LiveProductResult:
    product: ProductRecord
    metadata: SupplierFetchMetadata


class SsActivewearProductService:
    def __init__(
        self,
        client: SsActivewearClient,
        cache: Optional[CacheClient] = None,
        refresher: Optional[BackgroundRefresher] = None,
        ttl_seconds: int = 60,
    ):
        self.client = client
        self.cache = cache
        self.refresher = refresher or BackgroundRefresher("ssactivewear-product")
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def cache_key(part_id: str) -> str:
        return f"ssactivewear:product:{part_id}"

    @retry(
        stop=stop_after_attempt(settings.ssactivewear_retry_count),
        wait=wait_exponential(multiplier=settings.ssactivewear_live_retry_wait_seconds, max=4),
        retry=retry_if_exception(is_transient_failure),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"[SSA] Retrying live lookup ({retry_state.attempt_number}): {retry_state.outcome.exception()}"
        ),
    )
    async def fetch_live(self, part_id: str) -> ProductRecord:
        bundle = await self.client.fetch_rest_bundle(to_style_number(part_id))
        return build_product_from_rest(part_id, bundle)

    async def _write_cache(self, part_id: str, product: ProductRecord, fetched_at: datetime, warnings: List[str]) -> None:
        if self.cache is None:
            return
        payload = {"product": product.model_dump(mode="json"), "fetched_at": fetched_at.isoformat()}
        try:
            await self.cache.set(self.cache_key(part_id), payload, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"[SSA] Cache write failed for {part_id}: {e}")
            warnings.append(f"cache write failed: {e}")

    async def _read_cache(self, part_id: str, warnings: List[str]) -> Optional[tuple[ProductRecord, Optional[datetime]]]:
        if self.cache is None:
            return None
        try:
            payload = await self.cache.get(self.cache_key(part_id))
        except Exception as e:
            logger.warning(f"[SSA] Cache read failed for {part_id}: {e}")
            warnings.append(f"cache read failed: {e}")
            return None
        if not payload:
            return None
        try:
            product = ProductRecord.model_validate(payload["product"])
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"[SSA] Ignoring unreadable cache entry for {part_id}: {e}")
            warnings.append("cache entry unreadable")
            return None
        fetched_at = payload.get("fetched_at")
        return product, datetime.fromisoformat(fetched_at) if fetched_at else None

    async def refresh(self, part_id: str) -> ProductRecord:
        """Fetch from the network and overwrite the cache. Errors propagate to the refresher."""
        product = await self.fetch_live(part_id)
        warnings: List[str] = []
        await self._write_cache(part_id, product, datetime.now(timezone.utc), warnings)
        logger.debug(f"[SSA] Refreshed cached product {part_id}")
        return product

    async def fetch_product(self, product_id: str) -> LiveProductResult:
        """
        Product record for an S&S part. Raises SupplierApiError (or ValueError when the
        API has no products for the part) on a cache miss that cannot be served live.
        """
        part_id = to_ssa_product_id(product_id)
        warnings: List[str] = []

        cached = await self._read_cache(part_id, warnings)
        if cached is not None:
            product, fetched_at = cached
            self.refresher.spawn(part_id, lambda: self.refresh(part_id))
            return LiveProductResult(
                product=product,
                metadata=SupplierFetchMetadata(source="cached", fetched_at=fetched_at, warnings=warnings),
            )

        product = await self.fetch_live(part_id)
        fetched_at = datetime.now(timezone.utc)
        await self._write_cache(part_id, product, fetched_at, warnings)
        return LiveProductResult(
            product=product,
            metadata=SupplierFetchMetadata(source="live", fetched_at=fetched_at, warnings=warnings),
        )
