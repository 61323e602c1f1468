"""S&S Activewear inventory refresh for the S&S products already in the store."""
import asyncio
import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from apparel_catalog.exceptions import SupplierUnavailableError
from apparel_catalog.importers.run_history import ImportCounters, ImportJobResult, ImportRunRecorder
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.ssactivewear_parser import aggregate_inventory, to_style_number
from apparel_catalog.settings import settings
from apparel_catalog.ssactivewear_client import SsActivewearClient
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)


class SsActivewearInventoryImporter:
    def __init__(
        self,
        session: Session,
        client: SsActivewearClient,
        repository: Optional[CatalogRepository] = None,
        api_sleep: Optional[float] = None,
    ):
        self.session = session
        self.client = client
        self.repository = repository or CatalogRepository(session)
        self.api_sleep = settings.ssactivewear_api_sleep if api_sleep is None else api_sleep

    @retry(
        stop=stop_after_attempt(settings.ssactivewear_retry_count),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(SupplierUnavailableError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"[SSA] Retrying inventory fetch ({retry_state.attempt_number}): {retry_state.outcome.exception()}"
        ),
    )
    async def fetch_products(self, part_id: str):
        products = await self.client.get_products(part_id)
        if not products and to_style_number(part_id) != part_id:
            products = await self.client.get_products(to_style_number(part_id))
        return products

    async def sync_part(self, part_id: str) -> Optional[int]:
        """Rows written for the part, or None when the API returned nothing."""
        products = await self.fetch_products(part_id)
        if not products:
            logger.info(f"[SSA] No inventory data for {part_id}")
            return None
        rows = aggregate_inventory(part_id, products)
        written = self.repository.upsert_inventory(Supplier.SSACTIVEWEAR, part_id, rows)
        units = sum(row.total_qty for row in rows)
        logger.info(f"[SSA] {part_id}: updated {written} SKUs, {units} units")
        return written

    async def run(self, brands: Optional[List[str]] = None, limit: Optional[int] = None) -> ImportJobResult:
        recorder = ImportRunRecorder(self.session, Supplier.SSACTIVEWEAR.value, "inventory")
        recorder.start({"brands": brands, "limit": limit})
        counters = ImportCounters()

        part_ids = self.repository.list_part_ids(Supplier.SSACTIVEWEAR, brands)
        if limit and limit > 0:
            part_ids = part_ids[:limit]
        logger.info(f"[SSA] Refreshing inventory for {len(part_ids)} products")

        for index, part_id in enumerate(part_ids, start=1):
            counters.processed += 1
            try:
                written = await self.sync_part(part_id)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.error(f"[SSA] Inventory sync failed for {part_id}: {e}")
                counters.record_error(part_id, e)
            else:
                if written is None:
                    counters.skipped += 1
                else:
                    counters.updated += 1

            if self.api_sleep and index < len(part_ids):
                await asyncio.sleep(self.api_sleep)

        result = counters.freeze()
        recorder.finish(result)
        return result
