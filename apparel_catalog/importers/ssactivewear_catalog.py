"""
S&S Activewear catalog import: style list -> per-style product variants -> ProductRecord
upsert and canonical link. Each style is its own transaction; a failing style is counted
and skipped.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from apparel_catalog.exceptions import SupplierUnavailableError
from apparel_catalog.importers.run_history import ImportCounters, ImportJobResult, ImportRunRecorder
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.ssactivewear_parser import build_product_from_rest, to_ssa_product_id
from apparel_catalog.settings import settings
from apparel_catalog.ssactivewear_client import RestBundle, SsActivewearClient
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


def filter_styles(
    styles: Iterable[Dict[str, Any]],
    brands: Optional[Iterable[str]] = None,
    categories: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    selected = list(styles)
    brand_set = {b.strip().upper() for b in brands or [] if b.strip()}
    if brand_set:
        selected = [s for s in selected if str(s.get("brandName") or "").upper() in brand_set]
    category_set = {c.strip().lower() for c in categories or [] if c.strip()}
    if category_set:
        selected = [s for s in selected if str(s.get("baseCategory") or "").lower() in category_set]
    if limit and limit > 0:
        selected = selected[:limit]
    return selected


def style_part_number(style: Dict[str, Any]) -> Optional[str]:
    raw = style.get("partNumber") or style.get("styleID")
    return str(raw).strip() if raw not in (None, "") else None


class SsActivewearCatalogImporter:
    def __init__(
        self,
        session: Session,
        client: SsActivewearClient,
        registry: CanonicalStyleRegistry,
        repository: Optional[CatalogRepository] = None,
        api_sleep: Optional[float] = None,
    ):
        self.session = session
        self.client = client
        self.registry = registry
        self.repository = repository or CatalogRepository(session)
        self.api_sleep = settings.ssactivewear_api_sleep if api_sleep is None else api_sleep

    @retry(
        stop=stop_after_attempt(settings.ssactivewear_retry_count),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(SupplierUnavailableError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"[SSA] Retrying style list ({retry_state.attempt_number}): {retry_state.outcome.exception()}"
        ),
    )
    async def fetch_styles(self) -> List[Dict[str, Any]]:
        return await self.client.list_styles()

    @retry(
        stop=stop_after_attempt(settings.ssactivewear_retry_count),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(SupplierUnavailableError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"[SSA] Retrying product fetch ({retry_state.attempt_number}): {retry_state.outcome.exception()}"
        ),
    )
    async def fetch_products(self, part_number: str) -> List[Dict[str, Any]]:
        return await self.client.get_products(part_number)

    async def import_style(self, style: Dict[str, Any]) -> Optional[str]:
        """Upsert one style. Returns "created"/"updated", or None when the API has no variants."""
        part_number = style_part_number(style)
        if not part_number:
            raise ValueError("style has no partNumber")

        products = await self.fetch_products(part_number)
        if not products:
            logger.info(f"[SSA] No products for {style.get('brandName')} {style.get('styleName')}; skipping")
            return None

        part_id = to_ssa_product_id(part_number)
        record = build_product_from_rest(part_id, RestBundle(products=products, style=style), include_inventory=False)
        outcome = self.repository.upsert_product(record)
        self.registry.ensure_link(
            Supplier.SSACTIVEWEAR,
            part_id,
            display_name=style.get("title") or style.get("styleName") or record.name,
            brand=record.brand,
            metadata={"styleID": style.get("styleID"), "styleName": style.get("styleName")},
        )
        return outcome

    async def run(
        self,
        brands: Optional[List[str]] = None,
        categories: Optional[List[str]] = None,
        limit: Optional[int] = None,
        dry_run: bool = False,
    ) -> ImportJobResult:
        recorder = ImportRunRecorder(self.session, Supplier.SSACTIVEWEAR.value, "catalog")
        recorder.start({"brands": brands, "categories": categories, "limit": limit, "dry_run": dry_run})
        counters = ImportCounters()

        try:
            styles = filter_styles(await self.fetch_styles(), brands, categories, limit)
        except Exception as e:
            logger.error(f"[SSA] Failed to fetch style list: {e}")
            recorder.fail(e)
            raise
        logger.info(f"[SSA] Syncing {len(styles)} styles")

        started = time.monotonic()
        for index, style in enumerate(styles, start=1):
            counters.processed += 1
            label = f"{style.get('brandName')} {style.get('styleName')}"
            if dry_run:
                logger.info(f"[SSA] [DRY RUN] Would sync {label} ({style_part_number(style)})")
                continue

            try:
                outcome = await self.import_style(style)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.error(f"[SSA] Failed to sync {label}: {e}")
                counters.record_error(label, e)
            else:
                if outcome == "created":
                    counters.created += 1
                elif outcome == "updated":
                    counters.updated += 1
                else:
                    counters.skipped += 1

            if index % PROGRESS_EVERY == 0:
                elapsed = max(time.monotonic() - started, 1e-6)
                logger.info(f"[SSA] Progress {index}/{len(styles)} ({index / elapsed:.1f} styles/s)")
            if self.api_sleep and index < len(styles):
                await asyncio.sleep(self.api_sleep)

        result = counters.freeze(dry_run=dry_run)
        recorder.finish(result)
        return result
