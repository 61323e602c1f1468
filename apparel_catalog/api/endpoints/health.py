import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from apparel_catalog.api.deps import get_shared_resources
from apparel_catalog.db import get_session
from apparel_catalog.services.catalog_context import SharedResources

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def get_health(
    session: Session = Depends(get_session),
    shared: SharedResources = Depends(get_shared_resources),
):
    """Database reachability plus background refresh counters."""
    db_ok = False
    try:
        session.execute(select(1))
        db_ok = True
    except Exception as e:
        logger.error(f"[HEALTH] Database health check failed: {e}")

    return {
        "status": "healthy" if db_ok else "unhealthy",
        "database": "ok" if db_ok else "error",
        "liveSuppliers": ["SSACTIVEWEAR"] if shared.client is not None else [],
        "refresh": {
            "pending": shared.refresher.pending,
            "succeeded": shared.refresher.success_count,
            "failed": shared.refresher.failure_count,
            "lastError": shared.refresher.last_error,
        },
    }
