from fastapi import Depends
from sqlalchemy.orm import Session

from apparel_catalog.db import get_session
from apparel_catalog.services.catalog_context import (
    CatalogContext,
    SharedResources,
    build_catalog_context,
    build_shared_resources,
)

_shared: SharedResources | None = None


def get_shared_resources() -> SharedResources:
    global _shared
    if _shared is None:
        _shared = build_shared_resources()
    return _shared


async def close_shared_resources() -> None:
    global _shared
    if _shared is not None:
        await _shared.aclose()
        _shared = None


def get_catalog_context(
    session: Session = Depends(get_session),
    shared: SharedResources = Depends(get_shared_resources),
) -> CatalogContext:
    return build_catalog_context(session, shared)
