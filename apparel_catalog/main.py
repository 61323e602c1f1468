import logging

from fastapi import FastAPI

from apparel_catalog.api.deps import close_shared_resources
from apparel_catalog.api.endpoints import catalog, health
from apparel_catalog.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)

app = FastAPI(title="Apparel Catalog")

app.include_router(health.router, tags=["Health"])
app.include_router(catalog.router, prefix="/api", tags=["Catalog"])


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_shared_resources()
