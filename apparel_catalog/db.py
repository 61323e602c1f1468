from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from apparel_catalog.settings import settings

DEFAULT_DATABASE_URL = "sqlite:///./apparel_catalog.db"

engine = create_engine(settings.catalog_database_url or DEFAULT_DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)


def get_session() -> Iterator[Session]:
    with SessionLocal() as session:
        yield session
