"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from apparel_catalog.models import CatalogBase


# In-memory SQLite shared by every connection (TestClient runs the app in another thread)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)

TestSessionLocal = sessionmaker(
    bind=test_engine,
    autoflush=False,
    expire_on_commit=False,
)


@pytest.fixture(scope="function")
def test_session() -> Session:
    """
    Fresh schema per test.
    """
    CatalogBase.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        CatalogBase.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db_session(test_session: Session):
    yield test_session


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line("markers", "unit: unit tests (no external services)")
    config.addinivalue_line("markers", "integration: integration tests (real DB/API)")
    config.addinivalue_line("markers", "slow: slow tests (> 1 min)")
