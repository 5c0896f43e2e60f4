"""Pytest configuration and fixtures for query_cache.

Integration fixtures use an in-memory SQLite engine (StaticPool, one shared
connection) and tests.models.User. Model cache configuration is global,
so every test starts and ends with an empty registry for User.
"""

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from query_cache.application.model_config import unconfigure_model
from query_cache.core.config import get_settings
from query_cache.infrastructure.cache.drivers import CacheDriver
from query_cache.infrastructure.cache.memory_store import InMemoryStore
from query_cache.infrastructure.cache.registry import create_cache_driver
from tests.models import SEED_USERS, Base, User


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from QUERY_CACHE_* env vars and the settings cache."""
    monkeypatch.delenv("QUERY_CACHE_SINGLE_FLIGHT", raising=False)
    monkeypatch.delenv("QUERY_CACHE_NAMESPACE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_model_config() -> Iterator[None]:
    unconfigure_model(User)
    yield
    unconfigure_model(User)


@pytest.fixture
def engine() -> Iterator[Engine]:
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    """Session with the three seed users committed."""
    with Session(engine) as s:
        s.execute(User.__table__.insert(), SEED_USERS)
        s.commit()
        yield s
        s.rollback()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def driver(store: InMemoryStore) -> CacheDriver:
    return create_cache_driver(store, backend="memory")
