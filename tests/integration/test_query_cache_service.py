"""Integration tests for QueryCacheService against in-memory SQLite.

Covers read-through (miss then hit), write-invalidate on UPDATE/DELETE,
failure ordering, overrides and entity-level writes.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import literal_column
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from query_cache.application.services.query_cache_service import QueryCacheService
from query_cache.domain.exceptions import LimitedMutationException, QueryCacheException
from query_cache.domain.value_objects import CacheOptions
from query_cache.infrastructure.cache.drivers import CacheDriver
from query_cache.infrastructure.cache.memory_store import InMemoryStore
from query_cache.infrastructure.cache.serializers import JsonRowSerializer
from query_cache.infrastructure.persistence.executor import SessionQueryExecutor
from tests.models import SEED_USERS, User

pytestmark = pytest.mark.integration

users = User.__table__


def _service(
    session: Session,
    driver: CacheDriver,
    options: CacheOptions | None = None,
    **kwargs,
) -> tuple[QueryCacheService, MagicMock]:
    """Service whose executor is a spy around a real SessionQueryExecutor."""
    executor = MagicMock(wraps=SessionQueryExecutor(session))
    return QueryCacheService(executor, driver, options, table=users, **kwargs), executor


class TestEndToEnd:
    def test_always_policy_miss_then_hit(self, session: Session) -> None:
        store = MagicMock(wraps=InMemoryStore())
        driver = CacheDriver(store)
        service, executor = _service(
            session, driver, CacheOptions().merged(ttl=60, cache_by_default={"always": True})
        )
        query = service.query().order_by(users.c.id)

        assert query.is_cacheable is True
        first = query.all()
        assert first == SEED_USERS
        assert executor.fetch_rows.call_count == 1
        store.expire.assert_called_once_with(query.cache_key, 60)

        again = service.query().order_by(users.c.id).all()
        assert again == first
        assert executor.fetch_rows.call_count == 1


class TestReadThrough:
    def test_cached_rows_equal_computed_rows(self, session: Session, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        query = service.query().where(users.c.active.is_(True)).order_by(users.c.id).mark_cacheable()
        computed = query.all()
        assert query.read_from_cache() == computed
        assert driver.get(query.cache_key) == computed

    def test_not_cacheable_never_touches_cache(self, session: Session) -> None:
        driver = MagicMock(spec=CacheDriver)
        service, executor = _service(session, driver)
        query = service.query()
        assert query.is_cacheable is False
        assert len(query.all()) == 3
        assert len(query.all()) == 3
        assert executor.fetch_rows.call_count == 2
        driver.get.assert_not_called()
        driver.set.assert_not_called()

    def test_bypass_override_beats_policy(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, executor = _service(session, driver, CacheOptions().merged(cache_by_default=True))
        query = service.query().mark_not_cacheable()
        query.all()
        query.all()
        assert executor.fetch_rows.call_count == 2
        assert len(store) == 0

    def test_first_is_cacheable_by_default(self, session: Session, driver: CacheDriver) -> None:
        service, executor = _service(session, driver)
        query = service.query().where(users.c.name == "grace")
        assert query.first() == SEED_USERS[1]
        assert query.first() == SEED_USERS[1]
        assert executor.fetch_rows.call_count == 1

    def test_first_on_empty_result(self, session: Session, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        assert service.query().where(users.c.id == 99).first() is None

    def test_empty_result_is_cached(self, session: Session, driver: CacheDriver) -> None:
        service, executor = _service(session, driver)
        query = service.query().where(users.c.id == 99).mark_cacheable()
        assert query.all() == []
        assert query.all() == []
        assert executor.fetch_rows.call_count == 1

    def test_manual_key_used_for_reads_and_writes(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        query = service.query().mark_cacheable().set_cache_key("users:all")
        query.all()
        assert "users:all" in store
        assert query.read_from_cache() is not None

    def test_hit_normalizes_row_keys(self, session: Session) -> None:
        driver = MagicMock(spec=CacheDriver)
        driver.get.return_value = [{b"id": 1, 2: "x"}]
        service, executor = _service(session, driver)
        assert service.query().mark_cacheable().all() == [{"id": 1, "2": "x"}]
        executor.fetch_rows.assert_not_called()

    def test_corrupt_entry_fails_the_read(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, executor = _service(session, driver)
        query = service.query().mark_cacheable()
        store.set(query.cache_key, b"{corrupt")
        with pytest.raises(QueryCacheException) as exc_info:
            query.all()
        assert exc_info.value.error_code == "CACHE_DESERIALIZATION_ERROR"
        executor.fetch_rows.assert_not_called()

    def test_backend_failure_propagates(self, session: Session) -> None:
        store = MagicMock()
        store.get.side_effect = ConnectionError("cache down")
        service, executor = _service(session, CacheDriver(store))
        with pytest.raises(ConnectionError):
            service.query().mark_cacheable().all()
        executor.fetch_rows.assert_not_called()

    def test_expression_limit_falls_back_to_always(self, session: Session, driver: CacheDriver) -> None:
        query = users.select().limit(literal_column("1"))
        default, _ = _service(session, driver)
        always, _ = _service(session, driver, CacheOptions().merged(cache_by_default={"always": True}))
        assert default.query(query).is_cacheable is False
        assert always.query(query).is_cacheable is True
        assert len(default.query(query).all()) == 1

    def test_write_to_cache_ttl_override(self, session: Session) -> None:
        store = MagicMock(wraps=InMemoryStore())
        service, _ = _service(session, CacheDriver(store), CacheOptions(ttl=3600))
        query = service.query()
        query.write_to_cache([{"id": 1}], ttl=5)
        store.expire.assert_called_once_with(query.cache_key, 5)
        assert service.options.ttl == 3600


class TestWriteInvalidate:
    def test_update_drops_entry(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        query = service.query().where(users.c.id == 1).mark_cacheable()
        query.all()
        assert query.cache_key in store

        assert query.update(name="ada lovelace") == 1
        assert query.cache_key not in store
        assert query.all()[0]["name"] == "ada lovelace"

    def test_delete_drops_entry(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        query = service.query().where(users.c.active.is_(False)).mark_cacheable()
        assert len(query.all()) == 1
        assert query.delete() == 1
        assert query.cache_key not in store
        assert query.all() == []

    def test_failed_update_leaves_entry_unchanged(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        query = service.query().where(users.c.id == 2).mark_cacheable()
        query.all()
        before = store.get(query.cache_key)

        with pytest.raises(IntegrityError):
            query.update(name=None)
        assert store.get(query.cache_key) == before

    def test_cache_delete_happens_after_mutation(self) -> None:
        calls: list[str] = []
        executor = MagicMock()
        executor.execute_mutation.side_effect = lambda stmt: calls.append("mutation") or 1
        driver = MagicMock(spec=CacheDriver)
        driver.delete.side_effect = lambda key: calls.append("cache.delete")
        service = QueryCacheService(executor, driver, table=users)
        service.query().mark_cacheable().update(name="x")
        assert calls == ["mutation", "cache.delete"]

    def test_limited_delete_is_refused_and_changes_nothing(
        self, session: Session, store: InMemoryStore, driver: CacheDriver
    ) -> None:
        service, executor = _service(session, driver)
        query = service.query().where(users.c.active.is_(True)).order_by(users.c.id).limit(1)
        assert query.all() == [SEED_USERS[0]]
        before = store.get(query.cache_key)

        with pytest.raises(LimitedMutationException):
            query.delete()
        with pytest.raises(LimitedMutationException):
            query.update(name="x")
        executor.execute_mutation.assert_not_called()
        assert store.get(query.cache_key) == before
        assert len(service.query().mark_not_cacheable().all()) == 3

    def test_mutation_on_uncacheable_query_skips_cache(self, session: Session) -> None:
        driver = MagicMock(spec=CacheDriver)
        service, _ = _service(session, driver)
        service.query().where(users.c.id == 3).update(name="torvalds")
        driver.delete.assert_not_called()


class TestEntityWrites:
    def test_cache_entity_writes_single_row(self, session: Session, driver: CacheDriver) -> None:
        service, executor = _service(session, driver)
        user = session.get(User, 1)
        service.cache_entity(user)

        query = service.query().where(users.c.id == 1)
        assert service.entity_query(user).cache_key == query.limit(1).cache_key
        assert query.first() == SEED_USERS[0]
        executor.fetch_rows.assert_not_called()

    def test_cache_entity_respects_policy(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver, CacheOptions().merged(cache_by_default=False))
        service.cache_entity(session.get(User, 1))
        assert len(store) == 0

    def test_uncache_entity(self, session: Session, store: InMemoryStore, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        user = session.get(User, 1)
        service.cache_entity(user)
        assert len(store) == 1
        service.uncache_entity(user)
        assert len(store) == 0


class TestSingleFlight:
    def test_locks_released_after_fetch_and_update(self, session: Session, driver: CacheDriver) -> None:
        service, _ = _service(session, driver, single_flight=True)
        query = service.query().mark_cacheable()
        query.all()
        query.update(active=True)
        assert len(service._locks) == 0

    def test_disabled_by_default(self, session: Session, driver: CacheDriver) -> None:
        service, _ = _service(session, driver)
        assert service._locks is None


def test_service_without_executor_cannot_fetch(driver: CacheDriver) -> None:
    service = QueryCacheService(None, driver, table=users)
    with pytest.raises(QueryCacheException) as exc_info:
        service.query().all()
    assert exc_info.value.error_code == "NO_EXECUTOR"


def test_round_trip_through_store_preserves_types(session: Session) -> None:
    service, _ = _service(session, CacheDriver(InMemoryStore(), JsonRowSerializer()))
    query = service.query().order_by(users.c.id).mark_cacheable()
    computed = query.all()
    cached = query.all()
    assert cached == computed
    assert [type(r["active"]) for r in cached] == [bool, bool, bool]
