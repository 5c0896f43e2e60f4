"""Read-through / write-invalidate coordinator for cached queries.

QueryCacheService wraps a QueryExecutor and a CacheDriver. Reads go
through the cache when a query is cacheable; UPDATE/DELETE run first and
only then drop the query's cache entry, so the cache never changes ahead
of the data it mirrors.

Without single flight, two callers that miss the same key both run the
query and the last set wins. Results are value-stable per key, so this is
accepted. With single_flight=True the miss -> execute -> set sequence and
post-mutation deletes are serialized per key inside this process.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from typing import Any

from sqlalchemy import FromClause, Select, inspect as sa_inspect

from query_cache.application.query import CachedQuery
from query_cache.core.config import get_settings
from query_cache.domain.enums import CacheOverride
from query_cache.domain.exceptions import QueryCacheException
from query_cache.domain.policy import is_cacheable_by_default
from query_cache.domain.value_objects import CacheOptions
from query_cache.infrastructure.cache.drivers import CacheDriver
from query_cache.infrastructure.cache.locks import KeyedLocks
from query_cache.infrastructure.persistence.executor import QueryExecutor
from query_cache.shared.telemetry.tracing import (
    CACHE_EVENT_DELETE,
    CACHE_EVENT_HIT,
    CACHE_EVENT_MISS,
    CACHE_EVENT_SET,
    add_span_attributes,
    add_span_event,
    traced,
)

logger = logging.getLogger(__name__)


def _normalize_key(key: Any) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8")
    return str(key)


def _normalize_row(row: dict[Any, Any]) -> dict[str, Any]:
    """Deserialized rows may carry non-str keys; result rows are keyed by str."""
    return {_normalize_key(k): v for k, v in row.items()}


class QueryCacheService:
    """Coordinates query execution with a cache driver for one table.

    Args:
        executor: Runs the underlying SELECT/UPDATE/DELETE statements; may be
            None for services that only read/write cache entries directly.
        driver: Cache driver shared by all queries of the model.
        options: Model cache options (TTL and default policy).
        table: Table used by query() and entity helpers.
        namespace: Prefix for derived keys; defaults to settings.namespace.
        single_flight: Serialize population/invalidation per key.
        locks: Per-key locks to share between services of one model.
        telemetry_enabled: Emit span events for cache traffic.
    """

    def __init__(
        self,
        executor: QueryExecutor | None,
        driver: CacheDriver,
        options: CacheOptions | None = None,
        *,
        table: FromClause | None = None,
        namespace: str | None = None,
        single_flight: bool | None = None,
        telemetry_enabled: bool | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        settings = get_settings()
        self.executor = executor
        self.driver = driver
        self.options = options or CacheOptions()
        self.table = table
        self.namespace = namespace or settings.namespace
        if single_flight is None:
            single_flight = settings.single_flight
        if single_flight and locks is None:
            locks = KeyedLocks()
        self._locks = locks if single_flight else None
        self.telemetry_enabled = (
            settings.telemetry_enabled if telemetry_enabled is None else telemetry_enabled
        )

    # -- query construction ---------------------------------------------------

    def query(self, statement: Select | None = None) -> CachedQuery:
        """Return a CachedQuery over the service table bound to this service."""
        if self.table is None:
            raise ValueError("QueryCacheService was created without a table")
        return CachedQuery(
            self.table, statement, service=self, namespace=self.namespace
        )

    def row_query(self, row: dict[str, Any]) -> CachedQuery:
        """Identity query of a row: primary key match, limit 1."""
        query = self.query()
        for column in self.table.primary_key:
            query = query.where(column == row[column.key])
        return query.limit(1)

    def entity_query(self, obj: Any) -> CachedQuery:
        """Identity query of a mapped instance (see row_query())."""
        return self.row_query(self.entity_row(obj))

    def entity_row(self, obj: Any) -> dict[str, Any]:
        """Row mapping of a mapped instance, keyed like fetched rows."""
        mapper = sa_inspect(obj).mapper
        row: dict[str, Any] = {}
        for column in self.table.columns:
            prop = mapper.get_property_by_column(column)
            row[column.key] = getattr(obj, prop.key)
        return row

    # -- policy ---------------------------------------------------------------

    def is_cacheable(self, query: CachedQuery) -> bool:
        """Override when set, otherwise the model's default policy."""
        if query.override is CacheOverride.FORCE_CACHE:
            return True
        if query.override is CacheOverride.FORCE_BYPASS:
            return False
        return is_cacheable_by_default(query.limit_value, self.options.cache_by_default)

    # -- cache primitives -----------------------------------------------------

    def _require_executor(self) -> QueryExecutor:
        if self.executor is None:
            raise QueryCacheException(
                "QueryCacheService has no executor; pass a Session or Connection",
                "NO_EXECUTOR",
            )
        return self.executor

    def _emit(self, event: str, key: str, **attributes: Any) -> None:
        if self.telemetry_enabled:
            add_span_event(event, {"cache.key": key, **attributes})

    def _key_lock(self, key: str) -> AbstractContextManager[None]:
        if self._locks is None:
            return nullcontext()
        return self._locks.hold(key)

    def read_from_cache(self, query: CachedQuery) -> list[dict[str, Any]] | None:
        """Return cached rows for query, or None on a miss."""
        key = query.cache_key
        logger.debug("Cache GET: %s", key)
        rows = self.driver.get(key)
        if rows is None:
            logger.debug("Cache MISS: %s", key)
            self._emit(CACHE_EVENT_MISS, key)
            return None
        logger.debug("Cache HIT: %s", key)
        self._emit(CACHE_EVENT_HIT, key, **{"cache.rows": len(rows)})
        return [_normalize_row(row) for row in rows]

    def write_to_cache(
        self,
        query: CachedQuery,
        rows: list[dict[str, Any]],
        **overrides: Any,
    ) -> list[dict[str, Any]]:
        """Store rows under the query key; overrides (e.g. ttl) win over model options."""
        key = query.cache_key
        options = self.options.merged(**overrides) if overrides else self.options
        logger.debug("Cache SET: %s (TTL: %ss)", key, options.ttl)
        self.driver.set(key, rows, options)
        self._emit(CACHE_EVENT_SET, key, **{"cache.rows": len(rows)})
        return rows

    def invalidate_cache(self, query: CachedQuery) -> None:
        """Delete the cache entry of query (absent keys are fine)."""
        key = query.cache_key
        logger.debug("Cache DELETE: %s", key)
        self.driver.delete(key)
        self._emit(CACHE_EVENT_DELETE, key)

    # -- read-through ---------------------------------------------------------

    @traced("query_cache.fetch")
    def fetch(self, query: CachedQuery) -> list[dict[str, Any]]:
        """Return all rows of query, through the cache when cacheable.

        On a miss the full result is materialized before it is cached.
        """
        cacheable = self.is_cacheable(query)
        add_span_attributes(**{"cache.cacheable": cacheable})
        if not cacheable:
            return self._require_executor().fetch_rows(query.statement)
        key = query.cache_key
        with self._key_lock(key):
            rows = self.read_from_cache(query)
            if rows is not None:
                return rows
            rows = self._require_executor().fetch_rows(query.statement)
            self.write_to_cache(query, rows)
            return rows

    def first(self, query: CachedQuery) -> dict[str, Any] | None:
        """First row of query.limit(1), or None."""
        rows = self.fetch(query.limit(1))
        return rows[0] if rows else None

    # -- write-invalidate -----------------------------------------------------

    def _invalidate_after_mutation(self, query: CachedQuery) -> None:
        if not self.is_cacheable(query):
            return
        with self._key_lock(query.cache_key):
            self.invalidate_cache(query)

    @traced("query_cache.update")
    def update(self, query: CachedQuery, values: dict[str, Any]) -> int:
        """Run UPDATE for query's criteria, then drop its cache entry.

        If the UPDATE raises, the cache is left untouched.
        """
        count = self._require_executor().execute_mutation(query.update_statement(values))
        self._invalidate_after_mutation(query)
        return count

    @traced("query_cache.delete")
    def delete(self, query: CachedQuery) -> int:
        """Run DELETE for query's criteria, then drop its cache entry."""
        count = self._require_executor().execute_mutation(query.delete_statement())
        self._invalidate_after_mutation(query)
        return count

    # -- entity-level writes --------------------------------------------------

    def cache_row(self, row: dict[str, Any], **overrides: Any) -> dict[str, Any]:
        """Write row as a single-row entry under its identity query key."""
        query = self.row_query(row)
        if self.is_cacheable(query):
            self.write_to_cache(query, [row], **overrides)
        return row

    def cache_entity(self, obj: Any, **overrides: Any) -> Any:
        """Write obj as a single-row entry under its identity query key."""
        self.cache_row(self.entity_row(obj), **overrides)
        return obj

    def uncache_entity(self, obj: Any) -> Any:
        """Delete the entry stored under obj's identity query key."""
        self.invalidate_cache(self.entity_query(obj))
        return obj
