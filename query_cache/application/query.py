"""CachedQuery: a chainable, immutable-until-cloned query value.

Wraps a SQLAlchemy Select over one table. Every chaining call returns a
clone. Clones inherit the cache override but never the manual cache key
or the memoized derived key, since a changed query needs a new key:

    users = service.query()
    active = users.mark_cacheable().where(users.c.active.is_(True))
    active.order_by(users.c.name).all()

Here the override set by mark_cacheable() survives where() and
order_by(), while each step derives its own key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, Delete, FromClause, Select, Update, delete, select, update
from sqlalchemy.exc import CompileError

from query_cache.core.constants import CACHE_KEY_NAMESPACE
from query_cache.domain.enums import CacheOverride
from query_cache.domain.exceptions import LimitedMutationException, UnboundQueryException
from query_cache.infrastructure.cache.keys import (
    canonical_form,
    coerce_manual_cache_key,
    derive_cache_key,
)

if TYPE_CHECKING:
    from query_cache.application.services.query_cache_service import QueryCacheService


class CachedQuery:
    """Query over a single table carrying cache override and key state.

    Args:
        table: Table (or other FromClause) the query reads and mutates.
        statement: Initial SELECT; defaults to select(table).
        service: QueryCacheService that executes this query; optional for
            pure key/override work.
        override: Initial cache override.
        namespace: Prefix for derived keys.
    """

    def __init__(
        self,
        table: FromClause,
        statement: Select | None = None,
        *,
        service: QueryCacheService | None = None,
        override: CacheOverride = CacheOverride.UNSET,
        namespace: str = CACHE_KEY_NAMESPACE,
    ) -> None:
        self.table = table
        self.statement = statement if statement is not None else select(table)
        self.service = service
        self.namespace = namespace
        self._override = override
        self._cache_key: str | None = None
        self._default_cache_key: str | None = None

    # -- cloning and chaining -------------------------------------------------

    def clone(
        self,
        statement: Select | None = None,
        *,
        override: CacheOverride | None = None,
    ) -> CachedQuery:
        """Return a copy with the override carried over and key state reset."""
        return CachedQuery(
            self.table,
            statement if statement is not None else self.statement,
            service=self.service,
            override=self._override if override is None else override,
            namespace=self.namespace,
        )

    def where(self, *criteria: ColumnElement[bool]) -> CachedQuery:
        return self.clone(self.statement.where(*criteria))

    def filter_by(self, **kwargs: Any) -> CachedQuery:
        return self.clone(self.statement.filter_by(**kwargs))

    def order_by(self, *clauses: Any) -> CachedQuery:
        return self.clone(self.statement.order_by(*clauses))

    def limit(self, limit: int | None) -> CachedQuery:
        return self.clone(self.statement.limit(limit))

    def offset(self, offset: int | None) -> CachedQuery:
        return self.clone(self.statement.offset(offset))

    @property
    def c(self) -> Any:
        """Column collection of the underlying table."""
        return self.table.c

    @property
    def limit_value(self) -> int | None:
        """Integer LIMIT of the statement.

        None when the query is unbounded or its LIMIT is a SQL expression
        whose size is unknown until execution.
        """
        if self.statement._limit_clause is None:
            return None
        try:
            return self.statement._limit
        except CompileError:
            return None

    # -- cacheability override ------------------------------------------------

    @property
    def override(self) -> CacheOverride:
        return self._override

    def mark_cacheable(self) -> CachedQuery:
        """Clone that is always read from / written to the cache."""
        return self.clone(override=CacheOverride.FORCE_CACHE)

    def mark_not_cacheable(self) -> CachedQuery:
        """Clone that never touches the cache."""
        return self.clone(override=CacheOverride.FORCE_BYPASS)

    def reset_cache_default(self) -> CachedQuery:
        """Clone that defers to the model's default policy again.

        Returns self when no override is set.
        """
        if self._override is CacheOverride.UNSET:
            return self
        return self.clone(override=CacheOverride.UNSET)

    # -- cache keys -----------------------------------------------------------

    @property
    def canonical_form(self) -> str:
        return canonical_form(self.statement)

    @property
    def default_cache_key(self) -> str:
        """Derived key, memoized for the lifetime of this instance."""
        if self._default_cache_key is None:
            self._default_cache_key = derive_cache_key(self.canonical_form, self.namespace)
        return self._default_cache_key

    @property
    def cache_key(self) -> str:
        """Manual key when assigned, otherwise the derived key."""
        return self._cache_key or self.default_cache_key

    @cache_key.setter
    def cache_key(self, value: Any) -> None:
        self._cache_key = coerce_manual_cache_key(value)

    def set_cache_key(self, value: Any) -> CachedQuery:
        """Assign (or clear with None) a manual key; returns self for chaining.

        The manual key is used verbatim, without the namespace prefix, and
        is not carried into clones.

        Raises:
            InvalidCacheKeyException: If value is not a usable key.
        """
        self.cache_key = value
        return self

    @property
    def has_manual_cache_key(self) -> bool:
        return self._cache_key is not None

    # -- mutation statements --------------------------------------------------

    def _check_mutable(self, operation: str) -> None:
        # UPDATE/DELETE cannot carry LIMIT or OFFSET portably
        if self.statement._limit_clause is not None or self.statement._offset_clause is not None:
            raise LimitedMutationException(operation)

    def update_statement(self, values: dict[str, Any]) -> Update:
        """UPDATE over this query's WHERE criteria; ORDER BY has no effect.

        Raises:
            LimitedMutationException: If the query has a LIMIT or OFFSET.
        """
        self._check_mutable("update")
        stmt = update(self.table)
        if self.statement.whereclause is not None:
            stmt = stmt.where(self.statement.whereclause)
        return stmt.values(**values)

    def delete_statement(self) -> Delete:
        """DELETE over this query's WHERE criteria; ORDER BY has no effect.

        Raises:
            LimitedMutationException: If the query has a LIMIT or OFFSET.
        """
        self._check_mutable("delete")
        stmt = delete(self.table)
        if self.statement.whereclause is not None:
            stmt = stmt.where(self.statement.whereclause)
        return stmt

    # -- execution through the bound service ----------------------------------

    def _require_service(self, operation: str) -> QueryCacheService:
        if self.service is None:
            raise UnboundQueryException(operation)
        return self.service

    @property
    def is_cacheable(self) -> bool:
        return self._require_service("check cacheability").is_cacheable(self)

    def all(self) -> list[dict[str, Any]]:
        return self._require_service("fetch rows").fetch(self)

    def first(self) -> dict[str, Any] | None:
        return self._require_service("fetch first row").first(self)

    def update(self, **values: Any) -> int:
        return self._require_service("update").update(self, values)

    def delete(self) -> int:
        return self._require_service("delete").delete(self)

    def read_from_cache(self) -> list[dict[str, Any]] | None:
        return self._require_service("read from cache").read_from_cache(self)

    def write_to_cache(self, rows: list[dict[str, Any]], **options: Any) -> list[dict[str, Any]]:
        return self._require_service("write to cache").write_to_cache(self, rows, **options)

    def invalidate_cache(self) -> None:
        self._require_service("invalidate cache").invalidate_cache(self)

    def __repr__(self) -> str:
        return (
            f"CachedQuery(table={getattr(self.table, 'name', self.table)!s}, "
            f"override={self._override.value}, key={self.cache_key!r})"
        )
