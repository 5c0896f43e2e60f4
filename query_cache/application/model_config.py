"""Model-level cache configuration.

Each model registers one ModelCacheConfig: resolved CacheOptions plus the
CacheDriver (and per-key locks) used by every query of that model.
Subtypes get a copy of the parent's options at registration time and the
same driver instance, so changing a parent later does not leak into
already-registered children.

    configure_model(User, redis_client, backend="redis", ttl=60)
    inherit_model(Admin, User, cache_by_default=True)

Declarative models that mix in CacheableMixin inherit automatically when
they subclass a configured model.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, object_session

from query_cache.application.query import CachedQuery
from query_cache.application.services.query_cache_service import QueryCacheService
from query_cache.core.config import Settings, get_settings
from query_cache.core.constants import CACHE_BACKEND_GENERIC
from query_cache.domain.exceptions import ModelNotConfiguredException
from query_cache.domain.value_objects import CacheByDefault, CacheOptions
from query_cache.infrastructure.cache.cache_protocol import (
    CacheStoreProtocol,
    SerializerProtocol,
)
from query_cache.infrastructure.cache.connection import create_driver_from_settings
from query_cache.infrastructure.cache.drivers import CacheDriver
from query_cache.infrastructure.cache.locks import KeyedLocks
from query_cache.infrastructure.cache.registry import create_cache_driver
from query_cache.infrastructure.persistence.executor import SessionQueryExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelCacheConfig:
    """Resolved cache configuration of one model."""

    options: CacheOptions
    driver: CacheDriver
    locks: KeyedLocks = field(default_factory=KeyedLocks)


_MODEL_CONFIGS: dict[type, ModelCacheConfig] = {}
_LOCK = Lock()


def default_cache_options(settings: Settings | None = None) -> CacheOptions:
    """CacheOptions built from settings (ttl 3600, {always: False, if_limit: 1})."""
    settings = settings or get_settings()
    return CacheOptions(
        ttl=settings.default_ttl,
        cache_by_default=CacheByDefault(
            always=settings.cache_always,
            if_limit=settings.cache_if_limit,
        ),
    )


def resolve_cache_options(
    parent: CacheOptions | None = None, overrides: Mapping[str, Any] | None = None
) -> CacheOptions:
    """Merge overrides onto a copy of parent (or the settings defaults)."""
    base = parent if parent is not None else default_cache_options()
    return base.merged(**dict(overrides or {}))


def _register(model: type, config: ModelCacheConfig) -> ModelCacheConfig:
    with _LOCK:
        _MODEL_CONFIGS[model] = config
    logger.debug(
        "Query cache configured for %s: %s via %r",
        model.__name__,
        config.options.to_dict(),
        config.driver,
    )
    return config


def configure_model(
    model: type,
    store: CacheStoreProtocol | None = None,
    *,
    driver: CacheDriver | None = None,
    backend: str = CACHE_BACKEND_GENERIC,
    serializer: SerializerProtocol | None = None,
    **options: Any,
) -> ModelCacheConfig:
    """Register cache options and a driver for model.

    Args:
        model: Model class (usually a declarative SQLAlchemy model).
        store: Backend store handle; when omitted (and no driver is given)
            the store is built from settings.
        driver: Ready-made driver to share, e.g. across unrelated models.
        backend: Registry tag used to wrap store ("redis", "memcache", ...).
        serializer: Serializer override for the new driver.
        **options: ttl and/or cache_by_default (bool or {always, if_limit}).

    Returns:
        The registered configuration.
    """
    resolved = resolve_cache_options(None, options)
    if driver is None:
        if store is None:
            driver = create_driver_from_settings(serializer=serializer)
        else:
            driver = create_cache_driver(store, backend=backend, serializer=serializer)
    return _register(model, ModelCacheConfig(options=resolved, driver=driver))


def inherit_model(child: type, parent: type, **overrides: Any) -> ModelCacheConfig:
    """Register child with a copy of parent's options and parent's driver.

    Raises:
        ModelNotConfiguredException: If parent has no configuration.
    """
    parent_config = get_model_config(parent)
    return _register(
        child,
        ModelCacheConfig(
            options=resolve_cache_options(parent_config.options, overrides),
            driver=parent_config.driver,
            locks=parent_config.locks,
        ),
    )


def get_model_config(model: type) -> ModelCacheConfig:
    """Return the configuration registered for model.

    Raises:
        ModelNotConfiguredException: If model was never configured.
    """
    with _LOCK:
        config = _MODEL_CONFIGS.get(model)
    if config is None:
        raise ModelNotConfiguredException(model.__name__)
    return config


def is_model_configured(model: type) -> bool:
    with _LOCK:
        return model in _MODEL_CONFIGS


def unconfigure_model(model: type) -> None:
    with _LOCK:
        _MODEL_CONFIGS.pop(model, None)


def create_query_cache_service(
    model: type,
    bind: Session | Connection | None = None,
    **kwargs: Any,
) -> QueryCacheService:
    """Build a QueryCacheService for model's table using its registered config.

    Args:
        model: Configured declarative model.
        bind: Session or Connection for query execution; None builds a
            service that can only read and write cache entries.
        **kwargs: Passed to QueryCacheService (namespace, single_flight, ...).
    """
    config = get_model_config(model)
    executor = SessionQueryExecutor(bind) if bind is not None else None
    return QueryCacheService(
        executor,
        config.driver,
        config.options,
        table=model.__table__,
        locks=config.locks,
        **kwargs,
    )


class CacheableMixin:
    """Declarative mixin with query cache helpers.

    Place before the declarative base: class User(CacheableMixin, Base).
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in cls.__mro__[1:]:
            if is_model_configured(base):
                inherit_model(cls, base)
                break

    @classmethod
    def cache_config(cls) -> ModelCacheConfig:
        return get_model_config(cls)

    @classmethod
    def cache_options(cls) -> CacheOptions:
        return get_model_config(cls).options

    @classmethod
    def cache_driver(cls) -> CacheDriver:
        return get_model_config(cls).driver

    @classmethod
    def cached_query(cls, bind: Session | Connection | None = None) -> CachedQuery:
        """CachedQuery over the model table with default cacheability."""
        return create_query_cache_service(cls, bind).query()

    @classmethod
    def cached(cls, bind: Session | Connection | None = None) -> CachedQuery:
        return cls.cached_query(bind).mark_cacheable()

    @classmethod
    def not_cached(cls, bind: Session | Connection | None = None) -> CachedQuery:
        return cls.cached_query(bind).mark_not_cacheable()

    @classmethod
    def default_cached(cls, bind: Session | Connection | None = None) -> CachedQuery:
        return cls.cached_query(bind).reset_cache_default()

    def _entity_service(self) -> QueryCacheService:
        return create_query_cache_service(type(self), object_session(self))

    @property
    def cache_key(self) -> str:
        """Key of this instance's identity query."""
        return self._entity_service().entity_query(self).cache_key

    def cache(self, **overrides: Any) -> Any:
        """Write this instance to the cache if its identity query is cacheable."""
        return self._entity_service().cache_entity(self, **overrides)

    def uncache(self) -> Any:
        """Remove this instance's cache entry."""
        return self._entity_service().uncache_entity(self)


# Session.info entry holding row snapshots that wait for the commit
_PENDING_KEY = "query_cache.pending"


def _pending_rows(session: Session) -> dict[tuple[type, tuple[Any, ...]], dict[str, Any]]:
    return session.info.setdefault(_PENDING_KEY, {})


def _identity(model: type, row: dict[str, Any]) -> tuple[type, tuple[Any, ...]]:
    return model, tuple(row[column.key] for column in model.__table__.primary_key)


def _cache_after_save(mapper: Any, connection: Connection, target: Any) -> None:
    # attributes are expired by the time after_commit runs, so snapshot the row now
    model = type(target)
    row = create_query_cache_service(model).entity_row(target)
    session = object_session(target)
    if session is None:
        return
    _pending_rows(session)[_identity(model, row)] = row


def _uncache_after_delete(mapper: Any, connection: Connection, target: Any) -> None:
    model = type(target)
    service = create_query_cache_service(model)
    row = service.entity_row(target)
    session = object_session(target)
    if session is not None:
        _pending_rows(session).pop(_identity(model, row), None)
    service.invalidate_cache(service.row_query(row))


def _write_pending_after_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    for (model, _), row in pending.items():
        create_query_cache_service(model).cache_row(row)


def _discard_pending_after_rollback(session: Session) -> None:
    dropped = session.info.pop(_PENDING_KEY, None)
    if dropped:
        logger.debug("Discarded %d pending cache write(s) after rollback", len(dropped))


_SESSION_HOOKS = (
    ("after_commit", _write_pending_after_commit),
    ("after_rollback", _discard_pending_after_rollback),
)


def install_cache_listeners(model: type, *, propagate: bool = True) -> None:
    """Cache instances once their INSERT/UPDATE commits and uncache after DELETE.

    Saved rows are snapshotted during the flush and written to the cache
    when the session commits; a rollback discards them. Deletes drop the
    entry during the flush.

    Subclasses receive the listeners when propagate is True and must be
    configured themselves (CacheableMixin or inherit_model()).
    """
    event.listen(model, "after_insert", _cache_after_save, propagate=propagate)
    event.listen(model, "after_update", _cache_after_save, propagate=propagate)
    event.listen(model, "after_delete", _uncache_after_delete, propagate=propagate)
    for name, fn in _SESSION_HOOKS:
        if not event.contains(Session, name, fn):
            event.listen(Session, name, fn)


def remove_cache_listeners(model: type) -> None:
    """Remove the mapper listeners of model; the session hooks stay installed."""
    for name, fn in (
        ("after_insert", _cache_after_save),
        ("after_update", _cache_after_save),
        ("after_delete", _uncache_after_delete),
    ):
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
