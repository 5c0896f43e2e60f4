"""Persistence: query execution port and SQLAlchemy session executor."""

from query_cache.infrastructure.persistence.executor import (
    QueryExecutor,
    SessionQueryExecutor,
)

__all__ = ["QueryExecutor", "SessionQueryExecutor"]
