"""Query execution port and its SQLAlchemy implementation.

The coordinator wraps a QueryExecutor instead of overriding the query
builder's methods. SessionQueryExecutor runs statements on a sync
Session or Connection; transaction boundaries stay with the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy import Delete, Select, Update
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Protocol for the underlying query execution (DIP)."""

    def fetch_rows(self, statement: Select) -> list[dict[str, Any]]:
        """Run a SELECT and return every row as a column-name mapping, in order."""
        ...

    def execute_mutation(self, statement: Update | Delete) -> int:
        """Run an UPDATE or DELETE and return the affected row count."""
        ...


class SessionQueryExecutor:
    """QueryExecutor over a SQLAlchemy Session or Connection.

    Rows are fully materialized: cursor streaming is not available for
    results that go through the cache.
    """

    def __init__(self, bind: Session | Connection) -> None:
        self.bind = bind

    def fetch_rows(self, statement: Select) -> list[dict[str, Any]]:
        result = self.bind.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    def execute_mutation(self, statement: Update | Delete) -> int:
        result = self.bind.execute(statement)
        logger.debug("Mutation affected %s row(s)", result.rowcount)
        return result.rowcount
