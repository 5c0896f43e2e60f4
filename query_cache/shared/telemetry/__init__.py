"""Shared telemetry: logging setup and OpenTelemetry tracing helpers."""

from query_cache.shared.telemetry.logging import get_logger, setup_logging
from query_cache.shared.telemetry.tracing import (
    CACHE_EVENT_DELETE,
    CACHE_EVENT_HIT,
    CACHE_EVENT_MISS,
    CACHE_EVENT_SET,
    add_span_attributes,
    add_span_event,
    traced,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "traced",
    "add_span_attributes",
    "add_span_event",
    "CACHE_EVENT_HIT",
    "CACHE_EVENT_MISS",
    "CACHE_EVENT_SET",
    "CACHE_EVENT_DELETE",
]
