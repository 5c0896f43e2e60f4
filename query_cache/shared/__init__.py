"""Shared: cross-cutting telemetry helpers."""
