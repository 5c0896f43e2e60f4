"""Domain exceptions for the query cache.

Defines the exceptions raised by the cache layer itself. Backend errors
(e.g. redis.ConnectionError) are never wrapped: they propagate to the
caller unchanged so a failing store fails the whole operation.
"""

from typing import Any


class QueryCacheException(Exception):
    """Base exception for all query cache errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. key, backend).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class InvalidCacheKeyException(QueryCacheException):
    """Raised when a manual cache key cannot be coerced to a non-empty string."""

    def __init__(self, value: Any, reason: str = "must be a non-empty string") -> None:
        """Initialize with the rejected value.

        Args:
            value: The value that was assigned as cache key.
            reason: Why the value was rejected.
        """
        super().__init__(
            f"Invalid cache key {value!r}: {reason}",
            "INVALID_CACHE_KEY",
            {"value_type": type(value).__name__, "reason": reason},
        )


class CacheSerializationException(QueryCacheException):
    """Raised when rows cannot be encoded by the configured serializer."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Failed to serialize cache entry: {reason}",
            "CACHE_SERIALIZATION_ERROR",
            {"reason": reason},
        )


class CacheDeserializationException(QueryCacheException):
    """Raised when a stored payload is corrupt or in an incompatible format.

    Never converted into a cache miss; callers see the failure.
    """

    def __init__(self, reason: str, key: str | None = None) -> None:
        """Initialize with reason and optional cache key.

        Args:
            reason: Description of the decoding failure.
            key: Cache key whose payload failed to decode, when known.
        """
        details: dict[str, Any] = {"reason": reason}
        if key is not None:
            details["key"] = key
        super().__init__(
            f"Failed to deserialize cache entry: {reason}",
            "CACHE_DESERIALIZATION_ERROR",
            details,
        )


class CacheDriverNotFoundException(QueryCacheException):
    """Raised when no driver is registered for a backend tag."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            f"Unknown cache driver backend: {backend!r}",
            "CACHE_DRIVER_NOT_FOUND",
            {"backend": backend},
        )


class CacheDriverAlreadyRegisteredException(QueryCacheException):
    """Raised when registering a backend tag twice without overwrite."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            f"Cache driver already registered: {backend!r}",
            "CACHE_DRIVER_ALREADY_REGISTERED",
            {"backend": backend},
        )


class ModelNotConfiguredException(QueryCacheException):
    """Raised when a model has no cache configuration registered."""

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"Query cache is not configured for model: {model_name}",
            "MODEL_NOT_CONFIGURED",
            {"model": model_name},
        )


class UnboundQueryException(QueryCacheException):
    """Raised when a cache operation is called on a query with no service bound."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation}: query is not bound to a QueryCacheService",
            "UNBOUND_QUERY",
            {"operation": operation},
        )


class LimitedMutationException(QueryCacheException):
    """Raised when UPDATE/DELETE is requested on a query with LIMIT or OFFSET."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} a limited or offset query; "
            "narrow it with where() instead",
            "LIMITED_MUTATION",
            {"operation": operation},
        )
