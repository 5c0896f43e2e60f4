"""Query cache configuration (settings and environment).

Single source of truth for cache defaults. Uses pydantic-settings with
.env support; every variable is read with the QUERY_CACHE_ prefix
(e.g. QUERY_CACHE_DEFAULT_TTL=60). Model-level options fall back to these
values when configure_model() is called without explicit overrides.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from query_cache.core.constants import (
    CACHE_BACKEND_MEMORY,
    CACHE_BACKEND_REDIS,
    CACHE_DEFAULT_IF_LIMIT,
    CACHE_DEFAULT_TTL,
    CACHE_KEY_NAMESPACE,
)


class Settings(BaseSettings):
    """Query cache settings loaded from environment and .env.

    All settings are optional. validate_ttl_and_backend rejects negative
    TTLs and backends this package cannot construct from settings.
    """

    app_name: str = "query-cache"
    app_version: str = "1.0.0"
    debug: bool = False

    # Key derivation
    namespace: str = CACHE_KEY_NAMESPACE

    # Default model options
    default_ttl: int | None = CACHE_DEFAULT_TTL
    cache_always: bool = False
    # True caches every limited query, an int caches limits up to that ceiling
    cache_if_limit: int | bool = CACHE_DEFAULT_IF_LIMIT

    # Store built by create_store_from_settings(): memory or redis
    backend: str = CACHE_BACKEND_MEMORY

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    redis_socket_timeout: float = 5.0

    # Serialize miss -> execute -> set per key inside one process
    single_flight: bool = False

    # OpenTelemetry span events for cache hits/misses
    telemetry_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="QUERY_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_ttl_and_backend(self) -> "Settings":
        """Validate TTL range and backend name."""
        if self.default_ttl is not None and self.default_ttl < 0:
            raise ValueError(
                f"QUERY_CACHE_DEFAULT_TTL must be >= 0 or unset, got: {self.default_ttl}"
            )
        if self.backend not in (CACHE_BACKEND_MEMORY, CACHE_BACKEND_REDIS):
            raise ValueError(
                f"Invalid backend '{self.backend}'. "
                "Must be one of: 'memory', 'redis'. Other stores are passed to "
                "configure_model() or create_cache_driver() directly"
            )
        if not self.namespace:
            raise ValueError("QUERY_CACHE_NAMESPACE must be a non-empty string")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
