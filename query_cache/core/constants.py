"""Core constants: cache key structure and default model options.

Single source of truth for the derived key format
("<namespace>:<base64 md5>") and the defaults applied by configure_model().
"""

# Prefix of every derived key; manual keys are stored verbatim
CACHE_KEY_NAMESPACE = "QueryCache"

# Delimiter between namespace and digest
CACHE_KEY_SEP = ":"

# Default model options
CACHE_DEFAULT_TTL = 3600
CACHE_DEFAULT_IF_LIMIT = 1

# Backend tags understood by the driver registry
CACHE_BACKEND_GENERIC = "generic"
CACHE_BACKEND_MEMORY = "memory"
CACHE_BACKEND_REDIS = "redis"
CACHE_BACKEND_MEMCACHE = "memcache"
