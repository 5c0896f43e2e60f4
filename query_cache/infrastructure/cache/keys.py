"""Cache key derivation. Single place for key format (DRY).

Derived keys are "<namespace>:<base64 md5 of canonical form>". The digest
is not security-sensitive; it only needs to be stable and order-sensitive.
Manual keys bypass derivation and are stored verbatim.
"""

import base64
import hashlib
import json
from typing import Any

from sqlalchemy.sql import ClauseElement

from query_cache.core.constants import CACHE_KEY_NAMESPACE, CACHE_KEY_SEP
from query_cache.domain.exceptions import InvalidCacheKeyException


# Tag key for nested values JSON cannot encode
_PARAM_TAG = "__qc_param__"


def _type_name(value: Any) -> str:
    cls = type(value)
    return f"{cls.__module__}.{cls.__qualname__}"


def _json_default(value: Any) -> dict[str, str]:
    """Render non-JSON values (dates, decimals, UUIDs) as tagged objects."""
    return {_PARAM_TAG: _type_name(value), "v": repr(value)}


def canonical_form(statement: ClauseElement) -> str:
    """Return the canonical text of a statement: SQL plus bound parameters.

    The SQL is compiled with the default dialect so the form does not depend
    on the connected engine. Parameters are appended as canonical JSON
    (sorted keys, no spaces), each as a [type, value] pair, so two
    statements that differ only in bound values or in their types get
    different forms: "2024-01-01" and date(2024, 1, 1) never collide.

    Args:
        statement: A SQLAlchemy Select (or any compilable clause).

    Returns:
        Deterministic textual representation.
    """
    compiled = statement.compile()
    typed = {name: [_type_name(value), value] for name, value in compiled.params.items()}
    params = json.dumps(typed, sort_keys=True, separators=(",", ":"), default=_json_default)
    return f"{compiled.string}\n{params}"


def derive_cache_key(canonical: str, namespace: str = CACHE_KEY_NAMESPACE) -> str:
    """Return the namespaced base64 MD5 digest of a canonical form.

    Args:
        canonical: Output of canonical_form().
        namespace: Key prefix (settings.namespace in normal use).

    Returns:
        Cache key such as "QueryCache:1B2M2Y8AsgTpgAmY7PhCfg==".
    """
    digest = hashlib.md5(canonical.encode("utf-8")).digest()
    return f"{namespace}{CACHE_KEY_SEP}{base64.b64encode(digest).decode('ascii')}"


def coerce_manual_cache_key(value: Any) -> str | None:
    """Validate a manually assigned key; None clears the manual key.

    Strings are used verbatim, UTF-8 bytes are decoded and anything else
    is converted with str(). Raises at assignment time so a bad key never
    reaches the backend.

    Raises:
        InvalidCacheKeyException: If value is a bool, undecodable bytes,
            cannot be converted to a string, or converts to an empty one.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidCacheKeyException(value, "booleans are not valid cache keys")
    if isinstance(value, bytes):
        try:
            key = value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidCacheKeyException(value, "bytes must be valid UTF-8") from e
    elif isinstance(value, str):
        key = value
    else:
        try:
            key = str(value)
        except Exception as e:
            raise InvalidCacheKeyException(value, "cannot be converted to a string") from e
    if not key:
        raise InvalidCacheKeyException(value)
    return key
