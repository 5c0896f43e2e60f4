"""Row serializers: encode ordered row sequences to bytes and back.

JsonRowSerializer is the default. JSON keeps payloads portable across
backends and languages; values JSON cannot represent natively (datetimes,
decimals, UUIDs, bytes) are written as tagged objects so they round-trip
with their original type.
"""

from __future__ import annotations

import base64
import json
import uuid
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from query_cache.domain.exceptions import (
    CacheDeserializationException,
    CacheSerializationException,
)

# Tag key for values that need type information to round-trip
_TYPE_TAG = "__qc_type__"
_VALUE_TAG = "v"
_TAGGED_KEYS = {_TYPE_TAG, _VALUE_TAG}


def _encode_value(value: Any) -> Any:
    """json.dumps default hook: tag non-native scalars."""
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return {_TYPE_TAG: "datetime", _VALUE_TAG: value.isoformat()}
    if isinstance(value, date):
        return {_TYPE_TAG: "date", _VALUE_TAG: value.isoformat()}
    if isinstance(value, time):
        return {_TYPE_TAG: "time", _VALUE_TAG: value.isoformat()}
    if isinstance(value, Decimal):
        return {_TYPE_TAG: "decimal", _VALUE_TAG: str(value)}
    if isinstance(value, uuid.UUID):
        return {_TYPE_TAG: "uuid", _VALUE_TAG: str(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {_TYPE_TAG: "bytes", _VALUE_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    raise TypeError(f"Object of type {type(value).__name__} is not serializable")


_DECODERS = {
    "datetime": datetime.fromisoformat,
    "date": date.fromisoformat,
    "time": time.fromisoformat,
    "decimal": Decimal,
    "uuid": uuid.UUID,
    "bytes": base64.b64decode,
}


def _decode_object(obj: dict[str, Any]) -> Any:
    """json.loads object hook: restore tagged scalars."""
    if obj.keys() != _TAGGED_KEYS:
        return obj
    tag = obj[_TYPE_TAG]
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise ValueError(f"unknown value tag {tag!r}")
    return decoder(obj[_VALUE_TAG])


class JsonRowSerializer:
    """Default serializer: compact UTF-8 JSON array of row objects."""

    content_type = "application/json"

    def serialize(self, rows: list[dict[str, Any]]) -> bytes:
        """Encode rows; raises CacheSerializationException on unsupported values."""
        try:
            payload = json.dumps(
                [dict(row) for row in rows],
                default=_encode_value,
                separators=(",", ":"),
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as e:
            raise CacheSerializationException(str(e)) from e
        return payload.encode("utf-8")

    def deserialize(self, payload: bytes | str) -> list[dict[str, Any]]:
        """Decode a payload; corrupt or foreign data raises, never returns a miss."""
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = bytes(payload).decode("utf-8")
            except UnicodeDecodeError as e:
                raise CacheDeserializationException(f"payload is not UTF-8: {e}") from e
        try:
            rows = json.loads(payload, object_hook=_decode_object)
        except (TypeError, ValueError, InvalidOperation) as e:
            raise CacheDeserializationException(str(e)) from e
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise CacheDeserializationException("payload is not an array of row objects")
        return rows


def get_default_serializer() -> JsonRowSerializer:
    """Return the serializer used when a driver is built without one."""
    return JsonRowSerializer()
