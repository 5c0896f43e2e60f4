"""Tests for JsonRowSerializer (round trip, tagged types, corrupt payloads)."""

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from query_cache.domain.exceptions import (
    CacheDeserializationException,
    CacheSerializationException,
)
from query_cache.infrastructure.cache.serializers import JsonRowSerializer


@pytest.fixture
def serializer() -> JsonRowSerializer:
    return JsonRowSerializer()


def test_scalar_and_null_round_trip(serializer: JsonRowSerializer) -> None:
    rows = [
        {"id": 1, "name": "ada", "score": 9.5, "active": True, "email": None},
        {"id": 2, "name": "grace", "score": -1.25, "active": False, "email": "g@x.io"},
    ]
    assert serializer.deserialize(serializer.serialize(rows)) == rows


def test_empty_result_round_trip(serializer: JsonRowSerializer) -> None:
    assert serializer.deserialize(serializer.serialize([])) == []


def test_tagged_types_round_trip(serializer: JsonRowSerializer) -> None:
    rows = [
        {
            "created_at": datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
            "birthday": date(1990, 5, 1),
            "opens_at": time(9, 30),
            "balance": Decimal("10.50"),
            "ref": uuid.UUID("12345678-1234-5678-1234-567812345678"),
            "blob": b"\x00\x01",
        }
    ]
    restored = serializer.deserialize(serializer.serialize(rows))
    assert restored == rows
    assert type(restored[0]["created_at"]) is datetime
    assert type(restored[0]["birthday"]) is date


def test_row_order_preserved(serializer: JsonRowSerializer) -> None:
    rows = [{"id": i} for i in range(20)]
    assert [r["id"] for r in serializer.deserialize(serializer.serialize(rows))] == list(range(20))


def test_payload_is_compact_utf8_bytes(serializer: JsonRowSerializer) -> None:
    payload = serializer.serialize([{"name": "é"}])
    assert isinstance(payload, bytes)
    assert payload == '[{"name":"é"}]'.encode()


def test_str_payload_accepted(serializer: JsonRowSerializer) -> None:
    assert serializer.deserialize('[{"a":1}]') == [{"a": 1}]


def test_unserializable_value_raises(serializer: JsonRowSerializer) -> None:
    with pytest.raises(CacheSerializationException):
        serializer.serialize([{"value": object()}])


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b'{"a": 1}',
        b"[1, 2]",
        b"\xff\xfe",
        b'[{"x": {"__qc_type__": "nope", "v": 1}}]',
        b'[{"x": {"__qc_type__": "decimal", "v": "abc"}}]',
    ],
)
def test_corrupt_payload_raises(serializer: JsonRowSerializer, payload: bytes) -> None:
    with pytest.raises(CacheDeserializationException) as exc_info:
        serializer.deserialize(payload)
    assert exc_info.value.error_code == "CACHE_DESERIALIZATION_ERROR"


@pytest.mark.parametrize(
    "value",
    [
        {"__qc_type__": "note", "author": "ada"},
        {"__qc_type__": "date", "w": "2024-01-01"},
        {"__qc_type__": "date", "v": "2024-01-01", "extra": 1},
        {"__qc_type__": "date"},
    ],
)
def test_objects_that_only_resemble_tags_round_trip(
    serializer: JsonRowSerializer, value: dict
) -> None:
    rows = [{"meta": value}]
    assert serializer.deserialize(serializer.serialize(rows)) == rows
