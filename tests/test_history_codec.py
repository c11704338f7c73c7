"""Tests for the binary history container codec.

Covers:
- Encoded layout: big-endian version header, compressed JSON block
- Decode of encoded containers, including large numerators
- Version-1 payload migration
- Corrupt, truncated and incompatible inputs
"""

from __future__ import annotations

import json
import struct
import zlib
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from apecrunch.calc.number import Number
from apecrunch.models.history import HistoryContainer, HistoryEntry, NumberRecord, Session
from apecrunch.storage.codec import (
    FORMAT_VERSION,
    decode_container,
    empty_container,
    encode_container,
    read_version,
)
from apecrunch.storage.errors import HistoryLoadError, HistoryLoadErrorKind


def _raw(version: int, payload: Any) -> bytes:
    block = zlib.compress(json.dumps(payload).encode("utf-8"))
    return struct.pack(">I", version) + block


@pytest.fixture
def container() -> HistoryContainer:
    """A container with two sessions and one variable."""
    start = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    first = Session(
        started_at=start,
        entries=[HistoryEntry.from_result("1/3 + 1/6", Number.from_parts(1, 2))],
    )
    second = Session(
        started_at=start + timedelta(hours=1),
        entries=[HistoryEntry.from_result("x = 2^200", Number(2**200))],
    )
    result = empty_container()
    result.sessions = [first, second]
    result.set_variables({"x": Number(2**200)})
    return result


class TestEncoding:
    """Tests for encode_container output."""

    def test_header_is_big_endian_version(self, container: HistoryContainer) -> None:
        data = encode_container(container)
        assert data[:4] == struct.pack(">I", FORMAT_VERSION)
        assert read_version(data) == FORMAT_VERSION

    def test_block_is_compressed_json(self, container: HistoryContainer) -> None:
        data = encode_container(container)
        payload = json.loads(zlib.decompress(data[4:]).decode("utf-8"))
        assert set(payload) == {"variables", "sessions"}
        assert int(payload["variables"]["x"]["numerator"], 16) == 2**200
        assert payload["variables"]["x"]["denominator"] == "1"

    def test_encoding_is_deterministic(self, container: HistoryContainer) -> None:
        assert encode_container(container) == encode_container(container)


class TestDecoding:
    """Tests for decode_container on current-version data."""

    def test_decode_preserves_sessions_and_variables(self, container: HistoryContainer) -> None:
        decoded = decode_container(encode_container(container))

        assert [s.session_id for s in decoded.sessions] == [
            s.session_id for s in container.sessions
        ]
        assert decoded.sessions[0].entries[0].expression == "1/3 + 1/6"
        assert decoded.variable_snapshot() == {"x": Number(2**200)}

    def test_sessions_sorted_regardless_of_stored_order(
        self, container: HistoryContainer
    ) -> None:
        expected = [s.session_id for s in container.sessions]
        container.sessions.reverse()

        decoded = decode_container(encode_container(container))

        assert [s.session_id for s in decoded.sessions] == expected

    def test_integers_beyond_decimal_conversion_limit(self) -> None:
        """Integers far past the interpreter's int/str digit limit round-trip."""
        huge = Number(2**20000 + 1)
        container = empty_container()
        container.sessions = [Session(entries=[HistoryEntry.from_result("2^20000 + 1", huge)])]
        container.set_variables({"big": huge, "tiny": Number.from_parts(1, 3**9000)})

        decoded = decode_container(encode_container(container))

        assert decoded.sessions[0].entries[0].number() == huge
        assert decoded.variable_snapshot() == {
            "big": huge,
            "tiny": Number.from_parts(1, 3**9000),
        }

    def test_plain_json_integers_accepted(self) -> None:
        payload = {"variables": {"x": {"numerator": -3, "denominator": 4}}, "sessions": []}
        decoded = decode_container(_raw(FORMAT_VERSION, payload))
        assert decoded.variable_snapshot() == {"x": Number.from_parts(-3, 4)}

    def test_inexact_flag_survives(self) -> None:
        approx = Number(2).root(Number(2))
        container = empty_container()
        container.sessions = [Session(entries=[HistoryEntry.from_result("sqrt 2", approx)])]

        decoded = decode_container(encode_container(container))

        entry = decoded.sessions[0].entries[0]
        assert entry.inexact
        assert entry.number() == approx


class TestMigration:
    """Tests for version-1 payload migration."""

    def test_version_one_is_migrated(self) -> None:
        payload = {
            "variables": [{"id": "x", "numerator": 3, "denominator": 4}],
            "sessions": [
                {
                    "session_uuid": "c0ffee00-0000-4000-8000-000000000001",
                    "session_start": 1_700_000_000,
                    "entries": [
                        {
                            "entry_uuid": "c0ffee00-0000-4000-8000-000000000002",
                            "expression": "x = 3/4",
                            "numerator": 3,
                            "denominator": 4,
                        }
                    ],
                }
            ],
        }

        decoded = decode_container(_raw(1, payload))

        assert decoded.format_version == FORMAT_VERSION
        assert decoded.variables == {"x": NumberRecord(numerator=3, denominator=4)}
        session = decoded.sessions[0]
        assert session.session_id == "c0ffee00-0000-4000-8000-000000000001"
        assert session.started_at == datetime.fromtimestamp(1_700_000_000, UTC)
        entry = session.entries[0]
        assert entry.entry_id == "c0ffee00-0000-4000-8000-000000000002"
        assert entry.number() == Number.from_parts(3, 4)
        assert entry.created_at == session.started_at

    def test_malformed_version_one_is_corrupt(self) -> None:
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(1, {"variables": [{"id": "x"}], "sessions": []}))
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT
        assert exc_info.value.version == 1


class TestRejectedInput:
    """Tests for corrupt and incompatible data."""

    def test_too_short_for_header(self) -> None:
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(b"\x00\x00")
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_newer_version_is_incompatible(self, container: HistoryContainer) -> None:
        data = struct.pack(">I", FORMAT_VERSION + 1) + encode_container(container)[4:]
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data)
        assert exc_info.value.kind == HistoryLoadErrorKind.INCOMPATIBLE_VERSION
        assert exc_info.value.version == FORMAT_VERSION + 1

    def test_version_zero_is_incompatible(self) -> None:
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(0, {}))
        assert exc_info.value.kind == HistoryLoadErrorKind.INCOMPATIBLE_VERSION

    def test_truncated_block_is_corrupt(self, container: HistoryContainer) -> None:
        data = encode_container(container)
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data[: len(data) // 2])
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_garbage_block_is_corrupt(self) -> None:
        data = struct.pack(">I", FORMAT_VERSION) + b"not zlib at all"
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data)
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_non_object_payload_is_corrupt(self) -> None:
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(FORMAT_VERSION, [1, 2, 3]))
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_zero_denominator_is_corrupt(self) -> None:
        payload = {"variables": {"x": {"numerator": 1, "denominator": 0}}, "sessions": []}
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(FORMAT_VERSION, payload))
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_naive_timestamp_is_corrupt(self) -> None:
        payload = {
            "variables": {},
            "sessions": [
                {"session_id": "s", "started_at": "2024-01-01T00:00:00", "entries": []}
            ],
        }
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(FORMAT_VERSION, payload))
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_invalid_hex_integer_is_corrupt(self) -> None:
        payload = {"variables": {"x": {"numerator": "xyz", "denominator": "1"}}, "sessions": []}
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(_raw(FORMAT_VERSION, payload))
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_overlong_json_integer_is_corrupt(self) -> None:
        """A decimal integer past the int/str digit limit cannot be read back."""
        block = (
            b'{"variables":{"x":{"numerator":'
            + b"1" * 5000
            + b',"denominator":1}},"sessions":[]}'
        )
        data = struct.pack(">I", FORMAT_VERSION) + zlib.compress(block)
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data)
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_deeply_nested_json_is_corrupt(self) -> None:
        data = struct.pack(">I", FORMAT_VERSION) + zlib.compress(b"[" * 100_000)
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data)
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT

    def test_invalid_utf8_is_corrupt(self) -> None:
        data = struct.pack(">I", FORMAT_VERSION) + zlib.compress(b'{"variables": "\xff"}')
        with pytest.raises(HistoryLoadError) as exc_info:
            decode_container(data)
        assert exc_info.value.kind == HistoryLoadErrorKind.CORRUPT
