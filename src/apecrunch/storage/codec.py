"""Binary history container codec.

Layout::

    [u32 big-endian format_version][zlib compressed block]

The compressed block holds canonical UTF-8 JSON of ``{"variables", "sessions"}``.
The version header sits outside the compressed block so it is checked before
any payload byte is interpreted. Older payloads are migrated forward one
version at a time; a version with no migration path is incompatible.
"""

from __future__ import annotations

import json
import logging
import struct
import zlib
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Final

from pydantic import ValidationError

from apecrunch.models.history import HistoryContainer
from apecrunch.storage.errors import HistoryLoadError, HistoryLoadErrorKind

logger = logging.getLogger(__name__)

FORMAT_VERSION: Final[int] = 2

COMPRESSION_LEVEL: Final[int] = 6

_HEADER: Final[struct.Struct] = struct.Struct(">I")

Payload = dict[str, Any]


def empty_container() -> HistoryContainer:
    """Return a fresh container at the current format version."""
    return HistoryContainer(format_version=FORMAT_VERSION)


def _migrate_v1(payload: Payload) -> Payload:
    """Version 1 to version 2.

    Version 1 kept variables as a list of ``{id, numerator, denominator}`` and
    named session/entry fields after their UUIDs, with the session start in
    epoch seconds and no per-entry timestamp.
    """
    variables = {
        item["id"]: {
            "numerator": item["numerator"],
            "denominator": item["denominator"],
            "inexact": False,
        }
        for item in payload.get("variables", [])
    }

    sessions = []
    for session in payload.get("sessions", []):
        started_at = datetime.fromtimestamp(int(session["session_start"]), UTC).isoformat()
        entries = [
            {
                "entry_id": entry["entry_uuid"],
                "created_at": started_at,
                "expression": entry["expression"],
                "result": {
                    "numerator": entry["numerator"],
                    "denominator": entry["denominator"],
                    "inexact": False,
                },
                "error": None,
                "inexact": False,
            }
            for entry in session.get("entries", [])
        ]
        sessions.append(
            {
                "session_id": session["session_uuid"],
                "started_at": started_at,
                "entries": entries,
            }
        )

    return {"variables": variables, "sessions": sessions}


# from_version -> migration producing from_version + 1
MIGRATIONS: Final[dict[int, Callable[[Payload], Payload]]] = {
    1: _migrate_v1,
}


def encode_container(container: HistoryContainer) -> bytes:
    """Serialize, compress and version-prefix a container."""
    payload = json.dumps(container.to_payload(), sort_keys=True, separators=(",", ":"))
    block = zlib.compress(payload.encode("utf-8"), COMPRESSION_LEVEL)
    return _HEADER.pack(FORMAT_VERSION) + block


def read_version(data: bytes) -> int:
    """Read the format version header.

    Raises:
        HistoryLoadError: CORRUPT if the data is shorter than the header.
    """
    if len(data) < _HEADER.size:
        raise HistoryLoadError(
            HistoryLoadErrorKind.CORRUPT,
            f"History data too short for a version header ({len(data)} bytes)",
        )
    (version,) = _HEADER.unpack_from(data)
    return int(version)


def migrate_payload(payload: Payload, version: int) -> Payload:
    """Apply forward migrations from ``version`` to FORMAT_VERSION.

    Raises:
        HistoryLoadError: INCOMPATIBLE_VERSION when a step is missing,
            CORRUPT when the old payload does not have the expected shape.
    """
    while version < FORMAT_VERSION:
        migration = MIGRATIONS.get(version)
        if migration is None:
            raise HistoryLoadError(
                HistoryLoadErrorKind.INCOMPATIBLE_VERSION,
                f"No migration from history format version {version}",
                version=version,
            )
        try:
            payload = migration(payload)
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
            raise HistoryLoadError(
                HistoryLoadErrorKind.CORRUPT,
                f"History payload version {version} is malformed: {e}",
                cause=e,
                version=version,
            ) from e
        logger.info("Migrated history payload from version %d to %d", version, version + 1)
        version += 1
    return payload


def decode_container(data: bytes) -> HistoryContainer:
    """Decode bytes produced by encode_container (or an older version of it).

    Raises:
        HistoryLoadError: CORRUPT or INCOMPATIBLE_VERSION.
    """
    version = read_version(data)
    if version > FORMAT_VERSION:
        raise HistoryLoadError(
            HistoryLoadErrorKind.INCOMPATIBLE_VERSION,
            f"History format version {version} is newer than supported {FORMAT_VERSION}",
            version=version,
        )
    if version < 1:
        raise HistoryLoadError(
            HistoryLoadErrorKind.INCOMPATIBLE_VERSION,
            f"Unknown history format version {version}",
            version=version,
        )

    try:
        raw = zlib.decompress(data[_HEADER.size :])
    except zlib.error as e:
        raise HistoryLoadError(
            HistoryLoadErrorKind.CORRUPT,
            f"History data could not be decompressed: {e}",
            cause=e,
            version=version,
        ) from e

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError) as e:
        # ValueError includes bad UTF-8, bad JSON and over-long integers.
        raise HistoryLoadError(
            HistoryLoadErrorKind.CORRUPT,
            f"History payload is not valid JSON: {e}",
            cause=e,
            version=version,
        ) from e

    if not isinstance(payload, dict):
        raise HistoryLoadError(
            HistoryLoadErrorKind.CORRUPT,
            "History payload is not an object",
            version=version,
        )

    payload = migrate_payload(payload, version)

    try:
        container = HistoryContainer.model_validate({**payload, "format_version": FORMAT_VERSION})
    except ValidationError as e:
        raise HistoryLoadError(
            HistoryLoadErrorKind.CORRUPT,
            f"History payload failed validation: {e.error_count()} error(s)",
            cause=e,
            version=version,
        ) from e

    container.sort_sessions()
    return container
