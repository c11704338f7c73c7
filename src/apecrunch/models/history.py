"""History models: entries, sessions and the persisted container.

Entries are immutable once created. Sessions only grow through the history
store's append operation, and the container is owned by that store.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AwareDatetime, BaseModel, BeforeValidator, Field, PlainSerializer

from apecrunch.calc.number import Number


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _int_from_hex(value: Any) -> Any:
    if isinstance(value, str):
        return int(value, 16)
    return value


def _int_to_hex(value: int) -> str:
    return format(value, "x")


# Arbitrary-size integer carried in JSON as a signed hex string. Hex conversion
# has no digit limit, unlike decimal int/str conversion.
HexInt = Annotated[
    int,
    BeforeValidator(_int_from_hex),
    PlainSerializer(_int_to_hex, return_type=str, when_used="json"),
]


class NumberRecord(BaseModel):
    """Persisted form of a Number.

    Numerator and denominator are arbitrary-size integers, written to JSON as
    hex strings. Plain JSON integers are also accepted on input.
    """

    numerator: HexInt = Field(..., description="Signed numerator in lowest terms")
    denominator: HexInt = Field(..., gt=0, description="Positive denominator")
    inexact: bool = Field(False, description="Value is a truncated approximation")

    model_config = {"frozen": True, "extra": "forbid"}

    @classmethod
    def from_number(cls, number: Number) -> NumberRecord:
        return cls(
            numerator=number.numerator,
            denominator=number.denominator,
            inexact=number.inexact,
        )

    def to_number(self) -> Number:
        return Number.from_parts(self.numerator, self.denominator, self.inexact)


class HistoryEntry(BaseModel):
    """A single evaluated input.

    ``result`` is None only when the entry records a failure, in which case
    ``error`` holds the error marker.
    """

    entry_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="UUID for this entry"
    )
    created_at: AwareDatetime = Field(default_factory=_utcnow, description="Creation timestamp")
    expression: str = Field(..., description="Original input text, verbatim")
    result: NumberRecord | None = Field(None, description="Computed value")
    error: str | None = Field(None, description="Error marker when evaluation failed")
    inexact: bool = Field(False, description="Result is a truncated approximation")

    model_config = {"frozen": True, "extra": "forbid"}

    @classmethod
    def from_result(cls, expression: str, result: Number) -> HistoryEntry:
        """Create an entry for a successful evaluation."""
        return cls(
            expression=expression,
            result=NumberRecord.from_number(result),
            inexact=result.inexact,
        )

    def number(self) -> Number | None:
        return self.result.to_number() if self.result is not None else None

    def rendition(self, decimal_places: int) -> str:
        """Render as ``expression = value`` for history listings."""
        number = self.number()
        if number is None:
            return f"{self.expression} = {self.error or 'error'}"
        return f"{self.expression} = {number.to_decimal_string(decimal_places)}"


class Session(BaseModel):
    """One continuous run of the calculator."""

    session_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="UUID for this session"
    )
    started_at: AwareDatetime = Field(default_factory=_utcnow, description="Session start time")
    entries: list[HistoryEntry] = Field(
        default_factory=list, description="Entries in chronological order"
    )

    model_config = {"frozen": False, "extra": "forbid"}


class HistoryContainer(BaseModel):
    """Everything persisted in the history file."""

    format_version: int = Field(..., ge=1, description="On-disk format version")
    variables: dict[str, NumberRecord] = Field(
        default_factory=dict, description="Variable table snapshot"
    )
    sessions: list[Session] = Field(
        default_factory=list, description="Sessions ordered by start time"
    )

    model_config = {"frozen": False, "extra": "forbid"}

    def sort_sessions(self) -> None:
        """Order sessions by start time (stable for equal timestamps)."""
        self.sessions.sort(key=lambda session: session.started_at)

    def variable_snapshot(self) -> dict[str, Number]:
        return {name: record.to_number() for name, record in self.variables.items()}

    def set_variables(self, snapshot: dict[str, Number]) -> None:
        self.variables = {name: NumberRecord.from_number(value) for name, value in snapshot.items()}

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible payload stored inside the compressed block."""
        return self.model_dump(mode="json", exclude={"format_version"})
