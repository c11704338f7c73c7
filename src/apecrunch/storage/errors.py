"""History storage error types.

Load failures are recoverable: the caller substitutes an empty
container and keeps going. Save failures leave the in-memory state intact so
a later save can retry.
"""

from __future__ import annotations

from enum import StrEnum


class HistoryLoadErrorKind(StrEnum):
    """Reasons a history file could not be loaded."""

    CORRUPT = "CORRUPT"
    INCOMPATIBLE_VERSION = "INCOMPATIBLE_VERSION"
    IO = "IO"


class HistorySaveErrorKind(StrEnum):
    """Reasons a history file could not be saved."""

    IO = "IO"


class HistoryStorageError(Exception):
    """Base exception for history storage operations.

    Attributes:
        message: Human-readable error message.
        path: History file the operation targeted (if applicable).
        cause: Underlying exception (if any).
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.path:
            parts.append(f"path={self.path}")
        return " ".join(parts)


class HistoryLoadError(HistoryStorageError):
    """Raised when a history file cannot be read, decoded or migrated."""

    def __init__(
        self,
        kind: HistoryLoadErrorKind,
        message: str,
        *,
        path: str | None = None,
        cause: Exception | None = None,
        version: int | None = None,
    ) -> None:
        super().__init__(message, path=path, cause=cause)
        self.kind = kind
        self.version = version


class HistorySaveError(HistoryStorageError):
    """Raised when a history file cannot be written.

    The previous file on disk is left untouched.
    """

    def __init__(
        self,
        message: str = "Failed to save history",
        *,
        path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, path=path, cause=cause)
        self.kind = HistorySaveErrorKind.IO
