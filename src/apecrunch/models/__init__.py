"""ApeCrunch data models."""

from apecrunch.models.history import HistoryContainer, HistoryEntry, NumberRecord, Session

__all__ = [
    "HistoryContainer",
    "HistoryEntry",
    "NumberRecord",
    "Session",
]
