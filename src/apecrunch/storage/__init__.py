"""ApeCrunch history storage.

Provides the versioned, compressed history container and the store that owns
it, with corruption recovery and atomic saves.
"""

from apecrunch.storage.codec import FORMAT_VERSION, decode_container, encode_container
from apecrunch.storage.errors import (
    HistoryLoadError,
    HistoryLoadErrorKind,
    HistorySaveError,
    HistoryStorageError,
)
from apecrunch.storage.history_store import HistoryStore

__all__ = [
    "FORMAT_VERSION",
    "HistoryLoadError",
    "HistoryLoadErrorKind",
    "HistorySaveError",
    "HistoryStorageError",
    "HistoryStore",
    "decode_container",
    "encode_container",
]
