"""History store: owns the in-memory history container and its file.

The store is the only writer of sessions. Entries enter through append(),
variables through the VariableTable exposed by ``variable_table``. Saving
writes to a temporary sibling file and replaces the target atomically, so an
interrupted save never corrupts the previous history file.
"""

from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path

from apecrunch.calc.errors import EvalError
from apecrunch.calc.variables import VariableTable
from apecrunch.models.history import HistoryContainer, HistoryEntry, Session
from apecrunch.storage.codec import decode_container, empty_container, encode_container
from apecrunch.storage.errors import (
    HistoryLoadError,
    HistoryLoadErrorKind,
    HistorySaveError,
)
from apecrunch.storage.tracing import traced_history_operation

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".tmp"


class HistoryStore:
    """File-backed store of calculation sessions and the variable table.

    All mutations go through a single re-entrant lock, so a periodic
    checkpoint from another thread is serialized with the read-eval loop.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize an empty store bound to ``path``.

        Nothing is read until load() or load_or_empty() is called.
        """
        self._path = Path(path)
        self._lock = threading.RLock()
        self._container = empty_container()
        self._variables = VariableTable()
        self._current_session_id: str | None = None
        self._dirty = False
        self.last_payload_size: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def variable_table(self) -> VariableTable:
        """The live variable table, snapshotted into the container on save."""
        return self._variables

    @property
    def dirty(self) -> bool:
        """True when there are changes not yet written to disk."""
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    # -- load -------------------------------------------------------------

    def _read_bytes(self) -> bytes | None:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise HistoryLoadError(
                HistoryLoadErrorKind.IO,
                f"Failed to read history file: {e}",
                path=str(self._path),
                cause=e,
            ) from e

    @traced_history_operation("load")
    def load(self) -> HistoryContainer:
        """Load the history file into the store.

        A missing file is a first run and yields an empty container.

        Returns:
            The loaded container, sessions sorted by start time.

        Raises:
            HistoryLoadError: IO, CORRUPT or INCOMPATIBLE_VERSION. The store
                keeps its previous state.
        """
        with self._lock:
            data = self._read_bytes()
            if data is None:
                logger.info("No history file at %s, starting empty", self._path)
                container = empty_container()
            else:
                try:
                    container = decode_container(data)
                except HistoryLoadError as e:
                    e.path = str(self._path)
                    raise

            variables = VariableTable()
            try:
                variables.restore(container.variable_snapshot())
            except (EvalError, ValueError) as e:
                raise HistoryLoadError(
                    HistoryLoadErrorKind.CORRUPT,
                    f"History variable table is invalid: {e}",
                    path=str(self._path),
                    cause=e,
                ) from e

            self._container = container
            self._variables = variables
            self._current_session_id = None
            self._dirty = False
            self.last_payload_size = len(data) if data is not None else None
            logger.info(
                "Loaded history: %d session(s), %d variable(s)",
                len(container.sessions),
                len(variables),
            )
            return container

    def load_or_empty(self) -> HistoryLoadError | None:
        """Load the history file, substituting an empty container on failure.

        Returns:
            The load error for user notification, or None on success.
        """
        try:
            self.load()
        except HistoryLoadError as e:
            logger.warning("History could not be loaded (%s): %s", e.kind, e)
            with self._lock:
                self._container = empty_container()
                self._variables = VariableTable()
                self._current_session_id = None
                self._dirty = False
            return e
        return None

    # -- sessions and entries ----------------------------------------------

    @staticmethod
    def _detached(session: Session) -> Session:
        return session.model_copy(update={"entries": list(session.entries)})

    def _find(self, session_id: str) -> Session | None:
        for session in self._container.sessions:
            if session.session_id == session_id:
                return session
        return None

    def _current(self) -> Session | None:
        if self._current_session_id is None:
            return None
        return self._find(self._current_session_id)

    def _open_session(self) -> Session:
        session = Session()
        self._container.sessions.append(session)
        self._container.sort_sessions()
        self._current_session_id = session.session_id
        logger.info("Started session %s", session.session_id)
        return session

    def start_session(self) -> Session:
        """Begin a new session; it becomes the target of append()."""
        with self._lock:
            return self._detached(self._open_session())

    def current_session(self) -> Session | None:
        """The session started by this store, if any."""
        with self._lock:
            session = self._current()
            return self._detached(session) if session is not None else None

    def latest_session(self) -> Session | None:
        """The most recently started session; the default selection."""
        with self._lock:
            if not self._container.sessions:
                return None
            return self._detached(self._container.sessions[-1])

    def find_session(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._find(session_id)
            return self._detached(session) if session is not None else None

    def sessions(self, newest_first: bool = False) -> list[Session]:
        """Copies of the sessions in chronological order (or reversed).

        Changing a returned session or its entry list does not touch the store.
        """
        with self._lock:
            ordered = [self._detached(session) for session in self._container.sessions]
        if newest_first:
            ordered.reverse()
        return ordered

    def counts(self) -> tuple[int, int]:
        """Number of sessions and total number of entries."""
        with self._lock:
            sessions = self._container.sessions
            return len(sessions), sum(len(session.entries) for session in sessions)

    def append(self, entry: HistoryEntry) -> None:
        """Append an entry to the current session, starting one if needed."""
        with self._lock:
            session = self._current()
            if session is None:
                session = self._open_session()
            session.entries.append(entry)
            self._dirty = True
            logger.debug("Appended entry %s to session %s", entry.entry_id, session.session_id)

    def entries(self, session_id: str | None = None) -> list[HistoryEntry]:
        """Entries of one session, or of all sessions in chronological order.

        Raises:
            KeyError: If ``session_id`` does not name a session.
        """
        with self._lock:
            if session_id is not None:
                session = self._find(session_id)
                if session is None:
                    raise KeyError(f"Session not found: {session_id}")
                return list(session.entries)
            return [entry for session in self._container.sessions for entry in session.entries]

    def find_entry(self, entry_id: str) -> HistoryEntry | None:
        with self._lock:
            for session in self._container.sessions:
                for entry in session.entries:
                    if entry.entry_id == entry_id:
                        return entry
            return None

    def snapshot_container(self) -> HistoryContainer:
        """Return a deep copy of the container with the current variables."""
        with self._lock:
            container = self._container.model_copy(deep=True)
            container.set_variables(self._variables.snapshot())
            return container

    # -- save -------------------------------------------------------------

    @traced_history_operation("save")
    def save(self) -> None:
        """Write the container atomically.

        Raises:
            HistorySaveError: If the file cannot be written. The previous
                file and the in-memory state are both left intact.
        """
        with self._lock:
            container = self.snapshot_container()
            try:
                data = encode_container(container)
            except (ValueError, RecursionError) as e:
                raise HistorySaveError(
                    message=f"Failed to encode history: {e}",
                    path=str(self._path),
                    cause=e,
                ) from e
            tmp_file = self._path.with_name(f"{self._path.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}")
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_file.write_bytes(data)
                tmp_file.replace(self._path)
            except OSError as e:
                tmp_file.unlink(missing_ok=True)
                raise HistorySaveError(
                    message=f"Failed to write history file: {e}",
                    path=str(self._path),
                    cause=e,
                ) from e

            self._container.set_variables(self._variables.snapshot())
            self._dirty = False
            self.last_payload_size = len(data)
            logger.info("Saved history to %s (%d bytes)", self._path, len(data))
