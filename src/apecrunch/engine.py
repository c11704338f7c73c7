"""Calculator engine: the operations consumed by front-ends.

Ties the expression engine to the history store. One input is tokenized,
parsed and evaluated to completion before the next is accepted. Successful
evaluations are appended to the current session; failed ones leave history
and variables exactly as they were.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from apecrunch.calc.evaluator import Evaluator
from apecrunch.calc.number import Number
from apecrunch.calc.parser import parse
from apecrunch.config import CalcSettings, load_settings
from apecrunch.models.history import HistoryEntry, Session
from apecrunch.storage.errors import HistoryLoadError, HistorySaveError
from apecrunch.storage.history_store import HistoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalcResult:
    """Result of a successful evaluate() call.

    Attributes:
        expression: The input text, verbatim.
        value: The computed Number.
        entry_id: ID of the history entry recorded for this input.
        display: Value formatted with the configured decimal places.
    """

    expression: str
    value: Number
    entry_id: str
    display: str

    @property
    def inexact(self) -> bool:
        return self.value.inexact

    @property
    def fraction(self) -> str:
        return self.value.to_fraction_string()


class CalcEngine:
    """Evaluate expressions and record them in the history store."""

    def __init__(
        self,
        store: HistoryStore,
        settings: CalcSettings | None = None,
        *,
        load_error: HistoryLoadError | None = None,
    ) -> None:
        """Initialize the engine over an already-loaded store.

        Args:
            store: History store; its variable table backs evaluation.
            settings: Calculator settings. Defaults to CalcSettings().
            load_error: Error from loading the store, kept for notification.
        """
        self._store = store
        self._settings = settings or CalcSettings()
        self._unsaved_entries = 0
        self.load_error = load_error

    @classmethod
    def open(cls, settings: CalcSettings | None = None) -> CalcEngine:
        """Load history from the configured file and start a new session.

        A corrupt or foreign history file is replaced by an empty container;
        the error stays available as ``load_error``.
        """
        settings = settings or load_settings()
        store = HistoryStore(settings.history_path)
        load_error = store.load_or_empty()
        store.start_session()
        return cls(store, settings, load_error=load_error)

    @property
    def settings(self) -> CalcSettings:
        return self._settings

    @property
    def store(self) -> HistoryStore:
        return self._store

    def evaluate(self, text: str) -> CalcResult | None:
        """Evaluate one input line.

        Empty or whitespace-only input is a no-op and returns None.

        Raises:
            LexError, ParseError, EvalError: The input is rejected; nothing
                is recorded.
        """
        if not text.strip():
            return None

        expression = parse(text)
        value = Evaluator(self._store.variable_table).evaluate(expression)
        display = value.to_decimal_string(self._settings.decimal_places)

        entry = HistoryEntry.from_result(text, value)
        self._store.append(entry)
        self._unsaved_entries += 1
        self._checkpoint()

        logger.debug("Evaluated %r -> %s", text, display)
        return CalcResult(
            expression=text,
            value=value,
            entry_id=entry.entry_id,
            display=display,
        )

    def _checkpoint(self) -> None:
        interval = self._settings.autosave_interval
        if interval == 0 or self._unsaved_entries < interval:
            return
        try:
            self.save()
        except HistorySaveError as e:
            logger.warning("Autosave failed, keeping history in memory: %s", e)

    def history_entries(self, session_id: str | None = None) -> list[HistoryEntry]:
        """Entries of one session, or all entries chronologically.

        Raises:
            KeyError: If ``session_id`` does not name a session.
        """
        return self._store.entries(session_id)

    def sessions(self, newest_first: bool = False) -> list[Session]:
        return self._store.sessions(newest_first=newest_first)

    def reinsert(self, entry_id: str) -> str:
        """Return the original input text of a past entry for re-editing.

        Raises:
            KeyError: If no entry has this ID.
        """
        entry = self._store.find_entry(entry_id)
        if entry is None:
            raise KeyError(f"History entry not found: {entry_id}")
        return entry.expression

    def variables(self) -> dict[str, Number]:
        """Snapshot of the variable table for display."""
        return self._store.variable_table.snapshot()

    def format(self, value: Number) -> str:
        return value.to_decimal_string(self._settings.decimal_places)

    def save(self) -> None:
        """Write history to disk.

        Raises:
            HistorySaveError: In-memory state is kept so a later save can retry.
        """
        self._store.save()
        self._unsaved_entries = 0

    def close(self) -> None:
        """Save pending changes; a failure is logged and re-raised."""
        if not self._store.dirty:
            return
        try:
            self.save()
        except HistorySaveError as e:
            logger.error("Failed to save history on close: %s", e)
            raise
