"""Variable table: validated names mapped to Numbers."""

from __future__ import annotations

import re
from typing import Final

from apecrunch.calc.errors import EvalError, EvalErrorKind
from apecrunch.calc.number import Number
from apecrunch.calc.parser import ROOT_WORDS

# Names the parser reads as operators; they can never hold a value.
RESERVED_NAMES: Final[frozenset[str]] = ROOT_WORDS

_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def validate_name(name: str) -> None:
    """Check ``name`` against the identifier grammar.

    Raises:
        EvalError: RESERVED_NAME for operator words, INVALID_NAME for anything
            not starting with a letter or containing other characters.
    """
    if name in RESERVED_NAMES:
        raise EvalError(
            EvalErrorKind.RESERVED_NAME,
            f"'{name}' is reserved and cannot be assigned",
            name=name,
        )
    if not _NAME_PATTERN.match(name):
        raise EvalError(
            EvalErrorKind.INVALID_NAME,
            f"'{name}' is not a valid variable name",
            name=name,
        )


class VariableTable:
    """Case-sensitive mapping of variable names to values.

    Insertion order is kept for display; re-assigning a name replaces its
    value in place.
    """

    def __init__(self, initial: dict[str, Number] | None = None) -> None:
        self._values: dict[str, Number] = {}
        if initial:
            self.restore(initial)

    def get(self, name: str) -> Number | None:
        return self._values.get(name)

    def set(self, name: str, value: Number) -> None:
        """Store ``value`` under ``name``; last assignment wins.

        Raises:
            EvalError: If the name is reserved or invalid.
        """
        validate_name(name)
        self._values[name] = value

    def remove(self, name: str) -> None:
        """Delete a variable.

        Raises:
            KeyError: If the variable does not exist.
        """
        if name not in self._values:
            raise KeyError(f"Variable not found: {name}")
        del self._values[name]

    def names(self) -> list[str]:
        return list(self._values)

    def snapshot(self) -> dict[str, Number]:
        """Return a copy of the current contents."""
        return dict(self._values)

    def restore(self, snapshot: dict[str, Number]) -> None:
        """Replace the contents with ``snapshot``.

        All names are validated before anything is replaced.
        """
        for name in snapshot:
            validate_name(name)
        self._values = dict(snapshot)

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)
