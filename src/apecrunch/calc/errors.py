"""Typed errors raised by the expression engine.

Every failure while lexing, parsing or evaluating an expression is reported as a
CalcError subclass carrying a machine-readable kind. None of them leave any
trace in the variable table or the history: the failed input is simply not
recorded.
"""

from __future__ import annotations

from enum import StrEnum


class LexErrorKind(StrEnum):
    """Tokenizer failure modes."""

    UNRECOGNIZED_CHARACTER = "UNRECOGNIZED_CHARACTER"


class ParseErrorKind(StrEnum):
    """Parser failure modes."""

    UNMATCHED_PAREN = "UNMATCHED_PAREN"
    TRAILING_INPUT = "TRAILING_INPUT"
    EMPTY_EXPRESSION = "EMPTY_EXPRESSION"
    UNEXPECTED_TOKEN = "UNEXPECTED_TOKEN"
    NESTING_TOO_DEEP = "NESTING_TOO_DEEP"


class EvalErrorKind(StrEnum):
    """Evaluator failure modes."""

    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    INVALID_EXPONENT = "INVALID_EXPONENT"
    COMPLEX_RESULT = "COMPLEX_RESULT"
    UNDEFINED_VARIABLE = "UNDEFINED_VARIABLE"
    INVALID_NAME = "INVALID_NAME"
    RESERVED_NAME = "RESERVED_NAME"
    RESULT_TOO_LARGE = "RESULT_TOO_LARGE"


class CalcError(Exception):
    """Base exception for expression-level failures.

    Attributes:
        message: Human-readable error message.
        kind: Failure mode of the concrete error class.
        position: Character offset in the source text (if applicable).
    """

    kind: StrEnum

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"


class LexError(CalcError):
    """Raised when the tokenizer meets a character it does not recognize."""

    def __init__(
        self,
        kind: LexErrorKind,
        message: str,
        *,
        position: int | None = None,
        character: str | None = None,
    ) -> None:
        super().__init__(message, position=position)
        self.kind = kind
        self.character = character


class ParseError(CalcError):
    """Raised when the token sequence does not form a single expression."""

    def __init__(
        self,
        kind: ParseErrorKind,
        message: str,
        *,
        position: int | None = None,
    ) -> None:
        super().__init__(message, position=position)
        self.kind = kind


class EvalError(CalcError):
    """Raised when a well-formed expression cannot be evaluated.

    ``name`` is set for the variable-related kinds (UNDEFINED_VARIABLE,
    INVALID_NAME, RESERVED_NAME).
    """

    def __init__(
        self,
        kind: EvalErrorKind,
        message: str,
        *,
        name: str | None = None,
        position: int | None = None,
    ) -> None:
        super().__init__(message, position=position)
        self.kind = kind
        self.name = name
