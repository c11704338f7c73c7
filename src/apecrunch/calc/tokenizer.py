"""Tokenizer for calculator expressions.

Produces NUMBER, IDENTIFIER, OPERATOR, LPAREN, RPAREN, ASSIGN and a final END
token. Signs are never folded into numeric literals: ``-`` is always an
operator, and the parser decides between subtraction and negation.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from apecrunch.calc.errors import LexError, LexErrorKind


class TokenKind(StrEnum):
    """Lexical token categories."""

    NUMBER = "NUMBER"
    IDENTIFIER = "IDENTIFIER"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    ASSIGN = "ASSIGN"
    END = "END"


ROOT_SYMBOL: Final[str] = "√"

OPERATORS: Final[frozenset[str]] = frozenset({"+", "-", "*", "/", "^", ROOT_SYMBOL})

# Compiled once at import; alternation order matters (numbers before operators).
_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>[0-9]+(?:\.[0-9]*)?|\.[0-9]+)
    |(?P<identifier>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<operator>[-+*/^√])
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<assign>=)
    """,
    re.VERBOSE,
)

_GROUP_KINDS: Final[dict[str, TokenKind]] = {
    "number": TokenKind.NUMBER,
    "identifier": TokenKind.IDENTIFIER,
    "operator": TokenKind.OPERATOR,
    "lparen": TokenKind.LPAREN,
    "rparen": TokenKind.RPAREN,
    "assign": TokenKind.ASSIGN,
}


@dataclass(frozen=True)
class Token:
    """A lexical token with its source span.

    Attributes:
        kind: Token category.
        text: Exact source text of the token (empty for END).
        start: Offset of the first character in the source.
        end: Offset one past the last character.
    """

    kind: TokenKind
    text: str
    start: int
    end: int

    def is_operator(self, *symbols: str) -> bool:
        return self.kind == TokenKind.OPERATOR and self.text in symbols


def tokenize(text: str) -> Iterator[Token]:
    """Lazily scan ``text`` into tokens, ending with a single END token.

    Raises:
        LexError: On the first unrecognized character; tokens before it have
            already been yielded.
    """
    position = 0
    length = len(text)
    while position < length:
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            character = text[position]
            raise LexError(
                LexErrorKind.UNRECOGNIZED_CHARACTER,
                f"Unrecognized character {character!r}",
                position=position,
                character=character,
            )
        group = match.lastgroup
        if group != "ws" and group is not None:
            yield Token(_GROUP_KINDS[group], match.group(), match.start(), match.end())
        position = match.end()

    yield Token(TokenKind.END, "", length, length)


class Tokenizer:
    """Restartable token sequence over a fixed source text.

    Each iteration rescans the text from the beginning, so the same Tokenizer
    can be walked more than once (e.g. for highlighting and then parsing).
    """

    def __init__(self, text: str) -> None:
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    def __iter__(self) -> Iterator[Token]:
        return tokenize(self._text)
