"""Precedence-climbing parser producing an expression tree.

Binding strength, highest to lowest:

1. primary: number, variable, parenthesized expression
2. prefix sign (``-x``, ``+x``) and prefix root (``√x``, ``sqrt x``)
3. exponent ``^`` and infix root (``n √ x``, ``n root x``), right-associative
4. ``*`` and ``/``, left-associative
5. ``+`` and ``-``, left-associative
6. assignment ``name = expr``, only as the entire input

Because the sign binds tighter than the exponent, ``-2^2`` is ``(-2)^2``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Final

from apecrunch.calc.errors import EvalError, ParseError, ParseErrorKind
from apecrunch.calc.expression import (
    Assignment,
    BinaryOp,
    Expression,
    Literal,
    Root,
    UnaryOp,
    Variable,
)
from apecrunch.calc.number import Number
from apecrunch.calc.tokenizer import ROOT_SYMBOL, Token, TokenKind, Tokenizer

logger = logging.getLogger(__name__)

# Words lexed as identifiers that the parser reads as the root operator.
ROOT_WORDS: Final[frozenset[str]] = frozenset({"sqrt", "root"})

_SQUARE: Final[Number] = Number(2)

# Deepest tree, or deepest run of nested parentheses, signs and exponents,
# accepted in one input.
MAX_NESTING_DEPTH: Final[int] = 100


class Parser:
    """Single-use parser over a token stream.

    Args:
        tokens: Token sequence ending with an END token.
        source: Original text, used to name non-identifier assignment targets.
    """

    def __init__(self, tokens: Iterable[Token], source: str = "") -> None:
        self._tokens: Iterator[Token] = iter(tokens)
        self._source = source
        self._lookahead: list[Token] = []
        self._previous: Token | None = None
        self._nesting = 0
        self._depths: dict[int, int] = {}

    # -- token stream -----------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        while len(self._lookahead) <= offset:
            if self._lookahead and self._lookahead[-1].kind == TokenKind.END:
                return self._lookahead[-1]
            self._lookahead.append(next(self._tokens))
        return self._lookahead[offset]

    def _advance(self) -> Token:
        token = self._peek()
        if token.kind != TokenKind.END:
            self._lookahead.pop(0)
        self._previous = token
        return token

    def _is_root(self, token: Token) -> bool:
        if token.kind == TokenKind.IDENTIFIER:
            return token.text in ROOT_WORDS
        return token.is_operator(ROOT_SYMBOL)

    def _too_deep(self, token: Token) -> ParseError:
        return ParseError(
            ParseErrorKind.NESTING_TOO_DEEP,
            f"Expression nests deeper than {MAX_NESTING_DEPTH} levels",
            position=token.start,
        )

    @contextmanager
    def _nested(self, token: Token) -> Iterator[None]:
        if self._nesting >= MAX_NESTING_DEPTH:
            raise self._too_deep(token)
        self._nesting += 1
        try:
            yield
        finally:
            self._nesting -= 1

    def _node(self, token: Token, node: Expression, *children: Expression) -> Expression:
        """Record the depth of a new tree node, rejecting trees that are too deep."""
        depth = 1 + max(self._depths.get(id(child), 1) for child in children)
        if depth > MAX_NESTING_DEPTH:
            raise self._too_deep(token)
        self._depths[id(node)] = depth
        return node

    # -- grammar ----------------------------------------------------------

    def parse(self) -> Expression:
        """Parse the whole input into a single expression.

        Raises:
            ParseError: EMPTY_EXPRESSION, UNMATCHED_PAREN, TRAILING_INPUT or
                UNEXPECTED_TOKEN.
        """
        first = self._peek()
        if first.kind == TokenKind.END:
            raise ParseError(
                ParseErrorKind.EMPTY_EXPRESSION,
                "Empty expression",
                position=first.start,
            )

        if first.kind == TokenKind.IDENTIFIER and self._peek(1).kind == TokenKind.ASSIGN:
            self._advance()
            self._advance()
            expression: Expression = Assignment(first.text, self._parse_additive())
        else:
            expression = self._parse_additive()
            if self._peek().kind == TokenKind.ASSIGN:
                # Non-identifier target: keep its text so evaluation can reject it.
                end = self._previous.end if self._previous is not None else first.end
                target = self._source[first.start : end].strip() or expression.render()
                self._advance()
                expression = Assignment(target, self._parse_additive())

        self._expect_end()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Parsed expression: %s", expression.render())
        return expression

    def _expect_end(self) -> None:
        token = self._peek()
        if token.kind == TokenKind.END:
            return
        if token.kind == TokenKind.RPAREN:
            raise ParseError(
                ParseErrorKind.UNMATCHED_PAREN,
                "Closing parenthesis without a matching opening parenthesis",
                position=token.start,
            )
        raise ParseError(
            ParseErrorKind.TRAILING_INPUT,
            f"Unexpected {token.text!r} after complete expression",
            position=token.start,
        )

    def _parse_additive(self) -> Expression:
        left = self._parse_multiplicative()
        while self._peek().is_operator("+", "-"):
            op_token = self._advance()
            right = self._parse_multiplicative()
            left = self._node(op_token, BinaryOp(op_token.text, left, right), left, right)
        return left

    def _parse_multiplicative(self) -> Expression:
        left = self._parse_power()
        while self._peek().is_operator("*", "/"):
            op_token = self._advance()
            right = self._parse_power()
            left = self._node(op_token, BinaryOp(op_token.text, left, right), left, right)
        return left

    def _parse_power(self) -> Expression:
        base = self._parse_prefix()
        token = self._peek()
        if token.is_operator("^") or self._is_root(token):
            self._advance()
            with self._nested(token):
                right = self._parse_power()
            if token.is_operator("^"):
                return self._node(token, BinaryOp("^", base, right), base, right)
            return self._node(token, Root(base, right), base, right)
        return base

    def _parse_prefix(self) -> Expression:
        token = self._peek()
        if token.is_operator("-", "+"):
            self._advance()
            with self._nested(token):
                operand = self._parse_prefix()
            return self._node(token, UnaryOp(token.text, operand), operand)
        if self._is_root(token):
            self._advance()
            with self._nested(token):
                radicand = self._parse_power()
            return self._node(token, Root(Literal(_SQUARE), radicand), radicand)
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        token = self._advance()

        if token.kind == TokenKind.NUMBER:
            try:
                return Literal(Number.from_literal(token.text))
            except EvalError as e:
                e.position = token.start
                raise

        if token.kind == TokenKind.IDENTIFIER:
            return Variable(token.text)

        if token.kind == TokenKind.LPAREN:
            with self._nested(token):
                inner = self._parse_additive()
            closing = self._peek()
            if closing.kind == TokenKind.RPAREN:
                self._advance()
                return inner
            if closing.kind == TokenKind.END:
                raise ParseError(
                    ParseErrorKind.UNMATCHED_PAREN,
                    "Missing closing parenthesis",
                    position=token.start,
                )
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                f"Expected ')' but found {closing.text!r}",
                position=closing.start,
            )

        if token.kind == TokenKind.RPAREN:
            raise ParseError(
                ParseErrorKind.UNMATCHED_PAREN,
                "Closing parenthesis without a matching opening parenthesis",
                position=token.start,
            )

        if token.kind == TokenKind.END:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                "Expression ends where an operand was expected",
                position=token.start,
            )

        raise ParseError(
            ParseErrorKind.UNEXPECTED_TOKEN,
            f"Unexpected {token.text!r} where an operand was expected",
            position=token.start,
        )


def parse(text: str) -> Expression:
    """Tokenize and parse ``text`` in one step."""
    return Parser(Tokenizer(text), source=text).parse()
