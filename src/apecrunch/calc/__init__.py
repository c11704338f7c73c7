"""ApeCrunch expression engine.

This package provides:
- Number: exact rational value with a precision-loss flag
- Tokenizer/Parser: text to expression tree with operator precedence
- Evaluator: exact arithmetic over the tree, including exponents and roots
- VariableTable: validated variable storage
- Exceptions: typed LexError/ParseError/EvalError
"""

from apecrunch.calc.errors import (
    CalcError,
    EvalError,
    EvalErrorKind,
    LexError,
    LexErrorKind,
    ParseError,
    ParseErrorKind,
)
from apecrunch.calc.evaluator import Evaluator
from apecrunch.calc.number import ROOT_PRECISION_DIGITS, Number
from apecrunch.calc.parser import Parser, parse
from apecrunch.calc.tokenizer import Token, TokenKind, Tokenizer, tokenize
from apecrunch.calc.variables import RESERVED_NAMES, VariableTable

__all__ = [
    "CalcError",
    "EvalError",
    "EvalErrorKind",
    "Evaluator",
    "LexError",
    "LexErrorKind",
    "Number",
    "ParseError",
    "ParseErrorKind",
    "Parser",
    "RESERVED_NAMES",
    "ROOT_PRECISION_DIGITS",
    "Token",
    "TokenKind",
    "Tokenizer",
    "VariableTable",
    "parse",
    "tokenize",
]
