"""Tree-walking evaluator over exact rationals.

Evaluation is side-effect-free except for a successful top-level assignment,
which writes into the variable table after its right-hand side has been fully
evaluated. A failure anywhere therefore leaves the table untouched.
"""

from __future__ import annotations

import logging

from apecrunch.calc.errors import EvalError, EvalErrorKind
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
from apecrunch.calc.variables import VariableTable

logger = logging.getLogger(__name__)


class Evaluator:
    """Evaluate expression trees against a variable table."""

    def __init__(self, variables: VariableTable) -> None:
        self._variables = variables

    @property
    def variables(self) -> VariableTable:
        return self._variables

    def evaluate(self, expression: Expression) -> Number:
        """Evaluate ``expression`` to a Number.

        Raises:
            EvalError: DIVISION_BY_ZERO, INVALID_EXPONENT, COMPLEX_RESULT,
                UNDEFINED_VARIABLE, INVALID_NAME or RESERVED_NAME.
        """
        if isinstance(expression, Assignment):
            value = self._evaluate(expression.value)
            self._variables.set(expression.name, value)
            logger.debug("Assigned %s = %s", expression.name, value)
            return value
        return self._evaluate(expression)

    def _evaluate(self, node: Expression) -> Number:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Variable):
            value = self._variables.get(node.name)
            if value is None:
                raise EvalError(
                    EvalErrorKind.UNDEFINED_VARIABLE,
                    f"Undefined variable: {node.name}",
                    name=node.name,
                )
            return value

        if isinstance(node, UnaryOp):
            operand = self._evaluate(node.operand)
            return -operand if node.op == "-" else operand

        if isinstance(node, BinaryOp):
            left = self._evaluate(node.left)
            right = self._evaluate(node.right)
            if node.op == "+":
                return left + right
            if node.op == "-":
                return left - right
            if node.op == "*":
                return left * right
            if node.op == "/":
                return left / right
            if node.op == "^":
                return left**right
            raise ValueError(f"Unknown binary operator: {node.op!r}")

        if isinstance(node, Root):
            degree = self._evaluate(node.degree)
            return self._evaluate(node.radicand).root(degree)

        if isinstance(node, Assignment):
            raise ValueError("Assignment is only valid as an entire input")

        raise TypeError(f"Unsupported expression node: {type(node).__name__}")
