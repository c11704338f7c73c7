"""Tests for the evaluator and the variable table.

Covers:
- Exact results for end-to-end expressions
- Assignment semantics: value returned, last write wins
- Failed evaluation leaves variables untouched
- Name validation: reserved and invalid names
"""

from __future__ import annotations

from fractions import Fraction

import pytest

from apecrunch.calc.errors import EvalError, EvalErrorKind
from apecrunch.calc.evaluator import Evaluator
from apecrunch.calc.expression import Assignment, Literal, Variable
from apecrunch.calc.number import Number
from apecrunch.calc.parser import parse
from apecrunch.calc.variables import RESERVED_NAMES, VariableTable, validate_name


def run(evaluator: Evaluator, text: str) -> Number:
    return evaluator.evaluate(parse(text))


class TestExpressions:
    """End-to-end exact evaluation."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1/3 + 1/6", Fraction(1, 2)),
            ("2^3^2", Fraction(512)),
            ("-2^2", Fraction(4)),
            ("-(2^2)", Fraction(-4)),
            ("2^-2", Fraction(1, 4)),
            ("(1 + 2) * 3", Fraction(9)),
            ("10 - 4 - 3", Fraction(3)),
            ("√(9/16)", Fraction(3, 4)),
            ("3 root -27", Fraction(-3)),
            ("27^(1/3)", Fraction(3)),
            ("0.1 + 0.2", Fraction(3, 10)),
        ],
    )
    def test_exact_result(self, evaluator: Evaluator, text: str, expected: Fraction) -> None:
        result = run(evaluator, text)
        assert result.value == expected
        assert not result.inexact

    def test_irrational_root_is_flagged(self, evaluator: Evaluator) -> None:
        assert run(evaluator, "sqrt 2").inexact
        assert run(evaluator, "sqrt 2 * 0 + 1").inexact

    def test_division_by_zero(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "1 / (2 - 2)")
        assert exc_info.value.kind == EvalErrorKind.DIVISION_BY_ZERO

    def test_even_root_of_negative(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "√-4")
        assert exc_info.value.kind == EvalErrorKind.COMPLEX_RESULT

    def test_undefined_variable(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "y + 1")
        assert exc_info.value.kind == EvalErrorKind.UNDEFINED_VARIABLE
        assert exc_info.value.name == "y"

    def test_nested_assignment_node_rejected(self, evaluator: Evaluator) -> None:
        tree = Assignment("a", Assignment("b", Literal(Number(1))))
        with pytest.raises(ValueError):
            evaluator.evaluate(tree)


class TestAssignment:
    """Tests for assignment semantics."""

    def test_assignment_returns_value(self, evaluator: Evaluator) -> None:
        assert run(evaluator, "x = 3/4").value == Fraction(3, 4)
        assert evaluator.variables.get("x") == Number(Fraction(3, 4))

    def test_assigned_variable_is_usable(self, evaluator: Evaluator) -> None:
        run(evaluator, "rate = 1/8")
        assert run(evaluator, "rate * 16").value == Fraction(2)

    def test_last_assignment_wins(self, evaluator: Evaluator) -> None:
        run(evaluator, "x = 1")
        run(evaluator, "x = x + 1")
        assert evaluator.variables.get("x") == Number(2)

    def test_names_are_case_sensitive(self, evaluator: Evaluator) -> None:
        run(evaluator, "X = 1")
        with pytest.raises(EvalError):
            run(evaluator, "x")

    def test_failed_right_hand_side_leaves_table_unchanged(
        self, evaluator: Evaluator, variables: VariableTable
    ) -> None:
        run(evaluator, "x = 5")
        with pytest.raises(EvalError):
            run(evaluator, "x = 1 / 0")
        assert variables.get("x") == Number(5)
        assert variables.names() == ["x"]

    def test_reserved_name(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "sqrt = 4")
        assert exc_info.value.kind == EvalErrorKind.RESERVED_NAME
        assert "sqrt" not in evaluator.variables

    def test_non_identifier_target(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "2 + 3 = 5")
        assert exc_info.value.kind == EvalErrorKind.INVALID_NAME
        assert len(evaluator.variables) == 0

    def test_underscore_prefix_is_invalid(self, evaluator: Evaluator) -> None:
        with pytest.raises(EvalError) as exc_info:
            run(evaluator, "_x = 1")
        assert exc_info.value.kind == EvalErrorKind.INVALID_NAME


class TestVariableTable:
    """Tests for VariableTable operations."""

    def test_set_get_remove(self, variables: VariableTable) -> None:
        variables.set("a", Number(1))
        assert "a" in variables
        variables.remove("a")
        assert variables.get("a") is None

    def test_remove_missing_raises_key_error(self, variables: VariableTable) -> None:
        with pytest.raises(KeyError):
            variables.remove("missing")

    def test_snapshot_is_a_copy(self, variables: VariableTable) -> None:
        variables.set("a", Number(1))
        snapshot = variables.snapshot()
        variables.set("b", Number(2))
        assert list(snapshot) == ["a"]

    def test_restore_validates_before_replacing(self, variables: VariableTable) -> None:
        variables.set("a", Number(1))
        with pytest.raises(EvalError):
            variables.restore({"ok": Number(1), "1bad": Number(2)})
        assert variables.names() == ["a"]

    def test_insertion_order_kept_on_reassign(self, variables: VariableTable) -> None:
        variables.set("b", Number(1))
        variables.set("a", Number(2))
        variables.set("b", Number(3))
        assert variables.names() == ["b", "a"]

    @pytest.mark.parametrize("name", sorted(RESERVED_NAMES))
    def test_reserved_names(self, name: str) -> None:
        with pytest.raises(EvalError) as exc_info:
            validate_name(name)
        assert exc_info.value.kind == EvalErrorKind.RESERVED_NAME

    @pytest.mark.parametrize("name", ["x", "rate2", "a_b", "Total"])
    def test_valid_names(self, name: str) -> None:
        validate_name(name)

    def test_evaluator_reads_table(self, variables: VariableTable) -> None:
        variables.set("k", Number(7))
        assert Evaluator(variables).evaluate(Variable("k")) == Number(7)
