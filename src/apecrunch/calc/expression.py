"""Expression tree nodes.

Nodes are frozen dataclasses; each node exclusively owns its children, so a
tree is acyclic and immutable once the parser has built it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from apecrunch.calc.number import Number
from apecrunch.calc.tokenizer import ROOT_SYMBOL


@dataclass(frozen=True)
class Literal:
    value: Number

    def render(self) -> str:
        return self.value.to_fraction_string()


@dataclass(frozen=True)
class Variable:
    name: str

    def render(self) -> str:
        return self.name


@dataclass(frozen=True)
class UnaryOp:
    """Prefix sign applied to an operand (``-`` or ``+``)."""

    op: str
    operand: Expression

    def render(self) -> str:
        return f"{self.op}{_render_operand(self.operand)}"


@dataclass(frozen=True)
class BinaryOp:
    """Infix arithmetic: one of ``+ - * / ^``."""

    op: str
    left: Expression
    right: Expression

    def render(self) -> str:
        if self.op == "^":
            return f"{_render_operand(self.left)}^{_render_operand(self.right)}"
        return f"{_render_operand(self.left)} {self.op} {_render_operand(self.right)}"


@dataclass(frozen=True)
class Root:
    """Degree-n root of a radicand; prefix roots carry a literal degree 2."""

    degree: Expression
    radicand: Expression

    def render(self) -> str:
        radicand = _render_operand(self.radicand)
        if isinstance(self.degree, Literal) and self.degree.value == Number(2):
            return f"{ROOT_SYMBOL}{radicand}"
        return f"{_render_operand(self.degree)}{ROOT_SYMBOL}{radicand}"


@dataclass(frozen=True)
class Assignment:
    """Top-level ``name = value``; only valid as an entire input."""

    name: str
    value: Expression

    def render(self) -> str:
        return f"{self.name} = {self.value.render()}"


Expression: TypeAlias = Literal | Variable | UnaryOp | BinaryOp | Root | Assignment


def _render_operand(node: Expression) -> str:
    if isinstance(node, Variable):
        return node.render()
    if isinstance(node, Literal) and node.value.is_integer():
        return node.render()
    return f"({node.render()})"
