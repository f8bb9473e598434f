# propspec/ast_nodes.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Abstract Syntax Tree node classes for property formulas

"""AST node classes for parsed property formulas.

A property formula combines named trace properties with Boolean
connectives, for example ``NoLostMessages & !NoMessageShortage``. Nodes are
immutable and hashable and support the visitor pattern.

Node Types:
    PropertyRef: Reference to a registered trace property
    Const: Boolean constant
    Not, And, Or: Boolean connectives
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol


class Visitor(Protocol):
    """Interface for AST visitors."""

    def visit_ref(self, n: PropertyRef): ...

    def visit_const(self, n: Const): ...

    def visit_not(self, n: Not): ...

    def visit_and(self, n: And): ...

    def visit_or(self, n: Or): ...


@dataclass(frozen=True, slots=True)
class Expr:
    """Base class for all formula nodes."""

    def accept(self, v: Visitor):
        """Dispatch to the appropriate visitor method.

        Raises:
            NotImplementedError: Must be implemented by subclasses
        """
        raise NotImplementedError

    def __str__(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class PropertyRef(Expr):
    """Reference to a trace property by its registered name.

    Attributes:
        name: Property name, e.g. ``ReadInOrder``
    """

    name: str

    def accept(self, v: Visitor):
        return v.visit_ref(self)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Boolean constant ``true`` or ``false``."""

    value: bool

    def accept(self, v: Visitor):
        return v.visit_const(self)

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, slots=True)
class Not(Expr):
    """Negation of a formula.

    Attributes:
        operand: The negated formula
    """

    operand: Expr

    def accept(self, v: Visitor):
        return v.visit_not(self)

    def __str__(self) -> str:
        return f"!{self.operand}"


@dataclass(frozen=True, slots=True)
class And(Expr):
    """Conjunction of two formulas."""

    left: Expr
    right: Expr

    def accept(self, v: Visitor):
        return v.visit_and(self)

    def __str__(self) -> str:
        return f"({self.left} & {self.right})"


@dataclass(frozen=True, slots=True)
class Or(Expr):
    """Disjunction of two formulas."""

    left: Expr
    right: Expr

    def accept(self, v: Visitor):
        return v.visit_or(self)

    def __str__(self) -> str:
        return f"({self.left} | {self.right})"


def referenced_properties(expr: Expr) -> frozenset:
    """Names of every property a formula refers to."""
    if isinstance(expr, PropertyRef):
        return frozenset({expr.name})
    if isinstance(expr, Not):
        return referenced_properties(expr.operand)
    if isinstance(expr, (And, Or)):
        return referenced_properties(expr.left) | referenced_properties(expr.right)
    return frozenset()
