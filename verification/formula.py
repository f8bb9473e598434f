# verification/formula.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Three-valued evaluation of property formulas over a trace

from __future__ import annotations
from typing import Dict

from fabric.trace import Trace
from propspec import parse
from propspec.ast_nodes import And, Const, Expr, Not, Or, PropertyRef, referenced_properties
from .properties import PROPERTIES
from .verdict import Verdict, VerdictStatus
from utils.logger import get_logger


class UnknownProperty(KeyError):
    """A property name is not registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        known = ", ".join(sorted(PROPERTIES))
        return f"Unknown property {self.name!r}; known properties: {known}"


class FormulaEvaluator:
    """Visitor that evaluates a formula AST against one trace.

    Each referenced property is evaluated once and cached for the lifetime
    of the evaluator.
    """

    def __init__(self, trace: Trace):
        self.trace = trace
        self._cache: Dict[str, Verdict] = {}

    def evaluate(self, expr: Expr) -> Verdict:
        return expr.accept(self)

    def visit_ref(self, n: PropertyRef) -> Verdict:
        if n.name not in self._cache:
            if n.name not in PROPERTIES:
                raise UnknownProperty(n.name)
            self._cache[n.name] = PROPERTIES[n.name](self.trace)
        return self._cache[n.name]

    def visit_const(self, n: Const) -> Verdict:
        status = VerdictStatus.HOLDS if n.value else VerdictStatus.VIOLATED
        return Verdict(str(n), status, horizon=self.trace.horizon)

    def visit_not(self, n: Not) -> Verdict:
        inner = n.operand.accept(self)
        return Verdict(
            str(n), inner.status.negate(), pending=inner.pending, horizon=self.trace.horizon
        )

    def visit_and(self, n: And) -> Verdict:
        left, right = n.left.accept(self), n.right.accept(self)
        return self._combine(str(n), left.status.combine_conjunctive(right.status), left, right)

    def visit_or(self, n: Or) -> Verdict:
        left, right = n.left.accept(self), n.right.accept(self)
        return self._combine(str(n), left.status.combine_disjunctive(right.status), left, right)

    def _combine(self, label: str, status: VerdictStatus, left: Verdict, right: Verdict) -> Verdict:
        # carry the evidence of whichever side decided the result
        witness = None
        pending = ()
        for side in (left, right):
            if side.status is status:
                witness = witness if witness is not None else side.witness
                pending = pending + side.pending
        return Verdict(label, status, witness=witness, pending=pending, horizon=self.trace.horizon)


def compile_formula(source: str) -> Expr:
    """Parse ``source`` and check that every property it names is registered.

    Raises:
        ParseError: The formula is malformed
        UnknownProperty: The formula names an unregistered property
    """
    expr = parse(source)

    for name in sorted(referenced_properties(expr)):
        if name not in PROPERTIES:
            raise UnknownProperty(name)
    return expr


def evaluate_expr(trace: Trace, expr: Expr, label: str) -> Verdict:
    """Evaluate a compiled formula over ``trace``, reporting it as ``label``."""
    verdict = FormulaEvaluator(trace).evaluate(expr)
    get_logger().debug(f"Formula {expr} evaluated to {verdict.status}")

    if isinstance(expr, PropertyRef):
        return verdict
    return Verdict(
        label,
        verdict.status,
        witness=verdict.witness,
        pending=verdict.pending,
        horizon=verdict.horizon,
    )


def evaluate_formula(trace: Trace, source: str) -> Verdict:
    """Parse ``source`` and evaluate it over ``trace``.

    Raises:
        ParseError: The formula is malformed
        UnknownProperty: The formula names an unregistered property
    """
    return evaluate_expr(trace, compile_formula(source), source.strip())
