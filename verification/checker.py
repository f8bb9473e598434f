# verification/checker.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Whole-trace and online property checking entry points

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple, Union

from fabric.trace import TickSnapshot, Trace
from propspec.ast_nodes import Expr
from .formula import UnknownProperty, compile_formula, evaluate_expr
from .properties import CORE_PROPERTIES, PROPERTIES, Property
from .verdict import Verdict
from utils.logger import get_logger


PropertySpec = Union[str, Property]


def resolve_property(prop: PropertySpec) -> Union[Property, Expr]:
    """Turn a property spec into something checkable, without a trace.

    Registered names resolve to their :class:`Property`; anything else is
    compiled as a formula.

    Raises:
        TypeError: ``prop`` is neither a Property nor a string
        UnknownProperty: A name is not registered
        ParseError: A formula is malformed
    """
    if isinstance(prop, Property):
        return prop

    if not isinstance(prop, str):
        raise TypeError(f"Expected a Property or a property name/formula, got {prop!r}")

    name = prop.strip()
    if name in PROPERTIES:
        return PROPERTIES[name]
    if name.isidentifier() and name not in ("true", "false"):
        raise UnknownProperty(name)
    return compile_formula(name)


def _label(spec: PropertySpec) -> str:
    return spec.name if isinstance(spec, Property) else spec.strip()


def _evaluate(trace: Trace, label: str, target: Union[Property, Expr]) -> Verdict:
    if isinstance(target, Property):
        return target(trace)
    return evaluate_expr(trace, target, label)


def check(trace: Trace, prop: PropertySpec) -> Verdict:
    """Check one property over a trace.

    Args:
        trace: Completed or growing trace
        prop: A :class:`Property`, a registered property name, or a formula
            combining property names with ``!``, ``&`` and ``|``

    Returns:
        HOLDS, VIOLATED (with witness) or UNPROVEN verdict

    Raises:
        UnknownProperty: A name is not registered
        ParseError: A formula is malformed
    """
    target = resolve_property(prop)
    return _evaluate(trace, _label(prop), target)


def check_all(
    trace: Trace, properties: Optional[Iterable[PropertySpec]] = None
) -> Dict[str, Verdict]:
    """Check several properties; defaults to the three core properties."""
    logger = get_logger()
    specs = list(properties) if properties is not None else list(CORE_PROPERTIES)

    verdicts: Dict[str, Verdict] = {}
    for spec in specs:
        verdict = check(trace, spec)
        label = _label(spec)
        verdicts[label] = verdict
        logger.verdict_reported(
            label, str(verdict.status), str(verdict.witness) if verdict.witness else None
        )
    return verdicts


class PropertyChecker:
    """Online checker that re-evaluates properties as a trace grows.

    Subscribe :meth:`observe` to a trace recorder (``run`` does this when
    given a checker). After every tick it holds the current verdict of each
    property and remembers the tick of the first violation seen.

    Names and formulas are resolved when the checker is built, so a bad
    property is reported before any tick runs.

    Attributes:
        properties: Properties being monitored
        verdicts: Latest verdict per property
        first_violation: Property name to the first VIOLATED verdict seen

    Raises:
        UnknownProperty, ParseError, TypeError: A property cannot be resolved
    """

    def __init__(self, properties: Optional[Iterable[PropertySpec]] = None):
        self.properties: List[PropertySpec] = (
            list(properties) if properties is not None else list(CORE_PROPERTIES)
        )
        self._targets: List[Tuple[str, Union[Property, Expr]]] = []
        for spec in self.properties:
            target = resolve_property(spec)
            self._targets.append((_label(spec), target))
        self.verdicts: Dict[str, Verdict] = {}
        self.first_violation: Dict[str, Verdict] = {}
        self.violation_ticks: Dict[str, int] = {}

    def observe(self, trace: Trace, snapshot: TickSnapshot) -> None:
        logger = get_logger()
        for label, target in self._targets:
            verdict = _evaluate(trace, label, target)
            self.verdicts[label] = verdict

            if verdict.is_violated and label not in self.first_violation:
                self.first_violation[label] = verdict
                self.violation_ticks[label] = snapshot.tick
                logger.warning(f"{label} violated at tick {snapshot.tick}: {verdict.witness}")

    @property
    def has_violation(self) -> bool:
        return bool(self.first_violation)

    def violation_summary(self) -> str:
        return "; ".join(
            f"{label} at tick {self.violation_ticks[label]}: {verdict.witness}"
            for label, verdict in self.first_violation.items()
        )
