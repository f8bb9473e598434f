# verification/__init__.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Property checking over fabric traces

"""Property checking over fabric traces.

Checks are pure functions of a trace. Verdicts are three-valued: HOLDS,
VIOLATED with a witness, or UNPROVEN when the trace ends before an
eventual obligation is met.

Example:
    >>> from verification import check
    >>> verdict = check(trace, "NoLostMessages & ReadInOrder")
    >>> verdict.status
"""

from .verdict import Verdict, VerdictStatus
from .witness import InvariantBreach, LostMessage, OutOfOrderRead, Shortage, Undelivered
from .properties import CORE_PROPERTIES, PROPERTIES, Property, property_names
from .formula import UnknownProperty, compile_formula, evaluate_formula
from .checker import PropertyChecker, check, check_all, resolve_property

__all__ = [
    "Verdict",
    "VerdictStatus",
    "InvariantBreach",
    "LostMessage",
    "OutOfOrderRead",
    "Shortage",
    "Undelivered",
    "CORE_PROPERTIES",
    "PROPERTIES",
    "Property",
    "property_names",
    "UnknownProperty",
    "compile_formula",
    "evaluate_formula",
    "PropertyChecker",
    "check",
    "check_all",
    "resolve_property",
]
