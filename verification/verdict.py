# verification/verdict.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Three-valued verdicts for property checking over bounded traces

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Tuple

from utils.logger import get_logger


class VerdictStatus(Enum):
    """Three-valued result of checking a property over a finite trace.

    A bounded trace cannot always settle a property that talks about what
    eventually happens: when the trace ends before a witness appears, the
    answer is UNPROVEN rather than VIOLATED.

    Values:
        HOLDS: The trace satisfies the property
        VIOLATED: The trace contains a counterexample
        UNPROVEN: The trace ended before the property could be settled
    """

    HOLDS = auto()
    VIOLATED = auto()
    UNPROVEN = auto()

    def __str__(self) -> str:
        return self.name

    def is_conclusive(self) -> bool:
        """Whether the status is a definitive HOLDS or VIOLATED."""
        return self in (VerdictStatus.HOLDS, VerdictStatus.VIOLATED)

    def combine_conjunctive(self, other: "VerdictStatus") -> "VerdictStatus":
        """Combine with AND semantics.

        Combination rules:
        - VIOLATED AND anything = VIOLATED
        - HOLDS AND HOLDS = HOLDS
        - otherwise UNPROVEN
        """
        logger = get_logger()
        logger.debug(f"Combining verdicts conjunctively: {self.name} AND {other.name}")

        if self == VerdictStatus.VIOLATED or other == VerdictStatus.VIOLATED:
            return VerdictStatus.VIOLATED
        if self == VerdictStatus.HOLDS and other == VerdictStatus.HOLDS:
            return VerdictStatus.HOLDS
        return VerdictStatus.UNPROVEN

    def combine_disjunctive(self, other: "VerdictStatus") -> "VerdictStatus":
        """Combine with OR semantics.

        Combination rules:
        - HOLDS OR anything = HOLDS
        - VIOLATED OR VIOLATED = VIOLATED
        - otherwise UNPROVEN
        """
        logger = get_logger()
        logger.debug(f"Combining verdicts disjunctively: {self.name} OR {other.name}")

        if self == VerdictStatus.HOLDS or other == VerdictStatus.HOLDS:
            return VerdictStatus.HOLDS
        if self == VerdictStatus.VIOLATED and other == VerdictStatus.VIOLATED:
            return VerdictStatus.VIOLATED
        return VerdictStatus.UNPROVEN

    def negate(self) -> "VerdictStatus":
        """Swap HOLDS and VIOLATED; UNPROVEN stays UNPROVEN."""
        if self == VerdictStatus.HOLDS:
            return VerdictStatus.VIOLATED
        if self == VerdictStatus.VIOLATED:
            return VerdictStatus.HOLDS
        return VerdictStatus.UNPROVEN


@dataclass(frozen=True)
class Verdict:
    """Outcome of checking one property against one trace.

    Attributes:
        property_name: Property or formula that was checked
        status: HOLDS, VIOLATED or UNPROVEN
        witness: First counterexample found, for VIOLATED
        pending: Obligations still open at the horizon, for UNPROVEN
        horizon: Last tick of the checked trace
    """

    property_name: str
    status: VerdictStatus
    witness: Optional[Any] = None
    pending: Tuple[Any, ...] = field(default_factory=tuple)
    horizon: int = -1

    @classmethod
    def holds(cls, property_name: str, horizon: int = -1) -> "Verdict":
        return cls(property_name, VerdictStatus.HOLDS, horizon=horizon)

    @classmethod
    def violated(cls, property_name: str, witness: Any, horizon: int = -1) -> "Verdict":
        return cls(property_name, VerdictStatus.VIOLATED, witness=witness, horizon=horizon)

    @classmethod
    def unproven(cls, property_name: str, pending=(), horizon: int = -1) -> "Verdict":
        return cls(
            property_name, VerdictStatus.UNPROVEN, pending=tuple(pending), horizon=horizon
        )

    @property
    def is_holds(self) -> bool:
        return self.status is VerdictStatus.HOLDS

    @property
    def is_violated(self) -> bool:
        return self.status is VerdictStatus.VIOLATED

    @property
    def is_unproven(self) -> bool:
        return self.status is VerdictStatus.UNPROVEN

    def __str__(self) -> str:
        if self.witness is not None:
            return f"{self.property_name}: {self.status} ({self.witness})"
        if self.pending:
            open_items = ", ".join(str(p) for p in self.pending[:3])
            more = f" and {len(self.pending) - 3} more" if len(self.pending) > 3 else ""
            return f"{self.property_name}: {self.status} (open at tick {self.horizon}: {open_items}{more})"
        return f"{self.property_name}: {self.status}"
