# fabric/errors.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Fatal error taxonomy for fabric configuration and tick transitions

"""Domain-specific exceptions raised by the message fabric.

Every fatal condition carries the tick at which it was detected and, where
applicable, the node and message atom involved, so that a host harness can
report them verbatim. Verification verdicts are never represented here;
``Violated`` and ``Unproven`` are ordinary results of property checking.

Hierarchy:
    FabricError
        InvalidConfig
        PoolExhausted
        FabricHalted
        ProtocolViolation
            InvalidRead
            InvalidSend
            DoubleSend
            DoubleRead
            DecisionError
"""

from typing import Optional


class FabricError(RuntimeError):
    """Base class for all fatal fabric errors.

    Attributes:
        tick: Tick at which the error was detected (None before the first tick)
        node: Identifier of the offending node, if any
        atom: Identifier of the offending message atom, if any
    """

    kind = "FabricError"

    def __init__(
        self,
        message: str,
        tick: Optional[int] = None,
        node: Optional[str] = None,
        atom: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.tick = tick
        self.node = node
        self.atom = atom

    def describe(self) -> str:
        """Render tick, kind and involved identifiers for user-facing reports."""
        parts = [self.kind]
        if self.tick is not None:
            parts.append(f"tick={self.tick}")
        if self.node is not None:
            parts.append(f"node={self.node}")
        if self.atom is not None:
            parts.append(f"atom={self.atom}")
        return f"{' '.join(parts)}: {self.message}"


class InvalidConfig(FabricError):
    """Malformed fabric setup, detected before any tick runs."""

    kind = "InvalidConfig"


class PoolExhausted(FabricError):
    """The message pool cannot satisfy the allocation demand of a tick.

    Attributes:
        requested: Number of atoms the tick asked for
        remaining: Number of atoms still available
    """

    kind = "PoolExhausted"

    def __init__(
        self,
        message: str,
        requested: int,
        remaining: int,
        tick: Optional[int] = None,
        node: Optional[str] = None,
    ):
        super().__init__(message, tick=tick, node=node)
        self.requested = requested
        self.remaining = remaining


class FabricHalted(FabricError):
    """Raised when advancing a fabric that already stopped on a fatal error."""

    kind = "FabricHalted"


class ProtocolViolation(FabricError):
    """A decision attempted a transition the message lifecycle forbids."""

    kind = "ProtocolViolation"


class InvalidRead(ProtocolViolation):
    """A node tried to read a message that is not in its visible set."""

    kind = "InvalidRead"


class InvalidSend(ProtocolViolation):
    """An outgoing message names no recipients, unknown nodes or a foreign atom."""

    kind = "InvalidSend"


class DoubleSend(ProtocolViolation):
    """A message atom was sent more than once."""

    kind = "DoubleSend"


class DoubleRead(ProtocolViolation):
    """A recipient read the same message more than once."""

    kind = "DoubleRead"


class DecisionError(ProtocolViolation):
    """A decision function raised, or returned something that is not a decision.

    The original exception is chained as ``__cause__``.
    """

    kind = "DecisionError"
