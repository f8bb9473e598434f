# fabric/node.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Participant state and the pluggable per-node decision interface

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, NamedTuple, Optional, Tuple

from .message import Envelope


@dataclass(frozen=True)
class Outgoing:
    """A message a node wants to send this tick.

    Attributes:
        recipients: Nodes to address the message to (must be non-empty)
        atom: Specific pool atom to use; when omitted the pool picks one
    """

    recipients: FrozenSet[str]
    atom: Optional[str] = None

    def __init__(self, recipients: Iterable[str], atom: Optional[str] = None) -> None:
        if isinstance(recipients, str):
            recipients = (recipients,)
        object.__setattr__(self, "recipients", frozenset(recipients))
        object.__setattr__(self, "atom", atom)


class Decision(NamedTuple):
    """Result of one node's decision function for one tick.

    A plain ``(read, send, next_state)`` or
    ``(read, send, next_state, needs_to_send)`` tuple is accepted wherever a
    Decision is expected; any other shape is rejected.

    Attributes:
        read: Visible messages (envelopes or atom ids) consumed this tick
        send: Outgoing messages originated this tick
        next_state: Application state for the next tick
        needs_to_send: New outstanding send count, or None to subtract the
            number of messages sent this tick
    """

    read: Tuple[Any, ...] = ()
    send: Tuple[Outgoing, ...] = ()
    next_state: Any = None
    needs_to_send: Optional[int] = None


DecisionFunction = Callable[[Any, FrozenSet[Envelope]], Any]


def normalize_decision(raw: Any) -> Decision:
    """Coerce a decision function's return value into a :class:`Decision`.

    Read entries may be envelopes or bare atom identifiers; they are reduced
    to atom identifiers. Order is preserved so duplicates stay detectable.
    """
    if isinstance(raw, Decision):
        decision = raw
    else:
        try:
            fields = tuple(raw)
        except TypeError as exc:
            raise TypeError(
                f"Decision must be (read, send, next_state[, needs_to_send]), got {raw!r}"
            ) from exc
        if len(fields) not in (3, 4):
            raise TypeError(
                f"Decision must have 3 or 4 fields (read, send, next_state[, needs_to_send]), "
                f"got {len(fields)}: {raw!r}"
            )
        decision = Decision(*fields)

    read = tuple(e.atom if isinstance(e, Envelope) else e for e in (decision.read or ()))
    send = tuple(
        o if isinstance(o, Outgoing) else Outgoing(o) for o in (decision.send or ())
    )
    return decision._replace(read=read, send=send)


@dataclass
class Node:
    """Per-participant mutable state.

    ``state`` belongs to the node and changes only through its decision
    function. ``visible`` is recomputed by the fabric every tick; ``read``
    and ``sent`` describe the node's actions in the most recent tick.

    Attributes:
        node_id: Stable unique identity
        decide: Decision function for this node
        state: Opaque application state
        needs_to_send: Outstanding number of messages the node intends to send
        visible: Atoms readable in the most recent tick
        read: Atoms consumed in the most recent tick
        sent: Atoms sent in the most recent tick, mapped to their recipients
    """

    node_id: str
    decide: DecisionFunction
    state: Any = None
    needs_to_send: int = 0
    visible: FrozenSet[str] = frozenset()
    read: FrozenSet[str] = frozenset()
    sent: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"{self.node_id}(state={self.state!r}, needs={self.needs_to_send}, "
            f"visible={sorted(self.visible)}, read={sorted(self.read)}, "
            f"sent={sorted(self.sent)})"
        )
