# fabric/policies.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Ready-made decision functions for hosts and scenarios

"""Reusable decision functions.

The fabric never chooses what a node reads or sends; these policies cover
the common choices. Each one follows the decision interface
``decide(state, visible) -> (read, send, next_state)``.

Policies:
    idle: Never reads, never sends, keeps its state
    read_all: Reads everything visible, never sends
    ScriptedPolicy: Replays a fixed list of per-tick actions
    RandomPolicy: Seeded random sends and reads
"""

from __future__ import annotations
import random
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Optional, Sequence, Tuple, Union

from .message import Envelope
from .node import Decision, Outgoing
from .pool import atom_index


READ_SELECTORS = ("all", "oldest", "newest", "none")


def idle(state: Any, visible: FrozenSet[Envelope]) -> Decision:
    return Decision((), (), state)


def read_all(state: Any, visible: FrozenSet[Envelope]) -> Decision:
    return Decision(tuple(visible), (), state)


def _by_age(visible: FrozenSet[Envelope]) -> List[Envelope]:
    return sorted(visible, key=lambda e: (e.sent_on, atom_index(e.atom)))


@dataclass(frozen=True)
class Action:
    """One scripted step.

    Attributes:
        send: Outgoing messages for the step
        read: ``"all"``, ``"oldest"``, ``"newest"``, ``"none"`` or explicit atoms
        needs_to_send: Explicit outstanding send count after the step
    """

    send: Tuple[Outgoing, ...] = ()
    read: Union[str, Tuple[str, ...]] = "none"
    needs_to_send: Optional[int] = None


def send_to(*recipients: str, atom: Optional[str] = None) -> Outgoing:
    """Shorthand for a single outgoing message."""
    return Outgoing(recipients, atom=atom)


@dataclass
class ScriptedPolicy:
    """Replays a fixed sequence of actions, one per tick.

    The node state is the script cursor (an integer, starting at 0); once
    the script runs out the node idles. Visible messages are selected with
    a read selector, or named explicitly.

    Example:
        >>> policy = ScriptedPolicy([Action(send=(send_to("n2"),)), Action()])
    """

    actions: Sequence[Action] = field(default_factory=tuple)

    def __call__(self, state: Any, visible: FrozenSet[Envelope]) -> Decision:
        cursor = state or 0
        if cursor >= len(self.actions):
            return Decision((), (), cursor + 1)

        action = self.actions[cursor]
        return Decision(
            self._select(action.read, visible),
            tuple(action.send),
            cursor + 1,
            action.needs_to_send,
        )

    @staticmethod
    def _select(selector: Union[str, Sequence[str]], visible: FrozenSet[Envelope]) -> Tuple:
        if not isinstance(selector, str):
            # explicit atoms are passed through unchecked; the fabric validates them
            return tuple(selector)

        ordered = _by_age(visible)
        if selector == "all":
            return tuple(ordered)
        if selector == "none":
            return ()
        if selector == "oldest":
            return tuple(ordered[:1])
        if selector == "newest":
            return tuple(ordered[-1:])
        raise ValueError(f"Unknown read selector {selector!r}; expected one of {READ_SELECTORS}")


class RandomPolicy:
    """Seeded random traffic generator.

    The node state is the number of messages the node still means to send
    (None for no limit). Each tick, while that number is positive, the node
    sends one message to a random peer with probability
    ``send_probability``; every visible message is read with probability
    ``read_probability``. The random stream is private to the instance, so
    one instance must serve one node.
    """

    def __init__(
        self,
        peers: Sequence[str],
        seed: Optional[int] = None,
        send_probability: float = 0.5,
        read_probability: float = 0.5,
    ):
        if not peers:
            raise ValueError("RandomPolicy needs at least one peer")
        self.peers = list(peers)
        self.send_probability = send_probability
        self.read_probability = read_probability
        self._rng = random.Random(seed)

    def __call__(self, state: Optional[int], visible: FrozenSet[Envelope]) -> Decision:
        read = tuple(e for e in _by_age(visible) if self._rng.random() < self.read_probability)

        if state is not None and state <= 0:
            return Decision(read, (), state, 0)

        if self._rng.random() >= self.send_probability:
            return Decision(read, (), state)

        send = (Outgoing((self._rng.choice(self.peers),)),)
        if state is None:
            return Decision(read, send, None)
        return Decision(read, send, state - 1, state - 1)
