# fabric/message.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Per-atom message lifecycle: unsent, sent, visible and read per recipient

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, FrozenSet, Iterable, Optional

from .errors import DoubleRead, DoubleSend, InvalidRead, InvalidSend
from utils.logger import get_logger


class MessageState(Enum):
    """Coarse lifecycle state of a message atom.

    Visibility and reads are tracked per recipient on the message itself;
    ``RETIRED`` only means every recipient has read it. Retired messages stay
    in the record.
    """

    UNSENT = auto()
    SENT = auto()
    RETIRED = auto()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Envelope:
    """Read-only view of a sent message handed to decision functions.

    Attributes:
        atom: Message atom identifier
        sender: Node that sent the message
        recipients: Nodes the message was addressed to
        sent_on: Tick at which it was sent
    """

    atom: str
    sender: str
    recipients: FrozenSet[str]
    sent_on: int

    def __str__(self) -> str:
        to_str = "+".join(sorted(self.recipients))
        return f"{self.atom}({self.sender}->{to_str}@{self.sent_on})"


@dataclass
class Message:
    """Lifecycle record of one physical, single-use transmission.

    Mutated only by the fabric during the commit phase of a tick. Nodes
    never see this object directly; they receive :class:`Envelope` views.

    Attributes:
        atom: Pool atom occupied by this transmission
        sender: Originating node, set once when sent
        recipients: Addressed nodes, set once when sent
        sent_on: Tick of the send, set exactly once
        read_on: Recipient to tick of its read, at most once per recipient
    """

    atom: str
    sender: Optional[str] = None
    recipients: FrozenSet[str] = frozenset()
    sent_on: Optional[int] = None
    read_on: Dict[str, int] = field(default_factory=dict)

    @property
    def state(self) -> MessageState:
        if self.sent_on is None:
            return MessageState.UNSENT
        if self.recipients and set(self.read_on) >= self.recipients:
            return MessageState.RETIRED
        return MessageState.SENT

    @property
    def is_sent(self) -> bool:
        return self.sent_on is not None

    def mark_sent(self, sender: str, recipients: Iterable[str], tick: int) -> None:
        """Transition ``UNSENT -> SENT``.

        Raises:
            DoubleSend: The message was already sent
            InvalidSend: The recipient set is empty
        """
        if self.sent_on is not None:
            raise DoubleSend(
                f"Message {self.atom} was already sent on tick {self.sent_on}",
                tick=tick,
                node=sender,
                atom=self.atom,
            )

        to = frozenset(recipients)
        if not to:
            raise InvalidSend(
                f"Message {self.atom} has no recipients",
                tick=tick,
                node=sender,
                atom=self.atom,
            )

        self.sender = sender
        self.recipients = to
        self.sent_on = tick

        get_logger().debug(
            f"Message {self.atom} sent by {sender} to {sorted(to)} on tick {tick}"
        )

    def is_visible_to(self, node: str, tick: int) -> bool:
        """Whether ``node`` may read this message at ``tick``.

        A message becomes visible to each recipient on the tick after it was
        sent and stays visible up to and including the tick the recipient
        reads it.
        """
        if self.sent_on is None or self.sent_on >= tick:
            return False
        if node not in self.recipients:
            return False
        read_tick = self.read_on.get(node)
        return read_tick is None or read_tick >= tick

    def mark_read(self, node: str, tick: int) -> None:
        """Record that ``node`` consumed this message at ``tick``.

        Raises:
            DoubleRead: ``node`` already read the message
            InvalidRead: ``node`` is not a recipient, or the message is not
                yet visible at ``tick``
        """
        if node in self.read_on:
            raise DoubleRead(
                f"Node {node} already read {self.atom} on tick {self.read_on[node]}",
                tick=tick,
                node=node,
                atom=self.atom,
            )
        if not self.is_visible_to(node, tick):
            raise InvalidRead(
                f"Message {self.atom} is not visible to {node}",
                tick=tick,
                node=node,
                atom=self.atom,
            )

        self.read_on[node] = tick
        get_logger().debug(f"Message {self.atom} read by {node} on tick {tick}")

    def envelope(self) -> Envelope:
        """Immutable view of a sent message."""
        if self.sent_on is None:
            raise ValueError(f"Message {self.atom} has not been sent")
        return Envelope(self.atom, self.sender, self.recipients, self.sent_on)

    def __str__(self) -> str:
        if self.sent_on is None:
            return f"{self.atom}[{self.state}]"
        reads = ",".join(f"{n}@{t}" for n, t in sorted(self.read_on.items()))
        return (
            f"{self.atom}[{self.state}] {self.sender}->"
            f"{'+'.join(sorted(self.recipients))} sent@{self.sent_on} read={{{reads}}}"
        )
