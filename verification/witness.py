# verification/witness.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Counterexample and open-obligation records attached to verdicts

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LostMessage:
    """A message left a recipient's visible set without being read."""

    atom: str
    recipient: str
    tick: int

    def __str__(self) -> str:
        return f"{self.atom} lost for {self.recipient} at tick {self.tick}"


@dataclass(frozen=True)
class Undelivered:
    """A message still unread by a recipient when the trace ended."""

    atom: str
    recipient: str
    sent_on: int

    def __str__(self) -> str:
        return f"{self.atom} unread by {self.recipient} (sent on tick {self.sent_on})"


@dataclass(frozen=True)
class OutOfOrderRead:
    """Two messages on one sender/recipient stream read out of send order.

    ``earlier`` and ``later`` are in send order (by atom for messages sent
    on the same tick). Messages sent on the same tick have no order between
    them, so reading them on different ticks is out of order whichever comes
    first; reading them together is not.

    Attributes:
        earlier: Message sent first
        later: Message sent second
        sender: Common sender of both messages
        recipient: Recipient that read them out of order
        earlier_sent_on, later_sent_on: Send ticks
        earlier_read_on, later_read_on: Read ticks (None if not read yet)
    """

    earlier: str
    later: str
    sender: str
    recipient: str
    earlier_sent_on: int
    later_sent_on: int
    earlier_read_on: Optional[int]
    later_read_on: Optional[int]

    @property
    def pair(self):
        return (self.earlier, self.later)

    @property
    def read_order(self):
        """The pair as (read first, read second); an unread message counts as second."""
        if self.later_read_on is None:
            return (self.earlier, self.later)
        if self.earlier_read_on is None or self.later_read_on < self.earlier_read_on:
            return (self.later, self.earlier)
        return (self.earlier, self.later)

    @property
    def first_read_on(self) -> int:
        reads = [t for t in (self.earlier_read_on, self.later_read_on) if t is not None]
        return min(reads)

    def __str__(self) -> str:
        def read(tick):
            return "unread" if tick is None else f"read@{tick}"

        first, second = self.read_order
        return (
            f"{self.recipient} read {first} before {second} from {self.sender}: "
            f"{self.earlier} sent@{self.earlier_sent_on} {read(self.earlier_read_on)}, "
            f"{self.later} sent@{self.later_sent_on} {read(self.later_read_on)}"
        )


@dataclass(frozen=True)
class Shortage:
    """Outstanding send needs exceeded the pool supply at a tick."""

    tick: int
    needed: int
    available: int

    def __str__(self) -> str:
        return f"tick {self.tick}: {self.needed} sends needed, {self.available} atoms available"


@dataclass(frozen=True)
class InvariantBreach:
    """A structural trace invariant failed."""

    tick: int
    detail: str
    node: Optional[str] = None
    atom: Optional[str] = None

    def __str__(self) -> str:
        where = "".join(
            f" {label}={value}" for label, value in (("node", self.node), ("atom", self.atom)) if value
        )
        return f"tick {self.tick}{where}: {self.detail}"
