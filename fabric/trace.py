# fabric/trace.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Append-only trace of per-tick snapshots and the recorder that grows it

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple

from utils.logger import get_logger


class Termination(Enum):
    """Why a simulation run stopped growing its trace."""

    RUNNING = "running"
    HORIZON = "horizon"
    ERROR = "error"
    VIOLATION = "violation"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NodeSnapshot:
    """What one node held and did during one tick.

    Attributes:
        state: Application state the node decided from
        needs_to_send: Outstanding send count at the start of the tick
        visible: Atoms readable by the node during the tick
        read: Atoms the node consumed during the tick
        sent: Atoms the node sent during the tick, mapped to recipients
    """

    state: Any
    needs_to_send: int
    visible: FrozenSet[str]
    read: FrozenSet[str]
    sent: Dict[str, FrozenSet[str]] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class TickSnapshot:
    """Committed state of the whole fabric for one tick.

    Attributes:
        tick: Tick number
        available: Pool atoms available at the start of the tick
        nodes: Node identifier to its snapshot
    """

    tick: int
    available: int
    nodes: Dict[str, NodeSnapshot] = field(default_factory=dict, hash=False)

    @property
    def allocated(self) -> int:
        """Number of atoms consumed by sends during this tick."""
        return sum(len(n.sent) for n in self.nodes.values())

    @property
    def available_after(self) -> int:
        return self.available - self.allocated

    @property
    def total_needs(self) -> int:
        return sum(n.needs_to_send for n in self.nodes.values())


@dataclass(frozen=True)
class MessageRecord:
    """Message lifecycle reconstructed from a trace.

    Attributes:
        atom: Message atom identifier
        sender: Node that sent it
        recipients: Addressed nodes
        sent_on: Tick of the send
        read_on: Recipient to the first tick it read the message
    """

    atom: str
    sender: str
    recipients: FrozenSet[str]
    sent_on: int
    read_on: Dict[str, int] = field(default_factory=dict, hash=False)


@dataclass
class Trace:
    """Ordered sequence of per-tick snapshots produced by one run.

    Everything the property checkers need is derived from the snapshots, so
    a trace loaded from disk supports the same checks as a live one.

    Attributes:
        nodes: Node identifiers in declaration order
        pool_size: Number of atoms the pool was provisioned with
        snapshots: Tick snapshots in tick order
        termination: Why the run stopped
        error: Fatal error that halted the run, if any
        termination_detail: Human-readable description of the termination
    """

    nodes: Tuple[str, ...]
    pool_size: int
    snapshots: List[TickSnapshot] = field(default_factory=list)
    termination: Termination = Termination.RUNNING
    error: Optional[Exception] = None
    termination_detail: str = ""

    def __len__(self) -> int:
        return len(self.snapshots)

    def __iter__(self) -> Iterator[TickSnapshot]:
        return iter(self.snapshots)

    def __getitem__(self, index: int) -> TickSnapshot:
        return self.snapshots[index]

    @property
    def horizon(self) -> int:
        """Last recorded tick, or -1 for an empty trace."""
        return self.snapshots[-1].tick if self.snapshots else -1

    @property
    def final_available(self) -> int:
        """Pool atoms left after the last recorded tick."""
        if not self.snapshots:
            return self.pool_size
        return self.snapshots[-1].available_after

    def messages(self) -> Dict[str, MessageRecord]:
        """Reconstruct message lifecycles from the snapshots.

        The first send and the first read per recipient win; duplicates are
        left for the invariant checkers to report.
        """
        sends: Dict[str, Tuple[str, FrozenSet[str], int]] = {}
        reads: Dict[str, Dict[str, int]] = {}

        for snap in self.snapshots:
            for node_id, node in snap.nodes.items():
                for atom, recipients in node.sent.items():
                    sends.setdefault(atom, (node_id, recipients, snap.tick))
                for atom in node.read:
                    reads.setdefault(atom, {}).setdefault(node_id, snap.tick)

        return {
            atom: MessageRecord(
                atom=atom,
                sender=sender,
                recipients=recipients,
                sent_on=sent_on,
                read_on={
                    n: t for n, t in reads.get(atom, {}).items() if n in recipients
                },
            )
            for atom, (sender, recipients, sent_on) in sends.items()
        }

    def visible_to(self, node: str, tick: int) -> FrozenSet[str]:
        snap = self.at(tick)
        if snap is None or node not in snap.nodes:
            return frozenset()
        return snap.nodes[node].visible

    def at(self, tick: int) -> Optional[TickSnapshot]:
        """Snapshot for ``tick``, or None when the tick was not recorded."""
        if not self.snapshots:
            return None
        index = tick - self.snapshots[0].tick
        if 0 <= index < len(self.snapshots):
            return self.snapshots[index]
        return None

    def describe_termination(self) -> str:
        if self.termination_detail:
            return f"{self.termination}: {self.termination_detail}"
        return str(self.termination)


TraceListener = Callable[[Trace, TickSnapshot], None]


class TraceRecorder:
    """Append-only recorder for a trace; listeners hear about each published tick."""

    def __init__(self, nodes: Tuple[str, ...], pool_size: int):
        self.trace = Trace(nodes=tuple(nodes), pool_size=pool_size)
        self._listeners: List[TraceListener] = []

    def subscribe(self, listener: TraceListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: TraceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def append(self, snapshot: TickSnapshot) -> None:
        expected = self.trace.horizon + 1 if self.trace.snapshots else snapshot.tick
        if snapshot.tick != expected:
            raise ValueError(
                f"Snapshots must be consecutive: expected tick {expected}, got {snapshot.tick}"
            )

        self.trace.snapshots.append(snapshot)
        get_logger().debug(
            f"Recorded tick {snapshot.tick}: available={snapshot.available}, "
            f"allocated={snapshot.allocated}"
        )

    def publish(self, snapshot: TickSnapshot) -> None:
        """Hand a recorded snapshot to every listener.

        The fabric publishes only after the tick is committed and the clock
        has advanced, so an exception from a listener never leaves a half-done
        tick behind.
        """
        for listener in list(self._listeners):
            listener(self.trace, snapshot)

    def finish(
        self, termination: Termination, error: Optional[Exception] = None, detail: str = ""
    ) -> Trace:
        """Stamp the termination condition onto the trace and return it."""
        self.trace.termination = termination
        self.trace.error = error
        self.trace.termination_detail = detail
        return self.trace
