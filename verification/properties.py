# verification/properties.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Trace properties: delivery, ordering, provisioning and structural invariants

"""Trace properties evaluated over recorded executions.

Every property is a pure function of the trace: checking the same trace
twice gives the same verdict. Properties that talk about something that
must eventually happen (``NoLostMessages``, ``ReadInOrder``) scan forward to
the end of the trace and report UNPROVEN, never VIOLATED, when the trace
ends before the obligation is met.

Properties:
    NoLostMessages: Every recipient eventually reads every message sent to it
    ReadInOrder: Per recipient, messages from one sender are read in send order
    NoMessageShortage: Outstanding send needs never exceed the pool supply
    ExactlyOnceSend: No atom is sent twice
    ExactlyOnceRead: No recipient reads the same message twice
    ReadWithinVisible: Nodes read only what they can see
    VisibilityCausality: Visibility follows sends and stops after reads
    PoolMonotonicity: The pool only shrinks, by exactly the atoms sent
"""

from __future__ import annotations
from dataclasses import dataclass
from itertools import combinations
from typing import Callable, Dict, List, Set, Tuple

from fabric.trace import MessageRecord, Trace
from .verdict import Verdict
from .witness import (
    InvariantBreach,
    LostMessage,
    OutOfOrderRead,
    Shortage,
    Undelivered,
)
from utils.logger import get_logger


@dataclass(frozen=True)
class Property:
    """A named trace property.

    Attributes:
        name: Registry name, usable in formulas
        description: One-line summary
        evaluate: Pure function from trace to verdict
    """

    name: str
    description: str
    evaluate: Callable[[Trace], Verdict]

    def __call__(self, trace: Trace) -> Verdict:
        get_logger().debug(f"Checking {self.name} over {len(trace)} ticks")
        return self.evaluate(trace)


PROPERTIES: Dict[str, Property] = {}

# properties whose verdicts are reported by default
CORE_PROPERTIES = ("NoLostMessages", "ReadInOrder", "NoMessageShortage")


def trace_property(name: str, description: str):
    """Register the decorated function as a trace property."""

    def register(func: Callable[[Trace], Verdict]) -> Callable[[Trace], Verdict]:
        if name in PROPERTIES:
            raise ValueError(f"Property {name} is already registered")
        PROPERTIES[name] = Property(name, description, func)
        return func

    return register


def _sorted_messages(trace: Trace) -> List[MessageRecord]:
    return sorted(trace.messages().values(), key=lambda m: (m.sent_on, m.atom))


@trace_property(
    "NoLostMessages",
    "every recipient of a sent message eventually reads it",
)
def no_lost_messages(trace: Trace) -> Verdict:
    name = "NoLostMessages"
    horizon = trace.horizon
    pending: List[Undelivered] = []

    for message in _sorted_messages(trace):
        for recipient in sorted(message.recipients):
            if recipient in message.read_on:
                continue

            # unread: the message must stay visible to the recipient
            for tick in range(message.sent_on + 1, horizon + 1):
                if message.atom not in trace.visible_to(recipient, tick):
                    return Verdict.violated(
                        name, LostMessage(message.atom, recipient, tick), horizon
                    )

            pending.append(Undelivered(message.atom, recipient, message.sent_on))

    if pending:
        return Verdict.unproven(name, pending, horizon)
    return Verdict.holds(name, horizon)


@trace_property(
    "ReadInOrder",
    "each recipient reads messages from one sender in the order they were sent",
)
def read_in_order(trace: Trace) -> Verdict:
    name = "ReadInOrder"
    horizon = trace.horizon

    streams: Dict[Tuple[str, str], List[MessageRecord]] = {}
    for message in _sorted_messages(trace):
        for recipient in message.recipients:
            streams.setdefault((message.sender, recipient), []).append(message)

    violations: List[OutOfOrderRead] = []
    pending: List[OutOfOrderRead] = []

    for (sender, recipient), stream in sorted(streams.items()):
        for earlier, later in combinations(stream, 2):
            earlier_read = earlier.read_on.get(recipient)
            later_read = later.read_on.get(recipient)
            if earlier_read is None and later_read is None:
                continue
            if earlier_read == later_read:
                continue

            record = OutOfOrderRead(
                earlier=earlier.atom,
                later=later.atom,
                sender=sender,
                recipient=recipient,
                earlier_sent_on=earlier.sent_on,
                later_sent_on=later.sent_on,
                earlier_read_on=earlier_read,
                later_read_on=later_read,
            )
            same_tick = earlier.sent_on == later.sent_on

            if earlier_read is None:
                # any future read of the earlier message comes second
                pending.append(record)
            elif later_read is None:
                if same_tick:
                    pending.append(record)
            elif later_read < earlier_read or same_tick:
                # the message read first must have been sent strictly earlier
                violations.append(record)

    if violations:
        first = min(violations, key=lambda v: (v.first_read_on, v.recipient, v.pair))
        return Verdict.violated(name, first, horizon)
    if pending:
        return Verdict.unproven(name, pending, horizon)
    return Verdict.holds(name, horizon)


@trace_property(
    "NoMessageShortage",
    "outstanding send needs never exceed the atoms left in the pool",
)
def no_message_shortage(trace: Trace) -> Verdict:
    name = "NoMessageShortage"

    for snapshot in trace:
        needed = snapshot.total_needs
        if needed > snapshot.available:
            return Verdict.violated(
                name, Shortage(snapshot.tick, needed, snapshot.available), trace.horizon
            )

    return Verdict.holds(name, trace.horizon)


@trace_property("ExactlyOnceSend", "no message atom is sent more than once")
def exactly_once_send(trace: Trace) -> Verdict:
    name = "ExactlyOnceSend"
    first_sent: Dict[str, int] = {}

    for snapshot in trace:
        for node_id, node in sorted(snapshot.nodes.items()):
            for atom in sorted(node.sent):
                if atom in first_sent:
                    return Verdict.violated(
                        name,
                        InvariantBreach(
                            snapshot.tick,
                            f"already sent on tick {first_sent[atom]}",
                            node=node_id,
                            atom=atom,
                        ),
                        trace.horizon,
                    )
                first_sent[atom] = snapshot.tick

    return Verdict.holds(name, trace.horizon)


@trace_property("ExactlyOnceRead", "no recipient reads the same message twice")
def exactly_once_read(trace: Trace) -> Verdict:
    name = "ExactlyOnceRead"
    first_read: Dict[Tuple[str, str], int] = {}

    for snapshot in trace:
        for node_id, node in sorted(snapshot.nodes.items()):
            for atom in sorted(node.read):
                key = (atom, node_id)
                if key in first_read:
                    return Verdict.violated(
                        name,
                        InvariantBreach(
                            snapshot.tick,
                            f"already read on tick {first_read[key]}",
                            node=node_id,
                            atom=atom,
                        ),
                        trace.horizon,
                    )
                first_read[key] = snapshot.tick

    return Verdict.holds(name, trace.horizon)


@trace_property("ReadWithinVisible", "every read message is visible to its reader")
def read_within_visible(trace: Trace) -> Verdict:
    name = "ReadWithinVisible"

    for snapshot in trace:
        for node_id, node in sorted(snapshot.nodes.items()):
            unseen = node.read - node.visible
            if unseen:
                atom = min(unseen)
                return Verdict.violated(
                    name,
                    InvariantBreach(snapshot.tick, "read but not visible", node=node_id, atom=atom),
                    trace.horizon,
                )

    return Verdict.holds(name, trace.horizon)


@trace_property(
    "VisibilityCausality",
    "a message is visible only after it was sent to the node and until the node reads it",
)
def visibility_causality(trace: Trace) -> Verdict:
    name = "VisibilityCausality"
    messages = trace.messages()

    for snapshot in trace:
        tick = snapshot.tick
        for node_id, node in sorted(snapshot.nodes.items()):
            for atom in sorted(node.visible):
                message = messages.get(atom)
                if message is None:
                    detail = "visible but never sent"
                elif message.sent_on >= tick:
                    detail = f"visible before its send on tick {message.sent_on} completed"
                elif node_id not in message.recipients:
                    detail = "visible to a node it was not sent to"
                elif message.read_on.get(node_id, tick) < tick:
                    detail = f"still visible after being read on tick {message.read_on[node_id]}"
                else:
                    continue

                return Verdict.violated(
                    name,
                    InvariantBreach(tick, detail, node=node_id, atom=atom),
                    trace.horizon,
                )

    return Verdict.holds(name, trace.horizon)


@trace_property(
    "PoolMonotonicity",
    "the pool shrinks by exactly the atoms sent each tick and never grows",
)
def pool_monotonicity(trace: Trace) -> Verdict:
    name = "PoolMonotonicity"
    expected = trace.pool_size

    for snapshot in trace:
        if snapshot.available != expected:
            return Verdict.violated(
                name,
                InvariantBreach(
                    snapshot.tick,
                    f"pool reports {snapshot.available} available, expected {expected}",
                ),
                trace.horizon,
            )
        if snapshot.available_after < 0:
            return Verdict.violated(
                name,
                InvariantBreach(
                    snapshot.tick,
                    f"{snapshot.allocated} atoms sent with only {snapshot.available} available",
                ),
                trace.horizon,
            )
        expected = snapshot.available_after

    return Verdict.holds(name, trace.horizon)


def property_names() -> List[str]:
    """Registered property names, core properties first."""
    extra: Set[str] = set(PROPERTIES) - set(CORE_PROPERTIES)
    return list(CORE_PROPERTIES) + sorted(extra)
