# fabric/scheduler.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Tick-atomic scheduler: visibility, decisions, validation, allocation, commit

"""Scheduler and driver for the message fabric.

A tick runs in two phases. The first phase computes every node's visible
set, collects every node's decision from that single snapshot and validates
the decisions against the lifecycle rules and the pool supply. It never
mutates fabric state, which makes it safe to evaluate decisions in parallel.
The second phase commits the tick in a single thread: it takes atoms from
the pool, transitions messages, advances node states and appends the tick
snapshot to the trace. Trace listeners are told about the tick only after
the clock has moved on.

A fatal error in the first phase, including a decision function that
raises or returns garbage, leaves the fabric exactly as it was before
the tick, and halts it. Nothing is committed for the failed tick.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .clock import FabricClock
from .errors import (
    DecisionError,
    DoubleRead,
    DoubleSend,
    FabricError,
    FabricHalted,
    InvalidConfig,
    InvalidRead,
    InvalidSend,
    PoolExhausted,
    ProtocolViolation,
)
from .message import Envelope, Message
from .node import Decision, DecisionFunction, Node, normalize_decision
from .policies import idle
from .pool import MessagePool
from .trace import NodeSnapshot, TickSnapshot, Termination, Trace, TraceRecorder
from utils.logger import get_logger


RESERVED_ID_CHARS = set("|+>,;:# \t\r\n")


@dataclass(frozen=True)
class TickResult:
    """Outcome of one call to :func:`step`.

    Attributes:
        tick: Tick that was attempted
        snapshot: Committed snapshot, when the tick succeeded
        error: Fatal error that halted the fabric, when it failed
    """

    tick: int
    snapshot: Optional[TickSnapshot] = None
    error: Optional[FabricError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Fabric:
    """Message fabric state machine.

    Owns the nodes, the message pool, the message lifecycle records, the
    clock and the trace recorder. Use :func:`new_fabric` to build one from
    plain configuration.

    Attributes:
        nodes: Node identifier to node, in declaration order
        pool: Message pool, the only source of atoms
        messages: Atom to lifecycle record, for every atom ever sent
        clock: Discrete tick clock
        recorder: Trace recorder receiving one snapshot per committed tick
        parallel: Whether decisions are evaluated on a thread pool
        halted_by: Fatal error that stopped the fabric, if any
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        pool: MessagePool,
        parallel: bool = False,
        max_workers: Optional[int] = None,
    ):
        self.nodes: Dict[str, Node] = {}
        for node in nodes:
            if node.node_id in self.nodes:
                raise InvalidConfig(f"Duplicate node identity: {node.node_id}", node=node.node_id)
            self.nodes[node.node_id] = node

        self.pool = pool
        self.messages: Dict[str, Message] = {}
        self.clock = FabricClock()
        self.recorder = TraceRecorder(tuple(self.nodes), pool.size)
        self.parallel = parallel
        self.max_workers = max_workers
        self.halted_by: Optional[FabricError] = None

        # unread messages addressed to each node
        self._inbox: Dict[str, Set[str]] = {node_id: set() for node_id in self.nodes}

    @property
    def tick(self) -> int:
        return self.clock.tick

    @property
    def trace(self) -> Trace:
        return self.recorder.trace

    @property
    def halted(self) -> bool:
        return self.halted_by is not None

    def node(self, node_id: str) -> Node:
        return self.nodes[node_id]

    def visible_at(self, node_id: str, tick: int) -> Dict[str, Envelope]:
        """Messages ``node_id`` may read at ``tick``, keyed by atom."""
        visible = {}
        for atom in self._inbox[node_id]:
            message = self.messages[atom]
            if message.is_visible_to(node_id, tick):
                visible[atom] = message.envelope()
        return visible

    # ------------------------------------------------------------------
    # Phase one: read-only
    # ------------------------------------------------------------------

    def _decide(self, tick: int, node_id: str, visible: Mapping[str, Envelope]) -> Decision:
        node = self.nodes[node_id]
        try:
            raw = node.decide(node.state, frozenset(visible.values()))
            return normalize_decision(raw)
        except Exception as exc:
            raise DecisionError(
                f"decision function failed: {type(exc).__name__}: {exc}",
                tick=tick,
                node=node_id,
            ) from exc

    def _collect_decisions(
        self, tick: int, visible: Dict[str, Dict[str, Envelope]]
    ) -> Dict[str, Decision]:
        order = list(self.nodes)

        if self.parallel and len(order) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(
                    executor.map(
                        lambda node_id: self._decide(tick, node_id, visible[node_id]),
                        order,
                    )
                )
            return dict(zip(order, results))

        return {node_id: self._decide(tick, node_id, visible[node_id]) for node_id in order}

    def _validate(
        self,
        tick: int,
        visible: Dict[str, Dict[str, Envelope]],
        decisions: Dict[str, Decision],
    ) -> int:
        """Check every decision against the lifecycle rules and pool supply.

        Returns:
            Number of anonymous atoms the tick needs from the pool

        Raises:
            InvalidRead, DoubleRead, InvalidSend, DoubleSend, ProtocolViolation,
            PoolExhausted
        """
        claimed: Set[str] = set()
        anonymous = 0

        for node_id, decision in decisions.items():
            seen_reads: Set[str] = set()
            for atom in decision.read:
                if atom in seen_reads:
                    raise DoubleRead(
                        f"Node {node_id} read {atom} twice in one tick",
                        tick=tick,
                        node=node_id,
                        atom=atom,
                    )
                seen_reads.add(atom)
                if atom not in visible[node_id]:
                    raise InvalidRead(
                        f"Node {node_id} read {atom}, which is not in its visible set",
                        tick=tick,
                        node=node_id,
                        atom=atom,
                    )

            for outgoing in decision.send:
                if not outgoing.recipients:
                    raise InvalidSend(
                        f"Node {node_id} sent a message without recipients",
                        tick=tick,
                        node=node_id,
                        atom=outgoing.atom,
                    )
                unknown = outgoing.recipients - set(self.nodes)
                if unknown:
                    raise InvalidSend(
                        f"Node {node_id} addressed unknown nodes {sorted(unknown)}",
                        tick=tick,
                        node=node_id,
                        atom=outgoing.atom,
                    )

                if outgoing.atom is None:
                    anonymous += 1
                    continue

                atom = outgoing.atom
                if not self.pool.owns(atom):
                    raise InvalidSend(
                        f"Atom {atom} does not belong to the pool",
                        tick=tick,
                        node=node_id,
                        atom=atom,
                    )
                if atom in claimed or not self.pool.is_available(atom):
                    raise DoubleSend(
                        f"Node {node_id} sent {atom}, which has already been sent",
                        tick=tick,
                        node=node_id,
                        atom=atom,
                    )
                claimed.add(atom)

            needs = decision.needs_to_send
            if needs is not None and (isinstance(needs, bool) or not isinstance(needs, int) or needs < 0):
                raise ProtocolViolation(
                    f"Node {node_id} reported an invalid needs_to_send: {needs!r}",
                    tick=tick,
                    node=node_id,
                )

        remaining = self.pool.remaining() - len(claimed)
        if anonymous > remaining:
            raise PoolExhausted(
                f"Tick {tick} needs {anonymous + len(claimed)} atoms but only "
                f"{self.pool.remaining()} remain",
                requested=anonymous + len(claimed),
                remaining=self.pool.remaining(),
                tick=tick,
            )

        return anonymous

    # ------------------------------------------------------------------
    # Phase two: commit
    # ------------------------------------------------------------------

    def _commit(
        self,
        tick: int,
        visible: Dict[str, Dict[str, Envelope]],
        decisions: Dict[str, Decision],
        anonymous: int,
    ) -> TickSnapshot:
        available = self.pool.remaining()

        explicit = [o.atom for d in decisions.values() for o in d.send if o.atom is not None]
        self.pool.claim(explicit, tick=tick)
        fresh = iter(self.pool.allocate(anonymous, tick=tick))

        sent: Dict[str, Dict[str, frozenset]] = {node_id: {} for node_id in decisions}
        for node_id, decision in decisions.items():
            for outgoing in decision.send:
                atom = outgoing.atom if outgoing.atom is not None else next(fresh)
                message = self.messages.setdefault(atom, Message(atom))
                message.mark_sent(node_id, outgoing.recipients, tick)
                sent[node_id][atom] = message.recipients
                for recipient in message.recipients:
                    self._inbox[recipient].add(atom)

        for node_id, decision in decisions.items():
            for atom in decision.read:
                self.messages[atom].mark_read(node_id, tick)
                self._inbox[node_id].discard(atom)

        node_snapshots = {}
        for node_id, decision in decisions.items():
            node = self.nodes[node_id]
            node_snapshots[node_id] = NodeSnapshot(
                state=node.state,
                needs_to_send=node.needs_to_send,
                visible=frozenset(visible[node_id]),
                read=frozenset(decision.read),
                sent=sent[node_id],
            )

            node.visible = frozenset(visible[node_id])
            node.read = frozenset(decision.read)
            node.sent = sent[node_id]
            node.state = decision.next_state
            if decision.needs_to_send is not None:
                node.needs_to_send = decision.needs_to_send
            else:
                node.needs_to_send = max(0, node.needs_to_send - len(decision.send))

        snapshot = TickSnapshot(tick=tick, available=available, nodes=node_snapshots)
        self.recorder.append(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def advance(self) -> TickSnapshot:
        """Run one tick, raising on fatal errors.

        Raises:
            FabricHalted: The fabric already stopped on a fatal error
            FabricError: The tick failed; the fabric is halted

        Exceptions raised by trace listeners propagate after the tick has
        been committed.
        """
        if self.halted_by is not None:
            raise FabricHalted(
                f"Fabric halted at tick {self.halted_by.tick}: {self.halted_by.describe()}",
                tick=self.clock.tick,
            )

        tick = self.clock.tick
        logger = get_logger()
        logger.debug(f"--- tick {tick} ---")

        visible = {node_id: self.visible_at(node_id, tick) for node_id in self.nodes}

        try:
            decisions = self._collect_decisions(tick, visible)
            anonymous = self._validate(tick, visible, decisions)
        except FabricError as exc:
            self.halted_by = exc
            logger.tick_failed(exc)
            raise

        snapshot = self._commit(tick, visible, decisions, anonymous)
        self.clock.advance()

        logger.tick_committed(tick, snapshot.allocated, snapshot.available_after)
        self.recorder.publish(snapshot)
        return snapshot

    def step(self) -> TickResult:
        """Run one tick and report the outcome instead of raising."""
        tick = self.clock.tick
        try:
            snapshot = self.advance()
        except FabricHalted:
            return TickResult(tick=tick, error=self.halted_by)
        except FabricError as exc:
            return TickResult(tick=tick, error=exc)
        return TickResult(tick=tick, snapshot=snapshot)


def _validate_node_id(node_id: Any) -> None:
    if not isinstance(node_id, str) or not node_id:
        raise InvalidConfig(f"Node identities must be non-empty strings, got {node_id!r}")
    if RESERVED_ID_CHARS & set(node_id):
        raise InvalidConfig(f"Node identity {node_id!r} contains reserved characters")


def new_fabric(
    nodes: List[str],
    initial_pool_size: int,
    policies: Optional[Mapping[str, DecisionFunction]] = None,
    needs_to_send: Optional[Mapping[str, int]] = None,
    initial_states: Optional[Mapping[str, Any]] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
) -> Fabric:
    """Build a fabric from plain configuration.

    Nodes without a policy stay idle; nodes without an initial state start
    from ``None``.

    Args:
        nodes: Node identities, in the order decisions are committed
        initial_pool_size: Number of message atoms to provision
        policies: Node identity to decision function
        needs_to_send: Node identity to initial outstanding send count
        initial_states: Node identity to initial application state
        parallel: Evaluate decisions on a thread pool
        max_workers: Thread pool size when ``parallel`` is set

    Raises:
        InvalidConfig: Negative pool size, duplicate or malformed identities,
            or mappings that name unknown nodes
    """
    logger = get_logger()
    node_ids = list(nodes)

    seen: Set[str] = set()
    for node_id in node_ids:
        _validate_node_id(node_id)
        if node_id in seen:
            raise InvalidConfig(f"Duplicate node identity: {node_id}", node=node_id)
        seen.add(node_id)

    policies = dict(policies or {})
    needs = dict(needs_to_send or {})
    states = dict(initial_states or {})

    for label, mapping in (("policy", policies), ("needs_to_send", needs), ("initial state", states)):
        unknown = set(mapping) - seen
        if unknown:
            raise InvalidConfig(f"{label} given for unknown nodes {sorted(unknown)}")

    for node_id, count in needs.items():
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidConfig(
                f"needs_to_send for {node_id} must be a non-negative integer, got {count!r}",
                node=node_id,
            )

    pool = MessagePool(initial_pool_size)
    fabric = Fabric(
        (
            Node(
                node_id=node_id,
                decide=policies.get(node_id, idle),
                state=states.get(node_id),
                needs_to_send=needs.get(node_id, 0),
            )
            for node_id in node_ids
        ),
        pool,
        parallel=parallel,
        max_workers=max_workers,
    )

    logger.debug(
        f"Fabric created with nodes {node_ids} and {initial_pool_size} message atoms"
    )
    return fabric


def step(fabric: Fabric) -> TickResult:
    """Advance ``fabric`` by one tick."""
    return fabric.step()


def run(
    fabric: Fabric,
    max_ticks: int,
    checker: Any = None,
    stop_on_violation: bool = False,
) -> Trace:
    """Step ``fabric`` until it has completed ``max_ticks`` ticks or fails.

    Args:
        fabric: Fabric to drive
        max_ticks: Horizon, counted in ticks since the fabric was created
        checker: Optional online checker with ``observe(trace, snapshot)``
            and a ``has_violation`` flag
        stop_on_violation: Stop as soon as the checker reports a violation

    Returns:
        The accumulated trace, stamped with its termination condition
    """
    if max_ticks < 0:
        raise ValueError(f"max_ticks must not be negative, got {max_ticks}")

    logger = get_logger()
    recorder = fabric.recorder

    if checker is not None:
        recorder.subscribe(checker.observe)

    try:
        while fabric.tick < max_ticks:
            result = fabric.step()

            if not result.ok:
                logger.run_summary(fabric.tick, Termination.ERROR, result.error.describe())
                return recorder.finish(Termination.ERROR, result.error, result.error.describe())

            if stop_on_violation and checker is not None and checker.has_violation:
                detail = checker.violation_summary()
                logger.run_summary(fabric.tick, Termination.VIOLATION, detail)
                return recorder.finish(Termination.VIOLATION, detail=detail)
    finally:
        if checker is not None:
            recorder.unsubscribe(checker.observe)

    detail = f"reached tick {fabric.tick}"
    logger.run_summary(fabric.tick, Termination.HORIZON, detail)
    return recorder.finish(Termination.HORIZON, detail=detail)
