# fabric/__init__.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Fabric module public API

"""Discrete-time simulation of an asynchronous message-passing fabric.

Nodes exchange single-use messages drawn from a finite pool. A message is
sent exactly once, becomes visible to each recipient on the following
tick, and is read at most once per recipient. The fabric itself never
drops or reorders anything; loss and reordering emerge from the decision
functions nodes are given and from the finite pool supply.

Primary Components:
    MessagePool: Finite pool of atoms with exactly-once allocation
    Message: Per-atom lifecycle record
    Node: Per-participant state and decision function
    FabricClock: Discrete tick clock
    Fabric: Tick-atomic scheduler and driver
    TraceRecorder / Trace: Append-only record of per-tick snapshots

Example:
    >>> from fabric import new_fabric, run
    >>> from fabric.policies import Action, ScriptedPolicy, read_all, send_to
    >>> fabric = new_fabric(
    ...     ["n1", "n2"], 1,
    ...     policies={"n1": ScriptedPolicy([Action(send=(send_to("n2"),))]), "n2": read_all},
    ... )
    >>> trace = run(fabric, 3)
"""

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
from .message import Envelope, Message, MessageState
from .node import Decision, Node, Outgoing
from .pool import MessagePool
from .clock import FabricClock
from .trace import MessageRecord, NodeSnapshot, Termination, TickSnapshot, Trace, TraceRecorder
from .scheduler import Fabric, TickResult, new_fabric, run, step

__all__ = [
    "DecisionError",
    "DoubleRead",
    "DoubleSend",
    "FabricError",
    "FabricHalted",
    "InvalidConfig",
    "InvalidRead",
    "InvalidSend",
    "PoolExhausted",
    "ProtocolViolation",
    "Envelope",
    "Message",
    "MessageState",
    "Decision",
    "Node",
    "Outgoing",
    "MessagePool",
    "FabricClock",
    "MessageRecord",
    "NodeSnapshot",
    "Termination",
    "TickSnapshot",
    "Trace",
    "TraceRecorder",
    "Fabric",
    "TickResult",
    "new_fabric",
    "run",
    "step",
]
