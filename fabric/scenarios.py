# fabric/scenarios.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Named, reproducible fabric setups for the CLI and for regression checks

"""Built-in scenarios.

Each builder returns a fresh fabric together with the horizon it is meant
to be run for. The deterministic scenarios exercise one fabric behaviour
each; ``random`` generates seeded traffic between any number of nodes.

Scenarios:
    single_delivery: One message from n1 to n2, read on first visibility
    shortage: n1 needs two sends but the pool holds one atom
    out_of_order: n2 reads the later of two messages from n1 first
    unread: n2 never reads the message sent to it
    invalid_read: n2 tries to read a message before it is visible
    broadcast: n1 broadcasts to n2 and n3, who read at different ticks
    random: Seeded random traffic
"""

from __future__ import annotations
from typing import Callable, Dict, Tuple

from .policies import Action, RandomPolicy, ScriptedPolicy, read_all, send_to
from .scheduler import Fabric, new_fabric
from utils.logger import get_logger


Scenario = Tuple[Fabric, int]


def single_delivery(parallel: bool = False) -> Scenario:
    fabric = new_fabric(
        ["n1", "n2"],
        1,
        policies={
            "n1": ScriptedPolicy([Action(send=(send_to("n2"),))]),
            "n2": read_all,
        },
        needs_to_send={"n1": 1},
        parallel=parallel,
    )
    return fabric, 3


def shortage(parallel: bool = False) -> Scenario:
    fabric = new_fabric(
        ["n1", "n2"],
        1,
        policies={
            "n1": ScriptedPolicy([Action(send=(send_to("n2"),))]),
            "n2": read_all,
        },
        needs_to_send={"n1": 2},
        parallel=parallel,
    )
    return fabric, 2


def out_of_order(parallel: bool = False) -> Scenario:
    fabric = new_fabric(
        ["n1", "n2"],
        2,
        policies={
            "n1": ScriptedPolicy(
                [Action(send=(send_to("n2"),)), Action(send=(send_to("n2"),))]
            ),
            "n2": ScriptedPolicy(
                [Action(), Action(), Action(read="newest"), Action(read="all")]
            ),
        },
        needs_to_send={"n1": 2},
        parallel=parallel,
    )
    return fabric, 4


def unread(parallel: bool = False) -> Scenario:
    fabric = new_fabric(
        ["n1", "n2"],
        1,
        policies={"n1": ScriptedPolicy([Action(send=(send_to("n2"),))])},
        needs_to_send={"n1": 1},
        parallel=parallel,
    )
    return fabric, 3


def invalid_read(parallel: bool = False) -> Scenario:
    # m1 is sent on tick 0 but n2 tries to read it on that same tick
    fabric = new_fabric(
        ["n1", "n2"],
        1,
        policies={
            "n1": ScriptedPolicy([Action(send=(send_to("n2"),))]),
            "n2": ScriptedPolicy([Action(read=("m1",))]),
        },
        parallel=parallel,
    )
    return fabric, 3


def broadcast(parallel: bool = False) -> Scenario:
    fabric = new_fabric(
        ["n1", "n2", "n3"],
        1,
        policies={
            "n1": ScriptedPolicy([Action(send=(send_to("n2", "n3"),))]),
            "n2": read_all,
            "n3": ScriptedPolicy([Action(), Action(), Action(read="all")]),
        },
        needs_to_send={"n1": 1},
        parallel=parallel,
    )
    return fabric, 4


def random_traffic(
    parallel: bool = False,
    nodes: int = 3,
    sends_per_node: int = 3,
    pool_size: int = None,
    seed: int = 0,
    ticks: int = 20,
) -> Scenario:
    """Seeded random traffic; the pool is sized for every planned send by default."""
    node_ids = [f"n{i}" for i in range(1, nodes + 1)]
    if pool_size is None:
        pool_size = nodes * sends_per_node

    policies = {}
    for index, node_id in enumerate(node_ids):
        peers = [n for n in node_ids if n != node_id] or [node_id]
        policies[node_id] = RandomPolicy(peers, seed=seed + index)

    fabric = new_fabric(
        node_ids,
        pool_size,
        policies=policies,
        needs_to_send={n: sends_per_node for n in node_ids},
        initial_states={n: sends_per_node for n in node_ids},
        parallel=parallel,
    )
    return fabric, ticks


SCENARIOS: Dict[str, Callable[..., Scenario]] = {
    "single_delivery": single_delivery,
    "shortage": shortage,
    "out_of_order": out_of_order,
    "unread": unread,
    "invalid_read": invalid_read,
    "broadcast": broadcast,
    "random": random_traffic,
}


def build_scenario(name: str, **options) -> Scenario:
    """Build the named scenario.

    Raises:
        KeyError: No scenario with that name exists
    """
    try:
        builder = SCENARIOS[name]
    except KeyError:
        raise KeyError(
            f"Unknown scenario {name!r}; choose one of {', '.join(sorted(SCENARIOS))}"
        ) from None

    get_logger().debug(f"Building scenario {name} with options {options}")
    return builder(**options)
