# utils/trace_io.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# CSV persistence for fabric traces

"""CSV trace files.

A trace file starts with directive lines, followed by one CSV row per
(tick, node) pair:

    # nodes: n1|n2
    # pool_size: 1
    # termination: horizon - reached tick 3
    tick,node,available,needs,state,visible,read,sent
    0,n1,1,1,0,,,m1>n2
    0,n2,1,0,0,,,
    1,n1,0,0,1,,,
    1,n2,0,0,1,m1,m1,

``available`` is the pool count at the start of the tick and is repeated
on every row of that tick. ``state`` is JSON. ``visible`` and ``read`` are
pipe-separated atoms. ``sent`` lists ``atom>recipient+recipient`` entries
separated by pipes. This is enough to replay every property check without
re-running the simulation.
"""

import csv
import json
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from fabric.trace import NodeSnapshot, Termination, TickSnapshot, Trace
from utils.logger import get_logger


HEADERS = ["tick", "node", "available", "needs", "state", "visible", "read", "sent"]

NODES_DIRECTIVE = "# nodes:"
POOL_DIRECTIVE = "# pool_size:"
TERMINATION_DIRECTIVE = "# termination:"


class TraceFormatError(Exception):
    """Exception raised when trace files contain invalid format or data."""

    pass


def write_trace(trace: Trace, filepath: str) -> None:
    """Write a trace to a CSV file.

    Raises:
        TraceFormatError: A node state cannot be encoded as JSON, or the
            file cannot be written
    """
    logger = get_logger()
    path = Path(filepath)

    rows = []
    for snapshot in trace:
        for node_id in trace.nodes:
            node = snapshot.nodes[node_id]
            try:
                state = json.dumps(node.state, sort_keys=True)
            except (TypeError, ValueError) as e:
                raise TraceFormatError(
                    f"State of {node_id} at tick {snapshot.tick} is not JSON serializable: {e}"
                ) from e

            rows.append(
                [
                    snapshot.tick,
                    node_id,
                    snapshot.available,
                    node.needs_to_send,
                    state,
                    _format_atoms(node.visible),
                    _format_atoms(node.read),
                    _format_sent(node.sent),
                ]
            )

    termination = str(trace.termination)
    if trace.termination_detail:
        termination = f"{termination} - {trace.termination_detail}"

    try:
        with open(path, "w", newline="", encoding="utf-8") as f:
            f.write(f"{NODES_DIRECTIVE} {'|'.join(trace.nodes)}\n")
            f.write(f"{POOL_DIRECTIVE} {trace.pool_size}\n")
            f.write(f"{TERMINATION_DIRECTIVE} {_single_line(termination)}\n")
            writer = csv.writer(f)
            writer.writerow(HEADERS)
            writer.writerows(rows)
    except OSError as e:
        raise TraceFormatError(f"Cannot write trace file {filepath}: {e}") from e

    logger.debug(f"Wrote {len(trace)} ticks to {filepath}")


def read_trace(filepath: str) -> Trace:
    """Load a trace from a CSV file.

    Raises:
        TraceFormatError: If the file is missing or malformed
    """
    logger = get_logger()
    path = Path(filepath)

    if not path.exists():
        raise TraceFormatError(f"Trace file not found: {filepath}")

    logger.debug(f"Reading trace file: {filepath}")

    try:
        with open(path, "r", newline="", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise TraceFormatError(f"Cannot open trace file: {filepath}") from e

    directives, body = _split_directives(lines)

    reader = csv.DictReader(body)
    missing = set(HEADERS) - set(reader.fieldnames or [])
    if missing:
        raise TraceFormatError(f"Missing required headers: {sorted(missing)}")

    declared_nodes = directives.get("nodes")
    rows_by_tick: Dict[int, List[Tuple[int, dict]]] = {}
    seen_nodes: List[str] = []

    for row_num, row in enumerate(reader, start=len(lines) - len(body) + 2):
        try:
            tick = int(row["tick"])
        except (TypeError, ValueError):
            raise TraceFormatError(f"Error parsing row {row_num}: invalid tick {row['tick']!r}")
        node_id = (row["node"] or "").strip()
        if not node_id:
            raise TraceFormatError(f"Error parsing row {row_num}: empty node")
        if node_id not in seen_nodes:
            seen_nodes.append(node_id)
        rows_by_tick.setdefault(tick, []).append((row_num, row))

    nodes = tuple(declared_nodes) if declared_nodes is not None else tuple(seen_nodes)
    undeclared = set(seen_nodes) - set(nodes)
    if undeclared:
        raise TraceFormatError(f"Rows mention undeclared nodes: {sorted(undeclared)}")

    snapshots = []
    ticks = sorted(rows_by_tick)
    for expected, tick in enumerate(ticks, start=ticks[0] if ticks else 0):
        if tick != expected:
            raise TraceFormatError(f"Ticks must be consecutive: expected {expected}, got {tick}")
        snapshots.append(_parse_tick(tick, rows_by_tick[tick], nodes))

    pool_size = directives.get("pool_size")
    if pool_size is None:
        pool_size = snapshots[0].available if snapshots else 0

    termination, detail = directives.get("termination", (Termination.HORIZON, ""))

    logger.debug(f"Loaded {len(snapshots)} ticks for nodes {list(nodes)}")
    return Trace(
        nodes=nodes,
        pool_size=pool_size,
        snapshots=snapshots,
        termination=termination,
        termination_detail=detail,
    )


def get_trace_nodes(filepath: str) -> List[str]:
    """Node list from the ``# nodes:`` directive, empty if absent."""
    path = Path(filepath)
    if not path.exists():
        return []

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line.startswith("#"):
                break
            if line.startswith(NODES_DIRECTIVE):
                return _parse_nodes(line[len(NODES_DIRECTIVE):])
    return []


def validate_trace_file(filepath: str) -> Trace:
    """Parse the whole file, raising on the first format problem.

    Raises:
        TraceFormatError: If validation fails
    """
    logger = get_logger()
    logger.debug(f"Validating trace file: {filepath}")

    try:
        trace = read_trace(filepath)
    except TraceFormatError as e:
        logger.validation_result(False, f"Trace validation failed: {e}")
        raise

    logger.validation_result(True, f"Trace validation successful: {len(trace)} ticks")
    return trace


def _split_directives(lines: List[str]) -> Tuple[dict, List[str]]:
    directives: dict = {}
    index = 0

    while index < len(lines) and lines[index].lstrip().startswith("#"):
        line = lines[index].strip()
        if line.startswith(NODES_DIRECTIVE):
            directives["nodes"] = _parse_nodes(line[len(NODES_DIRECTIVE):])
        elif line.startswith(POOL_DIRECTIVE):
            value = line[len(POOL_DIRECTIVE):].strip()
            try:
                directives["pool_size"] = int(value)
            except ValueError:
                raise TraceFormatError(f"Invalid pool size directive: {value!r}")
        elif line.startswith(TERMINATION_DIRECTIVE):
            directives["termination"] = _parse_termination(line[len(TERMINATION_DIRECTIVE):])
        index += 1

    return directives, lines[index:]


def _parse_nodes(nodes_str: str) -> List[str]:
    nodes = [n.strip() for n in nodes_str.split("|") if n.strip()]
    if len(set(nodes)) != len(nodes):
        raise TraceFormatError(f"Duplicate nodes in directive: {nodes_str.strip()}")
    return nodes


def _parse_termination(value: str) -> Tuple[Termination, str]:
    kind, _, detail = value.strip().partition(" - ")
    try:
        return Termination(kind.strip()), detail.strip()
    except ValueError:
        raise TraceFormatError(f"Unknown termination {kind.strip()!r}")


def _parse_tick(tick: int, rows: List[Tuple[int, dict]], nodes: Tuple[str, ...]) -> TickSnapshot:
    available: Optional[int] = None
    node_snapshots: Dict[str, NodeSnapshot] = {}

    for row_num, row in rows:
        node_id = row["node"].strip()
        if node_id in node_snapshots:
            raise TraceFormatError(f"Error parsing row {row_num}: node {node_id} repeated in tick {tick}")

        try:
            row_available = int(row["available"])
            needs = int(row["needs"])
        except (TypeError, ValueError):
            raise TraceFormatError(f"Error parsing row {row_num}: invalid integer field")

        if available is None:
            available = row_available
        elif available != row_available:
            raise TraceFormatError(
                f"Error parsing row {row_num}: available {row_available} disagrees with {available}"
            )

        node_snapshots[node_id] = NodeSnapshot(
            state=_parse_state(row["state"], row_num),
            needs_to_send=needs,
            visible=_parse_atoms(row["visible"]),
            read=_parse_atoms(row["read"]),
            sent=_parse_sent(row["sent"], row_num),
        )

    missing = set(nodes) - set(node_snapshots)
    if missing:
        raise TraceFormatError(f"Tick {tick} has no rows for nodes {sorted(missing)}")

    return TickSnapshot(
        tick=tick,
        available=available,
        nodes={node_id: node_snapshots[node_id] for node_id in nodes},
    )


def _parse_state(state_str: Optional[str], row_num: int):
    if state_str is None or not state_str.strip():
        return None
    try:
        return json.loads(state_str)
    except json.JSONDecodeError as e:
        raise TraceFormatError(f"Error parsing row {row_num}: invalid state JSON: {e}")


def _parse_atoms(atoms_str: Optional[str]) -> FrozenSet[str]:
    """Parse pipe-separated atoms, e.g. 'm1|m3'."""
    if not atoms_str or not atoms_str.strip():
        return frozenset()
    return frozenset(a.strip() for a in atoms_str.split("|") if a.strip())


def _parse_sent(sent_str: Optional[str], row_num: int) -> Dict[str, FrozenSet[str]]:
    """Parse sent entries, e.g. 'm1>n2|m2>n2+n3'."""
    if not sent_str or not sent_str.strip():
        return {}

    sent = {}
    for entry in sent_str.split("|"):
        entry = entry.strip()
        if not entry:
            continue
        atom, sep, recipients_str = entry.partition(">")
        recipients = frozenset(r.strip() for r in recipients_str.split("+") if r.strip())
        if not sep or not atom.strip() or not recipients:
            raise TraceFormatError(f"Error parsing row {row_num}: invalid sent entry {entry!r}")
        if atom.strip() in sent:
            raise TraceFormatError(f"Error parsing row {row_num}: atom {atom.strip()} sent twice")
        sent[atom.strip()] = recipients
    return sent


def _format_atoms(atoms: FrozenSet[str]) -> str:
    return "|".join(sorted(atoms, key=_atom_sort_key))


def _format_sent(sent: Dict[str, FrozenSet[str]]) -> str:
    return "|".join(
        f"{atom}>{'+'.join(sorted(recipients))}"
        for atom, recipients in sorted(sent.items(), key=lambda item: _atom_sort_key(item[0]))
    )


def _atom_sort_key(atom: str):
    digits = atom.lstrip("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
    return (int(digits) if digits.isdigit() else -1, atom)


def _single_line(text: str) -> str:
    return " ".join(text.split())
