# tests/utils_tests/test_trace_io.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Test suite for CSV trace persistence and validation

"""Test suite for trace files.

Covers writing live traces, reading them back for offline checking, the
directive lines and rejection of malformed files.
"""

import pytest

from fabric import Termination, run
from fabric.scenarios import build_scenario
from utils.trace_io import (
    HEADERS,
    TraceFormatError,
    get_trace_nodes,
    read_trace,
    validate_trace_file,
    write_trace,
)
from verification import check


HEADER_LINE = ",".join(HEADERS)


def write_file(tmp_path, text, name="trace.csv"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def saved_scenario(tmp_path, name, **options):
    fabric, horizon = build_scenario(name, **options)
    trace = run(fabric, horizon)
    path = str(tmp_path / f"{name}.csv")
    write_trace(trace, path)
    return trace, path


class TestTraceWriting:
    """Traces written by a run."""

    def test_01_file_layout(self, tmp_path):
        _, path = saved_scenario(tmp_path, "single_delivery")
        lines = (tmp_path / "single_delivery.csv").read_text(encoding="utf-8").splitlines()

        assert lines[0] == "# nodes: n1|n2"
        assert lines[1] == "# pool_size: 1"
        assert lines[2].startswith("# termination: horizon")
        assert lines[3] == HEADER_LINE
        assert lines[4] == '0,n1,1,1,null,,,m1>n2'
        assert lines[7] == '1,n2,0,0,null,m1,m1,'
        assert len(lines) == 4 + 3 * 2

    def test_02_reloaded_trace_matches(self, tmp_path):
        trace, path = saved_scenario(tmp_path, "broadcast")
        loaded = read_trace(path)

        assert loaded.nodes == trace.nodes
        assert loaded.pool_size == trace.pool_size
        assert loaded.termination is Termination.HORIZON
        assert loaded.termination_detail == trace.termination_detail
        assert loaded.snapshots == trace.snapshots

    def test_03_states_survive_as_json(self, tmp_path):
        trace, path = saved_scenario(tmp_path, "random", nodes=2, sends_per_node=2, seed=4)
        loaded = read_trace(path)

        for original, reloaded in zip(trace, loaded):
            for node_id in trace.nodes:
                assert reloaded.nodes[node_id].state == original.nodes[node_id].state

    @pytest.mark.parametrize(
        "scenario", ["single_delivery", "shortage", "out_of_order", "unread", "random"]
    )
    def test_04_offline_checks_match_live_checks(self, tmp_path, scenario):
        trace, path = saved_scenario(tmp_path, scenario)
        loaded = read_trace(path)

        for name in ("NoLostMessages", "ReadInOrder", "NoMessageShortage", "PoolMonotonicity"):
            assert check(loaded, name) == check(trace, name), name

    def test_05_error_termination_is_recorded(self, tmp_path):
        _, path = saved_scenario(tmp_path, "invalid_read")
        loaded = read_trace(path)

        assert loaded.termination is Termination.ERROR
        assert loaded.termination_detail.startswith("InvalidRead tick=0")
        assert len(loaded) == 0

    def test_06_unserializable_state_is_rejected(self, tmp_path, make_snapshot, make_trace):
        trace = make_trace(["n1"], 0, [make_snapshot(0, 0, n1={"state": object()})])
        with pytest.raises(TraceFormatError):
            write_trace(trace, str(tmp_path / "bad.csv"))


class TestTraceReading:
    """Hand-written trace files."""

    def test_01_minimal_file_without_directives(self, tmp_path):
        path = write_file(
            tmp_path,
            f"{HEADER_LINE}\n"
            "0,n1,2,1,,,,m2>n2+n3\n"
            "0,n2,2,0,,,,\n"
            "0,n3,2,0,,,,\n"
            "1,n1,1,0,,,,\n"
            "1,n2,1,0,,m2,m2,\n"
            "1,n3,1,0,,m2,,\n",
        )
        trace = read_trace(path)

        assert trace.nodes == ("n1", "n2", "n3")
        assert trace.pool_size == 2
        assert trace.termination is Termination.HORIZON
        assert trace[0].nodes["n1"].sent == {"m2": frozenset({"n2", "n3"})}
        assert trace[0].nodes["n1"].state is None
        assert trace.messages()["m2"].read_on == {"n2": 1}

    def test_02_get_trace_nodes(self, tmp_path):
        _, path = saved_scenario(tmp_path, "broadcast")
        assert get_trace_nodes(path) == ["n1", "n2", "n3"]
        assert get_trace_nodes(str(tmp_path / "missing.csv")) == []

    def test_03_validate_returns_the_trace(self, tmp_path):
        _, path = saved_scenario(tmp_path, "unread")
        assert len(validate_trace_file(path)) == 3

    INVALID_FILES = [
        pytest.param("tick,node\n0,n1\n", id="missing-headers"),
        pytest.param(f"{HEADER_LINE}\nx,n1,1,0,,,,\n", id="bad-tick"),
        pytest.param(f"{HEADER_LINE}\n0,,1,0,,,,\n", id="empty-node"),
        pytest.param(f"{HEADER_LINE}\n0,n1,one,0,,,,\n", id="bad-available"),
        pytest.param(f"{HEADER_LINE}\n0,n1,1,0,{{oops,,,\n", id="bad-state"),
        pytest.param(f"{HEADER_LINE}\n0,n1,1,0,,,,m1\n", id="bad-sent"),
        pytest.param(f"{HEADER_LINE}\n0,n1,1,0,,,,\n0,n1,1,0,,,,\n", id="repeated-node"),
        pytest.param(f"{HEADER_LINE}\n0,n1,1,0,,,,\n0,n2,2,0,,,,\n", id="available-mismatch"),
        pytest.param(f"{HEADER_LINE}\n0,n1,1,0,,,,\n2,n1,1,0,,,,\n", id="tick-gap"),
        pytest.param(f"# nodes: n1|n2\n{HEADER_LINE}\n0,n1,1,0,,,,\n", id="missing-node-row"),
        pytest.param(f"# nodes: n1\n{HEADER_LINE}\n0,n1,1,0,,,,\n0,n9,1,0,,,,\n", id="undeclared"),
        pytest.param(f"# nodes: n1|n1\n{HEADER_LINE}\n", id="duplicate-nodes"),
        pytest.param(f"# pool_size: lots\n{HEADER_LINE}\n", id="bad-pool"),
        pytest.param(f"# termination: exploded\n{HEADER_LINE}\n", id="bad-termination"),
    ]

    @pytest.mark.parametrize("content", INVALID_FILES)
    def test_04_malformed_files_are_rejected(self, tmp_path, content):
        path = write_file(tmp_path, content)
        with pytest.raises(TraceFormatError):
            validate_trace_file(path)

    def test_05_missing_file(self, tmp_path):
        with pytest.raises(TraceFormatError):
            read_trace(str(tmp_path / "nope.csv"))
