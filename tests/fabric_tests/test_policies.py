# tests/fabric_tests/test_policies.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Test suite for ready-made decision functions and built-in scenarios

import pytest

from fabric import Decision, Envelope, Outgoing, Termination, run
from fabric.policies import Action, RandomPolicy, ScriptedPolicy, idle, read_all, send_to
from fabric.scenarios import SCENARIOS, build_scenario


def envelope(atom, sent_on, sender="n1", recipients=("n2",)):
    return Envelope(atom, sender, frozenset(recipients), sent_on)


class TestBasicPolicies:
    """idle and read_all."""

    def test_01_idle_keeps_state(self):
        decision = idle("s", frozenset({envelope("m1", 0)}))
        assert decision == Decision((), (), "s")

    def test_02_read_all_reads_every_visible_message(self):
        visible = frozenset({envelope("m1", 0), envelope("m2", 1)})
        decision = read_all(7, visible)

        assert set(decision.read) == visible
        assert decision.send == ()
        assert decision.next_state == 7

    def test_03_send_to_builds_outgoing(self):
        assert send_to("n2", "n3") == Outgoing(["n2", "n3"])
        assert send_to("n2", atom="m4").atom == "m4"
        assert Outgoing("n2").recipients == frozenset({"n2"})


class TestScriptedPolicy:
    """Script replay and read selectors."""

    def test_01_cursor_advances_through_state(self):
        policy = ScriptedPolicy([Action(send=(send_to("n2"),)), Action()])

        first = policy(None, frozenset())
        assert first.send == (send_to("n2"),)
        assert first.next_state == 1

        second = policy(1, frozenset())
        assert second.send == ()
        assert second.next_state == 2

    def test_02_exhausted_script_idles(self):
        policy = ScriptedPolicy([Action(send=(send_to("n2"),))])
        decision = policy(5, frozenset({envelope("m1", 0)}))

        assert decision.read == ()
        assert decision.send == ()
        assert decision.next_state == 6

    @pytest.mark.parametrize(
        "selector, expected",
        [
            ("all", ["m1", "m2", "m10"]),
            ("oldest", ["m1"]),
            ("newest", ["m10"]),
            ("none", []),
        ],
    )
    def test_03_read_selectors_order_by_age(self, selector, expected):
        visible = frozenset({envelope("m10", 2), envelope("m2", 1), envelope("m1", 1)})
        decision = ScriptedPolicy([Action(read=selector)])(0, visible)

        assert [e.atom for e in decision.read] == expected

    def test_04_explicit_atoms_pass_through(self):
        decision = ScriptedPolicy([Action(read=("m9",))])(0, frozenset())
        assert decision.read == ("m9",)

    def test_05_unknown_selector_raises(self):
        with pytest.raises(ValueError):
            ScriptedPolicy([Action(read="latest")])(0, frozenset())

    def test_06_explicit_needs_to_send_is_forwarded(self):
        decision = ScriptedPolicy([Action(needs_to_send=3)])(0, frozenset())
        assert decision.needs_to_send == 3


class TestRandomPolicy:
    """Seeded random traffic."""

    def test_01_requires_peers(self):
        with pytest.raises(ValueError):
            RandomPolicy([])

    def test_02_same_seed_same_decisions(self):
        visible = frozenset({envelope("m1", 0), envelope("m2", 0)})
        a = RandomPolicy(["n2", "n3"], seed=42)
        b = RandomPolicy(["n2", "n3"], seed=42)

        for state in (5, 4, 3, 2, 1):
            assert a(state, visible) == b(state, visible)

    def test_03_sending_counts_down_the_state(self):
        policy = RandomPolicy(["n2"], seed=1, send_probability=1.0, read_probability=0.0)
        decision = policy(2, frozenset())

        assert decision.send == (Outgoing(("n2",)),)
        assert decision.next_state == 1
        assert decision.needs_to_send == 1

    def test_04_spent_budget_stops_sending(self):
        policy = RandomPolicy(["n2"], seed=1, send_probability=1.0, read_probability=1.0)
        visible = frozenset({envelope("m1", 0)})
        decision = policy(0, visible)

        assert decision.send == ()
        assert decision.needs_to_send == 0
        assert [e.atom for e in decision.read] == ["m1"]

    def test_05_unlimited_budget(self):
        policy = RandomPolicy(["n2"], seed=3, send_probability=1.0)
        decision = policy(None, frozenset())
        assert len(decision.send) == 1
        assert decision.next_state is None


class TestScenarios:
    """Built-in scenario registry."""

    def test_01_unknown_scenario_raises_key_error(self):
        with pytest.raises(KeyError):
            build_scenario("no_such_scenario")

    @pytest.mark.parametrize("name", sorted(set(SCENARIOS) - {"invalid_read"}))
    def test_02_valid_scenarios_reach_their_horizon(self, name):
        fabric, horizon = build_scenario(name)
        trace = run(fabric, horizon)

        assert trace.termination is Termination.HORIZON
        assert len(trace) == horizon

    def test_03_invalid_read_scenario_fails_on_first_tick(self):
        fabric, horizon = build_scenario("invalid_read")
        trace = run(fabric, horizon)

        assert trace.termination is Termination.ERROR
        assert trace.error.kind == "InvalidRead"
        assert len(trace) == 0

    def test_04_random_scenario_respects_pool_size(self):
        fabric, horizon = build_scenario("random", nodes=3, sends_per_node=2, seed=5)
        trace = run(fabric, horizon)

        assert trace.pool_size == 6
        sent = sum(s.allocated for s in trace)
        assert sent <= 6
        assert trace.final_available == 6 - sent
