# tests/fabric_tests/test_message_lifecycle.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Test suite for the per-atom message lifecycle state machine

import pytest

from fabric.errors import DoubleRead, DoubleSend, InvalidRead, InvalidSend
from fabric.message import Envelope, Message, MessageState
from fabric.node import Decision, Outgoing, normalize_decision


class TestMessageLifecycle:
    """Send, visibility and read transitions of a single message."""

    def test_01_new_message_is_unsent(self):
        m = Message("m1")
        assert m.state is MessageState.UNSENT
        assert not m.is_sent
        assert not m.is_visible_to("n2", 5)

    def test_02_send_records_sender_recipients_and_tick(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2", "n3"], 3)

        assert m.state is MessageState.SENT
        assert m.sender == "n1"
        assert m.recipients == frozenset({"n2", "n3"})
        assert m.sent_on == 3

    def test_03_second_send_is_double_send(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 0)
        with pytest.raises(DoubleSend) as excinfo:
            m.mark_sent("n2", ["n1"], 1)

        assert excinfo.value.tick == 1
        assert excinfo.value.atom == "m1"
        assert m.sender == "n1" and m.sent_on == 0

    def test_04_send_without_recipients_is_invalid(self):
        with pytest.raises(InvalidSend):
            Message("m1").mark_sent("n1", [], 0)

    def test_05_visible_from_the_next_tick(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 2)

        assert not m.is_visible_to("n2", 2)
        assert m.is_visible_to("n2", 3)
        assert m.is_visible_to("n2", 10)

    def test_06_never_visible_to_non_recipients(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 0)
        assert not m.is_visible_to("n1", 1)
        assert not m.is_visible_to("n3", 1)

    def test_07_visibility_ends_after_the_read_tick(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 0)
        m.mark_read("n2", 2)

        assert m.is_visible_to("n2", 1)
        assert m.is_visible_to("n2", 2)
        assert not m.is_visible_to("n2", 3)

    def test_08_second_read_is_double_read(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 0)
        m.mark_read("n2", 1)
        with pytest.raises(DoubleRead):
            m.mark_read("n2", 2)
        assert m.read_on == {"n2": 1}

    def test_09_read_before_visible_is_invalid(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 4)
        with pytest.raises(InvalidRead):
            m.mark_read("n2", 4)

    def test_10_read_by_non_recipient_is_invalid(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2"], 0)
        with pytest.raises(InvalidRead):
            m.mark_read("n3", 1)

    def test_11_recipients_read_independently_then_retire(self):
        m = Message("m1")
        m.mark_sent("n1", ["n2", "n3"], 0)

        m.mark_read("n2", 1)
        assert m.state is MessageState.SENT
        assert m.is_visible_to("n3", 2)

        m.mark_read("n3", 4)
        assert m.state is MessageState.RETIRED
        assert m.read_on == {"n2": 1, "n3": 4}

    def test_12_envelope_is_a_frozen_view(self):
        m = Message("m1")
        with pytest.raises(ValueError):
            m.envelope()

        m.mark_sent("n1", ["n2"], 0)
        env = m.envelope()
        assert env == Envelope("m1", "n1", frozenset({"n2"}), 0)
        with pytest.raises(AttributeError):
            env.sent_on = 5


class TestDecisionShape:
    """Coercion of decision function results."""

    def test_01_three_and_four_field_tuples_are_accepted(self):
        envelope = Envelope("m1", "n1", frozenset({"n2"}), 0)

        three = normalize_decision(([envelope], [["n1"]], "s"))
        assert three == Decision(("m1",), (Outgoing(["n1"]),), "s", None)

        four = normalize_decision(((), (), "s", 2))
        assert four.needs_to_send == 2

    @pytest.mark.parametrize(
        "raw",
        [(), ((),), ((), ()), ((), (), None, 0, "extra"), None, 7],
        ids=["empty", "one", "two", "five", "none", "int"],
    )
    def test_02_other_shapes_are_rejected(self, raw):
        with pytest.raises(TypeError):
            normalize_decision(raw)
