# tests/fabric_tests/test_message_pool.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Test suite for message pool allocation semantics

"""Test suite for the message pool.

Covers provisioning validation, exactly-once allocation, all-or-nothing
failure on shortage and explicit atom claims.
"""

import pytest

from fabric.errors import DoubleSend, InvalidConfig, InvalidSend, PoolExhausted
from fabric.pool import MessagePool, atom_index, atom_name


class TestMessagePool:
    """Allocation and claim behaviour of MessagePool."""

    def test_01_atoms_are_named_from_one(self):
        pool = MessagePool(3)
        assert pool.atoms == ("m1", "m2", "m3")
        assert pool.remaining() == 3

    def test_02_empty_pool_is_valid(self):
        pool = MessagePool(0)
        assert pool.remaining() == 0
        assert pool.allocate(0) == []

    @pytest.mark.parametrize("size", [-1, -10])
    def test_03_negative_size_is_invalid_config(self, size):
        with pytest.raises(InvalidConfig):
            MessagePool(size)

    @pytest.mark.parametrize("size", [1.5, "3", None, True])
    def test_04_non_integer_size_is_invalid_config(self, size):
        with pytest.raises(InvalidConfig):
            MessagePool(size)

    def test_05_allocate_takes_lowest_atoms_first(self):
        pool = MessagePool(4)
        assert pool.allocate(2) == ["m1", "m2"]
        assert pool.allocate(1) == ["m3"]
        assert pool.remaining() == 1

    def test_06_allocated_atoms_never_come_back(self):
        pool = MessagePool(5)
        handed_out = []
        for _ in range(5):
            handed_out.extend(pool.allocate(1))

        assert len(handed_out) == len(set(handed_out)) == 5
        assert pool.remaining() == 0
        assert pool.available == frozenset()

    def test_07_shortage_allocates_nothing(self):
        pool = MessagePool(2)
        with pytest.raises(PoolExhausted) as excinfo:
            pool.allocate(3, tick=4)

        assert excinfo.value.requested == 3
        assert excinfo.value.remaining == 2
        assert excinfo.value.tick == 4
        assert pool.remaining() == 2

    def test_08_claim_specific_atoms(self):
        pool = MessagePool(3)
        assert pool.claim(["m2"]) == ["m2"]
        assert not pool.is_available("m2")
        assert pool.allocate(2) == ["m1", "m3"]

    def test_09_claiming_a_consumed_atom_is_double_send(self):
        pool = MessagePool(2)
        pool.allocate(1)
        with pytest.raises(DoubleSend) as excinfo:
            pool.claim(["m1"])
        assert excinfo.value.atom == "m1"

    def test_10_claiming_same_atom_twice_at_once_is_double_send(self):
        pool = MessagePool(2)
        with pytest.raises(DoubleSend):
            pool.claim(["m2", "m2"])
        assert pool.remaining() == 2

    def test_11_claiming_foreign_atom_is_invalid_send(self):
        pool = MessagePool(2)
        with pytest.raises(InvalidSend):
            pool.claim(["m9"])
        assert pool.owns("m2")
        assert not pool.owns("m9")

    def test_12_failed_claim_removes_nothing(self):
        pool = MessagePool(3)
        with pytest.raises(InvalidSend):
            pool.claim(["m1", "x7"])
        assert pool.remaining() == 3

    def test_13_atom_name_round_trip(self):
        assert atom_index(atom_name(12)) == 12
