# fabric/pool.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Finite pool of single-use message atoms with exactly-once allocation

from __future__ import annotations
from typing import Iterable, List, Set, Tuple

from .errors import DoubleSend, InvalidConfig, InvalidSend, PoolExhausted
from utils.logger import get_logger


ATOM_PREFIX = "m"


def atom_name(index: int) -> str:
    """Return the identifier of the index-th atom (1-based)."""
    return f"{ATOM_PREFIX}{index}"


def atom_index(atom: str) -> int:
    """Inverse of :func:`atom_name`; used to order atoms deterministically."""
    return int(atom[len(ATOM_PREFIX):])


class MessagePool:
    """Owner of the finite set of message atoms and their availability.

    Atoms are created once, when the pool is built, and named ``m1`` to
    ``mN``. Allocation removes atoms from the available set; nothing ever
    puts them back, so an atom handed out by :meth:`allocate` or
    :meth:`claim` can never be handed out again. This makes the pool the
    single point that guarantees no two sends share an atom.

    Attributes:
        size: Number of atoms the pool was provisioned with
    """

    def __init__(self, size: int):
        if isinstance(size, bool) or not isinstance(size, int):
            raise InvalidConfig(f"Pool size must be an integer, got {size!r}")
        if size < 0:
            raise InvalidConfig(f"Pool size must not be negative, got {size}")

        self.size = size
        self._atoms: Tuple[str, ...] = tuple(atom_name(i) for i in range(1, size + 1))
        self._owned = frozenset(self._atoms)
        self._available: Set[str] = set(self._atoms)

        get_logger().debug(f"Message pool provisioned with {size} atoms")

    @property
    def atoms(self) -> Tuple[str, ...]:
        """All atoms ever owned by the pool, in allocation order."""
        return self._atoms

    @property
    def available(self) -> frozenset:
        return frozenset(self._available)

    def remaining(self) -> int:
        """Number of atoms not yet consumed by any send."""
        return len(self._available)

    def owns(self, atom: str) -> bool:
        return atom in self._owned

    def is_available(self, atom: str) -> bool:
        return atom in self._available

    def allocate(self, count: int, tick: int = None) -> List[str]:
        """Take ``count`` unused atoms, lowest-numbered first.

        Either all requested atoms are allocated or none are.

        Args:
            count: Number of atoms requested
            tick: Tick on whose behalf the allocation happens (for reporting)

        Returns:
            The allocated atoms in ascending order

        Raises:
            PoolExhausted: Fewer than ``count`` atoms remain
        """
        if count < 0:
            raise ValueError(f"Cannot allocate a negative number of atoms: {count}")

        remaining = self.remaining()
        if count > remaining:
            raise PoolExhausted(
                f"Requested {count} atoms but only {remaining} remain",
                requested=count,
                remaining=remaining,
                tick=tick,
            )

        chosen = sorted(self._available, key=atom_index)[:count]
        self._available.difference_update(chosen)

        get_logger().debug(f"Allocated {chosen}, {self.remaining()} atoms left")
        return chosen

    def claim(self, atoms: Iterable[str], tick: int = None) -> List[str]:
        """Take specific atoms out of the pool.

        Validates every atom before removing any of them.

        Raises:
            InvalidSend: An atom was never part of this pool
            DoubleSend: An atom was already consumed, or is named twice
        """
        wanted = list(atoms)
        seen: Set[str] = set()

        for atom in wanted:
            if atom not in self._owned:
                raise InvalidSend(
                    f"Atom {atom} does not belong to the pool", tick=tick, atom=atom
                )
            if atom in seen or atom not in self._available:
                raise DoubleSend(
                    f"Atom {atom} has already been sent", tick=tick, atom=atom
                )
            seen.add(atom)

        self._available.difference_update(wanted)
        return wanted

    def __repr__(self) -> str:
        return f"MessagePool(size={self.size}, remaining={self.remaining()})"
