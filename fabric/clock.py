# fabric/clock.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Discrete logical clock driving tick-atomic transitions

from utils.logger import get_logger


class FabricClock:
    """Monotonic discrete clock; ticks start at 0 and only move forward."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"Clock cannot start at a negative tick: {start}")
        self._tick = start

    @property
    def tick(self) -> int:
        """The tick that the next transition will run at."""
        return self._tick

    @property
    def previous(self) -> int:
        """The last completed tick, or -1 if none has completed."""
        return self._tick - 1

    def advance(self) -> int:
        self._tick += 1
        get_logger().debug(f"Clock advanced to tick {self._tick}")
        return self._tick

    def __repr__(self) -> str:
        return f"FabricClock(tick={self._tick})"
