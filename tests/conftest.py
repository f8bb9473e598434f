# tests/conftest.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Test configuration and shared fixtures for pytest

"""Test configuration and shared fixtures for the Nuntius test suite.

The configuration handles:
- Python path setup for module imports
- Test environment initialization
- Common fixtures for fabric and trace construction
"""

import sys
import pytest
from pathlib import Path

# Ensure project modules can be imported
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Verify the project packages are importable before any test runs.

    Raises:
        pytest.skip: If required modules cannot be imported
    """
    try:
        import fabric
        import propspec
        import utils
        import verification
    except ImportError as e:
        pytest.skip(f"Cannot import required modules: {e}")

    yield


@pytest.fixture
def two_nodes():
    """Standard node pair for point-to-point scenarios."""
    return ["n1", "n2"]


@pytest.fixture
def make_snapshot():
    """Factory for hand-built tick snapshots.

    Each node entry is a dict with optional keys ``state``, ``needs``,
    ``visible``, ``read`` and ``sent`` (atom to recipient list).
    """
    from fabric.trace import NodeSnapshot, TickSnapshot

    def _make(tick, available, **nodes):
        return TickSnapshot(
            tick=tick,
            available=available,
            nodes={
                node_id: NodeSnapshot(
                    state=spec.get("state"),
                    needs_to_send=spec.get("needs", 0),
                    visible=frozenset(spec.get("visible", ())),
                    read=frozenset(spec.get("read", ())),
                    sent={a: frozenset(r) for a, r in spec.get("sent", {}).items()},
                )
                for node_id, spec in nodes.items()
            },
        )

    return _make


@pytest.fixture
def make_trace():
    """Factory for hand-built traces from snapshots."""
    from fabric.trace import Termination, Trace

    def _make(nodes, pool_size, snapshots):
        return Trace(
            nodes=tuple(nodes),
            pool_size=pool_size,
            snapshots=list(snapshots),
            termination=Termination.HORIZON,
        )

    return _make
