"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import matplotlib
import pytest

matplotlib.use("Agg")

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from stargen import (  # noqa: E402
    PopulationReconciler, StarConfig, StarfieldState,
)


class RecordingSink:
    """Render sink that logs every call and tracks live visuals by index."""

    def __init__(self):
        self.events = []
        self.live = {}

    def spawn_visual(self, index, x, y, radius, color):
        assert index not in self.live, f"index {index} spawned twice"
        self.events.append(("spawn", index))
        self.live[index] = (x, y, radius, color)

    def despawn_visual(self, index):
        assert index in self.live, f"index {index} despawned but never spawned"
        self.events.append(("despawn", index))
        del self.live[index]


class FixedSource:
    """Random source that replays fixed fractions of each requested range.

    ``uniform(lo, hi)`` returns ``lo + f * (hi - lo)`` and ``integers(n)``
    returns ``int(f * n)`` for the next fraction ``f``, cycling through
    *fractions*.
    """

    def __init__(self, fractions=(0.0,), seed=0):
        self.fractions = list(fractions)
        self.seed = seed
        self.calls = 0

    def _next(self):
        f = self.fractions[self.calls % len(self.fractions)]
        self.calls += 1
        return f

    def uniform(self, low, high):
        return low + self._next() * (high - low)

    def integers(self, n):
        return int(self._next() * n)

    def draw_seed(self):
        return 1000 + self.calls


@pytest.fixture
def small_config():
    return StarConfig(seed=424242, target_count=800)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_reconciler(sink):
    """Factory: reconciler over a fresh state, wired to the shared sink."""
    def _make(config=None, indexed=True, **kw):
        config = config if config is not None else StarConfig(seed=424242, target_count=800)
        state = StarfieldState.create(config, indexed=indexed)
        return PopulationReconciler(state, render=sink, verbose=False, **kw)
    return _make
