"""
stargen.py
==========
Core engine for the spiral starfield.

Places a resizable population of stars along 2-D spiral arms, keeps that
population in step with a user-controlled target count, and avoids overlap
between stars on a best-effort basis.

Pipeline
--------
  • SeededRandomSource    – reproducible draw stream (numpy Generator)
  • ClassificationTable   – integer draw → spectral class → radius
  • spiral_candidates     – index → (x, y, radius) candidate, produced lazily
  • OverlapResolver       – nudge a candidate until it fits, or discard it
  • PositionStore         – append/truncate-only record of placed stars
  • PopulationReconciler  – grow, shrink, or fully rebuild the store

Everything a rebuild depends on lives in one ``StarfieldState`` that is
passed explicitly to the reconciler; there is no module-level mutable state.

Usage (importable)
------------------
    from stargen import StarConfig, StarfieldState, PopulationReconciler
    state = StarfieldState.create(StarConfig(seed=1234, target_count=5000))
    rec = PopulationReconciler(state)
    rec.rebuild()
    rec.apply_delta(+1000)

Usage (script, uses all defaults)
----------------------------------
    python stargen.py
"""

from __future__ import annotations

import dataclasses
import math
import time
from typing import Callable, Dict, Iterable, Iterator, Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_TARGET_COUNT = 200_000

# Seeds drawn by the engine itself fall in this range.
SEED_LOW  = 1_000
SEED_HIGH = 9_000_000_000

ANGLE_STEP        = 0.0005     # radians of spiral winding per index
POSITION_JITTER   = 20_000.0   # half-width of the positional jitter window
CLASS_DRAW_RANGE  = 1_000_000  # classification draws are integers in [0, R)

MAX_PLACEMENT_ATTEMPTS = 15    # overlap tests before a candidate is discarded

CLASS_FLAGS = (
    "o_class", "b_class", "a_class", "f_class", "g_class", "k_class", "m_class",
)

# Fields whose change invalidates every placed star.
PLACEMENT_FIELDS = (
    "seed", "spiral_arm_count", "angle_mod", "radius_mod", "distance_mod",
) + CLASS_FLAGS

# Inclusive bounds for interactively adjustable parameters.
PARAMETER_BOUNDS: Dict[str, Tuple[float, float]] = {
    "spiral_arm_count":  (1, 4),
    "angle_mod":         (0.0001, 0.05),
    "radius_mod":        (100.0, 10_000.0),
    "distance_mod":      (5.0, 500.0),
    "camera_move_speed": (1.0, 100.0),
}

PARAMETER_STEPS: Dict[str, float] = {
    "spiral_arm_count":  1,
    "angle_mod":         0.0001,
    "radius_mod":        100.0,
    "distance_mod":      5.0,
    "camera_move_speed": 2.0,
}


def clamp_target(n: int) -> int:
    """Clamp a star count into ``[0, MAX_TARGET_COUNT]``."""
    return max(0, min(MAX_TARGET_COUNT, int(n)))


def time_derived_seed(now: Optional[float] = None) -> int:
    """Draw a generation seed from a source seeded with the wall clock."""
    ts = int(time.time() if now is None else now)
    return SeededRandomSource(ts).draw_seed()


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class StarConfig:
    """All tunable parameters for starfield generation.

    Spatial units
    -------------
    Positions and star radii share one arbitrary unit.  With the defaults a
    30 000-star field spans a few million units across; an M-class star is
    100 units in radius.

    Notes on the modifiers
    ----------------------
    ``angle_mod`` is the width of the random angular jitter added to each
    star's winding angle, ``radius_mod`` sets both the base and the random
    spread of the distance from the centre, and ``distance_mod`` scales the
    whole pattern.  Changing any of them (or the seed, arm count or class
    flags) forces a full rebuild.
    """

    # ---- reproducibility ----
    seed: int = dataclasses.field(default_factory=time_derived_seed)

    # ---- spiral shape ----
    spiral_arm_count: int = 2      # 1..4 visually distinct arms
    angle_mod: float = 0.00076     # angular jitter window [0, angle_mod)
    radius_mod: float = 2200.0     # centre distance = (radius_mod + U[2, radius_mod)) * angle
    distance_mod: float = 60.0     # overall scale of the pattern

    # ---- enabled spectral classes (rarest first) ----
    o_class: bool = True
    b_class: bool = True
    a_class: bool = True
    f_class: bool = True
    g_class: bool = True
    k_class: bool = True
    m_class: bool = True

    # ---- population ----
    target_count: int = 30_000     # clamped to [0, MAX_TARGET_COUNT]

    # ---- viewer ----
    camera_move_speed: float = 10.0   # does not affect placement

    def __post_init__(self) -> None:
        self.target_count = clamp_target(self.target_count)
        if not 0 <= int(self.seed) < 2 ** 64:
            raise ValueError(f"seed must fit in 64 unsigned bits, got {self.seed}")
        self.seed = int(self.seed)
        for name, (lo, hi) in PARAMETER_BOUNDS.items():
            value = getattr(self, name)
            if not lo <= value <= hi:
                raise ValueError(f"{name}={value} outside [{lo}, {hi}]")
        self.spiral_arm_count = int(self.spiral_arm_count)

    @property
    def enabled_classes(self) -> Tuple[bool, ...]:
        """Class flags in classification-table order (O … M)."""
        return tuple(bool(getattr(self, f)) for f in CLASS_FLAGS)

    def to_params(self) -> dict:
        """JSON-ready dict of every field."""
        return dataclasses.asdict(self)


# ---------------------------------------------------------------------------
# Random source
# ---------------------------------------------------------------------------

class RandomSource(Protocol):
    """What the generator and resolver need from a random stream."""

    seed: int

    def uniform(self, low: float, high: float) -> float: ...

    def integers(self, n: int) -> int: ...

    def draw_seed(self) -> int: ...


class SeededRandomSource:
    """Reproducible draw stream backed by ``numpy.random.default_rng``.

    Two sources built from the same seed and driven by the same call sequence
    return identical values.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self._rng = np.random.default_rng(self.seed)

    @classmethod
    def from_time(cls, now: Optional[float] = None) -> "SeededRandomSource":
        return cls(time_derived_seed(now))

    def uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))

    def integers(self, n: int) -> int:
        """Uniform integer in ``[0, n)``."""
        return int(self._rng.integers(0, n))

    def draw_seed(self) -> int:
        """Dedicated draw used to seed the next source on a reseed."""
        return int(self._rng.integers(SEED_LOW, SEED_HIGH))

    def __repr__(self) -> str:
        return f"SeededRandomSource(seed={self.seed})"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class StarClass:
    name: str
    radius: float
    rarity: int      # share of the draw range, out of CLASS_DRAW_RANGE
    color: str


# https://en.wikipedia.org/wiki/Stellar_classification#Harvard_spectral_classification
DEFAULT_CLASSES = (
    StarClass("O", 16000.0,     30, "#9bb0ff"),
    StarClass("B",  5000.0,   2400, "#aabfff"),
    StarClass("A",  2000.0,   9000, "#cad7ff"),
    StarClass("F",  1500.0,  30000, "#f8f7ff"),
    StarClass("G",  1000.0,  70000, "#fff4ea"),
    StarClass("K",   500.0, 120000, "#ffd2a1"),
    StarClass("M",   100.0, 760000, "#ffcc6f"),
)

# Draws below every enabled threshold land here.
FALLBACK_CLASS = StarClass("D", 50.0, 0, "#b0b0b0")


class ClassificationTable:
    """Maps an integer draw in ``[0, draw_range)`` to a ``StarClass``.

    Class *k* owns the draws ``[threshold_k, threshold_{k-1})`` where
    ``threshold_k = draw_range - sum(rarity[0..k])``.  Lookup scans from the
    rarest class to the commonest and returns the first *enabled* class whose
    threshold the draw reaches.  Disabled classes are not renormalised away:
    a disabled class's draws fall through to the next enabled commoner class,
    or to the fallback class when none remains.
    """

    def __init__(
        self,
        classes: Sequence[StarClass] = DEFAULT_CLASSES,
        fallback: StarClass = FALLBACK_CLASS,
        draw_range: int = CLASS_DRAW_RANGE,
    ) -> None:
        self.classes = tuple(classes)
        self.fallback = fallback
        self.draw_range = int(draw_range)

        if len(self.classes) != len(CLASS_FLAGS):
            raise ValueError(
                f"expected {len(CLASS_FLAGS)} classes, got {len(self.classes)}"
            )
        for c in self.classes + (fallback,):
            if c.radius <= 0:
                raise ValueError(f"class {c.name} has non-positive radius {c.radius}")
        cumulative = np.cumsum([c.rarity for c in self.classes], dtype=np.int64)
        if cumulative[-1] > self.draw_range:
            raise ValueError(
                f"rarities sum to {int(cumulative[-1])}, more than the draw "
                f"range {self.draw_range}"
            )
        self.thresholds = self.draw_range - cumulative
        self._by_name = {c.name: c for c in self.classes + (fallback,)}

    def classify(self, draw: int, enabled: Sequence[bool]) -> StarClass:
        for cls, threshold, on in zip(self.classes, self.thresholds, enabled):
            if on and draw >= threshold:
                return cls
        return self.fallback

    def radius_for(self, draw: int, enabled: Sequence[bool]) -> float:
        return self.classify(draw, enabled).radius

    def classify_many(self, draws: np.ndarray, enabled: Sequence[bool]) -> np.ndarray:
        """Vectorised ``classify``: class position per draw, −1 for fallback."""
        draws = np.asarray(draws)
        codes = np.full(draws.shape, -1, dtype=np.int64)
        # Commonest first so the rarest matching class overwrites last.
        for k in reversed(range(len(self.classes))):
            if enabled[k]:
                codes[draws >= self.thresholds[k]] = k
        return codes

    def names_for(self, codes: np.ndarray) -> np.ndarray:
        names = np.array([c.name for c in self.classes] + [self.fallback.name])
        return names[np.asarray(codes)]   # −1 indexes the fallback name

    def expected_frequencies(self, enabled: Sequence[bool]) -> pd.Series:
        """Theoretical share of every class name (fallback last)."""
        upper = self.draw_range
        shares = {}
        for cls, threshold, on in zip(self.classes, self.thresholds, enabled):
            if on:
                shares[cls.name] = (upper - int(threshold)) / self.draw_range
                upper = int(threshold)
            else:
                shares[cls.name] = 0.0
        shares[self.fallback.name] = upper / self.draw_range
        return pd.Series(shares, name="expected")

    def index_of(self, name: str) -> int:
        for k, c in enumerate(self.classes):
            if c.name == name.upper():
                return k
        raise ValueError(f"unknown star class {name!r}")

    def color_for(self, name: str) -> str:
        return self._by_name[name].color


# ---------------------------------------------------------------------------
# Spiral placement
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Candidate:
    index: int
    x: float
    y: float
    radius: float
    star_class: StarClass


def spiral_transform(x: float, y: float, index: int, arm_count: int) -> Tuple[float, float]:
    """Fan a point onto one of up to four arms.

    ``index % arm_count`` picks the arm; each extra arm unlocks one more
    transform tier.  Arm 0 (and any residue without a tier) is untouched.
    """
    m = index % arm_count
    if arm_count >= 2 and m == 1:
        return -x, -y          # point reflection
    if arm_count >= 3 and m == 2:
        return -y, x           # quarter turn
    if arm_count >= 4 and m == 3:
        return y, -x           # swap and negate
    return x, y


def spiral_candidates(
    indices: Iterable[int],
    cfg: StarConfig,
    table: ClassificationTable,
    rng: RandomSource,
) -> Iterator[Candidate]:
    """Lazily yield one placement candidate per index.

    Draw order per candidate is fixed (angle jitter, radius spread, x jitter,
    y jitter, class draw) so a given seed always reproduces the same field.
    Callers must pass each candidate through ``OverlapResolver`` before
    storing it; the resolver's nudges draw from the same stream between
    candidates.
    """
    enabled = cfg.enabled_classes
    for index in indices:
        angle = index * ANGLE_STEP + rng.uniform(0.0, cfg.angle_mod)
        dist  = (cfg.radius_mod + rng.uniform(2.0, cfg.radius_mod)) * angle

        x = math.cos(angle) * dist * cfg.distance_mod
        y = math.sin(angle) * dist * cfg.distance_mod
        x += rng.uniform(-POSITION_JITTER, POSITION_JITTER)
        y += rng.uniform(-POSITION_JITTER, POSITION_JITTER)

        star_class = table.classify(rng.integers(table.draw_range), enabled)
        x, y = spiral_transform(x, y, index, cfg.spiral_arm_count)

        yield Candidate(index, x, y, star_class.radius, star_class)


# ---------------------------------------------------------------------------
# Position store
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class PlacedBody:
    x: float
    y: float
    radius: float
    star_class: str


class PositionStore:
    """Ordered, append/truncate-only record of placed stars.

    A star's position in the store is its identity (spawn order).  Storage is
    a set of growable numpy arrays.  With ``indexed=True`` neighbour queries
    go through a ``cKDTree`` over the settled prefix plus a linear scan of the
    recently appended tail; the tree is rebuilt once the tail grows past
    ``reindex_every`` entries, and dropped when a truncation cuts into it.
    """

    def __init__(self, indexed: bool = True, reindex_every: int = 512) -> None:
        self.indexed = indexed
        self.reindex_every = reindex_every
        self._xy      = np.empty((0, 2), dtype=np.float64)
        self._radius  = np.empty(0, dtype=np.float64)
        self._classes = np.empty(0, dtype=object)
        self._len = 0
        self._tree: Optional[cKDTree] = None
        self._tree_n = 0
        self.max_radius = 0.0   # never shrinks; only widens neighbour queries

    # ------------------------------------------------------------------
    # Sequence protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return self._len

    def __getitem__(self, i: int) -> PlacedBody:
        if i < 0:
            i += self._len
        if not 0 <= i < self._len:
            raise IndexError(f"store index {i} out of range")
        return PlacedBody(
            float(self._xy[i, 0]), float(self._xy[i, 1]),
            float(self._radius[i]), self._classes[i],
        )

    def __iter__(self) -> Iterator[PlacedBody]:
        for i in range(self._len):
            yield self[i]

    @property
    def xy(self) -> np.ndarray:
        return self._xy[:self._len]

    @property
    def radii(self) -> np.ndarray:
        return self._radius[:self._len]

    @property
    def classes(self) -> np.ndarray:
        return self._classes[:self._len]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _grow(self) -> None:
        cap = max(64, 2 * len(self._radius))
        xy = np.empty((cap, 2), dtype=np.float64)
        radius = np.empty(cap, dtype=np.float64)
        classes = np.empty(cap, dtype=object)
        xy[:self._len] = self._xy[:self._len]
        radius[:self._len] = self._radius[:self._len]
        classes[:self._len] = self._classes[:self._len]
        self._xy, self._radius, self._classes = xy, radius, classes

    def append(self, body: PlacedBody) -> int:
        """Store *body* and return its index."""
        if body.radius <= 0:
            raise ValueError(f"star radius must be positive, got {body.radius}")
        if self._len == len(self._radius):
            self._grow()
        i = self._len
        self._xy[i] = (body.x, body.y)
        self._radius[i] = body.radius
        self._classes[i] = body.star_class
        self._len += 1
        self.max_radius = max(self.max_radius, body.radius)
        return i

    def truncate(self, length: int) -> int:
        """Drop stars from the tail until *length* remain; return how many went."""
        length = max(0, min(length, self._len))
        removed = self._len - length
        self._classes[length:self._len] = None
        self._len = length
        if length < self._tree_n:
            self._tree = None
            self._tree_n = 0
        return removed

    def clear(self) -> None:
        self.truncate(0)
        self.max_radius = 0.0

    # ------------------------------------------------------------------
    # Spatial queries
    # ------------------------------------------------------------------

    def _reindex(self) -> None:
        self._tree = cKDTree(self._xy[:self._len].copy())
        self._tree_n = self._len

    def neighbours(self, x: float, y: float, reach: float) -> np.ndarray:
        """Indices of every star whose centre may lie within *reach* of (x, y).

        The indexed path returns exactly the stars within *reach*; the linear
        path returns every star.  Callers test exact overlap themselves.
        """
        n = self._len
        if n == 0:
            return np.empty(0, dtype=np.intp)
        if not self.indexed:
            return np.arange(n)

        if n - self._tree_n > self.reindex_every:
            self._reindex()

        parts = []
        if self._tree is not None:
            hits = self._tree.query_ball_point((x, y), reach)
            if hits:
                parts.append(np.asarray(hits, dtype=np.intp))
        if self._tree_n < n:
            tail = self._xy[self._tree_n:n]
            d2 = (tail[:, 0] - x) ** 2 + (tail[:, 1] - y) ** 2
            parts.append(self._tree_n + np.nonzero(d2 <= reach * reach)[0])

        if not parts:
            return np.empty(0, dtype=np.intp)
        return np.concatenate(parts)

    def to_frame(self) -> pd.DataFrame:
        """Snapshot as a DataFrame with columns index, x, y, radius, star_class."""
        return pd.DataFrame({
            "index":      np.arange(self._len, dtype=np.int64),
            "x":          self.xy[:, 0].copy(),
            "y":          self.xy[:, 1].copy(),
            "radius":     self.radii.copy(),
            "star_class": self.classes.astype(str),
        })


# ---------------------------------------------------------------------------
# Overlap resolution
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ResolverStats:
    accepted: int = 0
    nudged: int = 0      # accepted after at least one nudge
    discarded: int = 0


class OverlapResolver:
    """Bounded local search for a collision-free spot near a candidate.

    A candidate collides with a stored star when the distance between centres
    is below the sum of radii.  On collision the candidate is moved by a fresh
    random offset of up to ``nudge`` on each axis and tested again.  After
    ``max_attempts`` failed tests the candidate is discarded, never forced in,
    so the stored count can fall short of the requested count.
    """

    def __init__(
        self,
        max_attempts: int = MAX_PLACEMENT_ATTEMPTS,
        nudge: float = POSITION_JITTER,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.nudge = nudge
        self.stats = ResolverStats()

    def collides(self, x: float, y: float, radius: float, store: PositionStore) -> bool:
        idx = store.neighbours(x, y, radius + store.max_radius)
        if len(idx) == 0:
            return False
        xy = store.xy[idx]
        reach = store.radii[idx] + radius
        d2 = (xy[:, 0] - x) ** 2 + (xy[:, 1] - y) ** 2
        return bool(np.any(d2 < reach * reach))

    def resolve(
        self,
        candidate: Candidate,
        store: PositionStore,
        rng: RandomSource,
    ) -> Optional[PlacedBody]:
        x, y = candidate.x, candidate.y
        attempts = 1
        while self.collides(x, y, candidate.radius, store):
            if attempts >= self.max_attempts:
                self.stats.discarded += 1
                return None
            x += rng.uniform(-self.nudge, self.nudge)
            y += rng.uniform(-self.nudge, self.nudge)
            attempts += 1

        if attempts > 1:
            self.stats.nudged += 1
        self.stats.accepted += 1
        return PlacedBody(x, y, candidate.radius, candidate.star_class.name)


# ---------------------------------------------------------------------------
# State and render interface
# ---------------------------------------------------------------------------

class RenderSink(Protocol):
    """Render collaborator; visuals are tracked by store index."""

    def spawn_visual(self, index: int, x: float, y: float, radius: float, color: str) -> None: ...

    def despawn_visual(self, index: int) -> None: ...


class NullRenderSink:
    """Headless sink used when nothing is drawn."""

    def spawn_visual(self, index, x, y, radius, color) -> None:
        pass

    def despawn_visual(self, index) -> None:
        pass


@dataclasses.dataclass
class StarfieldState:
    """Parameters plus the random source and store generated under them."""

    config: StarConfig
    rng: RandomSource
    store: PositionStore
    input_blocked: bool = False

    @classmethod
    def create(
        cls,
        config: Optional[StarConfig] = None,
        rng: Optional[RandomSource] = None,
        indexed: bool = True,
    ) -> "StarfieldState":
        config = config if config is not None else StarConfig()
        rng = rng if rng is not None else SeededRandomSource(config.seed)
        return cls(config=config, rng=rng, store=PositionStore(indexed=indexed))


@dataclasses.dataclass
class ReconcileReport:
    kind: str            # "rebuild" | "grow" | "shrink"
    target: int
    requested: int = 0
    accepted: int = 0
    discarded: int = 0
    removed: int = 0
    elapsed: float = 0.0


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class PopulationReconciler:
    """Keeps the store (and the render sink) in line with the configuration.

    Target-count deltas append to or truncate the existing store.  Any change
    to a placement parameter invalidates every star: the store is rebuilt in
    one pass under a freshly seeded source and only then swapped in, so the
    render sink never sees a mix of old and new stars.

    Parameters
    ----------
    state : StarfieldState
        Owned exclusively by this reconciler.
    table : ClassificationTable, optional
    render : RenderSink, optional
        Told about every spawned and removed star.
    resolver : OverlapResolver, optional
    rng_factory : callable, optional
        ``seed -> RandomSource`` used on every rebuild.
    verbose : bool
        Print progress lines.
    """

    def __init__(
        self,
        state: StarfieldState,
        table: Optional[ClassificationTable] = None,
        render: Optional[RenderSink] = None,
        resolver: Optional[OverlapResolver] = None,
        rng_factory: Callable[[int], RandomSource] = SeededRandomSource,
        verbose: bool = True,
    ) -> None:
        self.state = state
        self.table = table if table is not None else ClassificationTable()
        self.render = render if render is not None else NullRenderSink()
        self.resolver = resolver if resolver is not None else OverlapResolver()
        self.rng_factory = rng_factory
        self.verbose = verbose
        self.last_report: Optional[ReconcileReport] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_target_count(self) -> int:
        return self.state.config.target_count

    def current_parameters(self) -> StarConfig:
        return dataclasses.replace(self.state.config)

    def is_input_blocked(self) -> bool:
        return self.state.input_blocked

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _log(self, msg: str) -> None:
        if self.verbose:
            print(msg)

    def _refuse_if_blocked(self, what: str) -> bool:
        if self.state.input_blocked:
            self._log(f"  Ignored {what}: rebuild in progress.")
            return True
        return False

    def _populate(
        self,
        store: PositionStore,
        indices: range,
        cfg: StarConfig,
        rng: RandomSource,
    ) -> Tuple[int, int]:
        accepted = discarded = 0
        for cand in spiral_candidates(indices, cfg, self.table, rng):
            body = self.resolver.resolve(cand, store, rng)
            if body is None:
                discarded += 1
                continue
            store.append(body)
            accepted += 1
        return accepted, discarded

    def _spawn(self, index: int) -> None:
        body = self.state.store[index]
        self.render.spawn_visual(
            index, body.x, body.y, body.radius, self.table.color_for(body.star_class)
        )

    def _rebuild(self, cfg: StarConfig) -> bool:
        state = self.state
        if self._refuse_if_blocked("rebuild"):
            return False

        state.input_blocked = True
        try:
            self._log(f"Rebuilding starfield: {cfg.target_count:,} stars, "
                      f"seed {cfg.seed} …")
            t0 = time.perf_counter()
            rng = self.rng_factory(cfg.seed)
            store = PositionStore(
                indexed=state.store.indexed,
                reindex_every=state.store.reindex_every,
            )
            accepted, discarded = self._populate(
                store, range(0, cfg.target_count), cfg, rng
            )

            old_len = len(state.store)
            state.config, state.rng, state.store = cfg, rng, store
            for index in reversed(range(old_len)):
                self.render.despawn_visual(index)
            for index in range(len(store)):
                self._spawn(index)

            elapsed = time.perf_counter() - t0
            self._log(f"  {accepted:,} stars placed in {elapsed:.2f}s "
                      f"({discarded:,} discarded)")
            self.last_report = ReconcileReport(
                "rebuild", cfg.target_count, cfg.target_count,
                accepted, discarded, old_len, elapsed,
            )
        finally:
            state.input_blocked = False
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def rebuild(self, seed: Optional[int] = None) -> bool:
        """Regenerate every star, under *seed* if given, else the current seed."""
        cfg = self.state.config
        if seed is not None:
            cfg = dataclasses.replace(cfg, seed=seed)
        return self._rebuild(cfg)

    def apply_delta(self, delta: int) -> bool:
        """Grow or shrink the target by *delta*; returns False if rejected."""
        if self._refuse_if_blocked(f"count change {delta:+,}"):
            return False
        state = self.state
        old_target = state.config.target_count
        potential = old_target + int(delta)
        if not 0 <= potential <= MAX_TARGET_COUNT:
            self._log(f"  Rejected count change {delta:+,}: target would be "
                      f"{potential:,} (allowed 0..{MAX_TARGET_COUNT:,}).")
            return False
        if delta == 0:
            return True

        t0 = time.perf_counter()
        state.config = dataclasses.replace(state.config, target_count=potential)
        store = state.store

        if delta > 0:
            start = len(store)
            accepted, discarded = self._populate(
                store, range(old_target, potential), state.config, state.rng
            )
            for index in range(start, len(store)):
                self._spawn(index)
            elapsed = time.perf_counter() - t0
            self._log(f"  +{accepted:,} stars in {elapsed:.2f}s "
                      f"({discarded:,} discarded); target {potential:,}")
            self.last_report = ReconcileReport(
                "grow", potential, potential - old_target,
                accepted, discarded, 0, elapsed,
            )
        else:
            old_len = len(store)
            removed = store.truncate(old_len - min(old_target - potential, old_len))
            for index in range(old_len - 1, old_len - removed - 1, -1):
                self.render.despawn_visual(index)
            elapsed = time.perf_counter() - t0
            self._log(f"  -{removed:,} stars; target {potential:,}")
            self.last_report = ReconcileReport(
                "shrink", potential, old_target - potential,
                0, 0, removed, elapsed,
            )
        return True

    def change_seed(self) -> bool:
        """Draw a new seed from the current source and rebuild under it."""
        if self._refuse_if_blocked("seed change"):
            return False
        return self.rebuild(seed=self.state.rng.draw_seed())

    def reset_to_default(self) -> bool:
        """Restore every default parameter under a freshly drawn seed."""
        if self._refuse_if_blocked("reset"):
            return False
        return self._rebuild(StarConfig(seed=self.state.rng.draw_seed()))

    def set_parameter(self, name: str, value) -> bool:
        """Set one parameter, clamped to its bounds.

        Returns False when nothing changed.  Placement parameters rebuild the
        whole field; ``camera_move_speed`` applies immediately.
        """
        if name not in PARAMETER_BOUNDS and name not in CLASS_FLAGS:
            raise ValueError(f"unknown parameter {name!r}")
        if self._refuse_if_blocked(f"change of {name}"):
            return False

        cfg = self.state.config
        if name in PARAMETER_BOUNDS:
            lo, hi = PARAMETER_BOUNDS[name]
            value = max(lo, min(hi, value))
            if name == "spiral_arm_count":
                value = int(value)
        else:
            value = bool(value)
        if getattr(cfg, name) == value:
            return False

        new_cfg = dataclasses.replace(cfg, **{name: value})
        if name == "camera_move_speed":
            self.state.config = new_cfg
            return True
        return self._rebuild(new_cfg)

    def adjust_parameter(self, name: str, sign: int) -> bool:
        """Step a parameter up (sign > 0) or down (sign < 0) by one notch."""
        if sign == 0:
            raise ValueError("sign must be non-zero")
        if name not in PARAMETER_STEPS:
            raise ValueError(f"unknown parameter {name!r}")
        step = PARAMETER_STEPS[name] if sign > 0 else -PARAMETER_STEPS[name]
        value = getattr(self.state.config, name) + step
        if isinstance(value, float):
            value = round(value, 6)
        return self.set_parameter(name, value)

    def toggle_category(self, which) -> bool:
        """Flip one spectral class on or off, by name ("O") or position (0)."""
        k = which if isinstance(which, int) else self.table.index_of(which)
        if not 0 <= k < len(CLASS_FLAGS):
            raise ValueError(f"unknown star class {which!r}")
        flag = CLASS_FLAGS[k]
        return self.set_parameter(flag, not getattr(self.state.config, flag))


# ---------------------------------------------------------------------------
# Acceptance report
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class PopulationReport:
    n_stars: int
    target: int
    min_radius: float
    overlapping_pairs: int
    classes: pd.DataFrame


def count_overlaps(store: PositionStore) -> int:
    """Number of star pairs whose circles intersect."""
    if len(store) < 2:
        return 0
    xy = store.xy
    radii = store.radii
    tree = cKDTree(xy)
    pairs = tree.query_pairs(2.0 * float(radii.max()), output_type="ndarray")
    if len(pairs) == 0:
        return 0
    d2 = np.sum((xy[pairs[:, 0]] - xy[pairs[:, 1]]) ** 2, axis=1)
    reach = radii[pairs[:, 0]] + radii[pairs[:, 1]]
    return int(np.count_nonzero(d2 < reach * reach))


def population_report(
    store: PositionStore,
    cfg: StarConfig,
    table: Optional[ClassificationTable] = None,
) -> PopulationReport:
    """Collect count, overlap and class-distribution checks for *store*."""
    table = table if table is not None else ClassificationTable()
    names = [c.name for c in table.classes] + [table.fallback.name]
    radius_by_name = {c.name: c.radius for c in table.classes}
    radius_by_name[table.fallback.name] = table.fallback.radius

    counts = (
        pd.Series(store.classes, dtype=object)
        .value_counts()
        .reindex(names, fill_value=0)
    )
    n = len(store)
    classes = pd.DataFrame({
        "radius":   [radius_by_name[name] for name in names],
        "count":    counts.values.astype(np.int64),
        "observed": counts.values / max(n, 1),
        "expected": table.expected_frequencies(cfg.enabled_classes).reindex(names).values,
    }, index=pd.Index(names, name="class"))

    return PopulationReport(
        n_stars=n,
        target=cfg.target_count,
        min_radius=float(store.radii.min()) if n else 0.0,
        overlapping_pairs=count_overlaps(store),
        classes=classes,
    )


def print_report(report: PopulationReport) -> None:
    """Print acceptance check results to stdout."""
    sep = "─" * 52

    print(f"\n{sep}")
    print("  ACCEPTANCE CHECKS")
    print(sep)

    ok = report.n_stars <= report.target
    print(f"  Star count : {report.n_stars:>7,}  (target {report.target:,})  "
          f"{'✓' if ok else '✗ FAIL'}")
    short = report.target - report.n_stars
    if report.target:
        print(f"  Discarded  : {short:>7,}  ({short / report.target:.2%})")

    ok = report.n_stars == 0 or report.min_radius > 0
    print(f"  Min radius : {report.min_radius:>9.1f}  > 0  {'✓' if ok else '✗ FAIL'}")

    ok = report.overlapping_pairs == 0
    print(f"  Overlaps   : {report.overlapping_pairs:>7,}  pairs  "
          f"{'✓' if ok else '✗ FAIL'}")

    print("\n  Class distribution (observed vs expected):")
    for name, row in report.classes.iterrows():
        print(f"    {name}  r={row['radius']:>7.0f}  n={int(row['count']):>7,}  "
              f"{row['observed']:>7.3%}  vs {row['expected']:>7.3%}")

    print(sep + "\n")


# ---------------------------------------------------------------------------
# Script entry point (uses all StarConfig defaults)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    state = StarfieldState.create()
    rec = PopulationReconciler(state)
    rec.rebuild()
    print_report(population_report(state.store, state.config, rec.table))
