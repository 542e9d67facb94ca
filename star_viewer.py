"""
star_viewer.py
==============
Matplotlib front-end for the spiral starfield.

Shows:
  • every placed star as a disc coloured by spectral class
  • a status line (seed, arm count, star count, modifiers, enabled classes)

The viewer is the render collaborator of the reconciler (``VisualRegistry``
tracks one visual per store index) and the input collaborator of the session
(key presses are looked up in ``star_controls.KEY_BINDINGS``).

Usage
-----
    python star_viewer.py              # time-derived seed, 30 000 stars
    python star_viewer.py --seed 42 --count 5000

Stars are drawn at their true radius, with a floor of ``MIN_MARKER_PT``
points so the commoner, smaller classes stay visible when zoomed out.
"""

from __future__ import annotations

import argparse
import dataclasses
from typing import Dict, Optional, Tuple

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np

from star_controls import StarfieldSession
from stargen import (
    ClassificationTable, PopulationReconciler, PositionStore,
    StarConfig, StarfieldState,
)


BG = "#09090f"
MIN_MARKER_PT = 1.2     # smallest marker diameter, in points


# ---------------------------------------------------------------------------
# Render sink
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Visual:
    x: float
    y: float
    radius: float
    color: str


class VisualRegistry:
    """Render sink that keeps one visual per store index."""

    def __init__(self) -> None:
        self.visuals: Dict[int, Visual] = {}
        self.dirty = False

    def spawn_visual(self, index: int, x: float, y: float, radius: float, color: str) -> None:
        self.visuals[index] = Visual(x, y, radius, color)
        self.dirty = True

    def despawn_visual(self, index: int) -> None:
        if self.visuals.pop(index, None) is not None:
            self.dirty = True

    def __len__(self) -> int:
        return len(self.visuals)

    def arrays(self) -> Tuple[np.ndarray, np.ndarray, list]:
        """(xy, radii, colours) of every visual, in index order."""
        if not self.visuals:
            return np.empty((0, 2)), np.empty(0), []
        keys = sorted(self.visuals)
        xy = np.array([(self.visuals[k].x, self.visuals[k].y) for k in keys])
        radii = np.array([self.visuals[k].radius for k in keys])
        colors = [self.visuals[k].color for k in keys]
        return xy, radii, colors


# ---------------------------------------------------------------------------
# Drawing helpers
# ---------------------------------------------------------------------------

def _style_axes(fig: plt.Figure, ax: plt.Axes) -> None:
    # Equal data aspect keeps the spiral undistorted regardless of canvas size.
    ax.set_aspect("equal", adjustable="datalim")
    ax.set_facecolor(BG)
    fig.patch.set_facecolor(BG)
    for spine in ax.spines.values():
        spine.set_edgecolor("#2a2a3a")
    ax.tick_params(colors="#555566", labelsize=7)


def marker_sizes(ax: plt.Axes, radii: np.ndarray) -> np.ndarray:
    """Scatter sizes (points²) that draw *radii* at their data-unit size."""
    xlim = ax.get_xlim()
    width_pt = ax.get_window_extent().width * 72.0 / ax.figure.dpi
    span = abs(xlim[1] - xlim[0])
    pt_per_unit = width_pt / span if span > 0 else 0.0
    diameters = np.maximum(2.0 * np.asarray(radii) * pt_per_unit, MIN_MARKER_PT)
    return diameters ** 2


def _class_legend(ax: plt.Axes, table: ClassificationTable) -> None:
    patches = [
        mpatches.Patch(facecolor=c.color, edgecolor=c.color,
                       label=f"{c.name}  (r={c.radius:,.0f})")
        for c in table.classes + (table.fallback,)
    ]
    ax.legend(
        handles=patches,
        loc="upper right",
        fontsize=8,
        facecolor="#111122",
        edgecolor="#333355",
        labelcolor="white",
    )


def draw_starfield(
    store: PositionStore,
    table: Optional[ClassificationTable] = None,
    title: Optional[str] = None,
) -> plt.Figure:
    """Static figure of every star in *store*."""
    table = table if table is not None else ClassificationTable()
    frame = store.to_frame()

    fig, ax = plt.subplots(figsize=(10, 10))
    _style_axes(fig, ax)

    if len(frame) > 0:
        pad = float(frame["radius"].max())
        ax.set_xlim(frame["x"].min() - pad, frame["x"].max() + pad)
        ax.set_ylim(frame["y"].min() - pad, frame["y"].max() + pad)
        colors = [table.color_for(name) for name in frame["star_class"]]
        ax.scatter(frame["x"], frame["y"],
                   s=marker_sizes(ax, frame["radius"].values),
                   c=colors, linewidths=0, zorder=5)

    ax.set_title(title or f"Spiral starfield  —  {len(frame):,} stars",
                 color="white", fontsize=11, pad=10)
    _class_legend(ax, table)
    return fig


# ---------------------------------------------------------------------------
# Interactive viewer
# ---------------------------------------------------------------------------

class StarViewer:
    """Interactive window: draws the registry, forwards keys to the session."""

    def __init__(self, config: Optional[StarConfig] = None, verbose: bool = True) -> None:
        self.registry = VisualRegistry()
        self.state = StarfieldState.create(config)
        self.reconciler = PopulationReconciler(
            self.state, render=self.registry, verbose=verbose,
        )
        self.session = StarfieldSession(self.reconciler)

        # Matplotlib's own shortcuts (s = save, q = quit, …) would shadow ours.
        for name in [k for k in plt.rcParams if k.startswith("keymap.")]:
            plt.rcParams[name] = []

        self.fig, self.ax = plt.subplots(figsize=(10, 10))
        _style_axes(self.fig, self.ax)
        _class_legend(self.ax, self.reconciler.table)
        self._scatter = None
        self._radii = np.empty(0)
        self._status = self.fig.text(
            0.01, 0.01, "", color="#ccccdd", fontsize=8, family="monospace",
        )
        self.fig.canvas.mpl_connect("key_press_event", self._on_key)

    def start(self, show: bool = True) -> None:
        self.reconciler.rebuild()
        self.redraw()
        if show:
            plt.show()

    def _on_key(self, event) -> None:
        if not self.session.handle_key(event.key):
            plt.close(self.fig)
            return
        self.redraw()

    def redraw(self) -> None:
        bbox = self.ax.get_window_extent()
        aspect = bbox.height / bbox.width if bbox.width else 1.0
        xlim, ylim = self.session.camera.view_limits(aspect)
        self.ax.set_xlim(*xlim)
        self.ax.set_ylim(*ylim)

        if self.registry.dirty or self._scatter is None:
            if self._scatter is not None:
                self._scatter.remove()
            xy, radii, colors = self.registry.arrays()
            self._scatter = self.ax.scatter(
                xy[:, 0], xy[:, 1], c=colors or None, linewidths=0, zorder=5,
            )
            self._radii = radii
            self.registry.dirty = False
        self._scatter.set_sizes(marker_sizes(self.ax, self._radii))

        self._status.set_text(self.session.status_line())
        self.fig.canvas.draw_idle()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    p = argparse.ArgumentParser(
        prog="star_viewer.py",
        description="Interactive viewer for the spiral starfield.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--seed",  type=int, default=None,
                   help="Generation seed (default: derived from the clock).")
    p.add_argument("--count", type=int, default=30_000,
                   help="Initial number of stars.")
    args = p.parse_args()

    kw = {"target_count": args.count}
    if args.seed is not None:
        kw["seed"] = args.seed
    StarViewer(StarConfig(**kw)).start()


if __name__ == "__main__":
    main()
