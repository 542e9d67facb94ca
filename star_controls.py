"""
star_controls.py
================
Input side of the spiral starfield: discrete commands, a 2-D camera, and the
session that routes each command to the camera or the population reconciler.

The input layer (keyboard, scripted runs, tests) only ever produces the
command objects below; ``StarfieldSession.handle`` processes one command to
completion before returning.

Key bindings (matplotlib key names)
-----------------------------------
    w/a/s/d            move camera
    q / e              zoom out / in
    1 … 7              toggle classes O B A F G K M
    up / down          ±1 000 stars
    pageup / pagedown  ±10 000 stars
    ] / [              more / fewer spiral arms
    . / ,              angle modifier up / down
    ' / ;              radius modifier up / down
    = / -              distance modifier up / down
    n                  new seed
    r                  reset to defaults
    escape, backspace  quit
"""

from __future__ import annotations

import dataclasses
from typing import Dict, Iterable, Optional, Tuple, Union

from stargen import PopulationReconciler


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class MoveCamera:
    direction: str        # "up" | "down" | "left" | "right"


@dataclasses.dataclass(frozen=True)
class Zoom:
    direction: str        # "in" | "out"


@dataclasses.dataclass(frozen=True)
class ToggleCategory:
    which: str            # class name, e.g. "O"


@dataclasses.dataclass(frozen=True)
class AdjustParameter:
    which: str            # StarConfig field name
    sign: int             # +1 or -1


@dataclasses.dataclass(frozen=True)
class RequestCountDelta:
    n: int


@dataclasses.dataclass(frozen=True)
class ChangeSeed:
    pass


@dataclasses.dataclass(frozen=True)
class ResetToDefault:
    pass


@dataclasses.dataclass(frozen=True)
class Quit:
    pass


Command = Union[
    MoveCamera, Zoom, ToggleCategory, AdjustParameter,
    RequestCountDelta, ChangeSeed, ResetToDefault, Quit,
]

# Commands that touch placement or the target count; dropped mid-rebuild.
_RECONCILER_COMMANDS = (
    ToggleCategory, AdjustParameter, RequestCountDelta, ChangeSeed, ResetToDefault,
)

KEY_BINDINGS: Dict[str, Command] = {
    "w": MoveCamera("up"),
    "s": MoveCamera("down"),
    "a": MoveCamera("left"),
    "d": MoveCamera("right"),
    "q": Zoom("out"),
    "e": Zoom("in"),
    "1": ToggleCategory("O"),
    "2": ToggleCategory("B"),
    "3": ToggleCategory("A"),
    "4": ToggleCategory("F"),
    "5": ToggleCategory("G"),
    "6": ToggleCategory("K"),
    "7": ToggleCategory("M"),
    "up":       RequestCountDelta(1_000),
    "down":     RequestCountDelta(-1_000),
    "pageup":   RequestCountDelta(10_000),
    "pagedown": RequestCountDelta(-10_000),
    "]": AdjustParameter("spiral_arm_count", +1),
    "[": AdjustParameter("spiral_arm_count", -1),
    ".": AdjustParameter("angle_mod", +1),
    ",": AdjustParameter("angle_mod", -1),
    "'": AdjustParameter("radius_mod", +1),
    ";": AdjustParameter("radius_mod", -1),
    "=": AdjustParameter("distance_mod", +1),
    "-": AdjustParameter("distance_mod", -1),
    "n": ChangeSeed(),
    "r": ResetToDefault(),
    "escape":    Quit(),
    "backspace": Quit(),
}


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------

DIRECTIONS: Dict[str, Tuple[int, int]] = {
    "up": (0, 1), "down": (0, -1), "left": (-1, 0), "right": (1, 0),
}

ZOOM_FACTOR = 1.25
PAN_UNIT = 20_000.0            # world units per unit of move speed at scale 1
BASE_HALF_WIDTH = 4_000_000.0  # half the visible width at scale 1


class Camera:
    """Orthographic 2-D camera: a centre point and a zoom scale.

    ``scale`` multiplies the visible extent, so zooming out grows it.  Pan
    steps are scaled with the zoom so a key press moves the view by the same
    share of the screen at any zoom level.
    """

    def __init__(self, min_scale: float = 1e-4, max_scale: float = 20.0) -> None:
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.reset()

    def reset(self) -> None:
        self.x = 0.0
        self.y = 0.0
        self.scale = 1.0

    def move(self, direction: str, speed: float) -> None:
        if direction not in DIRECTIONS:
            raise ValueError(f"unknown direction {direction!r}")
        dx, dy = DIRECTIONS[direction]
        step = speed * PAN_UNIT * self.scale
        self.x += dx * step
        self.y += dy * step

    def zoom(self, direction: str) -> None:
        if direction == "out":
            self.scale *= ZOOM_FACTOR
        elif direction == "in":
            self.scale /= ZOOM_FACTOR
        else:
            raise ValueError(f"unknown zoom direction {direction!r}")
        self.scale = max(self.min_scale, min(self.max_scale, self.scale))

    def view_limits(self, aspect: float = 1.0) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """(xlim, ylim) for an axes whose height/width ratio is *aspect*."""
        half_w = BASE_HALF_WIDTH * self.scale
        half_h = half_w * aspect
        return (self.x - half_w, self.x + half_w), (self.y - half_h, self.y + half_h)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class StarfieldSession:
    """Routes input commands to the camera or the reconciler.

    While the reconciler reports input as blocked (a rebuild is running),
    commands that would change placement or the target count are dropped;
    camera commands are still served.
    """

    def __init__(
        self,
        reconciler: PopulationReconciler,
        camera: Optional[Camera] = None,
    ) -> None:
        self.reconciler = reconciler
        self.camera = camera if camera is not None else Camera()
        self.dropped = 0

    def handle(self, command: Command) -> bool:
        """Process one command; returns False once the user asked to quit."""
        rec = self.reconciler

        if isinstance(command, Quit):
            return False
        if isinstance(command, MoveCamera):
            self.camera.move(command.direction, rec.current_parameters().camera_move_speed)
            return True
        if isinstance(command, Zoom):
            self.camera.zoom(command.direction)
            return True
        if not isinstance(command, _RECONCILER_COMMANDS):
            raise TypeError(f"unknown command {command!r}")

        if rec.is_input_blocked():
            self.dropped += 1
            return True

        if isinstance(command, ToggleCategory):
            rec.toggle_category(command.which)
        elif isinstance(command, AdjustParameter):
            rec.adjust_parameter(command.which, command.sign)
        elif isinstance(command, RequestCountDelta):
            rec.apply_delta(command.n)
        elif isinstance(command, ChangeSeed):
            rec.change_seed()
        elif isinstance(command, ResetToDefault):
            rec.reset_to_default()
            self.camera.reset()
        return True

    def handle_key(self, key: Optional[str]) -> bool:
        """Look up *key* in ``KEY_BINDINGS``; unbound keys are ignored."""
        command = KEY_BINDINGS.get(key) if key else None
        if command is None:
            return True
        return self.handle(command)

    def run(self, commands: Iterable[Command]) -> int:
        """Handle *commands* in order until a ``Quit``; returns how many ran."""
        n = 0
        for command in commands:
            n += 1
            if not self.handle(command):
                break
        return n

    def status_line(self) -> str:
        cfg = self.reconciler.current_parameters()
        table = self.reconciler.table
        classes = "".join(
            c.name if on else "-"
            for c, on in zip(table.classes, cfg.enabled_classes)
        )
        n_placed = len(self.reconciler.state.store)
        line = (
            f"seed {cfg.seed}  |  arms {cfg.spiral_arm_count}  |  "
            f"stars {n_placed:,}/{cfg.target_count:,}  |  "
            f"angle {cfg.angle_mod:.5f}  radius {cfg.radius_mod:.0f}  "
            f"distance {cfg.distance_mod:.0f}  |  classes {classes}  |  "
            f"zoom {1.0 / self.camera.scale:.2f}x"
        )
        if self.reconciler.is_input_blocked():
            line += "  |  rebuilding…"
        return line
