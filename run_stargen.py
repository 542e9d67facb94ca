"""
run_stargen.py
==============
CLI entrypoint for the spiral starfield generator.

All parameters are optional; unspecified parameters fall back to the defaults
defined in ``StarConfig`` (the seed is then derived from the clock).

Quick start
-----------
    python run_stargen.py --seed 1234

Grow and shrink after the first build, like the +/- keys in the viewer::

    python run_stargen.py --seed 1234 --count 20000 --delta 5000 --delta -12000

Other examples::

    # Four arms, no O or B stars, plot to a PNG
    python run_stargen.py --arms 4 --disable OB --save starfield.png

    # Open the interactive viewer with these parameters
    python run_stargen.py --seed 99 --count 10000 --interactive
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from stargen import (
    CLASS_FLAGS, ClassificationTable, PopulationReconciler, StarConfig,
    StarfieldState, population_report, print_report,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_stargen.py",
        description=(
            "Procedural spiral starfield generator.\n"
            "Builds the field, applies any count deltas, and prints acceptance checks."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument(
        "--seed", type=int, default=None,
        metavar="S",
        help="Generation seed (default: derived from the clock).",
    )

    # ── Population ────────────────────────────────────────────────────────
    p.add_argument(
        "--count", type=int, default=30_000,
        metavar="N",
        help="Target number of stars for the first build.",
    )
    p.add_argument(
        "--delta", type=int, action="append", default=[],
        metavar="N",
        help="Count change applied after the first build (repeatable).",
    )

    # ── Spiral shape ──────────────────────────────────────────────────────
    p.add_argument(
        "--arms", type=int, default=2,
        metavar="N",
        help="Number of spiral arms (1-4).",
    )
    p.add_argument(
        "--angle_mod", type=float, default=0.00076,
        metavar="A",
        help="Angular jitter window per star (radians).",
    )
    p.add_argument(
        "--radius_mod", type=float, default=2200.0,
        metavar="R",
        help="Base and spread of the distance from the centre.",
    )
    p.add_argument(
        "--distance_mod", type=float, default=60.0,
        metavar="D",
        help="Overall scale of the pattern.",
    )

    # ── Classes ───────────────────────────────────────────────────────────
    p.add_argument(
        "--disable", type=str, default="",
        metavar="CLASSES",
        help="Spectral classes to disable, e.g. 'OB'.",
    )

    # ── Engine ────────────────────────────────────────────────────────────
    p.add_argument(
        "--linear_scan", action="store_true",
        help="Test overlap against every star instead of the KD-tree index.",
    )

    # ── Output ───────────────────────────────────────────────────────────
    p.add_argument(
        "--save", default=None, metavar="FILE",
        help="Save a plot of the final field to FILE (png/pdf/svg).",
    )
    p.add_argument(
        "--interactive", action="store_true",
        help="Open the interactive viewer instead of running headless.",
    )

    return p


def config_from_args(args: argparse.Namespace) -> StarConfig:
    table = ClassificationTable()
    flags = {}
    for letter in args.disable.upper():
        flags[CLASS_FLAGS[table.index_of(letter)]] = False

    kw = dict(
        spiral_arm_count = args.arms,
        angle_mod        = args.angle_mod,
        radius_mod       = args.radius_mod,
        distance_mod     = args.distance_mod,
        target_count     = args.count,
        **flags,
    )
    if args.seed is not None:
        kw["seed"] = args.seed
    return StarConfig(**kw)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    try:
        cfg = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    # Print config so the user can confirm parameters before waiting
    print("Configuration")
    print("─" * 40)
    for field, value in cfg.to_params().items():
        print(f"  {field:<22} = {value}")
    print()

    if args.interactive:
        from star_viewer import StarViewer
        StarViewer(cfg).start()
        return

    state = StarfieldState.create(cfg, indexed=not args.linear_scan)
    rec = PopulationReconciler(state)
    rec.rebuild()
    for delta in args.delta:
        rec.apply_delta(delta)

    print_report(population_report(state.store, state.config, rec.table))

    if args.save:
        from star_viewer import draw_starfield
        fig = draw_starfield(state.store, rec.table)
        fig.savefig(args.save, dpi=150, bbox_inches="tight",
                    facecolor=fig.get_facecolor())
        print(f"Saved figure to {args.save}")


if __name__ == "__main__":
    main(sys.argv[1:])
