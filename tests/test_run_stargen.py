"""Tests for the command-line entry point."""

import pytest

import run_stargen


def test_parser_defaults():
    args = run_stargen.build_parser().parse_args([])
    assert args.seed is None
    assert args.count == 30_000
    assert args.arms == 2
    assert args.delta == []


def test_config_from_args():
    args = run_stargen.build_parser().parse_args(
        ["--seed", "5", "--count", "100", "--arms", "3", "--disable", "ob"]
    )
    cfg = run_stargen.config_from_args(args)
    assert cfg.seed == 5
    assert cfg.target_count == 100
    assert cfg.spiral_arm_count == 3
    assert not cfg.o_class and not cfg.b_class and cfg.a_class


def test_invalid_arguments_exit():
    with pytest.raises(SystemExit):
        run_stargen.main(["--arms", "9"])


def test_headless_run_with_deltas(capsys, tmp_path):
    out = tmp_path / "field.png"
    run_stargen.main([
        "--seed", "12", "--count", "300", "--delta", "200", "--delta", "-400",
        "--linear_scan", "--save", str(out),
    ])
    text = capsys.readouterr().out
    assert "ACCEPTANCE CHECKS" in text
    assert "target 100" in text
    assert out.exists() and out.stat().st_size > 0
