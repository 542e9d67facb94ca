"""Tests for ClassificationTable."""

import numpy as np
import pytest

from stargen import (
    CLASS_DRAW_RANGE, DEFAULT_CLASSES, FALLBACK_CLASS, ClassificationTable, StarClass,
)

ALL_ON = (True,) * 7


@pytest.fixture
def table():
    return ClassificationTable()


class TestThresholds:

    def test_thresholds_follow_cumulative_rarity(self, table):
        expected = CLASS_DRAW_RANGE - np.cumsum([c.rarity for c in DEFAULT_CLASSES])
        assert list(table.thresholds) == list(expected)
        assert table.thresholds[0] == 999_970
        assert table.thresholds[-1] == 8_570

    @pytest.mark.parametrize("draw, name", [
        (999_999, "O"),
        (999_970, "O"),
        (999_969, "B"),
        (997_570, "B"),
        (997_569, "A"),
        (500_000, "M"),
        (8_570, "M"),
        (8_569, "D"),
        (0, "D"),
    ])
    def test_band_edges(self, table, draw, name):
        assert table.classify(draw, ALL_ON).name == name

    def test_radius_for(self, table):
        assert table.radius_for(999_999, ALL_ON) == 16000.0
        assert table.radius_for(0, ALL_ON) == FALLBACK_CLASS.radius


class TestDisabledClasses:

    def test_disabled_rare_class_falls_to_next_enabled(self, table):
        no_o = (False,) + (True,) * 6
        assert table.classify(999_990, no_o).name == "B"

    def test_disabled_common_class_falls_to_fallback(self, table):
        no_m = (True,) * 6 + (False,)
        assert table.classify(500_000, no_m).name == "D"

    def test_all_disabled_always_fallback(self, table):
        off = (False,) * 7
        for draw in (0, 8_570, 500_000, 999_999):
            assert table.classify(draw, off) is table.fallback

    def test_no_renormalisation(self, table):
        no_m = (True,) * 6 + (False,)
        shares = table.expected_frequencies(no_m)
        assert shares["M"] == 0.0
        assert shares["D"] == pytest.approx(768_570 / CLASS_DRAW_RANGE)
        assert shares["K"] == pytest.approx(120_000 / CLASS_DRAW_RANGE)

    def test_expected_frequencies_sum_to_one(self, table):
        rng = np.random.default_rng(3)
        for _ in range(20):
            enabled = tuple(bool(b) for b in rng.integers(0, 2, 7))
            assert table.expected_frequencies(enabled).sum() == pytest.approx(1.0)


class TestVectorised:

    def test_classify_many_matches_scalar(self, table):
        rng = np.random.default_rng(11)
        draws = rng.integers(0, CLASS_DRAW_RANGE, 5_000)
        # Push some draws onto the band edges.
        draws[:len(table.thresholds)] = table.thresholds
        for _ in range(10):
            enabled = tuple(bool(b) for b in rng.integers(0, 2, 7))
            names = table.names_for(table.classify_many(draws, enabled))
            scalar = [table.classify(int(d), enabled).name for d in draws]
            assert list(names) == scalar


def test_distribution_over_100k_draws(table):
    n = 100_000
    draws = np.random.default_rng(2024).integers(0, CLASS_DRAW_RANGE, n)
    names = table.names_for(table.classify_many(draws, ALL_ON))
    expected = table.expected_frequencies(ALL_ON)

    for name, p in expected.items():
        observed = np.count_nonzero(names == name)
        sigma = np.sqrt(n * p * (1 - p))
        assert abs(observed - n * p) <= 5 * sigma + 2, (name, observed, n * p)


class TestValidation:

    def test_wrong_class_count(self):
        with pytest.raises(ValueError):
            ClassificationTable(DEFAULT_CLASSES[:6])

    def test_rarities_exceed_draw_range(self):
        with pytest.raises(ValueError):
            ClassificationTable(DEFAULT_CLASSES, draw_range=500_000)

    def test_non_positive_radius(self):
        bad = DEFAULT_CLASSES[:6] + (StarClass("M", 0.0, 760000, "#ffcc6f"),)
        with pytest.raises(ValueError):
            ClassificationTable(bad)

    def test_index_of(self, table):
        assert table.index_of("O") == 0
        assert table.index_of("m") == 6
        with pytest.raises(ValueError):
            table.index_of("Z")
