"""Tests for the matplotlib render collaborator."""

import matplotlib.pyplot as plt
import numpy as np
import pytest

from star_viewer import MIN_MARKER_PT, StarViewer, VisualRegistry, draw_starfield, marker_sizes
from stargen import PopulationReconciler, StarConfig, StarfieldState


class TestVisualRegistry:

    def test_tracks_visuals_by_index(self):
        reg = VisualRegistry()
        reg.spawn_visual(0, 1.0, 2.0, 3.0, "#ffffff")
        reg.spawn_visual(1, 4.0, 5.0, 6.0, "#000000")
        reg.despawn_visual(0)
        assert len(reg) == 1
        xy, radii, colors = reg.arrays()
        assert xy.tolist() == [[4.0, 5.0]]
        assert radii.tolist() == [6.0]
        assert colors == ["#000000"]
        assert reg.dirty

    def test_empty_arrays(self):
        xy, radii, colors = VisualRegistry().arrays()
        assert xy.shape == (0, 2)
        assert len(radii) == 0
        assert colors == []

    def test_mirrors_reconciler(self):
        reg = VisualRegistry()
        state = StarfieldState.create(StarConfig(seed=4, target_count=300))
        rec = PopulationReconciler(state, render=reg, verbose=False)
        rec.rebuild()
        rec.apply_delta(-100)
        rec.apply_delta(50)
        assert sorted(reg.visuals) == list(range(len(state.store)))
        xy, radii, _ = reg.arrays()
        np.testing.assert_array_equal(xy, state.store.xy)
        np.testing.assert_array_equal(radii, state.store.radii)


def test_marker_sizes_have_a_floor():
    fig, ax = plt.subplots()
    ax.set_xlim(-1e6, 1e6)
    sizes = marker_sizes(ax, np.array([1.0, 1e5]))
    assert sizes[0] == pytest.approx(MIN_MARKER_PT ** 2)
    assert sizes[1] > sizes[0]
    plt.close(fig)


def test_draw_starfield_figure():
    state = StarfieldState.create(StarConfig(seed=4, target_count=200))
    PopulationReconciler(state, verbose=False).rebuild()
    fig = draw_starfield(state.store)
    assert f"{len(state.store):,} stars" in fig.axes[0].get_title()
    assert len(fig.axes[0].collections) == 1
    plt.close(fig)


class _Key:
    def __init__(self, key):
        self.key = key


def test_viewer_handles_keys_headless():
    viewer = StarViewer(StarConfig(seed=6, target_count=150), verbose=False)
    viewer.start(show=False)
    assert len(viewer.registry) == len(viewer.state.store)

    viewer._on_key(_Key("up"))
    assert viewer.reconciler.current_target_count() == 1_150
    assert len(viewer._scatter.get_offsets()) == len(viewer.state.store)

    viewer._on_key(_Key("e"))
    assert viewer.session.camera.scale < 1.0
    assert "stars" in viewer._status.get_text()

    viewer._on_key(_Key("escape"))
    assert not plt.fignum_exists(viewer.fig.number)
