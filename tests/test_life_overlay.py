"""Tests for the Game-of-Life overlay."""

from __future__ import annotations

import numpy as np
import pytest

from core_engine.constants import OverlayConfig
from simulation.life_overlay import ALIVE_COLOR, LifeOverlay


def _alive_cells(overlay: LifeOverlay) -> set[tuple[int, int]]:
    rows, cols = np.nonzero(overlay.alive)
    return set(zip(rows.tolist(), cols.tolist()))


class TestRules:
    """Classic patterns under dead-edge boundaries."""

    def test_blinker_oscillates(self) -> None:
        overlay = LifeOverlay(5, 5)
        overlay.set_alive([(2, 1), (2, 2), (2, 3)])
        overlay.step()
        assert _alive_cells(overlay) == {(1, 2), (2, 2), (3, 2)}
        overlay.step()
        assert _alive_cells(overlay) == {(2, 1), (2, 2), (2, 3)}

    def test_block_is_still_life(self) -> None:
        overlay = LifeOverlay(4, 4)
        overlay.set_alive([(1, 1), (1, 2), (2, 1), (2, 2)])
        for _ in range(3):
            overlay.step()
        assert _alive_cells(overlay) == {(1, 1), (1, 2), (2, 1), (2, 2)}

    def test_block_in_corner_survives(self) -> None:
        """Out-of-grid neighbours count as dead, not wrapped."""
        overlay = LifeOverlay(6, 6)
        overlay.set_alive([(0, 0), (0, 1), (1, 0), (1, 1)])
        overlay.step()
        assert _alive_cells(overlay) == {(0, 0), (0, 1), (1, 0), (1, 1)}

    def test_edge_blinker_does_not_wrap(self) -> None:
        overlay = LifeOverlay(5, 5)
        overlay.set_alive([(0, 1), (0, 2), (0, 3)])
        overlay.step()
        assert _alive_cells(overlay) == {(0, 2), (1, 2)}

    def test_lonely_cell_dies(self) -> None:
        overlay = LifeOverlay(3, 3)
        overlay.set_alive([(1, 1)])
        overlay.step()
        assert not overlay.alive.any()

    def test_alive_means_exact_sentinel_color(self) -> None:
        overlay = LifeOverlay(2, 2)
        overlay.pixels[0, 0] = [255, 0, 1]
        overlay.pixels[1, 1] = ALIVE_COLOR
        assert _alive_cells(overlay) == {(1, 1)}


class TestCadence:
    """Generations advance on accumulated time."""

    def test_partial_interval_does_not_step(self) -> None:
        overlay = LifeOverlay(3, 3, interval_s=0.25)
        assert overlay.update(0.125) == 0
        assert overlay.generation == 0
        assert overlay.update(0.125) == 1
        assert overlay.generation == 1

    def test_long_frame_runs_every_due_generation(self) -> None:
        overlay = LifeOverlay(3, 3, interval_s=0.25)
        assert overlay.update(0.75) == 3
        assert overlay.update(0.0) == 0

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            LifeOverlay(3, 3, interval_s=0.0)


class TestSeeding:
    """Random seeding is reproducible."""

    def test_same_seed_same_grid(self) -> None:
        a = LifeOverlay(20, 30)
        b = LifeOverlay(20, 30)
        a.seed_random(0.3, seed=7)
        b.seed_random(0.3, seed=7)
        np.testing.assert_array_equal(a.pixels, b.pixels)
        assert a.alive.any()

    def test_from_config(self) -> None:
        config = OverlayConfig(
            enabled=True, interval_s=0.1, columns=12, rows=8, seed_density=1.0, seed=1
        )
        overlay = LifeOverlay.from_config(config)
        assert overlay.pixels.shape == (8, 12, 3)
        assert overlay.alive.all()

    def test_density_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            LifeOverlay(3, 3).seed_random(-0.1)
