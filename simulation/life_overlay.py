"""Game-of-Life overlay on an RGB pixel buffer.

The overlay keeps two ``(rows, cols, 3)`` uint8 buffers. A cell is alive
iff its color equals :data:`ALIVE_COLOR`. Each generation reads the current
buffer, writes the next state into the other one, and swaps them. Cells
outside the grid count as dead.

Generations advance on a fixed cadence driven by accumulated frame time,
independently of the render frame rate.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit, prange

from core_engine.constants import OverlayConfig

logger = logging.getLogger(__name__)

ALIVE_COLOR = np.array([255, 0, 0], dtype=np.uint8)
DEAD_COLOR = np.array([0, 0, 0], dtype=np.uint8)

DEFAULT_INTERVAL_S = 0.1


@njit(cache=True, fastmath=False)
def _is_alive(grid: np.ndarray, r: int, c: int) -> bool:
    return grid[r, c, 0] == 255 and grid[r, c, 1] == 0 and grid[r, c, 2] == 0


@njit(cache=True, parallel=True, fastmath=False)
def life_step(current: np.ndarray, out: np.ndarray) -> None:
    """Write the next generation of ``current`` into ``out``.

    Parameters
    ----------
    current : np.ndarray
        Current colors. Shape: (rows, cols, 3), dtype uint8.
    out : np.ndarray
        Receives the next generation. Same shape and dtype.
    """
    rows = current.shape[0]
    cols = current.shape[1]

    for r in prange(rows):
        for c in range(cols):
            neighbours = 0
            for dr in range(-1, 2):
                rr = r + dr
                if rr < 0 or rr >= rows:
                    continue
                for dc in range(-1, 2):
                    if dr == 0 and dc == 0:
                        continue
                    cc = c + dc
                    if cc < 0 or cc >= cols:
                        continue
                    if _is_alive(current, rr, cc):
                        neighbours += 1

            alive = _is_alive(current, r, c)
            if (alive and (neighbours == 2 or neighbours == 3)) or (not alive and neighbours == 3):
                out[r, c, 0] = 255
                out[r, c, 1] = 0
                out[r, c, 2] = 0
            else:
                out[r, c, 0] = 0
                out[r, c, 1] = 0
                out[r, c, 2] = 0


class LifeOverlay:
    """Double-buffered Game of Life advanced on a time cadence.

    Parameters
    ----------
    rows, cols : int
        Grid size in overlay pixels.
    interval_s : float
        Seconds of accumulated frame time per generation.
    """

    def __init__(self, rows: int, cols: int, interval_s: float = DEFAULT_INTERVAL_S) -> None:
        if rows < 1 or cols < 1:
            raise ValueError(f"Overlay grid must be at least 1x1, got {rows}x{cols}")
        if interval_s <= 0:
            raise ValueError(f"Overlay interval must be positive, got {interval_s}")
        self._current = np.zeros((rows, cols, 3), dtype=np.uint8)
        self._previous = np.zeros((rows, cols, 3), dtype=np.uint8)
        self._interval_s = float(interval_s)
        self._accumulated = 0.0
        self._generation = 0

    @classmethod
    def from_config(cls, config: OverlayConfig) -> "LifeOverlay":
        overlay = cls(config.rows, config.columns, config.interval_s)
        overlay.seed_random(config.seed_density, config.seed)
        return overlay

    @property
    def pixels(self) -> np.ndarray:
        """Current RGB buffer. Shape: (rows, cols, 3), dtype uint8."""
        return self._current

    @property
    def alive(self) -> np.ndarray:
        """Boolean mask of live cells. Shape: (rows, cols)."""
        return np.all(self._current == ALIVE_COLOR, axis=-1)

    @property
    def generation(self) -> int:
        return self._generation

    def set_alive(self, cells) -> None:
        """Mark ``(row, col)`` cells alive; everything else is left as is."""
        for r, c in cells:
            self._current[r, c] = ALIVE_COLOR

    def seed_random(self, density: float, seed: int | None = None) -> None:
        """Replace the grid with live cells drawn at the given density."""
        if not 0.0 <= density <= 1.0:
            raise ValueError(f"Seed density must be in [0, 1], got {density}")
        rng = np.random.default_rng(seed)
        mask = rng.random(self._current.shape[:2]) < density
        self._current[...] = DEAD_COLOR
        self._current[mask] = ALIVE_COLOR
        logger.debug("Overlay seeded: %d live cells (density=%.2f, seed=%s)", int(mask.sum()), density, seed)

    def step(self) -> None:
        """Advance exactly one generation."""
        life_step(self._current, self._previous)
        self._current, self._previous = self._previous, self._current
        self._generation += 1

    def update(self, delta_s: float) -> int:
        """Accumulate frame time and run every generation that became due.

        Returns
        -------
        int
            Number of generations advanced.
        """
        self._accumulated += max(0.0, delta_s)
        steps = 0
        while self._accumulated >= self._interval_s:
            self._accumulated -= self._interval_s
            self.step()
            steps += 1
        return steps
