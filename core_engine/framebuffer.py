"""Runtime-sized character grid for one rendered frame."""

from __future__ import annotations

import logging

import numpy as np

from core_engine.constants import DisplayConfig

logger = logging.getLogger(__name__)


class FrameBuffer:
    """A ``rows x cols`` grid of single characters.

    Row 0 holds the bottom of the image (``y = -rows // 2``), so
    :meth:`to_text` emits rows in reverse to print top-down.

    Parameters
    ----------
    rows, cols : int
        Grid size in character cells.
    fill : str
        Initial character of every cell.
    """

    def __init__(self, rows: int, cols: int, fill: str = " ") -> None:
        if rows < 1 or cols < 1:
            raise ValueError(f"FrameBuffer needs at least one cell, got {rows}x{cols}")
        if len(fill) != 1:
            raise ValueError(f"Fill must be a single character, got {fill!r}")
        self._cells = np.full((rows, cols), fill, dtype="<U1")

    @classmethod
    def from_display(cls, display: DisplayConfig) -> "FrameBuffer":
        """Size the grid from the window resolution and font cell size."""
        buffer = cls(display.rows, display.columns)
        logger.debug(
            "FrameBuffer %dx%d from %dx%d px (cell %dx%d px)",
            buffer.cols,
            buffer.rows,
            display.width_px,
            display.height_px,
            display.cell_width_px,
            display.cell_height_px,
        )
        return buffer

    @property
    def rows(self) -> int:
        return self._cells.shape[0]

    @property
    def cols(self) -> int:
        return self._cells.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self._cells.shape

    @property
    def cells(self) -> np.ndarray:
        """Read-only view of the grid. Shape: (rows, cols), dtype ``<U1``."""
        view = self._cells.view()
        view.setflags(write=False)
        return view

    def _check(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"Cell ({row}, {col}) outside {self.rows}x{self.cols} buffer")

    def get(self, row: int, col: int) -> str:
        self._check(row, col)
        return str(self._cells[row, col])

    def set(self, row: int, col: int, char: str) -> None:
        self._check(row, col)
        if len(char) != 1:
            raise ValueError(f"Cell value must be a single character, got {char!r}")
        self._cells[row, col] = char

    def center_cell(self) -> str:
        """Character at pixel offset (0, 0)."""
        return self.get(self.rows // 2, self.cols // 2)

    def at_offset(self, pixel_x: int, pixel_y: int) -> str:
        """Character at a pixel offset from the buffer center."""
        return self.get(pixel_y + self.rows // 2, pixel_x + self.cols // 2)

    def clear(self, fill: str = " ") -> None:
        self._cells.fill(fill)

    def write(self, chars: np.ndarray) -> None:
        """Overwrite the whole grid with an array of the same shape."""
        if chars.shape != self._cells.shape:
            raise ValueError(f"Shape mismatch: {chars.shape} != {self._cells.shape}")
        self._cells[...] = chars

    def to_text(self, bottom_up: bool = True) -> str:
        """Join rows with line breaks, top of the image first by default."""
        rows = self._cells[::-1] if bottom_up else self._cells
        return "\n".join("".join(row) for row in rows)

    def __str__(self) -> str:
        return self.to_text()
