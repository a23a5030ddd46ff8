"""Presenters: where a rendered frame ends up.

- :class:`TextWindow` draws the frame as monospace text on a matplotlib
  figure and tracks key-down state from key press/release events.
- :class:`TerminalPresenter` writes the frame to a terminal with ANSI cursor
  control and polls single keystrokes from stdin in cbreak mode.

Both expose ``clear``, ``draw_text``, ``draw_overlay``, ``present``,
``is_open`` and ``is_key_down``.
"""

from __future__ import annotations

import logging
import os
import select
import shutil
import sys
from dataclasses import replace
from typing import IO, Iterable

import matplotlib.pyplot as plt
import numpy as np

from core_engine.constants import DisplayConfig

logger = logging.getLogger(__name__)

_OVERLAY_ALPHA = 0.35


def release_keymaps(keys: Iterable[str]) -> None:
    """Remove ``keys`` from matplotlib's built-in shortcuts (``s`` saves, ``q`` quits)."""
    keys = set(keys)
    for param in list(plt.rcParams):
        if param.startswith("keymap."):
            plt.rcParams[param] = [k for k in plt.rcParams[param] if k not in keys]


# ---------------------------------------------------------------------------
# Matplotlib Window
# ---------------------------------------------------------------------------


class TextWindow:
    """Live text window on a matplotlib figure.

    Parameters
    ----------
    display : DisplayConfig
        Window size, cell size and colours.
    title : str
        Window title.
    control_keys : Iterable[str]
        Keys to free from matplotlib's default shortcuts.
    """

    def __init__(
        self,
        display: DisplayConfig,
        title: str = "ASCII Raycaster",
        control_keys: Iterable[str] = (),
    ) -> None:
        release_keymaps(control_keys)

        dpi = 100
        self._display = display
        self._fig = plt.figure(
            figsize=(display.width_px / dpi, display.height_px / dpi),
            dpi=dpi,
            facecolor=display.background,
        )
        self._ax = self._fig.add_axes([0.0, 0.0, 1.0, 1.0])
        self._ax.set_axis_off()
        self._ax.set_xlim(0.0, 1.0)
        self._ax.set_ylim(0.0, 1.0)
        self._ax.set_facecolor(display.background)

        self._text = self._ax.text(
            0.0,
            1.0,
            "",
            family="monospace",
            color=display.foreground,
            ha="left",
            va="top",
            linespacing=1.0,
            parse_math=False,
            transform=self._ax.transAxes,
        )
        self._image = None
        self._keys: set[str] = set()
        self._open = True

        if self._fig.canvas.manager is not None:
            self._fig.canvas.manager.set_window_title(title)
        self._fig.canvas.mpl_connect("key_press_event", self._on_key_press)
        self._fig.canvas.mpl_connect("key_release_event", self._on_key_release)
        self._fig.canvas.mpl_connect("close_event", self._on_close)

        plt.show(block=False)
        logger.info("TextWindow opened: %dx%d px", display.width_px, display.height_px)

    @property
    def figure(self):
        return self._fig

    # Events -----------------------------------------------------------

    def _on_key_press(self, event) -> None:
        if event.key:
            self._keys.add(event.key.lower())

    def _on_key_release(self, event) -> None:
        if event.key:
            self._keys.discard(event.key.lower())

    def _on_close(self, event) -> None:
        self._open = False
        logger.info("TextWindow closed")

    # Input ------------------------------------------------------------

    def is_key_down(self, key: str) -> bool:
        return key.lower() in self._keys

    # Presentation -----------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    def clear(self, background: str) -> None:
        self._fig.set_facecolor(background)
        self._ax.set_facecolor(background)

    def draw_text(self, text: str, glyph_size: float) -> None:
        """Show ``text`` with one row per ``glyph_size`` pixels."""
        self._text.set_text(text)
        self._text.set_fontsize(glyph_size * 72.0 / self._fig.dpi)

    def draw_overlay(self, rgb: np.ndarray) -> None:
        """Blend an RGB pixel buffer over the whole window."""
        if self._image is None:
            self._image = self._ax.imshow(
                rgb,
                extent=(0.0, 1.0, 0.0, 1.0),
                origin="lower",
                interpolation="nearest",
                aspect="auto",
                alpha=_OVERLAY_ALPHA,
                zorder=0,
            )
        else:
            self._image.set_data(rgb)

    def present(self) -> None:
        self._fig.canvas.draw_idle()
        self._fig.canvas.flush_events()

    def close(self) -> None:
        plt.close(self._fig)
        self._open = False


# ---------------------------------------------------------------------------
# Terminal Presenter
# ---------------------------------------------------------------------------


def fit_to_terminal(display: DisplayConfig, size: os.terminal_size | None = None) -> DisplayConfig:
    """Shrink ``display`` so a frame fits the terminal without wrapping.

    One line stays free for the cursor. Cell size is kept, so the pixel
    resolution shrinks with the character grid.
    """
    if size is None:
        size = shutil.get_terminal_size()
    columns = max(1, min(display.columns, size.columns))
    rows = max(1, min(display.rows, size.lines - 1))
    if (columns, rows) == (display.columns, display.rows):
        return display
    logger.info(
        "Fitting frame to terminal: %dx%d -> %dx%d cells", display.columns, display.rows, columns, rows
    )
    return replace(
        display,
        width_px=columns * display.cell_width_px,
        height_px=rows * display.cell_height_px,
    )


class TerminalPresenter:
    """ANSI terminal output with non-blocking keystroke polling.

    Keys typed during a frame count as held for the next frame. Use as a
    context manager so the cursor and terminal mode are always restored.

    Parameters
    ----------
    stream : IO[str], optional
        Output stream. Default: ``sys.stdout``.
    interactive : bool
        Put stdin in cbreak mode and poll it for keys.
    """

    def __init__(self, stream: IO[str] | None = None, interactive: bool = True) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._interactive = interactive
        self._stdin_fd: int | None = None
        self._termios_before = None
        self._keys: set[str] = set()
        self._open = True

    def __enter__(self) -> "TerminalPresenter":
        self._stream.write("\033[2J\033[H\033[?25l")
        self._stream.flush()

        if self._interactive and sys.stdin.isatty():
            import termios
            import tty

            fd = sys.stdin.fileno()
            try:
                self._termios_before = termios.tcgetattr(fd)
                tty.setcbreak(fd)
                self._stdin_fd = fd
            except termios.error as exc:
                logger.warning("Keyboard input unavailable: %s", exc)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()

    def restore(self) -> None:
        self._stream.write("\033[0m\033[?25h\n")
        self._stream.flush()
        if self._stdin_fd is not None and self._termios_before is not None:
            import termios

            termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._termios_before)
        self._stdin_fd = None
        self._termios_before = None

    # Input ------------------------------------------------------------

    def poll_keys(self) -> set[str]:
        """Read every pending keystroke without blocking."""
        keys: set[str] = set()
        if self._stdin_fd is None:
            return keys
        while True:
            readable, _, _ = select.select([sys.stdin], [], [], 0)
            if not readable:
                break
            data = os.read(self._stdin_fd, 1)
            if not data:
                break
            char = data.decode("utf-8", errors="ignore")
            if char == "\x03":
                raise KeyboardInterrupt
            if char:
                keys.add(char.lower())
        return keys

    def is_key_down(self, key: str) -> bool:
        return key.lower() in self._keys

    # Presentation -----------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    def clear(self, background: str) -> None:
        self._stream.write("\033[H")

    def draw_text(self, text: str, glyph_size: float) -> None:
        self._stream.write(text)

    def draw_overlay(self, rgb: np.ndarray) -> None:
        # Terminals have no pixel layer to blend into.
        pass

    def present(self) -> None:
        self._stream.write("\033[0m")
        self._stream.flush()
        self._keys = self.poll_keys()

    def close(self) -> None:
        self._open = False
