"""Offscreen figures for rendered frames and run timings.

Generates PNG files using matplotlib's Agg canvas directly, so saving a
snapshot never touches the backend of an interactive window:
- Frame snapshot (text on the configured background, optional overlay)
- Cast-phase timing per frame
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Style Configuration
# ---------------------------------------------------------------------------

_DPI = 100
_PANEL_COLOR = "#0f0f1a"
_LINE_COLOR = "#51cf66"
_OVERLAY_ALPHA = 0.35


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_frame_figure(
    text: str,
    width_px: int,
    height_px: int,
    glyph_size: float,
    background: str = "black",
    foreground: str = "white",
    overlay: np.ndarray | None = None,
    dpi: int = _DPI,
) -> Figure:
    """Lay out a frame's text on a figure the size of the window.

    Parameters
    ----------
    text : str
        Frame text, top row first.
    width_px, height_px : int
        Output size in pixels.
    glyph_size : float
        Row height in pixels.
    background, foreground : str
        Matplotlib colours.
    overlay : np.ndarray, optional
        RGB pixel buffer blended over the frame. Shape: (rows, cols, 3).
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fig = Figure(figsize=(width_px / dpi, height_px / dpi), dpi=dpi, facecolor=background)
    FigureCanvasAgg(fig)

    ax = fig.add_axes([0.0, 0.0, 1.0, 1.0])
    ax.set_axis_off()
    ax.set_xlim(0.0, 1.0)
    ax.set_ylim(0.0, 1.0)

    if overlay is not None:
        ax.imshow(
            overlay,
            extent=(0.0, 1.0, 0.0, 1.0),
            origin="lower",
            interpolation="nearest",
            aspect="auto",
            alpha=_OVERLAY_ALPHA,
            zorder=0,
        )

    ax.text(
        0.0,
        1.0,
        text,
        family="monospace",
        fontsize=glyph_size * 72.0 / dpi,
        color=foreground,
        ha="left",
        va="top",
        linespacing=1.0,
        parse_math=False,
        transform=ax.transAxes,
    )
    return fig


def save_frame_image(
    text: str,
    output_path: Path | str,
    width_px: int,
    height_px: int,
    glyph_size: float,
    background: str = "black",
    foreground: str = "white",
    overlay: np.ndarray | None = None,
    dpi: int = _DPI,
) -> Path:
    """Render a frame's text to a PNG file.

    Returns
    -------
    Path
        The written file.
    """
    fig = render_frame_figure(
        text, width_px, height_px, glyph_size, background, foreground, overlay, dpi
    )
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
    logger.info("Frame image saved: %s", output_path)
    return output_path


def plot_render_times(
    render_times_s: np.ndarray | list[float],
    title: str = "Cast Phase per Frame",
    output_path: Path | str | None = None,
    dpi: int = _DPI,
) -> Figure:
    """Plot cast-phase duration against frame number.

    Parameters
    ----------
    render_times_s : array-like
        Cast-phase duration of each frame [s].
    title : str
        Figure title.
    output_path : Path or str, optional
        If provided, save figure to this path.
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
    """
    times_ms = 1e3 * np.asarray(render_times_s, dtype=np.float64)

    fig = Figure(figsize=(12, 4), facecolor=_PANEL_COLOR)
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(1, 1, 1)
    ax.set_facecolor(_PANEL_COLOR)

    frames = np.arange(1, times_ms.size + 1)
    ax.plot(frames, times_ms, color=_LINE_COLOR, linewidth=1.5, alpha=0.9)
    if times_ms.size:
        ax.axhline(float(times_ms.mean()), color="white", linestyle="--", linewidth=1.0, alpha=0.5)

    ax.set_xlabel("Frame", color="white", fontsize=12)
    ax.set_ylabel("Cast time [ms]", color="white", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold", color="white")
    ax.tick_params(colors="white")
    ax.grid(True, alpha=0.2, color="white")

    for spine in ax.spines.values():
        spine.set_edgecolor("#444")

    fig.tight_layout()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        logger.info("Render timing plot saved: %s", output_path)

    return fig
