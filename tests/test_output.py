"""Tests for frame persistence, snapshot images, presenters and the CLI."""

from __future__ import annotations

import io
import json
import os
from pathlib import Path

import numpy as np
import pytest

from core_engine.constants import DEFAULT_PALETTE, DisplayConfig
from main import main, parse_args
from simulation.io_manager import load_frame, save_frame
from visualization.plotter import plot_render_times, render_frame_figure, save_frame_image
from visualization.text_window import TerminalPresenter, TextWindow, fit_to_terminal


@pytest.fixture
def display() -> DisplayConfig:
    """A 40x10 cell window."""
    return DisplayConfig(
        width_px=320,
        height_px=160,
        cell_width_px=8,
        cell_height_px=16,
        fps=30.0,
        background="black",
        foreground="white",
    )


@pytest.fixture
def palette_frame() -> str:
    """Every palette glyph, with an odd number of dollar signs."""
    return f"  {DEFAULT_PALETTE}  \n $ {DEFAULT_PALETTE[::-1]} "


class TestFrameIO:
    """Text + JSON frame dumps."""

    def test_save_and_load(self, tmp_path: Path) -> None:
        text = "  ..\n.##.\n ## "
        metadata = {
            "frames": np.int64(3),
            "mean_render_ms": np.float64(1.5),
            "camera_position": np.array([0.0, 0.0, 0.05]),
            "strategy": "parallel",
            "size": (4, 3),
        }
        paths = save_frame(tmp_path / "out", text, metadata)
        assert [p.name for p in paths] == ["frame.txt", "metadata.json"]

        loaded_text, loaded_meta = load_frame(tmp_path / "out")
        assert loaded_text == text
        assert loaded_meta["frames"] == 3
        assert loaded_meta["camera_position"] == [0.0, 0.0, 0.05]
        assert loaded_meta["size"] == [4, 3]

    def test_metadata_is_plain_json(self, tmp_path: Path) -> None:
        save_frame(tmp_path, "x", {"flag": np.bool_(True)})
        with open(tmp_path / "metadata.json", "r", encoding="utf-8") as f:
            assert json.load(f) == {"flag": True}

    def test_load_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_frame(tmp_path / "missing")


class TestPlotter:
    """Offscreen PNG output."""

    def test_frame_image_written(self, tmp_path: Path) -> None:
        path = save_frame_image(
            "..::\n::..", tmp_path / "img" / "frame.png", width_px=160, height_px=80, glyph_size=16.0
        )
        assert path.exists()
        assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"

    def test_frame_figure_with_overlay(self) -> None:
        overlay = np.zeros((4, 6, 3), dtype=np.uint8)
        fig = render_frame_figure("ab\ncd", 120, 60, 12.0, overlay=overlay)
        ax = fig.axes[0]
        assert len(ax.images) == 1
        assert ax.texts[0].get_text() == "ab\ncd"

    def test_dollar_signs_drawn_literally(self, palette_frame: str) -> None:
        fig = render_frame_figure(palette_frame, 320, 160, 16.0)
        fig.canvas.draw()
        assert fig.axes[0].texts[0].get_text() == palette_frame

    def test_frame_image_with_dollar_signs(self, tmp_path: Path) -> None:
        path = save_frame_image(
            "  ..##$$@@  \n  ..##$@@   ", tmp_path / "f.png", width_px=160, height_px=64, glyph_size=16.0
        )
        assert path.exists()

    def test_render_times_plot(self, tmp_path: Path) -> None:
        path = tmp_path / "times.png"
        plot_render_times([0.010, 0.012, 0.011], output_path=path)
        assert path.exists()


@pytest.mark.filterwarnings("ignore::UserWarning")
class TestTextWindow:
    """Matplotlib text window on the Agg canvas."""

    def test_draws_full_palette(self, display: DisplayConfig, palette_frame: str) -> None:
        window = TextWindow(display, title="test", control_keys=["w", "s"])
        try:
            window.clear(display.background)
            window.draw_text(palette_frame, display.glyph_size)
            window.present()
            window.figure.canvas.draw()
            assert window.figure.axes[0].texts[0].get_text() == palette_frame
        finally:
            window.close()
        assert not window.is_open

    def test_overlay_drawn_under_text(self, display: DisplayConfig) -> None:
        window = TextWindow(display)
        try:
            rgb = np.zeros((10, 40, 3), dtype=np.uint8)
            rgb[5, 20] = (255, 0, 0)
            window.draw_overlay(rgb)
            window.draw_overlay(rgb)
            window.draw_text("$@9", display.glyph_size)
            window.figure.canvas.draw()
            assert len(window.figure.axes[0].images) == 1
        finally:
            window.close()


class TestFitToTerminal:
    """Headless frames sized to the terminal."""

    def test_shrinks_to_small_terminal(self, display: DisplayConfig) -> None:
        fitted = fit_to_terminal(display, os.terminal_size((30, 6)))
        assert (fitted.columns, fitted.rows) == (30, 5)
        assert fitted.cell_width_px == display.cell_width_px
        assert fitted.cell_height_px == display.cell_height_px

    def test_large_terminal_keeps_display(self, display: DisplayConfig) -> None:
        assert fit_to_terminal(display, os.terminal_size((200, 60))) is display

    def test_degenerate_terminal_keeps_one_cell(self, display: DisplayConfig) -> None:
        fitted = fit_to_terminal(display, os.terminal_size((0, 0)))
        assert (fitted.columns, fitted.rows) == (1, 1)


class TestTerminalPresenter:
    """ANSI output without a TTY."""

    def test_frame_written_after_cursor_home(self) -> None:
        stream = io.StringIO()
        presenter = TerminalPresenter(stream=stream, interactive=False)
        with presenter:
            presenter.clear("black")
            presenter.draw_text("ab\ncd", 16.0)
            presenter.present()
        output = stream.getvalue()
        assert "\033[Hab\ncd\033[0m" in output
        assert output.endswith("\033[0m\033[?25h\n")

    def test_no_keys_without_tty(self) -> None:
        presenter = TerminalPresenter(stream=io.StringIO(), interactive=False)
        assert presenter.poll_keys() == set()
        assert not presenter.is_key_down("w")


class TestCli:
    """End-to-end run of the entry point."""

    def test_parse_defaults(self) -> None:
        args = parse_args([])
        assert args.strategy is None
        assert args.frames is None
        assert not args.headless

    def test_invalid_strategy_rejected(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--strategy", "gpu"])

    def test_headless_single_frame(self, tmp_path: Path) -> None:
        snapshot = tmp_path / "frame.png"
        out_dir = tmp_path / "out"
        code = main(
            [
                "--headless",
                "--frames",
                "1",
                "--strategy",
                "sequential",
                "--snapshot",
                str(snapshot),
                "--output",
                str(out_dir),
            ]
        )
        assert code == 0
        assert snapshot.exists()
        text, metadata = load_frame(out_dir)
        assert metadata["frames"] == 1
        assert metadata["strategy"] == "sequential"
        assert len(text.splitlines()) == metadata["rows"]
        assert (out_dir / "render_times.png").exists()
