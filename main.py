"""ASCII Raycaster: CLI entry point.

Renders a scene of spheres, triangles and cuboids as live ASCII text.

Usage
-----
    python main.py                                  # matplotlib window, WASD + Q/E
    python main.py --headless                       # ANSI terminal output
    python main.py --headless --frames 1 --snapshot output/frame.png
    python main.py --strategy threaded --frames 120 --output output
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from core_engine.constants import DEFAULT_CONFIG_PATH, RENDER_STRATEGIES


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    fmt = "%(name)s [%(levelname)s] %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        stream=sys.stdout,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="ascii-raycaster",
        description="ASCII Raycaster: real-time ray-cast scene rendered as text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Controls:\n"
            "  W/S move forward/back, A/D strafe, Q/E rotate (configurable)\n"
            "\n"
            "Examples:\n"
            "  python main.py\n"
            "  python main.py --headless --strategy sequential\n"
            "  python main.py --headless --frames 1 --snapshot output/frame.png\n"
            "  python main.py --frames 300 --output output --log-level DEBUG\n"
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to renderer config YAML (default: the packaged core_engine/default_config.yaml)",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        choices=list(RENDER_STRATEGIES),
        help="Override the buffer-fill strategy (default: from config)",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=None,
        help="Stop after N frames (default: run until the window closes)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=False,
        help="Write frames to the terminal instead of opening a window",
    )
    parser.add_argument(
        "--overlay",
        action="store_true",
        default=False,
        help="Enable the Game-of-Life overlay",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Save the last frame as a PNG image",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Directory for frame.txt, metadata.json and the timing plot",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main renderer entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger = logging.getLogger("ascii_raycaster")
    logger.info("=" * 60)
    logger.info("  ASCII Raycaster")
    logger.info("=" * 60)

    from core_engine.constants import load_config, log_platform_info
    from simulation.runner import FrameRunner

    log_platform_info()

    config = load_config(Path(args.config))
    if args.strategy is not None:
        config = replace(config, render=replace(config.render, strategy=args.strategy))
    if args.overlay:
        config = replace(config, overlay=replace(config.overlay, enabled=True))

    controls = config.controls
    control_keys = [
        controls.forward,
        controls.backward,
        controls.strafe_left,
        controls.strafe_right,
        controls.rotate_left,
        controls.rotate_right,
    ]

    if args.headless:
        from visualization.text_window import TerminalPresenter, fit_to_terminal

        config = replace(config, display=fit_to_terminal(config.display))
        with TerminalPresenter() as presenter:
            runner = FrameRunner(config, presenter, input_source=presenter)
            stats = runner.run(max_frames=args.frames)
    else:
        from visualization.text_window import TextWindow

        window = TextWindow(config.display, control_keys=control_keys)
        runner = FrameRunner(config, window, input_source=window)
        stats = runner.run(max_frames=args.frames)
        window.close()

    saved: list[Path] = []
    text = runner.buffer.to_text()
    overlay_pixels = runner.overlay.pixels if runner.overlay is not None else None

    if args.snapshot:
        from visualization.plotter import save_frame_image

        display = config.display
        saved.append(
            save_frame_image(
                text,
                args.snapshot,
                width_px=display.width_px,
                height_px=display.height_px,
                glyph_size=display.glyph_size,
                background=display.background,
                foreground=display.foreground,
                overlay=overlay_pixels,
            )
        )

    if args.output:
        from simulation.io_manager import save_frame
        from visualization.plotter import plot_render_times

        output_dir = Path(args.output)
        camera = runner.context.camera
        metadata = {
            "config": config.source,
            "strategy": runner.context.strategy,
            "columns": runner.buffer.cols,
            "rows": runner.buffer.rows,
            "frames": stats.frames,
            "wall_time_s": stats.wall_time_s,
            "mean_render_ms": stats.mean_render_ms,
            "final_fps": stats.final_fps,
            "overlay_generations": stats.overlay_generations,
            "camera_position": camera.position,
            "camera_rotation": camera.rotation,
        }
        saved.extend(save_frame(output_dir, text, metadata))
        if stats.render_times_s:
            timing_path = output_dir / "render_times.png"
            plot_render_times(stats.render_times_s, output_path=timing_path)
            saved.append(timing_path)

    # Summary
    logger.info("=" * 60)
    logger.info("  RENDER COMPLETE")
    logger.info("=" * 60)
    logger.info("  Frames: %d (%.1f s wall time)", stats.frames, stats.wall_time_s)
    logger.info("  Mean cast: %.1f ms, final fps: %.1f", stats.mean_render_ms, stats.final_fps)
    if saved:
        logger.info("  Output files (%d):", len(saved))
        for p in saved:
            logger.info("    → %s", p)
    logger.info("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
