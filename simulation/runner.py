"""Frame runner: the per-tick loop of the interactive renderer.

Each tick runs, strictly in this order:
1. Clock tick (delta time, smoothed FPS)
2. Input polling, applied to the camera
3. Cast phase: render the frame buffer from a camera snapshot
4. Overlay update (Game of Life cadence)
5. Presentation (clear, text, optional overlay, present)

Camera mutation always completes before the cast phase begins, and the cast
phase joins before presentation.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from core_engine.camera import Camera
from core_engine.constants import ControlsConfig, RendererConfig
from core_engine.framebuffer import FrameBuffer
from core_engine.renderer import RenderContext, render_frame
from simulation.clock import FrameClock
from simulation.life_overlay import LifeOverlay

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Collaborator Interfaces
# ---------------------------------------------------------------------------


class InputSource(Protocol):
    def is_key_down(self, key: str) -> bool: ...


class Presenter(Protocol):
    @property
    def is_open(self) -> bool: ...

    def clear(self, background: str) -> None: ...

    def draw_text(self, text: str, glyph_size: float) -> None: ...

    def draw_overlay(self, rgb: np.ndarray) -> None: ...

    def present(self) -> None: ...


class NoInput:
    """Input source with no keys pressed (headless runs)."""

    def is_key_down(self, key: str) -> bool:
        return False


# ---------------------------------------------------------------------------
# Input Mapping
# ---------------------------------------------------------------------------


def apply_input(camera: Camera, source: InputSource, controls: ControlsConfig) -> list[str]:
    """Apply every held movement key to the camera.

    Returns
    -------
    list[str]
        Names of the camera actions that were applied, in application order.
    """
    actions = [
        (controls.forward, "move_forward"),
        (controls.backward, "move_backward"),
        (controls.strafe_left, "strafe_left"),
        (controls.strafe_right, "strafe_right"),
        (controls.rotate_left, "rotate_left"),
        (controls.rotate_right, "rotate_right"),
    ]
    applied: list[str] = []
    for key, action in actions:
        if source.is_key_down(key):
            getattr(camera, action)()
            applied.append(action)
    return applied


# ---------------------------------------------------------------------------
# Run Statistics
# ---------------------------------------------------------------------------


@dataclass
class RunStats:
    """Summary of a run.

    Attributes
    ----------
    frames : int
        Frames rendered.
    wall_time_s : float
        Total wall-clock time.
    render_times_s : list[float]
        Cast-phase duration of each frame.
    final_fps : float
        Smoothed FPS at the end of the run.
    overlay_generations : int
        Game-of-Life generations advanced (0 when disabled).
    """

    frames: int = 0
    wall_time_s: float = 0.0
    render_times_s: list[float] = field(default_factory=list)
    final_fps: float = 0.0
    overlay_generations: int = 0

    @property
    def mean_render_ms(self) -> float:
        if not self.render_times_s:
            return 0.0
        return 1e3 * float(np.mean(self.render_times_s))


# ---------------------------------------------------------------------------
# Frame Runner
# ---------------------------------------------------------------------------


class FrameRunner:
    """Drives the tick loop for a render context.

    Parameters
    ----------
    config : RendererConfig
        Full renderer configuration.
    presenter : Presenter
        Window or terminal that shows each frame.
    input_source : InputSource, optional
        Keyboard state. Default: no keys pressed.
    context : RenderContext, optional
        Pre-built context. Default: built from ``config``.
    clock : FrameClock, optional
        Default: a clock limited to ``config.display.fps``.
    overlay : LifeOverlay, optional
        Default: built from ``config.overlay`` when enabled.
    """

    def __init__(
        self,
        config: RendererConfig,
        presenter: Presenter,
        input_source: InputSource | None = None,
        context: RenderContext | None = None,
        clock: FrameClock | None = None,
        overlay: LifeOverlay | None = None,
    ) -> None:
        self._config = config
        self._presenter = presenter
        self._input = input_source if input_source is not None else NoInput()
        self._context = context if context is not None else RenderContext.from_config(config)
        self._clock = clock if clock is not None else FrameClock(target_fps=config.display.fps)
        if overlay is None and config.overlay.enabled:
            overlay = LifeOverlay.from_config(config.overlay)
        self._overlay = overlay

        logger.info(
            "FrameRunner initialized: %dx%d cells, strategy=%s, overlay=%s",
            self._context.buffer.cols,
            self._context.buffer.rows,
            self._context.strategy,
            "on" if self._overlay is not None else "off",
        )

    @property
    def context(self) -> RenderContext:
        return self._context

    @property
    def buffer(self) -> FrameBuffer:
        return self._context.buffer

    @property
    def overlay(self) -> LifeOverlay | None:
        return self._overlay

    def tick(self, executor: ThreadPoolExecutor | None = None) -> float:
        """Run one full tick and return its cast-phase duration in seconds."""
        delta = self._clock.tick()

        applied = apply_input(self._context.camera, self._input, self._config.controls)
        if applied:
            logger.debug("Input: %s", ", ".join(applied))

        cast_start = time.perf_counter()
        render_frame(self._context, executor=executor)
        cast_s = time.perf_counter() - cast_start

        if self._overlay is not None:
            self._overlay.update(delta)

        display = self._config.display
        self._presenter.clear(display.background)
        self._presenter.draw_text(self._context.buffer.to_text(), display.glyph_size)
        if self._overlay is not None:
            self._presenter.draw_overlay(self._overlay.pixels)
        self._presenter.present()
        return cast_s

    def run(self, max_frames: int | None = None, log_every: int = 30) -> RunStats:
        """Tick until the presenter closes, ``max_frames`` is reached, or Ctrl-C.

        Parameters
        ----------
        max_frames : int, optional
            Stop after this many frames. Default: run until closed.
        log_every : int
            Log progress every N frames at INFO.

        Returns
        -------
        RunStats
        """
        if max_frames is not None and max_frames < 0:
            raise ValueError(f"max_frames must be non-negative, got {max_frames}")

        stats = RunStats()
        wall_start = time.perf_counter()
        executor = None
        if self._context.strategy == "threaded":
            executor = ThreadPoolExecutor(max_workers=os.cpu_count() or 2)

        logger.info(
            "Starting render loop (%s frames)",
            max_frames if max_frames is not None else "unlimited",
        )
        try:
            while self._presenter.is_open:
                if max_frames is not None and stats.frames >= max_frames:
                    break
                cast_s = self.tick(executor)
                stats.render_times_s.append(cast_s)
                stats.frames += 1

                if log_every > 0 and stats.frames % log_every == 0:
                    position = self._context.camera.position
                    logger.info(
                        "  Frame %d: fps=%.1f, cast=%.1f ms, camera=(%.2f, %.2f, %.2f)",
                        stats.frames,
                        self._clock.fps,
                        cast_s * 1e3,
                        position[0],
                        position[1],
                        position[2],
                    )
        except KeyboardInterrupt:
            logger.info("Interrupted after %d frames", stats.frames)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        stats.wall_time_s = time.perf_counter() - wall_start
        stats.final_fps = self._clock.fps
        if self._overlay is not None:
            stats.overlay_generations = self._overlay.generation

        logger.info(
            "Render loop finished: %d frames in %.2f s (mean cast %.1f ms)",
            stats.frames,
            stats.wall_time_s,
            stats.mean_render_ms,
        )
        return stats
