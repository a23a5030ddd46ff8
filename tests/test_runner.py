"""Tests for the tick loop, input mapping and frame clock."""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pytest

from core_engine.camera import Camera
from core_engine.constants import load_config
from core_engine.framebuffer import FrameBuffer
from core_engine.primitives import Scene, Sphere
from core_engine.renderer import RenderContext
from simulation.clock import FrameClock
from simulation.life_overlay import LifeOverlay
from simulation.runner import FrameRunner, NoInput, apply_input


# ===================================================================
# FAKES
# ===================================================================


class RecordingPresenter:
    """Presenter that records every call and closes after N frames."""

    def __init__(self, close_after: int | None = None) -> None:
        self.calls: list[str] = []
        self.texts: list[str] = []
        self.presented = 0
        self._close_after = close_after

    @property
    def is_open(self) -> bool:
        return self._close_after is None or self.presented < self._close_after

    def clear(self, background: str) -> None:
        self.calls.append("clear")

    def draw_text(self, text: str, glyph_size: float) -> None:
        self.calls.append("draw_text")
        self.texts.append(text)

    def draw_overlay(self, rgb: np.ndarray) -> None:
        self.calls.append("draw_overlay")

    def present(self) -> None:
        self.calls.append("present")
        self.presented += 1


class HeldKeys:
    def __init__(self, *keys: str) -> None:
        self._keys = set(keys)

    def is_key_down(self, key: str) -> bool:
        return key in self._keys


class FixedClock:
    """Clock that advances a fixed delta per tick."""

    def __init__(self, delta: float = 0.05) -> None:
        self._delta = delta
        self.fps = 1.0 / delta

    def tick(self) -> float:
        return self._delta


class ManualTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.slept: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


# ===================================================================
# FIXTURES
# ===================================================================


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def small_context() -> RenderContext:
    return RenderContext(
        camera=Camera(),
        scene=Scene([Sphere([0.0, 0.0, 5.0], 1.0)]),
        buffer=FrameBuffer(9, 16),
        strategy="sequential",
    )


# ===================================================================
# INPUT MAPPING
# ===================================================================


class TestApplyInput:
    """Key state drives the camera."""

    def test_no_keys_no_motion(self, config) -> None:
        camera = Camera()
        assert apply_input(camera, NoInput(), config.controls) == []
        np.testing.assert_array_equal(camera.position, [0.0, 0.0, 0.0])

    def test_forward_and_strafe(self, config) -> None:
        camera = Camera()
        applied = apply_input(camera, HeldKeys("w", "d"), config.controls)
        assert applied == ["move_forward", "strafe_right"]
        np.testing.assert_allclose(camera.position, [0.05, 0.0, 0.05])

    def test_rotate_keys(self, config) -> None:
        camera = Camera()
        apply_input(camera, HeldKeys("e"), config.controls)
        assert camera.forward[0] > 0.0
        apply_input(camera, HeldKeys("q"), config.controls)
        apply_input(camera, HeldKeys("q"), config.controls)
        assert camera.forward[0] < 0.0

    def test_opposite_keys_cancel(self, config) -> None:
        camera = Camera()
        apply_input(camera, HeldKeys("w", "s"), config.controls)
        np.testing.assert_allclose(camera.position, [0.0, 0.0, 0.0], atol=1e-15)


# ===================================================================
# FRAME RUNNER
# ===================================================================


class TestFrameRunner:
    """Tick ordering and loop termination."""

    def test_tick_order(self, config, small_context) -> None:
        presenter = RecordingPresenter()
        overlay = LifeOverlay(4, 4)
        runner = FrameRunner(
            config, presenter, context=small_context, clock=FixedClock(), overlay=overlay
        )
        runner.tick()
        assert presenter.calls == ["clear", "draw_text", "draw_overlay", "present"]

    def test_frames_limit(self, config, small_context) -> None:
        presenter = RecordingPresenter()
        runner = FrameRunner(config, presenter, context=small_context, clock=FixedClock())
        stats = runner.run(max_frames=3)
        assert stats.frames == 3
        assert presenter.presented == 3
        assert len(stats.render_times_s) == 3
        assert stats.overlay_generations == 0

    def test_stops_when_presenter_closes(self, config, small_context) -> None:
        presenter = RecordingPresenter(close_after=2)
        runner = FrameRunner(config, presenter, context=small_context, clock=FixedClock())
        stats = runner.run()
        assert stats.frames == 2

    def test_frame_text_matches_buffer(self, config, small_context) -> None:
        presenter = RecordingPresenter()
        runner = FrameRunner(config, presenter, context=small_context, clock=FixedClock())
        runner.run(max_frames=1)
        assert presenter.texts[-1] == runner.buffer.to_text()
        assert "#" in presenter.texts[-1]

    def test_input_applied_before_cast(self, config, small_context) -> None:
        presenter = RecordingPresenter()
        runner = FrameRunner(
            config, presenter, input_source=HeldKeys("w"), context=small_context, clock=FixedClock()
        )
        runner.run(max_frames=4)
        assert small_context.camera.position[2] == pytest.approx(0.2)

    def test_overlay_advances_with_time(self, config, small_context) -> None:
        presenter = RecordingPresenter()
        overlay = LifeOverlay(4, 4, interval_s=0.125)
        runner = FrameRunner(
            config, presenter, context=small_context, clock=FixedClock(0.25), overlay=overlay
        )
        stats = runner.run(max_frames=4)
        assert stats.overlay_generations == 8

    def test_overlay_built_from_config(self, config, small_context) -> None:
        config = replace(config, overlay=replace(config.overlay, enabled=True, rows=6, columns=8))
        runner = FrameRunner(config, RecordingPresenter(), context=small_context, clock=FixedClock())
        assert runner.overlay is not None
        assert runner.overlay.pixels.shape == (6, 8, 3)

    def test_threaded_strategy_runs(self, config, small_context) -> None:
        small_context.strategy = "threaded"
        presenter = RecordingPresenter()
        runner = FrameRunner(config, presenter, context=small_context, clock=FixedClock())
        stats = runner.run(max_frames=2)
        assert stats.frames == 2

    def test_keyboard_interrupt_ends_run(self, config, small_context) -> None:
        class InterruptingPresenter(RecordingPresenter):
            def present(self) -> None:
                super().present()
                if self.presented == 2:
                    raise KeyboardInterrupt

        runner = FrameRunner(
            config, InterruptingPresenter(), context=small_context, clock=FixedClock()
        )
        stats = runner.run(max_frames=10)
        assert stats.frames == 1

    def test_negative_frames_rejected(self, config, small_context) -> None:
        runner = FrameRunner(config, RecordingPresenter(), context=small_context, clock=FixedClock())
        with pytest.raises(ValueError):
            runner.run(max_frames=-1)


# ===================================================================
# FRAME CLOCK
# ===================================================================


class TestFrameClock:
    """Delta time and FPS smoothing."""

    def test_delta_and_fps(self) -> None:
        fake = ManualTime()
        clock = FrameClock(time_source=fake, sleep=fake.sleep)
        fake.now = 0.5
        assert clock.tick() == pytest.approx(0.5)
        assert clock.fps == pytest.approx(2.0)

    def test_fps_smoothing(self) -> None:
        fake = ManualTime()
        clock = FrameClock(time_source=fake, sleep=fake.sleep)
        fake.now = 0.5
        clock.tick()
        fake.now = 0.75
        clock.tick()
        assert clock.fps == pytest.approx(0.85 * 2.0 + 0.15 * 4.0)

    def test_frame_limit_sleeps(self) -> None:
        fake = ManualTime()
        clock = FrameClock(target_fps=10.0, time_source=fake, sleep=fake.sleep)
        fake.now = 0.04
        delta = clock.tick()
        assert len(fake.slept) == 1
        assert fake.slept[0] == pytest.approx(0.06)
        assert delta == pytest.approx(0.1)

    def test_invalid_target(self) -> None:
        with pytest.raises(ValueError):
            FrameClock(target_fps=0.0)
