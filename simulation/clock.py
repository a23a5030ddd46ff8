"""Frame clock: delta time per tick and a smoothed FPS estimate."""

from __future__ import annotations

import time
from typing import Callable

# Exponential smoothing weights for the FPS readout.
_FPS_KEEP = 0.85
_FPS_NEW = 0.15


class FrameClock:
    """Measures time between ticks.

    Parameters
    ----------
    target_fps : float, optional
        When set, :meth:`tick` sleeps so ticks are at least
        ``1 / target_fps`` seconds apart.
    time_source : callable, optional
        Monotonic clock in seconds. Default: ``time.perf_counter``.
    sleep : callable, optional
        Sleep function used for frame limiting. Default: ``time.sleep``.
    """

    def __init__(
        self,
        target_fps: float | None = None,
        time_source: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if target_fps is not None and target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")
        self._target_period = 1.0 / target_fps if target_fps else 0.0
        self._now = time_source
        self._sleep = sleep
        self._last = self._now()
        self._fps = 0.0
        self._frames = 0

    @property
    def fps(self) -> float:
        """Smoothed frames per second (0 before the first tick)."""
        return self._fps

    @property
    def frames(self) -> int:
        return self._frames

    def tick(self) -> float:
        """Advance one frame and return the seconds since the previous tick."""
        now = self._now()
        delta = now - self._last
        if self._target_period > 0.0 and delta < self._target_period:
            self._sleep(self._target_period - delta)
            now = self._now()
            delta = now - self._last
        self._last = now
        self._frames += 1

        if delta > 0.0:
            instant = 1.0 / delta
            self._fps = instant if self._fps == 0.0 else _FPS_KEEP * self._fps + _FPS_NEW * instant
        return delta
