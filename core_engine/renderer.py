"""Frame renderer: fills the character buffer one ray per cell.

Three interchangeable strategies produce the same buffer for the same
camera and scene:

- ``sequential``: compiled row-major loop.
- ``parallel``: Numba ``prange`` over the flat pixel index; Numba's thread
  pool (``NUMBA_NUM_THREADS``) runs the iterations.
- ``threaded``: a ``ThreadPoolExecutor`` runs the compiled row kernel
  (``nogil=True``) on chunks of rows; results are gathered by chunk start.

Every pixel writes exactly one slot of a preallocated index array, so the
result never depends on completion order.
"""

from __future__ import annotations

import logging
import math
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
from numba import njit, prange

from core_engine.camera import Camera, view_direction
from core_engine.constants import RENDER_STRATEGIES, DEFAULT_PALETTE, RendererConfig
from core_engine.framebuffer import FrameBuffer
from core_engine.primitives import Scene, build_scene
from core_engine.raytracer import DEFAULT_EPSILON, trace_palette_index
from core_engine.shading import DEFAULT_AMBIENT, DEFAULT_DIFFUSE, NO_HIT_CHAR, palette_array

logger = logging.getLogger(__name__)


# ===================================================================
# BUFFER-FILL KERNELS
# ===================================================================


@njit(cache=True, nogil=True, fastmath=False)
def fill_rows(
    position: np.ndarray,
    rotation: np.ndarray,
    scale_x: float,
    scale_y: float,
    distance: float,
    kinds: np.ndarray,
    params: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
    light_position: np.ndarray,
    ambient: float,
    diffuse: float,
    palette_length: int,
    total_rows: int,
    row_offset: int,
    out: np.ndarray,
) -> None:
    """Trace rows ``row_offset .. row_offset + out.shape[0]`` of a frame.

    Parameters
    ----------
    position, rotation : np.ndarray
        Camera position (3,) and rotation (3, 3).
    scale_x, scale_y, distance : float
        Viewport units per cell and projection distance.
    kinds, params : np.ndarray
        Packed scene.
    t_min, t_max, epsilon : float
        Valid ray range and intersection tolerance.
    light_position : np.ndarray
        Point light. Shape: (3,).
    ambient, diffuse : float
        Shading coefficients.
    palette_length : int
        Number of palette characters.
    total_rows : int
        Rows in the whole frame (for centering).
    row_offset : int
        Frame row of ``out[0]``.
    out : np.ndarray
        Receives palette indices (-1 for no hit). Shape: (n_rows, cols).
    """
    n_rows = out.shape[0]
    cols = out.shape[1]
    half_rows = total_rows // 2
    half_cols = cols // 2
    direction = np.empty(3, dtype=np.float64)

    for r in range(n_rows):
        y = row_offset + r - half_rows
        for c in range(cols):
            x = c - half_cols
            view_direction(rotation, float(x), float(y), scale_x, scale_y, distance, direction)
            out[r, c] = trace_palette_index(
                position, direction, kinds, params, t_min, t_max, epsilon,
                light_position, ambient, diffuse, palette_length,
            )


@njit(cache=True, parallel=True, fastmath=False)
def fill_buffer_parallel(
    position: np.ndarray,
    rotation: np.ndarray,
    scale_x: float,
    scale_y: float,
    distance: float,
    kinds: np.ndarray,
    params: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
    light_position: np.ndarray,
    ambient: float,
    diffuse: float,
    palette_length: int,
    out: np.ndarray,
) -> None:
    """Trace every cell of ``out`` with one ``prange`` task per pixel."""
    rows = out.shape[0]
    cols = out.shape[1]
    half_rows = rows // 2
    half_cols = cols // 2

    for i in prange(rows * cols):
        r = i // cols
        c = i - r * cols
        direction = np.empty(3, dtype=np.float64)
        view_direction(
            rotation, float(c - half_cols), float(r - half_rows), scale_x, scale_y, distance, direction
        )
        out[r, c] = trace_palette_index(
            position, direction, kinds, params, t_min, t_max, epsilon,
            light_position, ambient, diffuse, palette_length,
        )


# ===================================================================
# RENDER CONTEXT
# ===================================================================


@dataclass
class RenderContext:
    """Everything one frame needs, passed explicitly into the renderer.

    Attributes
    ----------
    camera : Camera
        Mutated by input between frames, never during a cast.
    scene : Scene
        Read-only primitives.
    buffer : FrameBuffer
        Overwritten every frame.
    light_position : np.ndarray
        Point light. Shape: (3,).
    palette : str
        Brightness characters, dimmest first.
    ambient, diffuse : float
        Shading coefficients.
    t_min, t_max : float
        Valid parametric range of primary rays.
    epsilon : float
        Intersection tolerance.
    strategy : str
        ``sequential``, ``parallel`` or ``threaded``.
    thread_chunk_rows : int
        Rows per task for the ``threaded`` strategy.
    """

    camera: Camera
    scene: Scene
    buffer: FrameBuffer
    light_position: np.ndarray = field(
        default_factory=lambda: np.array([2.0, 1.0, 0.0], dtype=np.float64)
    )
    palette: str = DEFAULT_PALETTE
    ambient: float = DEFAULT_AMBIENT
    diffuse: float = DEFAULT_DIFFUSE
    t_min: float = 1.0
    t_max: float = math.inf
    epsilon: float = DEFAULT_EPSILON
    strategy: str = "parallel"
    thread_chunk_rows: int = 8

    def __post_init__(self) -> None:
        self.light_position = np.asarray(self.light_position, dtype=np.float64).reshape(3)
        if self.strategy not in RENDER_STRATEGIES:
            raise ValueError(
                f"Unknown render strategy '{self.strategy}', expected one of {RENDER_STRATEGIES}"
            )
        self._palette_chars = palette_array(self.palette)

    @classmethod
    def from_config(cls, config: RendererConfig) -> "RenderContext":
        return cls(
            camera=Camera.from_config(config.camera),
            scene=build_scene(config.scene),
            buffer=FrameBuffer.from_display(config.display),
            light_position=np.array(config.shading.light_position, dtype=np.float64),
            palette=config.shading.palette,
            ambient=config.shading.ambient,
            diffuse=config.shading.diffuse,
            t_min=config.render.t_min,
            epsilon=config.render.epsilon,
            strategy=config.render.strategy,
            thread_chunk_rows=config.render.thread_chunk_rows,
        )

    @property
    def palette_chars(self) -> np.ndarray:
        return self._palette_chars


# ===================================================================
# HIGH-LEVEL API
# ===================================================================


def compute_palette_indices(
    context: RenderContext,
    strategy: str | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> np.ndarray:
    """Trace the whole frame and return per-cell palette indices.

    Parameters
    ----------
    context : RenderContext
        Camera, scene and shading parameters.
    strategy : str, optional
        Overrides ``context.strategy`` for this call.
    executor : ThreadPoolExecutor, optional
        Pool for the ``threaded`` strategy. A temporary pool bounded by
        ``os.cpu_count()`` is created when omitted.

    Returns
    -------
    np.ndarray
        Palette index per cell, -1 where no primitive was hit.
        Shape: (rows, cols), dtype int64.
    """
    strategy = strategy or context.strategy
    if strategy not in RENDER_STRATEGIES:
        raise ValueError(f"Unknown render strategy '{strategy}', expected one of {RENDER_STRATEGIES}")

    rows, cols = context.buffer.shape
    camera = context.camera.snapshot()
    scale_x, scale_y = camera.scale_factors(cols, rows)
    scene = context.scene
    palette_length = len(context.palette)

    indices = np.full((rows, cols), -1, dtype=np.int64)
    if len(scene) == 0:
        return indices

    common = (
        camera.position,
        camera.rotation,
        scale_x,
        scale_y,
        camera.projection_distance,
        scene.kinds,
        scene.params,
        float(context.t_min),
        float(context.t_max),
        float(context.epsilon),
        context.light_position,
        float(context.ambient),
        float(context.diffuse),
        palette_length,
    )

    if strategy == "parallel":
        fill_buffer_parallel(*common, indices)
    elif strategy == "sequential":
        fill_rows(*common, rows, 0, indices)
    else:
        chunk = max(1, int(context.thread_chunk_rows))

        def _task(row_start: int) -> tuple[int, np.ndarray]:
            row_end = min(rows, row_start + chunk)
            local = np.empty((row_end - row_start, cols), dtype=np.int64)
            fill_rows(*common, rows, row_start, local)
            return row_start, local

        created = executor is None
        pool = executor or ThreadPoolExecutor(max_workers=os.cpu_count() or 2)
        try:
            results = list(pool.map(_task, range(0, rows, chunk)))
        finally:
            if created:
                pool.shutdown(wait=True)

        results.sort(key=lambda item: item[0])
        for row_start, local in results:
            indices[row_start : row_start + local.shape[0]] = local

    return indices


def render_frame(
    context: RenderContext,
    strategy: str | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> FrameBuffer:
    """Render one frame into ``context.buffer`` and return it.

    Cells whose ray hits nothing receive a space.
    """
    start = time.perf_counter()
    indices = compute_palette_indices(context, strategy=strategy, executor=executor)

    chars = np.full(indices.shape, NO_HIT_CHAR, dtype="<U1")
    hit = indices >= 0
    chars[hit] = context.palette_chars[indices[hit]]
    context.buffer.write(chars)

    logger.debug(
        "Frame rendered (%s): %dx%d cells, %.1f%% covered, %.2f ms",
        strategy or context.strategy,
        context.buffer.cols,
        context.buffer.rows,
        100.0 * float(hit.mean()),
        (time.perf_counter() - start) * 1e3,
    )
    return context.buffer


def trace_ray(
    context: RenderContext,
    origin: np.ndarray,
    direction: np.ndarray,
) -> str:
    """Trace a single ray through the context's scene and shade it."""
    index = trace_palette_index(
        np.asarray(origin, dtype=np.float64),
        np.asarray(direction, dtype=np.float64),
        context.scene.kinds,
        context.scene.params,
        float(context.t_min),
        float(context.t_max),
        float(context.epsilon),
        context.light_position,
        float(context.ambient),
        float(context.diffuse),
        len(context.palette),
    )
    if index < 0:
        return NO_HIT_CHAR
    return context.palette[index]
