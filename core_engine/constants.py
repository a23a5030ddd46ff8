"""Renderer configuration: typed dataclasses and YAML loader.

Every tunable of the renderer (output resolution, font cell size, camera
step sizes, shading coefficients, palette, scene layout, overlay cadence)
lives in a YAML file. This module turns that file into a validated,
immutable configuration tree.

Notes
-----
Vectors in the YAML file are plain 3-element lists and are converted to
``float64`` tuples here; the engine turns them into ``np.ndarray`` when it
builds the camera and scene.
"""

from __future__ import annotations

import hashlib
import logging
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numba
import numpy as np
import yaml

logger = logging.getLogger(__name__)

Vector3 = tuple[float, float, float]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "default_config.yaml"

# Palette ordered from dimmest to brightest.
DEFAULT_PALETTE = ".,:;*+ox%&#$@9"

RENDER_STRATEGIES = ("sequential", "parallel", "threaded")

# ---------------------------------------------------------------------------
# Configuration Data Classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DisplayConfig:
    """Output surface geometry.

    Attributes
    ----------
    width_px, height_px : int
        Window resolution in pixels.
    cell_width_px, cell_height_px : int
        Size of one monospace character cell. The height is roughly twice
        the width to compensate for glyph aspect.
    fps : float
        Target frame rate of the tick loop.
    background : str
        Clear colour passed to the presenter before each draw.
    foreground : str
        Text colour.
    """

    width_px: int
    height_px: int
    cell_width_px: int
    cell_height_px: int
    fps: float
    background: str
    foreground: str

    @property
    def columns(self) -> int:
        """Number of character columns in the frame buffer."""
        return self.width_px // self.cell_width_px

    @property
    def rows(self) -> int:
        """Number of character rows in the frame buffer."""
        return self.height_px // self.cell_height_px

    @property
    def glyph_size(self) -> float:
        """Font size (in pixels) for one buffer row."""
        return float(self.height_px) / float(max(1, self.rows))


@dataclass(frozen=True)
class CameraConfig:
    """Initial camera state and movement increments.

    Attributes
    ----------
    position : Vector3
        Starting world-space position.
    viewport_width, viewport_height : float
        Logical size of the projection plane.
    projection_distance : float
        Distance from the camera to the projection plane (``D``).
    move_step : float
        Translation per input tick [world units].
    rotate_step_rad : float
        Yaw increment per input tick [rad].
    """

    position: Vector3
    viewport_width: float
    viewport_height: float
    projection_distance: float
    move_step: float
    rotate_step_rad: float


@dataclass(frozen=True)
class ShadingConfig:
    """Lambertian shading parameters.

    Attributes
    ----------
    ambient : float
        Constant intensity floor.
    diffuse : float
        Weight of the cosine term.
    light_position : Vector3
        World-space point light position.
    palette : str
        Brightness characters, dimmest first.
    """

    ambient: float
    diffuse: float
    light_position: Vector3
    palette: str


@dataclass(frozen=True)
class RenderConfig:
    """Frame renderer settings.

    Attributes
    ----------
    strategy : str
        One of ``sequential``, ``parallel``, ``threaded``.
    t_min : float
        Near limit of the valid parametric range.
    epsilon : float
        Tolerance for parallel-plane rejection and face classification.
    thread_chunk_rows : int
        Rows per task for the ``threaded`` strategy.
    """

    strategy: str
    t_min: float
    epsilon: float
    thread_chunk_rows: int


@dataclass(frozen=True)
class OverlayConfig:
    """Game-of-Life overlay settings."""

    enabled: bool
    interval_s: float
    columns: int
    rows: int
    seed_density: float
    seed: int


@dataclass(frozen=True)
class ControlsConfig:
    """Key bindings polled once per tick."""

    forward: str
    backward: str
    strafe_left: str
    strafe_right: str
    rotate_left: str
    rotate_right: str


@dataclass(frozen=True)
class SphereSpec:
    center: Vector3
    radius: float


@dataclass(frozen=True)
class TriangleSpec:
    v1: Vector3
    v2: Vector3
    v3: Vector3


@dataclass(frozen=True)
class CuboidSpec:
    center: Vector3
    half_extents: Vector3


@dataclass(frozen=True)
class SceneConfig:
    """Primitive layout of the scene.

    Attributes
    ----------
    spheres : tuple[SphereSpec, ...]
        Always present.
    triangles : tuple[TriangleSpec, ...]
        Optional fixed triangles.
    cuboids : tuple[CuboidSpec, ...]
        Optional axis-aligned boxes.
    """

    spheres: tuple[SphereSpec, ...]
    triangles: tuple[TriangleSpec, ...] = ()
    cuboids: tuple[CuboidSpec, ...] = ()


@dataclass
class RendererConfig:
    """Top-level configuration loaded from YAML."""

    display: DisplayConfig
    camera: CameraConfig
    shading: ShadingConfig
    render: RenderConfig
    overlay: OverlayConfig
    controls: ControlsConfig
    scene: SceneConfig
    source: str = field(default="<defaults>")


# ---------------------------------------------------------------------------
# Configuration Loader
# ---------------------------------------------------------------------------


def _vec3(value: Any, name: str) -> Vector3:
    """Convert a YAML list into a float triple."""
    try:
        x, y, z = (float(c) for c in value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a list of three numbers, got {value!r}") from exc
    return (x, y, z)


def _parse_scene(raw: dict[str, Any]) -> SceneConfig:
    spheres = tuple(
        SphereSpec(center=_vec3(s["center"], "sphere.center"), radius=float(s["radius"]))
        for s in raw.get("spheres") or []
    )
    triangles = tuple(
        TriangleSpec(
            v1=_vec3(t["v1"], "triangle.v1"),
            v2=_vec3(t["v2"], "triangle.v2"),
            v3=_vec3(t["v3"], "triangle.v3"),
        )
        for t in raw.get("triangles") or []
    )
    cuboids = tuple(
        CuboidSpec(
            center=_vec3(c["center"], "cuboid.center"),
            half_extents=_vec3(c["half_extents"], "cuboid.half_extents"),
        )
        for c in raw.get("cuboids") or []
    )
    return SceneConfig(spheres=spheres, triangles=triangles, cuboids=cuboids)


def parse_config(raw: dict[str, Any], source: str = "<dict>") -> RendererConfig:
    """Build a validated configuration from an already-parsed mapping.

    Parameters
    ----------
    raw : dict
        Mapping with the same layout as ``core_engine/default_config.yaml``.
    source : str
        Label recorded on the result (usually the file path).

    Returns
    -------
    RendererConfig

    Raises
    ------
    KeyError
        If a required section or key is missing.
    ValueError
        If any value is invalid.
    """
    # --- Display ---
    disp = raw["display"]
    display = DisplayConfig(
        width_px=int(disp["resolution"]["width"]),
        height_px=int(disp["resolution"]["height"]),
        cell_width_px=int(disp["cell"]["width"]),
        cell_height_px=int(disp["cell"]["height"]),
        fps=float(disp["fps"]),
        background=str(disp["background"]),
        foreground=str(disp["foreground"]),
    )

    # --- Camera ---
    cam = raw["camera"]
    camera = CameraConfig(
        position=_vec3(cam["position"], "camera.position"),
        viewport_width=float(cam["viewport"]["width"]),
        viewport_height=float(cam["viewport"]["height"]),
        projection_distance=float(cam["projection_distance"]),
        move_step=float(cam["move_step"]),
        rotate_step_rad=float(cam["rotate_step_rad"]),
    )

    # --- Shading ---
    sh = raw["shading"]
    shading = ShadingConfig(
        ambient=float(sh["ambient"]),
        diffuse=float(sh["diffuse"]),
        light_position=_vec3(sh["light_position"], "shading.light_position"),
        palette=str(sh.get("palette", DEFAULT_PALETTE)),
    )

    # --- Render ---
    rd = raw["render"]
    render = RenderConfig(
        strategy=str(rd["strategy"]),
        t_min=float(rd["t_min"]),
        epsilon=float(rd["epsilon"]),
        thread_chunk_rows=int(rd["thread_chunk_rows"]),
    )

    # --- Overlay ---
    ov = raw["overlay"]
    overlay = OverlayConfig(
        enabled=bool(ov["enabled"]),
        interval_s=float(ov["interval_s"]),
        columns=int(ov["columns"]),
        rows=int(ov["rows"]),
        seed_density=float(ov["seed_density"]),
        seed=int(ov["seed"]),
    )

    # --- Controls ---
    ctl = raw["controls"]
    controls = ControlsConfig(
        forward=str(ctl["forward"]),
        backward=str(ctl["backward"]),
        strafe_left=str(ctl["strafe_left"]),
        strafe_right=str(ctl["strafe_right"]),
        rotate_left=str(ctl["rotate_left"]),
        rotate_right=str(ctl["rotate_right"]),
    )

    config = RendererConfig(
        display=display,
        camera=camera,
        shading=shading,
        render=render,
        overlay=overlay,
        controls=controls,
        scene=_parse_scene(raw["scene"]),
        source=source,
    )

    _validate_config(config)
    return config


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> RendererConfig:
    """Load and validate a renderer configuration from a YAML file.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file.

    Returns
    -------
    RendererConfig
        Fully populated, typed configuration object.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If values are invalid.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f)

    logger.info("Loading configuration from: %s", config_path)
    config = parse_config(raw, source=str(config_path))
    logger.info(
        "Configuration loaded: %dx%d cells, %d spheres, %d triangles, %d cuboids, strategy=%s",
        config.display.columns,
        config.display.rows,
        len(config.scene.spheres),
        len(config.scene.triangles),
        len(config.scene.cuboids),
        config.render.strategy,
    )
    return config


def _validate_config(config: RendererConfig) -> None:
    """Validate value constraints on a configuration.

    Raises
    ------
    ValueError
        If any value is invalid.
    """
    d = config.display
    if d.width_px <= 0 or d.height_px <= 0:
        raise ValueError(f"Resolution must be positive, got {d.width_px}x{d.height_px}")
    if d.cell_width_px <= 0 or d.cell_height_px <= 0:
        raise ValueError(
            f"Cell size must be positive, got {d.cell_width_px}x{d.cell_height_px}"
        )
    if d.columns < 1 or d.rows < 1:
        raise ValueError("Resolution is smaller than a single character cell.")
    if d.fps <= 0:
        raise ValueError(f"FPS must be positive, got {d.fps}")

    c = config.camera
    if c.viewport_width <= 0 or c.viewport_height <= 0:
        raise ValueError(
            f"Viewport must be positive, got {c.viewport_width}x{c.viewport_height}"
        )
    if c.projection_distance <= 0:
        raise ValueError("Projection distance must be positive.")
    if c.move_step <= 0 or c.rotate_step_rad <= 0:
        raise ValueError("Camera move and rotate steps must be positive.")

    if not config.shading.palette:
        raise ValueError("Shading palette cannot be empty.")
    if config.shading.ambient < 0 or config.shading.diffuse < 0:
        raise ValueError("Shading coefficients cannot be negative.")

    r = config.render
    if r.strategy not in RENDER_STRATEGIES:
        raise ValueError(
            f"Unknown render strategy '{r.strategy}', expected one of {RENDER_STRATEGIES}"
        )
    if r.t_min < 0:
        raise ValueError(f"t_min cannot be negative, got {r.t_min}")
    if r.epsilon <= 0:
        raise ValueError("Render epsilon must be positive.")
    if r.thread_chunk_rows < 1:
        raise ValueError("thread_chunk_rows must be >= 1.")

    o = config.overlay
    if o.interval_s <= 0:
        raise ValueError("Overlay interval must be positive.")
    if o.columns < 1 or o.rows < 1:
        raise ValueError("Overlay grid must have at least one cell.")
    if not (0.0 <= o.seed_density <= 1.0):
        raise ValueError(f"Overlay seed density must be in [0, 1], got {o.seed_density}")

    for s in config.scene.spheres:
        if s.radius <= 0:
            raise ValueError(f"Sphere radius must be positive, got {s.radius}")
    for cb in config.scene.cuboids:
        if min(cb.half_extents) <= 0:
            raise ValueError(f"Cuboid half extents must be positive, got {cb.half_extents}")

    logger.debug("Configuration validation passed.")


def log_platform_info() -> None:
    """Log platform and library version information."""
    logger.info("=" * 70)
    logger.info("PLATFORM INFORMATION")
    logger.info("=" * 70)
    logger.info("  Python:    %s", sys.version.split()[0])
    logger.info("  Platform:  %s", platform.platform())
    logger.info("  NumPy:     %s", np.__version__)
    logger.info("  Numba:     %s (%d threads)", numba.__version__, numba.config.NUMBA_NUM_THREADS)
    logger.info("=" * 70)


def hash_array(arr: np.ndarray) -> str:
    """SHA-256 digest of an array, used to compare rendered frames."""
    return hashlib.sha256(np.ascontiguousarray(arr).tobytes()).hexdigest()
