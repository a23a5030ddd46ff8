"""Pinhole camera: pixel-to-ray mapping and incremental movement.

A pixel ``(x, y)`` given as an integer offset from the buffer center maps
onto the projection plane at distance ``D`` in front of the camera:

    view = (x * Vw / cols, y * Vh / rows, D)
    direction = R @ view

where ``(Vw, Vh)`` is the viewport size, ``(cols, rows)`` the buffer size
and ``R`` the camera rotation. The ray starts at the camera position.

Movement is applied in the camera's local frame: forward is ``R @ +Z`` and
right is ``R @ +X``. Yaw composes ``R`` with a rotation about Y. Repeated
composition accumulates rounding error, so the matrix is projected back
onto the nearest orthonormal matrix after every update.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from numba import njit

from core_engine.constants import CameraConfig

logger = logging.getLogger(__name__)

DEFAULT_PROJECTION_DISTANCE: float = 1.0
DEFAULT_MOVE_STEP: float = 0.05
DEFAULT_ROTATE_STEP_RAD: float = 0.025

_FORWARD = np.array([0.0, 0.0, 1.0], dtype=np.float64)
_RIGHT = np.array([1.0, 0.0, 0.0], dtype=np.float64)


@dataclass(frozen=True)
class Viewport:
    """Logical projection-plane size, independent of the pixel grid."""

    width: float = 1.0
    height: float = 1.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must be positive, got {self.width}x{self.height}")


def rotation_y(angle_rad: float) -> np.ndarray:
    """3x3 rotation matrix about the +Y axis."""
    c = math.cos(angle_rad)
    s = math.sin(angle_rad)
    return np.array(
        [
            [c, 0.0, s],
            [0.0, 1.0, 0.0],
            [-s, 0.0, c],
        ],
        dtype=np.float64,
    )


def orthonormalize(matrix: np.ndarray) -> np.ndarray:
    """Nearest orthonormal matrix (polar decomposition via SVD)."""
    u, _, vt = np.linalg.svd(matrix)
    result = u @ vt
    # Keep a proper rotation (det = +1).
    if np.linalg.det(result) < 0.0:
        u[:, -1] *= -1.0
        result = u @ vt
    return result


@njit(cache=True, fastmath=False)
def view_direction(
    rotation: np.ndarray,
    pixel_x: float,
    pixel_y: float,
    scale_x: float,
    scale_y: float,
    distance: float,
    out: np.ndarray,
) -> None:
    """Rotate the viewport point of a pixel into world space.

    Parameters
    ----------
    rotation : np.ndarray
        Camera rotation. Shape: (3, 3).
    pixel_x, pixel_y : float
        Pixel offset from the buffer center.
    scale_x, scale_y : float
        ``viewport.width / cols`` and ``viewport.height / rows``.
    distance : float
        Projection-plane distance.
    out : np.ndarray
        Receives the world-space direction. Shape: (3,).
    """
    vx = pixel_x * scale_x
    vy = pixel_y * scale_y
    vz = distance
    for i in range(3):
        out[i] = rotation[i, 0] * vx + rotation[i, 1] * vy + rotation[i, 2] * vz


@dataclass
class Camera:
    """Camera state.

    Attributes
    ----------
    position : np.ndarray
        World-space position. Shape: (3,).
    rotation : np.ndarray
        Orthonormal orientation matrix. Shape: (3, 3).
    viewport : Viewport
        Projection-plane size.
    projection_distance : float
        Distance ``D`` to the projection plane.
    move_step : float
        Translation per movement call.
    rotate_step_rad : float
        Yaw per rotation call.
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=np.float64))
    viewport: Viewport = field(default_factory=Viewport)
    projection_distance: float = DEFAULT_PROJECTION_DISTANCE
    move_step: float = DEFAULT_MOVE_STEP
    rotate_step_rad: float = DEFAULT_ROTATE_STEP_RAD

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3).copy()
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3).copy()
        if self.projection_distance <= 0:
            raise ValueError("Projection distance must be positive.")

    @classmethod
    def from_config(cls, config: CameraConfig) -> "Camera":
        return cls(
            position=np.array(config.position, dtype=np.float64),
            viewport=Viewport(config.viewport_width, config.viewport_height),
            projection_distance=config.projection_distance,
            move_step=config.move_step,
            rotate_step_rad=config.rotate_step_rad,
        )

    # Local axes -------------------------------------------------------

    @property
    def forward(self) -> np.ndarray:
        return self.rotation @ _FORWARD

    @property
    def right(self) -> np.ndarray:
        return self.rotation @ _RIGHT

    # Movement ---------------------------------------------------------

    def move_forward(self) -> None:
        self.position = self.position + self.forward * self.move_step

    def move_backward(self) -> None:
        self.position = self.position - self.forward * self.move_step

    def strafe_right(self) -> None:
        self.position = self.position + self.right * self.move_step

    def strafe_left(self) -> None:
        self.position = self.position - self.right * self.move_step

    def rotate_right(self) -> None:
        self._yaw(self.rotate_step_rad)

    def rotate_left(self) -> None:
        self._yaw(-self.rotate_step_rad)

    def _yaw(self, angle_rad: float) -> None:
        self.rotation = orthonormalize(self.rotation @ rotation_y(angle_rad))

    # Rays -------------------------------------------------------------

    def scale_factors(self, buffer_width: int, buffer_height: int) -> tuple[float, float]:
        """Viewport units per pixel along x and y."""
        if buffer_width <= 0 or buffer_height <= 0:
            raise ValueError(f"Buffer size must be positive, got {buffer_width}x{buffer_height}")
        return (
            self.viewport.width / float(buffer_width),
            self.viewport.height / float(buffer_height),
        )

    def snapshot(self) -> "Camera":
        """Independent copy, read by the cast phase of a frame."""
        return Camera(
            position=self.position.copy(),
            rotation=self.rotation.copy(),
            viewport=self.viewport,
            projection_distance=self.projection_distance,
            move_step=self.move_step,
            rotate_step_rad=self.rotate_step_rad,
        )


def pixel_to_ray_direction(
    camera: Camera,
    pixel_x: int,
    pixel_y: int,
    buffer_width: int,
    buffer_height: int,
) -> np.ndarray:
    """World-space ray direction through a pixel.

    Parameters
    ----------
    camera : Camera
        Camera whose rotation and viewport are used.
    pixel_x, pixel_y : int
        Offset from the buffer center (``+y`` is up).
    buffer_width, buffer_height : int
        Frame buffer size in cells.

    Returns
    -------
    np.ndarray
        Direction vector (not normalized). Shape: (3,).
    """
    scale_x, scale_y = camera.scale_factors(buffer_width, buffer_height)
    out = np.empty(3, dtype=np.float64)
    view_direction(
        camera.rotation,
        float(pixel_x),
        float(pixel_y),
        scale_x,
        scale_y,
        camera.projection_distance,
        out,
    )
    return out
