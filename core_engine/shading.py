"""Lambertian shading and brightness-palette lookup.

A hit point is lit by a single point light with an ambient floor:

    i = ambient + diffuse * max(0, n·l) / (|n| |l|),    l = light - p

The intensity is clamped to [0, 1] and mapped onto an ordered palette of
characters, dimmest first:

    index = clamp(floor(i * len(palette)), 0, len(palette) - 1)

The clamp on the index matters: ``i == 1.0`` would otherwise address one
past the end of the palette.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numba import njit

from core_engine.constants import DEFAULT_PALETTE

logger = logging.getLogger(__name__)

DEFAULT_AMBIENT: float = 0.2
DEFAULT_DIFFUSE: float = 0.6
NO_HIT_CHAR: str = " "


@njit(cache=True, fastmath=False)
def shade_intensity(
    point: np.ndarray,
    normal: np.ndarray,
    light_position: np.ndarray,
    ambient: float,
    diffuse: float,
) -> float:
    """Lambertian intensity at a surface point, clamped to [0, 1].

    Parameters
    ----------
    point : np.ndarray
        Hit point. Shape: (3,).
    normal : np.ndarray
        Surface normal. Shape: (3,). Need not be unit length.
    light_position : np.ndarray
        Point light position. Shape: (3,).
    ambient, diffuse : float
        Ambient floor and diffuse weight.

    Returns
    -------
    float
        Intensity in [0, 1].
    """
    intensity = ambient

    l_x = light_position[0] - point[0]
    l_y = light_position[1] - point[1]
    l_z = light_position[2] - point[2]

    n_dot_l = normal[0] * l_x + normal[1] * l_y + normal[2] * l_z
    if n_dot_l > 0.0:
        n_len = math.sqrt(normal[0] * normal[0] + normal[1] * normal[1] + normal[2] * normal[2])
        l_len = math.sqrt(l_x * l_x + l_y * l_y + l_z * l_z)
        denom = n_len * l_len
        if denom > 0.0:
            intensity += diffuse * n_dot_l / denom

    if intensity < 0.0:
        return 0.0
    if intensity > 1.0:
        return 1.0
    return intensity


@njit(cache=True, fastmath=False)
def palette_index(intensity: float, palette_length: int) -> int:
    """Map an intensity onto ``[0, palette_length - 1]``."""
    index = int(math.floor(intensity * palette_length))
    if index < 0:
        return 0
    if index > palette_length - 1:
        return palette_length - 1
    return index


def palette_array(palette: str = DEFAULT_PALETTE) -> np.ndarray:
    """Palette as a ``<U1`` array, suitable for fancy indexing."""
    if not palette:
        raise ValueError("Palette cannot be empty.")
    return np.array(list(palette), dtype="<U1")


def shade(
    hit_point: np.ndarray,
    normal: np.ndarray,
    light_position: np.ndarray,
    palette: str = DEFAULT_PALETTE,
    ambient: float = DEFAULT_AMBIENT,
    diffuse: float = DEFAULT_DIFFUSE,
) -> str:
    """Shade a surface point into a single palette character.

    Parameters
    ----------
    hit_point : np.ndarray
        World-space point on the surface. Shape: (3,).
    normal : np.ndarray
        Surface normal at the point. Shape: (3,).
    light_position : np.ndarray
        Point light position. Shape: (3,).
    palette : str
        Characters ordered from dimmest to brightest.
    ambient, diffuse : float
        Lighting coefficients.

    Returns
    -------
    str
        One character from ``palette``.
    """
    if not palette:
        raise ValueError("Palette cannot be empty.")
    intensity = shade_intensity(
        np.asarray(hit_point, dtype=np.float64),
        np.asarray(normal, dtype=np.float64),
        np.asarray(light_position, dtype=np.float64),
        float(ambient),
        float(diffuse),
    )
    return palette[palette_index(intensity, len(palette))]
