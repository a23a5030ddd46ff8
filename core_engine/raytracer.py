"""Ray/primitive intersection kernels and closest-hit resolution.

Implements the three intersection routines used by the ASCII renderer
(sphere, triangle, axis-aligned cuboid) and the per-ray loop that picks
the closest hit across the whole scene and shades it. All inner-loop
functions are compiled with Numba ``@njit(cache=True)``.

Design Notes
------------
- **Packed scene**: the scene is handed to the kernels as one homogeneous
  collection, ``kinds`` (int64, shape (N,)) and ``params`` (float64,
  shape (N, 9)). The meaning of a ``params`` row depends on its kind:

  ==========  ==========================================================
  kind        params row
  ==========  ==========================================================
  SPHERE      ``[cx, cy, cz, radius, 0, 0, 0, 0, 0]``
  TRIANGLE    ``[v1x, v1y, v1z, v2x, v2y, v2z, v3x, v3y, v3z]``
  CUBOID      ``[cx, cy, cz, hx, hy, hz, 0, 0, 0]``
  ==========  ==========================================================

- **Miss sentinel**: every routine returns the parametric distance ``t``
  on a hit and ``-1.0`` on a miss. ``t_min`` is never negative, so the
  sentinel cannot collide with a valid hit.
- **Distance metric**: candidates from different primitives are compared
  by the Euclidean distance from the ray origin to the hit point.
- **Zero-length directions** are reported as misses by every routine.
- ``fastmath=False`` keeps the floating-point evaluation order fixed, so
  the sequential and parallel frame fills produce identical buffers.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numba import njit

from core_engine.shading import palette_index, shade_intensity

logger = logging.getLogger(__name__)

# ===================================================================
# PACKED SCENE LAYOUT
# ===================================================================
SPHERE: int = 0
TRIANGLE: int = 1
CUBOID: int = 2
PARAMS_SIZE: int = 9

_MISS: float = -1.0
_TINY: float = 1e-30
DEFAULT_EPSILON: float = 1e-6


# ===================================================================
# SPHERE: quadratic
# ===================================================================


@njit(cache=True, fastmath=False)
def intersect_sphere(
    origin: np.ndarray,
    direction: np.ndarray,
    center: np.ndarray,
    radius: float,
    t_min: float,
    t_max: float,
) -> float:
    """Ray-sphere intersection.

    Solves ``a t^2 + b t + c = 0`` with ``a = d·d``, ``b = 2 (o-c)·d`` and
    ``c = (o-c)·(o-c) - r^2``. Both roots are checked against the open
    interval ``(t_min, t_max)`` independently and the smaller valid root is
    returned.

    Parameters
    ----------
    origin : np.ndarray
        Ray origin. Shape: (3,).
    direction : np.ndarray
        Ray direction. Shape: (3,). Need not be normalized.
    center : np.ndarray
        Sphere center. Shape: (3,).
    radius : float
        Sphere radius.
    t_min, t_max : float
        Valid parametric range (exclusive).

    Returns
    -------
    float
        Parametric distance of the nearest valid root, or -1.0.
    """
    a = direction[0] * direction[0] + direction[1] * direction[1] + direction[2] * direction[2]
    if a <= _TINY:
        return _MISS

    co_x = origin[0] - center[0]
    co_y = origin[1] - center[1]
    co_z = origin[2] - center[2]

    b = 2.0 * (co_x * direction[0] + co_y * direction[1] + co_z * direction[2])
    c = co_x * co_x + co_y * co_y + co_z * co_z - radius * radius

    discriminant = b * b - 4.0 * a * c
    if discriminant < 0.0:
        return _MISS

    sqrt_disc = math.sqrt(discriminant)
    t1 = (-b + sqrt_disc) / (2.0 * a)
    t2 = (-b - sqrt_disc) / (2.0 * a)

    best = _MISS
    if t_min < t1 and t1 < t_max:
        best = t1
    if t_min < t2 and t2 < t_max and (best == _MISS or t2 < best):
        best = t2
    return best


# ===================================================================
# TRIANGLE: plane test + barycentric containment
# ===================================================================


@njit(cache=True, fastmath=False)
def intersect_triangle(
    origin: np.ndarray,
    direction: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray,
    v3: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
) -> float:
    """Ray-triangle intersection via the supporting plane.

    The ray is rejected when it is near-parallel to the plane, i.e. when
    the cosine between ``d`` and the plane normal ``n`` is below epsilon
    (``|d·n| < epsilon * |d| * |n|``, independent of triangle size), or
    when the plane lies behind the origin (``t < epsilon``). The plane
    point is then expressed in barycentric coordinates ``(u, v)`` relative
    to the edges ``v2 - v1`` and ``v3 - v1`` and accepted iff ``u >= 0``,
    ``v >= 0``, ``u + v <= 1``.

    These are true barycentric coordinates. Projecting onto each edge and
    dividing by that edge's own squared length (``u = w·e1 / |e1|²``) is
    cheaper but only agrees with them when the edges at ``v1`` are
    perpendicular, so it is not used.

    Returns
    -------
    float
        Parametric distance t, or -1.0 on a miss.
    """
    dd = direction[0] * direction[0] + direction[1] * direction[1] + direction[2] * direction[2]
    if dd <= _TINY:
        return _MISS

    e1_x = v2[0] - v1[0]
    e1_y = v2[1] - v1[1]
    e1_z = v2[2] - v1[2]

    e2_x = v3[0] - v1[0]
    e2_y = v3[1] - v1[1]
    e2_z = v3[2] - v1[2]

    # Plane normal = e1 × e2
    n_x = e1_y * e2_z - e1_z * e2_y
    n_y = e1_z * e2_x - e1_x * e2_z
    n_z = e1_x * e2_y - e1_y * e2_x

    nn = n_x * n_x + n_y * n_y + n_z * n_z
    denom = direction[0] * n_x + direction[1] * n_y + direction[2] * n_z
    if abs(denom) < epsilon * math.sqrt(dd * nn):
        return _MISS

    t = ((v1[0] - origin[0]) * n_x + (v1[1] - origin[1]) * n_y + (v1[2] - origin[2]) * n_z) / denom
    if t < epsilon:
        return _MISS
    if not (t_min < t and t < t_max):
        return _MISS

    # Plane point relative to v1
    w_x = origin[0] + t * direction[0] - v1[0]
    w_y = origin[1] + t * direction[1] - v1[1]
    w_z = origin[2] + t * direction[2] - v1[2]

    d00 = e1_x * e1_x + e1_y * e1_y + e1_z * e1_z
    d01 = e1_x * e2_x + e1_y * e2_y + e1_z * e2_z
    d11 = e2_x * e2_x + e2_y * e2_y + e2_z * e2_z
    d20 = w_x * e1_x + w_y * e1_y + w_z * e1_z
    d21 = w_x * e2_x + w_y * e2_y + w_z * e2_z

    bary_den = d00 * d11 - d01 * d01
    if bary_den <= _TINY:
        return _MISS

    u = (d11 * d20 - d01 * d21) / bary_den
    v = (d00 * d21 - d01 * d20) / bary_den

    if u < 0.0 or v < 0.0 or u + v > 1.0:
        return _MISS
    return t


# ===================================================================
# CUBOID: slab method
# ===================================================================


@njit(cache=True, fastmath=False)
def intersect_cuboid(
    origin: np.ndarray,
    direction: np.ndarray,
    center: np.ndarray,
    half_extents: np.ndarray,
    t_min: float,
    t_max: float,
) -> float:
    """Ray vs. axis-aligned box (slab test).

    Per axis, the slab entry/exit parameters are computed with
    ``1 / direction``; the box is entered at the largest entry and left at
    the smallest exit. Rejects when ``exit < 0`` or ``enter > exit``.
    Axes with a zero direction component cannot be crossed: the ray misses
    unless its origin already lies inside that slab.

    Returns
    -------
    float
        Entry parameter if it is in range, otherwise the exit parameter if
        that is in range (origin inside the box), otherwise -1.0.
    """
    dd = direction[0] * direction[0] + direction[1] * direction[1] + direction[2] * direction[2]
    if dd <= _TINY:
        return _MISS

    enter = -np.inf
    leave = np.inf

    for axis in range(3):
        lo = center[axis] - half_extents[axis]
        hi = center[axis] + half_extents[axis]

        if direction[axis] == 0.0:
            if origin[axis] < lo or origin[axis] > hi:
                return _MISS
            continue

        inv_d = 1.0 / direction[axis]
        t1 = (lo - origin[axis]) * inv_d
        t2 = (hi - origin[axis]) * inv_d

        # Swap so t1 <= t2
        if t1 > t2:
            t1, t2 = t2, t1

        if t1 > enter:
            enter = t1
        if t2 < leave:
            leave = t2

    if leave < 0.0 or enter > leave:
        return _MISS

    if t_min < enter and enter < t_max:
        return enter
    if t_min < leave and leave < t_max:
        return leave
    return _MISS


# ===================================================================
# DISPATCH OVER THE PACKED SCENE
# ===================================================================


@njit(cache=True, fastmath=False)
def intersect_primitive(
    kind: int,
    params: np.ndarray,
    origin: np.ndarray,
    direction: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
) -> float:
    """Intersect one packed primitive. Returns t or -1.0."""
    if kind == SPHERE:
        return intersect_sphere(origin, direction, params[0:3], params[3], t_min, t_max)
    if kind == TRIANGLE:
        return intersect_triangle(
            origin, direction, params[0:3], params[3:6], params[6:9], t_min, t_max, epsilon
        )
    if kind == CUBOID:
        return intersect_cuboid(origin, direction, params[0:3], params[3:6], t_min, t_max)
    return _MISS


@njit(cache=True, fastmath=False)
def surface_normal(
    kind: int,
    params: np.ndarray,
    point: np.ndarray,
    direction: np.ndarray,
    out: np.ndarray,
) -> None:
    """Write the unit surface normal at ``point`` into ``out``.

    Sphere normals point away from the center. Triangle normals are
    flipped to face the incoming ray. Cuboid normals are the signed axis
    whose local coordinate is closest to its half extent.
    """
    if kind == SPHERE:
        inv_r = 1.0 / params[3]
        out[0] = (point[0] - params[0]) * inv_r
        out[1] = (point[1] - params[1]) * inv_r
        out[2] = (point[2] - params[2]) * inv_r
    elif kind == TRIANGLE:
        e1_x = params[3] - params[0]
        e1_y = params[4] - params[1]
        e1_z = params[5] - params[2]
        e2_x = params[6] - params[0]
        e2_y = params[7] - params[1]
        e2_z = params[8] - params[2]
        out[0] = e1_y * e2_z - e1_z * e2_y
        out[1] = e1_z * e2_x - e1_x * e2_z
        out[2] = e1_x * e2_y - e1_y * e2_x
        if out[0] * direction[0] + out[1] * direction[1] + out[2] * direction[2] > 0.0:
            out[0] = -out[0]
            out[1] = -out[1]
            out[2] = -out[2]
    else:
        best_axis = 0
        best_gap = np.inf
        for axis in range(3):
            local = point[axis] - params[axis]
            gap = abs(abs(local) - params[3 + axis])
            if gap < best_gap:
                best_gap = gap
                best_axis = axis
        out[0] = 0.0
        out[1] = 0.0
        out[2] = 0.0
        out[best_axis] = 1.0 if point[best_axis] - params[best_axis] >= 0.0 else -1.0

    length = math.sqrt(out[0] * out[0] + out[1] * out[1] + out[2] * out[2])
    if length > _TINY:
        out[0] /= length
        out[1] /= length
        out[2] /= length


@njit(cache=True, fastmath=False)
def closest_hit(
    origin: np.ndarray,
    direction: np.ndarray,
    kinds: np.ndarray,
    params: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
    point_out: np.ndarray,
    normal_out: np.ndarray,
) -> int:
    """Find the closest primitive hit by a ray.

    Every primitive is tested independently; the winner is the hit with
    the smallest Euclidean distance from ``origin``.

    Parameters
    ----------
    origin, direction : np.ndarray
        Ray. Shape: (3,) each.
    kinds : np.ndarray
        Primitive kinds. Shape: (N,), dtype int64.
    params : np.ndarray
        Packed primitive parameters. Shape: (N, 9), dtype float64.
    t_min, t_max : float
        Valid parametric range (exclusive).
    epsilon : float
        Triangle parallel/behind tolerance.
    point_out, normal_out : np.ndarray
        Receive the hit point and unit normal. Shape: (3,) each.

    Returns
    -------
    int
        Index of the hit primitive, or -1 if nothing was hit. The output
        arrays are untouched on a miss.
    """
    best_index = -1
    best_t = 0.0
    best_distance = np.inf

    for i in range(kinds.shape[0]):
        t = intersect_primitive(kinds[i], params[i], origin, direction, t_min, t_max, epsilon)
        if t == _MISS:
            continue

        h_x = t * direction[0]
        h_y = t * direction[1]
        h_z = t * direction[2]
        distance = math.sqrt(h_x * h_x + h_y * h_y + h_z * h_z)

        if distance < best_distance:
            best_distance = distance
            best_index = i
            best_t = t

    if best_index < 0:
        return -1

    point_out[0] = origin[0] + best_t * direction[0]
    point_out[1] = origin[1] + best_t * direction[1]
    point_out[2] = origin[2] + best_t * direction[2]
    surface_normal(kinds[best_index], params[best_index], point_out, direction, normal_out)
    return best_index


@njit(cache=True, fastmath=False)
def trace_palette_index(
    origin: np.ndarray,
    direction: np.ndarray,
    kinds: np.ndarray,
    params: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
    light_position: np.ndarray,
    ambient: float,
    diffuse: float,
    palette_length: int,
) -> int:
    """Trace one ray and return the palette index of its shade, or -1."""
    point = np.empty(3, dtype=np.float64)
    normal = np.empty(3, dtype=np.float64)

    hit = closest_hit(origin, direction, kinds, params, t_min, t_max, epsilon, point, normal)
    if hit < 0:
        return -1

    intensity = shade_intensity(point, normal, light_position, ambient, diffuse)
    return palette_index(intensity, palette_length)
