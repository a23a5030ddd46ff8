"""Scene primitives and the packed scene handed to the kernels.

Three primitive kinds are supported: spheres, triangles and axis-aligned
cuboids. Each validates itself on construction, can pack itself into one
row of the kernel parameter table, and exposes ``intersect`` so that
callers can treat the kinds uniformly.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Sequence, Union

import numpy as np

from core_engine.constants import SceneConfig
from core_engine.raytracer import (
    CUBOID,
    DEFAULT_EPSILON,
    PARAMS_SIZE,
    SPHERE,
    TRIANGLE,
    closest_hit,
    intersect_primitive,
    surface_normal,
)

logger = logging.getLogger(__name__)


def _as_vec3(value, name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class HitRecord:
    """Result of a successful ray/primitive intersection.

    Attributes
    ----------
    t : float
        Parametric distance along the ray.
    distance : float
        Euclidean distance from the ray origin to ``point``.
    point : np.ndarray
        World-space hit point. Shape: (3,).
    normal : np.ndarray
        Unit surface normal at ``point``. Shape: (3,).
    """

    t: float
    distance: float
    point: np.ndarray
    normal: np.ndarray


class _Primitive:
    """Shared ``intersect`` over the packed representation."""

    kind: int

    def pack(self) -> np.ndarray:
        raise NotImplementedError

    def intersect(
        self,
        origin,
        direction,
        t_min: float = 0.0,
        t_max: float = math.inf,
        epsilon: float = DEFAULT_EPSILON,
    ) -> HitRecord | None:
        """Intersect a ray with this primitive.

        Parameters
        ----------
        origin, direction : array-like
            Ray origin and direction. Shape: (3,) each.
        t_min, t_max : float
            Valid parametric range (exclusive).
        epsilon : float
            Tolerance used by the triangle test.

        Returns
        -------
        HitRecord or None
        """
        o = np.asarray(origin, dtype=np.float64)
        d = np.asarray(direction, dtype=np.float64)
        params = self.pack()
        t = intersect_primitive(self.kind, params, o, d, float(t_min), float(t_max), float(epsilon))
        if t < 0.0:
            return None
        point = o + t * d
        normal = np.empty(3, dtype=np.float64)
        surface_normal(self.kind, params, point, d, normal)
        return HitRecord(t=float(t), distance=float(np.linalg.norm(point - o)), point=point, normal=normal)


@dataclass(frozen=True, eq=False)
class Sphere(_Primitive):
    center: np.ndarray
    radius: float

    kind = SPHERE

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", _as_vec3(self.center, "Sphere center"))
        if not (self.radius > 0.0):
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")
        object.__setattr__(self, "radius", float(self.radius))

    def pack(self) -> np.ndarray:
        row = np.zeros(PARAMS_SIZE, dtype=np.float64)
        row[0:3] = self.center
        row[3] = self.radius
        return row


@dataclass(frozen=True, eq=False)
class Triangle(_Primitive):
    """Triangle given by three non-collinear vertices; the normal is derived."""

    v1: np.ndarray
    v2: np.ndarray
    v3: np.ndarray

    kind = TRIANGLE

    def __post_init__(self) -> None:
        for name in ("v1", "v2", "v3"):
            object.__setattr__(self, name, _as_vec3(getattr(self, name), f"Triangle {name}"))
        if np.linalg.norm(self.normal) <= 1e-12:
            raise ValueError("Triangle vertices are collinear.")

    @property
    def normal(self) -> np.ndarray:
        return np.cross(self.v2 - self.v1, self.v3 - self.v1)

    def pack(self) -> np.ndarray:
        row = np.empty(PARAMS_SIZE, dtype=np.float64)
        row[0:3] = self.v1
        row[3:6] = self.v2
        row[6:9] = self.v3
        return row


@dataclass(frozen=True, eq=False)
class Cuboid(_Primitive):
    """Axis-aligned box; no rotation."""

    center: np.ndarray
    half_extents: np.ndarray

    kind = CUBOID

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", _as_vec3(self.center, "Cuboid center"))
        object.__setattr__(self, "half_extents", _as_vec3(self.half_extents, "Cuboid half_extents"))
        if np.any(self.half_extents <= 0.0):
            raise ValueError(f"Cuboid half extents must be positive, got {self.half_extents}")

    def pack(self) -> np.ndarray:
        row = np.zeros(PARAMS_SIZE, dtype=np.float64)
        row[0:3] = self.center
        row[3:6] = self.half_extents
        return row


Primitive = Union[Sphere, Triangle, Cuboid]


class Scene:
    """Ordered, read-only collection of primitives.

    Parameters
    ----------
    primitives : Sequence[Primitive]
        Scene contents, in evaluation order.
    """

    def __init__(self, primitives: Sequence[Primitive]) -> None:
        self._primitives: tuple[Primitive, ...] = tuple(primitives)

        n = len(self._primitives)
        kinds = np.empty(n, dtype=np.int64)
        params = np.zeros((n, PARAMS_SIZE), dtype=np.float64)
        for i, prim in enumerate(self._primitives):
            kinds[i] = prim.kind
            params[i] = prim.pack()
        self._kinds = kinds
        self._params = params

    @property
    def primitives(self) -> tuple[Primitive, ...]:
        return self._primitives

    @property
    def kinds(self) -> np.ndarray:
        """Primitive kinds. Shape: (N,), dtype int64."""
        return self._kinds

    @property
    def params(self) -> np.ndarray:
        """Packed primitive parameters. Shape: (N, 9), dtype float64."""
        return self._params

    def __len__(self) -> int:
        return len(self._primitives)

    def __iter__(self) -> Iterator[Primitive]:
        return iter(self._primitives)

    def closest_hit(
        self,
        origin,
        direction,
        t_min: float = 0.0,
        t_max: float = math.inf,
        epsilon: float = DEFAULT_EPSILON,
    ) -> tuple[int, HitRecord] | None:
        """Closest hit across all primitives.

        Returns
        -------
        tuple[int, HitRecord] or None
            Index of the primitive hit and its hit record.
        """
        o = np.asarray(origin, dtype=np.float64)
        d = np.asarray(direction, dtype=np.float64)
        point = np.empty(3, dtype=np.float64)
        normal = np.empty(3, dtype=np.float64)
        index = closest_hit(
            o, d, self._kinds, self._params, float(t_min), float(t_max), float(epsilon), point, normal
        )
        if index < 0:
            return None
        dd = float(d @ d)
        t = float(np.linalg.norm(point - o) / math.sqrt(dd))
        return index, HitRecord(t=t, distance=float(np.linalg.norm(point - o)), point=point, normal=normal)


def build_scene(config: SceneConfig) -> Scene:
    """Instantiate the primitives described by a scene configuration.

    Raises
    ------
    ValueError
        If any primitive is invalid.
    """
    primitives: list[Primitive] = [Sphere(s.center, s.radius) for s in config.spheres]
    primitives.extend(Triangle(t.v1, t.v2, t.v3) for t in config.triangles)
    primitives.extend(Cuboid(c.center, c.half_extents) for c in config.cuboids)

    logger.info(
        "Scene built: %d primitives (%d spheres, %d triangles, %d cuboids)",
        len(primitives),
        len(config.spheres),
        len(config.triangles),
        len(config.cuboids),
    )
    return Scene(primitives)
