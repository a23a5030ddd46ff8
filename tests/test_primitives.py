"""Tests for primitive validation, packing and the per-primitive intersect API."""

from __future__ import annotations

import numpy as np
import pytest

from core_engine.constants import CuboidSpec, SceneConfig, SphereSpec, TriangleSpec
from core_engine.primitives import Cuboid, HitRecord, Scene, Sphere, Triangle, build_scene
from core_engine.raytracer import CUBOID, PARAMS_SIZE, SPHERE, TRIANGLE


class TestValidation:
    """Invalid primitives are rejected at construction."""

    @pytest.mark.parametrize("radius", [0.0, -1.0])
    def test_sphere_radius_must_be_positive(self, radius: float) -> None:
        with pytest.raises(ValueError):
            Sphere([0.0, 0.0, 0.0], radius)

    def test_triangle_collinear_vertices(self) -> None:
        with pytest.raises(ValueError, match="collinear"):
            Triangle([0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0])

    def test_cuboid_half_extents_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Cuboid([0.0, 0.0, 0.0], [1.0, 0.0, 1.0])

    def test_vector_must_have_three_components(self) -> None:
        with pytest.raises(ValueError):
            Sphere([0.0, 0.0], 1.0)

    def test_vector_must_be_finite(self) -> None:
        with pytest.raises(ValueError):
            Sphere([0.0, np.nan, 0.0], 1.0)

    def test_primitive_is_immutable(self) -> None:
        sphere = Sphere([0.0, 0.0, 5.0], 1.0)
        with pytest.raises(Exception):
            sphere.radius = 2.0
        with pytest.raises(ValueError):
            sphere.center[0] = 1.0


class TestIntersect:
    """Polymorphic ``intersect`` returns a HitRecord or None."""

    def test_sphere_hit_record(self, origin, forward) -> None:
        hit = Sphere([0.0, 0.0, 5.0], 1.0).intersect(origin, forward)
        assert isinstance(hit, HitRecord)
        assert hit.t == pytest.approx(4.0)
        assert hit.distance == pytest.approx(4.0)
        np.testing.assert_allclose(hit.point, [0.0, 0.0, 4.0])
        np.testing.assert_allclose(hit.normal, [0.0, 0.0, -1.0])

    def test_triangle_hit_record(self, origin, forward) -> None:
        triangle = Triangle([-1.0, -1.0, 2.0], [1.0, -1.0, 2.0], [0.0, 1.0, 2.0])
        hit = triangle.intersect(origin, forward)
        assert hit is not None
        assert hit.distance == pytest.approx(2.0)
        np.testing.assert_allclose(hit.normal, [0.0, 0.0, -1.0], atol=1e-12)

    def test_tiny_triangle_hit_head_on(self, origin, forward) -> None:
        triangle = Triangle([-1e-4, -1e-4, 2.0], [1e-4, -1e-4, 2.0], [0.0, 1e-4, 2.0])
        hit = triangle.intersect(origin, forward)
        assert hit is not None
        assert hit.t == pytest.approx(2.0)

    def test_cuboid_hit_record(self, origin, forward) -> None:
        hit = Cuboid([0.0, 0.0, 3.0], [0.5, 0.5, 0.5]).intersect(origin, forward)
        assert hit is not None
        assert hit.t == pytest.approx(2.5)
        np.testing.assert_allclose(hit.normal, [0.0, 0.0, -1.0])

    @pytest.mark.parametrize(
        "primitive",
        [
            Sphere([0.0, 0.0, 5.0], 1.0),
            Triangle([-1.0, -1.0, 5.0], [1.0, -1.0, 5.0], [0.0, 1.0, 5.0]),
            Cuboid([0.0, 0.0, 5.0], [1.0, 1.0, 1.0]),
        ],
    )
    def test_miss_returns_none(self, origin, primitive) -> None:
        assert primitive.intersect(origin, np.array([0.0, 1.0, -1.0])) is None

    def test_triangle_normal_is_derived(self) -> None:
        triangle = Triangle([0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        np.testing.assert_allclose(triangle.normal, [0.0, 0.0, 1.0])


class TestScene:
    """Packing into the homogeneous kernel representation."""

    def test_packed_layout(self) -> None:
        scene = Scene(
            [
                Sphere([1.0, 2.0, 3.0], 4.0),
                Triangle([0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]),
                Cuboid([1.0, 1.0, 1.0], [0.5, 0.25, 2.0]),
            ]
        )
        assert len(scene) == 3
        np.testing.assert_array_equal(scene.kinds, [SPHERE, TRIANGLE, CUBOID])
        assert scene.params.shape == (3, PARAMS_SIZE)
        np.testing.assert_array_equal(scene.params[0, :4], [1.0, 2.0, 3.0, 4.0])
        np.testing.assert_array_equal(scene.params[2, :6], [1.0, 1.0, 1.0, 0.5, 0.25, 2.0])

    def test_build_scene_from_config(self) -> None:
        config = SceneConfig(
            spheres=(SphereSpec((0.0, 0.0, 3.0), 1.0),),
            triangles=(TriangleSpec((0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (0.0, 1.0, 1.0)),),
            cuboids=(CuboidSpec((2.0, 0.0, 4.0), (0.5, 0.5, 0.5)),),
        )
        scene = build_scene(config)
        assert [type(p) for p in scene] == [Sphere, Triangle, Cuboid]

    def test_build_scene_rejects_bad_triangle(self) -> None:
        config = SceneConfig(
            spheres=(),
            triangles=(TriangleSpec((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0)),),
        )
        with pytest.raises(ValueError):
            build_scene(config)
