"""
Tests for point-to-point ICP refinement.
"""
import numpy as np
import pytest

from template_align.modules.cloud import PointCloud
from template_align.modules.cloud.core.transformations import (
    create_transformation_matrix,
    transform_points,
)
from template_align.modules.registration import ICPEngine, refine


@pytest.fixture(scope="module")
def cube_points(cube_surface):
    return cube_surface(n=1500, seed=4)


@pytest.fixture(scope="module")
def small_offset():
    return create_transformation_matrix(0.002, -0.001, 0.0015, roll=0.3, pitch=-0.2, yaw=0.3)


class TestICPEngine:
    """Tests for ICPEngine.refine"""

    def test_identity_converges_immediately(self, cube_points):
        result = refine(cube_points, cube_points)

        assert result.converged
        assert result.iterations == 1
        assert result.fitness_score == pytest.approx(0.0, abs=1e-20)
        np.testing.assert_allclose(result.transformation, np.eye(4), atol=1e-12)

    def test_recovers_small_offset(self, cube_points, small_offset):
        target = transform_points(cube_points, small_offset)

        result = refine(cube_points, target, {"icp_iterations": 100})

        assert result.converged
        assert result.fitness_score < 1e-10
        np.testing.assert_allclose(result.transformation, small_offset, atol=1e-6)

    def test_refines_from_initial_transform(self, cube_points, known_transform, small_offset):
        target = transform_points(cube_points, small_offset @ known_transform)

        result = refine(cube_points, target, {"icp_iterations": 100}, initial_transform=known_transform)

        assert result.converged
        np.testing.assert_allclose(result.transformation, small_offset @ known_transform, atol=1e-6)

    def test_budget_exhaustion_is_not_convergence(self, cube_points, small_offset):
        target = transform_points(cube_points, small_offset)

        result = ICPEngine({"icp_iterations": 1}).refine(cube_points, target)

        assert not result.converged
        assert result.iterations == 1

    def test_threshold_without_correspondences(self, cube_points):
        target = transform_points(cube_points, create_transformation_matrix(5.0, 0, 0))
        initial = np.eye(4)

        result = refine(cube_points, target, {"icp_threshold": 0.01}, initial_transform=initial)

        assert not result.converged
        assert result.iterations == 1
        np.testing.assert_array_equal(result.transformation, initial)

    def test_accepts_point_clouds(self, cube_points, small_offset):
        source = PointCloud(cube_points)
        target = source.transformed(small_offset)

        result = refine(source, target, {"icp_iterations": 100})
        assert result.converged

    def test_empty_cloud(self, cube_points):
        with pytest.raises(ValueError):
            refine(np.zeros((0, 3)), cube_points)
