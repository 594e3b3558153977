"""
Tests for SAC-IA coarse alignment.
"""
import numpy as np
import pytest

from template_align.core.errors import AlignmentFailure
from template_align.modules.cloud import SpatialIndex
from template_align.modules.cloud.core.transformations import is_rigid, rotation_angle, transform_points
from template_align.modules.features import DESCRIPTOR_SIZE, DescriptorExtractor, FeatureCloud
from template_align.modules.registration import SampleConsensusAlignment, align, compute_fitness


@pytest.fixture(scope="module")
def cube_pair(cube_surface, feature_config, known_transform):
    """Template cube and the same cube moved by known_transform"""
    points = cube_surface(n=1500, seed=2)
    extractor = DescriptorExtractor(feature_config)
    template = extractor.extract(points, name="cube")
    target = extractor.extract(transform_points(points, known_transform), name="scene")
    return target, template


class TestComputeFitness:
    """Tests for the inlier-only fitness score"""

    def test_outliers_do_not_count(self):
        index = SpatialIndex(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]))
        points = np.array([[0.0, 0.0, 0.005], [0.0, 0.0, 0.5]])

        fitness, inlier_ratio = compute_fitness(index, points, np.eye(4), 1e-4)

        assert fitness == pytest.approx(2.5e-5)
        assert inlier_ratio == pytest.approx(0.5)

    def test_no_inliers(self):
        index = SpatialIndex(np.zeros((1, 3)))
        fitness, inlier_ratio = compute_fitness(index, np.ones((2, 3)), np.eye(4), 1e-4)

        assert fitness == float("inf")
        assert inlier_ratio == 0.0

    def test_transformation_is_applied(self):
        index = SpatialIndex(np.array([[1.0, 0.0, 0.0]]))
        T = np.eye(4)
        T[0, 3] = 1.0

        fitness, _ = compute_fitness(index, np.zeros((1, 3)), T, 1e-4)
        assert fitness == pytest.approx(0.0)


class TestSampleConsensusAlignment:
    """Tests for the randomised correspondence search"""

    def test_recovers_known_pose(self, cube_pair, alignment_config, known_transform):
        target, template = cube_pair

        result = align(target, template, alignment_config)

        np.testing.assert_allclose(result.transformation, known_transform, atol=1e-6)
        assert result.fitness_score < 1e-10
        assert result.inlier_ratio == pytest.approx(1.0)
        assert result.iterations == alignment_config["sac_iterations"]
        assert 0 < result.valid_samples <= result.iterations

    def test_rotation_error_is_small(self, cube_pair, alignment_config, known_transform):
        target, template = cube_pair
        result = align(target, template, alignment_config)

        residual = result.transformation @ np.linalg.inv(known_transform)
        assert rotation_angle(residual) < np.radians(1)

    def test_same_seed_same_result(self, cube_pair, alignment_config):
        target, template = cube_pair
        config = dict(alignment_config, sac_iterations=30)

        first = align(target, template, config)
        second = align(target, template, config)

        np.testing.assert_array_equal(first.transformation, second.transformation)
        assert first.fitness_score == second.fitness_score

    def test_explicit_generator(self, cube_pair, alignment_config):
        target, template = cube_pair
        config = dict(alignment_config, sac_iterations=30)

        first = align(target, template, config, rng=np.random.default_rng(9))
        second = align(target, template, config, rng=np.random.default_rng(9))

        np.testing.assert_array_equal(first.transformation, second.transformation)

    def test_k_correspondences(self, cube_pair, alignment_config):
        target, template = cube_pair
        config = dict(alignment_config, k_correspondences=3, sac_iterations=50)

        result = align(target, template, config)
        assert is_rigid(result.transformation)

    def test_unreachable_sample_distance(self, cube_pair, alignment_config):
        target, template = cube_pair
        config = dict(alignment_config, min_sample_distance=10.0, sac_iterations=20)

        with pytest.raises(AlignmentFailure):
            align(target, template, config)

    def test_source_too_small(self, cube_pair, alignment_config):
        target, _ = cube_pair
        tiny = FeatureCloud(np.eye(3)[:2], np.eye(3)[:2], np.ones((2, DESCRIPTOR_SIZE)))

        with pytest.raises(AlignmentFailure):
            align(target, tiny, alignment_config)

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            SampleConsensusAlignment({"nr_samples": 2})
        with pytest.raises(ValueError):
            SampleConsensusAlignment({"k_correspondences": 0})

    def test_indistinct_descriptors_still_align(self, cube_pair, alignment_config):
        """Every sample matching the same target point gives a rigid transform, not a failure"""
        target, template = cube_pair
        flat = FeatureCloud(
            template.points, template.normals, np.ones((len(template), DESCRIPTOR_SIZE)), name="flat"
        )

        result = align(target, flat, dict(alignment_config, sac_iterations=20))

        assert result.valid_samples > 0
        assert is_rigid(result.transformation)
