"""
Coarse alignment followed by ICP on a moved unit cube.
"""
import numpy as np

from template_align.modules.cloud.core.transformations import (
    create_transformation_matrix,
    rotation_angle,
    transform_points,
)
from template_align.modules.features import DescriptorExtractor
from template_align.modules.registration import TemplateSelector, align, refine


class TestCubeScenario:
    """Template is the target cube rotated 30 degrees about Z and shifted by (1, 0, 0)"""

    def test_coarse_then_refine(self, cube_surface, feature_config, alignment_config):
        target_points = cube_surface(n=1500, seed=12)
        template_to_scene = create_transformation_matrix(1.0, 0.0, 0.0, yaw=30)
        template_points = transform_points(target_points, template_to_scene)

        extractor = DescriptorExtractor(feature_config)
        target = extractor.extract(target_points, name="target")
        template = extractor.extract(template_points, name="template")

        coarse = align(target, template, alignment_config)

        # template -> target undoes the known motion
        assert rotation_angle(coarse.transformation @ template_to_scene) < np.radians(3)
        assert coarse.fitness_score < alignment_config["max_correspondence_distance"]

        refined = refine(template_points, target_points, initial_transform=coarse.transformation)

        assert refined.converged
        assert refined.fitness_score < 1e-6

    def test_selector_picks_cube_over_sphere(self, cube_surface, sphere_surface, feature_config, alignment_config):
        target_points = cube_surface(n=1500, seed=13)
        extractor = DescriptorExtractor(feature_config)
        target = extractor.extract(target_points)
        templates = [
            extractor.extract(sphere_surface(n=1500, seed=14), name="sphere"),
            extractor.extract(
                transform_points(target_points, create_transformation_matrix(1.0, 0.0, 0.0, yaw=30)),
                name="cube"
            ),
        ]

        selector = TemplateSelector(alignment_config)
        index, result = selector.select_best(target, templates)
        all_results = TemplateSelector(alignment_config).align_all(target, templates)

        assert index == 1
        assert index == int(np.argmin([r.fitness_score for r in all_results]))
        assert result.fitness_score == all_results[1].fitness_score
