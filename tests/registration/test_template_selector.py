"""
Tests for best-template selection and the template registry.
"""
import numpy as np
import pytest

from template_align.core.errors import AlignmentFailure, EmptyRegistryError, LoadError
from template_align.modules.cloud import PointCloud
from template_align.modules.cloud.io import save_point_cloud
from template_align.modules.features import DESCRIPTOR_SIZE, DescriptorExtractor, FeatureCloud
from template_align.modules.registration import (
    AlignmentResult,
    TemplateRegistry,
    TemplateSelector,
    reduce_best,
)


def make_feature_cloud(name):
    return FeatureCloud(np.eye(3), np.eye(3), np.ones((3, DESCRIPTOR_SIZE)), name=name)


def make_result(score):
    return AlignmentResult(
        fitness_score=score,
        transformation=np.eye(4),
        inlier_ratio=1.0,
        iterations=1,
        valid_samples=1
    )


class FixedScoreAligner:
    """Returns a preset score per template name"""

    def __init__(self, scores):
        self.scores = scores

    def align(self, target, source):
        return make_result(self.scores[source.name])


class FailingAligner:
    """Fails on the named templates, scores the rest from a preset table"""

    def __init__(self, scores, failing):
        self.scores = scores
        self.failing = failing

    def align(self, target, source):
        if source.name in self.failing:
            raise AlignmentFailure(f"no valid sample for {source.name}")
        return make_result(self.scores.get(source.name, 1.0))


class RandomScoreAligner:
    """Score drawn from the generator handed out by the selector"""

    def __init__(self, rng):
        self.rng = rng

    def align(self, target, source):
        return make_result(float(self.rng.random()))


@pytest.fixture
def templates():
    return [make_feature_cloud(name) for name in ("a", "b", "c", "d")]


class TestReduceBest:
    """Tests for the lowest-score reduction"""

    def test_lowest_score_wins(self):
        index, result = reduce_best([make_result(s) for s in (0.3, 0.1, 0.2)])
        assert index == 1
        assert result.fitness_score == 0.1

    def test_tie_keeps_first(self):
        index, _ = reduce_best([make_result(s) for s in (0.3, 0.1, 0.1, 0.1)])
        assert index == 1

    def test_infinite_scores(self):
        index, _ = reduce_best([make_result(float("inf")), make_result(float("inf"))])
        assert index == 0

    def test_empty(self):
        with pytest.raises(EmptyRegistryError):
            reduce_best([])


class TestTemplateSelector:
    """Tests for TemplateSelector with stub aligners"""

    def test_selects_lowest_with_tie_to_lowest_index(self, templates):
        scores = {"a": 0.5, "b": 0.1, "c": 0.1, "d": 0.9}
        selector = TemplateSelector(aligner_factory=lambda rng: FixedScoreAligner(scores))

        index, result = selector.select_best(make_feature_cloud("target"), templates)

        assert index == 1
        assert result.fitness_score == 0.1

    def test_empty_registry(self):
        with pytest.raises(EmptyRegistryError):
            TemplateSelector().select_best(make_feature_cloud("target"), [])

    def test_result_matches_argmin_of_all_results(self, templates):
        target = make_feature_cloud("target")
        all_results = TemplateSelector({"seed": 3}, aligner_factory=RandomScoreAligner).align_all(target, templates)
        index, _ = TemplateSelector({"seed": 3}, aligner_factory=RandomScoreAligner).select_best(target, templates)

        assert index == int(np.argmin([r.fitness_score for r in all_results]))

    def test_each_template_gets_its_own_generator(self, templates):
        target = make_feature_cloud("target")
        results = TemplateSelector({"seed": 3}, aligner_factory=RandomScoreAligner).align_all(target, templates)

        scores = [r.fitness_score for r in results]
        assert len(set(scores)) == len(scores)

    def test_failed_template_scores_infinity(self, templates):
        scores = {"b": 0.4, "c": 0.2, "d": 0.3}
        selector = TemplateSelector(aligner_factory=lambda rng: FailingAligner(scores, {"a", "c"}))
        target = make_feature_cloud("target")

        results = selector.align_all(target, templates)
        index, result = selector.select_best(target, templates)

        assert [r.fitness_score for r in results] == [float("inf"), 0.4, float("inf"), 0.3]
        assert results[0].valid_samples == 0
        assert index == 3
        assert result.fitness_score == 0.3

    def test_all_templates_failing(self, templates):
        selector = TemplateSelector(aligner_factory=lambda rng: FailingAligner({}, {"a", "b", "c", "d"}))

        with pytest.raises(AlignmentFailure):
            selector.select_best(make_feature_cloud("target"), templates)

    @pytest.mark.asyncio
    async def test_async_skips_failed_template(self, templates):
        selector = TemplateSelector(aligner_factory=lambda rng: FailingAligner({"a": 0.1, "b": 0.5}, {"a"}))

        index, result = await selector.select_best_async(make_feature_cloud("target"), templates[:2])

        assert index == 1
        assert result.fitness_score == 0.5

    @pytest.mark.asyncio
    async def test_async_all_templates_failing(self, templates):
        selector = TemplateSelector(aligner_factory=lambda rng: FailingAligner({}, {"a", "b"}))

        with pytest.raises(AlignmentFailure):
            await selector.select_best_async(make_feature_cloud("target"), templates[:2])

    @pytest.mark.asyncio
    async def test_async_matches_sequential(self, templates):
        target = make_feature_cloud("target")

        sync_index, sync_result = TemplateSelector(
            {"seed": 11}, aligner_factory=RandomScoreAligner
        ).select_best(target, templates)
        async_index, async_result = await TemplateSelector(
            {"seed": 11}, aligner_factory=RandomScoreAligner
        ).select_best_async(target, templates)

        assert async_index == sync_index
        assert async_result.fitness_score == sync_result.fitness_score

    @pytest.mark.asyncio
    async def test_async_empty_registry(self):
        with pytest.raises(EmptyRegistryError):
            await TemplateSelector().select_best_async(make_feature_cloud("target"), [])


class TestTemplateRegistry:
    """Tests for the ordered template registry"""

    def test_add_returns_index(self):
        registry = TemplateRegistry()
        assert registry.add(make_feature_cloud("a")) == 0
        assert registry.add(make_feature_cloud("b")) == 1
        assert len(registry) == 2
        assert [t.name for t in registry] == ["a", "b"]
        assert registry[1].name == "b"

    def test_from_list_file(self, tmp_path, cube_surface, sphere_surface, feature_config):
        save_point_cloud(PointCloud(sphere_surface(n=600)), str(tmp_path / "sphere.pcd"))
        save_point_cloud(PointCloud(cube_surface(n=800)), str(tmp_path / "cube.pcd"))
        list_file = tmp_path / "object_templates.txt"
        list_file.write_text("# objects\nsphere.pcd\n\ncube.pcd\n")

        registry = TemplateRegistry.from_list_file(str(list_file), DescriptorExtractor(feature_config))

        assert len(registry) == 2
        assert registry[0].name == str(tmp_path / "sphere.pcd")
        assert registry[1].name == str(tmp_path / "cube.pcd")

    def test_missing_template_file(self, tmp_path, feature_config):
        list_file = tmp_path / "object_templates.txt"
        list_file.write_text("missing.pcd\n")

        with pytest.raises(LoadError):
            TemplateRegistry.from_list_file(str(list_file), DescriptorExtractor(feature_config))
