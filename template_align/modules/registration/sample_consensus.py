"""
Sample Consensus Initial Alignment (SAC-IA).

Coarse alignment of a source feature cloud onto a target feature cloud when no
initial pose is known. Correspondences come from descriptor space, not from
geometry, so the search works for arbitrary starting poses.

The search runs a fixed number of iterations; there is no early exit.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from template_align.core.config import settings
from template_align.core.errors import AlignmentFailure, DegenerateSampleError
from template_align.core.logging_config import get_logger
from template_align.modules.cloud import SpatialIndex
from template_align.modules.cloud.core.transformations import (
    estimate_rigid_transformation,
    transform_points,
)
from template_align.modules.features import FeatureCloud

logger = get_logger(__name__)

# Smallest/largest singular value ratio of a centred sample below which the
# sampled points are considered collinear
COLLINEAR_RATIO = 1e-6


@dataclass(frozen=True)
class AlignmentResult:
    """Result of aligning one template to the target"""
    fitness_score: float  # mean squared inlier distance, lower is better
    transformation: np.ndarray  # 4x4 transformation matrix, source -> target
    inlier_ratio: float  # share of source points inside the correspondence cap
    iterations: int
    valid_samples: int  # iterations that produced a transform


def compute_fitness(
    target_index: SpatialIndex,
    points: np.ndarray,
    transformation: np.ndarray,
    max_range: float
) -> Tuple[float, float]:
    """
    Mean squared nearest-neighbour distance over inlier points.

    Points whose squared distance exceeds max_range are not counted, neither
    in the sum nor in the denominator.

    Returns:
        (fitness, inlier_ratio); fitness is inf when there is no inlier
    """
    sq_distances, _ = target_index.nearest(transform_points(points, transformation))
    inliers = sq_distances <= max_range
    if not inliers.any():
        return float("inf"), 0.0
    return float(sq_distances[inliers].mean()), float(inliers.mean())


def _is_collinear(points: np.ndarray) -> bool:
    singular_values = np.linalg.svd(points - points.mean(axis=0), compute_uv=False)
    return singular_values[0] == 0 or singular_values[1] <= COLLINEAR_RATIO * singular_values[0]


class SampleConsensusAlignment:
    """
    Randomised descriptor-correspondence search for a rigid transform.

    Args:
        config: Configuration dict with:
            - min_sample_distance: min pairwise distance between sampled points (default: 0.05)
            - max_correspondence_distance: squared distance cap for scoring (default: 1e-4)
            - sac_iterations: iteration budget (default: 500)
            - nr_samples: points per sample (default: 3)
            - k_correspondences: a match is drawn among this many nearest descriptors (default: 1)
            - seed: seed for the default random generator (default: None)
        rng: random generator; overrides seed when given
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, rng: Optional[np.random.Generator] = None):
        config = config or {}
        self.min_sample_distance = config.get("min_sample_distance", settings.MIN_SAMPLE_DISTANCE)
        self.max_correspondence_distance = config.get(
            "max_correspondence_distance", settings.MAX_CORRESPONDENCE_DISTANCE
        )
        self.max_iterations = config.get("sac_iterations", settings.SAC_ITERATIONS)
        self.nr_samples = config.get("nr_samples", 3)
        self.k_correspondences = config.get("k_correspondences", 1)
        self.rng = rng if rng is not None else np.random.default_rng(config.get("seed"))

        if self.nr_samples < 3:
            raise ValueError("nr_samples must be at least 3 to define a rigid transform")
        if self.k_correspondences < 1:
            raise ValueError("k_correspondences must be at least 1")

    def align(self, target: FeatureCloud, source: FeatureCloud) -> AlignmentResult:
        """
        Align source onto target.

        Raises:
            AlignmentFailure: the source is too small to sample, or no iteration
                produced a valid transform
        """
        if len(source) < self.nr_samples:
            raise AlignmentFailure(
                f"Source has {len(source)} points, {self.nr_samples} are needed per sample"
            )

        best_error = float("inf")
        best_transformation = None
        valid_samples = 0

        for iteration in range(self.max_iterations):
            try:
                sample = self._select_samples(source.points)
                transformation = self._estimate(target, source, sample)
            except DegenerateSampleError as e:
                logger.debug(f"Iteration {iteration}: {e}")
                continue

            valid_samples += 1
            error = self._error_metric(target, source, transformation)
            if error < best_error:
                best_error = error
                best_transformation = transformation

        if best_transformation is None:
            raise AlignmentFailure(
                f"No valid sample in {self.max_iterations} iterations"
            )

        fitness, inlier_ratio = compute_fitness(
            target.index, source.points, best_transformation, self.max_correspondence_distance
        )
        logger.info(
            f"SAC-IA {source.name or 'source'}: fitness={fitness:.6g}, "
            f"inliers={inlier_ratio:.1%}, valid samples {valid_samples}/{self.max_iterations}"
        )
        return AlignmentResult(
            fitness_score=fitness,
            transformation=best_transformation,
            inlier_ratio=inlier_ratio,
            iterations=self.max_iterations,
            valid_samples=valid_samples
        )

    def _select_samples(self, points: np.ndarray) -> np.ndarray:
        """Draw sample indices whose points are spread out and not collinear."""
        indices = self.rng.choice(len(points), size=self.nr_samples, replace=False)
        sample = points[indices]

        pairwise = np.linalg.norm(sample[:, None, :] - sample[None, :, :], axis=2)
        closest = pairwise[np.triu_indices(self.nr_samples, k=1)].min()
        if closest < self.min_sample_distance:
            raise DegenerateSampleError(
                f"sampled points {closest:.4g} apart, minimum is {self.min_sample_distance}"
            )
        if _is_collinear(sample):
            raise DegenerateSampleError("sampled points are collinear")
        return indices

    def _estimate(self, target: FeatureCloud, source: FeatureCloud, sample: np.ndarray) -> np.ndarray:
        """
        Match the sample in descriptor space and fit a rigid transform.

        Matches are not filtered: several samples may hit the same target
        point. The SVD fit still returns a proper rigid transform in that case
        and the scoring step ranks it.
        """
        _, candidates = target.feature_index.nearest(
            source.descriptors[sample], k=self.k_correspondences
        )
        candidates = np.asarray(candidates).reshape(len(sample), -1)
        if candidates.shape[1] == 1:
            matches = candidates[:, 0]
        else:
            choice = self.rng.integers(0, candidates.shape[1], size=len(sample))
            matches = candidates[np.arange(len(sample)), choice]

        return estimate_rigid_transformation(source.points[sample], target.points[matches])

    def _error_metric(self, target: FeatureCloud, source: FeatureCloud, transformation: np.ndarray) -> float:
        """Truncated quadratic error over every source point."""
        sq_distances, _ = target.index.nearest(transform_points(source.points, transformation))
        return float(np.mean(np.minimum(sq_distances, self.max_correspondence_distance)))


def align(
    target: FeatureCloud,
    source: FeatureCloud,
    config: Optional[Dict[str, Any]] = None,
    rng: Optional[np.random.Generator] = None
) -> AlignmentResult:
    """Functional shortcut for SampleConsensusAlignment(config, rng).align(target, source)."""
    return SampleConsensusAlignment(config, rng).align(target, source)
