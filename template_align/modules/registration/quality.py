"""
Quality evaluation for coarse alignment results.
"""
from dataclasses import dataclass

from .sample_consensus import AlignmentResult


@dataclass
class QualityMetrics:
    """Metrics for evaluating alignment quality"""
    fitness: float
    inlier_ratio: float
    quality: str  # "excellent", "good", "poor"


class QualityEvaluator:
    """
    Evaluates the quality of a template alignment.

    Quality is based on:
    - Fitness: mean squared inlier distance (lower is better)
    - Inlier ratio: share of template points inside the correspondence cap
    """

    def __init__(self, good_fitness: float = 2e-5, min_inlier_ratio: float = 0.5):
        """
        Initialize quality evaluator.

        Args:
            good_fitness: Maximum fitness for "good" quality (default: 2e-5)
            min_inlier_ratio: Minimum inlier ratio for "good" quality (default: 0.5)
        """
        self.good_fitness = good_fitness
        self.min_inlier_ratio = min_inlier_ratio

    def evaluate(self, result: AlignmentResult) -> QualityMetrics:
        quality = self._classify_quality(result.fitness_score, result.inlier_ratio)
        return QualityMetrics(
            fitness=result.fitness_score,
            inlier_ratio=result.inlier_ratio,
            quality=quality
        )

    def _classify_quality(self, fitness: float, inlier_ratio: float) -> str:
        if fitness <= self.good_fitness / 10 and inlier_ratio >= 0.9:
            return "excellent"
        elif fitness <= self.good_fitness and inlier_ratio >= self.min_inlier_ratio:
            return "good"
        else:
            return "poor"

    def is_acceptable(self, result: AlignmentResult) -> bool:
        """True if the alignment is good or excellent"""
        return self._classify_quality(result.fitness_score, result.inlier_ratio) in ["excellent", "good"]
