"""
Point-to-point ICP refinement.

Refines an approximate registration by alternating nearest-point
correspondence search and a closed-form least-squares rigid fit.
Running out of iterations is reported through `converged`, never raised.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from template_align.core.config import settings
from template_align.core.logging_config import get_logger
from template_align.modules.cloud import SpatialIndex, as_positions
from template_align.modules.cloud.core.transformations import (
    estimate_rigid_transformation,
    rotation_angle,
    transform_points,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RefinementResult:
    """Result from ICP refinement"""
    converged: bool  # True only when a threshold stopped the loop
    fitness_score: float  # mean squared nearest-point distance
    transformation: np.ndarray  # 4x4 cumulative transformation, source -> target
    iterations: int


class ICPEngine:
    """
    Iterative Closest Point refinement engine.

    Args:
        config: Configuration dict with:
            - icp_iterations: Max ICP iterations (default: 50)
            - transformation_epsilon: stop when the iteration's translation and
              rotation angle (radians) both fall below this (default: 1e-6)
            - fitness_epsilon: stop when fitness changes less than this (default: 1e-10)
            - icp_threshold: max correspondence distance; None keeps every
              nearest pair (default: None)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.max_iterations = config.get("icp_iterations", settings.ICP_ITERATIONS)
        self.transformation_epsilon = config.get("transformation_epsilon", settings.TRANSFORMATION_EPSILON)
        self.fitness_epsilon = config.get("fitness_epsilon", settings.FITNESS_EPSILON)
        self.threshold = config.get("icp_threshold")

    def refine(self, source, target, initial_transform: Optional[np.ndarray] = None) -> RefinementResult:
        """
        Refine the transform bringing source onto target.

        Args:
            source: PointCloud or (N, 3) array to be moved
            target: PointCloud or (M, 3) reference
            initial_transform: starting 4x4 guess (default: identity)
        """
        source_points = as_positions(source)
        target_points = as_positions(target)
        if len(source_points) == 0 or len(target_points) == 0:
            raise ValueError("ICP needs non-empty source and target clouds")

        target_index = SpatialIndex(target_points)
        transformation = np.eye(4) if initial_transform is None else np.array(initial_transform, dtype=np.float64)

        current = transform_points(source_points, transformation)
        sq_distances, indices = target_index.nearest(current)
        fitness = float(sq_distances.mean())

        converged = False
        iterations = 0
        for iteration in range(1, self.max_iterations + 1):
            iterations = iteration

            mask = np.ones(len(current), dtype=bool)
            if self.threshold is not None:
                mask = sq_distances <= self.threshold ** 2
            if mask.sum() < 3:
                logger.warning(f"ICP iteration {iteration}: only {mask.sum()} correspondences, stopping")
                break

            delta = estimate_rigid_transformation(current[mask], target_points[indices[mask]])
            transformation = delta @ transformation

            current = transform_points(source_points, transformation)
            sq_distances, indices = target_index.nearest(current)
            new_fitness = float(sq_distances.mean())

            translation_change = float(np.linalg.norm(delta[:3, 3]))
            rotation_change = rotation_angle(delta)
            fitness_change = abs(fitness - new_fitness)
            fitness = new_fitness

            if (translation_change < self.transformation_epsilon
                    and rotation_change < self.transformation_epsilon):
                converged = True
            elif fitness_change < self.fitness_epsilon:
                converged = True
            if converged:
                break

        logger.info(
            f"ICP {'converged' if converged else 'did not converge'} after "
            f"{iterations} iterations, fitness={fitness:.6g}"
        )
        return RefinementResult(
            converged=converged,
            fitness_score=fitness,
            transformation=transformation,
            iterations=iterations
        )


def refine(source, target, config: Optional[Dict[str, Any]] = None, initial_transform: Optional[np.ndarray] = None) -> RefinementResult:
    """Functional shortcut for ICPEngine(config).refine(source, target, initial_transform)."""
    return ICPEngine(config).refine(source, target, initial_transform)
