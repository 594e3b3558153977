"""
Feature clouds: points bundled with their normals and FPFH descriptors.

This is the unit of comparison during registration. A FeatureCloud is built
in one pass from a raw cloud and never updated afterwards; a changed point
set means a new extraction.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from template_align.core.config import settings
from template_align.core.errors import FeatureComputationError
from template_align.core.logging_config import get_logger
from template_align.modules.cloud import SpatialIndex, as_positions
from .fpfh import DESCRIPTOR_SIZE, compute_fpfh, compute_spfh
from .normals import estimate_normal, orient_normals

logger = get_logger(__name__)


class DegeneratePolicy(str, Enum):
    """What to do with a point whose normal or descriptor cannot be computed."""
    EXCLUDE = "exclude"  # drop the point, the FeatureCloud shrinks
    RAISE = "raise"      # fail the whole extraction


class FeatureCloud:
    """
    Immutable {points, normals, descriptors} bundle.

    All arrays share the same length and row order. source_indices maps each
    row back to the row of the raw cloud it was derived from. A geometric index
    over points and a feature-space index over descriptors are built once here.
    """

    def __init__(
        self,
        points: np.ndarray,
        normals: np.ndarray,
        descriptors: np.ndarray,
        source_indices: Optional[np.ndarray] = None,
        name: Optional[str] = None
    ):
        points = np.array(points, dtype=np.float64)
        normals = np.array(normals, dtype=np.float64)
        descriptors = np.array(descriptors, dtype=np.float64)
        if source_indices is None:
            source_indices = np.arange(len(points))
        source_indices = np.array(source_indices, dtype=np.int64)

        if not (len(points) == len(normals) == len(descriptors) == len(source_indices)):
            raise ValueError(
                f"Feature cloud arrays differ in length: points={len(points)}, "
                f"normals={len(normals)}, descriptors={len(descriptors)}, "
                f"source_indices={len(source_indices)}"
            )
        if len(points) == 0:
            raise ValueError("Feature cloud needs at least one point")

        for array in (points, normals, descriptors, source_indices):
            array.setflags(write=False)

        self._points = points
        self._normals = normals
        self._descriptors = descriptors
        self._source_indices = source_indices
        self.name = name

        self.index = SpatialIndex(points)
        self.feature_index = SpatialIndex(descriptors)

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def normals(self) -> np.ndarray:
        return self._normals

    @property
    def descriptors(self) -> np.ndarray:
        return self._descriptors

    @property
    def source_indices(self) -> np.ndarray:
        return self._source_indices

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        label = f"'{self.name}', " if self.name else ""
        return f"FeatureCloud({label}points={len(self)})"


class DescriptorExtractor:
    """
    Computes normals and FPFH descriptors for a raw cloud.

    Args:
        config: Configuration dict with:
            - normal_radius: neighbourhood radius for normals (default: settings.NORMAL_RADIUS)
            - feature_radius: neighbourhood radius for FPFH (default: settings.FEATURE_RADIUS)
            - degenerate_policy: "exclude" or "raise" (default: settings.DEGENERATE_POLICY)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.normal_radius = config.get("normal_radius", settings.NORMAL_RADIUS)
        self.feature_radius = config.get("feature_radius", settings.FEATURE_RADIUS)
        self.policy = DegeneratePolicy(config.get("degenerate_policy", settings.DEGENERATE_POLICY))

        if self.normal_radius <= 0 or self.feature_radius <= 0:
            raise ValueError("normal_radius and feature_radius must be positive")

    def extract(self, cloud, name: Optional[str] = None) -> FeatureCloud:
        """
        Build a FeatureCloud from a PointCloud or (N, 3) array.

        Raises:
            FeatureComputationError: empty cloud, every point degenerate, or
                any degenerate point under DegeneratePolicy.RAISE
        """
        positions = as_positions(cloud)
        if len(positions) == 0:
            raise FeatureComputationError(None, "cloud has no points")

        normals, kept = self._compute_normals(positions)
        points = positions[kept]
        normals = orient_normals(points, normals, positions.mean(axis=0))

        descriptors, described = self._compute_descriptors(points, normals, kept)
        if len(described) == 0:
            raise FeatureComputationError(None, "no point has a computable descriptor")

        dropped = len(positions) - len(described)
        if dropped:
            logger.warning(
                f"Excluded {dropped}/{len(positions)} degenerate points"
                f"{f' from {name}' if name else ''}"
            )

        feature_cloud = FeatureCloud(
            points[described],
            normals[described],
            descriptors[described],
            source_indices=kept[described],
            name=name
        )
        logger.debug(f"Extracted {feature_cloud}")
        return feature_cloud

    def _handle(self, error: FeatureComputationError):
        if self.policy is DegeneratePolicy.RAISE:
            raise error
        logger.debug(f"Skipping point: {error}")

    def _compute_normals(self, positions: np.ndarray):
        index = SpatialIndex(positions)
        neighbourhoods = index.radius_all(self.normal_radius)

        normals: List[np.ndarray] = []
        kept: List[int] = []
        for i, neighbours in enumerate(neighbourhoods):
            try:
                normals.append(estimate_normal(positions, neighbours, i))
                kept.append(i)
            except FeatureComputationError as e:
                self._handle(e)

        if not kept:
            raise FeatureComputationError(None, "no point has a computable normal")
        return np.array(normals), np.array(kept, dtype=np.int64)

    def _compute_descriptors(self, points: np.ndarray, normals: np.ndarray, source_rows: np.ndarray):
        # Neighbourhoods only span points that survived normal estimation
        index = SpatialIndex(points)
        neighbourhoods = index.radius_all(self.feature_radius)

        spfh = np.array([
            compute_spfh(points, normals, i, neighbours)
            for i, neighbours in enumerate(neighbourhoods)
        ])

        descriptors = np.zeros((len(points), DESCRIPTOR_SIZE))
        described: List[int] = []
        for i, neighbours in enumerate(neighbourhoods):
            if len(neighbours) < 2:
                self._handle(FeatureComputationError(
                    int(source_rows[i]), "no neighbours in feature radius"
                ))
                continue
            descriptors[i] = compute_fpfh(points, neighbourhoods, spfh, i)
            described.append(i)

        return descriptors, np.array(described, dtype=np.int64)


def extract(
    cloud,
    normal_radius: float,
    descriptor_radius: float,
    policy: DegeneratePolicy = DegeneratePolicy.EXCLUDE
) -> FeatureCloud:
    """Functional shortcut for DescriptorExtractor(...).extract(cloud)."""
    extractor = DescriptorExtractor({
        "normal_radius": normal_radius,
        "feature_radius": descriptor_radius,
        "degenerate_policy": policy,
    })
    return extractor.extract(cloud)
