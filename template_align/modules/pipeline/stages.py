"""
Pipeline stages.

Each stage takes file paths and parameters, returns its result and writes its
output file. Stages share no state; the runner wires them together.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from template_align.core.errors import CorrespondenceError
from template_align.core.logging_config import get_logger
from template_align.modules.cloud import PointCloud, voxel_downsample
from template_align.modules.cloud.core.transformations import estimate_rigid_transformation
from template_align.modules.cloud.io import load_point_cloud, save_point_cloud, save_transformation
from template_align.modules.features import DescriptorExtractor
from template_align.modules.registration import (
    AlignmentResult,
    ICPEngine,
    QualityEvaluator,
    RefinementResult,
    TemplateRegistry,
    TemplateSelector,
)

logger = get_logger(__name__)


class Stage(str, Enum):
    ESTIMATE_TRANSFORM = "estimate"
    TRANSFORM = "transform"
    TEMPLATE_MATCH = "match"
    ICP = "icp"


@dataclass(frozen=True)
class MatchOutcome:
    """Best template found for a target"""
    index: int
    template_name: Optional[str]
    result: AlignmentResult
    quality: str


def format_transformation(T: np.ndarray) -> str:
    """Rotation block and translation vector as a printable report."""
    # + 0.0 turns -0.0 into 0.0 so rounded zeros never print as -0.000
    R = np.round(T[:3, :3], 3) + 0.0
    t = np.round(T[:3, 3], 3) + 0.0
    return "\n".join([
        "",
        "    | %6.3f %6.3f %6.3f | " % tuple(R[0]),
        "R = | %6.3f %6.3f %6.3f | " % tuple(R[1]),
        "    | %6.3f %6.3f %6.3f | " % tuple(R[2]),
        "",
        "t = < %0.3f, %0.3f, %0.3f >" % tuple(t),
    ])


def estimate_transform_stage(source_path: str, target_path: str) -> np.ndarray:
    """
    Rigid transform between two clouds whose rows already correspond,
    e.g. a cloud and a transformed copy of it.

    Raises:
        CorrespondenceError: the clouds differ in size or have fewer than 3 points
    """
    source = load_point_cloud(source_path)
    target = load_point_cloud(target_path)
    if len(source) != len(target):
        raise CorrespondenceError(
            f"Clouds must correspond row by row: {len(source)} vs {len(target)} points"
        )
    if len(source) < 3:
        raise CorrespondenceError(f"At least 3 corresponding points are required, got {len(source)}")

    T = estimate_rigid_transformation(source.positions, target.positions)
    logger.info(f"Estimated transformation {source_path} -> {target_path}")
    return T


def transform_stage(cloud_path: str, transformation: np.ndarray, output_path: str) -> PointCloud:
    """Apply a rigid transform to a cloud file and save the result."""
    cloud = load_point_cloud(cloud_path)
    transformed = cloud.transformed(transformation)
    save_point_cloud(transformed, output_path)
    logger.info(f"Transformed {cloud_path} -> {output_path}")
    return transformed


def template_match_stage(
    target_path: str,
    template_list_path: str,
    output_path: str,
    feature_config: Optional[Dict[str, Any]] = None,
    alignment_config: Optional[Dict[str, Any]] = None,
    voxel_size: float = 0.0
) -> MatchOutcome:
    """
    Find the template that best fits the target and save it in the target frame.

    The target is voxel downsampled first when voxel_size > 0.
    """
    extractor = DescriptorExtractor(feature_config)
    templates = TemplateRegistry.from_list_file(template_list_path, extractor)

    target_cloud = voxel_downsample(load_point_cloud(target_path), voxel_size)
    logger.info(f"Target {target_path}: {len(target_cloud)} points after downsampling")
    target = extractor.extract(target_cloud, name=target_path)

    selector = TemplateSelector(alignment_config)
    index, result = selector.select_best(target, templates)
    best_template = templates[index]

    aligned = PointCloud(best_template.points).transformed(result.transformation)
    save_point_cloud(aligned, output_path, binary=True)

    quality = QualityEvaluator().evaluate(result).quality
    logger.info(f"Saved best template #{index} ({best_template.name}) aligned to {output_path}, quality={quality}")
    return MatchOutcome(
        index=index,
        template_name=best_template.name,
        result=result,
        quality=quality
    )


def icp_stage(
    source_path: str,
    target_path: str,
    result_path: Optional[str] = None,
    icp_config: Optional[Dict[str, Any]] = None,
    initial_transform: Optional[np.ndarray] = None
) -> RefinementResult:
    """Refine source onto target with ICP and write the final matrix as text."""
    source = load_point_cloud(source_path)
    target = load_point_cloud(target_path)

    result = ICPEngine(icp_config).refine(source, target, initial_transform)
    if result_path:
        save_transformation(result.transformation, result_path)
        logger.info(f"Wrote ICP transformation to {result_path}")
    return result
