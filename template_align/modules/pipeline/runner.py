from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from template_align.core.config import settings
from template_align.core.logging_config import get_logger
from .stages import (
    Stage,
    estimate_transform_stage,
    icp_stage,
    template_match_stage,
    transform_stage,
)

logger = get_logger(__name__)

STAGE_FUNCTIONS = {
    Stage.ESTIMATE_TRANSFORM: estimate_transform_stage,
    Stage.TRANSFORM: transform_stage,
    Stage.TEMPLATE_MATCH: template_match_stage,
    Stage.ICP: icp_stage,
}


@dataclass
class PipelineStep:
    """One stage to run and the keyword arguments of its stage function"""
    stage: Stage
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineConfig:
    """Ordered list of stages to run"""
    stages: List[PipelineStep] = field(default_factory=list)


class PipelineBuilder:
    """
    Fluid interface for building a PipelineConfig.

    Example:
        >>> config = (PipelineBuilder()
        ...           .template_match("scene.pcd", "object_templates.txt")
        ...           .icp("output.pcd", "scene.pcd")
        ...           .build())
        >>> results = run_pipeline(config)
    """

    def __init__(self):
        self.config = PipelineConfig()

    def _add(self, stage: Stage, **params):
        self.config.stages.append(PipelineStep(stage, params))
        return self

    def estimate_transform(self, source_path: str, target_path: str):
        """Estimates the rigid transform between two row-corresponding clouds."""
        return self._add(Stage.ESTIMATE_TRANSFORM, source_path=source_path, target_path=target_path)

    def transform(self, cloud_path: str, transformation: np.ndarray, output_path: str):
        """Applies a known transform to a cloud file."""
        return self._add(
            Stage.TRANSFORM,
            cloud_path=cloud_path,
            transformation=transformation,
            output_path=output_path
        )

    def template_match(
        self,
        target_path: str,
        template_list_path: str,
        output_path: str = settings.MATCH_OUTPUT,
        feature_config: Optional[Dict[str, Any]] = None,
        alignment_config: Optional[Dict[str, Any]] = None,
        voxel_size: float = 0.0
    ):
        """Selects the best template for the target and saves it aligned."""
        return self._add(
            Stage.TEMPLATE_MATCH,
            target_path=target_path,
            template_list_path=template_list_path,
            output_path=output_path,
            feature_config=feature_config,
            alignment_config=alignment_config,
            voxel_size=voxel_size
        )

    def icp(
        self,
        source_path: str,
        target_path: str,
        result_path: Optional[str] = settings.ICP_RESULT_FILE,
        icp_config: Optional[Dict[str, Any]] = None,
        initial_transform: Optional[np.ndarray] = None
    ):
        """Refines source onto target with ICP."""
        return self._add(
            Stage.ICP,
            source_path=source_path,
            target_path=target_path,
            result_path=result_path,
            icp_config=icp_config,
            initial_transform=initial_transform
        )

    def build(self) -> PipelineConfig:
        return self.config


def run_pipeline(config: PipelineConfig) -> List[Tuple[Stage, Any]]:
    """Run the configured stages in order and collect their results."""
    results = []
    for step in config.stages:
        logger.info(f"Running stage '{step.stage.value}'")
        results.append((step.stage, STAGE_FUNCTIONS[step.stage](**step.params)))
    return results
