from .stages import (
    MatchOutcome,
    Stage,
    estimate_transform_stage,
    format_transformation,
    icp_stage,
    template_match_stage,
    transform_stage,
)
from .runner import PipelineBuilder, PipelineConfig, PipelineStep, run_pipeline

__all__ = [
    "MatchOutcome",
    "PipelineBuilder",
    "PipelineConfig",
    "Stage",
    "PipelineStep",
    "estimate_transform_stage",
    "format_transformation",
    "icp_stage",
    "run_pipeline",
    "template_match_stage",
    "transform_stage",
]
