"""
Registration algorithms for template alignment.
"""

from .sample_consensus import AlignmentResult, SampleConsensusAlignment, align, compute_fitness
from .template_selector import TemplateRegistry, TemplateSelector, reduce_best, select_best
from .icp_engine import ICPEngine, RefinementResult, refine
from .quality import QualityEvaluator, QualityMetrics

__all__ = [
    "AlignmentResult",
    "ICPEngine",
    "QualityEvaluator",
    "QualityMetrics",
    "RefinementResult",
    "SampleConsensusAlignment",
    "TemplateRegistry",
    "TemplateSelector",
    "align",
    "compute_fitness",
    "reduce_best",
    "refine",
    "select_best",
]
