"""
Error taxonomy for the alignment pipeline.

File and parse errors are fatal for a run. Per-point and per-sample
degeneracies are recovered where they happen and only surface when nothing
usable is left.
"""
from typing import Optional


class TemplateAlignError(Exception):
    """Base class for all pipeline errors"""


class LoadError(TemplateAlignError):
    """Point cloud, template list or matrix file missing, unreadable or malformed"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load '{path}': {reason}")


class FeatureComputationError(TemplateAlignError):
    """Neighbourhood too small to estimate a normal or descriptor at a point"""

    def __init__(self, index: Optional[int], reason: str):
        self.index = index
        self.reason = reason
        super().__init__(reason if index is None else f"Point {index}: {reason}")


class EmptyRegistryError(TemplateAlignError):
    """Template selection requested with no templates"""


class DegenerateSampleError(TemplateAlignError):
    """A sampled correspondence set cannot define a rigid transform"""


class AlignmentFailure(TemplateAlignError):
    """Iteration budget exhausted without a single valid transform"""


class CorrespondenceError(TemplateAlignError, ValueError):
    """Row-corresponding clouds differ in size or are too small to fit a transform"""
