"""
Local surface descriptors: normals and FPFH signatures.
"""

from .feature_cloud import DegeneratePolicy, DescriptorExtractor, FeatureCloud, extract
from .fpfh import DESCRIPTOR_SIZE

__all__ = [
    "DESCRIPTOR_SIZE",
    "DegeneratePolicy",
    "DescriptorExtractor",
    "FeatureCloud",
    "extract",
]
