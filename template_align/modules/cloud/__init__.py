"""
Point cloud records, spatial indexing, transforms and file I/O.
"""

from .point_cloud import FIELD_MAP, PointCloud, PointSchema, as_positions
from .spatial_index import SpatialIndex
from .downsample import voxel_downsample

__all__ = [
    "FIELD_MAP",
    "PointCloud",
    "PointSchema",
    "SpatialIndex",
    "as_positions",
    "voxel_downsample",
]
