"""
Core math utilities for point clouds.
"""

from .transformations import (
    create_transformation_matrix,
    estimate_rigid_transformation,
    invert_transformation,
    is_rigid,
    rotation_angle,
    transform_points,
)

__all__ = [
    "create_transformation_matrix",
    "estimate_rigid_transformation",
    "invert_transformation",
    "is_rigid",
    "rotation_angle",
    "transform_points",
]
