from .pcd import load_point_cloud, load_transformation, save_point_cloud, save_transformation
from .templates import read_template_list

__all__ = [
    "load_point_cloud",
    "load_transformation",
    "read_template_list",
    "save_point_cloud",
    "save_transformation",
]
