import os

import numpy as np
import open3d as o3d

from template_align.core.errors import LoadError
from template_align.core.logging_config import get_logger
from ..point_cloud import PointCloud

logger = get_logger(__name__)


def load_point_cloud(path: str) -> PointCloud:
    """
    Loads a point cloud file (PCD, PLY, ...) into a PointCloud.

    Intensity and normals are kept when the file carries them.

    Raises:
        LoadError: file missing, unreadable, malformed or without points
    """
    if not os.path.isfile(path):
        raise LoadError(path, "file does not exist")

    try:
        pcd = o3d.t.io.read_point_cloud(path)
    except RuntimeError as e:
        raise LoadError(path, str(e)) from e

    if "positions" not in pcd.point or pcd.point["positions"].shape[0] == 0:
        raise LoadError(path, "no points could be read")

    positions = pcd.point["positions"].numpy().astype(np.float64)
    if not np.all(np.isfinite(positions)):
        raise LoadError(path, "non-finite coordinates")

    fields = {}
    if "intensity" in pcd.point:
        fields["intensity"] = pcd.point["intensity"].numpy()
    elif "normals" in pcd.point:
        fields["normals"] = pcd.point["normals"].numpy()

    cloud = PointCloud(positions, fields)
    logger.debug(f"Loaded {cloud} from {path}")
    return cloud


def save_point_cloud(cloud: PointCloud, output_path: str, binary: bool = False):
    """Saves a PointCloud (positions plus schema fields) to a point cloud file."""
    pcd = o3d.t.geometry.PointCloud()
    pcd.point["positions"] = o3d.core.Tensor(cloud.positions.astype(np.float32))
    for name, data in cloud.fields.items():
        pcd.point[name] = o3d.core.Tensor(data.astype(np.float32))

    directory = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(directory, exist_ok=True)

    if not o3d.t.io.write_point_cloud(output_path, pcd, write_ascii=not binary):
        raise OSError(f"Failed to write point cloud to {output_path}")
    logger.debug(f"Saved {cloud} to {output_path}")


def save_transformation(T: np.ndarray, output_path: str):
    """Writes a 4x4 matrix as plain text, one row per line."""
    np.savetxt(output_path, np.asarray(T, dtype=np.float64).reshape(4, 4), fmt="%.9f")


def load_transformation(path: str) -> np.ndarray:
    """
    Reads a 4x4 plain-text matrix.

    Raises:
        LoadError: file missing or not a 4x4 numeric matrix
    """
    if not os.path.isfile(path):
        raise LoadError(path, "file does not exist")
    try:
        T = np.loadtxt(path, dtype=np.float64)
    except ValueError as e:
        raise LoadError(path, f"not a numeric matrix: {e}") from e
    if T.shape != (4, 4):
        raise LoadError(path, f"expected a 4x4 matrix, got shape {T.shape}")
    return T
