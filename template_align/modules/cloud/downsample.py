import numpy as np
import open3d as o3d

from .point_cloud import PointCloud


def voxel_downsample(cloud: PointCloud, voxel_size: float) -> PointCloud:
    """
    Downsamples the cloud using Open3D's voxel grid filter.

    Only positions survive; values <= 0 bypass downsampling.
    """
    if voxel_size <= 0 or len(cloud) == 0:
        return cloud

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(cloud.positions)
    pcd = pcd.voxel_down_sample(voxel_size=voxel_size)
    return PointCloud(np.asarray(pcd.points))
