"""
Rigid transformation utilities for point cloud registration.
"""
import numpy as np


def create_transformation_matrix(
    x: float, y: float, z: float,
    roll: float = 0, pitch: float = 0, yaw: float = 0
) -> np.ndarray:
    """
    Creates a 4x4 transformation matrix from translation and rotation parameters.

    Args:
        x, y, z: Translation in cloud units
        roll, pitch, yaw: Rotation in degrees

    Returns:
        4x4 numpy array representing the transformation matrix
    """
    roll_rad = np.radians(roll)
    pitch_rad = np.radians(pitch)
    yaw_rad = np.radians(yaw)

    T = np.eye(4)
    T[:3, 3] = [x, y, z]

    # Rotation (Z-Y-X order)
    cr, sr = np.cos(roll_rad), np.sin(roll_rad)
    cp, sp = np.cos(pitch_rad), np.sin(pitch_rad)
    cy, sy = np.cos(yaw_rad), np.sin(yaw_rad)

    R = np.array([
        [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
        [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
        [-sp, cp * sr, cp * cr]
    ])

    T[:3, :3] = R
    return T


def transform_points(points: np.ndarray, T: np.ndarray) -> np.ndarray:
    """
    Applies a 4x4 transformation matrix T to (N, 3) or (N, M) points.

    Args:
        points: Numpy array of shape (N, 3) or (N, M) where M >= 3
        T: 4x4 transformation matrix

    Returns:
        Transformed points with the same shape as input (always a new array)
    """
    if points is None or len(points) == 0:
        return points

    R = T[:3, :3]
    t = T[:3, 3]

    # points_transformed = points * R^T + t
    transformed = np.array(points, dtype=np.float64, copy=True)
    transformed[:, :3] = transformed[:, :3] @ R.T + t
    return transformed


def invert_transformation(T: np.ndarray) -> np.ndarray:
    """Closed-form inverse of a rigid 4x4 transform."""
    R = T[:3, :3]
    t = T[:3, 3]
    inverse = np.eye(4)
    inverse[:3, :3] = R.T
    inverse[:3, 3] = -R.T @ t
    return inverse


def rotation_angle(T: np.ndarray) -> float:
    """
    Geodesic angle (radians) of the rotation block.

    trace(R) = 1 + 2*cos(theta), so theta = arccos((trace(R) - 1) / 2)
    """
    trace = np.trace(T[:3, :3])
    return float(np.arccos(np.clip((trace - 1) / 2, -1, 1)))


def is_rigid(T: np.ndarray, atol: float = 1e-6) -> bool:
    """Check orthonormal rotation with det +1 and a homogeneous last row."""
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        return False
    R = T[:3, :3]
    return bool(
        np.allclose(R.T @ R, np.eye(3), atol=atol)
        and np.isclose(np.linalg.det(R), 1.0, atol=atol)
        and np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=atol)
    )


def estimate_rigid_transformation(source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """
    Least-squares rigid transform mapping source[i] onto target[i].

    Absolute orientation via SVD of the cross-covariance of the centered
    correspondence sets, with the reflection case corrected so the result
    is always a proper rotation.

    Args:
        source: (N, 3) points
        target: (N, 3) corresponding points

    Returns:
        4x4 transformation matrix
    """
    source = np.asarray(source, dtype=np.float64)[:, :3]
    target = np.asarray(target, dtype=np.float64)[:, :3]

    if source.shape != target.shape:
        raise ValueError(f"Correspondence sets differ in shape: {source.shape} vs {target.shape}")
    if len(source) < 3:
        raise ValueError(f"At least 3 correspondences are required, got {len(source)}")

    source_centroid = source.mean(axis=0)
    target_centroid = target.mean(axis=0)

    H = (source - source_centroid).T @ (target - target_centroid)
    U, _, Vt = np.linalg.svd(H)
    R = Vt.T @ U.T

    if np.linalg.det(R) < 0:
        Vt[-1, :] *= -1
        R = Vt.T @ U.T

    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = target_centroid - R @ source_centroid
    return T
