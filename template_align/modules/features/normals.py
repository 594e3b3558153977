"""
Surface normal estimation from radius neighbourhoods.

The covariance analysis only yields an axis: both n and -n are valid answers.
Normals are therefore oriented away from the cloud centroid, which moves
rigidly with the cloud and keeps descriptors pose independent.
"""
import numpy as np

from template_align.core.errors import FeatureComputationError

MIN_NEIGHBOURS = 3
# Ratio between the middle and largest covariance eigenvalue below which the
# neighbourhood is treated as a line and the normal as undefined
COLLINEAR_RATIO = 1e-12


def estimate_normal(points: np.ndarray, neighbours: np.ndarray, index: int) -> np.ndarray:
    """
    Normal at one point: eigenvector of the smallest covariance eigenvalue.

    Args:
        points: (N, 3) cloud positions
        neighbours: indices of the radius neighbourhood (query point included)
        index: row of the query point, used for error reporting

    Raises:
        FeatureComputationError: fewer than 3 neighbours or a collinear neighbourhood
    """
    if len(neighbours) < MIN_NEIGHBOURS:
        raise FeatureComputationError(
            index, f"{len(neighbours)} neighbours in normal radius, need {MIN_NEIGHBOURS}"
        )

    neighbourhood = points[neighbours]
    centered = neighbourhood - neighbourhood.mean(axis=0)
    covariance = centered.T @ centered / len(neighbourhood)

    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    if eigenvalues[2] <= 0 or eigenvalues[1] <= COLLINEAR_RATIO * eigenvalues[2]:
        raise FeatureComputationError(index, "collinear neighbourhood, normal undefined")

    normal = eigenvectors[:, 0]
    return normal / np.linalg.norm(normal)


def orient_normals(points: np.ndarray, normals: np.ndarray, centroid: np.ndarray) -> np.ndarray:
    """Flip every normal so it points away from the centroid."""
    outward = np.einsum("ij,ij->i", points - centroid, normals)
    signs = np.where(outward < 0, -1.0, 1.0)
    return normals * signs[:, None]
