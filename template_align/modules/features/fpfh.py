"""
Fast Point Feature Histograms (FPFH).

Each descriptor is three 11-bin histograms (33 values) over the Darboux frame
angles between a point and its radius neighbours:

- theta: rotation of the neighbour normal around the frame's first axis
- alpha: neighbour normal projected on the frame's second axis
- phi: first normal projected on the connecting direction

Only angles enter the histograms, which makes the descriptor invariant to
rigid motion of the cloud as long as normals are oriented consistently.
"""
from typing import List, Tuple

import numpy as np

NR_BINS = 11
DESCRIPTOR_SIZE = 3 * NR_BINS
# Angle difference (radians) below which the source/target roles are not swapped
SWAP_TOLERANCE = 1e-9


def compute_pair_features(
    p1: np.ndarray,
    n1: np.ndarray,
    p2: np.ndarray,
    n2: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Pair features between one point and k neighbours.

    Args:
        p1, n1: (3,) source point and normal
        p2, n2: (k, 3) neighbour points and normals

    Returns:
        (theta, alpha, phi, distance, valid) arrays of shape (k,)
    """
    dp = p2 - p1
    distance = np.linalg.norm(dp, axis=1)
    valid = distance > 0
    safe_distance = np.where(valid, distance, 1.0)

    angle1 = (dp @ n1) / safe_distance
    angle2 = np.einsum("ij,ij->i", n2, dp) / safe_distance

    # The point whose normal is closer to the connecting line becomes the source.
    # Ties (parallel normals) keep the given order whatever the rounding noise.
    swap = (
        np.arccos(np.clip(np.abs(angle1), 0.0, 1.0))
        - np.arccos(np.clip(np.abs(angle2), 0.0, 1.0))
    ) > SWAP_TOLERANCE
    source_n = np.where(swap[:, None], n2, n1)
    target_n = np.where(swap[:, None], n1, n2)
    dp = np.where(swap[:, None], -dp, dp)
    phi = np.where(swap, -angle2, angle1)

    v = np.cross(dp, source_n)
    v_norm = np.linalg.norm(v, axis=1)
    valid &= v_norm > 0
    v = v / np.where(v_norm > 0, v_norm, 1.0)[:, None]
    w = np.cross(source_n, v)

    alpha = np.einsum("ij,ij->i", v, target_n)
    theta = np.arctan2(
        np.einsum("ij,ij->i", w, target_n),
        np.einsum("ij,ij->i", source_n, target_n)
    )
    return theta, alpha, phi, distance, valid


def _bin_index(values: np.ndarray) -> np.ndarray:
    """Map values normalised to [0, 1] onto histogram bins."""
    return np.clip(np.floor(NR_BINS * values).astype(np.int64), 0, NR_BINS - 1)


def compute_spfh(
    points: np.ndarray,
    normals: np.ndarray,
    index: int,
    neighbours: np.ndarray
) -> np.ndarray:
    """Simplified point feature histogram of one point over its neighbours."""
    histogram = np.zeros(DESCRIPTOR_SIZE)
    neighbours = neighbours[neighbours != index]
    if len(neighbours) == 0:
        return histogram

    theta, alpha, phi, _, valid = compute_pair_features(
        points[index], normals[index], points[neighbours], normals[neighbours]
    )
    increment = 100.0 / len(neighbours)

    np.add.at(histogram, _bin_index((theta[valid] + np.pi) / (2.0 * np.pi)), increment)
    np.add.at(histogram, NR_BINS + _bin_index((alpha[valid] + 1.0) * 0.5), increment)
    np.add.at(histogram, 2 * NR_BINS + _bin_index((phi[valid] + 1.0) * 0.5), increment)
    return histogram


def compute_fpfh(
    points: np.ndarray,
    neighbourhoods: List[np.ndarray],
    spfh: np.ndarray,
    index: int
) -> np.ndarray:
    """
    FPFH of one point: its own SPFH plus the inverse squared distance weighted
    SPFHs of its neighbours, the weighted part normalised to 100 per feature.
    """
    neighbours = neighbourhoods[index]
    neighbours = neighbours[neighbours != index]

    weighted = np.zeros(DESCRIPTOR_SIZE)
    if len(neighbours):
        sq_distances = np.sum(np.square(points[neighbours] - points[index]), axis=1)
        distinct = sq_distances > 0
        weighted = (1.0 / sq_distances[distinct]) @ spfh[neighbours[distinct]]

    for start in range(0, DESCRIPTOR_SIZE, NR_BINS):
        total = weighted[start:start + NR_BINS].sum()
        if total > 0:
            weighted[start:start + NR_BINS] *= 100.0 / total

    return weighted + spfh[index]
