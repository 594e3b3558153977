"""
KD-tree backed neighbour queries over a fixed point set.
"""
from typing import List, Tuple

import numpy as np
from scipy.spatial import cKDTree


class SpatialIndex:
    """
    Read-only nearest / radius neighbour index.

    The tree is built once from the given points and never mutated, so a
    single index can be queried from several threads.

    Args:
        points: (N, D) array; for geometric queries D == 3, descriptors use D == 33
    """

    def __init__(self, points: np.ndarray):
        self.points = np.asarray(points, dtype=np.float64)
        if self.points.ndim != 2 or len(self.points) == 0:
            raise ValueError(f"Cannot index an empty point set (shape {self.points.shape})")
        self._tree = cKDTree(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def nearest(self, queries: np.ndarray, k: int = 1) -> Tuple[np.ndarray, np.ndarray]:
        """
        Nearest neighbours for every query row.

        Returns:
            (squared_distances, indices); shapes (M,) for k == 1, (M, k) otherwise
        """
        k = min(k, len(self.points))
        distances, indices = self._tree.query(np.asarray(queries, dtype=np.float64), k=k)
        return np.square(distances), indices

    def radius(self, query: np.ndarray, radius: float) -> np.ndarray:
        """Indices of all indexed points within radius of one query point, sorted."""
        indices = self._tree.query_ball_point(np.asarray(query, dtype=np.float64), r=radius)
        return np.array(sorted(indices), dtype=np.int64)

    def radius_all(self, radius: float) -> List[np.ndarray]:
        """Radius neighbourhood of every indexed point (each includes the point itself)."""
        neighbourhoods = self._tree.query_ball_point(self.points, r=radius)
        return [np.array(sorted(n), dtype=np.int64) for n in neighbourhoods]
