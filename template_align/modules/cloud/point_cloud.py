"""
Generic point record container.

A PointCloud always carries xyz positions; the schema names which additional
scalar fields travel with them. Every field is row-aligned with positions, so
the row index is the stable point index used for correspondences.
"""
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from .core.transformations import transform_points

# Column count and dtype of every supported per-point field
FIELD_MAP = {
    "positions": {"width": 3, "dtype": np.float64},
    "intensity": {"width": 1, "dtype": np.float32},
    "normals": {"width": 3, "dtype": np.float64},
}


class PointSchema(Enum):
    """Supported point layouts and the fields they carry besides xyz."""
    XYZ = ()
    XYZI = ("intensity",)
    XYZ_NORMAL = ("normals",)

    @property
    def fields(self) -> Tuple[str, ...]:
        return self.value

    @classmethod
    def from_fields(cls, fields) -> "PointSchema":
        names = tuple(sorted(f for f in fields if f in FIELD_MAP and f != "positions"))
        for schema in cls:
            if tuple(sorted(schema.fields)) == names:
                return schema
        # Unknown combinations keep whatever we can represent: intensity wins
        if "intensity" in names:
            return cls.XYZI
        if "normals" in names:
            return cls.XYZ_NORMAL
        return cls.XYZ


class PointCloud:
    """
    Ordered point records parameterised by a PointSchema.

    Args:
        positions: (N, 3+) array; only the first three columns are kept
        fields: optional per-point fields keyed by name (see FIELD_MAP)
        schema: layout; inferred from the supplied fields when omitted
    """

    def __init__(
        self,
        positions: np.ndarray,
        fields: Optional[Dict[str, np.ndarray]] = None,
        schema: Optional[PointSchema] = None
    ):
        positions = np.asarray(positions, dtype=np.float64)
        if positions.size == 0:
            positions = positions.reshape(0, 3)
        if positions.ndim != 2 or positions.shape[1] < 3:
            raise ValueError(f"Positions must have shape (N, 3), got {positions.shape}")
        self.positions = positions[:, :3].copy()

        fields = fields or {}
        self.schema = schema or PointSchema.from_fields(fields.keys())
        self.fields: Dict[str, np.ndarray] = {}
        for name in self.schema.fields:
            if name not in fields:
                raise ValueError(f"Schema {self.schema.name} requires field '{name}'")
            info = FIELD_MAP[name]
            data = np.asarray(fields[name], dtype=info["dtype"]).reshape(-1, info["width"])
            if len(data) != len(self.positions):
                raise ValueError(
                    f"Field '{name}' has {len(data)} rows, expected {len(self.positions)}"
                )
            self.fields[name] = data

    def __len__(self) -> int:
        return len(self.positions)

    def __repr__(self) -> str:
        return f"PointCloud(schema={self.schema.name}, points={len(self)})"

    @property
    def intensity(self) -> Optional[np.ndarray]:
        return self.fields.get("intensity")

    @property
    def normals(self) -> Optional[np.ndarray]:
        return self.fields.get("normals")

    def select(self, indices: np.ndarray) -> "PointCloud":
        """Return a new cloud holding only the given rows, in the given order."""
        indices = np.asarray(indices, dtype=np.int64)
        return PointCloud(
            self.positions[indices],
            {name: data[indices] for name, data in self.fields.items()},
            self.schema
        )

    def transformed(self, T: np.ndarray) -> "PointCloud":
        """Return a rigidly transformed copy; normals are rotated, scalars kept."""
        fields = dict(self.fields)
        if "normals" in fields:
            fields["normals"] = fields["normals"] @ T[:3, :3].T
        return PointCloud(transform_points(self.positions, T), fields, self.schema)


def as_positions(cloud) -> np.ndarray:
    """Accept a PointCloud or a raw (N, 3+) array and return (N, 3) float64 positions."""
    if isinstance(cloud, PointCloud):
        return cloud.positions
    points = np.asarray(cloud, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(f"Expected (N, 3) points, got shape {points.shape}")
    return points[:, :3]
