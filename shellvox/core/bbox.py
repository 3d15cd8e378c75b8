from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent; always derived from geometry, never authored."""
    min: np.ndarray   # (3,)
    max: np.ndarray   # (3,)

    @staticmethod
    def from_points(points: np.ndarray) -> "BoundingBox":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("Cannot compute a bounding box of an empty point set.")
        return BoundingBox(min=pts.min(axis=0), max=pts.max(axis=0))

    @staticmethod
    def from_triangles(positions: np.ndarray) -> "BoundingBox":
        # (N, 3, 3) corner arrays collapse to a plain point set
        return BoundingBox.from_points(np.asarray(positions).reshape(-1, 3))

    @property
    def extent(self) -> np.ndarray:
        return self.max - self.min

    def grid_range(self, resolution: float) -> tuple[np.ndarray, np.ndarray]:
        """Integer scan bounds padded by one cell: [floor(min/r) - 1, ceil(max/r) + 1)."""
        lo = np.floor(self.min / resolution).astype(np.int64) - 1
        hi = np.ceil(self.max / resolution).astype(np.int64) + 1
        return lo, hi
