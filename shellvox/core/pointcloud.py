from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Sequence
import numpy as np
from .bbox import BoundingBox
from .transform import rotate_points
from .utils import ProgressReporter, progress_or_null
from .voxels import VoxelBatch, grid_coordinates


def _white(n: int) -> np.ndarray:
    return np.full((n, 4), 255, dtype=np.uint8)


@dataclass
class PointCloud:
    """Ordered (position, RGBA) samples."""
    positions: np.ndarray                               # (N, 3)
    colors: Optional[np.ndarray] = field(default=None)  # (N, 4) uint8, white if omitted

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        n = len(self.positions)
        if self.colors is None:
            self.colors = _white(n)
        colors = np.asarray(self.colors, dtype=np.uint8)
        if colors.ndim != 2 or colors.shape[1] != 4:
            raise ValueError(f"Point colors must be (N, 4) RGBA, got {colors.shape}")
        if colors.shape[0] != n:
            raise ValueError(f"Color count {colors.shape[0]} != point count {n}")
        self.colors = colors

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    def bbox(self) -> BoundingBox:
        return BoundingBox.from_points(self.positions)

    def rotate(self, angles_rad: Sequence[float]) -> None:
        self.positions = rotate_points(self.positions, angles_rad)

    def voxelize(self, resolution: float, progress: Optional[ProgressReporter] = None) -> VoxelBatch:
        """Quantize every point to the grid; later points overwrite earlier ones."""
        progress = progress_or_null(progress)
        progress.start(len(self))
        coords = grid_coordinates(self.positions, resolution)
        voxels = VoxelBatch(coords, self.colors).deduplicate()
        progress.advance(len(self))
        return voxels


def drop_non_finite(positions: np.ndarray, colors: Optional[np.ndarray] = None) -> tuple[np.ndarray, Optional[np.ndarray], int]:
    """Filter out samples with any NaN/inf coordinate.

    Returns the kept positions, matching colors and the number dropped.
    """
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    mask = np.isfinite(pos).all(axis=1)
    dropped = int(len(pos) - mask.sum())
    kept_colors = None if colors is None else np.asarray(colors)[mask]
    return pos[mask], kept_colors, dropped
