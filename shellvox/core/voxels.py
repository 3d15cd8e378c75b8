from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Iterator
import numpy as np


INT32_MIN = int(np.iinfo(np.int32).min)
INT32_MAX = int(np.iinfo(np.int32).max)


def grid_coordinates(points: np.ndarray, resolution: float) -> np.ndarray:
    """round(p / r) per component, ties away from zero, as int32.

    Raises ``ValueError`` when a coordinate does not fit the int32 grid.
    """
    if resolution <= 0:
        raise ValueError(f"Resolution must be positive, got {resolution}")
    scaled = np.asarray(points, dtype=np.float64) / float(resolution)
    whole = np.trunc(scaled)
    # rint rounds exact halves to even; push those away from zero instead
    rounded = np.where(np.abs(scaled - whole) == 0.5, whole + np.sign(scaled), np.rint(scaled))
    if rounded.size and (rounded.min() < INT32_MIN or rounded.max() > INT32_MAX):
        raise ValueError(
            f"Grid coordinates span [{rounded.min():.0f}, {rounded.max():.0f}] at resolution "
            f"{resolution}, outside the int32 voxel range; use a coarser resolution or recentre the input"
        )
    return rounded.astype(np.int32)


@dataclass
class VoxelBatch:
    """Voxel samples; may hold several entries per coordinate until deduplicated."""
    coords: np.ndarray    # (K, 3) int32
    colors: np.ndarray    # (K, 4) uint8 RGBA

    def __post_init__(self) -> None:
        self.coords = np.asarray(self.coords, dtype=np.int32).reshape(-1, 3)
        self.colors = np.asarray(self.colors, dtype=np.uint8).reshape(-1, 4)
        if len(self.coords) != len(self.colors):
            raise ValueError(f"Got {len(self.colors)} colors for {len(self.coords)} coordinates")

    def __len__(self) -> int:
        return int(self.coords.shape[0])

    @staticmethod
    def empty() -> "VoxelBatch":
        return VoxelBatch(np.zeros((0, 3), dtype=np.int32), np.zeros((0, 4), dtype=np.uint8))

    @staticmethod
    def concatenate(batches: Iterable["VoxelBatch"]) -> "VoxelBatch":
        parts = [b for b in batches if len(b)]
        if not parts:
            return VoxelBatch.empty()
        return VoxelBatch(
            np.concatenate([b.coords for b in parts], axis=0),
            np.concatenate([b.colors for b in parts], axis=0),
        )

    def deduplicate(self) -> "VoxelBatch":
        """One entry per coordinate; the last sample written for it wins.

        Output is sorted by coordinate so the result does not depend on how
        the samples were partitioned, only on their order.
        """
        n = len(self)
        if n == 0:
            return VoxelBatch.empty()
        # First occurrence in the reversed array is the last write.
        _, first_rev = np.unique(self.coords[::-1], axis=0, return_index=True)
        keep = (n - 1) - first_rev
        return VoxelBatch(self.coords[keep], self.colors[keep])

    def to_pairs(self) -> list[tuple[tuple[int, int, int], tuple[int, int, int, int]]]:
        return list(self.iter_pairs())

    def iter_pairs(self) -> Iterator[tuple[tuple[int, int, int], tuple[int, int, int, int]]]:
        for c, rgba in zip(self.coords.tolist(), self.colors.tolist()):
            yield (tuple(c), tuple(rgba))  # type: ignore[misc]
