from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import time
import numpy as np

from .intersector import intersect_many, interpolate_uv
from .mesh import Mesh
from .texture import WHITE, ColorSource, color_source
from .utils import ProgressReporter, get_logger, progress_or_null
from .voxels import VoxelBatch, grid_coordinates

_log = get_logger()

# (scan axis, outer cross axis, inner cross axis); progress advances per outer row.
SCAN_PASSES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (1, 0, 2),
    (2, 0, 1),
)


@dataclass
class VoxelizerConfig:
    resolution: float
    workers: int = 1
    untextured_color: Tuple[int, int, int, int] = WHITE

    def __post_init__(self) -> None:
        if not self.resolution > 0:
            raise ValueError(f"Resolution must be positive, got {self.resolution}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")


@dataclass(frozen=True)
class _Row:
    axis: int
    outer_axis: int
    inner_axis: int
    outer: int


class ShellVoxelizer:
    """Three-axis surface scan of a mesh onto the integer grid.

    For every principal axis, one ray per grid line of the two other axes is
    cast in the positive direction from just below the mesh bounds. Every
    crossing becomes a sample; surfaces seen from several axes yield repeated
    samples, which :meth:`VoxelBatch.deduplicate` removes afterwards.
    """

    def __init__(self, cfg: VoxelizerConfig) -> None:
        self.cfg = cfg

    def scan_rows(self, mesh: Mesh) -> List[_Row]:
        lo, hi = mesh.bbox.grid_range(self.cfg.resolution)
        rows: List[_Row] = []
        for axis, outer_axis, inner_axis in SCAN_PASSES:
            for outer in range(int(lo[outer_axis]), int(hi[outer_axis])):
                rows.append(_Row(axis, outer_axis, inner_axis, outer))
        return rows

    def voxelize(self, mesh: Mesh, progress: Optional[ProgressReporter] = None) -> VoxelBatch:
        """Raw, un-deduplicated samples for ``mesh``."""
        progress = progress_or_null(progress)
        colors = color_source(mesh.texture, self.cfg.untextured_color)
        lo, hi = mesh.bbox.grid_range(self.cfg.resolution)
        rows = self.scan_rows(mesh)
        progress.start(len(rows))

        def run(row: _Row) -> VoxelBatch:
            return self._scan_row(mesh, colors, row, lo, hi)

        parts: List[VoxelBatch] = []
        if self.cfg.workers > 1:
            with ThreadPoolExecutor(max_workers=self.cfg.workers) as pool:
                # map() yields in submission order, keeping the merge deterministic
                for part in pool.map(run, rows):
                    parts.append(part)
                    progress.advance()
        else:
            for row in rows:
                parts.append(run(row))
                progress.advance()
        return VoxelBatch.concatenate(parts)

    def _scan_row(self, mesh: Mesh, colors: ColorSource, row: _Row, lo: np.ndarray, hi: np.ndarray) -> VoxelBatch:
        r = self.cfg.resolution
        direction = np.zeros(3, dtype=np.float64)
        direction[row.axis] = 1.0

        start = lo[row.axis] * r
        # One tree walk per row; each ray then filters the row's boxes in bulk.
        row_cand = mesh.bvh.plane_candidates(row.outer_axis, row.outer * r)
        if row_cand.size == 0:
            return VoxelBatch.empty()
        inner_lo = mesh.bvh.box_lo[row_cand, row.inner_axis]
        inner_hi = mesh.bvh.box_hi[row_cand, row.inner_axis]
        ahead = mesh.bvh.box_hi[row_cand, row.axis] >= start

        coords_list: List[np.ndarray] = []
        colors_list: List[np.ndarray] = []
        for inner in range(int(lo[row.inner_axis]), int(hi[row.inner_axis])):
            origin = np.zeros(3, dtype=np.float64)
            origin[row.axis] = start
            origin[row.outer_axis] = row.outer * r
            origin[row.inner_axis] = inner * r

            cand = row_cand[ahead & (inner_lo <= origin[row.inner_axis]) & (inner_hi >= origin[row.inner_axis])]
            if cand.size == 0:
                continue
            hits = intersect_many(origin, direction, mesh.positions[cand])
            if len(hits) == 0:
                continue

            tri = cand[hits.index]
            points = origin + hits.distances[:, None] * direction
            uv = interpolate_uv(mesh.uvs[tri], hits.u, hits.v)
            coords_list.append(grid_coordinates(points, r))
            colors_list.append(colors.sample(uv))

        if not coords_list:
            return VoxelBatch.empty()
        return VoxelBatch(np.concatenate(coords_list), np.concatenate(colors_list))


def voxelize_meshes(
    meshes: Sequence[Mesh],
    cfg: VoxelizerConfig,
    progress: Optional[ProgressReporter] = None,
    scene_progress: Optional[ProgressReporter] = None,
) -> Tuple[VoxelBatch, int]:
    """Voxelize a whole scene and deduplicate.

    Returns the unique voxels and the raw sample count before deduplication.
    """
    voxelizer = ShellVoxelizer(cfg)
    scene_progress = progress_or_null(scene_progress)
    scene_progress.start(len(meshes))

    start = time.perf_counter()
    raw: List[VoxelBatch] = []
    for mesh in meshes:
        raw.append(voxelizer.voxelize(mesh, progress))
        scene_progress.advance()
    samples = VoxelBatch.concatenate(raw)
    _log.info("Voxelized scene in %.3fs (%d samples)", time.perf_counter() - start, len(samples))

    start = time.perf_counter()
    voxels = samples.deduplicate()
    _log.info("Deduplicated voxels in %.3fs", time.perf_counter() - start)
    return voxels, len(samples)
