from __future__ import annotations

from pathlib import Path

import laspy  # type: ignore
import numpy as np

from ..core.pointcloud import PointCloud, drop_non_finite
from ..core.utils import get_logger

_log = get_logger()


def load_las(path: str | Path, swap_yz: bool = True) -> PointCloud:
    """Read a LAS/LAZ file with laspy; RGB is taken when the point format has it."""
    path = Path(path)
    las = laspy.read(path)
    xyz = np.column_stack([np.asarray(las.x), np.asarray(las.y), np.asarray(las.z)]).astype(np.float64)
    n = len(xyz)

    colors = np.full((n, 4), 255, dtype=np.uint8)
    dims = set(las.point_format.dimension_names)
    if {"red", "green", "blue"} <= dims and n:
        rgb = np.column_stack([np.asarray(las.red), np.asarray(las.green), np.asarray(las.blue)]).astype(np.uint32)
        if rgb.max() > 255:
            rgb = rgb >> 8  # 0..65535 -> 0..255
        colors[:, :3] = rgb.astype(np.uint8)

    xyz, colors, dropped = drop_non_finite(xyz, colors)
    if dropped:
        _log.debug("Dropped %d non-finite points from %s", dropped, path.name)
    if swap_yz:
        xyz = xyz[:, [0, 2, 1]]
    _log.debug("Read %d points (PF=%d) from %s", len(xyz), las.point_format.id, path.name)
    return PointCloud(xyz, colors)
