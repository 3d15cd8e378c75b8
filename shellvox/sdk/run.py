from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import VoxelizeConfig, load_config
from ..core.transform import degrees_to_radians
from ..core.utils import ProgressReporter, get_logger
from ..core.voxelizer import voxelize_meshes
from ..runtime.builders import (
    build_voxelizer_config,
    build_writer,
    classify_input,
    load_meshes,
    load_point_cloud,
)

_log = get_logger()


@dataclass(frozen=True)
class VoxelizeRunResult:
    """Summary of a voxelization run driven by a configuration file."""

    stats: Dict[str, Union[int, str]]
    output_path: Path
    config: VoxelizeConfig


def voxelize_from_config(
    config: Union[str, Path, VoxelizeConfig],
    *,
    output: Optional[Path] = None,
    resolution: Optional[float] = None,
    workers: Optional[int] = None,
    progress: Optional[ProgressReporter] = None,
) -> VoxelizeRunResult:
    """Run a voxelization described by a configuration file or object.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~shellvox.config.schema.VoxelizeConfig`.
    output:
        Optional override for the voxel file written by the run.
    resolution:
        Optional override for the grid spacing (must be positive).
    workers:
        Optional override for the number of scan threads.
    progress:
        Optional observer notified as mesh rows or points are processed.

    Returns
    -------
    VoxelizeRunResult
        Includes run statistics (``kind``, ``inputs``, ``samples``,
        ``voxels``), the resolved output path, and the configuration used.
    """

    cfg = load_config(config) if not isinstance(config, VoxelizeConfig) else config.model_copy(deep=True)

    if resolution is not None:
        if not resolution > 0:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        cfg.resolution = resolution
    if workers is not None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        cfg.workers = workers
    if output is not None:
        cfg.output.path = Path(output).resolve()
    else:
        cfg.output.path = Path(cfg.output.path).resolve()

    in_path = Path(cfg.input.path)
    kind = classify_input(in_path)
    angles = degrees_to_radians(cfg.rotation.as_degrees()) if cfg.rotation is not None else None

    start = time.perf_counter()
    if kind == "mesh":
        meshes = load_meshes(in_path)
        _log.info("Loaded %d meshes from %s in %.3fs", len(meshes), in_path.name, time.perf_counter() - start)
        if angles is not None:
            for mesh in meshes:
                mesh.rotate(angles)
        voxels, samples = voxelize_meshes(meshes, build_voxelizer_config(cfg), progress=progress)
        inputs = len(meshes)
    else:
        cloud = load_point_cloud(in_path, swap_yz=cfg.input.swap_yz)
        _log.info("Loaded %d points from %s in %.3fs", len(cloud), in_path.name, time.perf_counter() - start)
        if angles is not None:
            cloud.rotate(angles)
        start = time.perf_counter()
        voxels = cloud.voxelize(cfg.resolution, progress)
        _log.info("Voxelized point cloud in %.3fs", time.perf_counter() - start)
        samples = inputs = len(cloud)

    writer = build_writer(cfg)
    start = time.perf_counter()
    writer.write_batch(voxels)
    writer.close()
    _log.info("Saved %d voxels to %s in %.3fs", writer.written, cfg.output.path, time.perf_counter() - start)

    stats: Dict[str, Union[int, str]] = {
        "kind": kind,
        "inputs": inputs,
        "samples": samples,
        "voxels": writer.written,
    }
    return VoxelizeRunResult(stats=stats, output_path=Path(cfg.output.path), config=cfg)
