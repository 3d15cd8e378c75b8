from __future__ import annotations

from pathlib import Path
from typing import List, Literal

from ..config import VoxelizeConfig
from ..core.exporter import VoxelWriter
from ..core.mesh import Mesh
from ..core.pointcloud import PointCloud
from ..core.voxelizer import VoxelizerConfig
from ..loaders import load_gltf, load_las, load_ply, load_trimesh

InputKind = Literal["mesh", "pointcloud"]

GLTF_EXTENSIONS = {".gltf", ".glb"}
TRIMESH_EXTENSIONS = {".obj", ".stl", ".off"}
MESH_EXTENSIONS = GLTF_EXTENSIONS | TRIMESH_EXTENSIONS
POINTCLOUD_EXTENSIONS = {".ply", ".las", ".laz"}


def classify_input(path: str | Path) -> InputKind:
    ext = Path(path).suffix.lower()
    if ext in MESH_EXTENSIONS:
        return "mesh"
    if ext in POINTCLOUD_EXTENSIONS:
        return "pointcloud"
    supported = ", ".join(sorted(MESH_EXTENSIONS | POINTCLOUD_EXTENSIONS))
    raise ValueError(f"Unsupported input extension '{ext}' (expected one of {supported})")


def load_meshes(path: str | Path) -> List[Mesh]:
    path = Path(path)
    ext = path.suffix.lower()
    if ext in GLTF_EXTENSIONS:
        meshes = load_gltf(path)
    elif ext in TRIMESH_EXTENSIONS:
        meshes = load_trimesh(path)
    else:
        raise ValueError(f"Unsupported mesh extension '{ext}'")
    if not meshes:
        raise ValueError(f"{path.name} contains no triangle meshes")
    return meshes


def load_point_cloud(path: str | Path, swap_yz: bool = True) -> PointCloud:
    path = Path(path)
    ext = path.suffix.lower()
    if ext == ".ply":
        return load_ply(path, swap_yz=swap_yz)
    if ext in {".las", ".laz"}:
        return load_las(path, swap_yz=swap_yz)
    raise ValueError(f"Unsupported point cloud extension '{ext}'")


def build_voxelizer_config(cfg: VoxelizeConfig) -> VoxelizerConfig:
    return VoxelizerConfig(
        resolution=cfg.resolution,
        workers=cfg.workers,
        untextured_color=tuple(cfg.untextured_color),  # type: ignore[arg-type]
    )


def build_writer(cfg: VoxelizeConfig) -> VoxelWriter:
    return VoxelWriter(str(cfg.output.path))
