"""Scene and point-cloud readers."""

from .gltf import load_gltf
from .las import load_las
from .ply import load_ply
from .trimesh_loader import load_trimesh

__all__ = ["load_gltf", "load_las", "load_ply", "load_trimesh"]
