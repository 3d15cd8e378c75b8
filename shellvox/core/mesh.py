from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence
import numpy as np
from .bbox import BoundingBox
from .bvh import BoundingVolumeHierarchy
from .texture import Texture
from .transform import rotate_points


@dataclass
class Triangle:
    positions: np.ndarray   # (3, 3) rows a, b, c
    uvs: np.ndarray         # (3, 2) matching rows

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(3, 3)
        self.uvs = np.asarray(self.uvs, dtype=np.float64).reshape(3, 2)

    @staticmethod
    def from_vertices(a, b, c, uvs: Optional[Sequence] = None) -> "Triangle":
        return Triangle(
            positions=np.array([a, b, c], dtype=np.float64),
            uvs=np.zeros((3, 2)) if uvs is None else np.asarray(uvs, dtype=np.float64),
        )


class Mesh:
    """Triangle soup with optional texture, cached bounds and spatial index.

    Bounding box and BVH are derived state over ``positions`` and are rebuilt
    together after every geometric mutation (see :meth:`rotate`).
    """

    def __init__(
        self,
        positions: np.ndarray,
        uvs: Optional[np.ndarray] = None,
        texture: Optional[Texture] = None,
        name: str = "mesh",
    ) -> None:
        pos = np.asarray(positions, dtype=np.float64)
        if pos.ndim != 3 or pos.shape[1:] != (3, 3):
            raise ValueError(f"Triangle positions must be (N, 3, 3), got {pos.shape}")
        if pos.shape[0] == 0:
            raise ValueError(f"Mesh '{name}' has no triangles.")
        if uvs is None:
            tex = np.zeros((pos.shape[0], 3, 2), dtype=np.float64)
        else:
            tex = np.asarray(uvs, dtype=np.float64)
            if tex.shape != (pos.shape[0], 3, 2):
                raise ValueError(f"Triangle UVs must be {(pos.shape[0], 3, 2)}, got {tex.shape}")
        self.name = name
        self.positions = pos
        self.uvs = tex
        self.texture = texture
        self._rebuild()

    @classmethod
    def from_indexed(
        cls,
        vertices: np.ndarray,
        indices: np.ndarray,
        uvs: Optional[np.ndarray] = None,
        texture: Optional[Texture] = None,
        name: str = "mesh",
    ) -> "Mesh":
        verts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        idx = np.asarray(indices, dtype=np.int64).ravel()
        if idx.size % 3 != 0:
            raise ValueError(f"Index count {idx.size} is not a multiple of 3.")
        if idx.size and (idx.min() < 0 or idx.max() >= len(verts)):
            raise ValueError(f"Triangle indices out of range for {len(verts)} vertices.")
        faces = idx.reshape(-1, 3)
        tri_uvs = None
        if uvs is not None:
            coords = np.asarray(uvs, dtype=np.float64).reshape(-1, 2)
            if len(coords) != len(verts):
                raise ValueError(f"Got {len(coords)} texture coordinates for {len(verts)} vertices.")
            tri_uvs = coords[faces]
        return cls(verts[faces], tri_uvs, texture=texture, name=name)

    def _rebuild(self) -> None:
        self.bbox = BoundingBox.from_triangles(self.positions)
        self.bvh = BoundingVolumeHierarchy.build(self.positions)

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    def triangle(self, index: int) -> Triangle:
        return Triangle(self.positions[index], self.uvs[index])

    def triangles(self) -> Iterator[Triangle]:
        for i in range(len(self)):
            yield self.triangle(i)

    def rotate(self, angles_rad: Sequence[float]) -> None:
        self.positions = rotate_points(self.positions, angles_rad)
        self._rebuild()
