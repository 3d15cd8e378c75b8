from __future__ import annotations

from pathlib import Path
from typing import List

import numpy as np
import trimesh  # type: ignore

from ..core.mesh import Mesh


def load_trimesh(path: str | Path) -> List[Mesh]:
    """Load OBJ/STL/OFF style meshes through trimesh (untextured).

    Scenes are flattened with their graph transforms applied; each geometry
    becomes one mesh.
    """
    path = Path(path)
    loaded = trimesh.load(str(path), process=False)
    if isinstance(loaded, trimesh.Scene):
        geometries = list(loaded.dump())
    else:
        geometries = [loaded]

    meshes: List[Mesh] = []
    for i, geom in enumerate(geometries):
        if not isinstance(geom, trimesh.Trimesh):
            raise ValueError(f"{path.name}: geometry {i} is not a triangle mesh ({type(geom).__name__})")
        meshes.append(Mesh.from_indexed(
            np.asarray(geom.vertices, dtype=np.float64),
            np.asarray(geom.faces, dtype=np.int64),
            name=f"{path.stem}_{i}" if len(geometries) > 1 else path.stem,
        ))
    if not meshes:
        raise ValueError(f"{path.name}: no triangle geometry found")
    return meshes
