from __future__ import annotations

import io
from typing import List

import numpy as np
import pytest
from PIL import Image

from shellvox.core.mesh import Mesh
from shellvox.core.texture import EmbeddedImage
from shellvox.core.voxelizer import ShellVoxelizer, VoxelizerConfig, voxelize_meshes

CUBE_FACES = np.array([
    [0, 1, 2], [0, 2, 3],
    [4, 7, 6], [4, 6, 5],
    [0, 4, 5], [0, 5, 1],
    [1, 5, 6], [1, 6, 2],
    [2, 6, 7], [2, 7, 3],
    [3, 7, 4], [3, 4, 0],
])


def _cube(size: float) -> Mesh:
    s = size
    verts = np.array([
        [0, 0, 0], [s, 0, 0], [s, s, 0], [0, s, 0],
        [0, 0, s], [s, 0, s], [s, s, s], [0, s, s],
    ], dtype=np.float64)
    return Mesh.from_indexed(verts, CUBE_FACES)


def _solid_png(rgba) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(np.array([[rgba]], dtype=np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def _quad(rgba, z: float = 0.5, size: float = 2.0) -> Mesh:
    verts = np.array([[0, 0, z], [size, 0, z], [size, size, z], [0, size, z]], dtype=np.float64)
    uvs = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float64)
    return Mesh.from_indexed(verts, [0, 1, 2, 0, 2, 3], uvs=uvs, texture=EmbeddedImage(_solid_png(rgba)))


class _Recorder:
    def __init__(self) -> None:
        self.totals: List[int] = []
        self.advanced = 0

    def start(self, total: int) -> None:
        self.totals.append(total)

    def advance(self, steps: int = 1) -> None:
        self.advanced += steps


def _coord_set(batch) -> set:
    return {tuple(c) for c in batch.coords.tolist()}


def test_unit_cube_yields_its_eight_corners() -> None:
    voxels, samples = voxelize_meshes([_cube(1.0)], VoxelizerConfig(resolution=1.0))
    expected = {(x, y, z) for x in (0, 1) for y in (0, 1) for z in (0, 1)}
    assert _coord_set(voxels) == expected
    assert samples >= len(voxels)
    assert np.all(voxels.colors == 255)


def test_cube_shell_is_hollow() -> None:
    voxels, _ = voxelize_meshes([_cube(4.0)], VoxelizerConfig(resolution=1.0))
    coords = voxels.coords
    assert len(voxels) == 98
    assert coords.min() == 0 and coords.max() == 4
    interior = np.all((coords >= 1) & (coords <= 3), axis=1)
    assert not interior.any()
    # every voxel lies on one of the six faces
    assert np.all(np.any((coords == 0) | (coords == 4), axis=1))


def test_finer_resolution_scales_the_grid() -> None:
    voxels, _ = voxelize_meshes([_cube(1.0)], VoxelizerConfig(resolution=0.5))
    assert voxels.coords.min() == 0 and voxels.coords.max() == 2
    assert len(voxels) == 26


def test_textured_surface_takes_texel_colors() -> None:
    red = (255, 0, 0, 255)
    voxels, _ = voxelize_meshes([_quad(red)], VoxelizerConfig(resolution=1.0))
    # z = 0.5 rounds away from zero onto layer 1
    assert _coord_set(voxels) == {(x, y, 1) for x in range(3) for y in range(3)}
    assert voxels.colors.tolist() == [list(red)] * 9


def test_untextured_color_is_configurable() -> None:
    cfg = VoxelizerConfig(resolution=1.0, untextured_color=(10, 20, 30, 255))
    voxels, _ = voxelize_meshes([_cube(1.0)], cfg)
    assert voxels.colors.tolist() == [[10, 20, 30, 255]] * 8


def test_later_meshes_win_collisions() -> None:
    red, blue = (255, 0, 0, 255), (0, 0, 255, 255)
    voxels, samples = voxelize_meshes([_quad(red), _quad(blue)], VoxelizerConfig(resolution=1.0))
    assert len(voxels) == 9
    assert samples >= 18
    assert voxels.colors.tolist() == [list(blue)] * 9


def test_worker_count_does_not_change_the_result() -> None:
    mesh = _cube(3.0)
    mesh.rotate((0.3, 0.2, 0.1))
    serial, n1 = voxelize_meshes([mesh], VoxelizerConfig(resolution=0.5, workers=1))
    threaded, n2 = voxelize_meshes([mesh], VoxelizerConfig(resolution=0.5, workers=4))
    assert n1 == n2
    assert np.array_equal(serial.coords, threaded.coords)
    assert np.array_equal(serial.colors, threaded.colors)


def test_raw_samples_repeat_across_axes() -> None:
    voxelizer = ShellVoxelizer(VoxelizerConfig(resolution=1.0))
    raw = voxelizer.voxelize(_cube(1.0))
    assert len(raw) > len(raw.deduplicate())


def test_progress_counts_rows() -> None:
    rec = _Recorder()
    scene = _Recorder()
    voxelize_meshes([_cube(1.0)], VoxelizerConfig(resolution=1.0), progress=rec, scene_progress=scene)
    # bounds [-1, 2) on every axis: three passes of three rows
    assert rec.totals == [9]
    assert rec.advanced == 9
    assert scene.totals == [1] and scene.advanced == 1


@pytest.mark.parametrize("kwargs", [{"resolution": 0.0}, {"resolution": -1.0}, {"resolution": 1.0, "workers": 0}])
def test_config_validation(kwargs) -> None:
    with pytest.raises(ValueError):
        VoxelizerConfig(**kwargs)
