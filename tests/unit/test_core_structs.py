import numpy as np
import pytest

from shellvox.core.bbox import BoundingBox
from shellvox.core.mesh import Mesh
from shellvox.core.pointcloud import PointCloud
from shellvox.core.transform import degrees_to_radians, euler_matrix, rotate_points
from shellvox.core.voxels import VoxelBatch, grid_coordinates


def test_bbox_from_points_and_grid_range() -> None:
    box = BoundingBox.from_points(np.array([[0.3, -1.2, 0.0], [3.7, 2.0, 4.0]]))
    assert np.allclose(box.min, [0.3, -1.2, 0.0])
    assert np.allclose(box.extent, [3.4, 3.2, 4.0])
    lo, hi = box.grid_range(1.0)
    assert lo.tolist() == [-1, -3, -1]
    assert hi.tolist() == [5, 3, 5]


def test_bbox_rejects_empty_points() -> None:
    with pytest.raises(ValueError):
        BoundingBox.from_points(np.zeros((0, 3)))


def test_identity_rotation_leaves_points_unchanged() -> None:
    pts = np.array([[1.0, 2.0, 3.0], [-4.0, 0.5, 9.0]])
    assert np.allclose(rotate_points(pts, (0.0, 0.0, 0.0)), pts)
    assert np.allclose(euler_matrix((0.0, 0.0, 0.0)), np.eye(3))


def test_identity_rotation_keeps_derived_bounds() -> None:
    verts = np.array([[0.5, -1.0, 2.0], [3.0, 0.25, 2.0], [0.5, 4.0, -7.5]])
    mesh = Mesh.from_indexed(verts, [0, 1, 2])
    lo, hi = mesh.bbox.min.copy(), mesh.bbox.max.copy()
    mesh.rotate((0.0, 0.0, 0.0))
    assert np.allclose(mesh.positions[0], verts)
    assert np.allclose(mesh.bbox.min, lo) and np.allclose(mesh.bbox.max, hi)

    cloud = PointCloud(verts.copy())
    before = cloud.bbox()
    cloud.rotate((0.0, 0.0, 0.0))
    after = cloud.bbox()
    assert np.allclose(cloud.positions, verts)
    assert np.allclose(after.min, before.min) and np.allclose(after.max, before.max)


def test_rotation_applies_x_then_y_then_z() -> None:
    angles = degrees_to_radians((90.0, 0.0, 90.0))
    # x first takes +y to +z, which z then leaves alone
    assert np.allclose(rotate_points(np.array([0.0, 1.0, 0.0]), angles), [0.0, 0.0, 1.0], atol=1e-12)
    z_only = degrees_to_radians((0.0, 0.0, 90.0))
    assert np.allclose(rotate_points(np.array([1.0, 0.0, 0.0]), z_only), [0.0, 1.0, 0.0], atol=1e-12)


def test_grid_rounding_ties_away_from_zero() -> None:
    pts = np.array([[0.5, -0.5, 1.49], [2.5, -2.5, -0.49]])
    assert grid_coordinates(pts, 1.0).tolist() == [[1, -1, 1], [3, -3, 0]]
    assert grid_coordinates(np.array([[0.25, 0.0, -0.25]]), 0.5).tolist() == [[1, 0, -1]]


def test_grid_rejects_non_positive_resolution() -> None:
    with pytest.raises(ValueError):
        grid_coordinates(np.zeros((1, 3)), 0.0)


def test_grid_rounding_just_below_half() -> None:
    below = np.nextafter(0.5, 0.0)
    below_tie = np.nextafter(1.5, 0.0)
    pts = np.array([[below, -below, 0.0], [below_tie, -below_tie, 2.0 - 1e-12]])
    assert grid_coordinates(pts, 1.0).tolist() == [[0, 0, 0], [1, -1, 2]]


def test_grid_rejects_coordinates_outside_int32() -> None:
    with pytest.raises(ValueError, match="int32"):
        grid_coordinates(np.array([[3e9, 0.0, 0.0]]), 1.0)
    with pytest.raises(ValueError, match="int32"):
        grid_coordinates(np.array([[5e6, 0.0, -5e6]]), 0.001)
    edge = float(np.iinfo(np.int32).max)
    assert grid_coordinates(np.array([[edge, -edge, 0.0]]), 1.0).tolist() == [[2147483647, -2147483647, 0]]


def test_deduplicate_keeps_last_write_per_coordinate() -> None:
    coords = np.array([[0, 0, 0], [1, 0, 0], [0, 0, 0], [1, 0, 0], [0, 0, 0]])
    colors = np.array([
        [255, 0, 0, 255],
        [0, 255, 0, 255],
        [0, 0, 255, 255],
        [9, 9, 9, 255],
        [7, 7, 7, 255],
    ])
    voxels = VoxelBatch(coords, colors).deduplicate()
    assert len(voxels) == 2
    assert voxels.to_pairs() == [
        ((0, 0, 0), (7, 7, 7, 255)),
        ((1, 0, 0), (9, 9, 9, 255)),
    ]


def test_deduplicate_empty_batch() -> None:
    assert len(VoxelBatch.empty().deduplicate()) == 0


def test_voxel_batch_rejects_mismatched_lengths() -> None:
    with pytest.raises(ValueError):
        VoxelBatch(np.zeros((2, 3)), np.zeros((1, 4)))


def test_mesh_validation() -> None:
    with pytest.raises(ValueError):
        Mesh(np.zeros((0, 3, 3)))
    verts = np.eye(3)
    with pytest.raises(ValueError):
        Mesh.from_indexed(verts, [0, 1])
    with pytest.raises(ValueError):
        Mesh.from_indexed(verts, [0, 1, 3])
    with pytest.raises(ValueError):
        Mesh.from_indexed(verts, [0, 1, 2], uvs=np.zeros((2, 2)))


def test_mesh_rotation_rebuilds_bounds() -> None:
    mesh = Mesh.from_indexed(np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 1.0, 0.0]]), [0, 1, 2])
    assert np.allclose(mesh.bbox.max, [2.0, 1.0, 0.0])
    mesh.rotate(degrees_to_radians((0.0, 0.0, 90.0)))
    assert np.allclose(mesh.bbox.min, [-1.0, 0.0, 0.0], atol=1e-12)
    assert np.allclose(mesh.bbox.max, [0.0, 2.0, 0.0], atol=1e-12)
    up = np.array([0.0, 0.0, 1.0])
    assert mesh.bvh.candidates(np.array([-0.2, 1.0, -1.0]), up).tolist() == [0]
    assert len(list(mesh.triangles())) == 1
