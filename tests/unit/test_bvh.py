import numpy as np

from shellvox.core.bvh import BBOX_MARGIN, BoundingVolumeHierarchy
from shellvox.core.intersector import intersect_many


def _random_triangles(n: int, seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-10.0, 10.0, size=(n, 1, 3))
    return centers + rng.uniform(-0.5, 0.5, size=(n, 3, 3))


def test_build_partitions_every_triangle_once() -> None:
    tris = _random_triangles(200)
    bvh = BoundingVolumeHierarchy.build(tris)
    assert bvh.node_count > 1
    assert sorted(bvh.order.tolist()) == list(range(200))


def test_candidates_contain_every_exact_hit() -> None:
    tris = _random_triangles(300)
    bvh = BoundingVolumeHierarchy.build(tris)
    rng = np.random.default_rng(3)
    for _ in range(50):
        origin = rng.uniform(-12.0, 12.0, size=3)
        direction = rng.normal(size=3)
        direction /= np.linalg.norm(direction)
        brute = set(intersect_many(origin, direction, tris).index.tolist())
        cand = bvh.candidates(origin, direction)
        assert brute <= set(cand.tolist())


def test_axis_aligned_rays_use_parallel_slabs() -> None:
    tris = _random_triangles(100)
    bvh = BoundingVolumeHierarchy.build(tris)
    for axis in range(3):
        direction = np.zeros(3)
        direction[axis] = 1.0
        origin = tris[17].mean(axis=0).copy()
        origin[axis] = -20.0
        assert 17 in set(bvh.candidates(origin, direction).tolist())


def test_padding_catches_rays_grazing_a_flat_triangle() -> None:
    flat = np.array([[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]])
    bvh = BoundingVolumeHierarchy.build(flat)
    up = np.array([0.0, 0.0, 1.0])
    assert bvh.candidates(np.array([-0.5 * BBOX_MARGIN, 0.5, -1.0]), up).tolist() == [0]
    assert bvh.candidates(np.array([-0.01, 0.5, -1.0]), up).size == 0
    # travelling in the plane of the triangle
    along = np.array([1.0, 0.0, 0.0])
    assert bvh.candidates(np.array([-5.0, 0.5, 0.0]), along).tolist() == [0]


def test_candidates_ignore_boxes_behind_the_origin() -> None:
    flat = np.array([[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]])
    bvh = BoundingVolumeHierarchy.build(flat)
    assert bvh.candidates(np.array([0.2, 0.2, 1.0]), np.array([0.0, 0.0, 1.0])).size == 0


def test_empty_hierarchy_has_no_candidates() -> None:
    bvh = BoundingVolumeHierarchy.build(np.zeros((0, 3, 3)))
    assert bvh.candidates(np.zeros(3), np.array([1.0, 0.0, 0.0])).size == 0


def test_plane_candidates_match_padded_boxes() -> None:
    tris = _random_triangles(250)
    bvh = BoundingVolumeHierarchy.build(tris)
    lo, hi = BoundingVolumeHierarchy.triangle_boxes(tris)
    for axis in range(3):
        for value in np.linspace(-11.0, 11.0, 23):
            brute = set(np.flatnonzero((lo[:, axis] <= value) & (hi[:, axis] >= value)).tolist())
            got = bvh.plane_candidates(axis, value).tolist()
            assert len(got) == len(set(got))
            assert set(got) == brute


def test_row_filtering_keeps_every_axis_aligned_hit() -> None:
    tris = _random_triangles(150, seed=11)
    bvh = BoundingVolumeHierarchy.build(tris)
    direction = np.array([1.0, 0.0, 0.0])
    for y in np.linspace(-10.0, 10.0, 9):
        row = bvh.plane_candidates(1, y)
        for z in np.linspace(-10.0, 10.0, 9):
            origin = np.array([-12.0, y, z])
            kept = row[(bvh.box_lo[row, 2] <= z) & (bvh.box_hi[row, 2] >= z) & (bvh.box_hi[row, 0] >= origin[0])]
            exact = set(intersect_many(origin, direction, tris).index.tolist())
            assert exact <= set(kept.tolist())
