from __future__ import annotations
from dataclasses import dataclass
import math
import numpy as np
from .utils import get_logger

_log = get_logger()

BBOX_MARGIN = 1e-3
MAX_LEAF_TRIANGLES = 4


@dataclass
class _Nodes:
    lo: list            # per node [x, y, z]
    hi: list
    left: list          # child node index, -1 for leaves
    right: list
    start: list         # leaf range into ``order``
    count: list


class BoundingVolumeHierarchy:
    """Median-split BVH over padded triangle boxes.

    The tree owns its own arena: flat node lists plus ``order``, a permutation
    of triangle indices. Triangles are referred to only by integer index, so
    the geometry arrays carry no index bookkeeping. The tree is immutable;
    any change of triangle positions requires :meth:`build` again.
    """

    def __init__(
        self,
        nodes: _Nodes,
        order: np.ndarray,
        n_triangles: int,
        box_lo: np.ndarray,
        box_hi: np.ndarray,
    ) -> None:
        self._nodes = nodes
        self.order = order
        self.n_triangles = n_triangles
        # padded per-triangle boxes, indexed by triangle
        self.box_lo = box_lo
        self.box_hi = box_hi

    @property
    def node_count(self) -> int:
        return len(self._nodes.left)

    @staticmethod
    def triangle_boxes(positions: np.ndarray, margin: float = BBOX_MARGIN) -> tuple[np.ndarray, np.ndarray]:
        tris = np.asarray(positions, dtype=np.float64).reshape(-1, 3, 3)
        lo = tris.min(axis=1) - margin
        hi = tris.max(axis=1) + margin
        return lo, hi

    @classmethod
    def build(cls, positions: np.ndarray, max_leaf: int = MAX_LEAF_TRIANGLES) -> "BoundingVolumeHierarchy":
        tris = np.asarray(positions, dtype=np.float64).reshape(-1, 3, 3)
        n = tris.shape[0]
        # Bulk, data-parallel part of the build: every box and centroid at once.
        tri_lo, tri_hi = cls.triangle_boxes(tris)
        centroids = tris.mean(axis=1)
        order = np.arange(n, dtype=np.int64)

        nodes = _Nodes([], [], [], [], [], [])
        if n == 0:
            return cls(nodes, order, 0, tri_lo, tri_hi)

        def alloc(lo: np.ndarray, hi: np.ndarray) -> int:
            nodes.lo.append(lo.tolist())
            nodes.hi.append(hi.tolist())
            nodes.left.append(-1)
            nodes.right.append(-1)
            nodes.start.append(0)
            nodes.count.append(0)
            return len(nodes.left) - 1

        root = alloc(tri_lo.min(axis=0), tri_hi.max(axis=0))
        stack = [(root, 0, n)]
        while stack:
            node, start, end = stack.pop()
            count = end - start
            idx = order[start:end]
            if count <= max_leaf:
                nodes.start[node] = start
                nodes.count[node] = count
                continue

            c = centroids[idx]
            spread = c.max(axis=0) - c.min(axis=0)
            axis = int(np.argmax(spread))
            if spread[axis] <= 0.0:
                # Coincident centroids: cannot split meaningfully
                nodes.start[node] = start
                nodes.count[node] = count
                continue

            sorted_idx = idx[np.argsort(c[:, axis], kind="stable")]
            order[start:end] = sorted_idx
            mid = start + count // 2

            left_ids = order[start:mid]
            right_ids = order[mid:end]
            left = alloc(tri_lo[left_ids].min(axis=0), tri_hi[left_ids].max(axis=0))
            right = alloc(tri_lo[right_ids].min(axis=0), tri_hi[right_ids].max(axis=0))
            nodes.left[node] = left
            nodes.right[node] = right
            stack.append((right, mid, end))
            stack.append((left, start, mid))

        _log.debug("BVH built: %d triangles, %d nodes", n, len(nodes.left))
        return cls(nodes, order, n, tri_lo, tri_hi)

    def candidates(self, origin: np.ndarray, direction: np.ndarray) -> np.ndarray:
        """Indices of triangles whose padded box is crossed by the ray (t >= 0).

        A pruning step only; exact tests belong to the intersector.
        """
        if self.n_triangles == 0:
            return np.zeros((0,), dtype=np.int64)
        o = [float(x) for x in np.asarray(origin).reshape(3)]
        inv = []
        for x in np.asarray(direction).reshape(3):
            x = float(x)
            inv.append(None if x == 0.0 else 1.0 / x)

        nodes = self._nodes
        found: list[np.ndarray] = []
        stack = [0]
        while stack:
            node = stack.pop()
            if not _slab_hit(o, inv, nodes.lo[node], nodes.hi[node]):
                continue
            left = nodes.left[node]
            if left < 0:
                start = nodes.start[node]
                found.append(self.order[start:start + nodes.count[node]])
            else:
                stack.append(nodes.right[node])
                stack.append(left)

        if not found:
            return np.zeros((0,), dtype=np.int64)
        return np.concatenate(found)

    def plane_candidates(self, axis: int, value: float) -> np.ndarray:
        """Triangles whose padded box spans the plane ``coord[axis] == value``.

        Exact with respect to the per-triangle boxes: every axis-aligned ray
        lying in that plane can only reach triangles returned here.
        """
        if self.n_triangles == 0:
            return np.zeros((0,), dtype=np.int64)
        nodes = self._nodes
        found: list[np.ndarray] = []
        stack = [0]
        while stack:
            node = stack.pop()
            if value < nodes.lo[node][axis] or value > nodes.hi[node][axis]:
                continue
            left = nodes.left[node]
            if left < 0:
                start = nodes.start[node]
                found.append(self.order[start:start + nodes.count[node]])
            else:
                stack.append(nodes.right[node])
                stack.append(left)

        if not found:
            return np.zeros((0,), dtype=np.int64)
        idx = np.concatenate(found)
        keep = (self.box_lo[idx, axis] <= value) & (self.box_hi[idx, axis] >= value)
        return idx[keep]


def _slab_hit(origin: list, inv_dir: list, lo: list, hi: list) -> bool:
    t_near = 0.0
    t_far = math.inf
    for axis in range(3):
        o = origin[axis]
        inv = inv_dir[axis]
        if inv is None:
            # Ray parallel to this slab: must start inside it
            if o < lo[axis] or o > hi[axis]:
                return False
            continue
        t1 = (lo[axis] - o) * inv
        t2 = (hi[axis] - o) * inv
        if t1 > t2:
            t1, t2 = t2, t1
        if t1 > t_near:
            t_near = t1
        if t2 < t_far:
            t_far = t2
        if t_near > t_far:
            return False
    return True
