from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
import numpy as np
from .utils import ensure_unit_vectors

if TYPE_CHECKING:
    from .mesh import Triangle

EPSILON = 1e-5
# Back-face cull threshold on the Möller–Trumbore determinant.
DET_EPSILON = 1e-12


@dataclass
class Ray:
    origin: np.ndarray      # (3,)
    direction: np.ndarray   # (3,) unit

    def __post_init__(self) -> None:
        self.origin = np.asarray(self.origin, dtype=np.float64).reshape(3)
        self.direction = ensure_unit_vectors(np.asarray(self.direction, dtype=np.float64).reshape(3))

    def at(self, distance: float | np.ndarray) -> np.ndarray:
        d = np.asarray(distance, dtype=np.float64)
        return self.origin + np.multiply.outer(d, self.direction)


@dataclass
class Intersection:
    distance: float
    u: float
    v: float


@dataclass
class TriangleHits:
    """Accepted hits of one ray against a candidate set of triangles."""
    index: np.ndarray       # (K,) positions within the tested candidate array
    distances: np.ndarray   # (K,)
    u: np.ndarray           # (K,) weight of vertex b
    v: np.ndarray           # (K,) weight of vertex c

    def __len__(self) -> int:
        return int(self.index.shape[0])


def _moller_trumbore(
    origin: np.ndarray,
    direction: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Single-winding test over (N, 3) vertex arrays.

    Returns raw (t, u, v); t is +inf wherever the triangle is back-facing or
    parallel to the ray. No range checks are applied to u, v or t here.
    """
    edge1 = b - a
    edge2 = c - a
    pvec = np.cross(direction, edge2)
    det = np.einsum("ij,ij->i", edge1, pvec)
    front = det > DET_EPSILON
    inv_det = np.divide(1.0, det, out=np.zeros_like(det), where=front)
    tvec = origin - a
    u = np.einsum("ij,ij->i", tvec, pvec) * inv_det
    qvec = np.cross(tvec, edge1)
    v = (qvec @ direction) * inv_det
    t = np.einsum("ij,ij->i", edge2, qvec) * inv_det
    t = np.where(front, t, np.inf)
    return t, u, v


def _accept(t: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    return (
        np.isfinite(t)
        & (t >= -EPSILON)
        & (u >= -EPSILON) & (u <= 1.0 + EPSILON)
        & (v >= -EPSILON) & (v <= 1.0 + EPSILON)
        & (u + v <= 1.0 + EPSILON)
    )


def intersect_many(origin: np.ndarray, direction: np.ndarray, positions: np.ndarray) -> TriangleHits:
    """Winding-independent ray test against (N, 3, 3) triangle corners.

    Winding (a, b, c) is tried first; triangles it rejects are retried as
    (a, c, b) and their u/v swapped back so both always refer to b and c.
    """
    o = np.asarray(origin, dtype=np.float64)
    d = np.asarray(direction, dtype=np.float64)
    tris = np.asarray(positions, dtype=np.float64).reshape(-1, 3, 3)
    a, b, c = tris[:, 0], tris[:, 1], tris[:, 2]

    t1, u1, v1 = _moller_trumbore(o, d, a, b, c)
    ok1 = _accept(t1, u1, v1)

    t2, u2, v2 = _moller_trumbore(o, d, a, c, b)
    ok2 = ~ok1 & _accept(t2, u2, v2)

    hit = ok1 | ok2
    t = np.where(ok1, t1, t2)[hit]
    u = np.where(ok1, u1, v2)[hit]
    v = np.where(ok1, v1, u2)[hit]

    return TriangleHits(
        index=np.flatnonzero(hit),
        distances=np.maximum(t, 0.0),
        u=np.clip(u, 0.0, 1.0),
        v=np.clip(v, 0.0, 1.0),
    )


def intersect(ray: Ray, triangle: "Triangle") -> Optional[Intersection]:
    hits = intersect_many(ray.origin, ray.direction, triangle.positions[None])
    if len(hits) == 0:
        return None
    return Intersection(distance=float(hits.distances[0]), u=float(hits.u[0]), v=float(hits.v[0]))


def interpolate_uv(uvs: np.ndarray, u: np.ndarray | float, v: np.ndarray | float) -> np.ndarray:
    """Barycentric UV for hits: weights (1-u-v, u, v) over per-vertex coords.

    ``uvs`` is (3, 2) for a single triangle or (K, 3, 2) paired with (K,) u/v.
    """
    uvs = np.asarray(uvs, dtype=np.float64)
    u = np.asarray(u, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    alpha = 1.0 - u - v
    return (
        alpha[..., None] * uvs[..., 0, :]
        + u[..., None] * uvs[..., 1, :]
        + v[..., None] * uvs[..., 2, :]
    )
