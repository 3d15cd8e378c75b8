from __future__ import annotations
from typing import Sequence
import numpy as np


def euler_matrix(angles_rad: Sequence[float]) -> np.ndarray:
    """Rotation about x, then y, then z (radians), composed as Rz @ Ry @ Rx."""
    rx, ry, rz = (float(a) for a in angles_rad)
    cx, sx = np.cos(rx), np.sin(rx)
    cy, sy = np.cos(ry), np.sin(ry)
    cz, sz = np.cos(rz), np.sin(rz)
    Rx = np.array([[1,0,0],[0,cx,-sx],[0,sx,cx]])
    Ry = np.array([[cy,0,sy],[0,1,0],[-sy,0,cy]])
    Rz = np.array([[cz,-sz,0],[sz,cz,0],[0,0,1]])
    return (Rz @ Ry @ Rx).astype(float)


def rotate_points(points: np.ndarray, angles_rad: Sequence[float]) -> np.ndarray:
    """Apply :func:`euler_matrix` to any (..., 3) array of positions."""
    R = euler_matrix(angles_rad)
    return np.asarray(points, dtype=np.float64) @ R.T


def degrees_to_radians(angles_deg: Sequence[float]) -> tuple[float, float, float]:
    x, y, z = np.deg2rad(np.asarray(angles_deg, dtype=np.float64))
    return (float(x), float(y), float(z))
