from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np

from ..core.pointcloud import PointCloud, drop_non_finite
from ..core.utils import get_logger

_log = get_logger()

PLY_TYPES = {
    "char": "i1", "int8": "i1",
    "uchar": "u1", "uint8": "u1",
    "short": "i2", "int16": "i2",
    "ushort": "u2", "uint16": "u2",
    "int": "i4", "int32": "i4",
    "uint": "u4", "uint32": "u4",
    "float": "f4", "float32": "f4",
    "double": "f8", "float64": "f8",
}

FORMATS = {
    "ascii": None,
    "binary_little_endian": "<",
    "binary_big_endian": ">",
}


def _read_header(f) -> Tuple[str, int, List[Tuple[str, str]]]:
    """Parse the header up to ``end_header``.

    Returns (format, vertex count, vertex properties as (name, type)).
    """
    magic = f.readline()
    if magic.strip() != b"ply":
        raise ValueError("Invalid PLY magic number")

    fmt = None
    n_vertices = None
    vertex_props: List[Tuple[str, str]] = []
    current_element = None
    seen_elements: List[str] = []
    while True:
        line = f.readline()
        if not line:
            raise ValueError("Unexpected EOF while reading PLY header.")
        parts = line.decode("ascii", errors="replace").split()
        if not parts or parts[0] in ("comment", "obj_info"):
            continue
        if parts[0] == "end_header":
            break
        if parts[0] == "format":
            if len(parts) < 2 or parts[1] not in FORMATS:
                raise ValueError(f"Unsupported PLY format line: {line.strip()!r}")
            fmt = parts[1]
        elif parts[0] == "element":
            current_element = parts[1]
            seen_elements.append(current_element)
            if current_element == "vertex":
                if len(seen_elements) != 1:
                    raise ValueError("PLY vertex element must be the first element")
                n_vertices = int(parts[2])
        elif parts[0] == "property" and current_element == "vertex":
            if parts[1] == "list":
                raise ValueError("List properties on PLY vertices are not supported")
            if parts[1] not in PLY_TYPES:
                raise ValueError(f"Unknown PLY property type '{parts[1]}'")
            vertex_props.append((parts[2], parts[1]))

    if fmt is None:
        raise ValueError("PLY header has no format line")
    if n_vertices is None:
        raise ValueError("PLY header has no vertex element")
    names = [name for name, _ in vertex_props]
    for axis in ("x", "y", "z"):
        if axis not in names:
            raise ValueError(f"PLY vertex element lacks property '{axis}'")
    return fmt, n_vertices, vertex_props


def load_ply(path: str | Path, swap_yz: bool = True) -> PointCloud:
    """Load the vertex element of a PLY file as a point cloud.

    Optional ``red``/``green``/``blue``/``alpha`` properties become colors,
    otherwise points are white. Points with any non-finite coordinate are
    dropped. With ``swap_yz`` the y and z axes are exchanged, turning z-up
    scans into the y-up convention of the voxel output.
    """
    path = Path(path)
    with open(path, "rb") as f:
        fmt, n, props = _read_header(f)
        if FORMATS[fmt] is None:
            lines = [ln for ln in f.read().decode("ascii", errors="replace").splitlines() if ln.strip()][:n]
            try:
                rows = np.array([ln.split()[:len(props)] for ln in lines], dtype=np.float64).reshape(-1, len(props))
            except ValueError as exc:
                raise ValueError(f"Malformed PLY vertex row: {exc}") from exc
            if rows.shape != (n, len(props)):
                raise ValueError(f"Expected {n} vertex rows of {len(props)} values, got {rows.shape}")
            columns = {name: rows[:, i] for i, (name, _) in enumerate(props)}
        else:
            order = FORMATS[fmt]
            dtype = np.dtype([(name, order + PLY_TYPES[t]) for name, t in props])
            body = f.read(n * dtype.itemsize)
            if len(body) < n * dtype.itemsize:
                raise ValueError(f"PLY body truncated: expected {n} vertices")
            records = np.frombuffer(body, dtype=dtype, count=n) if n else np.zeros(0, dtype=dtype)
            columns = {name: records[name] for name, _ in props}

    xyz = np.column_stack([columns["x"], columns["y"], columns["z"]]).astype(np.float64)
    colors = np.full((n, 4), 255, dtype=np.uint8)
    for channel, name in enumerate(("red", "green", "blue", "alpha")):
        if name in columns:
            colors[:, channel] = np.clip(columns[name], 0, 255).astype(np.uint8)

    xyz, colors, dropped = drop_non_finite(xyz, colors)
    if dropped:
        _log.debug("Dropped %d non-finite points from %s", dropped, path.name)
    if swap_yz:
        xyz = xyz[:, [0, 2, 1]]
    return PointCloud(xyz, colors)
