from __future__ import annotations

import io
import json
import struct
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image

GLB_MAGIC = b"glTF"
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

FLOAT = 5126
UNSIGNED_INT = 5125
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963


def _box(center: Tuple[float, float, float], size: Tuple[float, float, float]) -> Tuple[np.ndarray, np.ndarray]:
    cx, cy, cz = center
    sx, sy, sz = size
    hx, hy, hz = sx / 2.0, sy / 2.0, sz / 2.0
    vertices = np.array([
        [cx - hx, cy - hy, cz - hz],
        [cx + hx, cy - hy, cz - hz],
        [cx + hx, cy + hy, cz - hz],
        [cx - hx, cy + hy, cz - hz],
        [cx - hx, cy - hy, cz + hz],
        [cx + hx, cy - hy, cz + hz],
        [cx + hx, cy + hy, cz + hz],
        [cx - hx, cy + hy, cz + hz],
    ], dtype=np.float32)

    faces = np.array([
        [0, 1, 2], [0, 2, 3],  # bottom
        [4, 7, 6], [4, 6, 5],  # top
        [0, 4, 5], [0, 5, 1],  # front
        [1, 5, 6], [1, 6, 2],  # right
        [2, 6, 7], [2, 7, 3],  # back
        [3, 7, 4], [3, 4, 0],  # left
    ], dtype=np.int64)
    return vertices, faces


def _ramp(length: float, width: float, height: float) -> Tuple[np.ndarray, np.ndarray]:
    lx, wy, hz = length / 2.0, width / 2.0, height
    vertices = np.array([
        [-lx, -wy, 0.0],
        [lx, -wy, 0.0],
        [lx, wy, 0.0],
        [-lx, wy, 0.0],
        [-lx, wy, hz],
        [lx, wy, hz],
    ], dtype=np.float32)
    faces = np.array([
        [0, 2, 1], [0, 3, 2],  # base (downward facing)
        [3, 5, 2], [3, 4, 5],  # back wall
        [0, 4, 3],             # left wall
        [1, 2, 5],             # right wall
        [0, 1, 5], [0, 5, 4],  # sloped deck
    ], dtype=np.int64)
    return vertices, faces


def _unweld(vertices: np.ndarray, faces: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Give every triangle its own corners so each face maps the full texture."""
    soup = vertices[faces].reshape(-1, 3)
    corner_uvs = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]], dtype=np.float32)
    uvs = np.tile(corner_uvs, (len(faces), 1))
    return soup.astype(np.float32), np.arange(len(soup), dtype=np.int64).reshape(-1, 3), uvs


def checker_png(size: int = 2, colors: Tuple[Tuple[int, int, int, int], ...] = ((255, 0, 0, 255), (0, 0, 255, 255))) -> bytes:
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    for row in range(size):
        for col in range(size):
            pixels[row, col] = colors[(row + col) % len(colors)]
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


def _pad4(data: bytes, fill: bytes = b"\x00") -> bytes:
    return data + fill * ((4 - len(data) % 4) % 4)


def write_glb(
    path: Path,
    vertices: np.ndarray,
    faces: np.ndarray,
    uvs: Optional[np.ndarray] = None,
    png: Optional[bytes] = None,
    mode: int = 4,
) -> None:
    """Write a single-primitive binary glTF.

    With ``png`` the primitive gets a material whose base-color texture is the
    embedded image, and ``uvs`` become ``TEXCOORD_0``.
    """
    if png is not None and uvs is None:
        raise ValueError("A textured scene needs texture coordinates")
    vertices = np.asarray(vertices, dtype="<f4").reshape(-1, 3)
    indices = np.asarray(faces, dtype="<u4").ravel()

    blobs: List[bytes] = []
    views: List[dict] = []
    offset = 0

    def add_view(data: bytes, target: Optional[int] = None) -> int:
        nonlocal offset
        view = {"buffer": 0, "byteOffset": offset, "byteLength": len(data)}
        if target is not None:
            view["target"] = target
        views.append(view)
        padded = _pad4(data)
        blobs.append(padded)
        offset += len(padded)
        return len(views) - 1

    accessors = [
        {
            "bufferView": add_view(vertices.tobytes(), ARRAY_BUFFER),
            "componentType": FLOAT,
            "count": len(vertices),
            "type": "VEC3",
            "min": vertices.min(axis=0).tolist(),
            "max": vertices.max(axis=0).tolist(),
        },
        {
            "bufferView": add_view(indices.tobytes(), ELEMENT_ARRAY_BUFFER),
            "componentType": UNSIGNED_INT,
            "count": len(indices),
            "type": "SCALAR",
        },
    ]
    primitive: dict = {"attributes": {"POSITION": 0}, "indices": 1, "mode": mode}
    gltf: dict = {"asset": {"version": "2.0", "generator": "shellvox synthetic"}}

    if uvs is not None:
        tex = np.asarray(uvs, dtype="<f4").reshape(-1, 2)
        accessors.append({
            "bufferView": add_view(tex.tobytes(), ARRAY_BUFFER),
            "componentType": FLOAT,
            "count": len(tex),
            "type": "VEC2",
        })
        primitive["attributes"]["TEXCOORD_0"] = len(accessors) - 1
    if png is not None:
        gltf["images"] = [{"bufferView": add_view(png), "mimeType": "image/png"}]
        gltf["textures"] = [{"source": 0}]
        gltf["materials"] = [{"pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}}]
        primitive["material"] = 0

    bin_chunk = b"".join(blobs)
    gltf.update({
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0, "name": path.stem}],
        "meshes": [{"name": path.stem, "primitives": [primitive]}],
        "buffers": [{"byteLength": len(bin_chunk)}],
        "bufferViews": views,
        "accessors": accessors,
    })
    json_chunk = _pad4(json.dumps(gltf, separators=(",", ":")).encode("utf-8"), b" ")

    total = 12 + 8 + len(json_chunk) + 8 + len(bin_chunk)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(GLB_MAGIC + struct.pack("<II", 2, total))
        f.write(struct.pack("<II", len(json_chunk), CHUNK_JSON) + json_chunk)
        f.write(struct.pack("<II", len(bin_chunk), CHUNK_BIN) + bin_chunk)


def write_point_cloud_ply(
    path: Path,
    points: np.ndarray,
    colors: Optional[np.ndarray] = None,
    binary: bool = False,
) -> None:
    """Write xyz (+ optional uchar RGB) vertices as an ASCII or little-endian PLY."""
    points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    path.parent.mkdir(parents=True, exist_ok=True)
    header = [
        "ply",
        f"format {'binary_little_endian' if binary else 'ascii'} 1.0",
        f"element vertex {len(points)}",
        "property float x",
        "property float y",
        "property float z",
    ]
    if colors is not None:
        colors = np.asarray(colors, dtype=np.uint8).reshape(-1, 3)
        header += ["property uchar red", "property uchar green", "property uchar blue"]
    header.append("end_header")

    with open(path, "wb") as f:
        f.write(("\n".join(header) + "\n").encode("ascii"))
        if binary:
            fields = [("x", "<f4"), ("y", "<f4"), ("z", "<f4")]
            if colors is not None:
                fields += [("red", "u1"), ("green", "u1"), ("blue", "u1")]
            records = np.empty(len(points), dtype=fields)
            records["x"], records["y"], records["z"] = points[:, 0], points[:, 1], points[:, 2]
            if colors is not None:
                records["red"], records["green"], records["blue"] = colors[:, 0], colors[:, 1], colors[:, 2]
            f.write(records.tobytes())
        else:
            for i, (x, y, z) in enumerate(points):
                line = f"{x:.6f} {y:.6f} {z:.6f}"
                if colors is not None:
                    r, g, b = colors[i]
                    line += f" {int(r)} {int(g)} {int(b)}"
                f.write((line + "\n").encode("ascii"))


def generate_scene(preset: str, size: float, path: Path, textured: bool = False) -> None:
    preset = preset.lower()
    if not size > 0:
        raise ValueError(f"Scene size must be positive, got {size}")
    if preset == "cube":
        # Axis-aligned cube with one corner at the origin.
        vertices, faces = _box(center=(size / 2.0, size / 2.0, size / 2.0), size=(size, size, size))
    elif preset == "ramp":
        vertices, faces = _ramp(length=size, width=size * 0.5, height=size * 0.25)
    else:
        raise ValueError(f"Unknown synthetic scene preset '{preset}'.")

    if textured:
        vertices, faces, uvs = _unweld(vertices, faces)
        write_glb(path, vertices, faces, uvs=uvs, png=checker_png())
    else:
        write_glb(path, vertices, faces)
