"""glTF 2.0 (``.gltf`` / ``.glb``) scene loader.

Every triangle primitive reachable from the file's scenes becomes one
:class:`~shellvox.core.mesh.Mesh`, with node transforms baked into the
positions. Base-color textures are kept encoded (:class:`EmbeddedImage` or
:class:`ImageFile`) and decoded only when the mesh is voxelized.
"""

from __future__ import annotations

import base64
import json
import struct
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import unquote

import numpy as np

from ..core.mesh import Mesh
from ..core.texture import EmbeddedImage, ImageFile, Texture
from ..core.utils import get_logger

_log = get_logger()

GLB_MAGIC = b"glTF"
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942
MODE_TRIANGLES = 4

COMPONENT_TYPE_DTYPE = {
    5120: np.int8,
    5121: np.uint8,
    5122: np.int16,
    5123: np.uint16,
    5125: np.uint32,
    5126: np.float32,
}

TYPE_NUM_COMPONENTS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


def _read_glb(data: bytes) -> tuple[dict, Optional[bytes]]:
    if len(data) < 12 or data[:4] != GLB_MAGIC:
        raise ValueError(f"Invalid GLB magic: {data[:4]!r}")
    version, _length = struct.unpack("<II", data[4:12])
    if version != 2:
        raise ValueError(f"Unsupported glTF version: {version}")

    offset = 12
    json_chunk = None
    bin_chunk = None
    while offset + 8 <= len(data):
        chunk_length, chunk_type = struct.unpack("<II", data[offset:offset + 8])
        chunk = data[offset + 8:offset + 8 + chunk_length]
        if chunk_type == CHUNK_JSON:
            json_chunk = chunk
        elif chunk_type == CHUNK_BIN and bin_chunk is None:
            bin_chunk = chunk
        offset += 8 + chunk_length
        offset = (offset + 3) & ~3

    if json_chunk is None:
        raise ValueError("No JSON chunk found in GLB")
    return json.loads(json_chunk.decode("utf-8")), bin_chunk


def _decode_data_uri(uri: str) -> bytes:
    _, _, payload = uri.partition(",")
    return base64.b64decode(payload)


class _GltfDocument:
    def __init__(self, path: Path) -> None:
        self.path = path
        raw = path.read_bytes()
        if path.suffix.lower() == ".glb":
            self.gltf, glb_bin = _read_glb(raw)
        else:
            self.gltf, glb_bin = json.loads(raw.decode("utf-8")), None

        version = str(self.gltf.get("asset", {}).get("version", "2.0"))
        if not version.startswith("2"):
            raise ValueError(f"Unsupported glTF version: {version}")

        self.buffers: List[bytes] = []
        for i, buf in enumerate(self.gltf.get("buffers", [])):
            uri = buf.get("uri")
            if uri is None:
                if glb_bin is None:
                    raise ValueError(f"Buffer {i} has no uri and the file has no BIN chunk")
                self.buffers.append(glb_bin)
            elif uri.startswith("data:"):
                self.buffers.append(_decode_data_uri(uri))
            else:
                self.buffers.append((path.parent / unquote(uri)).read_bytes())

    def item(self, kind: str, index: Optional[int]) -> dict:
        """Entry ``index`` of a top-level glTF array, rejecting dangling references."""
        items = self.gltf.get(kind, [])
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(items):
            raise ValueError(f"glTF {kind} index {index} does not exist ({len(items)} defined)")
        return items[index]

    def buffer_view(self, index: int) -> bytes:
        view = self.item("bufferViews", index)
        buffer = view.get("buffer")
        if not isinstance(buffer, int) or not 0 <= buffer < len(self.buffers):
            raise ValueError(f"Buffer view {index} refers to missing buffer {buffer}")
        buf = self.buffers[buffer]
        start = view.get("byteOffset", 0)
        return buf[start:start + view["byteLength"]]

    def accessor(self, index: int) -> np.ndarray:
        accessor = self.item("accessors", index)
        if "sparse" in accessor:
            raise ValueError(f"Sparse accessor {index} is not supported")

        dtype = np.dtype(COMPONENT_TYPE_DTYPE[accessor["componentType"]]).newbyteorder("<")
        n_comp = TYPE_NUM_COMPONENTS[accessor["type"]]
        count = accessor["count"]

        if "bufferView" not in accessor:
            return np.zeros((count, n_comp), dtype=dtype)

        view = self.item("bufferViews", accessor["bufferView"])
        data = self.buffer_view(accessor["bufferView"])
        offset = accessor.get("byteOffset", 0)
        element_size = dtype.itemsize * n_comp
        stride = view.get("byteStride", 0) or element_size

        if stride == element_size:
            arr = np.frombuffer(data, dtype=dtype, count=count * n_comp, offset=offset)
            arr = arr.reshape(count, n_comp)
        else:
            arr = np.empty((count, n_comp), dtype=dtype)
            for i in range(count):
                arr[i] = np.frombuffer(data, dtype=dtype, count=n_comp, offset=offset + i * stride)

        if accessor.get("normalized", False) and dtype.kind in "iu":
            arr = np.maximum(arr.astype(np.float64) / np.iinfo(dtype).max, -1.0)
        return arr

    def image_texture(self, material_index: Optional[int]) -> tuple[Optional[Texture], int]:
        """Base-color texture of a material and the TEXCOORD set it uses."""
        if material_index is None:
            return None, 0
        material = self.item("materials", material_index)
        info = material.get("pbrMetallicRoughness", {}).get("baseColorTexture")
        if info is None:
            return None, 0
        texture = self.item("textures", info.get("index"))
        source = texture.get("source")
        if source is None:
            return None, 0
        image = self.item("images", source)
        if "bufferView" in image:
            return EmbeddedImage(self.buffer_view(image["bufferView"])), info.get("texCoord", 0)
        uri = image.get("uri")
        if uri is None:
            raise ValueError(f"Image {source} has neither bufferView nor uri")
        if uri.startswith("data:"):
            return EmbeddedImage(_decode_data_uri(uri)), info.get("texCoord", 0)
        return ImageFile(self.path.parent / unquote(uri)), info.get("texCoord", 0)


def _quat_matrix(q) -> np.ndarray:
    x, y, z, w = (float(c) for c in q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def node_matrix(node: dict) -> np.ndarray:
    """Local 4x4 transform of a node (explicit matrix or T * R * S)."""
    if "matrix" in node:
        # glTF stores matrices column-major
        return np.asarray(node["matrix"], dtype=np.float64).reshape(4, 4).T
    m = np.eye(4)
    m[:3, :3] = _quat_matrix(node.get("rotation", [0.0, 0.0, 0.0, 1.0])) @ np.diag(node.get("scale", [1.0, 1.0, 1.0]))
    m[:3, 3] = node.get("translation", [0.0, 0.0, 0.0])
    return m


def _primitive_mesh(doc: _GltfDocument, primitive: dict, world: np.ndarray, name: str) -> Mesh:
    mode = primitive.get("mode", MODE_TRIANGLES)
    if mode != MODE_TRIANGLES:
        raise ValueError(f"Mesh '{name}' contains invalid primitive mode {mode}")

    attributes = primitive.get("attributes", {})
    if "POSITION" not in attributes:
        raise ValueError(f"Mesh '{name}' has no POSITION attribute")
    if "indices" not in primitive:
        raise ValueError(f"Mesh '{name}' has no indices")

    vertices = doc.accessor(attributes["POSITION"]).astype(np.float64)
    vertices = vertices @ world[:3, :3].T + world[:3, 3]
    indices = doc.accessor(primitive["indices"]).astype(np.int64).ravel()

    texture, tex_coord = doc.image_texture(primitive.get("material"))
    uvs = None
    if texture is not None:
        key = f"TEXCOORD_{tex_coord}"
        if key not in attributes:
            raise ValueError(f"Mesh '{name}' has a texture but no {key} coordinates")
        uvs = doc.accessor(attributes[key]).astype(np.float64)

    return Mesh.from_indexed(vertices, indices, uvs=uvs, texture=texture, name=name)


def load_gltf(path: str | Path) -> List[Mesh]:
    path = Path(path)
    doc = _GltfDocument(path)
    gltf = doc.gltf
    nodes = gltf.get("nodes", [])

    scenes = gltf.get("scenes", [])
    if scenes:
        roots = [n for scene in scenes for n in scene.get("nodes", [])]
    else:
        child_ids = {c for node in nodes for c in node.get("children", [])}
        roots = [i for i in range(len(nodes)) if i not in child_ids]

    meshes: List[Mesh] = []
    stack = [(i, np.eye(4)) for i in reversed(roots)]
    while stack:
        node_idx, parent = stack.pop()
        node = doc.item("nodes", node_idx)
        world = parent @ node_matrix(node)
        for child in reversed(node.get("children", [])):
            stack.append((child, world))

        mesh_idx = node.get("mesh")
        if mesh_idx is None:
            continue
        gmesh = doc.item("meshes", mesh_idx)
        base = gmesh.get("name") or node.get("name") or f"Mesh_{mesh_idx}"
        for prim_idx, primitive in enumerate(gmesh.get("primitives", [])):
            name = base if prim_idx == 0 else f"{base}_{prim_idx}"
            meshes.append(_primitive_mesh(doc, primitive, world, name))

    _log.debug("glTF %s: %d triangle primitives", path.name, len(meshes))
    return meshes
