from __future__ import annotations
from typing import List
import os
import pathlib
import numpy as np

from .voxels import VoxelBatch
from .utils import get_logger

_log = get_logger()

MAGIC = b"VOXELSRS"
HEADER_SIZE = len(MAGIC) + 8

# 16 bytes per voxel: i32 x, y, z then the packed color (r, g, b, a bytes).
VOXEL_RECORD = np.dtype([
    ("x", "<i4"),
    ("y", "<i4"),
    ("z", "<i4"),
    ("rgba", "u1", (4,)),
])


class VoxelWriter:
    """Voxel file writer (buffered, written once on close).

    The file is written to a temporary sibling and renamed into place, so an
    interrupted run never leaves a partial voxel file behind.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._batches: List[VoxelBatch] = []
        self.written = 0

    def write_batch(self, batch: VoxelBatch) -> None:
        self._batches.append(batch)

    def close(self) -> None:
        voxels = VoxelBatch.concatenate(self._batches)
        self._batches.clear()

        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        records = np.empty((len(voxels),), dtype=VOXEL_RECORD)
        records["x"] = voxels.coords[:, 0]
        records["y"] = voxels.coords[:, 1]
        records["z"] = voxels.coords[:, 2]
        records["rgba"] = voxels.colors

        tmp = path.with_name(path.name + ".part")
        try:
            with open(tmp, "wb") as f:
                f.write(MAGIC)
                f.write(np.uint64(len(voxels)).astype("<u8").tobytes())
                f.write(records.tobytes())
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()
        self.written = len(voxels)
        _log.debug("Wrote %d voxels to %s", self.written, path.name)


def read_voxels(path: str | pathlib.Path) -> VoxelBatch:
    data = pathlib.Path(path).read_bytes()
    if len(data) < HEADER_SIZE or data[:len(MAGIC)] != MAGIC:
        raise ValueError(f"{path}: not a voxel file (bad magic)")
    count = int(np.frombuffer(data, dtype="<u8", count=1, offset=len(MAGIC))[0])
    expected = HEADER_SIZE + count * VOXEL_RECORD.itemsize
    if len(data) != expected:
        raise ValueError(f"{path}: header declares {count} voxels but file holds {len(data) - HEADER_SIZE} record bytes")
    if count == 0:
        return VoxelBatch.empty()
    records = np.frombuffer(data, dtype=VOXEL_RECORD, count=count, offset=HEADER_SIZE)
    coords = np.column_stack([records["x"], records["y"], records["z"]]).astype(np.int32)
    return VoxelBatch(coords, records["rgba"].copy())
