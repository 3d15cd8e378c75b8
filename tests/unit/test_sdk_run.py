from __future__ import annotations

from pathlib import Path

import numpy as np
import yaml

from shellvox.config import load_config
from shellvox.core.exporter import read_voxels
from shellvox.examples.synthetic import generate_scene, write_point_cloud_ply
from shellvox.sdk import voxelize_from_config


def _write_config(path: Path, input_name: str, output_name: str, **extra) -> None:
    config = {
        "input": {"path": input_name},
        "output": {"path": output_name},
        "resolution": 1.0,
    }
    config.update(extra)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)


def test_voxelize_mesh_from_config_path(tmp_path: Path) -> None:
    generate_scene("cube", 4.0, tmp_path / "cube.glb")
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, "cube.glb", "cube.vox", workers=2)

    result = voxelize_from_config(cfg_path)

    assert result.output_path == (tmp_path / "cube.vox").resolve()
    assert result.stats == {"kind": "mesh", "inputs": 1, "samples": result.stats["samples"], "voxels": 98}
    assert result.stats["samples"] > 98
    assert len(read_voxels(result.output_path)) == 98


def test_overrides_take_precedence(tmp_path: Path) -> None:
    generate_scene("cube", 1.0, tmp_path / "cube.glb")
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, "cube.glb", "ignored.vox")
    cfg = load_config(cfg_path)

    out = tmp_path / "override" / "fine.vox"
    result = voxelize_from_config(cfg, output=out, resolution=0.5, workers=3)

    assert result.output_path == out.resolve()
    assert out.exists()
    assert not (tmp_path / "ignored.vox").exists()
    assert result.config.resolution == 0.5
    assert result.stats["voxels"] == 26
    # the caller's config object is left untouched
    assert cfg.resolution == 1.0


def test_point_cloud_with_rotation(tmp_path: Path) -> None:
    write_point_cloud_ply(
        tmp_path / "cloud.ply",
        np.array([[1.0, 0.0, 0.0], [1.2, 0.1, 0.0], [0.0, 0.0, 3.0]]),
        colors=np.array([[1, 1, 1], [2, 2, 2], [3, 3, 3]]),
    )
    cfg_path = tmp_path / "config.yaml"
    _write_config(
        cfg_path,
        "cloud.ply",
        "cloud.vox",
        input={"path": "cloud.ply", "swap_yz": False},
        rotation={"z_deg": 90.0},
    )

    result = voxelize_from_config(cfg_path)

    assert result.stats["kind"] == "pointcloud"
    assert result.stats["inputs"] == 3
    assert read_voxels(result.output_path).to_pairs() == [
        ((0, 0, 3), (3, 3, 3, 255)),
        ((0, 1, 0), (2, 2, 2, 255)),
    ]
