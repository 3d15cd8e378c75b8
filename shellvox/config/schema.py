from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class InputConfig(BaseModel):
    path: Path
    # Point clouds only: exchange y and z so z-up scans come out y-up.
    swap_yz: bool = True


class OutputConfig(BaseModel):
    path: Path


class RotationConfig(BaseModel):
    x_deg: float = 0.0
    y_deg: float = 0.0
    z_deg: float = 0.0

    def as_degrees(self) -> tuple[float, float, float]:
        return (self.x_deg, self.y_deg, self.z_deg)


class VoxelizeConfig(BaseModel):
    input: InputConfig
    output: OutputConfig
    resolution: float = Field(gt=0.0)
    rotation: Optional[RotationConfig] = None
    workers: int = Field(default=1, ge=1)
    untextured_color: tuple[int, int, int, int] = (255, 255, 255, 255)

    @field_validator("untextured_color")
    @classmethod
    def _check_color(cls, value: tuple[int, int, int, int]) -> tuple[int, int, int, int]:
        if any(c < 0 or c > 255 for c in value):
            raise ValueError("untextured_color channels must be within [0, 255]")
        return value


def load_config(path: str | Path) -> VoxelizeConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = VoxelizeConfig.model_validate(data)
    cfg.output.path = (path.parent / cfg.output.path).resolve()
    if not cfg.input.path.is_absolute():
        cfg.input.path = (path.parent / cfg.input.path).resolve()
    return cfg
