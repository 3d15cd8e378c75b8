"""Configuration loading utilities for shellvox."""

from .schema import (
    InputConfig,
    OutputConfig,
    RotationConfig,
    VoxelizeConfig,
    load_config,
)

__all__ = ["InputConfig", "OutputConfig", "RotationConfig", "VoxelizeConfig", "load_config"]
