from .run import VoxelizeRunResult, voxelize_from_config

__all__ = ["VoxelizeRunResult", "voxelize_from_config"]
