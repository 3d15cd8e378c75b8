"""shellvox - surface voxelization of meshes and point clouds.

Core components:
- Mesh / Triangle model with bounding box and BVH (core.mesh, core.bvh)
- Double-winding ray/triangle intersector (core.intersector)
- Three-axis shell voxelizer (core.voxelizer)
- Nearest-pixel texture sampling (core.texture)
- Point-cloud quantization (core.pointcloud)
- Voxel batches, deduplication and the binary voxel file (core.voxels, core.exporter)
"""

from .core.bbox import BoundingBox
from .core.bvh import BoundingVolumeHierarchy
from .core.exporter import VoxelWriter, read_voxels
from .core.intersector import Intersection, Ray, intersect, intersect_many
from .core.mesh import Mesh, Triangle
from .core.pointcloud import PointCloud
from .core.texture import EmbeddedImage, ImageFile, Raster
from .core.voxelizer import ShellVoxelizer, VoxelizerConfig, voxelize_meshes
from .core.voxels import VoxelBatch, grid_coordinates
from .sdk.run import VoxelizeRunResult, voxelize_from_config
