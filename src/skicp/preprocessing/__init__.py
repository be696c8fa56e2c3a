"""
The :mod:`skicp.preprocessing` module prepares the point clouds before the
registration: voxel grid downsampling and normal estimation.
"""

from .normals import estimate_normals
from .voxel_grid import voxel_downsample
