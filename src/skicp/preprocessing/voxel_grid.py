"""Voxel grid downsampling."""

import torch

from ..input_validation import convert_inputs, typecheck
from ..types import Number, Points3d
from ..utils import scatter_mean


@convert_inputs
@typecheck
def voxel_downsample(points: Points3d, grid_size: Number | None) -> Points3d:
    """Replace the points of every occupied voxel by their centroid.

    The space is divided in cubic voxels of side ``grid_size``, aligned on the
    origin. The output has one point per occupied voxel, sorted by voxel
    coordinates (lexicographic order), so that the result does not depend on
    the order of the input points.

    Parameters
    ----------
    points
        ``(N, 3)`` point cloud.
    grid_size
        Side of the voxels. If None or 0, a copy of ``points`` is returned.

    Returns
    -------
    Points3d
        The ``(M, 3)`` downsampled cloud, ``M <= N``.

    Examples
    --------

    .. testcode::

        import skicp as ski

        points = [[0.1, 0.1, 0.1], [0.3, 0.3, 0.3], [1.5, 0.2, 0.2]]
        print(ski.voxel_downsample(points, grid_size=1.0))

    .. testoutput::

        tensor([[0.2000, 0.2000, 0.2000],
                [1.5000, 0.2000, 0.2000]], dtype=torch.float64)

    """
    if grid_size is None or grid_size == 0 or points.shape[0] == 0:
        return points.clone()

    if grid_size < 0:
        msg = f"grid_size must be non-negative, got {grid_size}"
        raise ValueError(msg)

    keys = torch.floor(points / grid_size).to(torch.int64)
    # torch.unique sorts the keys lexicographically
    _, voxel_index = torch.unique(keys, dim=0, return_inverse=True)
    return scatter_mean(src=points, index=voxel_index)
