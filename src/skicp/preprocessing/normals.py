"""Point normals estimated from local covariances."""

import torch
from sklearn.neighbors import KDTree

from ..errors import EmptyPointCloudError
from ..input_validation import convert_inputs, typecheck
from ..types import Normals3d, Point3d, Points3d


@convert_inputs
@typecheck
def estimate_normals(
    points: Points3d,
    k_neighbors: int = 10,
    viewpoint: Point3d | None = None,
    leaf_size: int = 40,
) -> Normals3d:
    """Unit normals of a point cloud.

    The normal at a point is the eigenvector associated with the smallest
    eigenvalue of the covariance matrix of its ``k_neighbors`` nearest
    neighbors (the point itself included). Normals are flipped to point
    towards ``viewpoint``.

    Parameters
    ----------
    points
        ``(N, 3)`` point cloud, with ``N >= 3``.
    k_neighbors
        Size of the neighborhoods, clipped to ``N``.
    viewpoint
        The normals satisfy ``n . (viewpoint - p) >= 0``. Defaults to the
        origin.
    leaf_size
        Leaf size of the KD-tree used to find the neighbors.

    Returns
    -------
    Normals3d
        The ``(N, 3)`` unit normals, in the same order as ``points``.

    Raises
    ------
    EmptyPointCloudError
        If the cloud has less than 3 points.
    """
    n_points = points.shape[0]
    if n_points < 3:
        msg = (
            "At least 3 points are required to estimate normals, got"
            + f" {n_points}."
        )
        raise EmptyPointCloudError(msg)

    if k_neighbors < 3:
        msg = f"k_neighbors must be at least 3, got {k_neighbors}"
        raise ValueError(msg)

    k = min(k_neighbors, n_points)
    tree = KDTree(
        points.detach().cpu().numpy(), leaf_size=leaf_size, metric="euclidean"
    )
    _, nbr_indices = tree.query(points.detach().cpu().numpy(), k=k)
    nbr_idx = torch.from_numpy(nbr_indices).long()

    neighbors = points[nbr_idx]  # (N, k, 3)
    centered = neighbors - neighbors.mean(dim=1, keepdim=True)
    covariances = centered.transpose(1, 2) @ centered / k  # (N, 3, 3)

    # eigh sorts the eigenvalues in ascending order
    _, eigenvectors = torch.linalg.eigh(covariances)
    normals = eigenvectors[:, :, 0]
    normals = torch.nn.functional.normalize(normals, p=2, dim=1)

    if viewpoint is None:
        viewpoint = torch.zeros(3, dtype=points.dtype)

    flip = ((viewpoint - points) * normals).sum(dim=1) < 0
    normals[flip] = -normals[flip]
    return normals
