"""Closest point correspondences between the scene and the model."""

from __future__ import annotations

import numpy as np
import torch
from beartype.typing import NamedTuple
from sklearn.neighbors import KDTree

from .errors import EmptyPointCloudError, NotFittedError
from .input_validation import convert_inputs, typecheck
from .types import Float1dTensor, Int1dTensor, Point3d, Points3d


class Correspondences(NamedTuple):
    """Nearest model point of every query point.

    Attributes
    ----------
    indices
        ``(N,)`` index of the closest model point.
    squared_distances
        ``(N,)`` squared euclidean distance to that point.
    """

    indices: Int1dTensor
    squared_distances: Float1dTensor


class ClosestPointFinder:
    """Nearest neighbor search over a fixed set of model points.

    The search structure is a scikit-learn :class:`~sklearn.neighbors.KDTree`,
    built once by :meth:`initialize` and queried at every ICP iteration. Ties
    are broken by the tree in a deterministic way.

    Parameters
    ----------
    leaf_size
        Leaf size of the KD-tree.
    """

    @typecheck
    def __init__(self, leaf_size: int = 40) -> None:
        self.leaf_size = leaf_size

    @convert_inputs
    @typecheck
    def initialize(self, target: Points3d) -> ClosestPointFinder:
        """Build the search tree over the model points.

        Raises
        ------
        EmptyPointCloudError
            If ``target`` has no points.
        """
        if target.shape[0] == 0:
            msg = "Cannot build a nearest neighbor index on an empty cloud."
            raise EmptyPointCloudError(msg)

        self.target = target
        self.tree = KDTree(
            target.detach().cpu().numpy(),
            leaf_size=self.leaf_size,
            metric="euclidean",
        )
        self._M = target.shape[0]
        return self

    @property
    def n_points(self) -> int:
        """Number of indexed model points."""
        self._check_initialized()
        return self._M

    def _check_initialized(self) -> None:
        if not hasattr(self, "tree"):
            msg = "The finder must be initialized before querying it."
            raise NotFittedError(msg)

    @convert_inputs
    @typecheck
    def query(self, points: Points3d) -> Correspondences:
        """Closest model point of every query point.

        Parameters
        ----------
        points
            ``(N, 3)`` query points.

        Returns
        -------
        Correspondences
            The indices and squared distances, one per query point.
        """
        self._check_initialized()
        if points.shape[0] == 0:
            return Correspondences(
                indices=torch.zeros(0, dtype=torch.int64),
                squared_distances=torch.zeros(0, dtype=points.dtype),
            )

        distances, idxs = self.tree.query(
            points.detach().cpu().numpy(), k=1
        )
        indices = torch.from_numpy(idxs[:, 0].astype(np.int64))
        squared_distances = torch.from_numpy(distances[:, 0] ** 2).to(
            dtype=points.dtype
        )
        return Correspondences(
            indices=indices, squared_distances=squared_distances
        )

    @convert_inputs
    @typecheck
    def nearest(self, point: Point3d) -> tuple[int, float]:
        """Index of the closest model point and its squared distance."""
        correspondences = self.query(point.view(1, 3))
        return (
            int(correspondences.indices[0]),
            float(correspondences.squared_distances[0]),
        )
