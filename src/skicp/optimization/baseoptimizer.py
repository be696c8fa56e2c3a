"""Base class for the pose optimizers."""

from __future__ import annotations

import logging
import time

import torch

from ..correspondences import Correspondences
from ..types import IterationRecord
from .context import AlignmentContext

logger = logging.getLogger(__name__)


class PoseOptimizer:
    """Base class for the point-to-plane pose optimizers.

    The outer loop is shared by every optimizer: at each iteration, the
    correspondences of the current scene are searched in the model, the
    optimizer computes a rigid increment from them (:meth:`step`) and the
    increment is composed with the cumulative transform of the context. There
    is no early exit: the loop always runs ``iterations`` times.

    Subclasses implement :meth:`step` and, if they carry state across
    iterations, :meth:`initialize`.
    """

    #: Number of neighbors used to estimate the model normals.
    default_k_neighbors = 10

    def initialize(self, context: AlignmentContext) -> None:
        """Reset the optimizer's state at the start of an alignment call."""

    def step(
        self,
        context: AlignmentContext,
        correspondences: Correspondences,
        iteration: int,
    ) -> tuple[IterationRecord, torch.Tensor, torch.Tensor]:
        """Compute the increment of one outer iteration.

        Returns
        -------
        tuple[IterationRecord, torch.Tensor, torch.Tensor]
            The diagnostic of the iteration, the ``(3, 3)`` rotation and the
            ``(3,)`` translation of the increment.
        """
        raise NotImplementedError

    def optimize(
        self, context: AlignmentContext, iterations: int
    ) -> AlignmentContext:
        """Run the outer ICP loop on an alignment context.

        Parameters
        ----------
        context
            The alignment context, updated in place.
        iterations
            Fixed number of outer iterations.

        Returns
        -------
        AlignmentContext
            The same context, holding the final transform and the history.
        """
        self.initialize(context)

        for iteration in range(iterations):
            start = time.perf_counter()

            correspondences = context.find_correspondences()
            record, rotation, translation = self.step(
                context, correspondences, iteration
            )
            context.apply_increment(rotation, translation)

            elapsed_ms = 1000 * (time.perf_counter() - start)
            record = record._replace(elapsed_ms=elapsed_ms)
            context.history.append(record)
            self.log_iteration(record)

        return context

    def log_iteration(self, record: IterationRecord) -> None:
        logger.debug(
            "it: %d, err: %g in %.1fms",
            record.iteration,
            record.cost / max(record.n_residuals, 1),
            record.elapsed_ms,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
