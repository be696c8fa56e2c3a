"""Robust point-to-plane optimizer on a quaternion + translation pose.

The numerical solve is delegated to :func:`scipy.optimize.least_squares`
with a Huber loss. The rotation is a unit quaternion, updated through the
retraction :func:`~skicp.geometry.quaternion_plus` so that the solver works on
three tangent coordinates and the quaternion never leaves the unit sphere.
"""

from __future__ import annotations

import logging

import numpy as np
import torch
from scipy.optimize import least_squares

from ..correspondences import Correspondences
from ..errors import NoCorrespondenceError
from ..geometry import (
    quaternion_identity,
    quaternion_multiply,
    quaternion_normalize,
    quaternion_plus,
    quaternion_to_matrix,
)
from ..input_validation import convert_inputs, typecheck
from ..residuals import point_to_plane_cost, point_to_plane_residuals
from ..types import (
    IterationRecord,
    Normals3d,
    Number,
    Points3d,
    PoseState,
    Quaternion,
    Residuals,
    Translation,
)
from .baseoptimizer import PoseOptimizer
from .context import AlignmentContext

logger = logging.getLogger(__name__)


class PointToPlaneFactor:
    """Point-to-plane residuals as a function of the tangent parameters.

    The parameter vector ``x = [delta, t]`` holds a rotation increment
    ``delta`` applied to ``quaternion`` (see
    :func:`~skicp.geometry.quaternion_plus`) and a translation ``t``.
    The residuals are the ones of
    :func:`~skicp.residuals.point_to_plane_residuals`; their Jacobian is
    computed by automatic differentiation.

    Parameters
    ----------
    points
        ``(N, 3)`` scene points.
    targets
        ``(N, 3)`` corresponding model points.
    normals
        ``(N, 3)`` unit normals of the model at ``targets``.
    quaternion
        Reference rotation of the parameter block, identity by default.
    """

    @convert_inputs
    @typecheck
    def __init__(
        self,
        points: Points3d,
        targets: Points3d,
        normals: Normals3d,
        quaternion: Quaternion | None = None,
    ) -> None:
        self.points = points
        self.targets = targets
        self.normals = normals
        self.quaternion = (
            quaternion
            if quaternion is not None
            else quaternion_identity(dtype=points.dtype)
        )

    @property
    def n_residuals(self) -> int:
        return self.points.shape[0]

    @typecheck
    def pose(self, x: PoseState) -> tuple[Quaternion, Translation]:
        """Quaternion and translation encoded by the parameters ``x``."""
        return quaternion_plus(self.quaternion, x[:3]), x[3:]

    @typecheck
    def __call__(self, x: PoseState) -> Residuals:
        quaternion, translation = self.pose(x)
        rotation = quaternion_to_matrix(quaternion)
        return point_to_plane_residuals(
            self.points @ rotation.T, translation, self.targets, self.normals
        )

    def to_tensor(self, x: np.ndarray) -> torch.Tensor:
        return torch.as_tensor(x, dtype=self.points.dtype)

    def residuals(self, x: np.ndarray) -> np.ndarray:
        """Residuals for scipy, as a float64 array."""
        with torch.no_grad():
            values = self(self.to_tensor(x))
        return values.cpu().numpy().astype(np.float64)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        """``(N, 6)`` Jacobian for scipy, as a float64 array."""
        jac = torch.autograd.functional.jacobian(self, self.to_tensor(x))
        return jac.detach().cpu().numpy().astype(np.float64)


class HuberQuaternion(PoseOptimizer):
    """Point-to-plane ICP solved by robust nonlinear least squares.

    At each outer iteration, a new least-squares problem is built from the
    correspondences of the current scene. Correspondences whose squared
    distance is above ``distance_threshold`` are skipped, the other ones give
    one residual each, wrapped in a Huber loss of scale ``huber_scale``. The
    problem is solved from the identity in at most ``inner_iterations``
    trust region steps and its solution is composed with the
    cumulative transform.

    scipy bounds the residual evaluations of the ``"trf"`` method
    (``max_nfev``), not its iterations. The first evaluation, at the
    identity, does not move the solution, so the solver gets
    ``inner_iterations + 1`` evaluations: one per trust region step. A
    rejected step still consumes its evaluation.

    Parameters
    ----------
    distance_threshold
        Maximal squared distance of a correspondence.
    huber_scale
        Residual value at which the Huber loss switches from quadratic to
        linear.
    inner_iterations
        Maximal number of trust region steps of the solver per outer
        iteration.

    Attributes
    ----------
    quaternion_
        Running rotation of the last alignment as a unit quaternion, composed
        from the same increments as the rotation of the alignment context.
        Diagnostic only: the transform returned by the registration is the
        matrix product kept by the context.
    n_skipped_
        Number of skipped correspondences over the last alignment.
    n_evaluations_
        Number of residual evaluations of the solver over the last
        alignment, at most ``inner_iterations + 1`` per outer iteration.
    """

    default_k_neighbors = 20

    @typecheck
    def __init__(
        self,
        distance_threshold: Number = 1.0,
        huber_scale: Number = 0.3,
        inner_iterations: int = 4,
    ) -> None:
        self.distance_threshold = distance_threshold
        self.huber_scale = huber_scale
        self.inner_iterations = inner_iterations

    def initialize(self, context: AlignmentContext) -> None:
        context.damping = None
        self.n_skipped_ = 0
        self.n_evaluations_ = 0
        # Running rotation, composed once per outer iteration
        self.quaternion_ = quaternion_identity(dtype=context.scene.dtype)

    def step(
        self,
        context: AlignmentContext,
        correspondences: Correspondences,
        iteration: int,
    ) -> tuple[IterationRecord, torch.Tensor, torch.Tensor]:
        # Scene index i is compared with the distance of its own match
        keep = correspondences.squared_distances <= self.distance_threshold
        n_kept = int(keep.sum())
        n_skipped = int(keep.shape[0] - n_kept)
        self.n_skipped_ += n_skipped

        if n_kept == 0:
            msg = (
                "No correspondence within the distance threshold"
                + f" {self.distance_threshold} at iteration {iteration}."
            )
            raise NoCorrespondenceError(msg)

        targets, normals = context.matched_model(correspondences)
        factor = PointToPlaneFactor(
            points=context.scene[keep],
            targets=targets[keep],
            normals=normals[keep],
        )

        x0 = np.zeros(6)
        cost = point_to_plane_cost(factor(factor.to_tensor(x0)))

        solution = least_squares(
            factor.residuals,
            x0,
            jac=factor.jacobian,
            method="trf",
            loss="huber",
            f_scale=float(self.huber_scale),
            max_nfev=self.inner_iterations + 1,
        )
        self.n_evaluations_ += int(solution.nfev)

        x = factor.to_tensor(solution.x)
        with torch.no_grad():
            candidate_cost = point_to_plane_cost(factor(x))
            quaternion, translation = factor.pose(x)
            rotation = quaternion_to_matrix(quaternion)
            self.quaternion_ = quaternion_normalize(
                quaternion_multiply(quaternion, self.quaternion_)
            )

        record = IterationRecord(
            iteration=iteration,
            cost=cost,
            candidate_cost=candidate_cost,
            accepted=True,
            damping=None,
            n_residuals=n_kept,
            n_skipped=n_skipped,
            elapsed_ms=0.0,
        )
        return record, rotation, translation.clone()

    def optimize(
        self, context: AlignmentContext, iterations: int
    ) -> AlignmentContext:
        context = super().optimize(context, iterations)
        logger.info(
            "%d correspondences skipped over %d iterations",
            self.n_skipped_,
            iterations,
        )
        return context

    def log_iteration(self, record: IterationRecord) -> None:
        logger.debug(
            "it: %d, err: %g, kept: %d, skipped: %d in %.1fms",
            record.iteration,
            record.cost / max(record.n_residuals, 1),
            record.n_residuals,
            record.n_skipped,
            record.elapsed_ms,
        )

    def __repr__(self) -> str:
        return (
            f"HuberQuaternion(distance_threshold={self.distance_threshold},"
            + f" huber_scale={self.huber_scale},"
            + f" inner_iterations={self.inner_iterations})"
        )
