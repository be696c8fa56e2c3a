"""Gauss-Newton / Levenberg-Marquardt optimizer on a minimal pose state."""

from __future__ import annotations

import logging
from collections.abc import Callable

import torch
from beartype.typing import NamedTuple

from ..correspondences import Correspondences
from ..errors import DegenerateHessianError
from ..geometry import state_to_rotation_translation
from ..input_validation import convert_inputs, typecheck
from ..residuals import (
    point_to_plane_cost,
    point_to_plane_jacobians,
    point_to_plane_residuals,
)
from ..types import Hessian, IterationRecord, Number, PoseState
from .baseoptimizer import PoseOptimizer
from .context import AlignmentContext

logger = logging.getLogger(__name__)

# Above this value, the damping is reported as a sign of non-convergence
DAMPING_WARNING_THRESHOLD = 1e6


class LevenbergMarquardtStep(NamedTuple):
    """Outcome of :func:`levenberg_marquardt_step`."""

    state: torch.Tensor
    damping: float
    accepted: bool
    candidate_cost: float


@typecheck
def check_conditioning(hessian: Hessian) -> None:
    """Raise if the normal equations cannot be solved reliably.

    Raises
    ------
    DegenerateHessianError
        If ``hessian`` has non-finite entries or a condition number above
        ``1 / eps`` for its dtype.
    """
    if not torch.isfinite(hessian).all():
        msg = "The Hessian approximation has non-finite entries."
        raise DegenerateHessianError(msg)

    condition_number = float(torch.linalg.cond(hessian))
    max_condition_number = 1 / torch.finfo(hessian.dtype).eps
    if not condition_number < max_condition_number:
        msg = (
            "The correspondences do not constrain the pose: the Hessian"
            + f" approximation has condition number {condition_number:.3g}."
            + " Use more points or a scene with more normal directions."
        )
        raise DegenerateHessianError(msg)


@convert_inputs
@typecheck
def levenberg_marquardt_step(
    hessian: Hessian,
    gradient: PoseState,
    damping: Number,
    state: PoseState,
    cost: Number,
    candidate_cost_fn: Callable[[torch.Tensor], float],
    damping_factor: Number = 10.0,
) -> LevenbergMarquardtStep:
    """Damped Gauss-Newton update with a trust region policy.

    The Hessian approximation is damped multiplicatively,
    ``H <- H + damping * H``, the candidate state is
    ``state - H^{-1} gradient`` and it is evaluated with
    ``candidate_cost_fn``. A candidate with a larger cost is rejected and the
    damping is multiplied by ``damping_factor``; otherwise it is accepted and
    the damping is divided by ``damping_factor``.

    Parameters
    ----------
    hessian
        ``(6, 6)`` Gauss-Newton approximation ``J^T J``.
    gradient
        ``(6,)`` gradient ``J^T r``.
    damping
        Current damping factor.
    state
        ``(6,)`` current pose state.
    cost
        Cost at ``state``.
    candidate_cost_fn
        Function returning the cost of a candidate state.
    damping_factor
        Multiplicative update of the damping.

    Returns
    -------
    LevenbergMarquardtStep
        The new state, the new damping, whether the candidate was accepted
        and its cost.

    Raises
    ------
    DegenerateHessianError
        If ``hessian`` is singular or ill-conditioned.
    """
    check_conditioning(hessian)

    damped_hessian = hessian + damping * hessian
    update = -torch.linalg.solve(damped_hessian, gradient)
    candidate = state + update
    candidate_cost = float(candidate_cost_fn(candidate))

    if candidate_cost > cost:
        return LevenbergMarquardtStep(
            state=state,
            damping=damping * damping_factor,
            accepted=False,
            candidate_cost=candidate_cost,
        )

    return LevenbergMarquardtStep(
        state=candidate,
        damping=damping / damping_factor,
        accepted=True,
        candidate_cost=candidate_cost,
    )


class LevenbergMarquardt(PoseOptimizer):
    """Point-to-plane ICP with a hand-written Levenberg-Marquardt solver.

    At each outer iteration, the residuals and Jacobians of every scene point
    are accumulated in the normal equations, a single damped step is tried
    with the same correspondences and accepted if it does not increase the
    sum of the absolute residuals. Every scene point is used: there is no
    outlier rejection.

    Parameters
    ----------
    initial_damping
        Damping factor at the start of each alignment.
    damping_factor
        The damping is multiplied by this factor after a rejected step and
        divided by it after an accepted step.
    initial_state
        Pose state of the first iteration. Defaults to the zero state.
    """

    default_k_neighbors = 10

    @convert_inputs
    @typecheck
    def __init__(
        self,
        initial_damping: Number = 1e-2,
        damping_factor: Number = 10.0,
        initial_state: PoseState | None = None,
    ) -> None:
        self.initial_damping = initial_damping
        self.damping_factor = damping_factor
        self.initial_state = initial_state

    def initialize(self, context: AlignmentContext) -> None:
        context.damping = float(self.initial_damping)
        if self.initial_state is not None:
            context.state = self.initial_state.clone()
        else:
            context.state = torch.zeros(6, dtype=context.scene.dtype)
        self._warned = False

    def step(
        self,
        context: AlignmentContext,
        correspondences: Correspondences,
        iteration: int,
    ) -> tuple[IterationRecord, torch.Tensor, torch.Tensor]:
        targets, normals = context.matched_model(correspondences)
        scene = context.scene
        state = context.state

        rotation, translation = state_to_rotation_translation(state)
        rotated = scene @ rotation.T
        residuals = point_to_plane_residuals(
            rotated, translation, targets, normals
        )
        jacobians = point_to_plane_jacobians(rotated, normals, state[:3])

        hessian = jacobians.T @ jacobians
        gradient = jacobians.T @ residuals
        cost = point_to_plane_cost(residuals)

        def candidate_cost_fn(candidate):
            R, t = state_to_rotation_translation(candidate)
            return point_to_plane_cost(
                point_to_plane_residuals(scene @ R.T, t, targets, normals)
            )

        lm_step = levenberg_marquardt_step(
            hessian=hessian,
            gradient=gradient,
            damping=context.damping,
            state=state,
            cost=cost,
            candidate_cost_fn=candidate_cost_fn,
            damping_factor=self.damping_factor,
        )
        context.damping = lm_step.damping

        if context.damping > DAMPING_WARNING_THRESHOLD and not self._warned:
            logger.warning(
                "Damping factor reached %g at iteration %d: the optimization"
                " keeps rejecting its steps.",
                context.damping,
                iteration,
            )
            self._warned = True

        rotation, translation = state_to_rotation_translation(lm_step.state)
        # The increment is carried by the cumulative transform from now on,
        # the next iteration linearizes around the zero state.
        context.state = torch.zeros_like(state)

        record = IterationRecord(
            iteration=iteration,
            cost=cost,
            candidate_cost=lm_step.candidate_cost,
            accepted=lm_step.accepted,
            damping=lm_step.damping,
            n_residuals=residuals.shape[0],
            n_skipped=0,
            elapsed_ms=0.0,
        )
        return record, rotation, translation

    def log_iteration(self, record: IterationRecord) -> None:
        logger.debug(
            "it: %d, err: %g, damping: %g in %.1fms",
            record.iteration,
            record.cost / max(record.n_residuals, 1),
            record.damping,
            record.elapsed_ms,
        )

    def __repr__(self) -> str:
        return (
            f"LevenbergMarquardt(initial_damping={self.initial_damping},"
            + f" damping_factor={self.damping_factor})"
        )
