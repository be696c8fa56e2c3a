r"""Point-to-plane residuals and their derivatives.

For a scene point ``p`` rotated by the current estimate, its closest model
point ``q`` and the unit normal ``n`` of the model at ``q``, the residual

.. math::

    r = (p + \hat{t} - q) \cdot n

is the signed distance of the transformed point to the tangent plane of the
model. Both optimizers of :mod:`skicp.optimization` use these functions.
"""

import torch

from .geometry import so3_left_jacobian
from .input_validation import convert_inputs, typecheck
from .types import (
    Jacobians,
    Normals3d,
    Points3d,
    Residuals,
    RotationVector,
    Translation,
)


@convert_inputs
@typecheck
def point_to_plane_residuals(
    rotated_points: Points3d,
    translation: Translation,
    targets: Points3d,
    normals: Normals3d,
) -> Residuals:
    """Signed distances of the transformed points to the tangent planes.

    Parameters
    ----------
    rotated_points
        ``(N, 3)`` scene points, already rotated by the current estimate.
    translation
        ``(3,)`` translation of the current estimate.
    targets
        ``(N, 3)`` corresponding model points.
    normals
        ``(N, 3)`` unit normals of the model at ``targets``.

    Returns
    -------
    Residuals
        The ``(N,)`` point-to-plane residuals.
    """
    return ((rotated_points + translation - targets) * normals).sum(dim=1)


@convert_inputs
@typecheck
def point_to_plane_jacobians(
    rotated_points: Points3d,
    normals: Normals3d,
    rotation_vector: RotationVector | None = None,
) -> Jacobians:
    """Derivatives of the residuals with respect to the pose state.

    Row ``i`` is ``[(p_i x n_i)^T J_l(w), n_i^T]`` where ``J_l`` is the left
    Jacobian of SO(3) at the rotation vector ``w`` of the linearization point.
    When ``rotation_vector`` is None, the linearization point is the zero
    state and the rotational block reduces to ``p_i x n_i``.

    Parameters
    ----------
    rotated_points
        ``(N, 3)`` scene points rotated by ``exp([w]_x)``.
    normals
        ``(N, 3)`` unit normals of the corresponding model points.
    rotation_vector
        ``(3,)`` rotation part of the pose state, None for the zero state.

    Returns
    -------
    Jacobians
        The ``(N, 6)`` Jacobian rows.
    """
    rotational = torch.linalg.cross(rotated_points, normals, dim=1)
    if rotation_vector is not None:
        rotational = rotational @ so3_left_jacobian(rotation_vector)
    return torch.cat([rotational, normals], dim=1)


@typecheck
def point_to_plane_cost(residuals: Residuals) -> float:
    """Sum of the absolute residuals (diagnostic, not minimized directly)."""
    return float(residuals.abs().sum())
