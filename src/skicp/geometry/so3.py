"""Minimal pose parameterization.

A pose state is a ``(6,)`` tensor ``[w_x, w_y, w_z, t_x, t_y, t_z]``: the
first three coordinates are a rotation vector (axis times angle) mapped to
SO(3) by the exponential map, the last three are the translation.
"""

import torch

from ..input_validation import convert_inputs, typecheck
from ..types import (
    HomogeneousMatrix,
    Points3d,
    PoseState,
    RotationMatrix,
    RotationVector,
    Translation,
)


@typecheck
def skew(v: RotationVector) -> RotationMatrix:
    """Cross-product matrix ``[v]_x`` such that ``[v]_x @ u = v x u``."""
    zero = torch.zeros_like(v[0])
    return torch.stack(
        [
            torch.stack([zero, -v[2], v[1]]),
            torch.stack([v[2], zero, -v[0]]),
            torch.stack([-v[1], v[0], zero]),
        ]
    )


@convert_inputs
@typecheck
def state_to_rotation_translation(
    state: PoseState,
) -> tuple[RotationMatrix, Translation]:
    """Convert a pose state to a rotation matrix and a translation.

    The rotation is ``exp([w]_x)``: it is a valid rotation for any state and
    the zero state gives the identity.

    Parameters
    ----------
    state
        The ``(6,)`` pose state.

    Returns
    -------
    tuple[RotationMatrix, Translation]
        The ``(3, 3)`` rotation matrix and the ``(3,)`` translation.

    Examples
    --------

    .. testcode::

        import torch
        import skicp as ski

        R, t = ski.state_to_rotation_translation(torch.zeros(6))
        print(R)

    .. testoutput::

        tensor([[1., 0., 0.],
                [0., 1., 0.],
                [0., 0., 1.]], dtype=torch.float64)

    """
    rotation = torch.matrix_exp(skew(state[:3]))
    translation = state[3:].clone()
    return rotation, translation


@typecheck
def so3_left_jacobian(w: RotationVector) -> RotationMatrix:
    r"""Left Jacobian of SO(3).

    It satisfies :math:`\exp([w + \varepsilon]_\times) \approx
    \exp([J_l(w) \varepsilon]_\times) \exp([w]_\times)` for small
    :math:`\varepsilon`, and is the identity at :math:`w = 0`.
    """
    theta2 = (w * w).sum()
    K = skew(w)
    identity = torch.eye(3, dtype=w.dtype, device=w.device)

    if theta2 < 1e-10:
        # Taylor expansion around the identity
        return identity + K / 2 + (K @ K) / 6

    theta = torch.sqrt(theta2)
    a = (1 - torch.cos(theta)) / theta2
    b = (theta - torch.sin(theta)) / (theta2 * theta)
    return identity + a * K + b * (K @ K)


@typecheck
def compose(
    rotation_increment: RotationMatrix,
    translation_increment: Translation,
    rotation: RotationMatrix,
    translation: Translation,
) -> tuple[RotationMatrix, Translation]:
    """Apply an increment on the left of a rigid transform.

    The result maps ``x`` to ``R_hat @ (R @ x + t) + t_hat``.
    """
    new_rotation = rotation_increment @ rotation
    new_translation = rotation_increment @ translation + translation_increment
    return new_rotation, new_translation


@typecheck
def to_homogeneous(
    rotation: RotationMatrix, translation: Translation
) -> HomogeneousMatrix:
    """Stack a rotation and a translation in a ``(4, 4)`` matrix."""
    matrix = torch.eye(4, dtype=rotation.dtype, device=rotation.device)
    matrix[:3, :3] = rotation
    matrix[:3, 3] = translation
    return matrix


@convert_inputs
@typecheck
def transform_points(
    points: Points3d, rotation: RotationMatrix, translation: Translation
) -> Points3d:
    """Apply ``x -> R @ x + t`` to every row of ``points``."""
    return points @ rotation.T + translation


@typecheck
def rotation_angle(rotation: RotationMatrix) -> float:
    """Geodesic angle (in radians) of a rotation matrix."""
    cos = (torch.trace(rotation) - 1) / 2
    return float(torch.acos(torch.clamp(cos, -1.0, 1.0)))
