"""Unit quaternions, stored as ``(w, x, y, z)`` tensors."""

import torch

from ..globals import float_dtype
from ..input_validation import typecheck
from ..types import Quaternion, RotationMatrix, RotationVector


@typecheck
def quaternion_identity(
    dtype: torch.dtype | None = None,
) -> Quaternion:
    """The identity rotation ``(1, 0, 0, 0)``."""
    return torch.tensor([1.0, 0.0, 0.0, 0.0], dtype=dtype or float_dtype)


@typecheck
def quaternion_normalize(q: Quaternion) -> Quaternion:
    """Project a quaternion on the unit sphere."""
    return q / torch.linalg.norm(q)


@typecheck
def quaternion_multiply(a: Quaternion, b: Quaternion) -> Quaternion:
    """Hamilton product ``a * b``."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return torch.stack(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ]
    )


@typecheck
def quaternion_to_matrix(q: Quaternion) -> RotationMatrix:
    """Rotation matrix of a (not necessarily normalized) quaternion."""
    w, x, y, z = quaternion_normalize(q)
    return torch.stack(
        [
            torch.stack(
                [
                    1 - 2 * (y * y + z * z),
                    2 * (x * y - z * w),
                    2 * (x * z + y * w),
                ]
            ),
            torch.stack(
                [
                    2 * (x * y + z * w),
                    1 - 2 * (x * x + z * z),
                    2 * (y * z - x * w),
                ]
            ),
            torch.stack(
                [
                    2 * (x * z - y * w),
                    2 * (y * z + x * w),
                    1 - 2 * (x * x + y * y),
                ]
            ),
        ]
    )


@typecheck
def quaternion_from_rotation_vector(v: RotationVector) -> Quaternion:
    """Unit quaternion of the rotation of angle ``|v|`` around ``v``.

    The small angle branch only depends on ``|v|^2`` so that automatic
    differentiation stays finite at ``v = 0``.
    """
    theta2 = (v * v).sum()

    if theta2 < 1e-10:
        w = 1 - theta2 / 8
        xyz = (v / 2) * (1 - theta2 / 24)
        return quaternion_normalize(torch.cat([w.view(1), xyz]))

    theta = torch.sqrt(theta2)
    w = torch.cos(theta / 2)
    xyz = torch.sin(theta / 2) * v / theta
    return torch.cat([w.view(1), xyz])


@typecheck
def quaternion_plus(q: Quaternion, delta: RotationVector) -> Quaternion:
    """Move a unit quaternion along the tangent vector ``delta``.

    This is the retraction ``exp(delta) * q`` on the unit sphere: the
    quaternion stays normalized whatever the update.
    """
    return quaternion_normalize(
        quaternion_multiply(quaternion_from_rotation_vector(delta), q)
    )
