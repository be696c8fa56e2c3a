"""
The :mod:`skicp.geometry` module gathers the pose parameterizations.
"""

from .quaternions import (
    quaternion_from_rotation_vector,
    quaternion_identity,
    quaternion_multiply,
    quaternion_normalize,
    quaternion_plus,
    quaternion_to_matrix,
)
from .so3 import (
    compose,
    rotation_angle,
    skew,
    so3_left_jacobian,
    state_to_rotation_translation,
    to_homogeneous,
    transform_points,
)
