"""Types aliases and parameter containers for scikit-icp."""

from typing import Literal

import torch
from beartype import beartype
from beartype.typing import NamedTuple
from jaxtyping import Float32, Float64, Int32, Int64

from .globals import float_dtype, int_dtype

# Type aliases
Number = int | float

correspondence = {
    torch.float32: Float32,
    torch.float64: Float64,
    torch.int64: Int64,
    torch.int32: Int32,
}

JaxFloat = correspondence[float_dtype]
JaxInt = correspondence[int_dtype]

# Numerical types
Float1dTensor = JaxFloat[torch.Tensor, "_"]
Float2dTensor = JaxFloat[torch.Tensor, "_ _"]
Int1dTensor = JaxInt[torch.Tensor, "_"]

# Specific geometric types
Points3d = JaxFloat[torch.Tensor, "_ 3"]
Normals3d = JaxFloat[torch.Tensor, "_ 3"]
Point3d = JaxFloat[torch.Tensor, "3"]
Translation = JaxFloat[torch.Tensor, "3"]
RotationVector = JaxFloat[torch.Tensor, "3"]
RotationMatrix = JaxFloat[torch.Tensor, "3 3"]
HomogeneousMatrix = JaxFloat[torch.Tensor, "4 4"]
Quaternion = JaxFloat[torch.Tensor, "4"]

# Linearization of the point-to-plane error
PoseState = JaxFloat[torch.Tensor, "6"]
Hessian = JaxFloat[torch.Tensor, "6 6"]
Residuals = JaxFloat[torch.Tensor, "_"]
Jacobians = JaxFloat[torch.Tensor, "_ 6"]

OptimizerName = Literal["levenberg_marquardt", "huber_quaternion"]


@beartype
class ICPParameters(NamedTuple):
    """Parameters shared by the point-to-plane ICP optimizers.

    Parameters
    ----------
    grid_size : float or None, default=None
        Leaf size of the voxel grid used to downsample the model and the
        scene. ``None`` or ``0`` disables the downsampling.
    distance_threshold : float, default=1.0
        Correspondences whose squared distance is above this value are not
        used by the ``"huber_quaternion"`` optimizer.
    iterations : int, default=30
        Fixed number of outer iterations (no early exit).
    initial_damping : float, default=1e-2
        Initial Levenberg-Marquardt damping factor.
    damping_factor : float, default=10.0
        The damping is multiplied by this factor when a step is rejected and
        divided by it when a step is accepted.
    huber_scale : float, default=0.3
        Scale of the Huber loss of the ``"huber_quaternion"`` optimizer.
    inner_iterations : int, default=4
        Budget of the nonlinear least-squares solver at each outer iteration.
    k_neighbors : int or None, default=None
        Number of neighbors used to estimate the model normals. ``None``
        selects the optimizer's default (10 or 20).
    leaf_size : int, default=40
        Leaf size of the KD-tree used to find correspondences.
    """

    grid_size: Number | None = None
    distance_threshold: Number = 1.0
    iterations: int = 30
    initial_damping: Number = 1e-2
    damping_factor: Number = 10.0
    huber_scale: Number = 0.3
    inner_iterations: int = 4
    k_neighbors: int | None = None
    leaf_size: int = 40


def validate_parameters(parameters: ICPParameters) -> ICPParameters:
    """Check the values of the ICP parameters.

    Raises
    ------
    ValueError
        If one of the parameters is out of its admissible range.
    """
    if parameters.grid_size is not None and parameters.grid_size < 0:
        msg = f"grid_size must be non-negative, got {parameters.grid_size}"
        raise ValueError(msg)
    if parameters.distance_threshold <= 0:
        msg = (
            "distance_threshold must be positive, got"
            + f" {parameters.distance_threshold}"
        )
        raise ValueError(msg)
    if parameters.iterations < 0:
        msg = f"iterations must be non-negative, got {parameters.iterations}"
        raise ValueError(msg)
    if parameters.initial_damping <= 0:
        msg = (
            "initial_damping must be positive, got"
            + f" {parameters.initial_damping}"
        )
        raise ValueError(msg)
    if parameters.damping_factor <= 1:
        msg = (
            "damping_factor must be greater than 1, got"
            + f" {parameters.damping_factor}"
        )
        raise ValueError(msg)
    if parameters.huber_scale <= 0:
        msg = f"huber_scale must be positive, got {parameters.huber_scale}"
        raise ValueError(msg)
    if parameters.inner_iterations < 1:
        msg = (
            "inner_iterations must be at least 1, got"
            + f" {parameters.inner_iterations}"
        )
        raise ValueError(msg)
    if parameters.k_neighbors is not None and parameters.k_neighbors < 3:
        msg = f"k_neighbors must be at least 3, got {parameters.k_neighbors}"
        raise ValueError(msg)
    if parameters.leaf_size < 1:
        msg = f"leaf_size must be at least 1, got {parameters.leaf_size}"
        raise ValueError(msg)
    return parameters


class IterationRecord(NamedTuple):
    """Diagnostic of one outer iteration.

    ``cost`` is the sum of the absolute point-to-plane residuals before the
    update and ``candidate_cost`` the same sum at the candidate pose (with the
    same correspondences). For the Levenberg-Marquardt optimizer, ``damping``
    is the damping factor after the accept/reject decision.
    """

    iteration: int
    cost: float
    candidate_cost: float
    accepted: bool
    damping: float | None
    n_residuals: int
    n_skipped: int
    elapsed_ms: float
