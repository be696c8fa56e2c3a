"""Scikit-ICP: point-to-plane rigid registration in python."""

from .correspondences import ClosestPointFinder, Correspondences
from .geometry import *
from .globals import float_dtype, int_dtype
from .input_validation import *
from .optimization import *
from .preprocessing import *
from .residuals import (
    point_to_plane_cost,
    point_to_plane_jacobians,
    point_to_plane_residuals,
)
from .tasks import *
from .types import ICPParameters, IterationRecord

__version__ = "0.1.0"

__all__ = [
    "ClosestPointFinder",
    "Correspondences",
    "ICPParameters",
    "IterationRecord",
    "geometry",
    "input_validation",
    "optimization",
    "preprocessing",
    "residuals",
    "tasks",
    "types",
]
