"""
The :mod:`skicp.optimization` module gathers the pose optimizers.
"""

from .baseoptimizer import PoseOptimizer
from .context import AlignmentContext
from .huber_quaternion import HuberQuaternion, PointToPlaneFactor
from .levenberg_marquardt import (
    LevenbergMarquardt,
    LevenbergMarquardtStep,
    check_conditioning,
    levenberg_marquardt_step,
)
