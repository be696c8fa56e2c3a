"""Custom errors for the skicp package."""

from beartype.roar import BeartypeCallHintParamViolation
from jaxtyping import TypeCheckError

InputTypeError = (TypeCheckError, BeartypeCallHintParamViolation)


class ShapeError(ValueError):
    """Raised when an input has an invalid shape."""


class NotFittedError(Exception):
    """Raised when the model is not set or the alignment not computed."""


class EmptyPointCloudError(ValueError):
    """Raised when a point cloud (or a search index) has no points."""


class DegenerateHessianError(ArithmeticError):
    """Raised when the normal equations cannot be solved.

    This happens when the correspondences do not constrain the six degrees of
    freedom of the pose, e.g. when all the matched model points lie on a
    single plane with a single normal direction.
    """


class NoCorrespondenceError(ValueError):
    """Raised when every correspondence is beyond the distance threshold."""
