"""Runtime type checking of the public functions."""

from beartype import beartype
from jaxtyping import jaxtyped


def typecheck(func):
    """Check the arguments and the return value of ``func`` at call time.

    Shapes and dtypes of tensors are checked by jaxtyping (e.g. a
    ``Points3d`` argument must be a ``(N, 3)`` tensor of the global float
    dtype, with ``N`` consistent across the arguments that share a
    dimension name), the other annotations by beartype. A violation raises
    one of the exceptions of :data:`skicp.errors.InputTypeError`.

    Combine with :func:`~skicp.input_validation.convert_inputs` (placed
    above it) to accept lists and NumPy arrays.
    """
    return jaxtyped(typechecker=beartype)(func)
