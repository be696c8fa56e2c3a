"""Input validation decorators.

Public functions of skicp are decorated with ``@convert_inputs`` then
``@typecheck``: array-like arguments are first turned into tensors of the
global dtype, then shapes and types are checked at call time.

Notes
-----
A new decorator must wrap its function with `functools.wraps`: beartype and
jaxtyping read the annotations of the wrapped function.
"""

from .converters import convert_inputs
from .typechecking import typecheck
