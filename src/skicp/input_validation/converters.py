"""Converters for arguments."""

import itertools
from functools import wraps
from inspect import isclass, signature
from types import UnionType
from typing import Union, get_args, get_origin, get_type_hints

import jaxtyping
import numpy as np
import torch

from ..globals import float_dtype, int_dtype


def detect_array_dtypes(t):
    if get_origin(t) in [Union, UnionType]:
        # If type is a Union, we iterate through the types
        # and return a list of acceptable dtypes, without duplicates
        return list(
            set(
                itertools.chain(*[detect_array_dtypes(a) for a in get_args(t)])
            )
        )

    # We only bother converting to specific dtypes.
    # Vague annotations (e.g. "Float") are not affected.
    elif isclass(t) and issubclass(t, jaxtyping.AbstractArray):
        if len(t.dtypes) == 1 and t.dtypes[0] in [
            "float32",
            "float64",
            "int64",
        ]:
            return list(t.dtypes)
        else:
            return []

    else:
        return []


def closest_dtype(dtype, target_dtypes):
    floats = [d for d in target_dtypes if d in ("float32", "float64")]
    ints = [d for d in target_dtypes if d == "int64"]

    if floats and not ints:
        return float_dtype
    elif ints and not floats:
        return int_dtype
    elif floats and ints:
        if dtype.is_floating_point:
            return float_dtype
        elif dtype in [torch.int32, torch.int64]:
            return int_dtype
        else:
            return dtype
    else:
        msg = f"Unsupported target dtype: {target_dtypes}"
        raise NotImplementedError(msg)


def convert_inputs(func):
    """Convert array-like arguments to torch tensors of the expected dtype.

    Parameters annotated with a jaxtyping type that requires a single float or
    int dtype are converted: lists, tuples and NumPy arrays become tensors and
    tensors with another precision are cast to the global ``float_dtype`` (or
    ``int_dtype``). Other arguments are left untouched, beartype takes care of
    them.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        sig = signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()

        # Iterate through the function's parameters and type hints
        for param_name, param_type in get_type_hints(func).items():

            # Do not waste time on default arguments
            if param_name in bound_args.arguments:

                target_dtypes = detect_array_dtypes(param_type)
                if target_dtypes:  # is not []
                    value = bound_args.arguments[param_name]

                    # We attempt to convert lists, tuples, numpy arrays and
                    # torch tensors that do not have the correct dtype.
                    # Python floats stay float64 until the cast below
                    if isinstance(value, list | tuple):
                        value = np.asarray(value)

                    if isinstance(value, np.ndarray):
                        value = torch.from_numpy(value)

                    if isinstance(value, torch.Tensor):
                        if torch.is_complex(value):
                            msg = "Complex tensors are not supported"
                            raise ValueError(msg)

                        dtype = closest_dtype(value.dtype, target_dtypes)
                        bound_args.arguments[param_name] = value.to(
                            dtype=dtype
                        )
                    # Note that other types of "value" (e.g. a string) are
                    # not converted

        return func(*bound_args.args, **bound_args.kwargs)

    return wrapper
