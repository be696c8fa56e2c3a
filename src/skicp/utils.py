"""Utility functions for the skicp package."""

import torch

from .input_validation import convert_inputs, typecheck
from .types import Float2dTensor, Int1dTensor


@convert_inputs
@typecheck
def scatter_mean(src: Float2dTensor, index: Int1dTensor) -> Float2dTensor:
    """Average the rows of ``src`` that share the same index.

    This function is a wrapper around the pytorch ``scatter_reduce`` function.
    Row ``i`` of ``src`` is averaged into row ``index[i]`` of the output,
    which has ``index.max() + 1`` rows.

    Parameters
    ----------
    src
        The ``(N, D)`` source tensor.
    index
        The ``(N,)`` indices of the output rows.
    """
    if src.shape[0] != index.shape[0]:
        msg = (
            f"src has {src.shape[0]} rows but index has {index.shape[0]}"
            + " elements."
        )
        raise ValueError(msg)

    length = int(index.max()) + 1
    output = torch.zeros((length, src.shape[1]), dtype=src.dtype)
    return output.scatter_reduce(
        index=index.view(-1, 1).expand_as(src),
        src=src,
        dim=0,
        reduce="mean",
        include_self=False,
    )
