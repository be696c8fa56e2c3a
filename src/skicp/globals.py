"""Global dtypes of the skicp package.

The registration runs in double precision by default. Set the
``SKICP_FLOAT_DTYPE`` environment variable to ``"float32"`` before importing
skicp to trade accuracy for speed.
"""

import os
from warnings import warn

import torch

admissible_float_dtypes = ["float32", "float64"]
float_dtype = os.environ.get("SKICP_FLOAT_DTYPE", "float64")

if float_dtype in admissible_float_dtypes:
    float_dtype = getattr(torch, float_dtype)

else:
    warn(
        f"Unknown float dtype {float_dtype} in SKICP_FLOAT_DTYPE. Possible"
        + f" values are {admissible_float_dtypes}. Using float64.",
        stacklevel=1,
    )
    float_dtype = torch.float64

# Indices (correspondences, voxels) are always int64
int_dtype = torch.int64
