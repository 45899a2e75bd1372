"""Useful constants."""

import math
import torch

log2pi = math.log(2 * math.pi)


def eps(dtype=torch.float32):
    """Machine epsilon of a floating point data type."""
    if isinstance(dtype, str):
        dtype = getattr(torch, dtype)
    if not dtype.is_floating_point:
        raise NotImplementedError(f'No epsilon for data type {dtype}')
    return torch.finfo(dtype).eps
