"""Execution backend: where tensors live and how they come back.

The inference engine is written once against torch tensors. The only
decision taken here is the device (host or CUDA) and the data type,
made once before the first sweep, and the only transfer back is
`materialize`, called by the finalizer.
"""
import torch
from warnings import warn


def select_backend(x, accelerate=False, dtype=None):
    """Choose the dtype and device used during inference.

    Parameters
    ----------
    x : tensor
        Observed data
    accelerate : bool, default=False
        Run on the (current) CUDA device.
        If no CUDA device is available, a warning is raised and
        computations happen on the host.
    dtype : torch.dtype or str, optional
        Computation data type. By default, the data type of `x`, or
        the default floating point type if `x` is not floating point.

    Returns
    -------
    dict with keys 'dtype' and 'device'

    """
    if isinstance(dtype, str):
        dtype = getattr(torch, dtype)
    if dtype is None:
        dtype = x.dtype
        if not dtype.is_floating_point:
            dtype = torch.get_default_dtype()
    if not dtype.is_floating_point:
        raise TypeError(f'Computation data type must be floating point, '
                        f'got {dtype}.')

    if accelerate:
        if torch.cuda.is_available():
            device = torch.device('cuda', torch.cuda.current_device())
        else:
            warn('Acceleration was requested but no CUDA device is '
                 'available. Running on the CPU instead.', RuntimeWarning)
            device = torch.device('cpu')
    else:
        device = torch.device('cpu')
    return dict(dtype=dtype, device=device)


def materialize(x):
    """Bring a (nested) result back to host memory.

    Parameters
    ----------
    x : tensor or dict or list or tuple or Structure or scalar

    Returns
    -------
    x : same type as input
        Tensors are detached and moved to the CPU (this is a synchronous
        transfer). Containers are processed recursively; other objects
        are returned as is.

    """
    from .struct import Structure
    if torch.is_tensor(x):
        return x.detach().cpu()
    if isinstance(x, Structure):
        for key, value in x.items():
            x[key] = materialize(value)
        return x
    if isinstance(x, dict):
        return {key: materialize(value) for key, value in x.items()}
    if isinstance(x, (list, tuple)):
        return type(x)(materialize(elem) for elem in x)
    return x
