"""Expectations and entropies of the distributions used in VB models.

Gamma distributions are parameterized by their shape `a` and rate `b`
(mean = a/b). Parameters can be python scalars or tensors; they are
broadcast against each other.
"""
import torch
import math as pymath
from .constants import log2pi
from . import linalg


def _as_tensor(a, b):
    if torch.is_tensor(b):
        a = torch.as_tensor(a, dtype=b.dtype, device=b.device)
    elif torch.is_tensor(a):
        b = torch.as_tensor(b, dtype=a.dtype, device=a.device)
    else:
        a = torch.as_tensor(a, dtype=torch.get_default_dtype())
        b = torch.as_tensor(b, dtype=torch.get_default_dtype())
    return a, b


def gamma_mean(a, b):
    """E[x] under Gamma(a, b)"""
    a, b = _as_tensor(a, b)
    return a / b


def gamma_logmean(a, b):
    """E[log x] under Gamma(a, b)"""
    a, b = _as_tensor(a, b)
    return torch.digamma(a) - b.log()


def gamma_entropy(a, b):
    """Entropy of Gamma(a, b) (broadcasted)

    H = a - log(b) + log(Gamma(a)) + (1 - a) * digamma(a)
    """
    a, b = _as_tensor(a, b)
    return a - b.log() + torch.lgamma(a) + (1 - a) * torch.digamma(a)


def gamma_logprior(a, b, a0, b0):
    """E[log Gamma(x; a0, b0)] under x ~ Gamma(a, b), summed over elements

    Parameters
    ----------
    a, b : tensor_like
        Posterior shape and rate.
    a0, b0 : float
        Prior shape and rate.

    Returns
    -------
    lp : () tensor

    """
    a, b = _as_tensor(a, b)
    shape = torch.broadcast_shapes(a.shape, b.shape)
    n = pymath.prod(shape)
    lp = n * (a0 * pymath.log(b0) - pymath.lgamma(a0))
    lp = lp + (a0 - 1) * gamma_logmean(a, b).expand(shape).sum()
    lp = lp - b0 * gamma_mean(a, b).expand(shape).sum()
    return lp


def gaussian_entropy(cov):
    """Entropy of (batched) multivariate Gaussians

    Parameters
    ----------
    cov : (*batch, M, M) tensor
        Covariance matrices

    Returns
    -------
    h : (*batch) tensor

    """
    m = cov.shape[-1]
    return 0.5 * m * (1 + log2pi) + 0.5 * linalg.logdet(cov)
