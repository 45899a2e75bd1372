"""Batched linear algebra on stacks of small matrices.

All functions take tensors of shape `(*batch, M, M)` (or `(*batch, M)`
for vectors) and act independently on each element of the batch:
no function ever mixes data across batch entries. Batching is delegated
to torch's vectorized routines rather than python loops.
"""
import torch
from warnings import warn


class NumericalDegeneracy(RuntimeError):
    """A batched factorization failed even after re-conditioning."""
    pass


def t(x):
    """Quick (batched) transpose"""
    return x.transpose(-1, -2)


def get_diag(x):
    """Extract the diagonal of a (batched) matrix as a view"""
    return x.diagonal(0, -1, -2)


def make_sym(x):
    """Make a (batched) matrix symmetric by averaging with its transpose"""
    return (x + t(x)).div_(2.)


def add_diag_(x, s):
    """Add a number or vector to the diagonal (inplace)

    Parameters
    ----------
    x : (*batch, M, M) tensor
    s : float or tensor broadcastable to (*batch, M)
        Use `s[..., None]` to add one value per batch element.

    Returns
    -------
    x : (*batch, M, M) tensor

    """
    get_diag(x).add_(s)
    return x


def _cholesky(a, jitter=1e-10, max_tries=4):
    """Batched Cholesky factor with local re-conditioning.

    Matrices whose factorization fails get a small multiple of their
    largest diagonal element added to their diagonal, with a factor
    that grows until the factorization succeeds. Only failing batch
    entries are modified.
    """
    if a.dim() == 2:
        return _cholesky(a[None], jitter, max_tries)[0]
    if not torch.isfinite(a).all():
        raise NumericalDegeneracy('Cannot factorize matrices with '
                                  'non-finite values.')
    chol, info = torch.linalg.cholesky_ex(a)
    bad = info > 0
    if not bad.any():
        return chol

    warn(f'{int(bad.sum())} matrices are not numerically positive '
         f'definite: re-conditioning them.', RuntimeWarning)
    scale = get_diag(a).abs().max(-1).values
    scale = torch.where(scale > 0, scale, torch.ones_like(scale))
    factor = jitter
    for _ in range(max_tries):
        index = bad.nonzero(as_tuple=True)
        a1 = add_diag_(a[index], scale[index][..., None] * factor)
        chol1, info1 = torch.linalg.cholesky_ex(a1)
        ok = info1 == 0
        index_ok = tuple(i[ok] for i in index)
        chol[index_ok] = chol1[ok]
        bad[index_ok] = False
        if not bad.any():
            return chol
        factor *= 100
    raise NumericalDegeneracy(f'{int(bad.sum())} matrices could not be '
                              f'made positive definite.')


def inv(a, jitter=1e-10, max_tries=4):
    """Robust inverse of (batched) symmetric positive-definite matrices

    The inverse is computed in double precision from a Cholesky factor
    and symmetrized before being returned.

    Parameters
    ----------
    a : (*batch, M, M) tensor
        Symmetric positive-definite matrices
    jitter : float, default=1e-10
        Initial relative regularization used to re-condition matrices
        that are not numerically positive-definite.
    max_tries : int, default=4
        Number of re-conditioning attempts.

    Returns
    -------
    inv_a : (*batch, M, M) tensor

    Raises
    ------
    NumericalDegeneracy
        If some matrices cannot be factorized.

    """
    dtype = a.dtype
    a = make_sym(a.double())
    chol = _cholesky(a, jitter, max_tries)
    return make_sym(torch.cholesky_inverse(chol)).to(dtype)


def logdet(a):
    """Log-determinant of (batched) symmetric positive-definite matrices

    Parameters
    ----------
    a : (*batch, M, M) tensor

    Returns
    -------
    ld : (*batch) tensor

    Raises
    ------
    NumericalDegeneracy
        If some matrices are not positive definite.

    """
    chol, info = torch.linalg.cholesky_ex(make_sym(a.double()))
    if (info > 0).any():
        raise NumericalDegeneracy(f'{int((info > 0).sum())} matrices are '
                                  f'not positive definite.')
    return get_diag(chol).log().sum(-1).mul_(2).to(a.dtype)


def is_posdef(a):
    """Check that all matrices in a batch are symmetric positive-definite

    Parameters
    ----------
    a : (*batch, M, M) tensor

    Returns
    -------
    check : bool

    """
    a = a.double()
    scale = get_diag(a).abs().max()
    if not torch.allclose(a, t(a), atol=1e-10 * float(scale)):
        return False
    _, info = torch.linalg.cholesky_ex(a)
    return bool((info == 0).all())
