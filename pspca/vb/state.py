"""Posterior state of the probabilistic sparse PCA and its initialization.

Internally, batch dimensions come first:
    X        : (B, V, T)  observed data
    EA       : (V, D)     mixing matrix (posterior mean)
    Sigma_A  : (V, D, D)  mixing matrix (posterior covariance, per voxel)
    ES       : (B, D, T)  sources (posterior mean)
    Sigma_S  : (B, D, D)  sources (posterior covariance, per subject)
    ESSt     : (B, D, D)  E[S @ S.T] (per subject)
    Emu      : (B, V)     mean (posterior mean)
    Sigma_mu : (B, V)     mean (posterior variance)
    b_alpha  : (V, D)     sparsity precision (rate)
    b_gamma  : (D,)       ARD precision (rate)
    b_tau    : (B, V')    noise precision (rate), V' = 1 or V
    sse      : (B, V')    expected squared reconstruction error
Shapes `a_*` are python scalars shared by all elements.
"""
import operator
import torch
from pspca.core import linalg
from pspca.core.backend import select_backend
from pspca.core.constants import eps
from pspca.core.struct import Structure


class InvalidShape(ValueError):
    """The data or the number of components have incompatible shapes."""
    pass


class PosteriorState(Structure):
    """Variational parameters of all posterior factors."""
    X: torch.Tensor
    EA: torch.Tensor
    Sigma_A: torch.Tensor
    ES: torch.Tensor
    Sigma_S: torch.Tensor
    ESSt: torch.Tensor
    Emu: torch.Tensor
    Sigma_mu: torch.Tensor
    a_alpha: float
    b_alpha: torch.Tensor
    a_gamma: float
    b_gamma: torch.Tensor
    a_tau: float
    b_tau: torch.Tensor
    sse: torch.Tensor
    scale: float

    @property
    def shape(self):
        """(V, T, D, B)"""
        nb_subjects, nb_voxels, nb_times = self.X.shape
        return nb_voxels, nb_times, self.EA.shape[-1], nb_subjects

    @property
    def Ealpha(self):
        return self.a_alpha / self.b_alpha

    @property
    def Egamma(self):
        return self.a_gamma / self.b_gamma

    @property
    def Etau(self):
        return self.a_tau / self.b_tau

    def EAtA(self):
        """E[A.T @ A] : (D, D) tensor"""
        return linalg.make_sym(self.EA.T.matmul(self.EA)) + self.Sigma_A.sum(0)


def check_shapes(x, nb_components=None):
    """Check the input data and number of components.

    Parameters
    ----------
    x : (V, T, B) tensor_like
    nb_components : int, default=T-1

    Returns
    -------
    nb_components : int

    Raises
    ------
    InvalidShape

    """
    if x.dim() != 3:
        raise InvalidShape(f'Expected a (voxels x time x subjects) tensor '
                           f'but got a tensor with {x.dim()} dimensions.')
    nb_voxels, nb_times, nb_subjects = x.shape
    if 0 in x.shape:
        raise InvalidShape(f'Cannot fit empty data of shape {tuple(x.shape)}.')
    if nb_components is None:
        nb_components = nb_times - 1
    try:
        if isinstance(nb_components, bool):
            raise TypeError
        nb_components = operator.index(nb_components)
    except TypeError:
        raise InvalidShape(f'Number of components must be an integer, '
                           f'got {nb_components!r}.')
    if not (1 <= nb_components <= nb_times):
        raise InvalidShape(f'Number of components must be in [1, {nb_times}] '
                           f'(the number of time points), got {nb_components}.')
    return nb_components


def init_state(x, nb_components, opt):
    """Initialize the posterior state.

    Parameters
    ----------
    x : (V, T, B) tensor
        Observed data (already validated with `check_shapes`)
    nb_components : int
        Number of components (D)
    opt : PSPCAOptions
        User options. Data-dependent defaults are resolved here.

    Returns
    -------
    state : PosteriorState
    opt : PSPCAOptions
        Resolved options

    """
    backend = select_backend(x, opt.accelerate, opt.dtype)
    X = x.to(**backend).permute(2, 0, 1).contiguous()   # (B, V, T)
    nb_subjects, nb_voxels, nb_times = X.shape
    nb_noise = nb_voxels if opt.heteroscedastic else 1
    D = nb_components

    scale = X.square().mean().item()
    scale = max(scale, eps(backend['dtype']))
    opt = opt.resolve(scale, nb_voxels, nb_subjects)

    # sources and mixing matrix
    EA = torch.randn([nb_voxels, D], **backend)
    ES = torch.linalg.pinv(EA).matmul(X)
    eye = torch.eye(D, **backend)
    Sigma_S = eye.mul(nb_times).expand([nb_subjects, D, D]).clone()
    Sigma_A = eye.expand([nb_voxels, D, D]).clone()
    ESSt = linalg.make_sym(ES.matmul(linalg.t(ES))) + nb_times * Sigma_S

    # mean
    if opt.mean_process:
        Emu = X.mean(-1)
        Sigma_mu = torch.ones([nb_subjects, nb_voxels], **backend)
    else:
        Emu = torch.zeros([nb_subjects, nb_voxels], **backend)
        Sigma_mu = torch.zeros([nb_subjects, nb_voxels], **backend)

    state = PosteriorState(
        X=X, EA=EA, Sigma_A=Sigma_A, ES=ES, Sigma_S=Sigma_S, ESSt=ESSt,
        Emu=Emu, Sigma_mu=Sigma_mu,
        a_alpha=opt.alpha_a,
        b_alpha=torch.full([nb_voxels, D], opt.alpha_b, **backend),
        a_gamma=opt.gamma_a,
        b_gamma=torch.full([D], opt.gamma_b, **backend),
        a_tau=opt.tau_a,
        b_tau=torch.full([nb_subjects, nb_noise], opt.tau_b * scale, **backend),
        sse=torch.zeros([nb_subjects, nb_noise], **backend),
        scale=scale,
    )
    return state, opt
