"""Packaging of the posterior into result bundles.

Components are sorted by relevance and all arrays are converted back to
the caller's layout (voxels x time x subjects), with component axes
first for covariances.
"""
import torch
from pspca.core.backend import materialize
from pspca.core.struct import Structure, Field


class FirstMoments(Structure):
    """Point estimates

    A : (V, D) tensor
        Mixing matrix
    S : (D, T, B) tensor
        Sources
    mu : (V, 1, B) tensor or 0
        Subject means (0 if not modelled)
    alpha : (V, D) tensor
        Expected sparsity precision
    gamma : (D,) tensor
        Expected relevance precision
    tau : (V', 1, B) tensor
        Expected noise precision (V' = 1 or V)
    """
    A: torch.Tensor
    S: torch.Tensor
    mu: object = 0
    alpha: torch.Tensor = None
    gamma: torch.Tensor = None
    tau: torch.Tensor = None


class OtherMoments(Structure):
    """Covariances, Gamma parameters and run information

    Gamma parameters of the sparsity and relevance precisions are only
    set if the corresponding sub-model is enabled.
    """
    Sigma_A: torch.Tensor
    Sigma_S: torch.Tensor
    Sigma_mu: object = 0
    a_tau: float = None
    b_tau: torch.Tensor = None
    a_alpha: float = None
    b_alpha: torch.Tensor = None
    a_gamma: float = None
    b_gamma: torch.Tensor = None
    status: object = None
    nb_iter: int = 0
    activated_at: dict = Field(default_factory=dict)


class Priors(Structure):
    """Hyper-parameters used during inference"""
    alpha_a0: float
    alpha_b0: float
    gamma_a0: float
    gamma_b0: float
    tau_a0: float
    tau_b0: float
    beta0: float


def component_order(state, opt):
    """Permutation that sorts components by decreasing relevance

    If the relevance prior is learned, components are sorted by
    increasing expected ARD precision. Otherwise, by increasing
    expected sparsity precision (averaged across voxels).

    Returns
    -------
    perm : (D,) long tensor

    """
    if opt.ard_prior:
        key = state.Egamma
    else:
        key = state.Ealpha.mean(0)
    return torch.sort(key, stable=True).indices


def _permute_cov(cov, perm):
    """(N, D, D) -> (D, D, N), with permuted components"""
    return cov[:, perm][:, :, perm].permute(1, 2, 0)


def _to_caller(x):
    """(B, V') -> (V', 1, B)"""
    return x.T[:, None, :]


def finalize(state, opt, elbo, controller):
    """Build the result bundles

    Parameters
    ----------
    state : PosteriorState
    opt : PSPCAOptions
        Resolved options
    elbo : list[float]
        Lower bound after each iteration
    controller : StagingController

    Returns
    -------
    first_moments : FirstMoments
    other_moments : OtherMoments
    priors : Priors
    elbo : (nb_iter,) tensor

    """
    perm = component_order(state, opt)

    first = FirstMoments(
        A=state.EA[:, perm],
        S=state.ES[:, perm].permute(1, 2, 0),
        alpha=state.Ealpha[:, perm],
        gamma=state.Egamma[perm],
        tau=_to_caller(state.Etau),
    )
    other = OtherMoments(
        Sigma_A=_permute_cov(state.Sigma_A, perm),
        Sigma_S=_permute_cov(state.Sigma_S, perm),
        a_tau=state.a_tau,
        b_tau=_to_caller(state.b_tau),
        status=controller.status,
        nb_iter=len(elbo),
        activated_at=dict(controller.activated_at),
    )
    if opt.mean_process:
        first.mu = _to_caller(state.Emu)
        other.Sigma_mu = _to_caller(state.Sigma_mu)
    if opt.sparse_prior:
        other.a_alpha = state.a_alpha
        other.b_alpha = state.b_alpha[:, perm]
    if opt.ard_prior:
        other.a_gamma = state.a_gamma
        other.b_gamma = state.b_gamma[perm]

    priors = Priors(
        alpha_a0=opt.alpha_a, alpha_b0=opt.alpha_b,
        gamma_a0=opt.gamma_a, gamma_b0=opt.gamma_b,
        tau_a0=opt.tau_a, tau_b0=opt.tau_b,
        beta0=opt.beta,
    )
    elbo = torch.as_tensor(elbo, dtype=state.X.dtype)
    return materialize((first, other, priors, elbo))
