"""Evidence lower bound of the probabilistic sparse PCA.

The generative model is
    x[b, v, t] ~ N(a_v.T @ s[b, :, t] + mu[b, v], 1/tau[b, v'])
    a[v, d]    ~ N(0, 1/alpha[v, d])
    s[b, d, t] ~ N(0, 1/gamma[d])
    mu[b, v]   ~ N(0, 1/beta)
    alpha, gamma, tau ~ Gamma(a0, b0)
and the posterior is fully factorized across A, S, mu, alpha, gamma, tau.
"""
import math
from pspca.core import linalg
from pspca.core.constants import log2pi
from pspca.core.math import (gamma_mean, gamma_logmean, gamma_entropy,
                             gamma_logprior, gaussian_entropy)


def _loglikelihood(state):
    nb_subjects, nb_voxels, nb_times = state.X.shape
    nb_obs = nb_times * nb_voxels // state.b_tau.shape[-1]
    Etau = gamma_mean(state.a_tau, state.b_tau)
    Elogtau = gamma_logmean(state.a_tau, state.b_tau)
    ll = 0.5 * nb_obs * Elogtau.sum()
    ll -= 0.5 * nb_subjects * nb_voxels * nb_times * log2pi
    ll -= 0.5 * (Etau * state.sse).sum()
    return ll


def _logprior_mixing(state):
    nb_voxels, D = state.EA.shape
    Ealpha = gamma_mean(state.a_alpha, state.b_alpha)
    Elogalpha = gamma_logmean(state.a_alpha, state.b_alpha)
    EA2 = state.EA.square() + linalg.get_diag(state.Sigma_A)
    lp = 0.5 * Elogalpha.sum() - 0.5 * nb_voxels * D * log2pi
    lp -= 0.5 * (Ealpha * EA2).sum()
    return lp


def _logprior_sources(state):
    nb_subjects, _, nb_times = state.X.shape
    D = state.EA.shape[-1]
    Egamma = gamma_mean(state.a_gamma, state.b_gamma)
    Eloggamma = gamma_logmean(state.a_gamma, state.b_gamma)
    ES2 = linalg.get_diag(state.ESSt).sum(0)                # (D,)
    lp = 0.5 * nb_times * nb_subjects * Eloggamma.sum()
    lp -= 0.5 * D * nb_times * nb_subjects * log2pi
    lp -= 0.5 * (Egamma * ES2).sum()
    return lp


def _logprior_mean(state, beta):
    n = state.Emu.numel()
    lp = 0.5 * n * (math.log(beta) - log2pi)
    lp -= 0.5 * beta * (state.Emu.square() + state.Sigma_mu).sum()
    return lp


def _entropy_mean(state):
    return (0.5 * (1 + log2pi) + 0.5 * state.Sigma_mu.log()).sum()


def elbo(state, opt):
    """Evidence lower bound.

    Parameters
    ----------
    state : PosteriorState
        Current posterior. Its `sse` must be up to date.
    opt : PSPCAOptions
        Resolved options (provides the priors).

    Returns
    -------
    lb : () tensor

    """
    nb_times = state.X.shape[-1]

    lb = _loglikelihood(state)

    # Gaussian factors
    lb += _logprior_mixing(state)
    lb += _logprior_sources(state)
    lb += gaussian_entropy(state.Sigma_A).sum()
    lb += nb_times * gaussian_entropy(state.Sigma_S).sum()
    if opt.mean_process:
        lb += _logprior_mean(state, opt.beta)
        lb += _entropy_mean(state)

    # Gamma factors
    lb += gamma_logprior(state.a_alpha, state.b_alpha, opt.alpha_a, opt.alpha_b)
    lb += gamma_logprior(state.a_gamma, state.b_gamma, opt.gamma_a, opt.gamma_b)
    lb += gamma_logprior(state.a_tau, state.b_tau, opt.tau_a, opt.tau_b)
    lb += gamma_entropy(state.a_alpha, state.b_alpha).sum()
    lb += gamma_entropy(state.a_gamma, state.b_gamma).sum()
    lb += gamma_entropy(state.a_tau, state.b_tau).sum()
    return lb
