"""Coordinate-ascent updates of the probabilistic sparse PCA.

Each update is the closed-form conjugate posterior of one factor given
the current expectations of all other factors. They modify the
`PosteriorState` in place and must be applied in the order of `sweep`.

The noise precision `tau` has shape (B, V'), with V' = 1 (one
precision per subject) or V' = V (one precision per voxel and subject).
All updates are written for the general case and broadcast when V' = 1.
"""
from pspca.core import linalg


def update_sources(state):
    """Update q(S) = prod_b N(S[b] | ES[b], Sigma_S[b])

    Sigma_S[b] = inv(sum_v tau[b, v] E[a_v @ a_v.T] + diag(E[gamma]))
    ES[b]      = Sigma_S[b] @ EA.T @ diag(tau[b]) @ (X[b] - Emu[b])
    """
    X, EA, Sigma_A = state.X, state.EA, state.Sigma_A
    nb_subjects, nb_voxels, nb_times = X.shape
    D = EA.shape[-1]
    tau = state.Etau                                        # (B, V')

    if tau.shape[-1] == 1:
        prec = state.EAtA() * tau[..., None]                # (B, D, D)
    else:
        EAw = EA * tau[..., None]                           # (B, V, D)
        prec = linalg.t(EAw).matmul(EA)
        prec += tau.matmul(Sigma_A.reshape([nb_voxels, -1])) \
                   .reshape([nb_subjects, D, D])
    linalg.add_diag_(prec, state.Egamma)
    Sigma_S = linalg.inv(prec)

    resid = X - state.Emu[..., None]                        # (B, V, T)
    EAw = EA * tau[..., None]                               # (B, V, D)
    ES = Sigma_S.matmul(linalg.t(EAw).matmul(resid))        # (B, D, T)

    state.Sigma_S = Sigma_S
    state.ES = ES
    state.ESSt = linalg.make_sym(ES.matmul(linalg.t(ES))) + nb_times * Sigma_S
    return state


def update_mean(state, beta):
    """Update q(mu) = prod_{b,v} N(mu[b, v] | Emu[b, v], Sigma_mu[b, v])

    Sigma_mu = 1 / (beta + T * tau)
    Emu      = Sigma_mu * tau * sum_t (X - A @ S)
    """
    X, EA, ES = state.X, state.EA, state.ES
    nb_subjects, nb_voxels, nb_times = X.shape
    tau = state.Etau                                        # (B, V')

    Sigma_mu = (beta + nb_times * tau).reciprocal()
    Sigma_mu = Sigma_mu.expand([nb_subjects, nb_voxels]).clone()
    resid = X.sum(-1) - EA.matmul(ES.sum(-1, keepdim=True))[..., 0]
    state.Sigma_mu = Sigma_mu
    state.Emu = Sigma_mu * tau * resid
    return state


def update_mixing(state):
    """Update q(A) = prod_v N(a_v | EA[v], Sigma_A[v])

    Sigma_A[v] = inv(sum_b tau[b, v] E[S[b] @ S[b].T] + diag(E[alpha[v]]))
    EA[v]      = Sigma_A[v] @ sum_b tau[b, v] S[b] @ (X[b, v] - Emu[b, v])

    The inverse is computed in its symmetrically preconditioned form:
        P = diag(alpha)^(-1/2)
        Sigma_A = P @ inv(I + P @ M @ P) @ P
    which stays well conditioned when some elements of alpha are large.
    """
    X, ES, ESSt = state.X, state.ES, state.ESSt
    nb_subjects, nb_voxels, nb_times = X.shape
    D = ES.shape[-2]
    tau = state.Etau                                        # (B, V')

    if tau.shape[-1] == 1:
        prec = (ESSt * tau[..., None]).sum(0)               # (D, D)
        prec = prec.expand([nb_voxels, D, D])
    else:
        prec = tau.T.matmul(ESSt.reshape([nb_subjects, -1]))
        prec = prec.reshape([nb_voxels, D, D])

    isqrt_alpha = state.Ealpha.rsqrt()                      # (V, D)
    outer_alpha = isqrt_alpha[..., :, None] * isqrt_alpha[..., None, :]
    prec = prec * outer_alpha
    linalg.add_diag_(prec, 1)
    Sigma_A = linalg.inv(prec).mul_(outer_alpha)            # (V, D, D)

    resid = (X - state.Emu[..., None]) * tau[..., None]     # (B, V, T)
    rhs = ES.matmul(linalg.t(resid)).sum(0)                 # (D, V)
    EA = Sigma_A.matmul(rhs.T[..., None])[..., 0]           # (V, D)

    state.Sigma_A = Sigma_A
    state.EA = EA
    return state


def update_sparsity(state, alpha_a, alpha_b):
    """Update q(alpha) = prod_{v,d} Gamma(alpha[v, d] | a_alpha, b_alpha[v, d])"""
    state.a_alpha = alpha_a + 0.5
    state.b_alpha = alpha_b + 0.5 * (state.EA.square()
                                     + linalg.get_diag(state.Sigma_A))
    return state


def update_relevance(state, gamma_a, gamma_b):
    """Update q(gamma) = prod_d Gamma(gamma[d] | a_gamma, b_gamma[d])"""
    nb_subjects, _, nb_times = state.X.shape
    state.a_gamma = gamma_a + nb_times * nb_subjects / 2
    state.b_gamma = gamma_b + 0.5 * linalg.get_diag(state.ESSt).sum(0)
    return state


def reconstruction_error(state):
    """Expected sum of squared residuals E[||X - A @ S - mu||^2]

    Returns
    -------
    sse : (B, V') tensor
        Summed over time, and over voxels when the noise precision is
        shared across voxels.

    """
    X, EA, Sigma_A = state.X, state.EA, state.Sigma_A
    ES, ESSt, Emu = state.ES, state.ESSt, state.Emu
    nb_subjects, nb_voxels, nb_times = X.shape

    sse = X.square().sum(-1)                                # (B, V)
    sse += nb_times * (state.Sigma_mu + Emu.square())
    # E[a_v.T @ S @ S.T @ a_v]
    sse += (EA.matmul(ESSt) * EA).sum(-1)
    sse += ESSt.reshape([nb_subjects, -1]).matmul(
        Sigma_A.reshape([nb_voxels, -1]).T)
    # cross terms with the mean
    sse += 2 * Emu * (EA.matmul(ES.sum(-1, keepdim=True))[..., 0]
                      - X.sum(-1))
    # cross term with the data
    sse -= 2 * (linalg.t(ES.matmul(linalg.t(X))) * EA).sum(-1)

    if state.b_tau.shape[-1] == 1:
        sse = sse.sum(-1, keepdim=True)
    return sse.clamp_min_(0)


def update_noise(state, tau_a, tau_b):
    """Update q(tau) = prod_{b,v'} Gamma(tau[b, v'] | a_tau, b_tau[b, v'])

    Uses the reconstruction error stored in the state.
    """
    nb_subjects, nb_voxels, nb_times = state.X.shape
    nb_obs = nb_times * nb_voxels // state.b_tau.shape[-1]
    state.a_tau = tau_a + nb_obs / 2
    state.b_tau = tau_b + 0.5 * state.sse
    return state


def sweep(state, opt, active=()):
    """One coordinate-ascent sweep over all factors.

    Parameters
    ----------
    state : PosteriorState
        Modified in place.
    opt : PSPCAOptions
        Resolved options.
    active : sequence of {'sparse', 'ard', 'noise'}
        Staged sub-models that are updated during this sweep.

    Returns
    -------
    state : PosteriorState

    """
    update_sources(state)
    if opt.mean_process:
        update_mean(state, opt.beta)
    update_mixing(state)
    if 'sparse' in active:
        update_sparsity(state, opt.alpha_a, opt.alpha_b)
    if 'ard' in active:
        update_relevance(state, opt.gamma_a, opt.gamma_b)
    state.sse = reconstruction_error(state)
    if 'noise' in active:
        update_noise(state, opt.tau_a, opt.tau_b)
    return state
