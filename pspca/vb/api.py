"""Probabilistic sparse PCA of multi-subject data."""
from timeit import default_timer as timer
import torch
from .options import PSPCAOptions
from .state import check_shapes, init_state
from .updates import sweep
from .elbo import elbo as lower_bound
from .schedule import StagingController, Status
from .finalize import finalize


_header = f'{"Iteration":>16s} | {"Lowerbound":>12s} | ' \
          f'{"Delta LB":>12s} | {"Time(s)":>12s} |'
_line = '-' * 17 + ('+' + '-' * 14) * 3 + '+'


def infer(x, nb_components=None, opt=None, **kwargs):
    """Variational Bayesian sparse PCA of multiple subjects.

    The data of each subject `b` is modelled as
        X[:, :, b] = A @ S[:, :, b] + mu[:, b] + noise
    where the mixing matrix `A` is shared across subjects and has a
    sparsity-inducing prior, the sources `S` have a relevance (ARD)
    prior that prunes unnecessary components, and the noise is
    Gaussian with a subject-specific (or voxel and subject-specific)
    precision.

    Parameters
    ----------
    x : (V, T, B) tensor_like
        Observed data (voxels x time x subjects).
    nb_components : int, default=T-1
        Number of components (D), at most T.
    opt : PSPCAOptions or dict, optional
        Options. See `PSPCAOptions`.
    **kwargs
        Options, passed as keywords (they take precedence over `opt`).
        `rngSEED` is accepted as an alias of `seed`.

    Returns
    -------
    first_moments : FirstMoments
        Point estimates `A` (V, D), `S` (D, T, B), `mu` (V, 1, B),
        `alpha` (V, D), `gamma` (D,), `tau` (V', 1, B).
    other_moments : OtherMoments
        Covariances `Sigma_A` (D, D, V), `Sigma_S` (D, D, B), `Sigma_mu`,
        Gamma parameters, and the run `status`, `nb_iter` and
        `activated_at`.
    priors : Priors
        Hyper-parameters actually used.
    elbo : (nb_iter,) tensor
        Lower bound after each iteration.

    Raises
    ------
    InvalidShape
        If `x` is not 3D or `nb_components` is not in [1, T].
    NumericalDegeneracy
        If a posterior covariance cannot be computed.

    """
    opt = dict((opt or {}).items())
    opt.update(kwargs)
    if 'rngSEED' in opt:
        opt['seed'] = opt.pop('rngSEED')
    opt = PSPCAOptions(opt)

    x = torch.as_tensor(x)
    nb_components = check_shapes(x, nb_components)

    with torch.random.fork_rng(enabled=opt.seed is not None):
        if opt.seed is not None:
            torch.random.manual_seed(opt.seed)
        state, opt = init_state(x, nb_components, opt)
    return _infer(state, opt)


def _infer(state, opt):
    """Inference loop on an initialized state"""
    controller = StagingController.from_options(opt)
    verbose = opt.verbose
    nb_voxels, nb_times, nb_components, nb_subjects = state.shape

    if verbose > 0:
        print('--- Running Probabilistic Sparse Principal Component Analysis ---')
        print(f'{nb_voxels} voxels, {nb_times} time points, '
              f'{nb_subjects} subjects, {nb_components} components')
    if verbose > 1:
        print(_header)
        print(_line)

    all_lb = []
    fig_ax = None
    t0 = t1 = timer()
    for n_iter in range(1, opt.maxiter + 1):
        active = controller.start(n_iter)
        sweep(state, opt, active)
        lb = lower_bound(state, opt).item()
        all_lb.append(lb)
        nb_pushbacks = len(controller.pushbacks)
        status = controller.step(n_iter, lb)

        if verbose > 1:
            gain = controller.gain
            gain = float('nan') if gain is None else gain
            if n_iter % 20 == 0:
                print(_line)
                print(_header)
                print(_line)
            print(f'{n_iter:6d} of {opt.maxiter:6d} | {lb:12.4e} | '
                  f'{gain:12.4e} | {timer() - t1:12.4f} |')
            for _, name, old, new in controller.pushbacks[nb_pushbacks:]:
                print(f'lower bound decreased: delaying {name} '
                      f'(iteration {old} -> {new})')
            t1 = timer()
        if verbose > 2:
            from pspca.plot.vb import plot_convergence
            fig_ax = plot_convergence(all_lb, fig_ax)

        if status != Status.RUNNING:
            break

    if verbose > 0:
        device = state.X.device
        v = (f'Algorithm finished in {len(all_lb)} iterations '
             f'({controller.status.value}), '
             f'lower bound = {all_lb[-1]:.6g}, '
             f'runtime: {timer() - t0:0.1f} s, '
             f'device: {device}')
        if device.type == 'cuda':
            vram_peak = torch.cuda.max_memory_allocated(device)
            vram_peak = int(vram_peak / 2 ** 20)
            v += f', peak VRAM: {vram_peak} MB'
        print(v)

    return finalize(state, opt, all_lb, controller)
