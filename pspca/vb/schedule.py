"""Convergence and staged activation of the sparse PCA sub-models.

The sparsity (`'sparse'`), relevance (`'ard'`) and noise (`'noise'`)
posteriors are only learned once the iteration number exceeds their
activation threshold. If the lower bound decreases before a sub-model
has been activated, its threshold is pushed back: the sub-model is
delayed, never disabled.

The controller is independent of the numerical updates. It only sees
iteration numbers and lower bound values.
"""
from enum import Enum


class Status(Enum):
    RUNNING = 'running'
    CONVERGED = 'converged'
    MAX_ITER_REACHED = 'max_iter_reached'


class StagingController:
    """Finite-state controller of the inference loop.

    Iterations are numbered from 1. A sub-model is updated at iteration
    `i` if it is enabled and `i > thresholds[name]`.
    """

    names = ('sparse', 'ard', 'noise')
    increment = 5

    def __init__(self, thresholds, enabled=None, tol=1e-9, maxiter=200):
        """

        Parameters
        ----------
        thresholds : dict[str, int]
            Activation threshold of each sub-model.
        enabled : dict[str, bool], default=all True
            Whether each sub-model is learned at all.
        tol : float, default=1e-9
            Tolerance on the relative change of the lower bound.
        maxiter : int, default=200
            Hard limit on the number of iterations.
        """
        enabled = enabled or {}
        self.configured = {name: int(thresholds[name]) for name in self.names}
        self.thresholds = dict(self.configured)
        self.enabled = {name: bool(enabled.get(name, True))
                        for name in self.names}
        self.tol = abs(tol)
        self.maxiter = maxiter
        self.last_elbo = None
        self.gain = None
        self.status = Status.RUNNING
        self.activated_at = {}
        self.pushbacks = []

    @classmethod
    def from_options(cls, opt):
        """Build a controller from resolved `PSPCAOptions`"""
        thresholds = dict(sparse=opt.fixed_sparse, ard=opt.fixed_ard,
                          noise=opt.fixed_noise)
        enabled = dict(sparse=opt.sparse_prior, ard=opt.ard_prior,
                       noise=opt.noise_process)
        return cls(thresholds, enabled, opt.conv_crit, opt.maxiter)

    def is_active(self, name, iteration):
        """Is a sub-model updated at this iteration?"""
        return self.enabled[name] and iteration > self.thresholds[name]

    @property
    def pending(self):
        """Enabled sub-models that have not been updated yet"""
        return [name for name in self.names
                if self.enabled[name] and name not in self.activated_at]

    def start(self, iteration):
        """Return the sub-models to update at this iteration

        The first activation of each sub-model is recorded in
        `activated_at`.
        """
        active = [name for name in self.names
                  if self.is_active(name, iteration)]
        for name in active:
            self.activated_at.setdefault(name, iteration)
        return active

    def pushback(self, iteration):
        """Delay all enabled sub-models that have not been activated yet.

        Thresholds never go past `maxiter - 1` because of a pushback,
        so that a delayed sub-model is still updated at least once.
        """
        for name in self.pending:
            old = self.thresholds[name]
            new = min(old + self.increment, max(old, self.maxiter - 1))
            if new != old:
                self.thresholds[name] = new
                self.pushbacks.append((iteration, name, old, new))

    def step(self, iteration, elbo):
        """Register the lower bound obtained at the end of an iteration

        Parameters
        ----------
        iteration : int
            Index of the iteration that just finished (starting at 1).
        elbo : float or () tensor
            Lower bound after this iteration.

        Returns
        -------
        status : Status

        """
        elbo = float(elbo)
        if self.last_elbo is None:
            self.gain = None
        else:
            self.gain = (elbo - self.last_elbo) / (abs(elbo) or 1.)
            if self.gain < -self.tol:
                self.pushback(iteration)
        self.last_elbo = elbo

        converged = (self.gain is not None and self.gain <= self.tol
                     and not self.pending)
        if converged:
            self.status = Status.CONVERGED
        elif iteration >= self.maxiter:
            self.status = Status.MAX_ITER_REACHED
        else:
            self.status = Status.RUNNING
        return self.status
