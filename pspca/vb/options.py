"""Options of the probabilistic sparse PCA."""
from pspca.core.struct import Structure, Field


def _positive(x):
    return x is None or x > 0


def _nonnegative_int(x):
    return x is None or (isinstance(x, int) and not isinstance(x, bool)
                         and x >= 0)


class PSPCAOptions(Structure):
    """Structure that holds the options of `pspca.infer`.

    Hyper-parameters left to `None` depend on the data and are resolved
    by `resolve` once the data scale is known.

    Optimization
    ------------
    conv_crit : float, default=1e-9
        The algorithm stops when the relative change in lower bound
        falls below this value.
    maxiter : int, default=200
        Hard limit on the number of iterations.

    Components
    ----------
    noise_process : bool, default=True
        Learn the subject-specific noise precision.
    noise_model : {'homoscedastic', 'heteroscedastic'}, default='homoscedastic'
        One noise precision per subject, or one per voxel and subject.
    sparse_prior : bool, default=True
        Learn an elementwise sparsity pattern on the mixing matrix
        (probabilistic PCA is obtained if False).
    ard_prior : bool, default=True
        Learn a relevance (ARD) precision per component.
    mean_process : bool, default=False
        Learn a subject-specific mean (A @ S + mu = X).

    Staging
    -------
    fixed_sparse : int, default=25
        Number of iterations before the sparsity pattern is learned.
    fixed_ard : int, default=fixed_sparse+5
        Number of iterations before the ARD precisions are learned.
    fixed_noise : int, default=fixed_ard+5
        Number of iterations before the noise precision is learned.

    Hyper-parameters
    ----------------
    beta : float, default=1e-6
        Precision of the prior on the mean.
    alpha_a, alpha_b : float, default=1e-6, alpha_a*scale/V
        Gamma prior on the sparsity precision.
    gamma_a, gamma_b : float, default=1e-6, gamma_a*scale/(B*V)
        Gamma prior on the ARD precision.
    tau_a, tau_b : float, default=1e-6, tau_a*scale/V
        Gamma prior on the noise precision.
        If the noise is heteroscedastic, tau_b defaults to tau_a*scale.

    Backend
    -------
    seed : int, optional
        Seed of the random initialization of the mixing matrix.
    accelerate : bool, default=False
        Run on the CUDA device.
    dtype : torch.dtype or str, optional
        Computation data type (default: input data type).
    verbose : int, default=0
        0: None
        1: Print summary when finished
        2: Print convergence
        3: Print convergence and plot the lower bound
    """
    conv_crit: float = 1e-9
    maxiter: int = Field(200, validator=lambda x: x > 0)
    noise_process: bool = True
    noise_model: str = Field('homoscedastic', validator=lambda x: x in
                             ('homoscedastic', 'heteroscedastic'))
    sparse_prior: bool = True
    ard_prior: bool = True
    mean_process: bool = False
    fixed_sparse: int = Field(25, validator=_nonnegative_int)
    fixed_ard: int = Field(None, validator=_nonnegative_int)
    fixed_noise: int = Field(None, validator=_nonnegative_int)
    beta: float = Field(1e-6, validator=_positive)
    alpha_a: float = Field(1e-6, validator=_positive)
    alpha_b: float = Field(None, validator=_positive)
    gamma_a: float = Field(1e-6, validator=_positive)
    gamma_b: float = Field(None, validator=_positive)
    tau_a: float = Field(1e-6, validator=_positive)
    tau_b: float = Field(None, validator=_positive)
    seed: int = None
    accelerate: bool = False
    dtype: object = None
    verbose: int = 0

    @property
    def heteroscedastic(self):
        return self.noise_model == 'heteroscedastic'

    def resolve(self, scale, nb_voxels, nb_subjects):
        """Return a copy where all data-dependent defaults are set.

        Parameters
        ----------
        scale : float
            Mean squared value of the observations.
        nb_voxels : int
        nb_subjects : int

        Returns
        -------
        PSPCAOptions

        """
        opt = self.copy()
        opt.conv_crit = abs(opt.conv_crit)
        if opt.fixed_ard is None:
            opt.fixed_ard = opt.fixed_sparse + 5
        if opt.fixed_noise is None:
            opt.fixed_noise = opt.fixed_ard + 5
        if opt.alpha_b is None:
            opt.alpha_b = opt.alpha_a * scale / nb_voxels
        if opt.gamma_b is None:
            opt.gamma_b = opt.gamma_a * scale / (nb_subjects * nb_voxels)
        if opt.tau_b is None:
            if opt.heteroscedastic:
                opt.tau_b = opt.tau_a * scale
            else:
                opt.tau_b = opt.tau_a * scale / nb_voxels
        return opt
