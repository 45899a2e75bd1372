"""Variational Bayes inference of the probabilistic sparse PCA."""

from . import elbo
from . import finalize
from . import schedule
from . import state
from . import updates
from .api import infer
from .options import PSPCAOptions
from .schedule import Status, StagingController
from .state import InvalidShape
