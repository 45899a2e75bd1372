"""Probabilistic sparse PCA of multi-subject data, in PyTorch."""

__version__ = '0.1.0'

from . import core
from . import vb
from .core.linalg import NumericalDegeneracy
from .vb import infer, PSPCAOptions, InvalidShape, Status
