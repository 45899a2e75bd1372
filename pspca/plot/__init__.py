"""Plotting utilities (require matplotlib)."""

from . import vb
