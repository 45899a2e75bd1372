import pytest
import torch
matplotlib = pytest.importorskip('matplotlib')
matplotlib.use('Agg')
from pspca.plot.vb import plot_convergence


def test_plot_convergence():
    vals = torch.linspace(-100, -1, 20)
    fig_ax = plot_convergence(vals)
    fig, ax = fig_ax
    assert len(ax) == 2
    assert len(ax[0].lines[0].get_xdata()) == 20
    assert len(ax[1].lines[0].get_xdata()) == 10
    # live update of the same figure
    assert plot_convergence(vals.tolist() + [0.], fig_ax) is fig_ax
    assert len(ax[0].lines[0].get_xdata()) == 21
