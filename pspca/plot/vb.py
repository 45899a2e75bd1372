"""Plotting utilities for Variational Bayes (VB) stuff.

"""
import torch
from ..core.optionals import try_import
# Try import matplotlib
plt = try_import('matplotlib.pyplot')
MaxNLocator = try_import('matplotlib.ticker', 'MaxNLocator')


def plot_convergence(vals, fig_ax=None, fig_num=1, fig_title='Lower bound',
                     xlab='Iteration', ylab='ELBO'):
    """ Plots the lower bound of an inference loop.

    Allows for real-time plotting if giving returned fig_ax objects as input.
    The left panel shows the whole trace, the right panel the last
    few iterations.

    Args:
        vals (torch.tensor or list): Values to be plotted (N,).
        fig_ax ([matplotlib.figure, matplotlib.axes], optional)
        fig_num (int, optional): Figure number to plot to, defaults to 1.
        fig_title (str, optional): Figure title.
        xlab (str, optional): x-label, defaults to 'Iteration'.
        ylab (str, optional): y-label, defaults to 'ELBO'.

    Returns:
        fig_ax ([matplotlib.figure, matplotlib.axes]) or None if
        matplotlib is not available.

    """
    if plt is None:
        return None

    if fig_ax is None:
        fig, ax = plt.subplots(1, 2, num=fig_num)
        fig_ax = [fig, ax]
        plt.ion()
        fig.show()
    fig, ax = fig_ax

    vals = torch.as_tensor(vals).detach().cpu()
    x = torch.arange(0, len(vals)) + 1
    for axis, slicer in zip(ax, (slice(None), slice(-10, None))):
        axis.clear()
        axis.plot(x[slicer], vals[slicer])
        axis.set_xlabel(xlab)
        axis.set_ylabel(ylab)
        axis.xaxis.set_major_locator(MaxNLocator(integer=True))
        axis.grid()

    fig.suptitle(fig_title)
    fig.canvas.draw()
    fig.canvas.flush_events()

    return fig_ax
