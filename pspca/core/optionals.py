"""Check which optional modules are available."""
import importlib


def try_import(path, keys=None):
    """Try to import a module (or objects from a module).

    Parameters
    ----------
    path : str
        Dotted path to a module, e.g. `'matplotlib.pyplot'`
    keys : str or list[str], optional
        Attributes to fetch from the module

    Returns
    -------
    loaded_stuff : module or object or tuple
        A tuple is returned if `keys` is a list.
        None (or a list of None) is returned if the import fails.

    Example
    -------
    >> plt = try_import('matplotlib.pyplot')
    >> MaxNLocator = try_import('matplotlib.ticker', 'MaxNLocator')

    """
    try:
        module = importlib.import_module(path)
    except ImportError:
        if keys is None or isinstance(keys, str):
            return None
        return [None] * len(keys)

    if keys is None:
        return module
    if isinstance(keys, str):
        return getattr(module, keys)
    return tuple(getattr(module, key) for key in keys)
