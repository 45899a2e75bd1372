"""Low-level utilities used everywhere."""

from . import backend      # device selection and host transfer
from . import constants    # constant values
from . import linalg       # batched linear algebra
from . import math         # special functions
from . import optionals    # optional dependencies
from . import struct       # structures with default values
