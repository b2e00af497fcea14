"""ministride: strided tensor views.

A tensor is a view (shape, strides, offset) over a flat buffer that many
views may share. This package provides:

- tensor_data: The view engine, zero-copy view/reshape/transpose/squeeze/index and broadcasting rules.
- tensor_ops: Element-wise map and zip kernels with broadcasting, plus in-place variants.
- tensor: The user facing Tensor object.
- tensor_functions: Constructors such as zeros, ones, arange and tensor.
- storage: The flat buffer provider (allocate, read, write).
- errors: Error types raised by the view engine.
- config: Environment driven settings, such as debug bounds checks.

- fast_ops: Fast, parallel implementations of the element-wise kernels using the Numba library.

"""

from .errors import *  # noqa: F401,F403
from .config import Config, debug_mode, load_config  # noqa: F401
from .storage import allocate, read, write  # noqa: F401
from .tensor_data import *  # noqa: F401,F403
from .tensor_ops import *  # noqa: F401,F403
from .tensor import *  # noqa: F401,F403
from .tensor_functions import *  # noqa: F401,F403
from .fast_ops import FastBackend, FastOps  # noqa: F401
from . import fast_ops, operators  # noqa: F401
