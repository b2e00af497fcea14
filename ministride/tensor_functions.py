"""Helpers for constructing tensors."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import numpy as np

from . import operators
from . import storage as buffers
from .tensor import Tensor
from .tensor_data import TensorData, _shape_arg
from .tensor_ops import SimpleBackend, TensorBackend

if TYPE_CHECKING:
    from typing import Any, List

    import numpy.typing as npt

    from .storage import DTypeLike
    from .tensor_data import UserShape


def zeros(
    shape: UserShape, backend: TensorBackend = SimpleBackend, dtype: DTypeLike = None
) -> Tensor:
    """Produce a zero tensor of size `shape`.

    Args:
    ----
        shape : shape of tensor
        backend : tensor backend
        dtype : element type, the configured default when None

    Returns:
    -------
        new tensor

    """
    shape = _shape_arg((shape,))
    return Tensor(
        TensorData(buffers.allocate(operators.prod(shape), dtype), shape), backend=backend
    )


def ones(
    shape: UserShape, backend: TensorBackend = SimpleBackend, dtype: DTypeLike = None
) -> Tensor:
    """Produce a ones tensor of size `shape`."""
    return full(shape, 1, backend=backend, dtype=dtype)


def full(
    shape: UserShape,
    fill: Any,
    backend: TensorBackend = SimpleBackend,
    dtype: DTypeLike = None,
) -> Tensor:
    shape = _shape_arg((shape,))
    return Tensor(
        TensorData(buffers.allocate(operators.prod(shape), dtype, fill=fill), shape),
        backend=backend,
    )


def arange(
    n: int, backend: TensorBackend = SimpleBackend, dtype: DTypeLike = "int64"
) -> Tensor:
    """Produce the 1-D tensor ``0, 1, ..., n - 1``.

    Handy with `view` to see how elements move through a layout.
    """
    return Tensor(
        TensorData(np.arange(n, dtype=buffers.resolve_dtype(dtype)), (n,)), backend=backend
    )


def rand(
    shape: UserShape,
    backend: TensorBackend = SimpleBackend,
    dtype: DTypeLike = None,
) -> Tensor:
    """Produce a random tensor of size `shape`.

    Args:
    ----
        shape : shape of tensor
        backend : tensor backend
        dtype : floating point element type

    Returns:
    -------
        :class:`Tensor` : new tensor

    """
    shape = _shape_arg((shape,))
    vals = [random.random() for _ in range(operators.prod(shape))]
    return Tensor.make(vals, shape, backend=backend, dtype=dtype)


def from_numpy(array: npt.NDArray[Any], backend: TensorBackend = SimpleBackend) -> Tensor:
    """Copy a numpy array of any layout into a new contiguous tensor."""
    data = np.array(array, order="C")
    return Tensor(TensorData(data.reshape(-1), data.shape), backend=backend)


def tensor(
    ls: Any, backend: TensorBackend = SimpleBackend, dtype: DTypeLike = None
) -> Tensor:
    """Produce a tensor with data and shape from ls

    Args:
    ----
        ls: data for tensor, a number or (nested) lists of numbers
        backend : tensor backend
        dtype : element type, the configured default when None

    Returns:
    -------
        :class:`Tensor` : new tensor

    """

    def shape(ls: Any) -> List[int]:
        if isinstance(ls, (list, tuple)):
            if not ls:
                return [0]
            return [len(ls)] + shape(ls[0])
        else:
            return []

    def flatten(ls: Any) -> List[Any]:
        if isinstance(ls, (list, tuple)):
            return [y for x in ls for y in flatten(x)]
        else:
            return [ls]

    cur = flatten(ls)
    shape2 = shape(ls)
    return Tensor.make(cur, tuple(shape2), backend=backend, dtype=dtype)
