from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar, Any

import numpy as np
from numba import prange
from numba import njit as _njit

from . import storage as buffers
from .tensor_data import (
    TensorData,
    index_to_position,
    shape_broadcast,
    to_index,
)
from .tensor_ops import MapProto, Promote, TensorBackend, TensorOps, ZipProto, result_dtype

if TYPE_CHECKING:
    from typing import Callable, Optional

    from .tensor_data import Shape, Storage, Strides


# Kernels below run in nopython mode: only numpy arrays, ints and the
# njit-compiled index helpers may be used inside them.

Fn = TypeVar("Fn")


def njit(fn: Fn, **kwargs: Any) -> Fn:
    return _njit(inline="always", **kwargs)(fn)  # type: ignore


to_index = njit(to_index)
index_to_position = njit(index_to_position)


class FastOps(TensorOps):
    @staticmethod
    def map(fn: Callable[[Any], Any]) -> MapProto:
        """See `tensor_ops.py`"""
        f = tensor_map(njit(fn))

        def ret(a: TensorData, out: Optional[TensorData] = None) -> TensorData:
            if out is None:
                out = TensorData(buffers.allocate(a.size, a.dtype), a.shape)
            src = a if tuple(a.shape) == tuple(out.shape) else a.expand(*out.shape)
            f(*out.tuple(), *src.tuple())
            return out

        return ret

    @staticmethod
    def zip(fn: Callable[[Any, Any], Any], promote: Promote = result_dtype) -> ZipProto:
        """See `tensor_ops.py`"""
        f = tensor_zip(njit(fn))

        def ret(a: TensorData, b: TensorData) -> TensorData:
            c_shape = shape_broadcast(a.shape, b.shape)
            out = TensorData(
                buffers.allocate(int(np.prod(c_shape, dtype=np.int64)), promote(a.dtype, b.dtype)),
                c_shape,
            )
            a_view = a if tuple(a.shape) == tuple(c_shape) else a.expand(*c_shape)
            b_view = b if tuple(b.shape) == tuple(c_shape) else b.expand(*c_shape)
            f(*out.tuple(), *a_view.tuple(), *b_view.tuple())
            return out

        return ret


# Implementations


def tensor_map(
    fn: Callable[[Any], Any],
) -> Callable[[Storage, Shape, Strides, int, Storage, Shape, Strides, int], None]:
    """NUMBA low_level tensor_map function. See `tensor_ops.py` for description.

    Optimizations:

    * Main loop in parallel
    * All indices use numpy buffers

    Args:
    ----
        fn: function mappings one value to one value to apply.

    Returns:
    -------
        Tensor map function.

    """

    def _map(
        out: Storage,
        out_shape: Shape,
        out_strides: Strides,
        out_offset: int,
        in_storage: Storage,
        in_shape: Shape,
        in_strides: Strides,
        in_offset: int,
    ) -> None:
        size = 1
        for d in range(len(out_shape)):
            size *= out_shape[d]
        for i in prange(size):
            out_index = np.empty(len(out_shape), np.int64)
            to_index(i, out_shape, out_index)
            o = out_offset + index_to_position(out_index, out_strides)
            j = in_offset + index_to_position(out_index, in_strides)
            out[o] = fn(in_storage[j])

    return njit(_map, parallel=True)  # type: ignore


def tensor_zip(
    fn: Callable[[Any, Any], Any],
) -> Callable[
    [Storage, Shape, Strides, int, Storage, Shape, Strides, int, Storage, Shape, Strides, int],
    None,
]:
    """NUMBA higher-order tensor zip function. See `tensor_ops.py` for description.

    Optimizations:

    * Main loop in parallel
    * All indices use numpy buffers

    Args:
    ----
        fn: function maps two values to one value.

    Returns:
    -------
        Tensor zip function.

    """

    def _zip(
        out: Storage,
        out_shape: Shape,
        out_strides: Strides,
        out_offset: int,
        a_storage: Storage,
        a_shape: Shape,
        a_strides: Strides,
        a_offset: int,
        b_storage: Storage,
        b_shape: Shape,
        b_strides: Strides,
        b_offset: int,
    ) -> None:
        size = 1
        for d in range(len(out_shape)):
            size *= out_shape[d]
        for i in prange(size):
            out_index = np.empty(len(out_shape), np.int64)
            to_index(i, out_shape, out_index)
            o = out_offset + index_to_position(out_index, out_strides)
            j = a_offset + index_to_position(out_index, a_strides)
            k = b_offset + index_to_position(out_index, b_strides)
            out[o] = fn(a_storage[j], b_storage[k])

    return njit(_zip, parallel=True)  # type: ignore


FastBackend = TensorBackend(FastOps)
