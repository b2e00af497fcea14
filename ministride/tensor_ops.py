from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, Type

import numpy as np

from . import operators
from . import storage as buffers
from .errors import IncompatibleStrideError, ShapeMismatchError
from .tensor_data import (
    Shape,
    Storage,
    Strides,
    TensorData,
    index_to_position,
    shape_broadcast,
    to_index,
)

logger = logging.getLogger(__name__)

Promote = Callable[[np.dtype, np.dtype], np.dtype]


def result_dtype(a: np.dtype, b: np.dtype) -> np.dtype:
    return np.result_type(a, b)


def float_dtype(a: np.dtype, b: np.dtype) -> np.dtype:
    """True division never produces integers."""
    return np.result_type(a, b, np.float32)


def bool_dtype(a: np.dtype, b: np.dtype) -> np.dtype:
    return np.dtype(np.bool_)


class MapProto(Protocol):
    def __call__(self, x: TensorData, out: Optional[TensorData] = ..., /) -> TensorData:
        """Call a map function"""
        ...


class ZipProto(Protocol):
    def __call__(self, a: TensorData, b: TensorData, /) -> TensorData:
        """Call a zip function"""
        ...


class TensorOps:
    @staticmethod
    def map(fn: Callable[[Any], Any]) -> MapProto:
        """Map placeholder"""
        ...

    @staticmethod
    def zip(fn: Callable[[Any, Any], Any], promote: Promote = result_dtype) -> ZipProto:
        """Zip placeholder"""
        ...


def _expanded(a: TensorData, shape: Shape) -> TensorData:
    return a if tuple(a.shape) == tuple(shape) else a.expand(*shape)


def check_writable(out: TensorData) -> None:
    """Reject targets where several indices alias one buffer element."""
    for dim, (extent, stride) in enumerate(zip(out.shape, out.strides)):
        if extent > 1 and stride == 0:
            raise IncompatibleStrideError(
                f"Cannot write in place through dimension {dim} with extent {extent} "
                "and stride 0: its elements share one memory location.",
                shape=out.shape,
                strides=out.strides,
                requested=out.shape,
                dim=dim,
            )


class TensorBackend:
    def __init__(self, ops: Type[TensorOps]):
        """Dynamically construct a tensor backend based on a `tensor_ops` object
        that implements map and zip. It builds the element-wise kernels once so
        repeated calls reuse them.

        Args:
        ----
            ops : tensor operations object see `tensor_ops.py`


        Returns:
        -------
            A collection of tensor functions

        """
        self.ops = ops

        # Maps
        self.id_map = ops.map(operators.id)
        self.neg_map = ops.map(operators.neg)

        # Zips
        self.add_zip = ops.zip(operators.add)
        self.sub_zip = ops.zip(operators.sub)
        self.mul_zip = ops.zip(operators.mul)
        self.div_zip = ops.zip(operators.div, float_dtype)
        self.max_zip = ops.zip(operators.max)
        self.min_zip = ops.zip(operators.min)
        self.lt_zip = ops.zip(operators.lt, bool_dtype)
        self.eq_zip = ops.zip(operators.eq, bool_dtype)
        self.ne_zip = ops.zip(operators.ne, bool_dtype)
        self.is_close_zip = ops.zip(operators.is_close, bool_dtype)

        # In-place
        self.add_zip_ = self.inplace(self.add_zip)
        self.sub_zip_ = self.inplace(self.sub_zip)
        self.mul_zip_ = self.inplace(self.mul_zip)
        self.div_zip_ = self.inplace(self.div_zip)

    def copy_(self, out: TensorData, src: TensorData) -> TensorData:
        """Broadcast `src` onto `out` and write it through `out`'s strides.

        When both share a buffer, `src` is copied out first so no element is
        read after it has been overwritten.
        """
        check_writable(out)
        if out.shares_storage(src):
            src = self.id_map(src)
        return self.id_map(src, out)

    def inplace(self, zip_fn: ZipProto) -> Callable[[TensorData, TensorData], TensorData]:
        """Turn an out-of-place zip into one that writes into its first argument.

        The whole result is computed before anything is written, so a failure
        leaves `a` untouched.
        """

        def ret(a: TensorData, b: TensorData) -> TensorData:
            _check_inplace_shape(a, b)
            check_writable(a)
            result = zip_fn(a, b)
            logger.debug("in-place write of %d elements into %s", a.size, a.shape)
            return self.id_map(result, a)

        return ret


def _check_inplace_shape(a: TensorData, b: TensorData) -> None:
    shape = shape_broadcast(a.shape, b.shape)
    if tuple(shape) != tuple(a.shape):
        raise ShapeMismatchError(
            f"In-place operation cannot grow shape {tuple(a.shape)} to {tuple(shape)} "
            f"when broadcasting with {tuple(b.shape)}.",
            shape_a=a.shape,
            shape_b=b.shape,
            extents=(a.size, int(np.prod(shape, dtype=np.int64))),
        )


class SimpleOps(TensorOps):
    @staticmethod
    def map(fn: Callable[[Any], Any]) -> MapProto:
        """Higher-order tensor map function ::

          fn_map = map(fn)
          fn_map(a, out)
          out

        Simple version::

            for i:
                for j:
                    out[i, j] = fn(a[i, j])

        Broadcasted version (`a` might be smaller than `out`) ::

            for i:
                for j:
                    out[i, j] = fn(a[i, 0])

        Args:
        ----
            fn : function from one value to one value.

        Returns:
        -------
            A function that takes `a` and an optional `out` of the broadcast
            shape. Without `out` a new contiguous view with `a`'s shape and
            dtype is returned, otherwise `out` is filled through its strides.

        """
        f = tensor_map(fn)

        def ret(a: TensorData, out: Optional[TensorData] = None) -> TensorData:
            if out is None:
                out = TensorData(buffers.allocate(a.size, a.dtype), a.shape)
            src = _expanded(a, out.shape)
            f(*out.tuple(), *src.tuple())
            return out

        return ret

    @staticmethod
    def zip(fn: Callable[[Any, Any], Any], promote: Promote = result_dtype) -> ZipProto:
        """Higher-order tensor zip function ::

          fn_zip = zip(fn)
          out = fn_zip(a, b)

        Broadcasted version (`a` and `b` might be smaller than `out`) ::

            for i:
                for j:
                    out[i, j] = fn(a[i, 0], b[0, j])

        Args:
        ----
            fn : function from two values to a value
            promote : picks the output dtype from the input dtypes

        Returns:
        -------
            :class:`TensorData` : new contiguous view of the broadcast shape.

        """
        f = tensor_zip(fn)

        def ret(a: TensorData, b: TensorData) -> TensorData:
            c_shape = shape_broadcast(a.shape, b.shape)
            out = TensorData(
                buffers.allocate(int(np.prod(c_shape, dtype=np.int64)), promote(a.dtype, b.dtype)),
                c_shape,
            )
            f(*out.tuple(), *_expanded(a, c_shape).tuple(), *_expanded(b, c_shape).tuple())
            return out

        return ret


# Implementations.


def tensor_map(
    fn: Callable[[Any], Any],
) -> Callable[[Storage, Shape, Strides, int, Storage, Shape, Strides, int], None]:
    """Low-level implementation of tensor map between
    tensors with *possibly different strides*.

    The input is expected to be already expanded to `out_shape` (stride 0 on
    broadcast dimensions), so both sides are walked with the same index.

    Args:
    ----
        fn: function from one value to one value

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
        out_index = np.zeros(len(out_shape), dtype=np.int64)
        for i in range(int(np.prod(out_shape, dtype=np.int64))):
            to_index(i, out_shape, out_index)
            o = out_offset + index_to_position(out_index, out_strides)
            j = in_offset + index_to_position(out_index, in_strides)
            buffers.write(out, o, fn(buffers.read(in_storage, j)))

    return _map


def tensor_zip(
    fn: Callable[[Any, Any], Any],
) -> Callable[
    [Storage, Shape, Strides, int, Storage, Shape, Strides, int, Storage, Shape, Strides, int],
    None,
]:
    """Low-level implementation of tensor zip between
    tensors with *possibly different strides*.

    Both inputs are expected to be expanded to `out_shape` already.

    Args:
    ----
        fn: function mapping two values to a value

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
        out_index = np.zeros(len(out_shape), dtype=np.int64)
        for i in range(int(np.prod(out_shape, dtype=np.int64))):
            to_index(i, out_shape, out_index)
            o = out_offset + index_to_position(out_index, out_strides)
            j = a_offset + index_to_position(out_index, a_strides)
            k = b_offset + index_to_position(out_index, b_strides)
            buffers.write(
                out, o, fn(buffers.read(a_storage, j), buffers.read(b_storage, k))
            )

    return _zip


def broadcast_binary_op(
    fn: Callable[[Any, Any], Any],
    a: TensorData,
    b: TensorData,
    ops: Type[TensorOps] = SimpleOps,
    promote: Promote = result_dtype,
) -> TensorData:
    """Apply `fn` element-wise to `a` and `b` after broadcasting them.

    Returns a new contiguous view; neither operand is modified.
    """
    return ops.zip(fn, promote)(a, b)


def broadcast_binary_op_(
    fn: Callable[[Any, Any], Any],
    a: TensorData,
    b: TensorData,
    ops: Type[TensorOps] = SimpleOps,
) -> TensorData:
    """In-place `broadcast_binary_op`: the result is written into `a`'s buffer.

    `b` must broadcast onto `a`'s shape, in-place operations never grow the
    target. Results are cast to `a`'s dtype.
    """
    _check_inplace_shape(a, b)
    check_writable(a)
    result = ops.zip(fn, result_dtype)(a, b)
    return ops.map(operators.id)(result, a)


SimpleBackend = TensorBackend(SimpleOps)
