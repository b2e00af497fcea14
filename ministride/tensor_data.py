from __future__ import annotations

import logging
import random
from typing import Any, Iterable, Optional, Sequence, Tuple, TypeAlias, Union

import numpy as np
import numpy.typing as npt

from . import operators
from . import storage as buffers
from .errors import (
    BufferBoundsError,
    DimensionMismatchError,
    IncompatibleStrideError,
    IndexingError,
    ShapeMismatchError,
)
from .storage import DTypeLike, Storage

logger = logging.getLogger(__name__)

OutIndex: TypeAlias = npt.NDArray[np.int64]
Index: TypeAlias = npt.NDArray[np.int64]
Shape: TypeAlias = npt.NDArray[np.int64]
Strides: TypeAlias = npt.NDArray[np.int64]

UserIndex: TypeAlias = Sequence[int]
UserShape: TypeAlias = Sequence[int]
UserStrides: TypeAlias = Sequence[int]


def index_to_position(index: Index, strides: Strides) -> int:
    """Converts a multidimensional tensor `index` into a single-dimensional position in
    storage based on strides. The view's offset is not included.

    Args:
    ----
        index : index tuple of ints
        strides : tensor strides

    Returns:
    -------
        Position in storage relative to the view's offset

    """
    position = 0
    for i in range(len(strides)):
        position += index[i] * strides[i]
    return position


def to_index(ordinal: int, shape: Shape, out_index: OutIndex) -> None:
    """Convert an `ordinal` to an index in the `shape`.
    Should ensure that enumerating position 0 ... size of a
    tensor produces every index exactly once. It
    may not be the inverse of `index_to_position`.

    Args:
    ----
        ordinal: ordinal position to convert.
        shape : tensor shape.
        out_index : return index corresponding to position.

    """
    cur = ordinal + 0
    for i in range(len(shape) - 1, -1, -1):
        sh = shape[i]
        out_index[i] = cur % sh
        cur = cur // sh


def strides_from_shape(shape: UserShape) -> UserStrides:
    """Row-major strides: ``strides[i] == prod(shape[i + 1:])``."""
    layout = [1]
    offset = 1
    for s in reversed(shape):
        layout.append(s * offset)
        offset = s * offset
    return tuple(reversed(layout[:-1]))


def shape_broadcast(shape1: UserShape, shape2: UserShape) -> UserShape:
    """Broadcast two shapes to create a new union shape.

    Shapes are right-aligned and the shorter one is padded with 1s on the
    left. Each aligned pair must be equal or contain a 1, in which case the
    other extent wins.

    Args:
    ----
        shape1 : first shape
        shape2 : second shape

    Returns:
    -------
        broadcasted shape

    Raises:
    ------
        ShapeMismatchError : naming the first incompatible dimension counted
            from the right (``-1`` is the last one) and both extents.

    """
    n = max(len(shape1), len(shape2))
    a = (1,) * (n - len(shape1)) + tuple(shape1)
    b = (1,) * (n - len(shape2)) + tuple(shape2)
    out = [0] * n
    for i in range(n - 1, -1, -1):
        da, db = a[i], b[i]
        if da == db:
            out[i] = da
        elif da == 1:
            out[i] = db
        elif db == 1:
            out[i] = da
        else:
            raise ShapeMismatchError(
                f"Shapes {tuple(shape1)} and {tuple(shape2)} cannot be broadcast: "
                f"dimension {i - n} has extents {da} and {db}.",
                shape_a=shape1,
                shape_b=shape2,
                dim=i - n,
                extents=(da, db),
            )
    return tuple(out)


def broadcast_strides(
    shape: UserShape, strides: UserStrides, target_shape: UserShape
) -> UserStrides:
    """Strides that read a view of `shape` as if it had `target_shape`.

    Broadcast dimensions, both padded ones and expanded size-1 ones, get
    stride 0 so the same element is read repeatedly.

    Raises
    ------
        ShapeMismatchError : if `shape` does not broadcast onto `target_shape`.

    """
    if len(shape) > len(target_shape):
        raise ShapeMismatchError(
            f"Cannot expand shape {tuple(shape)} to {tuple(target_shape)}: "
            "the target has fewer dimensions.",
            shape_a=shape,
            shape_b=target_shape,
        )
    pad = len(target_shape) - len(shape)
    out = []
    for i in range(len(target_shape) - 1, -1, -1):
        extent = target_shape[i]
        j = i - pad
        if j < 0:
            out.append(0)
        elif shape[j] == extent:
            out.append(strides[j])
        elif shape[j] == 1:
            out.append(0)
        else:
            raise ShapeMismatchError(
                f"Cannot expand shape {tuple(shape)} to {tuple(target_shape)}: "
                f"dimension {i - len(target_shape)} has extent {shape[j]}, "
                f"expected 1 or {extent}.",
                shape_a=shape,
                shape_b=target_shape,
                dim=i - len(target_shape),
                extents=(shape[j], extent),
            )
    return tuple(reversed(out))


def infer_shape(shape: UserShape, size: int) -> UserShape:
    """Resolve a single ``-1`` entry so the shape holds `size` elements."""
    shape = tuple(int(s) for s in shape)
    unknown = [i for i, s in enumerate(shape) if s == -1]
    if len(unknown) > 1:
        raise ShapeMismatchError(
            f"Only one dimension can be inferred, got shape {shape}.", shape_a=shape
        )
    for dim, s in enumerate(shape):
        if s < -1:
            raise DimensionMismatchError(
                f"Invalid extent {s} for dimension {dim}.", dim=dim, extents=(s,)
            )
    known = operators.prod(s for s in shape if s != -1)
    if unknown:
        if known == 0 or size % known != 0:
            raise ShapeMismatchError(
                f"Shape {shape} is invalid for a view of {size} elements.",
                shape_a=shape,
                extents=(known, size),
            )
        i = unknown[0]
        return shape[:i] + (size // known,) + shape[i + 1 :]
    if known != size:
        raise ShapeMismatchError(
            f"Shape {shape} holds {known} elements, the view has {size}.",
            shape_a=shape,
            extents=(known, size),
        )
    return shape


def view_strides(
    shape: UserShape, strides: UserStrides, new_shape: UserShape
) -> Optional[UserStrides]:
    """Strides that reinterpret a layout under `new_shape` without copying.

    The old dimensions are grouped into maximal chunks that are contiguous
    with respect to each other. Each requested dimension has to fall inside a
    single chunk; when one would straddle a chunk boundary there is no such
    reinterpretation and None is returned. `new_shape` must hold the same
    number of elements as `shape`.
    """
    size = operators.prod(shape)
    if size == 0:
        if tuple(shape) == tuple(new_shape):
            return tuple(strides)
        return strides_from_shape(new_shape)
    if len(shape) == 0:
        return strides_from_shape(new_shape)

    new_strides = [0] * len(new_shape)
    view_d = len(new_shape) - 1
    chunk_base_stride = strides[-1]
    tensor_numel = 1
    view_numel = 1
    for tensor_d in range(len(shape) - 1, -1, -1):
        tensor_numel *= shape[tensor_d]
        if tensor_d == 0 or (
            shape[tensor_d - 1] != 1
            and strides[tensor_d - 1] != tensor_numel * chunk_base_stride
        ):
            while view_d >= 0 and (view_numel < tensor_numel or new_shape[view_d] == 1):
                new_strides[view_d] = view_numel * chunk_base_stride
                view_numel *= new_shape[view_d]
                view_d -= 1
            if view_numel != tensor_numel:
                return None
            if tensor_d > 0:
                chunk_base_stride = strides[tensor_d - 1]
                tensor_numel = 1
                view_numel = 1
    if view_d != -1:
        return None
    return tuple(new_strides)


def _shape_arg(shape: Tuple[Any, ...]) -> Tuple[int, ...]:
    # Accept both f(2, 3) and f((2, 3)).
    if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
        shape = tuple(shape[0])
    return tuple(int(s) for s in shape)


def _normalize_index(i: int, extent: int, dim: int) -> int:
    # Negative indices count from the end, -1 is the last element.
    j = i + extent if i < 0 else i
    if j < 0 or j >= extent:
        raise DimensionMismatchError(
            f"Index {i} is out of range for dimension {dim} with extent {extent}.",
            dim=dim,
            extents=(extent,),
        )
    return j


class TensorData:
    """A strided view over a flat buffer.

    Element ``index`` of the view lives at
    ``offset + sum(index[i] * strides[i])`` in the buffer. Many views may
    share one buffer; every shape changing method returns a new view and
    never touches the metadata of an existing one.
    """

    _storage: Storage
    _strides: Strides
    _shape: Shape
    strides: UserStrides
    shape: UserShape
    offset: int
    dims: int
    size: int

    def __init__(
        self,
        storage: Union[Sequence[Any], Storage],
        shape: UserShape,
        strides: Optional[UserStrides] = None,
        offset: int = 0,
        dtype: DTypeLike = None,
    ):
        shape = tuple(int(s) for s in shape)
        for dim, s in enumerate(shape):
            if s < 0:
                raise DimensionMismatchError(
                    f"Invalid extent {s} for dimension {dim}.", dim=dim, extents=(s,)
                )
        if isinstance(storage, np.ndarray):
            if storage.ndim != 1:
                raise ValueError(f"Storage must be a flat buffer, got {storage.ndim} dims.")
            if dtype is not None and storage.dtype != buffers.resolve_dtype(dtype):
                storage = storage.astype(buffers.resolve_dtype(dtype))
            self._storage = storage
        else:
            self._storage = np.array(storage, dtype=buffers.resolve_dtype(dtype))
            if self._storage.ndim != 1 or len(self._storage) != operators.prod(shape):
                raise ShapeMismatchError(
                    f"{self._storage.size} values cannot fill shape {shape}.",
                    shape_a=shape,
                    extents=(self._storage.size, operators.prod(shape)),
                )

        if strides is None:
            strides = strides_from_shape(shape)
        strides = tuple(int(s) for s in strides)
        if len(strides) != len(shape):
            raise DimensionMismatchError(
                f"Len of strides {strides} must match {shape}.",
                extents=(len(strides), len(shape)),
            )
        self._strides = np.array(strides, dtype=np.int64)
        self._shape = np.array(shape, dtype=np.int64)
        self.strides = strides
        self.shape = shape
        self.offset = int(offset)
        self.dims = len(shape)
        self.size = operators.prod(shape)
        self._check_bounds()

    def _check_bounds(self) -> None:
        if self.size == 0:
            return
        low = high = self.offset
        for extent, stride in zip(self.shape, self.strides):
            span = (extent - 1) * stride
            if span < 0:
                low += span
            else:
                high += span
        n = len(self._storage)
        if low < 0 or high >= n:
            raise BufferBoundsError(
                f"View with shape {self.shape}, strides {self.strides} and offset "
                f"{self.offset} addresses [{low}, {high}] in a buffer of {n} elements.",
                position=low if low < 0 else high,
                buffer_size=n,
            )

    @property
    def dtype(self) -> np.dtype:
        return self._storage.dtype

    def stride(self) -> UserStrides:
        return self.strides

    def is_contiguous(self) -> bool:
        """Check that the layout is row-major and dense.

        Size-1 dimensions may carry any stride and a view with no elements
        counts as contiguous.

        Returns
        -------
            bool : True if contiguous

        """
        if self.size == 0:
            return True
        expected = 1
        for extent, stride in zip(reversed(self.shape), reversed(self.strides)):
            if extent == 1:
                continue
            if stride != expected:
                return False
            expected *= extent
        return True

    def shares_storage(self, other: TensorData) -> bool:
        return self._storage is other._storage

    def _derive(
        self, shape: UserShape, strides: UserStrides, offset: Optional[int] = None
    ) -> TensorData:
        return TensorData(
            self._storage, shape, strides, self.offset if offset is None else offset
        )

    def _dim(self, dim: int, dims: Optional[int] = None) -> int:
        n = self.dims if dims is None else dims
        d = dim + n if dim < 0 else dim
        if d < 0 or d >= n:
            raise DimensionMismatchError(
                f"Dimension {dim} is out of range for {n} dimensions.",
                dim=dim,
                extents=tuple(self.shape),
            )
        return d

    def position(self, index: Union[int, UserIndex]) -> int:
        """Buffer address of a full index, offset included. ``-1`` means the last element."""
        if isinstance(index, (int, np.integer)):
            index = (int(index),)
        index = tuple(int(i) for i in index)
        if len(index) != self.dims:
            raise DimensionMismatchError(
                f"Index {index} must have {self.dims} entries for shape {self.shape}.",
                extents=tuple(self.shape),
            )
        position = self.offset
        for dim, (i, extent, stride) in enumerate(zip(index, self.shape, self.strides)):
            position += _normalize_index(i, extent, dim) * stride
        return position

    def indices(self) -> Iterable[UserIndex]:
        lshape: Shape = self._shape
        out_index: OutIndex = np.zeros(self.dims, dtype=np.int64)
        for i in range(self.size):
            to_index(i, lshape, out_index)
            yield tuple(int(x) for x in out_index)

    def sample(self) -> UserIndex:
        """Get a random valid index"""
        return tuple((random.randint(0, s - 1) for s in self.shape))

    def get(self, key: Union[int, UserIndex]) -> Any:
        return buffers.read(self._storage, self.position(key))

    def set(self, key: Union[int, UserIndex], val: Any) -> None:
        buffers.write(self._storage, self.position(key), val)

    def tuple(self) -> Tuple[Storage, Shape, Strides, int]:
        """Return core tensor data as a tuple."""
        return (self._storage, self._shape, self._strides, self.offset)

    def permute(self, *order: int) -> TensorData:
        """Permute the dimensions of the tensor.

        Args:
        ----
            *order: a permutation of the dimensions

        Returns:
        -------
            New `TensorData` with the same storage and a new dimension order.

        """
        order = tuple(self._dim(d) for d in _shape_arg(order))
        if sorted(order) != list(range(self.dims)):
            raise DimensionMismatchError(
                f"Must give a position to each dimension. Shape: {self.shape} Order: {order}",
                extents=tuple(self.shape),
            )
        return self._derive(
            tuple(self.shape[o] for o in order), tuple(self.strides[o] for o in order)
        )

    def transpose(self, dim_a: int, dim_b: int) -> TensorData:
        """Swap two dimensions. Zero-copy, and its own inverse."""
        order = list(range(self.dims))
        a, b = self._dim(dim_a), self._dim(dim_b)
        order[a], order[b] = order[b], order[a]
        return self.permute(*order)

    def squeeze(self, dim: Optional[int] = None) -> TensorData:
        """Remove a size-1 dimension, or every size-1 dimension when `dim` is None."""
        if dim is None:
            keep = [i for i, extent in enumerate(self.shape) if extent != 1]
        else:
            d = self._dim(dim)
            if self.shape[d] != 1:
                raise DimensionMismatchError(
                    f"Cannot squeeze dimension {d} with extent {self.shape[d]}, expected 1.",
                    dim=d,
                    extents=(self.shape[d],),
                )
            keep = [i for i in range(self.dims) if i != d]
        return self._derive(
            tuple(self.shape[i] for i in keep), tuple(self.strides[i] for i in keep)
        )

    def unsqueeze(self, dim: int) -> TensorData:
        """Insert a size-1 dimension at `dim`.

        The new stride is ``shape[dim] * strides[dim]`` of the dimension it
        is inserted before, or 1 when appended, rather than a copy of that
        dimension's stride. This is the stride a contiguous layout would
        have there, so squeezing and unsqueezing a contiguous view at the
        same position gives back the same strides. Since the extent is 1
        the stride never changes which elements are addressed.
        """
        d = self._dim(dim, self.dims + 1)
        stride = self.shape[d] * self.strides[d] if d < self.dims else 1
        return self._derive(
            self.shape[:d] + (1,) + self.shape[d:],
            self.strides[:d] + (stride,) + self.strides[d:],
        )

    def expand(self, *shape: int) -> TensorData:
        """Zero-copy broadcast of this view onto `shape` using stride 0."""
        target = _shape_arg(shape)
        return self._derive(target, broadcast_strides(self.shape, self.strides, target))

    def view(self, *shape: int) -> TensorData:
        """Reinterpret the buffer under a new shape without copying.

        One entry of `shape` may be ``-1`` and is inferred.

        Raises
        ------
            ShapeMismatchError : the element counts differ.
            IncompatibleStrideError : the layout cannot be reinterpreted,
                for example flattening a transposed view. Use `reshape`.

        """
        new_shape = infer_shape(_shape_arg(shape), self.size)
        strides = view_strides(self.shape, self.strides, new_shape)
        if strides is None:
            raise IncompatibleStrideError(
                f"View shape {new_shape} is not compatible with shape {self.shape} "
                f"and strides {self.strides}; use reshape instead.",
                shape=self.shape,
                strides=self.strides,
                requested=new_shape,
            )
        return self._derive(new_shape, strides)

    def reshape(self, *shape: int) -> TensorData:
        """Like `view`, but copies into a new contiguous buffer when a view is impossible.

        The copy holds the elements in row-major order of this view.
        """
        new_shape = infer_shape(_shape_arg(shape), self.size)
        try:
            return self.view(*new_shape)
        except IncompatibleStrideError:
            logger.debug(
                "reshape %s -> %s copies %d elements, strides %s are not viewable",
                self.shape,
                new_shape,
                self.size,
                self.strides,
            )
            return self._copy().view(*new_shape)

    def contiguous(self) -> TensorData:
        if self.is_contiguous():
            return self
        return self._copy()

    def _copy(self) -> TensorData:
        out = buffers.allocate(self.size, self.dtype)
        for i, index in enumerate(self.indices()):
            position = self.offset + index_to_position(index, self._strides)
            buffers.write(out, i, buffers.read(self._storage, position))
        return TensorData(out, self.shape)

    def index(self, key: Any, keepdim: bool = False) -> TensorData:
        """Sub-view selected by `key`, without copying.

        `key` is an int, a slice, ``...`` or a tuple of those, one entry per
        leading dimension. Missing trailing dimensions are taken whole.

        * An int picks one position and drops the dimension, or keeps it
          with extent 1 when `keepdim` is set. Negative ints count from the
          end, so ``-1`` is the last element; they never remove elements.
        * A slice ``start:stop:step`` follows Python slicing, step must be
          positive.
        * ``...`` stands for all dimensions not otherwise referenced.

        Args:
        ----
            key: the index expression
            keepdim: keep int-indexed dimensions with extent 1

        Returns:
        -------
            New `TensorData` over the same storage.

        """
        if not isinstance(key, tuple):
            key = (key,)
        n_ellipsis = sum(1 for k in key if k is Ellipsis)
        if n_ellipsis > 1:
            raise IndexingError("An index can only have a single ellipsis ('...').")
        consumed = len(key) - n_ellipsis
        if consumed > self.dims:
            raise DimensionMismatchError(
                f"Too many indices for a view with {self.dims} dimensions: got {consumed}.",
                extents=tuple(self.shape),
            )
        fill = (slice(None),) * (self.dims - consumed)
        if n_ellipsis:
            at = key.index(Ellipsis)
            key = key[:at] + fill + key[at + 1 :]
        else:
            key = key + fill

        offset = self.offset
        shape = []
        strides = []
        for dim, (k, extent, stride) in enumerate(zip(key, self.shape, self.strides)):
            if isinstance(k, slice):
                if k.step is not None and k.step <= 0:
                    raise IndexingError(
                        f"Step must be positive, got {k.step} for dimension {dim}.",
                        dim=dim,
                        extents=(extent,),
                    )
                start, stop, step = k.indices(extent)
                length = len(range(start, stop, step))
                if length:
                    offset += start * stride
                shape.append(length)
                strides.append(stride * step)
            elif isinstance(k, (int, np.integer)) and not isinstance(k, bool):
                offset += _normalize_index(int(k), extent, dim) * stride
                if keepdim:
                    shape.append(1)
                    strides.append(stride)
            else:
                raise IndexingError(f"Unsupported index {k!r} for dimension {dim}.", dim=dim)
        return self._derive(tuple(shape), tuple(strides), offset)

    def to_string(self) -> str:
        """Convert to string"""
        s = ""
        for index in self.indices():
            l = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == 0:
                    l = "\n%s[" % ("\t" * i) + l
                else:
                    break
            s += l
            v = self.get(index)
            s += f"{v:3.2f}" if self.dtype.kind in "fc" else str(v)
            l = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == self.shape[i] - 1:
                    l += "]"
                else:
                    break
            if l:
                s += l
            else:
                s += " "
        return s
