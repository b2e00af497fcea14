"""Implementation of the core Tensor object."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from .errors import IncompatibleStrideError
from .tensor_data import TensorData, _shape_arg
from .tensor_ops import SimpleBackend, TensorBackend

if TYPE_CHECKING:
    from typing import Any, List, Optional, Union

    import numpy.typing as npt

    from .tensor_data import Storage, UserShape, UserStrides

    TensorLike = Union[float, int, bool, "Tensor"]


logger = logging.getLogger(__name__)


class Tensor:
    """A multidimensional array.

    A Tensor pairs a `TensorData` view with the backend whose kernels run its
    element-wise operations. Shape operations are zero-copy and share the
    underlying buffer with the original tensor.
    """

    backend: TensorBackend
    _tensor: TensorData

    def __init__(
        self,
        v: TensorData,
        backend: Optional[TensorBackend] = None,
    ):
        assert isinstance(v, TensorData)
        if backend is None:
            backend = SimpleBackend
        self._tensor = v
        self.backend = backend
        self.f = backend

    def _new(self, tensor_data: TensorData) -> Tensor:
        return Tensor(tensor_data, backend=self.backend)

    @staticmethod
    def make(
        storage: Union[Storage, List[Any]],
        shape: UserShape,
        strides: Optional[UserStrides] = None,
        backend: Optional[TensorBackend] = None,
        dtype: Any = None,
    ) -> Tensor:
        """Create a new tensor from data"""
        return Tensor(TensorData(storage, shape, strides, dtype=dtype), backend=backend)

    # Properties
    @property
    def shape(self) -> UserShape:
        """Returns
        shape of the tensor

        """
        return self._tensor.shape

    @property
    def size(self) -> int:
        """Returns
        int : size of the tensor

        """
        return self._tensor.size

    @property
    def dims(self) -> int:
        """Returns
        int : dimensionality of the tensor

        """
        return self._tensor.dims

    @property
    def dtype(self) -> np.dtype:
        return self._tensor.dtype

    @property
    def offset(self) -> int:
        return self._tensor.offset

    def stride(self) -> UserStrides:
        """Returns
        the number of buffer elements to skip per step along each dimension

        """
        return self._tensor.strides

    def is_contiguous(self) -> bool:
        return self._tensor.is_contiguous()

    def shares_storage(self, other: Tensor) -> bool:
        """True when both tensors are views of the same buffer."""
        return self._tensor.shares_storage(other._tensor)

    def _ensure_tensor(self, b: TensorLike) -> Tensor:
        """Turns a python number into a 0-dimensional tensor with the same backend.

        Python numbers take this tensor's dtype when they fit it, so
        ``t * 2`` keeps a float32 tensor float32. Ints outside an integer
        dtype's range keep their own dtype and promote the result instead.
        """
        if isinstance(b, Tensor):
            return b
        kind = self.dtype.kind
        if (
            isinstance(b, bool)
            or (isinstance(b, int) and kind == "f")
            or (isinstance(b, float) and kind == "f")
        ):
            dtype = self.dtype
        elif isinstance(b, int) and kind in "iu":
            info = np.iinfo(self.dtype)
            dtype = self.dtype if info.min <= b <= info.max else np.asarray(b).dtype
        else:
            dtype = np.asarray(b).dtype
        return Tensor.make([b], (), backend=self.backend, dtype=dtype)

    # Functions
    def __add__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.add_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __sub__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.sub_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __mul__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.mul_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __truediv__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.div_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __rtruediv__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.div_zip(self._ensure_tensor(b)._tensor, self._tensor))

    def __lt__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.lt_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __eq__(self, b: TensorLike) -> Tensor:  # type: ignore[override]
        return self._new(self.f.eq_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __ne__(self, b: TensorLike) -> Tensor:  # type: ignore[override]
        return self._new(self.f.ne_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def __gt__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.lt_zip(self._ensure_tensor(b)._tensor, self._tensor))

    def __neg__(self) -> Tensor:
        return self._new(self.f.neg_map(self._tensor))

    def __radd__(self, b: TensorLike) -> Tensor:
        return self + b

    def __rmul__(self, b: TensorLike) -> Tensor:
        return self * b

    def __rsub__(self, b: TensorLike) -> Tensor:
        return self._new(self.f.sub_zip(self._ensure_tensor(b)._tensor, self._tensor))

    def maximum(self, b: TensorLike) -> Tensor:
        return self._new(self.f.max_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def minimum(self, b: TensorLike) -> Tensor:
        return self._new(self.f.min_zip(self._tensor, self._ensure_tensor(b)._tensor))

    def is_close(self, b: TensorLike) -> Tensor:
        return self._new(self.f.is_close_zip(self._tensor, self._ensure_tensor(b)._tensor))

    # In-place. These write into this tensor's buffer, so every view sharing
    # it sees the new values.
    def add_(self, b: TensorLike) -> Tensor:
        self.f.add_zip_(self._tensor, self._ensure_tensor(b)._tensor)
        return self

    def sub_(self, b: TensorLike) -> Tensor:
        self.f.sub_zip_(self._tensor, self._ensure_tensor(b)._tensor)
        return self

    def mul_(self, b: TensorLike) -> Tensor:
        self.f.mul_zip_(self._tensor, self._ensure_tensor(b)._tensor)
        return self

    def div_(self, b: TensorLike) -> Tensor:
        self.f.div_zip_(self._tensor, self._ensure_tensor(b)._tensor)
        return self

    def copy_(self, src: TensorLike) -> Tensor:
        """Broadcast `src` into this tensor's elements."""
        self.f.copy_(self._tensor, self._ensure_tensor(src)._tensor)
        return self

    __iadd__ = add_
    __isub__ = sub_
    __imul__ = mul_
    __itruediv__ = div_

    # Views
    def view(self, *shape: int) -> Tensor:
        """Change the shape of the tensor to a new shape with the same size, without copying.

        Raises `IncompatibleStrideError` when the layout does not allow it.
        """
        return self._new(self._tensor.view(*shape))

    def reshape(self, *shape: int) -> Tensor:
        """Like `view`, but falls back to a contiguous copy made by the backend."""
        shape = _shape_arg(shape)
        try:
            return self.view(*shape)
        except IncompatibleStrideError:
            logger.debug("reshape %s -> %s needs a copy", self.shape, shape)
        return self.contiguous().view(*shape)

    def contiguous(self) -> Tensor:
        """Return a contiguous tensor with the same data"""
        if self._tensor.is_contiguous():
            return self
        return self._new(self.f.id_map(self._tensor))

    def permute(self, *order: int) -> Tensor:
        """Permute tensor dimensions to *order"""
        return self._new(self._tensor.permute(*order))

    def transpose(self, dim_a: int, dim_b: int) -> Tensor:
        return self._new(self._tensor.transpose(dim_a, dim_b))

    def squeeze(self, dim: Optional[int] = None) -> Tensor:
        return self._new(self._tensor.squeeze(dim))

    def unsqueeze(self, dim: int) -> Tensor:
        return self._new(self._tensor.unsqueeze(dim))

    def expand(self, *shape: int) -> Tensor:
        """Broadcast to `shape` without copying; broadcast dimensions have stride 0."""
        return self._new(self._tensor.expand(*shape))

    def index(self, key: Any, keepdim: bool = False) -> Tensor:
        return self._new(self._tensor.index(key, keepdim=keepdim))

    def __getitem__(self, key: Any) -> Any:
        # A full integer index returns the element itself.
        if isinstance(key, (int, np.integer)) and self.dims == 1:
            return self._tensor.get((key,))
        if (
            isinstance(key, tuple)
            and len(key) == self.dims
            and all(isinstance(k, (int, np.integer)) for k in key)
        ):
            return self._tensor.get(key)
        return self.index(key)

    def __setitem__(self, key: Any, val: TensorLike) -> None:
        if isinstance(key, (int, np.integer)) and self.dims == 1:
            key = (key,)
        if (
            isinstance(key, tuple)
            and len(key) == self.dims
            and all(isinstance(k, (int, np.integer)) for k in key)
            and not isinstance(val, Tensor)
        ):
            self._tensor.set(key, val)
            return
        self.index(key).copy_(val)

    def item(self) -> Any:
        """Convert a 1-element tensor to a python scalar"""
        assert self.size == 1, f"Can only convert a single element, size is {self.size}"
        return self._tensor.get((0,) * self.dims).item()

    def to_numpy(self) -> npt.NDArray[Any]:
        """Returns
        Converted to numpy array

        """
        # A contiguous view holds its elements at offset .. offset + size.
        c = self.contiguous()
        data = c._tensor._storage[c.offset : c.offset + c.size]
        return np.array(data).reshape(self.shape)

    def tolist(self) -> Any:
        return self.to_numpy().tolist()

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return self._tensor.to_string()

