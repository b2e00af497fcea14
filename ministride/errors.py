"""Exceptions raised by the strided view engine.

Every error carries the offending dimension(s) and extents as attributes so
callers can build their own diagnostics, and names them in its message.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class IndexingError(RuntimeError):
    """Exception raised for indexing errors."""

    def __init__(
        self,
        message: str,
        dim: Optional[int] = None,
        extents: Sequence[int] = (),
    ) -> None:
        super().__init__(message)
        self.dim = dim
        self.extents: Tuple[int, ...] = tuple(extents)


class IncompatibleStrideError(IndexingError):
    """The requested view cannot be expressed over the current memory layout.

    Call `reshape` instead, which falls back to a copy.
    """

    def __init__(
        self,
        message: str,
        shape: Sequence[int] = (),
        strides: Sequence[int] = (),
        requested: Sequence[int] = (),
        dim: Optional[int] = None,
    ) -> None:
        super().__init__(message, dim=dim, extents=shape)
        self.shape = tuple(shape)
        self.strides = tuple(strides)
        self.requested = tuple(requested)


class ShapeMismatchError(IndexingError):
    """Two shapes cannot be broadcast together, or element counts differ.

    For broadcasting failures `dim` counts from the right (``-1`` is the last
    dimension) and `extents` holds the two conflicting sizes.
    """

    def __init__(
        self,
        message: str,
        shape_a: Sequence[int] = (),
        shape_b: Sequence[int] = (),
        dim: Optional[int] = None,
        extents: Sequence[int] = (),
    ) -> None:
        super().__init__(message, dim=dim, extents=extents)
        self.shape_a = tuple(shape_a)
        self.shape_b = tuple(shape_b)


class DimensionMismatchError(IndexingError):
    """A dimension argument or an index falls outside the declared shape."""


class BufferBoundsError(IndexingError):
    """A computed address falls outside the buffer."""

    def __init__(self, message: str, position: int, buffer_size: int) -> None:
        super().__init__(message)
        self.position = position
        self.buffer_size = buffer_size
