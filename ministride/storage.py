"""Flat typed buffers shared between views.

A buffer is a one dimensional `numpy.ndarray`. Views hold a reference to it,
so it lives as long as the longest-lived view. Mutating a buffer through one
view is visible through every other view of it; callers that write from
several threads must synchronize themselves.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import numpy as np
import numpy.typing as npt

from .config import config
from .errors import BufferBoundsError

Storage = npt.NDArray[Any]
DTypeLike = Union[str, type, np.dtype, None]


def resolve_dtype(dtype: DTypeLike = None) -> np.dtype:
    """Turn a dtype name or type into a numpy dtype, using the configured default for None."""
    if dtype is None:
        dtype = config.default_dtype
    return np.dtype(dtype)


def allocate(n: int, dtype: DTypeLike = None, fill: Optional[Any] = None) -> Storage:
    """Allocate a flat buffer of `n` elements.

    Args:
    ----
        n: number of elements
        dtype: element type, defaults to the configured default
        fill: optional value for every element, zeros otherwise

    Returns:
    -------
        New buffer.

    """
    if n < 0:
        raise ValueError(f"Cannot allocate a buffer of {n} elements")
    if fill is None:
        return np.zeros(n, dtype=resolve_dtype(dtype))
    return np.full(n, fill, dtype=resolve_dtype(dtype))


def check_position(buffer: Storage, position: int) -> None:
    if position < 0 or position >= buffer.shape[0]:
        raise BufferBoundsError(
            f"Address {position} is outside a buffer of {buffer.shape[0]} elements",
            position=position,
            buffer_size=buffer.shape[0],
        )


def read(buffer: Storage, position: int) -> Any:
    if config.debug:
        check_position(buffer, position)
    return buffer[position]


def write(buffer: Storage, position: int, value: Any) -> None:
    if config.debug:
        check_position(buffer, position)
    buffer[position] = value
