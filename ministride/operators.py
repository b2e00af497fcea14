"""Collection of the core element functions.

These are applied one element at a time by the kernels in `tensor_ops` and
`fast_ops`, so they must stay plain arithmetic that numba can compile.
"""

from __future__ import annotations

from typing import Iterable


def id(x: float) -> float:
    return x


def neg(x: float) -> float:
    return -x


def add(x: float, y: float) -> float:
    return x + y


def sub(x: float, y: float) -> float:
    return x - y


def mul(x: float, y: float) -> float:
    return x * y


def div(x: float, y: float) -> float:
    return x / y


def max(x: float, y: float) -> float:
    return x if x > y else y


def min(x: float, y: float) -> float:
    return x if x < y else y


def lt(x: float, y: float) -> bool:
    return x < y


def eq(x: float, y: float) -> bool:
    return x == y


def ne(x: float, y: float) -> bool:
    return x != y


def is_close(x: float, y: float) -> bool:
    """$f(x) = |x - y| < 1e-2$"""
    return abs(x - y) < 1e-2


def prod(ls: Iterable[int]) -> int:
    """Product of a sequence of extents, 1 for the empty sequence."""
    out = 1
    for x in ls:
        out *= int(x)
    return out
