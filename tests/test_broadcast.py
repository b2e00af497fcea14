import numpy as np
import pytest
from hypothesis import given
from hypothesis.strategies import DataObject, data, integers, lists

import ministride
from ministride import (
    IncompatibleStrideError,
    ShapeMismatchError,
    TensorData,
    broadcast_binary_op,
    broadcast_binary_op_,
    operators,
    shape_broadcast,
)

from .tensor_strategies import tensor_data


def arange_data(*shape: int) -> TensorData:
    return TensorData(np.arange(operators.prod(shape), dtype=np.float64), shape)


def values(td: TensorData) -> list:
    return [td.get(i) for i in td.indices()]


@pytest.mark.broadcast
def test_shape_broadcast() -> None:
    c = shape_broadcast((1,), (5, 5))
    assert c == (5, 5)

    c = shape_broadcast((5, 5), (1,))
    assert c == (5, 5)

    c = shape_broadcast((1, 5, 5), (5, 5))
    assert c == (1, 5, 5)

    c = shape_broadcast((5, 1, 5, 1), (1, 5, 1, 5))
    assert c == (5, 5, 5, 5)

    c = shape_broadcast((3, 7, 1), (1, 5))
    assert c == (3, 7, 5)

    c = shape_broadcast((2, 5), (5,))
    assert c == (2, 5)

    c = shape_broadcast((), (2, 3))
    assert c == (2, 3)

    c = shape_broadcast((0,), (1,))
    assert c == (0,)


@pytest.mark.broadcast
def test_shape_broadcast_mismatch() -> None:
    with pytest.raises(ShapeMismatchError) as exc:
        shape_broadcast((4, 3, 2, 1), (4, 3, 2))
    assert exc.value.dim == -2
    assert exc.value.extents == (2, 3)
    assert "-2" in str(exc.value)

    with pytest.raises(ShapeMismatchError) as exc:
        shape_broadcast((5, 2), (5,))
    assert exc.value.dim == -1
    assert exc.value.extents == (2, 5)

    with pytest.raises(ShapeMismatchError):
        shape_broadcast((0,), (3,))


@pytest.mark.broadcast
@given(
    lists(integers(min_value=1, max_value=3), max_size=4),
    lists(integers(min_value=1, max_value=3), max_size=4),
)
def test_shape_broadcast_property(shape_a: list, shape_b: list) -> None:
    n = max(len(shape_a), len(shape_b))
    a = [1] * (n - len(shape_a)) + shape_a
    b = [1] * (n - len(shape_b)) + shape_b
    compatible = all(x == y or x == 1 or y == 1 for x, y in zip(a, b))
    if compatible:
        assert shape_broadcast(shape_a, shape_b) == tuple(max(x, y) for x, y in zip(a, b))
    else:
        with pytest.raises(ShapeMismatchError):
            shape_broadcast(shape_a, shape_b)


@pytest.mark.broadcast
def test_expand_uses_zero_strides() -> None:
    col = arange_data(3, 1)
    wide = col.expand(3, 4)
    assert wide.shape == (3, 4)
    assert wide.strides == (1, 0)
    assert wide.shares_storage(col)
    assert values(wide) == [0.0] * 4 + [1.0] * 4 + [2.0] * 4

    row = arange_data(4)
    assert row.expand(2, 3, 4).strides == (0, 0, 1)
    assert ministride.broadcast_strides((4,), (1,), (2, 3, 4)) == (0, 0, 1)

    with pytest.raises(ShapeMismatchError):
        row.expand(3)
    with pytest.raises(ShapeMismatchError):
        arange_data(2, 4).expand(4)


@pytest.mark.broadcast
def test_broadcast_binary_op() -> None:
    a = arange_data(3, 1)
    b = TensorData([0.0, 10.0, 20.0, 30.0], (4,))
    out = broadcast_binary_op(operators.add, a, b)
    assert out.shape == (3, 4)
    assert out.is_contiguous()
    assert not out.shares_storage(a) and not out.shares_storage(b)
    for i in range(3):
        for j in range(4):
            assert out.get((i, j)) == i + 10 * j

    # Operands are untouched.
    assert values(a) == [0.0, 1.0, 2.0]
    assert values(b) == [0.0, 10.0, 20.0, 30.0]


@pytest.mark.broadcast
def test_broadcast_binary_op_mismatch() -> None:
    with pytest.raises(ShapeMismatchError) as exc:
        broadcast_binary_op(operators.mul, arange_data(4, 3, 2, 1), arange_data(4, 3, 2))
    assert exc.value.extents == (2, 3)


@pytest.mark.broadcast
def test_broadcast_binary_op_dtypes() -> None:
    a = TensorData(np.arange(3), (3,))
    b = TensorData(np.arange(3), (3,))
    assert broadcast_binary_op(operators.add, a, b).dtype == np.int64
    lt = broadcast_binary_op(
        operators.lt, a, TensorData([1], (1,), dtype="int64"), promote=ministride.bool_dtype
    )
    assert lt.dtype == np.bool_
    assert values(lt) == [True, False, False]


@pytest.mark.broadcast
def test_broadcast_binary_op_inplace() -> None:
    a = TensorData(np.zeros(6), (2, 3))
    b = TensorData([1.0, 2.0, 3.0], (3,))
    out = broadcast_binary_op_(operators.add, a, b)
    assert out is a
    assert values(a) == [1.0, 2.0, 3.0, 1.0, 2.0, 3.0]


@pytest.mark.broadcast
def test_inplace_cannot_grow() -> None:
    a = TensorData([1.0, 2.0, 3.0], (3,))
    with pytest.raises(ShapeMismatchError):
        broadcast_binary_op_(operators.add, a, arange_data(2, 3))
    assert values(a) == [1.0, 2.0, 3.0]


@pytest.mark.broadcast
def test_inplace_rejects_aliased_target() -> None:
    a = arange_data(1, 3).expand(2, 3)
    with pytest.raises(IncompatibleStrideError) as exc:
        broadcast_binary_op_(operators.add, a, arange_data(2, 3))
    assert exc.value.dim == 0
    assert values(a.index(0)) == [0.0, 1.0, 2.0]


@pytest.mark.broadcast
def test_inplace_visible_through_other_views() -> None:
    base = arange_data(2, 3)
    t = base.transpose(0, 1)
    broadcast_binary_op_(operators.mul, t, TensorData([10.0, 100.0], (2,)))
    assert values(base) == [0.0, 10.0, 20.0, 300.0, 400.0, 500.0]


@pytest.mark.broadcast
def test_inplace_casts_to_target_dtype() -> None:
    a = TensorData(np.arange(3), (3,))
    broadcast_binary_op_(operators.mul, a, TensorData([1.5], ()))
    assert a.dtype == np.int64
    assert values(a) == [0, 1, 3]


@pytest.mark.broadcast
@given(data())
def test_zip_matches_elementwise(data: DataObject) -> None:
    a = data.draw(tensor_data(shape=(2, 1, 3)))
    b = data.draw(tensor_data(shape=(4, 3)))
    out = broadcast_binary_op(operators.sub, a, b)
    assert out.shape == (2, 4, 3)
    for i, j, k in out.indices():
        assert out.get((i, j, k)) == a.get((i, 0, k)) - b.get((j, k))
