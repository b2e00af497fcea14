from typing import List, Optional

from hypothesis import strategies as st
from hypothesis.strategies import DrawFn, SearchStrategy, composite, integers, lists, permutations

import ministride
from ministride import Tensor, TensorBackend, TensorData, UserIndex, UserShape

from .strategies import small_floats, small_ints


@composite
def shapes(draw: DrawFn) -> UserShape:
    lsize = draw(lists(small_ints, min_size=1, max_size=4))
    return tuple(lsize)


@composite
def same_size_shapes(draw: DrawFn, shape: UserShape) -> UserShape:
    """Another shape holding as many elements as `shape`."""
    extents = list(draw(permutations(list(shape))))
    for _ in range(draw(integers(min_value=0, max_value=2))):
        extents.insert(draw(integers(min_value=0, max_value=len(extents))), 1)
    if len(extents) > 1 and draw(st.booleans()):
        extents = [extents[0] * extents[1]] + extents[2:]
    return tuple(extents)


@composite
def tensor_data(
    draw: DrawFn,
    numbers: SearchStrategy[float] = small_floats,
    shape: Optional[UserShape] = None,
) -> TensorData:
    """A view of `shape` whose strides are a random permutation of a contiguous layout."""
    if shape is None:
        shape = draw(shapes())
    size = int(ministride.operators.prod(shape))
    data = draw(lists(numbers, min_size=size, max_size=size))
    permute: List[int] = draw(permutations(range(len(shape))))
    permute_shape = tuple([shape[i] for i in permute])
    z = sorted(enumerate(permute), key=lambda a: a[1])
    reverse_permute = [a[0] for a in z]
    td = TensorData(data, permute_shape)
    ret = td.permute(*reverse_permute)
    assert ret.shape[0] == shape[0]
    return ret


@composite
def indices(draw: DrawFn, layout: Tensor | TensorData) -> UserIndex:
    return tuple((draw(integers(min_value=0, max_value=s - 1)) for s in layout.shape))


@composite
def tensors(
    draw: DrawFn,
    numbers: SearchStrategy[float] = small_floats,
    backend: Optional[TensorBackend] = None,
    shape: Optional[UserShape] = None,
) -> Tensor:
    backend = ministride.SimpleBackend if backend is None else backend
    td = draw(tensor_data(numbers, shape=shape))
    return ministride.Tensor(td, backend=backend)
