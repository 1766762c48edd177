from collections.abc import Callable

import numpy as np

from mdfiles.types import Int1DArray, SingleDType, TrajNDArray

# * Reader functions receive one integer index array per dimension, in the
# * order (time, atom_id, xyz_dim). Integer keys are turned into length-1
# * arrays before the call and dropped from the result afterwards.


type TrajectoryParserFn = (
    Callable[[Int1DArray], TrajNDArray]
    | Callable[[Int1DArray, Int1DArray], TrajNDArray]
    | Callable[[Int1DArray, Int1DArray, Int1DArray], TrajNDArray]
)
type OuterIndex = int | np.integer | slice | Int1DArray


def normalize_index_to_array(index: OuterIndex | None, upper_bound: int) -> Int1DArray:
    """Convert an outer index along one dimension into explicit positions.

    Negative positions count from `upper_bound`. Raises IndexError for
    positions outside ``[-upper_bound, upper_bound)``.
    """
    if isinstance(index, np.ndarray):
        if index.ndim > 1:
            raise IndexError("index cannot be multidimensional")

        index = np.asarray(index, dtype=np.int64)
        if np.any(index >= upper_bound) or np.any(index < -upper_bound):
            raise IndexError("index extends beyond upper bound")

        return np.where(index < 0, index + upper_bound, index)

    if isinstance(index, (int, np.integer)):
        if not -upper_bound <= index < upper_bound:
            raise IndexError("index extends beyond upper bound")

        return np.array([index % upper_bound], dtype=np.int64)

    if index is None:
        index = slice(None)

    if not isinstance(index, slice):
        raise IndexError(f"invalid index type: {type(index)}")

    return np.arange(*index.indices(upper_bound), dtype=np.int64)


class OnDiskArray:
    """Array whose values are produced by a reader function on indexing."""

    def __init__(
        self,
        parser_fn: TrajectoryParserFn,
        shape: tuple[int, ...],
        dtype: SingleDType = "float64",
    ) -> None:
        self.parser_fn = parser_fn
        self.shape = shape
        self.dtype = np.dtype(dtype)

    def __repr__(self) -> str:
        return f"OnDiskArray(shape={self.shape}, dtype={self.dtype})"

    def __getitem__(self, key: OuterIndex | tuple[OuterIndex, ...], /) -> TrajNDArray:
        if not isinstance(key, tuple):
            key = (key,)

        if len(key) > len(self.shape):
            raise IndexError(
                f"too many indices: array is {len(self.shape)}-dimensional, "
                f"but {len(key)} were indexed"
            )

        key = key + (slice(None),) * (len(self.shape) - len(key))

        indices = tuple(
            normalize_index_to_array(index, upper_bound)
            for index, upper_bound in zip(key, self.shape)
        )

        arr = np.asarray(self.parser_fn(*indices), dtype=self.dtype)

        squeezed = tuple(
            0 if isinstance(index, (int, np.integer)) else slice(None) for index in key
        )
        return arr[squeezed]
