"""
Tensor - shaped numeric array.

A Tensor owns a contiguous, row-major buffer plus an ordered shape, with the
invariant ``len(buffer) == prod(shape)``. Arithmetic is out-of-place and never
broadcasts: operands of different shapes are an error, not a reshape.
"""

from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import DimensionMismatchError, ShapeMismatchError
from ..infrastructure.reproducibility import RandomState, make_rng

Scalar = Union[int, float, np.number]
Shape = Tuple[int, ...]


def _prod(shape: Sequence[int]) -> int:
    count = 1
    for dim in shape:
        count *= dim
    return count


class Tensor:
    """
    Shaped, contiguous numeric buffer.

    Usage:
        a = Tensor([2, 3], [1, 2, 3, 4, 5, 6])
        b = Tensor.eye(3)
        c = a.matmul(b)
        c[1, 2]  # 6.0
    """

    def __init__(
        self,
        shape: Sequence[int],
        data: Optional[Iterable[float]] = None,
        dtype: Any = np.float64,
    ):
        """
        Create a tensor from a shape and flat row-major data.

        Args:
            shape: Dimension sizes
            data: Flat values; zeros if None

        Raises:
            ShapeMismatchError: If the data length differs from prod(shape)
        """
        shape = tuple(int(d) for d in shape)
        if any(d < 0 for d in shape):
            raise ShapeMismatchError(f"Negative dimension in shape {shape}")
        count = _prod(shape)

        if data is None:
            buffer = np.zeros(count, dtype=dtype)
        else:
            buffer = np.array(data, dtype=dtype).reshape(-1)
            if buffer.size != count:
                raise ShapeMismatchError(
                    f"Data length {buffer.size} does not match shape {shape} "
                    f"(expected {count} elements)"
                )

        self._shape: Shape = shape
        self._data = buffer

    @classmethod
    def _wrap(cls, array: np.ndarray) -> "Tensor":
        """Wrap an ndarray without copying."""
        tensor = cls.__new__(cls)
        tensor._shape = tuple(int(d) for d in array.shape)
        tensor._data = np.ascontiguousarray(array).reshape(-1)
        return tensor

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls, shape: Sequence[int]) -> "Tensor":
        return cls(shape)

    @classmethod
    def ones(cls, shape: Sequence[int]) -> "Tensor":
        return cls.full(shape, 1.0)

    @classmethod
    def full(cls, shape: Sequence[int], value: float) -> "Tensor":
        return cls._wrap(np.full(tuple(shape), float(value)))

    @classmethod
    def eye(cls, size: int) -> "Tensor":
        """Identity matrix of shape [size, size]."""
        return cls._wrap(np.eye(size))

    identity = eye

    @classmethod
    def from_data(cls, data: Any) -> "Tensor":
        """
        Build a tensor from nested lists or an ndarray, inferring the shape.

        Raises:
            ShapeMismatchError: If nested lists are ragged
        """
        if isinstance(data, Tensor):
            return data.copy()
        try:
            array = np.array(data, dtype=np.float64)
        except ValueError as exc:
            raise ShapeMismatchError(f"Ragged nested data: {exc}") from exc
        return cls._wrap(array.copy())

    @classmethod
    def random_uniform(
        cls,
        shape: Sequence[int],
        low: float = 0.0,
        high: float = 1.0,
        random_state: RandomState = None,
    ) -> "Tensor":
        rng = make_rng(random_state)
        return cls._wrap(rng.uniform(low, high, size=tuple(shape)))

    @classmethod
    def randn(
        cls,
        shape: Sequence[int],
        mean: float = 0.0,
        std: float = 1.0,
        random_state: RandomState = None,
    ) -> "Tensor":
        rng = make_rng(random_state)
        return cls._wrap(rng.normal(mean, std, size=tuple(shape)))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def rank(self) -> int:
        return len(self._shape)

    @property
    def count(self) -> int:
        return self._data.size

    size = count

    @property
    def data(self) -> np.ndarray:
        """The flat backing buffer. Mutating it mutates the tensor."""
        return self._data

    @property
    def T(self) -> "Tensor":
        return self.transpose()

    def __len__(self) -> int:
        if not self._shape:
            raise TypeError("len() of a rank-0 tensor")
        return self._shape[0]

    def __repr__(self) -> str:
        return f"Tensor(shape={list(self._shape)}, data={self.to_numpy().tolist()})"

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def _flat_index(self, indices: Sequence[int]) -> int:
        if len(indices) != self.rank:
            raise DimensionMismatchError(
                f"Expected {self.rank} indices for shape {self._shape}, got {len(indices)}"
            )
        flat = 0
        stride = 1
        for axis in range(self.rank - 1, -1, -1):
            index = int(indices[axis])
            dim = self._shape[axis]
            if index < 0:
                index += dim
            if not 0 <= index < dim:
                raise IndexError(f"Index {indices[axis]} out of range for axis {axis} of size {dim}")
            flat += index * stride
            stride *= dim
        return flat

    def __getitem__(self, key: Union[int, Tuple[int, ...]]) -> Union[float, "Tensor"]:
        if isinstance(key, tuple):
            return float(self._data[self._flat_index(key)])
        if self.rank == 1:
            return float(self._data[self._flat_index((key,))])
        return self.row(key)

    def __setitem__(self, key: Union[int, Tuple[int, ...]], value: float) -> None:
        if not isinstance(key, tuple):
            key = (key,)
        self._data[self._flat_index(key)] = value

    def row(self, index: int) -> "Tensor":
        """Slice along the first axis; the result owns a copy."""
        if self.rank < 2:
            raise DimensionMismatchError("row() requires a tensor of rank >= 2")
        return Tensor._wrap(self.to_numpy()[index].copy())

    def column(self, index: int) -> "Tensor":
        if self.rank != 2:
            raise DimensionMismatchError("column() requires a rank-2 tensor")
        return Tensor._wrap(self.to_numpy()[:, index].copy())

    # ------------------------------------------------------------------
    # Shape manipulation
    # ------------------------------------------------------------------

    def reshape(self, new_shape: Sequence[int]) -> "Tensor":
        """
        Return a tensor with the same data and a new shape.

        One dimension may be -1 and is inferred.

        Raises:
            ShapeMismatchError: If prod(new_shape) != count
        """
        resolved = [int(d) for d in new_shape]
        if resolved.count(-1) > 1:
            raise ShapeMismatchError("Only one dimension can be -1")
        if -1 in resolved:
            known = _prod(d for d in resolved if d != -1)
            if known == 0 or self.count % known != 0:
                raise ShapeMismatchError(f"Cannot reshape {self._shape} into {tuple(new_shape)}")
            resolved[resolved.index(-1)] = self.count // known
        if _prod(resolved) != self.count:
            raise ShapeMismatchError(
                f"Cannot reshape tensor of {self.count} elements into shape {tuple(new_shape)}"
            )
        return Tensor(resolved, self._data.copy())

    def flatten(self) -> "Tensor":
        return self.reshape([self.count])

    def transpose(self, axes: Optional[Sequence[int]] = None) -> "Tensor":
        """
        Permute axes. Defaults to reversing them (a swap for rank 2).

        Raises:
            DimensionMismatchError: If axes is not a permutation of range(rank)
        """
        if axes is None:
            axes = tuple(reversed(range(self.rank)))
        axes = tuple(int(a) for a in axes)
        if sorted(axes) != list(range(self.rank)):
            raise DimensionMismatchError(f"axes {axes} is not a permutation for rank {self.rank}")
        return Tensor._wrap(np.transpose(self.to_numpy(), axes).copy())

    def copy(self) -> "Tensor":
        return Tensor(self._shape, self._data.copy())

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _binary(self, other: Union["Tensor", Scalar], op: Callable, name: str) -> "Tensor":
        if isinstance(other, Tensor):
            if other.shape != self._shape:
                raise ShapeMismatchError(
                    f"Cannot {name} tensors of shape {self._shape} and {other.shape}"
                )
            return Tensor(self._shape, op(self._data, other._data))
        if isinstance(other, (int, float, np.number)):
            return Tensor(self._shape, op(self._data, float(other)))
        return NotImplemented

    def __add__(self, other):
        return self._binary(other, np.add, "add")

    def __radd__(self, other):
        return self._binary(other, np.add, "add")

    def __sub__(self, other):
        return self._binary(other, np.subtract, "subtract")

    def __rsub__(self, other):
        return self._binary(other, lambda a, b: b - a, "subtract")

    def __mul__(self, other):
        return self._binary(other, np.multiply, "multiply")

    def __rmul__(self, other):
        return self._binary(other, np.multiply, "multiply")

    def __truediv__(self, other):
        return self._binary(other, np.divide, "divide")

    def __rtruediv__(self, other):
        return self._binary(other, lambda a, b: b / a, "divide")

    def __neg__(self) -> "Tensor":
        return Tensor(self._shape, -self._data)

    def __pow__(self, exponent: float) -> "Tensor":
        return self.pow(exponent)

    def __matmul__(self, other: "Tensor") -> "Tensor":
        return self.matmul(other)

    def matmul(self, other: "Tensor") -> "Tensor":
        """
        Matrix product of two rank-2 tensors.

        Raises:
            DimensionMismatchError: If either operand is not rank 2 or the
                inner dimensions differ
        """
        if self.rank != 2 or other.rank != 2:
            raise DimensionMismatchError(
                f"matmul requires rank-2 operands, got ranks {self.rank} and {other.rank}"
            )
        if self._shape[1] != other.shape[0]:
            raise DimensionMismatchError(
                f"matmul inner dimensions differ: {self._shape} @ {other.shape}"
            )
        return Tensor._wrap(self.to_numpy() @ other.to_numpy())

    def dot(self, other: "Tensor") -> float:
        """Inner product of two equally-sized tensors (flattened)."""
        if self.count != other.count:
            raise ShapeMismatchError(f"dot requires equal sizes, got {self.count} and {other.count}")
        return float(np.dot(self._data, other._data))

    # ------------------------------------------------------------------
    # Elementwise functions
    # ------------------------------------------------------------------

    def apply(self, fn: Callable[[np.ndarray], np.ndarray]) -> "Tensor":
        """Apply a vectorised function to the buffer, returning a new tensor."""
        return Tensor(self._shape, fn(self._data.copy()))

    def exp(self) -> "Tensor":
        return self.apply(np.exp)

    def log(self) -> "Tensor":
        return self.apply(np.log)

    def sqrt(self) -> "Tensor":
        return self.apply(np.sqrt)

    def abs(self) -> "Tensor":
        return self.apply(np.abs)

    def pow(self, exponent: float) -> "Tensor":
        return self.apply(lambda d: np.power(d, exponent))

    def clip(self, min_value: float, max_value: float) -> "Tensor":
        return self.apply(lambda d: np.clip(d, min_value, max_value))

    def normalize(self) -> "Tensor":
        """Shift to zero mean and scale to unit standard deviation."""
        std = self.std()
        if std == 0:
            std = 1.0
        return (self - self.mean()) * (1.0 / std)

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------

    def _reduce(self, fn: Callable, axis: Optional[int]) -> Union[float, "Tensor"]:
        if axis is None:
            return float(fn(self._data))
        if not -self.rank <= axis < self.rank:
            raise DimensionMismatchError(f"axis {axis} out of range for rank {self.rank}")
        return Tensor._wrap(np.asarray(fn(self.to_numpy(), axis=axis), dtype=np.float64))

    def sum(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.sum, axis)

    def mean(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.mean, axis)

    def variance(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.var, axis)

    def std(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.std, axis)

    def max(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.max, axis)

    def min(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        return self._reduce(np.min, axis)

    def argmax(self, axis: Optional[int] = None) -> Union[int, List[int]]:
        """Index of the largest value; per-slice indices when axis is given."""
        if axis is None:
            return int(np.argmax(self._data))
        return np.argmax(self.to_numpy(), axis=axis).reshape(-1).tolist()

    def argmin(self, axis: Optional[int] = None) -> Union[int, List[int]]:
        if axis is None:
            return int(np.argmin(self._data))
        return np.argmin(self.to_numpy(), axis=axis).reshape(-1).tolist()

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_numpy(self) -> np.ndarray:
        """Shaped view of the buffer."""
        return self._data.reshape(self._shape)

    def to_list(self) -> Any:
        return self.to_numpy().tolist()

    def allclose(self, other: "Tensor", rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        return self._shape == other.shape and bool(
            np.allclose(self._data, other._data, rtol=rtol, atol=atol)
        )
