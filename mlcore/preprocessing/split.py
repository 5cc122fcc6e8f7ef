"""
Train/test splitting and k-fold cross-validation indices.
"""

from typing import Any, Iterator, List, Tuple, Union

import numpy as np

from ..errors import DimensionMismatchError, InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng


def _n_test(n_samples: int, test_size: Union[float, int]) -> int:
    if isinstance(test_size, (int, np.integer)) and not isinstance(test_size, bool):
        n_test = int(test_size)
    elif isinstance(test_size, float) and 0 < test_size < 1:
        n_test = int(round(n_samples * test_size))
    else:
        raise InvalidConfigurationError(
            f"test_size must be a float in (0, 1) or a positive int, got {test_size!r}"
        )
    if not 0 < n_test < n_samples:
        raise InvalidConfigurationError(
            f"test_size={test_size!r} leaves an empty split for {n_samples} samples"
        )
    return n_test


def train_test_split(
    *arrays: Any,
    test_size: Union[float, int] = 0.25,
    shuffle: bool = True,
    random_state: RandomState = None,
) -> List[np.ndarray]:
    """
    Split arrays into random train and test subsets.

    Args:
        *arrays: Arrays sharing their first dimension
        test_size: Fraction (rounded to the nearest sample) or absolute count
        shuffle: Permute samples before splitting
        random_state: Seed or generator for the permutation

    Returns:
        [a_train, a_test, b_train, b_test, ...] in argument order

    Raises:
        DimensionMismatchError: Arrays of different lengths, or none given
        InvalidConfigurationError: test_size leaving an empty split
    """
    if not arrays:
        raise DimensionMismatchError("At least one array is required")
    converted = [np.asarray(a) for a in arrays]
    n_samples = len(converted[0])
    if any(len(a) != n_samples for a in converted):
        raise DimensionMismatchError(
            f"Arrays have inconsistent lengths: {[len(a) for a in converted]}"
        )

    n_test = _n_test(n_samples, test_size)
    indices = make_rng(random_state).permutation(n_samples) if shuffle else np.arange(n_samples)
    train_idx, test_idx = indices[: n_samples - n_test], indices[n_samples - n_test:]

    result = []
    for array in converted:
        result.extend([array[train_idx], array[test_idx]])
    return result


class KFold:
    """
    K-fold cross-validation splitter.

    The first n_samples % n_splits folds get one extra sample, so every index
    appears in exactly one test fold.
    """

    def __init__(self, n_splits: int = 5, shuffle: bool = False, random_state: RandomState = None):
        if n_splits < 2:
            raise InvalidConfigurationError("n_splits must be >= 2")
        self.n_splits = n_splits
        self.shuffle = shuffle
        self.random_state = random_state

    def get_n_splits(self) -> int:
        return self.n_splits

    def split(self, x: Any) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """
        Yield (train_indices, test_indices) for each fold.

        Args:
            x: Sample array, or the number of samples as an int
        """
        n_samples = int(x) if isinstance(x, (int, np.integer)) else len(x)
        if n_samples < self.n_splits:
            raise InvalidConfigurationError(
                f"Cannot split {n_samples} samples into {self.n_splits} folds"
            )
        indices = np.arange(n_samples)
        if self.shuffle:
            indices = make_rng(self.random_state).permutation(n_samples)

        fold_sizes = np.full(self.n_splits, n_samples // self.n_splits, dtype=int)
        fold_sizes[: n_samples % self.n_splits] += 1
        start = 0
        for size in fold_sizes:
            test = indices[start:start + size]
            train = np.concatenate([indices[:start], indices[start + size:]])
            yield train, test
            start += size
