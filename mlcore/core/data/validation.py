"""
Input validation shared by estimators and transformers.

Everything here converts caller data to float numpy arrays and raises from
the error taxonomy in ``mlcore.errors`` instead of coercing bad input.
"""

from typing import Any, Iterable, Tuple

import numpy as np

from ...errors import DimensionMismatchError, NotFittedError


def as_2d_array(x: Any, name: str = "X") -> np.ndarray:
    """
    Convert to a float [samples, features] array.

    A 1-D input is treated as a single feature column.

    Raises:
        DimensionMismatchError: Empty input or rank above 2
    """
    if hasattr(x, "to_numpy"):
        x = x.to_numpy()
    try:
        array = np.asarray(x, dtype=np.float64)
    except ValueError as exc:
        raise DimensionMismatchError(f"{name} is ragged or non-numeric: {exc}") from exc
    if array.ndim == 1:
        array = array.reshape(-1, 1)
    if array.ndim != 2:
        raise DimensionMismatchError(f"{name} must be 2-D, got {array.ndim} dimensions")
    if array.shape[0] == 0 or array.shape[1] == 0:
        raise DimensionMismatchError(f"{name} is empty (shape {array.shape})")
    return array


def as_1d_array(y: Any, name: str = "y", dtype: Any = None) -> np.ndarray:
    """Convert targets to a 1-D array; a [n, 1] column is flattened."""
    if hasattr(y, "to_numpy"):
        y = y.to_numpy()
    array = np.asarray(y) if dtype is None else np.asarray(y, dtype=dtype)
    if array.ndim == 2 and array.shape[1] == 1:
        array = array.reshape(-1)
    if array.ndim != 1:
        raise DimensionMismatchError(f"{name} must be 1-D, got shape {array.shape}")
    if array.shape[0] == 0:
        raise DimensionMismatchError(f"{name} is empty")
    return array


def check_xy(x: Any, y: Any, y_dtype: Any = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate a training pair.

    Raises:
        DimensionMismatchError: If len(x) != len(y) or either is empty
    """
    x_arr = as_2d_array(x)
    y_arr = as_1d_array(y, dtype=y_dtype)
    if x_arr.shape[0] != y_arr.shape[0]:
        raise DimensionMismatchError(
            f"X has {x_arr.shape[0]} samples but y has {y_arr.shape[0]}"
        )
    return x_arr, y_arr


def check_is_fitted(estimator: Any, attributes: Iterable[str]) -> None:
    """
    Raise NotFittedError unless every attribute is set (not None).

    Args:
        estimator: Model or transformer instance
        attributes: Names of fitted attributes
    """
    if any(getattr(estimator, attr, None) is None for attr in attributes):
        raise NotFittedError(
            f"This {type(estimator).__name__} instance is not fitted yet. "
            f"Call 'fit' before using it."
        )


def check_n_features(x: np.ndarray, expected: int, owner: str) -> None:
    if x.shape[1] != expected:
        raise DimensionMismatchError(
            f"{owner} was fitted with {expected} features but got {x.shape[1]}"
        )
