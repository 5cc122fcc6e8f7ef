"""
Categorical encoders.
"""

from typing import Any, List, Optional

import numpy as np

from ..core.data.validation import as_1d_array, check_is_fitted
from ..errors import DimensionMismatchError, InvalidConfigurationError


class LabelEncoder:
    """
    Map labels to integers 0..n_classes-1 in sorted label order.

    Unseen labels in transform raise InvalidConfigurationError.
    """

    def __init__(self):
        self.classes_: Optional[np.ndarray] = None

    def fit(self, y: Any) -> "LabelEncoder":
        self.classes_ = np.unique(as_1d_array(y))
        return self

    def transform(self, y: Any) -> np.ndarray:
        check_is_fitted(self, ["classes_"])
        values = as_1d_array(y)
        unseen = np.setdiff1d(values, self.classes_)
        if unseen.size:
            raise InvalidConfigurationError(f"y contains previously unseen labels: {unseen.tolist()}")
        return np.searchsorted(self.classes_, values)

    def fit_transform(self, y: Any) -> np.ndarray:
        return self.fit(y).transform(y)

    def inverse_transform(self, codes: Any) -> np.ndarray:
        check_is_fitted(self, ["classes_"])
        codes = as_1d_array(codes).astype(int)
        if np.any((codes < 0) | (codes >= len(self.classes_))):
            raise InvalidConfigurationError(f"Codes must be in [0, {len(self.classes_)})")
        return self.classes_[codes]


class OneHotEncoder:
    """
    One indicator column per (feature, category).

    Args:
        handle_unknown: "error" raises on categories not seen in fit,
            "ignore" encodes them as all zeros
    """

    def __init__(self, handle_unknown: str = "error"):
        if handle_unknown not in ("error", "ignore"):
            raise InvalidConfigurationError("handle_unknown must be 'error' or 'ignore'")
        self.handle_unknown = handle_unknown
        self.categories_: Optional[List[np.ndarray]] = None

    @staticmethod
    def _as_columns(x: Any) -> np.ndarray:
        data = np.asarray(x)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        if data.ndim != 2 or data.shape[0] == 0:
            raise DimensionMismatchError(f"Expected a non-empty 2-D array, got shape {data.shape}")
        return data

    def fit(self, x: Any) -> "OneHotEncoder":
        data = self._as_columns(x)
        self.categories_ = [np.unique(data[:, j]) for j in range(data.shape[1])]
        return self

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["categories_"])
        data = self._as_columns(x)
        if data.shape[1] != len(self.categories_):
            raise DimensionMismatchError(
                f"OneHotEncoder was fitted with {len(self.categories_)} features but got {data.shape[1]}"
            )
        blocks = []
        for j, categories in enumerate(self.categories_):
            column = data[:, j]
            known = np.isin(column, categories)
            if not known.all() and self.handle_unknown == "error":
                unknown = np.unique(column[~known]).tolist()
                raise InvalidConfigurationError(f"Found unknown categories {unknown} in column {j}")
            block = np.zeros((len(column), len(categories)))
            rows = np.nonzero(known)[0]
            block[rows, np.searchsorted(categories, column[known])] = 1.0
            blocks.append(block)
        return np.hstack(blocks)

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def inverse_transform(self, encoded: Any) -> np.ndarray:
        check_is_fitted(self, ["categories_"])
        data = np.asarray(encoded, dtype=np.float64)
        expected = sum(len(c) for c in self.categories_)
        if data.ndim != 2 or data.shape[1] != expected:
            raise DimensionMismatchError(f"Expected {expected} encoded columns, got shape {data.shape}")
        columns = []
        offset = 0
        for categories in self.categories_:
            block = data[:, offset:offset + len(categories)]
            columns.append(categories[np.argmax(block, axis=1)])
            offset += len(categories)
        return np.column_stack(columns)

    def get_feature_names(self, input_features: Optional[List[str]] = None) -> List[str]:
        check_is_fitted(self, ["categories_"])
        if input_features is None:
            input_features = [f"x{j}" for j in range(len(self.categories_))]
        return [
            f"{name}_{category}"
            for name, categories in zip(input_features, self.categories_)
            for category in categories.tolist()
        ]
