"""
Missing-value imputation.
"""

from typing import Any, Optional

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features
from ..errors import InvalidConfigurationError


class SimpleImputer:
    """
    Replace missing entries column-wise.

    Args:
        strategy: "mean", "median", "most_frequent" or "constant"
        fill_value: Replacement used by the "constant" strategy
        missing_values: Marker for missing entries (NaN by default)

    A column with no observed values cannot be imputed by a statistic and
    raises ValueError in fit.
    """

    STRATEGIES = ("mean", "median", "most_frequent", "constant")

    def __init__(
        self,
        strategy: str = "mean",
        fill_value: Optional[float] = None,
        missing_values: float = np.nan,
    ):
        if strategy not in self.STRATEGIES:
            raise InvalidConfigurationError(f"strategy must be one of {self.STRATEGIES}, got {strategy}")
        if strategy == "constant" and fill_value is None:
            raise InvalidConfigurationError("strategy='constant' requires a fill_value")
        self.strategy = strategy
        self.fill_value = fill_value
        self.missing_values = missing_values
        self.statistics_: Optional[np.ndarray] = None

    def _missing_mask(self, data: np.ndarray) -> np.ndarray:
        if np.isnan(self.missing_values):
            return np.isnan(data)
        return data == self.missing_values

    def fit(self, x: Any) -> "SimpleImputer":
        data = as_2d_array(x)
        mask = self._missing_mask(data)
        stats = np.empty(data.shape[1])
        for j in range(data.shape[1]):
            observed = data[~mask[:, j], j]
            if self.strategy == "constant":
                stats[j] = self.fill_value
            elif observed.size == 0:
                raise InvalidConfigurationError(f"Column {j} has no observed values to compute a {self.strategy}")
            elif self.strategy == "mean":
                stats[j] = observed.mean()
            elif self.strategy == "median":
                stats[j] = np.median(observed)
            else:
                # np.unique sorts, so ties resolve to the smallest value
                values, counts = np.unique(observed, return_counts=True)
                stats[j] = values[np.argmax(counts)]
        self.statistics_ = stats
        return self

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["statistics_"])
        data = as_2d_array(x).copy()
        check_n_features(data, len(self.statistics_), type(self).__name__)
        mask = self._missing_mask(data)
        rows, cols = np.nonzero(mask)
        data[rows, cols] = self.statistics_[cols]
        return data

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)
