"""
Feature scaling transformers.

Every transformer learns per-feature statistics in ``fit`` and applies them
in ``transform``; transforming before fitting raises NotFittedError.
"""

from typing import Any, Optional, Tuple
import logging

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features
from ..errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


class StandardScaler:
    """Zero mean and unit variance per feature. Constant features keep scale 1."""

    def __init__(self, with_mean: bool = True, with_std: bool = True):
        self.with_mean = with_mean
        self.with_std = with_std
        self.mean_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None

    def fit(self, x: Any) -> "StandardScaler":
        data = as_2d_array(x)
        mean = data.mean(axis=0)
        std = data.std(axis=0)
        std[std == 0] = 1.0
        self.mean_ = mean if self.with_mean else np.zeros_like(mean)
        self.scale_ = std if self.with_std else np.ones_like(std)
        return self

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["mean_", "scale_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.mean_), type(self).__name__)
        return (data - self.mean_) / self.scale_

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def inverse_transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["mean_", "scale_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.mean_), type(self).__name__)
        return data * self.scale_ + self.mean_


class MinMaxScaler:
    """Linearly map each feature onto feature_range."""

    def __init__(self, feature_range: Tuple[float, float] = (0.0, 1.0)):
        low, high = feature_range
        if low >= high:
            raise InvalidConfigurationError(f"Invalid feature_range {feature_range}")
        self.feature_range = (float(low), float(high))
        self.data_min_: Optional[np.ndarray] = None
        self.data_max_: Optional[np.ndarray] = None

    def fit(self, x: Any) -> "MinMaxScaler":
        data = as_2d_array(x)
        self.data_min_ = data.min(axis=0)
        self.data_max_ = data.max(axis=0)
        return self

    @property
    def data_range_(self) -> np.ndarray:
        check_is_fitted(self, ["data_min_", "data_max_"])
        span = self.data_max_ - self.data_min_
        span[span == 0] = 1.0
        return span

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["data_min_", "data_max_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.data_min_), type(self).__name__)
        low, high = self.feature_range
        return (data - self.data_min_) / self.data_range_ * (high - low) + low

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def inverse_transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["data_min_", "data_max_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.data_min_), type(self).__name__)
        low, high = self.feature_range
        return (data - low) / (high - low) * self.data_range_ + self.data_min_


class Normalizer:
    """Scale each sample (row) to unit l1, l2 or max norm. Zero rows stay zero."""

    NORMS = ("l1", "l2", "max")

    def __init__(self, norm: str = "l2"):
        if norm not in self.NORMS:
            raise InvalidConfigurationError(f"norm must be one of {self.NORMS}, got {norm}")
        self.norm = norm
        self.n_features_in_: Optional[int] = None

    def fit(self, x: Any) -> "Normalizer":
        self.n_features_in_ = as_2d_array(x).shape[1]
        return self

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["n_features_in_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, type(self).__name__)
        if self.norm == "l1":
            norms = np.abs(data).sum(axis=1)
        elif self.norm == "l2":
            norms = np.sqrt((data * data).sum(axis=1))
        else:
            norms = np.abs(data).max(axis=1)
        norms[norms == 0] = 1.0
        return data / norms[:, None]

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)


class RobustScaler:
    """Center on the median and scale by the interquartile range (IQR 0 -> 1)."""

    def __init__(self, quantile_range: Tuple[float, float] = (25.0, 75.0)):
        q_low, q_high = quantile_range
        if not 0 <= q_low < q_high <= 100:
            raise InvalidConfigurationError(f"Invalid quantile_range {quantile_range}")
        self.quantile_range = quantile_range
        self.center_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None

    def fit(self, x: Any) -> "RobustScaler":
        data = as_2d_array(x)
        self.center_ = np.median(data, axis=0)
        q_low, q_high = np.percentile(data, self.quantile_range, axis=0)
        iqr = q_high - q_low
        iqr[iqr == 0] = 1.0
        self.scale_ = iqr
        return self

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["center_", "scale_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.center_), type(self).__name__)
        return (data - self.center_) / self.scale_

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def inverse_transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["center_", "scale_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.center_), type(self).__name__)
        return data * self.scale_ + self.center_


# ----------------------------------------------------------------------
# Power transforms
# ----------------------------------------------------------------------

def _yeo_johnson(x: np.ndarray, lmbda: float) -> np.ndarray:
    out = np.empty_like(x)
    pos = x >= 0
    if abs(lmbda) < 1e-10:
        out[pos] = np.log1p(x[pos])
    else:
        out[pos] = (np.power(x[pos] + 1, lmbda) - 1) / lmbda
    if abs(lmbda - 2) < 1e-10:
        out[~pos] = -np.log1p(-x[~pos])
    else:
        out[~pos] = -(np.power(-x[~pos] + 1, 2 - lmbda) - 1) / (2 - lmbda)
    return out


def _yeo_johnson_inverse(y: np.ndarray, lmbda: float) -> np.ndarray:
    out = np.empty_like(y)
    pos = y >= 0
    if abs(lmbda) < 1e-10:
        out[pos] = np.expm1(y[pos])
    else:
        out[pos] = np.power(y[pos] * lmbda + 1, 1 / lmbda) - 1
    if abs(lmbda - 2) < 1e-10:
        out[~pos] = -np.expm1(-y[~pos])
    else:
        out[~pos] = 1 - np.power(-(2 - lmbda) * y[~pos] + 1, 1 / (2 - lmbda))
    return out


def _box_cox(x: np.ndarray, lmbda: float) -> np.ndarray:
    if abs(lmbda) < 1e-10:
        return np.log(x)
    return (np.power(x, lmbda) - 1) / lmbda


def _box_cox_inverse(y: np.ndarray, lmbda: float) -> np.ndarray:
    if abs(lmbda) < 1e-10:
        return np.exp(y)
    return np.power(y * lmbda + 1, 1 / lmbda)


def _golden_section_max(fn, low: float, high: float, tol: float = 1e-6) -> float:
    ratio = (np.sqrt(5) - 1) / 2
    a, b = low, high
    c = b - ratio * (b - a)
    d = a + ratio * (b - a)
    fc, fd = fn(c), fn(d)
    while b - a > tol:
        if fc > fd:
            b, d, fd = d, c, fc
            c = b - ratio * (b - a)
            fc = fn(c)
        else:
            a, c, fc = c, d, fd
            d = a + ratio * (b - a)
            fd = fn(d)
    return (a + b) / 2


class PowerTransformer:
    """
    Per-feature power transform towards a Gaussian shape.

    The exponent for each feature maximizes the profile log-likelihood over
    [-2, 2]. With standardize=True the output is also zero-mean, unit-variance.

    Args:
        method: "yeo-johnson" (any real data) or "box-cox" (strictly positive)
        standardize: Apply a StandardScaler after the power transform
    """

    METHODS = ("yeo-johnson", "box-cox")

    def __init__(self, method: str = "yeo-johnson", standardize: bool = True):
        if method not in self.METHODS:
            raise InvalidConfigurationError(f"method must be one of {self.METHODS}, got {method}")
        self.method = method
        self.standardize = standardize
        self.lambdas_: Optional[np.ndarray] = None
        self._scaler: Optional[StandardScaler] = None

    def _forward(self, column: np.ndarray, lmbda: float) -> np.ndarray:
        if self.method == "box-cox":
            return _box_cox(column, lmbda)
        return _yeo_johnson(column, lmbda)

    def _log_likelihood(self, column: np.ndarray, lmbda: float) -> float:
        transformed = self._forward(column, lmbda)
        variance = transformed.var()
        if variance <= 0 or not np.isfinite(variance):
            return -np.inf
        n = len(column)
        if self.method == "box-cox":
            jacobian = (lmbda - 1) * np.sum(np.log(column))
        else:
            jacobian = (lmbda - 1) * np.sum(np.sign(column) * np.log1p(np.abs(column)))
        return -n / 2 * np.log(variance) + jacobian

    def _check_positive(self, data: np.ndarray) -> None:
        if self.method == "box-cox" and np.any(data <= 0):
            raise InvalidConfigurationError("box-cox requires strictly positive data")

    def fit(self, x: Any) -> "PowerTransformer":
        data = as_2d_array(x)
        self._check_positive(data)
        lambdas = np.ones(data.shape[1])
        for j in range(data.shape[1]):
            column = data[:, j]
            if np.ptp(column) == 0:
                continue
            lambdas[j] = _golden_section_max(lambda lm: self._log_likelihood(column, lm), -2.0, 2.0)
        self.lambdas_ = lambdas
        logger.debug(f"PowerTransformer({self.method}) lambdas: {lambdas.round(4).tolist()}")

        if self.standardize:
            self._scaler = StandardScaler().fit(self._power(data))
        return self

    def _power(self, data: np.ndarray) -> np.ndarray:
        return np.column_stack(
            [self._forward(data[:, j], lm) for j, lm in enumerate(self.lambdas_)]
        )

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["lambdas_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.lambdas_), type(self).__name__)
        self._check_positive(data)
        out = self._power(data)
        return self._scaler.transform(out) if self._scaler is not None else out

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def inverse_transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["lambdas_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.lambdas_), type(self).__name__)
        if self._scaler is not None:
            data = self._scaler.inverse_transform(data)
        inverse = _box_cox_inverse if self.method == "box-cox" else _yeo_johnson_inverse
        return np.column_stack([inverse(data[:, j], lm) for j, lm in enumerate(self.lambdas_)])
