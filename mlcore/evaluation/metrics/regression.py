"""
Regression metrics.
"""

from typing import Any, Tuple

import numpy as np

from ...errors import DimensionMismatchError


def _check_pair(y_true: Any, y_pred: Any) -> Tuple[np.ndarray, np.ndarray]:
    t = np.asarray(y_true, dtype=float).reshape(-1)
    p = np.asarray(y_pred, dtype=float).reshape(-1)
    if t.shape != p.shape:
        raise DimensionMismatchError(f"y_true has {t.size} entries but y_pred has {p.size}")
    if t.size == 0:
        raise DimensionMismatchError("Metrics need at least one sample")
    return t, p


def mean_squared_error(y_true: Any, y_pred: Any) -> float:
    t, p = _check_pair(y_true, y_pred)
    return float(np.mean((t - p) ** 2))


def root_mean_squared_error(y_true: Any, y_pred: Any) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def mean_absolute_error(y_true: Any, y_pred: Any) -> float:
    t, p = _check_pair(y_true, y_pred)
    return float(np.mean(np.abs(t - p)))


def _explained_ratio(residual: float, total: float) -> float:
    # Constant targets: perfect predictions score 1, anything else 0
    if total == 0:
        return 1.0 if residual == 0 else 0.0
    return 1.0 - residual / total


def r2_score(y_true: Any, y_pred: Any) -> float:
    """Coefficient of determination, 1 - SS_res / SS_tot."""
    t, p = _check_pair(y_true, y_pred)
    ss_res = float(np.sum((t - p) ** 2))
    ss_tot = float(np.sum((t - t.mean()) ** 2))
    return _explained_ratio(ss_res, ss_tot)


def mean_absolute_percentage_error(y_true: Any, y_pred: Any, eps: float = 1e-10) -> float:
    """MAPE in percent; eps keeps zero targets finite."""
    t, p = _check_pair(y_true, y_pred)
    return float(np.mean(np.abs((t - p) / (np.abs(t) + eps))) * 100.0)


def explained_variance_score(y_true: Any, y_pred: Any) -> float:
    t, p = _check_pair(y_true, y_pred)
    return _explained_ratio(float(np.var(t - p)), float(np.var(t)))
