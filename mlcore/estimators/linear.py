"""
Linear regression family.

- LinearRegression: closed-form least squares, or (mini-batch) gradient descent
- RidgeRegression: least squares with an L2 penalty on the coefficients
- LassoRegression / ElasticNet: coordinate descent with L1 (and L2) penalties

The intercept is never penalized.
"""

from typing import Any, Optional
import logging

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import DivergenceError, InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng
from .base import BaseEstimator, RegressorMixin

logger = logging.getLogger(__name__)

FIT_METHODS = ("ols", "gd", "sgd")


class LinearModel(BaseEstimator, RegressorMixin):
    """Prediction for fitted linear models: X @ coef_ + intercept_."""

    coef_: Optional[np.ndarray] = None
    intercept_: Optional[float] = None

    def predict(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["coef_", "intercept_"])
        data = as_2d_array(x)
        check_n_features(data, len(self.coef_), type(self).__name__)
        return data @ self.coef_ + self.intercept_


class LinearRegression(LinearModel):
    """
    Ordinary least squares.

    Args:
        fit_method: "ols" (normal equations), "gd" (full-batch gradient
            descent) or "sgd" (shuffled mini-batches)
        learning_rate: Step size for gd/sgd
        epochs: Passes over the data for gd/sgd
        batch_size: Mini-batch size for sgd
        fit_intercept: Learn a bias term
        random_state: Seed for weight init and sgd shuffling
    """

    def __init__(
        self,
        fit_method: str = "ols",
        learning_rate: float = 0.01,
        epochs: int = 1000,
        batch_size: int = 32,
        fit_intercept: bool = True,
        random_state: RandomState = None,
    ):
        if fit_method not in FIT_METHODS:
            raise InvalidConfigurationError(f"fit_method must be one of {FIT_METHODS}, got {fit_method}")
        if learning_rate <= 0:
            raise InvalidConfigurationError("learning_rate must be positive")
        if epochs <= 0 or batch_size <= 0:
            raise InvalidConfigurationError("epochs and batch_size must be positive")
        self.fit_method = fit_method
        self.learning_rate = learning_rate
        self.epochs = epochs
        self.batch_size = batch_size
        self.fit_intercept = fit_intercept
        self.random_state = random_state
        self.coef_ = None
        self.intercept_ = None
        self.loss_history_: Optional[list] = None

    def _l2_penalty(self) -> float:
        return 0.0

    def fit(self, x: Any, y: Any) -> "LinearRegression":
        """
        Fit coefficients.

        Raises:
            DimensionMismatchError: If len(x) != len(y) or the data is empty
            DivergenceError: If gradient descent produces non-finite weights
        """
        data, target = check_xy(x, y, y_dtype=np.float64)
        if self.fit_method == "ols":
            self._fit_normal_equations(data, target)
        else:
            self._fit_gradient_descent(data, target)
        return self

    def _fit_normal_equations(self, data: np.ndarray, target: np.ndarray) -> None:
        n_features = data.shape[1]
        design = np.hstack([np.ones((len(data), 1)), data]) if self.fit_intercept else data
        gram = design.T @ design
        offset = 1 if self.fit_intercept else 0
        penalty = self._l2_penalty()
        if penalty > 0:
            diag = np.arange(offset, offset + n_features)
            gram[diag, diag] += penalty
        # lstsq handles rank-deficient designs with the minimum-norm solution
        solution = np.linalg.lstsq(gram, design.T @ target, rcond=None)[0]
        self.intercept_ = float(solution[0]) if self.fit_intercept else 0.0
        self.coef_ = solution[offset:]
        self.loss_history_ = None

    def _fit_gradient_descent(self, data: np.ndarray, target: np.ndarray) -> None:
        rng = make_rng(self.random_state)
        n_samples, n_features = data.shape
        coef = rng.normal(0.0, 0.01, size=n_features)
        intercept = 0.0
        penalty = self._l2_penalty()
        batch = n_samples if self.fit_method == "gd" else min(self.batch_size, n_samples)
        history = []

        for epoch in range(self.epochs):
            order = rng.permutation(n_samples) if self.fit_method == "sgd" else np.arange(n_samples)
            for start in range(0, n_samples, batch):
                idx = order[start:start + batch]
                error = data[idx] @ coef + intercept - target[idx]
                scale = 2.0 / len(idx)
                grad_w = scale * (data[idx].T @ error) + 2.0 * penalty * coef / n_samples
                coef = coef - self.learning_rate * grad_w
                if self.fit_intercept:
                    intercept -= self.learning_rate * scale * float(error.sum())

            mse = float(np.mean((data @ coef + intercept - target) ** 2))
            if not np.isfinite(mse):
                raise DivergenceError(
                    f"{type(self).__name__} diverged at epoch {epoch + 1}; lower the learning_rate"
                )
            history.append(mse)
            if epoch % 100 == 0:
                logger.debug(f"Epoch {epoch}: MSE = {mse:.6f}")

        self.coef_ = coef
        self.intercept_ = intercept
        self.loss_history_ = history


class RidgeRegression(LinearRegression):
    """Least squares plus alpha * ||w||^2."""

    def __init__(self, alpha: float = 1.0, **kwargs):
        if alpha < 0:
            raise InvalidConfigurationError("alpha must be >= 0")
        super().__init__(**kwargs)
        self.alpha = alpha

    def _l2_penalty(self) -> float:
        return self.alpha


def _soft_threshold(value: float, threshold: float) -> float:
    if value > threshold:
        return value - threshold
    if value < -threshold:
        return value + threshold
    return 0.0


class ElasticNet(LinearModel):
    """
    Coordinate descent on

        1/(2n) ||y - Xw - b||^2 + alpha * l1_ratio * ||w||_1
                                + alpha * (1 - l1_ratio) / 2 * ||w||^2
    """

    def __init__(
        self,
        alpha: float = 1.0,
        l1_ratio: float = 0.5,
        max_iter: int = 1000,
        tol: float = 1e-4,
        fit_intercept: bool = True,
    ):
        if alpha < 0:
            raise InvalidConfigurationError("alpha must be >= 0")
        if not 0 <= l1_ratio <= 1:
            raise InvalidConfigurationError("l1_ratio must be in [0, 1]")
        if max_iter <= 0:
            raise InvalidConfigurationError("max_iter must be positive")
        self.alpha = alpha
        self.l1_ratio = l1_ratio
        self.max_iter = max_iter
        self.tol = tol
        self.fit_intercept = fit_intercept
        self.coef_ = None
        self.intercept_ = None
        self.n_iter_: Optional[int] = None

    def fit(self, x: Any, y: Any) -> "ElasticNet":
        data, target = check_xy(x, y, y_dtype=np.float64)
        n_samples, n_features = data.shape

        if self.fit_intercept:
            x_mean, y_mean = data.mean(axis=0), target.mean()
        else:
            x_mean, y_mean = np.zeros(n_features), 0.0
        xc = data - x_mean
        yc = target - y_mean

        col_norms = np.sum(xc * xc, axis=0) / n_samples
        l1 = self.alpha * self.l1_ratio
        l2 = self.alpha * (1.0 - self.l1_ratio)
        coef = np.zeros(n_features)
        residual = yc.copy()

        converged = False
        for iteration in range(1, self.max_iter + 1):
            max_change = 0.0
            for j in range(n_features):
                if col_norms[j] == 0:
                    continue
                old = coef[j]
                rho = float(xc[:, j] @ residual) / n_samples + col_norms[j] * old
                coef[j] = _soft_threshold(rho, l1) / (col_norms[j] + l2)
                if coef[j] != old:
                    residual -= xc[:, j] * (coef[j] - old)
                    max_change = max(max_change, abs(coef[j] - old))
            if max_change < self.tol:
                converged = True
                break

        if not converged:
            logger.warning(
                f"{type(self).__name__} did not converge in {self.max_iter} iterations"
            )
        self.n_iter_ = iteration
        self.coef_ = coef
        self.intercept_ = float(y_mean - x_mean @ coef)
        logger.debug(
            f"{type(self).__name__} fit: {iteration} iterations, "
            f"{int(np.sum(coef != 0))}/{n_features} non-zero coefficients"
        )
        return self


class LassoRegression(ElasticNet):
    """Pure L1 penalty (ElasticNet with l1_ratio=1)."""

    def __init__(self, alpha: float = 1.0, max_iter: int = 1000, tol: float = 1e-4, fit_intercept: bool = True):
        super().__init__(alpha=alpha, l1_ratio=1.0, max_iter=max_iter, tol=tol, fit_intercept=fit_intercept)
