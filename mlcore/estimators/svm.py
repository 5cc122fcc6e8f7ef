"""
Support-vector machines.

SVC solves its dual by sequential minimal optimization: two multipliers at a
time, the second of each pair being the one maximizing |E_i - E_j| over the
error cache; when that pair makes no progress the remaining candidates are
tried in a random order. SVR uses coordinate descent instead (see SVR).
"""

from typing import Any, Callable, Dict, List, Optional, Union
import logging

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng
from .base import BaseEstimator, ClassifierMixin, RegressorMixin

logger = logging.getLogger(__name__)

KERNELS = ("linear", "rbf", "poly", "sigmoid")

Gamma = Union[str, float]


def _resolve_gamma(gamma: Gamma, data: np.ndarray) -> float:
    if gamma == "scale":
        variance = float(data.var())
        return 1.0 / (data.shape[1] * variance) if variance > 0 else 1.0
    if gamma == "auto":
        return 1.0 / data.shape[1]
    return float(gamma)


def make_kernel(kernel: str, gamma: float, degree: int, coef0: float) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """Gram-matrix function for the named kernel."""
    if kernel == "linear":
        return lambda a, b: a @ b.T
    if kernel == "rbf":
        def rbf(a: np.ndarray, b: np.ndarray) -> np.ndarray:
            sq = np.sum(a * a, axis=1)[:, None] + np.sum(b * b, axis=1)[None, :] - 2.0 * a @ b.T
            return np.exp(-gamma * np.maximum(sq, 0.0))
        return rbf
    if kernel == "poly":
        return lambda a, b: (gamma * (a @ b.T) + coef0) ** degree
    if kernel == "sigmoid":
        return lambda a, b: np.tanh(gamma * (a @ b.T) + coef0)
    raise InvalidConfigurationError(f"Unknown kernel: {kernel}. Choose from {KERNELS}")


class SVC(BaseEstimator, ClassifierMixin):
    """
    Binary support-vector classifier.

    Args:
        C: Box constraint on the dual multipliers. None (the default) leaves
            them unbounded, a hard margin that separates any linearly
            separable training set; a float gives a soft margin
        kernel: "linear", "rbf", "poly" or "sigmoid"
        gamma: Kernel coefficient, "scale", "auto" or a float
        degree: Polynomial kernel degree
        coef0: Independent term of the poly and sigmoid kernels
        tol: KKT violation tolerance
        max_iter: Maximum passes over the violating multipliers
        random_state: Seed for the fallback pair search order
    """

    def __init__(
        self,
        C: Optional[float] = None,
        kernel: str = "linear",
        gamma: Gamma = "scale",
        degree: int = 3,
        coef0: float = 0.0,
        tol: float = 1e-3,
        max_iter: int = 1000,
        random_state: RandomState = None,
    ):
        if C is not None and C <= 0:
            raise InvalidConfigurationError(f"C must be positive or None, got {C}")
        if kernel not in KERNELS:
            raise InvalidConfigurationError(f"kernel must be one of {KERNELS}, got {kernel}")
        if isinstance(gamma, str):
            if gamma not in ("scale", "auto"):
                raise InvalidConfigurationError(f"gamma must be 'scale', 'auto' or a float, got {gamma}")
        elif gamma <= 0:
            raise InvalidConfigurationError("gamma must be positive")
        if degree < 1 or max_iter < 1:
            raise InvalidConfigurationError("degree and max_iter must be >= 1")
        self.C = C
        self.kernel = kernel
        self.gamma = gamma
        self.degree = degree
        self.coef0 = coef0
        self.tol = tol
        self.max_iter = max_iter
        self.random_state = random_state
        self.classes_: Optional[np.ndarray] = None
        self.support_: Optional[np.ndarray] = None
        self.support_vectors_: Optional[np.ndarray] = None
        self.dual_coef_: Optional[np.ndarray] = None
        self.intercept_: Optional[float] = None
        self.n_features_in_: Optional[int] = None
        self.n_iter_: Optional[int] = None
        self._gamma: Optional[float] = None

    def _kernel_fn(self):
        return make_kernel(self.kernel, self._gamma, self.degree, self.coef0)

    def fit(self, x: Any, y: Any) -> "SVC":
        """
        Solve the dual problem with SMO.

        Raises:
            DimensionMismatchError: If len(x) != len(y) or the data is empty
            InvalidConfigurationError: Unless y has exactly two classes (see OneVsRestSVC)
        """
        data, labels = check_xy(x, y)
        classes = np.unique(labels)
        if len(classes) != 2:
            raise InvalidConfigurationError(
                f"SVC is binary but y has {len(classes)} classes; use OneVsRestSVC"
            )
        target = np.where(labels == classes[1], 1.0, -1.0)
        self._gamma = _resolve_gamma(self.gamma, data)
        gram = self._kernel_fn()(data, data)

        alpha, b, n_iter = self._smo(gram, target, make_rng(self.random_state))

        support = np.flatnonzero(alpha > 1e-8)
        self.classes_ = classes
        self.support_ = support
        self.support_vectors_ = data[support]
        self.dual_coef_ = alpha[support] * target[support]
        self.intercept_ = b
        self.n_iter_ = n_iter
        self.n_features_in_ = data.shape[1]
        logger.debug(
            f"SVC fit: {len(support)} support vectors, {n_iter} passes, kernel={self.kernel}"
        )
        return self

    def _smo(self, gram: np.ndarray, target: np.ndarray, rng: np.random.Generator):
        n_samples = len(target)
        C = np.inf if self.C is None else float(self.C)
        alpha = np.zeros(n_samples)
        b = 0.0
        errors = -target.copy()

        def take_step(i: int, j: int) -> bool:
            nonlocal b
            if i == j:
                return False
            a_i, a_j = alpha[i], alpha[j]
            y_i, y_j = target[i], target[j]
            if y_i != y_j:
                low, high = max(0.0, a_j - a_i), min(C, C + a_j - a_i)
            else:
                low, high = max(0.0, a_i + a_j - C), min(C, a_i + a_j)
            if high - low < 1e-12:
                return False
            eta = gram[i, i] + gram[j, j] - 2.0 * gram[i, j]
            if eta <= 0:
                return False

            new_j = float(np.clip(a_j + y_j * (errors[i] - errors[j]) / eta, low, high))
            if abs(new_j - a_j) < 1e-12 * (new_j + a_j + 1e-12):
                return False
            new_i = a_i + y_i * y_j * (a_j - new_j)
            d_i, d_j = new_i - a_i, new_j - a_j

            b_i = b - errors[i] - y_i * d_i * gram[i, i] - y_j * d_j * gram[i, j]
            b_j = b - errors[j] - y_i * d_i * gram[i, j] - y_j * d_j * gram[j, j]
            if 0 < new_i < C:
                new_b = b_i
            elif 0 < new_j < C:
                new_b = b_j
            else:
                new_b = (b_i + b_j) / 2.0

            errors[:] += y_i * d_i * gram[:, i] + y_j * d_j * gram[:, j] + (new_b - b)
            alpha[i], alpha[j] = new_i, new_j
            b = new_b
            return True

        n_iter = 0
        converged = False
        for n_iter in range(1, self.max_iter + 1):
            margin = target * errors
            violators = np.flatnonzero(
                ((margin < -self.tol) & (alpha < C)) | ((margin > self.tol) & (alpha > 0))
            )
            if len(violators) == 0:
                converged = True
                break
            changed = 0
            for i in violators:
                if take_step(i, int(np.argmax(np.abs(errors[i] - errors)))):
                    changed += 1
                    continue
                for j in rng.permutation(n_samples):
                    if take_step(i, int(j)):
                        changed += 1
                        break
            if changed == 0:
                converged = True
                break

        if not converged:
            logger.warning(f"SVC did not converge in {self.max_iter} passes")
        return alpha, b, n_iter

    @property
    def coef_(self) -> np.ndarray:
        """Primal weight vector; only defined for the linear kernel."""
        check_is_fitted(self, ["dual_coef_"])
        if self.kernel != "linear":
            raise AttributeError("coef_ is only available with kernel='linear'")
        return self.dual_coef_ @ self.support_vectors_

    def decision_function(self, x: Any) -> np.ndarray:
        """Signed score; positive means classes_[1]."""
        check_is_fitted(self, ["dual_coef_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, "SVC")
        if len(self.support_) == 0:
            return np.full(len(data), self.intercept_)
        return self._kernel_fn()(data, self.support_vectors_) @ self.dual_coef_ + self.intercept_

    def predict(self, x: Any) -> np.ndarray:
        return self.classes_[(self.decision_function(x) > 0).astype(int)]


class OneVsRestSVC(BaseEstimator, ClassifierMixin):
    """One binary SVC per class; predicts the class with the highest score."""

    def __init__(self, **svc_params):
        self.svc_params: Dict[str, Any] = svc_params
        SVC(**svc_params)
        self.classes_: Optional[np.ndarray] = None
        self.estimators_: Optional[List[SVC]] = None

    def fit(self, x: Any, y: Any) -> "OneVsRestSVC":
        data, labels = check_xy(x, y)
        classes = np.unique(labels)
        if len(classes) < 2:
            raise InvalidConfigurationError("OneVsRestSVC needs at least two classes in y")
        self.estimators_ = [
            SVC(**self.svc_params).fit(data, (labels == c).astype(int)) for c in classes
        ]
        self.classes_ = classes
        return self

    def decision_function(self, x: Any) -> np.ndarray:
        """Per-class scores [n_samples, n_classes]."""
        check_is_fitted(self, ["estimators_"])
        return np.column_stack([est.decision_function(x) for est in self.estimators_])

    def predict(self, x: Any) -> np.ndarray:
        return self.classes_[np.argmax(self.decision_function(x), axis=1)]


class SVR(BaseEstimator, RegressorMixin):
    """
    Epsilon-insensitive support-vector regression.

    The dual is solved by exact coordinate descent on ``beta = alpha - alpha*``
    with the bias folded into the kernel (K + 1), which removes the equality
    constraint. Samples whose residual stays inside the epsilon tube end with
    beta = 0 and are not support vectors.

    Args:
        C: Box constraint, |beta_i| <= C
        epsilon: Half-width of the loss-free tube around the targets
        kernel: "linear", "rbf", "poly" or "sigmoid"
        gamma: Kernel coefficient, "scale", "auto" or a float
        degree: Polynomial kernel degree
        coef0: Independent term of the poly and sigmoid kernels
        tol: Stop once no coefficient moves more than this in a pass
        max_iter: Maximum passes over the coefficients
        random_state: Seed for the coordinate order of each pass
    """

    def __init__(
        self,
        C: float = 1.0,
        epsilon: float = 0.1,
        kernel: str = "rbf",
        gamma: Gamma = "scale",
        degree: int = 3,
        coef0: float = 0.0,
        tol: float = 1e-4,
        max_iter: int = 1000,
        random_state: RandomState = None,
    ):
        if not C > 0:
            raise InvalidConfigurationError(f"C must be positive, got {C}")
        if epsilon < 0:
            raise InvalidConfigurationError(f"epsilon must be >= 0, got {epsilon}")
        # Kernel, gamma, degree and max_iter share SVC's rules
        SVC(kernel=kernel, gamma=gamma, degree=degree, max_iter=max_iter)
        self.C = C
        self.epsilon = epsilon
        self.kernel = kernel
        self.gamma = gamma
        self.degree = degree
        self.coef0 = coef0
        self.tol = tol
        self.max_iter = max_iter
        self.random_state = random_state
        self.support_: Optional[np.ndarray] = None
        self.support_vectors_: Optional[np.ndarray] = None
        self.dual_coef_: Optional[np.ndarray] = None
        self.intercept_: Optional[float] = None
        self.n_features_in_: Optional[int] = None
        self.n_iter_: Optional[int] = None
        self._gamma: Optional[float] = None

    def _kernel_fn(self):
        return make_kernel(self.kernel, self._gamma, self.degree, self.coef0)

    def fit(self, x: Any, y: Any) -> "SVR":
        data, target = check_xy(x, y, y_dtype=np.float64)
        self._gamma = _resolve_gamma(self.gamma, data)
        gram = self._kernel_fn()(data, data) + 1.0
        rng = make_rng(self.random_state)

        n_samples = len(target)
        beta = np.zeros(n_samples)
        grad = -target.copy()
        converged = False
        n_iter = 0
        for n_iter in range(1, self.max_iter + 1):
            largest = 0.0
            for i in rng.permutation(n_samples):
                q_ii = gram[i, i]
                if q_ii <= 0:
                    continue
                z = beta[i] - grad[i] / q_ii
                new = np.sign(z) * max(abs(z) - self.epsilon / q_ii, 0.0)
                new = float(np.clip(new, -self.C, self.C))
                delta = new - beta[i]
                if delta != 0.0:
                    grad += delta * gram[:, i]
                    beta[i] = new
                    largest = max(largest, abs(delta))
            if largest <= self.tol:
                converged = True
                break
        if not converged:
            logger.warning(f"SVR did not converge in {self.max_iter} passes")

        support = np.flatnonzero(np.abs(beta) > 1e-8)
        self.support_ = support
        self.support_vectors_ = data[support]
        self.dual_coef_ = beta[support]
        self.intercept_ = float(beta.sum())
        self.n_iter_ = n_iter
        self.n_features_in_ = data.shape[1]
        logger.debug(f"SVR fit: {len(support)} support vectors, {n_iter} passes, kernel={self.kernel}")
        return self

    @property
    def coef_(self) -> np.ndarray:
        """Primal weight vector; only defined for the linear kernel."""
        check_is_fitted(self, ["dual_coef_"])
        if self.kernel != "linear":
            raise AttributeError("coef_ is only available with kernel='linear'")
        return self.dual_coef_ @ self.support_vectors_

    def predict(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["dual_coef_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, "SVR")
        if len(self.support_) == 0:
            return np.full(len(data), self.intercept_)
        return self._kernel_fn()(data, self.support_vectors_) @ self.dual_coef_ + self.intercept_
