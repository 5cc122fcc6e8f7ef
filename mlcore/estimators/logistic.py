"""
Logistic regression by batch gradient descent.

Binary problems fit one weight vector; more than two classes are handled
one-vs-rest with probabilities renormalized across the per-class models.
"""

from typing import Any, List, Optional, Tuple
import logging

import numpy as np

from ..core.activations import stable_sigmoid
from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import DivergenceError, InvalidConfigurationError
from ..evaluation.metrics import classification_report, confusion_matrix
from .base import BaseEstimator, ClassifierMixin

logger = logging.getLogger(__name__)

PENALTIES = ("none", "l1", "l2")


class LogisticRegression(BaseEstimator, ClassifierMixin):
    """
    Logistic regression.

    Args:
        penalty: "none", "l1" or "l2"
        alpha: Penalty strength
        learning_rate: Gradient descent step size
        max_iter: Maximum gradient steps per binary model
        tol: Stop when no parameter moves more than this
        fit_intercept: Learn a bias term
    """

    def __init__(
        self,
        penalty: str = "l2",
        alpha: float = 0.0,
        learning_rate: float = 0.1,
        max_iter: int = 1000,
        tol: float = 1e-6,
        fit_intercept: bool = True,
    ):
        if penalty not in PENALTIES:
            raise InvalidConfigurationError(f"penalty must be one of {PENALTIES}, got {penalty}")
        if alpha < 0:
            raise InvalidConfigurationError("alpha must be >= 0")
        if learning_rate <= 0:
            raise InvalidConfigurationError("learning_rate must be positive")
        if max_iter <= 0:
            raise InvalidConfigurationError("max_iter must be positive")
        self.penalty = penalty
        self.alpha = alpha
        self.learning_rate = learning_rate
        self.max_iter = max_iter
        self.tol = tol
        self.fit_intercept = fit_intercept
        self.classes_: Optional[np.ndarray] = None
        self.coef_: Optional[np.ndarray] = None  # [n_models, n_features]
        self.intercept_: Optional[np.ndarray] = None  # [n_models]
        self.n_iter_: Optional[List[int]] = None

    def _penalty_grad(self, w: np.ndarray) -> np.ndarray:
        if self.penalty == "l2":
            return self.alpha * w
        if self.penalty == "l1":
            return self.alpha * np.sign(w)
        return np.zeros_like(w)

    def _fit_binary(self, data: np.ndarray, target: np.ndarray) -> Tuple[np.ndarray, float, int]:
        n_samples = len(data)
        w = np.zeros(data.shape[1])
        b = 0.0
        for iteration in range(1, self.max_iter + 1):
            p = stable_sigmoid(data @ w + b)
            error = p - target
            grad_w = data.T @ error / n_samples + self._penalty_grad(w)
            grad_b = float(error.mean()) if self.fit_intercept else 0.0

            step_w = self.learning_rate * grad_w
            step_b = self.learning_rate * grad_b
            w = w - step_w
            b -= step_b
            if not np.all(np.isfinite(w)) or not np.isfinite(b):
                raise DivergenceError(f"LogisticRegression diverged at iteration {iteration}")
            if max(float(np.max(np.abs(step_w), initial=0.0)), abs(step_b)) < self.tol:
                break
        return w, b, iteration

    def fit(self, x: Any, y: Any) -> "LogisticRegression":
        """
        Fit one binary model, or one per class for multiclass targets.

        Raises:
            DimensionMismatchError: If len(x) != len(y) or the data is empty
            InvalidConfigurationError: If y has fewer than two classes
        """
        data, labels = check_xy(x, y)
        classes = np.unique(labels)
        if len(classes) < 2:
            raise InvalidConfigurationError("LogisticRegression needs at least two classes in y")

        targets = [labels == classes[1]] if len(classes) == 2 else [labels == c for c in classes]
        coefs, intercepts, iterations = [], [], []
        for target in targets:
            w, b, n_iter = self._fit_binary(data, target.astype(np.float64))
            coefs.append(w)
            intercepts.append(b)
            iterations.append(n_iter)

        self.classes_ = classes
        self.coef_ = np.array(coefs)
        self.intercept_ = np.array(intercepts)
        self.n_iter_ = iterations
        logger.debug(f"LogisticRegression fit {len(targets)} model(s), iterations {iterations}")
        return self

    def decision_function(self, x: Any) -> np.ndarray:
        """Signed distance to the boundary; [n] for binary, [n, n_classes] otherwise."""
        check_is_fitted(self, ["coef_", "intercept_"])
        data = as_2d_array(x)
        check_n_features(data, self.coef_.shape[1], type(self).__name__)
        scores = data @ self.coef_.T + self.intercept_
        return scores[:, 0] if len(self.classes_) == 2 else scores

    def predict_proba(self, x: Any) -> np.ndarray:
        """Class probabilities [n_samples, n_classes] in classes_ order."""
        scores = self.decision_function(x)
        if len(self.classes_) == 2:
            p = stable_sigmoid(scores)
            return np.column_stack([1.0 - p, p])
        p = stable_sigmoid(scores)
        totals = p.sum(axis=1, keepdims=True)
        totals[totals == 0] = 1.0
        return p / totals

    def predict(self, x: Any) -> np.ndarray:
        proba = self.predict_proba(x)
        return self.classes_[np.argmax(proba, axis=1)]

    def confusion_matrix(self, x: Any, y: Any) -> np.ndarray:
        return confusion_matrix(y, self.predict(x))

    def classification_report(self, x: Any, y: Any) -> str:
        return classification_report(y, self.predict(x))
