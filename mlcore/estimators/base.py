"""
Shared estimator behaviour.

Estimators follow one contract: ``fit`` returns self and replaces any
previous fitted state; ``predict`` before ``fit`` raises NotFittedError.
"""

from typing import Any, Dict
import inspect

from ..evaluation.metrics import accuracy_score, r2_score


class BaseEstimator:
    """Constructor-parameter introspection for every estimator."""

    def get_params(self) -> Dict[str, Any]:
        """Constructor arguments as currently set on the instance."""
        signature = inspect.signature(type(self).__init__)
        return {
            name: getattr(self, name)
            for name in signature.parameters
            if name != "self" and hasattr(self, name)
        }

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.get_params().items())
        return f"{type(self).__name__}({params})"


class ClassifierMixin:
    """score() = accuracy."""

    def score(self, x: Any, y: Any) -> float:
        return accuracy_score(y, self.predict(x))


class RegressorMixin:
    """score() = R^2."""

    def score(self, x: Any, y: Any) -> float:
        return r2_score(y, self.predict(x))
