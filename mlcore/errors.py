"""
Error taxonomy for the numerical core.

All failures are raised synchronously at the offending call.
"""


class MLCoreError(Exception):
    """Base class for every error raised by mlcore."""


class ShapeMismatchError(MLCoreError, ValueError):
    """Operand shapes are incompatible (elementwise ops, reshape)."""


class DimensionMismatchError(MLCoreError, ValueError):
    """Inner/feature dimensions disagree (matmul, layer sizes, x/y lengths)."""


class NotFittedError(MLCoreError, RuntimeError):
    """A transformer or estimator was used before ``fit``."""


class NotCompiledError(MLCoreError, RuntimeError):
    """A network was trained or queried before ``compile``."""


class InvalidConfigurationError(MLCoreError, ValueError):
    """A hyperparameter, configuration value or input domain is invalid for the call."""


class DivergenceError(MLCoreError, RuntimeError):
    """Training produced a non-finite loss."""


__all__ = [
    "MLCoreError",
    "ShapeMismatchError",
    "DimensionMismatchError",
    "NotFittedError",
    "NotCompiledError",
    "InvalidConfigurationError",
    "DivergenceError",
]
