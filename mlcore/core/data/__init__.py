"""
Data validation helpers.
"""

from .validation import (
    as_2d_array,
    as_1d_array,
    check_xy,
    check_is_fitted,
    check_n_features,
)

__all__ = [
    "as_2d_array",
    "as_1d_array",
    "check_xy",
    "check_is_fitted",
    "check_n_features",
]
