"""
Polynomial feature expansion.
"""

from itertools import combinations, combinations_with_replacement
from typing import Any, List, Optional

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features
from ..errors import InvalidConfigurationError


class PolynomialFeatures:
    """
    All monomials of the input features up to ``degree``.

    Output columns are ordered by degree, then lexicographically by feature
    index: [1, x0, x1, x0^2, x0 x1, x1^2, ...].
    """

    def __init__(self, degree: int = 2, include_bias: bool = True, interaction_only: bool = False):
        if degree < 1:
            raise InvalidConfigurationError("degree must be >= 1")
        self.degree = degree
        self.include_bias = include_bias
        self.interaction_only = interaction_only
        self.powers_: Optional[np.ndarray] = None

    def fit(self, x: Any) -> "PolynomialFeatures":
        n_features = as_2d_array(x).shape[1]
        combos = combinations if self.interaction_only else combinations_with_replacement
        start = 0 if self.include_bias else 1
        powers = []
        for d in range(start, self.degree + 1):
            for combo in combos(range(n_features), d):
                row = np.zeros(n_features, dtype=int)
                for index in combo:
                    row[index] += 1
                powers.append(row)
        self.powers_ = np.array(powers, dtype=int).reshape(len(powers), n_features)
        return self

    @property
    def n_output_features_(self) -> int:
        check_is_fitted(self, ["powers_"])
        return self.powers_.shape[0]

    def transform(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["powers_"])
        data = as_2d_array(x)
        check_n_features(data, self.powers_.shape[1], type(self).__name__)
        return np.column_stack([np.prod(data ** row, axis=1) for row in self.powers_])

    def fit_transform(self, x: Any) -> np.ndarray:
        return self.fit(x).transform(x)

    def get_feature_names(self, input_features: Optional[List[str]] = None) -> List[str]:
        check_is_fitted(self, ["powers_"])
        if input_features is None:
            input_features = [f"x{j}" for j in range(self.powers_.shape[1])]
        names = []
        for row in self.powers_:
            terms = [
                name if power == 1 else f"{name}^{power}"
                for name, power in zip(input_features, row)
                if power > 0
            ]
            names.append(" ".join(terms) if terms else "1")
        return names
