"""
Preprocessing transformers and data splitting.
"""

from .scalers import StandardScaler, MinMaxScaler, Normalizer, RobustScaler, PowerTransformer
from .encoders import LabelEncoder, OneHotEncoder
from .impute import SimpleImputer
from .polynomial import PolynomialFeatures
from .split import train_test_split, KFold

__all__ = [
    "StandardScaler",
    "MinMaxScaler",
    "Normalizer",
    "RobustScaler",
    "PowerTransformer",
    "LabelEncoder",
    "OneHotEncoder",
    "SimpleImputer",
    "PolynomialFeatures",
    "train_test_split",
    "KFold",
]
