"""
Classical estimators.

Each estimator works on plain numpy arrays, owns its fitted state, and
follows the fit/predict contract in ``base``.
"""

from .base import BaseEstimator, ClassifierMixin, RegressorMixin
from .linear import LinearRegression, RidgeRegression, LassoRegression, ElasticNet
from .logistic import LogisticRegression
from .tree import DecisionTreeClassifier, DecisionTreeRegressor, TreeNode
from .forest import RandomForestClassifier, RandomForestRegressor, GradientBoostingClassifier
from .cluster import KMeans, MiniBatchKMeans, DBSCAN
from .neighbors import KNeighborsClassifier, KNeighborsRegressor
from .svm import SVC, SVR, OneVsRestSVC

__all__ = [
    "BaseEstimator",
    "ClassifierMixin",
    "RegressorMixin",
    "LinearRegression",
    "RidgeRegression",
    "LassoRegression",
    "ElasticNet",
    "LogisticRegression",
    "DecisionTreeClassifier",
    "DecisionTreeRegressor",
    "TreeNode",
    "RandomForestClassifier",
    "RandomForestRegressor",
    "GradientBoostingClassifier",
    "KMeans",
    "MiniBatchKMeans",
    "DBSCAN",
    "KNeighborsClassifier",
    "KNeighborsRegressor",
    "SVC",
    "SVR",
    "OneVsRestSVC",
]
