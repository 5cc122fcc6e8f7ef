"""
Evaluation metrics: classification, regression and clustering.

Pure functions over label/value arrays.
"""

from .classification import (
    accuracy_score,
    precision_recall_f1,
    precision_score,
    recall_score,
    f1_score,
    confusion_matrix,
    roc_auc_score,
    log_loss,
    classification_report,
)
from .regression import (
    mean_squared_error,
    root_mean_squared_error,
    mean_absolute_error,
    r2_score,
    mean_absolute_percentage_error,
    explained_variance_score,
)
from .clustering import (
    pairwise_distances,
    silhouette_score,
    adjusted_rand_score,
    davies_bouldin_score,
)

__all__ = [
    "accuracy_score",
    "precision_recall_f1",
    "precision_score",
    "recall_score",
    "f1_score",
    "confusion_matrix",
    "roc_auc_score",
    "log_loss",
    "classification_report",
    "mean_squared_error",
    "root_mean_squared_error",
    "mean_absolute_error",
    "r2_score",
    "mean_absolute_percentage_error",
    "explained_variance_score",
    "pairwise_distances",
    "silhouette_score",
    "adjusted_rand_score",
    "davies_bouldin_score",
]
