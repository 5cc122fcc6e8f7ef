"""
Classification metrics.

All functions are pure. Multi-class averages iterate classes in the sorted
union of true and predicted labels.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ...errors import DimensionMismatchError, InvalidConfigurationError

AVERAGES = ("micro", "macro", "weighted")


def _check_pair(y_true: Any, y_pred: Any) -> Tuple[np.ndarray, np.ndarray]:
    t = np.asarray(y_true).reshape(-1)
    p = np.asarray(y_pred).reshape(-1)
    if t.shape != p.shape:
        raise DimensionMismatchError(f"y_true has {t.size} entries but y_pred has {p.size}")
    if t.size == 0:
        raise DimensionMismatchError("Metrics need at least one sample")
    return t, p


def _class_labels(y_true: np.ndarray, y_pred: np.ndarray) -> np.ndarray:
    return np.unique(np.concatenate([y_true, y_pred]))


def accuracy_score(y_true: Any, y_pred: Any) -> float:
    """Fraction of exact label matches."""
    t, p = _check_pair(y_true, y_pred)
    return float(np.mean(t == p))


def _per_class_counts(t: np.ndarray, p: np.ndarray, labels: np.ndarray):
    tp = np.array([np.sum((t == c) & (p == c)) for c in labels], dtype=float)
    fp = np.array([np.sum((t != c) & (p == c)) for c in labels], dtype=float)
    fn = np.array([np.sum((t == c) & (p != c)) for c in labels], dtype=float)
    support = np.array([np.sum(t == c) for c in labels], dtype=float)
    return tp, fp, fn, support


def _safe_ratio(numerator, denominator):
    numerator = np.asarray(numerator, dtype=float)
    denominator = np.asarray(denominator, dtype=float)
    out = np.zeros_like(numerator)
    np.divide(numerator, denominator, out=out, where=denominator > 0)
    return out


def precision_recall_f1(
    y_true: Any,
    y_pred: Any,
    average: Optional[str] = "weighted",
) -> Tuple[Union[float, np.ndarray], Union[float, np.ndarray], Union[float, np.ndarray]]:
    """
    Precision, recall and F1.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        average: "micro" (global TP/FP/FN), "macro" (unweighted class mean),
            "weighted" (class mean weighted by support), or None for
            per-class arrays

    Returns:
        (precision, recall, f1); undefined ratios count as 0
    """
    if average is not None and average not in AVERAGES:
        raise InvalidConfigurationError(f"average must be one of {AVERAGES} or None, got {average}")
    t, p = _check_pair(y_true, y_pred)
    labels = _class_labels(t, p)
    tp, fp, fn, support = _per_class_counts(t, p, labels)

    if average == "micro":
        precision = float(_safe_ratio(tp.sum(), tp.sum() + fp.sum()))
        recall = float(_safe_ratio(tp.sum(), tp.sum() + fn.sum()))
        f1 = float(_safe_ratio(2 * precision * recall, precision + recall))
        return precision, recall, f1

    precision = _safe_ratio(tp, tp + fp)
    recall = _safe_ratio(tp, tp + fn)
    f1 = _safe_ratio(2 * precision * recall, precision + recall)
    if average is None:
        return precision, recall, f1
    if average == "macro":
        return float(precision.mean()), float(recall.mean()), float(f1.mean())

    weights = support / support.sum()
    return (
        float(np.sum(precision * weights)),
        float(np.sum(recall * weights)),
        float(np.sum(f1 * weights)),
    )


def precision_score(y_true: Any, y_pred: Any, average: Optional[str] = "weighted"):
    return precision_recall_f1(y_true, y_pred, average)[0]


def recall_score(y_true: Any, y_pred: Any, average: Optional[str] = "weighted"):
    return precision_recall_f1(y_true, y_pred, average)[1]


def f1_score(y_true: Any, y_pred: Any, average: Optional[str] = "weighted"):
    return precision_recall_f1(y_true, y_pred, average)[2]


def confusion_matrix(y_true: Any, y_pred: Any, labels: Optional[Sequence] = None) -> np.ndarray:
    """
    Counts with rows = true label, columns = predicted label.

    Args:
        labels: Label order; defaults to the sorted union of both arrays
    """
    t, p = _check_pair(y_true, y_pred)
    labels = _class_labels(t, p) if labels is None else np.asarray(labels)
    index = {label: i for i, label in enumerate(labels.tolist())}
    matrix = np.zeros((len(labels), len(labels)), dtype=int)
    for actual, predicted in zip(t.tolist(), p.tolist()):
        if actual in index and predicted in index:
            matrix[index[actual], index[predicted]] += 1
    return matrix


def _average_ranks(values: np.ndarray) -> np.ndarray:
    order = np.argsort(values, kind="mergesort")
    ranks = np.empty(len(values))
    sorted_values = values[order]
    start = 0
    while start < len(values):
        end = start
        while end + 1 < len(values) and sorted_values[end + 1] == sorted_values[start]:
            end += 1
        ranks[order[start:end + 1]] = (start + end) / 2.0 + 1.0
        start = end + 1
    return ranks


def roc_auc_score(y_true: Any, y_score: Any) -> float:
    """
    Area under the ROC curve for binary labels (positive class = 1).

    Computed from the Mann-Whitney statistic, so tied scores count half.

    Raises:
        InvalidConfigurationError: If y_true contains only one class
    """
    t, scores = _check_pair(y_true, y_score)
    positive = t == 1
    n_pos = int(positive.sum())
    n_neg = len(t) - n_pos
    if n_pos == 0 or n_neg == 0:
        raise InvalidConfigurationError("ROC AUC is undefined when y_true contains a single class")
    ranks = _average_ranks(scores.astype(float))
    return float((ranks[positive].sum() - n_pos * (n_pos + 1) / 2.0) / (n_pos * n_neg))


def log_loss(y_true: Any, y_proba: Any, eps: float = 1e-15) -> float:
    """
    Mean negative log-likelihood.

    Args:
        y_true: Integer labels, used as column indices into y_proba
        y_proba: [samples, classes] probabilities, or a 1-D array of
            positive-class probabilities for binary problems
    """
    labels = np.asarray(y_true).reshape(-1).astype(int)
    proba = np.asarray(y_proba, dtype=float)
    if proba.ndim == 1:
        proba = np.column_stack([1.0 - proba, proba])
    if proba.shape[0] != labels.size:
        raise DimensionMismatchError(
            f"y_true has {labels.size} entries but y_proba has {proba.shape[0]} rows"
        )
    if labels.size == 0:
        raise DimensionMismatchError("Metrics need at least one sample")
    if np.any((labels < 0) | (labels >= proba.shape[1])):
        raise DimensionMismatchError(f"Labels must index the {proba.shape[1]} probability columns")
    picked = np.clip(proba[np.arange(labels.size), labels], eps, 1 - eps)
    return float(-np.mean(np.log(picked)))


def classification_report(
    y_true: Any,
    y_pred: Any,
    target_names: Optional[List[str]] = None,
    digits: int = 2,
    output_dict: bool = False,
) -> Union[str, Dict[str, Dict[str, float]]]:
    """
    Per-class precision, recall, F1 and support, plus averages.

    Returns:
        A text table, or a nested dict when output_dict is True
    """
    t, p = _check_pair(y_true, y_pred)
    labels = _class_labels(t, p)
    if target_names is not None and len(target_names) != len(labels):
        raise DimensionMismatchError(
            f"{len(target_names)} target names for {len(labels)} classes"
        )
    names = target_names or [str(label) for label in labels.tolist()]
    precision, recall, f1 = precision_recall_f1(t, p, average=None)
    _, _, _, support = _per_class_counts(t, p, labels)

    report: Dict[str, Dict[str, float]] = {}
    for i, name in enumerate(names):
        report[name] = {
            "precision": float(precision[i]),
            "recall": float(recall[i]),
            "f1-score": float(f1[i]),
            "support": int(support[i]),
        }
    for average in ("macro", "weighted"):
        avg_p, avg_r, avg_f = precision_recall_f1(t, p, average=average)
        report[f"{average} avg"] = {
            "precision": avg_p,
            "recall": avg_r,
            "f1-score": avg_f,
            "support": int(support.sum()),
        }
    report["accuracy"] = {"score": accuracy_score(t, p), "support": int(support.sum())}
    if output_dict:
        return report

    width = max(len(name) for name in list(report) + ["weighted avg"])
    header = f"{'':>{width}}  {'precision':>9}  {'recall':>9}  {'f1-score':>9}  {'support':>9}"
    lines = [header, ""]
    for name in names + ["macro avg", "weighted avg"]:
        row = report[name]
        if name == "macro avg":
            lines.append("")
            acc = report["accuracy"]
            lines.append(
                f"{'accuracy':>{width}}  {'':>9}  {'':>9}  {acc['score']:>9.{digits}f}  {acc['support']:>9}"
            )
        lines.append(
            f"{name:>{width}}  {row['precision']:>9.{digits}f}  {row['recall']:>9.{digits}f}  "
            f"{row['f1-score']:>9.{digits}f}  {row['support']:>9}"
        )
    return "\n".join(lines)
