"""
EvaluationReport and ReportGenerator.

Collects named metrics for a model and writes them as JSON and Markdown.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

import numpy as np

from .metrics import (
    accuracy_score,
    classification_report,
    confusion_matrix,
    explained_variance_score,
    mean_absolute_error,
    mean_squared_error,
    precision_recall_f1,
    r2_score,
    root_mean_squared_error,
)

logger = logging.getLogger(__name__)


@dataclass
class EvaluationReport:
    """Metrics for one model on one dataset."""

    model_name: str
    task: str  # "classification", "regression" or "clustering"
    metrics: Dict[str, float]
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    n_samples: int = 0
    confusion_matrix: Optional[List[List[int]]] = None
    class_labels: Optional[List[Any]] = None
    notes: List[str] = field(default_factory=list)

    @classmethod
    def for_classification(cls, model_name: str, y_true: Any, y_pred: Any) -> "EvaluationReport":
        y_true = np.asarray(y_true).reshape(-1)
        y_pred = np.asarray(y_pred).reshape(-1)
        metrics = {"accuracy": accuracy_score(y_true, y_pred)}
        for average in ("macro", "weighted"):
            p, r, f = precision_recall_f1(y_true, y_pred, average=average)
            metrics.update({f"precision_{average}": p, f"recall_{average}": r, f"f1_{average}": f})
        labels = np.unique(np.concatenate([y_true, y_pred]))
        return cls(
            model_name=model_name,
            task="classification",
            metrics=metrics,
            n_samples=len(y_true),
            confusion_matrix=confusion_matrix(y_true, y_pred).tolist(),
            class_labels=labels.tolist(),
            notes=[classification_report(y_true, y_pred)],
        )

    @classmethod
    def for_regression(cls, model_name: str, y_true: Any, y_pred: Any) -> "EvaluationReport":
        metrics = {
            "mse": mean_squared_error(y_true, y_pred),
            "rmse": root_mean_squared_error(y_true, y_pred),
            "mae": mean_absolute_error(y_true, y_pred),
            "r2": r2_score(y_true, y_pred),
            "explained_variance": explained_variance_score(y_true, y_pred),
        }
        return cls(
            model_name=model_name,
            task="regression",
            metrics=metrics,
            n_samples=int(np.asarray(y_true).size),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "model_name": self.model_name,
            "task": self.task,
            "timestamp": self.timestamp,
            "n_samples": self.n_samples,
            "metrics": {k: float(v) for k, v in self.metrics.items()},
            "confusion_matrix": self.confusion_matrix,
            "class_labels": self.class_labels,
            "notes": self.notes,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_markdown(self) -> str:
        lines = [
            f"# Evaluation Report: {self.model_name}",
            "",
            f"**Task:** {self.task}",
            f"**Timestamp:** {self.timestamp}",
            f"**Samples:** {self.n_samples}",
            "",
            "## Metrics",
            "",
            "| Metric | Value |",
            "|--------|-------|",
        ]
        for name, value in self.metrics.items():
            lines.append(f"| {name} | {value:.4f} |")
        lines.append("")

        if self.confusion_matrix is not None:
            labels = [str(label) for label in (self.class_labels or [])]
            lines.extend([
                "## Confusion Matrix",
                "",
                "| true \\ pred | " + " | ".join(labels) + " |",
                "|" + "---|" * (len(labels) + 1),
            ])
            for label, row in zip(labels, self.confusion_matrix):
                lines.append(f"| {label} | " + " | ".join(str(v) for v in row) + " |")
            lines.append("")

        if self.notes:
            lines.extend(["## Notes", ""])
            for note in self.notes:
                lines.extend(["```", note, "```", ""])
        return "\n".join(lines)


class ReportGenerator:
    """Write evaluation reports to disk."""

    def __init__(self, output_dir: str):
        """
        Initialize the report generator.

        Args:
            output_dir: Directory to save reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _stem(self, report: EvaluationReport) -> str:
        safe_timestamp = report.timestamp.replace(":", "-").replace(".", "-")
        return f"eval_{report.model_name}_{safe_timestamp}"

    def generate_all(self, report: EvaluationReport) -> Dict[str, Any]:
        """
        Generate all report formats.

        Returns:
            Dict with paths to generated files and the one-line summary
        """
        return {
            "json": self.generate_json(report),
            "markdown": self.generate_markdown(report),
            "summary": self.generate_summary(report),
        }

    def generate_json(self, report: EvaluationReport) -> Path:
        output_path = self.output_dir / f"{self._stem(report)}.json"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(report.to_json())
        logger.info(f"JSON report saved to {output_path}")
        return output_path

    def generate_markdown(self, report: EvaluationReport) -> Path:
        output_path = self.output_dir / f"{self._stem(report)}.md"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(report.to_markdown())
        logger.info(f"Markdown report saved to {output_path}")
        return output_path

    def generate_summary(self, report: EvaluationReport) -> str:
        """One-line summary for logs."""
        metrics = ", ".join(f"{k}={v:.4f}" for k, v in report.metrics.items())
        summary = f"{report.model_name} ({report.task}, n={report.n_samples}): {metrics}"
        logger.info(summary)
        return summary
