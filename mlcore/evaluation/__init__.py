"""
Evaluation: metrics and report generation.
"""

from .reporting import EvaluationReport, ReportGenerator

__all__ = ["EvaluationReport", "ReportGenerator"]
