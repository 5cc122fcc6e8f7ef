"""
Training entry points: the command-line runner for experiment configs.
"""

from .cli import run_training, load_array, main

__all__ = ["run_training", "load_array", "main"]
