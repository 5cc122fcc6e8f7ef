"""
Configuration management.

Dataclass models for type-safe configuration.
"""

from .training import (
    LayerConfig,
    TrainingConfig,
    ExperimentConfig,
    load_experiment_config,
    experiment_config_from_dict,
)

__all__ = [
    "LayerConfig",
    "TrainingConfig",
    "ExperimentConfig",
    "load_experiment_config",
    "experiment_config_from_dict",
]
