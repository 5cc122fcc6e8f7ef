"""
Training and network configuration.

Dataclass configs validated on construction, plus YAML loading for
experiment files.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from ...errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

LAYER_TYPES = ("dense", "activation", "dropout", "batch_norm")


@dataclass
class LayerConfig:
    """Declarative description of one network layer."""

    type: str
    units: Optional[int] = None  # Dense output size
    input_size: Optional[int] = None  # Dense input size, inferred when omitted
    activation: Optional[str] = None
    rate: float = 0.5  # Dropout rate
    use_bias: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.type = self.type.lower().replace("-", "_")
        if self.type == "batchnorm":
            self.type = "batch_norm"
        if self.type not in LAYER_TYPES:
            raise InvalidConfigurationError(
                f"Unknown layer type: {self.type}. Must be one of {list(LAYER_TYPES)}"
            )
        if self.type == "dense" and (self.units is None or self.units <= 0):
            raise InvalidConfigurationError("dense layers need a positive 'units'")
        if self.type == "activation" and not self.activation:
            raise InvalidConfigurationError("activation layers need an 'activation' name")
        if self.type == "dropout" and not 0 <= self.rate < 1:
            raise InvalidConfigurationError("dropout rate must be in [0, 1)")


@dataclass
class TrainingConfig:
    """Configuration for network training."""

    epochs: int = 10
    batch_size: int = 32
    learning_rate: float = 0.001
    optimizer: str = "adam"
    loss: str = "mse"
    shuffle: bool = True
    validation_split: float = 0.0
    seed: Optional[int] = None
    accumulation_steps: int = 1
    max_grad_norm: Optional[float] = None
    verbose: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.epochs <= 0:
            raise InvalidConfigurationError("epochs must be positive")
        if self.batch_size <= 0:
            raise InvalidConfigurationError("batch_size must be positive")
        if self.learning_rate <= 0:
            raise InvalidConfigurationError("learning_rate must be positive")
        if not 0 <= self.validation_split < 1:
            raise InvalidConfigurationError("validation_split must be in [0, 1)")
        if self.accumulation_steps < 1:
            raise InvalidConfigurationError("accumulation_steps must be >= 1")


@dataclass
class ExperimentConfig:
    """Complete experiment: architecture, training and export settings."""

    name: str
    input_size: int
    layers: List[LayerConfig]
    training: TrainingConfig = field(default_factory=TrainingConfig)
    export: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.input_size <= 0:
            raise InvalidConfigurationError("input_size must be positive")
        if not self.layers:
            raise InvalidConfigurationError("an experiment needs at least one layer")


def load_experiment_config(config_path: str) -> ExperimentConfig:
    """
    Load experiment configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        ExperimentConfig instance
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return experiment_config_from_dict(data)


def experiment_config_from_dict(data: Dict[str, Any]) -> ExperimentConfig:
    """Build an ExperimentConfig from a parsed mapping."""
    if "input_size" not in data:
        raise InvalidConfigurationError("experiment config requires 'input_size'")

    layers = [LayerConfig(**layer) for layer in data.get("layers", [])]

    training_data = data.get("training", {}) or {}
    unknown = set(training_data) - set(TrainingConfig.__dataclass_fields__)
    if unknown:
        raise InvalidConfigurationError(f"Unknown training options: {sorted(unknown)}")
    training = TrainingConfig(**training_data)

    config = ExperimentConfig(
        name=data.get("name", "experiment"),
        input_size=int(data["input_size"]),
        layers=layers,
        training=training,
        export=data.get("export", {}) or {},
    )
    logger.debug(f"Loaded experiment '{config.name}' with {len(layers)} layers")
    return config
