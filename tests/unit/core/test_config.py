"""
Unit tests for experiment configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from mlcore.core.config import (
    LayerConfig,
    TrainingConfig,
    load_experiment_config,
    experiment_config_from_dict,
)
from mlcore.errors import InvalidConfigurationError

CONFIGS_DIR = Path(__file__).parent.parent.parent.parent / "configs"


class TestLayerConfig:
    """Layer declarations."""

    def test_type_is_normalized(self) -> None:
        """Type names are lower-cased and batchnorm is accepted."""
        assert LayerConfig(type="BatchNorm").type == "batch_norm"
        assert LayerConfig(type="Dense", units=4).type == "dense"

    def test_dense_requires_units(self) -> None:
        """Dense layers need a positive width."""
        with pytest.raises(InvalidConfigurationError):
            LayerConfig(type="dense")

    def test_unknown_type(self) -> None:
        """Unknown layer types raise."""
        with pytest.raises(InvalidConfigurationError):
            LayerConfig(type="conv2d")

    def test_dropout_rate_range(self) -> None:
        """Dropout rate must be in [0, 1)."""
        with pytest.raises(InvalidConfigurationError):
            LayerConfig(type="dropout", rate=1.0)


class TestTrainingConfig:
    """Training settings validation."""

    def test_defaults(self) -> None:
        """Defaults are usable as-is."""
        config = TrainingConfig()
        assert config.optimizer == "adam"
        assert config.accumulation_steps == 1

    @pytest.mark.parametrize("kwargs", [
        {"epochs": 0},
        {"batch_size": -1},
        {"learning_rate": 0.0},
        {"validation_split": 1.0},
    ])
    def test_rejects_invalid(self, kwargs) -> None:
        """Out-of-range settings raise."""
        with pytest.raises(InvalidConfigurationError):
            TrainingConfig(**kwargs)


class TestExperimentConfig:
    """Experiment files."""

    def test_from_dict(self) -> None:
        """Nested mappings become dataclasses."""
        config = experiment_config_from_dict({
            "name": "tiny",
            "input_size": 3,
            "layers": [{"type": "dense", "units": 2, "activation": "relu"}],
            "training": {"epochs": 5, "loss": "mse"},
        })
        assert config.name == "tiny"
        assert config.layers[0].units == 2
        assert config.training.epochs == 5
        assert config.export == {}

    def test_unknown_training_option(self) -> None:
        """Typos in training options are reported."""
        with pytest.raises(InvalidConfigurationError):
            experiment_config_from_dict({
                "input_size": 1,
                "layers": [{"type": "dense", "units": 1}],
                "training": {"epoch": 5},
            })

    def test_missing_input_size(self) -> None:
        """input_size is required."""
        with pytest.raises(InvalidConfigurationError):
            experiment_config_from_dict({"layers": [{"type": "dense", "units": 1}]})

    def test_load_from_yaml(self, tmp_path) -> None:
        """YAML files round-trip through the loader."""
        path = tmp_path / "experiment.yaml"
        path.write_text(yaml.safe_dump({
            "name": "yaml-exp",
            "input_size": 4,
            "layers": [{"type": "dense", "units": 3}, {"type": "activation", "activation": "softmax"}],
        }))
        config = load_experiment_config(str(path))
        assert config.input_size == 4
        assert [layer.type for layer in config.layers] == ["dense", "activation"]

    def test_missing_file(self, tmp_path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_experiment_config(str(tmp_path / "absent.yaml"))

    def test_bundled_xor_config(self) -> None:
        """The shipped XOR config is valid."""
        config = load_experiment_config(str(CONFIGS_DIR / "xor.yaml"))
        assert config.name == "xor"
        assert config.training.loss == "bce"
        assert config.export["quantize_bits"] == 8
