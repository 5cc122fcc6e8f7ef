"""
Portable model description.

A ModelSpec is a plain, JSON-compatible description of a trained network:
metadata, input/output feature descriptors and an ordered list of layer
descriptions carrying raw (flattened, row-major) weight arrays. It can be
rebuilt into an inference Network that reproduces the original predictions.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.activations import get_activation
from ..core.tensor import Tensor
from ..errors import DimensionMismatchError, InvalidConfigurationError
from ..neural.layers import ActivationLayer, BatchNorm, Dense, Dropout
from ..neural.network import Network

logger = logging.getLogger(__name__)

SPEC_FORMAT_VERSION = "1.0"
LAYER_TYPES = ("dense", "activation", "batch_norm", "dropout")


@dataclass
class ModelMetadata:
    """Descriptive fields carried alongside the weights."""

    name: str = "model"
    author: str = ""
    description: str = ""
    version: str = "1.0"
    license: str = "MIT"
    created: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class FeatureDescriptor:
    name: str
    shape: List[int]


def _activation_entry(activation) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"name": activation.name}
    if "alpha" in vars(activation):
        entry["alpha"] = float(activation.alpha)
    return entry


def _make_activation(entry: Any):
    if isinstance(entry, str):
        return get_activation(entry)
    params = {k: v for k, v in entry.items() if k != "name"}
    if not params:
        return get_activation(entry["name"])
    return type(get_activation(entry["name"]))(**params)


def _flat(values: Any) -> List[float]:
    return [float(v) for v in np.asarray(values, dtype=np.float64).reshape(-1)]


def _validate_layer(index: int, layer: Dict[str, Any]) -> None:
    kind = layer.get("type")
    if kind not in LAYER_TYPES:
        raise InvalidConfigurationError(
            f"Layer {index} has unknown type {kind!r}; expected one of {LAYER_TYPES}"
        )
    if kind == "dense":
        n_in, n_out = int(layer["input_size"]), int(layer["output_size"])
        if len(layer["weights"]) != n_in * n_out:
            raise DimensionMismatchError(
                f"Layer {index}: {len(layer['weights'])} weights for a {n_in}x{n_out} dense layer"
            )
        if layer.get("bias") is not None and len(layer["bias"]) != n_out:
            raise DimensionMismatchError(
                f"Layer {index}: bias has {len(layer['bias'])} values, expected {n_out}"
            )
    elif kind == "batch_norm":
        sizes = {len(layer[key]) for key in ("gamma", "beta", "mean", "variance")}
        if len(sizes) != 1:
            raise DimensionMismatchError(f"Layer {index}: batch-norm statistics differ in length")
    elif kind == "activation":
        _make_activation(layer["activation"])


@dataclass
class ModelSpec:
    """
    Serializable network description.

    Attributes:
        metadata: Descriptive fields
        inputs: Input feature descriptors
        outputs: Output feature descriptors
        layers: Ordered layer descriptions (see ModelSpecBuilder for keys)
    """

    metadata: ModelMetadata = field(default_factory=ModelMetadata)
    inputs: List[FeatureDescriptor] = field(default_factory=list)
    outputs: List[FeatureDescriptor] = field(default_factory=list)
    layers: List[Dict[str, Any]] = field(default_factory=list)
    format_version: str = SPEC_FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": self.format_version,
            "metadata": asdict(self.metadata),
            "inputs": [asdict(f) for f in self.inputs],
            "outputs": [asdict(f) for f in self.outputs],
            "layers": [dict(layer) for layer in self.layers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelSpec":
        """
        Load a spec produced by to_dict().

        Raises:
            InvalidConfigurationError: Unknown layer types or activations
            DimensionMismatchError: Weight arrays inconsistent with declared sizes
        """
        layers = [dict(layer) for layer in data.get("layers", [])]
        for index, layer in enumerate(layers):
            _validate_layer(index, layer)
        return cls(
            metadata=ModelMetadata(**data.get("metadata", {})),
            inputs=[FeatureDescriptor(f["name"], list(f["shape"])) for f in data.get("inputs", [])],
            outputs=[FeatureDescriptor(f["name"], list(f["shape"])) for f in data.get("outputs", [])],
            layers=layers,
            format_version=data.get("format_version", SPEC_FORMAT_VERSION),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "ModelSpec":
        return cls.from_dict(json.loads(text))

    def parameter_count(self) -> int:
        total = 0
        for layer in self.layers:
            if layer["type"] == "dense":
                total += len(layer["weights"]) + len(layer.get("bias") or [])
            elif layer["type"] == "batch_norm":
                total += len(layer["gamma"]) + len(layer["beta"])
        return total

    @classmethod
    def from_network(
        cls,
        network: Network,
        input_name: str = "input",
        output_name: str = "output",
        metadata: Optional[ModelMetadata] = None,
    ) -> "ModelSpec":
        """
        Describe a built network.

        Raises:
            InvalidConfigurationError: If the network has no layer that fixes
                its input size (a Dense or BatchNorm layer)
        """
        builder = ModelSpecBuilder(metadata or ModelMetadata(name=network.name))
        size: Optional[int] = None
        for layer in network.layers:
            if isinstance(layer, Dense):
                size = layer.input_size
                break
            if isinstance(layer, BatchNorm):
                size = layer.num_features
                break
        if size is None:
            raise InvalidConfigurationError(
                f"Cannot infer the input size of {network.name}: it has no Dense or BatchNorm layer"
            )
        builder.set_input(input_name, [size])

        for layer in network.layers:
            if isinstance(layer, Dense):
                builder.add_dense_layer(
                    layer.input_size,
                    layer.output_size_,
                    layer.weights.data,
                    layer.bias.data if layer.bias is not None else None,
                    activation=layer.activation,
                )
            elif isinstance(layer, ActivationLayer):
                builder.add_activation(layer.activation)
            elif isinstance(layer, BatchNorm):
                builder.add_batch_norm(
                    layer.gamma.data,
                    layer.beta.data,
                    layer.running_mean.data,
                    layer.running_var.data,
                    epsilon=layer.epsilon,
                )
            elif isinstance(layer, Dropout):
                builder.add_dropout(layer.rate)
            else:
                raise InvalidConfigurationError(f"Cannot export layer type {type(layer).__name__}")
            size = layer.output_size(size)

        builder.set_output(output_name, [size])
        return builder.build()


class ModelSpecBuilder:
    """
    Fluent construction of a ModelSpec.

    Usage:
        spec = (ModelSpecBuilder(ModelMetadata(name="xor"))
                .set_input("input", [2])
                .add_dense_layer(2, 1, weights, bias, activation="sigmoid")
                .set_output("output", [1])
                .build())
    """

    def __init__(self, metadata: Optional[ModelMetadata] = None):
        self.metadata = metadata or ModelMetadata()
        self._inputs: List[FeatureDescriptor] = []
        self._outputs: List[FeatureDescriptor] = []
        self._layers: List[Dict[str, Any]] = []

    def set_input(self, name: str, shape: Sequence[int]) -> "ModelSpecBuilder":
        self._inputs.append(FeatureDescriptor(name, [int(s) for s in shape]))
        return self

    def set_output(self, name: str, shape: Sequence[int]) -> "ModelSpecBuilder":
        self._outputs.append(FeatureDescriptor(name, [int(s) for s in shape]))
        return self

    def add_dense_layer(
        self,
        input_size: int,
        output_size: int,
        weights: Any,
        bias: Any = None,
        activation=None,
    ) -> "ModelSpecBuilder":
        """Weights are [input_size, output_size], stored flattened row-major."""
        layer: Dict[str, Any] = {
            "type": "dense",
            "input_size": int(input_size),
            "output_size": int(output_size),
            "weights": _flat(weights),
            "bias": _flat(bias) if bias is not None else None,
        }
        if activation is not None:
            layer["activation"] = _activation_entry(get_activation(activation))
        _validate_layer(len(self._layers), layer)
        self._layers.append(layer)
        return self

    def add_activation(self, activation) -> "ModelSpecBuilder":
        self._layers.append({"type": "activation", "activation": _activation_entry(get_activation(activation))})
        return self

    def add_batch_norm(
        self,
        gamma: Any,
        beta: Any,
        mean: Any,
        variance: Any,
        epsilon: float = 1e-5,
    ) -> "ModelSpecBuilder":
        layer = {
            "type": "batch_norm",
            "gamma": _flat(gamma),
            "beta": _flat(beta),
            "mean": _flat(mean),
            "variance": _flat(variance),
            "epsilon": float(epsilon),
        }
        _validate_layer(len(self._layers), layer)
        self._layers.append(layer)
        return self

    def add_dropout(self, rate: float) -> "ModelSpecBuilder":
        self._layers.append({"type": "dropout", "rate": float(rate)})
        return self

    def build(self) -> ModelSpec:
        return ModelSpec(
            metadata=self.metadata,
            inputs=list(self._inputs),
            outputs=list(self._outputs),
            layers=[dict(layer) for layer in self._layers],
        )


def build_network(spec: ModelSpec, optimizer: str = "sgd", loss: str = "mse") -> Network:
    """
    Rebuild an inference-ready (compiled) network from a spec.

    The optimizer and loss only matter if the network is trained further.
    """
    network = Network(name=spec.metadata.name)
    features: Optional[int] = None
    for index, layer in enumerate(spec.layers):
        _validate_layer(index, layer)
        kind = layer["type"]
        if kind == "dense":
            n_in, n_out = layer["input_size"], layer["output_size"]
            activation = _make_activation(layer["activation"]) if layer.get("activation") else None
            network.dense(n_in, n_out, activation=activation, use_bias=layer.get("bias") is not None)
            params = [Tensor([n_in, n_out], layer["weights"])]
            if layer.get("bias") is not None:
                params.append(Tensor([n_out], layer["bias"]))
            network.layers[-1].set_parameters(params)
            features = n_out
        elif kind == "activation":
            network.activation(_make_activation(layer["activation"]))
        elif kind == "dropout":
            network.dropout(layer["rate"])
        else:
            n = len(layer["gamma"])
            network.batch_norm(n, epsilon=layer.get("epsilon", 1e-5))
            bn = network.layers[-1]
            bn.set_parameters([Tensor([n], layer["gamma"]), Tensor([n], layer["beta"])])
            bn.running_mean = Tensor([n], layer["mean"])
            bn.running_var = Tensor([n], layer["variance"])
            features = n

    if not network.layers:
        raise InvalidConfigurationError("Spec has no layers")
    network.compile(optimizer=optimizer, loss=loss)
    logger.debug(f"Rebuilt {network.name}: {len(network.layers)} layers, output size {features}")
    return network
