"""
Model Exporter - Write a trained network to disk.

Produces the portable model spec, the ONNX-style graph description and a
model card in one output directory.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import InvalidConfigurationError
from ..neural.network import Network
from .compression import compress_spec
from .onnx import export_model_info
from .spec import ModelMetadata, ModelSpec

logger = logging.getLogger(__name__)


@dataclass
class ExportConfig:
    """Configuration for model export."""

    output_dir: str
    export_spec: bool = True
    export_onnx: bool = True
    write_model_card: bool = True
    quantize_bits: Optional[int] = None
    prune_threshold: Optional[float] = None
    author: str = ""
    description: str = ""
    version: str = "1.0"

    def __post_init__(self):
        """Validate configuration."""
        if self.quantize_bits is not None and not 2 <= self.quantize_bits <= 8:
            raise InvalidConfigurationError(f"quantize_bits must be in [2, 8], got {self.quantize_bits}")
        if self.prune_threshold is not None and self.prune_threshold < 0:
            raise InvalidConfigurationError("prune_threshold must be >= 0")

    @classmethod
    def from_dict(cls, output_dir: str, options: Dict[str, Any]) -> "ExportConfig":
        """Build from the ``export`` section of an experiment config."""
        unknown = set(options) - set(cls.__dataclass_fields__)
        if unknown:
            raise InvalidConfigurationError(f"Unknown export options: {sorted(unknown)}")
        values = dict(options)
        values["output_dir"] = output_dir
        return cls(**values)


@dataclass
class ExportResult:
    """Result of an export operation."""

    success: bool
    exports: Dict[str, str]
    model_name: str
    export_time_seconds: float
    error_message: Optional[str] = None
    warnings: list = field(default_factory=list)


class ModelExporter:
    """Writes a network as model_spec.json, onnx_graph.json and MODEL_CARD.md."""

    def __init__(self, config: ExportConfig):
        self.config = config
        self.output_dir = Path(config.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_all(self, network: Network, metrics: Optional[Dict[str, float]] = None) -> ExportResult:
        """
        Write every artifact enabled in the config.

        I/O and spec errors do not propagate; they are reported through
        ``ExportResult.success`` and ``error_message`` with whatever was
        written before the failure listed in ``exports``.

        Args:
            network: Built network, normally trained
            metrics: Holdout metrics to list in the model card

        Returns:
            ExportResult mapping artifact name to file path
        """
        started = time.time()
        result = ExportResult(success=False, exports={}, model_name=network.name, export_time_seconds=0.0)

        if not network.history:
            result.warnings.append(f"{network.name} has no training history; exporting initial weights")
            logger.warning(result.warnings[-1])

        try:
            spec = self.build_spec(network)
            if self.config.export_spec:
                result.exports["model_spec"] = self.export_spec(spec)
            if self.config.export_onnx:
                result.exports["onnx_graph"] = self.export_onnx(network)
            if self.config.write_model_card:
                result.exports["model_card"] = str(self.generate_model_card(spec, metrics))
            result.success = True
        except (OSError, ValueError) as e:
            logger.error(f"Export of {network.name} failed: {e}")
            result.error_message = str(e)

        result.export_time_seconds = time.time() - started
        for artifact, path in result.exports.items():
            logger.info(f"{artifact}: {path}")
        return result

    def build_spec(self, network: Network) -> ModelSpec:
        """Describe the network, applying any configured compression."""
        metadata = ModelMetadata(
            name=network.name,
            author=self.config.author,
            description=self.config.description,
            version=self.config.version,
        )
        spec = ModelSpec.from_network(network, metadata=metadata)
        if self.config.quantize_bits is not None or self.config.prune_threshold is not None:
            spec = compress_spec(spec, bits=self.config.quantize_bits, prune_threshold=self.config.prune_threshold)
        return spec

    def export_spec(self, spec: ModelSpec) -> str:
        """Write model_spec.json and return its path."""
        return self._write("model_spec.json", spec.to_json())

    def export_onnx(self, network: Network) -> str:
        return self._write("onnx_graph.json", json.dumps(export_model_info(network), indent=2))

    def generate_model_card(self, spec: ModelSpec, metrics: Optional[Dict[str, float]] = None) -> Path:
        """
        Write MODEL_CARD.md.

        Sections: details, description (when set), architecture table,
        metrics (when given), loading snippet and license.
        """
        meta = spec.metadata
        lines = [f"# {meta.name}", ""]
        lines += _section("Model Details", [
            f"- **Version:** {meta.version}",
            f"- **Author:** {meta.author or 'unknown'}",
            f"- **Created:** {datetime.now():%Y-%m-%d}",
            f"- **Parameters:** {spec.parameter_count():,}",
            f"- **Inputs:** {_describe_fields(spec.inputs)}",
            f"- **Outputs:** {_describe_fields(spec.outputs)}",
        ])
        if meta.description:
            lines += _section("Description", [meta.description])
        lines += _section("Architecture", _table(
            ["#", "Layer", "Details"],
            [[str(i), layer["type"], _layer_details(layer)] for i, layer in enumerate(spec.layers)],
        ))
        if metrics:
            lines += _section("Evaluation Metrics", _table(
                ["Metric", "Value"],
                [[name, f"{value:.3f}" if isinstance(value, float) else str(value)] for name, value in metrics.items()],
            ))
        lines += _section("Usage", USAGE_SNIPPET.splitlines())
        lines += _section("License", [meta.license])

        return Path(self._write("MODEL_CARD.md", "\n".join(lines)))

    def _write(self, filename: str, text: str) -> str:
        path = self.output_dir / filename
        path.write_text(text, encoding="utf-8")
        return str(path)


USAGE_SNIPPET = """```python
from mlcore.export import ModelSpec, build_network

with open("model_spec.json") as f:
    network = build_network(ModelSpec.from_json(f.read()))
predictions = network.predict(x)
```"""


def _section(title: str, body: List[str]) -> List[str]:
    return [f"## {title}", ""] + body + [""]


def _table(header: List[str], rows: List[List[str]]) -> List[str]:
    out = ["| " + " | ".join(header) + " |", "|" + "|".join("-" * (len(h) + 2) for h in header) + "|"]
    out += ["| " + " | ".join(row) + " |" for row in rows]
    return out


def _describe_fields(fields) -> str:
    return ", ".join(f"{f.name} {f.shape}" for f in fields)


def _layer_details(layer: Dict[str, Any]) -> str:
    kind = layer["type"]
    if kind == "dense":
        activation = (layer.get("activation") or {}).get("name", "none")
        details = f"{layer['input_size']} -> {layer['output_size']}, activation={activation}"
    elif kind == "activation":
        details = layer["activation"]["name"]
    elif kind == "dropout":
        details = f"rate={layer['rate']}"
    else:
        details = f"features={len(layer['gamma'])}"
    compression = layer.get("compression")
    if compression:
        details += f", compressed ({', '.join(k for k in compression if k != 'quantized')})"
    return details
