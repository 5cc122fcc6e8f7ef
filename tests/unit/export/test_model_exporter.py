"""
Tests for ModelExporter and the ONNX-style graph description.

Tests cover:
- ExportConfig validation
- Graph node layout
- Writing spec, graph and model card to disk
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from mlcore.errors import InvalidConfigurationError
from mlcore.export import ExportConfig, ModelExporter, ModelSpec, build_network, export_model_info
from mlcore.neural import Network


@pytest.fixture
def temp_output_dir():
    """Create a temporary output directory."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def network() -> Network:
    """An untrained two-layer network."""
    net = Network(name="tiny", random_state=0)
    net.dense(3, 4, activation="relu").batch_norm(4).dropout(0.2).dense(4, 2, activation="softmax")
    return net.compile(optimizer="sgd", loss="categorical_crossentropy")


class TestExportConfig:
    """Test ExportConfig validation."""

    def test_defaults(self) -> None:
        """All outputs are enabled and compression is off by default."""
        config = ExportConfig(output_dir="/tmp/out")
        assert config.export_spec and config.export_onnx and config.write_model_card
        assert config.quantize_bits is None

    def test_invalid_bits(self) -> None:
        """quantize_bits must fit in int8."""
        with pytest.raises(InvalidConfigurationError):
            ExportConfig(output_dir="/tmp/out", quantize_bits=12)

    def test_from_dict_rejects_unknown(self) -> None:
        """Unknown export options are reported."""
        with pytest.raises(InvalidConfigurationError):
            ExportConfig.from_dict("/tmp/out", {"format": "tflite"})

    def test_from_dict(self) -> None:
        """Known options are applied."""
        config = ExportConfig.from_dict("/tmp/out", {"quantize_bits": 4, "author": "me"})
        assert config.quantize_bits == 4
        assert config.author == "me"


class TestOnnxGraph:
    """Test the graph description."""

    def test_header(self, network: Network) -> None:
        """Producer fields identify the library."""
        info = export_model_info(network)
        assert info["irVersion"] == 7
        assert info["producerName"] == "mlcore"
        assert info["graph"]["name"] == "tiny"

    def test_nodes(self, network: Network) -> None:
        """Dense layers become Gemm plus activation; dropout is dropped."""
        info = export_model_info(network)
        ops = [node["opType"] for node in info["graph"]["nodes"]]
        assert ops == ["Gemm", "Relu", "BatchNormalization", "Gemm", "Softmax"]
        assert info["graph"]["nodes"][0]["attributes"] == {"transB": 0}
        assert info["graph"]["nodes"][-1]["outputs"] == ["output"]

    def test_nodes_are_chained(self, network: Network) -> None:
        """Each node consumes the previous node's output."""
        nodes = export_model_info(network)["graph"]["nodes"]
        assert nodes[0]["inputs"][0] == "input"
        for previous, node in zip(nodes, nodes[1:]):
            assert node["inputs"][0] == previous["outputs"][0]

    def test_weights(self, network: Network) -> None:
        """Weight arrays are keyed by layer index."""
        weights = export_model_info(network)["weights"]
        assert len(weights["weight_0"]) == 12
        assert len(weights["bias_0"]) == 4
        assert len(weights["mean_1"]) == 4
        assert len(weights["weight_3"]) == 8


class TestModelExporter:
    """Test writing exports to disk."""

    def test_export_all(self, temp_output_dir: str, network: Network) -> None:
        """All three artifacts are written."""
        result = ModelExporter(ExportConfig(output_dir=temp_output_dir)).export_all(network)
        assert result.success
        assert set(result.exports) == {"model_spec", "onnx_graph", "model_card"}
        for path in result.exports.values():
            assert Path(path).exists()
        # Untrained networks are exported with a warning
        assert result.warnings

    def test_spec_file_rebuilds(self, temp_output_dir: str, network: Network) -> None:
        """model_spec.json loads back into an equivalent network."""
        result = ModelExporter(ExportConfig(output_dir=temp_output_dir)).export_all(network)
        with open(result.exports["model_spec"]) as f:
            spec = ModelSpec.from_json(f.read())
        rebuilt = build_network(spec)
        x = [[0.5, -1.0, 2.0]]
        assert rebuilt.predict(x).allclose(network.predict(x))

    def test_graph_file_is_json(self, temp_output_dir: str, network: Network) -> None:
        """onnx_graph.json parses as JSON."""
        result = ModelExporter(ExportConfig(output_dir=temp_output_dir, export_spec=False)).export_all(network)
        assert "model_spec" not in result.exports
        with open(result.exports["onnx_graph"]) as f:
            assert json.load(f)["producerName"] == "mlcore"

    def test_model_card(self, temp_output_dir: str, network: Network) -> None:
        """The card lists architecture, metrics and description."""
        config = ExportConfig(output_dir=temp_output_dir, description="Toy classifier", author="tests")
        result = ModelExporter(config).export_all(network, metrics={"accuracy": 0.9})
        card = Path(result.exports["model_card"]).read_text()
        assert card.startswith("# tiny")
        assert "Toy classifier" in card
        assert "| accuracy | 0.900 |" in card
        assert "3 -> 4, activation=relu" in card

    def test_quantized_export(self, temp_output_dir: str, network: Network) -> None:
        """Configured compression is applied to the written spec."""
        config = ExportConfig(output_dir=temp_output_dir, quantize_bits=8, write_model_card=False)
        result = ModelExporter(config).export_all(network)
        with open(result.exports["model_spec"]) as f:
            data = json.load(f)
        dense = [layer for layer in data["layers"] if layer["type"] == "dense"]
        assert all(layer["compression"]["bits"] == 8 for layer in dense)
