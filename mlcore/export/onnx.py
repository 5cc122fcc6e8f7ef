"""
ONNX-style graph description of a network.

This is a JSON-compatible summary (nodes, graph inputs/outputs, named weight
arrays) for handing to external conversion tools; it is not a protobuf
ONNX file.
"""

from typing import Any, Dict, List
import logging

from ..neural.layers import ActivationLayer, BatchNorm, Dense, Dropout
from ..neural.network import Network

logger = logging.getLogger(__name__)

IR_VERSION = 7
PRODUCER_NAME = "mlcore"
PRODUCER_VERSION = "0.1.0"

OP_TYPES = {
    "relu": "Relu",
    "leaky_relu": "LeakyRelu",
    "elu": "Elu",
    "selu": "Selu",
    "sigmoid": "Sigmoid",
    "tanh": "Tanh",
    "softmax": "Softmax",
    "softplus": "Softplus",
    "gelu": "Gelu",
    "linear": "Identity",
}


def _activation_node(activation, source: str, target: str) -> Dict[str, Any]:
    op_type = OP_TYPES.get(activation.name)
    if op_type is None:
        logger.warning(f"No ONNX operator for activation '{activation.name}'; exported as Identity")
        op_type = "Identity"
    node: Dict[str, Any] = {"opType": op_type, "inputs": [source], "outputs": [target]}
    if "alpha" in vars(activation):
        node["attributes"] = {"alpha": float(activation.alpha)}
    elif op_type == "Softmax":
        node["attributes"] = {"axis": -1}
    return node


def export_model_info(network: Network, input_name: str = "input", output_name: str = "output") -> Dict[str, Any]:
    """
    Describe the network as an ONNX-like graph.

    Dense layers become Gemm nodes (weights stored [in, out], so transB=0)
    followed by their activation; batch norm becomes BatchNormalization;
    dropout is omitted since inference treats it as the identity.
    """
    nodes: List[Dict[str, Any]] = []
    weights: Dict[str, List[float]] = {}
    current = input_name

    def next_name() -> str:
        return f"output_{len(nodes)}"

    for index, layer in enumerate(network.layers):
        if isinstance(layer, Dense):
            weight_name, bias_name = f"weight_{index}", f"bias_{index}"
            inputs = [current, weight_name]
            weights[weight_name] = layer.weights.data.tolist()
            if layer.bias is not None:
                inputs.append(bias_name)
                weights[bias_name] = layer.bias.data.tolist()
            target = next_name()
            nodes.append({
                "opType": "Gemm",
                "inputs": inputs,
                "outputs": [target],
                "attributes": {"transB": 0},
            })
            current = target
            if layer.activation is not None:
                target = next_name()
                nodes.append(_activation_node(layer.activation, current, target))
                current = target
        elif isinstance(layer, ActivationLayer):
            target = next_name()
            nodes.append(_activation_node(layer.activation, current, target))
            current = target
        elif isinstance(layer, BatchNorm):
            names = [f"{key}_{index}" for key in ("scale", "bias", "mean", "var")]
            for name, tensor in zip(names, (layer.gamma, layer.beta, layer.running_mean, layer.running_var)):
                weights[name] = tensor.data.tolist()
            target = next_name()
            nodes.append({
                "opType": "BatchNormalization",
                "inputs": [current] + names,
                "outputs": [target],
                "attributes": {"epsilon": layer.epsilon},
            })
            current = target
        elif isinstance(layer, Dropout):
            continue

    if nodes:
        nodes[-1]["outputs"] = [output_name]

    return {
        "irVersion": IR_VERSION,
        "producerName": PRODUCER_NAME,
        "producerVersion": PRODUCER_VERSION,
        "graph": {
            "name": network.name,
            "nodes": nodes,
            "inputs": [{"name": input_name, "type": "float"}],
            "outputs": [{"name": output_name, "type": "float"}],
        },
        "weights": weights,
    }
