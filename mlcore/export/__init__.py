"""
Export module.

Portable model specs, weight compression, ONNX-style graph descriptions and
on-disk export.
"""

from .spec import ModelMetadata, FeatureDescriptor, ModelSpec, ModelSpecBuilder, build_network
from .compression import quantize, dequantize, prune, compression_stats, compress_spec
from .onnx import export_model_info
from .exporter import ExportConfig, ExportResult, ModelExporter

__all__ = [
    "ModelMetadata",
    "FeatureDescriptor",
    "ModelSpec",
    "ModelSpecBuilder",
    "build_network",
    "quantize",
    "dequantize",
    "prune",
    "compression_stats",
    "compress_spec",
    "export_model_info",
    "ExportConfig",
    "ExportResult",
    "ModelExporter",
]
