"""
Unit tests for quantization, pruning and spec compression.
"""

import pytest
import numpy as np

from mlcore.errors import InvalidConfigurationError
from mlcore.export import (
    ModelSpecBuilder,
    build_network,
    compress_spec,
    compression_stats,
    dequantize,
    prune,
    quantize,
)


class TestQuantize:
    """Affine integer quantization."""

    def test_int8_buffer(self) -> None:
        """Values map into the int8 range."""
        q, scale, zero_point = quantize(np.linspace(-1.0, 3.0, 50))
        assert q.dtype == np.int8
        assert q.min() >= -128 and q.max() <= 127
        assert scale > 0
        assert -128 <= zero_point <= 127

    @pytest.mark.parametrize("bits", [2, 4, 8])
    def test_error_bounded_by_scale(self, bits) -> None:
        """Dequantized values stay within one grid step."""
        values = np.random.default_rng(0).normal(size=200)
        q, scale, zero_point = quantize(values, bits=bits)
        restored = dequantize(q, scale, zero_point)
        assert np.max(np.abs(restored - values)) <= 1.5 * scale

    def test_dequantize_is_exact_inverse_on_grid(self) -> None:
        """Quantizing dequantized values gives the same integers."""
        q, scale, zero_point = quantize([-0.5, 0.0, 0.25, 1.0])
        again, _, _ = quantize(dequantize(q, scale, zero_point))
        np.testing.assert_array_equal(again, q)

    @pytest.mark.parametrize("values", [
        [10.0, 10.5, 11.0],
        [0.5, 0.55, 0.6],
        [-3.0, -2.5, -2.25],
    ])
    def test_one_signed_buffer(self, values) -> None:
        """Buffers that do not straddle zero still dequantize within a step."""
        q, scale, zero_point = quantize(values)
        assert -128 <= zero_point <= 127
        assert len(set(q.tolist())) == 3
        restored = dequantize(q, scale, zero_point)
        assert np.max(np.abs(restored - np.asarray(values))) <= 1.5 * scale

    def test_positive_grid_includes_zero(self) -> None:
        """Zero is representable even when every value is positive."""
        q, scale, zero_point = quantize(np.linspace(1.0, 4.0, 20), bits=4)
        assert zero_point == -8
        assert dequantize(np.array([zero_point]), scale, zero_point)[0] == 0.0

    def test_constant_buffer(self) -> None:
        """A constant buffer round-trips exactly."""
        q, scale, zero_point = quantize([0.7, 0.7, 0.7])
        np.testing.assert_allclose(dequantize(q, scale, zero_point), [0.7, 0.7, 0.7])
        q, scale, zero_point = quantize([0.0, 0.0])
        np.testing.assert_array_equal(dequantize(q, scale, zero_point), [0.0, 0.0])

    def test_bits_range(self) -> None:
        """Only 2 to 8 bits fit an int8 buffer."""
        with pytest.raises(InvalidConfigurationError):
            quantize([1.0], bits=16)


class TestPrune:
    """Magnitude pruning."""

    def test_zeroes_small_weights(self) -> None:
        """Entries below the threshold are zeroed and masked out."""
        pruned, mask = prune([0.5, -0.01, 0.02, -0.8], threshold=0.05)
        assert pruned.tolist() == [0.5, 0.0, 0.0, -0.8]
        assert mask.tolist() == [True, False, False, True]

    def test_keeps_shape(self) -> None:
        """2-D buffers stay 2-D."""
        pruned, mask = prune(np.ones((3, 2)) * 0.1, threshold=0.2)
        assert pruned.shape == (3, 2)
        assert not mask.any()

    def test_negative_threshold(self) -> None:
        """Thresholds are magnitudes."""
        with pytest.raises(InvalidConfigurationError):
            prune([1.0], threshold=-1.0)


class TestCompressionStats:
    """Size accounting."""

    def test_int8_is_four_times_smaller(self) -> None:
        """float32 to int8 is a 4x reduction."""
        values = np.zeros(100)
        q, _, _ = quantize(values)
        stats = compression_stats(values, q)
        assert stats["original_size"] == 400
        assert stats["compressed_size"] == 100
        assert stats["ratio"] == 4.0


class TestCompressSpec:
    """Whole-spec compression."""

    def test_compressed_spec_still_builds(self) -> None:
        """Dense layers gain compression info and stay usable."""
        weights = np.array([[0.5, -0.001], [0.25, 1.0]])
        spec = (
            ModelSpecBuilder()
            .set_input("input", [2])
            .add_dense_layer(2, 2, weights, [0.0, 0.0])
            .set_output("output", [2])
            .build()
        )
        compressed = compress_spec(spec, bits=8, prune_threshold=0.01)
        info = compressed.layers[0]["compression"]
        assert info["sparsity"] == 0.25
        assert info["bits"] == 8
        assert len(info["quantized"]) == 4
        assert compressed.layers[0]["weights"][1] == 0.0

        output = build_network(compressed).predict([[1.0, 1.0]]).to_numpy()
        np.testing.assert_allclose(output, [[0.75, 1.0]], atol=2 * info["scale"])

    def test_original_left_untouched(self) -> None:
        """Compression works on a copy."""
        spec = ModelSpecBuilder().add_dense_layer(1, 1, [0.123]).build()
        compress_spec(spec, bits=4)
        assert spec.layers[0]["weights"] == [0.123]
        assert "compression" not in spec.layers[0]
