"""Tests for facet texture synthesis."""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from terramesh.exceptions import InvalidParameterError
from terramesh.texture import (
    MAG_FILTER,
    MIN_FILTER,
    build_mipmaps,
    make_noise_texture,
)


class TestMakeNoiseTexture:
    """Tests for make_noise_texture."""

    def test_color_noise_ranges(self) -> None:
        """Positive amplitude darkens RGB just below white, alpha opaque."""
        texture = make_noise_texture(64, np.random.default_rng(1), size_log2=5)
        pixels = texture.pixels
        assert pixels.shape == (32, 32, 4)
        assert pixels[..., :3].min() >= 256 - 64
        assert np.all(pixels[..., 3] == 255)
        assert not texture.transparent

    def test_color_noise_is_gray(self) -> None:
        """All three color channels carry the same value."""
        pixels = make_noise_texture(64, np.random.default_rng(1), size_log2=4).pixels
        np.testing.assert_array_equal(pixels[..., 0], pixels[..., 1])
        np.testing.assert_array_equal(pixels[..., 1], pixels[..., 2])

    def test_transparency_noise_ranges(self) -> None:
        """Negative amplitude keeps RGB white and puts the noise in alpha."""
        texture = make_noise_texture(-64, np.random.default_rng(1), size_log2=5)
        pixels = texture.pixels
        assert np.all(pixels[..., :3] == 255)
        assert pixels[..., 3].min() >= 256 - 64
        assert pixels[..., 3].min() < 255
        assert texture.transparent

    def test_full_byte_range(self) -> None:
        """Amplitude 256 spans every byte value."""
        pixels = make_noise_texture(256, np.random.default_rng(3), size_log2=8).pixels
        assert pixels[..., 0].min() == 0
        assert pixels[..., 0].max() == 255

    def test_amplitude_wraps_modulo_257(self) -> None:
        """Amplitude 257 + 64 behaves like 64."""
        a = make_noise_texture(64, np.random.default_rng(9), size_log2=4)
        b = make_noise_texture(257 + 64, np.random.default_rng(9), size_log2=4)
        np.testing.assert_array_equal(a.pixels, b.pixels)

    @pytest.mark.parametrize("amplitude", [0, 257, -257, 514])
    def test_empty_range_raises(self, amplitude: int) -> None:
        """Amplitudes with an empty noise range are rejected."""
        with pytest.raises(InvalidParameterError):
            make_noise_texture(amplitude, np.random.default_rng(1))

    def test_deterministic(self) -> None:
        """Same seed gives the same texture."""
        a = make_noise_texture(64, np.random.default_rng(5), size_log2=4)
        b = make_noise_texture(64, np.random.default_rng(5), size_log2=4)
        np.testing.assert_array_equal(a.pixels, b.pixels)

    def test_default_side(self) -> None:
        """Default texture is 256 texels wide with trilinear filtering."""
        texture = make_noise_texture(64, np.random.default_rng(5))
        assert texture.side == 256
        assert texture.min_filter == MIN_FILTER
        assert texture.mag_filter == MAG_FILTER

    def test_release(self) -> None:
        """Release drops the levels."""
        texture = make_noise_texture(64, np.random.default_rng(5), size_log2=3)
        texture.release()
        assert texture.released
        assert texture.levels == []

    def test_save_png(self, tmp_path: Path) -> None:
        """Base level round-trips through a PNG file."""
        texture = make_noise_texture(-64, np.random.default_rng(5), size_log2=4)
        path = tmp_path / "textures" / "facet.png"
        texture.save_png(path)
        with Image.open(path) as image:
            assert image.mode == "RGBA"
            np.testing.assert_array_equal(np.array(image), texture.pixels)


class TestBuildMipmaps:
    """Tests for mipmap generation."""

    def test_chain_down_to_one(self) -> None:
        """Each level halves the side, ending at 1x1."""
        levels = build_mipmaps(np.zeros((16, 16, 4), dtype=np.uint8))
        assert [level.shape[0] for level in levels] == [16, 8, 4, 2, 1]
        assert all(level.shape[2] == 4 for level in levels)
        assert all(level.dtype == np.uint8 for level in levels)

    def test_box_filter_of_uniform_is_uniform(self) -> None:
        """A uniform base level stays uniform at every level."""
        base = np.full((8, 8, 4), 200, dtype=np.uint8)
        base[..., 3] = 255
        for level in build_mipmaps(base):
            assert np.all(level[..., :3] == 200)
            assert np.all(level[..., 3] == 255)

    def test_box_filter_averages(self) -> None:
        """A 2x2 level averages down to its mean."""
        base = np.zeros((2, 2, 4), dtype=np.uint8)
        base[..., 3] = 255
        base[0, 0, :3] = 100
        base[1, 1, :3] = 100
        levels = build_mipmaps(base)
        np.testing.assert_array_equal(levels[1][0, 0], [50, 50, 50, 255])
