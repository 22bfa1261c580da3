"""Facet textures: small tileable white-noise bitmaps for surface detail."""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import structlog
from numpy.typing import NDArray
from PIL import Image

from .exceptions import InvalidParameterError

logger = structlog.get_logger()

# Noise ranges wrap at 257 so that 256 stays usable as the full byte range.
NOISE_MODULUS = 257

MIN_FILTER = "linear_mipmap_linear"
MAG_FILTER = "linear"


@dataclass(eq=False)
class FacetTexture:
    """RGBA8 noise texture with its full mipmap chain.

    ``levels[0]`` is the base bitmap; each following level halves the side
    down to 1x1. Uploading and binding is up to the renderer.
    """

    levels: list[NDArray[np.uint8]]
    amplitude: int
    transparent: bool
    min_filter: str = MIN_FILTER
    mag_filter: str = MAG_FILTER
    released: bool = field(default=False, compare=False)

    @property
    def pixels(self) -> NDArray[np.uint8]:
        """Base level, shape (side, side, 4)."""
        return self.levels[0]

    @property
    def side(self) -> int:
        return self.levels[0].shape[0]

    def save_png(self, path: Path) -> None:
        """Write the base level as an RGBA PNG."""
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(self.pixels).save(path)

    def release(self) -> None:
        self.levels = []
        self.released = True


def build_mipmaps(pixels: NDArray[np.uint8]) -> list[NDArray[np.uint8]]:
    """Box-filter the bitmap down to 1x1.

    Args:
        pixels: Square RGBA array with a power-of-two side.

    Returns:
        List of levels, base first.
    """
    levels = [pixels]
    image = Image.fromarray(pixels)
    side = pixels.shape[0]
    while side > 1:
        side //= 2
        image = image.resize((side, side), resample=Image.Resampling.BOX)
        levels.append(np.array(image, dtype=np.uint8))
    return levels


def make_noise_texture(
    amplitude: int,
    rng: np.random.Generator,
    size_log2: int = 8,
) -> FacetTexture:
    """Create a white-noise facet texture.

    Each texel draws u uniformly from [0, range) with
    range = |amplitude| mod 257, and stores (u - range) mod 256, i.e. a
    darkening offset just below white.

    Args:
        amplitude: Noise amplitude. Positive values put the noise in RGB
            with opaque alpha; negative values keep RGB white and put the
            noise in alpha.
        rng: Seeded random number generator.
        size_log2: log2 of the texture side.

    Returns:
        FacetTexture with mipmaps.

    Raises:
        InvalidParameterError: If the noise range is zero.
    """
    noise_range = abs(amplitude) % NOISE_MODULUS
    if noise_range == 0:
        raise InvalidParameterError(
            f"Texture amplitude {amplitude} gives an empty noise range"
        )

    side = 1 << size_log2
    draws = rng.integers(0, noise_range, size=(side, side))
    noise = ((draws - noise_range) % 256).astype(np.uint8)

    transparent = amplitude < 0
    pixels = np.full((side, side, 4), 255, dtype=np.uint8)
    if transparent:
        pixels[..., 3] = noise
    else:
        pixels[..., :3] = noise[..., np.newaxis]

    logger.debug(
        "texture_synthesized",
        side=side,
        amplitude=amplitude,
        transparent=transparent,
    )
    return FacetTexture(
        levels=build_mipmaps(pixels),
        amplitude=amplitude,
        transparent=transparent,
    )
