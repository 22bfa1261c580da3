"""Terrain generation configuration models."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from .capabilities import GenerationCapabilities
from .exceptions import InvalidParameterError


class Color(BaseModel, frozen=True):
    """RGBA8 color."""

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: int = Field(default=255, ge=0, le=255)

    @classmethod
    def from_rgba32(cls, value: int) -> "Color":
        """Build from a packed little-endian word (0xAABBGGRR)."""
        return cls(
            r=value & 0xFF,
            g=(value >> 8) & 0xFF,
            b=(value >> 16) & 0xFF,
            a=(value >> 24) & 0xFF,
        )

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)


class ColorBandEntry(BaseModel, frozen=True):
    """One palette band: a relative height span and its color."""

    relative_height: float = Field(description="Relative span; 0 marks the water sentinel")
    color: Color


class ColorBand(BaseModel, frozen=True):
    """Height-banded palette terminated by a water sentinel.

    Bands are listed bottom-up. The first entry with a zero relative height
    is the sentinel: its color is the water color and its alpha is the
    transparency used for deep water. Anything after the sentinel is ignored.
    """

    entries: list[ColorBandEntry] = Field(default_factory=list)

    @classmethod
    def from_pairs(
        cls, pairs: list[tuple[float, tuple[int, int, int, int]]]
    ) -> "ColorBand":
        """Build from ``(relative_height, (r, g, b, a))`` pairs."""
        return cls(
            entries=[
                ColorBandEntry(
                    relative_height=height,
                    color=Color(r=rgba[0], g=rgba[1], b=rgba[2], a=rgba[3]),
                )
                for height, rgba in pairs
            ]
        )

    def _sentinel_index(self) -> int | None:
        for i, entry in enumerate(self.entries):
            if entry.relative_height <= 0.0:
                return i
        return None

    def check(self) -> None:
        """Validate the band for generation.

        Raises:
            InvalidParameterError: If the band is empty, lacks the water
                sentinel, or has no band below the sentinel.
        """
        if not self.entries:
            raise InvalidParameterError("Color band is empty")
        sentinel = self._sentinel_index()
        if sentinel is None:
            raise InvalidParameterError("Color band has no water sentinel")
        if sentinel == 0:
            raise InvalidParameterError("Color band has no land bands")

    @property
    def bands(self) -> list[ColorBandEntry]:
        """Land bands, bottom-up, excluding the sentinel."""
        sentinel = self._sentinel_index()
        return self.entries if sentinel is None else self.entries[:sentinel]

    @property
    def water(self) -> Color:
        """Water color; alpha is the deep-water transparency."""
        sentinel = self._sentinel_index()
        if sentinel is None:
            raise InvalidParameterError("Color band has no water sentinel")
        return self.entries[sentinel].color

    @property
    def total_height(self) -> float:
        """Sum of all land band spans."""
        return sum(entry.relative_height for entry in self.bands)


def default_color_band() -> ColorBand:
    """Sand, grass, rock, snow over translucent water."""
    return ColorBand(
        entries=[
            ColorBandEntry(relative_height=0.1, color=Color.from_rgba32(0xFF76DDFC)),
            ColorBandEntry(relative_height=8.0, color=Color.from_rgba32(0xFF30A15D)),
            ColorBandEntry(relative_height=6.5, color=Color.from_rgba32(0xFF808080)),
            ColorBandEntry(relative_height=5.0, color=Color.from_rgba32(0xFFFFFFFF)),
            ColorBandEntry(relative_height=0.0, color=Color.from_rgba32(0x80AC630D)),
        ]
    )


class HeightmapConfig(BaseModel):
    """Diamond-square and smoothing parameters."""

    size_log2: int = Field(default=7, description="log2 of the grid side in squares")
    roughness: float = Field(
        default=1.0, description="Amplitude decay exponent; amplitude = 2^-|roughness|"
    )
    smoothing: float = Field(default=1.5, description="Blur sigma in grid cells")


class SurfaceConfig(BaseModel):
    """Physical dimensions of the generated surface."""

    grid_size: float = Field(default=16.0, description="Side of an elemental square")
    height_range: float = Field(
        default=600.0, description="Total height span; peaks reach height_range / 2"
    )
    water_level: float = Field(
        default=-150.0, description="Sea level; must exceed -height_range / 2"
    )


class TextureConfig(BaseModel):
    """Facet texture parameters."""

    size_log2: int = Field(default=8, description="log2 of the texture side in texels")
    terrain_amplitude: int = Field(
        default=64, description="Noise amplitude for the terrain; negative = alpha noise"
    )
    object_amplitude: int = Field(
        default=64, description="Noise amplitude for scattered objects"
    )


class ScatterConfig(BaseModel):
    """Scattered tree parameters."""

    count: int = Field(default=50, description="Number of trees requested")
    segments: int = Field(default=3, description="Stacked fan segments per tree")
    shrink: float = Field(default=0.75, description="Ring size relative to the square")
    fade: float = Field(
        default=0.25, description="Per-segment taper, as a fraction of shrink"
    )
    texture_span: float = Field(default=0.25, description="Texture coordinate span")
    color: Color = Field(default_factory=lambda: Color(r=0, g=176, b=0, a=255))


class TerrainConfig(BaseModel):
    """Complete terrain generation configuration."""

    seed: int = Field(default=0, description="Random seed; 0 picks a new one")

    heightmap: HeightmapConfig = Field(default_factory=HeightmapConfig)
    surface: SurfaceConfig = Field(default_factory=SurfaceConfig)
    texture: TextureConfig = Field(default_factory=TextureConfig)
    scatter: ScatterConfig = Field(default_factory=ScatterConfig)
    color_band: ColorBand = Field(default_factory=default_color_band)
    capabilities: GenerationCapabilities = Field(default_factory=GenerationCapabilities)


def load_config(config_path: Path) -> TerrainConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed TerrainConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return TerrainConfig.model_validate(data)
