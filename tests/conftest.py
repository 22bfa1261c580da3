"""Shared test fixtures for terrain tests."""

import numpy as np
import pytest

from terramesh.config import (
    ColorBand,
    HeightmapConfig,
    ScatterConfig,
    TerrainConfig,
    TextureConfig,
)
from terramesh.mesh import Mesh, assemble_mesh
from terramesh.normals import estimate_normals

GREEN = (0, 200, 0, 255)
WATER = (0, 0, 200, 128)


@pytest.fixture
def rng() -> np.random.Generator:
    """Generator with a fixed seed."""
    return np.random.default_rng(1234)


@pytest.fixture
def two_band() -> ColorBand:
    """One green band over water with alpha 128."""
    return ColorBand.from_pairs([(1.0, GREEN), (0.0, WATER)])


@pytest.fixture
def peak_mesh() -> Mesh:
    """4x4 squares, flooded everywhere except a single peak at corner (2, 2).

    With height_range 600 and water_level -150 every corner but the peak
    sits on the water plane, and only the four squares around the peak
    have midpoints above it.
    """
    field = np.zeros((5, 5), dtype=np.float64)
    field[2, 2] = 1.0
    mesh = assemble_mesh(field, grid_size=16.0, height_range=600.0, water_level=-150.0)
    estimate_normals(mesh, 16.0)
    return mesh


@pytest.fixture
def small_config() -> TerrainConfig:
    """Fast configuration: 8x8 squares, tiny textures, a few trees."""
    return TerrainConfig(
        seed=42,
        heightmap=HeightmapConfig(size_log2=3),
        texture=TextureConfig(size_log2=4),
        scatter=ScatterConfig(count=5),
    )
