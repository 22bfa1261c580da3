"""Procedural terrain mesh generation package.

This package synthesizes a seeded diamond-square heightfield, turns it into
a colored, lit, textured triangle mesh, and scatters simple trees on dry
ground.
"""

from .capabilities import GenerationCapabilities, RenderCapabilities
from .config import ColorBand, TerrainConfig, load_config
from .exceptions import InvalidParameterError, PersistenceError, TerrainError
from .generator import generate_from_config, generate_terrain
from .mesh import Mesh, MeshChain
from .persistence import (
    ViewState,
    load_meshes,
    load_view_state,
    save_meshes,
    save_view_state,
)
from .session import Landscape

__all__ = [
    "ColorBand",
    "GenerationCapabilities",
    "InvalidParameterError",
    "Landscape",
    "Mesh",
    "MeshChain",
    "PersistenceError",
    "RenderCapabilities",
    "TerrainConfig",
    "TerrainError",
    "ViewState",
    "generate_from_config",
    "generate_terrain",
    "load_config",
    "load_meshes",
    "load_view_state",
    "save_meshes",
    "save_view_state",
]
