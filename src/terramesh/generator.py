"""Main terrain generation orchestration."""

import numpy as np
import structlog

from .capabilities import GenerationCapabilities, RenderCapabilities
from .coloring import colorize
from .config import ColorBand, ScatterConfig, TerrainConfig, TextureConfig
from .exceptions import InvalidParameterError
from .heightmap import blur_heightmap, generate_heightmap
from .mesh import Mesh, MeshChain, assemble_mesh, texture_coordinates
from .normals import estimate_normals
from .scatter import scatter_objects
from .texture import make_noise_texture

logger = structlog.get_logger()

SEED_LIMIT = 1 << 32


def pick_seed() -> int:
    """Fresh nonzero 32-bit seed from OS entropy."""
    return int(np.random.default_rng().integers(1, SEED_LIMIT))


def _check_parameters(
    size_log2: int,
    seed: int,
    grid_size: float,
    height_range: float,
    water_level: float,
    color_band: ColorBand,
    object_count: int,
) -> None:
    if size_log2 <= 0:
        raise InvalidParameterError(f"size_log2 must be positive, got {size_log2}")
    if not 0 <= seed < SEED_LIMIT:
        raise InvalidParameterError(f"Seed must fit in 32 bits, got {seed}")
    if grid_size <= 0.0:
        raise InvalidParameterError(f"Grid size must be positive, got {grid_size}")
    if water_level >= 0.5 * abs(height_range):
        raise InvalidParameterError(
            f"Water level {water_level} must be below half the height range"
        )
    if object_count < 0:
        raise InvalidParameterError(
            f"Object count must not be negative, got {object_count}"
        )
    color_band.check()


def generate_terrain(
    size_log2: int,
    flags: RenderCapabilities,
    seed: int,
    grid_size: float,
    height_range: float,
    water_level: float,
    color_band: ColorBand,
    object_count: int,
    *,
    roughness: float = 1.0,
    smoothing: float = 1.5,
    capabilities: GenerationCapabilities | None = None,
    texture: TextureConfig | None = None,
    scatter: ScatterConfig | None = None,
) -> MeshChain:
    """Generate a terrain mesh and its scattered objects.

    The result is a pure function of the arguments: one random generator is
    seeded per call and threaded through every stage in a fixed order
    (heightmap, terrain texture, object selection, object texture).

    Args:
        size_log2: log2 of the number of squares per side.
        flags: Render capabilities recorded on the terrain mesh.
        seed: 32-bit seed; 0 picks a new one.
        grid_size: Side of an elemental square.
        height_range: Total height span; peaks reach height_range / 2.
        water_level: Sea level.
        color_band: Height palette with water sentinel.
        object_count: Trees to scatter (clamped to the dry squares).
        roughness: Diamond-square amplitude decay exponent.
        smoothing: Blur sigma in grid cells.
        capabilities: Which buffers to populate.
        texture: Facet texture parameters.
        scatter: Tree shape parameters.

    Returns:
        MeshChain with the terrain at its root and the trees linked after it.

    Raises:
        InvalidParameterError: If any parameter is out of range. Nothing is
            allocated in that case.
    """
    capabilities = capabilities or GenerationCapabilities()
    texture = texture or TextureConfig()
    scatter = scatter or ScatterConfig()

    _check_parameters(
        size_log2, seed, grid_size, height_range, water_level, color_band, object_count
    )
    if seed == 0:
        seed = pick_seed()

    size = 1 << size_log2
    rng = np.random.default_rng(seed)
    log = logger.bind(seed=seed, size=size)
    log.info("terrain_generation_started")

    field = generate_heightmap(size, roughness, rng)
    blur_heightmap(field, size, smoothing)
    terrain = assemble_mesh(field, grid_size, height_range, water_level)
    del field

    if capabilities.colors:
        colorize(terrain, color_band, terrain.water_level, height_range)
    if capabilities.normals:
        estimate_normals(terrain, grid_size)
    if capabilities.texture_coords:
        terrain.texcoords = texture_coordinates(size)
    if capabilities.texture:
        terrain.texture = make_noise_texture(
            texture.terrain_amplitude, rng, texture.size_log2
        )

    terrain.seed = seed
    terrain.capabilities = capabilities
    terrain.render = flags
    chain = MeshChain(terrain)

    if capabilities.objects:
        objects = scatter_objects(terrain, object_count, rng, scatter, texture)
        if objects is not None:
            chain.attach(objects)

    _log_terrain_stats(terrain)
    log.info("terrain_generation_finished", meshes=len(chain))
    return chain


def generate_from_config(
    config: TerrainConfig,
    flags: RenderCapabilities | None = None,
) -> MeshChain:
    """Generate terrain from a TerrainConfig.

    Args:
        config: Terrain generation configuration.
        flags: Render capabilities; all enabled if omitted.

    Returns:
        MeshChain as from generate_terrain.
    """
    return generate_terrain(
        config.heightmap.size_log2,
        flags or RenderCapabilities(),
        config.seed,
        config.surface.grid_size,
        config.surface.height_range,
        config.surface.water_level,
        config.color_band,
        config.scatter.count,
        roughness=config.heightmap.roughness,
        smoothing=config.heightmap.smoothing,
        capabilities=config.capabilities,
        texture=config.texture,
        scatter=config.scatter,
    )


def _log_terrain_stats(terrain: Mesh) -> None:
    """Log how much of the surface is under water."""
    heights = terrain.heights
    wet = int(np.sum(heights == np.float32(terrain.water_level)))
    logger.info(
        "terrain_stats",
        seed=terrain.seed,
        vertices=terrain.vertex_count,
        triangles=terrain.polygon_count,
        water_fraction=round(wet / len(heights), 4),
        peak=float(heights.max()),
    )
