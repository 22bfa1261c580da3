"""Object scattering: fan-shaped trees on random dry squares."""

import numpy as np
import structlog
from numpy.typing import NDArray

from .capabilities import GenerationCapabilities, RenderCapabilities
from .config import ScatterConfig, TextureConfig
from .exceptions import InvalidParameterError
from .mesh import Mesh, corner_indices, midpoint_indices
from .texture import make_noise_texture

logger = structlog.get_logger()

# Axis vertex followed by a four-vertex ring
VERTICES_PER_SEGMENT = 5
SEGMENT_TRIANGLES = ((0, 4, 1), (0, 1, 2), (0, 2, 3), (0, 3, 4))
INDICES_PER_SEGMENT = 3 * len(SEGMENT_TRIANGLES)


def eligible_sites(terrain: Mesh) -> NDArray[np.intp]:
    """Midpoint vertex indices strictly above the water plane, ascending."""
    midpoints = midpoint_indices(terrain.dim).ravel()
    dry = terrain.heights[midpoints] > np.float32(terrain.water_level)
    return midpoints[dry]


def choose_sites(
    pool: NDArray[np.intp],
    count: int,
    rng: np.random.Generator,
) -> list[int]:
    """Uniform random subset of pool, without replacement.

    Each pick takes a uniform slot from the remaining pool and fills it
    with the pool's last element. count is clamped to the pool size.
    """
    remaining = [int(site) for site in pool]
    chosen: list[int] = []
    for _ in range(min(count, len(remaining))):
        slot = int(rng.integers(len(remaining)))
        chosen.append(remaining[slot])
        remaining[slot] = remaining[-1]
        remaining.pop()
    return chosen


def _square_corners(terrain: Mesh, site: int) -> NDArray[np.float32]:
    """Positions of the four corners around a midpoint, counter-clockwise."""
    n = terrain.dim
    y, x = divmod(site - (n + 1) ** 2, n)
    corners = corner_indices(n)
    ring = [corners[y, x], corners[y, x + 1], corners[y + 1, x + 1], corners[y + 1, x]]
    return terrain.vertices[ring]


def scatter_objects(
    terrain: Mesh | None,
    count: int,
    rng: np.random.Generator,
    config: ScatterConfig | None = None,
    texture: TextureConfig | None = None,
) -> Mesh | None:
    """Build a tree mesh on randomly chosen dry squares of a terrain.

    Each tree is a stack of segments. A segment is a fan of four triangles
    from an axis vertex, lifted along the terrain normal, to a ring made from
    the square's corners pulled toward the midpoint. Rings taper and rise
    with each segment.

    Args:
        terrain: Terrain mesh with normals.
        count: Number of trees requested; clamped to the dry squares.
        rng: Seeded random number generator.
        config: Tree shape parameters.
        texture: Facet texture parameters for the trees.

    Returns:
        Tree mesh, or None if there is no terrain or nothing to place.

    Raises:
        InvalidParameterError: If count is negative or the terrain lacks normals.
    """
    config = config or ScatterConfig()
    texture = texture or TextureConfig()

    if count < 0:
        raise InvalidParameterError(f"Object count must not be negative, got {count}")
    if terrain is None or count == 0:
        return None
    if terrain.normals is None:
        raise InvalidParameterError("Scattering objects requires terrain normals")

    pool = eligible_sites(terrain)
    sites = choose_sites(pool, count, rng)
    if len(sites) < count:
        logger.debug("object_count_clamped", requested=count, available=len(sites))
    if not sites:
        return None

    segments = config.segments
    vertex_total = len(sites) * segments * VERTICES_PER_SEGMENT
    vertices = np.zeros((vertex_total, 3), dtype=np.float64)
    normals = np.zeros((vertex_total, 3), dtype=np.float32)
    texcoords = np.zeros((vertex_total, 2), dtype=np.float32)
    colors = np.tile(
        np.array(config.color.as_tuple(), dtype=np.uint8), (vertex_total, 1)
    )
    indices = np.zeros(len(sites) * segments * INDICES_PER_SEGMENT, dtype=np.uint32)

    span = config.texture_span
    segment_texcoords = np.array(
        [[0.5 * span, 0.5 * span], [0.0, 0.0], [span, 0.0], [0.0, 0.0], [span, 0.0]],
        dtype=np.float32,
    )
    segment_indices = np.array(SEGMENT_TRIANGLES, dtype=np.uint32).ravel()
    taper = config.fade * config.shrink

    for tree, site in enumerate(sites):
        base = terrain.vertices[site].astype(np.float64)
        normal = terrain.normals[site]
        lift = normal.astype(np.float64) * 0.5 * terrain.cell_size
        ring = _square_corners(terrain, site).astype(np.float64) - base

        for segment in range(segments):
            first = (tree * segments + segment) * VERTICES_PER_SEGMENT
            scale = config.shrink * (1.0 - taper * segment)

            vertices[first] = base + lift * (segment + 2)
            vertices[first + 1 : first + VERTICES_PER_SEGMENT] = (
                base + ring * scale + lift * segment
            )
            normals[first : first + VERTICES_PER_SEGMENT] = normal
            texcoords[first : first + VERTICES_PER_SEGMENT] = segment_texcoords

            at = (tree * segments + segment) * INDICES_PER_SEGMENT
            indices[at : at + INDICES_PER_SEGMENT] = segment_indices + first

    objects = Mesh(
        vertices=vertices.astype(np.float32),
        indices=indices,
        cell_size=terrain.cell_size,
        water_level=terrain.water_level,
        seed=terrain.seed,
        normals=normals,
        texcoords=texcoords,
        colors=colors,
        texture=make_noise_texture(texture.object_amplitude, rng, texture.size_log2),
        capabilities=GenerationCapabilities(objects=False),
        render=RenderCapabilities.none().model_copy(update={"gpu_buffers": True}),
    )
    logger.info(
        "objects_scattered",
        requested=count,
        placed=len(sites),
        candidates=len(pool),
    )
    return objects
