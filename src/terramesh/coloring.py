"""Height-banded vertex coloring with shoreline blending."""

import numpy as np
import structlog
from numpy.typing import NDArray

from .config import ColorBand
from .exceptions import InvalidParameterError
from .mesh import Mesh, corner_heights, midpoint_heights

logger = structlog.get_logger()

OPAQUE = 255


def band_indices(
    heights: NDArray[np.float32],
    color_band: ColorBand,
    water_level: float,
    height_range: float,
) -> NDArray[np.intp]:
    """Pick a land band for each height.

    Heights between water_level and height_range / 2 are spread over the
    cumulative band spans; a height falls into the first band whose running
    total reaches it. Heights past the top get the last band.
    """
    bounds = np.cumsum([entry.relative_height for entry in color_band.bands])
    scaled = (
        bounds[-1]
        * (heights.astype(np.float64) - water_level)
        / (0.5 * height_range - water_level)
    )
    picked = np.searchsorted(bounds, scaled, side="left")
    return np.minimum(picked, len(bounds) - 1)


def _palette(color_band: ColorBand) -> NDArray[np.uint8]:
    return np.array(
        [entry.color.as_tuple() for entry in color_band.bands], dtype=np.uint8
    )


def colorize(
    mesh: Mesh,
    color_band: ColorBand,
    water_level: float,
    height_range: float,
) -> None:
    """Fill mesh.colors from vertex heights.

    Order matters: corners are banded first, then water corners are split
    into deep water (translucent) and shoreline (opaque), then midpoints
    average their corners, and finally water midpoints get an alpha that
    rises with the number of shoreline corners around them.

    Args:
        mesh: Terrain mesh from assemble_mesh.
        color_band: Palette with water sentinel.
        water_level: Sea level the mesh was flooded to.
        height_range: Total height span.

    Raises:
        InvalidParameterError: If the band is invalid or water_level leaves
            no room for land.
    """
    color_band.check()
    height_range = abs(height_range)
    if water_level >= 0.5 * height_range:
        raise InvalidParameterError(
            f"Water level {water_level} must be below half the height range"
        )

    n = mesh.dim
    water = color_band.water
    water_rgb = (water.r, water.g, water.b)
    plane = np.float32(water_level)

    corner_z = corner_heights(mesh)
    midpoint_z = midpoint_heights(mesh)

    # Corners: banded color, always opaque
    corners = _palette(color_band)[
        band_indices(corner_z, color_band, water_level, height_range)
    ]
    corners[..., 3] = OPAQUE

    # Water corners: opaque shoreline unless every surrounding midpoint is
    # on the water plane too
    corner_wet = corner_z == plane
    midpoint_wet = midpoint_z == plane
    before = (np.arange(n + 1) - 1) % n
    after = np.arange(n + 1) % n
    deep = (
        corner_wet
        & midpoint_wet[np.ix_(before, before)]
        & midpoint_wet[np.ix_(before, after)]
        & midpoint_wet[np.ix_(after, before)]
        & midpoint_wet[np.ix_(after, after)]
    )
    corners[corner_wet, :3] = water_rgb
    corners[deep, 3] = water.a

    # Midpoints: floor average of the four corners
    quad = np.stack(
        [corners[:-1, :-1], corners[:-1, 1:], corners[1:, :-1], corners[1:, 1:]]
    ).astype(np.int32)
    midpoints = (quad.sum(axis=0) >> 2).astype(np.uint8)
    midpoints[..., 3] = OPAQUE

    # Water midpoints: sentinel alpha plus a quarter step per shoreline corner
    shoreline_corners = (quad[..., 3] != water.a).sum(axis=0)
    boost = shoreline_corners * (OPAQUE - water.a)
    midpoints[midpoint_wet & (boost == 0), :3] = water_rgb
    midpoints[midpoint_wet, 3] = water.a + (boost[midpoint_wet] >> 2)

    mesh.colors = np.concatenate(
        [corners.reshape(-1, 4), midpoints.reshape(-1, 4)]
    )
    logger.debug(
        "mesh_colorized",
        bands=len(color_band.bands),
        deep_water=int(deep.sum()),
        shoreline=int((corner_wet & ~deep).sum()),
    )
