"""Per-vertex normals from central differences on the terrain lattices."""

import numpy as np
import structlog
from numpy.typing import NDArray

from .mesh import Mesh, corner_heights, midpoint_heights

logger = structlog.get_logger()


def _central_differences(
    heights: NDArray[np.float32], period: int
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Left-minus-right and below-minus-above differences, wrapping at period."""
    index = np.arange(heights.shape[0])
    before = (index - 1) % period
    after = (index + 1) % period
    z = heights.astype(np.float64)
    return z[:, before] - z[:, after], z[before, :] - z[after, :]


def estimate_normals(mesh: Mesh, grid_size: float) -> None:
    """Fill mesh.normals with unit surface normals.

    Corners use their corner neighbors and midpoints their midpoint
    neighbors, both wrapping around the tile. The z component is the
    constant 2 * grid_size (the neighbor spacing), so flat ground gives
    (0, 0, 1).
    """
    n = mesh.dim
    gradients = [
        _central_differences(corner_heights(mesh), n),
        _central_differences(midpoint_heights(mesh), n),
    ]
    dx = np.concatenate([gx.ravel() for gx, _ in gradients])
    dy = np.concatenate([gy.ravel() for _, gy in gradients])
    dz = np.full_like(dx, 2.0 * grid_size)

    normals = np.column_stack([dx, dy, dz])
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)
    mesh.normals = normals.astype(np.float32)

    logger.debug("normals_estimated", vertices=len(normals))
