"""Mesh data structures and terrain mesh assembly.

A terrain of ``dim`` squares per side has two vertex lattices:

- corners, (dim + 1)^2 vertices stored first, row-major
  (index = y * (dim + 1) + x);
- midpoints, dim^2 vertices at square centers stored after the corners,
  row-major (index = (dim + 1)^2 + y * dim + x).

Each elemental square is split into four triangles that fan out from its
midpoint.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray

from .capabilities import GenerationCapabilities, RenderCapabilities
from .texture import FacetTexture

logger = structlog.get_logger()

# Vertex roles within one elemental square
MID, C00, C10, C11, C01 = range(5)

# Four triangles per square, counter-clockwise seen from +z
SQUARE_TRIANGLES: tuple[tuple[int, int, int], ...] = (
    (MID, C00, C10),
    (MID, C10, C11),
    (MID, C11, C01),
    (MID, C01, C00),
)

INDICES_PER_SQUARE = 3 * len(SQUARE_TRIANGLES)


@dataclass(eq=False)
class Mesh:
    """One renderable unit: parallel vertex buffers plus triangle indices.

    Optional buffers stay None when their generation capability is off.
    """

    vertices: NDArray[np.float32]
    indices: NDArray[np.uint32]
    cell_size: float
    water_level: float
    seed: int = 0
    dim: int = 0
    normals: NDArray[np.float32] | None = None
    texcoords: NDArray[np.float32] | None = None
    colors: NDArray[np.uint8] | None = None
    texture: FacetTexture | None = None
    capabilities: GenerationCapabilities = field(default_factory=GenerationCapabilities)
    render: RenderCapabilities = field(default_factory=RenderCapabilities)
    released: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def polygon_count(self) -> int:
        """Number of triangles."""
        return len(self.indices) // 3

    @property
    def extent(self) -> float:
        """Side length of the whole terrain tile (0 for non-lattice meshes)."""
        return self.cell_size * self.dim

    @property
    def heights(self) -> NDArray[np.float32]:
        return self.vertices[:, 2]

    def release(self) -> None:
        """Drop every buffer and the texture."""
        if self.texture is not None:
            self.texture.release()
        self.vertices = np.empty((0, 3), dtype=np.float32)
        self.indices = np.empty(0, dtype=np.uint32)
        self.normals = None
        self.texcoords = None
        self.colors = None
        self.texture = None
        self.released = True


class MeshChain:
    """Owned sequence of meshes linked root-first.

    Node 0 is the terrain. ``links[i]`` is the index of the mesh that
    follows node i, or None. Traversal follows links from the root; release
    walks the nodes in reverse without recursion.
    """

    def __init__(self, root: Mesh) -> None:
        self._nodes: list[Mesh] = [root]
        self._links: list[int | None] = [None]

    @property
    def root(self) -> Mesh:
        return self._nodes[0]

    @property
    def released(self) -> bool:
        return not self._nodes

    def attach(self, mesh: Mesh, parent: int = 0) -> int:
        """Link mesh right after the parent node.

        Whatever followed the parent now follows the new mesh.

        Returns:
            Index of the new node.
        """
        index = len(self._nodes)
        self._nodes.append(mesh)
        self._links.append(self._links[parent])
        self._links[parent] = index
        return index

    def next_of(self, index: int) -> int | None:
        return self._links[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Mesh]:
        index: int | None = 0 if self._nodes else None
        while index is not None:
            yield self._nodes[index]
            index = self._links[index]

    def draw_order(
        self, render: RenderCapabilities
    ) -> Iterator[tuple[Mesh, RenderCapabilities]]:
        """Meshes to draw with the capabilities each should be drawn with.

        The root uses ``render``. A child is drawn only while the current
        capabilities include objects; it inherits them unchanged if it has
        objects of its own, otherwise with objects cleared.
        """
        caps = render
        for i, mesh in enumerate(self):
            if i > 0:
                if not caps.objects:
                    return
                caps = caps if mesh.render.objects else caps.without_objects()
            yield mesh, caps

    def release(self) -> None:
        """Release all meshes, last node first."""
        for mesh in reversed(self._nodes):
            mesh.release()
        logger.debug("mesh_chain_released", nodes=len(self._nodes))
        self._nodes.clear()
        self._links.clear()


def corner_indices(dim: int) -> NDArray[np.intp]:
    """Vertex indices of the corner lattice, shape (dim + 1, dim + 1) as [y, x]."""
    return np.arange((dim + 1) ** 2).reshape(dim + 1, dim + 1)


def midpoint_indices(dim: int) -> NDArray[np.intp]:
    """Vertex indices of the midpoint lattice, shape (dim, dim) as [y, x]."""
    return (dim + 1) ** 2 + np.arange(dim * dim).reshape(dim, dim)


def corner_heights(mesh: Mesh) -> NDArray[np.float32]:
    """Corner heights as a (dim + 1, dim + 1) view."""
    n = mesh.dim
    return mesh.heights[: (n + 1) ** 2].reshape(n + 1, n + 1)


def midpoint_heights(mesh: Mesh) -> NDArray[np.float32]:
    """Midpoint heights as a (dim, dim) view."""
    n = mesh.dim
    return mesh.heights[(n + 1) ** 2 :].reshape(n, n)


def triangulate(dim: int) -> NDArray[np.uint32]:
    """Flat index buffer for a dim x dim lattice, 12 indices per square.

    Squares are emitted row-major; each contributes the four triangles of
    SQUARE_TRIANGLES.
    """
    corners = corner_indices(dim)
    roles = np.stack(
        [
            midpoint_indices(dim),
            corners[:-1, :-1],
            corners[:-1, 1:],
            corners[1:, 1:],
            corners[1:, :-1],
        ]
    )
    # (4, 3, dim, dim) -> per square, per triangle, per corner
    triangles = roles[np.array(SQUARE_TRIANGLES)]
    return triangles.transpose(2, 3, 0, 1).reshape(-1).astype(np.uint32)


def texture_coordinates(dim: int) -> NDArray[np.float32]:
    """One facet texture repeat per square: corners (x, y), midpoints (x+.5, y+.5)."""
    cy, cx = np.mgrid[0 : dim + 1, 0 : dim + 1]
    my, mx = np.mgrid[0:dim, 0:dim] + 0.5
    corners = np.column_stack([cx.ravel(), cy.ravel()])
    midpoints = np.column_stack([mx.ravel(), my.ravel()])
    return np.concatenate([corners, midpoints]).astype(np.float32)


def normalize_heights(
    field: NDArray[np.float64],
    height_range: float,
    water_level: float,
) -> NDArray[np.float32]:
    """Map field values onto [-height_range/2, height_range/2], then flood.

    Values below water_level are raised to it, flattening all water onto one
    plane. A constant field maps to the bottom of the range.
    """
    half = 0.5 * height_range
    low = float(field.min())
    high = float(field.max())
    if high > low:
        heights = (field - low) * (height_range / (high - low)) - half
    else:
        heights = np.full_like(field, -half)
    heights = heights.astype(np.float32)
    return np.maximum(heights, np.float32(water_level))


def assemble_mesh(
    field: NDArray[np.float64],
    grid_size: float,
    height_range: float,
    water_level: float,
) -> Mesh:
    """Lay out terrain vertices and triangles from a heightfield.

    Args:
        field: Heightfield of shape (dim + 1, dim + 1).
        grid_size: Side of an elemental square.
        height_range: Total height span (absolute value is used).
        water_level: Sea level; raised to at least -height_range / 2.

    Returns:
        Mesh with vertices and indices; colors, normals and texture
        coordinates are left for later stages.
    """
    dim = field.shape[0] - 1
    height_range = abs(height_range)
    water_level = float(np.float32(max(water_level, -0.5 * height_range)))

    corner_z = normalize_heights(field, height_range, water_level)
    # float64 sum keeps an all-water square exactly on the water plane
    wide = corner_z.astype(np.float64)
    midpoint_z = (
        0.25 * (wide[:-1, :-1] + wide[:-1, 1:] + wide[1:, 1:] + wide[1:, :-1])
    ).astype(np.float32)

    origin = 0.5 * grid_size * dim
    corner_xy = grid_size * np.arange(dim + 1) - origin
    midpoint_xy = grid_size * (np.arange(dim) + 0.5) - origin
    cx, cy = np.meshgrid(corner_xy, corner_xy)
    mx, my = np.meshgrid(midpoint_xy, midpoint_xy)

    vertices = np.concatenate(
        [
            np.column_stack([cx.ravel(), cy.ravel(), corner_z.ravel()]),
            np.column_stack([mx.ravel(), my.ravel(), midpoint_z.ravel()]),
        ]
    ).astype(np.float32)

    mesh = Mesh(
        vertices=vertices,
        indices=triangulate(dim),
        cell_size=grid_size,
        water_level=water_level,
        dim=dim,
    )
    logger.debug(
        "mesh_assembled",
        dim=dim,
        vertices=mesh.vertex_count,
        triangles=mesh.polygon_count,
    )
    return mesh
