"""Persistence: view-state records and mesh export."""

import json
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import structlog
from pydantic import BaseModel

from .capabilities import GenerationCapabilities, RenderCapabilities
from .exceptions import PersistenceError
from .mesh import Mesh, MeshChain

logger = structlog.get_logger()

# Paths with this suffix get the text layout, everything else binary.
TEXT_SUFFIX = ".txt"

Vector = tuple[float, float, float]

# Fixed 52-byte little-endian layout
RECORD_DTYPE = np.dtype(
    [
        ("seed", "<u4"),
        ("flags", "<u4"),
        ("camera_angles", "<f4", (2,)),
        ("camera_position", "<f4", (3,)),
        ("light_direction", "<f4", (3,)),
        ("light_position", "<f4", (3,)),
    ]
)
TEXT_FIELD_COUNT = 13

MESH_FORMAT_VERSION = 1
_BUFFERS = ("vertices", "indices", "normals", "texcoords", "colors")


class ViewState(BaseModel):
    """Seed, render flags, and camera/light placement of a saved session.

    Only seed and flags matter to generation; the camera and light fields
    are carried for the renderer.
    """

    seed: int = 0
    flags: int = RenderCapabilities().to_flags()
    camera_yaw: float = 0.0
    camera_pitch: float = -60.0
    camera_position: Vector = (0.0, 0.0, -300.0)
    light_direction: Vector = (0.0, 0.0, -1.0)
    light_position: Vector = (0.0, 0.0, 6000.0)

    @classmethod
    def initial(cls, height_range: float = 600.0, seed: int = 0, flags: int | None = None) -> "ViewState":
        """Default camera and light for a terrain of the given height range."""
        return cls(
            seed=seed,
            flags=RenderCapabilities().to_flags() if flags is None else flags,
            camera_position=(0.0, 0.0, -0.5 * height_range),
            light_position=(0.0, 0.0, 10.0 * height_range),
        )

    def reset_view(self, height_range: float = 600.0) -> "ViewState":
        """Copy with default camera and light, keeping seed and flags."""
        return ViewState.initial(height_range, seed=self.seed, flags=self.flags)

    @property
    def render(self) -> RenderCapabilities:
        return RenderCapabilities.from_flags(self.flags)


def _format_text(state: ViewState) -> str:
    floats = (
        state.camera_yaw,
        state.camera_pitch,
        *state.camera_position,
        *state.light_direction,
        *state.light_position,
    )
    return " ".join([str(state.seed), str(state.flags)] + [f"{v:f}" for v in floats])


def _parse_text(text: str) -> ViewState:
    fields = text.split()
    if len(fields) < TEXT_FIELD_COUNT:
        raise PersistenceError(
            f"Expected {TEXT_FIELD_COUNT} values in view state, got {len(fields)}"
        )
    try:
        seed, flags = int(fields[0]), int(fields[1])
        v = [float(f) for f in fields[2:TEXT_FIELD_COUNT]]
    except ValueError as e:
        raise PersistenceError(f"Malformed view state: {e}") from e
    return ViewState(
        seed=seed,
        flags=flags,
        camera_yaw=v[0],
        camera_pitch=v[1],
        camera_position=(v[2], v[3], v[4]),
        light_direction=(v[5], v[6], v[7]),
        light_position=(v[8], v[9], v[10]),
    )


def _pack_binary(state: ViewState) -> bytes:
    record = np.zeros(1, dtype=RECORD_DTYPE)
    record["seed"] = state.seed
    record["flags"] = state.flags
    record["camera_angles"] = (state.camera_yaw, state.camera_pitch)
    record["camera_position"] = state.camera_position
    record["light_direction"] = state.light_direction
    record["light_position"] = state.light_position
    return record.tobytes()


def _unpack_binary(data: bytes) -> ViewState:
    if len(data) < RECORD_DTYPE.itemsize:
        raise PersistenceError(
            f"View state record is {len(data)} bytes, expected {RECORD_DTYPE.itemsize}"
        )
    record = np.frombuffer(data, dtype=RECORD_DTYPE, count=1)[0]

    def vector(name: str) -> Vector:
        x, y, z = (float(c) for c in record[name])
        return (x, y, z)

    yaw, pitch = (float(a) for a in record["camera_angles"])
    return ViewState(
        seed=int(record["seed"]),
        flags=int(record["flags"]),
        camera_yaw=yaw,
        camera_pitch=pitch,
        camera_position=vector("camera_position"),
        light_direction=vector("light_direction"),
        light_position=vector("light_position"),
    )


def save_view_state(path: Path, state: ViewState) -> None:
    """Write a view state, as text for .txt paths and binary otherwise."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == TEXT_SUFFIX:
        path.write_text(_format_text(state))
    else:
        path.write_bytes(_pack_binary(state))
    logger.debug("view_state_saved", path=str(path), seed=state.seed)


def load_view_state(path: Path) -> ViewState:
    """Read a view state written by save_view_state.

    Raises:
        FileNotFoundError: If file doesn't exist.
        PersistenceError: If the record is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"View state not found: {path}")
    if path.suffix == TEXT_SUFFIX:
        state = _parse_text(path.read_text())
    else:
        state = _unpack_binary(path.read_bytes())
    logger.debug("view_state_loaded", path=str(path), seed=state.seed)
    return state


def save_meshes(path: Path, chain: MeshChain) -> None:
    """Save every mesh buffer of a chain to a compressed .npz file.

    Textures are not stored; they are regenerated from the seed.

    Args:
        path: Output path (should end with .npz).
        chain: Meshes to save, in traversal order.
    """
    arrays: dict[str, np.ndarray] = {}
    meshes = []
    for i, mesh in enumerate(chain):
        for name in _BUFFERS:
            buffer = getattr(mesh, name)
            if buffer is not None:
                arrays[f"mesh{i}_{name}"] = buffer
        meshes.append(
            {
                "cell_size": mesh.cell_size,
                "water_level": mesh.water_level,
                "seed": mesh.seed,
                "dim": mesh.dim,
                "render_flags": mesh.render.to_flags(),
                "capabilities": mesh.capabilities.model_dump(),
            }
        )

    metadata = {
        "version": MESH_FORMAT_VERSION,
        "meshes": meshes,
        "saved_at": datetime.now(timezone.utc).isoformat(),
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        metadata=np.frombuffer(json.dumps(metadata).encode("utf-8"), dtype=np.uint8),
        **arrays,
    )

    file_size = path.stat().st_size / 1024
    logger.info("meshes_saved", path=str(path), meshes=len(meshes), kib=round(file_size, 1))


def load_meshes(path: Path) -> MeshChain:
    """Load a mesh chain written by save_meshes.

    Raises:
        FileNotFoundError: If file doesn't exist.
        PersistenceError: If file format is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {path}")

    with np.load(path) as data:
        if "metadata" not in data:
            raise PersistenceError("Invalid mesh file: missing metadata")
        metadata = json.loads(data["metadata"].tobytes().decode("utf-8"))
        if metadata.get("version") != MESH_FORMAT_VERSION:
            raise PersistenceError(
                f"Unsupported mesh file version: {metadata.get('version')}"
            )

        nodes: list[Mesh] = []
        for i, info in enumerate(metadata["meshes"]):
            buffers = {
                name: data[f"mesh{i}_{name}"]
                for name in _BUFFERS
                if f"mesh{i}_{name}" in data
            }
            if "vertices" not in buffers or "indices" not in buffers:
                raise PersistenceError(f"Invalid mesh file: mesh {i} lacks geometry")
            nodes.append(
                Mesh(
                    cell_size=info["cell_size"],
                    water_level=info["water_level"],
                    seed=info["seed"],
                    dim=info["dim"],
                    render=RenderCapabilities.from_flags(info["render_flags"]),
                    capabilities=GenerationCapabilities(**info["capabilities"]),
                    **buffers,
                )
            )

    if not nodes:
        raise PersistenceError("Invalid mesh file: no meshes")

    chain = MeshChain(nodes[0])
    parent = 0
    for mesh in nodes[1:]:
        parent = chain.attach(mesh, parent)

    logger.info("meshes_loaded", path=str(path), meshes=len(nodes))
    return chain
