"""Tests for view-state records and mesh export."""

import json
from pathlib import Path

import numpy as np
import pytest

from terramesh.capabilities import RenderCapabilities
from terramesh.config import TerrainConfig
from terramesh.exceptions import PersistenceError
from terramesh.generator import generate_from_config
from terramesh.persistence import (
    RECORD_DTYPE,
    ViewState,
    load_meshes,
    load_view_state,
    save_meshes,
    save_view_state,
)


@pytest.fixture
def state() -> ViewState:
    """View state with values exactly representable as float32."""
    return ViewState(
        seed=3_000_000_000,
        flags=RenderCapabilities(texture=False).to_flags(),
        camera_yaw=12.5,
        camera_pitch=-45.25,
        camera_position=(1.0, -2.5, -300.0),
        light_direction=(0.0, 0.5, -0.75),
        light_position=(10.0, 20.0, 6000.0),
    )


class TestViewState:
    """Tests for ViewState defaults."""

    def test_initial_scales_with_height_range(self) -> None:
        """Camera and light sit relative to the height range."""
        view = ViewState.initial(400.0, seed=7)
        assert view.seed == 7
        assert view.camera_yaw == 0.0
        assert view.camera_pitch == -60.0
        assert view.camera_position == (0.0, 0.0, -200.0)
        assert view.light_direction == (0.0, 0.0, -1.0)
        assert view.light_position == (0.0, 0.0, 4000.0)
        assert view.flags == 63

    def test_reset_view_keeps_seed_and_flags(self, state: ViewState) -> None:
        """Resetting only touches the camera and light."""
        reset = state.reset_view(600.0)
        assert reset.seed == state.seed
        assert reset.flags == state.flags
        assert reset.camera_pitch == -60.0
        assert reset.camera_position == (0.0, 0.0, -300.0)

    def test_render_property(self, state: ViewState) -> None:
        """Flags decode to render capabilities."""
        assert not state.render.texture
        assert state.render.objects


class TestViewStateFiles:
    """Tests for save_view_state / load_view_state."""

    def test_text_round_trip(self, tmp_path: Path, state: ViewState) -> None:
        """.txt files hold thirteen whitespace-separated values."""
        path = tmp_path / "view.txt"
        save_view_state(path, state)
        assert len(path.read_text().split()) == 13
        assert load_view_state(path) == state

    def test_text_layout(self, tmp_path: Path, state: ViewState) -> None:
        """Seed and flags come first, as integers."""
        path = tmp_path / "view.txt"
        save_view_state(path, state)
        fields = path.read_text().split()
        assert fields[0] == "3000000000"
        assert fields[1] == str(state.flags)
        assert float(fields[3]) == -45.25

    def test_binary_round_trip(self, tmp_path: Path, state: ViewState) -> None:
        """Other suffixes get the binary record."""
        path = tmp_path / "view.dat"
        save_view_state(path, state)
        assert load_view_state(path) == state

    def test_binary_size(self, tmp_path: Path, state: ViewState) -> None:
        """The binary record is exactly 52 bytes."""
        path = tmp_path / "view.bin"
        save_view_state(path, state)
        assert path.stat().st_size == 52
        assert RECORD_DTYPE.itemsize == 52

    def test_binary_little_endian(self, tmp_path: Path, state: ViewState) -> None:
        """Seed is stored as a little-endian 32-bit word."""
        path = tmp_path / "view.bin"
        save_view_state(path, state)
        assert path.read_bytes()[:4] == (3_000_000_000).to_bytes(4, "little")

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_view_state(tmp_path / "absent.txt")

    def test_truncated_binary(self, tmp_path: Path) -> None:
        """A short binary record is malformed."""
        path = tmp_path / "view.bin"
        path.write_bytes(b"\x00" * 20)
        with pytest.raises(PersistenceError):
            load_view_state(path)

    def test_short_text(self, tmp_path: Path) -> None:
        """A text record with too few values is malformed."""
        path = tmp_path / "view.txt"
        path.write_text("1 2 3")
        with pytest.raises(PersistenceError):
            load_view_state(path)

    def test_garbage_text(self, tmp_path: Path) -> None:
        """Non-numeric values are malformed."""
        path = tmp_path / "view.txt"
        path.write_text(" ".join(["x"] * 13))
        with pytest.raises(PersistenceError):
            load_view_state(path)


class TestMeshFiles:
    """Tests for save_meshes / load_meshes."""

    def test_round_trip(self, tmp_path: Path, small_config: TerrainConfig) -> None:
        """Every buffer of every mesh survives the round trip."""
        chain = generate_from_config(small_config)
        path = tmp_path / "out" / "terrain.npz"
        save_meshes(path, chain)

        loaded = load_meshes(path)
        assert len(loaded) == len(chain)
        for original, restored in zip(chain, loaded):
            np.testing.assert_array_equal(restored.vertices, original.vertices)
            np.testing.assert_array_equal(restored.indices, original.indices)
            np.testing.assert_array_equal(restored.normals, original.normals)
            np.testing.assert_array_equal(restored.colors, original.colors)
            np.testing.assert_array_equal(restored.texcoords, original.texcoords)
            assert restored.seed == original.seed
            assert restored.dim == original.dim
            assert restored.water_level == original.water_level
            assert restored.render == original.render
            assert restored.capabilities == original.capabilities
            assert restored.texture is None

    def test_metadata(self, tmp_path: Path, small_config: TerrainConfig) -> None:
        """Metadata records the format version and per-mesh seed."""
        chain = generate_from_config(small_config)
        path = tmp_path / "terrain.npz"
        save_meshes(path, chain)
        with np.load(path) as data:
            metadata = json.loads(data["metadata"].tobytes().decode("utf-8"))
        assert metadata["version"] == 1
        assert metadata["meshes"][0]["seed"] == 42

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_meshes(tmp_path / "absent.npz")

    def test_missing_metadata(self, tmp_path: Path) -> None:
        """Archives without metadata are rejected."""
        path = tmp_path / "other.npz"
        np.savez_compressed(path, data=np.zeros(3))
        with pytest.raises(PersistenceError):
            load_meshes(path)
