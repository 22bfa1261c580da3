"""Capability sets: what the generator populates vs. what the renderer uses.

Generation and rendering used to share one packed flag word. They are kept
apart here: ``GenerationCapabilities`` is consumed by the pipeline,
``RenderCapabilities`` only by the external renderer. The render set still
converts to the 32-bit word stored in view-state records.
"""

from pydantic import BaseModel, model_validator

# Bit layout of the persisted flag word
FLAG_GPU_BUFFERS = 1 << 0
FLAG_FILLED = 1 << 1
FLAG_NORMALS = 1 << 2
FLAG_TEXTURE = 1 << 3
FLAG_COLORS = 1 << 4
FLAG_OBJECTS = 1 << 5

_FLAG_BITS: dict[str, int] = {
    "gpu_buffers": FLAG_GPU_BUFFERS,
    "filled": FLAG_FILLED,
    "normals": FLAG_NORMALS,
    "texture": FLAG_TEXTURE,
    "colors": FLAG_COLORS,
    "objects": FLAG_OBJECTS,
}


class GenerationCapabilities(BaseModel, frozen=True):
    """Which buffers the generation pipeline fills in."""

    normals: bool = True
    colors: bool = True
    texture_coords: bool = True
    texture: bool = True
    objects: bool = True

    @model_validator(mode="after")
    def _objects_need_normals(self) -> "GenerationCapabilities":
        # Trees are raised along the terrain normal.
        if self.objects and not self.normals:
            raise ValueError("objects capability requires normals")
        return self


class RenderCapabilities(BaseModel, frozen=True):
    """How the external renderer should draw a mesh."""

    gpu_buffers: bool = True
    filled: bool = True
    normals: bool = True
    texture: bool = True
    colors: bool = True
    objects: bool = True

    def to_flags(self) -> int:
        """Pack into the persisted 32-bit flag word."""
        flags = 0
        for name, bit in _FLAG_BITS.items():
            if getattr(self, name):
                flags |= bit
        return flags

    @classmethod
    def from_flags(cls, flags: int) -> "RenderCapabilities":
        """Unpack a persisted flag word. Unknown bits are ignored."""
        return cls(**{name: bool(flags & bit) for name, bit in _FLAG_BITS.items()})

    @classmethod
    def none(cls) -> "RenderCapabilities":
        """Geometry only."""
        return cls.from_flags(0)

    def toggle(self, name: str) -> "RenderCapabilities":
        """Return a copy with one capability flipped.

        Raises:
            KeyError: If name is not a render capability.
        """
        if name not in _FLAG_BITS:
            raise KeyError(f"Unknown render capability: {name}")
        return self.model_copy(update={name: not getattr(self, name)})

    def without_objects(self) -> "RenderCapabilities":
        """Copy with the objects bit cleared, as handed down to child meshes."""
        return self.model_copy(update={"objects": False})
