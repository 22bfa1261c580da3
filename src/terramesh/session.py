"""Interactive session state: the current terrain chain plus its view."""

from pathlib import Path

import structlog

from .capabilities import RenderCapabilities
from .config import TerrainConfig
from .generator import generate_from_config
from .mesh import MeshChain
from .persistence import ViewState, load_view_state, save_view_state

logger = structlog.get_logger()


class Landscape:
    """Owns one MeshChain and the view state it is shown with.

    Regeneration builds the replacement chain completely before swapping it
    in, so a failed generation leaves the current chain untouched.
    """

    def __init__(self, config: TerrainConfig, state_path: Path | None = None) -> None:
        self.config = config
        self.state_path = state_path
        self.view = ViewState.initial(config.surface.height_range, seed=config.seed)
        self.chain: MeshChain | None = None

    @property
    def render(self) -> RenderCapabilities:
        return self.view.render

    @property
    def seed(self) -> int:
        return self.chain.root.seed if self.chain is not None else self.view.seed

    def load(self, seed: int | None = None) -> MeshChain:
        """Restore the saved view (if any) and generate its terrain.

        An explicit seed overrides the saved one.
        """
        if self.state_path is not None and self.state_path.exists():
            self.view = load_view_state(self.state_path)
            logger.info("view_state_restored", path=str(self.state_path), seed=self.view.seed)
        return self.regenerate(self.view.seed if seed is None else seed)

    def regenerate(self, seed: int = 0) -> MeshChain:
        """Replace the current chain with a fresh one; seed 0 picks a new seed."""
        config = self.config.model_copy(update={"seed": seed})
        chain = generate_from_config(config, self.render)

        old, self.chain = self.chain, chain
        self.view = self.view.model_copy(update={"seed": chain.root.seed})
        if old is not None:
            old.release()
        logger.info("landscape_regenerated", seed=chain.root.seed, meshes=len(chain))
        return chain

    def save(self) -> None:
        if self.state_path is None:
            return
        save_view_state(
            self.state_path,
            self.view.model_copy(update={"seed": self.seed, "flags": self.render.to_flags()}),
        )

    def reset_view(self) -> None:
        self.view = self.view.reset_view(self.config.surface.height_range)

    def toggle(self, name: str) -> RenderCapabilities:
        """Flip one render capability, on the view and on the terrain."""
        render = self.render.toggle(name)
        self.view = self.view.model_copy(update={"flags": render.to_flags()})
        if self.chain is not None:
            self.chain.root.render = render
        return render

    def close(self) -> None:
        """Save the view and release the chain."""
        self.save()
        if self.chain is not None:
            self.chain.release()
            self.chain = None
