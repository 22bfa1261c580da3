"""Command-line interface for terrain generation."""

import argparse
import logging
import time
from pathlib import Path

import structlog


def _configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
    )


def save_debug_images(chain, output_dir: Path) -> list[Path]:
    """Write facet textures and a corner-color preview of the terrain as PNGs."""
    from PIL import Image

    output_dir.mkdir(parents=True, exist_ok=True)
    written = []

    terrain = chain.root
    if terrain.colors is not None:
        n = terrain.dim
        corners = terrain.colors[: (n + 1) ** 2].reshape(n + 1, n + 1, 4)
        path = output_dir / "corner_colors.png"
        # Row 0 is the southern edge; flip so north is up
        Image.fromarray(corners[::-1].copy()).save(path)
        written.append(path)

    for i, mesh in enumerate(chain):
        if mesh.texture is not None:
            path = output_dir / f"texture_{i}.png"
            mesh.texture.save_png(path)
            written.append(path)

    return written


def main() -> None:
    """CLI entry point for terrain generation."""
    parser = argparse.ArgumentParser(
        description="Generate a procedural terrain mesh"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="TOML config file (optional)"
    )
    parser.add_argument(
        "--size-log2",
        type=int,
        default=None,
        help="log2 of squares per side (overrides config)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed, 0 for a fresh one (overrides config and state)",
    )
    parser.add_argument(
        "--objects",
        type=int,
        default=None,
        help="Number of trees to scatter (overrides config)",
    )
    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="View state file; loaded if present, always saved (.txt for text)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="terrain.npz",
        help="Output path (default: terrain.npz)",
    )
    parser.add_argument(
        "--debug-images",
        type=str,
        default=None,
        help="Directory to save debug images (optional)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )

    args = parser.parse_args()
    _configure_logging(args.verbose)

    # Import here to avoid slow startup for --help
    from .config import TerrainConfig, load_config
    from .persistence import save_meshes
    from .session import Landscape

    config = load_config(Path(args.config)) if args.config else TerrainConfig()
    if args.size_log2 is not None:
        config.heightmap.size_log2 = args.size_log2
    if args.objects is not None:
        config.scatter.count = args.objects
    if args.seed is not None:
        config.seed = args.seed

    output_path = Path(args.output)
    state_path = Path(args.state) if args.state else None

    size = 1 << config.heightmap.size_log2
    print(f"Generating {size}x{size} terrain")
    print(f"Output: {output_path}")
    print()

    landscape = Landscape(config, state_path)
    start_time = time.time()
    chain = landscape.load(args.seed)
    gen_time = time.time() - start_time

    print()
    print(f"Generation complete in {gen_time:.1f}s (seed {landscape.seed})")

    save_meshes(output_path, chain)
    print(f"Saved to {output_path}")

    if args.debug_images:
        for path in save_debug_images(chain, Path(args.debug_images)):
            print(f"Debug image: {path}")

    landscape.close()


if __name__ == "__main__":
    main()
