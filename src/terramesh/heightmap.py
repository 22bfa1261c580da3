"""Heightfield synthesis: diamond-square displacement and toroidal blur.

Fields are square float64 arrays of side ``size + 1``. The last row and
column duplicate the first ones, so the field tiles seamlessly and can be
treated as a torus of period ``size``.
"""

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from .exceptions import InvalidParameterError

logger = structlog.get_logger()


def is_power_of_two(value: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return value > 0 and (value & (value - 1)) == 0


def _odd_lattice(size: int, step: int) -> NDArray[np.intp]:
    """Coordinates that are odd multiples of step: step, 3*step, ... < size."""
    return np.arange(step, size, 2 * step)


def _even_lattice(size: int, step: int) -> NDArray[np.intp]:
    """Coordinates that are even multiples of step: 0, 2*step, ... < size."""
    return np.arange(0, size, 2 * step)


def _diagonal_mean(
    field: NDArray[np.float64],
    rows: NDArray[np.intp],
    cols: NDArray[np.intp],
    step: int,
) -> NDArray[np.float64]:
    """Average of the four diagonal neighbors at distance step."""
    return 0.25 * (
        field[np.ix_(rows - step, cols - step)]
        + field[np.ix_(rows - step, cols + step)]
        + field[np.ix_(rows + step, cols - step)]
        + field[np.ix_(rows + step, cols + step)]
    )


def _orthogonal_mean(
    field: NDArray[np.float64],
    rows: NDArray[np.intp],
    cols: NDArray[np.intp],
    step: int,
    size: int,
) -> NDArray[np.float64]:
    """Average of the four orthogonal neighbors, wrapping at the torus seam.

    Only the backward neighbors can leave the field; forward ones land on
    the duplicated last row/column at worst.
    """
    return 0.25 * (
        field[np.ix_(rows, (cols - step) % size)]
        + field[np.ix_(rows, cols + step)]
        + field[np.ix_((rows - step) % size, cols)]
        + field[np.ix_(rows + step, cols)]
    )


def _perturbation(
    rng: np.random.Generator, amplitude: float, shape: tuple[int, ...]
) -> NDArray[np.float64]:
    """Uniform noise in [-amplitude/2, amplitude/2]."""
    return amplitude * rng.uniform(-0.5, 0.5, size=shape)


def _mirror_seam(field: NDArray[np.float64], size: int) -> None:
    """Copy row/column 0 onto row/column size."""
    field[size, :] = field[0, :]
    field[:, size] = field[:, 0]


def generate_heightmap(
    size: int,
    roughness: float,
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    """Generate a toroidal heightfield with the diamond-square algorithm.

    Args:
        size: Grid side in squares; must be a power of two greater than 1.
        roughness: Amplitude decay exponent. The perturbation amplitude
            starts at 2^-|roughness| and is multiplied by the same factor
            after every pass, so larger values give smoother terrain.
        rng: Seeded random number generator.

    Returns:
        Array of shape (size + 1, size + 1).

    Raises:
        InvalidParameterError: If size is not a power of two greater than 1.
    """
    if size < 2 or not is_power_of_two(size):
        raise InvalidParameterError(
            f"Heightmap size must be a power of two greater than 1, got {size}"
        )

    field = np.zeros((size + 1, size + 1), dtype=np.float64)
    decay = 2.0 ** -abs(roughness)
    amplitude = decay

    step = size // 2
    while step:
        # Diamond pass: centers of 2*step cells
        centers = _odd_lattice(size, step)
        field[np.ix_(centers, centers)] = _diagonal_mean(
            field, centers, centers, step
        ) + _perturbation(rng, amplitude, (len(centers), len(centers)))

        # Square pass: edge midpoints on the two interleaved sublattices
        evens = _even_lattice(size, step)
        for rows, cols in ((evens, centers), (centers, evens)):
            field[np.ix_(rows, cols)] = _orthogonal_mean(
                field, rows, cols, step, size
            ) + _perturbation(rng, amplitude, (len(rows), len(cols)))
        _mirror_seam(field, size)

        step //= 2
        amplitude *= decay

    logger.debug(
        "heightmap_generated",
        size=size,
        roughness=roughness,
        low=float(field.min()),
        high=float(field.max()),
    )
    return field


def blur_kernel(sigma: float) -> NDArray[np.float64]:
    """Symmetric Gaussian kernel of 2 * floor(3 * sigma) + 1 taps summing to 1.

    The center weight is chosen so that the total mass is exactly one.
    """
    taps = int(3.0 * sigma)
    offsets = np.arange(1, taps + 1, dtype=np.float64)
    tail = np.exp(-(offsets**2) / (2.0 * sigma * sigma))
    center = 0.5 / (tail.sum() + 0.5)
    tail *= center
    return np.concatenate([tail[::-1], [center], tail])


def blur_heightmap(field: NDArray[np.float64], size: int, sigma: float) -> None:
    """Smooth a toroidal heightfield in place with a separable Gaussian blur.

    Blurs along x, then along y, wrapping around the torus seam in both
    passes. Does nothing if sigma <= 0 or sigma >= size.

    Args:
        field: Array of shape (size + 1, size + 1), modified in place.
        size: Period of the field.
        sigma: Gaussian standard deviation in grid cells.
    """
    if sigma <= 0.0 or sigma >= size:
        return

    kernel = blur_kernel(sigma)
    taps = len(kernel) // 2
    core = field[:size, :size]

    for axis in (1, 0):
        # Pad with enough periods that the kernel never reads past the pad.
        pad = [(0, 0), (0, 0)]
        pad[axis] = (taps, taps)
        padded = np.pad(core, pad, mode="wrap")
        blurred = ndimage.convolve1d(padded, kernel, axis=axis, mode="wrap")
        core = blurred[taps : taps + size, :] if axis == 0 else blurred[:, taps : taps + size]

    field[:size, :size] = core
    _mirror_seam(field, size)

    logger.debug("heightmap_blurred", size=size, sigma=sigma, taps=taps)
