"""Per-spot cell-type composition."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from numpy.random import Generator


@dataclass
class Spot:
    """One synthetic spot, filled in as it moves through the pipeline.

    Attributes:
        name: Unique spot name, ``<region>_<index>``.
        region: Region the spot was generated for.
        total: Target number of cells in the spot.
        composition: Cell count per cell type, aligned with the frequency
            vector the spot was composed from.
        cells: Identifiers of the sampled reference cells.
        counts: Aggregated gene counts.
    """

    name: str
    region: str
    total: int
    composition: np.ndarray
    cells: list[str] = field(default_factory=list)
    counts: Optional[np.ndarray] = None


def draw_total(rng: Generator, mean: float, sd: float) -> int:
    """Draw a positive integer total from a normal distribution.

    Draws rounding below one are discarded and redrawn.
    """
    while True:
        total = int(round(rng.normal(loc=mean, scale=sd)))
        if total >= 1:
            return total


def largest_remainder(frequencies: np.ndarray, total: int) -> np.ndarray:
    """Split ``total`` into integer counts proportional to ``frequencies``.

    Every count is the floor of its quota; the units left over go to the
    largest fractional parts, ties broken by position.

    Args:
        frequencies: Non-negative weights summing to 1.
        total: Number of units to distribute.

    Returns:
        Integer array summing to ``total``.
    """
    quotas = np.asarray(frequencies, dtype=float) * total
    counts = np.floor(quotas).astype(np.int64)
    remainder = total - int(counts.sum())
    if remainder > 0:
        fractions = np.where(quotas > 0, quotas - counts, -1.0)
        order = np.argsort(-fractions, kind="stable")
        counts[order[:remainder]] += 1
    return counts


def compose_spots(
    rng: Generator,
    region: str,
    frequencies: np.ndarray,
    n_spots: int,
    total_mean: float,
    total_sd: float,
    method: str = "largest_remainder",
) -> list[Spot]:
    """Draw the cell-type composition of every spot of a region.

    Args:
        rng: NumPy random generator.
        region: Region name, used as the spot name prefix.
        frequencies: Relative cell-type frequencies of the region.
        n_spots: Number of spots to compose.
        total_mean: Mean number of cells per spot.
        total_sd: Standard deviation of cells per spot.
        method: "largest_remainder" for the closest integer split of the
            frequencies, "multinomial" for a multinomial draw.

    Returns:
        List of spots named ``<region>_1 .. <region>_<n_spots>`` with region,
        total and composition set.
    """
    return [
        compose_spot(
            rng, f"{region}_{i}", region, frequencies, total_mean, total_sd, method
        )
        for i in range(1, n_spots + 1)
    ]


def compose_spot(
    rng: Generator,
    name: str,
    region: str,
    frequencies: np.ndarray,
    total_mean: float,
    total_sd: float,
    method: str = "largest_remainder",
) -> Spot:
    """Compose a single spot. See ``compose_spots``."""
    total = draw_total(rng, total_mean, total_sd)
    if method == "multinomial":
        composition = rng.multinomial(total, frequencies).astype(np.int64)
    else:
        composition = largest_remainder(frequencies, total)
    return Spot(name=name, region=region, total=total, composition=composition)
