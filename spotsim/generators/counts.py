"""Count aggregation for synthetic spots."""

import logging
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.random import Generator

from ..catalog import CellCatalog
from .spots import Spot

logger = logging.getLogger(__name__)


def aggregate_counts(catalog: CellCatalog, cell_ids: Sequence[str]) -> np.ndarray:
    """Sum the expression of the given cells into one spot vector.

    Args:
        catalog: Single-cell reference.
        cell_ids: Identifiers of the cells making up the spot.

    Returns:
        Integer vector over the catalog genes whose total equals the sum of
        the cells' totals.
    """
    positions = catalog.positions_of(list(cell_ids))
    if np.any(positions < 0):
        unknown = [c for c, p in zip(cell_ids, positions) if p < 0]
        raise KeyError(f"Cells not in the catalog: {unknown[:5]}")
    return catalog.expression[positions].sum(axis=0, dtype=np.int64)


def downsample_counts(rng: Generator, counts: np.ndarray, target: int) -> np.ndarray:
    """Subsample a count vector without replacement to ``target`` molecules.

    Vectors already at or below the target are returned unchanged.
    """
    total = int(counts.sum())
    if target >= total:
        return counts
    return rng.multivariate_hypergeometric(counts, target).astype(np.int64)


def assemble_counts(spots: Sequence[Spot], genes: Sequence[str]) -> pd.DataFrame:
    """Stack spot count vectors into a genes × spots DataFrame in spot order."""
    logger.debug(f"Assembling counts of {len(spots)} spots")
    if not spots:
        return pd.DataFrame(index=list(genes), dtype=np.int64)
    matrix = np.column_stack([spot.counts for spot in spots])
    return pd.DataFrame(
        matrix,
        index=list(genes),
        columns=[spot.name for spot in spots],
    )
