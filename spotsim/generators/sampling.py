"""Drawing reference cells for a spot."""

from typing import Optional, Sequence

import numpy as np
from numpy.random import Generator

from ..catalog import CellCatalog
from ..errors import InsufficientCellsError


def sample_cells(
    rng: Generator,
    catalog: CellCatalog,
    celltype_field: str,
    counts: np.ndarray,
    celltypes: Sequence[str],
    region_field: Optional[str] = None,
    region: Optional[str] = None,
) -> list[str]:
    """Draw reference cells matching a spot's cell-type counts.

    Cells of each type are drawn uniformly without replacement, so a cell
    appears at most once per spot. Separate calls are independent and may
    reuse cells.

    Args:
        rng: NumPy random generator.
        catalog: Single-cell reference.
        celltype_field: Metadata field with cell-type labels.
        counts: Number of cells to draw per cell type.
        celltypes: Cell types aligned with ``counts``.
        region_field: Metadata field with region labels.
        region: If given with ``region_field``, only cells of this region
            are eligible.

    Returns:
        Identifiers of the drawn cells, grouped by cell type.

    Raises:
        InsufficientCellsError: If a cell type has fewer eligible cells than
            requested.
    """
    scoped = region if region_field is not None else None
    drawn: list[np.ndarray] = []
    for celltype, n in zip(celltypes, counts):
        if n == 0:
            continue
        pool = catalog.positions(celltype_field, celltype, region_field, scoped)
        if len(pool) < n:
            raise InsufficientCellsError(celltype, scoped, int(n), len(pool))
        drawn.append(rng.choice(pool, size=int(n), replace=False))

    if not drawn:
        return []
    return list(catalog.cell_ids[np.concatenate(drawn)])
