"""Read-only view over a single-cell reference."""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class CellCatalog:
    """Single-cell reference used as the source of every synthetic spot.

    Expression is held as a dense integer array (cells × genes) aligned with
    the metadata frame. Cells are addressed by position internally and by the
    metadata index externally.

    Example:
        >>> catalog = CellCatalog(counts, obs)
        >>> catalog.labels("celltype")
        array(['A', 'A', 'B', ...], dtype=object)
    """

    def __init__(self, counts: pd.DataFrame, obs: pd.DataFrame) -> None:
        """Build the catalog.

        Args:
            counts: Cells × genes DataFrame of non-negative integer counts.
            obs: Per-cell metadata indexed by cell identifier.

        Raises:
            ConfigurationError: If the frames are not aligned, identifiers are
                not unique, or counts are negative or non-integer.
        """
        if not obs.index.is_unique:
            raise ConfigurationError("Cell identifiers in obs must be unique")
        if not counts.index.equals(obs.index):
            if set(counts.index) != set(obs.index) or not counts.index.is_unique:
                raise ConfigurationError(
                    "counts and obs must describe the same cells"
                )
            counts = counts.loc[obs.index]

        values = counts.to_numpy()
        if values.size and not np.all(np.equal(np.mod(values, 1), 0)):
            raise ConfigurationError("counts must be integers")
        if values.size and values.min() < 0:
            raise ConfigurationError("counts must be non-negative")

        self._expression = values.astype(np.int64)
        self._expression.setflags(write=False)
        self._obs = obs.copy()
        self._cell_ids = np.asarray(obs.index.astype(str))
        self._genes = [str(g) for g in counts.columns]
        self._index = pd.Index(self._cell_ids)
        self._labels: dict[str, np.ndarray] = {}
        self._positions: dict[tuple, np.ndarray] = {}
        logger.debug(
            f"Catalog holds {self.n_cells} cells and {self.n_genes} genes"
        )

    @property
    def n_cells(self) -> int:
        return self._expression.shape[0]

    @property
    def n_genes(self) -> int:
        return self._expression.shape[1]

    @property
    def genes(self) -> list[str]:
        return list(self._genes)

    @property
    def cell_ids(self) -> np.ndarray:
        return self._cell_ids

    @property
    def expression(self) -> np.ndarray:
        """Read-only cells × genes integer count array."""
        return self._expression

    def labels(self, field: str) -> np.ndarray:
        """Return the string labels of a metadata field, one per cell.

        Raises:
            ConfigurationError: If the field is absent or unset for any cell.
        """
        if field in self._labels:
            return self._labels[field]
        if field not in self._obs.columns:
            raise ConfigurationError(
                f"Field '{field}' not found in cell metadata; available: "
                f"{list(self._obs.columns)}"
            )
        column = self._obs[field]
        missing = column.isna()
        if missing.any():
            raise ConfigurationError(
                f"Field '{field}' is missing for {int(missing.sum())} cells"
            )
        labels = column.astype(str).to_numpy(dtype=object)
        labels.setflags(write=False)
        self._labels[field] = labels
        return labels

    def categories(self, field: str) -> list[str]:
        """Distinct labels of a field in order of first appearance."""
        return list(pd.unique(self.labels(field)))

    def positions(
        self,
        celltype_field: str,
        celltype: str,
        region_field: Optional[str] = None,
        region: Optional[str] = None,
    ) -> np.ndarray:
        """Row positions of the cells of one type, optionally within one region."""
        key = (celltype_field, celltype, region_field, region)
        if key not in self._positions:
            mask = self.labels(celltype_field) == celltype
            if region_field is not None and region is not None:
                mask &= self.labels(region_field) == region
            self._positions[key] = np.flatnonzero(mask)
        return self._positions[key]

    def positions_of(self, cell_ids: list[str]) -> np.ndarray:
        """Row positions of the given cell identifiers."""
        return self._index.get_indexer(cell_ids)
