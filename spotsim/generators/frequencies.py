"""Dense region × cell-type frequency table."""

from dataclasses import dataclass

import numpy as np
import pandas as pd

FREQUENCY_TOLERANCE = 1e-9


@dataclass(frozen=True)
class FrequencyMatrix:
    """Relative cell-type frequencies per prior region.

    Rows are regions and columns cell types; inadmissible pairs hold an
    explicit zero. Every row sums to 1.

    Attributes:
        values: Regions × cell types float array.
        regions: Region labels in row order.
        celltypes: Cell-type labels in column order.
    """

    values: np.ndarray
    regions: list[str]
    celltypes: list[str]

    def __post_init__(self) -> None:
        if self.values.shape != (len(self.regions), len(self.celltypes)):
            raise ValueError(
                f"values shape {self.values.shape} does not match "
                f"{len(self.regions)} regions × {len(self.celltypes)} cell types"
            )
        if np.any(self.values < 0):
            raise ValueError("frequencies must be non-negative")
        sums = self.values.sum(axis=1)
        bad = np.flatnonzero(np.abs(sums - 1.0) > FREQUENCY_TOLERANCE)
        if bad.size:
            raise ValueError(
                f"frequencies of region '{self.regions[bad[0]]}' sum to "
                f"{sums[bad[0]]}, expected 1"
            )
        self.values.setflags(write=False)

    @classmethod
    def from_weights(
        cls, weights: np.ndarray, regions: list[str], celltypes: list[str]
    ) -> "FrequencyMatrix":
        """Normalize non-negative weights row-wise into frequencies."""
        weights = np.asarray(weights, dtype=float)
        sums = weights.sum(axis=1, keepdims=True)
        if np.any(sums <= 0):
            empty = [regions[i] for i in np.flatnonzero(sums[:, 0] <= 0)]
            raise ValueError(f"regions without admitted cell types: {empty}")
        return cls(weights / sums, list(regions), list(celltypes))

    @property
    def admitted(self) -> np.ndarray:
        """Boolean regions × cell types mask of admissible pairs."""
        return self.values > 0

    def pools(self) -> dict[str, list[str]]:
        """Admitted cell types of each region."""
        return {
            region: [ct for ct, ok in zip(self.celltypes, row) if ok]
            for region, row in zip(self.regions, self.admitted)
        }

    def row(self, region: str) -> np.ndarray:
        return self.values[self.regions.index(region)]

    def present_celltypes(self) -> list[str]:
        """Cell types admitted to at least one region."""
        present = self.admitted.any(axis=0)
        return [ct for ct, ok in zip(self.celltypes, present) if ok]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=self.regions, columns=self.celltypes)
