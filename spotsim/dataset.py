"""Output bundle of a generation run."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pandas as pd

from .exporters import to_anndata

if TYPE_CHECKING:
    import anndata


@dataclass
class SyntheticDataset:
    """Synthetic spots together with the ground truth that generated them.

    Attributes:
        counts: Genes × spots integer count matrix.
        spot_composition: Absolute cell counts per spot, one column per
            reference cell type plus ``name`` and ``region``.
        relative_spot_composition: ``spot_composition`` with the cell-type
            columns normalized to sum to 1 per spot.
        gold_standard_priorregion: Regions × cell types frequencies used for
            generation. The mock region is not included.
        dataset_properties: Flat summary of the dataset.
    """

    counts: pd.DataFrame
    spot_composition: pd.DataFrame
    relative_spot_composition: pd.DataFrame
    gold_standard_priorregion: pd.DataFrame
    dataset_properties: dict[str, Any]

    @property
    def celltypes(self) -> list[str]:
        return [c for c in self.spot_composition.columns if c not in ("name", "region")]

    def to_anndata(self) -> "anndata.AnnData":
        """Export the spots to an AnnData object. See ``exporters.to_anndata``."""
        return to_anndata(
            counts=self.counts,
            spot_composition=self.spot_composition,
            relative_spot_composition=self.relative_spot_composition,
            gold_standard_priorregion=self.gold_standard_priorregion,
            dataset_properties=self.dataset_properties,
        )
