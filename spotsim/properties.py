"""Summary statistics describing a generated dataset."""

from itertools import combinations
from typing import Any

import numpy as np
import pandas as pd

from .config import GenerationConfig
from .generators import FrequencyMatrix, PolicyResult


def region_overlap(frequencies: FrequencyMatrix) -> float:
    """Mean pairwise Jaccard index of the regions' admitted cell types.

    Zero for distinct layouts, one when every region admits the same types.
    """
    admitted = frequencies.admitted
    if admitted.shape[0] < 2:
        return 0.0
    scores = []
    for a, b in combinations(range(admitted.shape[0]), 2):
        union = np.logical_or(admitted[a], admitted[b]).sum()
        inter = np.logical_and(admitted[a], admitted[b]).sum()
        scores.append(inter / union)
    return float(np.mean(scores))


def spot_shannon(relative: pd.DataFrame) -> pd.Series:
    """Shannon entropy of each spot's relative composition."""
    p = relative.to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        terms = np.where(p > 0, -p * np.log(p), 0.0)
    return pd.Series(terms.sum(axis=1), index=relative.index)


def summarize_dataset(
    config: GenerationConfig,
    policy: PolicyResult,
    composition: pd.DataFrame,
    relative: pd.DataFrame,
    n_genes: int,
    seed: int,
) -> dict[str, Any]:
    """Flat key-value description of a dataset and its ground truth.

    Args:
        config: Generation configuration.
        policy: Policy result the spots were generated from.
        composition: Absolute spot composition, cell-type columns only.
        relative: Relative spot composition, cell-type columns only.
        n_genes: Number of genes in the counts matrix.
        seed: Entropy the run was seeded with; passing it back as
            ``GenerationConfig.seed`` reproduces the dataset.

    Returns:
        Dictionary of scalar, string and list values.
    """
    frequencies = policy.frequencies
    admitted = frequencies.admitted
    return {
        "dataset_type": config.dataset_type.value,
        "family": "real" if config.dataset_type.is_real else "artificial",
        "celltype_field": config.celltype_field,
        "region_field": config.region_field,
        "seed": seed,
        "n_regions": len(frequencies.regions),
        "n_spots": len(composition),
        "n_genes": n_genes,
        "n_celltypes": len(frequencies.present_celltypes()),
        "mock_region": config.add_mock_region,
        "removed_celltypes": list(policy.removed_celltypes),
        "held_out_celltypes": list(policy.held_out_celltypes),
        "dominant_celltype": policy.dominant_celltype,
        "dominance_factors": dict(policy.dominance_factors),
        "exempt_region": policy.exempt_region,
        "mean_celltypes_per_region": float(admitted.sum(axis=1).mean()),
        "region_overlap": region_overlap(frequencies),
        "mean_cells_per_spot": float(composition.sum(axis=1).mean()),
        "mean_celltypes_per_spot": float((composition > 0).sum(axis=1).mean()),
        "mean_spot_shannon": float(spot_shannon(relative).mean()),
        "mean_spot_dominance": float(relative.max(axis=1).mean()),
    }
