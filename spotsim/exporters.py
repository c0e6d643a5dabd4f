"""Export functionality for synthetic spot datasets."""

from typing import TYPE_CHECKING, Any

import pandas as pd

if TYPE_CHECKING:
    import anndata


def _plain(value: Any) -> Any:
    """Make a property value storable in ``uns``."""
    if value is None:
        return "None"
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [str(v) for v in value]
    return value


def to_anndata(
    counts: pd.DataFrame,
    spot_composition: pd.DataFrame,
    relative_spot_composition: pd.DataFrame,
    gold_standard_priorregion: pd.DataFrame,
    dataset_properties: dict[str, Any],
) -> "anndata.AnnData":
    """Export a synthetic dataset to an AnnData object.

    Requires the `anndata` package to be installed.
    Install with: `pip install spotsim[anndata]`

    Args:
        counts: Genes × spots count matrix.
        spot_composition: Absolute composition with ``name`` and ``region``.
        relative_spot_composition: Relative composition.
        gold_standard_priorregion: Region × cell-type frequencies.
        dataset_properties: Dataset summary.

    Returns:
        AnnData object with:
        - X: count matrix (spots x genes)
        - obs: ``region`` plus the absolute cell count of every cell type
        - obsm["relative_spot_composition"]: relative composition
        - uns["gold_standard_priorregion"]: region frequencies as a DataFrame
        - uns["dataset_properties"]: dataset summary as dict

    Raises:
        ImportError: If anndata is not installed.
    """
    try:
        import anndata
    except ImportError as e:
        raise ImportError(
            "anndata is required for to_anndata(). "
            "Install with: pip install spotsim[anndata]"
        ) from e

    spot_names = list(counts.columns)
    obs = spot_composition.set_index("name").loc[spot_names].copy()
    obs.index.name = None
    relative = (
        relative_spot_composition.set_index("name")
        .loc[spot_names]
        .drop(columns="region")
    )
    relative.index.name = None

    adata = anndata.AnnData(
        X=counts.T.to_numpy(),
        obs=obs,
        var=pd.DataFrame(index=counts.index.astype(str)),
    )
    adata.obsm["relative_spot_composition"] = relative
    adata.uns["gold_standard_priorregion"] = gold_standard_priorregion.copy()
    adata.uns["dataset_properties"] = _plain(dataset_properties)
    return adata
