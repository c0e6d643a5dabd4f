"""Shared fixtures: small synthetic single-cell references."""

import numpy as np
import pandas as pd
import pytest

from spotsim import CellCatalog

N_GENES = 30


def make_catalog(
    layout: dict[tuple[str, str], int], n_genes: int = N_GENES, seed: int = 0
) -> CellCatalog:
    """Build a catalog from {(celltype, region): n_cells}.

    Every cell type expresses its own block of marker genes ten times higher
    than the background.
    """
    rng = np.random.default_rng(seed)
    celltypes = list(dict.fromkeys(ct for ct, _ in layout))
    block = n_genes // max(len(celltypes), 1)

    rows, records = [], []
    for (celltype, region), n in layout.items():
        means = np.ones(n_genes)
        k = celltypes.index(celltype)
        means[k * block:(k + 1) * block] = 10.0
        rows.append(rng.poisson(means, size=(n, n_genes)))
        records.extend({"celltype": celltype, "region": region} for _ in range(n))

    counts = np.vstack(rows)
    cell_ids = [f"cell{i}" for i in range(len(records))]
    obs = pd.DataFrame(records, index=cell_ids)
    genes = [f"gene{i}" for i in range(n_genes)]
    return CellCatalog(pd.DataFrame(counts, index=cell_ids, columns=genes), obs)


@pytest.fixture
def three_type_catalog() -> CellCatalog:
    """Cell types A, B, C with 100 cells each, all in one region."""
    return make_catalog({("A", "r"): 100, ("B", "r"): 100, ("C", "r"): 100})


@pytest.fixture
def six_type_catalog() -> CellCatalog:
    """Six cell types with 60 cells each."""
    return make_catalog({(ct, "r"): 60 for ct in "ABCDEF"})


@pytest.fixture
def real_catalog() -> CellCatalog:
    """Two regions of unequal composition.

    cortex:  A 70, B 30
    medulla: A 20, B 30, C 50
    """
    return make_catalog(
        {
            ("A", "cortex"): 70,
            ("B", "cortex"): 30,
            ("A", "medulla"): 20,
            ("B", "medulla"): 30,
            ("C", "medulla"): 50,
        }
    )


@pytest.fixture
def mixed_catalog() -> CellCatalog:
    """Two regions that both hold every cell type.

    cortex:  A 50, B 30, C 20
    medulla: A 20, B 30, C 50
    """
    return make_catalog(
        {
            ("A", "cortex"): 50,
            ("B", "cortex"): 30,
            ("C", "cortex"): 20,
            ("A", "medulla"): 20,
            ("B", "medulla"): 30,
            ("C", "medulla"): 50,
        }
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)
