"""Region × cell-type frequency policies for every dataset type.

Each ``DatasetType`` maps to exactly one policy function. A policy receives a
``PolicyContext`` and returns a ``PolicyResult`` holding the frequency matrix
together with whatever ground truth the policy introduced (removed or held-out
cell types, the dominant or rare cell type and its factors).

Real policies derive regions from a metadata field; artificial policies lay
cell types out over ``region_1 .. region_n``:

    distinct   each cell type in exactly one region
    overlap    cell types may appear in several regions
    uniform    equal frequency for every admitted cell type
    diverse    frequencies from normalized uniform random weights
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
import pandas as pd
from numpy.random import Generator

from ..catalog import CellCatalog
from ..config import DatasetType
from ..errors import ConfigurationError, InsufficientDataError
from .frequencies import FrequencyMatrix

logger = logging.getLogger(__name__)

# Output tables carry these next to the cell-type columns
RESERVED_LABELS = ("name", "region")

DOMINANT_FACTOR_RANGE = (5.0, 15.0)
RARE_FACTOR_RANGE = (1.0 / 15.0, 1.0 / 5.0)


@dataclass
class PolicyContext:
    """Inputs shared by all policies.

    Attributes:
        rng: NumPy random generator.
        dataset_type: The policy being computed.
        celltypes: Cell-type universe in order of first appearance.
        celltype_labels: Cell-type label of every reference cell.
        regions: Region labels, real or artificial.
        region_labels: Region label of every reference cell (real types only).
    """

    rng: Generator
    dataset_type: DatasetType
    celltypes: list[str]
    celltype_labels: np.ndarray
    regions: list[str]
    region_labels: Optional[np.ndarray] = None

    @property
    def n_regions(self) -> int:
        return len(self.regions)

    @property
    def n_celltypes(self) -> int:
        return len(self.celltypes)


@dataclass
class PolicyResult:
    """Frequency matrix plus the ground truth a policy introduced."""

    frequencies: FrequencyMatrix
    removed_celltypes: list[str] = field(default_factory=list)
    held_out_celltypes: list[str] = field(default_factory=list)
    dominant_celltype: Optional[str] = None
    dominance_factors: dict[str, float] = field(default_factory=dict)
    exempt_region: Optional[str] = None


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------


def _region_counts(
    ctx: PolicyContext, removed: Optional[list[str]] = None
) -> np.ndarray:
    """Number of reference cells per region and cell type."""
    region_idx = pd.Index(ctx.regions).get_indexer(ctx.region_labels)
    type_idx = pd.Index(ctx.celltypes).get_indexer(ctx.celltype_labels)
    counts = np.zeros((ctx.n_regions, ctx.n_celltypes), dtype=np.int64)
    np.add.at(counts, (region_idx, type_idx), 1)
    if removed:
        counts[:, pd.Index(ctx.celltypes).get_indexer(removed)] = 0
    return counts


def _real_matrix(ctx: PolicyContext, weights: np.ndarray) -> FrequencyMatrix:
    """Normalize real-region weights, dropping regions left without cell types."""
    keep = weights.sum(axis=1) > 0
    name = ctx.dataset_type.value
    if not keep.all():
        dropped = [r for r, ok in zip(ctx.regions, keep) if not ok]
        if keep.sum() < 2:
            raise InsufficientDataError(
                f"'{name}' needs at least 2 regions with admitted cell types, "
                f"got {int(keep.sum())} after dropping {dropped}"
            )
        logger.warning(
            f"Dropping regions without admitted cell types for '{name}': {dropped}"
        )
    regions = [r for r, ok in zip(ctx.regions, keep) if ok]
    return FrequencyMatrix.from_weights(weights[keep], regions, ctx.celltypes)


def _draw_removed(ctx: PolicyContext) -> list[str]:
    """Random non-empty proper subset of the cell types, in universe order."""
    n_removed = int(ctx.rng.integers(1, ctx.n_celltypes))
    chosen = set(ctx.rng.choice(ctx.celltypes, size=n_removed, replace=False))
    return [ct for ct in ctx.celltypes if ct in chosen]


def _distinct_layout(
    rng: Generator, type_idx: np.ndarray, n_regions: int, n_celltypes: int
) -> np.ndarray:
    """Assign every cell type to exactly one region, no region left empty."""
    mask = np.zeros((n_regions, n_celltypes), dtype=bool)
    order = rng.permutation(type_idx)
    for i, ct in enumerate(order):
        region = i if i < n_regions else int(rng.integers(n_regions))
        mask[region, ct] = True
    return mask


def _overlap_layout(
    rng: Generator, type_idx: np.ndarray, n_regions: int, n_celltypes: int
) -> np.ndarray:
    """Place every cell type in a random number of regions.

    Every region receives at least one cell type and, with two or more
    regions, at least one cell type is shared by two regions.
    """
    mask = np.zeros((n_regions, n_celltypes), dtype=bool)
    order = rng.permutation(type_idx)
    for region in range(n_regions):
        mask[region, order[region % len(order)]] = True
    for ct in type_idx:
        degree = int(rng.integers(1, n_regions + 1))
        mask[rng.choice(n_regions, size=degree, replace=False), ct] = True

    if n_regions > 1 and not (mask[:, type_idx].sum(axis=0) > 1).any():
        ct = int(rng.choice(type_idx))
        absent = np.flatnonzero(~mask[:, ct])
        mask[rng.choice(absent), ct] = True
    return mask


def _uniform_weights(mask: np.ndarray) -> np.ndarray:
    return mask.astype(float)


def _diverse_weights(rng: Generator, mask: np.ndarray) -> np.ndarray:
    # 1 - U[0, 1) lies in (0, 1] so admitted types never get a zero weight
    return np.where(mask, 1.0 - rng.random(mask.shape), 0.0)


def _artificial_layout(
    ctx: PolicyContext, distinct: bool, type_idx: Optional[np.ndarray] = None
) -> np.ndarray:
    if type_idx is None:
        type_idx = np.arange(ctx.n_celltypes)
    layout = _distinct_layout if distinct else _overlap_layout
    return layout(ctx.rng, type_idx, ctx.n_regions, ctx.n_celltypes)


# ---------------------------------------------------------------------------
# Real policies
# ---------------------------------------------------------------------------


def _real(ctx: PolicyContext) -> PolicyResult:
    return PolicyResult(_real_matrix(ctx, _region_counts(ctx).astype(float)))


def _real_top1(ctx: PolicyContext, uniform: bool) -> PolicyResult:
    counts = _region_counts(ctx)
    freqs = counts / counts.sum(axis=1, keepdims=True)
    # argmax returns the first maximal region, i.e. the first encountered
    top = np.argmax(freqs, axis=0)
    mask = np.zeros_like(counts, dtype=bool)
    mask[top, np.arange(ctx.n_celltypes)] = True
    mask &= counts > 0
    weights = _uniform_weights(mask) if uniform else np.where(mask, freqs, 0.0)
    return PolicyResult(_real_matrix(ctx, weights))


def _real_top2_overlap(ctx: PolicyContext, uniform: bool) -> PolicyResult:
    counts = _region_counts(ctx)
    freqs = counts / counts.sum(axis=1, keepdims=True)
    mask = np.zeros_like(counts, dtype=bool)
    for ct in range(ctx.n_celltypes):
        top2 = np.argsort(-counts[:, ct], kind="stable")[:2]
        mask[top2, ct] = True
    mask &= counts > 0
    weights = _uniform_weights(mask) if uniform else np.where(mask, freqs, 0.0)
    return PolicyResult(_real_matrix(ctx, weights))


def _real_missing_celltypes_visium(ctx: PolicyContext) -> PolicyResult:
    removed = _draw_removed(ctx)
    logger.info(f"Removing cell types from the spots: {removed}")
    counts = _region_counts(ctx, removed=removed)
    return PolicyResult(
        _real_matrix(ctx, counts.astype(float)), removed_celltypes=removed
    )


# ---------------------------------------------------------------------------
# Artificial policies
# ---------------------------------------------------------------------------


def _artificial(ctx: PolicyContext, distinct: bool, uniform: bool) -> PolicyResult:
    mask = _artificial_layout(ctx, distinct)
    weights = _uniform_weights(mask) if uniform else _diverse_weights(ctx.rng, mask)
    return PolicyResult(
        FrequencyMatrix.from_weights(weights, ctx.regions, ctx.celltypes)
    )


def _shared_celltype(
    ctx: PolicyContext,
    factor_range: tuple[float, float],
    exempt_one: bool = False,
    confined: bool = False,
) -> PolicyResult:
    """Scale the weight of one cell type in all, all but one, or one region.

    The remaining cell types follow the overlap layout with diverse weights.
    """
    rng = ctx.rng
    special = int(rng.integers(ctx.n_celltypes))
    others = np.array([i for i in range(ctx.n_celltypes) if i != special])
    mask = _artificial_layout(ctx, distinct=False, type_idx=others)
    weights = _diverse_weights(rng, mask)

    if confined:
        targets = np.array([int(rng.integers(ctx.n_regions))])
    else:
        targets = np.arange(ctx.n_regions)
    weights[targets, special] = 1.0 - rng.random(len(targets))
    factors = rng.uniform(*factor_range, size=len(targets))
    weights[targets, special] *= factors
    dominance_factors = {
        ctx.regions[r]: float(f) for r, f in zip(targets, factors)
    }

    exempt_region = None
    if exempt_one:
        exempt = int(rng.integers(ctx.n_regions))
        exempt_region = ctx.regions[exempt]
        own = weights[exempt, others][mask[exempt, others]]
        weights[exempt, special] = own.mean()
        del dominance_factors[exempt_region]

    celltype = ctx.celltypes[special]
    logger.debug(f"Scaled cell type '{celltype}' by {dominance_factors}")
    return PolicyResult(
        FrequencyMatrix.from_weights(weights, ctx.regions, ctx.celltypes),
        dominant_celltype=celltype,
        dominance_factors=dominance_factors,
        exempt_region=exempt_region,
    )


def _artificial_missing_celltypes_visium(ctx: PolicyContext) -> PolicyResult:
    removed = _draw_removed(ctx)
    logger.info(f"Removing cell types from the spots: {removed}")
    kept = np.array([i for i, ct in enumerate(ctx.celltypes) if ct not in removed])
    mask = _artificial_layout(ctx, distinct=False, type_idx=kept)
    weights = _diverse_weights(ctx.rng, mask)
    return PolicyResult(
        FrequencyMatrix.from_weights(weights, ctx.regions, ctx.celltypes),
        removed_celltypes=removed,
    )


def _missing_celltype_sc(ctx: PolicyContext, distinct: bool) -> PolicyResult:
    # Drawn after the base matrix so it matches the base type under one seed
    result = _artificial(ctx, distinct=distinct, uniform=False)
    held_out = str(ctx.rng.choice(result.frequencies.present_celltypes()))
    logger.info(f"Holding cell type '{held_out}' out of the reference")
    result.held_out_celltypes = [held_out]
    return result


Policy = Callable[[PolicyContext], PolicyResult]

POLICIES: dict[DatasetType, Policy] = {
    DatasetType.REAL: _real,
    DatasetType.REAL_TOP1: lambda ctx: _real_top1(ctx, uniform=False),
    DatasetType.REAL_TOP1_UNIFORM: lambda ctx: _real_top1(ctx, uniform=True),
    DatasetType.REAL_TOP2_OVERLAP: lambda ctx: _real_top2_overlap(ctx, uniform=False),
    DatasetType.REAL_TOP2_OVERLAP_UNIFORM: lambda ctx: _real_top2_overlap(
        ctx, uniform=True
    ),
    DatasetType.REAL_MISSING_CELLTYPES_VISIUM: _real_missing_celltypes_visium,
    DatasetType.ARTIFICIAL_UNIFORM_DISTINCT: lambda ctx: _artificial(
        ctx, distinct=True, uniform=True
    ),
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT: lambda ctx: _artificial(
        ctx, distinct=True, uniform=False
    ),
    DatasetType.ARTIFICIAL_UNIFORM_OVERLAP: lambda ctx: _artificial(
        ctx, distinct=False, uniform=True
    ),
    DatasetType.ARTIFICIAL_DIVERSE_OVERLAP: lambda ctx: _artificial(
        ctx, distinct=False, uniform=False
    ),
    DatasetType.ARTIFICIAL_DOMINANT_CELLTYPE_DIVERSE: lambda ctx: _shared_celltype(
        ctx, DOMINANT_FACTOR_RANGE
    ),
    DatasetType.ARTIFICIAL_PARTIALLY_DOMINANT_CELLTYPE_DIVERSE: (
        lambda ctx: _shared_celltype(ctx, DOMINANT_FACTOR_RANGE, exempt_one=True)
    ),
    DatasetType.ARTIFICIAL_MISSING_CELLTYPES_VISIUM: (
        _artificial_missing_celltypes_visium
    ),
    DatasetType.ARTIFICIAL_DOMINANT_RARE_CELLTYPE_DIVERSE: (
        lambda ctx: _shared_celltype(ctx, RARE_FACTOR_RANGE)
    ),
    DatasetType.ARTIFICIAL_REGIONAL_RARE_CELLTYPE_DIVERSE: (
        lambda ctx: _shared_celltype(ctx, RARE_FACTOR_RANGE, confined=True)
    ),
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT_MISSING_CELLTYPE_SC: (
        lambda ctx: _missing_celltype_sc(ctx, distinct=True)
    ),
    DatasetType.ARTIFICIAL_DIVERSE_OVERLAP_MISSING_CELLTYPE_SC: (
        lambda ctx: _missing_celltype_sc(ctx, distinct=False)
    ),
}

_unhandled = set(DatasetType) - set(POLICIES)
if _unhandled:
    raise RuntimeError(
        f"No composition policy for {sorted(t.value for t in _unhandled)}"
    )

# (minimum regions, minimum cell types); distinct layouts also need one
# cell type per region, checked separately
_OVERLAP = (2, 1)
_SCALED = (1, 2)
REQUIREMENTS: dict[DatasetType, tuple[int, int]] = {
    DatasetType.REAL: (2, 1),
    DatasetType.REAL_TOP1: (2, 1),
    DatasetType.REAL_TOP1_UNIFORM: (2, 1),
    DatasetType.REAL_TOP2_OVERLAP: (2, 1),
    DatasetType.REAL_TOP2_OVERLAP_UNIFORM: (2, 1),
    DatasetType.REAL_MISSING_CELLTYPES_VISIUM: (2, 2),
    DatasetType.ARTIFICIAL_UNIFORM_DISTINCT: (1, 1),
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT: (1, 1),
    DatasetType.ARTIFICIAL_UNIFORM_OVERLAP: _OVERLAP,
    DatasetType.ARTIFICIAL_DIVERSE_OVERLAP: _OVERLAP,
    DatasetType.ARTIFICIAL_DOMINANT_CELLTYPE_DIVERSE: _SCALED,
    DatasetType.ARTIFICIAL_PARTIALLY_DOMINANT_CELLTYPE_DIVERSE: (2, 2),
    DatasetType.ARTIFICIAL_MISSING_CELLTYPES_VISIUM: (2, 2),
    DatasetType.ARTIFICIAL_DOMINANT_RARE_CELLTYPE_DIVERSE: _SCALED,
    DatasetType.ARTIFICIAL_REGIONAL_RARE_CELLTYPE_DIVERSE: _SCALED,
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT_MISSING_CELLTYPE_SC: (1, 2),
    DatasetType.ARTIFICIAL_DIVERSE_OVERLAP_MISSING_CELLTYPE_SC: (2, 2),
}
DISTINCT_TYPES = {
    DatasetType.ARTIFICIAL_UNIFORM_DISTINCT,
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT,
    DatasetType.ARTIFICIAL_DIVERSE_DISTINCT_MISSING_CELLTYPE_SC,
}


def _check_requirements(ctx: PolicyContext) -> None:
    min_regions, min_celltypes = REQUIREMENTS[ctx.dataset_type]
    name = ctx.dataset_type.value
    if ctx.n_regions < min_regions:
        raise InsufficientDataError(
            f"'{name}' needs at least {min_regions} regions, got {ctx.n_regions}"
        )
    if ctx.n_celltypes < min_celltypes:
        raise InsufficientDataError(
            f"'{name}' needs at least {min_celltypes} cell types, "
            f"got {ctx.n_celltypes}"
        )
    if ctx.dataset_type in DISTINCT_TYPES and ctx.n_celltypes < ctx.n_regions:
        raise InsufficientDataError(
            f"'{name}' needs at least one cell type per region: "
            f"{ctx.n_celltypes} cell types for {ctx.n_regions} regions"
        )


def compute_frequencies(
    rng: Generator,
    catalog: CellCatalog,
    dataset_type: DatasetType,
    celltype_field: str,
    region_field: Optional[str] = None,
    n_regions: Optional[int] = None,
) -> PolicyResult:
    """Build the region × cell-type frequency matrix for a dataset type.

    Args:
        rng: NumPy random generator.
        catalog: Single-cell reference.
        dataset_type: Policy to apply.
        celltype_field: Metadata field with cell-type labels.
        region_field: Metadata field with region labels (real types only).
        n_regions: Number of artificial regions (artificial types only).

    Returns:
        PolicyResult with the frequency matrix over every reference cell type.

    Raises:
        ConfigurationError: If region_field / n_regions do not match the
            dataset family, a field is absent from the catalog, or a cell
            type is named after a reserved output column.
        InsufficientDataError: If there are too few regions or cell types,
            before or after empty regions are dropped.
    """
    dataset_type = DatasetType.parse(dataset_type)
    name = dataset_type.value
    if dataset_type.is_real:
        if region_field is None:
            raise ConfigurationError(f"region_field is required for '{name}'")
        if n_regions is not None:
            raise ConfigurationError(f"n_regions cannot be combined with '{name}'")
        region_labels = catalog.labels(region_field)
        regions = catalog.categories(region_field)
    else:
        if n_regions is None:
            raise ConfigurationError(f"n_regions is required for '{name}'")
        if region_field is not None:
            raise ConfigurationError(f"region_field cannot be combined with '{name}'")
        region_labels = None
        regions = [f"region_{i}" for i in range(1, n_regions + 1)]

    celltypes = catalog.categories(celltype_field)
    reserved = [ct for ct in celltypes if ct in RESERVED_LABELS]
    if reserved:
        raise ConfigurationError(
            f"Cell-type labels {reserved} in field '{celltype_field}' clash with "
            f"the reserved output columns {list(RESERVED_LABELS)}"
        )

    ctx = PolicyContext(
        rng=rng,
        dataset_type=dataset_type,
        celltypes=celltypes,
        celltype_labels=catalog.labels(celltype_field),
        regions=regions,
        region_labels=region_labels,
    )
    _check_requirements(ctx)
    logger.debug(
        f"Computing '{name}' frequencies for {ctx.n_celltypes} cell types "
        f"over {ctx.n_regions} regions"
    )
    return POLICIES[dataset_type](ctx)
