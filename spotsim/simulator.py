"""Synthetic spatial spot simulator built from a single-cell reference."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Optional, Self, Union

import numpy as np
import pandas as pd
from numpy.random import SeedSequence

from .catalog import CellCatalog
from .config import DatasetType, GenerationConfig
from .dataset import SyntheticDataset
from .errors import ConfigurationError
from .generators import (
    MOCK_REGION,
    PolicyResult,
    Spot,
    aggregate_counts,
    assemble_counts,
    compose_spots,
    compute_frequencies,
    downsample_counts,
    draw_total,
    sample_cells,
    scramble_genes,
)
from .properties import summarize_dataset

if TYPE_CHECKING:
    import anndata

# Configure module logger
logger = logging.getLogger(__name__)


class SpotSim:
    """Synthetic spot simulator for benchmarking deconvolution and region
    annotation.

    This class generates spots with a known ground truth:
    - Region × cell-type frequencies from one of 17 dataset types
    - Per-spot cell-type counts drawn from the region frequencies
    - Reference cells sampled to realize every spot
    - Summed gene counts, optionally downsampled
    - An optional gene-scrambled mock region

    Example:
        >>> config = GenerationConfig("artificial_diverse_overlap", n_regions=3)
        >>> sim = SpotSim(catalog, config)
        >>> sim.simulate()
        >>> counts = sim.dataset.counts  # genes x spots DataFrame
    """

    def __init__(self, catalog: CellCatalog, config: GenerationConfig) -> None:
        """Initialize the simulator.

        Args:
            catalog: Single-cell reference to draw cells from.
            config: GenerationConfig object with all parameters.
        """
        self.catalog = catalog
        self.config = config

        # Independent random streams are spawned from this entropy per run
        self._entropy = SeedSequence(config.seed).entropy

        # Will be populated during simulation
        self.policy: PolicyResult
        self.spots: list[Spot]
        self.dataset: SyntheticDataset

    def simulate(self) -> Self:
        """Run the full generation pipeline.

        This method executes all generation steps in order:
        1. Compute the region × cell-type frequencies of the dataset type
        2. Draw the number of spots of every region
        3. Compose, sample and aggregate the spots of each region in turn
        4. Append the mock region (if configured)
        5. Assemble counts, compositions, gold standard and properties

        Returns:
            Self for method chaining.

        Raises:
            ConfigurationError: If a label field is missing from the catalog.
            InsufficientDataError: If the dataset type needs more regions or
                cell types than available.
            InsufficientCellsError: If a spot needs more cells than the
                reference holds.
        """
        cfg = self.config
        policy_seq, layout_seq, regions_seq = SeedSequence(self._entropy).spawn(3)

        logger.info(f"Computing '{cfg.dataset_type.value}' region frequencies")
        self.policy = compute_frequencies(
            rng=np.random.default_rng(policy_seq),
            catalog=self.catalog,
            dataset_type=cfg.dataset_type,
            celltype_field=cfg.celltype_field,
            region_field=cfg.region_field,
            n_regions=cfg.n_regions,
        )
        frequencies = self.policy.frequencies

        plan = [
            (region, frequencies.row(region), cfg.dataset_type.is_real)
            for region in frequencies.regions
        ]
        if cfg.add_mock_region:
            if MOCK_REGION in frequencies.regions:
                raise ConfigurationError(
                    f"Region name '{MOCK_REGION}' is reserved for the mock region"
                )
            present = np.isin(frequencies.celltypes, frequencies.present_celltypes())
            plan.append((MOCK_REGION, present / present.sum(), False))

        n_spots = np.random.default_rng(layout_seq).integers(
            cfg.n_spots_min, cfg.n_spots_max + 1, size=len(plan)
        )
        self.spots = []
        for (region, freqs, scoped), n, seq in zip(
            plan, n_spots, regions_seq.spawn(len(plan))
        ):
            logger.info(f"Simulating {n} spots for region '{region}'")
            self.spots.extend(
                self._simulate_region(seq, region, freqs, int(n), scoped)
            )

        logger.info("Assembling dataset")
        self.dataset = self._assemble()
        return self

    def _simulate_region(
        self,
        seq: SeedSequence,
        region: str,
        frequencies: np.ndarray,
        n_spots: int,
        scoped: bool,
    ) -> list[Spot]:
        """Compose the spots of one region, then sample and aggregate each.

        Every spot samples from its own generator, so results do not depend
        on ``n_jobs``.
        """
        cfg = self.config
        compose_seq, *spot_seqs = seq.spawn(n_spots + 1)
        spots = compose_spots(
            rng=np.random.default_rng(compose_seq),
            region=region,
            frequencies=frequencies,
            n_spots=n_spots,
            total_mean=cfg.total_count_mean,
            total_sd=cfg.total_count_sd,
            method=cfg.composition_method,
        )
        celltypes = self.policy.frequencies.celltypes
        region_field = cfg.region_field if scoped else None
        is_mock = region == MOCK_REGION

        def realize(spot: Spot, spot_seq: SeedSequence) -> Spot:
            rng = np.random.default_rng(spot_seq)
            spot.cells = sample_cells(
                rng,
                self.catalog,
                cfg.celltype_field,
                spot.composition,
                celltypes,
                region_field=region_field,
                region=region,
            )
            counts = aggregate_counts(self.catalog, spot.cells)
            if cfg.downsample_mean is not None:
                depth = draw_total(rng, cfg.downsample_mean, cfg.downsample_sd)
                counts = downsample_counts(rng, counts, depth)
            if is_mock:
                counts = scramble_genes(rng, counts)
            spot.counts = counts
            return spot

        if cfg.n_jobs > 1:
            logger.debug(f"Sampling region '{region}' on {cfg.n_jobs} threads")
            with ThreadPoolExecutor(max_workers=cfg.n_jobs) as pool:
                return list(pool.map(realize, spots, spot_seqs))
        return [realize(spot, spot_seq) for spot, spot_seq in zip(spots, spot_seqs)]

    def _assemble(self) -> SyntheticDataset:
        """Build the output tables from the simulated spots."""
        frequencies = self.policy.frequencies
        names = [spot.name for spot in self.spots]

        composition = pd.DataFrame(
            np.vstack([spot.composition for spot in self.spots]),
            index=names,
            columns=frequencies.celltypes,
        )
        relative = composition.div(composition.sum(axis=1), axis=0)
        counts = assemble_counts(self.spots, self.catalog.genes)

        properties = summarize_dataset(
            config=self.config,
            policy=self.policy,
            composition=composition,
            relative=relative,
            n_genes=counts.shape[0],
            seed=int(self._entropy),
        )

        regions = [spot.region for spot in self.spots]
        return SyntheticDataset(
            counts=counts,
            spot_composition=composition.assign(name=names, region=regions),
            relative_spot_composition=relative.assign(name=names, region=regions),
            gold_standard_priorregion=frequencies.to_frame(),
            dataset_properties=properties,
        )

    def to_anndata(self) -> "anndata.AnnData":
        """Export the simulated dataset to an AnnData object.

        Requires the `anndata` package to be installed.
        Install with: `pip install spotsim[anndata]`

        Raises:
            ImportError: If anndata is not installed.
        """
        return self.dataset.to_anndata()


def generate(
    catalog: CellCatalog,
    dataset_type: Union[DatasetType, str],
    celltype_field: str = "celltype",
    region_field: Optional[str] = None,
    n_regions: Optional[int] = None,
    n_spots_min: int = 50,
    n_spots_max: int = 500,
    total_count_mean: float = 6.0,
    total_count_sd: float = 2.0,
    add_mock_region: bool = False,
    seed: Optional[int] = None,
    **options: Any,
) -> SyntheticDataset:
    """Generate a synthetic spot dataset in one call.

    Args:
        catalog: Single-cell reference.
        dataset_type: One of the 17 dataset types.
        celltype_field: Metadata field with cell-type labels.
        region_field: Metadata field with region labels (real types).
        n_regions: Number of artificial regions (artificial types).
        n_spots_min: Minimum number of spots per region.
        n_spots_max: Maximum number of spots per region.
        total_count_mean: Mean number of cells per spot.
        total_count_sd: Standard deviation of cells per spot.
        add_mock_region: Append a gene-scrambled control region.
        seed: Random seed.
        **options: Remaining GenerationConfig fields.

    Returns:
        SyntheticDataset with counts, compositions and ground truth.
    """
    config = GenerationConfig(
        dataset_type=dataset_type,
        celltype_field=celltype_field,
        region_field=region_field,
        n_regions=n_regions,
        n_spots_min=n_spots_min,
        n_spots_max=n_spots_max,
        total_count_mean=total_count_mean,
        total_count_sd=total_count_sd,
        add_mock_region=add_mock_region,
        seed=seed,
        **options,
    )
    return SpotSim(catalog, config).simulate().dataset
