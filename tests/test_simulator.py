"""End-to-end tests for synthetic dataset generation."""

import numpy as np
import pandas as pd
import pytest
from conftest import make_catalog

from spotsim import (
    ConfigurationError,
    DatasetType,
    GenerationConfig,
    InsufficientCellsError,
    SpotSim,
    generate,
)
from spotsim.generators import MOCK_REGION, aggregate_counts


def _celltype_columns(frame: pd.DataFrame) -> pd.DataFrame:
    return frame.drop(columns=["name", "region"])


class TestArtificialUniformDistinct:
    """Three types, three regions, two spots of ten cells each."""

    @pytest.fixture
    def dataset(self, three_type_catalog):
        return generate(
            three_type_catalog,
            "artificial_uniform_distinct",
            celltype_field="celltype",
            n_regions=3,
            n_spots_min=2,
            n_spots_max=2,
            total_count_mean=10,
            total_count_sd=0,
            seed=1,
        )

    def test_spot_layout(self, dataset):
        assert dataset.counts.shape == (30, 6)
        assert dataset.spot_composition["region"].value_counts().to_dict() == {
            "region_1": 2,
            "region_2": 2,
            "region_3": 2,
        }
        assert list(dataset.spot_composition["name"]) == list(dataset.counts.columns)

    def test_one_type_per_region(self, dataset):
        gold = dataset.gold_standard_priorregion
        assert list(gold.index) == ["region_1", "region_2", "region_3"]
        assert ((gold == 1.0).sum(axis=1) == 1).all()
        assert ((gold == 1.0).sum(axis=0) == 1).all()

    def test_every_spot_has_ten_cells(self, dataset):
        composition = _celltype_columns(dataset.spot_composition)
        assert (composition.sum(axis=1) == 10).all()
        assert ((composition > 0).sum(axis=1) == 1).all()

    def test_relative_composition(self, dataset):
        relative = _celltype_columns(dataset.relative_spot_composition)
        np.testing.assert_allclose(relative.sum(axis=1), 1.0)

    def test_properties(self, dataset):
        props = dataset.dataset_properties
        assert props["dataset_type"] == "artificial_uniform_distinct"
        assert props["family"] == "artificial"
        assert props["n_regions"] == 3
        assert props["n_spots"] == 6
        assert props["n_genes"] == 30
        assert props["region_overlap"] == 0.0
        assert props["mean_cells_per_spot"] == 10.0
        assert props["mean_spot_dominance"] == 1.0
        assert props["mock_region"] is False


class TestRealProportions:
    """Real regions reproduce the reference proportions."""

    def test_region_totals(self, real_catalog):
        sim = SpotSim(
            real_catalog,
            GenerationConfig(
                "real",
                region_field="region",
                n_spots_min=3,
                n_spots_max=6,
                total_count_mean=10,
                total_count_sd=0,
                seed=3,
            ),
        ).simulate()
        composition = sim.dataset.spot_composition
        by_region = composition.groupby("region")[["A", "B", "C"]].sum()
        n_spots = composition["region"].value_counts()
        expected = {"cortex": [0.7, 0.3, 0.0], "medulla": [0.2, 0.3, 0.5]}
        for region, fractions in expected.items():
            target = np.array(fractions) * 10 * n_spots[region]
            assert np.all(np.abs(by_region.loc[region].to_numpy() - target) <= 1)

    def test_cells_come_from_their_region(self, real_catalog):
        sim = SpotSim(
            real_catalog,
            GenerationConfig(
                "real_top2_overlap",
                region_field="region",
                n_spots_min=5,
                n_spots_max=5,
                seed=4,
            ),
        ).simulate()
        labels = real_catalog.labels("region")
        for spot in sim.spots:
            regions = set(labels[real_catalog.positions_of(spot.cells)])
            assert regions == {spot.region}


class TestMissingCelltypes:
    """Removed cell types never reach a spot."""

    @pytest.mark.parametrize(
        "dataset_type, params",
        [
            ("real_missing_celltypes_visium", {"region_field": "region"}),
            ("artificial_missing_celltypes_visium", {"n_regions": 2}),
        ],
    )
    def test_removed_types_absent(self, mixed_catalog, dataset_type, params):
        sim = SpotSim(
            mixed_catalog,
            GenerationConfig(
                dataset_type,
                n_spots_min=5,
                n_spots_max=10,
                total_count_mean=4,
                total_count_sd=1,
                seed=11,
                **params,
            ),
        ).simulate()
        dataset = sim.dataset
        removed = dataset.dataset_properties["removed_celltypes"]
        assert removed
        assert (dataset.gold_standard_priorregion[removed] == 0).all().all()
        assert (dataset.spot_composition[removed] == 0).all().all()
        labels = mixed_catalog.labels("celltype")
        for spot in sim.spots:
            assert not set(labels[mixed_catalog.positions_of(spot.cells)]) & set(removed)

    def test_held_out_type_recorded(self, six_type_catalog):
        dataset = generate(
            six_type_catalog,
            "artificial_diverse_overlap_missing_celltype_sc",
            n_regions=3,
            n_spots_min=5,
            n_spots_max=5,
            seed=5,
        )
        held_out = dataset.dataset_properties["held_out_celltypes"]
        assert len(held_out) == 1
        assert dataset.gold_standard_priorregion[held_out[0]].sum() > 0


class TestMockRegion:
    """The mock region keeps count statistics but loses gene identity."""

    @pytest.fixture
    def sim(self, three_type_catalog):
        return SpotSim(
            three_type_catalog,
            GenerationConfig(
                "artificial_uniform_distinct",
                n_regions=3,
                n_spots_min=20,
                n_spots_max=20,
                total_count_mean=10,
                total_count_sd=0,
                add_mock_region=True,
                seed=8,
            ),
        ).simulate()

    def test_tagged_and_excluded_from_gold_standard(self, sim):
        dataset = sim.dataset
        assert (dataset.spot_composition["region"] == MOCK_REGION).sum() == 20
        assert MOCK_REGION not in dataset.gold_standard_priorregion.index
        assert dataset.dataset_properties["mock_region"] is True
        assert dataset.dataset_properties["n_regions"] == 3
        assert dataset.dataset_properties["n_spots"] == 80

    def test_uniform_over_all_types(self, sim):
        composition = _celltype_columns(sim.dataset.spot_composition)
        mock = composition[sim.dataset.spot_composition["region"] == MOCK_REGION]
        assert (mock > 0).all().all()
        assert (mock.sum(axis=1) == 10).all()

    def test_counts_are_permuted_cell_sums(self, sim):
        catalog = sim.catalog
        for spot in sim.spots:
            original = aggregate_counts(catalog, spot.cells)
            assert spot.counts.sum() == original.sum()
            if spot.region == MOCK_REGION:
                np.testing.assert_array_equal(np.sort(spot.counts), np.sort(original))
            else:
                np.testing.assert_array_equal(spot.counts, original)

    def test_gene_identity_destroyed(self, sim):
        catalog = sim.catalog
        correlations = [
            np.corrcoef(spot.counts, aggregate_counts(catalog, spot.cells))[0, 1]
            for spot in sim.spots
            if spot.region == MOCK_REGION
        ]
        assert abs(np.mean(correlations)) < 0.3

    def test_adding_mock_region_keeps_other_regions(self, three_type_catalog, sim):
        plain = SpotSim(
            three_type_catalog,
            GenerationConfig(
                "artificial_uniform_distinct",
                n_regions=3,
                n_spots_min=20,
                n_spots_max=20,
                total_count_mean=10,
                total_count_sd=0,
                seed=8,
            ),
        ).simulate()
        with_mock = sim.dataset.counts.loc[:, plain.dataset.counts.columns]
        pd.testing.assert_frame_equal(with_mock, plain.dataset.counts)


class TestReproducibility:
    """Results depend on the seed only."""

    def _run(self, catalog, **overrides):
        params = dict(
            dataset_type="artificial_diverse_overlap",
            n_regions=3,
            n_spots_min=5,
            n_spots_max=15,
            seed=21,
        )
        params.update(overrides)
        return SpotSim(catalog, GenerationConfig(**params)).simulate().dataset

    def test_same_seed_same_dataset(self, six_type_catalog):
        first = self._run(six_type_catalog)
        second = self._run(six_type_catalog)
        pd.testing.assert_frame_equal(first.counts, second.counts)
        pd.testing.assert_frame_equal(first.spot_composition, second.spot_composition)

    def test_threads_do_not_change_result(self, six_type_catalog):
        serial = self._run(six_type_catalog)
        threaded = self._run(six_type_catalog, n_jobs=4)
        pd.testing.assert_frame_equal(serial.counts, threaded.counts)

    def test_unseeded_run_records_its_seed(self, six_type_catalog):
        first = self._run(six_type_catalog, seed=None)
        seed = first.dataset_properties["seed"]
        assert isinstance(seed, int)
        second = self._run(six_type_catalog, seed=seed)
        pd.testing.assert_frame_equal(first.counts, second.counts)

    def test_simulate_twice(self, six_type_catalog):
        sim = SpotSim(
            six_type_catalog,
            GenerationConfig("artificial_uniform_overlap", n_regions=2, seed=2),
        )
        first = sim.simulate().dataset.counts
        second = sim.simulate().dataset.counts
        pd.testing.assert_frame_equal(first, second)


class TestAllDatasetTypes:
    """Pipeline invariants hold for every dataset type."""

    @pytest.mark.parametrize("dataset_type", list(DatasetType))
    def test_invariants(self, mixed_catalog, six_type_catalog, dataset_type):
        if dataset_type.is_real:
            catalog, params = mixed_catalog, {"region_field": "region"}
        else:
            catalog, params = six_type_catalog, {"n_regions": 3}
        sim = SpotSim(
            catalog,
            GenerationConfig(
                dataset_type,
                n_spots_min=3,
                n_spots_max=8,
                total_count_mean=5,
                total_count_sd=1,
                add_mock_region=True,
                seed=13,
                **params,
            ),
        ).simulate()
        dataset = sim.dataset

        np.testing.assert_allclose(
            dataset.gold_standard_priorregion.sum(axis=1), 1.0, atol=1e-9
        )
        composition = _celltype_columns(dataset.spot_composition)
        for spot in sim.spots:
            assert composition.loc[spot.name].sum() == spot.total
            assert len(spot.cells) == spot.total == len(set(spot.cells))
            rows = catalog.expression[catalog.positions_of(spot.cells)]
            assert spot.counts.sum() == rows.sum()
        np.testing.assert_allclose(
            _celltype_columns(dataset.relative_spot_composition).sum(axis=1), 1.0
        )
        assert dataset.counts.shape[1] == dataset.dataset_properties["n_spots"]


class TestOptions:
    """Optional behavior and failure modes."""

    def test_downsampling(self, three_type_catalog):
        dataset = generate(
            three_type_catalog,
            "artificial_uniform_distinct",
            n_regions=3,
            n_spots_min=3,
            n_spots_max=3,
            total_count_mean=10,
            total_count_sd=0,
            seed=0,
            downsample_mean=500,
        )
        assert (dataset.counts.sum(axis=0) == 500).all()

    def test_multinomial_composition(self, six_type_catalog):
        dataset = generate(
            six_type_catalog,
            DatasetType.ARTIFICIAL_DIVERSE_DISTINCT,
            n_regions=2,
            n_spots_min=10,
            n_spots_max=10,
            total_count_mean=8,
            total_count_sd=0,
            seed=0,
            composition_method="multinomial",
        )
        composition = _celltype_columns(dataset.spot_composition)
        assert (composition.sum(axis=1) == 8).all()

    def test_spot_counts_within_bounds(self, six_type_catalog):
        dataset = generate(
            six_type_catalog,
            "artificial_uniform_overlap",
            n_regions=30,
            n_spots_min=2,
            n_spots_max=4,
            total_count_mean=3,
            total_count_sd=0,
            seed=6,
        )
        per_region = dataset.spot_composition["region"].value_counts()
        assert len(per_region) == 30
        assert per_region.between(2, 4).all()
        assert per_region.min() == 2
        assert per_region.max() == 4

    def test_reserved_celltype_label(self):
        catalog = make_catalog({("region", "r"): 20, ("B", "r"): 20})
        with pytest.raises(ConfigurationError, match="reserved output columns"):
            generate(
                catalog, "artificial_uniform_overlap", n_regions=2, seed=0
            )

    def test_insufficient_cells(self, three_type_catalog):
        with pytest.raises(InsufficientCellsError, match="only 100 available"):
            generate(
                three_type_catalog,
                "artificial_uniform_distinct",
                n_regions=3,
                n_spots_min=1,
                n_spots_max=1,
                total_count_mean=150,
                total_count_sd=0,
                seed=0,
            )
