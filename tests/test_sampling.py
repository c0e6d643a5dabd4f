"""Tests for drawing reference cells and aggregating their counts."""

import numpy as np
import pytest

from spotsim import InsufficientCellsError
from spotsim.generators import (
    Spot,
    aggregate_counts,
    assemble_counts,
    downsample_counts,
    sample_cells,
)


class TestSampleCells:
    """Cell draws respect type, region and replacement rules."""

    def test_counts_per_type(self, three_type_catalog, rng):
        cells = sample_cells(
            rng, three_type_catalog, "celltype", np.array([2, 0, 5]), ["A", "B", "C"]
        )
        labels = three_type_catalog.labels("celltype")
        drawn = labels[three_type_catalog.positions_of(cells)]
        assert sorted(drawn) == ["A"] * 2 + ["C"] * 5

    def test_no_repeat_within_spot(self, three_type_catalog, rng):
        cells = sample_cells(
            rng, three_type_catalog, "celltype", np.array([100, 100, 100]), ["A", "B", "C"]
        )
        assert len(cells) == len(set(cells)) == 300

    def test_region_scope(self, real_catalog, rng):
        for _ in range(20):
            cells = sample_cells(
                rng,
                real_catalog,
                "celltype",
                np.array([3, 3, 0]),
                ["A", "B", "C"],
                region_field="region",
                region="medulla",
            )
            regions = real_catalog.labels("region")[real_catalog.positions_of(cells)]
            assert set(regions) == {"medulla"}

    def test_insufficient_cells(self, real_catalog, rng):
        with pytest.raises(InsufficientCellsError) as excinfo:
            sample_cells(
                rng,
                real_catalog,
                "celltype",
                np.array([21, 0, 0]),
                ["A", "B", "C"],
                region_field="region",
                region="medulla",
            )
        err = excinfo.value
        assert (err.celltype, err.region, err.requested, err.available) == (
            "A",
            "medulla",
            21,
            20,
        )
        assert "medulla" in str(err)

    def test_empty_composition(self, three_type_catalog, rng):
        cells = sample_cells(
            rng, three_type_catalog, "celltype", np.array([0, 0, 0]), ["A", "B", "C"]
        )
        assert cells == []


class TestAggregateCounts:
    """Summing cells into spot vectors."""

    def test_total_is_sum_of_cells(self, three_type_catalog, rng):
        cells = sample_cells(
            rng, three_type_catalog, "celltype", np.array([3, 4, 2]), ["A", "B", "C"]
        )
        counts = aggregate_counts(three_type_catalog, cells)
        rows = three_type_catalog.expression[three_type_catalog.positions_of(cells)]
        assert counts.sum() == rows.sum()
        np.testing.assert_array_equal(counts, rows.sum(axis=0))
        assert counts.dtype == np.int64

    def test_unknown_cell(self, three_type_catalog):
        with pytest.raises(KeyError, match="not in the catalog"):
            aggregate_counts(three_type_catalog, ["cell0", "nope"])

    def test_assemble_orders_columns(self):
        spots = [
            Spot("r_1", "r", 1, np.array([1]), counts=np.array([1, 2])),
            Spot("r_2", "r", 1, np.array([1]), counts=np.array([3, 4])),
        ]
        frame = assemble_counts(spots, ["g1", "g2"])
        assert list(frame.columns) == ["r_1", "r_2"]
        assert list(frame.index) == ["g1", "g2"]
        assert frame.loc["g2", "r_1"] == 2


class TestDownsampleCounts:
    """Optional sequencing-depth subsampling."""

    def test_reaches_target(self, rng):
        counts = np.array([50, 0, 30, 20])
        down = downsample_counts(rng, counts, 40)
        assert down.sum() == 40
        assert np.all(down <= counts)

    def test_below_target_unchanged(self, rng):
        counts = np.array([5, 5])
        np.testing.assert_array_equal(downsample_counts(rng, counts, 100), counts)
