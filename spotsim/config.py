"""Configuration classes for synthetic spot generation."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import ConfigurationError


class DatasetType(str, Enum):
    """Named policies for building the region × cell-type frequency table."""

    REAL = "real"
    REAL_TOP1 = "real_top1"
    REAL_TOP1_UNIFORM = "real_top1_uniform"
    REAL_TOP2_OVERLAP = "real_top2_overlap"
    REAL_TOP2_OVERLAP_UNIFORM = "real_top2_overlap_uniform"
    REAL_MISSING_CELLTYPES_VISIUM = "real_missing_celltypes_visium"
    ARTIFICIAL_UNIFORM_DISTINCT = "artificial_uniform_distinct"
    ARTIFICIAL_DIVERSE_DISTINCT = "artificial_diverse_distinct"
    ARTIFICIAL_UNIFORM_OVERLAP = "artificial_uniform_overlap"
    ARTIFICIAL_DIVERSE_OVERLAP = "artificial_diverse_overlap"
    ARTIFICIAL_DOMINANT_CELLTYPE_DIVERSE = "artificial_dominant_celltype_diverse"
    ARTIFICIAL_PARTIALLY_DOMINANT_CELLTYPE_DIVERSE = (
        "artificial_partially_dominant_celltype_diverse"
    )
    ARTIFICIAL_MISSING_CELLTYPES_VISIUM = "artificial_missing_celltypes_visium"
    ARTIFICIAL_DOMINANT_RARE_CELLTYPE_DIVERSE = (
        "artificial_dominant_rare_celltype_diverse"
    )
    ARTIFICIAL_REGIONAL_RARE_CELLTYPE_DIVERSE = (
        "artificial_regional_rare_celltype_diverse"
    )
    ARTIFICIAL_DIVERSE_DISTINCT_MISSING_CELLTYPE_SC = (
        "artificial_diverse_distinct_missing_celltype_sc"
    )
    ARTIFICIAL_DIVERSE_OVERLAP_MISSING_CELLTYPE_SC = (
        "artificial_diverse_overlap_missing_celltype_sc"
    )

    @property
    def is_real(self) -> bool:
        """Whether regions come from a metadata field rather than being synthetic."""
        return self.value.startswith("real")

    @classmethod
    def parse(cls, value: Union["DatasetType", str]) -> "DatasetType":
        """Coerce a string to a DatasetType, raising ConfigurationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown dataset_type '{value}'. Expected one of: {known}"
            ) from None


COMPOSITION_METHODS = ("largest_remainder", "multinomial")


@dataclass
class GenerationConfig:
    """Configuration parameters for synthetic spot generation.

    Attributes:
        dataset_type: Policy used to build the region × cell-type frequencies.
        celltype_field: Metadata column holding cell-type labels.
        region_field: Metadata column holding region labels. Required for
            the real dataset types, forbidden for the artificial ones.
        n_regions: Number of artificial prior regions. Required for the
            artificial dataset types, forbidden for the real ones.
        n_spots_min: Minimum number of spots per region.
        n_spots_max: Maximum number of spots per region.
        total_count_mean: Mean of the normal distribution of cells per spot.
        total_count_sd: Standard deviation of cells per spot.
        add_mock_region: Append a gene-scrambled control region.
        seed: Random seed for reproducibility. None draws fresh entropy.
        composition_method: How frequencies become integer cell counts,
            either "largest_remainder" or "multinomial".
        downsample_mean: If set, mean sequencing depth each spot's
            aggregated counts are subsampled to.
        downsample_sd: Standard deviation of the sequencing depth.
        n_jobs: Number of threads generating the spots of a region.
    """

    dataset_type: Union[DatasetType, str]
    celltype_field: str = "celltype"
    region_field: Optional[str] = None
    n_regions: Optional[int] = None
    n_spots_min: int = 50
    n_spots_max: int = 500
    total_count_mean: float = 6.0
    total_count_sd: float = 2.0
    add_mock_region: bool = False
    seed: Optional[int] = None
    composition_method: str = "largest_remainder"
    downsample_mean: Optional[float] = None
    downsample_sd: float = 0.0
    n_jobs: int = 1

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        self.dataset_type = DatasetType.parse(self.dataset_type)
        self._validate()

    def _validate(self) -> None:
        """Validate that all parameters are present, consistent and in range."""
        # Region source depends on the dataset family
        if self.dataset_type.is_real:
            if self.region_field is None:
                raise ConfigurationError(
                    f"region_field is required for dataset_type "
                    f"'{self.dataset_type.value}'"
                )
            if self.n_regions is not None:
                raise ConfigurationError(
                    f"n_regions cannot be combined with dataset_type "
                    f"'{self.dataset_type.value}'; regions come from region_field"
                )
        else:
            if self.n_regions is None:
                raise ConfigurationError(
                    f"n_regions is required for dataset_type "
                    f"'{self.dataset_type.value}'"
                )
            if self.region_field is not None:
                raise ConfigurationError(
                    f"region_field cannot be combined with dataset_type "
                    f"'{self.dataset_type.value}'; regions are artificial"
                )
            if self.n_regions <= 0:
                raise ConfigurationError("n_regions must be positive")

        if not self.celltype_field:
            raise ConfigurationError("celltype_field must be a non-empty string")

        # Spot counts
        if self.n_spots_min <= 0:
            raise ConfigurationError("n_spots_min must be positive")
        if self.n_spots_min > self.n_spots_max:
            raise ConfigurationError("n_spots_min cannot exceed n_spots_max")

        # Cells per spot
        if self.total_count_mean < 1:
            raise ConfigurationError(
                f"total_count_mean must be at least 1, got {self.total_count_mean}"
            )
        if self.total_count_sd < 0:
            raise ConfigurationError("total_count_sd must be non-negative")

        if self.composition_method not in COMPOSITION_METHODS:
            raise ConfigurationError(
                f"composition_method must be one of {COMPOSITION_METHODS}, "
                f"got '{self.composition_method}'"
            )

        if self.downsample_mean is not None and self.downsample_mean < 1:
            raise ConfigurationError("downsample_mean must be at least 1")
        if self.downsample_sd < 0:
            raise ConfigurationError("downsample_sd must be non-negative")

        if self.n_jobs <= 0:
            raise ConfigurationError("n_jobs must be positive")
