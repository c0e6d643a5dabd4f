"""Exceptions raised by spot generation."""

from typing import Optional


class SpotSimError(Exception):
    """Base class for all spotsim errors."""


class ConfigurationError(SpotSimError, ValueError):
    """Missing, contradictory or invalid generation parameters."""


class InsufficientDataError(SpotSimError, ValueError):
    """Too few regions or cell types for the requested dataset type."""


class InsufficientCellsError(SpotSimError, RuntimeError):
    """The reference lacks enough cells to realize a spot's composition.

    Attributes:
        celltype: Cell type that could not be satisfied.
        region: Region the draw was restricted to, if any.
        requested: Number of cells the spot needed.
        available: Number of matching cells in the reference.
    """

    def __init__(
        self, celltype: str, region: Optional[str], requested: int, available: int
    ) -> None:
        self.celltype = celltype
        self.region = region
        self.requested = requested
        self.available = available
        scope = f" in region '{region}'" if region is not None else ""
        super().__init__(
            f"Cannot draw {requested} cells of type '{celltype}'{scope}: "
            f"only {available} available. Lower total_count_mean or use a "
            "larger reference."
        )
