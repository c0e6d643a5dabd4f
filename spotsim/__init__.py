"""Synthetic spatial-transcriptomics spots generated from single-cell references."""

from .catalog import CellCatalog
from .config import DatasetType, GenerationConfig
from .dataset import SyntheticDataset
from .errors import (
    ConfigurationError,
    InsufficientCellsError,
    InsufficientDataError,
    SpotSimError,
)
from .simulator import SpotSim, generate

__all__ = [
    "CellCatalog",
    "ConfigurationError",
    "DatasetType",
    "GenerationConfig",
    "InsufficientCellsError",
    "InsufficientDataError",
    "SpotSim",
    "SpotSimError",
    "SyntheticDataset",
    "generate",
]
