"""Generator modules for synthetic spot generation."""

from .counts import aggregate_counts, assemble_counts, downsample_counts
from .frequencies import FrequencyMatrix
from .mock import MOCK_REGION, scramble_genes
from .policies import PolicyContext, PolicyResult, compute_frequencies
from .sampling import sample_cells
from .spots import Spot, compose_spot, compose_spots, draw_total, largest_remainder

__all__ = [
    "MOCK_REGION",
    "FrequencyMatrix",
    "PolicyContext",
    "PolicyResult",
    "Spot",
    "aggregate_counts",
    "assemble_counts",
    "compose_spot",
    "compose_spots",
    "compute_frequencies",
    "downsample_counts",
    "draw_total",
    "largest_remainder",
    "sample_cells",
    "scramble_genes",
]
