"""GC / covariate bias removal for scaled depth matrices.

Rows are genomic bins, columns are samples. Rows are sorted by a covariate,
debiased with one of several strategies, then restored to position order.
"""

from .config import DebiasConfig
from .debiaser import (
    ChunkDebiaser,
    CovariateSorter,
    DebiasMethod,
    Debiaser,
    MovingMedianDebiaser,
    SortedDebiaser,
    SVDDebiaser,
    make_debiaser,
)
from .errors import ConfigurationError, DebiasError, FactorizationError, UnsortError, UsageError
from .pipeline import DebiasResult, debias_frame, debias_matrix

__all__ = [
    "ChunkDebiaser",
    "ConfigurationError",
    "CovariateSorter",
    "DebiasConfig",
    "DebiasError",
    "DebiasMethod",
    "DebiasResult",
    "Debiaser",
    "FactorizationError",
    "MovingMedianDebiaser",
    "SVDDebiaser",
    "SortedDebiaser",
    "UnsortError",
    "UsageError",
    "debias_frame",
    "debias_matrix",
    "make_debiaser",
]
