from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import DebiasConfig
from .debiaser import ChunkDebiaser, DiagnosticSink, SortedDebiaser, SVDDebiaser, check_matrix
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebiasResult:
    method: str
    n_rows: int
    n_cols: int
    sorted: bool
    n_chunks: int | None = None
    removed_components: int | None = None


def debias_matrix(
    mat: np.ndarray,
    config: DebiasConfig,
    *,
    covariate=None,
    sink: DiagnosticSink | None = None,
) -> DebiasResult:
    """Debias `mat` in place: sort by `covariate`, debias, unsort.

    Sorting is skipped for methods that do not depend on row order. The
    matrix is expected to be scaled already.
    """
    check_matrix(mat)
    d = config.build(covariate, sink=sink)

    n_chunks = None
    if isinstance(d, SortedDebiaser):
        if covariate is None:
            raise ConfigurationError(f"method {config.method!r} requires a covariate")
        d.sort(mat)
        try:
            d.debias(mat)
            if isinstance(d, ChunkDebiaser):
                n_chunks = len(d.chunk_bounds()) - 1
        finally:
            d.unsort(mat)
    else:
        d.debias(mat)

    removed = d.last_removed if isinstance(d, SVDDebiaser) else None
    n_rows, n_cols = mat.shape
    logger.debug("debiased %dx%d matrix with %s", n_rows, n_cols, config.method)

    return DebiasResult(
        method=config.debias_method.value,
        n_rows=int(n_rows),
        n_cols=int(n_cols),
        sorted=d.requires_sort,
        n_chunks=n_chunks,
        removed_components=removed,
    )


def debias_frame(
    df: pd.DataFrame,
    config: DebiasConfig,
    covariate=None,
    *,
    sink: DiagnosticSink | None = None,
) -> pd.DataFrame:
    """Return a debiased copy of a bins x samples DataFrame.

    `covariate` may be a column name of `df` (which is then excluded from the
    samples) or a per-row array.
    """
    if isinstance(covariate, str):
        if covariate not in df.columns:
            raise ValueError(f"Covariate column {covariate!r} not in frame")
        cov = df[covariate].to_numpy(dtype=np.float64)
        df = df.drop(columns=[covariate])
    else:
        cov = None if covariate is None else np.asarray(covariate, dtype=np.float64)

    mat = df.to_numpy(dtype=np.float64, copy=True)
    debias_matrix(mat, config, covariate=cov, sink=sink)
    return pd.DataFrame(mat, index=df.index, columns=df.columns)
