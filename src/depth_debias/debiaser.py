"""Debiasing strategies for scaled depth matrices.

Rows are genomic bins, columns are samples. Every strategy mutates the matrix
in place. The moving-median and chunked strategies assume rows have been
sorted by a covariate (e.g. GC content); the usual sequence is::

    d = MovingMedianDebiaser(vals=gc, window=51)
    d.sort(mat)
    d.debias(mat)
    d.unsort(mat)

The SVD strategy works on the whole matrix and needs no sorting.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Protocol

import numpy as np
import pandas as pd
from scipy import linalg

from .buffers import ScratchBuffer
from .errors import ConfigurationError, FactorizationError, UnsortError

logger = logging.getLogger(__name__)

# Upper bound on the number of leading SVD components that can be removed.
MAX_SVD_COMPONENTS = 15


class DiagnosticSink(Protocol):
    def warning(self, msg: str) -> None: ...

    def info(self, msg: str) -> None: ...


def check_matrix(mat, name: str = "mat") -> np.ndarray:
    """Validate a matrix that is about to be modified in place."""
    if not isinstance(mat, np.ndarray):
        raise TypeError(f"{name} must be a numpy.ndarray, got {type(mat).__name__}")
    if mat.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.issubdtype(mat.dtype, np.floating):
        raise TypeError(f"{name} must have a floating dtype, got {mat.dtype}")
    if not mat.flags.writeable:
        raise ValueError(f"{name} must be writeable")
    return mat


def check_window(window, n_rows: int | None = None) -> int:
    """Validate a moving-median window; `n_rows` bounds it from above when given."""
    if window is None or isinstance(window, bool) or not isinstance(window, (int, np.integer)):
        raise ConfigurationError(f"window must be a positive integer, got {window!r}")
    w = int(window)
    if w < 1:
        raise ConfigurationError(f"window must be positive, got {w}")
    if n_rows is not None and w > n_rows:
        raise ConfigurationError(f"window must be in [1, {n_rows}], got {w}")
    return w


def check_positive(value, name: str) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
    if not float(value) > 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return float(value)


class DebiasMethod(str, Enum):
    MOVING_MEDIAN = "moving-median"
    CHUNKED_RATIO = "chunked-ratio"
    VARIANCE_TRUNCATION = "variance-truncation"


class Debiaser(ABC):
    """In-place removal of bias from a matrix of scaled values."""

    method: DebiasMethod
    requires_sort = False

    def __init__(self, *, sink: DiagnosticSink | None = None):
        self.sink = sink if sink is not None else logger

    @abstractmethod
    def debias(self, mat: np.ndarray) -> None: ...


class CovariateSorter:
    """Sort matrix rows by a covariate and restore them afterwards.

    `vals` holds one covariate value per row. `sort` permutes both the matrix
    rows and `vals`; `unsort` puts both back. The permutation is kept on the
    instance between the two calls, so an instance must only be used for one
    matrix at a time and is not safe to share between threads.
    """

    def __init__(self, vals=None, *, sink: DiagnosticSink | None = None):
        self.sink = sink if sink is not None else logger
        self.vals = None if vals is None else np.asarray(vals, dtype=np.float64).copy()
        self._inds: np.ndarray | None = None
        self._tmp = ScratchBuffer()

    @property
    def permutation(self) -> np.ndarray | None:
        """New row position -> original row position, set between sort and unsort."""
        return None if self._inds is None else self._inds.copy()

    def _check_vals(self, n_rows: int) -> np.ndarray:
        if self.vals is None:
            raise ConfigurationError("vals (the per-row covariate) must be set before sorting")
        vals = np.asarray(self.vals, dtype=np.float64)
        if vals.ndim != 1 or vals.shape[0] != n_rows:
            raise ConfigurationError(
                f"vals has shape {vals.shape}; expected ({n_rows},) to match matrix rows"
            )
        return vals

    def sort(self, mat: np.ndarray) -> None:
        """Sort rows of `mat` (and `vals`) by ascending covariate."""
        check_matrix(mat)
        vals = self._check_vals(mat.shape[0])

        inds = np.argsort(vals, kind="stable")
        tmp = self._tmp.ensure(mat.shape, mat.dtype)
        np.take(mat, inds, axis=0, out=tmp)

        if np.array_equal(inds, np.arange(inds.shape[0])):
            self.sink.warning(
                "no change after sorting. This usually means .vals is unset or same as previous run"
            )
        mat[...] = tmp
        self.vals = vals[inds]
        self._inds = inds

    def unsort(self, mat: np.ndarray) -> None:
        """Restore the row order from before the last `sort`."""
        if self._inds is None:
            raise UnsortError("unsort: must call sort first")
        check_matrix(mat)
        inds = self._inds
        if mat.shape[0] != inds.shape[0]:
            raise ValueError(
                f"matrix has {mat.shape[0]} rows but the stored permutation covers {inds.shape[0]}"
            )

        tmp = self._tmp.ensure(mat.shape, mat.dtype)
        tmp[...] = mat
        mat[inds] = tmp
        vals = np.empty_like(self.vals)
        vals[inds] = self.vals
        self.vals = vals
        self._inds = None


class SortedDebiaser(CovariateSorter, Debiaser):
    """A debiaser that expects rows in covariate order: sort, debias, unsort."""

    requires_sort = True

    def __init__(self, vals=None, *, sink: DiagnosticSink | None = None):
        CovariateSorter.__init__(self, vals, sink=sink)


class MovingMedianDebiaser(SortedDebiaser):
    """Subtract a moving median, taken along the sorted rows, from each sample.

    Values are expected to be scaled already (e.g. z-scores).

    Args:
        vals: per-row covariate used by `sort`/`unsort`
        window: moving-median span in rows
    """

    method = DebiasMethod.MOVING_MEDIAN

    def __init__(self, vals=None, window: int | None = None, *, sink: DiagnosticSink | None = None):
        super().__init__(vals, sink=sink)
        self.window = window

    @staticmethod
    def window_medians(col: np.ndarray, window: int) -> np.ndarray:
        """Median to subtract from each row of one sorted column.

        The first `mid` rows see a window that grows one value at a time.
        Row i after that sees the window ending at value ``i + mid``, and the
        last `mid` rows reuse the final median since the window stops
        advancing at the end. Values ``mid .. 2*mid-1`` never enter the
        window. NaN values are skipped by the median.
        """
        n_rows = col.shape[0]
        mid = (window - 1) // 2 + 1
        pushes = np.concatenate([col[:mid], col[2 * mid :]])
        med = pd.Series(pushes).rolling(window, min_periods=1).median().to_numpy(dtype=np.float64)

        out = np.empty(n_rows, dtype=np.float64)
        out[: med.shape[0]] = med
        out[med.shape[0] :] = med[-1]
        return out

    def debias(self, mat: np.ndarray) -> None:
        check_matrix(mat)
        window = check_window(self.window, mat.shape[0])

        for j in range(mat.shape[1]):
            col = mat[:, j].astype(np.float64)
            mat[:, j] = col - self.window_medians(col, window)


class ChunkDebiaser(SortedDebiaser):
    """Divide each covariate chunk of each sample by the chunk's median.

    Args:
        vals: per-row covariate used by `sort`/`unsort` and for chunking
        score_window: covariate span of one chunk. With 0.1, rows whose
            covariate lies within 0.1 of the chunk's first row are normalized
            together.
    """

    method = DebiasMethod.CHUNKED_RATIO

    def __init__(
        self,
        vals=None,
        score_window: float | None = None,
        *,
        sink: DiagnosticSink | None = None,
    ):
        super().__init__(vals, sink=sink)
        self.score_window = score_window

    def chunk_bounds(self) -> np.ndarray:
        """Return chunk boundaries ``[0, b1, ..., n]`` over the current `vals`."""
        if self.vals is None or len(self.vals) == 0:
            raise ConfigurationError("vals (the per-row covariate) must be set before chunking")
        sw = check_positive(self.score_window, "ChunkDebiaser.score_window")
        vals = np.asarray(self.vals, dtype=np.float64)

        bounds = [0]
        v0 = vals[0]
        for i in range(vals.shape[0]):
            if vals[i] - v0 > sw:
                v0 = vals[i]
                bounds.append(i)
        bounds.append(vals.shape[0])
        return np.asarray(bounds, dtype=np.int64)

    def debias(self, mat: np.ndarray) -> None:
        check_matrix(mat)
        bounds = self.chunk_bounds()
        if bounds[-1] != mat.shape[0]:
            raise ConfigurationError(
                f"vals has {bounds[-1]} entries but matrix has {mat.shape[0]} rows"
            )

        with np.errstate(divide="ignore", invalid="ignore"):
            for j in range(mat.shape[1]):
                col = mat[:, j]
                for s, e in zip(bounds[:-1], bounds[1:]):
                    # NaN bins are left as NaN and skipped by the median
                    v = np.sort(col[s:e][~np.isnan(col[s:e])])
                    median = v[v.shape[0] // 2] if v.shape[0] else np.nan
                    col[s:e] /= median


def _variance_pct(s) -> np.ndarray:
    s = np.asarray(s, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        return 100 * s / s.sum()


class SVDDebiaser(Debiaser):
    """Remove the leading high-variance SVD components of the matrix.

    Components are removed while their share of the total singular-value mass
    (as a percentage) exceeds `min_variance_pct`, up to MAX_SVD_COMPONENTS.
    """

    method = DebiasMethod.VARIANCE_TRUNCATION

    def __init__(self, min_variance_pct: float | None = None, *, sink: DiagnosticSink | None = None):
        super().__init__(sink=sink)
        self.min_variance_pct = min_variance_pct
        self.last_removed: int | None = None

    @staticmethod
    def n_leading(s: np.ndarray, min_variance_pct: float) -> int:
        """Number of leading singular values whose share exceeds the threshold."""
        pct = _variance_pct(s)
        n = 0
        while n < min(MAX_SVD_COMPONENTS, pct.shape[0]) and pct[n] > min_variance_pct:
            n += 1
        return n

    def debias(self, mat: np.ndarray) -> None:
        check_matrix(mat)
        if self.min_variance_pct is None:
            raise ConfigurationError("must set SVDDebiaser.min_variance_pct")
        min_pct = float(self.min_variance_pct)

        try:
            u, s, vt = linalg.svd(mat, full_matrices=False)
        except (linalg.LinAlgError, ValueError) as e:
            raise FactorizationError(f"error with SVD: {e}") from e

        n = self.n_leading(s, min_pct)
        pct = _variance_pct(s)
        self.sink.info("variance:" + "".join(f" {p:.2f}" for p in pct[:n]))

        kept = s.copy()
        kept[:n] = 0.0
        mat[...] = (u * kept) @ vt
        self.last_removed = n


def make_debiaser(
    method: DebiasMethod | str,
    *,
    vals=None,
    window: int | None = None,
    score_window: float | None = None,
    min_variance_pct: float | None = None,
    sink: DiagnosticSink | None = None,
) -> Debiaser:
    """Build the debiaser for `method`; options not used by it are ignored."""
    try:
        method = DebiasMethod(method)
    except ValueError as e:
        choices = ", ".join(m.value for m in DebiasMethod)
        raise ConfigurationError(f"Unknown method={method!r}; expected one of: {choices}") from e

    if method is DebiasMethod.MOVING_MEDIAN:
        return MovingMedianDebiaser(vals, window, sink=sink)
    if method is DebiasMethod.CHUNKED_RATIO:
        return ChunkDebiaser(vals, score_window, sink=sink)
    return SVDDebiaser(min_variance_pct, sink=sink)
