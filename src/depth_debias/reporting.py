from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from scipy import stats


def ensure_dir(p: str | Path) -> Path:
    path = Path(p)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(obj: Any, path: str | Path) -> None:
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(json.dumps(obj, indent=2, sort_keys=True))


def _check_pair(mat: np.ndarray, covariate) -> tuple[np.ndarray, np.ndarray]:
    M = np.asarray(mat, dtype=np.float64)
    x = np.asarray(covariate, dtype=np.float64)
    if M.ndim != 2:
        raise ValueError("mat must be 2D (n_bins, n_samples)")
    if x.ndim != 1 or x.shape[0] != M.shape[0]:
        raise ValueError("covariate length must match mat rows")
    return M, x


def covariate_bias_table(mat: np.ndarray, covariate, n_bins: int = 10) -> pd.DataFrame:
    """Median value per sample within covariate quantile bins.

    A flat profile down each sample column means no remaining covariate bias.

    Returns:
        DataFrame indexed by covariate interval with an `n` column (rows in
        the bin) followed by one median column per sample.
    """
    M, x = _check_pair(mat, covariate)
    if n_bins <= 0:
        raise ValueError("n_bins must be positive")

    cols = [f"sample_{j}" for j in range(M.shape[1])]
    df = pd.DataFrame(M, columns=cols)
    df["bin"] = pd.qcut(x, q=int(n_bins), duplicates="drop")

    g = df.groupby("bin", observed=True)
    out = g[cols].median()
    out.insert(0, "n", g.size())
    out.index.name = "covariate"
    return out


def covariate_correlation(mat: np.ndarray, covariate) -> np.ndarray:
    """Spearman correlation of each column with the covariate.

    Constant columns give nan.
    """
    M, x = _check_pair(mat, covariate)
    rho = np.full(M.shape[1], np.nan, dtype=np.float64)
    for j in range(M.shape[1]):
        col = M[:, j]
        if np.ptp(col) == 0 or np.ptp(x) == 0:
            continue
        rho[j] = float(stats.spearmanr(x, col).statistic)
    return rho
