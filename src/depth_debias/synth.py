from __future__ import annotations

import numpy as np


def make_gc_biased_depths(
    n_bins: int,
    n_samples: int,
    *,
    seed: int = 0,
    bias_strength: float = 4.0,
    noise: float = 0.05,
) -> tuple[np.ndarray, np.ndarray]:
    """Create a depth matrix with a smooth multiplicative GC bias.

    Each sample gets its own bias curvature (jittered around `bias_strength`)
    so that per-sample correction matters.

    Returns:
        depths: (n_bins, n_samples), positive, centred near 1
        gc: (n_bins,) GC fraction per bin in [0.3, 0.7]
    """
    if n_bins <= 0 or n_samples <= 0:
        raise ValueError("n_bins and n_samples must be positive")
    rng = np.random.default_rng(int(seed))
    gc = rng.uniform(0.3, 0.7, size=int(n_bins))

    strength = float(bias_strength) * (1.0 + 0.25 * rng.standard_normal(int(n_samples)))
    centred = (gc - 0.5)[:, None]
    bias = np.exp(-strength[None, :] * centred**2 + 0.5 * centred)

    y = bias * (1.0 + float(noise) * rng.standard_normal((int(n_bins), int(n_samples))))
    return np.clip(y, 1e-3, None), gc


def zscore_columns(mat: np.ndarray) -> np.ndarray:
    """Column-wise z-score, in place. Constant columns become all zero."""
    mu = mat.mean(axis=0)
    sd = mat.std(axis=0)
    sd[sd == 0] = 1.0
    mat -= mu
    mat /= sd
    return mat
