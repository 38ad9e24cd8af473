import numpy as np
import pandas as pd
import pytest

from depth_debias.config import DebiasConfig
from depth_debias.debiaser import MovingMedianDebiaser
from depth_debias.errors import ConfigurationError
from depth_debias.pipeline import debias_frame, debias_matrix
from depth_debias.reporting import covariate_correlation
from depth_debias.synth import make_gc_biased_depths


def test_debias_matrix_matches_manual_sequence():
    rng = np.random.default_rng(3)
    mat = rng.standard_normal((40, 3))
    gc = rng.uniform(0.3, 0.7, 40)

    manual = mat.copy()
    d = MovingMedianDebiaser(gc, window=5)
    d.sort(manual)
    d.debias(manual)
    d.unsort(manual)

    res = debias_matrix(mat, DebiasConfig(window=5), covariate=gc)
    assert np.allclose(mat, manual)
    assert res.sorted
    assert (res.n_rows, res.n_cols) == (40, 3)


def test_debias_matrix_chunked_reduces_gc_bias():
    depths, gc = make_gc_biased_depths(1000, 4, seed=0)
    dist = np.abs(gc - 0.5)
    before = covariate_correlation(depths, dist)

    res = debias_matrix(depths, DebiasConfig(method="chunked-ratio", score_window=0.02), covariate=gc)
    after = covariate_correlation(depths, dist)

    assert res.n_chunks is not None and res.n_chunks > 1
    assert np.mean(np.abs(after)) < np.mean(np.abs(before))


def test_debias_matrix_svd_needs_no_covariate():
    rng = np.random.default_rng(4)
    mat = rng.standard_normal((30, 5))
    res = debias_matrix(mat, DebiasConfig(method="variance-truncation", min_variance_pct=100.0))
    assert res.removed_components == 0
    assert not res.sorted


def test_debias_matrix_requires_covariate_for_sorted_methods():
    with pytest.raises(ConfigurationError):
        debias_matrix(np.zeros((5, 1)), DebiasConfig(window=3))


def test_debias_matrix_restores_order_on_failure():
    mat = np.arange(6, dtype=np.float64).reshape(3, 2)
    orig = mat.copy()
    with pytest.raises(ConfigurationError):
        debias_matrix(mat, DebiasConfig(window=9), covariate=[0.3, 0.2, 0.1])
    assert np.array_equal(mat, orig)


def test_debias_frame_with_covariate_column():
    df = pd.DataFrame(
        {"gc": [0.4, 0.2, 0.3], "s1": [2.0, 4.0, 8.0], "s2": [1.0, 1.0, 1.0]},
        index=["bin0", "bin1", "bin2"],
    )
    out = debias_frame(df, DebiasConfig(method="chunked-ratio", score_window=1.0), "gc")

    assert list(out.columns) == ["s1", "s2"]
    assert list(out.index) == ["bin0", "bin1", "bin2"]
    assert np.allclose(out["s1"], [0.5, 1.0, 2.0])
    assert np.allclose(out["s2"], 1.0)
    # input frame untouched
    assert df["s1"].tolist() == [2.0, 4.0, 8.0]
