import numpy as np
import pandas as pd
import pytest

from pisces_mr.exceptions import AlignmentError
from pisces_mr.utils.stats import (
    align_to_columns,
    apply_bh_correction,
    log_pvalue_from_t,
    rank_scores,
    signed_log_pvalue,
)


def test_rank_scores_is_descending_and_stable():
    scores = pd.Series([1.0, 3.0, 3.0, 2.0], index=["a", "b", "c", "d"])
    ranked = rank_scores(scores)
    assert list(ranked.index) == ["b", "c", "d", "a"]


def test_rank_scores_puts_nan_last():
    scores = pd.Series([np.nan, 1.0, 2.0], index=["x", "y", "z"])
    assert list(rank_scores(scores).index) == ["z", "y", "x"]


def test_align_to_columns_uses_identifiers_not_positions():
    weights = pd.Series({"s3": 3.0, "s1": 1.0, "s2": 2.0, "extra": 9.0})
    aligned = align_to_columns(weights, pd.Index(["s1", "s2", "s3"]))
    assert list(aligned.index) == ["s1", "s2", "s3"]
    assert list(aligned) == [1.0, 2.0, 3.0]


def test_align_to_columns_missing_key():
    with pytest.raises(AlignmentError):
        align_to_columns({"s1": 1.0}, pd.Index(["s1", "s2"]), what="weights")


def test_align_to_columns_null_entry():
    labels = pd.Series({"s1": "a", "s2": np.nan, "s3": "b"})
    with pytest.raises(AlignmentError, match="s2"):
        align_to_columns(labels, pd.Index(["s1", "s2", "s3"]), what="clustering")


def test_align_to_columns_ignores_null_outside_columns():
    labels = pd.Series({"s1": "a", "s2": "b", "extra": np.nan})
    aligned = align_to_columns(labels, pd.Index(["s1", "s2"]))
    assert list(aligned) == ["a", "b"]


def test_signed_log_pvalue_sign_convention():
    x = [5.0, 6.0, 7.0, 8.0, 6.5]
    y = [1.0, 2.0, 3.0, 4.0, 2.5]
    forward = signed_log_pvalue(x, y)
    backward = signed_log_pvalue(y, x)
    assert forward > 0
    assert np.isclose(forward, -backward)


def test_log_pvalue_is_monotonic_in_t():
    vals = log_pvalue_from_t(np.array([0.5, 2.0, 8.0]), 10)
    assert np.all(np.diff(vals) > 0)
    neg = log_pvalue_from_t(np.array([-0.5, -2.0, -8.0]), 10)
    assert np.allclose(neg, -vals)


def test_log_pvalue_matches_two_times_log_sf():
    from scipy.stats import t as t_dist

    val = log_pvalue_from_t(2.5, 7)
    assert np.isclose(val, -2.0 * np.log(t_dist.sf(2.5, 7)))


def test_log_pvalue_does_not_underflow():
    rng = np.random.default_rng(0)
    y = rng.normal(0.0, 0.01, size=100)
    x = 100.0 + rng.normal(0.0, 0.01, size=100)
    val = signed_log_pvalue(x, y)
    assert np.isfinite(val)
    assert val > 1000


def test_bh_correction_adds_columns():
    df = pd.DataFrame({"pvalue": [0.01, 0.02, 0.5, np.nan]})
    out = apply_bh_correction(df)
    assert {"FDR", "neg_log10_FDR"} <= set(out.columns)
    assert np.all(out["FDR"].to_numpy() >= df["pvalue"].fillna(1.0).to_numpy() - 1e-12)
    assert "FDR" not in df.columns


def test_bh_correction_within_groups():
    df = pd.DataFrame({
        "cluster": ["a", "a", "b", "b", "b"],
        "pvalue": [0.01, 0.04, 0.01, 0.02, 0.03],
    })
    out = apply_bh_correction(df, group_cols=["cluster"])
    assert np.allclose(out["FDR"].to_numpy(), [0.02, 0.04, 0.03, 0.03, 0.03])
