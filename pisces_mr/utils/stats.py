"""Shared statistical functions used across analysis modules."""

from typing import Optional, Union
import numpy as np
import pandas as pd
from scipy.stats import t as t_dist
from scipy.stats import ttest_ind
from statsmodels.stats.multitest import multipletests

from ..exceptions import AlignmentError


def align_to_columns(
    vector: Union[pd.Series, dict],
    columns: pd.Index,
    what: str = "vector",
) -> pd.Series:
    """Reorder a sample-keyed vector to match matrix columns.

    Lookups are by sample identifier, never by position. The vector may
    cover more samples than the matrix; extra keys are ignored.

    Args:
        vector: Series or dict keyed by sample ID.
        columns: Matrix column identifiers to align to.
        what: Name used in the error message ('weights', 'clustering').

    Returns:
        Series indexed exactly by `columns`.

    Raises:
        AlignmentError: If any column identifier has no entry in `vector`,
            or its entry is null.
    """
    series = vector if isinstance(vector, pd.Series) else pd.Series(vector)
    missing = pd.Index(columns).difference(series.index)
    if len(missing) > 0:
        preview = ", ".join(map(str, missing[:5]))
        raise AlignmentError(
            f"{what} is missing {len(missing)} sample(s) present in the matrix: {preview}"
        )
    aligned = series.loc[columns]
    null = aligned.index[aligned.isna().to_numpy()]
    if len(null) > 0:
        preview = ", ".join(map(str, null[:5]))
        raise AlignmentError(f"{what} has {len(null)} null entries for sample(s): {preview}")
    return aligned


def rank_scores(scores: pd.Series) -> pd.Series:
    """Sort a score vector descending with ties kept in input order.

    NaN scores are placed last.

    Args:
        scores: Series of scores indexed by protein ID.

    Returns:
        Ranked Series (highest score first).
    """
    values = scores.to_numpy(dtype=float)
    order = np.argsort(-values, kind="stable")
    return scores.iloc[order]


def log_pvalue_from_t(
    t_stat: Union[float, np.ndarray],
    dof: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Convert t statistics into signed log p-values.

    log_p = 2 * log(sf(|t|, df)) * -sign(t)

    The survival function is evaluated in log space so that very small
    p-values do not underflow to log(0). A positive t (first group higher)
    yields a positive score.

    Args:
        t_stat: t statistic(s).
        dof: Degrees of freedom, broadcastable against `t_stat`.

    Returns:
        Signed log p-value(s) with the same shape as `t_stat`.
    """
    t_stat, dof = np.broadcast_arrays(
        np.asarray(t_stat, dtype=float), np.asarray(dof, dtype=float)
    )
    abs_t = np.abs(t_stat)
    with np.errstate(divide="ignore", invalid="ignore"):
        log_sf = t_dist.logsf(abs_t, dof)
        # far tail: sf(t) ~ pdf(t) * (df + t^2) / (df * t)
        tail = np.isneginf(log_sf) & np.isfinite(abs_t)
        if np.any(tail):
            asymptotic = t_dist.logpdf(abs_t, dof) + np.log((dof + abs_t**2) / (dof * abs_t))
            log_sf = np.where(tail, asymptotic, log_sf)
    log_p = 2.0 * log_sf * -np.sign(t_stat)
    return float(log_p) if log_p.ndim == 0 else log_p


def welch_ttest(x: np.ndarray, y: np.ndarray, axis: int = -1) -> tuple:
    """Two-sided Welch t-test returning (statistic, degrees of freedom).

    Accepts stacked resamples along the leading axes so a whole batch of
    bootstrap iterations is tested in one call.
    """
    res = ttest_ind(x, y, axis=axis, equal_var=False)
    return res.statistic, res.df


def signed_log_pvalue(x, y) -> float:
    """Signed log p-value of a single Welch t-test between two samples.

    Positive when mean(x) > mean(y); swapping x and y negates the score.

    Args:
        x: Test group values.
        y: Reference group values.

    Returns:
        Signed log p-value.
    """
    t_stat, dof = welch_ttest(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
    return log_pvalue_from_t(t_stat, dof)


def apply_bh_correction(
    df: pd.DataFrame,
    pvalue_col: str = "pvalue",
    group_cols: Optional[list] = None,
) -> pd.DataFrame:
    """Apply Benjamini-Hochberg FDR correction to a p-value column.

    Adds 'FDR' and 'neg_log10_FDR' columns to the DataFrame. When group_cols
    is specified, correction is applied independently within each group
    (e.g., per cluster).

    Args:
        df: DataFrame containing a column of p-values.
        pvalue_col: Name of the column containing raw p-values.
        group_cols: Optional list of column names defining groups for
            within-group correction.

    Returns:
        Copy of df with 'FDR' and 'neg_log10_FDR' columns added.
    """
    df = df.copy()
    if group_cols:
        fdr_vals = pd.Series(1.0, index=df.index)
        for _, idx in df.groupby(group_cols).groups.items():
            pvals = df.loc[idx, pvalue_col].fillna(1.0).values
            _, fdr, _, _ = multipletests(pvals, method="fdr_bh")
            fdr_vals.loc[idx] = fdr
        df["FDR"] = fdr_vals
    else:
        pvals = df[pvalue_col].fillna(1.0).values
        _, fdr, _, _ = multipletests(pvals, method="fdr_bh")
        df["FDR"] = fdr

    df["neg_log10_FDR"] = -np.log10(df["FDR"].clip(lower=np.finfo(float).tiny))
    return df


def neg_log10(pvalues: pd.Series) -> pd.Series:
    """-log10 of p-values, clipped so that p == 0 stays finite."""
    return -np.log10(pvalues.clip(lower=np.finfo(float).tiny))
