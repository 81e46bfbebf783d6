"""Per-protein scoring strategies for master regulator analysis.

Three interchangeable ways of turning a protein activity matrix
(n_proteins × n_samples) into one score per protein:

  (a) Stouffer integration: weighted sum of a protein's activity across
      samples, normalized by the root-sum-square of the weights. Without
      weights this is sum(row) / sqrt(n). With a clustering it is applied
      to each cluster's sub-matrix separately.
  (b) ANOVA: one-way analysis of variance of each protein's activity
      across clusters; the omnibus p-value is the score.
  (c) Bootstrap t-test: one cluster vs. the rest, Welch t-test on
      bootstrap resamples of both groups, averaged signed log p-value.

Stouffer and ANOVA are exposed through ScoringMethod for the MR selector.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy.stats import f_oneway

from .exceptions import AlignmentError, InvalidMethodError, StatisticalPreconditionError
from .utils.stats import (
    align_to_columns,
    apply_bh_correction,
    log_pvalue_from_t,
    rank_scores,
    welch_ttest,
)

log = logging.getLogger(__name__)


class ScoringMethod(str, Enum):
    STOUFFER = "Stouffer"
    ANOVA = "ANOVA"

    @classmethod
    def parse(cls, method: Union[str, "ScoringMethod"]) -> "ScoringMethod":
        """Resolve a method tag, rejecting anything outside the enum."""
        if isinstance(method, cls):
            return method
        for member in cls:
            if isinstance(method, str) and method.lower() == member.value.lower():
                return member
        choices = ", ".join(m.value for m in cls)
        raise InvalidMethodError(f"Unknown method '{method}'. Choose: {choices}.")


def _cluster_members(clustering: pd.Series) -> dict:
    """Map each cluster label to the sample IDs it contains (labels sorted)."""
    return {label: list(idx) for label, idx in clustering.groupby(clustering).groups.items()}


def _resolve_weights(
    matrix: pd.DataFrame,
    weights: Optional[Union[pd.Series, dict]],
) -> pd.Series:
    if weights is None:
        return pd.Series(1.0, index=matrix.columns)
    w = align_to_columns(weights, matrix.columns, what="weights").astype(float)
    if (w < 0).any():
        raise AlignmentError("weights must be non-negative.")
    return w


# ── Stouffer integration ──────────────────────────────────────────────────────

def stouffer_scores(
    matrix: pd.DataFrame,
    weights: Optional[Union[pd.Series, dict]] = None,
) -> pd.Series:
    """Weighted Stouffer integration of each protein across all samples.

    score = sum(value_i * weight_i) / sqrt(sum(weight_i ** 2))

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        weights: Optional per-sample weights keyed by sample ID.
            Defaults to 1.0 for every sample.

    Returns:
        Series of integrated scores indexed by protein ID (input order).
    """
    w = _resolve_weights(matrix, weights)
    norm = np.sqrt(np.sum(w.to_numpy() ** 2))
    if norm == 0:
        raise AlignmentError("weights are all zero for the samples being integrated.")
    values = matrix.to_numpy(dtype=float) @ w.to_numpy()
    return pd.Series(values / norm, index=matrix.index)


def stouffer_integrate(
    matrix: pd.DataFrame,
    clustering: Optional[Union[pd.Series, dict]] = None,
    weights: Optional[Union[pd.Series, dict]] = None,
) -> Union[pd.Series, dict]:
    """Stouffer-integrate a matrix, optionally per cluster.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        clustering: Optional sample ID → cluster label mapping.
        weights: Optional sample ID → weight mapping.

    Returns:
        Without clustering, a Series of scores per protein. With clustering,
        a dict mapping cluster label → descending-ranked Series.
    """
    if clustering is None:
        return stouffer_scores(matrix, weights)

    labels = align_to_columns(clustering, matrix.columns, what="clustering")
    w = _resolve_weights(matrix, weights)
    return {
        label: rank_scores(stouffer_scores(matrix[members], w.loc[members]))
        for label, members in _cluster_members(labels).items()
    }


# ── ANOVA ─────────────────────────────────────────────────────────────────────

def anova_pvalues(
    matrix: pd.DataFrame,
    clustering: Union[pd.Series, dict],
) -> pd.Series:
    """One-way ANOVA p-value per protein across clusters.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        clustering: Sample ID → cluster label mapping (aligned by ID).

    Returns:
        Series of raw p-values indexed by protein ID (input order, unsorted).
        Lower values indicate stronger separation between clusters.

    Raises:
        StatisticalPreconditionError: If there are fewer than two clusters
            or no cluster holds at least two samples.
    """
    if clustering is None:
        raise StatisticalPreconditionError("ANOVA scoring requires a clustering.")
    labels = align_to_columns(clustering, matrix.columns, what="clustering")
    members = _cluster_members(labels)
    if len(members) < 2:
        raise StatisticalPreconditionError(
            f"ANOVA requires at least two clusters, got {len(members)}."
        )
    if max(len(cols) for cols in members.values()) < 2:
        raise StatisticalPreconditionError(
            "ANOVA requires at least one cluster with two or more samples."
        )

    groups = [matrix[cols].to_numpy(dtype=float) for cols in members.values()]
    res = f_oneway(*groups, axis=1)
    return pd.Series(np.asarray(res.pvalue, dtype=float), index=matrix.index)


def anova_table(
    matrix: pd.DataFrame,
    clustering: Union[pd.Series, dict, pd.DataFrame],
) -> pd.DataFrame:
    """ANOVA p-values with Benjamini-Hochberg FDR, most significant first.

    With a DataFrame of cluster levels (outermost first), the outer levels
    partition the samples and the ANOVA runs across the last level within
    each partition. FDR is corrected separately per partition.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        clustering: Sample ID → label mapping, or a DataFrame of levels.

    Returns:
        DataFrame with columns ['cluster', 'protein', 'pvalue', 'FDR',
        'neg_log10_FDR']. 'cluster' is the '/'-joined outer path, empty for
        a single-level clustering.
    """
    if isinstance(clustering, pd.DataFrame):
        levels = [
            align_to_columns(clustering[col], matrix.columns, what="clustering")
            for col in clustering.columns
        ]
    else:
        levels = [align_to_columns(clustering, matrix.columns, what="clustering")]

    outer = levels[:-1]
    paths = pd.Series(
        ["/".join(str(level.loc[s]) for level in outer) for s in matrix.columns],
        index=matrix.columns,
    )
    frames = []
    for path, members in _cluster_members(paths).items():
        pvals = anova_pvalues(matrix[members], levels[-1].loc[members])
        frames.append(pd.DataFrame({
            "cluster": path,
            "protein": pvals.index,
            "pvalue": pvals.to_numpy(),
        }))
    df = pd.concat(frames, ignore_index=True)
    df = apply_bh_correction(df, pvalue_col="pvalue", group_cols=["cluster"])
    return df.sort_values(["cluster", "pvalue"], kind="stable").reset_index(drop=True)


# ── Bootstrap t-test ──────────────────────────────────────────────────────────

def _bootstrap_row(
    test_row: np.ndarray,
    ref_row: np.ndarray,
    ref_size: int,
    bootstrap_num: int,
    seed_seq: np.random.SeedSequence,
) -> float:
    """Mean signed log p-value of one protein over bootstrap resamples."""
    rng = np.random.default_rng(seed_seq)
    test_idx = rng.integers(0, len(test_row), size=(bootstrap_num, len(test_row)))
    ref_idx = rng.integers(0, len(ref_row), size=(bootstrap_num, ref_size))
    t_stat, dof = welch_ttest(test_row[test_idx], ref_row[ref_idx], axis=1)
    log_p = np.atleast_1d(log_pvalue_from_t(t_stat, dof))
    valid = log_p[~np.isnan(log_p)]
    return float(valid.mean()) if len(valid) else np.nan


def bootstrap_ttest(
    matrix: pd.DataFrame,
    clustering: Union[pd.Series, dict],
    bootstrap_num: int = 100,
    seed: int = 0,
    resample_reference: str = "reference",
    n_workers: int = 1,
) -> dict:
    """One-vs-rest bootstrap t-test per cluster.

    For each cluster, each protein's activity in the cluster (test group)
    is compared with its activity in all other samples (reference group).
    Both groups are resampled with replacement `bootstrap_num` times; each
    resampled pair is tested with a two-sided Welch t-test and converted to
    a signed log p-value. The per-protein score is the mean over resamples.

    Every (cluster, protein) pair draws from its own random stream spawned
    from `seed`, so results do not depend on `n_workers`.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        clustering: Sample ID → cluster label mapping.
        bootstrap_num: Number of bootstrap resamples per protein.
        seed: Root random seed.
        resample_reference: 'reference' resamples the reference group at its
            own size; 'test' resamples it at the test group's size.
        n_workers: Threads used to score proteins in parallel.

    Returns:
        Dict mapping cluster label → descending-ranked Series of mean signed
        log p-values.

    Raises:
        StatisticalPreconditionError: If a cluster or its complement has
            fewer than two samples.
    """
    if resample_reference not in {"reference", "test"}:
        raise ValueError(
            f"resample_reference must be 'reference' or 'test', got '{resample_reference}'."
        )
    if bootstrap_num < 1:
        raise ValueError("bootstrap_num must be at least 1.")

    labels = align_to_columns(clustering, matrix.columns, what="clustering")
    members = _cluster_members(labels)
    values = matrix.to_numpy(dtype=float)
    class_seeds = np.random.SeedSequence(seed).spawn(len(members))

    results = {}
    for (label, cols), class_seed in zip(members.items(), class_seeds):
        in_test = matrix.columns.isin(cols)
        n_test, n_ref = int(in_test.sum()), int((~in_test).sum())
        if n_test < 2 or n_ref < 2:
            raise StatisticalPreconditionError(
                f"Cluster '{label}' has {n_test} samples vs {n_ref} reference samples; "
                "the t-test needs at least two in each group."
            )
        ref_size = n_ref if resample_reference == "reference" else n_test
        test_vals, ref_vals = values[:, in_test], values[:, ~in_test]
        row_seeds = class_seed.spawn(len(matrix))
        scores = np.empty(len(matrix))

        def score_row(i: int) -> None:
            scores[i] = _bootstrap_row(
                test_vals[i], ref_vals[i], ref_size, bootstrap_num, row_seeds[i]
            )

        if n_workers > 1:
            with ThreadPoolExecutor(max_workers=n_workers) as pool:
                list(pool.map(score_row, range(len(matrix))))
        else:
            for i in range(len(matrix)):
                score_row(i)

        results[label] = rank_scores(pd.Series(scores, index=matrix.index))
        log.info("Bootstrap t-test: cluster %s (%d vs %d samples)", label, n_test, n_ref)

    return results


# ── Dispatcher ────────────────────────────────────────────────────────────────

def score(
    matrix: pd.DataFrame,
    method: Union[str, ScoringMethod],
    clustering: Optional[Union[pd.Series, dict]] = None,
    weights: Optional[Union[pd.Series, dict]] = None,
) -> Union[pd.Series, dict]:
    """Score proteins with the named strategy.

    Returns:
        For Stouffer, see stouffer_integrate(). For ANOVA, a Series of raw
        p-values (weights are not used).

    Raises:
        InvalidMethodError: If `method` is not a ScoringMethod.
    """
    method = ScoringMethod.parse(method)
    if method is ScoringMethod.STOUFFER:
        return stouffer_integrate(matrix, clustering=clustering, weights=weights)
    return anova_pvalues(matrix, clustering)
