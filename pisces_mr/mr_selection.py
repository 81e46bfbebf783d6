"""Master regulator (MR) selection from protein activity matrices.

A master regulator is a protein whose inferred activity most strongly
distinguishes one group of samples from the others. Given a protein
activity matrix (proteins × samples), this module:

  1. Scores every protein with one of the strategies in scoring.py
     (Stouffer integration or ANOVA).
  2. Ranks proteins by score (descending, stable) and keeps the top
     num_mrs, optionally also the bottom num_mrs for down-active proteins.
  3. With a clustering, repeats the selection for every cluster. A
     DataFrame of labels (one column per level, outermost first) is treated
     as a hierarchy and produces a nested dict of rankings.

The CLI additionally exposes the one-vs-rest bootstrap t-test ('BTTest')
and writes both the rankings and the flattened MR panel.

Usage:
    python -m pisces_mr.mr_selection --config configs/default_config.yaml \\
        --activity-file results/viper/activity.csv \\
        --clustering-file results/clusters.csv \\
        --output-dir results/mrs/
"""

import argparse
import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .exceptions import InvalidMethodError, StatisticalPreconditionError
from .mr_aggregation import unwrap_mrs
from .scoring import ScoringMethod, anova_pvalues, anova_table, bootstrap_ttest, stouffer_scores
from .utils.io import load_clustering, load_config, load_matrix, load_weights, save_mr_collection, save_mr_set
from .utils.stats import align_to_columns, neg_log10, rank_scores

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

PIPELINE_METHODS = ("Stouffer", "ANOVA", "BTTest")


# ── Top-K truncation ──────────────────────────────────────────────────────────

def top_k(
    ranked: pd.Series,
    num_mrs: int = 50,
    include_bottom: bool = False,
) -> pd.Series:
    """Truncate a descending ranking to its top (and optionally bottom) entries.

    If num_mrs exceeds the number of proteins, all proteins are returned.
    With include_bottom, the bottom block never repeats a protein already
    in the top block.

    Args:
        ranked: Series sorted descending by score.
        num_mrs: Number of entries from each end.
        include_bottom: Also report the num_mrs lowest-scoring proteins.

    Returns:
        Series of the selected entries, top block first.
    """
    if num_mrs < 0:
        raise ValueError(f"num_mrs must be non-negative, got {num_mrs}.")
    top = ranked.iloc[:num_mrs]
    if not include_bottom:
        return top
    bottom = ranked.iloc[max(num_mrs, len(ranked) - num_mrs):]
    return pd.concat([top, bottom])


# ── Selection ─────────────────────────────────────────────────────────────────

def _as_levels(clustering) -> list:
    if clustering is None:
        return []
    if isinstance(clustering, pd.DataFrame):
        return [clustering[col] for col in clustering.columns]
    return [clustering]


def _select(
    matrix: pd.DataFrame,
    method: ScoringMethod,
    levels: list,
    weights: pd.Series,
    num_mrs: int,
    include_bottom: bool,
) -> Union[pd.Series, dict]:
    if method is ScoringMethod.STOUFFER and not levels:
        ranked = rank_scores(stouffer_scores(matrix, weights))
        return top_k(ranked, num_mrs, include_bottom)
    if method is ScoringMethod.ANOVA:
        if not levels:
            raise StatisticalPreconditionError("ANOVA selection requires a clustering.")
        if len(levels) == 1:
            ranked = rank_scores(neg_log10(anova_pvalues(matrix, levels[0])))
            return top_k(ranked, num_mrs, include_bottom)

    labels = align_to_columns(levels[0], matrix.columns, what="clustering")
    result = {}
    for label, members in labels.groupby(labels).groups.items():
        members = list(members)
        result[label] = _select(
            matrix[members], method, levels[1:], weights.loc[members],
            num_mrs, include_bottom,
        )
    return result


def select_mrs(
    matrix: pd.DataFrame,
    method: Union[str, ScoringMethod] = ScoringMethod.STOUFFER,
    clustering=None,
    num_mrs: int = 50,
    include_bottom: bool = False,
    weights: Optional[Union[pd.Series, dict]] = None,
) -> Union[pd.Series, dict]:
    """Select the top-ranked master regulators.

    Stouffer: with no clustering, integrates all samples and returns one
    ranking. With a clustering, integrates each cluster separately (using
    that cluster's weights) and returns a dict keyed by cluster label.

    ANOVA: requires a clustering; proteins are ranked by -log10(p) of the
    one-way ANOVA across clusters, so the most significant come first.
    When a DataFrame of levels is given, the outer levels partition the
    samples and the ANOVA is run across the last level within each part.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        method: 'Stouffer' or 'ANOVA' (or a ScoringMethod).
        clustering: None, a sample ID → label mapping, or a DataFrame of
            labels indexed by sample ID with one column per level,
            outermost level first.
        num_mrs: Number of MRs per ranking.
        include_bottom: Also report the num_mrs lowest-scoring proteins.
        weights: Optional sample ID → weight mapping (Stouffer only).

    Returns:
        A ranked Series, or a (nested) dict of ranked Series.

    Raises:
        InvalidMethodError: For an unknown method.
        AlignmentError: If weights or clustering do not cover the samples.
        StatisticalPreconditionError: For ANOVA without a usable grouping.
    """
    method = ScoringMethod.parse(method)
    w = pd.Series(1.0, index=matrix.columns) if weights is None else (
        align_to_columns(weights, matrix.columns, what="weights").astype(float)
    )
    return _select(matrix, method, _as_levels(clustering), w, num_mrs, include_bottom)


def bootstrap_mrs(
    matrix: pd.DataFrame,
    clustering,
    num_mrs: int = 50,
    include_bottom: bool = False,
    **bootstrap_kwargs,
) -> dict:
    """Per-cluster MRs from the one-vs-rest bootstrap t-test.

    Keyword arguments are passed to scoring.bootstrap_ttest().
    """
    ranked = bootstrap_ttest(matrix, clustering, **bootstrap_kwargs)
    return {label: top_k(r, num_mrs, include_bottom) for label, r in ranked.items()}


# ── Full pipeline ─────────────────────────────────────────────────────────────

def _pipeline_method(method: str) -> str:
    """Resolve a pipeline method name case-insensitively."""
    for name in PIPELINE_METHODS:
        if isinstance(method, str) and method.lower() == name.lower():
            return name
    raise InvalidMethodError(
        f"Unknown method '{method}'. Choose: {', '.join(PIPELINE_METHODS)}."
    )


def run_mr_selection(
    matrix: pd.DataFrame,
    output_dir: str | Path,
    method: str = "Stouffer",
    clustering=None,
    num_mrs: int = 50,
    include_bottom: bool = False,
    weights: Optional[pd.Series] = None,
    top: Optional[int] = None,
    bootstrap_num: int = 100,
    seed: int = 0,
    resample_reference: str = "reference",
    n_workers: int = 1,
) -> dict:
    """Select MRs, write the rankings and the flattened MR panel.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        output_dir: Directory for output files.
        method: 'Stouffer', 'ANOVA' or 'BTTest'.
        clustering: Optional clustering (Series, or DataFrame of levels).
        num_mrs: MRs per ranking.
        include_bottom: Also report the bottom num_mrs.
        weights: Optional per-sample weights (Stouffer only).
        top: If given, truncate each ranking to `top` before building the panel.
        bootstrap_num: Resamples per protein (BTTest only).
        seed: Root random seed (BTTest only).
        resample_reference: Reference resample size policy (BTTest only).
        n_workers: Worker threads (BTTest only).

    Returns:
        Dict with keys: 'mrs' (MR collection), 'panel' (set of protein IDs)
        and, for ANOVA, 'anova' (DataFrame).
    """
    method = _pipeline_method(method)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    log.info("Selecting MRs with %s from %d proteins × %d samples", method, *matrix.shape)

    result = {}
    if method == "BTTest":
        if clustering is None:
            raise StatisticalPreconditionError("BTTest requires a clustering.")
        mrs = bootstrap_mrs(
            matrix, clustering, num_mrs=num_mrs, include_bottom=include_bottom,
            bootstrap_num=bootstrap_num, seed=seed,
            resample_reference=resample_reference, n_workers=n_workers,
        )
    else:
        mrs = select_mrs(
            matrix, method=method, clustering=clustering, num_mrs=num_mrs,
            include_bottom=include_bottom, weights=weights,
        )
        if method == "ANOVA":
            result["anova"] = anova_table(matrix, clustering)
            result["anova"].to_csv(output_dir / "anova_pvalues.csv", index=False)

    save_mr_collection(mrs, output_dir / "mr_rankings.csv")
    panel = unwrap_mrs(mrs, top=top)
    save_mr_set(panel, output_dir / "mr_panel.txt")
    log.info("MR panel saved: %d unique proteins → %s", len(panel), output_dir / "mr_panel.txt")

    result.update({"mrs": mrs, "panel": panel})
    return result


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Select master regulators from a protein activity matrix."
    )
    parser.add_argument("--config", help="Path to YAML config file.")
    parser.add_argument("--activity-file", required=True, help="Activity matrix (proteins × samples).")
    parser.add_argument("--output-dir", required=True, help="Output directory.")
    parser.add_argument("--clustering-file", help="CSV/TSV of sample ID → cluster label.")
    parser.add_argument(
        "--clustering-cols", nargs="+",
        help="Label columns, outermost level first. Defaults to the first column.",
    )
    parser.add_argument("--weights-file", help="CSV/TSV of sample ID → weight.")
    parser.add_argument(
        "--method", default="Stouffer", type=str.lower,
        choices=[m.lower() for m in PIPELINE_METHODS],
    )
    parser.add_argument("--num-mrs", type=int, default=50)
    parser.add_argument("--include-bottom", action="store_true")
    parser.add_argument("--top", type=int, default=None, help="Truncate rankings before building the panel.")
    parser.add_argument("--bootstrap-num", type=int, default=100)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--resample-reference", default="reference", choices=["reference", "test"])
    parser.add_argument("--n-workers", type=int, default=1)
    args = parser.parse_args()

    cfg = load_config(args.config) if args.config else {}
    mr_cfg = cfg.get("mr_selection", {})

    matrix = load_matrix(args.activity_file)
    clustering = None
    if args.clustering_file:
        cols = mr_cfg.get("clustering_cols", args.clustering_cols)
        if isinstance(cols, str):
            cols = [cols]
        if cols and len(cols) > 1:
            clustering = load_clustering(args.clustering_file, column=list(cols))
        else:
            clustering = load_clustering(args.clustering_file, column=cols[0] if cols else None)
    weights = load_weights(args.weights_file) if args.weights_file else None

    run_mr_selection(
        matrix=matrix,
        output_dir=args.output_dir,
        method=mr_cfg.get("method", args.method),
        clustering=clustering,
        num_mrs=mr_cfg.get("num_mrs", args.num_mrs),
        include_bottom=mr_cfg.get("include_bottom", args.include_bottom),
        weights=weights,
        top=mr_cfg.get("top", args.top),
        bootstrap_num=mr_cfg.get("bootstrap_num", args.bootstrap_num),
        seed=mr_cfg.get("seed", args.seed),
        resample_reference=mr_cfg.get("resample_reference", args.resample_reference),
        n_workers=mr_cfg.get("n_workers", args.n_workers),
    )


if __name__ == "__main__":
    main()
