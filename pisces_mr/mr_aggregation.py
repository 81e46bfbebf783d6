"""Flatten MR rankings into a single protein panel.

Per-cluster (or per-cell) MR lists overlap heavily; downstream steps such as
heatmaps or re-clustering only need the union of proteins, without scores.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .utils.stats import rank_scores

log = logging.getLogger(__name__)


def unwrap_mrs(collection, top: Optional[int] = None) -> set:
    """Flatten an MR collection into a set of protein IDs.

    Args:
        collection: A ranked Series, a (nested) dict of ranked Series, or an
            already-flat iterable of protein IDs (returned as a set).
        top: If given, keep only the `top` highest-scoring proteins of each
            ranking before flattening. Ignored for flat iterables.

    Returns:
        Set of unique protein IDs.
    """
    if isinstance(collection, dict):
        proteins = set()
        for sub in collection.values():
            proteins |= unwrap_mrs(sub, top=top)
        return proteins
    if isinstance(collection, pd.Series):
        ranked = collection if top is None else rank_scores(collection).iloc[:top]
        return set(ranked.index)
    return set(collection)


def cell_by_cell_mrs(matrix: pd.DataFrame, num_mrs: int = 25) -> set:
    """Union of the top-activity proteins of every individual sample.

    Each column is ranked independently (ties keep row order) and its
    `num_mrs` highest proteins are kept.

    Args:
        matrix: Activity matrix (n_proteins × n_samples).
        num_mrs: Proteins kept per sample.

    Returns:
        Set of unique protein IDs.
    """
    values = matrix.to_numpy(dtype=float)
    order = np.argsort(-values, axis=0, kind="stable")[:num_mrs]
    proteins = set(matrix.index[np.unique(order)])
    log.info(
        "Cell-by-cell MRs: %d unique proteins from %d samples (top %d each)",
        len(proteins), matrix.shape[1], num_mrs,
    )
    return proteins
