"""Cross-matrix sample similarity.

Compares the samples of two activity matrices (e.g. single cells against
reference clusters) over the proteins they share. The two matrices are
concatenated column-wise and passed to a column-similarity function that
returns a square samples × samples matrix; only the block relating the
second matrix's samples (rows) to the first matrix's samples (columns) is
kept.
"""

import logging
from typing import Callable, Optional

import pandas as pd

log = logging.getLogger(__name__)


def pearson_similarity(combined: pd.DataFrame) -> pd.DataFrame:
    """Pearson correlation between all pairs of columns."""
    return combined.corr(method="pearson")


def compare_samples(
    matrix_a: pd.DataFrame,
    matrix_b: pd.DataFrame,
    similarity_fn: Optional[Callable[[pd.DataFrame], pd.DataFrame]] = None,
) -> pd.DataFrame:
    """Similarity between the samples of two matrices.

    The two matrices may share sample IDs (e.g. the same cells scored with
    two regulon sets); the cross block is sliced by position.

    Args:
        matrix_a: Activity matrix (n_proteins × n_samples_a).
        matrix_b: Activity matrix (n_proteins × n_samples_b).
        similarity_fn: Maps a (proteins × samples) matrix to a square
            (samples × samples) similarity matrix labelled by sample ID.
            Defaults to Pearson correlation.

    Returns:
        DataFrame of shape (n_samples_b × n_samples_a). Empty when the two
        matrices share no proteins.
    """
    shared = matrix_a.index.intersection(matrix_b.index, sort=False)
    if len(shared) == 0:
        log.warning("No shared proteins between the two matrices.")
        return pd.DataFrame(dtype=float)

    fn = similarity_fn or pearson_similarity
    combined = pd.concat([matrix_a.loc[shared], matrix_b.loc[shared]], axis=1)
    full = fn(combined)
    n_a = matrix_a.shape[1]
    log.info("Compared %d × %d samples over %d shared proteins",
             matrix_b.shape[1], matrix_a.shape[1], len(shared))
    return pd.DataFrame(
        full.iloc[n_a:, :n_a].to_numpy(),
        index=matrix_b.columns,
        columns=matrix_a.columns,
    )
