"""Priority merge of two protein activity matrices.

Used to combine activity inferred from two regulon sets (e.g. a
transcription-factor network and a signaling network) where the primary
set should win whenever both report the same protein.
"""

import logging

import pandas as pd

from .exceptions import ShapeMismatchError

log = logging.getLogger(__name__)


def merge_matrices(
    priority: pd.DataFrame,
    secondary: pd.DataFrame,
) -> pd.DataFrame:
    """Merge two matrices, keeping priority rows on conflict.

    Every row of `priority` is kept unchanged. Rows of `secondary` whose
    protein ID is absent from `priority` are appended after them.

    Args:
        priority: Matrix (n_proteins × n_samples) whose rows always win.
        secondary: Matrix supplying rows missing from `priority`.

    Returns:
        Matrix whose row set is the union of both inputs.

    Raises:
        ShapeMismatchError: If the two matrices do not share the same
            columns in the same order.
    """
    if list(priority.columns) != list(secondary.columns):
        raise ShapeMismatchError(
            f"Cannot merge matrices with different columns "
            f"({priority.shape[1]} vs {secondary.shape[1]} samples)."
        )
    extra = secondary.loc[~secondary.index.isin(priority.index)]
    log.info("Merging %d priority rows with %d secondary-only rows", len(priority), len(extra))
    return pd.concat([priority, extra], axis=0)
