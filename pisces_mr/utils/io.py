"""I/O helpers for loading and saving analysis data."""

from pathlib import Path
from typing import Iterable, Optional, Union
import pandas as pd
import scanpy as sc
import yaml


def _read_table(path: Path) -> pd.DataFrame:
    sep = "\t" if path.suffix in {".tsv", ".txt"} else ","
    return pd.read_csv(path, sep=sep, index_col=0)


def load_matrix(path: str | Path) -> pd.DataFrame:
    """Load a protein activity (or expression) matrix.

    CSV/TSV files are read with proteins as rows and samples as columns.
    h5ad files hold cells × features, so the AnnData X slot is transposed.

    Args:
        path: Path to a .csv, .tsv/.txt or .h5ad file.

    Returns:
        DataFrame of shape (n_proteins × n_samples).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")
    if path.suffix == ".h5ad":
        adata = sc.read_h5ad(str(path))
        X = adata.X.toarray() if hasattr(adata.X, "toarray") else adata.X
        return pd.DataFrame(X.T, index=adata.var_names, columns=adata.obs_names)
    return _read_table(path)


def load_clustering(
    path: str | Path,
    column: Optional[Union[str, list]] = None,
) -> Union[pd.Series, pd.DataFrame]:
    """Load cluster labels (sample ID → cluster label).

    Args:
        path: CSV/TSV with sample IDs in the first column.
        column: Label column to use, or a list of columns (outermost
            level first) for a hierarchical clustering. Defaults to the
            first data column.

    Returns:
        Series of cluster labels indexed by sample ID, or a DataFrame with
        one column per level when `column` is a list.
    """
    df = _read_table(Path(path))
    if df.shape[1] == 0:
        raise ValueError(f"Clustering file has no label column: {path}")
    cols = column if isinstance(column, list) else [column if column is not None else df.columns[0]]
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Column(s) {missing} not found in clustering file {path}")
    return df[cols] if isinstance(column, list) else df[cols[0]]


def load_weights(path: str | Path) -> pd.Series:
    """Load a per-sample weight vector (sample ID → weight)."""
    df = _read_table(Path(path))
    return df.iloc[:, 0].astype(float)


def _walk_collection(collection, path: tuple):
    if isinstance(collection, dict):
        for label, sub in collection.items():
            yield from _walk_collection(sub, path + (str(label),))
    else:
        yield path, collection


def mr_collection_to_frame(collection) -> pd.DataFrame:
    """Flatten an MR collection into a long-format table.

    Nested cluster labels are joined with '/'. The cluster column is empty
    for an ungrouped ranking.

    Args:
        collection: Ranked Series, or (nested) dict of ranked Series.

    Returns:
        DataFrame with columns ['cluster', 'rank', 'protein', 'score'].
    """
    records = []
    for path, ranked in _walk_collection(collection, ()):
        for rank, (protein, score) in enumerate(ranked.items(), start=1):
            records.append({
                "cluster": "/".join(path),
                "rank": rank,
                "protein": protein,
                "score": score,
            })
    return pd.DataFrame(records, columns=["cluster", "rank", "protein", "score"])


def save_mr_collection(collection, path: str | Path) -> pd.DataFrame:
    """Write an MR collection to CSV in long format.

    Args:
        collection: Ranked Series, or (nested) dict of ranked Series.
        path: Output CSV path.

    Returns:
        The long-format DataFrame that was written.
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df = mr_collection_to_frame(collection)
    df.to_csv(path, index=False)
    return df


def save_mr_set(proteins: Iterable[str], path: str | Path) -> None:
    """Write a protein panel (one identifier per line, sorted)."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text("".join(f"{p}\n" for p in sorted(map(str, proteins))))


def load_config(path: Union[str, Path]) -> dict:
    """Load a YAML configuration file.

    Args:
        path: Path to a YAML config file.

    Returns:
        Dictionary of configuration parameters.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        return yaml.safe_load(f) or {}
