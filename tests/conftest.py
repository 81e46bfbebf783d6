import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def two_cluster_matrix():
    """3 proteins × 6 samples with an up-protein in each of two clusters."""
    cols = [f"s{i}" for i in range(1, 7)]
    matrix = pd.DataFrame(
        [
            [10, 10, 10, 1, 1, 1],
            [1, 1, 1, 10, 10, 10],
            [5, 5, 5, 5, 5, 5],
        ],
        index=["A", "B", "C"],
        columns=cols,
        dtype=float,
    )
    clustering = pd.Series([1, 1, 1, 2, 2, 2], index=cols)
    return matrix, clustering


@pytest.fixture
def noisy_two_cluster_matrix():
    """4 proteins × 10 samples; 'UP1' is high in cluster a, 'UP2' in cluster b."""
    rng = np.random.default_rng(7)
    cols = [f"cell{i}" for i in range(10)]
    base = rng.normal(0.0, 1.0, size=(4, 10))
    base[0, :5] += 8.0
    base[1, 5:] += 8.0
    matrix = pd.DataFrame(base, index=["UP1", "UP2", "N1", "N2"], columns=cols)
    clustering = pd.Series(["a"] * 5 + ["b"] * 5, index=cols)
    return matrix, clustering
