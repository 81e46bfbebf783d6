import numpy as np
import pandas as pd

from pisces_mr.similarity import compare_samples


def _matrices():
    matrix_a = pd.DataFrame(
        {"a1": [1.0, 2.0, 3.0, 4.0], "a2": [4.0, 3.0, 2.0, 1.0]},
        index=["P1", "P2", "P3", "P4"],
    )
    matrix_b = pd.DataFrame(
        {"b1": [2.0, 4.0, 6.0], "b2": [1.0, 0.0, 1.0], "b3": [3.0, 2.0, 1.0]},
        index=["P3", "P1", "P2"],
    )
    return matrix_a, matrix_b


def test_cross_block_orientation_and_values():
    matrix_a, matrix_b = _matrices()
    result = compare_samples(matrix_a, matrix_b)

    assert list(result.index) == ["b1", "b2", "b3"]
    assert list(result.columns) == ["a1", "a2"]

    shared = ["P1", "P2", "P3"]
    expected = np.corrcoef(matrix_b.loc[shared, "b1"], matrix_a.loc[shared, "a1"])[0, 1]
    assert np.isclose(result.loc["b1", "a1"], expected)


def test_restricts_to_shared_proteins():
    matrix_a, matrix_b = _matrices()
    seen = {}

    def spy(combined):
        seen["index"] = set(combined.index)
        seen["columns"] = list(combined.columns)
        return combined.corr()

    compare_samples(matrix_a, matrix_b, similarity_fn=spy)
    assert seen["index"] == {"P1", "P2", "P3"}
    assert seen["columns"] == ["a1", "a2", "b1", "b2", "b3"]


def test_disjoint_proteins_give_empty_result():
    matrix_a, _ = _matrices()
    other = pd.DataFrame({"z1": [1.0, 2.0]}, index=["Q1", "Q2"])
    result = compare_samples(matrix_a, other)
    assert result.empty


def test_shared_sample_ids_are_sliced_by_position():
    cols = ["c1", "c2", "c3"]
    matrix_a = pd.DataFrame(
        [[1.0, 4.0, 2.0], [2.0, 1.0, 5.0], [4.0, 3.0, 1.0], [3.0, 2.0, 7.0]],
        index=["P1", "P2", "P3", "P4"],
        columns=cols,
    )
    matrix_b = matrix_a * 2 + 1
    result = compare_samples(matrix_a, matrix_b)

    assert result.shape == (3, 3)
    assert list(result.index) == cols
    assert list(result.columns) == cols
    expected = np.corrcoef(matrix_b.to_numpy().T, matrix_a.to_numpy().T)[3:, :3]
    assert np.allclose(result.to_numpy(), expected)
    assert np.allclose(np.diag(result.to_numpy()), 1.0)
