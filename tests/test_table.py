"""Tests for the AbundanceTable value object."""

import numpy as np
import pandas as pd
import pytest

from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable

pytestmark = pytest.mark.unit


def test_labels_and_shape(raw_table):
    assert raw_table.features == ("f1", "f2")
    assert raw_table.samples == ("s1", "s2", "s3")
    assert raw_table.shape == (2, 3)
    assert "f1" in raw_table
    assert raw_table.has_sample("s3")


def test_duplicate_feature_labels_rejected():
    with pytest.raises(InvalidInputError, match="Duplicate feature"):
        AbundanceTable([[1], [2]], features=["x", "x"], samples=["s"])


def test_duplicate_sample_labels_rejected():
    with pytest.raises(InvalidInputError, match="Duplicate sample"):
        AbundanceTable([[1, 2]], features=["x"], samples=["s", "s"])


def test_shape_mismatch_rejected():
    with pytest.raises(InvalidInputError):
        AbundanceTable([[1, 2]], features=["x"], samples=["s"])


def test_non_finite_values_rejected():
    with pytest.raises(InvalidInputError):
        AbundanceTable([[1.0, np.nan]], features=["x"], samples=["a", "b"])


def test_values_are_read_only(raw_table):
    with pytest.raises(ValueError):
        raw_table.values[0, 0] = 99


def test_source_array_is_copied():
    data = np.array([[1.0, 2.0]])
    table = AbundanceTable(data, ["x"], ["a", "b"])
    data[0, 0] = 50
    assert table.values[0, 0] == 1.0


def test_unknown_labels_fail_fast(raw_table):
    with pytest.raises(InvalidInputError):
        raw_table.feature_position("missing")
    with pytest.raises(InvalidInputError):
        raw_table.sample_position("missing")
    with pytest.raises(InvalidInputError):
        raw_table.drop_features(["missing"])


def test_dataframe_round_trip(raw_table):
    df = raw_table.to_dataframe()
    assert list(df.index) == ["f1", "f2"]
    assert list(df.columns) == ["s1", "s2", "s3"]
    assert AbundanceTable.from_dataframe(df) == raw_table


def test_from_dataframe_rejects_text_columns():
    df = pd.DataFrame({"a": [1, 2], "b": ["x", "y"]}, index=["f1", "f2"])
    with pytest.raises(InvalidInputError):
        AbundanceTable.from_dataframe(df)


def test_biom_round_trip(raw_table):
    assert AbundanceTable.from_biom(raw_table.to_biom()) == raw_table


def test_selection_returns_new_tables(raw_table):
    subset = raw_table.select_samples(["s3", "s1"])
    assert subset.samples == ("s3", "s1")
    np.testing.assert_array_equal(subset.values, [[90, 10], [5, 0]])

    dropped = raw_table.drop_features(["f1"])
    assert dropped.features == ("f2",)
    assert raw_table.features == ("f1", "f2")


def test_empty_table(raw_table):
    empty = raw_table.drop_features(["f1", "f2"])
    assert empty.is_empty
    assert empty.shape == (0, 3)
    np.testing.assert_array_equal(empty.column_sums(), [0, 0, 0])
