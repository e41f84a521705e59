"""Tests for sample grouping and level relabelling."""

import numpy as np
import pandas as pd
import pytest

from microbiome_repro.errors import InvalidInputError
from microbiome_repro.groups import SampleGroup, label_levels_with_counts

pytestmark = pytest.mark.unit


def test_partition_keeps_sample_order(replicate_groups):
    parts = replicate_groups.partition(["b2", "a1", "b1", "a2"])
    assert parts == {"B": ["b2", "b1"], "A": ["a1", "a2"]}


def test_partition_requires_every_sample(replicate_groups):
    with pytest.raises(InvalidInputError, match="no group"):
        replicate_groups.partition(["a1", "zz"])


def test_split_controls():
    groups = SampleGroup({"s1": "sample", "s2": "sample", "blank": "negative_control"})
    controls, trues = groups.split_controls(["s1", "blank", "s2"], "negative_control")
    assert controls == ["blank"]
    assert trues == ["s1", "s2"]


def test_from_metadata_skips_missing_values():
    meta = pd.DataFrame({"dilution": ["1:1", np.nan, "1:10"]}, index=["a", "b", "c"])
    groups = SampleGroup.from_metadata(meta, "dilution")
    assert dict(groups) == {"a": "1:1", "c": "1:10"}
    assert groups.groups() == ["1:1", "1:10"]


def test_from_metadata_unknown_column(metadata):
    with pytest.raises(InvalidInputError):
        SampleGroup.from_metadata(metadata, "nope")


def test_group_of_unknown_sample(replicate_groups):
    with pytest.raises(InvalidInputError):
        replicate_groups.group_of("nope")


def test_label_levels_with_counts():
    out = label_levels_with_counts(["b", "a", "b"])
    assert list(out) == ["b (n=2)", "a (n=1)", "b (n=2)"]
    assert list(out.cat.categories) == ["b (n=2)", "a (n=1)"]
    assert out.cat.ordered


def test_label_levels_follow_categorical_order():
    values = pd.Categorical(["x", "y", "x"], categories=["y", "x", "z"])
    out = label_levels_with_counts(values, original_levels_as_index=True)
    assert list(out.cat.categories) == ["y (n=1)", "x (n=2)", "z (n=0)"]
    assert list(out.index) == ["x", "y", "x"]
