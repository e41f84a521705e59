"""Tests for the downstream statistics wrappers."""

import numpy as np
import pandas as pd
import pytest

from microbiome_repro.groups import SampleGroup
from microbiome_repro.stats import (
    coefficient_of_variation, distance_matrix, icc, pcoa, permanova, regress_variation,
    within_group_distances
)
from microbiome_repro.table import AbundanceTable

pytestmark = pytest.mark.unit


@pytest.fixture
def cv_table():
    return AbundanceTable(
        [[1, 3, 2, 2], [0, 0, 5, 5]],
        features=["f1", "f2"],
        samples=["a1", "a2", "b1", "b2"],
    )


def test_coefficient_of_variation(cv_table, replicate_groups):
    cv = coefficient_of_variation(cv_table, replicate_groups)

    assert list(cv.columns) == ["A", "B"]
    assert cv.loc["f1", "A"] == pytest.approx(np.sqrt(2) / 2)
    assert cv.loc["f1", "B"] == 0
    assert cv.loc["f2", "A"] == 0
    assert cv.loc["f2", "B"] == 0


def test_cv_single_sample_group(cv_table):
    groups = SampleGroup({"a1": "A", "a2": "A", "b1": "B", "b2": "C"})
    cv = coefficient_of_variation(cv_table, groups)
    assert cv["B"].isna().all()


def test_distance_matrix(sv_table):
    dm = distance_matrix(sv_table)
    assert dm.shape == (4, 4)
    assert list(dm.ids) == list(sv_table.samples)
    assert np.allclose(np.diag(dm.data), 0)


def test_distance_matrix_needs_two_samples(sv_table):
    with pytest.raises(ValueError):
        distance_matrix(sv_table.select_samples(["a1"]))


def test_within_group_distances(sv_table, replicate_groups):
    dm = distance_matrix(sv_table)
    out = within_group_distances(dm, replicate_groups)
    assert len(out) == 2
    assert set(out["group"]) == {"A", "B"}
    row = out[out["group"] == "A"].iloc[0]
    assert row["distance"] == pytest.approx(dm["a1", "a2"])


def test_pcoa_axes_named(sv_table):
    result = pcoa(sv_table)
    assert result.samples.columns[0] == "PCo1"
    assert list(result.samples.index) == list(sv_table.samples)


def test_permanova(sv_table, metadata):
    result = permanova(sv_table, metadata, "dilution", permutations=9)
    assert result["number of groups"] == 2
    assert result["sample size"] == 4
    assert "p-value" in result.index


def test_permanova_needs_two_levels(sv_table, metadata):
    with pytest.raises(ValueError):
        permanova(sv_table, metadata, "sample_type", permutations=9)


def test_regress_variation_log_linear():
    covariate = pd.Series([1, 10, 100, 1000], index=list("abcd"))
    variation = pd.Series([2, 20, 200, 2000], index=list("abcd"))

    fit = regress_variation(variation, covariate)

    assert fit["slope"] == pytest.approx(1.0)
    assert fit["intercept"] == pytest.approx(np.log10(2))
    assert fit["r_squared"] == pytest.approx(1.0)
    assert fit["spearman_rho"] == pytest.approx(1.0)
    assert fit["n"] == 4


def test_regress_variation_drops_non_positive():
    covariate = pd.Series([0, 10, 100], index=list("abc"))
    variation = pd.Series([1, 2, 3], index=list("abc"))
    with pytest.raises(ValueError, match="at least 3"):
        regress_variation(variation, covariate)


class TestICC:

    @pytest.fixture
    def replicate_table(self):
        # a1/a2 agree closely on every feature, b1/b2 do not
        return AbundanceTable(
            [
                [40, 41, 10, 30],
                [25, 24, 30, 5],
                [15, 16, 5, 40],
                [10, 9, 35, 10],
                [6, 6, 12, 2],
                [4, 4, 8, 13],
            ],
            features=[f"sv{i}" for i in range(6)],
            samples=["a1", "a2", "b1", "b2"],
        )

    def test_one_block_per_group(self, replicate_table, replicate_groups):
        result = icc(replicate_table, replicate_groups)

        assert list(result.columns[:2]) == ["group", "Type"]
        assert (result.groupby("group").size() == 6).all()
        assert set(result["group"]) == {"A", "B"}

    def test_agreeing_replicates_score_higher(self, replicate_table, replicate_groups):
        result = icc(replicate_table, replicate_groups).set_index(["group", "Type"])

        assert result.loc[("A", "ICC1"), "ICC"] > 0.95
        assert result.loc[("A", "ICC1"), "ICC"] > result.loc[("B", "ICC1"), "ICC"]

    def test_single_sample_group_skipped(self, replicate_table):
        groups = SampleGroup({"a1": "A", "a2": "A", "b1": "B", "b2": "C"})
        result = icc(replicate_table, groups)
        assert set(result["group"]) == {"A"}

    def test_too_few_features(self, sv_table, replicate_groups):
        with pytest.raises(ValueError, match="at least 5 features"):
            icc(sv_table, replicate_groups)

    def test_no_replicated_group(self, replicate_table):
        groups = SampleGroup({"a1": "A", "a2": "B", "b1": "C", "b2": "D"})
        with pytest.raises(ValueError, match="two or more samples"):
            icc(replicate_table, groups)
