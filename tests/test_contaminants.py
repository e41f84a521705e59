"""Tests for control-based contaminant classification."""

import pytest

from microbiome_repro.contaminants import classify, control_percentages, remove_contaminants
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.normalization import normalize
from microbiome_repro.table import AbundanceTable

pytestmark = pytest.mark.unit


def test_both_features_flagged_and_removed(raw_table):
    flagged = classify(raw_table, {"s3"}, {"s1", "s2"}, threshold_pct=10)

    assert flagged == {"f1", "f2"}
    assert remove_contaminants(raw_table, flagged).is_empty


def test_control_percentages(raw_table):
    pct = control_percentages(raw_table, ["s3"], ["s1", "s2"])
    assert pct["f1"] == pytest.approx(100 * 90 / 110)
    assert pct["f2"] == pytest.approx(100.0)


def test_feature_without_reads_never_flagged():
    table = AbundanceTable([[0, 0, 0], [1, 0, 9]], ["empty", "f"], ["s1", "s2", "c"])

    pct = control_percentages(table, ["c"], ["s1", "s2"])
    flagged = classify(table, ["c"], ["s1", "s2"], threshold_pct=1e-9)

    assert pct["empty"] == 0
    assert "empty" not in flagged
    assert "f" in flagged


def test_higher_threshold_flags_fewer(random_counts):
    controls, trues = ["s0", "s1"], ["s3", "s4", "s5"]
    previous = None
    for threshold in [1, 10, 25, 40, 60, 90, 100]:
        flagged = classify(random_counts, controls, trues, threshold)
        if previous is not None:
            assert flagged <= previous
        previous = flagged


def test_uses_raw_counts_not_proportions():
    # Dilute true samples keep few reads; as proportions the feature would look
    # evenly spread, as counts it is clearly dominated by the control.
    table = AbundanceTable([[1, 50], [1, 50]], ["f1", "f2"], ["true", "ctrl"])
    assert classify(table, ["ctrl"], ["true"], 50) == {"f1", "f2"}
    assert classify(normalize(table), ["ctrl"], ["true"], 50) == frozenset()


def test_remove_keeps_other_features(raw_table):
    assert remove_contaminants(raw_table, {"f2"}).features == ("f1",)


def test_overlapping_sets_rejected(raw_table):
    with pytest.raises(InvalidInputError, match="overlap"):
        classify(raw_table, {"s1", "s3"}, {"s1", "s2"}, 10)


def test_unknown_sample_rejected(raw_table):
    with pytest.raises(InvalidInputError, match="not in the table"):
        classify(raw_table, {"s9"}, {"s1"}, 10)


@pytest.mark.parametrize("controls, trues", [([], ["s1"]), (["s3"], [])])
def test_empty_sets_rejected(raw_table, controls, trues):
    with pytest.raises(InvalidInputError):
        classify(raw_table, controls, trues, 10)


@pytest.mark.parametrize("threshold", [0, -5, 100.5])
def test_threshold_out_of_range(raw_table, threshold):
    with pytest.raises(InvalidInputError):
        classify(raw_table, {"s3"}, {"s1", "s2"}, threshold)
