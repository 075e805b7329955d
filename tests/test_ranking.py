"""Tests for ranked gene list preparation."""

import numpy as np
import pandas as pd
import pytest

from deflow.enrichment import MissingValuePolicy, RankingMetric, prepare_ranking
from deflow.exceptions import InvalidArgumentError


def _result():
    return pd.DataFrame(
        {
            "ensembl_gene_id": ["G1", "G2", "G3", "G4", "G5"],
            "log2FoldChange": [1.0, -2.0, np.nan, 1.0, 0.5],
            "pvalue": [0.01, 0.001, 0.5, np.nan, 0.1],
        }
    )


@pytest.mark.parametrize("metric", list(RankingMetric))
@pytest.mark.parametrize("missing", list(MissingValuePolicy))
def test_ranking_is_non_increasing(metric, missing):
    ranking = prepare_ranking(_result(), metric, missing)

    values = ranking.to_numpy()
    assert np.all(values[:-1] >= values[1:])
    assert ranking.index.is_unique
    assert ranking.name == "score"


def test_log2fc_impute_sets_missing_to_zero():
    ranking = prepare_ranking(_result(), "log2FoldChange", "impute")

    assert len(ranking) == 5
    assert ranking["G3"] == 0
    assert list(ranking.index[:2]) == ["G1", "G4"]  # tie keeps row order


def test_log2fc_drop_removes_missing():
    ranking = prepare_ranking(_result(), "log2FoldChange", "drop")

    assert "G3" not in ranking.index
    assert len(ranking) == 4


def test_signed_pvalue_scores():
    ranking = prepare_ranking(_result(), "signed_pvalue", "impute")

    assert ranking["G1"] == pytest.approx(2.0)
    assert ranking["G2"] == pytest.approx(-3.0)
    # missing log2FoldChange -> 0, missing pvalue -> 1
    assert ranking["G3"] == 0
    assert ranking["G4"] == 0


def test_signed_pvalue_drop():
    ranking = prepare_ranking(_result(), "signed_pvalue", "drop")

    assert set(ranking.index) == {"G1", "G2", "G5"}


def test_combined_score():
    ranking = prepare_ranking(_result(), "combined_score", "impute")

    assert ranking["G2"] == pytest.approx(-6.0)
    assert ranking["G5"] == pytest.approx(0.5)
    assert ranking["G3"] == 0
    assert ranking.index[-1] == "G2"


def test_combined_score_drop():
    ranking = prepare_ranking(_result(), "combined_score", MissingValuePolicy.DROP)

    assert set(ranking.index) == {"G1", "G2", "G5"}


def test_default_metric_is_log2fc():
    ranking = prepare_ranking(_result())

    assert ranking.iloc[0] == 1.0
    assert ranking.iloc[-1] == -2.0


def test_invalid_metric_lists_choices():
    with pytest.raises(InvalidArgumentError) as excinfo:
        prepare_ranking(_result(), "pvalue")

    message = str(excinfo.value)
    for metric in ("log2FoldChange", "signed_pvalue", "combined_score"):
        assert metric in message


def test_no_partial_matching():
    with pytest.raises(InvalidArgumentError):
        prepare_ranking(_result(), "signed")


def test_invalid_missing_policy():
    with pytest.raises(InvalidArgumentError):
        prepare_ranking(_result(), "log2FoldChange", "zero")


def test_works_on_annotated_result(annotated_result):
    ranking = prepare_ranking(annotated_result, "signed_pvalue")

    assert len(ranking) == len(annotated_result)
    assert ranking.index[0] == "ENSG00000000001"
