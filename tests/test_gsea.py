"""Tests for the GSEA runner, with gseapy.prerank replaced by a fake."""

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from deflow.enrichment import gsea as gsea_module
from deflow.enrichment.gsea import (GSEA_COLUMNS, GSEARun, adjust_pvalues,
                                    format_gsea_table, run_gsea)
from deflow.exceptions import InvalidArgumentError


def _fake_res2d():
    return pd.DataFrame(
        {
            "Name": ["prerank", "prerank"],
            "Term": ["SET_DOWN", "SET_UP"],
            "ES": [-0.8, 0.9],
            "NES": [-1.5, 1.7],
            "NOM p-val": [0.04, 0.0],
            "FDR q-val": [0.05, 0.01],
            "FWER p-val": [0.06, 0.01],
            "Tag %": ["2/3", "3/3"],
            "Gene %": ["25%", "40%"],
            "Lead_genes": ["ENSG00000000002;ENSG00000000005", "ENSG00000000001"],
        }
    )


class FakePrerank:
    """Records the prerank call and returns a canned result."""

    def __init__(self):
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        n = len(kwargs["rnk"])
        results = {
            "SET_UP": {"RES": np.linspace(0, 0.9, n), "hits": [0, 2]},
            "SET_DOWN": {"RES": -np.linspace(0, 0.8, n), "hits": [1, n - 1]},
        }
        return SimpleNamespace(res2d=_fake_res2d(), results=results)


@pytest.fixture
def fake_prerank(monkeypatch):
    fake = FakePrerank()
    monkeypatch.setattr(gsea_module.gp, "prerank", fake)
    return fake


def test_format_gsea_table():
    table = format_gsea_table(_fake_res2d())

    assert list(table.columns) == GSEA_COLUMNS
    # sorted by pvalue
    assert list(table["ID"]) == ["SET_UP", "SET_DOWN"]
    assert list(table["setSize"]) == [3, 3]
    assert table.loc[1, "core_enrichment"] == "ENSG00000000002/ENSG00000000005"
    assert table.loc[0, "qvalue"] == 0.01


def test_eps_is_a_pvalue_floor():
    table = format_gsea_table(_fake_res2d(), eps=1e-10)

    assert table["pvalue"].min() == 1e-10


def test_adjust_pvalues_benjamini_hochberg():
    adjusted = adjust_pvalues(pd.Series([0.01, 0.04, np.nan]))

    assert adjusted[0] == pytest.approx(0.02)
    assert adjusted[1] == pytest.approx(0.04)
    assert np.isnan(adjusted[2])


def test_run_gsea_marshals_arguments(annotated_result, term2gene, fake_prerank):
    table = run_gsea(
        annotated_result,
        "CP:REACTOME",
        term2gene,
        min_size=2,
        permutations=100,
        seed=7,
    )

    assert list(table.columns) == GSEA_COLUMNS
    assert len(table) == 2

    call = fake_prerank.calls[0]
    assert call["permutation_num"] == 100
    assert call["seed"] == 7
    assert call["min_size"] == 2
    assert set(call["gene_sets"]) == {"SET_UP", "SET_DOWN"}
    ranking = call["rnk"]
    assert ranking.is_monotonic_decreasing
    assert len(ranking) == len(annotated_result)


def test_run_gsea_returns_run_object(annotated_result, term2gene, fake_prerank):
    run = run_gsea(annotated_result, "CP:REACTOME", term2gene, min_size=2, to_dataframe=False)

    assert isinstance(run, GSEARun)
    assert run.gene_set_ids() == ["SET_UP", "SET_DOWN"]

    trace = run.trace("SET_UP")
    assert list(trace.columns) == ["x", "runningScore", "position", "Description"]
    assert trace["x"].iloc[0] == 1
    assert list(trace.loc[trace["position"] == 1, "x"]) == [1, 3]
    assert (trace["Description"] == "SET_UP").all()


def test_trace_of_unknown_gene_set(annotated_result, term2gene, fake_prerank):
    run = run_gsea(annotated_result, "CP:REACTOME", term2gene, min_size=2, to_dataframe=False)

    with pytest.raises(KeyError):
        run.trace("SET_MISSING")


def test_run_gsea_with_custom_annotation(annotated_result, term2gene, fake_prerank):
    custom = term2gene[term2gene["gs_subcat"] == "CP:KEGG"]
    run_gsea(annotated_result, custom[["gs_name", "ensembl_gene"]], min_size=2)

    assert set(fake_prerank.calls[0]["gene_sets"]) == {"SET_KEGG"}


def test_no_gene_set_of_valid_size(annotated_result, term2gene, fake_prerank):
    table = run_gsea(annotated_result, "CP:REACTOME", term2gene, min_size=5)

    assert table.empty
    assert list(table.columns) == GSEA_COLUMNS
    assert fake_prerank.calls == []


def test_invalid_ranking_metric(annotated_result, term2gene, fake_prerank):
    with pytest.raises(InvalidArgumentError):
        run_gsea(annotated_result, "CP:REACTOME", term2gene, ranking_metric="stat")
