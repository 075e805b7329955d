"""Tests for heatmap data preparation and plotting."""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from deflow.exceptions import DataQualityError, DEFlowWarning, InvalidArgumentError
from deflow.visualization.heatmap import (PlottingValue, plot_heatmap,
                                          prepare_heatmap_data, strip_identifier)

GENE_IDS = [f"ENSG{i:011d}" for i in range(1, 9)]


@pytest.fixture
def vst():
    values = np.arange(32, dtype=float).reshape(8, 4) % 7 + np.arange(8)[:, None]
    matrix = pd.DataFrame(values, index=GENE_IDS, columns=["S1", "S2", "S3", "S4"])
    matrix.loc[GENE_IDS[3]] = 5.0  # constant
    matrix.loc[GENE_IDS[0]] = [1.0, 2.0, 3.0, 4.0]
    return matrix


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {
            "sample_name": ["S1", "S2", "S3", "S4"],
            "replicate": ["r1", "r2", "r1", "r2"],
            "condition": ["ctrl", "ctrl", "treated", "treated"],
        }
    )


def _prepare(vst, metadata, annotated_result, gene_mapping, genes, **kwargs):
    return prepare_heatmap_data(
        vst,
        metadata,
        annotated_result,
        genes,
        "replicate",
        "condition",
        gene_mapping,
        **kwargs,
    )


def test_strip_identifier():
    assert strip_identifier("ENSG00000141510") == "ENSG141510"
    assert strip_identifier("ENSMUSG00000059552") == "ENSMUSG59552"
    assert strip_identifier("FBgn0000003") == "FBgn0000003"


def test_gene_order_and_duplicate_symbols(vst, metadata, annotated_result, gene_mapping):
    data = _prepare(vst, metadata, annotated_result, gene_mapping, ["GENEC", "GENEA", "DUP"])

    # by descending |score|, identifiers without a score last
    assert list(data["gene_label"].cat.categories) == [
        "GENEA",
        "DUP (ENSG5)",
        "GENEC",
        "DUP (ENSG6)",
    ]
    assert data["gene_label"].cat.ordered
    assert len(data) == 4 * 4


def test_zscore_and_centered_values(vst, metadata, annotated_result, gene_mapping):
    data = _prepare(vst, metadata, annotated_result, gene_mapping, ["GENEA"])
    data = data.set_index("sample_name")

    assert data.loc["S1", "centered_vst"] == pytest.approx(-1.5)
    assert data.loc["S1", "zscore"] == pytest.approx(-1.5 / np.std([1, 2, 3, 4], ddof=1))
    assert data.loc["S3", "condition"] == "treated"


def test_unknown_symbol_warns(vst, metadata, annotated_result, gene_mapping):
    with pytest.warns(DEFlowWarning, match="not found in the gene identifier mapping: NOPE$"):
        data = _prepare(vst, metadata, annotated_result, gene_mapping, ["GENEA", "NOPE"])

    assert list(data["gene_label"].cat.categories) == ["GENEA"]


def test_identifier_missing_from_matrix_warns(vst, metadata, annotated_result, gene_mapping):
    matrix = vst.drop(index=GENE_IDS[2])

    with pytest.warns(DEFlowWarning, match=GENE_IDS[2]):
        data = _prepare(matrix, metadata, annotated_result, gene_mapping, ["GENEA", "GENEC"])

    assert list(data["gene_label"].cat.categories) == ["GENEA"]


def test_constant_genes_hidden(vst, metadata, annotated_result, gene_mapping):
    hidden = _prepare(vst, metadata, annotated_result, gene_mapping, ["GENEA", "GENED"])
    shown = _prepare(
        vst,
        metadata,
        annotated_result,
        gene_mapping,
        ["GENEA", "GENED"],
        hide_not_expressed=False,
    )

    assert list(hidden["gene_label"].cat.categories) == ["GENEA"]
    assert "GENED" in shown["gene_label"].cat.categories
    assert shown.loc[shown["external_gene_name"] == "GENED", "zscore"].isna().all()


def test_missing_value_keeps_gene(vst, metadata, annotated_result, gene_mapping):
    matrix = vst.copy()
    matrix.loc[GENE_IDS[0], "S2"] = np.nan

    data = _prepare(matrix, metadata, annotated_result, gene_mapping, ["GENEA", "GENEB"])

    assert list(data["gene_label"].cat.categories) == ["GENEA", "GENEB"]
    genea = data[data["ensembl_gene_id"] == GENE_IDS[0]].set_index("sample_name")
    assert len(genea) == 4
    assert np.isnan(genea.loc["S2", "zscore"])
    assert genea.loc["S1", "zscore"] == pytest.approx((1 - 8 / 3) / np.std([1, 3, 4], ddof=1))


def test_no_gene_to_show(vst, metadata, annotated_result, gene_mapping):
    with pytest.warns(DEFlowWarning):
        with pytest.raises(DataQualityError):
            _prepare(vst, metadata, annotated_result, gene_mapping, ["NOPE"])


def test_plot_heatmap_facets(vst, metadata, annotated_result, gene_mapping):
    fig = plot_heatmap(
        vst,
        metadata,
        annotated_result,
        ["GENEA", "GENEB", "DUP"],
        "replicate",
        "condition",
        gene_mapping,
        title="Selected genes",
    )

    assert isinstance(fig, plt.Figure)
    # one panel per condition plus the shared colorbar
    assert len(fig.axes) == 3
    assert fig.axes[0].get_title(loc="center") == "ctrl"
    assert fig.axes[1].get_title(loc="center") == "treated"
    assert fig.axes[0].get_ylabel() == "z-score (VST)"


def test_plot_heatmap_vst_values(vst, metadata, annotated_result, gene_mapping):
    fig = plot_heatmap(
        vst,
        metadata,
        annotated_result,
        ["GENEA", "GENEB"],
        "replicate",
        "condition",
        gene_mapping,
        plotting_value=PlottingValue.VST,
    )

    assert fig.axes[0].get_ylabel() == "VST"


def test_plot_heatmap_invalid_value(vst, metadata, annotated_result, gene_mapping):
    with pytest.raises(InvalidArgumentError):
        plot_heatmap(
            vst,
            metadata,
            annotated_result,
            ["GENEA"],
            "replicate",
            "condition",
            gene_mapping,
            plotting_value="log_counts",
        )
