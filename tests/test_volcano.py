"""Tests for volcano classification, labelling and plotting."""

import numpy as np
import pytest

from deflow.differential import classify_volcano, volcano_plot


def _labels(df):
    return sorted(df["label"].dropna())


def test_color_classes(annotated_result):
    df = classify_volcano(annotated_result).set_index("ensembl_gene_id")

    assert df.loc["ENSG00000000001", "color"] == "up"
    assert df.loc["ENSG00000000003", "color"] == "up"
    assert df.loc["ENSG00000000002", "color"] == "down"
    assert df.loc["ENSG00000000005", "color"] == "down"
    # not significant, or padj missing
    assert df.loc["ENSG00000000004", "color"] is None
    assert df.loc["ENSG00000000007", "color"] is None


def test_descore(annotated_result):
    df = classify_volcano(annotated_result).set_index("ensembl_gene_id")

    assert df.loc["ENSG00000000002", "DEscore"] == pytest.approx(20.0)
    assert np.isnan(df.loc["ENSG00000000006", "DEscore"])


def test_fraction_zero_labels_nothing(annotated_result):
    df = classify_volcano(annotated_result, label_fraction=0)

    assert df["label"].isna().all()


def test_fraction_one_labels_every_passing_gene(annotated_result):
    df = classify_volcano(annotated_result, label_fraction=1)

    assert _labels(df) == ["DUP", "GENEA", "GENEB", "GENEC"]


def test_fraction_selects_top_scores(annotated_result):
    df = classify_volcano(annotated_result, label_fraction=0.25)

    assert _labels(df) == ["GENEA"]


def test_protein_coding_label_only(annotated_result):
    df = classify_volcano(annotated_result, label_fraction=1, protein_coding_label_only=True)

    assert "GENEC" not in _labels(df)
    assert len(_labels(df)) == 3


def test_thresholds_change_classes(annotated_result):
    df = classify_volcano(annotated_result, log2fc_threshold=2, label_fraction=1)

    assert (df["color"] == "up").sum() == 1
    assert _labels(df) == ["GENEA", "GENEB"]


def test_zero_pvalue_gets_labelled(annotated_result):
    result = annotated_result.copy()
    result.loc[0, "pvalue"] = 0.0

    df = classify_volcano(result, label_fraction=0.25)

    assert _labels(df) == ["GENEA"]


def test_volcano_plot(annotated_result):
    fig = volcano_plot(annotated_result, title="Treated vs control", label_fraction=1)

    ax = fig.axes[0]
    assert ax.get_xlim() == (-3.0, 3.0)
    assert ax.get_title(loc="left") == "Treated vs control"
    assert {"DUP", "GENEA", "GENEB", "GENEC"} <= {t.get_text() for t in ax.texts}


def test_zero_padj_drawn_at_panel_top(annotated_result):
    result = annotated_result.copy()
    result.loc[0, "padj"] = 0.0

    fig = volcano_plot(result, label_fraction=1)

    ax = fig.axes[0]
    assert "GENEA" in {t.get_text() for t in ax.texts}
    offsets = np.concatenate([np.ma.getdata(c.get_offsets()) for c in ax.collections])
    # every gene with a padj gets a finite position
    assert np.isfinite(offsets).all(axis=1).sum() == result["padj"].notna().sum()
    top = offsets[np.isfinite(offsets).all(axis=1), 1].max()
    assert top == pytest.approx(-np.log10(1e-6) * 1.05)
