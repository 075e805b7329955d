"""GSEA and ORA against the real gseapy engine on a small synthetic dataset."""

import numpy as np
import pandas as pd
import pytest

from deflow.enrichment import GSEA_COLUMNS, ORA_COLUMNS, run_gsea, run_ora
from deflow.enrichment.curves import layout_multi_pathway

N_GENES = 300
GENE_IDS = [f"ENSG{i:011d}" for i in range(1, N_GENES + 1)]


@pytest.fixture
def ranked_result():
    return pd.DataFrame(
        {
            "ensembl_gene_id": GENE_IDS,
            "log2FoldChange": np.linspace(3, -3, N_GENES),
            "pvalue": 0.001,
            "padj": 0.01,
        }
    )


@pytest.fixture
def gene_sets():
    sets = {
        "SET_TOP": GENE_IDS[:20],
        "SET_BOTTOM": GENE_IDS[-20:],
        "SET_SPREAD": GENE_IDS[7::15],
    }
    rows = [(name, gene) for name, genes in sets.items() for gene in genes]
    return pd.DataFrame(rows, columns=["gs_name", "ensembl_gene"])


def test_gsea_engine_output(ranked_result, gene_sets):
    run = run_gsea(
        ranked_result,
        gene_sets,
        min_size=5,
        permutations=100,
        seed=1,
        to_dataframe=False,
    )

    table = run.table.set_index("ID")
    assert list(run.table.columns) == GSEA_COLUMNS
    assert set(table.index) == {"SET_TOP", "SET_BOTTOM", "SET_SPREAD"}
    assert table.loc["SET_TOP", "setSize"] == 20
    assert table.loc["SET_TOP", "NES"] > 0
    assert table.loc["SET_BOTTOM", "NES"] < 0
    assert table.loc["SET_TOP", "core_enrichment"].startswith(GENE_IDS[0])
    assert table["pvalue"].between(0, 1).all()

    trace = run.trace("SET_TOP")
    assert len(trace) == N_GENES
    assert trace["position"].sum() == 20
    assert list(trace.loc[trace["position"] == 1, "x"])[:2] == [1, 2]


def test_curves_from_engine_output(ranked_result, gene_sets):
    run = run_gsea(
        ranked_result, gene_sets, min_size=5, permutations=100, seed=1, to_dataframe=False
    )

    layout = layout_multi_pathway(run, ["SET_TOP", "SET_BOTTOM"])

    assert layout.gene_set_ids == ["SET_TOP", "SET_BOTTOM"]
    points = layout.es_points.set_index("Description")
    assert points.loc["SET_TOP", "runningScore"] > 0
    assert points.loc["SET_BOTTOM", "runningScore"] < 0


def test_ora_engine_output(ranked_result, gene_sets):
    table = run_ora(ranked_result, gene_sets, min_size=5)

    assert list(table.columns) == ORA_COLUMNS
    top = table[(table["ID"] == "SET_TOP") & (table["direction"] == "Up")].iloc[0]
    assert top["Count"] == 20
    assert len(top["geneID"].split("/")) == 20
    assert top["BgRatio"].startswith("20/")
    assert 0 <= top["pvalue"] <= 1
    assert top["EnrichmentRatio"] > 1
