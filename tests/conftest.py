"""Shared fixtures for DEFlow tests.

Small, hand-made result tables and lookup tables; no network access and no
external tools are needed.
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from deflow.differential import annotate_results

GENE_IDS = [f"ENSG{i:011d}" for i in range(1, 9)]


@pytest.fixture(autouse=True)
def close_figures():
    """Close figures created by a test."""
    yield
    plt.close("all")


@pytest.fixture
def gene_mapping():
    """Gene identifier mapping; DUP is shared by two identifiers."""
    return pd.DataFrame(
        {
            "ensembl_gene_id": GENE_IDS,
            "external_gene_name": [
                "GENEA",
                "GENEB",
                "GENEC",
                "GENED",
                "DUP",
                "DUP",
                "GENEG",
                "GENEH",
            ],
            "gene_biotype": [
                "protein_coding",
                "protein_coding",
                "lncRNA",
                "protein_coding",
                "protein_coding",
                "protein_coding",
                "protein_coding",
                "misc_RNA",
            ],
            "description": [f"gene {i}" for i in range(1, 9)],
        }
    )


@pytest.fixture
def deseq2_table():
    """DESeq2 results() table indexed by Ensembl gene id."""
    return pd.DataFrame(
        {
            "baseMean": [1500.0, 800.0, 50.0, 300.0, 120.0, 90.0, 10.0, 5.0],
            "log2FoldChange": [3.0, -2.5, 1.5, 0.2, -1.2, np.nan, 0.5, -0.1],
            "lfcSE": [0.3, 0.4, 0.5, 0.2, 0.3, np.nan, 0.9, 1.0],
            "stat": [10.0, -6.2, 3.0, 1.0, -4.0, np.nan, 0.6, -0.1],
            "pvalue": [1e-20, 1e-8, 0.003, 0.3, 1e-4, np.nan, 0.5, 0.9],
            "padj": [1e-18, 1e-6, 0.01, 0.5, 0.001, np.nan, np.nan, 0.95],
        },
        index=pd.Index(GENE_IDS, name=None),
    )


@pytest.fixture
def edger_table(deseq2_table):
    """edgeR topTags() table with the same numbers as deseq2_table."""
    return pd.DataFrame(
        {
            "logFC": deseq2_table["log2FoldChange"],
            "logCPM": deseq2_table["baseMean"],
            "F": deseq2_table["stat"],
            "PValue": deseq2_table["pvalue"],
            "FDR": deseq2_table["padj"],
        },
        index=deseq2_table.index,
    )


@pytest.fixture
def annotated_result(deseq2_table, gene_mapping):
    return annotate_results(deseq2_table, "DESeq2", gene_mapping)


@pytest.fixture
def term2gene():
    """Gene sets from two subcategories."""
    rows = [
        ("SET_UP", GENE_IDS[0], "CP:REACTOME"),
        ("SET_UP", GENE_IDS[2], "CP:REACTOME"),
        ("SET_UP", GENE_IDS[3], "CP:REACTOME"),
        ("SET_DOWN", GENE_IDS[1], "CP:REACTOME"),
        ("SET_DOWN", GENE_IDS[4], "CP:REACTOME"),
        ("SET_DOWN", GENE_IDS[7], "CP:REACTOME"),
        ("SET_KEGG", GENE_IDS[0], "CP:KEGG"),
        ("SET_KEGG", GENE_IDS[1], "CP:KEGG"),
    ]
    return pd.DataFrame(rows, columns=["gs_name", "ensembl_gene", "gs_subcat"])
