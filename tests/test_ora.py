"""Tests for ORA, with gseapy.enrich replaced by a fake."""

from types import SimpleNamespace

import pandas as pd
import pytest

from deflow.enrichment import ora as ora_module
from deflow.enrichment.ora import (ORA_COLUMNS, enrichment_ratio, parse_ratio,
                                   run_ora, select_de_genes)


class FakeEnrich:
    """Computes overlaps like Enrichr and returns fixed p-values."""

    def __init__(self):
        self.calls = []

    def __call__(self, gene_list, gene_sets, background, **kwargs):
        self.calls.append(
            {"gene_list": list(gene_list), "gene_sets": gene_sets, "background": background}
        )
        rows = []
        for term, genes in gene_sets.items():
            hits = [g for g in gene_list if g in genes]
            if hits:
                rows.append(
                    {
                        "Gene_set": "gs_ind_0",
                        "Term": term,
                        "Overlap": f"{len(hits)}/{len(genes)}",
                        "P-value": 0.001,
                        "Adjusted P-value": 0.002,
                        "Odds Ratio": 5.0,
                        "Combined Score": 30.0,
                        "Genes": ";".join(hits),
                    }
                )
        return SimpleNamespace(results=pd.DataFrame(rows))


@pytest.fixture
def fake_enrich(monkeypatch):
    fake = FakeEnrich()
    monkeypatch.setattr(ora_module.gp, "enrich", fake)
    return fake


def test_enrichment_ratio_is_exact():
    assert enrichment_ratio("3/50", "30/20000") == 40.0
    assert enrichment_ratio("0/10", "5/100") == 0.0


def test_parse_ratio():
    assert parse_ratio("3/50").numerator == 3
    assert parse_ratio("3/50").denominator == 50


def test_select_de_genes(annotated_result):
    assert select_de_genes(annotated_result, "Up") == ["ENSG00000000001", "ENSG00000000003"]
    assert select_de_genes(annotated_result, "Down") == ["ENSG00000000002", "ENSG00000000005"]
    assert select_de_genes(annotated_result, "Up", log2fc_threshold=2) == ["ENSG00000000001"]


def test_run_ora_up_and_down(annotated_result, term2gene, fake_enrich):
    table = run_ora(annotated_result, "CP:REACTOME", term2gene, min_size=2)

    assert list(table.columns) == ORA_COLUMNS
    assert list(table["direction"]) == ["Up", "Down"]
    assert list(table["ID"]) == ["SET_UP", "SET_DOWN"]

    up = table.iloc[0]
    assert up["GeneRatio"] == "2/2"
    assert up["BgRatio"] == "3/6"
    assert up["EnrichmentRatio"] == 2.0
    assert up["Count"] == 2
    assert up["geneID"] == "ENSG00000000001/ENSG00000000003"
    assert up["p.adjust"] == 0.002

    # universe defaults to every gene of the selected gene sets
    assert len(fake_enrich.calls[0]["background"]) == 6


def test_enrichment_ratio_never_negative(annotated_result, term2gene, fake_enrich):
    table = run_ora(annotated_result, "CP:REACTOME", term2gene, min_size=2)

    assert (table["EnrichmentRatio"] >= 0).all()


def test_custom_universe(annotated_result, term2gene, fake_enrich):
    universe = term2gene["ensembl_gene"].unique().tolist() + ["ENSG00000000007"]
    table = run_ora(
        annotated_result,
        term2gene[["gs_name", "ensembl_gene"]],
        min_size=2,
        universe=universe,
    )

    # SET_KEGG (2 genes) is hit by both directions
    assert set(table["BgRatio"]) == {"3/7", "2/7"}
    assert (table["ID"] == "SET_KEGG").sum() == 2


def test_no_significant_genes_in_one_direction(annotated_result, term2gene, fake_enrich):
    result = annotated_result.copy()
    result.loc[result["log2FoldChange"] < 0, "padj"] = 0.9

    table = run_ora(result, "CP:REACTOME", term2gene, min_size=2)

    assert list(table["direction"]) == ["Up"]
    assert len(fake_enrich.calls) == 1


def test_gene_sets_too_small(annotated_result, term2gene, fake_enrich):
    table = run_ora(annotated_result, "CP:REACTOME", term2gene)

    assert table.empty
    assert list(table.columns) == ORA_COLUMNS
    assert fake_enrich.calls == []
