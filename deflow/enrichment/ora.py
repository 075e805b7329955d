"""
Over-representation analysis (ORA) of up- and downregulated genes

Up- and downregulated genes are tested separately with the hypergeometric
test of ``gseapy.enrich`` and the two tables are stacked with a
``direction`` column.
"""

from fractions import Fraction
from typing import Iterable, List, Optional

import gseapy as gp
import pandas as pd

from ..utils import get_logger, log_execution_time, require_columns
from .gene_sets import (Annotation, filter_gene_sets_by_size,
                        select_term2gene, term2gene_to_dict)

logger = get_logger(__name__)

ORA_COLUMNS = [
    "ID",
    "Description",
    "GeneRatio",
    "BgRatio",
    "pvalue",
    "p.adjust",
    "qvalue",
    "geneID",
    "Count",
    "direction",
    "EnrichmentRatio",
]

DIRECTIONS = ("Up", "Down")


def parse_ratio(ratio: str) -> Fraction:
    """Parse a "k/n" string into an exact fraction"""
    numerator, denominator = str(ratio).split("/")
    return Fraction(int(numerator), int(denominator))


def enrichment_ratio(gene_ratio: str, bg_ratio: str) -> float:
    """
    (k/n) / (M/N) computed on exact fractions

    Example:
        enrichment_ratio("3/50", "30/20000") == 40.0
    """
    return float(parse_ratio(gene_ratio) / parse_ratio(bg_ratio))


def empty_ora_table() -> pd.DataFrame:
    return pd.DataFrame(columns=ORA_COLUMNS)


def select_de_genes(
    result: pd.DataFrame,
    direction: str,
    log2fc_threshold: float = 1.0,
    padj_threshold: float = 0.05,
) -> List[str]:
    """
    Gene identifiers passing the thresholds in one direction

    Up: log2FoldChange > t and padj < p; Down: log2FoldChange < -t and padj < p.
    Genes with a missing fold change or padj never pass.
    """
    lfc = result["log2FoldChange"].astype(float)
    significant = result["padj"].astype(float) < padj_threshold

    if direction == "Up":
        mask = significant & (lfc > log2fc_threshold)
    else:
        mask = significant & (lfc < -log2fc_threshold)

    return result.loc[mask, "ensembl_gene_id"].astype(str).tolist()


def _enrich_one(
    genes: List[str],
    gene_sets: dict,
    universe: List[str],
    direction: str,
) -> pd.DataFrame:
    universe_set = set(universe)
    query = [g for g in dict.fromkeys(genes) if g in universe_set]
    if not query:
        logger.info(f"No {direction.lower()}regulated genes in the gene set universe")
        return empty_ora_table()

    enr = gp.enrich(
        gene_list=query,
        gene_sets=gene_sets,
        background=universe,
        outdir=None,
        cutoff=1.0,
        no_plot=True,
        verbose=False,
    )
    engine_table = enr.results
    if engine_table is None or engine_table.empty:
        return empty_ora_table()

    n_query = len(query)
    n_universe = len(universe)

    rows = []
    for _, row in engine_table.iterrows():
        term = row["Term"]
        overlap = str(row["Overlap"]).split("/")
        count = int(overlap[0])
        set_size = len(gene_sets[term]) if term in gene_sets else int(overlap[1])
        genes_hit = str(row["Genes"]).split(";") if pd.notna(row["Genes"]) else []
        rows.append(
            {
                "ID": term,
                "Description": term,
                "GeneRatio": f"{count}/{n_query}",
                "BgRatio": f"{set_size}/{n_universe}",
                "pvalue": float(row["P-value"]),
                "p.adjust": float(row["Adjusted P-value"]),
                "qvalue": float(row["Adjusted P-value"]),
                "geneID": "/".join(genes_hit),
                "Count": count,
                "direction": direction,
            }
        )

    table = pd.DataFrame(rows)
    table = table[table["Count"] > 0]
    return table.sort_values("pvalue", kind="stable")


@log_execution_time
def run_ora(
    result: pd.DataFrame,
    annotation: Annotation,
    term2gene: Optional[pd.DataFrame] = None,
    log2fc_threshold: float = 1.0,
    padj_threshold: float = 0.05,
    min_size: int = 5,
    max_size: int = 500,
    universe: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Run ORA separately on up- and downregulated genes

    Args:
        result: Unified result table (see annotate_results)
        annotation: Subcategory key of term2gene or a custom term2gene table
        term2gene: Gene set table used with a subcategory key
        log2fc_threshold: Absolute log2 fold change a gene must exceed
        padj_threshold: Adjusted p-value a gene must fall below
        min_size: Smallest gene set tested (genes within the universe)
        max_size: Largest gene set tested (genes within the universe)
        universe: Background genes; defaults to every gene of the gene sets

    Returns:
        ORA table (ORA_COLUMNS) with Up rows before Down rows
    """
    require_columns(
        result, ["ensembl_gene_id", "log2FoldChange", "padj"], "result table"
    )

    selected = select_term2gene(annotation, term2gene)
    all_sets = term2gene_to_dict(selected)

    if universe is None:
        universe_list = list(dict.fromkeys(selected["ensembl_gene"].astype(str)))
    else:
        universe_list = list(dict.fromkeys(str(g) for g in universe))

    gene_sets = filter_gene_sets_by_size(all_sets, min_size, max_size, universe_list)
    if not gene_sets:
        logger.warning(
            f"No gene sets with {min_size}-{max_size} genes in the universe; "
            "returning an empty ORA table"
        )
        return empty_ora_table()

    tables = []
    for direction in DIRECTIONS:
        genes = select_de_genes(result, direction, log2fc_threshold, padj_threshold)
        logger.info(f"ORA on {len(genes)} {direction.lower()}regulated genes")
        if not genes:
            continue
        tables.append(_enrich_one(genes, gene_sets, universe_list, direction))

    tables = [t for t in tables if not t.empty]
    if not tables:
        logger.warning("No enriched gene sets found")
        return empty_ora_table()

    ora = pd.concat(tables, ignore_index=True)
    ora["EnrichmentRatio"] = [
        enrichment_ratio(g, b) for g, b in zip(ora["GeneRatio"], ora["BgRatio"])
    ]
    ora["Count"] = ora["Count"].astype(int)

    n_significant = int((ora["qvalue"] <= 0.05).sum())
    logger.info(
        f"ORA finished: {len(ora)} gene sets tested, {n_significant} with qvalue <= 0.05"
    )
    return ora[ORA_COLUMNS]
