"""
Gene set enrichment module for DEFlow

This module provides:
- Ranked gene lists for pre-ranked GSEA
- GSEA and over-representation analysis (ORA) through gseapy
- Gene set (term2gene) table loading and selection by MSigDB subcategory
- Bar plots of GSEA and ORA tables and multi-pathway running score curves
"""

from .curves import (PALETTE, extract_running_scores, layout_multi_pathway,
                     plot_multi_pathway_gsea, simplify_trace)
from .gene_sets import (read_term2gene, select_term2gene,
                        term2gene_from_gmt, term2gene_to_dict, write_gmt)
from .gsea import GSEA_COLUMNS, GSEARun, run_gsea
from .ora import ORA_COLUMNS, enrichment_ratio, run_ora
from .ranking import MissingValuePolicy, RankingMetric, prepare_ranking
from .visualization import (GSEASubgroup, ORAPlot, ORASubgroup, plot_gsea,
                            plot_ora, truncate_label)

__all__ = [
    "RankingMetric",
    "MissingValuePolicy",
    "prepare_ranking",
    "GSEA_COLUMNS",
    "GSEARun",
    "run_gsea",
    "ORA_COLUMNS",
    "enrichment_ratio",
    "run_ora",
    "read_term2gene",
    "select_term2gene",
    "term2gene_from_gmt",
    "term2gene_to_dict",
    "write_gmt",
    "GSEASubgroup",
    "ORASubgroup",
    "ORAPlot",
    "plot_gsea",
    "plot_ora",
    "truncate_label",
    "PALETTE",
    "extract_running_scores",
    "simplify_trace",
    "layout_multi_pathway",
    "plot_multi_pathway_gsea",
]
