"""
Pre-ranked gene set enrichment analysis (GSEA)

The permutation test itself is done by ``gseapy.prerank``; this module
builds its inputs and reshapes its output into a table with the column
names used by clusterProfiler, so that tables from either tool can be
plotted the same way.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Union

import gseapy as gp
import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from ..exceptions import DataQualityError
from ..utils import get_logger, log_execution_time
from .gene_sets import (Annotation, filter_gene_sets_by_size,
                        select_term2gene, term2gene_to_dict)
from .ranking import MissingValuePolicy, RankingMetric, prepare_ranking

logger = get_logger(__name__)

GSEA_COLUMNS = [
    "ID",
    "Description",
    "setSize",
    "enrichmentScore",
    "NES",
    "pvalue",
    "p.adjust",
    "qvalue",
    "core_enrichment",
]

TRACE_COLUMNS = ["x", "runningScore", "position", "Description"]


@dataclass
class GSEARun:
    """GSEA table together with the inputs needed to redraw running scores"""

    table: pd.DataFrame
    ranking: pd.Series
    engine_result: Any = None

    def trace(self, gene_set_id: str) -> pd.DataFrame:
        """
        Running enrichment score of one gene set along the ranking

        Returns:
            DataFrame with x (1-based rank), runningScore, position
            (1 for gene set members, else 0) and Description
        """
        if self.engine_result is None or gene_set_id not in self.engine_result.results:
            raise KeyError(f"No running score recorded for gene set {gene_set_id!r}")

        record = self.engine_result.results[gene_set_id]
        running_score = np.asarray(record["RES"], dtype=float)
        position = np.zeros(len(running_score), dtype=int)
        position[np.asarray(record["hits"], dtype=int)] = 1

        return pd.DataFrame(
            {
                "x": np.arange(1, len(running_score) + 1),
                "runningScore": running_score,
                "position": position,
                "Description": gene_set_id,
            }
        )

    def gene_set_ids(self) -> List[str]:
        return self.table["ID"].tolist()


def empty_gsea_table() -> pd.DataFrame:
    return pd.DataFrame(columns=GSEA_COLUMNS)


def adjust_pvalues(pvalues: pd.Series) -> pd.Series:
    """Benjamini-Hochberg adjustment ignoring missing p-values"""
    adjusted = pd.Series(np.nan, index=pvalues.index, dtype=float)
    mask = pvalues.notna()
    if mask.any():
        adjusted[mask] = multipletests(
            pvalues[mask].astype(float), method="fdr_bh"
        )[1]
    return adjusted


def format_gsea_table(res2d: pd.DataFrame, eps: float = 0.0) -> pd.DataFrame:
    """
    Convert a gseapy ``res2d`` table into the GSEA result table

    Args:
        res2d: Table from gseapy.prerank
        eps: Lower bound applied to nominal p-values when > 0

    Returns:
        Table with GSEA_COLUMNS sorted by pvalue
    """
    if res2d is None or res2d.empty:
        return empty_gsea_table()

    table = pd.DataFrame(
        {
            "ID": res2d["Term"].astype(str),
            "Description": res2d["Term"].astype(str),
            # Tag % is "<leading edge size>/<set size>"
            "setSize": [int(str(tag).split("/")[1]) for tag in res2d["Tag %"]],
            "enrichmentScore": pd.to_numeric(res2d["ES"], errors="coerce"),
            "NES": pd.to_numeric(res2d["NES"], errors="coerce"),
            "pvalue": pd.to_numeric(res2d["NOM p-val"], errors="coerce"),
            "qvalue": pd.to_numeric(res2d["FDR q-val"], errors="coerce"),
            "core_enrichment": res2d["Lead_genes"].fillna("").astype(str).str.replace(";", "/"),
        }
    )

    if eps > 0:
        table["pvalue"] = table["pvalue"].clip(lower=eps)

    table["p.adjust"] = adjust_pvalues(table["pvalue"])
    table = table.sort_values("pvalue", kind="stable").reset_index(drop=True)
    return table[GSEA_COLUMNS]


@log_execution_time
def run_gsea(
    result: pd.DataFrame,
    annotation: Annotation,
    term2gene: Optional[pd.DataFrame] = None,
    ranking_metric: Union[str, RankingMetric] = RankingMetric.LOG2_FOLD_CHANGE,
    missing: Union[str, MissingValuePolicy] = MissingValuePolicy.IMPUTE,
    min_size: int = 5,
    max_size: int = 2000,
    permutations: int = 10000,
    eps: float = 0.0,
    seed: int = 42,
    threads: int = 1,
    to_dataframe: bool = True,
) -> Union[pd.DataFrame, GSEARun]:
    """
    Run pre-ranked GSEA on a result table

    Args:
        result: Unified result table (see annotate_results)
        annotation: Subcategory key of term2gene or a custom term2gene table
        term2gene: Gene set table used with a subcategory key
        ranking_metric: Metric passed to prepare_ranking
        missing: Missing value policy passed to prepare_ranking
        min_size: Smallest gene set tested (genes present in the ranking)
        max_size: Largest gene set tested (genes present in the ranking)
        permutations: Number of gene set permutations
        eps: Lower bound of reported nominal p-values (0 disables it)
        seed: Random seed of the permutations
        threads: Worker threads used by gseapy
        to_dataframe: Return only the table instead of a GSEARun

    Returns:
        GSEA table, or a GSEARun holding table, ranking and engine result
    """
    ranking = prepare_ranking(result, ranking_metric, missing)
    if ranking.empty:
        raise DataQualityError("Cannot run GSEA on an empty ranking")

    selected = select_term2gene(annotation, term2gene)
    gene_sets = filter_gene_sets_by_size(
        term2gene_to_dict(selected), min_size, max_size, ranking.index
    )

    if not gene_sets:
        logger.warning(
            f"No gene sets with {min_size}-{max_size} genes in the ranking; "
            "returning an empty GSEA table"
        )
        table = empty_gsea_table()
        return table if to_dataframe else GSEARun(table=table, ranking=ranking)

    if ranking.duplicated().any():
        logger.debug("Ranking contains tied scores; gseapy breaks ties by input order")

    logger.info(
        f"Running GSEA on {len(ranking)} ranked genes and {len(gene_sets)} gene sets "
        f"({permutations} permutations)"
    )
    pre_res = gp.prerank(
        rnk=ranking,
        gene_sets=gene_sets,
        min_size=min_size,
        max_size=max_size,
        permutation_num=permutations,
        seed=seed,
        threads=threads,
        outdir=None,
        no_plot=True,
        verbose=False,
    )

    table = format_gsea_table(pre_res.res2d, eps=eps)

    n_significant = int((table["p.adjust"] <= 0.05).sum())
    logger.info(
        f"GSEA finished: {len(table)} gene sets tested, {n_significant} with p.adjust <= 0.05"
    )

    if to_dataframe:
        return table
    return GSEARun(table=table, ranking=ranking, engine_result=pre_res)
