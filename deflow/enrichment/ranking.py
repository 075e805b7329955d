"""
Ranked gene lists for pre-ranked GSEA
"""

from enum import Enum
from typing import Union

import numpy as np
import pandas as pd

from ..utils import coerce_choice, get_logger, require_columns

logger = get_logger(__name__)


class RankingMetric(str, Enum):
    """Score used to rank genes"""

    LOG2_FOLD_CHANGE = "log2FoldChange"
    SIGNED_PVALUE = "signed_pvalue"
    COMBINED_SCORE = "combined_score"


class MissingValuePolicy(str, Enum):
    """What to do with genes whose score cannot be computed"""

    DROP = "drop"
    IMPUTE = "impute"


def _neg_log10(values: pd.Series) -> pd.Series:
    with np.errstate(divide="ignore"):
        return -np.log10(values.astype(float))


def prepare_ranking(
    result: pd.DataFrame,
    ranking_metric: Union[str, RankingMetric] = RankingMetric.LOG2_FOLD_CHANGE,
    missing: Union[str, MissingValuePolicy] = MissingValuePolicy.IMPUTE,
) -> pd.Series:
    """
    Build the ranked gene list used as GSEA input

    Scores per metric:
        log2FoldChange: log2FoldChange
        signed_pvalue:  sign(log2FoldChange) * -log10(pvalue)
        combined_score: log2FoldChange * -log10(pvalue)

    With the impute policy a missing fold change counts as 0 and a missing
    p-value as 1, so those genes get a neutral score of 0. With the drop
    policy they are removed.

    Args:
        result: Unified result table (see annotate_results)
        ranking_metric: One of RankingMetric
        missing: One of MissingValuePolicy

    Returns:
        Series of scores indexed by ensembl_gene_id, sorted in decreasing
        order; ties keep the row order of result.
    """
    metric = coerce_choice(ranking_metric, RankingMetric, "ranking metric")
    policy = coerce_choice(missing, MissingValuePolicy, "missing value policy")

    required = ["ensembl_gene_id", "log2FoldChange"]
    if metric is not RankingMetric.LOG2_FOLD_CHANGE:
        required.append("pvalue")
    require_columns(result, required, "result table")

    data = result[required].copy()
    n_input = len(data)

    if metric is RankingMetric.LOG2_FOLD_CHANGE:
        if policy is MissingValuePolicy.DROP:
            data = data.dropna(subset=["log2FoldChange"])
        else:
            data["log2FoldChange"] = data["log2FoldChange"].fillna(0)
        scores = data["log2FoldChange"].astype(float)

    elif metric is RankingMetric.SIGNED_PVALUE:
        if policy is MissingValuePolicy.DROP:
            data = data.dropna(subset=["pvalue", "log2FoldChange"])
        else:
            data["pvalue"] = data["pvalue"].fillna(1)
            data["log2FoldChange"] = data["log2FoldChange"].fillna(0)
        scores = np.sign(data["log2FoldChange"].astype(float)) * _neg_log10(
            data["pvalue"]
        )

    else:
        scores = data["log2FoldChange"].astype(float) * _neg_log10(data["pvalue"])
        if policy is MissingValuePolicy.DROP:
            keep = scores.notna()
            data = data[keep]
            scores = scores[keep]
        else:
            scores = scores.fillna(0)

    ranking = pd.Series(
        scores.to_numpy(),
        index=pd.Index(data["ensembl_gene_id"].astype(str), name="ensembl_gene_id"),
        name="score",
    )
    ranking = ranking.sort_values(ascending=False, kind="stable")

    if len(ranking) < n_input:
        logger.info(
            f"Dropped {n_input - len(ranking)} genes with missing {metric.value} inputs"
        )
    if np.isinf(ranking.to_numpy()).any():
        logger.warning(
            "Ranking contains infinite scores (p-values of 0); consider log2FoldChange"
        )

    logger.debug(f"Prepared {metric.value} ranking of {len(ranking)} genes")
    return ranking
