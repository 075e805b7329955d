"""
Running enrichment score curves of several gene sets in one panel

Gene sets may come from different GSEA runs. Each curve gets a row of
member ticks and a statistics label below the x axis; the vertical layout
is expressed in units of the running score range so that it does not
depend on the data scale.
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ..exceptions import DataQualityError
from ..utils import get_logger
from ..visualization.theme import fixed_panel_figure, format_signif, theme_context
from .gsea import TRACE_COLUMNS, GSEARun

logger = get_logger(__name__)

PALETTE = ["#297FB9", "#C03A2B", "#25AF60", "#8F44AD", "#2D3E50", "#F49C12"]

PANEL_WIDTH_CM = 3.0
PANEL_HEIGHT_CM = 2.13
X_BREAK_STEP = 5000


@dataclass
class MultiPathwayLayout:
    """Curve data and label positions for plot_multi_pathway_gsea"""

    traces: pd.DataFrame  # TRACE_COLUMNS plus y and yend of member ticks
    labels: pd.DataFrame  # Description, label, y
    es_points: pd.DataFrame  # x, Description, runningScore of max |ES|
    ymin: float
    ymax: float
    gene_set_ids: List[str]  # present gene sets in plotting order


def _as_runs(gsea_results: Union[GSEARun, Sequence[GSEARun]]) -> List[GSEARun]:
    if isinstance(gsea_results, GSEARun):
        return [gsea_results]
    return list(gsea_results)


def extract_running_scores(
    gsea_results: Union[GSEARun, Sequence[GSEARun]], gene_set_ids: Sequence[str]
) -> pd.DataFrame:
    """
    Concatenate the running score traces of the requested gene sets

    Gene sets missing from a run are skipped.
    """
    traces = []
    for run in _as_runs(gsea_results):
        available = set(run.engine_result.results) if run.engine_result is not None else set()
        for gene_set_id in gene_set_ids:
            if gene_set_id in available:
                traces.append(run.trace(gene_set_id))

    if not traces:
        return pd.DataFrame(columns=TRACE_COLUMNS)
    return pd.concat(traces, ignore_index=True)


def simplify_trace(traces: pd.DataFrame) -> pd.DataFrame:
    """
    Drop points lying strictly between a higher previous and a lower next point

    Applied per Description. First and last points, and any point with a
    missing neighbour, are kept.
    """
    grouped = traces.groupby("Description", sort=False)["runningScore"]
    previous = grouped.shift(1)
    following = grouped.shift(-1)

    descending = (traces["runningScore"] < previous) & (traces["runningScore"] > following)
    keep = ~descending | previous.isna() | following.isna()
    return traces[keep].reset_index(drop=True)


def _combined_table(gsea_results) -> pd.DataFrame:
    tables = [run.table for run in _as_runs(gsea_results)]
    table = pd.concat(tables, ignore_index=True)
    # tables exported by older clusterProfiler versions
    if "qvalue" not in table.columns and "qvalues" in table.columns:
        table = table.rename(columns={"qvalues": "qvalue"})
    return table


def stat_label(nes: float, pvalue: float, qvalue: float) -> str:
    return (
        f"NES: {format_signif(nes)}; p: {format_signif(pvalue)}; "
        f"padj: {format_signif(qvalue)}"
    )


def layout_multi_pathway(
    gsea_results: Union[GSEARun, Sequence[GSEARun]],
    gene_set_ids: Sequence[str],
    simplify_curve: bool = True,
) -> MultiPathwayLayout:
    """
    Compute curves, member tick rows and label positions

    With r the running score range, the y range is padded by 5 % of r, and
    for the i-th gene set (1-based, in gene_set_ids order among those found)
    member ticks span yend = ymin - 0.35r - 0.3ir to yend - 0.047r and the
    label sits at ymin - 0.23r - 0.3ir.
    """
    traces = extract_running_scores(gsea_results, gene_set_ids)
    if traces.empty:
        raise DataQualityError(
            f"None of the gene sets {list(gene_set_ids)} is present in the GSEA results"
        )

    if simplify_curve:
        n_before = len(traces)
        traces = simplify_trace(traces)
        logger.debug(f"Simplified curves from {n_before} to {len(traces)} points")

    present = [g for g in dict.fromkeys(gene_set_ids) if g in set(traces["Description"])]
    order = {gene_set_id: i for i, gene_set_id in enumerate(present, start=1)}

    score_min = traces["runningScore"].min()
    score_max = traces["runningScore"].max()
    r = score_max - score_min
    ymin = score_min - 0.05 * r
    ymax = score_max + 0.05 * r

    index = traces["Description"].map(order)
    traces = traces.assign(
        yend=ymin - 0.35 * r - 0.3 * index * r,
    )
    traces["y"] = traces["yend"] - 0.047 * r

    table = _combined_table(gsea_results)
    table = table[table["Description"].isin(present)].drop_duplicates("Description")
    labels = pd.DataFrame(
        {
            "Description": table["Description"].to_numpy(),
            "label": [
                stat_label(nes, p, q)
                for nes, p, q in zip(table["NES"], table["pvalue"], table["qvalue"])
            ],
            "y": [ymin - 0.23 * r - 0.3 * order[d] * r for d in table["Description"]],
        }
    )

    idx_max = traces.groupby("Description", sort=False)["runningScore"].apply(
        lambda s: s.abs().idxmax()
    )
    es_points = traces.loc[idx_max.to_numpy(), ["x", "Description", "runningScore"]]

    return MultiPathwayLayout(
        traces=traces,
        labels=labels.reset_index(drop=True),
        es_points=es_points.reset_index(drop=True),
        ymin=ymin,
        ymax=ymax,
        gene_set_ids=present,
    )


def plot_multi_pathway_gsea(
    gsea_results: Union[GSEARun, Sequence[GSEARun]],
    gene_set_ids: Sequence[str],
    genes_alpha: float = 0.5,
    simplify_curve: bool = True,
    line_colors: Sequence[str] = PALETTE,
) -> plt.Figure:
    """
    Overlay running enrichment score curves of several gene sets

    Args:
        gsea_results: One GSEARun or a list of them
        gene_set_ids: Gene sets to draw, in legend and label order
        genes_alpha: Opacity of the member ticks
        simplify_curve: Thin out monotonically decreasing stretches
        line_colors: Colours assigned in gene set order, cycling

    Returns:
        matplotlib Figure
    """
    layout = layout_multi_pathway(gsea_results, gene_set_ids, simplify_curve)
    colors = {
        gene_set_id: line_colors[i % len(line_colors)]
        for i, gene_set_id in enumerate(layout.gene_set_ids)
    }

    n_sets = len(layout.gene_set_ids)
    # space below the panel for tick rows and labels, proportional to r
    below_cm = PANEL_HEIGHT_CM * (0.397 + 0.3 * n_sets) / 1.1
    x_max = layout.traces["x"].max()

    with theme_context({"axes.linewidth": 0.33, "xtick.labelsize": 8, "ytick.labelsize": 8}):
        fig, (ax,) = fixed_panel_figure(
            PANEL_WIDTH_CM,
            [PANEL_HEIGHT_CM],
            margins_cm={
                "left": 1.5,
                "right": 8.0,
                "top": 0.3 + 0.5 * np.ceil(n_sets / 2),
                "bottom": below_cm + 0.3,
            },
        )

        ax.axhline(0, color="#a9aaaa", linestyle="--", linewidth=0.33)

        for _, point in layout.es_points.iterrows():
            ax.plot(
                [point["x"], point["x"]],
                [0, point["runningScore"]],
                color=colors[point["Description"]],
                linestyle="--",
                linewidth=0.33,
            )

        for gene_set_id in layout.gene_set_ids:
            curve = layout.traces[layout.traces["Description"] == gene_set_id]
            ax.plot(
                curve["x"],
                curve["runningScore"],
                color=colors[gene_set_id],
                linewidth=0.7,
                label=gene_set_id,
            )

            members = curve[curve["position"] == 1]
            if not members.empty:
                ax.vlines(
                    members["x"],
                    members["y"],
                    members["yend"],
                    color=colors[gene_set_id],
                    linewidth=0.3,
                    alpha=genes_alpha,
                    clip_on=False,
                )

        for _, row in layout.labels.iterrows():
            ax.text(
                0, row["y"], row["label"], ha="left", va="center", fontsize=8, clip_on=False
            )

        ax.set_xlim(0, x_max)
        ax.set_ylim(layout.ymin, layout.ymax)
        ax.set_xticks(np.arange(0, x_max + 1, X_BREAK_STEP))
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
        ax.set_xlabel("Gene Rank")
        ax.set_ylabel("Enrichment Score")
        ax.legend(
            loc="lower left",
            bbox_to_anchor=(0, 1.02),
            ncol=2,
            frameon=False,
            handlelength=0.8,
            borderaxespad=0,
        )

    logger.info(f"Plotted running scores of {n_sets} gene sets")
    return fig
