"""
Volcano plots of annotated differential expression results
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from adjustText import adjust_text

from ..utils import get_logger, require_columns
from ..visualization.theme import BASE_LINE_WIDTH, CM, style_axes, theme_context

logger = get_logger(__name__)

VOLCANO_COLORS = {"up": "#FF4040", "down": "dodgerblue"}  # brown1 / dodgerblue
BACKGROUND_COLOR = "grey"


def classify_volcano(
    result: pd.DataFrame,
    log2fc_threshold: float = 1.0,
    padj_threshold: float = 0.05,
    label_fraction: float = 0.005,
    protein_coding_label_only: bool = False,
) -> pd.DataFrame:
    """
    Assign volcano colour classes and the labels to draw

    A gene is "up" if log2FoldChange >= t and padj <= p, "down" if
    log2FoldChange <= -t and padj <= p, otherwise None. Among genes passing
    both thresholds (and, optionally, protein coding), those whose
    DEscore = |log2FoldChange * -log10(pvalue)| reaches the (1 - fraction)
    quantile get their gene symbol as label.

    Args:
        result: Unified result table
        log2fc_threshold: Absolute log2 fold change threshold
        padj_threshold: Adjusted p-value threshold
        label_fraction: Fraction of passing genes to label (0 = none, 1 = all)
        protein_coding_label_only: Label protein coding genes only

    Returns:
        Copy of result with color, DEscore and label columns
    """
    require_columns(
        result, ["gene_symbol", "log2FoldChange", "pvalue", "padj"], "result table"
    )
    df = result.copy()

    lfc = df["log2FoldChange"].astype(float)
    padj = df["padj"].astype(float)
    with np.errstate(divide="ignore"):
        df["DEscore"] = np.abs(lfc * -np.log10(df["pvalue"].astype(float)))

    significant = padj <= padj_threshold
    up = significant & (lfc >= log2fc_threshold)
    down = significant & (lfc <= -log2fc_threshold)
    df["color"] = None
    df.loc[up, "color"] = "up"
    df.loc[down, "color"] = "down"

    passing = significant & (lfc.abs() >= log2fc_threshold)
    if protein_coding_label_only:
        if "gene_biotype" not in df.columns:
            logger.warning("No gene_biotype column; labelling all biotypes")
        else:
            passing &= df["gene_biotype"] == "protein_coding"

    df["label"] = None
    scores = df.loc[passing, "DEscore"].to_numpy(dtype=float)
    scores = scores[~np.isnan(scores)]
    if label_fraction > 0 and scores.size:
        cutoff = np.quantile(scores, 1 - min(label_fraction, 1.0))
        # interpolating between infinite scores (p-values of 0) gives NaN
        if np.isnan(cutoff):
            cutoff = np.inf
        labelled = passing & (df["DEscore"] >= cutoff) & df["gene_symbol"].notna()
        df.loc[labelled, "label"] = df.loc[labelled, "gene_symbol"]

    logger.info(
        f"Volcano: {int(up.sum())} up, {int(down.sum())} down, "
        f"{int(df['label'].notna().sum())} labelled"
    )
    return df


def volcano_plot(
    result: pd.DataFrame,
    title: Optional[str] = None,
    log2fc_threshold: float = 1.0,
    padj_threshold: float = 0.05,
    label_fraction: float = 0.005,
    protein_coding_label_only: bool = False,
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """
    Volcano plot of log2 fold change against -log10 adjusted p-value

    Args:
        result: Unified result table
        title: Plot title
        log2fc_threshold: Absolute log2 fold change threshold (dashed guides)
        padj_threshold: Adjusted p-value threshold (dashed guide)
        label_fraction: Fraction of passing genes to label
        protein_coding_label_only: Label protein coding genes only
        ax: Axes to draw on; a new 12 x 12 cm figure if None

    Returns:
        matplotlib Figure
    """
    df = classify_volcano(
        result,
        log2fc_threshold=log2fc_threshold,
        padj_threshold=padj_threshold,
        label_fraction=label_fraction,
        protein_coding_label_only=protein_coding_label_only,
    )
    with np.errstate(divide="ignore"):
        neg_log10_padj = -np.log10(df["padj"].astype(float))
    # padj of 0 is drawn at the top of the panel
    finite = neg_log10_padj[np.isfinite(neg_log10_padj)]
    if len(finite) and finite.max() > 0:
        ceiling = finite.max() * 1.05
    else:
        ceiling = -np.log10(np.finfo(float).tiny)
    df["neg_log10_padj"] = neg_log10_padj.replace(np.inf, ceiling)

    x_limit = np.nanmax(np.abs(df["log2FoldChange"].astype(float))) if len(df) else 1.0
    if not np.isfinite(x_limit) or x_limit == 0:
        x_limit = 1.0

    with theme_context():
        if ax is None:
            fig, ax = plt.subplots(figsize=(12 * CM, 12 * CM))
        else:
            fig = ax.figure

        background = df[df["color"].isna()]
        ax.scatter(
            background["log2FoldChange"],
            background["neg_log10_padj"],
            s=4,
            color=BACKGROUND_COLOR,
            linewidths=0,
            rasterized=True,
        )
        for color_class in ("down", "up"):
            subset = df[df["color"] == color_class]
            ax.scatter(
                subset["log2FoldChange"],
                subset["neg_log10_padj"],
                s=4,
                color=VOLCANO_COLORS[color_class],
                linewidths=0,
                rasterized=True,
            )

        for x in (-log2fc_threshold, log2fc_threshold):
            ax.axvline(x, color="black", linestyle="--", linewidth=BASE_LINE_WIDTH)
        ax.axhline(
            -np.log10(padj_threshold), color="black", linestyle="--", linewidth=BASE_LINE_WIDTH
        )

        labelled = df[df["label"].notna() & df["neg_log10_padj"].notna()]
        texts = [
            ax.text(row["log2FoldChange"], row["neg_log10_padj"], row["label"], fontsize=7)
            for _, row in labelled.iterrows()
        ]

        ax.set_xlim(-x_limit, x_limit)
        style_axes(ax)
        for spine in ax.spines.values():
            spine.set_linewidth(2 * BASE_LINE_WIDTH)
        ax.set_xlabel(r"$\log_{2}$(Fold Change)")
        ax.set_ylabel(r"$-\log_{10}$(Adjusted p Value)")
        if title:
            ax.set_title(title)

        if texts:
            adjust_text(
                texts,
                ax=ax,
                arrowprops=dict(arrowstyle="-", color="black", alpha=0.7, lw=0.5),
            )

    return fig
