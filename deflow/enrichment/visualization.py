"""
Bar plots of GSEA and ORA result tables

Panels are sized per row (GSEA 1/1.5 cm, ORA 1/2 cm per gene set) so that
figures of different analyses can be exported and compared side by side.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.cm import ScalarMappable
from matplotlib.colors import Normalize

from ..utils import coerce_choice, get_logger, require_columns
from ..visualization.theme import (CM, fixed_panel_figure, gradient_cmap,
                                   style_axes, theme_context)

logger = get_logger(__name__)

GSEA_COLORS = ("#E74C3C", "#F1C40F")  # low qvalue -> high qvalue
ORA_UP_COLORS = ("#FED98B", "#DC3D2D")
ORA_DOWN_COLORS = ("#C2E3EE", "#4A7AB7")

GSEA_ROW_CM = 1 / 1.5
GSEA_PANEL_WIDTH_CM = 8.0
ORA_ROW_CM = 1 / 2
ORA_PANEL_WIDTH_CM = 5.0


class GSEASubgroup(str, Enum):
    """Gene sets shown in a GSEA plot"""

    ALL = "all"
    POS = "pos"
    NEG = "neg"


class ORASubgroup(str, Enum):
    """Directions shown in an ORA plot"""

    ALL = "all"
    UP = "Up"
    DOWN = "Down"


@dataclass
class ORAPlot:
    """ORA figure with the export height (cm) that fits its panels"""

    figure: plt.Figure
    height: float


def truncate_label(label: str, width: int = 45) -> str:
    """Cut label to width characters, ending with '..' when shortened"""
    label = str(label)
    if len(label) <= width:
        return label
    return label[: max(width - 2, 0)] + ".."


def _qvalue_column(table: pd.DataFrame) -> str:
    # clusterProfiler < 4.0 names the column qvalues
    if "qvalue" in table.columns:
        return "qvalue"
    if "qvalues" in table.columns:
        return "qvalues"
    require_columns(table, ["qvalue"], "enrichment table")
    return "qvalue"


def _neg_log10(values: pd.Series) -> np.ndarray:
    with np.errstate(divide="ignore"):
        return -np.log10(values.astype(float).to_numpy())


def _add_colorbar(fig, ax, cmap, norm, label: str) -> None:
    # drawn in the right margin so the panel keeps its size
    pos = ax.get_position()
    fig_width_cm = fig.get_figwidth() / CM
    cax = fig.add_axes(
        [pos.x1 + 0.3 / fig_width_cm, pos.y0, 0.3 / fig_width_cm, pos.height]
    )
    mappable = ScalarMappable(norm=norm, cmap=cmap)
    mappable.set_array([])
    cbar = fig.colorbar(mappable, cax=cax)
    cbar.set_label(label)
    cbar.outline.set_linewidth(0.5)


def plot_gsea(
    table: pd.DataFrame,
    title: str = "",
    cutoff: float = 0.05,
    subgroup: Union[str, GSEASubgroup] = GSEASubgroup.ALL,
    fixed_dimensions: bool = False,
) -> plt.Figure:
    """
    Horizontal bar plot of NES for gene sets passing the qvalue cutoff

    Args:
        table: GSEA result table
        title: Appended to "GSEA: "
        cutoff: Largest qvalue shown
        subgroup: all, pos (NES > 0) or neg (NES < 0)
        fixed_dimensions: Give the panel an exact size of 8 cm by n/1.5 cm

    Returns:
        matplotlib Figure
    """
    subgroup = coerce_choice(subgroup, GSEASubgroup, "subgroup")
    require_columns(table, ["Description", "NES"], "GSEA table")
    qcol = _qvalue_column(table)

    data = table.copy()
    if subgroup is GSEASubgroup.POS:
        data = data[data["NES"] > 0]
    elif subgroup is GSEASubgroup.NEG:
        data = data[data["NES"] < 0]

    data = data[data[qcol] <= cutoff].sort_values("NES", kind="stable")
    n_rows = len(data)
    if n_rows == 0:
        logger.warning(f"No gene sets with {qcol} <= {cutoff} to plot")

    panel_height = n_rows * GSEA_ROW_CM
    with theme_context():
        if fixed_dimensions:
            fig, (ax,) = fixed_panel_figure(
                GSEA_PANEL_WIDTH_CM,
                [panel_height],
                margins_cm={"left": 10.0, "right": 3.5},
            )
        else:
            fig, ax = plt.subplots(
                figsize=(8, max(3, 1.5 + panel_height * CM * 1.2))
            )
            fig.subplots_adjust(left=0.45, right=0.82)

        cmap = gradient_cmap(*GSEA_COLORS, name="gsea_qvalue")
        if n_rows:
            qvalues = data[qcol].astype(float)
            norm = Normalize(
                vmin=qvalues.min(), vmax=max(qvalues.max(), qvalues.min() + 1e-12)
            )
            y = np.arange(n_rows)
            ax.barh(y, data["NES"], color=cmap(norm(qvalues)), height=0.9)
            ax.set_yticks(y)
            ax.set_yticklabels(data["Description"])
            ax.set_ylim(-0.5, n_rows - 0.5)
            _add_colorbar(fig, ax, cmap, norm, qcol)

        style_axes(ax)
        ax.set_title(f"GSEA: {title}")
        ax.set_xlabel("Normalized Enrichment Score")
        ax.set_ylabel("")

    return fig


def _ora_panel(
    fig,
    ax,
    data: pd.DataFrame,
    qcol: str,
    max_enrichment: float,
    colors,
    panel_title: str,
) -> None:
    data = data.sort_values("EnrichmentRatio", kind="stable")
    n_rows = len(data)
    cmap = gradient_cmap(*colors, name=f"ora_{panel_title}")

    if n_rows:
        neglog10q = _neg_log10(data[qcol])
        finite = neglog10q[np.isfinite(neglog10q)]
        vmin = finite.min() if finite.size else 0.0
        vmax = finite.max() if finite.size else 1.0
        norm = Normalize(vmin=vmin, vmax=max(vmax, vmin + 1e-12))

        y = np.arange(n_rows)
        ax.barh(y, data["EnrichmentRatio"], color=cmap(norm(neglog10q)), height=0.9)
        for yi, label in zip(y, data["Description"]):
            ax.text(max_enrichment * 0.05, yi, label, ha="left", va="center", fontsize=8)
        ax.set_ylim(-0.5, n_rows - 0.5)
        _add_colorbar(fig, ax, cmap, norm, "-Log10(adj p-value)")

    ax.set_xlim(0, max_enrichment)
    style_axes(ax, hide_y=True)
    ax.set_title(panel_title)
    ax.set_xlabel("Enrichment Ratio")


def plot_ora(
    table: pd.DataFrame,
    title: str = "",
    cutoff: float = 0.05,
    subgroup: Union[str, ORASubgroup] = ORASubgroup.ALL,
    truncate_label_at: int = 45,
) -> ORAPlot:
    """
    Paired bar plot of ORA results for up- and downregulated genes

    Both panels share the x range 0..max EnrichmentRatio; bar fill is
    -log10(qvalue) and gene set names are drawn inside the panel.

    Args:
        table: ORA result table
        title: Figure title
        cutoff: Largest qvalue shown
        subgroup: all (both panels), Up or Down
        truncate_label_at: Maximum label length

    Returns:
        ORAPlot with the figure and its export height in cm
    """
    subgroup = coerce_choice(subgroup, ORASubgroup, "subgroup")
    require_columns(table, ["Description", "direction", "EnrichmentRatio"], "ORA table")
    qcol = _qvalue_column(table)

    data = table[table[qcol] <= cutoff].copy()
    data["Description"] = [truncate_label(d, truncate_label_at) for d in data["Description"]]

    up = data[data["direction"] == "Up"]
    down = data[data["direction"] == "Down"]

    if data.empty:
        logger.warning(f"No gene sets with {qcol} <= {cutoff} to plot")
        max_enrichment = 1.0
    else:
        max_enrichment = float(data["EnrichmentRatio"].max())

    panels: List[tuple] = []
    if subgroup in (ORASubgroup.ALL, ORASubgroup.UP):
        panels.append((up, ORA_UP_COLORS, "ORA: enrichment of upregulated genes"))
    if subgroup in (ORASubgroup.ALL, ORASubgroup.DOWN):
        panels.append((down, ORA_DOWN_COLORS, "ORA: enrichment of downregulated genes"))

    if subgroup is ORASubgroup.UP:
        height = len(up) / 2 + 3
    elif subgroup is ORASubgroup.DOWN:
        height = len(down) / 2 + 3
    else:
        height = len(data) / 2 + 6

    with theme_context():
        fig, axes = fixed_panel_figure(
            ORA_PANEL_WIDTH_CM,
            [len(panel_data) * ORA_ROW_CM for panel_data, _, _ in panels],
            margins_cm={"left": 0.8, "right": 3.5, "top": 2.0},
        )
        for ax, (panel_data, colors, panel_title) in zip(axes, panels):
            _ora_panel(fig, ax, panel_data, qcol, max_enrichment, colors, panel_title)
        if title:
            fig.suptitle(title)

    return ORAPlot(figure=fig, height=height)
