"""
Expression heatmaps of selected genes

Genes are requested by symbol, resolved to Ensembl identifiers through the
gene identifier mapping and drawn as square tiles (1/3 cm), one facet per
value of the grouping column.
"""

import re
import warnings
from enum import Enum
from typing import List, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from ..exceptions import DataQualityError, DEFlowWarning
from ..genomics.mapping import normalize_gene_mapping, symbols_to_ids
from ..utils import coerce_choice, get_logger, require_columns
from .theme import BASE_LINE_WIDTH, CM, theme_context

logger = get_logger(__name__)

TILE_CM = 1 / 3
MARGINS_CM = {"left": 4.5, "right": 1.0, "top": 1.5, "bottom": 4.5}
FACET_SPACING_CM = 0.0
COLORBAR_HEIGHT_CM = 0.3
COLORBAR_WIDTH_CM = 3.0


class PlottingValue(str, Enum):
    """Value drawn in heatmap tiles"""

    ZSCORE = "zscore"
    CENTERED_VST = "centered_vst"
    VST = "vst"


VALUE_LABELS = {
    PlottingValue.ZSCORE: "z-score (VST)",
    PlottingValue.CENTERED_VST: "mean centered VST",
    PlottingValue.VST: "VST",
}

_LEADING_ZEROS = re.compile(r"^(ENS(?:MUS)?G)0+")


def strip_identifier(gene_id: str) -> str:
    """ENSG00000141510 -> ENSG141510 (also for mouse ENSMUSG identifiers)"""
    return _LEADING_ZEROS.sub(r"\1", str(gene_id))


def _warn(message: str) -> None:
    logger.warning(message)
    warnings.warn(message, DEFlowWarning, stacklevel=3)


def _resolve_genes(
    selected_genes: Sequence[str], mapping: pd.DataFrame, vst: pd.DataFrame
) -> List[str]:
    requested = list(dict.fromkeys(selected_genes))
    known = set(mapping["external_gene_name"].dropna())

    unknown = [g for g in requested if g not in known]
    if unknown:
        _warn(
            "The following genes were not found in the gene identifier mapping: "
            + ", ".join(unknown)
        )

    valid = set(requested) - set(unknown)
    gene_ids = symbols_to_ids(mapping, valid)

    absent = [g for g in gene_ids if g not in vst.index]
    if absent:
        _warn(
            "The following gene identifiers are not present in the expression matrix: "
            + ", ".join(absent)
        )

    return [g for g in gene_ids if g in vst.index]


def _gene_order(gene_ids: List[str], de_result: pd.DataFrame) -> List[str]:
    # descending |log2FoldChange * -log10(pvalue)|, genes without a result last
    scores = de_result.drop_duplicates("ensembl_gene_id").set_index("ensembl_gene_id")
    ranking = pd.DataFrame({"ensembl_gene_id": gene_ids})
    ranking["in_result"] = ranking["ensembl_gene_id"].isin(scores.index)

    lfc = ranking["ensembl_gene_id"].map(scores["log2FoldChange"]).astype(float)
    pvalue = ranking["ensembl_gene_id"].map(scores["pvalue"]).astype(float)
    with np.errstate(divide="ignore"):
        score = np.abs(lfc * -np.log10(pvalue))
    ranking["missing"] = ~ranking["in_result"] | score.isna()
    ranking["score"] = score.fillna(0)

    ranking = ranking.sort_values(
        ["missing", "score"], ascending=[True, False], kind="stable"
    )
    return ranking["ensembl_gene_id"].tolist()


def prepare_heatmap_data(
    vst: pd.DataFrame,
    metadata: pd.DataFrame,
    de_result: pd.DataFrame,
    selected_genes: Sequence[str],
    x_axis_var: str,
    grouping_var: str,
    gene_mapping: pd.DataFrame,
    hide_not_expressed: bool = True,
    sample_column: str = "sample_name",
) -> pd.DataFrame:
    """
    Long-format heatmap table of the selected genes

    Args:
        vst: Normalized expression matrix (genes x samples, indexed by
            Ensembl gene id)
        metadata: Sample table with sample_column, x_axis_var and grouping_var
        de_result: Unified result table used to order the genes
        selected_genes: Gene symbols to show
        x_axis_var: Metadata column on the x axis
        grouping_var: Metadata column defining the facets
        gene_mapping: Gene identifier mapping table
        hide_not_expressed: Drop genes with constant values (undefined z-score)
        sample_column: Metadata column matching the matrix columns

    Returns:
        One row per gene and sample with vst, zscore, centered_vst and
        gene_label columns, genes in display order (gene_label is an ordered
        categorical)
    """
    require_columns(metadata, [sample_column, x_axis_var, grouping_var], "sample metadata")
    require_columns(de_result, ["ensembl_gene_id", "log2FoldChange", "pvalue"], "result table")

    mapping = normalize_gene_mapping(gene_mapping)
    vst = vst.copy()
    vst.index = vst.index.astype(str)

    gene_ids = _resolve_genes(selected_genes, mapping, vst)
    if not gene_ids:
        raise DataQualityError("None of the selected genes can be shown in the heatmap")

    order = _gene_order(gene_ids, de_result)

    long = (
        vst.loc[order]
        .rename_axis("ensembl_gene_id")
        .reset_index()
        .melt(id_vars="ensembl_gene_id", var_name=sample_column, value_name="vst")
    )
    long["vst"] = long["vst"].astype(float)
    long = long.merge(mapping, on="ensembl_gene_id", how="left")
    long = long.merge(metadata, on=sample_column, how="left")

    by_gene = long.groupby("ensembl_gene_id")["vst"]
    mean = by_gene.transform("mean")
    std = by_gene.transform("std")  # sample standard deviation
    long["centered_vst"] = long["vst"] - mean
    long["zscore"] = long["centered_vst"] / std.where(std > 0)
    constant_gene = by_gene.transform("nunique") <= 1

    ids_per_symbol = long.groupby("external_gene_name")["ensembl_gene_id"].transform("nunique")
    long["gene_label"] = np.where(
        ids_per_symbol > 1,
        long["external_gene_name"] + " (" + long["ensembl_gene_id"].map(strip_identifier) + ")",
        long["external_gene_name"],
    )

    if hide_not_expressed:
        constant = long.loc[constant_gene, "ensembl_gene_id"].unique()
        if len(constant):
            logger.info(f"Hiding {len(constant)} genes with constant expression")
        long = long[~long["ensembl_gene_id"].isin(constant)]

    position = {gene_id: i for i, gene_id in enumerate(order)}
    long = long.assign(_order=long["ensembl_gene_id"].map(position))
    long = long.sort_values("_order", kind="stable").drop(columns="_order")

    labels = list(dict.fromkeys(long["gene_label"]))
    long["gene_label"] = pd.Categorical(long["gene_label"], categories=labels, ordered=True)

    logger.info(
        f"Heatmap data: {len(labels)} genes x {long[sample_column].nunique()} samples"
    )
    return long.reset_index(drop=True)


def _facet_matrices(
    data: pd.DataFrame, x_axis_var: str, grouping_var: str, value: str
) -> List[Tuple[str, pd.DataFrame]]:
    if isinstance(data[grouping_var].dtype, pd.CategoricalDtype):
        groups = [g for g in data[grouping_var].cat.categories if g in set(data[grouping_var])]
    else:
        groups = list(dict.fromkeys(data[grouping_var]))

    labels = data["gene_label"].cat.categories
    facets = []
    for group in groups:
        subset = data[data[grouping_var] == group]
        columns = list(dict.fromkeys(subset[x_axis_var]))
        matrix = subset.pivot_table(
            index="gene_label", columns=x_axis_var, values=value, aggfunc="mean", observed=False
        )
        matrix = matrix.reindex(index=labels, columns=columns)
        facets.append((group, matrix))
    return facets


def plot_heatmap(
    vst: pd.DataFrame,
    metadata: pd.DataFrame,
    de_result: pd.DataFrame,
    selected_genes: Sequence[str],
    x_axis_var: str,
    grouping_var: str,
    gene_mapping: pd.DataFrame,
    title: str = "",
    hide_not_expressed: bool = True,
    plotting_value: Union[str, PlottingValue] = PlottingValue.ZSCORE,
    sample_column: str = "sample_name",
) -> plt.Figure:
    """
    Heatmap of selected genes faceted by a metadata column

    z-scores and centered values use a diverging palette symmetric around 0;
    raw VST values use a sequential palette. Tiles are 1/3 cm squares.

    Returns:
        matplotlib Figure
    """
    value = coerce_choice(plotting_value, PlottingValue, "plotting value")

    data = prepare_heatmap_data(
        vst,
        metadata,
        de_result,
        selected_genes,
        x_axis_var,
        grouping_var,
        gene_mapping,
        hide_not_expressed=hide_not_expressed,
        sample_column=sample_column,
    )
    if data.empty:
        raise DataQualityError("No genes left to plot after removing constant genes")

    facets = _facet_matrices(data, x_axis_var, grouping_var, value.value)

    values = data[value.value].to_numpy(dtype=float)
    if value is PlottingValue.VST:
        cmap = "inferno"
        vmin, vmax = np.nanmin(values), np.nanmax(values)
    else:
        cmap = "RdBu_r"
        limit = np.nanmax(np.abs(values)) if np.isfinite(values).any() else 1.0
        vmin, vmax = -limit, limit

    n_rows = len(data["gene_label"].cat.categories)
    widths_cm = [matrix.shape[1] * TILE_CM for _, matrix in facets]
    height_cm = n_rows * TILE_CM

    fig_width = MARGINS_CM["left"] + sum(widths_cm) + MARGINS_CM["right"]
    fig_width = max(fig_width, MARGINS_CM["left"] + COLORBAR_WIDTH_CM + MARGINS_CM["right"])
    fig_height = MARGINS_CM["top"] + height_cm + MARGINS_CM["bottom"]

    with theme_context():
        fig = plt.figure(figsize=(fig_width * CM, fig_height * CM))
        bottom = MARGINS_CM["bottom"] / fig_height

        left_cm = MARGINS_CM["left"]
        for i, ((group, matrix), width_cm) in enumerate(zip(facets, widths_cm)):
            ax = fig.add_axes(
                [left_cm / fig_width, bottom, width_cm / fig_width, height_cm / fig_height]
            )
            sns.heatmap(
                matrix,
                ax=ax,
                cmap=cmap,
                vmin=vmin,
                vmax=vmax,
                cbar=False,
                xticklabels=True,
                yticklabels=i == 0,
                linewidths=0,
            )
            ax.set_xlabel("")
            ax.set_ylabel(VALUE_LABELS[value] if i == 0 else "")
            ax.set_title(str(group), fontsize=10, loc="center")
            ax.tick_params(axis="x", labelrotation=90, width=BASE_LINE_WIDTH)
            ax.tick_params(axis="y", labelsize=8, width=BASE_LINE_WIDTH)
            if i > 0:
                ax.tick_params(axis="y", left=False)
            for spine in ax.spines.values():
                spine.set_visible(True)
                spine.set_linewidth(BASE_LINE_WIDTH)
            left_cm += width_cm + FACET_SPACING_CM

        # shared colorbar below the tiles, clear of the rotated sample labels
        cax = fig.add_axes(
            [
                MARGINS_CM["left"] / fig_width,
                0.8 / fig_height,
                COLORBAR_WIDTH_CM / fig_width,
                COLORBAR_HEIGHT_CM / fig_height,
            ]
        )
        mappable = plt.cm.ScalarMappable(cmap=cmap, norm=plt.Normalize(vmin=vmin, vmax=vmax))
        mappable.set_array([])
        cbar = fig.colorbar(mappable, cax=cax, orientation="horizontal")
        cbar.set_label(VALUE_LABELS[value])
        cbar.outline.set_edgecolor("black")

        if title:
            fig.text(0.01, 1 - 0.5 / fig_height, title, ha="left", va="top")

    return fig
