"""
Core DEFlow analysis orchestrator
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import matplotlib.pyplot as plt
import pandas as pd

from .config import Config, load_config, validate_config
from .differential import annotate_results, volcano_plot
from .enrichment import (GSEARun, plot_gsea, plot_multi_pathway_gsea,
                         plot_ora, prepare_ranking, read_term2gene, run_gsea,
                         run_ora)
from .enrichment.gene_sets import Annotation
from .enrichment.visualization import ORAPlot
from .exceptions import ConfigurationError
from .genomics import load_gene_mapping
from .utils import get_logger
from .visualization import plot_heatmap, save_figure

logger = get_logger(__name__)


class DEAnalysis:
    """
    Main entry point tying the DEFlow helpers to one configuration

    The gene identifier mapping and the gene set table are loaded once and
    passed explicitly to every helper; parameters not given to a method
    fall back to the matching configuration section.
    """

    def __init__(
        self,
        config: Optional[Union[str, Path, Config, Dict[str, Any]]] = None,
        gene_mapping: Optional[pd.DataFrame] = None,
        term2gene: Optional[pd.DataFrame] = None,
    ):
        """
        Initialize DEFlow analysis

        Args:
            config: Configuration file path, Config object, config dict or
                None for defaults
            gene_mapping: Gene identifier mapping table
            term2gene: Gene set table with a gs_subcat column
        """
        if config is None:
            self.config = Config()
        elif isinstance(config, (str, Path)):
            self.config = load_config(config)
        elif isinstance(config, dict):
            self.config = Config(**config)
        elif isinstance(config, Config):
            self.config = config
        else:
            raise ConfigurationError(
                "Invalid config type. Expected str, Path, dict, Config object or None"
            )

        for issue in validate_config(self.config):
            logger.warning(f"Configuration issue: {issue}")

        self.gene_mapping = gene_mapping
        self.term2gene = term2gene

    @classmethod
    def from_config(
        cls, config: Union[str, Path, Config, Dict[str, Any]]
    ) -> "DEAnalysis":
        """Create an analysis and load the lookup tables named in the configuration"""
        analysis = cls(config)
        if analysis.config.gene_mapping_file:
            analysis.gene_mapping = load_gene_mapping(analysis.config.gene_mapping_file)
        if analysis.config.term2gene_file:
            analysis.term2gene = read_term2gene(analysis.config.term2gene_file)
        return analysis

    def _require_mapping(self) -> pd.DataFrame:
        if self.gene_mapping is None:
            raise ConfigurationError(
                "No gene identifier mapping loaded; pass gene_mapping or set gene_mapping_file"
            )
        return self.gene_mapping

    def _require_term2gene(self, annotation: Annotation) -> Optional[pd.DataFrame]:
        if isinstance(annotation, str) and self.term2gene is None:
            raise ConfigurationError(
                "No gene set table loaded; pass term2gene or set term2gene_file"
            )
        return self.term2gene

    # Differential expression

    def annotate(self, res: Any, package: str) -> pd.DataFrame:
        """Annotate a DESeq2 or edgeR result (see annotate_results)"""
        return annotate_results(res, package, self._require_mapping())

    def volcano(self, result: pd.DataFrame, title: Optional[str] = None, **kwargs) -> plt.Figure:
        """Volcano plot with the configured thresholds"""
        params = {**self.config.volcano, **kwargs}
        return volcano_plot(result, title=title, **params)

    # Enrichment

    def rank(self, result: pd.DataFrame, **kwargs) -> pd.Series:
        """Ranked gene list with the configured metric and missing value policy"""
        params = {
            "ranking_metric": self.config.gsea["ranking_metric"],
            "missing": self.config.gsea["missing"],
            **kwargs,
        }
        return prepare_ranking(result, **params)

    def gsea(
        self,
        result: pd.DataFrame,
        annotation: Annotation,
        to_dataframe: bool = True,
        **kwargs,
    ) -> Union[pd.DataFrame, GSEARun]:
        """Run GSEA with the configured parameters (see run_gsea)"""
        params = {k: v for k, v in self.config.gsea.items() if k != "cutoff"}
        params.update(seed=self.config.random_seed, threads=self.config.n_threads)
        params.update(kwargs)
        return run_gsea(
            result,
            annotation,
            term2gene=self._require_term2gene(annotation),
            to_dataframe=to_dataframe,
            **params,
        )

    def ora(self, result: pd.DataFrame, annotation: Annotation, **kwargs) -> pd.DataFrame:
        """Run ORA with the configured parameters (see run_ora)"""
        keys = ("log2fc_threshold", "padj_threshold", "min_size", "max_size")
        params = {k: self.config.ora[k] for k in keys}
        params.update(kwargs)
        return run_ora(
            result, annotation, term2gene=self._require_term2gene(annotation), **params
        )

    def plot_gsea(self, table: pd.DataFrame, title: str = "", **kwargs) -> plt.Figure:
        params = {"cutoff": self.config.gsea["cutoff"], **kwargs}
        return plot_gsea(table, title=title, **params)

    def plot_ora(self, table: pd.DataFrame, title: str = "", **kwargs) -> ORAPlot:
        params = {
            "cutoff": self.config.ora["cutoff"],
            "truncate_label_at": self.config.ora["truncate_label_at"],
            **kwargs,
        }
        return plot_ora(table, title=title, **params)

    def plot_curves(
        self,
        gsea_results: Union[GSEARun, Sequence[GSEARun]],
        gene_set_ids: Sequence[str],
        **kwargs,
    ) -> plt.Figure:
        return plot_multi_pathway_gsea(gsea_results, gene_set_ids, **kwargs)

    # Expression

    def heatmap(
        self,
        vst: pd.DataFrame,
        metadata: pd.DataFrame,
        de_result: pd.DataFrame,
        selected_genes: Sequence[str],
        x_axis_var: str,
        grouping_var: str,
        title: str = "",
        **kwargs,
    ) -> plt.Figure:
        """Expression heatmap with the configured plotting value"""
        params = {**self.config.heatmap, **kwargs}
        return plot_heatmap(
            vst,
            metadata,
            de_result,
            selected_genes,
            x_axis_var,
            grouping_var,
            self._require_mapping(),
            title=title,
            **params,
        )

    # Export

    def save(self, fig: plt.Figure, name: str) -> List[Path]:
        """
        Save a figure under output_dir in every configured format

        Args:
            fig: Figure to save
            name: File name without suffix

        Returns:
            Paths of the written files
        """
        output_dir = Path(self.config.output_dir or ".")
        export = self.config.export

        paths = []
        for fmt in export["save_formats"]:
            paths.append(
                save_figure(
                    fig,
                    output_dir / f"{name}.{fmt}",
                    deterministic=export["deterministic_pdf"],
                    dpi=export["dpi"],
                )
            )
        return paths
