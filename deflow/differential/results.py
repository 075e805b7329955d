"""
Unified differential expression result tables

Results from DESeq2 (``results()`` / ``lfcShrink()`` tables, or a pydeseq2
``DeseqStats`` object) and edgeR (``topTags()`` tables) are converted into
one schema and annotated with gene symbol, biotype and description.

Adding another upstream package only requires a new ``ResultSchema`` entry
in ``RESULT_SCHEMAS``.
"""

import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

from ..exceptions import DataQualityError, DEFlowWarning
from ..genomics.mapping import normalize_gene_mapping
from ..utils import get_logger, require_columns

logger = get_logger(__name__)

RESULT_COLUMNS = [
    "gene_symbol",
    "log2FoldChange",
    "pvalue",
    "padj",
    "mean_gene_abundance",
    "gene_biotype",
    "description",
    "ensembl_gene_id",
]

NUMERIC_COLUMNS = ["log2FoldChange", "pvalue", "padj", "mean_gene_abundance"]


class ResultSource(str, Enum):
    """Upstream differential expression packages"""

    DESEQ2 = "DESeq2"
    EDGER = "edgeR"


@dataclass(frozen=True)
class ResultSchema:
    """How to read one upstream result format"""

    source: ResultSource
    column_map: Dict[str, str]
    # attribute or key under which wrapper objects keep the table
    table_attribute: Optional[str] = None

    def extract_table(self, res: Any) -> pd.DataFrame:
        """Return the per-gene table held by res"""
        if isinstance(res, pd.DataFrame):
            return res
        if self.table_attribute:
            if isinstance(res, Mapping) and self.table_attribute in res:
                return pd.DataFrame(res[self.table_attribute])
            if hasattr(res, self.table_attribute):
                return pd.DataFrame(getattr(res, self.table_attribute))
        raise DataQualityError(
            f"Cannot read a {self.source.value} result table from {type(res).__name__}"
        )


RESULT_SCHEMAS: Dict[ResultSource, ResultSchema] = {
    ResultSource.DESEQ2: ResultSchema(
        source=ResultSource.DESEQ2,
        column_map={
            "log2FoldChange": "log2FoldChange",
            "pvalue": "pvalue",
            "padj": "padj",
            "baseMean": "mean_gene_abundance",
        },
        table_attribute="results_df",
    ),
    ResultSource.EDGER: ResultSchema(
        source=ResultSource.EDGER,
        column_map={
            "logFC": "log2FoldChange",
            "PValue": "pvalue",
            "FDR": "padj",
            "logCPM": "mean_gene_abundance",
        },
        table_attribute="table",
    ),
}


def empty_result_table() -> pd.DataFrame:
    """Unified result table with no rows"""
    return pd.DataFrame(columns=RESULT_COLUMNS)


def _resolve_source(package: Union[str, ResultSource]) -> Optional[ResultSource]:
    if isinstance(package, ResultSource):
        return package
    for source in ResultSource:
        if package == source.value:
            return source
    return None


def annotate_results(
    res: Any,
    package: Union[str, ResultSource],
    gene_mapping: pd.DataFrame,
) -> pd.DataFrame:
    """
    Convert an upstream result into the unified, annotated result table

    Args:
        res: DESeq2 or edgeR result (DataFrame indexed by Ensembl gene id,
            or a wrapper object/mapping holding it)
        package: "DESeq2" or "edgeR"
        gene_mapping: Gene identifier mapping table

    Returns:
        Table with RESULT_COLUMNS, one row per gene. An unrecognized package
        yields a warning and an empty table.
    """
    source = _resolve_source(package)
    if source is None:
        message = (
            f"package argument must be either "
            f"{' or '.join(repr(s.value) for s in ResultSource)}, got {package!r}"
        )
        logger.warning(message)
        warnings.warn(message, DEFlowWarning, stacklevel=2)
        return empty_result_table()

    schema = RESULT_SCHEMAS[source]
    table = schema.extract_table(res).copy()

    if "ensembl_gene_id" not in table.columns:
        table = table.rename_axis("ensembl_gene_id").reset_index()

    require_columns(table, list(schema.column_map), f"{source.value} result")

    table = table[["ensembl_gene_id", *schema.column_map]].rename(
        columns=schema.column_map
    )
    table["ensembl_gene_id"] = table["ensembl_gene_id"].astype(str)
    for col in NUMERIC_COLUMNS:
        table[col] = pd.to_numeric(table[col], errors="coerce").astype(float)

    n_duplicated = table["ensembl_gene_id"].duplicated().sum()
    if n_duplicated:
        logger.warning(
            f"Dropping {n_duplicated} rows with duplicated gene identifiers"
        )
        table = table.drop_duplicates(subset=["ensembl_gene_id"], keep="first")

    mapping = normalize_gene_mapping(gene_mapping).rename(
        columns={"external_gene_name": "gene_symbol"}
    )
    annotated = table.merge(mapping, on="ensembl_gene_id", how="left")

    n_unmapped = annotated["gene_symbol"].isna().sum()
    if n_unmapped:
        logger.info(f"{n_unmapped} of {len(annotated)} genes have no gene symbol")

    logger.info(f"Annotated {len(annotated)} {source.value} results")
    return annotated[RESULT_COLUMNS].reset_index(drop=True)


def read_result_table(result_file: Union[str, Path]) -> pd.DataFrame:
    """
    Read an exported upstream result table (CSV or TSV, gene ids in the first column)
    """
    path = Path(result_file)
    if not path.exists():
        raise FileNotFoundError(f"Result file not found: {path}")

    sep = "\t" if path.suffix.lower() in (".tsv", ".txt") else ","
    table = pd.read_csv(path, sep=sep, index_col=0)
    table.index = table.index.astype(str)
    return table
