"""
Gene identifier mapping for DEFlow

The mapping links stable Ensembl gene identifiers to gene symbols, biotypes
and descriptions. It is loaded once (from a file or from Ensembl BioMart) and
then passed explicitly to the annotation and heatmap helpers.
"""

import io
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd
import requests

from ..exceptions import DEFlowError
from ..utils import get_logger, require_columns

logger = get_logger(__name__)

MAPPING_COLUMNS = ["ensembl_gene_id", "external_gene_name", "gene_biotype", "description"]

BIOMART_URL = "http://www.ensembl.org/biomart/martservice"

BIOMART_QUERY = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE Query>
<Query virtualSchemaName = "default" formatter = "TSV" header = "0" uniqueRows = "0" count = "" datasetConfigVersion = "0.6" >
    <Dataset name = "{dataset}" interface = "default" >
        <Attribute name = "ensembl_gene_id" />
        <Attribute name = "external_gene_name" />
        <Attribute name = "gene_biotype" />
        <Attribute name = "description" />
    </Dataset>
</Query>"""


def normalize_gene_mapping(mapping: pd.DataFrame) -> pd.DataFrame:
    """
    Validate a gene mapping table and collapse duplicate identifiers

    Args:
        mapping: Table with at least ensembl_gene_id and external_gene_name

    Returns:
        Table with exactly MAPPING_COLUMNS, one row per ensembl_gene_id
    """
    require_columns(mapping, ["ensembl_gene_id", "external_gene_name"], "gene mapping")

    mapping = mapping.copy()
    for col in ("gene_biotype", "description"):
        if col not in mapping.columns:
            mapping[col] = pd.NA

    # empty symbols are missing symbols
    mapping["external_gene_name"] = mapping["external_gene_name"].replace("", pd.NA)

    n_before = len(mapping)
    mapping = mapping.dropna(subset=["ensembl_gene_id"])
    mapping = mapping.drop_duplicates(subset=["ensembl_gene_id"], keep="first")
    if len(mapping) < n_before:
        logger.debug(f"Collapsed {n_before - len(mapping)} duplicate mapping rows")

    return mapping[MAPPING_COLUMNS].reset_index(drop=True)


def load_gene_mapping(mapping_file: Union[str, Path]) -> pd.DataFrame:
    """
    Load a gene mapping table from CSV or TSV

    Args:
        mapping_file: Path to the mapping file

    Returns:
        Normalized mapping table
    """
    path = Path(mapping_file)
    if not path.exists():
        raise FileNotFoundError(f"Gene mapping file not found: {path}")

    sep = "\t" if path.suffix.lower() in (".tsv", ".txt") else ","
    mapping = pd.read_csv(path, sep=sep, dtype=str)

    logger.info(f"Loaded {len(mapping)} gene mappings from {path}")
    return normalize_gene_mapping(mapping)


def fetch_biomart_mapping(
    dataset: str = "hsapiens_gene_ensembl",
    biomart_url: str = BIOMART_URL,
    timeout: int = 120,
) -> pd.DataFrame:
    """
    Download the Ensembl gene identifier mapping from BioMart

    Args:
        dataset: BioMart dataset name (e.g. mmusculus_gene_ensembl)
        biomart_url: BioMart martservice endpoint
        timeout: Request timeout in seconds

    Returns:
        Normalized mapping table
    """
    logger.info(f"Fetching {dataset} gene mapping from BioMart...")

    query = BIOMART_QUERY.format(dataset=dataset)
    try:
        response = requests.post(biomart_url, data={"query": query}, timeout=timeout)
    except requests.RequestException as e:
        raise DEFlowError(f"BioMart request failed: {e}") from e

    if response.status_code != 200:
        raise DEFlowError(
            f"BioMart HTTP request failed with status {response.status_code}"
        )

    text = response.text.strip()
    if not text or text.startswith("Query ERROR"):
        raise DEFlowError(f"BioMart returned no usable data: {text[:200]}")

    mapping = pd.read_csv(
        io.StringIO(text),
        sep="\t",
        header=None,
        names=MAPPING_COLUMNS,
        dtype=str,
    )

    mapping = normalize_gene_mapping(mapping)
    logger.info(f"Retrieved {len(mapping)} gene mappings from BioMart")
    return mapping


def symbols_to_ids(mapping: pd.DataFrame, symbols: Iterable[str]) -> List[str]:
    """Return every identifier whose symbol is in symbols, in mapping order"""
    symbols = set(symbols)
    hits = mapping[mapping["external_gene_name"].isin(symbols)]
    return hits["ensembl_gene_id"].tolist()
