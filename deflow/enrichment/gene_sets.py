"""
Gene set annotation tables (term-to-gene tables)

A term2gene table has one row per (gene set, gene) pair with the columns
``gs_name`` and ``ensembl_gene`` and, for tables spanning several MSigDB
collections, a ``gs_subcat`` subcategory key such as ``CP:REACTOME``.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import gseapy as gp
import pandas as pd

from ..exceptions import InvalidArgumentError
from ..utils import get_logger, require_columns

logger = get_logger(__name__)

TERM2GENE_COLUMNS = ["gs_name", "ensembl_gene"]

Annotation = Union[str, pd.DataFrame]


def read_term2gene(term2gene_file: Union[str, Path]) -> pd.DataFrame:
    """
    Load a term2gene table from CSV or TSV

    Files exported from msigdbr keep all their columns; only gs_name,
    ensembl_gene and (if present) gs_subcat are used.
    """
    path = Path(term2gene_file)
    if not path.exists():
        raise FileNotFoundError(f"Gene set table not found: {path}")

    sep = "\t" if path.suffix.lower() in (".tsv", ".txt") else ","
    term2gene = pd.read_csv(path, sep=sep, dtype=str)

    # msigdbr >= 10 calls the subcategory gs_subcollection
    if "gs_subcat" not in term2gene.columns and "gs_subcollection" in term2gene.columns:
        term2gene = term2gene.rename(columns={"gs_subcollection": "gs_subcat"})

    require_columns(term2gene, TERM2GENE_COLUMNS, "gene set table")

    keep = TERM2GENE_COLUMNS + (["gs_subcat"] if "gs_subcat" in term2gene.columns else [])
    term2gene = term2gene[keep].dropna(subset=TERM2GENE_COLUMNS)

    logger.info(
        f"Loaded {term2gene['gs_name'].nunique()} gene sets "
        f"({len(term2gene)} gene links) from {path}"
    )
    return term2gene.reset_index(drop=True)


def term2gene_from_gmt(
    gmt_file: Union[str, Path], subcategory: Optional[str] = None
) -> pd.DataFrame:
    """
    Build a term2gene table from a GMT file

    Args:
        gmt_file: GMT file whose genes are Ensembl gene identifiers
        subcategory: Value stored in gs_subcat for every row
    """
    gene_sets = gp.read_gmt(str(gmt_file))

    rows = [
        {"gs_name": name, "ensembl_gene": gene}
        for name, genes in gene_sets.items()
        for gene in genes
    ]
    term2gene = pd.DataFrame(rows, columns=TERM2GENE_COLUMNS)
    if subcategory is not None:
        term2gene["gs_subcat"] = subcategory

    logger.info(f"Loaded {len(gene_sets)} gene sets from {gmt_file}")
    return term2gene


def select_term2gene(
    annotation: Annotation, term2gene: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """
    Resolve the gene sets to test

    Args:
        annotation: Subcategory key selected from term2gene, or a custom
            term2gene table used as is
        term2gene: Full gene set table, required for a subcategory key

    Returns:
        Table with gs_name and ensembl_gene columns
    """
    if isinstance(annotation, pd.DataFrame):
        require_columns(annotation, TERM2GENE_COLUMNS, "custom gene set table")
        selected = annotation[TERM2GENE_COLUMNS]
    else:
        if term2gene is None:
            raise InvalidArgumentError(
                "term2gene", None, ["a gene set table when annotation is a subcategory key"]
            )
        require_columns(term2gene, TERM2GENE_COLUMNS + ["gs_subcat"], "gene set table")
        selected = term2gene.loc[term2gene["gs_subcat"] == annotation, TERM2GENE_COLUMNS]
        if selected.empty:
            available = sorted(term2gene["gs_subcat"].dropna().unique())
            raise InvalidArgumentError("gene set subcategory", annotation, available)

    selected = selected.dropna().drop_duplicates()
    logger.debug(
        f"Selected {selected['gs_name'].nunique()} gene sets for {annotation if isinstance(annotation, str) else 'custom annotation'}"
    )
    return selected.reset_index(drop=True)


def term2gene_to_dict(term2gene: pd.DataFrame) -> Dict[str, List[str]]:
    """Convert a term2gene table to {gene set: [genes]} preserving row order"""
    gene_sets: Dict[str, List[str]] = {}
    for name, genes in term2gene.groupby("gs_name", sort=False)["ensembl_gene"]:
        gene_sets[name] = list(dict.fromkeys(genes.astype(str)))
    return gene_sets


def filter_gene_sets_by_size(
    gene_sets: Dict[str, List[str]],
    min_size: int,
    max_size: int,
    universe: Optional[Iterable[str]] = None,
) -> Dict[str, List[str]]:
    """
    Keep gene sets whose size (within universe, when given) is in [min_size, max_size]
    """
    universe_set = set(universe) if universe is not None else None

    filtered = {}
    for name, genes in gene_sets.items():
        members = [g for g in genes if g in universe_set] if universe_set is not None else genes
        if min_size <= len(members) <= max_size:
            filtered[name] = members

    logger.debug(
        f"{len(filtered)} of {len(gene_sets)} gene sets have {min_size}-{max_size} genes"
    )
    return filtered


def write_gmt(gene_sets: Dict[str, Iterable[str]], gmt_file: Union[str, Path]) -> Path:
    """Write gene sets in GMT format (name, description, genes...)"""
    path = Path(gmt_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        for name, genes in gene_sets.items():
            genes_str = "\t".join(genes)
            f.write(f"{name}\t{name}\t{genes_str}\n")

    logger.info(f"Gene sets saved to {path}")
    return path
