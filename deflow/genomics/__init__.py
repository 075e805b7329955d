"""
Genomic annotation helpers for DEFlow
"""

from .mapping import (MAPPING_COLUMNS, fetch_biomart_mapping,
                      load_gene_mapping, normalize_gene_mapping,
                      symbols_to_ids)

__all__ = [
    "MAPPING_COLUMNS",
    "fetch_biomart_mapping",
    "load_gene_mapping",
    "normalize_gene_mapping",
    "symbols_to_ids",
]
