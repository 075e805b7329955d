"""
Differential expression module for DEFlow

This module converts DESeq2 and edgeR results into one annotated table
and draws volcano plots from it.
"""

from .results import (RESULT_COLUMNS, RESULT_SCHEMAS, ResultSchema,
                      ResultSource, annotate_results, empty_result_table,
                      read_result_table)
from .volcano import classify_volcano, volcano_plot

__all__ = [
    "RESULT_COLUMNS",
    "RESULT_SCHEMAS",
    "ResultSchema",
    "ResultSource",
    "annotate_results",
    "empty_result_table",
    "read_result_table",
    "classify_volcano",
    "volcano_plot",
]
