"""
DEFlow: analysis and plotting helpers for RNA-seq differential expression

DEFlow takes DESeq2 or edgeR results further: it annotates them with gene
symbols, draws volcano plots and heatmaps, runs GSEA and over-representation
analysis through gseapy and exports figures reproducibly.

Main Components:
- Result annotation (DESeq2, edgeR)
- Volcano plots with selective gene labels
- Ranked gene lists, GSEA and ORA with bar plots
- Multi-pathway running enrichment score curves
- Expression heatmaps (z-score, mean centered or raw VST)
- Deterministic PDF export (exiftool + qpdf)

Example:
    >>> from deflow import DEAnalysis
    >>> analysis = DEAnalysis.from_config("config.yaml")
    >>> result = analysis.annotate(res, package="DESeq2")
    >>> gsea = analysis.gsea(result, annotation="CP:REACTOME")
"""

import importlib
import logging
import sys
from importlib import metadata
from typing import Any, Dict

try:
    __version__ = metadata.version("deflow")
except metadata.PackageNotFoundError:
    __version__ = "0.1.0-dev"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Module imports
from . import config, differential, enrichment, genomics, utils, visualization
from .config import Config, load_config
# Main imports
from .core import DEAnalysis
from .exceptions import (ConfigurationError, DataQualityError, DEFlowError,
                         DEFlowWarning, ExternalToolError,
                         InvalidArgumentError)
from .utils import setup_logging, validate_environment

__all__ = [
    "__version__",
    "DEAnalysis",
    "Config",
    "load_config",
    "setup_logging",
    "validate_environment",
    "DEFlowError",
    "InvalidArgumentError",
    "DataQualityError",
    "ExternalToolError",
    "ConfigurationError",
    "DEFlowWarning",
    "differential",
    "enrichment",
    "genomics",
    "visualization",
    "config",
    "utils",
]

KEY_DEPENDENCIES = [
    "numpy",
    "pandas",
    "matplotlib",
    "seaborn",
    "gseapy",
    "statsmodels",
    "adjustText",
]


def get_info() -> Dict[str, Any]:
    """Get package information."""
    return {
        "name": "DEFlow",
        "version": __version__,
        "description": "Analysis and plotting helpers for RNA-seq differential expression",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "modules": __all__[12:],  # Just the module names
    }


def check_dependencies() -> Dict[str, bool]:
    """Check if key dependencies are available."""
    dependencies = {}
    for name in KEY_DEPENDENCIES:
        try:
            importlib.import_module(name)
            dependencies[name] = True
        except ImportError:
            dependencies[name] = False
    return dependencies
