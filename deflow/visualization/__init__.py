"""
Visualization module for DEFlow

This module provides the shared plotting theme, fixed-size panel layout,
expression heatmaps and reproducible figure export.
"""

from .export import (check_pdf_tools, make_pdf_deterministic,
                     save_figure)
from .heatmap import PlottingValue, plot_heatmap, prepare_heatmap_data
from .theme import fixed_panel_figure, gradient_cmap, theme_context

__all__ = [
    "check_pdf_tools",
    "make_pdf_deterministic",
    "save_figure",
    "PlottingValue",
    "plot_heatmap",
    "prepare_heatmap_data",
    "fixed_panel_figure",
    "gradient_cmap",
    "theme_context",
]
