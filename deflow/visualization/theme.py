"""
Shared plotting theme and fixed-size panel layout

Figures are laid out in physical units so that panels keep the same size
(for example one bar per 2/3 cm) regardless of how many rows they hold;
that keeps several exported figures visually comparable.
"""

import math
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.colors import LinearSegmentedColormap

CM = 1 / 2.54  # inches per centimetre
BASE_LINE_WIDTH = 0.75
BASE_FONT_SIZE = 10
MIN_PANEL_CM = 0.2

DEFAULT_MARGINS_CM = {"left": 1.5, "right": 3.0, "top": 1.2, "bottom": 1.4}

THEME_RC = {
    "font.size": BASE_FONT_SIZE,
    "axes.titlesize": BASE_FONT_SIZE,
    "axes.labelsize": BASE_FONT_SIZE,
    "xtick.labelsize": BASE_FONT_SIZE,
    "ytick.labelsize": BASE_FONT_SIZE,
    "legend.fontsize": 8,
    "axes.linewidth": BASE_LINE_WIDTH,
    "axes.edgecolor": "black",
    "axes.grid": False,
    "xtick.color": "black",
    "ytick.color": "black",
    "xtick.major.width": BASE_LINE_WIDTH,
    "ytick.major.width": BASE_LINE_WIDTH,
    "axes.titlelocation": "left",
    # keep text editable in vector exports
    "pdf.fonttype": 42,
    "ps.fonttype": 42,
    "svg.fonttype": "none",
}


@contextmanager
def theme_context(rc: Optional[Dict] = None) -> Iterator[None]:
    """Apply the DEFlow theme on top of seaborn's ticks style"""
    params = dict(sns.axes_style("ticks"))
    params.update(THEME_RC)
    if rc:
        params.update(rc)
    with plt.rc_context(params):
        yield


def gradient_cmap(low: str, high: str, name: str = "deflow_gradient"):
    """Two-colour continuous colormap from low to high"""
    return LinearSegmentedColormap.from_list(name, [low, high])


def fixed_panel_figure(
    panel_width_cm: float,
    panel_heights_cm: Sequence[float],
    margins_cm: Optional[Dict[str, float]] = None,
    hspace_cm: float = 1.5,
) -> Tuple[plt.Figure, List[plt.Axes]]:
    """
    Create a figure whose panels have exact physical sizes

    Panels are stacked top to bottom in the order given.

    Args:
        panel_width_cm: Width of every panel
        panel_heights_cm: Height of each panel
        margins_cm: Space around the panels (left, right, top, bottom)
        hspace_cm: Vertical gap between consecutive panels

    Returns:
        (figure, axes list)
    """
    margins = {**DEFAULT_MARGINS_CM, **(margins_cm or {})}
    heights = [max(h, MIN_PANEL_CM) for h in panel_heights_cm]

    fig_width = margins["left"] + panel_width_cm + margins["right"]
    fig_height = (
        margins["top"]
        + sum(heights)
        + hspace_cm * max(len(heights) - 1, 0)
        + margins["bottom"]
    )

    fig = plt.figure(figsize=(fig_width * CM, fig_height * CM))

    axes = []
    top = fig_height - margins["top"]
    for height in heights:
        bottom = top - height
        ax = fig.add_axes(
            [
                margins["left"] / fig_width,
                bottom / fig_height,
                panel_width_cm / fig_width,
                height / fig_height,
            ]
        )
        axes.append(ax)
        top = bottom - hspace_cm

    return fig, axes


def style_axes(ax: plt.Axes, hide_y: bool = False) -> None:
    """Classic black axis lines without grid"""
    ax.grid(False)
    for spine in ax.spines.values():
        spine.set_linewidth(BASE_LINE_WIDTH)
        spine.set_color("black")
    ax.tick_params(colors="black", width=BASE_LINE_WIDTH)
    if hide_y:
        ax.set_yticks([])


def format_signif(value: float, digits: int = 2) -> str:
    """Format with a number of significant figures"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "NA"
    return f"{value:.{digits}g}"
