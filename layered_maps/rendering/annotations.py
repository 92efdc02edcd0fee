"""
Annotation module for map titles, legends and attribution.

This module adds figure-level text and the colorbar for continuous fills to
a composed map. All annotations pick a text colour that stays readable on
the figure's background.
"""

import logging
from typing import Any, Optional

import matplotlib.pyplot as plt

from ..constants import (
    ATTRIBUTION_FONT_SIZE,
    ATTRIBUTION_POSITION,
    COLORBAR_LABEL_SIZE,
    TITLE_FONT_SIZE,
    TITLE_POSITION,
)

logger = logging.getLogger("layered_maps.rendering.annotations")


def _is_dark_figure(fig: plt.Figure) -> bool:
    r, g, b, _a = fig.get_facecolor()
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return luminance < 0.35


def annotation_color(fig: plt.Figure) -> str:
    """Text colour readable on the figure background."""
    return "white" if _is_dark_figure(fig) else "black"


def add_title_annotation(fig: plt.Figure, title: str) -> Any:
    """
    Add a centred title above the map.

    Args:
        fig: Matplotlib figure containing the map
        title: Title text

    Returns:
        Text artist object
    """
    if fig is None:
        raise ValueError("fig cannot be None")

    text_artist = fig.text(
        TITLE_POSITION[0], TITLE_POSITION[1],
        title,
        transform=fig.transFigure,
        ha='center',
        va='top',
        fontsize=TITLE_FONT_SIZE,
        weight='bold',
        color=annotation_color(fig)
    )
    logger.debug(f"Title annotation added: {title!r}")
    return text_artist


def add_colorbar(fig: plt.Figure, ax: plt.Axes, mappable: Any, label: Optional[str] = None) -> Any:
    """
    Add a vertical colorbar for a continuous fill or point layer.

    Args:
        fig: Matplotlib figure containing the map
        ax: Map axes the colorbar is attached to
        mappable: Artist carrying the colormap and norm
        label: Colorbar label (usually the attribute name)

    Returns:
        Matplotlib Colorbar
    """
    color = annotation_color(fig)
    cbar = fig.colorbar(mappable, ax=ax, orientation='vertical', shrink=0.7, pad=0.02)
    if label:
        cbar.set_label(label, fontsize=COLORBAR_LABEL_SIZE, color=color)
    cbar.ax.tick_params(labelsize=COLORBAR_LABEL_SIZE, colors=color)
    cbar.outline.set_edgecolor(color)
    logger.debug(f"Colorbar added for {label!r}")
    return cbar


def add_attribution(fig: plt.Figure, text: str) -> Any:
    """
    Print basemap provider attribution in the bottom-right corner.

    Tile providers' terms require it whenever their imagery is shown.
    """
    text_artist = fig.text(
        ATTRIBUTION_POSITION[0], ATTRIBUTION_POSITION[1],
        text,
        transform=fig.transFigure,
        ha='right',
        va='bottom',
        fontsize=ATTRIBUTION_FONT_SIZE,
        color=annotation_color(fig),
        alpha=0.8
    )
    logger.debug("Attribution annotation added")
    return text_artist
