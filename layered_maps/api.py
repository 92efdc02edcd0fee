"""
Main API module for LayeredMaps package.

This module provides a single user-facing function that runs the whole
pipeline: download a zipped shapefile, load and reproject it, flatten it,
fetch a basemap and compose the figure.

Example:
    >>> from layered_maps import create_map
    >>>
    >>> create_map(
    ...     "https://example.org/london_sport.zip",
    ...     workdir="data/london",
    ...     id_column="ons_label",
    ...     fill_column="Partic_Per",
    ...     output_path="london_sport.png",
    ... )
"""

import logging
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import matplotlib.pyplot as plt

from .config import Config
from .constants import GEODETIC_CRS
from .pipeline import MapPipeline
from .rendering import Theme

logger = logging.getLogger(__name__)


def create_map(
    url: str,
    workdir: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    target_crs: Any = GEODETIC_CRS,
    layer: Optional[str] = None,
    id_column: Optional[str] = None,
    fill_column: Optional[str] = None,
    basemap_source: Optional[str] = "stamen",
    basemap_style: str = "toner",
    zoom: Optional[int] = None,
    theme: Optional[Theme] = None,
    config: Optional[Config] = None
) -> Union[Path, Tuple[plt.Figure, plt.Axes]]:
    """
    Create a layered map from a remote shapefile archive.

    The workflow:
    1. Download and extract the archive into ``workdir``
    2. Load geometries and attributes
    3. Reproject to ``target_crs``
    4. Flatten into a vertex table joined with the attributes
    5. Fetch a basemap (unless ``basemap_source`` is None)
    6. Compose basemap, fill and outline layers
    7. Save to file or return figure/axes for interactive use

    Args:
        url: Location of the zipped shapefile
        workdir: Directory to extract into
        output_path: PNG/SVG/PDF path; if None, returns (fig, ax)
        target_crs: CRS for the map (default EPSG:4326)
        layer: Shapefile stem when the archive holds several
        id_column: Attribute column with feature identifiers
        fill_column: Numeric attribute for the continuous fill
        basemap_source: Provider name, or None for no basemap
        basemap_style: Provider style
        zoom: Basemap zoom; None picks one automatically
        theme: Visual theme (default: Theme())
        config: Configuration object (default: Config())

    Returns:
        If output_path provided: path to saved map file
        If output_path is None: tuple of (figure, axes)

    Raises:
        NetworkError, ExtractionError, FormatError, ProjectionError,
        JoinError, UnsupportedZoomError, NoCoverageError, DomainError,
        RenderError: From the stage that failed
    """
    logger.info(f"Creating map from {url}")
    pipeline = MapPipeline(
        url,
        workdir,
        target_crs=target_crs,
        layer=layer,
        id_column=id_column,
        config=config,
    )
    fig, ax = pipeline.run(
        fill_column=fill_column,
        basemap_source=basemap_source,
        basemap_style=basemap_style,
        zoom=zoom,
        theme=theme,
    )

    if output_path is None:
        return fig, ax

    saved = pipeline.save(output_path)
    pipeline.compositor.close()
    return saved
