"""
Orchestration module for composing layered maps.

This module provides the MapCompositor class that creates the figure and map
axes, draws an ordered list of layers onto it, applies the theme and adds
annotations.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
from pyproj import CRS

from ..config import Config
from ..data.model import BoundingBox
from ..data.projection import build_transformer, parse_crs
from ..exceptions import InvalidParameterError, LayeredMapsError, ProjectionError, RenderError
from .annotations import add_attribution, add_colorbar, add_title_annotation, annotation_color
from .layers import FillLayer, Layer, PointLayer, RasterLayer, to_cartopy_crs
from .theme import Theme

logger = logging.getLogger("layered_maps.rendering.chart")

SUPPORTED_FORMATS = {".png", ".svg", ".pdf"}

# Gridline styling
GRID_LINEWIDTH = 0.3
GRID_COLOR = '#888888'
GRID_ALPHA = 0.5
GRID_LINESTYLE = '--'
GRID_LABEL_SIZE = 8


class MapCompositor:
    """
    Compose an ordered list of layers into a single map figure.

    Layers are drawn in list order, each above the previous one. The map is
    drawn in one CRS (``crs`` if given, else the first vector layer's);
    vector layers are reprojected into it and raster layers are warped by
    cartopy, so basemap tiles in web mercator line up with geodetic data.

    Attributes:
        theme: Visual options (background, axes, aspect lock, color scale)
        config: Configuration object with figure size and DPI
        crs: Requested map CRS descriptor, or None to infer it
        fig: Matplotlib Figure (None until render called)
        ax: Cartopy GeoAxes (None until render called)

    Example:
        >>> from layered_maps.rendering import MapCompositor, FillLayer, RasterLayer
        >>> compositor = MapCompositor(theme=Theme(title="Sports participation"))
        >>> fig, ax = compositor.render([
        ...     RasterLayer(basemap),
        ...     FillLayer(table, column="Partic_Per", alpha=0.6),
        ... ])
        >>> compositor.save("sport.png")
    """

    def __init__(
        self,
        theme: Optional[Theme] = None,
        config: Optional[Config] = None,
        crs: Any = None
    ):
        self.theme = theme if theme is not None else Theme()
        self.config = config if config is not None else Config()
        self.crs = crs

        self.fig = None
        self.ax = None
        self.map_crs: Optional[CRS] = None
        self.projection = None

        # (layer, artist) pairs in drawing order
        self._rendered_layers: List[Tuple[Layer, Any]] = []

    def _resolve_map_crs(self, layers: Sequence[Layer]) -> CRS:
        if self.crs is not None:
            return parse_crs(self.crs)
        vector_crs = [layer.crs for layer in layers if not isinstance(layer, RasterLayer)]
        raster_crs = [layer.crs for layer in layers if isinstance(layer, RasterLayer)]
        for candidate in vector_crs + raster_crs:
            if candidate is not None:
                return parse_crs(candidate)
        raise ProjectionError("Cannot determine the map coordinate system: no layer declares one")

    def to_map_xy(self, x: np.ndarray, y: np.ndarray, crs: Any) -> Tuple[np.ndarray, np.ndarray]:
        """
        Reproject coordinates from ``crs`` into the map CRS.

        A ``crs`` of None means the coordinates are already in the map CRS.
        """
        if crs is None:
            return np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        source = parse_crs(crs)
        if source == self.map_crs:
            return np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        transformer = build_transformer(source, self.map_crs)
        mx, my = transformer.transform(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
        return np.asarray(mx), np.asarray(my)

    def _map_extent(self, layers: Sequence[Layer]) -> BoundingBox:
        extent = None
        for layer in layers:
            bbox, crs = layer.extent()
            if bbox is None:
                continue
            if crs is not None and parse_crs(crs) != self.map_crs:
                bbox = bbox.to_crs(crs, self.map_crs)
            extent = bbox if extent is None else extent.union(bbox)

        if extent is None:
            raise InvalidParameterError("Nothing to draw: every layer is empty")

        # A lone point or a vertical/horizontal line has no area to frame
        if extent.width == 0 or extent.height == 0:
            pad = max(extent.width, extent.height, 1.0) * 0.05
            extent = BoundingBox(extent.minx - pad, extent.miny - pad, extent.maxx + pad, extent.maxy + pad)
        return extent

    def _create_figure(self) -> Tuple[plt.Figure, plt.Axes]:
        fig = plt.figure(
            figsize=(self.config.figure_width, self.config.figure_height),
            dpi=self.config.default_dpi
        )
        fig.patch.set_facecolor(self.theme.background_color)
        ax = fig.add_subplot(1, 1, 1, projection=self.projection)
        ax.set_facecolor(self.theme.background_color)
        logger.debug(
            f"Created figure: size=({self.config.figure_width}x{self.config.figure_height}), "
            f"dpi={self.config.default_dpi}, crs={self.map_crs.to_string()}"
        )
        return fig, ax

    def _apply_axes_theme(self, ax: plt.Axes) -> None:
        if not self.theme.aspect_lock:
            ax.set_aspect("auto")

        if not self.theme.show_axes:
            ax.set_axis_off()
            return

        label_color = annotation_color(self.fig)
        gl = ax.gridlines(
            draw_labels=True,
            linewidth=GRID_LINEWIDTH,
            color=GRID_COLOR,
            alpha=GRID_ALPHA,
            linestyle=GRID_LINESTYLE
        )
        gl.top_labels = False
        gl.right_labels = False
        gl.xlabel_style = {'size': GRID_LABEL_SIZE, 'color': label_color}
        gl.ylabel_style = {'size': GRID_LABEL_SIZE, 'color': label_color}

    def _annotate(self) -> None:
        if self.theme.title:
            add_title_annotation(self.fig, self.theme.title)

        if self.theme.show_legend:
            for layer, artist in self._rendered_layers:
                column = getattr(layer, "column", None)
                if isinstance(layer, (FillLayer, PointLayer)) and column:
                    add_colorbar(self.fig, self.ax, artist, label=layer.label or column)

        if self.theme.show_attribution:
            credits = [
                layer.raster.attribution
                for layer, _ in self._rendered_layers
                if isinstance(layer, RasterLayer) and layer.raster.attribution
            ]
            if credits:
                add_attribution(self.fig, " | ".join(dict.fromkeys(credits)))

    def render(self, layers: Sequence[Layer]) -> Tuple[plt.Figure, plt.Axes]:
        """
        Draw ``layers`` (bottom to top) into a new figure.

        Args:
            layers: Ordered layers; later entries draw on top

        Returns:
            Tuple of (figure, axes)

        Raises:
            InvalidParameterError: Empty layer list or invalid theme
            ProjectionError: Map CRS cannot be determined or represented
            DomainError: A layer refers to a missing or non-numeric column
            RenderError: Any other drawing failure
        """
        if not layers:
            raise InvalidParameterError("At least one layer is required")
        try:
            self.theme.validate()
        except ValueError as e:
            raise InvalidParameterError(f"Invalid theme: {e}") from e

        self.map_crs = self._resolve_map_crs(layers)
        self.projection = to_cartopy_crs(self.map_crs)
        logger.info(f"Composing {len(layers)} layers in {self.map_crs.to_string()}")

        self.close()
        self.fig, self.ax = self._create_figure()
        self._rendered_layers = []

        try:
            for zorder, layer in enumerate(layers, start=1):
                artist = layer.draw(self, self.ax, zorder)
                self._rendered_layers.append((layer, artist))

            extent = self._map_extent(layers)
            self.ax.set_extent(extent.as_extent(), crs=self.projection)
            self._apply_axes_theme(self.ax)
            self._annotate()
        except LayeredMapsError:
            raise
        except Exception as e:
            logger.error(f"Error during map rendering: {e}", exc_info=True)
            raise RenderError(f"Failed to render map: {e}") from e

        logger.info("Map composition complete")
        return self.fig, self.ax

    def save(self, output_path: Union[str, Path], dpi: Optional[int] = None) -> Path:
        """
        Save the rendered figure; format follows the file extension.

        Raises:
            RenderError: If nothing has been rendered yet
            InvalidParameterError: Unsupported extension
        """
        if self.fig is None:
            raise RenderError("No figure to save; call render() first")

        output_path = Path(output_path)
        if output_path.suffix.lower() not in SUPPORTED_FORMATS:
            raise InvalidParameterError(
                f"Unsupported output format '{output_path.suffix}'. "
                f"Use one of: {', '.join(sorted(SUPPORTED_FORMATS))}"
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.fig.savefig(
            output_path,
            dpi=dpi or self.config.default_dpi,
            bbox_inches='tight',
            facecolor=self.fig.get_facecolor()
        )
        logger.info(f"Map saved to {output_path}")
        return output_path

    def close(self) -> None:
        """Release the current figure, if any."""
        if self.fig is not None:
            plt.close(self.fig)
            self.fig = None
            self.ax = None
