"""
Rendering subsystem for LayeredMaps.

This module turns flattened vector data and basemap imagery into a finished
map figure using Cartopy and Matplotlib.

Main Classes:
    BasemapProvider: Fetches and assembles raster basemap tiles
    MapCompositor: Draws an ordered list of layers into one figure
    FillLayer, OutlineLayer, PointLayer, RasterLayer: The layer variants
    Theme: Visual options applied by the compositor

Coordinate System:
    - The map is drawn in the first vector layer's CRS unless one is given
    - Vector layers are reprojected into the map CRS with pyproj
    - Basemaps arrive in EPSG:3857 and are warped by cartopy when the map
      uses another system

Example:
    >>> from layered_maps.rendering import (
    ...     BasemapProvider, MapCompositor, FillLayer, OutlineLayer, RasterLayer, Theme
    ... )
    >>>
    >>> basemap = BasemapProvider().get_basemap(table.bounds.scale(1.05), "stamen", "toner")
    >>> compositor = MapCompositor(theme=Theme.nothing())
    >>> fig, ax = compositor.render([
    ...     RasterLayer(basemap),
    ...     FillLayer(table, column="Partic_Per", alpha=0.5),
    ...     OutlineLayer(table),
    ... ])
"""

from .annotations import add_attribution, add_colorbar, add_title_annotation
from .basemap import (
    BasemapProvider,
    crop_raster,
    list_providers,
    lonlat_to_tile,
    suggest_zoom,
    tile_bounds,
    tile_count,
)
from .chart import MapCompositor
from .layers import FillLayer, Layer, OutlineLayer, PointLayer, RasterLayer
from .theme import Theme

__all__ = [
    "BasemapProvider",
    "crop_raster",
    "list_providers",
    "lonlat_to_tile",
    "suggest_zoom",
    "tile_bounds",
    "tile_count",
    "add_attribution",
    "add_colorbar",
    "add_title_annotation",
    "MapCompositor",
    "Layer",
    "FillLayer",
    "OutlineLayer",
    "PointLayer",
    "RasterLayer",
    "Theme",
]
