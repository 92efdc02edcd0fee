"""
LayeredMaps - Python package for map figures that layer vector data over basemaps.

This package downloads a zipped shapefile, loads and reprojects it, flattens
it into a row-per-vertex table joined with its attributes, fetches raster
basemap tiles, and composes polygon fills, outlines, point markers and the
basemap into one styled figure.

Quick Start:
    >>> from layered_maps import create_map
    >>>
    >>> create_map(
    ...     "https://example.org/london_sport.zip",
    ...     workdir="data/london",
    ...     id_column="ons_label",
    ...     fill_column="Partic_Per",
    ...     output_path="london_sport.png",
    ... )

Advanced Usage:
    >>> from layered_maps import Config, Theme, MapPipeline
    >>> from layered_maps.rendering import FillLayer, OutlineLayer, PointLayer, RasterLayer
    >>> from layered_maps.data import feature_centroids
    >>>
    >>> pipeline = MapPipeline(url, "data/london", id_column="ons_label")
    >>> pipeline.fetch(); pipeline.load(); pipeline.project(); pipeline.flatten()
    >>> basemap = pipeline.basemap(source="esri", style="satellite", zoom=10)
    >>> points = feature_centroids(pipeline.projected, pipeline.attributes)
    >>> fig, ax = pipeline.compose(
    ...     layers=[
    ...         RasterLayer(basemap),
    ...         FillLayer(pipeline.table, column="Partic_Per", alpha=0.5),
    ...         OutlineLayer(pipeline.table, color="white"),
    ...         PointLayer(points, size="Pop_2001"),
    ...     ],
    ...     theme=Theme.nothing(),
    ... )
"""

__version__ = "0.1.0"

# Initialize logging with default settings
from .logging_config import setup_logging
setup_logging()

# Core constants and configuration
from .constants import PROVIDERS
from .config import Config

# Data acquisition and preparation
from .data import (
    ArchiveFetcher,
    AttributeTable,
    BoundingBox,
    FlatVertexTable,
    GeometryCollection,
    RasterTile,
    feature_centroids,
    flatten,
    load_dataset,
    project,
)

# Rendering components
from .rendering import (
    BasemapProvider,
    FillLayer,
    MapCompositor,
    OutlineLayer,
    PointLayer,
    RasterLayer,
    Theme,
)

# Pipeline and user-facing API
from .pipeline import MapPipeline
from .api import create_map

# Exceptions
from .exceptions import (
    LayeredMapsError,
    NetworkError,
    ExtractionError,
    FormatError,
    ProjectionError,
    JoinError,
    BasemapError,
    UnsupportedZoomError,
    NoCoverageError,
    DomainError,
    RenderError,
    InvalidParameterError,
)

__all__ = [
    # Version info
    "__version__",

    # Constants and config
    "PROVIDERS",
    "Config",
    "setup_logging",

    # Data
    "ArchiveFetcher",
    "AttributeTable",
    "BoundingBox",
    "FlatVertexTable",
    "GeometryCollection",
    "RasterTile",
    "feature_centroids",
    "flatten",
    "load_dataset",
    "project",

    # Rendering
    "BasemapProvider",
    "FillLayer",
    "MapCompositor",
    "OutlineLayer",
    "PointLayer",
    "RasterLayer",
    "Theme",

    # Pipeline and API
    "MapPipeline",
    "create_map",

    # Exceptions
    "LayeredMapsError",
    "NetworkError",
    "ExtractionError",
    "FormatError",
    "ProjectionError",
    "JoinError",
    "BasemapError",
    "UnsupportedZoomError",
    "NoCoverageError",
    "DomainError",
    "RenderError",
    "InvalidParameterError",
]
