"""
Data retrieval and preparation for LayeredMaps.

This module covers the vector half of the pipeline: downloading and
unpacking a shapefile archive, loading it into geometries and attributes,
reprojecting, and flattening into a row-per-vertex table.

Main Classes:
    ArchiveFetcher: Downloads and extracts dataset archives
    GeometryCollection, AttributeTable, FlatVertexTable: Pipeline data model

Example:
    >>> from layered_maps.data import ArchiveFetcher, load_dataset, project, flatten
    >>> from layered_maps import Config
    >>>
    >>> data_dir = ArchiveFetcher(Config()).fetch(url, "data/london")
    >>> geoms, attrs = load_dataset(data_dir, id_column="ons_label")
    >>> table = flatten(project(geoms, "EPSG:4326"), attrs)
"""

from .fetcher import ArchiveFetcher
from .flatten import feature_centroids, flatten
from .loader import find_shapefile, load_dataset
from .model import (
    AttributeTable,
    BoundingBox,
    FlatVertexTable,
    GeometryCollection,
    RasterTile,
)
from .projection import parse_crs, project

__all__ = [
    "ArchiveFetcher",
    "AttributeTable",
    "BoundingBox",
    "FlatVertexTable",
    "GeometryCollection",
    "RasterTile",
    "feature_centroids",
    "find_shapefile",
    "flatten",
    "load_dataset",
    "parse_crs",
    "project",
]
