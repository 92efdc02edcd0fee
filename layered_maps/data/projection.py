"""
Coordinate reprojection for geometry collections.

Every vertex goes through a pyproj Transformer, including when source and
target systems are the same: pyproj then builds a no-op pipeline, so the
identity case uses exactly the same code path as a real reprojection.
"""

import logging
from typing import Any

import geopandas as gpd
import numpy as np
import shapely
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from ..exceptions import ProjectionError
from .model import GeometryCollection

logger = logging.getLogger("layered_maps.data.projection")


def parse_crs(descriptor: Any) -> CRS:
    """
    Resolve a coordinate reference system descriptor.

    Accepts EPSG integers (4326), authority strings ("EPSG:27700"), PROJ
    strings ("+proj=longlat +datum=WGS84"), WKT, or an existing CRS.

    Raises:
        ProjectionError: If the descriptor is empty or not understood
    """
    if descriptor is None:
        raise ProjectionError("Coordinate reference system is unspecified")
    try:
        return CRS.from_user_input(descriptor)
    except CRSError as e:
        raise ProjectionError(f"Unknown coordinate reference system {descriptor!r}: {e}") from e


def build_transformer(source: Any, target: Any) -> Transformer:
    """Create an x/y-ordered Transformer between two descriptors."""
    source_crs = parse_crs(source)
    target_crs = parse_crs(target)
    try:
        return Transformer.from_crs(source_crs, target_crs, always_xy=True)
    except ProjError as e:
        raise ProjectionError(
            f"No transformation from {source_crs.to_string()} to {target_crs.to_string()}: {e}"
        ) from e


def project(collection: GeometryCollection, target_crs: Any) -> GeometryCollection:
    """
    Transform every vertex of ``collection`` into ``target_crs``.

    Args:
        collection: Geometries with a known coordinate system
        target_crs: Target descriptor (see parse_crs)

    Returns:
        New GeometryCollection with the same identifiers, order and count

    Raises:
        ProjectionError: If the source system is unknown, the target cannot
            be parsed, or the transform yields non-finite coordinates

    Example:
        >>> wgs84 = project(geoms, "EPSG:4326")
        >>> wgs84.ids == geoms.ids
        True
    """
    if collection.crs is None:
        raise ProjectionError(
            "Source coordinate system is unknown; the dataset has no projection information"
        )

    target = parse_crs(target_crs)
    transformer = build_transformer(collection.crs, target)
    logger.info(
        f"Projecting {len(collection)} features: "
        f"{collection.crs.to_string()} -> {target.to_string()}"
    )

    def _transform(coords: np.ndarray) -> np.ndarray:
        x, y = transformer.transform(coords[:, 0], coords[:, 1], errcheck=True)
        return np.column_stack([x, y])

    try:
        transformed = shapely.transform(np.asarray(collection.geometries.values), _transform)
    except ProjError as e:
        raise ProjectionError(f"Projection to {target.to_string()} failed: {e}") from e

    coords = shapely.get_coordinates(transformed)
    if not np.isfinite(coords).all():
        raise ProjectionError(
            f"Projection to {target.to_string()} produced non-finite coordinates; "
            "some features lie outside the target system's area of use"
        )

    geometries = gpd.GeoSeries(transformed, index=collection.geometries.index, crs=target)
    return GeometryCollection(geometries)
