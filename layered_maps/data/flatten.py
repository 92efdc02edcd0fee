"""
Flattening of geometry collections into row-per-vertex tables.

Generic 2-D plotting works on flat tables rather than nested geometry, so
each feature is unrolled into its vertices (ring by ring, part by part, in
source order) and every row is joined with the feature's attribute row.
Edge order encodes shape, so row order must follow the source exactly.
"""

import logging
from typing import Iterator, List, Tuple

import numpy as np
import pandas as pd
from shapely.geometry.base import BaseGeometry, BaseMultipartGeometry

from ..constants import EQUAL_AREA_CRS, VERTEX_COLUMNS
from ..exceptions import FormatError, JoinError
from .model import AttributeTable, FlatVertexTable, GeometryCollection

logger = logging.getLogger("layered_maps.data.flatten")


def iter_pieces(geometry: BaseGeometry) -> Iterator[Tuple[np.ndarray, bool]]:
    """
    Yield ``(coords, is_hole)`` for each ring or part of ``geometry``.

    Polygons yield their exterior followed by interiors; multi-part
    geometries yield their members in order.
    """
    geom_type = geometry.geom_type
    if geom_type == "Polygon":
        yield np.asarray(geometry.exterior.coords)[:, :2], False
        for interior in geometry.interiors:
            yield np.asarray(interior.coords)[:, :2], True
    elif geom_type in ("LineString", "LinearRing", "Point"):
        yield np.asarray(geometry.coords)[:, :2], False
    elif isinstance(geometry, BaseMultipartGeometry):
        for part in geometry.geoms:
            yield from iter_pieces(part)
    else:
        raise FormatError(f"Unsupported geometry type: {geom_type}")


def _vertex_frame(collection: GeometryCollection) -> pd.DataFrame:
    blocks: List[pd.DataFrame] = []
    for feature_id, geometry in collection:
        offset = 0
        for piece, (coords, is_hole) in enumerate(iter_pieces(geometry), start=1):
            n = len(coords)
            if n == 0:
                continue
            blocks.append(pd.DataFrame({
                "x": coords[:, 0],
                "y": coords[:, 1],
                "order": np.arange(offset + 1, offset + n + 1),
                "piece": piece,
                "hole": is_hole,
                "group": [feature_id] * n,
            }))
            offset += n

    if not blocks:
        return pd.DataFrame({col: [] for col in VERTEX_COLUMNS})
    return pd.concat(blocks, ignore_index=True)


def _check_join(collection: GeometryCollection, attributes: AttributeTable) -> None:
    missing = [fid for fid in collection.ids if fid not in attributes]
    if missing:
        preview = ", ".join(str(m) for m in missing[:10])
        more = f" (and {len(missing) - 10} more)" if len(missing) > 10 else ""
        raise JoinError(
            f"{len(missing)} features have no attribute row: {preview}{more}"
        )


def _join(rows: pd.DataFrame, attributes: AttributeTable) -> pd.DataFrame:
    attrs = attributes.frame.copy()
    attrs.columns = [f"{c}_attr" if c in VERTEX_COLUMNS else c for c in attrs.columns]
    aligned = attrs.reindex(rows["group"]).reset_index(drop=True)
    return pd.concat([rows.reset_index(drop=True), aligned], axis=1)


def flatten(collection: GeometryCollection, attributes: AttributeTable) -> FlatVertexTable:
    """
    Unroll ``collection`` into a FlatVertexTable joined with ``attributes``.

    Rows follow feature order, then piece order, then vertex order within
    the piece. ``group`` is the feature identifier; ``order`` restarts at 1
    for every feature.

    Args:
        collection: Geometries keyed by feature identifier
        attributes: Attribute rows keyed by the same identifiers

    Returns:
        FlatVertexTable in the collection's coordinate system

    Raises:
        JoinError: If a feature identifier has no attribute row

    Example:
        >>> table = flatten(geoms, attrs)
        >>> table.frame[["x", "y", "group", "rate"]].head()
    """
    _check_join(collection, attributes)
    rows = _vertex_frame(collection)
    frame = _join(rows, attributes)
    logger.info(f"Flattened {len(collection)} features into {len(frame)} vertex rows")
    return FlatVertexTable(frame=frame, crs=collection.crs)


def feature_centroids(collection: GeometryCollection, attributes: AttributeTable) -> FlatVertexTable:
    """
    One point per feature, joined with its attributes.

    Intended for point-marker layers (e.g. a dot per borough sized by
    population). Each feature contributes a single row with ``order`` 1.
    Centroids of geographic (lon/lat) features are taken in an equal-area
    CRS and returned in the collection CRS.

    Raises:
        JoinError: If a feature identifier has no attribute row
    """
    _check_join(collection, attributes)
    geometries = collection.geometries
    if geometries.crs is not None and geometries.crs.is_geographic:
        centroids = geometries.to_crs(EQUAL_AREA_CRS).centroid.to_crs(geometries.crs)
    else:
        centroids = geometries.centroid
    n = len(collection)
    rows = pd.DataFrame({
        "x": centroids.x.to_numpy(),
        "y": centroids.y.to_numpy(),
        "order": np.ones(n, dtype=int),
        "piece": np.ones(n, dtype=int),
        "hole": np.zeros(n, dtype=bool),
        "group": list(collection.geometries.index),
    })
    return FlatVertexTable(frame=_join(rows, attributes), crs=collection.crs)
