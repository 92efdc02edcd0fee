"""
In-memory data model shared by the pipeline stages.

The loader creates a GeometryCollection and its AttributeTable once; the
projector returns a new collection with the same identifiers; the flattener
derives a FlatVertexTable; the basemap provider produces RasterTiles. None of
these objects is mutated after construction.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS

from ..exceptions import FormatError, InvalidParameterError


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle (minx, miny, maxx, maxy) in some CRS."""

    minx: float
    miny: float
    maxx: float
    maxy: float

    def __post_init__(self):
        values = (self.minx, self.miny, self.maxx, self.maxy)
        if not all(math.isfinite(v) for v in values):
            raise InvalidParameterError(f"Bounding box has non-finite bounds: {values}")
        if self.minx > self.maxx or self.miny > self.maxy:
            raise InvalidParameterError(
                f"Bounding box is inverted: minx={self.minx}, maxx={self.maxx}, "
                f"miny={self.miny}, maxy={self.maxy}"
            )

    @classmethod
    def from_bounds(cls, bounds) -> "BoundingBox":
        """Build from any (minx, miny, maxx, maxy) sequence."""
        minx, miny, maxx, maxy = (float(v) for v in bounds)
        return cls(minx, miny, maxx, maxy)

    @property
    def width(self) -> float:
        return self.maxx - self.minx

    @property
    def height(self) -> float:
        return self.maxy - self.miny

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.minx + self.maxx) / 2, (self.miny + self.maxy) / 2)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.minx, self.miny, self.maxx, self.maxy)

    def as_extent(self) -> List[float]:
        """Matplotlib/cartopy ordering: [minx, maxx, miny, maxy]."""
        return [self.minx, self.maxx, self.miny, self.maxy]

    def scale(self, factor: float) -> "BoundingBox":
        """
        Grow or shrink the box about its center.

        A factor of 1.05 adds a 5% margin around the data, which keeps
        outlines off the very edge of a cropped basemap.

        Args:
            factor: Multiplier applied to width and height (must be positive)

        Returns:
            New BoundingBox with the same center
        """
        if factor <= 0:
            raise InvalidParameterError(f"Scale factor must be positive, got {factor}")
        cx, cy = self.center
        half_w = self.width * factor / 2
        half_h = self.height * factor / 2
        return BoundingBox(cx - half_w, cy - half_h, cx + half_w, cy + half_h)

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            min(self.minx, other.minx),
            min(self.miny, other.miny),
            max(self.maxx, other.maxx),
            max(self.maxy, other.maxy),
        )

    def contains(self, other: "BoundingBox", tolerance: float = 0.0) -> bool:
        return (
            self.minx <= other.minx + tolerance
            and self.miny <= other.miny + tolerance
            and self.maxx >= other.maxx - tolerance
            and self.maxy >= other.maxy - tolerance
        )

    def intersects(self, other: "BoundingBox") -> bool:
        return not (
            other.minx > self.maxx
            or other.maxx < self.minx
            or other.miny > self.maxy
            or other.maxy < self.miny
        )

    def to_crs(self, source: Any, target: Any) -> "BoundingBox":
        """
        Transform the box between coordinate systems.

        Edges are densified before transforming so that curved edges in the
        target system are still enclosed.

        Raises:
            ProjectionError: If either descriptor is unknown
        """
        from .projection import build_transformer

        transformer = build_transformer(source, target)
        bounds = transformer.transform_bounds(*self.as_tuple(), densify_pts=21)
        return BoundingBox.from_bounds(bounds)


class GeometryCollection:
    """
    Ordered geometric features keyed by a unique identifier.

    The coordinate reference system belongs to the collection as a whole.
    Geometries are held in a GeoSeries whose index is the feature identifier.
    Every feature has a non-empty geometry, so each one contributes at least
    one vertex when flattened.

    Example:
        >>> from shapely.geometry import box
        >>> geoms = GeometryCollection.from_geometries(
        ...     [box(0, 0, 1, 1), box(1, 0, 2, 1)], ids=[1, 2], crs="EPSG:4326"
        ... )
        >>> geoms.ids
        [1, 2]
    """

    def __init__(self, geometries: gpd.GeoSeries):
        duplicated = geometries.index[geometries.index.duplicated()].unique()
        if len(duplicated) > 0:
            raise FormatError(
                f"Feature identifiers must be unique; duplicated: {list(duplicated)[:10]}"
            )
        empty = geometries.isna() | geometries.is_empty
        if empty.any():
            raise FormatError(
                f"Features without geometry: {list(geometries.index[empty.values])[:10]}"
            )
        self._geometries = geometries

    @classmethod
    def from_geometries(
        cls,
        geometries,
        ids: Optional[List[Any]] = None,
        crs: Any = None
    ) -> "GeometryCollection":
        """Build a collection from shapely geometries and optional identifiers."""
        geometries = list(geometries)
        index = pd.Index(ids if ids is not None else range(len(geometries)), name="id")
        return cls(gpd.GeoSeries(geometries, index=index, crs=crs))

    @property
    def geometries(self) -> gpd.GeoSeries:
        return self._geometries

    @property
    def crs(self) -> Optional[CRS]:
        return self._geometries.crs

    @property
    def ids(self) -> List[Any]:
        return list(self._geometries.index)

    @property
    def bounds(self) -> BoundingBox:
        return BoundingBox.from_bounds(self._geometries.total_bounds)

    def __len__(self) -> int:
        return len(self._geometries)

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        return iter(zip(self._geometries.index, self._geometries.values))

    def __getitem__(self, feature_id):
        return self._geometries.loc[feature_id]

    def __repr__(self) -> str:
        crs = self.crs.to_string() if self.crs is not None else None
        return f"GeometryCollection(features={len(self)}, crs={crs})"


class AttributeTable:
    """One row of named, typed values per feature identifier."""

    def __init__(self, frame: pd.DataFrame):
        duplicated = frame.index[frame.index.duplicated()].unique()
        if len(duplicated) > 0:
            raise FormatError(
                f"Attribute table has several rows for identifiers: {list(duplicated)[:10]}"
            )
        self._frame = frame

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def columns(self) -> List[str]:
        return list(self._frame.columns)

    @property
    def ids(self) -> List[Any]:
        return list(self._frame.index)

    def row(self, feature_id) -> pd.Series:
        return self._frame.loc[feature_id]

    def __contains__(self, feature_id) -> bool:
        return feature_id in self._frame.index

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"AttributeTable(rows={len(self)}, columns={self.columns})"


@dataclass(frozen=True)
class FlatVertexTable:
    """
    Row-per-vertex table joined with feature attributes.

    Columns are ``x, y, order, piece, hole, group`` followed by the attribute
    columns. Vertices of one feature are contiguous and share ``group``.
    """

    frame: pd.DataFrame
    crs: Optional[CRS] = None

    def groups(self) -> List[Any]:
        """Distinct group identifiers in table order."""
        return list(pd.unique(self.frame["group"]))

    @property
    def columns(self) -> List[str]:
        return list(self.frame.columns)

    @property
    def bounds(self) -> BoundingBox:
        if self.frame.empty:
            raise InvalidParameterError("Cannot compute bounds of an empty vertex table")
        return BoundingBox(
            float(self.frame["x"].min()),
            float(self.frame["y"].min()),
            float(self.frame["x"].max()),
            float(self.frame["y"].max()),
        )

    def __len__(self) -> int:
        return len(self.frame)


@dataclass(frozen=True)
class RasterTile:
    """
    Basemap image plus the box it covers.

    ``image`` is an RGBA uint8 array of shape (height, width, 4) whose first
    row is the northern edge. ``bbox`` is expressed in ``crs``.
    """

    image: np.ndarray
    bbox: BoundingBox
    crs: str
    attribution: str = ""
    zoom: Optional[int] = None

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])
