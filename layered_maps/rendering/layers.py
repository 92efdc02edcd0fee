"""
Renderable map layers.

Each layer variant knows how to draw itself onto the compositor's axes and
which area it covers. The set is closed: FillLayer, OutlineLayer, PointLayer
and RasterLayer. Vector layers draw from a FlatVertexTable, reprojecting
vertices into the map CRS through the compositor; RasterLayer hands its
native CRS to cartopy, which warps the image into the map projection.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Tuple, Union

import cartopy.crs as ccrs
import matplotlib.colors as mcolors
import numpy as np
import pandas as pd
from matplotlib.collections import LineCollection, PatchCollection
from matplotlib.patches import PathPatch
from matplotlib.path import Path as MplPath

from ..constants import (
    DEFAULT_FILL_COLOR,
    DEFAULT_OUTLINE_COLOR,
    DEFAULT_OUTLINE_WIDTH,
    DEFAULT_POINT_COLOR,
    DEFAULT_POINT_SIZE,
)
from ..data.model import BoundingBox, FlatVertexTable, RasterTile
from ..data.projection import parse_crs
from ..exceptions import DomainError, ProjectionError
from .theme import Theme

if TYPE_CHECKING:
    from .chart import MapCompositor

logger = logging.getLogger("layered_maps.rendering.layers")


def to_cartopy_crs(crs: Any) -> ccrs.CRS:
    """
    Cartopy projection for a CRS descriptor.

    Geographic systems map to PlateCarree and EPSG:3857 to cartopy's
    web-mercator definition; anything else is built from the pyproj CRS.

    Raises:
        ProjectionError: If cartopy cannot represent the system
    """
    crs = parse_crs(crs)
    if crs.is_geographic:
        return ccrs.PlateCarree()
    epsg = crs.to_epsg()
    if epsg == 3857:
        return ccrs.Mercator.GOOGLE
    try:
        return ccrs.Projection(crs)
    except Exception as e:
        if epsg is not None:
            try:
                return ccrs.epsg(epsg)
            except Exception:
                pass
        raise ProjectionError(f"Cannot draw in {crs.to_string()}: {e}") from e


def gradient_colormap(theme: Theme) -> mcolors.Colormap:
    """Two-endpoint colormap interpolating linearly from low to high color."""
    cmap = mcolors.LinearSegmentedColormap.from_list(
        "layered_maps_gradient", [theme.low_color, theme.high_color]
    )
    cmap.set_bad("lightgrey")
    return cmap


def continuous_values(table: FlatVertexTable, column: str, per_group: bool = True) -> np.ndarray:
    """
    Numeric values of ``column``, one per feature (or per row).

    Raises:
        DomainError: If the column is absent or not numeric
    """
    frame = table.frame
    if column not in frame.columns:
        raise DomainError(
            f"Column '{column}' is not in the vertex table; "
            f"available: {[c for c in frame.columns]}"
        )
    if not pd.api.types.is_numeric_dtype(frame[column]) or pd.api.types.is_bool_dtype(frame[column]):
        raise DomainError(f"Column '{column}' is not numeric (dtype {frame[column].dtype})")
    if per_group:
        return frame.groupby("group", sort=False)[column].first().to_numpy(dtype=float)
    return frame[column].to_numpy(dtype=float)


def color_norm(values: np.ndarray, theme: Theme) -> mcolors.Normalize:
    """Linear normalisation over the theme's limits or the data range."""
    if theme.color_limits is not None:
        vmin, vmax = theme.color_limits
    else:
        finite = values[np.isfinite(values)]
        if finite.size == 0:
            raise DomainError("Continuous fill column has no finite values")
        vmin, vmax = float(finite.min()), float(finite.max())
    if vmin == vmax:
        vmin, vmax = vmin - 0.5, vmax + 0.5
    return mcolors.Normalize(vmin=vmin, vmax=vmax)


def _signed_area(xy: np.ndarray) -> float:
    x, y = xy[:, 0], xy[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def feature_rings(
    compositor: "MapCompositor",
    table: FlatVertexTable
) -> List[Tuple[Any, List[Tuple[np.ndarray, bool]]]]:
    """
    Rings of every feature in map coordinates, in table order.

    Returns:
        List of (group, [(xy, is_hole), ...])
    """
    frame = table.frame
    mx, my = compositor.to_map_xy(frame["x"].to_numpy(), frame["y"].to_numpy(), table.crs)
    projected = frame.assign(_mx=mx, _my=my)

    features = []
    for group, rows in projected.groupby("group", sort=False):
        rings = []
        for _, ring in rows.groupby("piece", sort=False):
            rings.append((ring[["_mx", "_my"]].to_numpy(), bool(ring["hole"].iloc[0])))
        features.append((group, rings))
    return features


def feature_path(rings: List[Tuple[np.ndarray, bool]]) -> MplPath:
    """
    Compound path for one feature.

    Holes are given the opposite winding of the preceding exterior so they
    stay empty under either fill rule.
    """
    vertices = []
    codes = []
    exterior_sign = 1.0
    for xy, is_hole in rings:
        if len(xy) == 0:
            continue
        area = _signed_area(xy)
        if not is_hole:
            exterior_sign = np.sign(area) or 1.0
        elif np.sign(area) == exterior_sign:
            xy = xy[::-1]
        ring_codes = [MplPath.LINETO] * len(xy)
        ring_codes[0] = MplPath.MOVETO
        if len(xy) > 2:
            ring_codes[-1] = MplPath.CLOSEPOLY
        vertices.append(xy)
        codes.extend(ring_codes)
    if not vertices:
        return MplPath(np.empty((0, 2)))
    return MplPath(np.concatenate(vertices), codes)


def _table_extent(table: FlatVertexTable) -> Optional[BoundingBox]:
    return table.bounds if len(table) else None


class Layer(ABC):
    """A renderable map layer."""

    @abstractmethod
    def draw(self, compositor: "MapCompositor", ax, zorder: int) -> Any:
        """Draw onto ``ax`` at ``zorder`` and return the created artist."""

    @property
    @abstractmethod
    def crs(self) -> Any:
        """CRS the layer's coordinates are expressed in."""

    @abstractmethod
    def extent(self) -> Tuple[Optional[BoundingBox], Any]:
        """Covered area (None when there is nothing to draw) and its CRS."""


@dataclass
class FillLayer(Layer):
    """
    Filled polygons, one per feature.

    With ``column`` set, each feature is coloured by that attribute on the
    theme's low→high gradient; otherwise every feature uses ``color``.
    """

    table: FlatVertexTable
    column: Optional[str] = None
    color: str = DEFAULT_FILL_COLOR
    alpha: float = 1.0
    edgecolor: str = "none"
    linewidth: float = 0.0
    label: Optional[str] = None

    @property
    def crs(self) -> Any:
        return self.table.crs

    def extent(self) -> Tuple[Optional[BoundingBox], Any]:
        return _table_extent(self.table), self.table.crs

    def draw(self, compositor: "MapCompositor", ax, zorder: int) -> PatchCollection:
        values = None
        if self.column is not None:
            values = continuous_values(self.table, self.column)

        features = feature_rings(compositor, self.table)
        patches = [PathPatch(feature_path(rings)) for _, rings in features]

        collection = PatchCollection(
            patches,
            facecolor=self.color,
            edgecolor=self.edgecolor,
            linewidth=self.linewidth,
            alpha=self.alpha,
            zorder=zorder,
        )
        if values is not None:
            collection.set_cmap(gradient_colormap(compositor.theme))
            collection.set_norm(color_norm(values, compositor.theme))
            collection.set_array(values)
        ax.add_collection(collection)

        logger.info(
            f"Rendered fill layer: {len(patches)} features"
            + (f" coloured by '{self.column}'" if self.column else "")
        )
        return collection


@dataclass
class OutlineLayer(Layer):
    """Ring outlines, drawn piece by piece."""

    table: FlatVertexTable
    color: str = DEFAULT_OUTLINE_COLOR
    linewidth: float = DEFAULT_OUTLINE_WIDTH
    alpha: float = 1.0
    label: Optional[str] = None

    @property
    def crs(self) -> Any:
        return self.table.crs

    def extent(self) -> Tuple[Optional[BoundingBox], Any]:
        return _table_extent(self.table), self.table.crs

    def draw(self, compositor: "MapCompositor", ax, zorder: int) -> LineCollection:
        segments = [
            xy
            for _, rings in feature_rings(compositor, self.table)
            for xy, _ in rings
        ]
        collection = LineCollection(
            segments,
            colors=self.color,
            linewidths=self.linewidth,
            alpha=self.alpha,
            zorder=zorder,
        )
        ax.add_collection(collection)
        logger.info(f"Rendered outline layer: {len(segments)} rings")
        return collection


@dataclass
class PointLayer(Layer):
    """
    Point markers at every row of the table.

    Typically fed with ``feature_centroids``. ``size`` is a marker area in
    points² or the name of a numeric column; ``column`` colours markers on
    the theme gradient.
    """

    table: FlatVertexTable
    color: str = DEFAULT_POINT_COLOR
    size: Union[float, str] = DEFAULT_POINT_SIZE
    column: Optional[str] = None
    marker: str = "o"
    alpha: float = 1.0
    label: Optional[str] = None

    @property
    def crs(self) -> Any:
        return self.table.crs

    def extent(self) -> Tuple[Optional[BoundingBox], Any]:
        return _table_extent(self.table), self.table.crs

    def draw(self, compositor: "MapCompositor", ax, zorder: int):
        frame = self.table.frame
        mx, my = compositor.to_map_xy(frame["x"].to_numpy(), frame["y"].to_numpy(), self.table.crs)

        sizes = self.size
        if isinstance(self.size, str):
            sizes = continuous_values(self.table, self.size, per_group=False)

        kwargs = {"c": self.color}
        if self.column is not None:
            values = continuous_values(self.table, self.column, per_group=False)
            kwargs = {
                "c": values,
                "cmap": gradient_colormap(compositor.theme),
                "norm": color_norm(values, compositor.theme),
            }

        artist = ax.scatter(mx, my, s=sizes, marker=self.marker, alpha=self.alpha, zorder=zorder, **kwargs)
        logger.info(f"Rendered point layer: {len(frame)} markers")
        return artist


@dataclass
class RasterLayer(Layer):
    """Basemap image; cartopy warps it when its CRS differs from the map's."""

    raster: RasterTile
    alpha: float = 1.0
    interpolation: str = "bilinear"
    label: Optional[str] = None

    @property
    def crs(self) -> Any:
        return self.raster.crs

    def extent(self) -> Tuple[Optional[BoundingBox], Any]:
        return self.raster.bbox, self.raster.crs

    def draw(self, compositor: "MapCompositor", ax, zorder: int):
        artist = ax.imshow(
            self.raster.image,
            origin="upper",
            extent=self.raster.bbox.as_extent(),
            transform=to_cartopy_crs(self.raster.crs),
            interpolation=self.interpolation,
            alpha=self.alpha,
            zorder=zorder,
        )
        logger.info(
            f"Rendered raster layer: {self.raster.width}x{self.raster.height} px "
            f"({self.raster.crs})"
        )
        return artist
