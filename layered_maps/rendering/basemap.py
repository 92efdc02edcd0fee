"""
Basemap retrieval from raster tile services.

This module provides the BasemapProvider class, which fetches imagery covering
a geodetic bounding box from the providers registered in ``constants.PROVIDERS``.
Tiled (XYZ) providers are queried tile by tile and assembled into a single
mosaic; single-image providers are asked for one image of the whole box.
All imagery is returned in web mercator (EPSG:3857).
"""

import logging
import math
from io import BytesIO
from typing import Dict, List, Optional, Tuple

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from ..config import Config
from ..constants import (
    MAX_MERCATOR_LATITUDE,
    MERCATOR_ORIGIN_SHIFT,
    PROVIDERS,
    WEB_MERCATOR_CRS,
)
from ..data.model import BoundingBox, RasterTile
from ..exceptions import (
    InvalidParameterError,
    NetworkError,
    NoCoverageError,
    UnsupportedZoomError,
)

logger = logging.getLogger("layered_maps.rendering.basemap")


def list_providers() -> Dict[str, List[str]]:
    """
    Available basemap sources and their styles.

    Example:
        >>> list_providers()["stamen"]
        ['toner', 'toner-lite', 'terrain']
    """
    return {name: list(cfg["styles"]) for name, cfg in PROVIDERS.items()}


def validate_provider(source: str, style: str) -> dict:
    """
    Look up a provider configuration.

    Raises:
        InvalidParameterError: If the source or style is not registered
    """
    if source not in PROVIDERS:
        raise InvalidParameterError(
            f"Basemap source '{source}' not found. "
            f"Available sources: {list(PROVIDERS.keys())}"
        )
    provider = PROVIDERS[source]
    if style not in provider["styles"]:
        raise InvalidParameterError(
            f"Style '{style}' not offered by '{source}'. "
            f"Available styles: {list(provider['styles'])}"
        )
    return provider


def lonlat_to_mercator(lon: float, lat: float) -> Tuple[float, float]:
    """Spherical web-mercator metres for a geodetic coordinate."""
    lat = max(-MAX_MERCATOR_LATITUDE, min(MAX_MERCATOR_LATITUDE, lat))
    mx = lon * MERCATOR_ORIGIN_SHIFT / 180.0
    my = math.log(math.tan((90.0 + lat) * math.pi / 360.0)) * MERCATOR_ORIGIN_SHIFT / math.pi
    return mx, my


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """
    XYZ tile indices containing a geodetic coordinate.

    Indices are clamped to the valid range so the east and south edges of
    the world map to the last tile rather than one past it.

    Example:
        >>> lonlat_to_tile(-0.1, 51.5, 10)
        (511, 340)
    """
    lat = max(-MAX_MERCATOR_LATITUDE, min(MAX_MERCATOR_LATITUDE, lat))
    lat_rad = math.radians(lat)
    n = 2 ** zoom
    x_tile = int((lon + 180.0) / 360.0 * n)
    y_tile = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return min(max(x_tile, 0), n - 1), min(max(y_tile, 0), n - 1)


def tile_bounds(x: int, y: int, zoom: int) -> BoundingBox:
    """Web-mercator bounds of tile (x, y) at ``zoom``."""
    size = 2 * MERCATOR_ORIGIN_SHIFT / (2 ** zoom)
    minx = -MERCATOR_ORIGIN_SHIFT + x * size
    maxy = MERCATOR_ORIGIN_SHIFT - y * size
    return BoundingBox(minx, maxy - size, minx + size, maxy)


def tile_range(bbox: BoundingBox, zoom: int) -> Tuple[int, int, int, int]:
    """
    Tile indices (x_min, y_min, x_max, y_max) covering a geodetic box.

    Tile rows grow southwards, so the box's north edge gives ``y_min``.
    """
    x_min, y_min = lonlat_to_tile(bbox.minx, bbox.maxy, zoom)
    x_max, y_max = lonlat_to_tile(bbox.maxx, bbox.miny, zoom)
    return x_min, y_min, x_max, y_max


def tile_count(bbox: BoundingBox, zoom: int) -> int:
    x_min, y_min, x_max, y_max = tile_range(bbox, zoom)
    return (x_max - x_min + 1) * (y_max - y_min + 1)


def suggest_zoom(bbox: BoundingBox, source: str, max_tiles: int) -> int:
    """
    Largest zoom the provider supports whose tile range fits ``max_tiles``.

    Example:
        >>> suggest_zoom(BoundingBox(-0.5, 51.3, 0.3, 51.7), "osm", 16)
        10
    """
    provider = PROVIDERS[source]
    zoom = provider["min_zoom"]
    for candidate in range(provider["min_zoom"], provider["max_zoom"] + 1):
        if tile_count(bbox, candidate) > max_tiles:
            break
        zoom = candidate
    logger.debug(f"Selected zoom {zoom} for {source} (tile budget {max_tiles})")
    return zoom


def validate_zoom(zoom: int, provider: dict) -> None:
    """
    Check ``zoom`` against the provider's supported range.

    Raises:
        UnsupportedZoomError: If the provider does not serve that zoom
    """
    if not isinstance(zoom, (int, np.integer)) or isinstance(zoom, bool):
        raise UnsupportedZoomError(f"Zoom level must be an integer, got {zoom!r}")
    if zoom < provider["min_zoom"] or zoom > provider["max_zoom"]:
        raise UnsupportedZoomError(
            f"{provider['name']} does not support zoom level {zoom}. "
            f"Supported range: {provider['min_zoom']}-{provider['max_zoom']}"
        )


def check_coverage(bbox: BoundingBox, provider: dict) -> BoundingBox:
    """
    Clip a geodetic box to the area the provider has imagery for.

    Returns:
        The clipped box

    Raises:
        NoCoverageError: If nothing of the box is covered
    """
    world = BoundingBox(-180.0, -MAX_MERCATOR_LATITUDE, 180.0, MAX_MERCATOR_LATITUDE)
    coverage = world
    if provider.get("bounds"):
        coverage = BoundingBox.from_bounds(provider["bounds"])

    if not coverage.intersects(bbox) or not world.intersects(bbox):
        raise NoCoverageError(
            f"{provider['name']} has no imagery for {bbox.as_tuple()} "
            f"(coverage {coverage.as_tuple()})"
        )

    clipped = BoundingBox(
        max(bbox.minx, coverage.minx, world.minx),
        max(bbox.miny, coverage.miny, world.miny),
        min(bbox.maxx, coverage.maxx, world.maxx),
        min(bbox.maxy, coverage.maxy, world.maxy),
    )
    if clipped != bbox:
        logger.warning(f"Basemap request clipped to provider coverage: {clipped.as_tuple()}")
    return clipped


def mercator_bbox(bbox: BoundingBox) -> BoundingBox:
    """Web-mercator version of a geodetic box."""
    minx, miny = lonlat_to_mercator(bbox.minx, bbox.miny)
    maxx, maxy = lonlat_to_mercator(bbox.maxx, bbox.maxy)
    return BoundingBox(minx, miny, maxx, maxy)


def crop_raster(raster: RasterTile, bbox: BoundingBox) -> RasterTile:
    """
    Crop ``raster`` to the pixels covering ``bbox`` (same CRS as the raster).

    The result is pixel aligned, so its box contains ``bbox`` and exceeds it
    by less than one pixel on each side.
    """
    res_x = raster.bbox.width / raster.width
    res_y = raster.bbox.height / raster.height

    col0 = int(math.floor((bbox.minx - raster.bbox.minx) / res_x))
    col1 = int(math.ceil((bbox.maxx - raster.bbox.minx) / res_x))
    row0 = int(math.floor((raster.bbox.maxy - bbox.maxy) / res_y))
    row1 = int(math.ceil((raster.bbox.maxy - bbox.miny) / res_y))

    col0 = min(max(col0, 0), raster.width - 1)
    row0 = min(max(row0, 0), raster.height - 1)
    col1 = min(max(col1, col0 + 1), raster.width)
    row1 = min(max(row1, row0 + 1), raster.height)

    cropped_bbox = BoundingBox(
        raster.bbox.minx + col0 * res_x,
        raster.bbox.maxy - row1 * res_y,
        raster.bbox.minx + col1 * res_x,
        raster.bbox.maxy - row0 * res_y,
    )
    logger.debug(
        f"Cropped raster {raster.width}x{raster.height} to "
        f"{col1 - col0}x{row1 - row0} pixels"
    )
    return RasterTile(
        image=raster.image[row0:row1, col0:col1].copy(),
        bbox=cropped_bbox,
        crs=raster.crs,
        attribution=raster.attribution,
        zoom=raster.zoom,
    )


class BasemapProvider:
    """
    Fetch basemap imagery covering a bounding box.

    Requests are sequential and blocking. Tiled providers are assembled into
    one mosaic; single-image providers accept no zoom that needs more than
    one tile. There is no fallback between providers.

    Attributes:
        config: Configuration object (timeout, tile limits, API key)
        session: requests.Session used for all tile traffic

    Example:
        >>> from layered_maps.rendering import BasemapProvider
        >>> from layered_maps.data import BoundingBox
        >>>
        >>> provider = BasemapProvider()
        >>> london = BoundingBox(-0.51, 51.28, 0.33, 51.69)
        >>> raster = provider.get_basemap(london, source="osm", style="street", zoom=10)
        >>> raster.crs
        'EPSG:3857'
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None
    ):
        self.config = config if config is not None else Config()
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})

    def get_basemap(
        self,
        bbox: BoundingBox,
        source: str = "stamen",
        style: str = "toner",
        zoom: Optional[int] = None,
        crop: bool = True
    ) -> RasterTile:
        """
        Fetch imagery covering a geodetic (lon/lat) bounding box.

        Args:
            bbox: Area to cover, in EPSG:4326
            source: Provider name from PROVIDERS
            style: Style offered by the provider
            zoom: Tile zoom level; None selects one automatically
            crop: Trim the mosaic to ``bbox`` instead of whole tiles

        Returns:
            RasterTile in EPSG:3857 covering at least ``bbox``

        Raises:
            InvalidParameterError: Unknown source or style
            UnsupportedZoomError: Zoom outside the provider's capabilities
            NoCoverageError: Provider has no imagery for the region
            NetworkError: Fetch or decode failure
        """
        provider = validate_provider(source, style)
        bbox = check_coverage(bbox, provider)

        if provider["requires_api_key"] and not self.config.tile_api_key:
            logger.warning(
                f"{provider['name']} normally requires an API key (Config.tile_api_key); "
                "requests may be refused"
            )

        logger.info(
            f"Fetching basemap {source}/{style} zoom={zoom if zoom is not None else 'auto'} "
            f"bbox={bbox.as_tuple()}"
        )

        if provider["tiled"]:
            raster = self._get_tiled(bbox, provider, source, style, zoom)
            if crop:
                raster = crop_raster(raster, mercator_bbox(bbox))
        else:
            raster = self._get_static(bbox, provider, style, zoom)

        logger.info(f"Basemap ready: {raster.width}x{raster.height} px")
        return raster

    def _get_tiled(
        self,
        bbox: BoundingBox,
        provider: dict,
        source: str,
        style: str,
        zoom: Optional[int]
    ) -> RasterTile:
        if zoom is None:
            zoom = suggest_zoom(bbox, source, self.config.auto_zoom_tiles)
        validate_zoom(zoom, provider)

        x_min, y_min, x_max, y_max = tile_range(bbox, zoom)
        count = (x_max - x_min + 1) * (y_max - y_min + 1)
        if count > self.config.max_tiles:
            raise UnsupportedZoomError(
                f"Zoom {zoom} needs {count} tiles for this area, above the limit of "
                f"{self.config.max_tiles} (Config.max_tiles); choose a lower zoom"
            )
        logger.debug(f"Fetching {count} tiles: x={x_min}..{x_max}, y={y_min}..{y_max}, z={zoom}")

        rows = []
        for y in range(y_min, y_max + 1):
            row = []
            for x in range(x_min, x_max + 1):
                row.append(self.fetch_tile(provider, style, zoom, x, y))
            rows.append(row)

        mosaic = self.combine_tiles(rows)
        top_left = tile_bounds(x_min, y_min, zoom)
        bottom_right = tile_bounds(x_max, y_max, zoom)
        extent = BoundingBox(top_left.minx, bottom_right.miny, bottom_right.maxx, top_left.maxy)

        return RasterTile(
            image=mosaic,
            bbox=extent,
            crs=WEB_MERCATOR_CRS,
            attribution=provider["attribution"],
            zoom=zoom,
        )

    def _get_static(
        self,
        bbox: BoundingBox,
        provider: dict,
        style: str,
        zoom: Optional[int]
    ) -> RasterTile:
        if zoom is not None:
            validate_zoom(zoom, provider)
            needed = tile_count(bbox, zoom)
            if needed > 1:
                raise UnsupportedZoomError(
                    f"{provider['name']} serves a single fixed image; zoom {zoom} "
                    f"would need {needed} tiles for this area"
                )
            logger.debug(f"Zoom {zoom} fits a single image; ignored by {provider['name']}")

        target = mercator_bbox(bbox)
        width, height = self._static_size(target)
        url = provider["styles"][style].format(
            minx=target.minx, miny=target.miny, maxx=target.maxx, maxy=target.maxy,
            width=width, height=height, api_key=self.config.tile_api_key or "",
        )
        image = self._request_image(url)
        return RasterTile(
            image=image,
            bbox=target,
            crs=WEB_MERCATOR_CRS,
            attribution=provider["attribution"],
            zoom=None,
        )

    def _static_size(self, target: BoundingBox) -> Tuple[int, int]:
        """Pixel size within Config.static_image_size keeping the box's aspect ratio."""
        max_w, max_h = self.config.static_image_size
        if target.width <= 0 or target.height <= 0:
            return int(max_w), int(max_h)
        if target.width / target.height >= max_w / max_h:
            return int(max_w), max(1, int(round(max_w * target.height / target.width)))
        return max(1, int(round(max_h * target.width / target.height))), int(max_h)

    def fetch_tile(self, provider: dict, style: str, z: int, x: int, y: int) -> np.ndarray:
        """Fetch one XYZ tile as an RGBA array."""
        url = provider["styles"][style].format(
            z=z, x=x, y=y, api_key=self.config.tile_api_key or ""
        )
        return self._request_image(url)

    def _request_image(self, url: str) -> np.ndarray:
        try:
            response = self.session.get(url, timeout=self.config.http_timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Basemap request failed for {url}: {e}") from e

        if response.status_code == 404:
            raise NoCoverageError(f"No imagery at {url} (HTTP 404)")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(f"Basemap server error for {url}: {e}") from e

        try:
            with Image.open(BytesIO(response.content)) as img:
                return np.asarray(img.convert("RGBA"))
        except (UnidentifiedImageError, OSError) as e:
            raise NetworkError(f"Basemap response from {url} is not an image: {e}") from e

    @staticmethod
    def combine_tiles(tiles: List[List[np.ndarray]]) -> np.ndarray:
        """
        Paste a [row][col] grid of RGBA tiles into one array.

        Tiles of a different size from the first one (e.g. a @2x tile among
        regular ones) are resized to match.
        """
        tile_h, tile_w = tiles[0][0].shape[:2]
        rows, cols = len(tiles), len(tiles[0])
        mosaic = np.zeros((rows * tile_h, cols * tile_w, 4), dtype=np.uint8)
        for r, row in enumerate(tiles):
            for c, tile in enumerate(row):
                if tile.shape[:2] != (tile_h, tile_w):
                    tile = np.asarray(Image.fromarray(tile).resize((tile_w, tile_h)))
                mosaic[r * tile_h:(r + 1) * tile_h, c * tile_w:(c + 1) * tile_w] = tile
        return mosaic
