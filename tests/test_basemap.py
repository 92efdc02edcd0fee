"""Tests for basemap tile math and retrieval."""

from __future__ import annotations

import numpy as np
import pytest
import requests

from layered_maps.constants import MAX_MERCATOR_LATITUDE, MERCATOR_ORIGIN_SHIFT
from layered_maps.data.model import BoundingBox
from layered_maps.exceptions import (
    InvalidParameterError,
    NetworkError,
    NoCoverageError,
    UnsupportedZoomError,
)
from layered_maps.rendering.basemap import (
    BasemapProvider,
    crop_raster,
    list_providers,
    lonlat_to_tile,
    mercator_bbox,
    suggest_zoom,
    tile_bounds,
    tile_count,
)

from conftest import FakeResponse, FakeSession, png_bytes, tile_handler

EQUATOR_BOX = BoundingBox(-10, -10, 10, 10)


class TestTileMath:
    def test_lonlat_to_tile(self) -> None:
        assert lonlat_to_tile(0, 0, 1) == (1, 1)
        assert lonlat_to_tile(-180, MAX_MERCATOR_LATITUDE, 1) == (0, 0)
        assert lonlat_to_tile(180, -MAX_MERCATOR_LATITUDE, 1) == (1, 1)
        assert lonlat_to_tile(-0.1, 51.5, 10) == (511, 340)

    def test_zoom_zero_tile_is_the_world(self) -> None:
        world = tile_bounds(0, 0, 0)

        assert world.as_tuple() == pytest.approx(
            (-MERCATOR_ORIGIN_SHIFT, -MERCATOR_ORIGIN_SHIFT, MERCATOR_ORIGIN_SHIFT, MERCATOR_ORIGIN_SHIFT)
        )

    def test_tile_count(self) -> None:
        assert tile_count(EQUATOR_BOX, 0) == 1
        assert tile_count(EQUATOR_BOX, 1) == 4

    def test_suggest_zoom_stays_within_budget(self) -> None:
        zoom = suggest_zoom(EQUATOR_BOX, "osm", 16)

        assert tile_count(EQUATOR_BOX, zoom) <= 16 < tile_count(EQUATOR_BOX, zoom + 1)

    def test_list_providers(self) -> None:
        providers = list_providers()

        assert "toner" in providers["stamen"]
        assert set(providers["esri"]) == {"satellite", "street"}


class TestTiledBasemap:
    def test_zoom_one_fetches_four_tiles(self, config) -> None:
        session = FakeSession(tile_handler)
        raster = BasemapProvider(config, session).get_basemap(
            EQUATOR_BOX, source="osm", style="street", zoom=1, crop=False
        )

        assert len(session.requested) == 4
        assert raster.image.shape == (512, 512, 4)
        assert raster.crs == "EPSG:3857"
        assert raster.zoom == 1
        assert raster.bbox.as_tuple() == pytest.approx(tile_bounds(0, 0, 0).as_tuple())

    def test_tiles_are_placed_by_row_and_column(self, config) -> None:
        raster = BasemapProvider(config, FakeSession(tile_handler)).get_basemap(
            EQUATOR_BOX, source="osm", style="street", zoom=1, crop=False
        )

        # red channel encodes tile x, green channel tile y
        assert tuple(raster.image[0, 0, :2]) == (0, 0)
        assert tuple(raster.image[0, -1, :2]) == (1, 0)
        assert tuple(raster.image[-1, 0, :2]) == (0, 1)
        assert tuple(raster.image[-1, -1, :2]) == (1, 1)

    def test_cropped_basemap_covers_requested_box(self, config) -> None:
        raster = BasemapProvider(config, FakeSession(tile_handler)).get_basemap(
            EQUATOR_BOX, source="osm", style="street", zoom=1
        )

        assert raster.bbox.contains(mercator_bbox(EQUATOR_BOX), tolerance=1e-6)
        assert raster.width < 512 and raster.height < 512
        assert raster.attribution

    def test_auto_zoom_respects_tile_budget(self, config) -> None:
        session = FakeSession(tile_handler)
        raster = BasemapProvider(config, session).get_basemap(EQUATOR_BOX, source="osm", style="street")

        assert 1 <= len(session.requested) <= config.auto_zoom_tiles
        assert raster.zoom == suggest_zoom(EQUATOR_BOX, "osm", config.auto_zoom_tiles)

    def test_zoom_outside_provider_range(self, config) -> None:
        session = FakeSession(tile_handler)

        with pytest.raises(UnsupportedZoomError, match="Supported range"):
            BasemapProvider(config, session).get_basemap(EQUATOR_BOX, source="stamen", style="toner", zoom=19)
        assert session.requested == []

    def test_too_many_tiles(self, config) -> None:
        session = FakeSession(tile_handler)

        with pytest.raises(UnsupportedZoomError, match="max_tiles"):
            BasemapProvider(config, session).get_basemap(EQUATOR_BOX, source="osm", style="street", zoom=8)
        assert session.requested == []

    def test_missing_tile_means_no_coverage(self, config) -> None:
        session = FakeSession(lambda url: FakeResponse(404))

        with pytest.raises(NoCoverageError):
            BasemapProvider(config, session).get_basemap(EQUATOR_BOX, source="osm", style="street", zoom=1)

    def test_box_outside_the_tiled_world(self, config) -> None:
        with pytest.raises(NoCoverageError):
            BasemapProvider(config, FakeSession(tile_handler)).get_basemap(
                BoundingBox(0, 86, 10, 89), source="osm", style="street", zoom=3
            )

    def test_unreachable_server(self, config) -> None:
        session = FakeSession(lambda url: requests.ConnectionError("no route"))

        with pytest.raises(NetworkError, match="no route"):
            BasemapProvider(config, session).get_basemap(EQUATOR_BOX, source="osm", style="street", zoom=1)

    def test_server_error(self, config) -> None:
        with pytest.raises(NetworkError):
            BasemapProvider(config, FakeSession(lambda url: FakeResponse(503))).get_basemap(
                EQUATOR_BOX, source="osm", style="street", zoom=1
            )

    def test_undecodable_tile(self, config) -> None:
        with pytest.raises(NetworkError, match="not an image"):
            BasemapProvider(config, FakeSession(lambda url: FakeResponse(200, b"<html>"))).get_basemap(
                EQUATOR_BOX, source="osm", style="street", zoom=1
            )

    @pytest.mark.parametrize("source,style", [("nowhere", "street"), ("osm", "satellite")])
    def test_unknown_source_or_style(self, config, source, style) -> None:
        with pytest.raises(InvalidParameterError):
            BasemapProvider(config, FakeSession(tile_handler)).get_basemap(
                EQUATOR_BOX, source=source, style=style
            )


class TestStaticBasemap:
    def test_zoom_needing_several_tiles_is_refused(self, config) -> None:
        session = FakeSession(tile_handler)

        with pytest.raises(UnsupportedZoomError, match="single fixed image"):
            BasemapProvider(config, session).get_basemap(
                EQUATOR_BOX, source="esri-static", style="satellite", zoom=1
            )
        assert session.requested == []

    def test_single_request_covers_box(self, config) -> None:
        session = FakeSession(lambda url: FakeResponse(200, png_bytes(size=320)))
        raster = BasemapProvider(config, session).get_basemap(
            EQUATOR_BOX, source="esri-static", style="satellite"
        )

        assert len(session.requested) == 1
        # box is slightly taller than wide in mercator metres
        assert "size=637,640" in session.requested[0]
        assert raster.bbox.as_tuple() == pytest.approx(mercator_bbox(EQUATOR_BOX).as_tuple())
        assert raster.zoom is None

    def test_zoom_fitting_one_tile_is_ignored(self, config) -> None:
        session = FakeSession(lambda url: FakeResponse(200, png_bytes()))
        raster = BasemapProvider(config, session).get_basemap(
            BoundingBox(1, 1, 2, 2), source="esri-static", style="satellite", zoom=3
        )

        assert len(session.requested) == 1
        assert "/export?" in session.requested[0]
        assert raster.zoom is None


def test_crop_raster_is_pixel_aligned() -> None:
    from layered_maps.data.model import RasterTile

    image = np.zeros((100, 200, 4), dtype=np.uint8)
    raster = RasterTile(image=image, bbox=BoundingBox(0, 0, 200, 100), crs="EPSG:3857")

    cropped = crop_raster(raster, BoundingBox(10.5, 20.2, 50.1, 60.9))

    assert cropped.bbox.as_tuple() == (10, 20, 51, 61)
    assert (cropped.width, cropped.height) == (41, 41)
