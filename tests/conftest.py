"""Shared fixtures for layered_maps tests."""

from __future__ import annotations

import io
import re
import zipfile
from pathlib import Path
from typing import Callable

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd
import pytest
import requests
from PIL import Image
from shapely.geometry import box

from layered_maps.config import Config
from layered_maps.data.flatten import flatten
from layered_maps.data.model import AttributeTable, FlatVertexTable, GeometryCollection


class FakeResponse:
    """Just enough of requests.Response for the fetcher and basemap provider."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeSession:
    """Routes GET requests to a handler and records every URL."""

    def __init__(self, handler: Callable[[str], object]):
        self.handler = handler
        self.headers: dict = {}
        self.requested: list[str] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.requested.append(url)
        result = self.handler(url)
        if isinstance(result, Exception):
            raise result
        return result


def png_bytes(color=(200, 200, 200, 255), size: int = 256) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buf, format="PNG")
    return buf.getvalue()


TILE_URL = re.compile(r"/(\d+)/(\d+)/(\d+)(?:\.png)?")


def tile_handler(url: str) -> FakeResponse:
    """Serve a tile whose red/green channels encode its x/y indices."""
    match = TILE_URL.search(url)
    if match is None:
        return FakeResponse(200, png_bytes())
    _z, x, y = (int(v) for v in match.groups())
    return FakeResponse(200, png_bytes((x % 256, y % 256, 0, 255)))


def make_table(polygons, ids, crs="EPSG:4326", **columns) -> FlatVertexTable:
    geoms = GeometryCollection.from_geometries(polygons, ids=ids, crs=crs)
    attrs = AttributeTable(pd.DataFrame(columns, index=pd.Index(ids, name="id")))
    return flatten(geoms, attrs)


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    """Config writing into the test's temporary directory."""
    return Config(
        cache_dir=tmp_path / "cache",
        output_dir=tmp_path / "output",
        figure_width=4.0,
        figure_height=4.0,
        default_dpi=50,
    )


@pytest.fixture()
def two_squares() -> tuple[GeometryCollection, AttributeTable]:
    """Two adjacent unit squares, id 1 (rate 10) and id 2 (rate 90)."""
    geoms = GeometryCollection.from_geometries(
        [box(0, 0, 1, 1), box(1, 0, 2, 1)], ids=[1, 2], crs="EPSG:4326"
    )
    attrs = AttributeTable(pd.DataFrame({"rate": [10, 90]}, index=pd.Index([1, 2], name="id")))
    return geoms, attrs


@pytest.fixture()
def london_frame() -> gpd.GeoDataFrame:
    """Three 1 km squares in central London, British National Grid."""
    return gpd.GeoDataFrame(
        {
            "ons_label": ["00AA", "00AB", "00AC"],
            "name": ["City", "Barking", "Barnet"],
            "Partic_Per": [18.9, 21.7, 25.3],
            "Pop_2001": [7185, 163944, 314561],
        },
        geometry=[
            box(530000, 180000, 531000, 181000),
            box(531000, 180000, 532000, 181000),
            box(530000, 181000, 531000, 182000),
        ],
        crs="EPSG:27700",
    )


@pytest.fixture()
def shapefile_dir(tmp_path: Path, london_frame: gpd.GeoDataFrame) -> Path:
    """Directory holding london_sport.shp and its companion files."""
    target = tmp_path / "extracted"
    target.mkdir()
    london_frame.to_file(target / "london_sport.shp")
    return target


@pytest.fixture()
def shapefile_zip(shapefile_dir: Path) -> bytes:
    """The shapefile set zipped in memory."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for path in sorted(shapefile_dir.iterdir()):
            archive.write(path, arcname=path.name)
    return buf.getvalue()
