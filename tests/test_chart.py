"""Tests for layer composition."""

from __future__ import annotations

from pathlib import Path

import matplotlib.colors as mcolors
import numpy as np
import pandas as pd
import pytest
from pyproj import CRS
from shapely.geometry import box

from layered_maps.constants import VERTEX_COLUMNS
from layered_maps.data.model import BoundingBox, FlatVertexTable, RasterTile
from layered_maps.exceptions import DomainError, InvalidParameterError, RenderError
from layered_maps.rendering import FillLayer, MapCompositor, OutlineLayer, PointLayer, RasterLayer, Theme
from layered_maps.rendering.basemap import mercator_bbox

from conftest import make_table


@pytest.fixture()
def overlapping():
    """Two single-feature tables overlapping on [1, 2] x [1, 2]."""
    first = make_table([box(0, 0, 2, 2)], ids=["a"], v=[1.0])
    second = make_table([box(1, 1, 3, 3)], ids=["b"], v=[2.0])
    return first, second


def pixel_at(fig, ax, x: float, y: float) -> tuple:
    fig.canvas.draw()
    buf = np.asarray(fig.canvas.buffer_rgba())
    px, py = ax.transData.transform((x, y))
    return tuple(buf[buf.shape[0] - 1 - int(round(py)), int(round(px)), :3])


class TestLayerOrder:
    def test_later_layer_draws_on_top(self, config, overlapping) -> None:
        first, second = overlapping
        compositor = MapCompositor(theme=Theme.nothing(), config=config)
        fig, ax = compositor.render([FillLayer(first, color="red"), FillLayer(second, color="blue")])

        assert pixel_at(fig, ax, 1.5, 1.5) == (0, 0, 255)

    def test_swapping_layers_swaps_visibility(self, config, overlapping) -> None:
        first, second = overlapping
        compositor = MapCompositor(theme=Theme.nothing(), config=config)
        fig, ax = compositor.render([FillLayer(second, color="blue"), FillLayer(first, color="red")])

        assert pixel_at(fig, ax, 1.5, 1.5) == (255, 0, 0)

    def test_zorder_follows_list_position(self, config, overlapping) -> None:
        first, second = overlapping
        compositor = MapCompositor(theme=Theme.nothing(), config=config)
        compositor.render([FillLayer(first), OutlineLayer(first), PointLayer(second)])

        zorders = [artist.get_zorder() for _, artist in compositor._rendered_layers]
        assert zorders == [1, 2, 3]


class TestContinuousFill:
    def test_gradient_endpoints(self, config, two_squares) -> None:
        from layered_maps.data.flatten import flatten

        table = flatten(*two_squares)
        compositor = MapCompositor(config=config)
        compositor.render([FillLayer(table, column="rate")])

        collection = compositor._rendered_layers[0][1]
        cmap, norm = collection.get_cmap(), collection.norm
        assert (norm.vmin, norm.vmax) == (10, 90)
        assert cmap(norm(10)) == pytest.approx(mcolors.to_rgba("green"))
        assert cmap(norm(90)) == pytest.approx(mcolors.to_rgba("red"))
        assert cmap(norm(50))[:3] == pytest.approx(
            tuple((np.array(mcolors.to_rgb("green")) + np.array(mcolors.to_rgb("red"))) / 2), abs=0.01
        )

    def test_custom_gradient_and_limits(self, config, two_squares) -> None:
        from layered_maps.data.flatten import flatten

        theme = Theme(low_color="white", high_color="black", color_limits=(0, 100))
        compositor = MapCompositor(theme=theme, config=config)
        compositor.render([FillLayer(flatten(*two_squares), column="rate")])

        collection = compositor._rendered_layers[0][1]
        assert (collection.norm.vmin, collection.norm.vmax) == (0, 100)
        assert collection.get_cmap()(0.0) == pytest.approx(mcolors.to_rgba("white"))

    def test_missing_column(self, config, overlapping) -> None:
        first, _ = overlapping

        with pytest.raises(DomainError, match="not in the vertex table"):
            MapCompositor(config=config).render([FillLayer(first, column="population")])

    def test_non_numeric_column(self, config) -> None:
        table = make_table([box(0, 0, 1, 1)], ids=[1], name=["City"])

        with pytest.raises(DomainError, match="not numeric"):
            MapCompositor(config=config).render([FillLayer(table, column="name")])

    def test_colorbar_added_for_continuous_fill(self, config, two_squares) -> None:
        from layered_maps.data.flatten import flatten

        fig, _ = MapCompositor(config=config).render([FillLayer(flatten(*two_squares), column="rate")])

        assert len(fig.axes) == 2


class TestTheme:
    def test_aspect_lock(self, config, overlapping) -> None:
        first, _ = overlapping

        _, locked = MapCompositor(config=config).render([FillLayer(first)])
        _, free = MapCompositor(theme=Theme(aspect_lock=False), config=config).render([FillLayer(first)])

        assert locked.get_aspect() in ("equal", 1.0)
        assert free.get_aspect() == "auto"

    def test_hidden_axes(self, config, overlapping) -> None:
        first, _ = overlapping
        _, ax = MapCompositor(theme=Theme.nothing(), config=config).render([FillLayer(first)])

        assert not ax.axison

    def test_background_color(self, config, overlapping) -> None:
        first, _ = overlapping
        fig, _ = MapCompositor(theme=Theme(background_color="black"), config=config).render([FillLayer(first)])

        assert fig.get_facecolor() == mcolors.to_rgba("black")

    def test_title(self, config, overlapping) -> None:
        first, _ = overlapping
        fig, _ = MapCompositor(theme=Theme(title="Sport"), config=config).render([FillLayer(first)])

        assert "Sport" in [t.get_text() for t in fig.texts]

    def test_invalid_theme(self, config, overlapping) -> None:
        first, _ = overlapping

        with pytest.raises(InvalidParameterError, match="not a valid color"):
            MapCompositor(theme=Theme(low_color="not-a-colour"), config=config).render([FillLayer(first)])


class TestRasterComposition:
    def test_mercator_basemap_under_geodetic_fill(self, config) -> None:
        table = make_table([box(-5, -5, 5, 5)], ids=[1], v=[1.0])
        raster = RasterTile(
            image=np.full((64, 64, 4), 255, dtype=np.uint8),
            bbox=mercator_bbox(BoundingBox(-10, -10, 10, 10)),
            crs="EPSG:3857",
            attribution="Tiles: Test",
        )
        compositor = MapCompositor(config=config, crs="EPSG:4326")
        fig, ax = compositor.render([RasterLayer(raster), FillLayer(table, alpha=0.6)])

        assert compositor.map_crs.to_epsg() == 4326
        extent = ax.get_extent()
        assert extent[0] == pytest.approx(-10, abs=0.01) and extent[1] == pytest.approx(10, abs=0.01)
        assert "Tiles: Test" in [t.get_text() for t in fig.texts]

    def test_map_crs_defaults_to_first_vector_layer(self, config) -> None:
        table = make_table([box(0, 0, 1000, 1000)], ids=[1], crs="EPSG:3857", v=[1.0])
        compositor = MapCompositor(config=config)
        compositor.render([OutlineLayer(table)])

        assert compositor.map_crs.to_epsg() == 3857


class TestEmptyLayers:
    @pytest.fixture()
    def empty(self) -> FlatVertexTable:
        return FlatVertexTable(
            frame=pd.DataFrame({c: [] for c in VERTEX_COLUMNS}), crs=CRS.from_user_input("EPSG:4326")
        )

    def test_empty_table_keeps_its_crs(self, empty) -> None:
        layer = FillLayer(empty)

        assert layer.crs == empty.crs
        assert layer.extent() == (None, empty.crs)

    def test_empty_layer_is_skipped_when_framing(self, config, overlapping, empty) -> None:
        first, _ = overlapping
        compositor = MapCompositor(config=config)
        _, ax = compositor.render([FillLayer(first), OutlineLayer(empty)])

        assert ax.get_extent() == pytest.approx((0, 2, 0, 2), abs=0.01)

    def test_only_empty_layers(self, config, empty) -> None:
        with pytest.raises(InvalidParameterError, match="every layer is empty"):
            MapCompositor(config=config).render([FillLayer(empty)])


class TestSave:
    @pytest.mark.parametrize("suffix", [".png", ".svg", ".pdf"])
    def test_saves_supported_formats(self, config, overlapping, tmp_path: Path, suffix) -> None:
        first, _ = overlapping
        compositor = MapCompositor(config=config)
        compositor.render([FillLayer(first)])

        out = compositor.save(tmp_path / "maps" / f"map{suffix}")

        assert out.exists() and out.stat().st_size > 0

    def test_unsupported_format(self, config, overlapping, tmp_path: Path) -> None:
        first, _ = overlapping
        compositor = MapCompositor(config=config)
        compositor.render([FillLayer(first)])

        with pytest.raises(InvalidParameterError, match="Unsupported output format"):
            compositor.save(tmp_path / "map.bmp")

    def test_save_before_render(self, config, tmp_path: Path) -> None:
        with pytest.raises(RenderError):
            MapCompositor(config=config).save(tmp_path / "map.png")

    def test_empty_layer_list(self, config) -> None:
        with pytest.raises(InvalidParameterError):
            MapCompositor(config=config).render([])
