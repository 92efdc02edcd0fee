"""Tests for flattening geometries into vertex tables."""

from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
import pytest
from shapely.geometry import MultiPolygon, Point, Polygon, box

from layered_maps.data.flatten import feature_centroids, flatten
from layered_maps.data.model import AttributeTable, GeometryCollection
from layered_maps.exceptions import JoinError


class TestFlatten:
    def test_two_features_carry_their_attributes(self, two_squares) -> None:
        geoms, attrs = two_squares
        frame = flatten(geoms, attrs).frame

        first = frame[frame["group"] == 1]
        second = frame[frame["group"] == 2]
        assert len(first) == 5 and len(second) == 5
        assert set(first["rate"]) == {10}
        assert set(second["rate"]) == {90}

    def test_one_group_per_feature(self, two_squares) -> None:
        geoms, attrs = two_squares
        table = flatten(geoms, attrs)

        assert table.groups() == [1, 2]
        assert table.crs == geoms.crs

    def test_rows_are_contiguous_and_follow_source_order(self, two_squares) -> None:
        geoms, attrs = two_squares
        frame = flatten(geoms, attrs).frame

        for feature_id, geometry in geoms:
            rows = frame.index[frame["group"] == feature_id]
            assert list(rows) == list(range(rows[0], rows[-1] + 1))
            expected = np.asarray(geometry.exterior.coords)
            np.testing.assert_array_equal(frame.loc[rows, ["x", "y"]].to_numpy(), expected)
            assert list(frame.loc[rows, "order"]) == list(range(1, len(expected) + 1))

    def test_polygon_hole_is_its_own_piece(self) -> None:
        donut = Polygon(
            [(0, 0), (4, 0), (4, 4), (0, 4)],
            holes=[[(1, 1), (1, 3), (3, 3), (3, 1)]],
        )
        geoms = GeometryCollection.from_geometries([donut], ids=["d"], crs="EPSG:4326")
        attrs = AttributeTable(pd.DataFrame({"v": [1.0]}, index=["d"]))
        frame = flatten(geoms, attrs).frame

        assert list(frame["piece"].unique()) == [1, 2]
        assert not frame.loc[frame["piece"] == 1, "hole"].any()
        assert frame.loc[frame["piece"] == 2, "hole"].all()
        assert list(frame["order"]) == list(range(1, 11))

    def test_multipolygon_parts(self) -> None:
        parts = MultiPolygon([box(0, 0, 1, 1), box(2, 2, 3, 3)])
        geoms = GeometryCollection.from_geometries([parts], ids=[5], crs="EPSG:4326")
        attrs = AttributeTable(pd.DataFrame({"v": [1]}, index=[5]))
        frame = flatten(geoms, attrs).frame

        assert frame.groupby("piece").size().to_dict() == {1: 5, 2: 5}
        assert table_groups(frame) == [5]

    def test_missing_attribute_row(self, two_squares) -> None:
        geoms, _ = two_squares
        attrs = AttributeTable(pd.DataFrame({"rate": [10]}, index=[1]))

        with pytest.raises(JoinError, match="2"):
            flatten(geoms, attrs)

    def test_clashing_attribute_names_are_suffixed(self, two_squares) -> None:
        geoms, _ = two_squares
        attrs = AttributeTable(pd.DataFrame({"x": ["a", "b"]}, index=[1, 2]))
        frame = flatten(geoms, attrs).frame

        assert "x_attr" in frame.columns
        assert set(frame.loc[frame["group"] == 2, "x_attr"]) == {"b"}

    def test_extra_attribute_rows_are_ignored(self, two_squares) -> None:
        geoms, _ = two_squares
        attrs = AttributeTable(pd.DataFrame({"rate": [10, 90, 50]}, index=[1, 2, 3]))

        assert flatten(geoms, attrs).groups() == [1, 2]


def table_groups(frame: pd.DataFrame) -> list:
    return list(pd.unique(frame["group"]))


class TestFeatureCentroids:
    def test_one_row_per_feature(self, two_squares) -> None:
        geoms, attrs = two_squares
        table = feature_centroids(geoms, attrs)

        assert len(table) == 2
        assert list(table.frame["x"]) == pytest.approx([0.5, 1.5], abs=1e-6)
        assert list(table.frame["y"]) == pytest.approx([0.5, 0.5], abs=1e-3)
        assert list(table.frame["rate"]) == [10, 90]
        assert table.crs == geoms.crs

    def test_geographic_centroids_do_not_warn(self, two_squares) -> None:
        geoms, attrs = two_squares
        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            feature_centroids(geoms, attrs)

    def test_projected_centroids_are_exact(self) -> None:
        geoms = GeometryCollection.from_geometries(
            [box(530000, 180000, 532000, 182000)], ids=["a"], crs="EPSG:27700"
        )
        attrs = AttributeTable(pd.DataFrame({"v": [1]}, index=["a"]))
        frame = feature_centroids(geoms, attrs).frame

        assert frame[["x", "y"]].values.tolist() == [[531000.0, 181000.0]]

    def test_points_flatten_to_single_rows(self) -> None:
        geoms = GeometryCollection.from_geometries([Point(1, 2)], ids=["p"], crs="EPSG:4326")
        attrs = AttributeTable(pd.DataFrame({"v": [3]}, index=["p"]))
        frame = flatten(geoms, attrs).frame

        assert frame[["x", "y", "order"]].values.tolist() == [[1.0, 2.0, 1.0]]
