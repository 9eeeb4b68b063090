from __future__ import annotations

import pytest

from regionmap.models import (
    GeoBounds,
    GeoPoint,
    GeoRegion,
    MultiRingShape,
    RingShape,
    Selection,
    Viewport,
    format_number,
    shape_from_coordinates,
    size_category,
)

SQUARE = [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]
HOLE = [[0.2, 0.2], [0.4, 0.2], [0.4, 0.4], [0.2, 0.2]]


def test_bare_ring_becomes_ring_shape() -> None:
    shape = shape_from_coordinates(SQUARE)
    assert isinstance(shape, RingShape)
    assert shape.kind == "ring"
    assert shape.ring[1] == (1.0, 0.0)


def test_single_ring_list_becomes_ring_shape() -> None:
    shape = shape_from_coordinates([SQUARE])
    assert isinstance(shape, RingShape)


def test_ring_with_hole_keeps_both_rings_in_one_polygon() -> None:
    shape = shape_from_coordinates([SQUARE, HOLE])
    assert isinstance(shape, MultiRingShape)
    assert len(shape.polygons) == 1
    assert len(shape.polygons[0]) == 2


def test_multipolygon_nesting() -> None:
    shape = shape_from_coordinates([[SQUARE], [SQUARE, HOLE]])
    assert isinstance(shape, MultiRingShape)
    assert shape.kind == "multi_ring"
    assert [len(polygon) for polygon in shape.polygons] == [1, 2]
    assert len(list(shape.iter_rings())) == 3


def test_empty_coordinates_give_empty_shape() -> None:
    shape = shape_from_coordinates([])
    assert isinstance(shape, MultiRingShape)
    assert shape.polygons == ()


@pytest.mark.parametrize(
    "coords",
    [
        "not coordinates",
        [["x", 1]],
        [[]],
        [[[0, "y"]]],
    ],
)
def test_malformed_coordinates_raise(coords: object) -> None:
    with pytest.raises(ValueError):
        shape_from_coordinates(coords)


def test_region_from_mapping_accepts_coordinates_and_numeric_id() -> None:
    region = GeoRegion.from_mapping({"id": 7, "coordinates": SQUARE})
    assert region.id == "7"
    assert region.name == "7"
    assert region.point_count == 5
    assert len(region.rings) == 1


def test_region_from_mapping_requires_id() -> None:
    with pytest.raises(ValueError):
        GeoRegion.from_mapping({"name": "nameless", "rings": [SQUARE]})


def test_bounds_reject_inverted_ranges() -> None:
    with pytest.raises(ValueError):
        GeoBounds(min_lng=5, max_lng=1, min_lat=0, max_lat=1)


def test_bounds_union_and_spans() -> None:
    left = GeoBounds(min_lng=0, max_lng=2, min_lat=10, max_lat=11)
    right = GeoBounds(min_lng=1, max_lng=5, min_lat=9, max_lat=10)
    merged = left.union(right)
    assert merged == GeoBounds(min_lng=0, max_lng=5, min_lat=9, max_lat=11)
    assert merged.lng_span == 5
    assert merged.lat_span == 2
    assert not merged.is_degenerate
    assert GeoBounds(min_lng=3, max_lng=3, min_lat=0, max_lat=1).is_degenerate


def test_view_box_is_four_trimmed_numbers() -> None:
    viewport = Viewport(x=-12.5, y=0.0, width=1000.0, height=2232.912345)
    assert viewport.view_box == "-12.5 0 1000 2232.912"
    assert viewport.center == (487.5, 2232.912345 / 2)


def test_format_number_normalises_negative_zero_and_non_finite() -> None:
    assert format_number(-0.0001) == "0"
    assert format_number(float("nan")) == "0"
    assert format_number(1.23456, precision=2) == "1.23"


def test_selection_focus_requires_both_flags() -> None:
    assert not Selection().is_focused
    assert not Selection(selected_region_id="A").is_focused
    assert Selection(selected_region_id="A", show_only_selected=True).is_focused


def test_geo_point_from_mapping() -> None:
    point = GeoPoint.from_mapping(
        {"id": 12, "name": "Uppsala", "lng": 17.64, "lat": 59.86, "population": 177074, "region": "Svealand"}
    )
    assert point.id == "12"
    assert (point.lng, point.lat) == (17.64, 59.86)
    assert point.region == "Svealand"

    bare = GeoPoint.from_mapping({"id": "p", "coordinates": [1, 2]})
    assert bare.name == "p"
    assert (bare.lng, bare.lat, bare.population, bare.region) == (1.0, 2.0, 0, None)


@pytest.mark.parametrize(
    "raw",
    [
        {"id": "p", "lng": "x", "lat": 1},
        {"id": "p", "lat": 1},
        {"id": "p", "lng": 1, "lat": 1, "population": -5},
        {"id": "p", "lng": 1, "lat": 1, "population": 2.5},
        {"lng": 1, "lat": 1},
    ],
)
def test_geo_point_rejects_bad_input(raw: dict) -> None:
    with pytest.raises(ValueError):
        GeoPoint.from_mapping(raw)


@pytest.mark.parametrize(
    ("population", "size"),
    [(0, "small"), (99_999, "small"), (100_000, "medium"), (200_000, "large"), (975_551, "major")],
)
def test_size_category(population: int, size: str) -> None:
    assert size_category(population) == size
