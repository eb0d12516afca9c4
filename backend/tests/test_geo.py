from __future__ import annotations

import pytest

from courtguardian.utils.geo import bounding_box, grid_cells, haversine_km, is_valid_coordinate, longitude_ranges

POINTS = [
    (33.749, -84.388),
    (40.7128, -74.0060),
    (-33.8688, 151.2093),
    (0.0, 179.9),
    (0.0, -179.9),
    (89.9, 10.0),
]


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric(a: tuple, b: tuple) -> None:
    forward = haversine_km(a[1], a[0], b[1], b[0])
    backward = haversine_km(b[1], b[0], a[1], a[0])
    assert forward == pytest.approx(backward)


@pytest.mark.parametrize("a", POINTS)
def test_distance_to_self_is_zero(a: tuple) -> None:
    assert haversine_km(a[1], a[0], a[1], a[0]) == 0


def test_known_distance_atlanta_to_new_york() -> None:
    assert haversine_km(-84.388, 33.749, -74.0060, 40.7128) == pytest.approx(1200, rel=0.01)


def test_distance_across_antimeridian_is_short() -> None:
    assert haversine_km(179.9, 0.0, -179.9, 0.0) < 25


def test_is_valid_coordinate() -> None:
    assert is_valid_coordinate(33.749, -84.388)
    assert is_valid_coordinate(-90, 180)
    assert not is_valid_coordinate(91, 0)
    assert not is_valid_coordinate(0, -181)
    assert not is_valid_coordinate(None, 0)
    assert not is_valid_coordinate("north", 0)


def test_bounding_box_contains_circle_edge() -> None:
    min_lat, max_lat, min_lng, max_lng = bounding_box(33.749, -84.388, 1.0)
    # 1km due north/east is inside the box
    assert haversine_km(-84.388, 33.749, -84.388, max_lat) >= 1.0 - 1e-9
    assert haversine_km(-84.388, 33.749, max_lng, 33.749) >= 1.0
    assert min_lat < 33.749 < max_lat
    assert min_lng < -84.388 < max_lng


def test_grid_cells_overlap_for_nearby_circles() -> None:
    a = grid_cells(33.749, -84.388, 5.0, 0.25)
    b = grid_cells(33.76, -84.39, 5.0, 0.25)
    assert a & b


def test_grid_cells_disjoint_for_distant_circles() -> None:
    atlanta = grid_cells(33.749, -84.388, 5.0, 0.25)
    new_york = grid_cells(40.7128, -74.0060, 5.0, 0.25)
    assert not (atlanta & new_york)


def test_grid_cells_wrap_the_antimeridian() -> None:
    east = grid_cells(0.0, 179.99, 2.0, 0.25)
    west = grid_cells(0.0, -179.99, 2.0, 0.25)
    assert east & west


def test_longitude_ranges_split_at_the_antimeridian() -> None:
    _, _, min_lng, max_lng = bounding_box(-18.0, 179.9997, 0.2)
    assert max_lng > 180

    ranges = longitude_ranges(min_lng, max_lng)

    assert len(ranges) == 2
    assert any(low <= -179.9998 <= high for low, high in ranges)
    assert any(low <= 179.9997 <= high for low, high in ranges)
    assert all(-180 <= low <= high <= 180 for low, high in ranges)


def test_longitude_ranges_leave_ordinary_spans_alone() -> None:
    assert longitude_ranges(-84.4, -84.3) == [(-84.4, -84.3)]
    assert longitude_ranges(-200.0, 200.0) == [(-180.0, 180.0)]


def test_grid_cells_near_the_pole_stay_bounded() -> None:
    cells = grid_cells(89.999, 0.0, 50.0, 0.25)
    assert len({j for _, j in cells}) == 1440
