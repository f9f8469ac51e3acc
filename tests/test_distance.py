import math

import pytest
from hypothesis import assume, given, strategies as st

from bloodhub.services.distance import (
    Distance,
    calculate_distance,
    format_distance,
    get_distance_category,
    is_valid_coordinate,
)
from bloodhub.services.errors import InvalidCoordinateError

latitudes = st.floats(min_value=-90, max_value=90, allow_nan=False)
longitudes = st.floats(min_value=-180, max_value=180, allow_nan=False)


def _point(lat, lon):
    return {"latitude": lat, "longitude": lon}


@given(lat1=latitudes, lon1=longitudes, lat2=latitudes, lon2=longitudes)
def test_distance_symmetric_and_non_negative(lat1, lon1, lat2, lon2):
    assume(not (lat1 == 0 and lon1 == 0))
    assume(not (lat2 == 0 and lon2 == 0))

    forward = calculate_distance(_point(lat1, lon1), _point(lat2, lon2))
    backward = calculate_distance(_point(lat2, lon2), _point(lat1, lon1))

    assert forward == backward
    assert forward.kilometers >= 0
    # Half the earth's circumference bounds any great-circle distance.
    assert forward.kilometers <= math.pi * 6371 + 0.01


@given(lat=latitudes, lon=longitudes)
def test_same_point_is_zero(lat, lon):
    assume(not (lat == 0 and lon == 0))
    distance = calculate_distance(_point(lat, lon), _point(lat, lon))
    assert distance == Distance(0.0, 0.0, 0.0)


def test_london_to_paris():
    distance = calculate_distance(_point(51.5074, -0.1278), _point(48.8566, 2.3522))
    assert 340 < distance.kilometers < 347
    assert distance.miles == pytest.approx(distance.kilometers * 0.621371, abs=0.01)
    assert distance.meters == pytest.approx(distance.kilometers * 1000, abs=10)


def test_geojson_points_use_lon_lat_order():
    geo_a = {"type": "Point", "coordinates": [85.3131, 27.7045]}
    geo_b = {"type": "Point", "coordinates": [85.3659, 27.6766]}
    plain = calculate_distance(_point(27.7045, 85.3131), _point(27.6766, 85.3659))
    assert calculate_distance(geo_a, geo_b) == plain
    assert get_distance_category(plain.kilometers) == "CLOSE"


@pytest.mark.parametrize(
    "point",
    [
        _point(91, 10),
        _point(-91, 10),
        _point(10, 181),
        _point(10, -181),
        _point(0, 0),
        _point("27.7", 85.3),
        _point(None, 85.3),
        _point(float("nan"), 85.3),
        {"coordinates": [85.3]},
    ],
)
def test_invalid_coordinates_rejected(point):
    with pytest.raises(InvalidCoordinateError):
        calculate_distance(point, _point(27.7, 85.3))


def test_missing_point_rejected():
    with pytest.raises(InvalidCoordinateError):
        calculate_distance(None, _point(27.7, 85.3))


def test_boundary_coordinates_are_valid():
    assert is_valid_coordinate(90, 180)
    assert is_valid_coordinate(-90, -180)
    assert is_valid_coordinate(0, 0.0001)
    assert not is_valid_coordinate(True, 10)


@pytest.mark.parametrize(
    "km, category",
    [
        (0, "VERY_CLOSE"),
        (4.99, "VERY_CLOSE"),
        (5, "CLOSE"),
        (14.99, "CLOSE"),
        (15, "MODERATE"),
        (29.99, "MODERATE"),
        (30, "FAR"),
        (49.99, "FAR"),
        (50, "VERY_FAR"),
        (1200, "VERY_FAR"),
    ],
)
def test_distance_category_boundaries(km, category):
    assert get_distance_category(km) == category


def test_format_distance_units():
    assert format_distance(Distance(0.45, 0.28, 450.0)) == "450.0 meters"
    assert format_distance(Distance(6.05, 3.76, 6050.0)) == "6.05 km"
    assert format_distance(Distance(12.5, 7.77, 12500.0)) == "12.5 km (7.77 miles)"
