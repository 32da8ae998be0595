import random

import pytest

from geocell.core.geo import GeoPoint
from geocell.s2.bounds import POLE_MIN_LAT
from geocell.s2.encoder import decode, decode_bounds, encode, get_children

EDGE_POINTS = [
    (90.0, 0.0),
    (-90.0, 0.0),
    (90.0, 123.0),
    (0.0, 180.0),
    (0.0, -180.0),
    (45.0, 45.0),
    (0.0, 45.0),
    (35.26438968, 45.0),
    (-45.0, -135.0),
    (89.9999, 179.999),
    (-89.9999, -0.0001),
    (12.5, -180.0),
    (-3.0, 179.9999999),
]


def test_level_zero_face_bounds():
    b = decode_bounds("1")
    assert (b.min_lat, b.max_lat, b.min_lon, b.max_lon) == (-45.0, 45.0, -45.0, 45.0)

    b = decode_bounds("7")
    assert b.wraps
    assert (b.min_lon, b.max_lon) == (135.0, -135.0)

    b = decode_bounds("5")
    assert b.max_lat == 90.0
    assert abs(b.min_lat - POLE_MIN_LAT) < 1e-12
    assert b.full_longitude


@pytest.mark.parametrize("lat, lon", EDGE_POINTS)
def test_edge_points_lie_in_their_cell_bounds(lat, lon):
    point = GeoPoint(lat, lon)
    for level in (0, 1, 2, 5, 10, 16, 23, 30):
        assert decode_bounds(encode(lat, lon, level)).contains(point), level


def test_random_points_lie_in_their_cell_bounds():
    rng = random.Random(21)
    for _ in range(500):
        point = GeoPoint(rng.uniform(-90, 90), rng.uniform(-180, 180))
        level = rng.randint(0, 30)
        token = encode(point.lat, point.lon, level)
        bounds = decode_bounds(token)
        assert bounds.contains(point)
        assert bounds.contains(decode(token))


def test_child_bounds_lie_within_parent_bounds():
    rng = random.Random(8)
    for _ in range(80):
        token = encode(rng.uniform(-80, 80), rng.uniform(-180, 180), rng.randint(1, 25))
        parent = decode_bounds(token)
        for child in get_children(token):
            inner = decode_bounds(child)
            assert inner.min_lat >= parent.min_lat - 1e-9
            assert inner.max_lat <= parent.max_lat + 1e-9
            assert parent.contains(decode(child))


def test_pole_cell_spans_all_longitudes():
    b = decode_bounds(encode(90.0, 0.0, 10))
    assert b.max_lat == 90.0
    assert b.full_longitude

    b = decode_bounds(encode(-90.0, 0.0, 10))
    assert b.min_lat == -90.0
    assert b.full_longitude


def test_san_francisco_cell_bounds_are_tight():
    sf = GeoPoint(37.7749, -122.4194)
    b = decode_bounds(encode(sf.lat, sf.lon, 16))
    assert b.contains(sf)
    assert not b.wraps
    assert b.max_lat - b.min_lat < 0.01
    assert b.max_lon - b.min_lon < 0.01
