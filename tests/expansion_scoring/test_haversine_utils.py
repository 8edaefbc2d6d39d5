# tests/expansion_scoring/test_haversine_utils.py

import pytest

from expansion_scoring.domain.entities import Store
from expansion_scoring.domain.haversine_utils import (
    bounding_box,
    centroid,
    haversine,
    haversine_m,
    nearest_store_distance_km,
)


def test_haversine_one_degree_on_equator():
    assert haversine((0.0, 0.0), (0.0, 1.0)) == pytest.approx(111.195, abs=0.01)
    assert haversine((-23.55, -46.63), (-23.55, -46.63)) == 0.0


def test_haversine_m_is_km_times_thousand():
    a, b = (-23.55, -46.63), (-23.56, -46.64)
    assert haversine_m(a, b) == pytest.approx(haversine(a, b) * 1000)


def test_nearest_store_ignores_unlocated_stores():
    stores = [
        Store("sem-coord"),
        Store("longe", latitude=0.0, longitude=2.0),
        Store("perto", latitude=0.0, longitude=0.5),
    ]
    d = nearest_store_distance_km(0.0, 0.0, stores)
    assert d == pytest.approx(haversine((0.0, 0.0), (0.0, 0.5)), rel=1e-9)


def test_nearest_store_without_locations_returns_none():
    assert nearest_store_distance_km(0.0, 0.0, [Store("x")]) is None
    assert nearest_store_distance_km(0.0, 0.0, []) is None


def test_bounding_box_and_centroid():
    south, west, north, east = bounding_box(0.0, 0.0, 1110)
    assert south == pytest.approx(-0.01)
    assert north == pytest.approx(0.01)
    assert east == pytest.approx(0.01)
    assert west == pytest.approx(-0.01)

    assert centroid([(0.0, 0.0), (2.0, 4.0)]) == (1.0, 2.0)
