"""
Name: Distance Estimator Tests

Responsibilities:
  - Validate haversine distances and the 50 m warning threshold
"""

import pytest

from vendcash.domain.geo import (
    DISTANCE_WARNING_THRESHOLD_METERS,
    exceeds_warning_threshold,
    haversine_distance,
)

pytestmark = pytest.mark.unit


def test_same_point_is_zero():
    assert haversine_distance(41.3, 69.2, 41.3, 69.2) == 0.0


def test_one_degree_of_latitude_is_about_111_km():
    distance = haversine_distance(0.0, 0.0, 1.0, 0.0)
    assert distance == pytest.approx(111_195, rel=1e-3)


def test_distance_is_symmetric_and_rounded_to_cents():
    a = haversine_distance(41.311081, 69.240562, 41.311500, 69.241000)
    b = haversine_distance(41.311500, 69.241000, 41.311081, 69.240562)
    assert a == b
    assert round(a, 2) == a


def test_warning_threshold_is_strictly_greater_than_50m():
    assert DISTANCE_WARNING_THRESHOLD_METERS == 50
    assert not exceeds_warning_threshold(50.0)
    assert exceeds_warning_threshold(50.01)
