"""
Name: Distance Estimator

Responsibilities:
  - Great-circle distance (haversine) between two lat/long pairs, in meters.

Constraints:
  - Pure function: no I/O, no logging.
  - Advisory only: callers annotate records with the distance, never block.
"""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6_371_000
DISTANCE_WARNING_THRESHOLD_METERS = 50


def haversine_distance(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """Distance in meters, rounded to 2 decimal places."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_METERS * c, 2)


def exceeds_warning_threshold(distance_meters: float) -> bool:
    return distance_meters > DISTANCE_WARNING_THRESHOLD_METERS
