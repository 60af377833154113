"""Great circle distance helpers for GPS coordinates."""

import math

import numpy as np

from .config import EARTH_RADIUS_M


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great circle distance between two GPS points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_distances(
    lat: float, lon: float, lats: np.ndarray, lons: np.ndarray
) -> np.ndarray:
    """
    Distance in meters from one point to every point in the given arrays.

    Same formula as haversine_distance, evaluated over whole arrays.
    """
    phi1 = math.radians(lat)
    phi2 = np.radians(lats)
    delta_phi = phi2 - phi1
    delta_lambda = np.radians(lons - lon)

    a = (
        np.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * np.cos(phi2) * np.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push a fractionally above 1 for antipodal points
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return EARTH_RADIUS_M * c
