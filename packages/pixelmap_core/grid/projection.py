"""Web Mercator projection and square grid addressing for the pixel map."""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6378137.0
MAX_MERCATOR_LAT = 85.05112878
DEFAULT_GRID_METERS = 25.0


def clamp_lat(lat: float) -> float:
    return max(min(float(lat), MAX_MERCATOR_LAT), -MAX_MERCATOR_LAT)


def project(lon: float, lat: float) -> tuple[float, float]:
    """Convert lon/lat degrees to Web Mercator meters.

    Latitude is clamped to the Mercator-valid band first so the poles never
    produce infinities.
    """
    lon_rad = math.radians(float(lon))
    lat_rad = math.radians(clamp_lat(lat))
    x = EARTH_RADIUS_METERS * lon_rad
    y = EARTH_RADIUS_METERS * math.log(math.tan(math.pi / 4 + lat_rad / 2))
    return x, y


def unproject(x: float, y: float) -> tuple[float, float]:
    """Inverse of :func:`project`."""
    lon = math.degrees(float(x) / EARTH_RADIUS_METERS)
    lat = math.degrees(math.atan(math.sinh(float(y) / EARTH_RADIUS_METERS)))
    return lon, lat


def normalize_grid_meters(value: object, default: float = DEFAULT_GRID_METERS) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return float(value)


def snap_meters(meters: float, grid_meters: float) -> int:
    # Floor is the single snapping rule for clients, server and legacy import.
    return int(math.floor(float(meters) / grid_meters))


def cell_of(lon: float, lat: float, grid_meters: float = DEFAULT_GRID_METERS) -> tuple[int, int]:
    """Return the ``(i, j)`` cell containing the given point."""
    x, y = project(lon, lat)
    return snap_meters(x, grid_meters), snap_meters(y, grid_meters)


def cell_origin(i: int, j: int, grid_meters: float = DEFAULT_GRID_METERS) -> tuple[float, float]:
    return i * grid_meters, j * grid_meters


def cell_bounds(i: int, j: int, grid_meters: float = DEFAULT_GRID_METERS) -> tuple[float, float, float, float]:
    """Return ``(west, south, east, north)`` in degrees for a cell."""
    x0, y0 = cell_origin(i, j, grid_meters)
    west, south = unproject(x0, y0)
    east, north = unproject(x0 + grid_meters, y0 + grid_meters)
    return west, south, east, north


def cell_center(i: int, j: int, grid_meters: float = DEFAULT_GRID_METERS) -> tuple[float, float]:
    x0, y0 = cell_origin(i, j, grid_meters)
    return unproject(x0 + grid_meters / 2, y0 + grid_meters / 2)


def cell_key(i: int, j: int) -> str:
    return f"{int(i)},{int(j)}"
