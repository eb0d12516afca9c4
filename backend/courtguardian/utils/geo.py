"""Shared geospatial utilities."""

from math import radians, cos, sin, asin, sqrt, floor, ceil, pi

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = EARTH_RADIUS_KM * pi / 180.0


def haversine_km(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Calculate the great circle distance in kilometers between two points on earth.

    Args:
        lon1: Longitude of point 1 (decimal degrees)
        lat1: Latitude of point 1 (decimal degrees)
        lon2: Longitude of point 2 (decimal degrees)
        lat2: Latitude of point 2 (decimal degrees)

    Returns:
        Distance in kilometers.
    """
    lon1, lat1, lon2, lat2 = map(radians, [lon1, lat1, lon2, lat2])
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push `a` a hair above 1 for antipodal points
    c = 2 * asin(sqrt(min(1.0, a)))
    return c * EARTH_RADIUS_KM


def distance_km(a, b) -> float:
    """Distance between two objects exposing `latitude`/`longitude`."""
    return haversine_km(a.longitude, a.latitude, b.longitude, b.latitude)


def is_valid_coordinate(latitude, longitude) -> bool:
    if latitude is None or longitude is None:
        return False
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def _km_per_degree_lng(latitude: float) -> float:
    # Clamp near the poles so the box stays finite
    return max(KM_PER_DEGREE_LAT * cos(radians(latitude)), 0.01)


def bounding_box(latitude: float, longitude: float, radius_km: float) -> tuple[float, float, float, float]:
    """
    Return (min_lat, max_lat, min_lng, max_lng) enclosing a circle.

    Used as a cheap SQL prefilter before the exact haversine check. Longitudes
    are not wrapped: near the antimeridian min_lng may fall below -180 or
    max_lng rise above 180. Use `longitude_ranges` to turn them into ranges
    that can be compared against stored longitudes.
    """
    dlat = radius_km / KM_PER_DEGREE_LAT
    # Padded: the widest longitude span of the circle lies off its center parallel
    dlng = 1.01 * radius_km / _km_per_degree_lng(latitude)
    return (
        max(-90.0, latitude - dlat),
        min(90.0, latitude + dlat),
        longitude - dlng,
        longitude + dlng,
    )


def longitude_ranges(min_lng: float, max_lng: float) -> list[tuple[float, float]]:
    """
    Split an unwrapped longitude span into ranges inside [-180, 180].

    A span crossing the antimeridian becomes two ranges, one on each side.
    """
    if max_lng - min_lng >= 360.0:
        return [(-180.0, 180.0)]
    if min_lng < -180.0:
        return [(min_lng + 360.0, 180.0), (-180.0, max_lng)]
    if max_lng > 180.0:
        return [(min_lng, 180.0), (-180.0, max_lng - 360.0)]
    return [(min_lng, max_lng)]


def grid_cells(latitude: float, longitude: float, radius_km: float, cell_degrees: float) -> frozenset:
    """
    Coarse grid cells covered by the bounding box of a circle.

    Two circles whose bounding boxes overlap always share at least one cell.
    """
    min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_km)
    lat_range = range(floor(min_lat / cell_degrees), floor(max_lat / cell_degrees) + 1)
    lng_cells = ceil(360.0 / cell_degrees)
    if max_lng - min_lng >= 360.0:
        lng_range = range(lng_cells)
    else:
        lng_range = range(floor(min_lng / cell_degrees), floor(max_lng / cell_degrees) + 1)
    return frozenset(
        (i, j % lng_cells)
        for i in lat_range
        for j in lng_range
    )
