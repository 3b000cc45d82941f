"""
Geometry helpers for telemetry checks.

Great-circle distance (geopy, spherical earth), Google encoded-polyline
decoding, point-to-route distance and a radius test used by the geofence
monitor. Distances are in meters.
"""
import math
from typing import List, NamedTuple, Sequence

from geopy.distance import great_circle


EARTH_RADIUS_KM = 6371.0


class GeoPoint(NamedTuple):
    lat: float
    lng: float


class RadiusCheck(NamedTuple):
    is_valid: bool
    distance_meters: int


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in meters (NaN in, NaN out)"""
    if math.isnan(lat1) or math.isnan(lon1) or math.isnan(lat2) or math.isnan(lon2):
        return math.nan
    return great_circle((lat1, lon1), (lat2, lon2), radius=EARTH_RADIUS_KM).meters


def decode_polyline(encoded: str) -> List[GeoPoint]:
    """
    Decode a Google encoded polyline (precision 1e5).

    Malformed input is not rejected: decoding stops at the end of the string
    and whatever points were produced are returned. Callers check for an
    empty result.
    """
    points: List[GeoPoint] = []
    index = 0
    lat = 0
    lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= length:
                    return points
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lng += deltas[1]
        points.append(GeoPoint(lat / 1e5, lng / 1e5))

    return points


def distance_to_segment(point: GeoPoint, start: GeoPoint, end: GeoPoint) -> float:
    """
    Distance from a point to a route segment.

    The projection parameter is computed in plain lat/lng degrees and clamped
    to [0, 1]; the distance to the projected point is then measured along the
    great circle. Good enough at route-segment scale.
    """
    dx = end.lng - start.lng
    dy = end.lat - start.lat
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        return haversine_distance(point.lat, point.lng, start.lat, start.lng)

    t = ((point.lng - start.lng) * dx + (point.lat - start.lat) * dy) / length_sq
    t = max(0.0, min(1.0, t))

    nearest_lat = start.lat + t * dy
    nearest_lng = start.lng + t * dx
    return haversine_distance(point.lat, point.lng, nearest_lat, nearest_lng)


def distance_to_polyline(point: GeoPoint, polyline: Sequence[GeoPoint]) -> float:
    """Minimum distance from a point to any segment of a route (inf for an empty route)"""
    if not polyline:
        return math.inf
    if len(polyline) == 1:
        return haversine_distance(point.lat, point.lng, polyline[0].lat, polyline[0].lng)

    return min(
        distance_to_segment(point, polyline[i], polyline[i + 1])
        for i in range(len(polyline) - 1)
    )


def is_within_radius(
    current_lat: float,
    current_lon: float,
    target_lat: float,
    target_lon: float,
    radius_meters: float,
) -> RadiusCheck:
    """Check whether a position lies inside a circular zone"""
    distance = haversine_distance(current_lat, current_lon, target_lat, target_lon)
    return RadiusCheck(is_valid=distance <= radius_meters, distance_meters=round(distance))
